"""Registry — реестр поддерживаемых активов."""

from .asset_registry import AssetRegistry

__all__ = ["AssetRegistry"]
