"""
Asset Registry — реестр поддерживаемых активов

Упорядоченная последовательность идентификаторов + lookup id → descriptor.
Записи никогда не удаляются физически (soft delete), поэтому порядок
перечисления и исторические счетчики стабильны.
"""

import logging
from typing import Dict, List, Optional, Tuple

from custody_ledger.core.domain.bank_state import NATIVE_ASSET_ID, AssetDescriptor
from custody_ledger.core.domain.units import validate_decimals
from custody_ledger.core.errors import InvalidPriceFeed, TokenNotSupported

logger = logging.getLogger(__name__)


class AssetRegistry:
    """In-memory реестр активов с soft delete."""

    def __init__(self) -> None:
        self._order: List[str] = []
        self._assets: Dict[str, AssetDescriptor] = {}

    def __contains__(self, asset_id: str) -> bool:
        return asset_id in self._assets

    def __len__(self) -> int:
        return len(self._order)

    def register_asset(
        self, asset_id: str, price_source_id: Optional[str], native_decimals: int
    ) -> AssetDescriptor:
        """
        Регистрация или обновление актива (idempotent upsert).

        Повторная регистрация перезаписывает price source и decimals,
        активирует актив, сохраняет счетчики и позицию в перечислении.

        Raises:
            InvalidPriceFeed: Если price_source_id не задан
            InvalidDecimals: Если native_decimals вне [0, 18]
        """
        if not asset_id:
            raise TokenNotSupported("asset_id must be non-empty")
        if not price_source_id:
            raise InvalidPriceFeed(f"price source is unset for asset {asset_id}")
        validate_decimals(native_decimals)

        existing = self._assets.get(asset_id)
        if existing is None:
            descriptor = AssetDescriptor(
                asset_id=asset_id,
                active=True,
                native_decimals=native_decimals,
                price_source_id=price_source_id,
            )
            self._order.append(asset_id)
        else:
            descriptor = existing.model_copy(
                update={
                    "active": True,
                    "native_decimals": native_decimals,
                    "price_source_id": price_source_id,
                }
            )

        self._assets[asset_id] = descriptor
        logger.debug(
            "asset %s registered: price_source=%s decimals=%d (update=%s)",
            asset_id, price_source_id, native_decimals, existing is not None,
        )
        return descriptor

    def deactivate(self, asset_id: str) -> AssetDescriptor:
        """
        Soft delete: active=False.

        Raises:
            TokenNotSupported: Для нативного актива или неизвестного id
        """
        if asset_id == NATIVE_ASSET_ID:
            raise TokenNotSupported("The native asset cannot be removed")

        existing = self._assets.get(asset_id)
        if existing is None:
            raise TokenNotSupported(f"Unknown asset {asset_id}")

        descriptor = existing.model_copy(update={"active": False})
        self._assets[asset_id] = descriptor
        return descriptor

    def is_active(self, asset_id: str) -> bool:
        descriptor = self._assets.get(asset_id)
        return descriptor is not None and descriptor.active

    def get(self, asset_id: str) -> Optional[AssetDescriptor]:
        return self._assets.get(asset_id)

    def record_deposit(self, asset_id: str) -> None:
        self._bump(asset_id, "deposit_count", 1)

    def record_withdrawal(self, asset_id: str) -> None:
        self._bump(asset_id, "withdrawal_count", 1)

    def counters(self, asset_id: str) -> Tuple[int, int]:
        """(deposit_count, withdrawal_count); (0, 0) для неизвестного актива."""
        descriptor = self._assets.get(asset_id)
        if descriptor is None:
            return 0, 0
        return descriptor.deposit_count, descriptor.withdrawal_count

    def restore_counters(self, asset_id: str, counters: Tuple[int, int]) -> None:
        """Откат счетчиков к ранее сохранённым значениям."""
        descriptor = self._assets.get(asset_id)
        if descriptor is None:
            return
        deposit_count, withdrawal_count = counters
        self._assets[asset_id] = descriptor.model_copy(
            update={"deposit_count": deposit_count, "withdrawal_count": withdrawal_count}
        )

    def list_assets(self) -> Tuple[AssetDescriptor, ...]:
        """Все активы (включая неактивные) в порядке регистрации."""
        return tuple(self._assets[asset_id] for asset_id in self._order)

    def active_assets(self) -> Tuple[AssetDescriptor, ...]:
        return tuple(d for d in self.list_assets() if d.active)

    def _bump(self, asset_id: str, field: str, delta: int) -> None:
        # Чистый bookkeeping: неизвестный актив игнорируется
        descriptor = self._assets.get(asset_id)
        if descriptor is None:
            return
        self._assets[asset_id] = descriptor.model_copy(
            update={field: getattr(descriptor, field) + delta}
        )
