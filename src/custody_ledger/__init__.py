"""
custody-ledger — multi-asset custodial ledger.

Per-(owner, asset) балансы в canonical precision (6 знаков), глобальный USD cap,
per-transaction USD threshold на вывод и валидируемые внешние цены.
"""

from custody_ledger.bank import (
    CustodialBank,
    InMemoryTransferService,
    RoleBasedAccessControl,
)
from custody_ledger.core.domain import (
    CANONICAL_DECIMALS,
    NATIVE_ASSET_ID,
    AssetDescriptor,
    BankConfig,
    Capability,
    PauseState,
    PriceQuote,
)
from custody_ledger.oracle import StaticPriceSource

__all__ = [
    "CANONICAL_DECIMALS",
    "NATIVE_ASSET_ID",
    "AssetDescriptor",
    "BankConfig",
    "Capability",
    "CustodialBank",
    "InMemoryTransferService",
    "PauseState",
    "PriceQuote",
    "RoleBasedAccessControl",
    "StaticPriceSource",
]
