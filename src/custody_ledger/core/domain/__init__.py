"""
Domain models and value objects.

Contains fundamental domain entities: units, asset descriptors, price readings,
bank configuration and observations.
"""

from custody_ledger.core.domain.bank_state import (
    DEFAULT_STALENESS_WINDOW_SEC,
    NATIVE_ASSET_ID,
    AssetDescriptor,
    BankConfig,
    Capability,
    PauseState,
)
from custody_ledger.core.domain.events import (
    AssetAdded,
    AssetRemoved,
    Deposit,
    EventLog,
    Observation,
    Paused,
    Unpaused,
    Withdrawal,
)
from custody_ledger.core.domain.price import PriceQuote, PriceReading
from custody_ledger.core.domain.units import (
    CANONICAL_DECIMALS,
    MAX_NATIVE_DECIMALS,
    NATIVE_ASSET_DECIMALS,
    dust,
    normalize,
    validate_decimals,
)

__all__ = [
    # Units module
    "CANONICAL_DECIMALS",
    "MAX_NATIVE_DECIMALS",
    "NATIVE_ASSET_DECIMALS",
    "dust",
    "normalize",
    "validate_decimals",
    # Bank state
    "DEFAULT_STALENESS_WINDOW_SEC",
    "NATIVE_ASSET_ID",
    "AssetDescriptor",
    "BankConfig",
    "Capability",
    "PauseState",
    # Price
    "PriceQuote",
    "PriceReading",
    # Observations
    "Observation",
    "Deposit",
    "Withdrawal",
    "AssetAdded",
    "AssetRemoved",
    "Paused",
    "Unpaused",
    "EventLog",
]
