"""
Общие fixtures: конфигурация bank, price source с ручным управлением
раундами, управляемые часы, in-memory transfers и access control.

Цены (8 знаков, формат агрегаторов):
- ETH/USD  = $2,000    → 200_000_000_000
- BTC/USD  = $50,000   → 5_000_000_000_000
- USDC/USD = $1        → 100_000_000
"""

import pytest

from custody_ledger.bank import CustodialBank, InMemoryTransferService, RoleBasedAccessControl
from custody_ledger.core.domain import NATIVE_ASSET_ID, BankConfig, Capability
from custody_ledger.oracle import StaticPriceSource

NOW = 1_700_000_000

ETH_FEED = "ETH/USD"
BTC_FEED = "BTC/USD"
USDC_FEED = "USDC/USD"

ETH_PRICE = 200_000_000_000
BTC_PRICE = 5_000_000_000_000
USDC_PRICE = 100_000_000

WBTC = "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599"
USDC = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"

ADMIN = "admin"
ALICE = "alice"
BOB = "bob"

# $1,000,000 cap, $10,000 per-transaction withdrawal ceiling
BANK_CAP_USD = 1_000_000_000_000
WITHDRAWAL_THRESHOLD_USD = 10_000_000_000

ONE_ETH = 10**18
ONE_BTC = 10**8
ONE_USDC = 10**6


class FakeClock:
    """Управляемые часы для staleness проверок."""

    def __init__(self, now: int = NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def price_source():
    source = StaticPriceSource()
    source.add_feed(ETH_FEED, decimals=8)
    source.add_feed(BTC_FEED, decimals=8)
    source.add_feed(USDC_FEED, decimals=8)
    source.set_price(ETH_FEED, ETH_PRICE, updated_at=NOW)
    source.set_price(BTC_FEED, BTC_PRICE, updated_at=NOW)
    source.set_price(USDC_FEED, USDC_PRICE, updated_at=NOW)
    return source


@pytest.fixture
def transfers():
    service = InMemoryTransferService()
    for owner in (ALICE, BOB):
        service.fund(owner, NATIVE_ASSET_ID, 100 * ONE_ETH)
        service.fund(owner, WBTC, 10 * ONE_BTC)
        service.fund(owner, USDC, 1_000_000 * ONE_USDC)
    return service


@pytest.fixture
def access():
    return RoleBasedAccessControl(
        {ADMIN: [Capability.ASSET_MANAGER, Capability.PAUSER]}
    )


@pytest.fixture
def config():
    return BankConfig(
        bank_cap_usd=BANK_CAP_USD,
        withdrawal_threshold_usd=WITHDRAWAL_THRESHOLD_USD,
        native_price_source_id=ETH_FEED,
    )


@pytest.fixture
def bank(config, price_source, transfers, access, clock):
    """Bank с зарегистрированными WBTC (8 знаков) и USDC (6 знаков)."""
    instance = CustodialBank(config, price_source, transfers, access, clock=clock)
    instance.add_asset(ADMIN, WBTC, BTC_FEED, 8)
    instance.add_asset(ADMIN, USDC, USDC_FEED, 6)
    return instance


def deposit_native(bank, transfers, owner, amount):
    """Нативный value приходит вместе с вызовом: сначала custody, затем deposit."""
    transfers.receive_native(owner, amount)
    return bank.deposit_native(owner, amount)
