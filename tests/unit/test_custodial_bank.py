"""
Тесты Custodial Bank (end-to-end через orchestrator)

Покрытие:
- Сценарии нормализации и оценки (native 18 знаков, 8-знаковый актив)
- Cap депозитов и per-transaction threshold вывода
- Pause / unpause, capability checks
- Атомарность: любой отказ оставляет состояние нетронутым
- Отказ transfer service → TransferFailed, компенсирующий возврат custody
- Reentrancy через callback transfer service
- Журнал событий и подписчики
- Views: total_value_usd, cost-basis aggregate vs mark-to-market
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from custody_ledger.bank import CustodialBank, InMemoryTransferService
from custody_ledger.core.domain import (
    NATIVE_ASSET_ID,
    AssetAdded,
    AssetRemoved,
    Deposit,
    Paused,
    PauseState,
    Unpaused,
    Withdrawal,
)
from custody_ledger.core.errors import (
    AccessDenied,
    AmountMustBeGreaterThanZero,
    ContractNotPaused,
    ContractPaused,
    DepositExceedsBankCap,
    InsufficientBalance,
    InvalidDecimals,
    InvalidPrice,
    InvalidPriceFeed,
    ReentrantCall,
    StalePrice,
    TokenNotSupported,
    TransferFailed,
    WithdrawalExceedsThreshold,
)
from tests.conftest import (
    ADMIN,
    ALICE,
    BANK_CAP_USD,
    BOB,
    BTC_FEED,
    BTC_PRICE,
    ETH_FEED,
    ETH_PRICE,
    NOW,
    ONE_BTC,
    ONE_ETH,
    ONE_USDC,
    USDC,
    WBTC,
    deposit_native,
)


def snapshot(bank, owner, asset_id):
    """Наблюдаемое состояние, которое не должно меняться при отказе операции."""
    return (
        bank.balance_of(owner, asset_id),
        bank.total_deposits_usd(),
        bank.asset_info(asset_id),
        len(bank.events),
    )


# =============================================================================
# SCENARIOS
# =============================================================================


class TestNormalizationScenarios:

    def test_native_eighteen_decimals(self, bank, transfers) -> None:
        """1 ETH (18 знаков) → 1_000000 canonical, $2,000"""
        event = deposit_native(bank, transfers, ALICE, ONE_ETH)

        assert isinstance(event, Deposit)
        assert event.raw_amount == ONE_ETH
        assert event.normalized_amount == 1_000_000
        assert event.new_balance == 1_000_000
        assert bank.balance_of(ALICE, NATIVE_ASSET_ID) == 1_000_000
        assert bank.total_deposits_usd() == 2_000_000_000

    def test_eight_decimals_asset_valuation(self, bank, transfers) -> None:
        """1 BTC (8 знаков) по $50,000 → 1_000000 canonical, 50_000_000_000 USD"""
        event = bank.deposit_asset(ALICE, WBTC, ONE_BTC)

        assert event.normalized_amount == 1_000_000
        assert bank.total_deposits_usd() == 50_000_000_000
        assert transfers.wallet_of(ALICE, WBTC) == 9 * ONE_BTC
        assert transfers.custody_of(WBTC) == ONE_BTC
        assert bank.asset_info(WBTC).deposit_count == 1

    def test_sub_canonical_dust_truncated(self, bank, transfers) -> None:
        """Остаток ниже canonical precision отбрасывается при нормализации"""
        event = deposit_native(bank, transfers, ALICE, 10**12 + 123)
        assert event.normalized_amount == 1

    def test_six_decimals_asset_is_exact(self, bank) -> None:
        event = bank.deposit_asset(ALICE, USDC, 1_234_567)
        assert event.normalized_amount == 1_234_567
        assert bank.total_deposits_usd() == 1_234_567


class TestBankCap:

    def test_deposit_over_cap_rejected_and_refunded(self, bank, transfers) -> None:
        """total 999_999_000_000 + deposit 2_000_000 > cap → отклонено"""
        bank.deposit_asset(ALICE, USDC, 999_999 * ONE_USDC)
        assert bank.total_deposits_usd() == 999_999_000_000
        before = snapshot(bank, BOB, USDC)

        with pytest.raises(DepositExceedsBankCap):
            bank.deposit_asset(BOB, USDC, 2 * ONE_USDC)

        assert snapshot(bank, BOB, USDC) == before
        assert transfers.wallet_of(BOB, USDC) == 1_000_000 * ONE_USDC
        assert transfers.custody_of(USDC) == 999_999 * ONE_USDC

    def test_deposit_filling_cap_exactly_accepted(self, bank) -> None:
        bank.deposit_asset(ALICE, USDC, 999_999 * ONE_USDC)
        bank.deposit_asset(BOB, USDC, ONE_USDC)

        assert bank.total_deposits_usd() == BANK_CAP_USD
        assert bank.available_capacity_usd() == 0

    def test_withdrawal_frees_capacity(self, bank) -> None:
        bank.deposit_asset(ALICE, USDC, 999_999 * ONE_USDC)
        bank.withdraw_asset(ALICE, USDC, 5_000 * ONE_USDC)
        bank.deposit_asset(BOB, USDC, 2 * ONE_USDC)

        assert bank.total_deposits_usd() == 995_001_000_000


class TestWithdrawalThreshold:

    def test_above_threshold_rejected(self, bank, transfers) -> None:
        """Вывод на 10_000_000_001 USD отклонён, ровно 10_000_000_000 принят"""
        bank.deposit_asset(ALICE, USDC, 20_000 * ONE_USDC)
        before = snapshot(bank, ALICE, USDC)

        with pytest.raises(WithdrawalExceedsThreshold):
            bank.withdraw_asset(ALICE, USDC, 10_000_000_001)
        assert snapshot(bank, ALICE, USDC) == before

        event = bank.withdraw_asset(ALICE, USDC, 10_000 * ONE_USDC)
        assert isinstance(event, Withdrawal)
        assert event.remaining_balance == 10_000 * ONE_USDC
        assert transfers.wallet_of(ALICE, USDC) == 990_000 * ONE_USDC

    def test_threshold_is_per_transaction(self, bank) -> None:
        """Повторные выводы ниже порога проходят без временного окна"""
        bank.deposit_asset(ALICE, USDC, 30_000 * ONE_USDC)
        for _ in range(3):
            bank.withdraw_asset(ALICE, USDC, 10_000 * ONE_USDC)

        assert bank.balance_of(ALICE, USDC) == 0
        assert bank.asset_info(USDC).withdrawal_count == 3


class TestPause:

    def test_pause_blocks_and_unpause_restores(self, bank) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        balance = bank.balance_of(ALICE, WBTC)
        total = bank.total_deposits_usd()

        bank.pause(ADMIN)
        assert bank.is_paused()
        assert bank.pause_state == PauseState.PAUSED

        with pytest.raises(ContractPaused):
            bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        with pytest.raises(ContractPaused):
            bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        bank.unpause(ADMIN)
        assert not bank.is_paused()
        assert bank.balance_of(ALICE, WBTC) == balance
        assert bank.total_deposits_usd() == total

        bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)
        assert bank.balance_of(ALICE, WBTC) == 900_000

    def test_pause_events(self, bank) -> None:
        bank.pause(ADMIN)
        bank.unpause(ADMIN)

        paused, unpaused = bank.events[-2:]
        assert isinstance(paused, Paused)
        assert isinstance(unpaused, Unpaused)
        assert paused.account == ADMIN

    def test_double_pause_rejected(self, bank) -> None:
        bank.pause(ADMIN)
        events = len(bank.events)
        with pytest.raises(ContractPaused):
            bank.pause(ADMIN)
        assert len(bank.events) == events

    def test_unpause_when_active_rejected(self, bank) -> None:
        with pytest.raises(ContractNotPaused):
            bank.unpause(ADMIN)

    def test_paused_native_deposit_returns_value(self, bank, transfers) -> None:
        bank.pause(ADMIN)
        with pytest.raises(ContractPaused):
            deposit_native(bank, transfers, ALICE, ONE_ETH)

        assert transfers.wallet_of(ALICE, NATIVE_ASSET_ID) == 100 * ONE_ETH
        assert transfers.custody_of(NATIVE_ASSET_ID) == 0


# =============================================================================
# PRECONDITIONS AND ADMIN
# =============================================================================


class TestPreconditions:

    def test_zero_amount(self, bank) -> None:
        with pytest.raises(AmountMustBeGreaterThanZero):
            bank.deposit_asset(ALICE, WBTC, 0)
        with pytest.raises(AmountMustBeGreaterThanZero):
            bank.withdraw_asset(ALICE, WBTC, 0)

    def test_unknown_asset(self, bank, transfers) -> None:
        with pytest.raises(TokenNotSupported):
            bank.deposit_asset(ALICE, "0xunknown", 1)
        assert transfers.wallet_of(ALICE, "0xunknown") == 0

    def test_native_through_asset_entrypoints(self, bank) -> None:
        with pytest.raises(TokenNotSupported):
            bank.deposit_asset(ALICE, NATIVE_ASSET_ID, ONE_ETH)
        with pytest.raises(TokenNotSupported):
            bank.withdraw_asset(ALICE, NATIVE_ASSET_ID, ONE_ETH)

    def test_insufficient_balance(self, bank) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC // 10)
        before = snapshot(bank, ALICE, WBTC)

        with pytest.raises(InsufficientBalance):
            bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10 + 100)
        assert snapshot(bank, ALICE, WBTC) == before

    def test_balances_isolated_by_owner(self, bank) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC // 10)
        with pytest.raises(InsufficientBalance):
            bank.withdraw_asset(BOB, WBTC, 100)

    def test_native_withdrawal(self, bank, transfers) -> None:
        deposit_native(bank, transfers, ALICE, 2 * ONE_ETH)
        event = bank.withdraw_native(ALICE, ONE_ETH)

        assert event.remaining_balance == 1_000_000
        assert transfers.wallet_of(ALICE, NATIVE_ASSET_ID) == 99 * ONE_ETH
        assert bank.total_deposits_usd() == 2_000_000_000


class TestAssetAdministration:

    def test_list_assets_in_registration_order(self, bank) -> None:
        assert [d.asset_id for d in bank.list_assets()] == [NATIVE_ASSET_ID, WBTC, USDC]

    def test_add_requires_capability(self, bank) -> None:
        with pytest.raises(AccessDenied):
            bank.add_asset(ALICE, "0xnew", BTC_FEED, 8)
        assert bank.asset_info("0xnew") is None

    def test_pause_requires_capability(self, bank) -> None:
        with pytest.raises(AccessDenied):
            bank.pause(ALICE)
        assert not bank.is_paused()

    def test_add_invalid_decimals(self, bank) -> None:
        with pytest.raises(InvalidDecimals):
            bank.add_asset(ADMIN, "0xnew", BTC_FEED, 19)

    def test_add_unset_price_source(self, bank) -> None:
        with pytest.raises(InvalidPriceFeed):
            bank.add_asset(ADMIN, "0xnew", "", 8)

    def test_native_cannot_be_readded_or_removed(self, bank) -> None:
        with pytest.raises(TokenNotSupported):
            bank.add_asset(ADMIN, NATIVE_ASSET_ID, BTC_FEED, 8)
        with pytest.raises(TokenNotSupported):
            bank.remove_asset(ADMIN, NATIVE_ASSET_ID)

    def test_removed_asset_rejects_operations(self, bank) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        bank.remove_asset(ADMIN, WBTC)

        descriptor = bank.asset_info(WBTC)
        assert not descriptor.active
        assert descriptor.deposit_count == 1
        assert isinstance(bank.events[-1], AssetRemoved)

        with pytest.raises(TokenNotSupported):
            bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        with pytest.raises(TokenNotSupported):
            bank.withdraw_asset(ALICE, WBTC, ONE_BTC)
        assert bank.balance_of(ALICE, WBTC) == 1_000_000

    def test_readd_restores_operations(self, bank) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        bank.remove_asset(ADMIN, WBTC)
        bank.add_asset(ADMIN, WBTC, BTC_FEED, 8)

        assert bank.asset_info(WBTC).active
        assert bank.asset_info(WBTC).deposit_count == 1
        bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)
        assert [d.asset_id for d in bank.list_assets()] == [NATIVE_ASSET_ID, WBTC, USDC]


# =============================================================================
# PRICE FAILURES
# =============================================================================


class TestPriceFailures:

    def test_stale_price_rejects_and_refunds_deposit(self, bank, transfers, clock) -> None:
        clock.advance(3601)
        before = snapshot(bank, ALICE, WBTC)

        with pytest.raises(StalePrice):
            bank.deposit_asset(ALICE, WBTC, ONE_BTC)

        assert snapshot(bank, ALICE, WBTC) == before
        assert transfers.wallet_of(ALICE, WBTC) == 10 * ONE_BTC
        assert transfers.custody_of(WBTC) == 0

    def test_price_exactly_at_window_accepted(self, bank, clock) -> None:
        clock.advance(3600)
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)

    def test_incomplete_round_blocks_withdrawal(self, bank, price_source) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        price_source.set_round(
            BTC_FEED, round_id=10, price=BTC_PRICE, updated_at=NOW, answered_in_round=9
        )
        with pytest.raises(StalePrice):
            bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)
        assert bank.balance_of(ALICE, WBTC) == 1_000_000

    def test_zero_price_rejected(self, bank, price_source, transfers) -> None:
        price_source.set_price(BTC_FEED, 0, updated_at=NOW)
        with pytest.raises(InvalidPrice):
            bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        assert transfers.wallet_of(ALICE, WBTC) == 10 * ONE_BTC

    def test_price_view(self, bank) -> None:
        quote = bank.price_usd(NATIVE_ASSET_ID)
        assert quote.price == ETH_PRICE
        assert quote.decimals == 8


# =============================================================================
# TRANSFER FAILURES AND REENTRANCY
# =============================================================================


class RefusingTransfers(InMemoryTransferService):
    """Transfer service, который отказывает в payout возвратом False."""

    def push(self, owner, asset_id, amount):
        return False


class TestTransferFailures:

    def test_pull_refused(self, bank, transfers) -> None:
        before = snapshot(bank, ALICE, WBTC)
        with pytest.raises(TransferFailed):
            bank.deposit_asset(ALICE, WBTC, 11 * ONE_BTC)

        assert snapshot(bank, ALICE, WBTC) == before
        assert transfers.wallet_of(ALICE, WBTC) == 10 * ONE_BTC

    def test_push_exception_rolls_back_withdrawal(self, bank, transfers) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        before = snapshot(bank, ALICE, WBTC)

        def failing_hook(direction, owner, asset_id, amount):
            if direction == "push":
                raise RuntimeError("receiver rejected transfer")

        transfers.hook = failing_hook
        with pytest.raises(TransferFailed) as exc_info:
            bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert snapshot(bank, ALICE, WBTC) == before
        assert transfers.custody_of(WBTC) == ONE_BTC

    def test_push_refusal_rolls_back_withdrawal(self, config, price_source, access, clock) -> None:
        transfers = RefusingTransfers()
        transfers.fund(ALICE, NATIVE_ASSET_ID, ONE_ETH)
        bank = CustodialBank(config, price_source, transfers, access, clock=clock)
        deposit_native(bank, transfers, ALICE, ONE_ETH)
        before = snapshot(bank, ALICE, NATIVE_ASSET_ID)

        with pytest.raises(TransferFailed):
            bank.withdraw_native(ALICE, ONE_ETH)
        assert snapshot(bank, ALICE, NATIVE_ASSET_ID) == before


class TestReentrancy:

    def test_reentrant_withdraw_from_payout_callback(self, bank, transfers) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        before = snapshot(bank, ALICE, WBTC)

        def reentering_hook(direction, owner, asset_id, amount):
            if direction == "push":
                bank.withdraw_asset(owner, asset_id, amount)

        transfers.hook = reentering_hook
        with pytest.raises(ReentrantCall):
            bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        assert snapshot(bank, ALICE, WBTC) == before
        assert transfers.custody_of(WBTC) == ONE_BTC

    def test_nested_call_rejected_outer_completes(self, bank, transfers) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        rejected = []

        def reentering_hook(direction, owner, asset_id, amount):
            if direction != "push":
                return
            try:
                bank.withdraw_asset(owner, asset_id, amount)
            except ReentrantCall as exc:
                rejected.append(exc)

        transfers.hook = reentering_hook
        bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        assert len(rejected) == 1
        assert bank.balance_of(ALICE, WBTC) == 900_000
        assert transfers.wallet_of(ALICE, WBTC) == 9 * ONE_BTC + ONE_BTC // 10

    def test_reentrant_deposit_from_pull_callback(self, bank, transfers) -> None:
        def reentering_hook(direction, owner, asset_id, amount):
            if direction == "pull":
                bank.deposit_asset(owner, asset_id, amount)

        transfers.hook = reentering_hook
        with pytest.raises(ReentrantCall):
            bank.deposit_asset(ALICE, WBTC, ONE_BTC)

        assert bank.balance_of(ALICE, WBTC) == 0
        assert transfers.wallet_of(ALICE, WBTC) == 10 * ONE_BTC

    def test_worker_thread_callback_rejected(self, bank, transfers) -> None:
        """Вложенный вызов с worker-потока падает сразу, а не ждёт внешнюю операцию"""
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        before = snapshot(bank, ALICE, WBTC)
        pool = ThreadPoolExecutor(max_workers=1)

        def reentering_hook(direction, owner, asset_id, amount):
            if direction == "push":
                pool.submit(bank.withdraw_asset, owner, asset_id, amount).result(timeout=5)

        transfers.hook = reentering_hook
        try:
            with pytest.raises(ReentrantCall):
                bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)
        finally:
            pool.shutdown(wait=True)

        assert snapshot(bank, ALICE, WBTC) == before

    def test_concurrent_operation_fails_fast(self, bank, transfers) -> None:
        bank.deposit_asset(ALICE, USDC, 100 * ONE_USDC)
        in_push = threading.Event()
        release = threading.Event()

        def blocking_hook(direction, owner, asset_id, amount):
            if direction == "push":
                in_push.set()
                release.wait(timeout=5)

        transfers.hook = blocking_hook
        worker = threading.Thread(target=bank.withdraw_asset, args=(ALICE, USDC, 40 * ONE_USDC))
        worker.start()
        try:
            assert in_push.wait(timeout=5)
            with pytest.raises(ReentrantCall):
                bank.deposit_asset(BOB, USDC, ONE_USDC)
        finally:
            release.set()
            worker.join(timeout=5)

        assert bank.balance_of(ALICE, USDC) == 60 * ONE_USDC
        assert bank.balance_of(BOB, USDC) == 0

    def test_concurrent_deposits_with_retry(self, bank) -> None:
        """Вызывающие потоки сериализуют операции сами, повторяя при ReentrantCall"""
        def worker(owner):
            done = 0
            while done < 20:
                try:
                    bank.deposit_asset(owner, USDC, ONE_USDC)
                except ReentrantCall:
                    continue
                done += 1

        threads = [threading.Thread(target=worker, args=(owner,)) for owner in (ALICE, BOB)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        assert bank.balance_of(ALICE, USDC) == 20 * ONE_USDC
        assert bank.balance_of(BOB, USDC) == 20 * ONE_USDC
        assert bank.total_deposits_usd() == 40 * ONE_USDC
        assert bank.asset_info(USDC).deposit_count == 40


class TestConsistentViews:

    def test_other_thread_never_sees_rolled_back_debit(self, bank, transfers) -> None:
        bank.deposit_asset(ALICE, USDC, 100 * ONE_USDC)
        in_push = threading.Event()
        release = threading.Event()
        observed = {}
        read_done = threading.Event()

        def failing_hook(direction, owner, asset_id, amount):
            if direction == "push":
                in_push.set()
                release.wait(timeout=5)
                raise RuntimeError("payout rejected")

        def withdraw() -> None:
            with pytest.raises(TransferFailed):
                bank.withdraw_asset(ALICE, USDC, 40 * ONE_USDC)

        def read() -> None:
            observed["balance"] = bank.balance_of(ALICE, USDC)
            observed["total"] = bank.total_deposits_usd()
            observed["value"] = bank.total_value_usd(ALICE)
            read_done.set()

        transfers.hook = failing_hook
        operation = threading.Thread(target=withdraw)
        operation.start()
        assert in_push.wait(timeout=5)

        reader = threading.Thread(target=read)
        reader.start()
        try:
            # Чтение ждёт завершения операции
            assert not read_done.wait(timeout=0.2)
        finally:
            release.set()
            operation.join(timeout=5)
            reader.join(timeout=5)

        assert observed == {
            "balance": 100 * ONE_USDC,
            "total": 100 * ONE_USDC,
            "value": 100 * ONE_USDC,
        }

    def test_callback_sees_debit_before_payout(self, bank, transfers) -> None:
        """Callback в потоке операции читает без ожидания и видит уже списанный баланс"""
        bank.deposit_asset(ALICE, USDC, 100 * ONE_USDC)
        seen = []

        def reading_hook(direction, owner, asset_id, amount):
            if direction == "push":
                seen.append(bank.balance_of(owner, asset_id))

        transfers.hook = reading_hook
        bank.withdraw_asset(ALICE, USDC, 40 * ONE_USDC)

        assert seen == [60 * ONE_USDC]


# =============================================================================
# EVENTS
# =============================================================================


class TestEvents:

    def test_construction_and_registration_events(self, bank) -> None:
        added = [e for e in bank.events if isinstance(e, AssetAdded)]
        assert [e.asset_id for e in added] == [NATIVE_ASSET_ID, WBTC, USDC]
        assert added[0].price_source_id == ETH_FEED
        assert added[0].native_decimals == 18

    def test_sequence_contiguous_across_rejections(self, bank) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        with pytest.raises(InsufficientBalance):
            bank.withdraw_asset(ALICE, WBTC, 2 * ONE_BTC)
        bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        assert [e.sequence for e in bank.events] == list(range(len(bank.events)))
        assert isinstance(bank.events[-1], Withdrawal)

    def test_subscriber_sees_only_committed_events(self, bank, transfers) -> None:
        received = []
        unsubscribe = bank.subscribe(received.append)

        def failing_hook(direction, owner, asset_id, amount):
            raise RuntimeError("transfer service down")

        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        transfers.hook = failing_hook
        with pytest.raises(TransferFailed):
            bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)
        transfers.hook = None

        unsubscribe()
        bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        assert len(received) == 1
        assert isinstance(received[0], Deposit)
        assert received[0].owner == ALICE

    def test_concurrent_publish_delivers_each_event_once_in_order(self, bank) -> None:
        delivered = []
        bank.subscribe(lambda event: delivered.append(event.sequence))

        def worker(owner):
            done = 0
            while done < 25:
                try:
                    bank.deposit_asset(owner, USDC, ONE_USDC)
                except ReentrantCall:
                    continue
                done += 1

        threads = [threading.Thread(target=worker, args=(owner,)) for owner in (ALICE, BOB)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        deposits = [e.sequence for e in bank.events if isinstance(e, Deposit)]
        assert len(deposits) == 50
        assert delivered == deposits

    def test_listener_operation_delivered_after_current_event(self, bank) -> None:
        """Операция из подписчика не обгоняет доставку текущего события"""
        order = []

        def depositing_listener(event):
            if isinstance(event, Deposit) and event.owner == ALICE:
                bank.deposit_asset(BOB, USDC, ONE_USDC)

        bank.subscribe(depositing_listener)
        bank.subscribe(lambda event: order.append((event.sequence, event.owner)))

        bank.deposit_asset(ALICE, USDC, ONE_USDC)

        first = bank.events[-2].sequence
        assert order == [(first, ALICE), (first + 1, BOB)]
        assert bank.balance_of(BOB, USDC) == ONE_USDC


# =============================================================================
# VIEWS
# =============================================================================


class TestValuationViews:

    def test_total_value_usd(self, bank, transfers, price_source) -> None:
        deposit_native(bank, transfers, ALICE, ONE_ETH)
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        assert bank.total_value_usd(ALICE) == 52_000_000_000
        assert bank.total_value_usd(BOB) == 0

        price_source.set_price(BTC_FEED, 6_000_000_000_000, updated_at=NOW)
        assert bank.total_value_usd(ALICE) == 62_000_000_000

    def test_total_value_includes_removed_assets(self, bank) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        bank.remove_asset(ADMIN, WBTC)
        assert bank.total_value_usd(ALICE) == 50_000_000_000

    def test_cost_basis_drifts_from_mark_to_market(self, bank, price_source) -> None:
        """Депозит по $50,000, вывод по $60,000: aggregate расходится с custody"""
        bank.deposit_asset(ALICE, WBTC, ONE_BTC)
        price_source.set_price(BTC_FEED, 6_000_000_000_000, updated_at=NOW)
        bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        assert bank.total_deposits_usd() == 44_000_000_000
        assert bank.mark_to_market_usd() == 54_000_000_000

    def test_aggregate_clamped_at_zero(self, bank, price_source) -> None:
        bank.deposit_asset(ALICE, WBTC, ONE_BTC // 10)
        price_source.set_price(BTC_FEED, 6_000_000_000_000, updated_at=NOW)
        bank.withdraw_asset(ALICE, WBTC, ONE_BTC // 10)

        assert bank.total_deposits_usd() == 0
        assert bank.available_capacity_usd() == BANK_CAP_USD
