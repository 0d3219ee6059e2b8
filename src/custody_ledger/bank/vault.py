"""Custodial Bank — orchestrator deposit/withdraw

Композиция: registry, pause state, preconditions gate, normalization,
oracle + valuation, limit enforcer, ledger, transfer service, event log.

Deposit (любая ошибка → нулевое изменение состояния):
1. Preconditions: amount > 0, asset active, система ACTIVE
2. Custody pull (для нативного актива неявный, value приходит с вызовом;
   при отказе полученный custody возвращается владельцу)
3. normalize → value_usd → check_deposit_cap
4. ledger.credit + apply_deposit + record_deposit
5. Событие Deposit

Withdraw (мутация строго до payout — checks-effects-interactions):
1. Preconditions
2. normalize; balance >= normalized (иначе InsufficientBalance)
3. value_usd → check_withdrawal_threshold
4. ledger.debit + apply_withdrawal + record_withdrawal
5. Payout raw native amount; отказ → откат шага 4
6. Событие Withdrawal

Защита от reentrancy двойная: порядок checks-effects-interactions и явный
ReentrancyGuard на каждой мутирующей операции. Views читают состояние через
guard.observe(), поэтому незафиксированные изменения снаружи не видны.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Tuple

from custody_ledger.bank.access import AccessControl
from custody_ledger.bank.guard import ReentrancyGuard
from custody_ledger.bank.transfers import TransferService
from custody_ledger.core.contracts import ObservationValidator
from custody_ledger.core.domain.bank_state import (
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
from custody_ledger.core.domain.price import PriceQuote
from custody_ledger.core.domain.units import NATIVE_ASSET_DECIMALS, normalize
from custody_ledger.core.errors import (
    AccessDenied,
    InsufficientBalance,
    LedgerError,
    TokenNotSupported,
    TransferFailed,
)
from custody_ledger.core.math.checked_arithmetic import checked_add
from custody_ledger.core.math.valuation import value_usd
from custody_ledger.gatekeeper.preconditions import OperationPreconditions
from custody_ledger.ledger.balances import Ledger
from custody_ledger.limits.enforcer import LimitEnforcer
from custody_ledger.oracle.adapter import Clock, PriceOracleAdapter
from custody_ledger.oracle.feeds import PriceSource
from custody_ledger.pause.state_machine import PauseStateMachine
from custody_ledger.registry.asset_registry import AssetRegistry

logger = logging.getLogger(__name__)


class CustodialBank:
    """Multi-asset custodial ledger с USD cap и per-transaction withdrawal threshold."""

    def __init__(
        self,
        config: BankConfig,
        price_source: PriceSource,
        transfers: TransferService,
        access: AccessControl,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            config: неизменяемая конфигурация (cap, threshold, native price source)
            price_source: внешний источник цен
            transfers: сервис перемещения custody
            access: capability check для admin операций
            clock: источник текущего времени для staleness (default: wall clock)
        """
        self.config = config
        self._transfers = transfers
        self._access = access

        self._registry = AssetRegistry()
        self._ledger = Ledger()
        self._limits = LimitEnforcer(config.bank_cap_usd, config.withdrawal_threshold_usd)
        self._oracle = PriceOracleAdapter(
            price_source, self._registry, config.staleness_window_sec, clock
        )
        self._pause = PauseStateMachine()
        self._guard = ReentrancyGuard()
        self._preconditions = OperationPreconditions(self._registry)
        self._events = EventLog(validator=ObservationValidator().validate)

        self._registry.register_asset(
            NATIVE_ASSET_ID, config.native_price_source_id, NATIVE_ASSET_DECIMALS
        )
        self._events.emit(
            AssetAdded,
            asset_id=NATIVE_ASSET_ID,
            price_source_id=config.native_price_source_id,
            native_decimals=NATIVE_ASSET_DECIMALS,
        )
        self._events.publish()

    # =========================================================================
    # DEPOSIT / WITHDRAW
    # =========================================================================

    def deposit_native(self, caller: str, amount: int) -> Deposit:
        """Депозит нативного актива; custody приходит вместе с вызовом."""
        return self._deposit(caller, NATIVE_ASSET_ID, amount, pull=False)

    def deposit_asset(self, caller: str, asset_id: str, amount: int) -> Deposit:
        """Депозит актива с явным pull custody через transfer service."""
        if asset_id == NATIVE_ASSET_ID:
            raise TokenNotSupported("Use deposit_native for the native asset")
        return self._deposit(caller, asset_id, amount, pull=True)

    def withdraw_native(self, caller: str, amount: int) -> Withdrawal:
        return self._withdraw(caller, NATIVE_ASSET_ID, amount)

    def withdraw_asset(self, caller: str, asset_id: str, amount: int) -> Withdrawal:
        if asset_id == NATIVE_ASSET_ID:
            raise TokenNotSupported("Use withdraw_native for the native asset")
        return self._withdraw(caller, asset_id, amount)

    def _deposit(self, caller: str, asset_id: str, amount: int, *, pull: bool) -> Deposit:
        # Нативный value уже в custody к моменту вызова; отказ возвращает его
        received = not pull
        try:
            with self._guard.enter("deposit"):
                with self._atomic("deposit", caller, asset_id):
                    descriptor = self._preconditions.enforce(
                        asset_id, amount, self._pause.state
                    )
                    if pull:
                        self._transfer("pull", caller, asset_id, amount)
                        received = True

                    normalized = normalize(amount, descriptor.native_decimals)
                    value = value_usd(normalized, self._oracle.price_usd(asset_id))
                    self._limits.check_deposit_cap(value)

                    new_balance = self._ledger.credit(caller, asset_id, normalized)
                    self._limits.apply_deposit(value)
                    self._registry.record_deposit(asset_id)

                    event = self._events.emit(
                        Deposit,
                        owner=caller,
                        asset_id=asset_id,
                        raw_amount=amount,
                        normalized_amount=normalized,
                        new_balance=new_balance,
                    )
        except Exception:
            if received and _is_positive_amount(amount):
                self._refund(caller, asset_id, amount)
            raise
        self._events.publish()
        return event

    def _withdraw(self, caller: str, asset_id: str, amount: int) -> Withdrawal:
        with self._guard.enter("withdraw"):
            with self._atomic("withdraw", caller, asset_id):
                descriptor = self._preconditions.enforce(asset_id, amount, self._pause.state)

                normalized = normalize(amount, descriptor.native_decimals)
                balance = self._ledger.balance_of(caller, asset_id)
                if balance < normalized:
                    raise InsufficientBalance(
                        f"Insufficient balance for {caller} in {asset_id}: "
                        f"balance={balance}, requested={normalized}"
                    )

                value = value_usd(normalized, self._oracle.price_usd(asset_id))
                self._limits.check_withdrawal_threshold(value)

                # Effects строго до interaction
                remaining = self._ledger.debit(caller, asset_id, normalized)
                self._limits.apply_withdrawal(value)
                self._registry.record_withdrawal(asset_id)

                self._transfer("push", caller, asset_id, amount)

                event = self._events.emit(
                    Withdrawal,
                    owner=caller,
                    asset_id=asset_id,
                    raw_amount=amount,
                    normalized_amount=normalized,
                    remaining_balance=remaining,
                )
        self._events.publish()
        return event

    # =========================================================================
    # ADMIN
    # =========================================================================

    def add_asset(
        self, caller: str, asset_id: str, price_source_id: str, native_decimals: int
    ) -> AssetDescriptor:
        """
        Регистрация или обновление актива (capability ASSET_MANAGER).

        Raises:
            AccessDenied: Если у caller нет ASSET_MANAGER
            TokenNotSupported: Для нативного актива (настраивается конфигурацией)
            InvalidPriceFeed: Если price source не задан
            InvalidDecimals: Если native_decimals > 18
        """
        self._require(caller, Capability.ASSET_MANAGER)
        if asset_id == NATIVE_ASSET_ID:
            raise TokenNotSupported("The native asset is configured at construction")

        with self._guard.enter("add_asset"):
            descriptor = self._registry.register_asset(asset_id, price_source_id, native_decimals)
            self._events.emit(
                AssetAdded,
                asset_id=asset_id,
                price_source_id=price_source_id,
                native_decimals=native_decimals,
            )
        self._events.publish()
        return descriptor

    def remove_asset(self, caller: str, asset_id: str) -> AssetDescriptor:
        """Soft delete актива (capability ASSET_MANAGER)."""
        self._require(caller, Capability.ASSET_MANAGER)

        with self._guard.enter("remove_asset"):
            descriptor = self._registry.deactivate(asset_id)
            self._events.emit(AssetRemoved, asset_id=asset_id)
        self._events.publish()
        return descriptor

    def pause(self, caller: str) -> None:
        """ACTIVE → PAUSED (capability PAUSER)."""
        self._require(caller, Capability.PAUSER)

        with self._guard.enter("pause"):
            self._pause.pause(caller)
            self._events.emit(Paused, account=caller)
        self._events.publish()

    def unpause(self, caller: str) -> None:
        """PAUSED → ACTIVE (capability PAUSER)."""
        self._require(caller, Capability.PAUSER)

        with self._guard.enter("unpause"):
            self._pause.unpause(caller)
            self._events.emit(Unpaused, account=caller)
        self._events.publish()

    # =========================================================================
    # VIEWS
    # =========================================================================

    def balance_of(self, owner: str, asset_id: str) -> int:
        with self._guard.observe():
            return self._ledger.balance_of(owner, asset_id)

    def total_value_usd(self, owner: str) -> int:
        """
        USD-стоимость всех балансов владельца по текущим ценам.

        Учитываются все зарегистрированные активы с ненулевым балансом
        (включая деактивированные) в порядке реестра.
        """
        with self._guard.observe():
            holdings = [
                (descriptor.asset_id, self._ledger.balance_of(owner, descriptor.asset_id))
                for descriptor in self._registry.list_assets()
            ]
        return self._value_holdings(holdings)

    def total_deposits_usd(self) -> int:
        """Cost-basis aggregate (по ценам на момент каждой операции)."""
        with self._guard.observe():
            return self._limits.total_normalized_usd

    def mark_to_market_usd(self) -> int:
        """Текущая USD-стоимость всей custody по текущим ценам."""
        with self._guard.observe():
            holdings = [
                (descriptor.asset_id, self._ledger.total_held(descriptor.asset_id))
                for descriptor in self._registry.list_assets()
            ]
        return self._value_holdings(holdings)

    def available_capacity_usd(self) -> int:
        with self._guard.observe():
            return self._limits.available_capacity()

    def asset_info(self, asset_id: str) -> Optional[AssetDescriptor]:
        with self._guard.observe():
            return self._registry.get(asset_id)

    def list_assets(self) -> Tuple[AssetDescriptor, ...]:
        with self._guard.observe():
            return self._registry.list_assets()

    def is_paused(self) -> bool:
        with self._guard.observe():
            return self._pause.is_paused

    @property
    def pause_state(self) -> PauseState:
        with self._guard.observe():
            return self._pause.state

    def price_usd(self, asset_id: str) -> PriceQuote:
        return self._oracle.price_usd(asset_id)

    @property
    def events(self) -> Tuple[Observation, ...]:
        return self._events.events()

    def subscribe(self, listener):
        """Подписка на события; возвращает функцию отписки."""
        return self._events.subscribe(listener)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _value_holdings(self, holdings: List[Tuple[str, int]]) -> int:
        # Цены читаются вне guard: снимок балансов уже согласован
        total = 0
        for asset_id, amount in holdings:
            if amount == 0:
                continue
            quote = self._oracle.price_usd(asset_id)
            total = checked_add(total, value_usd(amount, quote))
        return total

    def _require(self, caller: str, capability: Capability) -> None:
        if not self._access.has_capability(caller, capability):
            logger.warning(
                "access denied: %s lacks %s", caller, capability.value,
                extra={"owner": caller, "code": AccessDenied.code},
            )
            raise AccessDenied(f"{caller} lacks capability {capability.value}")

    @contextmanager
    def _atomic(self, operation: str, owner: str, asset_id: str) -> Iterator[None]:
        """Снимок затрагиваемого состояния; любое исключение откатывает его целиком."""
        balance = self._ledger.balance_of(owner, asset_id)
        total = self._limits.total_normalized_usd
        counters = self._registry.counters(asset_id)
        sequence = self._events.next_sequence
        try:
            yield
        except Exception as exc:
            self._ledger.restore(owner, asset_id, balance)
            self._limits.restore(total)
            self._registry.restore_counters(asset_id, counters)
            self._events.truncate(sequence)
            logger.warning(
                "%s rejected for owner=%s asset=%s: %s (%s)",
                operation, owner, asset_id, getattr(exc, "code", type(exc).__name__), exc,
                extra={
                    "operation": operation,
                    "owner": owner,
                    "asset_id": asset_id,
                    "code": getattr(exc, "code", None),
                },
            )
            raise

    def _transfer(self, direction: str, owner: str, asset_id: str, amount: int) -> None:
        call = self._transfers.pull if direction == "pull" else self._transfers.push
        try:
            ok = call(owner, asset_id, amount)
        except LedgerError:
            raise
        except Exception as exc:
            raise TransferFailed(
                f"{direction} of {amount} {asset_id} for {owner} failed: {exc}"
            ) from exc
        if ok is False:
            raise TransferFailed(f"{direction} of {amount} {asset_id} for {owner} was refused")

    def _refund(self, owner: str, asset_id: str, amount: int) -> None:
        # Компенсация pull: внешний transfer не откатывается вместе с состоянием
        logger.warning(
            "refunding %d %s to %s after rejected deposit", amount, asset_id, owner,
            extra={"operation": "deposit", "owner": owner, "asset_id": asset_id},
        )
        self._transfer("push", owner, asset_id, amount)


def _is_positive_amount(amount: object) -> bool:
    return isinstance(amount, int) and not isinstance(amount, bool) and amount > 0
