"""Preconditions gate: допуск deposit/withdraw

Порядок проверок (одинаковый для deposit и withdraw):
1. amount > 0 → иначе AmountMustBeGreaterThanZero
2. Актив зарегистрирован и active → иначе TokenNotSupported
3. Система ACTIVE → иначе ContractPaused

Gate stateless: читает реестр и pause state, ничего не изменяет.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Type, cast

from custody_ledger.core.domain.bank_state import AssetDescriptor, PauseState
from custody_ledger.core.errors import (
    AmountMustBeGreaterThanZero,
    ContractPaused,
    LedgerError,
    TokenNotSupported,
)
from custody_ledger.registry.asset_registry import AssetRegistry

_BLOCK_ERRORS: Dict[str, Type[LedgerError]] = {
    "amount_not_positive": AmountMustBeGreaterThanZero,
    "token_not_supported": TokenNotSupported,
    "contract_paused": ContractPaused,
}


@dataclass(frozen=True)
class PreconditionResult:
    """Результат preconditions gate."""

    allowed: bool
    block_reason: str

    asset_id: str
    amount: int
    pause_state: PauseState
    descriptor: Optional[AssetDescriptor]

    # Детали
    details: str

    def raise_if_blocked(self) -> None:
        if not self.allowed:
            raise _BLOCK_ERRORS[self.block_reason](self.details)


class OperationPreconditions:
    """Gate допуска операции: amount, asset active, pause state."""

    def __init__(self, registry: AssetRegistry):
        self._registry = registry

    def evaluate(self, asset_id: str, amount: int, pause_state: PauseState) -> PreconditionResult:
        descriptor = self._registry.get(asset_id)

        # 1. amount
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            return PreconditionResult(
                allowed=False,
                block_reason="amount_not_positive",
                asset_id=asset_id,
                amount=amount,
                pause_state=pause_state,
                descriptor=descriptor,
                details=f"Amount must be greater than zero, got {amount!r}",
            )

        # 2. asset active
        if descriptor is None or not descriptor.active:
            return PreconditionResult(
                allowed=False,
                block_reason="token_not_supported",
                asset_id=asset_id,
                amount=amount,
                pause_state=pause_state,
                descriptor=descriptor,
                details=f"Asset {asset_id} is not supported",
            )

        # 3. pause
        if pause_state != PauseState.ACTIVE:
            return PreconditionResult(
                allowed=False,
                block_reason="contract_paused",
                asset_id=asset_id,
                amount=amount,
                pause_state=pause_state,
                descriptor=descriptor,
                details="Operations are paused",
            )

        return PreconditionResult(
            allowed=True,
            block_reason="",
            asset_id=asset_id,
            amount=amount,
            pause_state=pause_state,
            descriptor=descriptor,
            details=f"PASS: asset={asset_id}, amount={amount}",
        )

    def enforce(self, asset_id: str, amount: int, pause_state: PauseState) -> AssetDescriptor:
        """
        Оценка и исключение при блокировке.

        Returns:
            AssetDescriptor допущенного актива
        """
        result = self.evaluate(asset_id, amount, pause_state)
        result.raise_if_blocked()
        # Допущенный результат всегда несёт descriptor активного актива
        return cast(AssetDescriptor, result.descriptor)
