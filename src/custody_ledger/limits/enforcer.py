"""Limit Enforcer: глобальный cap депозитов и потолок одного вывода

Владеет running aggregate total_normalized_usd:
- deposit: +value, посчитанное по цене в момент депозита
- withdrawal: -value, посчитанное по цене в момент вывода

Aggregate — cost-basis сумма, а не mark-to-market: при движении цены между
депозитом и выводом тех же средств он расходится с текущей стоимостью custody.

Порядок проверок deposit:
1. value вне uint256 → блок
2. total + value > bank_cap → DepositExceedsBankCap

Порядок проверок withdrawal:
1. value > withdrawal_threshold → WithdrawalExceedsThreshold
   (per-transaction, без временного окна, независимо от баланса)
"""

import logging
from dataclasses import dataclass

from custody_ledger.core.errors import DepositExceedsBankCap, WithdrawalExceedsThreshold
from custody_ledger.core.math.checked_arithmetic import (
    checked_add,
    saturating_sub,
    validate_uint,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimitCheckResult:
    """Результат проверки лимита."""

    allowed: bool
    block_reason: str

    value_usd: int
    limit_usd: int
    total_normalized_usd: int

    # Детали
    details: str


class LimitEnforcer:
    """Проверка и применение USD-лимитов."""

    def __init__(self, bank_cap_usd: int, withdrawal_threshold_usd: int):
        """
        Args:
            bank_cap_usd: глобальный cap custody (USD, canonical)
            withdrawal_threshold_usd: потолок одного вывода (USD, canonical)
        """
        validate_uint(bank_cap_usd, "bank_cap_usd")
        validate_uint(withdrawal_threshold_usd, "withdrawal_threshold_usd")
        self._bank_cap_usd = bank_cap_usd
        self._withdrawal_threshold_usd = withdrawal_threshold_usd
        self._total_normalized_usd = 0

    @property
    def bank_cap_usd(self) -> int:
        return self._bank_cap_usd

    @property
    def withdrawal_threshold_usd(self) -> int:
        return self._withdrawal_threshold_usd

    @property
    def total_normalized_usd(self) -> int:
        return self._total_normalized_usd

    def available_capacity(self) -> int:
        return saturating_sub(self._bank_cap_usd, self._total_normalized_usd)

    def evaluate_deposit(self, value: int) -> LimitCheckResult:
        """Оценка депозита против cap без исключений."""
        validate_uint(value, "value")
        projected = self._total_normalized_usd + value

        if projected > self._bank_cap_usd:
            return LimitCheckResult(
                allowed=False,
                block_reason="deposit_exceeds_bank_cap",
                value_usd=value,
                limit_usd=self._bank_cap_usd,
                total_normalized_usd=self._total_normalized_usd,
                details=(
                    f"total={self._total_normalized_usd} + value={value} = {projected} "
                    f"> cap={self._bank_cap_usd}"
                ),
            )

        return LimitCheckResult(
            allowed=True,
            block_reason="",
            value_usd=value,
            limit_usd=self._bank_cap_usd,
            total_normalized_usd=self._total_normalized_usd,
            details=f"PASS: projected={projected}, cap={self._bank_cap_usd}",
        )

    def evaluate_withdrawal(self, value: int) -> LimitCheckResult:
        """Оценка вывода против per-transaction threshold без исключений."""
        validate_uint(value, "value")

        if value > self._withdrawal_threshold_usd:
            return LimitCheckResult(
                allowed=False,
                block_reason="withdrawal_exceeds_threshold",
                value_usd=value,
                limit_usd=self._withdrawal_threshold_usd,
                total_normalized_usd=self._total_normalized_usd,
                details=f"value={value} > threshold={self._withdrawal_threshold_usd}",
            )

        return LimitCheckResult(
            allowed=True,
            block_reason="",
            value_usd=value,
            limit_usd=self._withdrawal_threshold_usd,
            total_normalized_usd=self._total_normalized_usd,
            details=f"PASS: value={value}, threshold={self._withdrawal_threshold_usd}",
        )

    def check_deposit_cap(self, value: int) -> LimitCheckResult:
        """
        Raises:
            DepositExceedsBankCap: Если total + value > bank_cap
        """
        result = self.evaluate_deposit(value)
        if not result.allowed:
            raise DepositExceedsBankCap(result.details)
        return result

    def check_withdrawal_threshold(self, value: int) -> LimitCheckResult:
        """
        Raises:
            WithdrawalExceedsThreshold: Если value > withdrawal_threshold
        """
        result = self.evaluate_withdrawal(value)
        if not result.allowed:
            raise WithdrawalExceedsThreshold(result.details)
        return result

    def apply_deposit(self, value: int) -> int:
        self._total_normalized_usd = checked_add(self._total_normalized_usd, value)
        return self._total_normalized_usd

    def apply_withdrawal(self, value: int) -> int:
        # Cost-basis aggregate: вывод по более высокой цене не уводит сумму ниже нуля
        if value > self._total_normalized_usd:
            logger.warning(
                "withdrawal value %d exceeds aggregate %d; clamping to zero",
                value, self._total_normalized_usd,
            )
        self._total_normalized_usd = saturating_sub(self._total_normalized_usd, value)
        return self._total_normalized_usd

    def restore(self, total_normalized_usd: int) -> None:
        """Откат aggregate к сохранённому значению (только для rollback операции)."""
        self._total_normalized_usd = total_normalized_usd
