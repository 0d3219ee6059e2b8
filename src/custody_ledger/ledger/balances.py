"""
Ledger — балансы (owner, asset) в canonical precision

Ledger не проверяет лимиты: capacity валидирует вызывающий (LimitEnforcer).
Единственная проверка — неотрицательность баланса при debit.

Дополнительно ведётся сумма балансов по активу (custody on hand), которая
используется для mark-to-market оценки.
"""

import logging
from typing import Dict, Tuple

from custody_ledger.core.errors import InsufficientBalance
from custody_ledger.core.math.checked_arithmetic import checked_add, checked_sub, validate_uint

logger = logging.getLogger(__name__)

LedgerKey = Tuple[str, str]


class Ledger:
    """Per-(owner, asset) балансы; записи создаются при первом credit и не удаляются."""

    def __init__(self) -> None:
        self._balances: Dict[LedgerKey, int] = {}
        self._held: Dict[str, int] = {}

    def balance_of(self, owner: str, asset_id: str) -> int:
        return self._balances.get((owner, asset_id), 0)

    def credit(self, owner: str, asset_id: str, amount: int) -> int:
        """Безусловное зачисление; возвращает новый баланс."""
        validate_uint(amount, "amount")
        key = (owner, asset_id)
        new_balance = checked_add(self._balances.get(key, 0), amount)
        new_held = checked_add(self._held.get(asset_id, 0), amount)
        self._balances[key] = new_balance
        self._held[asset_id] = new_held
        return new_balance

    def debit(self, owner: str, asset_id: str, amount: int) -> int:
        """
        Списание; возвращает остаток.

        Raises:
            InsufficientBalance: Если balance_of < amount
        """
        validate_uint(amount, "amount")
        key = (owner, asset_id)
        balance = self._balances.get(key, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"Insufficient balance for {owner} in {asset_id}: "
                f"balance={balance}, requested={amount}"
            )
        remaining = checked_sub(balance, amount)
        self._balances[key] = remaining
        self._held[asset_id] = checked_sub(self._held.get(asset_id, 0), amount)
        return remaining

    def total_held(self, asset_id: str) -> int:
        """Сумма canonical балансов всех владельцев по активу."""
        return self._held.get(asset_id, 0)

    def assets_of(self, owner: str) -> Dict[str, int]:
        """Ненулевые балансы владельца: asset_id → canonical amount."""
        return {
            asset_id: balance
            for (key_owner, asset_id), balance in self._balances.items()
            if key_owner == owner and balance > 0
        }

    def restore(self, owner: str, asset_id: str, balance: int) -> None:
        """Откат записи к сохранённому балансу (только для rollback операции)."""
        key = (owner, asset_id)
        delta = balance - self._balances.get(key, 0)
        self._held[asset_id] = self._held.get(asset_id, 0) + delta
        self._balances[key] = balance
        logger.debug("ledger entry (%s, %s) restored to %d", owner, asset_id, balance)
