"""
Asset transfers — injected сервис перемещения custody.

pull(owner, asset_id, amount): забрать custody у владельца (deposit)
push(owner, asset_id, amount): выплатить владельцу (withdraw)

Оба вызова — единственная точка взаимодействия с внешним миром внутри
операции и единственная reentrancy-граница. Исключение или явный False
означает отказ и откат всей операции.
"""

from typing import Callable, Dict, Optional, Protocol, Tuple

from custody_ledger.core.domain.bank_state import NATIVE_ASSET_ID


class TransferService(Protocol):
    def pull(self, owner: str, asset_id: str, amount: int) -> Optional[bool]:
        """Перевод amount native единиц от owner в custody."""

    def push(self, owner: str, asset_id: str, amount: int) -> Optional[bool]:
        """Выплата amount native единиц из custody владельцу."""


TransferHook = Callable[[str, str, str, int], None]


class InMemoryTransferService:
    """
    Кошельки владельцев и custody в памяти.

    hook(direction, owner, asset_id, amount) вызывается до перемещения,
    имитируя callback нестандартного актива во время transfer.
    """

    def __init__(self, hook: Optional[TransferHook] = None) -> None:
        self._wallets: Dict[Tuple[str, str], int] = {}
        self._custody: Dict[str, int] = {}
        self.hook = hook

    def fund(self, owner: str, asset_id: str, amount: int) -> None:
        key = (owner, asset_id)
        self._wallets[key] = self._wallets.get(key, 0) + amount

    def wallet_of(self, owner: str, asset_id: str) -> int:
        return self._wallets.get((owner, asset_id), 0)

    def custody_of(self, asset_id: str) -> int:
        return self._custody.get(asset_id, 0)

    def receive_native(self, owner: str, amount: int) -> None:
        """Нативный актив приходит вместе с вызовом deposit (pull не нужен)."""
        self._move_to_custody(owner, NATIVE_ASSET_ID, amount)

    def pull(self, owner: str, asset_id: str, amount: int) -> bool:
        if self.hook is not None:
            self.hook("pull", owner, asset_id, amount)
        if self.wallet_of(owner, asset_id) < amount:
            return False
        self._move_to_custody(owner, asset_id, amount)
        return True

    def push(self, owner: str, asset_id: str, amount: int) -> bool:
        if self.hook is not None:
            self.hook("push", owner, asset_id, amount)
        if self.custody_of(asset_id) < amount:
            return False
        self._custody[asset_id] -= amount
        self.fund(owner, asset_id, amount)
        return True

    def _move_to_custody(self, owner: str, asset_id: str, amount: int) -> None:
        key = (owner, asset_id)
        if self._wallets.get(key, 0) < amount:
            raise ValueError(
                f"{owner} holds {self._wallets.get(key, 0)} of {asset_id}, needs {amount}"
            )
        self._wallets[key] -= amount
        self._custody[asset_id] = self._custody.get(asset_id, 0) + amount
