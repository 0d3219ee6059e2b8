"""
Reentrancy guard — один мутирующий вызов на экземпляр bank.

- Пока операция в полёте, любой новый мутирующий вызов (тот же поток или
  callback transfer service на worker-потоке) → ReentrantCall немедленно.
  Мутирующие вызовы не ждут друг друга: сериализацию целых операций
  обеспечивает вызывающее окружение.
- Чтение (observe) из другого потока ждёт завершения операции и видит только
  зафиксированное состояние. Владелец операции (callback в том же потоке)
  читает без ожидания и видит checks-effects-interactions снимок.
- Guard освобождается на любом пути выхода, включая исключения.
"""

import threading
from contextlib import contextmanager
from threading import Lock
from typing import Iterator, Optional

from custody_ledger.core.errors import ReentrantCall


class ReentrancyGuard:
    def __init__(self) -> None:
        # _flag: проверка-и-захват операции; _state держится всю операцию
        self._flag = Lock()
        self._state = Lock()
        self._owner: Optional[int] = None
        self._operation: Optional[str] = None

    @property
    def entered(self) -> bool:
        return self._operation is not None

    @contextmanager
    def enter(self, operation: str) -> Iterator[None]:
        with self._flag:
            if self._operation is not None:
                raise ReentrantCall(
                    f"Reentrant call to {operation} during {self._operation}"
                )
            self._operation = operation

        # Ожидание возможно только на коротком чтении из другого потока
        self._state.acquire()
        self._owner = threading.get_ident()
        try:
            yield
        finally:
            self._owner = None
            self._state.release()
            with self._flag:
                self._operation = None

    @contextmanager
    def observe(self) -> Iterator[None]:
        """Согласованное чтение: ждёт завершения чужой операции."""
        if self._owner == threading.get_ident():
            yield
            return
        with self._state:
            yield
