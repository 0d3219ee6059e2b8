"""
Observations — append-only журнал событий bank

Immutable Pydantic модели событий и журнал EventLog.
Полная совместимость с JSON Schema (core/contracts/schema/observation.json).

Событие никогда не изменяется после emit. Журнал только дописывается;
единственное исключение — откат незавершённой операции (truncate до
сохранённой длины), который выполняет orchestrator до того, как событие
стало наблюдаемым для подписчиков.
"""

import logging
from threading import Lock
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# =============================================================================
# EVENT MODELS
# =============================================================================


class Observation(BaseModel):
    """Базовое событие: монотонный sequence и тип."""

    sequence: int = Field(..., ge=0, description="Монотонный номер события")

    model_config = {"frozen": True}


class Deposit(Observation):
    kind: Literal["Deposit"] = "Deposit"
    owner: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)
    raw_amount: int = Field(..., gt=0, description="Native amount")
    normalized_amount: int = Field(..., ge=0, description="Canonical amount")
    new_balance: int = Field(..., ge=0, description="Баланс после зачисления")


class Withdrawal(Observation):
    kind: Literal["Withdrawal"] = "Withdrawal"
    owner: str = Field(..., min_length=1)
    asset_id: str = Field(..., min_length=1)
    raw_amount: int = Field(..., gt=0, description="Native amount")
    normalized_amount: int = Field(..., ge=0, description="Canonical amount")
    remaining_balance: int = Field(..., ge=0, description="Баланс после списания")


class AssetAdded(Observation):
    kind: Literal["AssetAdded"] = "AssetAdded"
    asset_id: str = Field(..., min_length=1)
    price_source_id: str = Field(..., min_length=1)
    native_decimals: int = Field(..., ge=0, le=18)


class AssetRemoved(Observation):
    kind: Literal["AssetRemoved"] = "AssetRemoved"
    asset_id: str = Field(..., min_length=1)


class Paused(Observation):
    kind: Literal["Paused"] = "Paused"
    account: str = Field(..., min_length=1)


class Unpaused(Observation):
    kind: Literal["Unpaused"] = "Unpaused"
    account: str = Field(..., min_length=1)


E = TypeVar("E", bound=Observation)

Listener = Callable[[Observation], None]


# =============================================================================
# EVENT LOG
# =============================================================================


class EventLog:
    """
    Append-only журнал событий.

    publish() фиксирует события и доставляет их подписчикам строго по sequence,
    каждое ровно один раз. Доставку выполняет один drain loop: publish из
    другого потока или из подписчика (вложенная операция bank) только
    фиксирует свои события, их доставит уже работающий drain.
    Откатанное событие наружу не попадает.
    """

    def __init__(self, validator: Optional[Callable[[Dict[str, Any]], None]] = None):
        """
        Args:
            validator: проверка JSON payload события (например, ObservationValidator.validate)
        """
        self._events: List[Observation] = []
        self._committed = 0
        self._delivered = 0
        self._draining = False
        self._lock = Lock()
        self._listeners: List[Listener] = []
        self._validator = validator

    def __len__(self) -> int:
        with self._lock:
            return self._committed

    def __iter__(self):
        return iter(self.events())

    @property
    def next_sequence(self) -> int:
        with self._lock:
            return len(self._events)

    def emit(self, event_type: Type[E], **fields: Any) -> E:
        """Создание и запись события с очередным sequence."""
        with self._lock:
            event = event_type(sequence=len(self._events), **fields)
            if self._validator is not None:
                self._validator(event.model_dump(mode="json"))
            self._events.append(event)
        return event

    def truncate(self, length: int) -> None:
        """Откат незафиксированных событий до длины length."""
        with self._lock:
            if length < self._committed:
                raise ValueError(
                    f"Cannot truncate committed events: length={length}, "
                    f"committed={self._committed}"
                )
            del self._events[length:]

    def publish(self) -> None:
        """Фиксация записанных событий и доставка подписчикам."""
        with self._lock:
            self._committed = len(self._events)
            if self._draining:
                return
            self._draining = True

        try:
            while True:
                with self._lock:
                    if self._delivered >= self._committed:
                        self._draining = False
                        return
                    event = self._events[self._delivered]
                    self._delivered += 1
                    listeners = tuple(self._listeners)

                logger.info(
                    "observation %s", event.model_dump(mode="json"),
                    extra={"sequence": event.sequence},
                )
                for listener in listeners:
                    listener(event)
        except BaseException:
            with self._lock:
                self._draining = False
            raise

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Подписка на события; возвращает функцию отписки."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def events(self) -> Tuple[Observation, ...]:
        """Снимок зафиксированных событий."""
        with self._lock:
            return tuple(self._events[: self._committed])

    def of_type(self, event_type: Type[E]) -> Tuple[E, ...]:
        return tuple(e for e in self.events() if isinstance(e, event_type))
