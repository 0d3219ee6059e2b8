"""
Price sources — интерфейс внешнего источника цен и in-memory реализация.

StaticPriceSource используется в тестах и локальных сценариях: раунды
задаются вручную, каждый set_price открывает новый завершённый раунд.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Protocol, Union

from custody_ledger.core.domain.price import PriceReading


class PriceSource(Protocol):
    """Внешний источник цен: последний раунд и precision цены."""

    def latest_round(self, price_source_id: str) -> Union[Mapping[str, Any], PriceReading]:
        """Последний раунд {round_id, price, updated_at, answered_in_round}."""

    def decimals(self, price_source_id: str) -> int:
        """Количество дробных знаков в price."""


@dataclass
class _Feed:
    decimals: int
    round_id: int = 0
    price: int = 0
    updated_at: int = 0
    answered_in_round: int = 0


class StaticPriceSource:
    """In-memory price source с ручным управлением раундами."""

    def __init__(self) -> None:
        self._feeds: Dict[str, _Feed] = {}

    def add_feed(self, price_source_id: str, decimals: int = 8) -> None:
        self._feeds[price_source_id] = _Feed(decimals=decimals)

    def set_price(self, price_source_id: str, price: int, updated_at: int) -> None:
        """Новый завершённый раунд с ценой price."""
        feed = self._feed(price_source_id)
        feed.round_id += 1
        feed.price = price
        feed.updated_at = updated_at
        feed.answered_in_round = feed.round_id

    def set_round(
        self,
        price_source_id: str,
        *,
        round_id: int,
        price: int,
        updated_at: int,
        answered_in_round: int,
    ) -> None:
        """Произвольный раунд (в т.ч. незавершённый: answered_in_round < round_id)."""
        feed = self._feed(price_source_id)
        feed.round_id = round_id
        feed.price = price
        feed.updated_at = updated_at
        feed.answered_in_round = answered_in_round

    def latest_round(self, price_source_id: str) -> Dict[str, Any]:
        feed = self._feed(price_source_id)
        return {
            "round_id": feed.round_id,
            "price": feed.price,
            "updated_at": feed.updated_at,
            "answered_in_round": feed.answered_in_round,
        }

    def decimals(self, price_source_id: str) -> int:
        return self._feed(price_source_id).decimals

    def _feed(self, price_source_id: str) -> _Feed:
        try:
            return self._feeds[price_source_id]
        except KeyError:
            raise KeyError(f"Unknown price source '{price_source_id}'") from None
