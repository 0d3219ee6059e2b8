"""
Price Oracle Adapter — чтение и валидация цены актива

Порядок проверок:
1. Привязка актива к price source (иначе InvalidPriceFeed)
2. JSON contract сырого ответа + Pydantic модель (иначе InvalidPrice)
3. price > 0 (иначе InvalidPrice)
4. answered_in_round >= round_id (иначе StalePrice, незавершённый раунд)
5. now - updated_at <= staleness window (иначе StalePrice)

Кэширования нет: каждая операция перечитывает цену. Ошибки oracle отказывают
в обслуживании, fallback на старую или дефолтную цену не допускается.
"""

import logging
import time
from typing import Any, Callable, Mapping, Optional, Union

from jsonschema import ValidationError as SchemaValidationError
from pydantic import ValidationError

from custody_ledger.core.contracts import PriceReadingValidator
from custody_ledger.core.domain.bank_state import DEFAULT_STALENESS_WINDOW_SEC
from custody_ledger.core.domain.price import PriceQuote, PriceReading
from custody_ledger.core.errors import InvalidPrice, InvalidPriceFeed, LedgerError, StalePrice
from custody_ledger.oracle.feeds import PriceSource
from custody_ledger.registry.asset_registry import AssetRegistry

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def wall_clock() -> int:
    """Текущее время (Unix, секунды)."""
    return int(time.time())


class PriceOracleAdapter:
    """Адаптер внешнего price source с валидацией раунда и staleness."""

    def __init__(
        self,
        source: PriceSource,
        registry: AssetRegistry,
        staleness_window_sec: int = DEFAULT_STALENESS_WINDOW_SEC,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            source: внешний источник цен
            registry: реестр активов (привязка asset → price source)
            staleness_window_sec: максимально допустимый возраст цены
            clock: источник текущего времени (default: wall clock)
        """
        if staleness_window_sec <= 0:
            raise ValueError(
                f"staleness_window_sec must be positive, got {staleness_window_sec}"
            )
        self._source = source
        self._registry = registry
        self.staleness_window_sec = staleness_window_sec
        self._clock = clock or wall_clock
        self._contract = PriceReadingValidator()

    def price_usd(self, asset_id: str) -> PriceQuote:
        """
        Провалидированная USD-цена актива.

        Raises:
            InvalidPriceFeed: Если актив не привязан к price source
            InvalidPrice: Если price <= 0 или ответ источника некорректен
            StalePrice: Если раунд незавершён или цена устарела
        """
        descriptor = self._registry.get(asset_id)
        if descriptor is None:
            raise InvalidPriceFeed(f"No price source bound to asset {asset_id}")
        return self.read(descriptor.price_source_id)

    def read(self, price_source_id: str) -> PriceQuote:
        """Чтение и валидация последнего раунда price source."""
        if not price_source_id:
            raise InvalidPriceFeed("price_source_id is unset")

        reading = self._parse(price_source_id, self._query(price_source_id))
        decimals = self._query_decimals(price_source_id)

        if reading.price <= 0:
            raise InvalidPrice(
                f"Non-positive price {reading.price} from {price_source_id}"
            )

        if not reading.is_complete:
            raise StalePrice(
                f"Incomplete round from {price_source_id}: "
                f"answered_in_round={reading.answered_in_round} < round_id={reading.round_id}"
            )

        now = self._clock()
        age = reading.age(now)
        if age > self.staleness_window_sec:
            raise StalePrice(
                f"Stale price from {price_source_id}: age={age}s > "
                f"window={self.staleness_window_sec}s"
            )

        return PriceQuote(price=reading.price, decimals=decimals)

    def _query(self, price_source_id: str) -> Union[Mapping[str, Any], PriceReading]:
        try:
            return self._source.latest_round(price_source_id)
        except LedgerError:
            raise
        except Exception as exc:
            logger.warning("price source %s query failed: %s", price_source_id, exc)
            raise InvalidPrice(f"Price source {price_source_id} query failed: {exc}") from exc

    def _query_decimals(self, price_source_id: str) -> int:
        try:
            decimals = self._source.decimals(price_source_id)
        except LedgerError:
            raise
        except Exception as exc:
            raise InvalidPrice(
                f"Price source {price_source_id} decimals query failed: {exc}"
            ) from exc
        if not isinstance(decimals, int) or isinstance(decimals, bool) or not 0 <= decimals <= 36:
            raise InvalidPrice(f"Invalid price decimals {decimals!r} from {price_source_id}")
        return decimals

    def _parse(
        self, price_source_id: str, raw: Union[Mapping[str, Any], PriceReading]
    ) -> PriceReading:
        if isinstance(raw, PriceReading):
            return raw
        try:
            self._contract.validate(dict(raw))
            return PriceReading.model_validate(dict(raw))
        except (SchemaValidationError, ValidationError, TypeError, ValueError) as exc:
            raise InvalidPrice(
                f"Malformed price reading from {price_source_id}: {exc}"
            ) from exc
