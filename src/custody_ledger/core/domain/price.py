"""
PriceReading — Модель ценового раунда внешнего price source

Immutable Pydantic модель одного раунда цены.
Полная совместимость с JSON Schema (core/contracts/schema/price_reading.json).

Модель намеренно не ограничивает знак price: price <= 0 — это валидный ответ
источника, который отклоняется oracle adapter как InvalidPrice.
"""

from pydantic import BaseModel, Field


class PriceReading(BaseModel):
    """
    Раунд цены от price source.

    Формат совпадает с latestRoundData агрегаторов: round_id, answer,
    updated_at и answered_in_round.
    """

    round_id: int = Field(..., ge=0, description="Идентификатор раунда")
    price: int = Field(..., description="Цена в precision источника (может быть <= 0)")
    updated_at: int = Field(..., ge=0, description="Время обновления (Unix, секунды)")
    answered_in_round: int = Field(
        ..., ge=0, description="Раунд, в котором был получен ответ"
    )

    model_config = {"frozen": True}

    @property
    def is_complete(self) -> bool:
        """Раунд завершён: answered_in_round >= round_id."""
        return self.answered_in_round >= self.round_id

    def age(self, now: int) -> int:
        """Возраст цены в секундах; будущие timestamps дают 0."""
        return max(now - self.updated_at, 0)


class PriceQuote(BaseModel):
    """
    Провалидированная цена актива в USD.

    value_usd = normalized_amount * price / 10^decimals
    """

    price: int = Field(..., gt=0, description="Цена USD в precision источника")
    decimals: int = Field(..., ge=0, le=36, description="Дробных знаков в price")

    model_config = {"frozen": True}
