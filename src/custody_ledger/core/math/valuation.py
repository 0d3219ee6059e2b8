"""
Valuation — USD-оценка canonical количества

value_usd = normalized_amount * price / 10^decimals

Порядок: сначала умножение, затем деление (сохранение точности).
Умножение проверяется на переполнение uint256, деление усекает к нулю.
Результат — USD в canonical precision (6 дробных знаков).
"""

from custody_ledger.core.domain.price import PriceQuote
from custody_ledger.core.math.checked_arithmetic import mul_div, pow10, validate_uint


def value_usd(normalized_amount: int, quote: PriceQuote) -> int:
    """
    USD-значение canonical количества по провалидированной цене.

    Args:
        normalized_amount: Количество в canonical precision
        quote: Провалидированная цена (price > 0)

    Returns:
        USD в canonical precision

    Raises:
        ArithmeticOverflow: Если normalized_amount * price вне uint256

    Examples:
        >>> value_usd(1_000_000, PriceQuote(price=5_000_000_000_000, decimals=8))
        50000000000
    """
    validate_uint(normalized_amount, "normalized_amount")
    return mul_div(normalized_amount, quote.price, pow10(quote.decimals))
