"""
Checked Arithmetic — целочисленная арифметика с защитой от переполнения

Все балансы, цены и USD-значения — неотрицательные целые числа в пределах
256-битного беззнакового диапазона. Python int не переполняется сам по себе,
поэтому диапазон проверяется явно после каждой операции.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Результат никогда не выходит за [0, UINT256_MAX] (иначе ArithmeticOverflow)
2. Wrap-around никогда не происходит
3. Деление всегда усекает к нулю (floor для неотрицательных)
4. bool не принимается как целое число
"""

from typing import Final

from custody_ledger.core.errors import ArithmeticOverflow

# =============================================================================
# ГРАНИЦЫ
# =============================================================================

UINT256_MAX: Final[int] = 2**256 - 1


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def is_uint(value: object) -> bool:
    """Проверка, что value — целое в [0, UINT256_MAX] (bool исключён)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= UINT256_MAX
    )


def validate_uint(value: int, name: str) -> int:
    """
    Валидация беззнакового 256-битного целого.

    Args:
        value: Проверяемое значение
        name: Имя параметра (для сообщения об ошибке)

    Returns:
        value без изменений

    Raises:
        TypeError: Если value не int (или bool)
        ArithmeticOverflow: Если value вне [0, UINT256_MAX]
    """
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")

    if value < 0 or value > UINT256_MAX:
        raise ArithmeticOverflow(f"{name} out of uint256 range: {value}")

    return value


def _checked(result: int, op: str) -> int:
    if result < 0 or result > UINT256_MAX:
        raise ArithmeticOverflow(f"{op} result out of uint256 range: {result}")
    return result


# =============================================================================
# ОПЕРАЦИИ
# =============================================================================


def checked_add(a: int, b: int) -> int:
    """a + b с проверкой переполнения."""
    return _checked(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    """a - b с проверкой underflow (результат < 0 → ArithmeticOverflow)."""
    return _checked(a - b, "sub")


def checked_mul(a: int, b: int) -> int:
    """a * b с проверкой переполнения."""
    return _checked(a * b, "mul")


def pow10(exponent: int) -> int:
    """
    10 ** exponent для неотрицательного exponent.

    Raises:
        ValueError: Если exponent < 0
    """
    if exponent < 0:
        raise ValueError(f"exponent must be non-negative, got {exponent}")
    return _checked(10**exponent, "pow10")


def mul_div(a: int, b: int, denominator: int) -> int:
    """
    a * b // denominator с сохранением точности (сначала умножение).

    Промежуточное произведение проверяется на 256-битный диапазон так же,
    как и результат.

    Examples:
        >>> mul_div(1_000_000, 5_000_000_000_000, 10**8)
        50000000000
        >>> mul_div(7, 1, 2)
        3

    Raises:
        ZeroDivisionError: Если denominator == 0
        ArithmeticOverflow: Если a * b выходит за UINT256_MAX
    """
    if denominator == 0:
        raise ZeroDivisionError("mul_div denominator must be non-zero")
    product = checked_mul(a, b)
    return product // denominator


def saturating_sub(a: int, b: int) -> int:
    """a - b с насыщением в ноль."""
    return a - b if a > b else 0
