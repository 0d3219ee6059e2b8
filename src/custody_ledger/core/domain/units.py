"""
Units — Централизованный модуль нормализации количеств

Единственный допустимый способ преобразования количества из native precision
актива в canonical precision (6 дробных знаков), в которой ведутся все
балансы и USD-значения.

Нормализация односторонняя: обратного denormalize нет. Вывод средств всегда
использует native amount, переданный вызывающим, а не восстановленный из
canonical баланса.

ЗАПРЕЩЕНО смешивать native и canonical единицы без явного конвертера из этого
модуля.
"""

from typing import Final

from custody_ledger.core.errors import InvalidDecimals
from custody_ledger.core.math.checked_arithmetic import (
    checked_mul,
    pow10,
    validate_uint,
)

# =============================================================================
# PRECISION
# =============================================================================

# Canonical precision: количество дробных знаков внутреннего учёта
CANONICAL_DECIMALS: Final[int] = 6

# Максимальная native precision актива
MAX_NATIVE_DECIMALS: Final[int] = 18

# Native precision нативного актива платформы
NATIVE_ASSET_DECIMALS: Final[int] = 18


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def validate_decimals(native_decimals: int) -> int:
    """
    Проверка native precision: целое в [0, MAX_NATIVE_DECIMALS].

    Raises:
        InvalidDecimals: Если decimals вне диапазона или не int
    """
    if not isinstance(native_decimals, int) or isinstance(native_decimals, bool):
        raise InvalidDecimals(
            f"native_decimals must be an int, got {type(native_decimals).__name__}"
        )

    if native_decimals < 0 or native_decimals > MAX_NATIVE_DECIMALS:
        raise InvalidDecimals(
            f"native_decimals must be in [0, {MAX_NATIVE_DECIMALS}], got {native_decimals}"
        )

    return native_decimals


# =============================================================================
# КОНВЕРТЕРЫ
# =============================================================================


def normalize(amount: int, native_decimals: int) -> int:
    """
    Конверсия: native amount → canonical amount

    - native_decimals == 6: identity
    - native_decimals > 6: amount // 10^(d-6), dust отбрасывается
    - native_decimals < 6: amount * 10^(6-d), точно

    Args:
        amount: Количество в native единицах актива
        native_decimals: Native precision актива [0, 18]

    Returns:
        Количество в canonical precision

    Raises:
        InvalidDecimals: Если native_decimals вне [0, 18]
        ArithmeticOverflow: Если amount или результат вне uint256

    Examples:
        >>> normalize(1_000000000000000000, 18)
        1000000
        >>> normalize(100_000_000, 8)
        1000000
        >>> normalize(5, 2)
        50000
    """
    validate_uint(amount, "amount")
    validate_decimals(native_decimals)

    if native_decimals == CANONICAL_DECIMALS:
        return amount

    if native_decimals > CANONICAL_DECIMALS:
        return amount // pow10(native_decimals - CANONICAL_DECIMALS)

    return checked_mul(amount, pow10(CANONICAL_DECIMALS - native_decimals))


def dust(amount: int, native_decimals: int) -> int:
    """
    Native единицы, отбрасываемые normalize (всегда < 10^(d-6)).

    Для native_decimals <= 6 нормализация точна, dust == 0.
    """
    validate_uint(amount, "amount")
    validate_decimals(native_decimals)

    if native_decimals <= CANONICAL_DECIMALS:
        return 0

    return amount % pow10(native_decimals - CANONICAL_DECIMALS)
