"""
Core math modules для custody ledger

Целочисленные примитивы с гарантией отсутствия переполнения и оценка в USD.
"""

# Checked arithmetic
from custody_ledger.core.math.checked_arithmetic import (
    UINT256_MAX,
    checked_add,
    checked_mul,
    checked_sub,
    is_uint,
    mul_div,
    pow10,
    saturating_sub,
    validate_uint,
)

# Valuation
from custody_ledger.core.math.valuation import value_usd

__all__ = [
    # Checked arithmetic: constants
    "UINT256_MAX",
    # Checked arithmetic: functions
    "checked_add",
    "checked_mul",
    "checked_sub",
    "is_uint",
    "mul_div",
    "pow10",
    "saturating_sub",
    "validate_uint",
    # Valuation
    "value_usd",
]
