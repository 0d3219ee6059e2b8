"""Limits — глобальный cap и per-transaction threshold в USD."""

from .enforcer import LimitCheckResult, LimitEnforcer

__all__ = [
    "LimitCheckResult",
    "LimitEnforcer",
]
