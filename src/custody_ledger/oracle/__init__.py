"""Oracle — внешние источники цен и их валидация."""

from .adapter import PriceOracleAdapter, wall_clock
from .feeds import PriceSource, StaticPriceSource

__all__ = [
    "PriceOracleAdapter",
    "PriceSource",
    "StaticPriceSource",
    "wall_clock",
]
