"""
Contract Validation Module

JSON Schema контракты custody ledger: сырой ответ price source и события журнала.
"""

from .validators import (
    SCHEMA_DIR,
    ContractValidator,
    ObservationValidator,
    PriceReadingValidator,
    SchemaLoader,
)

__all__ = [
    "SCHEMA_DIR",
    "SchemaLoader",
    "ContractValidator",
    "PriceReadingValidator",
    "ObservationValidator",
]
