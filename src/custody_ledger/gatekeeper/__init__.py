"""Gatekeeper — допуск операций к исполнению."""

from .preconditions import OperationPreconditions, PreconditionResult

__all__ = [
    "OperationPreconditions",
    "PreconditionResult",
]
