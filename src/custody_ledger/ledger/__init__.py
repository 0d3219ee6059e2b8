"""Ledger — per-(owner, asset) балансы в canonical precision."""

from .balances import Ledger

__all__ = ["Ledger"]
