"""Bank — orchestrator deposit/withdraw и его внешние collaborators."""

from .access import AccessControl, RoleBasedAccessControl
from .guard import ReentrancyGuard
from .transfers import InMemoryTransferService, TransferService
from .vault import CustodialBank

__all__ = [
    "AccessControl",
    "CustodialBank",
    "InMemoryTransferService",
    "ReentrancyGuard",
    "RoleBasedAccessControl",
    "TransferService",
]
