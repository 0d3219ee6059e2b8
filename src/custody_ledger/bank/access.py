"""Access control — injected capability check для admin операций."""

from typing import Dict, Iterable, Protocol, Set

from custody_ledger.core.domain.bank_state import Capability


class AccessControl(Protocol):
    def has_capability(self, principal: str, capability: Capability) -> bool:
        """True если principal обладает capability."""


class RoleBasedAccessControl:
    """In-memory grant/revoke capabilities (без иерархии ролей)."""

    def __init__(self, grants: Dict[str, Iterable[Capability]] | None = None) -> None:
        self._grants: Dict[str, Set[Capability]] = {}
        for principal, capabilities in (grants or {}).items():
            for capability in capabilities:
                self.grant(principal, capability)

    def grant(self, principal: str, capability: Capability) -> None:
        self._grants.setdefault(principal, set()).add(capability)

    def revoke(self, principal: str, capability: Capability) -> None:
        self._grants.get(principal, set()).discard(capability)

    def has_capability(self, principal: str, capability: Capability) -> bool:
        return capability in self._grants.get(principal, ())
