"""Pause State Machine — ACTIVE ⇄ PAUSED

- ACTIVE → PAUSED: pause(); повторная пауза отклоняется (ContractPaused)
- PAUSED → ACTIVE: unpause(); unpause в ACTIVE отклоняется (ContractNotPaused)

Переходы не имеют побочных эффектов кроме смены состояния и события.
Capability-проверку выполняет orchestrator до вызова machine.
"""

from dataclasses import dataclass
from typing import List, Optional

from custody_ledger.core.domain.bank_state import PauseState
from custody_ledger.core.errors import ContractNotPaused, ContractPaused


@dataclass(frozen=True)
class PauseTransitionResult:
    """Результат перехода pause state."""

    new_state: PauseState
    previous_state: PauseState
    account: str

    # Диагностика
    transition_occurred: bool
    transition_reason: str


class PauseStateMachine:
    """State machine паузы с историей переходов."""

    def __init__(self, initial_state: PauseState = PauseState.ACTIVE):
        self._state = initial_state
        self._history: List[PauseTransitionResult] = []

    @property
    def state(self) -> PauseState:
        return self._state

    @property
    def is_paused(self) -> bool:
        return self._state == PauseState.PAUSED

    @property
    def history(self) -> tuple:
        return tuple(self._history)

    def pause(self, account: str) -> PauseTransitionResult:
        """
        Raises:
            ContractPaused: Если система уже на паузе
        """
        if self._state == PauseState.PAUSED:
            raise ContractPaused("Operations are already paused")
        return self._transition(PauseState.PAUSED, account, "pause")

    def unpause(self, account: str) -> PauseTransitionResult:
        """
        Raises:
            ContractNotPaused: Если система не на паузе
        """
        if self._state != PauseState.PAUSED:
            raise ContractNotPaused("Operations are not paused")
        return self._transition(PauseState.ACTIVE, account, "unpause")

    def last_transition(self) -> Optional[PauseTransitionResult]:
        return self._history[-1] if self._history else None

    def _transition(self, target: PauseState, account: str, reason: str) -> PauseTransitionResult:
        result = PauseTransitionResult(
            new_state=target,
            previous_state=self._state,
            account=account,
            transition_occurred=True,
            transition_reason=f"{reason}_{self._state.value.lower()}_to_{target.value.lower()}",
        )
        self._state = target
        self._history.append(result)
        return result
