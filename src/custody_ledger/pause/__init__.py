"""Pause — управление состоянием ACTIVE/PAUSED."""

from .state_machine import PauseStateMachine, PauseTransitionResult

__all__ = [
    "PauseStateMachine",
    "PauseTransitionResult",
]
