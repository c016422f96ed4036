"""Exceptions raised by the quiz session layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from backend.srs.scheduler import LearningState


class SRSError(Exception):
    """Base class for spaced-repetition errors."""


class SessionStateError(SRSError):
    """An operation is not allowed in the session's current state."""


class PersistenceError(SRSError):
    """A computed learning state could not be saved.

    The state has already been computed and the answer recorded. Callers
    should retry the save with ``pending_state`` instead of rescheduling.
    """

    def __init__(self, pending_state: LearningState, message: str = "") -> None:
        self.pending_state = pending_state
        super().__init__(message or f"Failed to save learning state for word {pending_state.word_id!r}")
