"""Storage interface for the quiz session layer.

Defines the contract that persistence backends must implement. The
scheduler and session manager depend on this abstraction only.
"""

from abc import ABC, abstractmethod

from backend.srs.queue import QuizConfig
from backend.srs.scheduler import LearningState
from backend.srs.session import CompletedSessionRecord


class Storage(ABC):
    """Port for persisting learning states, session history and settings.

    Implementations:
        - InMemoryStorage: dict-backed, for tests and throwaway sessions.
        - SqlStorage: SQLAlchemy async ORM.
    """

    @abstractmethod
    async def get_learning_state(self, word_id: str) -> LearningState | None:
        """Return the state for a word, or None if it has never been reviewed."""

    @abstractmethod
    async def save_learning_state(self, word_id: str, state: LearningState) -> None:
        """Insert or replace the state for a word."""

    @abstractmethod
    async def get_all_learning_states(self) -> dict[str, LearningState]:
        """Return every stored state keyed by word ID."""

    @abstractmethod
    async def reset_learning_states(self, word_ids: list[str]) -> int:
        """Delete the states for the given words and return how many existed."""

    @abstractmethod
    async def get_session_history(self) -> list[CompletedSessionRecord]:
        """Return completed sessions, newest first."""

    @abstractmethod
    async def save_session_history(self, record: CompletedSessionRecord) -> None:
        """Append a completed session to the history."""

    @abstractmethod
    async def get_settings(self) -> QuizConfig:
        """Return the stored quiz settings, or defaults if none were saved."""

    @abstractmethod
    async def save_settings(self, config: QuizConfig) -> None:
        """Replace the stored quiz settings."""
