"""In-memory Storage implementation."""

from dataclasses import replace

from backend.srs.queue import QuizConfig
from backend.srs.scheduler import LearningState
from backend.srs.session import CompletedSessionRecord
from backend.storage.base import Storage


class InMemoryStorage(Storage):
    """Keeps everything in dicts and lists; nothing survives the process."""

    def __init__(self) -> None:
        self.learning_states: dict[str, LearningState] = {}
        self.session_history: list[CompletedSessionRecord] = []
        self.settings: QuizConfig | None = None

    async def get_learning_state(self, word_id: str) -> LearningState | None:
        return self.learning_states.get(word_id)

    async def save_learning_state(self, word_id: str, state: LearningState) -> None:
        self.learning_states[word_id] = state

    async def get_all_learning_states(self) -> dict[str, LearningState]:
        return dict(self.learning_states)

    async def reset_learning_states(self, word_ids: list[str]) -> int:
        removed = 0
        for word_id in word_ids:
            if self.learning_states.pop(word_id, None) is not None:
                removed += 1
        return removed

    async def get_session_history(self) -> list[CompletedSessionRecord]:
        return sorted(self.session_history, key=lambda r: r.end_time, reverse=True)

    async def save_session_history(self, record: CompletedSessionRecord) -> None:
        self.session_history.append(record)

    async def get_settings(self) -> QuizConfig:
        return replace(self.settings) if self.settings else QuizConfig()

    async def save_settings(self, config: QuizConfig) -> None:
        self.settings = replace(config)
