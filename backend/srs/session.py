"""Quiz session lifecycle.

Pure functions build and advance immutable session values; the
QuizSessionManager ties them to a Storage backend and enforces the
Idle -> Active -> Finished | Cancelled state machine.
"""

from __future__ import annotations

import asyncio
import logging
import random
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from backend.config import utcnow
from backend.srs.errors import PersistenceError, SessionStateError
from backend.srs.queue import QuizConfig, select_due_cards
from backend.srs.scheduler import LearningState, QualityRating, clamp_rating, new_state, next_state

if TYPE_CHECKING:
    from backend.storage.base import Storage

logger = logging.getLogger(__name__)


class QuizMode(Enum):
    """Which side of the card is shown as the prompt."""

    WORD_TO_TRANSLATION = "word_to_translation"
    TRANSLATION_TO_WORD = "translation_to_word"


class QuizStyle(Enum):
    FLASHCARD = "flashcard"
    MULTIPLE_CHOICE = "multiple_choice"
    TYPING = "typing"


class SessionStatus(Enum):
    IDLE = "idle"
    ACTIVE = "active"
    FINISHED = "finished"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class QuizAnswer:
    """One answered (or skipped) card within a session."""

    word_id: str
    quality_rating: QualityRating | None  # None when skipped
    correct: bool
    timestamp: datetime
    skipped: bool = False


@dataclass(frozen=True)
class QuizSession:
    """An in-progress quiz session. Updated by returning new values."""

    id: str
    list_ids: frozenset[str]
    mode: QuizMode
    style: QuizStyle
    word_ids: tuple[str, ...]
    start_time: datetime
    answers: tuple[QuizAnswer, ...] = ()
    status: SessionStatus = SessionStatus.ACTIVE

    @property
    def answered_word_ids(self) -> list[str]:
        return [a.word_id for a in self.answers]

    @property
    def remaining(self) -> int:
        return max(0, len(self.word_ids) - len(self.answers))

    @property
    def is_complete(self) -> bool:
        return len(self.answers) >= len(self.word_ids)

    @property
    def current_word_id(self) -> str | None:
        """The next word to present, or None once every card has been answered."""
        if self.is_complete:
            return None
        return self.word_ids[len(self.answers)]


@dataclass(frozen=True)
class CompletedSessionRecord:
    """A finished session as stored in the session history."""

    id: str
    list_ids: frozenset[str]
    mode: QuizMode
    style: QuizStyle
    word_ids: tuple[str, ...]
    start_time: datetime
    end_time: datetime
    duration_seconds: int
    answers: tuple[QuizAnswer, ...] = field(default_factory=tuple)

    @property
    def correct(self) -> int:
        return sum(1 for a in self.answers if a.correct)

    @property
    def skipped(self) -> int:
        return sum(1 for a in self.answers if a.skipped)

    @property
    def incorrect(self) -> int:
        return len(self.answers) - self.correct - self.skipped


def _require_active(session: QuizSession) -> None:
    if session.status is not SessionStatus.ACTIVE:
        raise SessionStateError(f"Session {session.id} is {session.status.value}, not active")


# --- Pure session functions ---


def start_session(
    word_ids: Iterable[str],
    mode: QuizMode = QuizMode.WORD_TO_TRANSLATION,
    style: QuizStyle = QuizStyle.FLASHCARD,
    list_ids: Iterable[str] = (),
    now: datetime | None = None,
) -> QuizSession | None:
    """Create a new active session.

    Returns None when there is nothing to review.
    """
    word_ids = tuple(word_ids)
    if not word_ids:
        return None
    return QuizSession(
        id=str(uuid.uuid4()),
        list_ids=frozenset(list_ids),
        mode=mode,
        style=style,
        word_ids=word_ids,
        start_time=now or utcnow(),
    )


def record_answer(
    session: QuizSession,
    word_id: str,
    rating: object,
    state: LearningState | None,
    now: datetime,
) -> tuple[QuizSession, LearningState]:
    """Append an answer and compute the word's next learning state.

    Performs no I/O; persisting the returned state is up to the caller.

    Args:
        session: The active session.
        word_id: The word that was answered.
        rating: Quality rating (clamped if not a QualityRating).
        state: The word's current state, or None for a new word.
        now: Time of the answer.

    Returns:
        Tuple of (updated_session, updated_state).
    """
    _require_active(session)
    rating = clamp_rating(rating)
    if word_id not in session.word_ids:
        logger.warning("Word %s answered in session %s but was not queued", word_id, session.id)

    answer = QuizAnswer(
        word_id=word_id,
        quality_rating=rating,
        correct=rating.is_correct,
        timestamp=now,
    )
    updated_state = next_state(state or new_state(word_id), rating, now)
    return replace(session, answers=(*session.answers, answer)), updated_state


def skip_card(session: QuizSession, word_id: str, now: datetime) -> QuizSession:
    """Record a skipped card. Its learning state is left untouched."""
    _require_active(session)
    answer = QuizAnswer(
        word_id=word_id,
        quality_rating=None,
        correct=False,
        timestamp=now,
        skipped=True,
    )
    return replace(session, answers=(*session.answers, answer))


def finish_session(session: QuizSession, now: datetime) -> tuple[QuizSession, CompletedSessionRecord]:
    """Freeze an active session into a history record.

    Returns:
        Tuple of (session marked finished, record for the session history).
    """
    _require_active(session)
    end_time = max(now, session.start_time)
    record = CompletedSessionRecord(
        id=session.id,
        list_ids=session.list_ids,
        mode=session.mode,
        style=session.style,
        word_ids=session.word_ids,
        start_time=session.start_time,
        end_time=end_time,
        duration_seconds=round((end_time - session.start_time).total_seconds()),
        answers=session.answers,
    )
    return replace(session, status=SessionStatus.FINISHED), record


def cancel_session(session: QuizSession) -> QuizSession:
    """Mark a session cancelled. Learning states already saved stay as they are."""
    _require_active(session)
    return replace(session, status=SessionStatus.CANCELLED)


# --- Storage-backed manager ---


class QuizSessionManager:
    """Runs one quiz session at a time against a Storage backend.

    Every answer's new learning state is saved before the next answer is
    accepted, so updates for a word are always applied in answer order.
    Calls that touch the session or storage run one at a time under a lock,
    including overlapping calls from concurrent requests.
    """

    def __init__(
        self,
        storage: Storage,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.storage = storage
        self.rng = rng or random.Random()
        self.clock = clock
        self._session: QuizSession | None = None
        self._status = SessionStatus.IDLE
        self._pending: LearningState | None = None
        self._lock = asyncio.Lock()

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def current(self) -> QuizSession | None:
        """The active session, or None when idle or after it ended."""
        return self._session if self._status is SessionStatus.ACTIVE else None

    @property
    def pending_save(self) -> LearningState | None:
        return self._pending

    @property
    def remaining(self) -> int:
        return self._session.remaining if self.current else 0

    def _active_session(self) -> QuizSession:
        if self._session is None or self._status is not SessionStatus.ACTIVE:
            raise SessionStateError("No active quiz session")
        return self._session

    def _require_no_pending(self) -> None:
        if self._pending is not None:
            raise SessionStateError(
                f"Learning state for word {self._pending.word_id!r} has not been saved; retry the save first"
            )

    async def get_settings(self) -> QuizConfig:
        return await self.storage.get_settings()

    async def update_settings(self, **changes: object) -> QuizConfig:
        """Merge changes into the stored quiz settings and return the result."""
        config = replace(await self.storage.get_settings(), **changes)
        await self.storage.save_settings(config)
        logger.info("Updated quiz settings: %s", config)
        return config

    async def due_cards(self, word_ids: Iterable[str]) -> list[str]:
        """Select and shuffle the due and new cards among ``word_ids``."""
        config = await self.storage.get_settings()
        states = await self.storage.get_all_learning_states()
        return select_due_cards(word_ids, states, config, self.clock(), rng=self.rng)

    async def start(
        self,
        word_ids: Iterable[str],
        list_ids: Iterable[str] = (),
        mode: QuizMode | None = None,
        style: QuizStyle = QuizStyle.FLASHCARD,
    ) -> QuizSession | None:
        """Start a session over the due cards among ``word_ids``.

        Returns None when nothing is due. Starting while another session is
        active is refused; finish or cancel it first.
        """
        async with self._lock:
            if self._status is SessionStatus.ACTIVE:
                raise SessionStateError("A quiz session is already active")

            if mode is None:
                config = await self.storage.get_settings()
                if config.quiz_bidirectional:
                    mode = self.rng.choice(list(QuizMode))
                else:
                    mode = QuizMode.WORD_TO_TRANSLATION

            due = await self.due_cards(word_ids)
            session = start_session(due, mode=mode, style=style, list_ids=list_ids, now=self.clock())
            if session is None:
                logger.info("Nothing to review")
                return None

            self._session = session
            self._status = SessionStatus.ACTIVE
            self._pending = None
        logger.info(
            "Started session %s: %d cards, mode=%s, style=%s",
            session.id,
            len(session.word_ids),
            session.mode.value,
            session.style.value,
        )
        return session

    async def answer(self, word_id: str, rating: object) -> LearningState:
        """Record an answer, schedule the word, and save its new state.

        Raises:
            SessionStateError: No active session, or a previous save is pending.
            PersistenceError: The save failed. The answer stays recorded and
                the state is kept for ``retry_save``.
        """
        async with self._lock:
            self._active_session()
            self._require_no_pending()

            current_state = await self.storage.get_learning_state(word_id)
            # The session may have been cancelled while reading
            session = self._active_session()
            self._session, updated = record_answer(session, word_id, rating, current_state, self.clock())
            await self._save(updated)
            return updated

    async def skip(self, word_id: str) -> QuizSession:
        async with self._lock:
            session = self._active_session()
            self._require_no_pending()
            self._session = skip_card(session, word_id, self.clock())
            return self._session

    async def retry_save(self) -> LearningState | None:
        """Save the pending learning state again, without rescheduling it."""
        async with self._lock:
            if self._pending is None:
                return None
            state = self._pending
            await self._save(state)
            return state

    async def _save(self, state: LearningState) -> None:
        self._pending = state
        try:
            await self.storage.save_learning_state(state.word_id, state)
        except Exception as exc:
            logger.exception("Failed to save learning state for word %s", state.word_id)
            raise PersistenceError(state) from exc
        self._pending = None

    async def finish(self) -> CompletedSessionRecord:
        """Finish the active session and append it to the session history."""
        async with self._lock:
            session = self._active_session()
            self._require_no_pending()

            finished, record = finish_session(session, self.clock())
            await self.storage.save_session_history(record)
            self._session = finished
            self._status = SessionStatus.FINISHED
        logger.info(
            "Finished session %s: %d answered (%d correct, %d skipped) in %ds",
            record.id,
            len(record.answers),
            record.correct,
            record.skipped,
            record.duration_seconds,
        )
        return record

    def cancel(self) -> QuizSession:
        """Discard the active session without logging it to history.

        Learning states saved for cards already answered are kept.
        """
        session = self._active_session()
        self._session = cancel_session(session)
        self._status = SessionStatus.CANCELLED
        if self._pending is not None:
            logger.warning(
                "Cancelled session %s with an unsaved state for word %s",
                session.id,
                self._pending.word_id,
            )
        self._pending = None
        logger.info("Cancelled session %s after %d answers", session.id, len(session.answers))
        return self._session

    async def reset_progress(self, word_ids: Iterable[str]) -> int:
        """Forget the learning state of the given words. Returns how many were removed."""
        removed = await self.storage.reset_learning_states(list(word_ids))
        logger.info("Reset learning progress for %d words", removed)
        return removed
