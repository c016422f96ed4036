"""Tests for the quiz session functions and the storage-backed session manager."""

import asyncio
import random
from datetime import datetime, timedelta

import pytest

from backend.srs.errors import PersistenceError, SessionStateError
from backend.srs.queue import QuizConfig
from backend.srs.scheduler import MAX_EASINESS_FACTOR, MAX_INTERVAL_DAYS, LearningState, QualityRating
from backend.srs.session import (
    QuizMode,
    QuizSessionManager,
    QuizStyle,
    SessionStatus,
    cancel_session,
    finish_session,
    record_answer,
    skip_card,
    start_session,
)
from backend.storage.memory import InMemoryStorage

NOW = datetime(2024, 3, 10, 12, 0)


class FlakyStorage(InMemoryStorage):
    """InMemoryStorage whose learning-state saves fail while ``failing`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.failing = False
        self.save_attempts: list[LearningState] = []

    async def save_learning_state(self, word_id: str, state: LearningState) -> None:
        self.save_attempts.append(state)
        if self.failing:
            raise OSError("disk full")
        await super().save_learning_state(word_id, state)


class SlowStorage(InMemoryStorage):
    """InMemoryStorage that yields to the event loop while reading a learning state."""

    async def get_learning_state(self, word_id: str) -> LearningState | None:
        await asyncio.sleep(0.01)
        return await super().get_learning_state(word_id)


def _settings(storage: InMemoryStorage, **overrides: object) -> None:
    values = {"new_cards_per_day": 20, "reviews_per_day": 100, "learn_ahead": False, "quiz_bidirectional": False}
    values.update(overrides)
    storage.settings = QuizConfig(**values)  # type: ignore[arg-type]


# --- Pure session functions ---


class TestSessionFunctions:
    def test_start_with_nothing_due(self) -> None:
        assert start_session([], now=NOW) is None

    def test_start_session(self) -> None:
        session = start_session(["a", "b"], list_ids=["l1"], now=NOW)
        assert session is not None
        assert session.status is SessionStatus.ACTIVE
        assert session.word_ids == ("a", "b")
        assert session.list_ids == frozenset({"l1"})
        assert session.start_time == NOW
        assert session.current_word_id == "a"
        assert session.remaining == 2

    def test_record_answer_returns_new_values(self) -> None:
        session = start_session(["a", "b"], now=NOW)
        updated, state = record_answer(session, "a", QualityRating.GOOD, None, NOW)
        assert session.answers == ()
        assert len(updated.answers) == 1
        assert updated.answers[0].correct
        assert updated.answers[0].quality_rating is QualityRating.GOOD
        assert state.word_id == "a"
        assert state.interval_days == 1
        assert updated.current_word_id == "b"

    def test_hard_answer_is_not_correct(self) -> None:
        session = start_session(["a"], now=NOW)
        updated, _ = record_answer(session, "a", QualityRating.HARD, None, NOW)
        assert not updated.answers[0].correct

    def test_skip_leaves_state_alone(self) -> None:
        session = start_session(["a", "b"], now=NOW)
        updated = skip_card(session, "a", NOW)
        assert updated.answers[0].skipped
        assert updated.answers[0].quality_rating is None
        assert not updated.answers[0].correct

    def test_finish_session(self) -> None:
        session = start_session(["a", "b"], now=NOW)
        session, _ = record_answer(session, "a", QualityRating.EASY, None, NOW + timedelta(seconds=20))
        session, _ = record_answer(session, "b", QualityRating.AGAIN, None, NOW + timedelta(seconds=40))
        finished, record = finish_session(session, NOW + timedelta(seconds=65))
        assert finished.status is SessionStatus.FINISHED
        assert session.status is SessionStatus.ACTIVE
        assert record.duration_seconds == 65
        assert (record.correct, record.incorrect, record.skipped) == (1, 1, 0)

    def test_finish_never_ends_before_start(self) -> None:
        session = start_session(["a"], now=NOW)
        _, record = finish_session(session, NOW - timedelta(minutes=5))
        assert record.end_time == NOW
        assert record.duration_seconds == 0

    def test_no_answers_after_finish(self) -> None:
        finished, _ = finish_session(start_session(["a"], now=NOW), NOW)
        with pytest.raises(SessionStateError):
            record_answer(finished, "a", QualityRating.GOOD, None, NOW)
        with pytest.raises(SessionStateError):
            skip_card(finished, "a", NOW)
        with pytest.raises(SessionStateError):
            finish_session(finished, NOW)

    def test_no_answers_after_cancel(self) -> None:
        session = cancel_session(start_session(["a"], now=NOW))
        assert session.status is SessionStatus.CANCELLED
        with pytest.raises(SessionStateError):
            record_answer(session, "a", QualityRating.GOOD, None, NOW)
        with pytest.raises(SessionStateError):
            finish_session(session, NOW)


# --- Manager ---


class TestQuizSessionManager:
    @pytest.mark.asyncio
    async def test_full_session(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, rng=random.Random(0), clock=clock)
        assert manager.status is SessionStatus.IDLE

        session = await manager.start(["hund", "katze"], list_ids=["animals"])
        assert session is not None
        assert session.mode is QuizMode.WORD_TO_TRANSLATION
        assert manager.status is SessionStatus.ACTIVE

        answered_at = {}
        for word_id in session.word_ids:
            clock.advance(seconds=30)
            answered_at[word_id] = clock.now
            await manager.answer(word_id, QualityRating.GOOD)
        assert manager.remaining == 0
        assert manager.current.is_complete

        clock.advance(seconds=30)
        record = await manager.finish()
        assert manager.status is SessionStatus.FINISHED
        assert manager.current is None
        assert record.duration_seconds == 90
        assert record.list_ids == frozenset({"animals"})
        for word_id, when in answered_at.items():
            state = storage.learning_states[word_id]
            assert state.interval_days == 1
            assert state.due_date == when + timedelta(days=1)
        assert await storage.get_session_history() == [record]

    @pytest.mark.asyncio
    async def test_nothing_due_returns_none(self, storage, clock) -> None:
        _settings(storage)
        storage.learning_states["hund"] = LearningState(
            word_id="hund", interval_days=6, repetitions=2, due_date=clock.now + timedelta(days=3), total_reviews=2
        )
        manager = QuizSessionManager(storage, clock=clock)
        assert await manager.start(["hund"]) is None
        assert manager.status is SessionStatus.IDLE

    @pytest.mark.asyncio
    async def test_start_while_active_is_refused(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        first = await manager.start(["a"])
        with pytest.raises(SessionStateError):
            await manager.start(["b"])
        assert manager.current == first

    @pytest.mark.asyncio
    async def test_start_again_after_finish(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])
        await manager.finish()
        second = await manager.start(["b"])
        assert second is not None
        assert second.word_ids == ("b",)

    @pytest.mark.asyncio
    async def test_answer_after_finish_is_refused(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])
        await manager.finish()
        with pytest.raises(SessionStateError):
            await manager.answer("a", QualityRating.GOOD)
        with pytest.raises(SessionStateError):
            await manager.finish()

    @pytest.mark.asyncio
    async def test_answer_without_session_is_refused(self, storage) -> None:
        manager = QuizSessionManager(storage)
        with pytest.raises(SessionStateError):
            await manager.answer("a", 3)
        with pytest.raises(SessionStateError):
            manager.cancel()

    @pytest.mark.asyncio
    async def test_cancel_keeps_saved_states_and_skips_history(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, rng=random.Random(1), clock=clock)
        session = await manager.start(["a", "b", "c"])
        first = session.word_ids[0]
        await manager.answer(first, QualityRating.EASY)

        manager.cancel()

        assert manager.status is SessionStatus.CANCELLED
        assert manager.current is None
        assert set(storage.learning_states) == {first}
        assert storage.learning_states[first].repetitions == 1
        assert await storage.get_session_history() == []

    @pytest.mark.asyncio
    async def test_skip_is_logged_but_not_scheduled(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, rng=random.Random(2), clock=clock)
        session = await manager.start(["a", "b"])
        skipped, answered = session.word_ids
        await manager.skip(skipped)
        await manager.answer(answered, QualityRating.AGAIN)
        record = await manager.finish()

        assert skipped not in storage.learning_states
        assert (record.correct, record.incorrect, record.skipped) == (0, 1, 1)

    @pytest.mark.asyncio
    async def test_same_word_answered_twice_applies_in_order(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])
        await manager.answer("a", QualityRating.GOOD)
        clock.advance(days=1)
        state = await manager.answer("a", QualityRating.GOOD)

        assert state.repetitions == 2
        assert state.interval_days == 6
        assert storage.learning_states["a"] == state

    @pytest.mark.asyncio
    async def test_untyped_rating_is_clamped(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])
        state = await manager.answer("a", "99")
        assert manager.current.answers[0].quality_rating is QualityRating.EASY
        assert state.correct_reviews == 1

    @pytest.mark.asyncio
    async def test_caps_come_from_stored_settings(self, storage, clock) -> None:
        _settings(storage, new_cards_per_day=2)
        manager = QuizSessionManager(storage, rng=random.Random(0), clock=clock)
        session = await manager.start(["a", "b", "c", "d"])
        assert set(session.word_ids) == {"a", "b"}


class TestOverlappingCalls:
    @pytest.mark.asyncio
    async def test_overlapping_answers_to_one_word_both_apply(self, clock) -> None:
        storage = SlowStorage()
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])

        await asyncio.gather(
            manager.answer("a", QualityRating.GOOD),
            manager.answer("a", QualityRating.GOOD),
        )

        assert len(manager.current.answers) == 2
        state = storage.learning_states["a"]
        assert state.repetitions == 2
        assert state.interval_days == 6
        assert state.total_reviews == 2

    @pytest.mark.asyncio
    async def test_overlapping_calls_keep_call_order(self, clock) -> None:
        storage = SlowStorage()
        _settings(storage)
        manager = QuizSessionManager(storage, rng=random.Random(0), clock=clock)
        await manager.start(["a", "b"])

        _, _, record = await asyncio.gather(
            manager.answer("a", QualityRating.AGAIN),
            manager.skip("b"),
            manager.finish(),
        )

        assert [a.word_id for a in record.answers] == ["a", "b"]
        assert [a.skipped for a in record.answers] == [False, True]
        assert manager.status is SessionStatus.FINISHED
        assert storage.learning_states["a"].lapses == 1
        assert storage.learning_states["a"].total_reviews == 1

    @pytest.mark.asyncio
    async def test_cancel_during_a_slow_read_drops_the_answer(self, clock) -> None:
        storage = SlowStorage()
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])

        answering = asyncio.ensure_future(manager.answer("a", QualityRating.GOOD))
        await asyncio.sleep(0)
        manager.cancel()
        with pytest.raises(SessionStateError):
            await answering
        assert "a" not in storage.learning_states

    @pytest.mark.asyncio
    async def test_long_easy_run_through_manager(self, storage, clock) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])
        for _ in range(30):
            state = await manager.answer("a", QualityRating.EASY)
            clock.advance(days=state.interval_days)
        assert state.interval_days == MAX_INTERVAL_DAYS
        assert state.easiness_factor <= MAX_EASINESS_FACTOR
        assert storage.learning_states["a"].due_date == clock.now


class TestDirection:
    @pytest.mark.asyncio
    async def test_explicit_mode_wins(self, storage, clock) -> None:
        _settings(storage, quiz_bidirectional=True)
        manager = QuizSessionManager(storage, clock=clock)
        session = await manager.start(["a"], mode=QuizMode.TRANSLATION_TO_WORD, style=QuizStyle.TYPING)
        assert session.mode is QuizMode.TRANSLATION_TO_WORD
        assert session.style is QuizStyle.TYPING

    @pytest.mark.asyncio
    async def test_unidirectional_always_word_first(self, storage, clock) -> None:
        _settings(storage, quiz_bidirectional=False)
        for seed in range(5):
            manager = QuizSessionManager(storage, rng=random.Random(seed), clock=clock)
            session = await manager.start(["a"])
            assert session.mode is QuizMode.WORD_TO_TRANSLATION
            manager.cancel()

    @pytest.mark.asyncio
    async def test_bidirectional_uses_both_modes(self, storage, clock) -> None:
        _settings(storage, quiz_bidirectional=True)
        modes = set()
        for seed in range(20):
            manager = QuizSessionManager(storage, rng=random.Random(seed), clock=clock)
            session = await manager.start(["a"])
            modes.add(session.mode)
            manager.cancel()
        assert modes == set(QuizMode)


class TestFailedSaves:
    @pytest.mark.asyncio
    async def test_failed_save_keeps_pending_state(self, clock) -> None:
        storage = FlakyStorage()
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a", "b"])

        storage.failing = True
        with pytest.raises(PersistenceError) as exc_info:
            await manager.answer("a", QualityRating.GOOD)

        pending = exc_info.value.pending_state
        assert pending.word_id == "a"
        assert manager.pending_save == pending
        assert "a" not in storage.learning_states
        assert len(manager.current.answers) == 1

    @pytest.mark.asyncio
    async def test_answers_blocked_until_saved(self, clock) -> None:
        storage = FlakyStorage()
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a", "b"])

        storage.failing = True
        with pytest.raises(PersistenceError):
            await manager.answer("a", QualityRating.GOOD)

        with pytest.raises(SessionStateError):
            await manager.answer("b", QualityRating.GOOD)
        with pytest.raises(SessionStateError):
            await manager.skip("b")
        with pytest.raises(SessionStateError):
            await manager.finish()

    @pytest.mark.asyncio
    async def test_retry_saves_same_state_without_rescheduling(self, clock) -> None:
        storage = FlakyStorage()
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a", "b"])

        storage.failing = True
        with pytest.raises(PersistenceError):
            await manager.answer("a", QualityRating.GOOD)
        with pytest.raises(PersistenceError):
            await manager.retry_save()

        clock.advance(hours=1)
        storage.failing = False
        saved = await manager.retry_save()

        assert manager.pending_save is None
        assert storage.learning_states["a"] == saved
        assert saved.repetitions == 1
        assert saved.due_date == clock.now - timedelta(hours=1) + timedelta(days=1)
        assert len(set(storage.save_attempts)) == 1

        await manager.answer("b", QualityRating.GOOD)
        record = await manager.finish()
        assert len(record.answers) == 2

    @pytest.mark.asyncio
    async def test_retry_without_pending_is_noop(self, storage) -> None:
        manager = QuizSessionManager(storage)
        assert await manager.retry_save() is None

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_state(self, clock) -> None:
        storage = FlakyStorage()
        _settings(storage)
        manager = QuizSessionManager(storage, clock=clock)
        await manager.start(["a"])
        storage.failing = True
        with pytest.raises(PersistenceError):
            await manager.answer("a", QualityRating.GOOD)

        manager.cancel()
        assert manager.pending_save is None
        assert manager.status is SessionStatus.CANCELLED


class TestSettingsAndReset:
    @pytest.mark.asyncio
    async def test_defaults_when_nothing_saved(self, storage) -> None:
        manager = QuizSessionManager(storage)
        config = await manager.get_settings()
        assert config == QuizConfig()

    @pytest.mark.asyncio
    async def test_update_merges_changes(self, storage) -> None:
        _settings(storage)
        manager = QuizSessionManager(storage)
        config = await manager.update_settings(new_cards_per_day=5)
        assert config.new_cards_per_day == 5
        assert config.reviews_per_day == 100
        assert (await storage.get_settings()).new_cards_per_day == 5

    @pytest.mark.asyncio
    async def test_reset_progress(self, storage, clock) -> None:
        storage.learning_states["a"] = LearningState(word_id="a", interval_days=6, repetitions=2)
        storage.learning_states["b"] = LearningState(word_id="b", interval_days=6, repetitions=2)
        manager = QuizSessionManager(storage, clock=clock)
        assert await manager.reset_progress(["a", "zzz"]) == 1
        assert set(storage.learning_states) == {"b"}
