"""SQLAlchemy-backed Storage implementation.

Opens one database session per call, so a single SqlStorage can be shared
across requests and quiz sessions.
"""

import json
import logging

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from backend.models.learning_state import LearningStateRecord
from backend.models.quiz_session import QuizAnswerLog, QuizSessionLog
from backend.models.quiz_settings import QuizSettingsRecord
from backend.srs.queue import QuizConfig
from backend.srs.scheduler import LearningState, QualityRating
from backend.srs.session import CompletedSessionRecord, QuizAnswer, QuizMode, QuizStyle
from backend.storage.base import Storage

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1


def _to_state(row: LearningStateRecord) -> LearningState:
    return LearningState(
        word_id=row.word_id,
        easiness_factor=row.easiness_factor,
        interval_days=row.interval_days,
        repetitions=row.repetitions,
        due_date=row.due_date,
        last_review_date=row.last_review_date,
        total_reviews=row.total_reviews,
        correct_reviews=row.correct_reviews,
        lapses=row.lapses,
        total_interval_days=row.total_interval_days,
    )


def _to_record(row: QuizSessionLog) -> CompletedSessionRecord:
    answers = tuple(
        QuizAnswer(
            word_id=a.word_id,
            quality_rating=QualityRating(a.quality_rating) if a.quality_rating is not None else None,
            correct=a.correct,
            timestamp=a.answered_at,
            skipped=a.skipped,
        )
        for a in row.answers
    )
    return CompletedSessionRecord(
        id=row.id,
        list_ids=frozenset(json.loads(row.list_ids)),
        mode=QuizMode(row.mode),
        style=QuizStyle(row.style),
        word_ids=tuple(json.loads(row.word_ids)),
        start_time=row.start_time,
        end_time=row.end_time,
        duration_seconds=row.duration_seconds,
        answers=answers,
    )


class SqlStorage(Storage):
    """Storage over the learning_states, quiz_sessions, quiz_answers and quiz_settings tables."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def get_learning_state(self, word_id: str) -> LearningState | None:
        async with self.session_factory() as db:
            row = await db.get(LearningStateRecord, word_id)
            return _to_state(row) if row else None

    async def save_learning_state(self, word_id: str, state: LearningState) -> None:
        async with self.session_factory() as db:
            row = await db.get(LearningStateRecord, word_id)
            if row is None:
                row = LearningStateRecord(word_id=word_id)
                db.add(row)
            row.easiness_factor = state.easiness_factor
            row.interval_days = state.interval_days
            row.repetitions = state.repetitions
            row.due_date = state.due_date
            row.last_review_date = state.last_review_date
            row.total_reviews = state.total_reviews
            row.correct_reviews = state.correct_reviews
            row.lapses = state.lapses
            row.total_interval_days = state.total_interval_days
            await db.commit()

    async def get_all_learning_states(self) -> dict[str, LearningState]:
        async with self.session_factory() as db:
            result = await db.execute(select(LearningStateRecord))
            return {row.word_id: _to_state(row) for row in result.scalars().all()}

    async def reset_learning_states(self, word_ids: list[str]) -> int:
        if not word_ids:
            return 0
        async with self.session_factory() as db:
            result = await db.execute(
                delete(LearningStateRecord).where(LearningStateRecord.word_id.in_(word_ids))
            )
            await db.commit()
            return result.rowcount or 0

    async def get_session_history(self) -> list[CompletedSessionRecord]:
        stmt = (
            select(QuizSessionLog)
            .order_by(QuizSessionLog.end_time.desc())
            .options(selectinload(QuizSessionLog.answers))
        )
        async with self.session_factory() as db:
            result = await db.execute(stmt)
            return [_to_record(row) for row in result.scalars().all()]

    async def save_session_history(self, record: CompletedSessionRecord) -> None:
        row = QuizSessionLog(
            id=record.id,
            list_ids=json.dumps(sorted(record.list_ids)),
            word_ids=json.dumps(list(record.word_ids)),
            mode=record.mode.value,
            style=record.style.value,
            start_time=record.start_time,
            end_time=record.end_time,
            duration_seconds=record.duration_seconds,
            answers=[
                QuizAnswerLog(
                    position=i,
                    word_id=a.word_id,
                    quality_rating=int(a.quality_rating) if a.quality_rating is not None else None,
                    correct=a.correct,
                    skipped=a.skipped,
                    answered_at=a.timestamp,
                )
                for i, a in enumerate(record.answers)
            ],
        )
        async with self.session_factory() as db:
            db.add(row)
            await db.commit()
        logger.debug("Saved session %s with %d answers", record.id, len(record.answers))

    async def get_settings(self) -> QuizConfig:
        async with self.session_factory() as db:
            row = await db.get(QuizSettingsRecord, SETTINGS_ROW_ID)
            if row is None:
                return QuizConfig()
            return QuizConfig(
                new_cards_per_day=row.new_cards_per_day,
                reviews_per_day=row.reviews_per_day,
                learn_ahead=row.learn_ahead,
                quiz_bidirectional=row.quiz_bidirectional,
            )

    async def save_settings(self, config: QuizConfig) -> None:
        async with self.session_factory() as db:
            row = await db.get(QuizSettingsRecord, SETTINGS_ROW_ID)
            if row is None:
                row = QuizSettingsRecord(id=SETTINGS_ROW_ID)
                db.add(row)
            row.new_cards_per_day = config.new_cards_per_day
            row.reviews_per_day = config.reviews_per_day
            row.learn_ahead = config.learn_ahead
            row.quiz_bidirectional = config.quiz_bidirectional
            await db.commit()
