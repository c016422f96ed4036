"""Per-word scheduling state."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin
from backend.srs.scheduler import DEFAULT_EASINESS_FACTOR


class LearningStateRecord(Base, TimestampMixin):
    """SM-2 scheduling state for a vocabulary word, keyed by the word's external ID."""

    __tablename__ = "learning_states"

    word_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    easiness_factor: Mapped[float] = mapped_column(
        Float, nullable=False, default=DEFAULT_EASINESS_FACTOR
    )
    interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    repetitions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True, index=True)
    last_review_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    correct_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lapses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_interval_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
