from sqlalchemy import Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin


class QuizSettingsRecord(Base, TimestampMixin):
    """Single-row table holding the learner's quiz settings."""

    __tablename__ = "quiz_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=1)
    new_cards_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    reviews_per_day: Mapped[int] = mapped_column(Integer, nullable=False)
    learn_ahead: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    quiz_bidirectional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
