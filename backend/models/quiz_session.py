from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backend.models.base import Base


class QuizSessionLog(Base):
    __tablename__ = "quiz_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    list_ids: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON array
    word_ids: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON array, queue order
    mode: Mapped[str] = mapped_column(String(50), nullable=False)  # word_to_translation, translation_to_word
    style: Mapped[str] = mapped_column(String(50), nullable=False)  # flashcard, multiple_choice, typing
    start_time: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_time: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    answers: Mapped[list["QuizAnswerLog"]] = relationship(
        back_populates="session",
        order_by="QuizAnswerLog.position",
        cascade="all, delete-orphan",
    )


class QuizAnswerLog(Base):
    __tablename__ = "quiz_answers"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(ForeignKey("quiz_sessions.id"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)  # Order within the session
    word_id: Mapped[str] = mapped_column(String(255), nullable=False)
    quality_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)  # 1=Again .. 4=Easy, NULL if skipped
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    skipped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    answered_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    session: Mapped["QuizSessionLog"] = relationship(back_populates="answers")
