"""SQLAlchemy ORM models for the vocab reader database."""

from backend.models.base import Base
from backend.models.learning_state import LearningStateRecord
from backend.models.quiz_session import QuizAnswerLog, QuizSessionLog
from backend.models.quiz_settings import QuizSettingsRecord

__all__ = ["Base", "LearningStateRecord", "QuizAnswerLog", "QuizSessionLog", "QuizSettingsRecord"]
