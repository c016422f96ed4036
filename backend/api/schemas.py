"""Pydantic schemas for API request/response models."""

from datetime import date, datetime

from pydantic import BaseModel, Field

from backend.srs.session import QuizMode, QuizStyle

# --- Session ---


class SessionStartRequest(BaseModel):
    """Request to start a quiz over the words of the selected lists."""

    word_ids: list[str]
    list_ids: list[str] = Field(default_factory=list)
    mode: QuizMode | None = None  # None: pick from settings
    style: QuizStyle = QuizStyle.FLASHCARD


class SessionStartResponse(BaseModel):
    """Response when starting a new quiz session."""

    session_id: str
    mode: QuizMode
    style: QuizStyle
    word_ids: list[str]
    total_cards: int


class AnswerRequest(BaseModel):
    """Request to submit a rating for a card."""

    word_id: str
    rating: int | float | str  # Clamped to 1-4 by the scheduler


class SkipRequest(BaseModel):
    word_id: str


class LearningStateResponse(BaseModel):
    """A word's scheduling state."""

    word_id: str
    easiness_factor: float
    interval_days: int
    repetitions: int
    due_date: datetime | None
    last_review_date: datetime | None
    total_reviews: int
    correct_reviews: int
    lapses: int
    maturity: str


class AnswerResponse(BaseModel):
    """Response after submitting an answer with scheduling info."""

    state: LearningStateResponse
    next_review: str  # e.g. "6 days"
    remaining: int
    next_word_id: str | None
    session_complete: bool


class SessionStatusResponse(BaseModel):
    session_id: str | None
    status: str
    remaining: int
    next_word_id: str | None
    answered: int
    pending_save_word_id: str | None = None


class SessionRecordResponse(BaseModel):
    """A completed session."""

    session_id: str
    list_ids: list[str]
    mode: QuizMode
    style: QuizStyle
    start_time: datetime
    end_time: datetime
    duration_seconds: int
    answered: int
    correct: int
    incorrect: int
    skipped: int


# --- Stats ---


class OverviewResponse(BaseModel):
    """Maturity histogram for a set of cards."""

    total_cards: int
    new_cards: int
    learning_cards: int
    young_cards: int
    mature_cards: int
    retired_cards: int
    total_reviews: int
    average_correct_rate: float | None
    reviews_last_7_days: int
    reviews_last_30_days: int


class ForecastResponse(BaseModel):
    start_date: date
    counts: list[int]  # index 0 = today


class OverdueResponse(BaseModel):
    total: int
    by_bucket: dict[str, int]


class DailyAccuracyResponse(BaseModel):
    day: date
    accuracy: float | None  # None = no answers that day
    correct: int
    total: int


class AccuracyResponse(BaseModel):
    average_accuracy: float | None
    total_answers: int
    total_correct: int
    time_series: list[DailyAccuracyResponse]


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_study_date: date | None


class QualityDistributionResponse(BaseModel):
    distribution: dict[str, int]  # AGAIN, HARD, GOOD, EASY
    total: int


class StudyTimeResponse(BaseModel):
    total_seconds: int
    total_formatted: str
    average_session_seconds: float
    sessions_count: int
    minutes_by_date: dict[date, float]


class CardStatsResponse(BaseModel):
    word_id: str
    total_reviews: int
    correct_rate: float | None
    average_interval: float
    maturity: str
    lapses: int
    interval_days: int
    interval: str
    due_date: datetime | None


class ResetRequest(BaseModel):
    word_ids: list[str]


# --- Settings ---


class QuizSettingsModel(BaseModel):
    new_cards_per_day: int = Field(ge=0)
    reviews_per_day: int = Field(ge=0)
    learn_ahead: bool
    quiz_bidirectional: bool


class QuizSettingsUpdate(BaseModel):
    new_cards_per_day: int | None = Field(default=None, ge=0)
    reviews_per_day: int | None = Field(default=None, ge=0)
    learn_ahead: bool | None = None
    quiz_bidirectional: bool | None = None
