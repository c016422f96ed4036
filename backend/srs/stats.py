"""Aggregate statistics over learning states and quiz history.

This is a pure computation module with no I/O. Every function takes the
current time explicitly so results are reproducible in tests.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

from backend.srs.scheduler import LearningState, Maturity, QualityRating

if TYPE_CHECKING:
    from backend.srs.session import CompletedSessionRecord, QuizAnswer


class OverdueBucket(Enum):
    """How long ago an overdue card fell due, by calendar day."""

    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_WEEK = "last_week"  # 2-7 days ago
    OLDER = "older"


LAST_WEEK_DAYS = 7


@dataclass
class OverallStats:
    """Maturity histogram for a collection of cards."""

    total_cards: int = 0
    new_cards: int = 0
    learning_cards: int = 0
    young_cards: int = 0
    mature_cards: int = 0
    retired_cards: int = 0
    total_reviews: int = 0
    average_correct_rate: float | None = None  # percent
    reviews_last_7_days: int = 0
    reviews_last_30_days: int = 0


@dataclass
class OverdueSummary:
    total: int = 0
    by_bucket: dict[OverdueBucket, int] = field(
        default_factory=lambda: {bucket: 0 for bucket in OverdueBucket}
    )


@dataclass
class DailyAccuracy:
    """Accuracy for a single calendar day. ``accuracy`` is None when there were no answers."""

    day: date
    correct: int = 0
    total: int = 0

    @property
    def accuracy(self) -> float | None:
        if self.total == 0:
            return None
        return self.correct / self.total * 100


@dataclass
class AccuracyStats:
    average_accuracy: float | None  # percent, None when there were no answers
    total_answers: int
    total_correct: int
    time_series: list[DailyAccuracy]


@dataclass
class StreakInfo:
    current_streak: int = 0
    longest_streak: int = 0
    last_study_date: date | None = None


@dataclass
class QualityDistribution:
    distribution: dict[QualityRating, int]
    total: int


@dataclass
class StudyTimeStats:
    total_seconds: int = 0
    average_session_seconds: float = 0.0
    sessions_count: int = 0
    minutes_by_date: dict[date, float] = field(default_factory=dict)


@dataclass
class CardStats:
    """Per-card progress summary."""

    total_reviews: int
    correct_rate: float | None  # percent
    average_interval: float  # mean interval scheduled per review, in days
    maturity: Maturity
    lapses: int
    interval_days: int
    due_date: datetime | None


# --- Card collections ---


def card_stats(state: LearningState | None) -> CardStats:
    """Summarize a single card. A missing state is reported as a new card."""
    if state is None:
        return CardStats(
            total_reviews=0,
            correct_rate=None,
            average_interval=0.0,
            maturity=Maturity.NEW,
            lapses=0,
            interval_days=0,
            due_date=None,
        )
    rate = state.correct_reviews / state.total_reviews * 100 if state.total_reviews else None
    average_interval = state.total_interval_days / state.total_reviews if state.total_reviews else 0.0
    return CardStats(
        total_reviews=state.total_reviews,
        correct_rate=rate,
        average_interval=average_interval,
        maturity=state.maturity,
        lapses=state.lapses,
        interval_days=state.interval_days,
        due_date=state.due_date,
    )


def overall_stats(
    states: Iterable[LearningState],
    answers: Iterable[QuizAnswer] = (),
    now: datetime | None = None,
) -> OverallStats:
    """Count cards per maturity bucket and total up their review counters.

    When ``now`` is given, ``answers`` are also counted into the 7 and 30 day
    review totals. Skipped cards are not reviews.
    """
    stats = OverallStats()
    correct = 0
    for state in states:
        stats.total_cards += 1
        stats.total_reviews += state.total_reviews
        correct += state.correct_reviews
        match state.maturity:
            case Maturity.NEW:
                stats.new_cards += 1
            case Maturity.LEARNING:
                stats.learning_cards += 1
            case Maturity.YOUNG:
                stats.young_cards += 1
            case Maturity.MATURE:
                stats.mature_cards += 1
            case Maturity.RETIRED:
                stats.retired_cards += 1
    if stats.total_reviews:
        stats.average_correct_rate = correct / stats.total_reviews * 100
    if now is not None:
        for answer in answers:
            if answer.skipped or answer.timestamp > now:
                continue
            age = now - answer.timestamp
            if age <= timedelta(days=30):
                stats.reviews_last_30_days += 1
                if age <= timedelta(days=7):
                    stats.reviews_last_7_days += 1
    return stats


def review_forecast(
    states: Iterable[LearningState],
    days: int,
    now: datetime,
    include_overdue: bool = False,
) -> list[int]:
    """Count reviews falling due on each of the next ``days`` calendar days.

    Index 0 is today. Cards without a due date are never counted. Overdue
    cards are dropped unless ``include_overdue`` is set, in which case they
    are added to today's count.
    """
    days = max(0, days)
    forecast = [0] * days
    if days == 0:
        return forecast

    today = now.date()
    for state in states:
        if state.due_date is None:
            continue
        offset = (state.due_date.date() - today).days
        if offset < 0:
            if include_overdue:
                forecast[0] += 1
        elif offset < days:
            forecast[offset] += 1
    return forecast


def overdue_cards(states: Iterable[LearningState], now: datetime) -> OverdueSummary:
    """Count cards whose due date has passed, bucketed by how long ago."""
    summary = OverdueSummary()
    today = now.date()
    for state in states:
        if state.due_date is None or state.due_date >= now:
            continue
        summary.total += 1
        days_ago = (today - state.due_date.date()).days
        if days_ago <= 0:
            bucket = OverdueBucket.TODAY
        elif days_ago == 1:
            bucket = OverdueBucket.YESTERDAY
        elif days_ago <= LAST_WEEK_DAYS:
            bucket = OverdueBucket.LAST_WEEK
        else:
            bucket = OverdueBucket.OLDER
        summary.by_bucket[bucket] += 1
    return summary


# --- Answer history ---


def _window_start(now: datetime, time_range_days: int) -> date:
    """First calendar day of a window of ``time_range_days`` days ending today."""
    return now.date() - timedelta(days=max(1, time_range_days) - 1)


def answers_from_history(history: Iterable[CompletedSessionRecord]) -> list[QuizAnswer]:
    """Flatten the answers of every completed session, oldest first."""
    answers = [answer for record in history for answer in record.answers]
    answers.sort(key=lambda a: a.timestamp)
    return answers


def accuracy_stats(
    answers: Iterable[QuizAnswer],
    time_range_days: int,
    now: datetime,
) -> AccuracyStats:
    """Accuracy per calendar day over the last ``time_range_days`` days.

    The time series has one entry per day of the window, oldest first, so
    days without answers show up with ``accuracy`` None rather than 0.
    Skipped cards are not answers and are ignored.
    """
    start = _window_start(now, time_range_days)
    today = now.date()
    series = {
        start + timedelta(days=i): DailyAccuracy(day=start + timedelta(days=i))
        for i in range((today - start).days + 1)
    }

    for answer in answers:
        if answer.skipped:
            continue
        day = series.get(answer.timestamp.date())
        if day is None:
            continue
        day.total += 1
        if answer.correct:
            day.correct += 1

    total = sum(d.total for d in series.values())
    correct = sum(d.correct for d in series.values())
    return AccuracyStats(
        average_accuracy=correct / total * 100 if total else None,
        total_answers=total,
        total_correct=correct,
        time_series=list(series.values()),
    )


def quality_distribution(
    answers: Iterable[QuizAnswer],
    time_range_days: int,
    now: datetime,
) -> QualityDistribution:
    """Count answers per rating within the window."""
    start = _window_start(now, time_range_days)
    counts: Counter[QualityRating] = Counter({rating: 0 for rating in QualityRating})
    for answer in answers:
        if answer.skipped or answer.quality_rating is None:
            continue
        if start <= answer.timestamp.date() <= now.date():
            counts[answer.quality_rating] += 1
    return QualityDistribution(distribution=dict(counts), total=sum(counts.values()))


# --- Session history ---


def streak_info(history: Iterable[CompletedSessionRecord], now: datetime) -> StreakInfo:
    """Consecutive study days, counting a day with at least one completed session.

    The current streak must end today or yesterday; missing a whole calendar
    day breaks it.
    """
    study_days = {record.end_time.date() for record in history}
    if not study_days:
        return StreakInfo()

    today = now.date()
    if today in study_days:
        cursor = today
    elif today - timedelta(days=1) in study_days:
        cursor = today - timedelta(days=1)
    else:
        cursor = None

    current = 0
    while cursor is not None and cursor in study_days:
        current += 1
        cursor -= timedelta(days=1)

    longest = 0
    run = 0
    previous: date | None = None
    for day in sorted(study_days):
        if previous is not None and day - previous == timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        previous = day

    return StreakInfo(
        current_streak=current,
        longest_streak=longest,
        last_study_date=max(study_days),
    )


def study_time_stats(
    history: Iterable[CompletedSessionRecord],
    time_range_days: int,
    now: datetime,
) -> StudyTimeStats:
    """Total and per-day study time for sessions finished within the window."""
    start = _window_start(now, time_range_days)
    stats = StudyTimeStats()
    for record in history:
        day = record.end_time.date()
        if not start <= day <= now.date():
            continue
        stats.sessions_count += 1
        stats.total_seconds += record.duration_seconds
        stats.minutes_by_date[day] = stats.minutes_by_date.get(day, 0.0) + record.duration_seconds / 60
    if stats.sessions_count:
        stats.average_session_seconds = stats.total_seconds / stats.sessions_count
    stats.minutes_by_date = dict(sorted(stats.minutes_by_date.items()))
    return stats


# --- Formatting ---


def format_interval(days: int) -> str:
    """Human-readable interval, e.g. ``6 days`` or ``2 months``."""
    if not days or days <= 0:
        return "New"
    if days == 1:
        return "1 day"
    if days < 30:
        return f"{days} days"
    if days < 60:
        return "1 month"
    return f"{days // 30} months"


def format_duration(seconds: int) -> str:
    """Format seconds as ``45s``, ``12m``, ``2h`` or ``1h 30m``."""
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return f"{hours}h"
    return f"{hours}h {remaining}m"
