"""API routes for learning statistics and dashboard data."""

import logging

from fastapi import APIRouter, Depends, Query

from backend.api.schemas import (
    AccuracyResponse,
    DailyAccuracyResponse,
    ForecastResponse,
    OverdueResponse,
    OverviewResponse,
    QualityDistributionResponse,
    StreakResponse,
    StudyTimeResponse,
)
from backend.config import settings, utcnow
from backend.database import get_storage
from backend.srs.scheduler import LearningState, new_state
from backend.srs.stats import (
    accuracy_stats,
    answers_from_history,
    format_duration,
    overall_stats,
    overdue_cards,
    quality_distribution,
    review_forecast,
    streak_info,
    study_time_stats,
)
from backend.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stats", tags=["stats"])


async def _states_for(storage: Storage, word_ids: list[str] | None) -> list[LearningState]:
    """States for the given words (unreviewed words as new cards), or every stored state."""
    all_states = await storage.get_all_learning_states()
    if word_ids is None:
        return list(all_states.values())
    return [all_states.get(word_id) or new_state(word_id) for word_id in dict.fromkeys(word_ids)]


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    word_ids: list[str] | None = Query(default=None),
    storage: Storage = Depends(get_storage),
) -> OverviewResponse:
    """Card counts per maturity bucket and recent review totals."""
    answers = answers_from_history(await storage.get_session_history())
    if word_ids is not None:
        wanted = set(word_ids)
        answers = [a for a in answers if a.word_id in wanted]
    stats = overall_stats(await _states_for(storage, word_ids), answers, utcnow())
    return OverviewResponse(
        total_cards=stats.total_cards,
        new_cards=stats.new_cards,
        learning_cards=stats.learning_cards,
        young_cards=stats.young_cards,
        mature_cards=stats.mature_cards,
        retired_cards=stats.retired_cards,
        total_reviews=stats.total_reviews,
        reviews_last_7_days=stats.reviews_last_7_days,
        reviews_last_30_days=stats.reviews_last_30_days,
        average_correct_rate=(
            round(stats.average_correct_rate, 1) if stats.average_correct_rate is not None else None
        ),
    )


@router.get("/forecast", response_model=ForecastResponse)
async def get_forecast(
    days: int = Query(default=settings.forecast_days, ge=1, le=365),
    include_overdue: bool = False,
    word_ids: list[str] | None = Query(default=None),
    storage: Storage = Depends(get_storage),
) -> ForecastResponse:
    """Reviews falling due on each of the next ``days`` days."""
    now = utcnow()
    states = await _states_for(storage, word_ids)
    return ForecastResponse(
        start_date=now.date(),
        counts=review_forecast(states, days, now, include_overdue=include_overdue),
    )


@router.get("/overdue", response_model=OverdueResponse)
async def get_overdue(
    word_ids: list[str] | None = Query(default=None),
    storage: Storage = Depends(get_storage),
) -> OverdueResponse:
    """Cards past their due date."""
    summary = overdue_cards(await _states_for(storage, word_ids), utcnow())
    return OverdueResponse(
        total=summary.total,
        by_bucket={bucket.value: count for bucket, count in summary.by_bucket.items()},
    )


@router.get("/accuracy", response_model=AccuracyResponse)
async def get_accuracy(
    days: int = Query(default=settings.stats_time_range_days, ge=1, le=365),
    storage: Storage = Depends(get_storage),
) -> AccuracyResponse:
    """Daily answer accuracy over the last ``days`` days."""
    answers = answers_from_history(await storage.get_session_history())
    stats = accuracy_stats(answers, days, utcnow())
    return AccuracyResponse(
        average_accuracy=stats.average_accuracy,
        total_answers=stats.total_answers,
        total_correct=stats.total_correct,
        time_series=[
            DailyAccuracyResponse(day=d.day, accuracy=d.accuracy, correct=d.correct, total=d.total)
            for d in stats.time_series
        ],
    )


@router.get("/streak", response_model=StreakResponse)
async def get_streak(storage: Storage = Depends(get_storage)) -> StreakResponse:
    """Current and longest run of study days."""
    info = streak_info(await storage.get_session_history(), utcnow())
    return StreakResponse(
        current_streak=info.current_streak,
        longest_streak=info.longest_streak,
        last_study_date=info.last_study_date,
    )


@router.get("/quality", response_model=QualityDistributionResponse)
async def get_quality_distribution(
    days: int = Query(default=settings.stats_time_range_days, ge=1, le=365),
    storage: Storage = Depends(get_storage),
) -> QualityDistributionResponse:
    """How often each rating was given."""
    answers = answers_from_history(await storage.get_session_history())
    dist = quality_distribution(answers, days, utcnow())
    return QualityDistributionResponse(
        distribution={rating.name: count for rating, count in dist.distribution.items()},
        total=dist.total,
    )


@router.get("/study-time", response_model=StudyTimeResponse)
async def get_study_time(
    days: int = Query(default=settings.stats_time_range_days, ge=1, le=365),
    storage: Storage = Depends(get_storage),
) -> StudyTimeResponse:
    """Time spent in finished sessions."""
    now = utcnow()
    stats = study_time_stats(await storage.get_session_history(), days, now)
    return StudyTimeResponse(
        total_seconds=stats.total_seconds,
        total_formatted=format_duration(stats.total_seconds),
        average_session_seconds=stats.average_session_seconds,
        sessions_count=stats.sessions_count,
        minutes_by_date=stats.minutes_by_date,
    )
