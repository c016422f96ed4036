"""API routes for quiz settings and per-card progress."""

import logging

from fastapi import APIRouter, Depends

from backend.api.schemas import CardStatsResponse, QuizSettingsModel, QuizSettingsUpdate, ResetRequest
from backend.api.session_router import get_session_manager
from backend.database import get_storage
from backend.srs.session import QuizSessionManager
from backend.srs.stats import card_stats, format_interval
from backend.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["settings"])


@router.get("/settings", response_model=QuizSettingsModel)
async def get_settings(storage: Storage = Depends(get_storage)) -> QuizSettingsModel:
    config = await storage.get_settings()
    return QuizSettingsModel(
        new_cards_per_day=config.new_cards_per_day,
        reviews_per_day=config.reviews_per_day,
        learn_ahead=config.learn_ahead,
        quiz_bidirectional=config.quiz_bidirectional,
    )


@router.put("/settings", response_model=QuizSettingsModel)
async def update_settings(
    request: QuizSettingsUpdate,
    manager: QuizSessionManager = Depends(get_session_manager),
) -> QuizSettingsModel:
    """Update some or all quiz settings."""
    config = await manager.update_settings(**request.model_dump(exclude_none=True))
    return QuizSettingsModel(
        new_cards_per_day=config.new_cards_per_day,
        reviews_per_day=config.reviews_per_day,
        learn_ahead=config.learn_ahead,
        quiz_bidirectional=config.quiz_bidirectional,
    )


@router.get("/cards/{word_id}", response_model=CardStatsResponse)
async def get_card(word_id: str, storage: Storage = Depends(get_storage)) -> CardStatsResponse:
    """Progress for a single word. Unreviewed words are reported as new."""
    stats = card_stats(await storage.get_learning_state(word_id))
    return CardStatsResponse(
        word_id=word_id,
        total_reviews=stats.total_reviews,
        correct_rate=stats.correct_rate,
        average_interval=round(stats.average_interval, 1),
        maturity=stats.maturity.value,
        lapses=stats.lapses,
        interval_days=stats.interval_days,
        interval=format_interval(stats.interval_days),
        due_date=stats.due_date,
    )


@router.post("/cards/reset")
async def reset_cards(
    request: ResetRequest,
    manager: QuizSessionManager = Depends(get_session_manager),
) -> dict[str, int]:
    """Forget the learning progress of the given words."""
    removed = await manager.reset_progress(request.word_ids)
    return {"reset": removed}
