"""API routes for quiz sessions."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.api.schemas import (
    AnswerRequest,
    AnswerResponse,
    LearningStateResponse,
    SessionRecordResponse,
    SessionStartRequest,
    SessionStartResponse,
    SessionStatusResponse,
    SkipRequest,
)
from backend.database import get_storage
from backend.srs.errors import PersistenceError, SessionStateError
from backend.srs.scheduler import LearningState
from backend.srs.session import CompletedSessionRecord, QuizSessionManager
from backend.srs.stats import format_interval
from backend.storage.base import Storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/session", tags=["session"])

# One quiz session per application instance
_manager: QuizSessionManager | None = None


def get_session_manager(storage: Storage = Depends(get_storage)) -> QuizSessionManager:
    """Return the app-wide session manager, creating it on first use."""
    global _manager
    if _manager is None:
        _manager = QuizSessionManager(storage)
    return _manager


def state_response(state: LearningState) -> LearningStateResponse:
    return LearningStateResponse(
        word_id=state.word_id,
        easiness_factor=state.easiness_factor,
        interval_days=state.interval_days,
        repetitions=state.repetitions,
        due_date=state.due_date,
        last_review_date=state.last_review_date,
        total_reviews=state.total_reviews,
        correct_reviews=state.correct_reviews,
        lapses=state.lapses,
        maturity=state.maturity.value,
    )


def record_response(record: CompletedSessionRecord) -> SessionRecordResponse:
    return SessionRecordResponse(
        session_id=record.id,
        list_ids=sorted(record.list_ids),
        mode=record.mode,
        style=record.style,
        start_time=record.start_time,
        end_time=record.end_time,
        duration_seconds=record.duration_seconds,
        answered=len(record.answers),
        correct=record.correct,
        incorrect=record.incorrect,
        skipped=record.skipped,
    )


def _status_response(manager: QuizSessionManager) -> SessionStatusResponse:
    session = manager.current
    pending = manager.pending_save
    return SessionStatusResponse(
        session_id=session.id if session else None,
        status=manager.status.value,
        remaining=manager.remaining,
        next_word_id=session.current_word_id if session else None,
        answered=len(session.answers) if session else 0,
        pending_save_word_id=pending.word_id if pending else None,
    )


def _conflict(exc: SessionStateError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(exc))


def _unavailable(exc: PersistenceError) -> HTTPException:
    return HTTPException(
        status_code=503,
        detail={"message": str(exc), "pending_word_id": exc.pending_state.word_id},
    )


@router.post("/start", response_model=SessionStartResponse)
async def session_start(
    request: SessionStartRequest,
    manager: QuizSessionManager = Depends(get_session_manager),
) -> SessionStartResponse:
    """Start a quiz over the due and new cards among the given words."""
    try:
        session = await manager.start(
            request.word_ids,
            list_ids=request.list_ids,
            mode=request.mode,
            style=request.style,
        )
    except SessionStateError as exc:
        raise _conflict(exc) from exc

    if session is None:
        raise HTTPException(status_code=404, detail="No cards available for review")

    return SessionStartResponse(
        session_id=session.id,
        mode=session.mode,
        style=session.style,
        word_ids=list(session.word_ids),
        total_cards=len(session.word_ids),
    )


@router.get("/current", response_model=SessionStatusResponse)
async def session_current(
    manager: QuizSessionManager = Depends(get_session_manager),
) -> SessionStatusResponse:
    """Get the state of the current session."""
    return _status_response(manager)


@router.post("/answer", response_model=AnswerResponse)
async def session_answer(
    request: AnswerRequest,
    manager: QuizSessionManager = Depends(get_session_manager),
) -> AnswerResponse:
    """Rate a card and reschedule it."""
    try:
        state = await manager.answer(request.word_id, request.rating)
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    except PersistenceError as exc:
        raise _unavailable(exc) from exc

    session = manager.current
    return AnswerResponse(
        state=state_response(state),
        next_review=format_interval(state.interval_days),
        remaining=manager.remaining,
        next_word_id=session.current_word_id if session else None,
        session_complete=session.is_complete if session else True,
    )


@router.post("/skip", response_model=SessionStatusResponse)
async def session_skip(
    request: SkipRequest,
    manager: QuizSessionManager = Depends(get_session_manager),
) -> SessionStatusResponse:
    """Skip a card without rescheduling it."""
    try:
        await manager.skip(request.word_id)
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    return _status_response(manager)


@router.post("/retry-save", response_model=SessionStatusResponse)
async def session_retry_save(
    manager: QuizSessionManager = Depends(get_session_manager),
) -> SessionStatusResponse:
    """Retry saving a learning state whose save failed."""
    try:
        await manager.retry_save()
    except PersistenceError as exc:
        raise _unavailable(exc) from exc
    return _status_response(manager)


@router.post("/finish", response_model=SessionRecordResponse)
async def session_finish(
    manager: QuizSessionManager = Depends(get_session_manager),
) -> SessionRecordResponse:
    """Finish the session and add it to the history."""
    try:
        record = await manager.finish()
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    return record_response(record)


@router.post("/cancel", response_model=SessionStatusResponse)
async def session_cancel(
    manager: QuizSessionManager = Depends(get_session_manager),
) -> SessionStatusResponse:
    """Discard the session. Answers already given keep their new schedule."""
    try:
        manager.cancel()
    except SessionStateError as exc:
        raise _conflict(exc) from exc
    return _status_response(manager)


@router.get("/history", response_model=list[SessionRecordResponse])
async def session_history(
    limit: int | None = Query(default=None, ge=1),
    storage: Storage = Depends(get_storage),
) -> list[SessionRecordResponse]:
    """Completed sessions, newest first."""
    history = await storage.get_session_history()
    if limit is not None:
        history = history[:limit]
    return [record_response(r) for r in history]
