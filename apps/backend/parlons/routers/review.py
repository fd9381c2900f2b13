from __future__ import annotations

from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import get_current_user
from ..config import settings
from ..flows.review_session import EntryNotFoundError, ReviewPersistenceError, ReviewSession
from ..models.review import (
    DueCardsResponse,
    ReviewIntervalsResponse,
    ReviewRequest,
    ReviewResponse,
    ReviewStatsResponse,
)
from ..srs import MAX_SRS_LEVEL, SRS_INTERVAL_DAYS, InvalidOutcomeError
from ..store import store

router = APIRouter(tags=["review"])


def _session_for(user: dict) -> ReviewSession:
    return ReviewSession(store, user["id"])


@router.get("/due", response_model=DueCardsResponse)
def list_due(
    limit: int | None = Query(default=None, ge=1, le=500),
    user: dict = Depends(get_current_user),
) -> dict:
    """Cards due now, lowest level first, then longest overdue."""

    session = _session_for(user)
    due = session.due()
    effective_limit = limit or settings.review_due_limit
    return {"items": due[:effective_limit], "total_due": len(due)}


@router.get(
    "/intervals",
    response_model=ReviewIntervalsResponse,
    dependencies=[Depends(get_current_user)],
)
def list_intervals() -> dict:
    return {"intervals": list(SRS_INTERVAL_DAYS), "max_level": MAX_SRS_LEVEL}


@router.get("/stats", response_model=ReviewStatsResponse)
def review_stats(user: dict = Depends(get_current_user)) -> dict:
    return _session_for(user).stats()


@router.post("/{entry_id}", response_model=ReviewResponse)
def record_review(
    entry_id: str,
    payload: ReviewRequest,
    user: dict = Depends(get_current_user),
) -> dict:
    """Grade one card and return the rescheduled entry.

    保存に失敗した場合は 503 を返し、エントリの状態は変わらない。
    """

    session = _session_for(user)
    try:
        entry, result = session.record(entry_id, payload.resolved_outcome())
    except InvalidOutcomeError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except EntryNotFoundError as exc:
        raise HTTPException(
            status_code=HTTPStatus.NOT_FOUND, detail="Vocabulary entry not found"
        ) from exc
    except ReviewPersistenceError as exc:
        raise HTTPException(
            status_code=HTTPStatus.SERVICE_UNAVAILABLE,
            detail="Could not save the review, please try again",
        ) from exc
    return {**entry, "previous_level": result.previous_level}
