from __future__ import annotations

from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import get_current_user
from ..logging import logger
from ..models.vocabulary import (
    VocabularyCategoriesResponse,
    VocabularyCreateRequest,
    VocabularyEntry,
    VocabularyListResponse,
    VocabularyUpdateRequest,
)
from ..store import store

router = APIRouter(tags=["vocabulary"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Vocabulary entry not found")


# Trailing-slashless alias to avoid 307 redirects
@router.get("/", response_model=VocabularyListResponse)
@router.get("", response_model=VocabularyListResponse, include_in_schema=False)
def list_vocabulary(
    category: str | None = Query(default=None, max_length=100),
    search: str | None = Query(default=None, max_length=200),
    user: dict = Depends(get_current_user),
) -> dict[str, list[dict]]:
    """List the learner's entries, newest first, optionally filtered."""

    return {"entries": store.list_vocabulary(user["id"], category=category, search=search)}


@router.get("/categories", response_model=VocabularyCategoriesResponse)
def list_categories(user: dict = Depends(get_current_user)) -> dict[str, list[str]]:
    return {"categories": store.list_vocabulary_categories(user["id"])}


@router.post("/", response_model=VocabularyEntry, status_code=HTTPStatus.CREATED)
@router.post("", response_model=VocabularyEntry, status_code=HTTPStatus.CREATED, include_in_schema=False)
def create_vocabulary(
    payload: VocabularyCreateRequest,
    user: dict = Depends(get_current_user),
) -> dict:
    entry = store.create_vocabulary(user["id"], payload.model_dump())
    logger.info("vocabulary_created", user_id=user["id"], entry_id=entry["id"])
    return entry


@router.get("/{entry_id}", response_model=VocabularyEntry)
def get_vocabulary(entry_id: str, user: dict = Depends(get_current_user)) -> dict:
    entry = store.get_vocabulary(entry_id, user["id"])
    if entry is None:
        raise _not_found()
    return entry


@router.put("/{entry_id}", response_model=VocabularyEntry)
def update_vocabulary(
    entry_id: str,
    payload: VocabularyUpdateRequest,
    user: dict = Depends(get_current_user),
) -> dict:
    """Partial update. 送られたフィールドのみ反映し、`srs_level` は保存時に丸める。"""

    fields = payload.model_dump(exclude_unset=True)
    entry = store.update_vocabulary(entry_id, fields, user["id"])
    if entry is None:
        raise _not_found()
    logger.info(
        "vocabulary_updated",
        user_id=user["id"],
        entry_id=entry_id,
        fields=sorted(fields),
    )
    return entry


@router.delete("/{entry_id}")
def delete_vocabulary(entry_id: str, user: dict = Depends(get_current_user)) -> dict[str, bool]:
    if not store.delete_vocabulary(entry_id, user["id"]):
        raise _not_found()
    logger.info("vocabulary_deleted", user_id=user["id"], entry_id=entry_id)
    return {"success": True}
