from __future__ import annotations

from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import get_current_user
from ..logging import logger
from ..models.fun_phrase import FunPhrase, FunPhraseCreateRequest, FunPhraseListResponse, FunPhraseType
from ..store import store

router = APIRouter(tags=["funstuff"])


# Trailing-slashless alias to avoid 307 redirects
@router.get("/", response_model=FunPhraseListResponse)
@router.get("", response_model=FunPhraseListResponse, include_in_schema=False)
def list_fun_phrases(
    phrase_type: FunPhraseType | None = Query(default=None, alias="type"),
    search: str | None = Query(default=None, max_length=200),
) -> dict[str, list[dict]]:
    """Public listing ordered by type, then phrase."""

    return {"phrases": store.list_fun_phrases(phrase_type=phrase_type, search=search)}


@router.post("/", response_model=FunPhrase, status_code=HTTPStatus.CREATED)
@router.post("", response_model=FunPhrase, status_code=HTTPStatus.CREATED, include_in_schema=False)
def create_fun_phrase(payload: FunPhraseCreateRequest, user: dict = Depends(get_current_user)) -> dict:
    phrase = store.create_fun_phrase(payload.model_dump())
    logger.info("fun_phrase_created", user_id=user["id"], phrase_id=phrase["id"], type=phrase["type"])
    return phrase


@router.delete("/{phrase_id}")
def delete_fun_phrase(phrase_id: str, user: dict = Depends(get_current_user)) -> dict[str, bool]:
    if not store.delete_fun_phrase(phrase_id):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Phrase not found")
    logger.info("fun_phrase_deleted", user_id=user["id"], phrase_id=phrase_id)
    return {"success": True}
