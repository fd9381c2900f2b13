from __future__ import annotations

from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import get_current_user
from ..logging import logger
from ..models.grammar import (
    GrammarNote,
    GrammarNoteCreateRequest,
    GrammarNoteListResponse,
    GrammarNoteUpdateRequest,
)
from ..store import store

router = APIRouter(tags=["grammar"])


# Trailing-slashless alias to avoid 307 redirects
@router.get("/", response_model=GrammarNoteListResponse)
@router.get("", response_model=GrammarNoteListResponse, include_in_schema=False)
def list_grammar_notes(
    category: str | None = Query(default=None, max_length=100),
    search: str | None = Query(default=None, max_length=200),
) -> dict[str, list[dict]]:
    """Public listing ordered by category, then title."""

    return {"notes": store.list_grammar_notes(category=category, search=search)}


@router.get("/{note_id}", response_model=GrammarNote)
def get_grammar_note(note_id: str) -> dict:
    note = store.get_grammar_note(note_id)
    if note is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Grammar note not found")
    return note


@router.post("/", response_model=GrammarNote, status_code=HTTPStatus.CREATED)
@router.post("", response_model=GrammarNote, status_code=HTTPStatus.CREATED, include_in_schema=False)
def create_grammar_note(
    payload: GrammarNoteCreateRequest,
    user: dict = Depends(get_current_user),
) -> dict:
    note = store.create_grammar_note(payload.model_dump())
    logger.info("grammar_note_created", user_id=user["id"], note_id=note["id"])
    return note


@router.put("/{note_id}", response_model=GrammarNote)
def update_grammar_note(
    note_id: str,
    payload: GrammarNoteUpdateRequest,
    user: dict = Depends(get_current_user),
) -> dict:
    note = store.update_grammar_note(note_id, payload.model_dump(exclude_unset=True))
    if note is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Grammar note not found")
    logger.info("grammar_note_updated", user_id=user["id"], note_id=note_id)
    return note


@router.delete("/{note_id}")
def delete_grammar_note(note_id: str, user: dict = Depends(get_current_user)) -> dict[str, bool]:
    if not store.delete_grammar_note(note_id):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Grammar note not found")
    logger.info("grammar_note_deleted", user_id=user["id"], note_id=note_id)
    return {"success": True}
