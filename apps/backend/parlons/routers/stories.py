from __future__ import annotations

from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import get_current_user
from ..logging import logger
from ..models.story import StoryCreateRequest, StoryDetailResponse, StoryLevel, StoryListResponse, StorySummary
from ..store import store

router = APIRouter(tags=["stories"])


# Trailing-slashless alias to avoid 307 redirects
@router.get("/", response_model=StoryListResponse)
@router.get("", response_model=StoryListResponse, include_in_schema=False)
def list_stories(
    level: StoryLevel | None = Query(default=None),
    search: str | None = Query(default=None, max_length=200),
) -> dict[str, list[dict]]:
    return {"stories": store.list_stories(level=level, search=search)}


@router.get("/{story_id}", response_model=StoryDetailResponse)
def get_story(story_id: str) -> dict[str, dict]:
    """Single story with its vocabulary highlights resolved to entries."""

    story = store.get_story(story_id)
    if story is None:
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Story not found")
    return {"story": story}


@router.post("/", response_model=StorySummary, status_code=HTTPStatus.CREATED)
@router.post("", response_model=StorySummary, status_code=HTTPStatus.CREATED, include_in_schema=False)
def create_story(payload: StoryCreateRequest, user: dict = Depends(get_current_user)) -> dict:
    story = store.create_story(payload.model_dump(), owner_id=user["id"])
    logger.info("story_created", user_id=user["id"], story_id=story["id"], level=story["level"])
    return story


@router.delete("/{story_id}")
def delete_story(story_id: str, user: dict = Depends(get_current_user)) -> dict[str, bool]:
    if not store.delete_story(story_id):
        raise HTTPException(status_code=HTTPStatus.NOT_FOUND, detail="Story not found")
    logger.info("story_deleted", user_id=user["id"], story_id=story_id)
    return {"success": True}
