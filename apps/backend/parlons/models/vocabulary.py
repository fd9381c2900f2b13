from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common import require_text


class VocabularyCreateRequest(BaseModel):
    """Payload for adding a word to the learner's vocabulary."""

    french: str = Field(min_length=1, max_length=500)
    english: str = Field(min_length=1, max_length=500)
    example: str = Field(default="", max_length=2000)
    notes: str = Field(default="", max_length=2000)
    category: str | None = Field(default=None, max_length=100)

    @field_validator("french", "english", mode="after")
    @classmethod
    def _require_text(cls, value: str) -> str:
        return require_text(value)


class VocabularyUpdateRequest(BaseModel):
    """Partial update; omitted fields are left as they are.

    `srs_level` は範囲外でも受け付け、保存時に 0..7 へ丸める。
    """

    french: str | None = Field(default=None, max_length=500)
    english: str | None = Field(default=None, max_length=500)
    example: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=2000)
    category: str | None = Field(default=None, max_length=100)
    srs_level: int | None = None
    last_reviewed: str | None = None
    next_review: str | None = None

    model_config = ConfigDict(extra="ignore")


class VocabularyEntry(BaseModel):
    id: str
    user_id: str
    french: str
    english: str
    example: str = ""
    notes: str = ""
    category: str
    srs_level: int = Field(ge=0, le=7)
    last_reviewed: str | None = None
    next_review: str | None = None
    created_at: str
    updated_at: str


class VocabularyListResponse(BaseModel):
    entries: list[VocabularyEntry]


class VocabularyCategoriesResponse(BaseModel):
    categories: list[str]
