from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .common import require_text


class GrammarExample(BaseModel):
    """Example sentence; `hidden_parts` are the fragments blanked out in drills."""

    french: str = Field(min_length=1)
    english: str = Field(min_length=1)
    hidden_parts: list[str] = Field(default_factory=list)

    @field_validator("french", "english", mode="after")
    @classmethod
    def _require_text(cls, value: str) -> str:
        return require_text(value)


class GrammarNoteCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    explanation: str = Field(min_length=1)
    category: str = Field(min_length=1, max_length=100)
    examples: list[GrammarExample] = Field(default_factory=list)

    @field_validator("title", "explanation", "category", mode="after")
    @classmethod
    def _require_text(cls, value: str) -> str:
        return require_text(value)


class GrammarNoteUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=200)
    explanation: str | None = None
    category: str | None = Field(default=None, max_length=100)
    examples: list[GrammarExample] | None = None


class GrammarNote(BaseModel):
    id: str
    title: str
    explanation: str
    category: str
    examples: list[GrammarExample] = Field(default_factory=list)
    created_at: str


class GrammarNoteListResponse(BaseModel):
    notes: list[GrammarNote]
