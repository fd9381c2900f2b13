from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from .common import require_text

FunPhraseType = Literal["idiom", "slang", "proverb", "flirt"]


class FunPhraseCreateRequest(BaseModel):
    """Idiom, slang word, proverb or flirting line to add to the collection."""

    phrase: str = Field(min_length=1, max_length=300)
    meaning: str = Field(min_length=1, max_length=1000)
    type: FunPhraseType
    literal_translation: str | None = Field(default=None, max_length=1000)
    example: str | None = Field(default=None, max_length=2000)
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("phrase", "meaning", mode="after")
    @classmethod
    def _require_text(cls, value: str) -> str:
        return require_text(value)


class FunPhrase(BaseModel):
    id: str
    phrase: str
    meaning: str
    type: str
    literal_translation: str | None = None
    example: str | None = None
    notes: str | None = None
    created_at: str


class FunPhraseListResponse(BaseModel):
    phrases: list[FunPhrase]
