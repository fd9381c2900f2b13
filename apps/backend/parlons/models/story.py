from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .common import require_text
from .vocabulary import VocabularyEntry

# CEFR levels, in ascending difficulty.
StoryLevel = Literal["A1", "A2", "B1", "B2", "C1", "C2"]


class ComprehensionQuestion(BaseModel):
    question: str = Field(min_length=1)
    options: list[str] = Field(min_length=2)
    correct_answer_index: int = Field(ge=0)

    @field_validator("question", mode="after")
    @classmethod
    def _require_question(cls, value: str) -> str:
        return require_text(value)

    @field_validator("options", mode="after")
    @classmethod
    def _require_options(cls, value: list[str]) -> list[str]:
        # 空の選択肢を黙って落とすと正解インデックスがずれるため、ここで拒否する。
        return [require_text(option) for option in value]

    @model_validator(mode="after")
    def _answer_within_options(self) -> "ComprehensionQuestion":
        if self.correct_answer_index >= len(self.options):
            raise ValueError("correct_answer_index must point at one of the options")
        return self


class StoryCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    level: StoryLevel
    content: str = Field(min_length=1)
    translation: str | None = None
    vocabulary_highlights: list[str] = Field(
        default_factory=list,
        description="Ids of the author's own vocabulary entries highlighted in the story",
    )
    comprehension_questions: list[ComprehensionQuestion] = Field(default_factory=list)

    @field_validator("title", "content", mode="after")
    @classmethod
    def _require_text(cls, value: str) -> str:
        return require_text(value)


class StorySummary(BaseModel):
    """Story as listed; highlights are still entry ids."""

    id: str
    title: str
    level: str
    content: str
    translation: str | None = None
    vocabulary_highlights: list[str] = Field(default_factory=list)
    comprehension_questions: list[ComprehensionQuestion] = Field(default_factory=list)
    created_at: str


class StoryDetail(StorySummary):
    """Single story with highlights resolved to vocabulary entries."""

    vocabulary_highlights: list[VocabularyEntry] = Field(default_factory=list)  # type: ignore[assignment]


class StoryListResponse(BaseModel):
    stories: list[StorySummary]


class StoryDetailResponse(BaseModel):
    story: StoryDetail
