from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from ..srs import ReviewOutcome, outcome_from_correct
from .vocabulary import VocabularyEntry


class ReviewRequest(BaseModel):
    """Grade for one flashcard.

    4 段階 (`outcome`) と正誤 2 択 (`correct`) のどちらか一方を受け付ける。
    両方指定された場合は `outcome` を優先する。
    """

    outcome: ReviewOutcome | None = None
    correct: bool | None = None

    @model_validator(mode="after")
    def _require_grade(self) -> "ReviewRequest":
        if self.outcome is None and self.correct is None:
            raise ValueError("either 'outcome' or 'correct' is required")
        return self

    def resolved_outcome(self) -> ReviewOutcome:
        if self.outcome is not None:
            return self.outcome
        return outcome_from_correct(bool(self.correct))


class ReviewResponse(VocabularyEntry):
    previous_level: int


class DueCardsResponse(BaseModel):
    items: list[VocabularyEntry]
    total_due: int


class ReviewIntervalsResponse(BaseModel):
    intervals: list[int] = Field(description="Days until the next review, indexed by level")
    max_level: int


class ReviewStatsResponse(BaseModel):
    total: int
    due_now: int
    levels: dict[str, int]
