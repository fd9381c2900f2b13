"""Spaced repetition review policy.

習熟レベル（0..7）と復習結果から次のレベルと次回出題日時を決める純粋関数群。
I/O は持たず、永続化は呼び出し側（`flows.review_session` / routers）の責務。
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

# Days until the next review, indexed by mastery level.
SRS_INTERVAL_DAYS: tuple[int, ...] = (0, 1, 3, 7, 14, 30, 60, 90)
MIN_SRS_LEVEL = 0
MAX_SRS_LEVEL = len(SRS_INTERVAL_DAYS) - 1


class ReviewOutcome(str, Enum):
    """Grades a learner can give a flashcard."""

    again = "again"
    hard = "hard"
    good = "good"
    easy = "easy"


# Level delta applied per outcome before clamping.
_LEVEL_STEPS: dict[ReviewOutcome, int] = {
    ReviewOutcome.again: -1,
    ReviewOutcome.hard: 0,
    ReviewOutcome.good: 1,
    ReviewOutcome.easy: 2,
}


class InvalidOutcomeError(ValueError):
    """Raised when a review outcome token is not one of the known grades."""


@dataclass(frozen=True)
class ReviewTransition:
    """Result of grading one card: the fields to persist on the entry."""

    previous_level: int
    next_level: int
    last_reviewed: datetime
    next_review: datetime

    def as_update(self) -> dict[str, Any]:
        """Shape the transition as a partial vocabulary update."""

        return {
            "srs_level": self.next_level,
            "last_reviewed": self.last_reviewed.isoformat(),
            "next_review": self.next_review.isoformat(),
        }


def clamp_level(value: Any) -> int:
    """Coerce a stored level into ``[MIN_SRS_LEVEL, MAX_SRS_LEVEL]``.

    Non-numeric values count as a new card (level 0).
    """

    if isinstance(value, bool):
        return MIN_SRS_LEVEL
    try:
        level = int(value)
    except (TypeError, ValueError):
        return MIN_SRS_LEVEL
    return max(MIN_SRS_LEVEL, min(MAX_SRS_LEVEL, level))


def interval_days(level: Any) -> int:
    return SRS_INTERVAL_DAYS[clamp_level(level)]


def parse_outcome(token: Any) -> ReviewOutcome:
    """Resolve a grade token (``again``/``hard``/``good``/``easy``) case-insensitively."""

    if isinstance(token, ReviewOutcome):
        return token
    if not isinstance(token, str):
        raise InvalidOutcomeError(f"review outcome must be a string, got {type(token).__name__}")
    try:
        return ReviewOutcome(token.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(outcome.value for outcome in ReviewOutcome)
        raise InvalidOutcomeError(
            f"unknown review outcome {token!r} (expected one of: {allowed})"
        ) from exc


def outcome_from_correct(correct: bool) -> ReviewOutcome:
    """Map the two-button (correct / incorrect) variant onto the four grades."""

    return ReviewOutcome.good if correct else ReviewOutcome.again


def next_level(current_level: Any, outcome: ReviewOutcome | str) -> int:
    grade = parse_outcome(outcome)
    return clamp_level(clamp_level(current_level) + _LEVEL_STEPS[grade])


def transition(
    current_level: Any,
    outcome: ReviewOutcome | str,
    *,
    now: datetime | None = None,
) -> ReviewTransition:
    """Compute the next level and due date for a graded card.

    - again: one level down, never below 0
    - hard: level unchanged
    - good / easy: one / two levels up, never above ``MAX_SRS_LEVEL``

    ``next_review`` is ``now + SRS_INTERVAL_DAYS[next_level]`` days.
    """

    reviewed_at = _as_aware(now) if now is not None else datetime.now(UTC)
    previous = clamp_level(current_level)
    level = next_level(previous, outcome)
    return ReviewTransition(
        previous_level=previous,
        next_level=level,
        last_reviewed=reviewed_at,
        next_review=reviewed_at + timedelta(days=SRS_INTERVAL_DAYS[level]),
    )


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def coerce_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 string (or datetime) into an aware datetime.

    Naive values are treated as UTC. Empty or unparsable values yield None.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_aware(value)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = f"{text[:-1]}+00:00"
        try:
            return _as_aware(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def is_due(next_review: Any, *, now: datetime | None = None) -> bool:
    """An entry is due when it was never scheduled or its due time has passed."""

    due_at = coerce_timestamp(next_review)
    if due_at is None:
        return True
    reference = _as_aware(now) if now is not None else datetime.now(UTC)
    return due_at <= reference


def _due_sort_key(entry: Mapping[str, Any]) -> tuple[int, int, datetime]:
    due_at = coerce_timestamp(entry.get("next_review"))
    # Unscheduled cards sort ahead of scheduled ones at the same level.
    if due_at is None:
        return clamp_level(entry.get("srs_level")), 0, datetime.min.replace(tzinfo=UTC)
    return clamp_level(entry.get("srs_level")), 1, due_at


def select_due(
    entries: Iterable[Mapping[str, Any]],
    *,
    now: datetime | None = None,
    limit: int | None = None,
) -> list[Mapping[str, Any]]:
    """Filter due entries and order them weakest-first, then oldest-first.

    The sort is stable, so entries with equal level and due time keep their
    input order.
    """

    reference = _as_aware(now) if now is not None else datetime.now(UTC)
    due = [entry for entry in entries if is_due(entry.get("next_review"), now=reference)]
    due.sort(key=_due_sort_key)
    if limit is not None:
        return due[: max(0, int(limit))]
    return due
