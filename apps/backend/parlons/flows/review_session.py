"""Review session: a cached view of a learner's vocabulary for flashcard review.

学習者の語彙一覧をキャッシュし、復習結果の記録はストアへの永続化が成功した
場合にのみローカル状態へ反映する。永続化に失敗した場合はキャッシュを変更せず
`ReviewPersistenceError` を送出する。
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from google.api_core.exceptions import GoogleAPIError

from ..logging import logger
from ..srs import ReviewOutcome, ReviewTransition, parse_outcome, select_due, transition


class EntryNotFoundError(LookupError):
    """Raised when a graded entry does not exist for the reviewing user."""


class ReviewPersistenceError(RuntimeError):
    """Raised when a review result could not be written to the store."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReviewSession:
    """Cache of one user's vocabulary entries with review recording.

    ``store`` needs ``list_vocabulary(user_id)``, ``get_vocabulary(entry_id, user_id)``
    and ``update_vocabulary(entry_id, fields, user_id)``.
    """

    def __init__(
        self,
        store: Any,
        user_id: str,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._user_id = user_id
        self._clock = clock or _utcnow
        self._entries: list[dict[str, Any]] = []
        self._loaded = False

    @property
    def user_id(self) -> str:
        return self._user_id

    @property
    def entries(self) -> list[dict[str, Any]]:
        """Snapshot of the cached entries (copies, safe to mutate)."""

        self._ensure_loaded()
        return [dict(entry) for entry in self._entries]

    def refresh(self) -> list[dict[str, Any]]:
        """Reload entries from the store, replacing the cache."""

        self._entries = [dict(entry) for entry in self._store.list_vocabulary(self._user_id)]
        self._loaded = True
        return self.entries

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.refresh()

    def due(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Entries due now, weakest and most overdue first."""

        self._ensure_loaded()
        return [dict(entry) for entry in select_due(self._entries, now=self._clock(), limit=limit)]

    def _find_entry(self, entry_id: str) -> dict[str, Any]:
        for entry in self._entries:
            if entry.get("id") == entry_id:
                return entry
        fetched = self._store.get_vocabulary(entry_id, self._user_id)
        if fetched is None:
            raise EntryNotFoundError(entry_id)
        return dict(fetched)

    def record(
        self, entry_id: str, outcome: ReviewOutcome | str
    ) -> tuple[dict[str, Any], ReviewTransition]:
        """Grade one entry and persist the new schedule.

        Returns the persisted entry and the computed transition. The cache is
        only touched after the store confirms the write.
        """

        grade = parse_outcome(outcome)
        self._ensure_loaded()
        entry = self._find_entry(entry_id)
        result = transition(entry.get("srs_level"), grade, now=self._clock())

        try:
            persisted = self._store.update_vocabulary(entry_id, result.as_update(), self._user_id)
        except GoogleAPIError as exc:
            logger.error(
                "review_persist_failed",
                user_id=self._user_id,
                entry_id=entry_id,
                outcome=grade.value,
                error=repr(exc),
            )
            raise ReviewPersistenceError(f"failed to save review for {entry_id}") from exc
        if persisted is None:
            logger.error(
                "review_persist_failed",
                user_id=self._user_id,
                entry_id=entry_id,
                outcome=grade.value,
                error="entry_missing_on_write",
            )
            raise ReviewPersistenceError(f"failed to save review for {entry_id}")

        self._replace_cached(persisted)
        logger.info(
            "review_recorded",
            user_id=self._user_id,
            entry_id=entry_id,
            outcome=grade.value,
            previous_level=result.previous_level,
            next_level=result.next_level,
            next_review=result.next_review.isoformat(),
        )
        try:
            self.refresh()
        except GoogleAPIError as exc:
            # The write already succeeded; keep the locally patched cache.
            logger.warning("review_refresh_failed", user_id=self._user_id, error=repr(exc))
        return dict(persisted), result

    def _replace_cached(self, persisted: Mapping[str, Any]) -> None:
        for index, entry in enumerate(self._entries):
            if entry.get("id") == persisted.get("id"):
                self._entries[index] = dict(persisted)
                return
        self._entries.append(dict(persisted))

    def stats(self) -> dict[str, Any]:
        """Counts per level plus the number of entries due now."""

        self._ensure_loaded()
        levels: dict[str, int] = {}
        for entry in self._entries:
            key = str(entry.get("srs_level", 0))
            levels[key] = levels.get(key, 0) + 1
        return {
            "total": len(self._entries),
            "due_now": len(select_due(self._entries, now=self._clock())),
            "levels": dict(sorted(levels.items(), key=lambda item: int(item[0]))),
        }
