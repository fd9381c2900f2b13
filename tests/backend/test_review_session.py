"""ReviewSession（語彙キャッシュ + 復習結果の永続化）のテスト。"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from google.api_core.exceptions import ServiceUnavailable

from parlons.flows.review_session import EntryNotFoundError, ReviewPersistenceError, ReviewSession
from parlons.srs import InvalidOutcomeError

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def _clock() -> datetime:
    return NOW


class _FailingWrites:
    """Wrap a store and make every vocabulary update fail."""

    def __init__(self, inner, error: Exception | None = None) -> None:
        self._inner = inner
        self._error = error
        self.update_calls = 0

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def update_vocabulary(self, entry_id, fields, user_id=None):
        self.update_calls += 1
        if self._error is not None:
            raise self._error
        return None


def _add(app_store, french: str, user_id: str = "learner", **review_state):
    entry = app_store.create_vocabulary(user_id, {"french": french, "english": french.upper()})
    if review_state:
        entry = app_store.update_vocabulary(entry["id"], review_state)
    return entry


def test_record_persists_and_updates_cache(app_store) -> None:
    entry = _add(app_store, "bonjour")
    session = ReviewSession(app_store, "learner", clock=_clock)

    persisted, result = session.record(entry["id"], "good")

    assert result.next_level == 1
    assert persisted["srs_level"] == 1
    assert persisted["next_review"] == (NOW + timedelta(days=1)).isoformat()
    assert persisted["last_reviewed"] == NOW.isoformat()
    stored = app_store.get_vocabulary(entry["id"])
    assert stored["srs_level"] == 1
    cached = {item["id"]: item for item in session.entries}
    assert cached[entry["id"]]["srs_level"] == 1


def test_recorded_card_leaves_due_list(app_store) -> None:
    first = _add(app_store, "chat")
    second = _add(app_store, "chien")
    session = ReviewSession(app_store, "learner", clock=_clock)
    assert {item["id"] for item in session.due()} == {first["id"], second["id"]}

    session.record(first["id"], "easy")

    assert [item["id"] for item in session.due()] == [second["id"]]


def test_again_keeps_card_due(app_store) -> None:
    entry = _add(app_store, "pomme")
    session = ReviewSession(app_store, "learner", clock=_clock)

    session.record(entry["id"], "again")

    assert [item["id"] for item in session.due()] == [entry["id"]]


def test_due_orders_weakest_first(app_store) -> None:
    past = (NOW - timedelta(days=2)).isoformat()
    high = _add(app_store, "maison", srs_level=3, next_review=past)
    low = _add(app_store, "voiture", srs_level=1, next_review=past)
    _add(app_store, "arbre", srs_level=2, next_review=(NOW + timedelta(days=3)).isoformat())

    session = ReviewSession(app_store, "learner", clock=_clock)

    assert [item["id"] for item in session.due()] == [low["id"], high["id"]]


def test_persistence_error_leaves_cache_unchanged(app_store) -> None:
    entry = _add(app_store, "fromage", srs_level=2)
    failing = _FailingWrites(app_store, ServiceUnavailable("firestore down"))
    session = ReviewSession(failing, "learner", clock=_clock)
    before = session.entries

    with pytest.raises(ReviewPersistenceError):
        session.record(entry["id"], "good")

    assert failing.update_calls == 1
    assert session.entries == before
    assert app_store.get_vocabulary(entry["id"])["srs_level"] == 2


def test_missing_write_target_is_a_persistence_error(app_store) -> None:
    entry = _add(app_store, "pain")
    session = ReviewSession(_FailingWrites(app_store), "learner", clock=_clock)
    before = session.entries

    with pytest.raises(ReviewPersistenceError):
        session.record(entry["id"], "hard")

    assert session.entries == before


def test_unknown_entry_raises_not_found(app_store) -> None:
    session = ReviewSession(app_store, "learner", clock=_clock)

    with pytest.raises(EntryNotFoundError):
        session.record("missing", "good")


def test_other_users_entry_is_not_found(app_store) -> None:
    entry = _add(app_store, "secret", user_id="someone-else")
    session = ReviewSession(app_store, "learner", clock=_clock)

    with pytest.raises(EntryNotFoundError):
        session.record(entry["id"], "good")
    assert app_store.get_vocabulary(entry["id"])["srs_level"] == 0


def test_invalid_outcome_is_rejected_before_any_write(app_store) -> None:
    entry = _add(app_store, "vin")
    failing = _FailingWrites(app_store)
    session = ReviewSession(failing, "learner", clock=_clock)

    with pytest.raises(InvalidOutcomeError):
        session.record(entry["id"], "perfect")
    assert failing.update_calls == 0


def test_refresh_picks_up_new_entries(app_store) -> None:
    session = ReviewSession(app_store, "learner", clock=_clock)
    assert session.entries == []

    _add(app_store, "eau")

    assert session.entries == []
    assert [item["french"] for item in session.refresh()] == ["eau"]


def test_stats_counts_levels_and_due(app_store) -> None:
    _add(app_store, "un")
    _add(app_store, "deux", srs_level=2, next_review=(NOW + timedelta(days=3)).isoformat())
    _add(app_store, "trois", srs_level=2, next_review=(NOW - timedelta(days=1)).isoformat())

    stats = ReviewSession(app_store, "learner", clock=_clock).stats()

    assert stats == {"total": 3, "due_now": 2, "levels": {"0": 1, "2": 2}}
