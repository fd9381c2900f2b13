"""復習 API（/api/review）の結合テスト。"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from http import HTTPStatus

from google.api_core.exceptions import DeadlineExceeded

from parlons.config import settings
from parlons.srs import SRS_INTERVAL_DAYS


def _add(store, french: str, **review_state):
    entry = store.create_vocabulary(settings.local_user_id, {"french": french, "english": french})
    if review_state:
        entry = store.update_vocabulary(entry["id"], review_state)
    return entry


def test_due_lists_unscheduled_and_overdue_cards_weakest_first(client, patched_store) -> None:
    now = datetime.now(UTC)
    overdue = _add(patched_store, "chat", srs_level=3, next_review=(now - timedelta(days=1)).isoformat())
    fresh = _add(patched_store, "chien")
    _add(patched_store, "oiseau", srs_level=1, next_review=(now + timedelta(days=5)).isoformat())

    body = client.get("/api/review/due").json()

    assert body["total_due"] == 2
    assert [item["id"] for item in body["items"]] == [fresh["id"], overdue["id"]]


def test_due_limit(client, patched_store) -> None:
    for word in ("un", "deux", "trois"):
        _add(patched_store, word)

    body = client.get("/api/review/due", params={"limit": 2}).json()

    assert len(body["items"]) == 2
    assert body["total_due"] == 3
    assert client.get("/api/review/due", params={"limit": 0}).status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_record_outcome_reschedules_card(client, patched_store) -> None:
    entry = _add(patched_store, "merci", srs_level=2)
    before = datetime.now(UTC)

    response = client.post(f"/api/review/{entry['id']}", json={"outcome": "easy"})

    assert response.status_code == HTTPStatus.OK
    body = response.json()
    assert body["previous_level"] == 2
    assert body["srs_level"] == 4
    next_review = datetime.fromisoformat(body["next_review"])
    assert next_review >= before + timedelta(days=SRS_INTERVAL_DAYS[4])
    assert patched_store.get_vocabulary(entry["id"])["srs_level"] == 4


def test_record_with_correct_flag(client, patched_store) -> None:
    entry = _add(patched_store, "oui", srs_level=3)

    wrong = client.post(f"/api/review/{entry['id']}", json={"correct": False}).json()
    assert wrong["srs_level"] == 2

    right = client.post(f"/api/review/{entry['id']}", json={"correct": True}).json()
    assert right["srs_level"] == 3


def test_invalid_outcome_is_rejected(client, patched_store) -> None:
    entry = _add(patched_store, "non")

    assert client.post(f"/api/review/{entry['id']}", json={"outcome": "perfect"}).status_code == (
        HTTPStatus.UNPROCESSABLE_ENTITY
    )
    assert client.post(f"/api/review/{entry['id']}", json={}).status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert patched_store.get_vocabulary(entry["id"])["last_reviewed"] is None


def test_unknown_entry_returns_404(client) -> None:
    response = client.post("/api/review/missing", json={"outcome": "good"})

    assert response.status_code == HTTPStatus.NOT_FOUND


def test_persistence_failure_returns_503_and_keeps_state(client, patched_store, monkeypatch) -> None:
    entry = _add(patched_store, "peut-être", srs_level=1)

    def _fail(*args, **kwargs):
        raise DeadlineExceeded("firestore timeout")

    monkeypatch.setattr(patched_store, "update_vocabulary", _fail)

    response = client.post(f"/api/review/{entry['id']}", json={"outcome": "good"})

    assert response.status_code == HTTPStatus.SERVICE_UNAVAILABLE
    assert patched_store.get_vocabulary(entry["id"])["srs_level"] == 1


def test_intervals_and_stats(client, patched_store) -> None:
    _add(patched_store, "a")
    _add(patched_store, "b", srs_level=5, next_review=(datetime.now(UTC) + timedelta(days=30)).isoformat())

    intervals = client.get("/api/review/intervals").json()
    assert intervals == {"intervals": [0, 1, 3, 7, 14, 30, 60, 90], "max_level": 7}

    stats = client.get("/api/review/stats").json()
    assert stats == {"total": 2, "due_now": 1, "levels": {"0": 1, "5": 1}}


def test_review_requires_session_when_auth_enabled(auth_client) -> None:
    assert auth_client.get("/api/review/due").status_code == HTTPStatus.UNAUTHORIZED
    assert auth_client.post("/api/review/x", json={"outcome": "good"}).status_code == HTTPStatus.UNAUTHORIZED
