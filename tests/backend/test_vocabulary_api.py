"""語彙 API（/api/vocabulary）の結合テスト。"""

from __future__ import annotations

from http import HTTPStatus

from parlons.config import settings


def _create(client, **overrides):
    payload = {"french": "bonjour", "english": "hello"}
    payload.update(overrides)
    response = client.post("/api/vocabulary", json=payload)
    assert response.status_code == HTTPStatus.CREATED, response.text
    return response.json()


def test_create_entry_starts_as_new_card(client) -> None:
    entry = _create(client, example="Bonjour, Marie !", category="Greetings")

    assert entry["srs_level"] == 0
    assert entry["next_review"] is None
    assert entry["category"] == "Greetings"
    assert entry["user_id"] == settings.local_user_id


def test_create_rejects_blank_required_fields(client) -> None:
    response = client.post("/api/vocabulary/", json={"french": "   ", "english": "hello"})

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_list_filter_and_categories(client) -> None:
    _create(client, french="chat", english="cat", category="Animals")
    _create(client, french="bleu", english="blue", category="Colours")

    listed = client.get("/api/vocabulary").json()["entries"]
    assert {entry["french"] for entry in listed} == {"chat", "bleu"}

    animals = client.get("/api/vocabulary", params={"category": "Animals"}).json()["entries"]
    assert [entry["french"] for entry in animals] == ["chat"]

    searched = client.get("/api/vocabulary/", params={"search": "BLU"}).json()["entries"]
    assert [entry["french"] for entry in searched] == ["bleu"]

    categories = client.get("/api/vocabulary/categories").json()["categories"]
    assert categories == ["Animals", "Colours"]


def test_get_update_delete_round_trip(client) -> None:
    entry = _create(client)

    fetched = client.get(f"/api/vocabulary/{entry['id']}")
    assert fetched.status_code == HTTPStatus.OK
    assert fetched.json()["french"] == "bonjour"

    updated = client.put(
        f"/api/vocabulary/{entry['id']}",
        json={"notes": "informal: salut", "srs_level": 12},
    )
    assert updated.status_code == HTTPStatus.OK
    body = updated.json()
    assert body["notes"] == "informal: salut"
    assert body["srs_level"] == 7
    assert body["english"] == "hello"

    deleted = client.delete(f"/api/vocabulary/{entry['id']}")
    assert deleted.status_code == HTTPStatus.OK
    assert deleted.json() == {"success": True}
    assert client.get(f"/api/vocabulary/{entry['id']}").status_code == HTTPStatus.NOT_FOUND


def test_unknown_entry_returns_404(client) -> None:
    assert client.get("/api/vocabulary/nope").status_code == HTTPStatus.NOT_FOUND
    assert client.put("/api/vocabulary/nope", json={"notes": "x"}).status_code == HTTPStatus.NOT_FOUND
    assert client.delete("/api/vocabulary/nope").status_code == HTTPStatus.NOT_FOUND


def test_entries_of_other_users_are_invisible(client, patched_store) -> None:
    foreign = patched_store.create_vocabulary("someone-else", {"french": "secret", "english": "secret"})

    assert client.get("/api/vocabulary").json()["entries"] == []
    assert client.get(f"/api/vocabulary/{foreign['id']}").status_code == HTTPStatus.NOT_FOUND
    assert client.delete(f"/api/vocabulary/{foreign['id']}").status_code == HTTPStatus.NOT_FOUND


def test_vocabulary_requires_session_when_auth_enabled(auth_client) -> None:
    response = auth_client.get("/api/vocabulary")

    assert response.status_code == HTTPStatus.UNAUTHORIZED
