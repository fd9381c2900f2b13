from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from google.cloud import firestore

from ..logging import logger
from ..srs import clamp_level
from .common import clean_text, matches_search, now_iso, optional_text

DEFAULT_VOCABULARY_CATEGORY = "Uncategorized"
STORY_LEVELS: tuple[str, ...] = ("A1", "A2", "B1", "B2", "C1", "C2")
FUN_PHRASE_TYPES: tuple[str, ...] = ("idiom", "slang", "proverb", "flirt")

# Fields a vocabulary update may touch. Ownership and timestamps stay server-side.
_VOCABULARY_MUTABLE_FIELDS = frozenset({
    "french",
    "english",
    "example",
    "notes",
    "category",
    "srs_level",
    "last_reviewed",
    "next_review",
})
_GRAMMAR_MUTABLE_FIELDS = frozenset({"title", "explanation", "examples", "category"})


class DuplicateEmailError(ValueError):
    """Raised when registering an email address that already has an account."""


def _new_id() -> str:
    return uuid.uuid4().hex


class FirestoreBaseStore:
    """Firestore クライアント共通のヘルパー。"""

    def __init__(self, client: firestore.Client):
        self._client = client

    @staticmethod
    def _delete_all(collection: firestore.CollectionReference) -> int:
        deleted = 0
        for doc in list(collection.stream()):
            doc.reference.delete()
            deleted += 1
        return deleted


class FirestoreUserStore(FirestoreBaseStore):
    """Registered learners. The password hash never leaves this class."""

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._users = client.collection("users")

    @staticmethod
    def _public(doc_id: str, data: Mapping[str, Any]) -> dict[str, str]:
        return {
            "id": doc_id,
            "name": str(data.get("name") or ""),
            "email": str(data.get("email") or ""),
            "created_at": str(data.get("created_at") or ""),
            "last_login_at": str(data.get("last_login_at") or ""),
        }

    def _find_by_email(self, email: str) -> firestore.DocumentSnapshot | None:
        target = clean_text(email).lower()
        query = self._users.where("email_lower", "==", target).limit(1)
        for doc in query.stream():
            return doc
        return None

    def create_user(self, *, name: str, email: str, password_hash: str) -> dict[str, str]:
        normalised_email = clean_text(email)
        if self._find_by_email(normalised_email) is not None:
            raise DuplicateEmailError(f"user with email {normalised_email!r} already exists")
        user_id = _new_id()
        now = now_iso()
        payload = {
            "name": clean_text(name),
            "email": normalised_email,
            "email_lower": normalised_email.lower(),
            "password_hash": password_hash,
            "created_at": now,
            "last_login_at": "",
        }
        self._users.document(user_id).set(payload)
        return self._public(user_id, payload)

    def get_user(self, user_id: str) -> dict[str, str] | None:
        doc = self._users.document(user_id).get()
        if not doc.exists:
            return None
        return self._public(doc.id, doc.to_dict() or {})

    def get_user_by_email(self, email: str) -> dict[str, str] | None:
        doc = self._find_by_email(email)
        if doc is None:
            return None
        return self._public(doc.id, doc.to_dict() or {})

    def get_credentials_by_email(self, email: str) -> tuple[dict[str, str], str] | None:
        """Return the public user record together with the stored password hash."""

        doc = self._find_by_email(email)
        if doc is None:
            return None
        data = doc.to_dict() or {}
        return self._public(doc.id, data), str(data.get("password_hash") or "")

    def record_user_login(self, user_id: str, login_at: datetime | None = None) -> dict[str, str] | None:
        login_time = (login_at or datetime.now(UTC)).replace(microsecond=0)
        doc_ref = self._users.document(user_id)
        if not doc_ref.get().exists:
            return None
        doc_ref.update({"last_login_at": login_time.isoformat()})
        return self.get_user(user_id)


class FirestoreVocabularyStore(FirestoreBaseStore):
    """Per-user vocabulary entries including their review state."""

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._entries = client.collection("vocabulary")

    @staticmethod
    def _to_entry(doc_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": doc_id,
            "user_id": str(data.get("user_id") or ""),
            "french": str(data.get("french") or ""),
            "english": str(data.get("english") or ""),
            "example": str(data.get("example") or ""),
            "notes": str(data.get("notes") or ""),
            "category": str(data.get("category") or DEFAULT_VOCABULARY_CATEGORY),
            # 旧データの範囲外レベルも読み出し時に矯正する。
            "srs_level": clamp_level(data.get("srs_level")),
            "last_reviewed": data.get("last_reviewed") or None,
            "next_review": data.get("next_review") or None,
            "created_at": str(data.get("created_at") or ""),
            "updated_at": str(data.get("updated_at") or ""),
        }

    def create_vocabulary(self, user_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        entry_id = _new_id()
        now = now_iso()
        data = {
            "user_id": user_id,
            "french": clean_text(payload.get("french")),
            "english": clean_text(payload.get("english")),
            "example": clean_text(payload.get("example")),
            "notes": clean_text(payload.get("notes")),
            "category": clean_text(payload.get("category")) or DEFAULT_VOCABULARY_CATEGORY,
            "srs_level": 0,
            "last_reviewed": None,
            "next_review": None,
            "created_at": str(payload.get("created_at") or now),
            "updated_at": now,
        }
        self._entries.document(entry_id).set(data)
        return self._to_entry(entry_id, data)

    def list_vocabulary(
        self,
        user_id: str,
        *,
        category: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        query = self._entries.where("user_id", "==", user_id)
        if category:
            query = query.where("category", "==", category)
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        entries: list[dict[str, Any]] = []
        for doc in query.stream():
            entry = self._to_entry(doc.id, doc.to_dict() or {})
            if matches_search(entry, search, ("french", "english", "example")):
                entries.append(entry)
        return entries

    def list_vocabulary_categories(self, user_id: str) -> list[str]:
        categories = {entry["category"] for entry in self.list_vocabulary(user_id)}
        return sorted(categories, key=str.lower)

    def get_vocabulary(self, entry_id: str, user_id: str | None = None) -> dict[str, Any] | None:
        doc = self._entries.document(entry_id).get()
        if not doc.exists:
            return None
        entry = self._to_entry(doc.id, doc.to_dict() or {})
        if user_id is not None and entry["user_id"] != user_id:
            return None
        return entry

    def get_vocabulary_many(
        self, entry_ids: Iterable[str], user_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Fetch entries by id, preserving the requested order.

        Missing ids, and ids owned by someone other than `user_id` when given, are skipped.
        """

        entries: list[dict[str, Any]] = []
        seen: set[str] = set()
        for entry_id in entry_ids:
            if not entry_id or entry_id in seen:
                continue
            seen.add(entry_id)
            entry = self.get_vocabulary(entry_id, user_id)
            if entry is not None:
                entries.append(entry)
        return entries

    def update_vocabulary(
        self,
        entry_id: str,
        fields: Mapping[str, Any],
        user_id: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply a partial update and return the stored entry (None when not found)."""

        doc_ref = self._entries.document(entry_id)
        snapshot = doc_ref.get()
        if not snapshot.exists:
            return None
        current = snapshot.to_dict() or {}
        if user_id is not None and str(current.get("user_id") or "") != user_id:
            return None

        updates: dict[str, Any] = {}
        for key, value in fields.items():
            if key not in _VOCABULARY_MUTABLE_FIELDS:
                continue
            if key == "srs_level":
                updates[key] = clamp_level(value)
            elif key in ("last_reviewed", "next_review"):
                updates[key] = value.isoformat() if isinstance(value, datetime) else (value or None)
            elif key in ("french", "english"):
                cleaned = clean_text(value)
                if cleaned:
                    updates[key] = cleaned
            elif key == "category":
                updates[key] = clean_text(value) or DEFAULT_VOCABULARY_CATEGORY
            else:
                updates[key] = clean_text(value)
        updates["updated_at"] = now_iso()
        doc_ref.update(updates)
        current.update(updates)
        return self._to_entry(entry_id, current)

    def delete_vocabulary(self, entry_id: str, user_id: str | None = None) -> bool:
        doc_ref = self._entries.document(entry_id)
        snapshot = doc_ref.get()
        if not snapshot.exists:
            return False
        if user_id is not None and str((snapshot.to_dict() or {}).get("user_id") or "") != user_id:
            return False
        doc_ref.delete()
        return True

    def clear(self) -> int:
        return self._delete_all(self._entries)


def _normalise_grammar_examples(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return []
    examples: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        french = clean_text(item.get("french"))
        english = clean_text(item.get("english"))
        if not french or not english:
            continue
        hidden = item.get("hidden_parts") or item.get("hiddenParts") or []
        examples.append(
            {
                "french": french,
                "english": english,
                "hidden_parts": [clean_text(part) for part in hidden if clean_text(part)],
            }
        )
    return examples


class FirestoreGrammarStore(FirestoreBaseStore):
    """Shared grammar notes."""

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._notes = client.collection("grammar_notes")

    @staticmethod
    def _to_note(doc_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": doc_id,
            "title": str(data.get("title") or ""),
            "explanation": str(data.get("explanation") or ""),
            "category": str(data.get("category") or ""),
            "examples": _normalise_grammar_examples(data.get("examples")),
            "created_at": str(data.get("created_at") or ""),
        }

    def list_grammar_notes(
        self, *, category: str | None = None, search: str | None = None
    ) -> list[dict[str, Any]]:
        notes = [self._to_note(doc.id, doc.to_dict() or {}) for doc in self._notes.stream()]
        if category:
            notes = [note for note in notes if note["category"] == category]
        notes = [note for note in notes if matches_search(note, search, ("title", "explanation"))]
        notes.sort(key=lambda note: (note["category"].lower(), note["title"].lower()))
        return notes

    def get_grammar_note(self, note_id: str) -> dict[str, Any] | None:
        doc = self._notes.document(note_id).get()
        if not doc.exists:
            return None
        return self._to_note(doc.id, doc.to_dict() or {})

    def create_grammar_note(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        note_id = _new_id()
        data = {
            "title": clean_text(payload.get("title")),
            "explanation": clean_text(payload.get("explanation")),
            "category": clean_text(payload.get("category")),
            "examples": _normalise_grammar_examples(payload.get("examples")),
            "created_at": str(payload.get("created_at") or now_iso()),
        }
        self._notes.document(note_id).set(data)
        return self._to_note(note_id, data)

    def update_grammar_note(self, note_id: str, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        doc_ref = self._notes.document(note_id)
        snapshot = doc_ref.get()
        if not snapshot.exists:
            return None
        updates: dict[str, Any] = {}
        for key, value in fields.items():
            if key not in _GRAMMAR_MUTABLE_FIELDS or value is None:
                continue
            if key == "examples":
                updates[key] = _normalise_grammar_examples(value)
            else:
                cleaned = clean_text(value)
                if cleaned:
                    updates[key] = cleaned
        if updates:
            doc_ref.update(updates)
        merged = dict(snapshot.to_dict() or {})
        merged.update(updates)
        return self._to_note(note_id, merged)

    def delete_grammar_note(self, note_id: str) -> bool:
        doc_ref = self._notes.document(note_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    def clear(self) -> int:
        return self._delete_all(self._notes)


def _normalise_questions(raw: Any) -> list[dict[str, Any]]:
    """Keep only well-formed comprehension questions (answer index within options).

    A blank option drops the whole question; removing just the option would shift the answer.
    """

    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return []
    questions: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        question = clean_text(item.get("question"))
        options = [clean_text(opt) for opt in item.get("options") or []]
        if not all(options):
            continue
        raw_index = item.get("correct_answer_index", item.get("correctAnswerIndex"))
        try:
            index = int(raw_index)
        except (TypeError, ValueError):
            continue
        if not question or not options or not 0 <= index < len(options):
            continue
        questions.append({"question": question, "options": options, "correct_answer_index": index})
    return questions


class FirestoreStoryStore(FirestoreBaseStore):
    """Graded-reading stories. Vocabulary highlights are stored as entry ids."""

    def __init__(self, client: firestore.Client, vocabulary: FirestoreVocabularyStore):
        super().__init__(client)
        self._stories = client.collection("stories")
        self._vocabulary = vocabulary

    @staticmethod
    def _to_story(doc_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": doc_id,
            "title": str(data.get("title") or ""),
            "level": str(data.get("level") or ""),
            "content": str(data.get("content") or ""),
            "translation": optional_text(data.get("translation")),
            "vocabulary_highlights": [
                str(item) for item in data.get("vocabulary_highlights") or [] if item
            ],
            "comprehension_questions": _normalise_questions(data.get("comprehension_questions")),
            "created_at": str(data.get("created_at") or ""),
        }

    def list_stories(
        self, *, level: str | None = None, search: str | None = None
    ) -> list[dict[str, Any]]:
        query = self._stories.where("level", "==", level) if level else self._stories
        stories = [self._to_story(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        stories = [story for story in stories if matches_search(story, search, ("title",))]
        stories.sort(key=lambda story: (story["level"], story["title"].lower()))
        return stories

    def get_story(self, story_id: str) -> dict[str, Any] | None:
        """Fetch a story with its vocabulary highlights resolved to entries.

        ハイライトは作成者（owner_id）の語彙だけを解決する。作成者不明の物語では解決しない。
        """

        doc = self._stories.document(story_id).get()
        if not doc.exists:
            return None
        data = doc.to_dict() or {}
        story = self._to_story(doc.id, data)
        highlight_ids = story["vocabulary_highlights"]
        owner_id = optional_text(data.get("owner_id"))
        story["vocabulary_highlights"] = (
            self._vocabulary.get_vocabulary_many(highlight_ids, owner_id) if owner_id else []
        )
        if len(story["vocabulary_highlights"]) != len(set(highlight_ids)):
            logger.warning(
                "story_highlights_missing",
                story_id=story_id,
                requested=len(set(highlight_ids)),
                resolved=len(story["vocabulary_highlights"]),
            )
        return story

    def _owned_highlights(self, raw: Any, owner_id: str | None) -> list[str]:
        """Keep highlight ids that name entries owned by `owner_id` (deduplicated, ordered)."""

        if not owner_id:
            return []
        requested = [str(item) for item in raw or [] if item]
        owned = [entry["id"] for entry in self._vocabulary.get_vocabulary_many(requested, owner_id)]
        if len(owned) != len(set(requested)):
            logger.warning(
                "story_highlights_dropped",
                owner_id=owner_id,
                requested=len(set(requested)),
                kept=len(owned),
            )
        return owned

    def create_story(
        self, payload: Mapping[str, Any], owner_id: str | None = None
    ) -> dict[str, Any]:
        """Store a story. Highlights not owned by `owner_id` are dropped."""

        level = clean_text(payload.get("level")).upper()
        if level not in STORY_LEVELS:
            raise ValueError(f"unknown story level {level!r}")
        story_id = _new_id()
        data = {
            "title": clean_text(payload.get("title")),
            "level": level,
            "content": str(payload.get("content") or ""),
            "translation": optional_text(payload.get("translation")),
            "vocabulary_highlights": self._owned_highlights(
                payload.get("vocabulary_highlights"), owner_id
            ),
            "comprehension_questions": _normalise_questions(payload.get("comprehension_questions")),
            "owner_id": owner_id,
            "created_at": str(payload.get("created_at") or now_iso()),
        }
        self._stories.document(story_id).set(data)
        return self._to_story(story_id, data)

    def delete_story(self, story_id: str) -> bool:
        doc_ref = self._stories.document(story_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    def clear(self) -> int:
        return self._delete_all(self._stories)


class FirestoreFunPhraseStore(FirestoreBaseStore):
    """Idioms, slang, proverbs and flirting lines."""

    def __init__(self, client: firestore.Client):
        super().__init__(client)
        self._phrases = client.collection("fun_phrases")

    @staticmethod
    def _to_phrase(doc_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "id": doc_id,
            "phrase": str(data.get("phrase") or ""),
            "meaning": str(data.get("meaning") or ""),
            "type": str(data.get("type") or ""),
            "literal_translation": optional_text(data.get("literal_translation")),
            "example": optional_text(data.get("example")),
            "notes": optional_text(data.get("notes")),
            "created_at": str(data.get("created_at") or ""),
        }

    def list_fun_phrases(
        self, *, phrase_type: str | None = None, search: str | None = None
    ) -> list[dict[str, Any]]:
        query = self._phrases.where("type", "==", phrase_type) if phrase_type else self._phrases
        phrases = [self._to_phrase(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        phrases = [
            phrase
            for phrase in phrases
            if matches_search(phrase, search, ("phrase", "meaning", "example"))
        ]
        phrases.sort(key=lambda phrase: (phrase["type"], phrase["phrase"].lower()))
        return phrases

    def create_fun_phrase(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        phrase_type = clean_text(payload.get("type")).lower()
        if phrase_type not in FUN_PHRASE_TYPES:
            raise ValueError(f"unknown fun phrase type {phrase_type!r}")
        phrase_id = _new_id()
        data = {
            "phrase": clean_text(payload.get("phrase")),
            "meaning": clean_text(payload.get("meaning")),
            "type": phrase_type,
            "literal_translation": optional_text(
                payload.get("literal_translation", payload.get("literalTranslation"))
            ),
            "example": optional_text(payload.get("example")),
            "notes": optional_text(payload.get("notes")),
            "created_at": str(payload.get("created_at") or now_iso()),
        }
        self._phrases.document(phrase_id).set(data)
        return self._to_phrase(phrase_id, data)

    def delete_fun_phrase(self, phrase_id: str) -> bool:
        doc_ref = self._phrases.document(phrase_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    def clear(self) -> int:
        return self._delete_all(self._phrases)


class AppFirestoreStore:
    """Firestore 版のアプリ永続化ストア。"""

    def __init__(self, *, client: firestore.Client | None = None) -> None:
        self._client = client or firestore.Client()
        self.users = FirestoreUserStore(self._client)
        self.vocabulary = FirestoreVocabularyStore(self._client)
        self.grammar = FirestoreGrammarStore(self._client)
        self.stories = FirestoreStoryStore(self._client, self.vocabulary)
        self.fun_phrases = FirestoreFunPhraseStore(self._client)

    # --- Users ---
    def create_user(self, *, name: str, email: str, password_hash: str) -> dict[str, str]:
        return self.users.create_user(name=name, email=email, password_hash=password_hash)

    def get_user(self, user_id: str) -> dict[str, str] | None:
        return self.users.get_user(user_id)

    def get_user_by_email(self, email: str) -> dict[str, str] | None:
        return self.users.get_user_by_email(email)

    def get_credentials_by_email(self, email: str) -> tuple[dict[str, str], str] | None:
        return self.users.get_credentials_by_email(email)

    def record_user_login(
        self, user_id: str, login_at: datetime | None = None
    ) -> dict[str, str] | None:
        return self.users.record_user_login(user_id, login_at)

    # --- Vocabulary ---
    def create_vocabulary(self, user_id: str, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.vocabulary.create_vocabulary(user_id, payload)

    def list_vocabulary(
        self,
        user_id: str,
        *,
        category: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        return self.vocabulary.list_vocabulary(user_id, category=category, search=search)

    def list_vocabulary_categories(self, user_id: str) -> list[str]:
        return self.vocabulary.list_vocabulary_categories(user_id)

    def get_vocabulary(self, entry_id: str, user_id: str | None = None) -> dict[str, Any] | None:
        return self.vocabulary.get_vocabulary(entry_id, user_id)

    def get_vocabulary_many(
        self, entry_ids: Iterable[str], user_id: str | None = None
    ) -> list[dict[str, Any]]:
        return self.vocabulary.get_vocabulary_many(entry_ids, user_id)

    def update_vocabulary(
        self,
        entry_id: str,
        fields: Mapping[str, Any],
        user_id: str | None = None,
    ) -> dict[str, Any] | None:
        return self.vocabulary.update_vocabulary(entry_id, fields, user_id)

    def delete_vocabulary(self, entry_id: str, user_id: str | None = None) -> bool:
        return self.vocabulary.delete_vocabulary(entry_id, user_id)

    # --- Grammar ---
    def list_grammar_notes(
        self, *, category: str | None = None, search: str | None = None
    ) -> list[dict[str, Any]]:
        return self.grammar.list_grammar_notes(category=category, search=search)

    def get_grammar_note(self, note_id: str) -> dict[str, Any] | None:
        return self.grammar.get_grammar_note(note_id)

    def create_grammar_note(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.grammar.create_grammar_note(payload)

    def update_grammar_note(self, note_id: str, fields: Mapping[str, Any]) -> dict[str, Any] | None:
        return self.grammar.update_grammar_note(note_id, fields)

    def delete_grammar_note(self, note_id: str) -> bool:
        return self.grammar.delete_grammar_note(note_id)

    # --- Stories ---
    def list_stories(
        self, *, level: str | None = None, search: str | None = None
    ) -> list[dict[str, Any]]:
        return self.stories.list_stories(level=level, search=search)

    def get_story(self, story_id: str) -> dict[str, Any] | None:
        return self.stories.get_story(story_id)

    def create_story(
        self, payload: Mapping[str, Any], owner_id: str | None = None
    ) -> dict[str, Any]:
        return self.stories.create_story(payload, owner_id)

    def delete_story(self, story_id: str) -> bool:
        return self.stories.delete_story(story_id)

    # --- Fun phrases ---
    def list_fun_phrases(
        self, *, phrase_type: str | None = None, search: str | None = None
    ) -> list[dict[str, Any]]:
        return self.fun_phrases.list_fun_phrases(phrase_type=phrase_type, search=search)

    def create_fun_phrase(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        return self.fun_phrases.create_fun_phrase(payload)

    def delete_fun_phrase(self, phrase_id: str) -> bool:
        return self.fun_phrases.delete_fun_phrase(phrase_id)
