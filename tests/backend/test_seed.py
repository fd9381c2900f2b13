"""JSON シードファイルから Firestore へ投入する CLI のテスト。"""

from __future__ import annotations

import json
from pathlib import Path

from parlons.seed import load_seed_items, main, seed_from_directory


def _write(path: Path, payload: object) -> None:
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


def _seed_dir(tmp_path: Path) -> Path:
    _write(
        tmp_path / "vocabulary.json",
        {
            "entries": [
                {"id": "1", "french": "la pomme", "english": "the apple", "category": "Food", "srsLevel": 2},
                {"id": "2", "french": "le pain", "english": "the bread", "category": "Food"},
                {"french": "", "english": "skipped"},
            ]
        },
    )
    _write(
        tmp_path / "grammar.json",
        {
            "notes": [
                {
                    "title": "Articles",
                    "explanation": "le, la, les",
                    "category": "Nouns",
                    "examples": [{"french": "La pomme", "english": "The apple", "hiddenParts": ["La"]}],
                }
            ]
        },
    )
    _write(
        tmp_path / "stories.json",
        {
            "stories": [
                {
                    "title": "Le pique-nique",
                    "level": "A1",
                    "content": "On mange la pomme et le pain.",
                    "vocabFrenchWords": ["la pomme", "le fromage"],
                    "comprehensionQuestions": [
                        {"question": "Que mange-t-on ?", "options": ["du pain", "du riz"], "correctAnswerIndex": 0}
                    ],
                }
            ]
        },
    )
    return tmp_path


def test_seed_from_directory_loads_every_collection(tmp_path, app_store) -> None:
    counts = seed_from_directory(_seed_dir(tmp_path), app_store, user_id="learner")

    assert counts == {"vocabulary": 2, "grammar_notes": 1, "stories": 1, "fun_phrases": 0}
    entries = {entry["french"]: entry for entry in app_store.list_vocabulary("learner")}
    assert entries["la pomme"]["srs_level"] == 2
    assert entries["le pain"]["srs_level"] == 0
    assert app_store.list_grammar_notes()[0]["examples"][0]["hidden_parts"] == ["La"]

    story = app_store.list_stories()[0]
    assert story["vocabulary_highlights"] == [entries["la pomme"]["id"]]
    assert story["comprehension_questions"][0]["correct_answer_index"] == 0


def test_items_without_required_text_are_skipped_and_not_counted(tmp_path, app_store) -> None:
    _write(
        tmp_path / "grammar.json",
        {
            "notes": [
                {"title": "Négation", "explanation": "ne ... pas", "category": "Verbs"},
                {"title": "", "explanation": "no title", "category": "Verbs"},
                {"title": "No category", "explanation": "x", "category": "   "},
            ]
        },
    )
    _write(
        tmp_path / "stories.json",
        {"stories": [{"title": " ", "level": "A1", "content": "..."}]},
    )
    _write(
        tmp_path / "funstuff.json",
        {
            "phrases": [
                {"phrase": "Ça roule", "meaning": "All good", "type": "slang"},
                {"phrase": "Ouf", "meaning": "", "type": "slang"},
            ]
        },
    )

    counts = seed_from_directory(tmp_path, app_store)

    assert counts == {"vocabulary": 0, "grammar_notes": 1, "stories": 0, "fun_phrases": 1}
    assert [note["title"] for note in app_store.list_grammar_notes()] == ["Négation"]
    assert app_store.list_stories() == []


def test_missing_and_invalid_files_are_skipped(tmp_path, app_store) -> None:
    (tmp_path / "grammar.json").write_text("{not json", encoding="utf-8")

    assert load_seed_items(tmp_path / "grammar.json", "notes") == []
    assert load_seed_items(tmp_path / "vocabulary.json", "entries") == []
    assert seed_from_directory(tmp_path, app_store) == {
        "vocabulary": 0,
        "grammar_notes": 0,
        "stories": 0,
        "fun_phrases": 0,
    }


def test_reset_replaces_existing_documents(tmp_path, app_store) -> None:
    data_dir = _seed_dir(tmp_path)
    seed_from_directory(data_dir, app_store, user_id="learner")

    seed_from_directory(data_dir, app_store, user_id="learner", reset=True)

    assert len(app_store.list_vocabulary("learner")) == 2
    assert len(app_store.list_stories()) == 1


def test_seeded_vocabulary_defaults_to_local_user(tmp_path, app_store) -> None:
    from parlons.config import settings

    seed_from_directory(_seed_dir(tmp_path), app_store)

    assert len(app_store.list_vocabulary(settings.local_user_id)) == 2


def test_main_uses_application_store(tmp_path, patched_store, capsys) -> None:
    exit_code = main(["--data-dir", str(_seed_dir(tmp_path)), "--user-id", "cli-user"])

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out)["vocabulary"] == 2
    assert len(patched_store.list_vocabulary("cli-user")) == 2


def test_main_rejects_missing_directory(tmp_path) -> None:
    assert main(["--data-dir", str(tmp_path / "nope")]) == 1
