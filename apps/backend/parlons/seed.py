"""Load JSON seed files into Firestore.

`python -m parlons.seed --data-dir app/data [--reset] [--user-id local]`

- vocabulary.json (`entries`), grammar.json (`notes`), stories.json (`stories`),
  funstuff.json (`phrases`) を読み込む。
- ファイルが無い/壊れている場合は警告ログを出してそのコレクションをスキップする。
- ストーリーの `vocab_french_words` は同じ実行で投入した語彙の ID に解決される。
"""

from __future__ import annotations

import argparse
import json
import re
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any

from .config import settings
from .logging import configure_logging, logger
from .store.firestore_store import AppFirestoreStore

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")
_REVIEW_FIELDS = ("srs_level", "last_reviewed", "next_review")


def _missing_fields(item: Mapping[str, Any], fields: Sequence[str]) -> list[str]:
    return [field for field in fields if not str(item.get(field) or "").strip()]


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _normalise_keys(value: Any) -> Any:
    """Convert camelCase keys (as exported by the web client) to snake_case, recursively."""

    if isinstance(value, Mapping):
        return {_snake_case(str(k)): _normalise_keys(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_normalise_keys(item) for item in value]
    return value


def load_seed_items(path: Path, key: str) -> list[dict[str, Any]]:
    """Read ``path`` and return the list stored under ``key``.

    Missing or malformed files yield an empty list and a warning.
    """

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        logger.warning("seed_file_missing", path=str(path))
        return []
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("seed_file_invalid", path=str(path), error=repr(exc))
        return []
    items = raw.get(key) if isinstance(raw, Mapping) else None
    if not isinstance(items, list):
        logger.warning("seed_file_invalid", path=str(path), error=f"missing list under {key!r}")
        return []
    loaded = [_normalise_keys(item) for item in items if isinstance(item, Mapping)]
    logger.info("seed_file_loaded", path=str(path), count=len(loaded))
    return loaded


def _seed_vocabulary(
    store: AppFirestoreStore, entries: Sequence[Mapping[str, Any]], user_id: str
) -> dict[str, str]:
    """Insert vocabulary entries and return a french → id map for story highlights."""

    french_to_id: dict[str, str] = {}
    for item in entries:
        missing = _missing_fields(item, ("french", "english"))
        if missing:
            logger.warning(
                "seed_item_skipped", collection="vocabulary", reason="missing_fields", fields=missing
            )
            continue
        entry = store.create_vocabulary(user_id, item)
        review_state = {field: item[field] for field in _REVIEW_FIELDS if item.get(field) is not None}
        if review_state:
            store.update_vocabulary(entry["id"], review_state)
        french_to_id[entry["french"]] = entry["id"]
    return french_to_id


def _seed_stories(
    store: AppFirestoreStore,
    stories: Sequence[Mapping[str, Any]],
    french_to_id: Mapping[str, str],
    owner: str,
) -> int:
    count = 0
    for item in stories:
        missing = _missing_fields(item, ("title", "content"))
        if missing:
            logger.warning("seed_item_skipped", collection="stories", reason="missing_fields", fields=missing)
            continue
        payload = dict(item)
        words = payload.pop("vocab_french_words", None) or []
        highlights = list(payload.get("vocabulary_highlights") or [])
        highlights.extend(french_to_id[word] for word in words if word in french_to_id)
        payload["vocabulary_highlights"] = highlights
        try:
            store.create_story(payload, owner_id=owner)
        except ValueError as exc:
            logger.warning("seed_item_skipped", collection="stories", reason=str(exc))
            continue
        count += 1
    return count


def _seed_grammar(store: AppFirestoreStore, notes: Sequence[Mapping[str, Any]]) -> int:
    count = 0
    for item in notes:
        missing = _missing_fields(item, ("title", "explanation", "category"))
        if missing:
            logger.warning(
                "seed_item_skipped", collection="grammar_notes", reason="missing_fields", fields=missing
            )
            continue
        store.create_grammar_note(item)
        count += 1
    return count


def _seed_fun_phrases(store: AppFirestoreStore, phrases: Sequence[Mapping[str, Any]]) -> int:
    count = 0
    for item in phrases:
        missing = _missing_fields(item, ("phrase", "meaning"))
        if missing:
            logger.warning(
                "seed_item_skipped", collection="fun_phrases", reason="missing_fields", fields=missing
            )
            continue
        try:
            store.create_fun_phrase(item)
        except ValueError as exc:
            logger.warning("seed_item_skipped", collection="fun_phrases", reason=str(exc))
            continue
        count += 1
    return count


def seed_from_directory(
    data_dir: Path,
    store: AppFirestoreStore,
    *,
    reset: bool = False,
    user_id: str | None = None,
) -> dict[str, int]:
    """Seed every collection from ``data_dir`` and return the inserted counts."""

    owner = user_id or settings.local_user_id
    vocabulary = load_seed_items(data_dir / "vocabulary.json", "entries")
    grammar = load_seed_items(data_dir / "grammar.json", "notes")
    stories = load_seed_items(data_dir / "stories.json", "stories")
    phrases = load_seed_items(data_dir / "funstuff.json", "phrases")

    if reset:
        cleared = {
            "vocabulary": store.vocabulary.clear(),
            "grammar_notes": store.grammar.clear(),
            "stories": store.stories.clear(),
            "fun_phrases": store.fun_phrases.clear(),
        }
        logger.info("seed_reset", **cleared)

    french_to_id = _seed_vocabulary(store, vocabulary, owner)
    counts = {
        "vocabulary": len(french_to_id),
        "grammar_notes": _seed_grammar(store, grammar),
        "stories": _seed_stories(store, stories, french_to_id, owner),
        "fun_phrases": _seed_fun_phrases(store, phrases),
    }
    logger.info("seed_completed", data_dir=str(data_dir), user_id=owner, **counts)
    return counts


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m parlons.seed", description=__doc__)
    parser.add_argument(
        "--data-dir",
        type=Path,
        required=True,
        help="vocabulary.json / grammar.json / stories.json / funstuff.json を含むディレクトリ",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="投入前に対象コレクションの既存ドキュメントを削除する",
    )
    parser.add_argument(
        "--user-id",
        default=None,
        help="語彙の所有ユーザーID（既定: LOCAL_USER_ID）",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging()
    if not args.data_dir.is_dir():
        logger.error("seed_failed", reason="data_dir_not_found", data_dir=str(args.data_dir))
        return 1

    from .store import store

    counts = seed_from_directory(args.data_dir, store, reset=args.reset, user_id=args.user_id)
    print(json.dumps(counts, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
