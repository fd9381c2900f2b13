from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any


def now_iso() -> str:
    return datetime.now(UTC).isoformat()


def clean_text(value: Any) -> str:
    """Trim a user supplied string; None and non-strings become ''."""

    if value is None:
        return ""
    return str(value).strip()


def optional_text(value: Any) -> str | None:
    cleaned = clean_text(value)
    return cleaned or None


def matches_search(doc: Mapping[str, Any], search: str | None, fields: Iterable[str]) -> bool:
    """Case-insensitive substring match over the given document fields.

    検索語が空なら常に True。UI 側の絞り込みと同じく部分一致で判定する。
    """

    needle = clean_text(search).lower()
    if not needle:
        return True
    for field in fields:
        haystack = doc.get(field)
        if isinstance(haystack, str) and needle in haystack.lower():
            return True
    return False
