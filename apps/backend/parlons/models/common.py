from __future__ import annotations


def require_text(value: str) -> str:
    """Strip surrounding whitespace and reject values that end up empty.

    空白のみの文字列は保存時に空文字へ潰れてしまうため、入力段階で 422 にする。
    """

    trimmed = value.strip()
    if not trimmed:
        raise ValueError("must not be blank")
    return trimmed
