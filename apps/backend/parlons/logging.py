"""Logging setup and sanitisation helpers.

structlog を JSON 出力で初期化し、パスワードやセッショントークンなどの
機密値をログ出力前にマスクする。
"""

from typing import Any

import logging
import structlog
from structlog import contextvars as structlog_contextvars
from .config import settings


_SENSITIVE_KEYWORDS = ("password", "token", "secret", "cookie", "authorization")
_MASK_PLACEHOLDER = "***"


def _mask_secret_value(raw: object) -> str:
    """Return a masked representation of a secret-like value.

    短い値は `***`、長い値は先頭4文字と末尾4文字だけを残す。
    """

    if raw is None:
        return _MASK_PLACEHOLDER
    text = str(raw).strip()
    if len(text) <= 8:
        return _MASK_PLACEHOLDER
    return f"{text[:4]}…{text[-4:]}"


def _is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(keyword in lowered for keyword in _SENSITIVE_KEYWORDS)


def _sanitize_event_dict(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Mask sensitive fields (recursively) and scrub the session secret from strings."""

    session_secret = (settings.session_secret_key or "").strip()

    def _sanitize_value(value: Any, key_hint: str | None = None) -> Any:
        if isinstance(value, dict):
            return {k: _sanitize_value(v, str(k)) for k, v in value.items()}
        if key_hint and _is_sensitive_key(key_hint):
            return _mask_secret_value(value)
        if isinstance(value, str) and session_secret and session_secret in value:
            return value.replace(session_secret, _mask_secret_value(session_secret))
        return value

    for key, value in list(event_dict.items()):
        if key == "event":
            continue
        event_dict[key] = _sanitize_value(value, str(key))
    return event_dict


def configure_logging() -> None:
    """Configure structlog for application-wide JSON logging.

    標準 logging を INFO で初期化し、structlog で ISO タイムスタンプと
    JSON 形式の出力を有効化する。
    """
    # uvicorn 等の既存ハンドラを上書きし、出力をメッセージ本文(JSON)のみに揃える。
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        handlers=[logging.StreamHandler()],
        force=True,
    )
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog_contextvars.merge_contextvars,
            _sanitize_event_dict,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
