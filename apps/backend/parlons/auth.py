from __future__ import annotations

import uuid
from datetime import UTC, datetime

import bcrypt
from fastapi import HTTPException, Request, status
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from .config import settings
from .logging import logger
from .store import store

_SESSION_SALT = "parlons.session"


# bcrypt only looks at the first 72 bytes; 5.x rejects longer input.
MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a plain-text password with bcrypt using the configured cost factor."""

    salt = bcrypt.gensalt(rounds=settings.password_hash_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password against a stored bcrypt hash.

    壊れたハッシュ（空文字や非 bcrypt 形式）は照合失敗として扱う。
    """

    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _build_serializer() -> URLSafeTimedSerializer:
    """Construct a serializer for signing and verifying session tokens."""

    secret = settings.session_secret_key.strip()
    if not secret:
        raise RuntimeError("SESSION_SECRET_KEY is not configured")
    return URLSafeTimedSerializer(secret, salt=_SESSION_SALT)


def session_max_age() -> int:
    """Return the configured session lifetime in seconds (at least one minute)."""

    return max(60, int(settings.session_max_age_seconds or 60 * 60 * 24 * 30))


def issue_session_token(user_id: str) -> str:
    """Generate a signed session token bound to the user id."""

    serializer = _build_serializer()
    payload = {
        "sid": uuid.uuid4().hex,
        "sub": user_id,
        "issued_at": datetime.now(UTC).replace(microsecond=0).isoformat(),
    }
    return serializer.dumps(payload)


def verify_session_token(token: str) -> dict:
    """Decode a signed session token and return the embedded payload."""

    serializer = _build_serializer()
    return serializer.loads(token, max_age=session_max_age())


def _session_log_context(
    request: Request, *, reason: str, user_id: str | None
) -> dict[str, object]:
    """Compose structured log context aligned with the access log fields."""

    client_ip = request.client.host if request.client else "unknown"
    return {
        "user_id": user_id,
        "reason": reason,
        "path": request.url.path,
        "client_ip": client_ip,
        "user_agent": request.headers.get("user-agent"),
        "request_id": getattr(request.state, "request_id", None),
    }


def read_session_cookie(request: Request, cookie_name: str) -> str | None:
    """Read the session cookie, falling back to the raw header.

    他の Cookie が RFC 非準拠だと `request.cookies` が空になることがあるため、
    その場合は `Cookie` ヘッダーを `;` 区切りで手動分解する。
    """

    value = request.cookies.get(cookie_name)
    if value:
        return value

    raw_header = request.headers.get("cookie")
    if not raw_header:
        return None
    for part in raw_header.split(";"):
        part = part.strip()
        if not part or "=" not in part:
            continue
        name, raw_value = part.split("=", 1)
        if name.strip() == cookie_name:
            return raw_value.strip()
    return None


def _local_user() -> dict[str, str]:
    return {
        "id": settings.local_user_id,
        "name": "Local learner",
        "email": "",
        "created_at": "",
        "last_login_at": "",
    }


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


async def get_current_user(request: Request) -> dict[str, str]:
    """Validate the session cookie and attach the authenticated user to the request state.

    With ``DISABLE_SESSION_AUTH`` every request acts as the local learner.
    """

    if settings.disable_session_auth:
        user = _local_user()
        request.state.user = user
        request.state.user_id = user["id"]
        return user

    cookie_name = settings.session_cookie_name or "parlons_session"
    raw_token = read_session_cookie(request, cookie_name)
    if not raw_token:
        logger.warning(
            "session_validation_failed",
            **_session_log_context(request, reason="missing_cookie", user_id=None),
        )
        raise _unauthorized("Session cookie is missing")

    try:
        payload = verify_session_token(raw_token)
    except SignatureExpired as exc:
        logger.warning(
            "session_validation_failed",
            **_session_log_context(request, reason="expired", user_id=None),
        )
        raise _unauthorized("Session expired") from exc
    except BadSignature as exc:
        logger.warning(
            "session_validation_failed",
            **_session_log_context(request, reason="bad_signature", user_id=None),
        )
        raise _unauthorized("Invalid session token") from exc
    except RuntimeError as exc:
        logger.error(
            "session_validation_failed",
            **_session_log_context(request, reason="configuration_error", user_id=None),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session configuration error",
        ) from exc

    user_id = payload.get("sub") if isinstance(payload, dict) else None
    if not user_id:
        logger.warning(
            "session_validation_failed",
            **_session_log_context(request, reason="missing_sub", user_id=None),
        )
        raise _unauthorized("Invalid session payload")

    user = store.get_user(user_id)
    if user is None:
        logger.warning(
            "session_validation_failed",
            **_session_log_context(request, reason="user_not_found", user_id=user_id),
        )
        raise _unauthorized("User not found")

    request.state.user = user
    request.state.user_id = user_id
    return user
