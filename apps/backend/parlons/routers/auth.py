from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from http import HTTPStatus

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

from ..auth import (
    MAX_PASSWORD_BYTES,
    get_current_user,
    hash_password,
    issue_session_token,
    session_max_age,
    verify_password,
)
from ..config import settings
from ..logging import logger
from ..models.auth import LoginRequest, RegisterRequest, RegisterResponse, UserResponse
from ..store import DuplicateEmailError, store

router = APIRouter(tags=["auth"])


def _hash_for_log(value: str | None) -> str | None:
    """Hash sensitive identifiers before logging to avoid leaking PII."""

    if not value:
        return None
    digest = hashlib.sha256(value.strip().lower().encode("utf-8")).hexdigest()
    return digest[:12]


def _attach_session_cookie(response: Response, user_id: str) -> None:
    response.set_cookie(
        key=settings.session_cookie_name or "parlons_session",
        value=issue_session_token(user_id),
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        max_age=session_max_age(),
    )


@router.post("/register", response_model=RegisterResponse, status_code=HTTPStatus.CREATED)
async def register(payload: RegisterRequest) -> JSONResponse:
    """Create an account with a bcrypt-hashed password.

    ログインは別リクエスト。登録だけではセッションクッキーを発行しない。
    """

    name = payload.name.strip()
    email = payload.email.strip()
    email_hash = _hash_for_log(email)
    if not name or not email or not payload.password:
        logger.warning("register_failed", reason="missing_fields", email_hash=email_hash)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Name, email and password are required",
        )
    if "@" not in email:
        logger.warning("register_failed", reason="invalid_email", email_hash=email_hash)
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="Invalid email address")
    if len(payload.password) < settings.password_min_length:
        logger.warning("register_failed", reason="password_too_short", email_hash=email_hash)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Password must be at least {settings.password_min_length} characters",
        )
    if len(payload.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        logger.warning("register_failed", reason="password_too_long", email_hash=email_hash)
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Password must be at most {MAX_PASSWORD_BYTES} bytes",
        )

    try:
        user = store.create_user(
            name=name,
            email=email,
            password_hash=hash_password(payload.password),
        )
    except DuplicateEmailError as exc:
        logger.warning("register_failed", reason="duplicate_email", email_hash=email_hash)
        raise HTTPException(status_code=HTTPStatus.CONFLICT, detail="User already exists") from exc

    logger.info("user_registered", user_id=user["id"], email_hash=email_hash)
    return JSONResponse(
        status_code=HTTPStatus.CREATED,
        content={"message": "User created successfully", "user": user},
    )


@router.post("/login", response_model=UserResponse)
async def login(payload: LoginRequest, request: Request) -> JSONResponse:
    """Verify credentials and issue a signed session cookie."""

    email_hash = _hash_for_log(payload.email)
    credentials = store.get_credentials_by_email(payload.email) if payload.email.strip() else None
    if credentials is None or not verify_password(payload.password, credentials[1]):
        # 未登録とパスワード不一致を区別しない。
        logger.warning("login_failed", reason="invalid_credentials", email_hash=email_hash)
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Invalid email or password")

    user_id = credentials[0]["id"]
    user = store.record_user_login(user_id, datetime.now(UTC)) or credentials[0]
    response = JSONResponse(status_code=HTTPStatus.OK, content={"user": user})
    _attach_session_cookie(response, user_id)
    request.state.user = user
    request.state.user_id = user_id
    logger.info("login_succeeded", user_id=user_id, email_hash=email_hash)
    return response


@router.post("/logout", status_code=HTTPStatus.NO_CONTENT)
async def logout(request: Request, user: dict = Depends(get_current_user)) -> Response:
    """Invalidate the session cookie on the client."""

    response = Response(status_code=HTTPStatus.NO_CONTENT)
    response.delete_cookie(
        key=settings.session_cookie_name or "parlons_session",
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    logger.info(
        "logout",
        user_id=user.get("id"),
        request_id=getattr(request.state, "request_id", None),
    )
    return response


@router.get("/me", response_model=UserResponse)
async def me(user: dict = Depends(get_current_user)) -> dict[str, dict]:
    return {"user": user}
