from __future__ import annotations

import time
from uuid import uuid4

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import Response
from structlog import contextvars as structlog_contextvars
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from .config import settings
from .logging import configure_logging, logger
from .middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from .routers import auth as auth_router
from .routers import fun_phrases, grammar, health, review, stories, vocabulary


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Emit one structured `request_complete` log per request.

    `request_id` を ContextVar に束縛し、処理中に出たログすべてに付与する。
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:  # type: ignore[override]
        start = time.time()
        path = request.url.path
        method = request.method
        request_id = getattr(request.state, "request_id", None)
        if not request_id:
            request_id = uuid4().hex
            request.state.request_id = request_id
        structlog_contextvars.bind_contextvars(request_id=request_id)
        client_ip = request.client.host if request.client else "unknown"
        ua = request.headers.get("user-agent", "-")
        is_error = False
        status_code: int | None = None
        error_type: str | None = None
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        except Exception as exc:
            is_error = True
            status_code = 500
            error_type = exc.__class__.__name__
            raise
        finally:
            latency_ms = (time.time() - start) * 1000
            log_method = logger.error if is_error else logger.info
            log_method(
                "request_complete",
                path=path,
                method=method,
                latency_ms=latency_ms,
                is_error=is_error,
                status_code=status_code,
                error_type=error_type,
                client_ip=client_ip,
                user_agent=ua,
            )
            structlog_contextvars.unbind_contextvars("request_id")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    configure_logging()
    app = FastAPI(title="Parlons API", version="0.1.0")

    configured_origins = list(settings.allowed_cors_origins)
    allow_credentials = bool(configured_origins)
    if not configured_origins:
        configured_origins = ["*"]

    # ワイルドカード許可時はクレデンシャル付き CORS を無効にする。
    app.add_middleware(
        CORSMiddleware,
        allow_origins=configured_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    # Middleware stack (inner → outer): CORS → AccessLog → RequestID → SecurityHeaders → ProxyHeaders.
    # Starlette では後から追加したミドルウェアが外側で実行される。最外周の ProxyHeaders が
    # X-Forwarded-For を読み替え、AccessLog に実クライアント IP が記録される。
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    trusted_proxies = list(settings.trusted_proxy_ips) or ["127.0.0.1"]
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=trusted_proxies)

    if settings.disable_session_auth:
        logger.warning(
            "session_auth_disabled",
            reason="config_flag",
            local_user_id=settings.local_user_id,
        )

    app.include_router(auth_router.router, prefix="/api/auth")
    app.include_router(vocabulary.router, prefix="/api/vocabulary")
    app.include_router(review.router, prefix="/api/review")
    app.include_router(grammar.router, prefix="/api/grammar")
    app.include_router(stories.router, prefix="/api/stories")
    app.include_router(fun_phrases.router, prefix="/api/funstuff")
    app.include_router(health.router)

    return app


app = create_app()
