from __future__ import annotations

import uuid
from typing import Awaitable, Callable, Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from .config import settings

__all__ = ["RequestIDMiddleware", "SecurityHeadersMiddleware"]


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Attach strict security headers to every HTTP response.

    HSTS / CSP / X-Frame-Options などを共通ミドルウェアで一括付与する。
    CSP の default-src は `.env` の SECURITY_CSP_DEFAULT_SRC で管理する。
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._headers = self._build_header_map()

    @staticmethod
    def _merge_sources(*groups: Iterable[str]) -> tuple[str, ...]:
        """Merge CSP source tuples, preserving order and dropping duplicates."""

        merged: list[str] = []
        seen: set[str] = set()
        for group in groups:
            for candidate in group:
                if not candidate or candidate in seen:
                    continue
                seen.add(candidate)
                merged.append(candidate)
        return tuple(merged)

    def _build_csp_value(self) -> str:
        default_sources = settings.security_csp_default_src or ("'self'",)
        # Swagger UI の inline CSS と data URI 画像だけを追加で許可する。
        directives = [
            ("default-src", default_sources),
            ("img-src", self._merge_sources(default_sources, ("data:",))),
            ("style-src", self._merge_sources(default_sources, ("'unsafe-inline'",))),
            ("frame-ancestors", ("'none'",)),
            ("object-src", ("'none'",)),
            ("base-uri", ("'self'",)),
        ]
        return "; ".join(f"{name} {' '.join(sources)}" for name, sources in directives if sources)

    def _build_header_map(self) -> dict[str, str]:
        max_age = max(0, int(settings.security_hsts_max_age_seconds))
        return {
            "Strict-Transport-Security": f"max-age={max_age}; includeSubDomains",
            "Content-Security-Policy": self._build_csp_value(),
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        response = await call_next(request)
        for header_name, value in self._headers.items():
            response.headers[header_name] = value
        return response


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assign a request ID to each incoming request and expose it in headers.

    - Sets `request.state.request_id`
    - Adds `X-Request-ID` to the response headers
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
