"""Session refresh and login redirect for protected paths.

Runs on every request except the exempt prefixes. The caller's session is
resolved from cookies and stored on ``request.state.user``; refreshed tokens
are written back to the response. Unauthenticated requests to a protected
prefix are redirected to the login page with the original path attached.
"""
from __future__ import annotations

import logging
from urllib.parse import urlencode

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from app.services.auth_session import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    SessionState,
    clear_session_cookies,
    resolve_session,
    set_session_cookies,
)

logger = logging.getLogger(__name__)

PROTECTED_PREFIXES: tuple[str, ...] = (
    "/dashboard",
    "/account",
    "/api/chronam-proxy",
    "/api/checkout-sessions",
    "/api/portal-links",
)
# Stripe must reach the webhook without a session.
EXEMPT_PREFIXES: tuple[str, ...] = (
    "/api/webhooks/stripe",
    "/health",
    "/metrics",
    "/static",
    "/favicon.ico",
)
LOGIN_PATH = "/login"


def _matches(path: str, prefixes: tuple[str, ...]) -> bool:
    return any(path.startswith(prefix) for prefix in prefixes)


def login_redirect_url(path: str) -> str:
    return f"{LOGIN_PATH}?{urlencode({'redirectedFrom': path})}"


class AuthGateMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: object,
        protected_prefixes: tuple[str, ...] = PROTECTED_PREFIXES,
        exempt_prefixes: tuple[str, ...] = EXEMPT_PREFIXES,
    ) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self.protected_prefixes = protected_prefixes
        self.exempt_prefixes = exempt_prefixes

    async def _resolve(self, request: Request) -> SessionState:
        identity = getattr(request.app.state, "identity", None)
        if identity is None:
            logger.warning("Auth gate: identity client not initialised")
            return SessionState()
        return await resolve_session(
            identity,
            request.cookies.get(ACCESS_COOKIE),
            request.cookies.get(REFRESH_COOKIE),
        )

    @staticmethod
    def _apply_cookies(response: Response, session: SessionState) -> None:
        if session.refreshed is not None:
            set_session_cookies(response, session.refreshed)
        elif session.clear_cookies:
            clear_session_cookies(response)

    async def dispatch(self, request: Request, call_next: object) -> Response:
        path = request.url.path
        if _matches(path, self.exempt_prefixes):
            return await call_next(request)  # type: ignore[call-arg]

        session = await self._resolve(request)
        request.state.user = session.user
        if session.user is not None:
            request.state.actor_id = str(session.user.id)

        if session.user is None and _matches(path, self.protected_prefixes):
            logger.info("Auth gate: redirecting anonymous request for %s", path)
            response: Response = RedirectResponse(
                url=login_redirect_url(path), status_code=307
            )
        else:
            response = await call_next(request)  # type: ignore[call-arg]
        self._apply_cookies(response, session)
        return response
