"""Cookie-carried identity sessions.

The access token is re-validated with the provider on every gated request.
When it has expired the refresh token is exchanged for a new pair, which the
caller must write back to the response.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from starlette.responses import Response

from app.config import settings
from app.services.errors import IdentityError, IdentityUnavailableError
from app.services.identity import AuthUser, SessionTokens, SupabaseAuth

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"
_REFRESH_COOKIE_MAX_AGE = 60 * 60 * 24 * 30


@dataclass(frozen=True)
class SessionState:
    user: AuthUser | None = None
    refreshed: SessionTokens | None = None
    clear_cookies: bool = False


async def resolve_session(
    identity: SupabaseAuth,
    access_token: str | None,
    refresh_token: str | None,
) -> SessionState:
    if not access_token and not refresh_token:
        return SessionState()
    try:
        if access_token:
            try:
                return SessionState(user=await identity.get_user(access_token))
            except IdentityUnavailableError:
                raise
            except IdentityError:
                logger.debug("Access token rejected, trying refresh")
        if refresh_token:
            try:
                tokens, user = await identity.refresh_session(refresh_token)
            except IdentityUnavailableError:
                raise
            except IdentityError:
                logger.info("Session refresh rejected; clearing cookies")
                return SessionState(clear_cookies=True)
            return SessionState(user=user, refreshed=tokens)
    except IdentityUnavailableError:
        logger.warning("Identity provider unavailable; treating request as anonymous")
        return SessionState()
    return SessionState(clear_cookies=True)


def set_session_cookies(response: Response, tokens: SessionTokens) -> None:
    response.set_cookie(
        key=ACCESS_COOKIE,
        value=tokens.access_token,
        max_age=tokens.expires_in,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )
    response.set_cookie(
        key=REFRESH_COOKIE,
        value=tokens.refresh_token,
        max_age=_REFRESH_COOKIE_MAX_AGE,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )


def clear_session_cookies(response: Response) -> None:
    response.delete_cookie(ACCESS_COOKIE, path="/")
    response.delete_cookie(REFRESH_COOKIE, path="/")
