"""Password sign-in and sign-out against the identity provider.

Tokens are never returned in the body; they travel only in the HttpOnly
session cookies.
"""
import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from app.api.deps import get_identity
from app.schemas.auth import LoginHint, LoginRequest, LoginResponse, LogoutResponse
from app.services.auth_session import (
    ACCESS_COOKIE,
    clear_session_cookies,
    set_session_cookies,
)
from app.services.common import sanitize_next_url
from app.services.errors import IdentityError
from app.services.identity import SupabaseAuth

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.get("/login", response_model=LoginHint)
def login_page(redirected_from: str | None = Query(default=None, alias="redirectedFrom")):
    return LoginHint(redirected_from=sanitize_next_url(redirected_from))


@router.post("/auth/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    identity: SupabaseAuth = Depends(get_identity),
):
    tokens, user = await identity.sign_in_with_password(payload.email, payload.password)
    body = LoginResponse(redirect_to=sanitize_next_url(payload.redirected_from))
    response = JSONResponse(content=body.model_dump(by_alias=True))
    set_session_cookies(response, tokens)
    logger.info("Session started for user %s", user.id, extra={"actor_id": str(user.id)})
    return response


@router.post("/auth/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    identity: SupabaseAuth = Depends(get_identity),
):
    access_token = request.cookies.get(ACCESS_COOKIE)
    if access_token:
        try:
            await identity.sign_out(access_token)
        except IdentityError as exc:
            logger.warning("Sign-out with identity provider failed: %s", exc.message)
    response = JSONResponse(content=LogoutResponse().model_dump(by_alias=True))
    clear_session_cookies(response)
    return response
