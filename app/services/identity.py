"""Supabase Auth (GoTrue) REST client.

Only the calls this service needs: validate an access token, refresh a
session, password sign-in and sign-out. Protocol details stay with the
provider.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any

import httpx

from app.services.common import coerce_uuid
from app.services.errors import IdentityError, IdentityUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: uuid.UUID
    email: str | None = None
    full_name: str | None = None


@dataclass(frozen=True)
class SessionTokens:
    access_token: str
    refresh_token: str
    expires_in: int = 3600


def _user_from_payload(data: dict[str, Any]) -> AuthUser:
    metadata = data.get("user_metadata") or {}
    return AuthUser(
        id=coerce_uuid(data["id"]),
        email=data.get("email"),
        full_name=metadata.get("full_name") or metadata.get("name"),
    )


class SupabaseAuth:
    """Thin async wrapper around the Supabase Auth REST API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        anon_key: str,
        service_role_key: str = "",
    ) -> None:
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._service_role_key = service_role_key

    def is_configured(self) -> bool:
        return bool(self._base_url and self._anon_key)

    def _url(self, path: str) -> str:
        return f"{self._base_url}/auth/v1{path}"

    def _headers(self, access_token: str | None = None, api_key: str | None = None) -> dict[str, str]:
        headers = {"apikey": api_key or self._anon_key}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        if not self.is_configured():
            raise IdentityUnavailableError("Identity provider is not configured")
        try:
            resp = await self._http.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Supabase Auth %s %s failed: %s", method, path, exc.__class__.__name__)
            raise IdentityUnavailableError("Identity provider unavailable") from exc
        if resp.status_code >= 500:
            logger.warning("Supabase Auth %s %s returned %s", method, path, resp.status_code)
            raise IdentityUnavailableError("Identity provider unavailable")
        return resp

    @staticmethod
    def _error_message(resp: httpx.Response, default: str) -> str:
        try:
            data = resp.json()
        except ValueError:
            return default
        return (
            data.get("error_description")
            or data.get("msg")
            or data.get("message")
            or default
        )

    async def get_user(self, access_token: str) -> AuthUser:
        """Validate an access token with the provider and return its user."""
        resp = await self._send("GET", "/user", headers=self._headers(access_token))
        if resp.status_code != 200:
            raise IdentityError(self._error_message(resp, "Invalid session"))
        return _user_from_payload(resp.json())

    async def _grant(self, grant_type: str, body: dict[str, str]) -> tuple[SessionTokens, AuthUser]:
        resp = await self._send(
            "POST",
            "/token",
            params={"grant_type": grant_type},
            json=body,
            headers=self._headers(),
        )
        if resp.status_code != 200:
            raise IdentityError(self._error_message(resp, "Authentication failed"))
        data = resp.json()
        tokens = SessionTokens(
            access_token=data["access_token"],
            refresh_token=data["refresh_token"],
            expires_in=int(data.get("expires_in") or 3600),
        )
        return tokens, _user_from_payload(data["user"])

    async def refresh_session(self, refresh_token: str) -> tuple[SessionTokens, AuthUser]:
        return await self._grant("refresh_token", {"refresh_token": refresh_token})

    async def sign_in_with_password(
        self, email: str, password: str
    ) -> tuple[SessionTokens, AuthUser]:
        tokens, user = await self._grant("password", {"email": email, "password": password})
        logger.info("User %s signed in", user.id)
        return tokens, user

    async def sign_out(self, access_token: str) -> None:
        """Revoke every refresh token of the session's user."""
        resp = await self._send(
            "POST",
            "/logout",
            params={"scope": "global"},
            headers=self._headers(access_token, api_key=self._service_role_key or None),
        )
        if resp.status_code not in (200, 204, 401, 404):
            logger.warning("Supabase Auth sign-out returned %s", resp.status_code)
