"""Fakes shared by the test modules."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from collections.abc import Callable
from typing import Any

import httpx

from app.services.errors import IdentityError
from app.services.identity import AuthUser, SessionTokens

ARCHIVE_BASE_URL = "https://chroniclingamerica.loc.gov"
WEBHOOK_SECRET = "whsec_test_secret"
VALID_TOKEN = "valid-access-token"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIdentity:
    """In-process stand-in for the Supabase Auth client."""

    def __init__(self) -> None:
        self.users: dict[str, AuthUser] = {}
        self.refresh_tokens: dict[str, AuthUser] = {}
        self.passwords: dict[str, tuple[str, AuthUser]] = {}
        self.signed_out: list[str] = []

    def is_configured(self) -> bool:
        return True

    def _issue(self, user: AuthUser) -> SessionTokens:
        tokens = SessionTokens(
            access_token=f"access-{uuid.uuid4().hex}",
            refresh_token=f"refresh-{uuid.uuid4().hex}",
        )
        self.users[tokens.access_token] = user
        self.refresh_tokens[tokens.refresh_token] = user
        return tokens

    async def get_user(self, access_token: str) -> AuthUser:
        user = self.users.get(access_token)
        if user is None:
            raise IdentityError("Invalid JWT")
        return user

    async def refresh_session(self, refresh_token: str) -> tuple[SessionTokens, AuthUser]:
        user = self.refresh_tokens.pop(refresh_token, None)
        if user is None:
            raise IdentityError("Invalid Refresh Token")
        return self._issue(user), user

    async def sign_in_with_password(
        self, email: str, password: str
    ) -> tuple[SessionTokens, AuthUser]:
        stored = self.passwords.get(email)
        if stored is None or stored[0] != password:
            raise IdentityError("Invalid login credentials")
        return self._issue(stored[1]), stored[1]

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)


class FakeArchive:
    """Records upstream requests and answers from a path -> handler table."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.routes: dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        return route(request)


def stripe_signature(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe signs deliveries."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def stripe_event(event_type: str, obj: dict[str, Any], event_id: str = "evt_test_1") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }
    ).encode()


def stripe_subscription(
    subscription_id: str = "sub_123",
    customer_id: str = "cus_123",
    status: str = "active",
    **overrides: Any,
) -> dict[str, Any]:
    """A canonical subscription as ``stripe.Subscription.retrieve`` returns it."""
    data: dict[str, Any] = {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer_id,
        "status": status,
        "metadata": {"supabaseUUID": "ignored"},
        "cancel_at_period_end": False,
        "created": 1_700_000_000,
        "current_period_start": 1_700_000_000,
        "current_period_end": 1_702_592_000,
        "ended_at": None,
        "cancel_at": None,
        "canceled_at": None,
        "trial_start": None,
        "trial_end": None,
        "items": {
            "object": "list",
            "data": [{"id": "si_1", "quantity": 1, "price": {"id": "price_monthly"}}],
        },
    }
    data.update(overrides)
    return data
