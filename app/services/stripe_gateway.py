"""Stripe payment gateway integration."""

import logging
from typing import Any

import stripe

from app.config import settings
from app.services.errors import (
    ConfigurationError,
    ProviderError,
    SignatureVerificationError,
)

logger = logging.getLogger(__name__)

# Pinned so subscription and invoice payloads keep the field layout the
# reconciler reads.
STRIPE_API_VERSION = "2025-02-24.acacia"


def stripe_field(obj: Any, name: str) -> Any:
    """Read a field from a Stripe object, a plain dict, or ``None``."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def stripe_id(obj: Any) -> str | None:
    """Expandable fields arrive either as an id string or as an object."""
    if obj is None or isinstance(obj, str):
        return obj
    return stripe_field(obj, "id")


class StripeGateway:
    """Thin wrapper around the Stripe SDK."""

    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
    ) -> None:
        self._secret_key = settings.stripe_secret_key if secret_key is None else secret_key
        self._webhook_secret = (
            settings.stripe_webhook_secret if webhook_secret is None else webhook_secret
        )

    def is_configured(self) -> bool:
        return bool(self._secret_key)

    def _options(self) -> dict[str, str]:
        if not self.is_configured():
            raise ConfigurationError("Stripe is not configured")
        return {"api_key": self._secret_key, "stripe_version": STRIPE_API_VERSION}

    # ── Webhook ──────────────────────────────────────────

    def construct_event(self, payload: bytes, signature: str | None) -> stripe.Event:
        """Verify the signature over the raw body, then parse the event."""
        if not signature or not self._webhook_secret:
            logger.error("Stripe webhook: missing signature or webhook secret")
            raise SignatureVerificationError("Webhook Error: Configuration issue.")
        try:
            return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.error("Stripe webhook signature verification failed: %s", exc)
            raise SignatureVerificationError(f"Webhook Error: {exc}") from exc
        except ValueError as exc:
            logger.error("Invalid Stripe webhook payload: %s", exc)
            raise SignatureVerificationError("Webhook Error: Invalid payload") from exc

    # ── Subscriptions ────────────────────────────────────

    def retrieve_subscription(self, subscription_id: str) -> stripe.Subscription:
        try:
            subscription = stripe.Subscription.retrieve(
                subscription_id,
                expand=["default_payment_method", "items.data.price.product"],
                **self._options(),
            )
        except stripe.StripeError as exc:
            logger.error(
                "Could not retrieve subscription %s from Stripe: %s",
                subscription_id,
                exc,
            )
            raise ProviderError(
                "Webhook Error: Could not retrieve subscription from Stripe"
            ) from exc
        logger.info(
            "Retrieved subscription %s from Stripe. Status: %s",
            subscription_id,
            stripe_field(subscription, "status"),
        )
        return subscription

    # ── Customers & sessions ─────────────────────────────

    def create_customer(self, email: str | None, user_id: str) -> str:
        try:
            customer = stripe.Customer.create(
                email=email,
                name=email,
                metadata={"supabaseUUID": user_id},
                **self._options(),
            )
        except stripe.StripeError as exc:
            logger.error("Stripe create_customer failed for user %s: %s", user_id, exc)
            raise ProviderError(str(exc.user_message or exc)) from exc
        logger.info("Created Stripe customer %s for user %s", customer.id, user_id)
        return customer.id

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        quantity: int,
        user_id: str,
        success_url: str,
        cancel_url: str,
    ) -> stripe.checkout.Session:
        try:
            session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                billing_address_collection="required",
                customer=customer_id,
                line_items=[{"price": price_id, "quantity": quantity}],
                mode="subscription",
                allow_promotion_codes=True,
                subscription_data={"metadata": {"supabaseUUID": user_id}},
                success_url=success_url,
                cancel_url=cancel_url,
                **self._options(),
            )
        except stripe.StripeError as exc:
            logger.error("Stripe checkout session failed for %s: %s", customer_id, exc)
            raise ProviderError(str(exc.user_message or exc)) from exc
        logger.info("Created Stripe Checkout session %s", session.id)
        return session

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
                **self._options(),
            )
        except stripe.StripeError as exc:
            logger.error("Stripe billing portal failed for %s: %s", customer_id, exc)
            raise ProviderError(str(exc.user_message or exc)) from exc
        logger.info("Created Stripe Billing Portal session for %s", customer_id)
        return session.url


stripe_gateway = StripeGateway()
