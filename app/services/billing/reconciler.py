"""Mirror Stripe's canonical subscription state into the local table.

Webhook payloads are never trusted for state: the subscription is always
re-fetched from Stripe by id and the local row replaced with what Stripe
reports. Applying the same change twice leaves the same row.
"""
from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.subscription import Subscription, SubscriptionStatus
from app.services.billing.profiles import profiles
from app.services.billing.subscriptions import subscriptions
from app.services.common import from_epoch
from app.services.errors import ProfileNotFoundError, ProviderError
from app.services.stripe_gateway import StripeGateway, stripe_field, stripe_id

logger = logging.getLogger(__name__)


def _to_plain(value: Any) -> dict | None:
    if value is None:
        return None
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return dict(value)


def subscription_values(subscription: Any, user_id: uuid.UUID) -> dict[str, Any]:
    """Map a Stripe subscription to a full ``subscriptions`` row."""
    items = stripe_field(stripe_field(subscription, "items"), "data") or []
    first_item = items[0] if items else None
    price = stripe_field(first_item, "price")

    # Newer API versions report billing periods per item.
    period_start = stripe_field(subscription, "current_period_start") or stripe_field(
        first_item, "current_period_start"
    )
    period_end = stripe_field(subscription, "current_period_end") or stripe_field(
        first_item, "current_period_end"
    )

    raw_status = stripe_field(subscription, "status")
    try:
        status = SubscriptionStatus(raw_status)
    except ValueError as exc:
        raise ProviderError(f"Unknown subscription status from Stripe: {raw_status}") from exc

    if period_start is None or period_end is None:
        raise ProviderError("Stripe subscription has no current billing period")

    return {
        "id": stripe_field(subscription, "id"),
        "user_id": user_id,
        "metadata_": _to_plain(stripe_field(subscription, "metadata")),
        "status": status,
        "price_id": stripe_id(price),
        "quantity": stripe_field(first_item, "quantity"),
        "cancel_at_period_end": bool(stripe_field(subscription, "cancel_at_period_end")),
        "created": from_epoch(stripe_field(subscription, "created")),
        "current_period_start": from_epoch(period_start),
        "current_period_end": from_epoch(period_end),
        "ended_at": from_epoch(stripe_field(subscription, "ended_at")),
        "cancel_at": from_epoch(stripe_field(subscription, "cancel_at")),
        "canceled_at": from_epoch(stripe_field(subscription, "canceled_at")),
        "trial_start": from_epoch(stripe_field(subscription, "trial_start")),
        "trial_end": from_epoch(stripe_field(subscription, "trial_end")),
    }


class SubscriptionReconciler:
    def __init__(self, db: Session, gateway: StripeGateway) -> None:
        self.db = db
        self.gateway = gateway

    def reconcile(self, subscription_id: str, customer_id: str | None) -> Subscription:
        logger.info(
            "Managing subscription change for Stripe subscription %s, customer %s",
            subscription_id,
            customer_id,
        )
        if not customer_id:
            logger.error("Stripe subscription %s carries no customer id", subscription_id)
            raise ProfileNotFoundError(
                f"Webhook Error: No customer on subscription {subscription_id}"
            )
        try:
            profile = profiles.get_by_customer_id(self.db, customer_id)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise ProviderError("Webhook Error: Profile lookup failed") from exc
        if profile is None:
            logger.error("Could not find profile for Stripe customer %s", customer_id)
            raise ProfileNotFoundError(
                f"Webhook Error: User profile not found for customer {customer_id}"
            )

        subscription = self.gateway.retrieve_subscription(subscription_id)
        values = subscription_values(subscription, profile.id)
        return subscriptions.upsert(self.db, values)
