"""Stripe webhook event classification and handling.

Recognised event kinds form a closed set; each maps to an extractor that
pulls the subscription and customer ids out of the event object. Anything
else is acknowledged and ignored so Stripe never retries it.
"""
from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from app.metrics import WEBHOOK_EVENTS
from app.services.billing.reconciler import SubscriptionReconciler
from app.services.errors import ServiceError
from app.services.stripe_gateway import StripeGateway, stripe_field, stripe_id

logger = logging.getLogger(__name__)


class WebhookEventKind(str, enum.Enum):
    invoice_payment_succeeded = "invoice.payment_succeeded"
    subscription_updated = "customer.subscription.updated"
    subscription_deleted = "customer.subscription.deleted"
    checkout_session_completed = "checkout.session.completed"


@dataclass(frozen=True)
class ReconcileSubscription:
    kind: WebhookEventKind
    subscription_id: str
    customer_id: str | None


@dataclass(frozen=True)
class IgnoreEvent:
    event_type: str
    message: str


WebhookAction = ReconcileSubscription | IgnoreEvent


def _invoice_subscription_id(invoice: Any) -> str | None:
    subscription = stripe_id(stripe_field(invoice, "subscription"))
    if subscription:
        return subscription
    # Newer API versions nest it under the invoice parent.
    details = stripe_field(stripe_field(invoice, "parent"), "subscription_details")
    return stripe_id(stripe_field(details, "subscription"))


def _from_invoice(obj: Any) -> WebhookAction:
    subscription_id = _invoice_subscription_id(obj)
    if not subscription_id:
        logger.warning(
            "invoice.payment_succeeded without a subscription. Invoice: %s",
            stripe_field(obj, "id"),
        )
        return IgnoreEvent(
            WebhookEventKind.invoice_payment_succeeded.value,
            "Handled non-subscription invoice payment.",
        )
    return ReconcileSubscription(
        WebhookEventKind.invoice_payment_succeeded,
        subscription_id,
        stripe_id(stripe_field(obj, "customer")),
    )


def _from_subscription(kind: WebhookEventKind) -> Callable[[Any], WebhookAction]:
    def extract(obj: Any) -> WebhookAction:
        return ReconcileSubscription(
            kind, stripe_field(obj, "id"), stripe_id(stripe_field(obj, "customer"))
        )

    return extract


def _from_checkout_session(obj: Any) -> WebhookAction:
    mode = stripe_field(obj, "mode")
    subscription_id = stripe_id(stripe_field(obj, "subscription"))
    if mode != "subscription" or not subscription_id:
        logger.info("Ignoring checkout.session.completed event for mode %s", mode)
        return IgnoreEvent(
            WebhookEventKind.checkout_session_completed.value,
            "Ignoring non-subscription checkout session.",
        )
    return ReconcileSubscription(
        WebhookEventKind.checkout_session_completed,
        subscription_id,
        stripe_id(stripe_field(obj, "customer")),
    )


EVENT_EXTRACTORS: dict[WebhookEventKind, Callable[[Any], WebhookAction]] = {
    WebhookEventKind.invoice_payment_succeeded: _from_invoice,
    WebhookEventKind.subscription_updated: _from_subscription(
        WebhookEventKind.subscription_updated
    ),
    WebhookEventKind.subscription_deleted: _from_subscription(
        WebhookEventKind.subscription_deleted
    ),
    WebhookEventKind.checkout_session_completed: _from_checkout_session,
}


def classify_event(event: Any) -> WebhookAction:
    event_type = stripe_field(event, "type") or ""
    try:
        kind = WebhookEventKind(event_type)
    except ValueError:
        logger.info("Unhandled Stripe event type %s", event_type)
        return IgnoreEvent(event_type, f"Unhandled event type: {event_type}")
    obj = stripe_field(stripe_field(event, "data"), "object")
    return EVENT_EXTRACTORS[kind](obj)


def handle_event(db: Session, gateway: StripeGateway, event: Any) -> dict[str, Any]:
    """Apply a verified event and return the acknowledgement body.

    ``ServiceError`` propagates so the route answers 4xx/5xx and Stripe
    retries where appropriate.
    """
    action = classify_event(event)
    if isinstance(action, IgnoreEvent):
        WEBHOOK_EVENTS.labels(action.event_type or "unknown", "ignored").inc()
        return {"received": True, "message": action.message}

    logger.info(
        "Handling %s for subscription %s",
        action.kind.value,
        action.subscription_id,
        extra={"event_type": action.kind.value},
    )
    try:
        record = SubscriptionReconciler(db, gateway).reconcile(
            action.subscription_id, action.customer_id
        )
    except ServiceError:
        WEBHOOK_EVENTS.labels(action.kind.value, "failed").inc()
        raise
    WEBHOOK_EVENTS.labels(action.kind.value, "reconciled").inc()
    return {
        "received": True,
        "subscriptionId": record.id,
        "status": record.status.value,
    }
