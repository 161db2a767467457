from app.services.billing.profiles import Profiles, profiles
from app.services.billing.reconciler import SubscriptionReconciler, subscription_values
from app.services.billing.sessions import create_checkout_session, create_portal_link
from app.services.billing.subscriptions import Subscriptions, subscriptions
from app.services.billing.webhooks import (
    IgnoreEvent,
    ReconcileSubscription,
    WebhookEventKind,
    classify_event,
    handle_event,
)

__all__ = [
    "IgnoreEvent",
    "Profiles",
    "ReconcileSubscription",
    "SubscriptionReconciler",
    "Subscriptions",
    "WebhookEventKind",
    "classify_event",
    "create_checkout_session",
    "create_portal_link",
    "handle_event",
    "profiles",
    "subscription_values",
    "subscriptions",
]
