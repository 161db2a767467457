"""Stripe Checkout and Billing Portal session creation for signed-in users."""
import logging

from sqlalchemy.orm import Session

from app.config import settings
from app.services.billing.profiles import profiles
from app.services.errors import ConfigurationError, MissingCustomerError
from app.services.identity import AuthUser
from app.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


def _app_url() -> str:
    if not settings.app_url:
        logger.error("APP_URL is not set in environment variables.")
        raise ConfigurationError("Internal Server Configuration Error")
    return settings.app_url.rstrip("/")


def create_checkout_session(
    db: Session,
    gateway: StripeGateway,
    user: AuthUser,
    price_id: str,
    quantity: int = 1,
) -> str:
    """Create a subscription Checkout session and return its id.

    The Stripe customer is created at most once per user and stored on the
    profile before the session is created.
    """
    app_url = _app_url()
    profile = profiles.ensure(db, user)
    customer_id = profile.stripe_customer_id
    if not customer_id:
        logger.info("Creating Stripe customer for user %s", user.id)
        customer_id = gateway.create_customer(user.email, str(user.id))
        profiles.attach_customer_id(db, profile, customer_id)
    else:
        logger.info("Found existing Stripe customer %s for user %s", customer_id, user.id)

    session = gateway.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        quantity=quantity,
        user_id=str(user.id),
        success_url=f"{app_url}/account?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{app_url}/subscribe",
    )
    return session.id


def create_portal_link(db: Session, gateway: StripeGateway, user: AuthUser) -> str:
    app_url = _app_url()
    profile = profiles.get(db, user.id)
    if profile is None or not profile.stripe_customer_id:
        logger.warning(
            "User %s does not have a Stripe customer ID. Cannot create portal link.",
            user.id,
        )
        raise MissingCustomerError(
            "Stripe customer ID not found for user. Have you subscribed?"
        )
    return gateway.create_portal_session(
        profile.stripe_customer_id, return_url=f"{app_url}/account"
    )
