import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_stripe_gateway
from app.metrics import WEBHOOK_EVENTS
from app.services import billing as billing_service
from app.services.errors import SignatureVerificationError
from app.services.stripe_gateway import StripeGateway, stripe_field

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> dict:
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        event = gateway.construct_event(payload, signature)
    except SignatureVerificationError:
        WEBHOOK_EVENTS.labels("unverified", "rejected").inc()
        raise
    event_type = stripe_field(event, "type")
    logger.info(
        "Received Stripe webhook %s (%s)",
        stripe_field(event, "id"),
        event_type,
        extra={"event_type": event_type},
    )
    return await run_in_threadpool(billing_service.handle_event, db, gateway, event)
