from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_stripe_gateway, require_user
from app.schemas.billing import (
    CheckoutSessionRequest,
    CheckoutSessionResponse,
    PortalLinkResponse,
)
from app.services import billing as billing_service
from app.services.identity import AuthUser
from app.services.stripe_gateway import StripeGateway

router = APIRouter(prefix="/api", tags=["billing"])


@router.post("/checkout-sessions", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    user: AuthUser = Depends(require_user),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    if not payload.price_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "missing_price_id", "message": "Missing priceId"},
        )
    session_id = await run_in_threadpool(
        billing_service.create_checkout_session,
        db,
        gateway,
        user,
        payload.price_id,
        payload.quantity,
    )
    return CheckoutSessionResponse(session_id=session_id)


@router.post("/portal-links", response_model=PortalLinkResponse)
async def create_portal_link(
    user: AuthUser = Depends(require_user),
    db: Session = Depends(get_db),
    gateway: StripeGateway = Depends(get_stripe_gateway),
):
    url = await run_in_threadpool(billing_service.create_portal_link, db, gateway, user)
    return PortalLinkResponse(url=url)
