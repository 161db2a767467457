from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_user
from app.schemas.account import AccountSummary, ProfileRead, SubscriptionRead
from app.services import billing as billing_service
from app.services.entitlements import has_active_subscription
from app.services.identity import AuthUser

router = APIRouter(tags=["account"])


def _account_summary(db: Session, user: AuthUser) -> AccountSummary:
    profile = billing_service.profiles.ensure(db, user)
    records = billing_service.subscriptions.list_for_user(db, user.id)
    return AccountSummary(
        profile=ProfileRead.model_validate(profile),
        subscriptions=[SubscriptionRead.model_validate(item) for item in records],
        entitled=has_active_subscription(db, user.id),
    )


@router.get("/dashboard", response_model=AccountSummary)
async def dashboard(
    user: AuthUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    return await run_in_threadpool(_account_summary, db, user)


@router.get("/account", response_model=AccountSummary)
async def account(
    user: AuthUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    return await run_in_threadpool(_account_summary, db, user)
