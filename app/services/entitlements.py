import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.subscription import ENTITLED_STATUSES, Subscription

logger = logging.getLogger(__name__)


def has_active_subscription(db: Session, user_id: uuid.UUID | None) -> bool:
    """True when the user owns an active or trialing subscription.

    Store failures count as "not entitled"; callers decide whether that
    blocks the whole request or only a gated resource.
    """
    if user_id is None:
        return False
    stmt = (
        select(Subscription.id)
        .where(
            Subscription.user_id == user_id,
            Subscription.status.in_(ENTITLED_STATUSES),
        )
        .limit(1)
    )
    try:
        found = db.scalar(stmt)
    except SQLAlchemyError:
        logger.exception("Entitlement lookup failed for user %s", user_id)
        db.rollback()
        return False
    entitled = found is not None
    logger.info("Entitlement check for user %s: %s", user_id, entitled)
    return entitled
