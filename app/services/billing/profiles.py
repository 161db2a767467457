import logging
import uuid

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.profile import Profile
from app.services.errors import ProviderError
from app.services.identity import AuthUser

logger = logging.getLogger(__name__)


class Profiles:
    @staticmethod
    def get(db: Session, user_id: uuid.UUID) -> Profile | None:
        return db.get(Profile, user_id)

    @staticmethod
    def get_by_customer_id(db: Session, customer_id: str | None) -> Profile | None:
        if not customer_id:
            return None
        stmt = select(Profile).where(Profile.stripe_customer_id == customer_id)
        return db.scalar(stmt)

    @staticmethod
    def ensure(db: Session, user: AuthUser) -> Profile:
        """Return the caller's profile, creating it on first access."""
        item = db.get(Profile, user.id)
        if item:
            if user.email and item.email != user.email:
                item.email = user.email
                db.commit()
                db.refresh(item)
            return item
        item = Profile(id=user.id, email=user.email, full_name=user.full_name)
        db.add(item)
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            # Another request created it first.
            existing = db.get(Profile, user.id)
            if existing is None:
                raise
            return existing
        db.refresh(item)
        logger.info("Created Profile: %s", item.id)
        return item

    @staticmethod
    def attach_customer_id(db: Session, item: Profile, customer_id: str) -> Profile:
        item.stripe_customer_id = customer_id
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Failed to store Stripe customer %s on profile %s", customer_id, item.id)
            raise ProviderError(
                "Failed to update profile with Stripe customer ID"
            ) from exc
        db.refresh(item)
        logger.info("Attached Stripe customer %s to profile %s", customer_id, item.id)
        return item


profiles = Profiles()
