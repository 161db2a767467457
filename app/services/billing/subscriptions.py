import logging
import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.subscription import Subscription
from app.services.errors import ProviderError

logger = logging.getLogger(__name__)


class Subscriptions:
    @staticmethod
    def get(db: Session, subscription_id: str) -> Subscription | None:
        return db.get(Subscription, subscription_id)

    @staticmethod
    def list_for_user(db: Session, user_id: uuid.UUID) -> list[Subscription]:
        stmt = (
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created.desc())
        )
        return list(db.scalars(stmt).all())

    @staticmethod
    def upsert(db: Session, values: dict[str, Any]) -> Subscription:
        """Insert or fully replace the row with ``values["id"]``.

        ``values`` must carry every column so nothing from an older copy
        survives the replace.
        """
        try:
            item = db.merge(Subscription(**values))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error(
                "Failed to upsert subscription %s for user %s",
                values.get("id"),
                values.get("user_id"),
            )
            raise ProviderError("Webhook Error: Database update failed") from exc
        db.refresh(item)
        logger.info(
            "Upserted subscription %s for user %s with status %s",
            item.id,
            item.user_id,
            item.status.value,
        )
        return item


subscriptions = Subscriptions()
