from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.subscription import SubscriptionStatus


class ProfileRead(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )
    id: UUID
    email: str | None = None
    full_name: str | None = None
    stripe_customer_id: str | None = None


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )
    id: str
    status: SubscriptionStatus
    price_id: str | None = None
    quantity: int | None = None
    cancel_at_period_end: bool = False
    created: datetime
    current_period_start: datetime
    current_period_end: datetime
    ended_at: datetime | None = None
    cancel_at: datetime | None = None
    canceled_at: datetime | None = None
    trial_start: datetime | None = None
    trial_end: datetime | None = None


class AccountSummary(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
    profile: ProfileRead
    subscriptions: list[SubscriptionRead]
    entitled: bool
