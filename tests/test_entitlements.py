"""Tests for the subscription entitlement check."""

from __future__ import annotations

import uuid
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.models import SubscriptionStatus
from app.services.entitlements import has_active_subscription


@pytest.mark.parametrize(
    ("status", "entitled"),
    [
        (SubscriptionStatus.active, True),
        (SubscriptionStatus.trialing, True),
        (SubscriptionStatus.past_due, False),
        (SubscriptionStatus.canceled, False),
        (SubscriptionStatus.incomplete, False),
        (SubscriptionStatus.unpaid, False),
    ],
)
def test_only_active_and_trialing_grant_access(
    db_session, profile, make_subscription, status, entitled
):
    make_subscription(profile.id, status=status)

    assert has_active_subscription(db_session, profile.id) is entitled


def test_any_entitled_record_is_enough(db_session, profile, make_subscription):
    make_subscription(profile.id, status=SubscriptionStatus.canceled)
    make_subscription(profile.id, status=SubscriptionStatus.active)

    assert has_active_subscription(db_session, profile.id) is True


def test_no_records_means_never_subscribed(db_session, profile):
    assert has_active_subscription(db_session, profile.id) is False


def test_other_users_subscription_does_not_count(db_session, profile, make_subscription):
    make_subscription(profile.id)

    assert has_active_subscription(db_session, uuid.uuid4()) is False


def test_anonymous_caller_is_not_entitled(db_session):
    assert has_active_subscription(db_session, None) is False


def test_store_failure_is_not_entitled():
    db = MagicMock()
    db.scalar.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))

    assert has_active_subscription(db, uuid.uuid4()) is False
    db.rollback.assert_called_once()
