"""Tests for the dashboard and account summary routes."""

from __future__ import annotations

from app.models import Profile, SubscriptionStatus


def test_first_visit_creates_profile(signed_in, auth_user, db_session):
    response = signed_in.get("/dashboard")

    assert response.status_code == 200
    body = response.json()
    assert body["profile"] == {
        "id": str(auth_user.id),
        "email": "reader@example.com",
        "fullName": "Ada Reader",
        "stripeCustomerId": None,
    }
    assert body["subscriptions"] == []
    assert body["entitled"] is False
    assert db_session.get(Profile, auth_user.id) is not None


def test_account_lists_subscriptions(signed_in, profile, make_subscription):
    make_subscription(profile.id, status=SubscriptionStatus.active, subscription_id="sub_a")

    body = signed_in.get("/account").json()

    assert body["entitled"] is True
    assert [item["id"] for item in body["subscriptions"]] == ["sub_a"]
    assert body["subscriptions"][0]["status"] == "active"
    assert body["subscriptions"][0]["cancelAtPeriodEnd"] is False
