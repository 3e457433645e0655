"""Tests for subscriptions, payments, the payment webhook and expiry checks."""

from datetime import datetime, timedelta
from uuid import UUID

import pytest

from community.database.profiles import ProfilesRepository
from community.database.subscriptions import SubscriptionsRepository
from community.models import Payment, Subscription
from community.models.base import utcnow

from conftest import WEBHOOK_SECRET


@pytest.fixture
def subscription(client, admin, member):
    response = client.post("/admin/subscriptions", headers=admin.headers, json={
        "user_id": member.id, "role": "premium", "months": 1,
    })
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def backdate(run_db):
    """Move a subscription's end date into the past"""
    def _backdate(subscription_id, days):
        async def update(session):
            row = await session.get(Subscription, UUID(subscription_id))
            row.end_date = utcnow() - timedelta(days=days)
            await session.commit()
        run_db(update)
    return _backdate


def post_webhook(client, payload, secret=WEBHOOK_SECRET):
    headers = {"X-Webhook-Secret": secret} if secret else {}
    return client.post("/payments/webhook", headers=headers, json=payload)


def role_of(client, user):
    return client.get("/auth/me", headers=user.headers).json()["data"]["role"]


class TestAdminSubscriptions:
    """Tests for /admin/subscriptions."""

    def test_create_sets_role(self, client, member, subscription):
        """A new subscription grants its role for thirty days a month."""
        assert subscription["status"] == "active"
        assert role_of(client, member) == "premium"
        start = datetime.fromisoformat(subscription["start_date"])
        end = datetime.fromisoformat(subscription["end_date"])
        assert end - start == timedelta(days=30)

    def test_my_subscription(self, client, member, subscription):
        """Members see their newest subscription."""
        data = client.get("/subscriptions/me", headers=member.headers).json()["data"]
        assert data["subscription"]["id"] == subscription["id"]
        assert data["payments"] == []

    def test_no_subscription(self, client, member):
        """Members without one get null."""
        data = client.get("/subscriptions/me", headers=member.headers).json()["data"]
        assert data["subscription"] is None

    def test_extend(self, client, admin, subscription):
        """Extending adds whole months to the end date."""
        response = client.post(f"/admin/subscriptions/{subscription['id']}/extend", headers=admin.headers, json={"months": 2})
        before = datetime.fromisoformat(subscription["end_date"])
        after = datetime.fromisoformat(response.json()["data"]["end_date"])
        assert after - before == timedelta(days=60)

    def test_cancel_restores_role(self, client, admin, member, subscription):
        """Cancelling expires the subscription and restores the previous role."""
        response = client.post(f"/admin/subscriptions/{subscription['id']}/cancel", headers=admin.headers)
        assert response.json()["data"]["status"] == "expired"
        assert role_of(client, member) == "free"

    def test_members_cannot_manage(self, client, member):
        """Subscription management is admin-only."""
        response = client.post("/admin/subscriptions", headers=member.headers, json={"user_id": member.id})
        assert response.status_code == 403

    def test_subscription_counts_as_premium_access(self, client, member, subscription, set_role, run_db):
        """An active premium subscription grants access even with a free role."""
        set_role(member.id, "free")
        access = run_db(lambda session: ProfilesRepository(session).verify_premium_access(UUID(member.id)))
        assert access == (True, "active_subscription")


class TestPaymentWebhook:
    """Tests for POST /payments/webhook."""

    def test_missing_secret(self, client, subscription):
        """Calls without the shared secret are refused."""
        response = post_webhook(client, {"subscription_id": subscription["id"]}, secret=None)
        assert response.status_code == 401

    def test_wrong_secret(self, client, subscription):
        """A wrong secret is refused."""
        response = post_webhook(client, {"subscription_id": subscription["id"]}, secret="nope")
        assert response.status_code == 401

    def test_missing_fields(self, client, subscription):
        """subscription_id, payment_status and amount are required."""
        response = post_webhook(client, {"subscription_id": subscription["id"], "payment_status": "completed"})
        assert response.status_code == 400

    def test_invalid_status(self, client, subscription):
        """Unknown payment statuses are rejected."""
        response = post_webhook(client, {
            "subscription_id": subscription["id"], "payment_status": "settled", "amount": 49,
        })
        assert response.status_code == 400

    def test_completed_payment_extends(self, client, member, subscription):
        """A completed payment records the payment and extends by a month."""
        response = post_webhook(client, {
            "subscription_id": subscription["id"], "payment_status": "completed",
            "amount": 49, "transaction_id": "tx-1",
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["subscription_extended"] is True
        assert data["payment"]["status"] == "completed"
        assert data["payment"]["user_id"] == member.id

        mine = client.get("/subscriptions/me", headers=member.headers).json()["data"]
        end = datetime.fromisoformat(mine["subscription"]["end_date"])
        assert end - datetime.fromisoformat(subscription["end_date"]) == timedelta(days=30)
        assert len(mine["payments"]) == 1

    def test_pending_payment_does_not_extend(self, client, subscription):
        """Only completed payments extend."""
        data = post_webhook(client, {
            "subscription_id": subscription["id"], "payment_status": "pending", "amount": 49,
        }).json()["data"]
        assert data["subscription_extended"] is False

    def test_redelivery_updates_same_payment(self, client, admin, subscription):
        """A repeated transaction id updates the existing payment."""
        post_webhook(client, {
            "subscription_id": subscription["id"], "payment_status": "pending", "amount": 49, "transaction_id": "tx-9",
        })
        post_webhook(client, {
            "subscription_id": subscription["id"], "payment_status": "failed", "amount": 49, "transaction_id": "tx-9",
        })
        payments = client.get("/admin/payments", headers=admin.headers).json()["data"]
        assert len(payments) == 1
        assert payments[0]["status"] == "failed"

    def test_unknown_subscription(self, client):
        """Payments for unknown subscriptions are a 404."""
        response = post_webhook(client, {
            "subscription_id": "00000000-0000-0000-0000-000000000000", "payment_status": "completed", "amount": 1,
        })
        assert response.status_code == 404


class TestAdminPayments:
    """Tests for /admin/payments."""

    def test_create_payment_from_subscription(self, client, admin, member, subscription):
        """The payer defaults to the subscription's member."""
        response = client.post("/admin/payments", headers=admin.headers, json={
            "subscription_id": subscription["id"], "amount": 49, "status": "completed",
        })
        assert response.status_code == 201
        assert response.json()["data"]["user_id"] == member.id

    def test_payment_needs_owner(self, client, admin):
        """A payment needs a user or a subscription."""
        response = client.post("/admin/payments", headers=admin.headers, json={"amount": 49})
        assert response.status_code == 400

    def test_update_payment_status(self, client, admin, member):
        """Admins can change a payment's status."""
        payment = client.post("/admin/payments", headers=admin.headers, json={
            "user_id": member.id, "amount": 49,
        }).json()["data"]
        response = client.put(f"/admin/payments/{payment['id']}", headers=admin.headers, json={"status": "refunded"})
        assert response.json()["data"]["status"] == "refunded"


class TestExpiryChecks:
    """Tests for the expiring and expired subscription checks."""

    def test_warns_after_grace_period(self, client, member, subscription, backdate, run_db):
        """Unpaid subscriptions past the grace period get one warning."""
        backdate(subscription["id"], 3)
        first = run_db(lambda session: SubscriptionsRepository(session).check_expiring_subscriptions())
        second = run_db(lambda session: SubscriptionsRepository(session).check_expiring_subscriptions())
        assert first["warned"] == [subscription["id"]]
        assert second["warned"] == []
        notifications = client.get("/notifications", headers=member.headers).json()["data"]["notifications"]
        assert notifications[0]["related_type"] == "subscription"

    def test_within_grace_not_warned(self, subscription, backdate, run_db):
        """Subscriptions inside the grace period are left alone."""
        backdate(subscription["id"], 1)
        result = run_db(lambda session: SubscriptionsRepository(session).check_expiring_subscriptions())
        assert result["warned"] == []

    def test_recent_payment_skips_warning(self, subscription, member, backdate, run_db):
        """A recent completed payment prevents the warning."""
        backdate(subscription["id"], 3)

        async def pay(session):
            session.add(Payment(
                subscription_id=UUID(subscription["id"]), user_id=UUID(member.id),
                amount=49, currency="ILS", status="completed", payment_date=utcnow(),
            ))
            await session.commit()

        run_db(pay)
        result = run_db(lambda session: SubscriptionsRepository(session).check_expiring_subscriptions())
        assert result["warned"] == []

    def test_expires_and_restores_role(self, client, member, subscription, backdate, run_db):
        """Past grace and warning days the subscription expires and the role is restored."""
        backdate(subscription["id"], 6)
        result = run_db(lambda session: SubscriptionsRepository(session).check_expired_subscriptions())
        assert result["expired"] == [subscription["id"]]
        assert role_of(client, member) == "free"
        assert client.get("/subscriptions/me", headers=member.headers).json()["data"]["subscription"]["status"] == "expired"
