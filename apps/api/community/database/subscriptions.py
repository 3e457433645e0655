"""
Database operations for subscriptions and payments
"""
from datetime import timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import NotFoundError, ValidationError
from ..logging_config import get_logger, PerformanceLogger
from ..models import Payment, Profile, Role, Subscription
from ..models.base import utcnow
from ..utils import as_utc, row_to_dict
from .notifications import notify_safely
from .profiles import ProfilesRepository

logger = get_logger(__name__)

SUBSCRIPTION_STATUSES = ("active", "cancelled", "expired", "pending")
PAYMENT_STATUSES = ("pending", "completed", "failed", "refunded")
DAYS_PER_MONTH = 30
RECENT_PAYMENT_DAYS = 30

PAYMENT_FIELDS = (
    "amount", "currency", "status", "payment_date", "payment_method",
    "transaction_id", "invoice_url", "invoice_number",
)


class SubscriptionsRepository:
    """Repository for subscription lifecycle and payment records"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_subscription(self, subscription_id: UUID) -> Subscription:
        subscription = await self.session.get(Subscription, subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found")
        return subscription

    async def get_all_subscriptions(self) -> List[Subscription]:
        result = await self.session.execute(select(Subscription).order_by(Subscription.created_at.desc()))
        return list(result.scalars().all())

    async def get_user_subscription(self, user_id: UUID) -> Optional[Subscription]:
        """Newest subscription of a user, whatever its status"""
        result = await self.session.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def create_subscription(self, user_id: UUID, role_name: str = "premium", months: int = 1) -> Subscription:
        """Start a subscription, remembering the role to restore when it ends"""
        if months < 1:
            raise ValidationError("months must be at least 1")
        profiles = ProfilesRepository(self.session)
        profile = await profiles.require_profile(user_id)
        role = await profiles.get_role_by_name(role_name)
        if role is None:
            raise NotFoundError(f"Role not found: {role_name}")

        now = utcnow()
        subscription = Subscription(
            user_id=user_id,
            role_id=role.id,
            previous_role_id=profile.role_id,
            status="active",
            start_date=now,
            end_date=now + timedelta(days=DAYS_PER_MONTH * months),
            warning_sent=False,
        )
        self.session.add(subscription)
        profile.role = role
        await self.session.commit()
        logger.info(f"Created {role_name} subscription {subscription.id} for {user_id}")
        return subscription

    async def extend_subscription(self, subscription_id: UUID, months: int = 1) -> Subscription:
        subscription = await self.get_subscription(subscription_id)
        now = utcnow()
        base = as_utc(subscription.end_date)
        if base is None or base < now:
            base = now
        subscription.end_date = base + timedelta(days=DAYS_PER_MONTH * months)
        subscription.warning_sent = False
        await self.session.commit()
        logger.info(f"Extended subscription {subscription_id} by {months} month(s)")
        return subscription

    async def has_recent_payment(self, subscription_id: UUID, days: int = RECENT_PAYMENT_DAYS) -> bool:
        since = utcnow() - timedelta(days=days)
        result = await self.session.execute(
            select(func.count(Payment.id)).where(
                Payment.subscription_id == subscription_id,
                Payment.status == "completed",
                Payment.payment_date >= since,
            )
        )
        return (result.scalar() or 0) > 0

    async def check_expiring_subscriptions(self, grace_period_days: Optional[int] = None) -> Dict[str, Any]:
        """Warn active subscriptions that ran past their end date without a payment"""
        grace = settings.SUBSCRIPTION_GRACE_DAYS if grace_period_days is None else grace_period_days
        cutoff = utcnow() - timedelta(days=grace)

        with PerformanceLogger(logger, "check_expiring_subscriptions"):
            result = await self.session.execute(
                select(Subscription).where(
                    Subscription.status == "active",
                    Subscription.end_date <= cutoff,
                    Subscription.warning_sent.is_(False),
                )
            )
            candidates = [(row.id, row.user_id) for row in result.scalars().all()]
            warned = []
            for subscription_id, user_id in candidates:
                if await self.has_recent_payment(subscription_id):
                    continue
                subscription = await self.get_subscription(subscription_id)
                subscription.warning_sent = True
                await self.session.commit()
                await notify_safely(
                    self.session,
                    user_id=user_id,
                    type="mention",
                    title="Your subscription is about to end",
                    message="We did not receive your renewal payment. Renew to keep premium access.",
                    link="/subscription",
                    related_id=subscription_id,
                    related_type="subscription",
                )
                warned.append(str(subscription_id))
        return {"checked_before": cutoff.isoformat(), "warned": warned}

    async def check_expired_subscriptions(
        self,
        days_after_warning: Optional[int] = None,
        grace_period_days: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Expire active subscriptions past grace plus warning days without a payment"""
        grace = settings.SUBSCRIPTION_GRACE_DAYS if grace_period_days is None else grace_period_days
        after_warning = settings.SUBSCRIPTION_DAYS_AFTER_WARNING if days_after_warning is None else days_after_warning
        cutoff = utcnow() - timedelta(days=grace + after_warning)

        with PerformanceLogger(logger, "check_expired_subscriptions"):
            result = await self.session.execute(
                select(Subscription).where(
                    Subscription.status == "active",
                    Subscription.end_date <= cutoff,
                )
            )
            candidates = [row.id for row in result.scalars().all()]
            expired = []
            for subscription_id in candidates:
                if await self.has_recent_payment(subscription_id):
                    continue
                await self.cancel_subscription_and_restore_role(subscription_id)
                expired.append(str(subscription_id))
        return {"checked_before": cutoff.isoformat(), "expired": expired}

    async def cancel_subscription_and_restore_role(self, subscription_id: UUID) -> Subscription:
        subscription = await self.get_subscription(subscription_id)
        subscription.status = "expired"

        role = None
        if subscription.previous_role_id:
            role = await self.session.get(Role, subscription.previous_role_id)
        if role is None:
            role = await ProfilesRepository(self.session).get_role_by_name("free")

        result = await self.session.execute(select(Profile).where(Profile.user_id == subscription.user_id))
        profile = result.scalar_one_or_none()
        if profile is not None and role is not None:
            profile.role = role
        await self.session.commit()
        logger.info(f"Subscription {subscription_id} expired; role restored to {role.name if role else None}")
        return subscription

    # Payments

    async def get_all_payments(self) -> List[Payment]:
        result = await self.session.execute(select(Payment).order_by(Payment.payment_date.desc()))
        return list(result.scalars().all())

    async def get_payments_by_subscription(self, subscription_id: UUID) -> List[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.subscription_id == subscription_id).order_by(Payment.payment_date.desc())
        )
        return list(result.scalars().all())

    async def get_payments_by_user(self, user_id: UUID) -> List[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.user_id == user_id).order_by(Payment.payment_date.desc())
        )
        return list(result.scalars().all())

    async def create_payment(self, data: Dict[str, Any]) -> Payment:
        status = data.get("status", "pending")
        if status not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {status}")
        payment = Payment(
            subscription_id=data.get("subscription_id"),
            user_id=data.get("user_id"),
            **{key: data[key] for key in PAYMENT_FIELDS if data.get(key) is not None},
        )
        self.session.add(payment)
        await self.session.commit()
        return payment

    async def update_payment(self, payment_id: UUID, updates: Dict[str, Any]) -> Payment:
        payment = await self.session.get(Payment, payment_id)
        if payment is None:
            raise NotFoundError("Payment not found")
        if "status" in updates and updates["status"] not in PAYMENT_STATUSES:
            raise ValidationError(f"Invalid payment status: {updates['status']}")
        for key in PAYMENT_FIELDS:
            if updates.get(key) is not None:
                setattr(payment, key, updates[key])
        await self.session.commit()
        return payment

    async def process_webhook_payment(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Record a payment reported by the external processor

        The payment is matched on (transaction_id, subscription_id) so repeated
        deliveries update the same row. A completed payment on an active
        subscription extends it by one month.
        """
        subscription = await self.get_subscription(data["subscription_id"])

        existing = None
        if data.get("transaction_id"):
            result = await self.session.execute(
                select(Payment).where(
                    Payment.transaction_id == data["transaction_id"],
                    Payment.subscription_id == subscription.id,
                )
            )
            existing = result.scalar_one_or_none()

        fields = {
            "amount": float(data["amount"]),
            "currency": data.get("currency") or "ILS",
            "status": data["payment_status"],
            "payment_date": data.get("payment_date") or utcnow(),
            "payment_method": data.get("payment_method"),
            "transaction_id": data.get("transaction_id"),
            "invoice_url": data.get("invoice_url"),
            "invoice_number": data.get("invoice_number"),
        }
        if existing is not None:
            payment = await self.update_payment(existing.id, fields)
        else:
            payment = await self.create_payment({
                **fields,
                "subscription_id": subscription.id,
                "user_id": subscription.user_id,
            })

        extended = False
        if data["payment_status"] == "completed" and subscription.status == "active":
            try:
                await self.extend_subscription(subscription.id, 1)
                extended = True
            except Exception as e:
                await self.session.rollback()
                logger.error(f"Extending subscription {subscription.id} after payment failed: {e}")

        return {"payment": row_to_dict(payment), "subscription_extended": extended}
