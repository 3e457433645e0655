"""
Subscriptions, payments and the payment processor webhook
"""
import secrets
from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from ..auth.jwt import CurrentUser, get_current_user, require_admin
from ..config import settings
from ..database.session import get_session
from ..database.subscriptions import PAYMENT_STATUSES, SubscriptionsRepository
from ..errors import CommunityError, ValidationError
from ..logging_config import setup_logging
from ..utils import row_to_dict

logger = setup_logging(__name__)

router = APIRouter(tags=["subscriptions"])


class SubscriptionCreate(BaseModel):
    user_id: UUID
    role: str = "premium"
    months: int = Field(1, ge=1, le=36)


class SubscriptionExtend(BaseModel):
    months: int = Field(1, ge=1, le=36)


class PaymentCreate(BaseModel):
    subscription_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    amount: float
    currency: str = "ILS"
    status: str = "pending"
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    invoice_url: Optional[str] = None
    invoice_number: Optional[str] = None


class PaymentUpdate(BaseModel):
    amount: Optional[float] = None
    currency: Optional[str] = None
    status: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    invoice_url: Optional[str] = None
    invoice_number: Optional[str] = None


class WebhookPayment(BaseModel):
    subscription_id: Optional[UUID] = None
    payment_status: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    payment_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    invoice_url: Optional[str] = None
    invoice_number: Optional[str] = None


@router.get("/subscriptions/me")
async def my_subscription(
    current_user: CurrentUser = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    repo = SubscriptionsRepository(session)
    subscription = await repo.get_user_subscription(current_user.id)
    payments = await repo.get_payments_by_subscription(subscription.id) if subscription else []
    return {
        "data": {
            "subscription": row_to_dict(subscription) if subscription else None,
            "payments": [row_to_dict(payment) for payment in payments],
        }
    }


@router.post("/payments/webhook")
async def payment_webhook(
    payload: WebhookPayment,
    x_webhook_secret: Optional[str] = Header(None),
    session: AsyncSession = Depends(get_session),
):
    """
    Record a payment reported by the processor

    Authenticated by the X-Webhook-Secret header. A completed payment on an
    active subscription extends it by one month.
    """
    expected = settings.PAYMENT_WEBHOOK_SECRET
    if not expected or not x_webhook_secret or not secrets.compare_digest(x_webhook_secret, expected):
        logger.warning("Rejected payment webhook with a missing or wrong secret")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")

    if payload.subscription_id is None or not payload.payment_status or payload.amount is None:
        raise ValidationError("Missing required fields: subscription_id, payment_status, amount")
    if payload.payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"Invalid payment status: {payload.payment_status}")

    try:
        result = await SubscriptionsRepository(session).process_webhook_payment(payload.model_dump())
    except HTTPException:
        raise
    except CommunityError:
        raise
    except Exception as e:
        logger.error(f"Error processing payment webhook: {e}")
        raise HTTPException(status_code=500, detail="Failed to process payment")

    logger.info(
        f"Webhook payment for subscription {payload.subscription_id}: {payload.payment_status}",
        extra={"subscription_extended": result["subscription_extended"]},
    )
    return {"success": True, "data": result}


# Admin

@router.get("/admin/subscriptions")
async def list_subscriptions(
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    subscriptions = await SubscriptionsRepository(session).get_all_subscriptions()
    return {"data": [row_to_dict(subscription) for subscription in subscriptions]}


@router.post("/admin/subscriptions", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    payload: SubscriptionCreate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    subscription = await SubscriptionsRepository(session).create_subscription(
        payload.user_id, payload.role, payload.months
    )
    return {"success": True, "data": row_to_dict(subscription)}


@router.post("/admin/subscriptions/{subscription_id}/extend")
async def extend_subscription(
    subscription_id: UUID,
    payload: SubscriptionExtend,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    subscription = await SubscriptionsRepository(session).extend_subscription(subscription_id, payload.months)
    return {"success": True, "data": row_to_dict(subscription)}


@router.post("/admin/subscriptions/{subscription_id}/cancel")
async def cancel_subscription(
    subscription_id: UUID,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """End a subscription now and give the member back their previous role"""
    subscription = await SubscriptionsRepository(session).cancel_subscription_and_restore_role(subscription_id)
    return {"success": True, "data": row_to_dict(subscription)}


@router.get("/admin/payments")
async def list_payments(
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    payments = await SubscriptionsRepository(session).get_all_payments()
    return {"data": [row_to_dict(payment) for payment in payments]}


@router.post("/admin/payments", status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    repo = SubscriptionsRepository(session)
    data = payload.model_dump()
    if data["subscription_id"] is not None and data["user_id"] is None:
        data["user_id"] = (await repo.get_subscription(data["subscription_id"])).user_id
    if data["user_id"] is None:
        raise ValidationError("user_id or subscription_id is required")
    payment = await repo.create_payment(data)
    return {"success": True, "data": row_to_dict(payment)}


@router.put("/admin/payments/{payment_id}")
async def update_payment(
    payment_id: UUID,
    payload: PaymentUpdate,
    current_user: CurrentUser = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    payment = await SubscriptionsRepository(session).update_payment(
        payment_id, payload.model_dump(exclude_unset=True)
    )
    return {"success": True, "data": row_to_dict(payment)}
