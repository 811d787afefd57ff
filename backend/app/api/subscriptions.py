"""Subscriptions: subscribe with an optional discount/affiliate code, admin review."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.packages import PackageResponse
from app.auth import get_current_user, require_admin
from app.config import Settings, get_settings
from app.database import get_db
from app.errors import ApiError
from app.models import Package, UserProfile, UserSubscription
from app.services import discounts
from app.services.access import get_active_subscription
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])

INVALID_CODE = "كود الخصم غير صحيح أو غير نشط أو منتهي الصلاحية"


class SubscribeRequest(BaseModel):
    package_id: uuid.UUID
    discount_code: str | None = None


class ValidateCodeRequest(BaseModel):
    code: str
    package_id: uuid.UUID | None = None


class ValidateCodeResponse(BaseModel):
    valid: bool
    type: str | None = None
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    final_price: Decimal | None = None


class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    package_id: uuid.UUID
    status: str
    is_active: bool
    amount_paid: Decimal
    discount_code_used: str | None
    affiliate_code_used: str | None
    expires_at: datetime | None
    created_at: datetime
    package: PackageResponse | None = None

    model_config = {"from_attributes": True}


async def _get_subscription(db: AsyncSession, subscription_id: uuid.UUID) -> UserSubscription:
    result = await db.execute(
        select(UserSubscription)
        .options(selectinload(UserSubscription.package))
        .where(UserSubscription.id == subscription_id)
    )
    subscription = result.scalar_one_or_none()
    if subscription is None:
        raise HTTPException(status_code=404, detail="الاشتراك غير موجود")
    return subscription


@router.post("/validate-code", response_model=ValidateCodeResponse)
async def validate_code(
    data: ValidateCodeRequest,
    _user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    applied = await discounts.resolve_code(db, data.code)
    if applied is None:
        return ValidateCodeResponse(valid=False)

    response = ValidateCodeResponse(
        valid=True,
        type=applied.type,
        discount_percentage=applied.discount_percentage,
    )
    if data.package_id is not None:
        package = await db.get(Package, data.package_id)
        if package is not None:
            final, amount = discounts.apply_percentage(package.price, applied.discount_percentage)
            response.final_price = final
            response.discount_amount = amount
    return response


@router.post("", response_model=SubscriptionResponse, status_code=201)
async def subscribe(
    data: SubscribeRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if await get_active_subscription(db, user.id) is not None:
        raise HTTPException(
            status_code=409,
            detail="لديك اشتراك نشط بالفعل. يجب إلغاء الاشتراك الحالي أولاً",
        )

    package = await db.get(Package, data.package_id)
    if package is None:
        raise HTTPException(status_code=404, detail="الباقة غير موجودة")

    applied = None
    if data.discount_code and data.discount_code.strip():
        applied = await discounts.resolve_code(db, data.discount_code)
        if applied is None:
            raise ApiError(INVALID_CODE, 400, "INVALID_DISCOUNT")

    final_price = Decimal(package.price)
    if applied is not None:
        final_price, _ = discounts.apply_percentage(package.price, applied.discount_percentage)

    subscription = UserSubscription(
        user_id=user.id,
        package_id=package.id,
        status="pending",
        is_active=True,
        amount_paid=final_price,
        discount_code_used=applied.code if applied and applied.type == "code" else None,
        affiliate_code_used=applied.code if applied and applied.type == "affiliate" else None,
        expires_at=datetime.now(timezone.utc) + timedelta(days=settings.subscription_days),
    )
    subscription.package = package
    db.add(subscription)
    await db.flush()

    if applied is not None:
        await discounts.record_usage(db, applied, subscription, final_price)

    await NotificationService(db, settings).send_payment_confirmation(
        user.id, final_price, package.name_ar
    )
    logger.info("User %s subscribed to package %s for %s", user.id, package.id, final_price)
    return subscription


@router.get("/me", response_model=SubscriptionResponse | None)
async def my_subscription(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_active_subscription(db, user.id)


# --- Admin ---

@router.get("", response_model=list[SubscriptionResponse])
async def list_subscriptions(
    status: str | None = Query(None, description="pending | approved | rejected"),
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = (
        select(UserSubscription)
        .options(selectinload(UserSubscription.package))
        .order_by(UserSubscription.created_at.desc())
    )
    if status:
        query = query.where(UserSubscription.status == status)
    result = await db.execute(query)
    return result.scalars().all()


@router.post("/{subscription_id}/approve", response_model=SubscriptionResponse)
async def approve_subscription(
    subscription_id: uuid.UUID,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_subscription(db, subscription_id)
    subscription.status = "approved"
    subscription.is_active = True
    await db.flush()
    return subscription


@router.post("/{subscription_id}/reject", response_model=SubscriptionResponse)
async def reject_subscription(
    subscription_id: uuid.UUID,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    subscription = await _get_subscription(db, subscription_id)
    subscription.status = "rejected"
    subscription.is_active = False
    await db.flush()
    return subscription
