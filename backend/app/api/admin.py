"""Admin back-office: dashboard stats and user management."""

import logging
import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import UserResponse
from app.api.visits import site_stats
from app.auth import require_admin
from app.database import get_db
from app.models import Affiliate, Message, Place, Product, UserProfile, UserSubscription
from app.services.discounts import generate_affiliate_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

DEFAULT_AFFILIATE_DISCOUNT = Decimal("10")


class AdminStats(BaseModel):
    users: int
    places: int
    active_places: int
    products: int
    pending_subscriptions: int
    affiliates: int
    messages: int
    today_views: int
    total_views: int
    site_today_visits: int
    site_total_visits: int


class FlagUpdate(BaseModel):
    value: bool


async def _count(db: AsyncSession, model, *where) -> int:
    query = select(func.count()).select_from(model)
    if where:
        query = query.where(*where)
    return (await db.scalar(query)) or 0


async def _get_user(db: AsyncSession, user_id: uuid.UUID) -> UserProfile:
    user = await db.get(UserProfile, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="المستخدم غير موجود")
    return user


@router.get("/stats", response_model=AdminStats)
async def dashboard_stats(
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    views = await db.execute(
        select(
            func.coalesce(func.sum(Place.today_views), 0),
            func.coalesce(func.sum(Place.total_views), 0),
        )
    )
    today_views, total_views = views.one()
    site = await site_stats(db)
    return AdminStats(
        users=await _count(db, UserProfile),
        places=await _count(db, Place),
        active_places=await _count(db, Place, Place.is_active.is_(True)),
        products=await _count(db, Product),
        pending_subscriptions=await _count(
            db, UserSubscription, UserSubscription.status == "pending"
        ),
        affiliates=await _count(db, Affiliate),
        messages=await _count(db, Message),
        today_views=int(today_views),
        total_views=int(total_views),
        site_today_visits=site.today,
        site_total_visits=site.total,
    )


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    q: str | None = Query(None, description="Search by email or name"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(UserProfile)
    if q:
        term = q.strip()
        query = query.where(
            or_(
                UserProfile.email.icontains(term, autoescape=True),
                UserProfile.full_name.icontains(term, autoescape=True),
            )
        )
    result = await db.execute(
        query.order_by(UserProfile.created_at.desc()).offset(offset).limit(limit)
    )
    return result.scalars().all()


@router.put("/users/{user_id}/admin", response_model=UserResponse)
async def set_admin(
    user_id: uuid.UUID,
    data: FlagUpdate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_user(db, user_id)
    if user.id == admin.id and not data.value:
        raise HTTPException(status_code=400, detail="لا يمكنك إلغاء صلاحيات المدير لنفسك")
    user.is_admin = data.value
    await db.flush()
    logger.info("Admin %s set is_admin=%s on %s", admin.id, data.value, user.id)
    return user


@router.put("/users/{user_id}/affiliate", response_model=UserResponse)
async def set_affiliate(
    user_id: uuid.UUID,
    data: FlagUpdate,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await _get_user(db, user_id)
    result = await db.execute(select(Affiliate).where(Affiliate.user_id == user.id))
    affiliate = result.scalar_one_or_none()

    if data.value and affiliate is None:
        code = await generate_affiliate_code(db)
        db.add(
            Affiliate(
                user_id=user.id,
                code=code,
                discount_percentage=DEFAULT_AFFILIATE_DISCOUNT,
                is_active=True,
            )
        )
        user.is_affiliate = True
        user.affiliate_code = code
    elif not data.value:
        if affiliate is not None:
            await db.delete(affiliate)
        user.is_affiliate = False
        user.affiliate_code = None

    await db.flush()
    return user
