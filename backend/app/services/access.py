"""Subscription gating, package limits and place-level permissions.

Limits are checked immediately before the mutation they guard.
"""

import uuid

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.errors import ApiError, forbidden, limit_reached
from app.models import Package, Place, PlaceEmployee, UserProfile, UserSubscription

# Action -> employee permission levels allowed to perform it.
ACTION_PERMISSIONS = {
    "messages": ("messages_posts", "full"),
    "posts": ("messages_posts", "full"),
    "products": ("full",),
}


async def get_active_subscription(
    db: AsyncSession, user_id: uuid.UUID
) -> UserSubscription | None:
    result = await db.execute(
        select(UserSubscription)
        .options(selectinload(UserSubscription.package))
        .where(
            UserSubscription.user_id == user_id,
            UserSubscription.is_active.is_(True),
        )
        .order_by(UserSubscription.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def require_package(db: AsyncSession, user_id: uuid.UUID) -> Package:
    subscription = await get_active_subscription(db, user_id)
    if subscription is None or subscription.package is None:
        raise ApiError("يجب الاشتراك في باقة أولاً", 403, "SUBSCRIPTION_REQUIRED")
    return subscription.package


async def check_place_limit(db: AsyncSession, user: UserProfile) -> UserSubscription:
    subscription = await get_active_subscription(db, user.id)
    if subscription is None or subscription.package is None:
        raise ApiError("يجب الاشتراك في باقة أولاً", 403, "SUBSCRIPTION_REQUIRED")

    count = await db.scalar(
        select(func.count()).select_from(Place).where(Place.user_id == user.id)
    )
    if (count or 0) >= subscription.package.max_places:
        raise limit_reached(
            f"لقد وصلت للحد الأقصى من الأماكن ({subscription.package.max_places})"
        )
    return subscription


def check_media_limits(package: Package, images: int, videos: int) -> None:
    if images > package.max_product_images:
        raise limit_reached(
            f"الحد الأقصى لعدد الصور هو {package.max_product_images}"
        )
    if videos > package.max_product_videos:
        raise limit_reached(
            f"الحد الأقصى لعدد الفيديوهات هو {package.max_product_videos}"
        )


async def get_place_or_404(db: AsyncSession, place_id: uuid.UUID) -> Place:
    place = await db.get(Place, place_id)
    if place is None:
        raise HTTPException(status_code=404, detail="المكان غير موجود")
    return place


async def get_employment(
    db: AsyncSession, user_id: uuid.UUID, place_id: uuid.UUID
) -> PlaceEmployee | None:
    result = await db.execute(
        select(PlaceEmployee).where(
            PlaceEmployee.user_id == user_id,
            PlaceEmployee.place_id == place_id,
            PlaceEmployee.is_active.is_(True),
        )
    )
    return result.scalar_one_or_none()


def employee_can(employee: PlaceEmployee | None, action: str) -> bool:
    return employee is not None and employee.permissions in ACTION_PERMISSIONS[action]


async def require_place_access(
    db: AsyncSession,
    place_id: uuid.UUID,
    user: UserProfile,
    action: str,
) -> tuple[Place, PlaceEmployee | None]:
    """Return the place if *user* owns it or works there with enough permission.

    The second element is the employee row when access came through
    employment, ``None`` for the owner.
    """
    place = await get_place_or_404(db, place_id)
    if place.user_id == user.id:
        return place, None

    employee = await get_employment(db, user.id, place_id)
    if employee_can(employee, action):
        return place, employee
    raise forbidden("ليس لديك صلاحية لتنفيذ هذا الإجراء")


def require_owner_or_admin(place: Place, user: UserProfile) -> None:
    if place.user_id != user.id and not user.is_admin:
        raise forbidden("ليس لديك صلاحية لتنفيذ هذا الإجراء")
