"""Web Push subscription endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user, require_admin
from app.config import Settings, get_settings
from app.database import get_db
from app.models import UserProfile
from app.services.notification import NotificationService

router = APIRouter(prefix="/web-push", tags=["web-push"])


# ── Schemas ──────────────────────────────────────────────────────────────────

class SubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscription(BaseModel):
    endpoint: str
    keys: SubscriptionKeys
    expirationTime: float | None = None


class PromotionRequest(BaseModel):
    title: str
    message: str
    link: str | None = None


# ── Routes ───────────────────────────────────────────────────────────────────

@router.get("/vapid-key")
async def get_vapid_public_key(settings: Settings = Depends(get_settings)):
    """Return the VAPID public key for the client to subscribe."""
    if not settings.vapid_public_key:
        raise HTTPException(status_code=503, detail="VAPID keys not configured")
    return {"public_key": settings.vapid_public_key}


@router.post("/subscribe")
async def subscribe(
    subscription: PushSubscription,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Save the caller's Web Push subscription."""
    user.push_subscription = subscription.model_dump()
    await db.flush()
    return {"status": "subscribed"}


@router.delete("/subscribe")
async def unsubscribe(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove the caller's Web Push subscription."""
    user.push_subscription = None
    await db.flush()
    return {"status": "unsubscribed"}


@router.post("/promotions/{user_id}", status_code=201)
async def send_promotion(
    user_id: uuid.UUID,
    data: PromotionRequest,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Send a promotion notification (row + push) to one user."""
    if await db.get(UserProfile, user_id) is None:
        raise HTTPException(status_code=404, detail="المستخدم غير موجود")

    notification = await NotificationService(db).send_promotion(
        user_id, data.title, data.message, data.link
    )
    return {"status": "sent", "notification_id": str(notification.id)}
