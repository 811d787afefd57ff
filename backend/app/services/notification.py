"""Notification service.

Stores in-app notifications and mirrors them to the user's browser through
Web Push when the user subscribed and VAPID keys are configured.
"""

import asyncio
import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models import Notification, UserProfile
from app.services.web_push_sender import EXPIRED, send_web_push, vapid_configured

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates notification rows and dispatches the matching Web Push."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    async def send_notification(
        self,
        user_id: uuid.UUID,
        title_ar: str,
        message_ar: str,
        type: str = "system",
        link: str | None = None,
        title_en: str | None = None,
        message_en: str | None = None,
        icon: str | None = None,
        priority: str = "normal",
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title_ar=title_ar,
            title_en=title_en,
            message_ar=message_ar,
            message_en=message_en,
            type=type,
            link=link,
            icon=icon,
            priority=priority,
        )
        self.db.add(notification)
        await self.db.flush()

        await self._push(notification)
        return notification

    async def _push(self, notification: Notification) -> None:
        if not vapid_configured(self.settings):
            return
        user = await self.db.get(UserProfile, notification.user_id)
        if user is None or not user.push_subscription:
            return

        payload = {
            "title": notification.title_ar,
            "body": notification.message_ar,
            "url": notification.link or "/",
            "icon": notification.icon,
        }
        # pywebpush is blocking
        try:
            status = await asyncio.to_thread(
                send_web_push, user.push_subscription, payload, self.settings
            )
        except Exception:
            logger.exception("Push delivery failed for notification %s", notification.id)
            return
        if status == EXPIRED:
            user.push_subscription = None
            await self.db.flush()

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def send_welcome(self, user_id: uuid.UUID) -> Notification:
        return await self.send_notification(
            user_id,
            title_ar="مرحباً بك في بان! 🎉",
            title_en="Welcome to BAN! 🎉",
            message_ar="نحن سعداء بانضمامك إلينا. استكشف المحلات والصيدليات القريبة منك الآن!",
            message_en="We are happy to have you join us. Explore nearby stores and pharmacies now!",
            type="system",
            link="/dashboard",
            icon="🎉",
        )

    async def send_message_notification(
        self, user_id: uuid.UUID, place_name: str, place_id: uuid.UUID
    ) -> Notification:
        return await self.send_notification(
            user_id,
            title_ar=f"رسالة جديدة من {place_name}",
            title_en=f"New message from {place_name}",
            message_ar=f"لديك رسالة جديدة من {place_name}. انقر للرد.",
            message_en=f"You have a new message from {place_name}. Click to reply.",
            type="message",
            link=f"/dashboard/places/{place_id}",
            icon="💬",
            priority="high",
        )

    async def send_subscription_expiry(
        self, user_id: uuid.UUID, days_left: int
    ) -> Notification:
        day_ar = "يوم" if days_left == 1 else "أيام"
        day_en = "day" if days_left == 1 else "days"
        return await self.send_notification(
            user_id,
            title_ar="تنبيه: اشتراكك قارب على الانتهاء",
            title_en="Alert: Your subscription is about to expire",
            message_ar=(
                f"اشتراكك سينتهي خلال {days_left} {day_ar}. "
                "جدد الآن لتستمر في الاستفادة من خدماتنا."
            ),
            message_en=(
                f"Your subscription will expire in {days_left} {day_en}. "
                "Renew now to continue enjoying our services."
            ),
            type="subscription",
            link="/dashboard/packages",
            icon="⚠️",
            priority="urgent",
        )

    async def send_employee_request(
        self,
        owner_id: uuid.UUID,
        place_name: str,
        place_id: uuid.UUID,
        employee_name: str,
    ) -> Notification:
        return await self.send_notification(
            owner_id,
            title_ar="طلب عمل جديد",
            title_en="New employee request",
            message_ar=f"تقدم {employee_name} بطلب للعمل في {place_name}. راجع الطلب الآن.",
            message_en=f"{employee_name} has applied to work at {place_name}. Review the request now.",
            type="employee_request",
            link=f"/dashboard/places/{place_id}/employees",
            icon="👥",
            priority="high",
        )

    async def send_payment_confirmation(
        self, user_id: uuid.UUID, amount, package_name: str
    ) -> Notification:
        return await self.send_notification(
            user_id,
            title_ar="تم استلام الدفعة بنجاح",
            title_en="Payment received successfully",
            message_ar=f"تم استلام دفعتك بمبلغ {amount} جنيه لباقة {package_name}. سيتم مراجعتها قريباً.",
            message_en=(
                f"Your payment of {amount} EGP for {package_name} package has been received. "
                "It will be reviewed soon."
            ),
            type="payment",
            link="/dashboard/packages",
            icon="✅",
        )

    async def send_promotion(
        self, user_id: uuid.UUID, title: str, message: str, link: str | None = None
    ) -> Notification:
        return await self.send_notification(
            user_id,
            title_ar=title,
            message_ar=message,
            type="promotion",
            link=link,
            icon="🎁",
        )
