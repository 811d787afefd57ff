"""APScheduler job configuration for daily maintenance."""

import logging
import math
from datetime import date, datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import async_session
from app.models import Place, UserSubscription
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


async def reset_today_views(db: AsyncSession, today: date | None = None) -> int:
    """Zero ``today_views`` on every place not yet reset today."""
    today = today or date.today()
    result = await db.execute(
        update(Place)
        .where(Place.last_view_reset_date < today)
        .values(today_views=0, last_view_reset_date=today, updated_at=Place.updated_at)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


async def sweep_subscriptions(
    db: AsyncSession,
    now: datetime | None = None,
    reminder_days: int | None = None,
) -> tuple[int, int]:
    """Deactivate expired subscriptions and remind owners of those close to expiry.

    Returns ``(expired, reminded)``.
    """
    now = now or datetime.now(timezone.utc)
    if reminder_days is None:
        reminder_days = get_settings().subscription_reminder_days

    result = await db.execute(
        select(UserSubscription).where(
            UserSubscription.is_active.is_(True),
            UserSubscription.expires_at.is_not(None),
        )
    )
    notifier = NotificationService(db)
    expired = reminded = 0

    for subscription in result.scalars().all():
        expires_at = _aware(subscription.expires_at)
        if expires_at <= now:
            subscription.is_active = False
            expired += 1
            continue

        days_left = math.ceil((expires_at - now) / timedelta(days=1))
        if days_left <= reminder_days:
            await notifier.send_subscription_expiry(subscription.user_id, days_left)
            reminded += 1

    await db.flush()
    return expired, reminded


async def daily_views_reset_job():
    try:
        async with async_session() as session:
            count = await reset_today_views(session)
            await session.commit()
    except Exception:
        logger.exception("Daily views reset failed.")
        return
    logger.info("Reset today_views on %d places", count)


async def subscription_sweep_job():
    try:
        async with async_session() as session:
            expired, reminded = await sweep_subscriptions(session)
            await session.commit()
    except Exception:
        logger.exception("Subscription sweep failed.")
        return
    logger.info(
        "Subscription sweep: %d expired, %d reminders sent", expired, reminded
    )


def start_scheduler() -> AsyncIOScheduler:
    """Configure and start the APScheduler."""
    scheduler = AsyncIOScheduler()

    # Midnight: new day for the per-place view counter
    scheduler.add_job(
        daily_views_reset_job,
        CronTrigger(hour=0, minute=0),
        id="reset_today_views",
        name="Reset daily place views",
        replace_existing=True,
    )

    # 08:00: expire and remind
    scheduler.add_job(
        subscription_sweep_job,
        CronTrigger(hour=8, minute=0),
        id="subscription_sweep",
        name="Expire subscriptions and send reminders",
        replace_existing=True,
    )

    scheduler.start()
    logger.info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    return scheduler
