"""Tests for the daily maintenance jobs."""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.jobs import scheduler
from app.jobs.scheduler import (
    daily_views_reset_job,
    reset_today_views,
    subscription_sweep_job,
    sweep_subscriptions,
)
from app.models import Notification, Place, UserSubscription


@pytest.mark.asyncio
async def test_reset_today_views_only_touches_stale_places(db, place: Place, owner):
    fresh = Place(
        user_id=owner.id,
        name_ar="مكان",
        name_en="Fresh",
        category="store",
        latitude=0,
        longitude=0,
        phone_1="1",
        today_views=4,
        last_view_reset_date=date.today(),
    )
    place.today_views = 9
    place.total_views = 50
    place.last_view_reset_date = date.today() - timedelta(days=1)
    db.add(fresh)
    await db.commit()

    count = await reset_today_views(db)
    await db.commit()
    assert count == 1

    await db.refresh(place)
    await db.refresh(fresh)
    assert place.today_views == 0
    assert place.total_views == 50
    assert place.last_view_reset_date == date.today()
    assert fresh.today_views == 4


@pytest.mark.asyncio
async def test_sweep_expires_and_reminds(db, owner, customer, package):
    now = datetime.now(timezone.utc)
    expired = UserSubscription(
        id=uuid.uuid4(),
        user_id=owner.id,
        package_id=package.id,
        is_active=True,
        expires_at=now - timedelta(hours=1),
    )
    ending = UserSubscription(
        id=uuid.uuid4(),
        user_id=customer.id,
        package_id=package.id,
        is_active=True,
        expires_at=now + timedelta(days=2, hours=3),
    )
    db.add_all([expired, ending])
    await db.commit()

    result = await sweep_subscriptions(db, now=now, reminder_days=3)
    await db.commit()
    assert result == (1, 1)

    await db.refresh(expired)
    assert expired.is_active is False

    reminders = await db.execute(
        select(Notification).where(Notification.type == "subscription")
    )
    (reminder,) = reminders.scalars().all()
    assert reminder.user_id == customer.id
    assert "3 أيام" in reminder.message_ar


@pytest.mark.asyncio
async def test_sweep_ignores_far_expiry(db, subscription):
    result = await sweep_subscriptions(db, reminder_days=3)
    assert result == (0, 0)


@pytest.mark.asyncio
@pytest.mark.parametrize("job", [daily_views_reset_job, subscription_sweep_job])
async def test_jobs_log_database_failures(monkeypatch, caplog, job):
    def broken_session():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(scheduler, "async_session", broken_session)
    with caplog.at_level(logging.ERROR, logger="app.jobs.scheduler"):
        await job()
    assert "failed" in caplog.text
