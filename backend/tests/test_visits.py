"""Tests for the site-wide visit counter."""

from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models import SiteVisit


@pytest.mark.asyncio
async def test_record_site_visit_counts_today_and_total(client: AsyncClient, db):
    db.add(SiteVisit(visitor_ip="10.0.0.1", visit_date=date.today() - timedelta(days=1)))
    await db.commit()

    first = await client.post("/api/v1/visits")
    assert first.status_code == 201
    assert first.json() == {"today": 1, "total": 2}

    await client.post("/api/v1/visits")
    stats = await client.get("/api/v1/visits/stats")
    assert stats.json() == {"today": 2, "total": 3}

    result = await db.execute(select(SiteVisit).where(SiteVisit.visit_date == date.today()))
    visits = result.scalars().all()
    assert len(visits) == 2
    assert all(v.visitor_ip == "127.0.0.1" for v in visits)


@pytest.mark.asyncio
async def test_site_stats_empty(client: AsyncClient):
    resp = await client.get("/api/v1/visits/stats")
    assert resp.json() == {"today": 0, "total": 0}
