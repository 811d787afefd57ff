"""Site-wide visit counter shown on the home page."""

from datetime import date

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models import SiteVisit

router = APIRouter(prefix="/visits", tags=["visits"])


class SiteStats(BaseModel):
    today: int
    total: int


async def site_stats(db: AsyncSession, today: date | None = None) -> SiteStats:
    today = today or date.today()
    result = await db.execute(
        select(
            func.count(case((SiteVisit.visit_date == today, 1))),
            func.count(SiteVisit.id),
        )
    )
    today_count, total = result.one()
    return SiteStats(today=today_count or 0, total=total or 0)


@router.post("", response_model=SiteStats, status_code=201)
async def record_site_visit(request: Request, db: AsyncSession = Depends(get_db)):
    db.add(SiteVisit(visitor_ip=request.client.host if request.client else None))
    await db.flush()
    return await site_stats(db)


@router.get("/stats", response_model=SiteStats)
async def get_site_stats(db: AsyncSession = Depends(get_db)):
    return await site_stats(db)
