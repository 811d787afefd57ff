"""YouTube owner-account OAuth: consent URL, callback and connection status."""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import require_admin
from app.config import Settings, get_settings
from app.database import get_db
from app.models import UserProfile
from app.services.youtube import YouTubeError, YouTubeNotConfigured, YouTubeService, get_youtube_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/youtube", tags=["youtube"])


class AuthUrlResponse(BaseModel):
    auth_url: str


class YouTubeStatus(BaseModel):
    connected: bool
    source: str | None = None
    expires_at: datetime | None = None


def _admin_page(settings: Settings, query: str) -> RedirectResponse:
    return RedirectResponse(f"{settings.site_url.rstrip('/')}/admin/youtube?{query}")


@router.get("/auth", response_model=AuthUrlResponse)
async def get_auth_url(
    _admin: UserProfile = Depends(require_admin),
    youtube: YouTubeService = Depends(get_youtube_service),
):
    return AuthUrlResponse(auth_url=youtube.get_auth_url())


@router.get("/callback")
async def oauth_callback(
    code: str | None = Query(None),
    state: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    youtube: YouTubeService = Depends(get_youtube_service),
    settings: Settings = Depends(get_settings),
):
    if not code:
        logger.error("YouTube callback without code (state=%s)", state)
        return _admin_page(settings, "error=youtube_auth_failed")

    try:
        tokens = await youtube.exchange_code(code)
    except YouTubeError:
        return _admin_page(settings, "error=youtube_auth_failed")

    if not tokens.get("access_token") or not tokens.get("refresh_token"):
        logger.error(
            "Missing tokens: has_access=%s has_refresh=%s",
            bool(tokens.get("access_token")),
            bool(tokens.get("refresh_token")),
        )
        return _admin_page(settings, "error=youtube_auth_failed")

    try:
        await youtube.store_owner_tokens(db, tokens)
    except YouTubeError:
        return _admin_page(settings, "error=no_admin_found")
    return _admin_page(settings, "youtube_auth=success")


@router.get("/status", response_model=YouTubeStatus)
async def connection_status(
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    youtube: YouTubeService = Depends(get_youtube_service),
):
    try:
        creds = await youtube.get_owner_credentials(db)
    except YouTubeNotConfigured:
        return YouTubeStatus(connected=False)
    return YouTubeStatus(connected=True, source=creds.source, expires_at=creds.expiry)
