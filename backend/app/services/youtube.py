"""YouTube uploads to the single owner channel.

All end-user uploads land on one channel whose OAuth tokens live either in
the settings or on the first admin profile that completed the consent flow.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlencode

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings, get_settings
from app.models.user import UserProfile

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
SCOPES = (
    "https://www.googleapis.com/auth/youtube.upload",
    "https://www.googleapis.com/auth/youtube",
)

_API_ERROR_MESSAGES = {
    401: "انتهت صلاحية حساب YouTube. يرجى إعادة ربط حساب YouTube من لوحة الإدارة.",
    403: "تم رفض الوصول إلى YouTube API. تأكد من تفعيل YouTube Data API v3 في Google Cloud Console.",
    429: "تم تجاوز الحد المسموح من YouTube API. يرجى المحاولة لاحقاً.",
}


class YouTubeError(Exception):
    """Upload or token failure, carrying a user-facing message."""


class YouTubeNotConfigured(YouTubeError):
    pass


@dataclass
class OwnerCredentials:
    access_token: str
    refresh_token: str | None
    expiry: datetime | None
    source: str  # "settings" | "database"
    profile_id: Any = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expiry is None:
            return False
        expiry = self.expiry
        if expiry.tzinfo is None:
            expiry = expiry.replace(tzinfo=timezone.utc)
        return expiry < (now or datetime.now(timezone.utc))


def _parse_expiry(value: str) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring malformed YOUTUBE_TOKEN_EXPIRY=%r", value)
        return None


def token_expiry(tokens: dict) -> datetime | None:
    expires_in = tokens.get("expires_in")
    if not expires_in:
        return None
    return datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))


class YouTubeService:
    def __init__(
        self,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._client = client

    # ------------------------------------------------------------------
    # OAuth
    # ------------------------------------------------------------------

    def get_auth_url(self, state: str = "admin") -> str:
        params = {
            "client_id": self.settings.google_client_id,
            "redirect_uri": self.settings.youtube_callback_url,
            "response_type": "code",
            "scope": " ".join(SCOPES),
            "access_type": "offline",
            "prompt": "consent",
            "state": state,
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    async def _post_token(self, data: dict) -> dict:
        payload = {
            "client_id": self.settings.google_client_id,
            "client_secret": self.settings.google_client_secret,
            **data,
        }
        if self._client is not None:
            response = await self._client.post(TOKEN_URL, data=payload)
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(TOKEN_URL, data=payload)
        if response.status_code >= 400:
            logger.error("Google token endpoint returned %s: %s", response.status_code, response.text)
            raise YouTubeError("فشل في الحصول على رموز YouTube")
        return response.json()

    async def exchange_code(self, code: str) -> dict:
        return await self._post_token(
            {
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.settings.youtube_callback_url,
            }
        )

    async def refresh_access_token(self, refresh_token: str) -> dict:
        return await self._post_token(
            {"refresh_token": refresh_token, "grant_type": "refresh_token"}
        )

    # ------------------------------------------------------------------
    # Owner credentials
    # ------------------------------------------------------------------

    async def get_owner_credentials(self, db: AsyncSession) -> OwnerCredentials:
        if self.settings.youtube_access_token and self.settings.youtube_refresh_token:
            return OwnerCredentials(
                access_token=self.settings.youtube_access_token,
                refresh_token=self.settings.youtube_refresh_token,
                expiry=_parse_expiry(self.settings.youtube_token_expiry),
                source="settings",
            )

        result = await db.execute(
            select(UserProfile)
            .where(
                UserProfile.is_admin.is_(True),
                UserProfile.youtube_access_token.is_not(None),
            )
            .limit(1)
        )
        admin = result.scalar_one_or_none()
        if admin and admin.youtube_access_token and admin.youtube_refresh_token:
            return OwnerCredentials(
                access_token=admin.youtube_access_token,
                refresh_token=admin.youtube_refresh_token,
                expiry=admin.youtube_token_expiry,
                source="database",
                profile_id=admin.id,
            )

        raise YouTubeNotConfigured(
            "لم يتم ربط حساب YouTube. يرجى ربط حساب YouTube من لوحة الإدارة أولاً."
        )

    async def store_owner_tokens(self, db: AsyncSession, tokens: dict) -> UserProfile:
        """Persist freshly granted tokens on the first admin profile."""
        result = await db.execute(
            select(UserProfile)
            .where(UserProfile.is_admin.is_(True))
            .order_by(UserProfile.created_at)
            .limit(1)
        )
        admin = result.scalar_one_or_none()
        if admin is None:
            raise YouTubeError("no_admin_found")

        admin.youtube_access_token = tokens["access_token"]
        admin.youtube_refresh_token = tokens["refresh_token"]
        admin.youtube_token_expiry = token_expiry(tokens)
        await db.flush()
        logger.info("Stored YouTube owner tokens on admin %s", admin.id)
        return admin

    async def _refresh_owner(self, db: AsyncSession, creds: OwnerCredentials) -> OwnerCredentials:
        if not creds.refresh_token:
            raise YouTubeError(_API_ERROR_MESSAGES[401])
        try:
            tokens = await self.refresh_access_token(creds.refresh_token)
        except YouTubeError as exc:
            raise YouTubeError(
                "فشل في تجديد صلاحية حساب YouTube. يرجى إعادة ربط حساب YouTube من لوحة الإدارة."
            ) from exc

        expiry = token_expiry(tokens)
        if creds.source == "settings":
            # Lives only as long as the process.
            self.settings.youtube_access_token = tokens["access_token"]
            if expiry:
                self.settings.youtube_token_expiry = expiry.isoformat()
        else:
            admin = await db.get(UserProfile, creds.profile_id)
            if admin is not None:
                admin.youtube_access_token = tokens["access_token"]
                admin.youtube_token_expiry = expiry
                await db.flush()

        return OwnerCredentials(
            access_token=tokens["access_token"],
            refresh_token=tokens.get("refresh_token") or creds.refresh_token,
            expiry=expiry,
            source=creds.source,
            profile_id=creds.profile_id,
        )

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def upload_video(
        self,
        db: AsyncSession,
        content: bytes,
        title: str,
        description: str = "",
        tags: list[str] | None = None,
        privacy_status: str = "unlisted",
        content_type: str = "video/*",
    ) -> str:
        creds = await self.get_owner_credentials(db)
        if creds.is_expired():
            creds = await self._refresh_owner(db, creds)

        metadata = {
            "snippet": {"title": title, "description": description, "tags": tags or []},
            "status": {"privacyStatus": privacy_status},
        }

        if self._client is not None:
            return await self._resumable_upload(self._client, creds, metadata, content, content_type)
        async with httpx.AsyncClient(timeout=httpx.Timeout(600.0, connect=30.0)) as client:
            return await self._resumable_upload(client, creds, metadata, content, content_type)

    async def _resumable_upload(
        self,
        client: httpx.AsyncClient,
        creds: OwnerCredentials,
        metadata: dict,
        content: bytes,
        content_type: str,
    ) -> str:
        auth = {"Authorization": f"Bearer {creds.access_token}"}
        try:
            init = await client.post(
                UPLOAD_URL,
                params={"uploadType": "resumable", "part": "snippet,status"},
                json=metadata,
                headers={
                    **auth,
                    "X-Upload-Content-Type": content_type,
                    "X-Upload-Content-Length": str(len(content)),
                },
            )
            self._raise_for_api_error(init)
            session_url = init.headers.get("Location")
            if not session_url:
                raise YouTubeError("فشل رفع الفيديو إلى YouTube")

            uploaded = await client.put(
                session_url,
                content=content,
                headers={**auth, "Content-Type": content_type},
            )
            self._raise_for_api_error(uploaded)
        except httpx.HTTPError as exc:
            logger.error("YouTube upload error: %s", exc)
            raise YouTubeError("فشل رفع الفيديو إلى YouTube") from exc

        video_id = uploaded.json().get("id")
        if not video_id:
            raise YouTubeError("فشل رفع الفيديو إلى YouTube. لم يتم إرجاع معرف الفيديو.")
        logger.info("Video uploaded to YouTube: %s", video_id)
        return WATCH_URL.format(video_id=video_id)

    @staticmethod
    def _raise_for_api_error(response: httpx.Response) -> None:
        if response.status_code < 400:
            return
        if response.status_code in _API_ERROR_MESSAGES:
            raise YouTubeError(_API_ERROR_MESSAGES[response.status_code])
        try:
            message = response.json().get("error", {}).get("message")
        except ValueError:
            message = None
        raise YouTubeError(message or "حدث خطأ في YouTube API")


def get_youtube_service() -> YouTubeService:
    return YouTubeService()
