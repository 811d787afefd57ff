"""Media uploads forwarded to external hosts.

Nothing is stored here: the returned URL is saved verbatim on the owning
record by the caller (product, place, message, post).
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_db
from app.errors import ApiError
from app.models import UserProfile
from app.services.audio_host import CatboxUploader, get_audio_uploader
from app.services.image_host import ImgBBUploader, NotConfiguredError, UploadError, get_image_uploader
from app.services.youtube import YouTubeError, YouTubeNotConfigured, YouTubeService, get_youtube_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])

MAX_IMAGE_BYTES = 32 * 1024 * 1024
MAX_AUDIO_BYTES = 200 * 1024 * 1024
MAX_VIDEO_BYTES = 2 * 1024 * 1024 * 1024


class UploadResponse(BaseModel):
    success: bool = True
    url: str


def _check_type(file: UploadFile, prefix: str, message: str) -> None:
    if not (file.content_type or "").startswith(prefix):
        raise HTTPException(status_code=400, detail=message)


async def _read_limited(file: UploadFile, max_bytes: int, message: str) -> bytes:
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="لم يتم توفير ملف")
    if len(content) > max_bytes:
        raise HTTPException(status_code=400, detail=message)
    return content


@router.post("/image", response_model=UploadResponse)
async def upload_image(
    file: UploadFile = File(...),
    _user: UserProfile = Depends(get_current_user),
    uploader: ImgBBUploader = Depends(get_image_uploader),
):
    _check_type(file, "image/", "الرجاء اختيار ملف صورة صحيح")
    content = await _read_limited(
        file, MAX_IMAGE_BYTES, "حجم الصورة كبير جداً. الحد الأقصى هو 32MB"
    )
    try:
        url = await uploader.upload(content, file.filename or "image.webp")
    except NotConfiguredError as exc:
        raise ApiError(str(exc), 503, "NOT_CONFIGURED") from exc
    except UploadError as exc:
        raise ApiError(str(exc) or "فشل رفع الصورة", 502, "UPLOAD_FAILED") from exc
    return UploadResponse(url=url)


@router.post("/audio", response_model=UploadResponse)
async def upload_audio(
    file: UploadFile = File(...),
    _user: UserProfile = Depends(get_current_user),
    uploader: CatboxUploader = Depends(get_audio_uploader),
):
    _check_type(file, "audio/", "الرجاء اختيار ملف صوتي صحيح")
    content = await _read_limited(
        file, MAX_AUDIO_BYTES, "حجم الملف الصوتي كبير جداً. الحد الأقصى هو 200MB"
    )
    try:
        url = await uploader.upload(
            content, file.filename or "voice.webm", file.content_type or "audio/webm"
        )
    except UploadError as exc:
        raise ApiError("فشل رفع الرسالة الصوتية", 502, "UPLOAD_FAILED") from exc
    return UploadResponse(url=url)


@router.post("/video", response_model=UploadResponse)
async def upload_video(
    file: UploadFile = File(...),
    title: str = Form(...),
    description: str = Form(""),
    tags: str = Form(""),
    privacy_status: Literal["private", "unlisted", "public"] = Form("unlisted"),
    _user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    youtube: YouTubeService = Depends(get_youtube_service),
):
    _check_type(file, "video/", "الرجاء اختيار ملف فيديو صحيح")
    content = await _read_limited(
        file, MAX_VIDEO_BYTES, "حجم الفيديو كبير جداً. الحد الأقصى هو 2GB"
    )
    try:
        url = await youtube.upload_video(
            db,
            content,
            title=title,
            description=description,
            tags=[t.strip() for t in tags.split(",") if t.strip()],
            privacy_status=privacy_status,
            content_type=file.content_type or "video/*",
        )
    except YouTubeNotConfigured as exc:
        raise ApiError(str(exc), 503, "NOT_CONFIGURED") from exc
    except YouTubeError as exc:
        raise ApiError(str(exc), 502, "UPLOAD_FAILED") from exc
    return UploadResponse(url=url)
