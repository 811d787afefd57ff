"""Place posts (text, image or video updates shown on the place page)."""

import uuid
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_db
from app.errors import forbidden
from app.models import Post, UserProfile
from app.services.access import get_place_or_404, require_place_access

router = APIRouter(prefix="/posts", tags=["posts"])


class PostCreate(BaseModel):
    place_id: uuid.UUID
    content: str = Field(min_length=1)
    image_url: str | None = None
    video_url: str | None = None
    post_type: Literal["text", "image", "video"] = "text"

    @model_validator(mode="after")
    def media_matches_type(self):
        if self.post_type == "image" and not self.image_url:
            raise ValueError("image_url is required for image posts")
        if self.post_type == "video" and not self.video_url:
            raise ValueError("video_url is required for video posts")
        return self


class PostResponse(BaseModel):
    id: uuid.UUID
    place_id: uuid.UUID
    created_by: uuid.UUID
    content: str
    image_url: str | None
    video_url: str | None
    post_type: str
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


@router.get("", response_model=list[PostResponse])
async def list_posts(
    place_id: uuid.UUID = Query(...),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
):
    await get_place_or_404(db, place_id)
    result = await db.execute(
        select(Post)
        .where(Post.place_id == place_id, Post.is_active.is_(True))
        .order_by(Post.created_at.desc())
        .limit(limit)
    )
    return result.scalars().all()


@router.post("", response_model=PostResponse, status_code=201)
async def create_post(
    data: PostCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await require_place_access(db, data.place_id, user, "posts")
    post = Post(**data.model_dump(), created_by=user.id)
    db.add(post)
    await db.flush()
    return post


@router.delete("/{post_id}", status_code=204)
async def delete_post(
    post_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await db.get(Post, post_id)
    if post is None:
        raise HTTPException(status_code=404, detail="المنشور غير موجود")
    place = await get_place_or_404(db, post.place_id)
    if post.created_by != user.id and place.user_id != user.id:
        raise forbidden("ليس لديك صلاحية لحذف هذا المنشور")
    await db.delete(post)
