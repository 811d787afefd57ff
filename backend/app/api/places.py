"""API routes for places (business listings)."""

import logging
import uuid
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user
from app.database import get_db
from app.errors import forbidden
from app.models import Place, PlaceEmployee, PlaceVisit, UserProfile
from app.models.place import PLACE_CATEGORIES
from app.services.access import check_place_limit, get_place_or_404, require_owner_or_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/places", tags=["places"])


# --- Schemas ---

class PlaceBase(BaseModel):
    name_ar: str = Field(min_length=1, max_length=200)
    name_en: str = Field(min_length=1, max_length=200)
    description_ar: str | None = None
    description_en: str | None = None
    category: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str | None = None
    phone_1: str = Field(min_length=1, max_length=30)
    phone_2: str | None = None
    video_url: str | None = None
    logo_url: str | None = None

    @field_validator("category")
    @classmethod
    def known_category(cls, value: str) -> str:
        if value not in PLACE_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(PLACE_CATEGORIES)}")
        return value


class PlaceCreate(PlaceBase):
    pass


class PlaceUpdate(BaseModel):
    name_ar: str | None = Field(default=None, min_length=1, max_length=200)
    name_en: str | None = Field(default=None, min_length=1, max_length=200)
    description_ar: str | None = None
    description_en: str | None = None
    category: str | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = None
    phone_1: str | None = Field(default=None, min_length=1, max_length=30)
    phone_2: str | None = None
    video_url: str | None = None
    logo_url: str | None = None

    @field_validator("name_ar", "name_en", "category", "latitude", "longitude", "phone_1")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value

    @field_validator("category")
    @classmethod
    def known_category(cls, value: str | None) -> str | None:
        if value is not None and value not in PLACE_CATEGORIES:
            raise ValueError(f"category must be one of {', '.join(PLACE_CATEGORIES)}")
        return value


class PlaceResponse(PlaceBase):
    id: uuid.UUID
    user_id: uuid.UUID
    subscription_id: uuid.UUID | None
    is_featured: bool
    is_active: bool
    total_views: int
    today_views: int
    created_at: datetime

    model_config = {"from_attributes": True}


class MyPlaceResponse(PlaceResponse):
    role: str  # "owner" | "employee"
    permissions: str | None = None


class ViewResponse(BaseModel):
    total_views: int
    today_views: int


# --- Endpoints ---

@router.get("", response_model=list[PlaceResponse])
async def list_places(
    featured: bool | None = Query(None),
    category: str | None = Query(None),
    q: str | None = Query(None, description="Search in Arabic and English names"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    query = select(Place).where(Place.is_active.is_(True))
    if featured is not None:
        query = query.where(Place.is_featured.is_(featured))
    if category:
        query = query.where(Place.category == category)
    if q:
        term = q.strip()
        query = query.where(
            or_(
                Place.name_ar.icontains(term, autoescape=True),
                Place.name_en.icontains(term, autoescape=True),
            )
        )

    query = (
        query.order_by(Place.is_featured.desc(), Place.total_views.desc(), Place.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await db.execute(query)
    return result.scalars().all()


@router.get("/mine", response_model=list[MyPlaceResponse])
async def my_places(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    owned = await db.execute(
        select(Place).where(Place.user_id == user.id).order_by(Place.created_at.desc())
    )
    response = [
        MyPlaceResponse(**PlaceResponse.model_validate(p).model_dump(), role="owner")
        for p in owned.scalars().all()
    ]

    employed = await db.execute(
        select(Place, PlaceEmployee.permissions)
        .join(PlaceEmployee, PlaceEmployee.place_id == Place.id)
        .where(PlaceEmployee.user_id == user.id, PlaceEmployee.is_active.is_(True))
        .order_by(Place.created_at.desc())
    )
    for place, permissions in employed.all():
        response.append(
            MyPlaceResponse(
                **PlaceResponse.model_validate(place).model_dump(),
                role="employee",
                permissions=permissions,
            )
        )
    return response


@router.get("/{place_id}", response_model=PlaceResponse)
async def get_place(place_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await get_place_or_404(db, place_id)


@router.post("", response_model=PlaceResponse, status_code=201)
async def create_place(
    data: PlaceCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    subscription = await check_place_limit(db, user)

    place = Place(
        **data.model_dump(),
        user_id=user.id,
        subscription_id=subscription.id,
        is_featured=subscription.package.is_featured,
        last_view_reset_date=date.today(),
    )
    db.add(place)
    await db.flush()
    logger.info("User %s created place %s", user.id, place.id)
    return place


@router.patch("/{place_id}", response_model=PlaceResponse)
async def update_place(
    place_id: uuid.UUID,
    data: PlaceUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    place = await get_place_or_404(db, place_id)
    if place.user_id != user.id:
        raise forbidden("ليس لديك صلاحية لتعديل هذا المكان")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(place, field, value)
    await db.flush()
    await db.refresh(place)
    return place


@router.post("/{place_id}/toggle-active", response_model=PlaceResponse)
async def toggle_place_active(
    place_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    place = await get_place_or_404(db, place_id)
    require_owner_or_admin(place, user)
    place.is_active = not place.is_active
    await db.flush()
    await db.refresh(place)
    return place


@router.delete("/{place_id}", status_code=204)
async def delete_place(
    place_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    place = await get_place_or_404(db, place_id)
    require_owner_or_admin(place, user)
    await db.delete(place)
    logger.info("Place %s deleted by %s", place_id, user.id)


@router.post("/{place_id}/view", response_model=ViewResponse)
async def record_view(
    place_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    await get_place_or_404(db, place_id)

    today = date.today()
    await db.execute(
        update(Place)
        .where(Place.id == place_id)
        .values(
            total_views=Place.total_views + 1,
            today_views=case(
                (Place.last_view_reset_date == today, Place.today_views + 1),
                else_=1,
            ),
            last_view_reset_date=today,
            updated_at=Place.updated_at,
        )
        .execution_options(synchronize_session=False)
    )
    db.add(
        PlaceVisit(
            place_id=place_id,
            visitor_ip=request.client.host if request.client else None,
            visit_date=today,
        )
    )
    await db.flush()

    result = await db.execute(
        select(Place.total_views, Place.today_views).where(Place.id == place_id)
    )
    total, today_count = result.one()
    return ViewResponse(total_views=total, today_views=today_count)
