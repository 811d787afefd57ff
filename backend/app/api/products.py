"""API routes for products, their media and variants."""

import logging
import uuid
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth import get_current_user, get_optional_user
from app.database import get_db
from app.models import Place, Product, ProductImage, ProductVariant, ProductVideo, UserProfile
from app.services.access import (
    check_media_limits,
    get_employment,
    get_place_or_404,
    require_package,
    require_place_access,
)
from app.services.search import product_fields, rank_by_similarity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


# --- Schemas ---

class VariantIn(BaseModel):
    variant_type: str
    variant_name_ar: str
    variant_name_en: str
    variant_value: str
    price_adjustment: Decimal = Decimal("0")
    stock_quantity: int | None = Field(default=None, ge=0)
    is_available: bool = True


class VariantResponse(VariantIn):
    id: uuid.UUID

    model_config = {"from_attributes": True}


class MediaResponse(BaseModel):
    id: uuid.UUID
    order_index: int

    model_config = {"from_attributes": True}


class ImageResponse(MediaResponse):
    image_url: str


class VideoResponse(MediaResponse):
    video_url: str


class ProductCreate(BaseModel):
    place_id: uuid.UUID
    name_ar: str = Field(min_length=1, max_length=300)
    name_en: str = Field(min_length=1, max_length=300)
    description_ar: str | None = None
    description_en: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    currency: str = "EGP"
    category: str | None = None
    images: list[str] = []
    videos: list[str] = []
    variants: list[VariantIn] = []


class ProductUpdate(BaseModel):
    name_ar: str | None = Field(default=None, min_length=1, max_length=300)
    name_en: str | None = Field(default=None, min_length=1, max_length=300)
    description_ar: str | None = None
    description_en: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    currency: str | None = None
    category: str | None = None
    # Lists replace the current media/variants when given.
    images: list[str] | None = None
    videos: list[str] | None = None
    variants: list[VariantIn] | None = None

    @field_validator("name_ar", "name_en", "currency")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("field cannot be null")
        return value


class ProductResponse(BaseModel):
    id: uuid.UUID
    place_id: uuid.UUID
    name_ar: str
    name_en: str
    description_ar: str | None
    description_en: str | None
    price: Decimal | None
    currency: str
    category: str | None
    is_active: bool
    created_at: datetime
    images: list[ImageResponse] = []
    videos: list[VideoResponse] = []
    variants: list[VariantResponse] = []

    model_config = {"from_attributes": True}


# --- Helpers ---

def _with_media(query):
    return query.options(
        selectinload(Product.images),
        selectinload(Product.videos),
        selectinload(Product.variants),
    )


async def _load_product(db: AsyncSession, product_id: uuid.UUID) -> Product:
    result = await db.execute(
        _with_media(select(Product))
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=404, detail="المنتج غير موجود")
    return product


def _set_media(product: Product, images: list[str] | None, videos: list[str] | None) -> None:
    if images is not None:
        product.images = [
            ProductImage(image_url=url, order_index=i) for i, url in enumerate(images)
        ]
    if videos is not None:
        product.videos = [
            ProductVideo(video_url=url, order_index=i) for i, url in enumerate(videos)
        ]


def _set_variants(product: Product, variants: list[VariantIn] | None) -> None:
    if variants is not None:
        product.variants = [ProductVariant(**v.model_dump()) for v in variants]


# --- Endpoints ---

@router.get("/search", response_model=list[ProductResponse])
async def search_products(
    q: str = Query(..., min_length=1, description="Search query"),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    term = q.strip()
    query = (
        _with_media(select(Product))
        .join(Place, Place.id == Product.place_id)
        .where(
            Product.is_active.is_(True),
            Place.is_active.is_(True),
            or_(
                Product.name_ar.icontains(term, autoescape=True),
                Product.name_en.icontains(term, autoescape=True),
                Product.description_ar.icontains(term, autoescape=True),
            ),
        )
        .order_by(Product.created_at.desc())
    )
    result = await db.execute(query)
    products = rank_by_similarity(q, result.scalars().all(), product_fields)
    return products[:limit]


@router.get("", response_model=list[ProductResponse])
async def list_place_products(
    place_id: uuid.UUID = Query(...),
    include_inactive: bool = Query(False),
    user: UserProfile | None = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    place = await get_place_or_404(db, place_id)

    query = _with_media(select(Product)).where(Product.place_id == place_id)
    show_all = False
    if include_inactive and user is not None:
        show_all = place.user_id == user.id or user.is_admin or (
            await get_employment(db, user.id, place_id) is not None
        )
    if not show_all:
        query = query.where(Product.is_active.is_(True))

    result = await db.execute(query.order_by(Product.created_at.desc()))
    return result.scalars().all()


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await _load_product(db, product_id)


@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    data: ProductCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    place, _employee = await require_place_access(db, data.place_id, user, "products")
    package = await require_package(db, place.user_id)
    check_media_limits(package, len(data.images), len(data.videos))

    product = Product(
        **data.model_dump(exclude={"images", "videos", "variants"}),
        images=[],
        videos=[],
        variants=[],
    )
    _set_media(product, data.images, data.videos)
    _set_variants(product, data.variants)
    db.add(product)
    await db.flush()
    logger.info("Product %s created in place %s by %s", product.id, place.id, user.id)
    return await _load_product(db, product.id)


@router.patch("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: uuid.UUID,
    data: ProductUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    product = await _load_product(db, product_id)
    place, _employee = await require_place_access(db, product.place_id, user, "products")

    if data.images is not None or data.videos is not None:
        package = await require_package(db, place.user_id)
        check_media_limits(
            package,
            len(data.images) if data.images is not None else len(product.images),
            len(data.videos) if data.videos is not None else len(product.videos),
        )

    fields = data.model_dump(exclude_unset=True, exclude={"images", "videos", "variants"})
    for field, value in fields.items():
        setattr(product, field, value)
    _set_media(product, data.images, data.videos)
    _set_variants(product, data.variants)

    await db.flush()
    return await _load_product(db, product.id)


@router.post("/{product_id}/toggle-active", response_model=ProductResponse)
async def toggle_product_active(
    product_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    product = await _load_product(db, product_id)
    await require_place_access(db, product.place_id, user, "products")
    product.is_active = not product.is_active
    await db.flush()
    return await _load_product(db, product.id)


@router.delete("/{product_id}", status_code=204)
async def delete_product(
    product_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    product = await _load_product(db, product_id)
    await require_place_access(db, product.place_id, user, "products")
    await db.delete(product)
