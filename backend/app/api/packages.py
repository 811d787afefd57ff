"""Pricing packages: public listing and admin CRUD."""

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import require_admin
from app.database import get_db
from app.models import Package, UserProfile

router = APIRouter(prefix="/packages", tags=["packages"])


class PackageBase(BaseModel):
    name_ar: str
    name_en: str
    price: Decimal = Field(default=Decimal("0"), ge=0)
    max_places: int = Field(default=1, ge=0)
    max_product_images: int = Field(default=5, ge=0)
    max_product_videos: int = Field(default=0, ge=0)
    max_place_videos: int = Field(default=0, ge=0)
    priority: int = 0
    card_style: str | None = None
    is_featured: bool = False


class PackageCreate(PackageBase):
    pass


class PackageUpdate(BaseModel):
    name_ar: str | None = None
    name_en: str | None = None
    price: Decimal | None = Field(default=None, ge=0)
    max_places: int | None = Field(default=None, ge=0)
    max_product_images: int | None = Field(default=None, ge=0)
    max_product_videos: int | None = Field(default=None, ge=0)
    max_place_videos: int | None = Field(default=None, ge=0)
    priority: int | None = None
    card_style: str | None = None
    is_featured: bool | None = None


class PackageResponse(PackageBase):
    id: uuid.UUID

    model_config = {"from_attributes": True}


async def _get_package(db: AsyncSession, package_id: uuid.UUID) -> Package:
    package = await db.get(Package, package_id)
    if package is None:
        raise HTTPException(status_code=404, detail="الباقة غير موجودة")
    return package


@router.get("", response_model=list[PackageResponse])
async def list_packages(db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        select(Package).order_by(Package.priority.desc(), Package.price)
    )
    return result.scalars().all()


@router.get("/{package_id}", response_model=PackageResponse)
async def get_package(package_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await _get_package(db, package_id)


@router.post("", response_model=PackageResponse, status_code=201)
async def create_package(
    data: PackageCreate,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    package = Package(**data.model_dump())
    db.add(package)
    await db.flush()
    return package


@router.patch("/{package_id}", response_model=PackageResponse)
async def update_package(
    package_id: uuid.UUID,
    data: PackageUpdate,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    package = await _get_package(db, package_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(package, field, value)
    await db.flush()
    await db.refresh(package)
    return package


@router.delete("/{package_id}", status_code=204)
async def delete_package(
    package_id: uuid.UUID,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    package = await _get_package(db, package_id)
    in_use = await db.execute(
        select(Package.id).join(Package.subscriptions).where(Package.id == package_id).limit(1)
    )
    if in_use.first() is not None:
        raise HTTPException(status_code=409, detail="لا يمكن حذف باقة مرتبطة باشتراكات")
    await db.delete(package)
