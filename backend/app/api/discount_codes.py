"""Discount codes: admin CRUD."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import require_admin
from app.database import get_db
from app.models import DiscountCode, UserProfile
from app.services.discounts import code_taken, discount_code_usable, normalize_code

router = APIRouter(prefix="/discount-codes", tags=["discount-codes"])


def _naive(value: datetime) -> datetime:
    return value.astimezone(timezone.utc).replace(tzinfo=None) if value.tzinfo else value


class DiscountCodeCreate(BaseModel):
    code: str = Field(min_length=2, max_length=50)
    discount_percentage: Decimal = Field(ge=0, le=100)
    start_date: datetime
    end_date: datetime
    max_uses: int | None = Field(default=None, ge=1)
    is_active: bool = True
    description_ar: str | None = None
    description_en: str | None = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return normalize_code(value)

    @model_validator(mode="after")
    def window_order(self):
        if _naive(self.end_date) <= _naive(self.start_date):
            raise ValueError("end_date must be after start_date")
        return self


class DiscountCodeUpdate(BaseModel):
    discount_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    start_date: datetime | None = None
    end_date: datetime | None = None
    max_uses: int | None = Field(default=None, ge=1)
    is_active: bool | None = None
    description_ar: str | None = None
    description_en: str | None = None


class DiscountCodeResponse(BaseModel):
    id: uuid.UUID
    code: str
    discount_percentage: Decimal
    start_date: datetime
    end_date: datetime
    max_uses: int | None
    used_count: int
    is_active: bool
    description_ar: str | None
    description_en: str | None
    created_by: uuid.UUID | None
    created_at: datetime
    is_usable: bool = False

    model_config = {"from_attributes": True}


def _out(code: DiscountCode) -> DiscountCodeResponse:
    response = DiscountCodeResponse.model_validate(code)
    response.is_usable = discount_code_usable(code)
    return response


async def _get_code(db: AsyncSession, code_id: uuid.UUID) -> DiscountCode:
    code = await db.get(DiscountCode, code_id)
    if code is None:
        raise HTTPException(status_code=404, detail="كود الخصم غير موجود")
    return code


@router.get("", response_model=list[DiscountCodeResponse])
async def list_codes(
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(DiscountCode).order_by(DiscountCode.created_at.desc()))
    return [_out(c) for c in result.scalars().all()]


@router.post("", response_model=DiscountCodeResponse, status_code=201)
async def create_code(
    data: DiscountCodeCreate,
    admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if await code_taken(db, data.code):
        raise HTTPException(status_code=409, detail="الكود مستخدم بالفعل")
    code = DiscountCode(**data.model_dump(), created_by=admin.id)
    db.add(code)
    await db.flush()
    return _out(code)


@router.patch("/{code_id}", response_model=DiscountCodeResponse)
async def update_code(
    code_id: uuid.UUID,
    data: DiscountCodeUpdate,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    code = await _get_code(db, code_id)
    changes = data.model_dump(exclude_unset=True)
    start = changes.get("start_date", code.start_date)
    end = changes.get("end_date", code.end_date)
    if "start_date" in changes or "end_date" in changes:
        if _naive(end) <= _naive(start):
            raise HTTPException(status_code=422, detail="end_date must be after start_date")

    for field, value in changes.items():
        setattr(code, field, value)
    await db.flush()
    await db.refresh(code)
    return _out(code)


@router.post("/{code_id}/toggle-active", response_model=DiscountCodeResponse)
async def toggle_code(
    code_id: uuid.UUID,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    code = await _get_code(db, code_id)
    code.is_active = not code.is_active
    await db.flush()
    await db.refresh(code)
    return _out(code)


@router.delete("/{code_id}", status_code=204)
async def delete_code(
    code_id: uuid.UUID,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    code = await _get_code(db, code_id)
    await db.delete(code)
