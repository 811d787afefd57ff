"""Employee requests and place staff management."""

import logging
import uuid
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth import get_current_user
from app.database import get_db
from app.errors import forbidden
from app.models import EmployeeRequest, Place, PlaceEmployee, UserProfile
from app.services.access import get_employment, get_place_or_404
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employees", tags=["employees"])

Permission = Literal["basic", "messages_posts", "full"]


# --- Schemas ---

class EmployeeRequestCreate(BaseModel):
    place_id: uuid.UUID
    phone: str = Field(min_length=1, max_length=30)


class AcceptRequest(BaseModel):
    permissions: Permission = "basic"


class PermissionUpdate(BaseModel):
    permissions: Permission


class ProfileSummary(BaseModel):
    id: uuid.UUID
    email: str | None
    full_name: str | None
    avatar_url: str | None
    phone: str | None

    model_config = {"from_attributes": True}


class EmployeeRequestResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    place_id: uuid.UUID
    phone: str
    status: str
    permissions: str
    created_at: datetime
    user: ProfileSummary | None = None

    model_config = {"from_attributes": True}


class EmployeeResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    place_id: uuid.UUID
    permissions: str
    phone: str | None
    is_active: bool
    created_at: datetime
    user: ProfileSummary | None = None

    model_config = {"from_attributes": True}


# --- Helpers ---

async def _owned_place(db: AsyncSession, place_id: uuid.UUID, user: UserProfile) -> Place:
    place = await get_place_or_404(db, place_id)
    if place.user_id != user.id:
        raise forbidden("فقط صاحب المكان يمكنه إدارة الموظفين")
    return place


async def _get_request(db: AsyncSession, request_id: uuid.UUID) -> EmployeeRequest:
    result = await db.execute(
        select(EmployeeRequest)
        .options(selectinload(EmployeeRequest.user))
        .where(EmployeeRequest.id == request_id)
    )
    request = result.scalar_one_or_none()
    if request is None:
        raise HTTPException(status_code=404, detail="الطلب غير موجود")
    return request


async def _get_employee(db: AsyncSession, employee_id: uuid.UUID) -> PlaceEmployee:
    result = await db.execute(
        select(PlaceEmployee)
        .options(selectinload(PlaceEmployee.user))
        .where(PlaceEmployee.id == employee_id)
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        raise HTTPException(status_code=404, detail="الموظف غير موجود")
    return employee


# --- Requests ---

@router.post("/requests", response_model=EmployeeRequestResponse, status_code=201)
async def request_to_join(
    data: EmployeeRequestCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    place = await get_place_or_404(db, data.place_id)
    if place.user_id == user.id:
        raise HTTPException(status_code=400, detail="لا يمكنك التقدم للعمل في مكانك")
    if await get_employment(db, user.id, place.id) is not None:
        raise HTTPException(status_code=409, detail="أنت موظف بالفعل في هذا المكان")

    pending = await db.execute(
        select(EmployeeRequest.id).where(
            EmployeeRequest.user_id == user.id,
            EmployeeRequest.place_id == place.id,
            EmployeeRequest.status == "pending",
        )
    )
    if pending.first() is not None:
        raise HTTPException(status_code=409, detail="لديك طلب قيد المراجعة بالفعل")

    request = EmployeeRequest(user_id=user.id, place_id=place.id, phone=data.phone)
    request.user = user
    db.add(request)
    await db.flush()

    await NotificationService(db).send_employee_request(
        place.user_id, place.name_ar, place.id, user.display_name
    )
    return request


@router.get("/requests/mine", response_model=list[EmployeeRequestResponse])
async def my_requests(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(EmployeeRequest)
        .options(selectinload(EmployeeRequest.user))
        .where(EmployeeRequest.user_id == user.id)
        .order_by(EmployeeRequest.created_at.desc())
    )
    return result.scalars().all()


@router.get("/requests", response_model=list[EmployeeRequestResponse])
async def list_requests(
    place_id: uuid.UUID = Query(...),
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _owned_place(db, place_id, user)
    result = await db.execute(
        select(EmployeeRequest)
        .options(selectinload(EmployeeRequest.user))
        .where(EmployeeRequest.place_id == place_id, EmployeeRequest.status == "pending")
        .order_by(EmployeeRequest.created_at.desc())
    )
    return result.scalars().all()


@router.post("/requests/{request_id}/accept", response_model=EmployeeResponse)
async def accept_request(
    request_id: uuid.UUID,
    data: AcceptRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await _get_request(db, request_id)
    await _owned_place(db, request.place_id, user)
    if request.status != "pending":
        raise HTTPException(status_code=409, detail="تمت معالجة هذا الطلب بالفعل")

    request.status = "accepted"
    request.permissions = data.permissions

    # A removed employee keeps their row; rejoining reactivates it.
    result = await db.execute(
        select(PlaceEmployee)
        .options(selectinload(PlaceEmployee.user))
        .where(
            PlaceEmployee.user_id == request.user_id,
            PlaceEmployee.place_id == request.place_id,
        )
    )
    employee = result.scalar_one_or_none()
    if employee is None:
        employee = PlaceEmployee(
            user_id=request.user_id,
            place_id=request.place_id,
            permissions=data.permissions,
            phone=request.phone,
        )
        employee.user = request.user
        db.add(employee)
    else:
        employee.permissions = data.permissions
        employee.phone = request.phone
        employee.is_active = True

    await db.flush()
    logger.info("Employee request %s accepted with %s", request.id, data.permissions)
    return employee


@router.post("/requests/{request_id}/reject", response_model=EmployeeRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await _get_request(db, request_id)
    await _owned_place(db, request.place_id, user)
    if request.status != "pending":
        raise HTTPException(status_code=409, detail="تمت معالجة هذا الطلب بالفعل")
    request.status = "rejected"
    await db.flush()
    return request


# --- Employees ---

@router.get("", response_model=list[EmployeeResponse])
async def list_employees(
    place_id: uuid.UUID = Query(...),
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await _owned_place(db, place_id, user)
    result = await db.execute(
        select(PlaceEmployee)
        .options(selectinload(PlaceEmployee.user))
        .where(PlaceEmployee.place_id == place_id, PlaceEmployee.is_active.is_(True))
        .order_by(PlaceEmployee.created_at)
    )
    return result.scalars().all()


@router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_permissions(
    employee_id: uuid.UUID,
    data: PermissionUpdate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee = await _get_employee(db, employee_id)
    await _owned_place(db, employee.place_id, user)
    employee.permissions = data.permissions
    await db.flush()
    return employee


@router.delete("/{employee_id}", status_code=204)
async def remove_employee(
    employee_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    employee = await _get_employee(db, employee_id)
    await _owned_place(db, employee.place_id, user)
    employee.is_active = False
    await db.flush()
