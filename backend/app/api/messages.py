"""Messaging between clients and places, and the derived conversation views."""

import logging
import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth import get_current_user
from app.database import get_db
from app.errors import forbidden
from app.models import Message, Place, PlaceEmployee, UserProfile
from app.services.access import ACTION_PERMISSIONS, employee_can, get_employment, get_place_or_404
from app.services.conversations import (
    build_conversations,
    conversation_messages,
    unread_total,
)
from app.services.notification import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


# --- Schemas ---

class MessageCreate(BaseModel):
    place_id: uuid.UUID
    content: str | None = None
    image_url: str | None = None
    audio_url: str | None = None
    recipient_id: uuid.UUID | None = None
    product_id: uuid.UUID | None = None
    reply_to: uuid.UUID | None = None


class RepliedMessage(BaseModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    content: str | None
    image_url: str | None
    audio_url: str | None

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: uuid.UUID
    sender_id: uuid.UUID
    place_id: uuid.UUID
    recipient_id: uuid.UUID | None
    product_id: uuid.UUID | None
    reply_to: uuid.UUID | None
    employee_id: uuid.UUID | None
    content: str | None
    image_url: str | None
    audio_url: str | None
    is_read: bool
    created_at: datetime
    sender_name: str | None = None
    replied_message: RepliedMessage | None = None


class ConversationResponse(BaseModel):
    key: str
    partner_id: uuid.UUID
    place_id: uuid.UUID
    place_name: str
    last_message_id: uuid.UUID
    last_message: str
    last_message_time: datetime
    unread_count: int
    partner_name: str
    partner_avatar: str | None = None

    model_config = {"from_attributes": True}


class CountResponse(BaseModel):
    count: int


# --- Helpers ---

def _out(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        sender_id=message.sender_id,
        place_id=message.place_id,
        recipient_id=message.recipient_id,
        product_id=message.product_id,
        reply_to=message.reply_to,
        employee_id=message.employee_id,
        content=message.content,
        image_url=message.image_url,
        audio_url=message.audio_url,
        is_read=message.is_read,
        created_at=message.created_at,
        sender_name=message.sender.display_name if message.sender else None,
        replied_message=(
            RepliedMessage.model_validate(message.replied_message)
            if message.replied_message
            else None
        ),
    )


async def _staff_places(db: AsyncSession, user: UserProfile) -> dict[uuid.UUID, str]:
    """Places whose inbox *user* reads: owned ones and messaging-enabled jobs."""
    owned = await db.execute(select(Place.id, Place.name_ar).where(Place.user_id == user.id))
    places = {pid: name for pid, name in owned.all()}

    employed = await db.execute(
        select(Place.id, Place.name_ar)
        .join(PlaceEmployee, PlaceEmployee.place_id == Place.id)
        .where(
            PlaceEmployee.user_id == user.id,
            PlaceEmployee.is_active.is_(True),
            PlaceEmployee.permissions.in_(ACTION_PERMISSIONS["messages"]),
        )
    )
    places.update({pid: name for pid, name in employed.all()})
    return places


async def _inbox(db: AsyncSession, user: UserProfile, places: dict[uuid.UUID, str]) -> list[Message]:
    conditions = [Message.recipient_id == user.id, Message.sender_id == user.id]
    if places:
        conditions.append(Message.place_id.in_(list(places)))

    result = await db.execute(
        select(Message)
        .options(
            selectinload(Message.sender),
            selectinload(Message.place),
            selectinload(Message.replied_message),
        )
        .where(or_(*conditions))
        .order_by(Message.created_at)
    )
    return list(result.scalars().all())


# --- Endpoints ---

@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    data: MessageCreate,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    if not (data.content and data.content.strip()) and not data.image_url and not data.audio_url:
        raise HTTPException(status_code=400, detail="لا يمكن إرسال رسالة فارغة")

    place = await get_place_or_404(db, data.place_id)

    employee = None
    from_place = place.user_id == user.id
    if not from_place:
        employee = await get_employment(db, user.id, place.id)
        if employee is not None:
            if not employee_can(employee, "messages"):
                raise forbidden("ليس لديك صلاحية للرد على الرسائل")
            from_place = True

    if from_place and data.recipient_id is None:
        raise HTTPException(status_code=400, detail="يجب تحديد المستلم")

    if data.reply_to is not None and await db.get(Message, data.reply_to) is None:
        raise HTTPException(status_code=404, detail="الرسالة غير موجودة")

    message = Message(
        sender_id=user.id,
        place_id=place.id,
        recipient_id=data.recipient_id,
        product_id=data.product_id,
        reply_to=data.reply_to,
        employee_id=employee.id if employee else None,
        content=data.content.strip() if data.content else None,
        image_url=data.image_url,
        audio_url=data.audio_url,
    )
    db.add(message)
    await db.flush()

    notify = NotificationService(db)
    if from_place:
        await notify.send_message_notification(data.recipient_id, place.name_ar, place.id)
    elif place.user_id != user.id:
        await notify.send_message_notification(place.user_id, user.display_name, place.id)

    result = await db.execute(
        select(Message)
        .options(selectinload(Message.sender), selectinload(Message.replied_message))
        .where(Message.id == message.id)
        .execution_options(populate_existing=True)
    )
    return _out(result.scalar_one())


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    places = await _staff_places(db, user)
    messages = await _inbox(db, user, places)
    return build_conversations(messages, user.id, places)


@router.get("/unread-count", response_model=CountResponse)
async def unread_count(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    places = await _staff_places(db, user)
    messages = await _inbox(db, user, places)
    return CountResponse(count=unread_total(messages, user.id))


@router.get(
    "/conversations/{partner_id}/{place_id}",
    response_model=list[MessageResponse],
)
async def get_conversation(
    partner_id: uuid.UUID,
    place_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    places = await _staff_places(db, user)
    messages = await _inbox(db, user, places)
    return [_out(m) for m in conversation_messages(messages, user.id, partner_id, place_id)]


@router.post(
    "/conversations/{partner_id}/{place_id}/read",
    response_model=CountResponse,
)
async def mark_conversation_read(
    partner_id: uuid.UUID,
    place_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    places = await _staff_places(db, user)
    messages = await _inbox(db, user, places)
    ids = [
        m.id
        for m in conversation_messages(messages, user.id, partner_id, place_id)
        if not m.is_read and m.sender_id != user.id
    ]
    if ids:
        await db.execute(
            update(Message)
            .where(Message.id.in_(ids))
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
    return CountResponse(count=len(ids))


@router.post("/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: uuid.UUID,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Message)
        .options(selectinload(Message.sender), selectinload(Message.replied_message))
        .where(Message.id == message_id)
    )
    message = result.scalar_one_or_none()
    if message is None:
        raise HTTPException(status_code=404, detail="الرسالة غير موجودة")

    if message.sender_id != user.id:
        allowed = message.recipient_id == user.id
        if not allowed:
            places = await _staff_places(db, user)
            allowed = message.place_id in places
        if not allowed:
            raise forbidden("ليس لديك صلاحية لتنفيذ هذا الإجراء")
        message.is_read = True
        await db.flush()
    return _out(message)
