"""Conversation aggregation.

Messages are stored flat; a conversation is the set of messages exchanged
between the viewer and one partner about one place.  Everything here is a
pure function over already-loaded ``Message`` rows (or any object with the
same attributes), so callers decide how the rows are fetched.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

IMAGE_PREVIEW = "صورة"
AUDIO_PREVIEW = "رسالة صوتية"
GENERIC_PREVIEW = "رسالة"
UNKNOWN_PARTNER = "مستخدم"


@dataclass
class Conversation:
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


def partner_of(message: Any, viewer_id: uuid.UUID) -> uuid.UUID:
    """The other side of *message* from the viewer's point of view.

    A message the viewer sent belongs to its recipient's thread; a message
    sent to a place with no recipient falls back to the sender.
    """
    if message.sender_id == viewer_id:
        return message.recipient_id or message.sender_id
    return message.sender_id


def preview_text(message: Any) -> str:
    if message.content:
        return message.content
    if message.image_url:
        return IMAGE_PREVIEW
    if message.audio_url:
        return AUDIO_PREVIEW
    return GENERIC_PREVIEW


def conversation_key(partner_id: uuid.UUID, place_id: uuid.UUID) -> str:
    return f"{partner_id}-{place_id}"


def _place_name(place_id: uuid.UUID, messages: list[Any], own_places: Mapping[uuid.UUID, str]) -> str:
    if place_id in own_places:
        return own_places[place_id]
    for msg in messages:
        place = getattr(msg, "place", None)
        if place is not None and getattr(place, "name_ar", None):
            return place.name_ar
    return str(place_id)


def _partner_profile(partner_id: uuid.UUID, messages: list[Any]) -> Any | None:
    for msg in messages:
        if msg.sender_id == partner_id:
            return getattr(msg, "sender", None)
    return None


def build_conversations(
    messages: Iterable[Any],
    viewer_id: uuid.UUID,
    own_places: Mapping[uuid.UUID, str] | None = None,
) -> list[Conversation]:
    """Group *messages* into conversations, newest activity first.

    ``own_places`` maps the ids of places the viewer owns (or works at) to
    their display name.
    """
    own_places = own_places or {}

    grouped: dict[tuple[uuid.UUID, uuid.UUID], list[Any]] = {}
    for msg in messages:
        grouped.setdefault((msg.place_id, partner_of(msg, viewer_id)), []).append(msg)

    conversations: list[Conversation] = []
    for (place_id, partner_id), thread in grouped.items():
        last = max(thread, key=lambda m: m.created_at)
        unread = sum(1 for m in thread if not m.is_read and m.sender_id != viewer_id)
        profile = _partner_profile(partner_id, thread)

        partner_name = UNKNOWN_PARTNER
        partner_avatar = None
        if profile is not None:
            partner_name = profile.full_name or profile.email or UNKNOWN_PARTNER
            partner_avatar = profile.avatar_url

        conversations.append(
            Conversation(
                key=conversation_key(partner_id, place_id),
                partner_id=partner_id,
                place_id=place_id,
                place_name=_place_name(place_id, thread, own_places),
                last_message_id=last.id,
                last_message=preview_text(last),
                last_message_time=last.created_at,
                unread_count=unread,
                partner_name=partner_name,
                partner_avatar=partner_avatar,
            )
        )

    conversations.sort(key=lambda c: c.last_message_time, reverse=True)
    return conversations


def conversation_messages(
    messages: Iterable[Any],
    viewer_id: uuid.UUID,
    partner_id: uuid.UUID,
    place_id: uuid.UUID,
) -> list[Any]:
    """Messages of one (partner, place) thread in chronological order."""
    thread = [
        m
        for m in messages
        if m.place_id == place_id and partner_of(m, viewer_id) == partner_id
    ]
    thread.sort(key=lambda m: m.created_at)
    return thread


def unread_total(messages: Iterable[Any], viewer_id: uuid.UUID) -> int:
    return sum(1 for m in messages if not m.is_read and m.sender_id != viewer_id)
