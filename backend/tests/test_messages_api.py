"""Tests for the messaging endpoints between clients and places."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.config import Settings
from app.models import Message, Notification, Place, PlaceEmployee, UserProfile
from app.services import notification as notification_module
from app.services import web_push_sender


async def _send(client: AsyncClient, headers: dict, **payload):
    return await client.post("/api/v1/messages", json=payload, headers=headers)


@pytest.mark.asyncio
async def test_client_message_notifies_owner(
    client: AsyncClient, place: Place, owner: UserProfile, customer: UserProfile, db, auth_headers
):
    resp = await _send(
        client, auth_headers(customer), place_id=str(place.id), content="هل يوجد توصيل؟"
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["sender_name"] == "Customer One"
    assert data["recipient_id"] is None
    assert data["is_read"] is False

    result = await db.execute(
        select(Notification).where(Notification.user_id == owner.id, Notification.type == "message")
    )
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_message_saved_when_push_delivery_breaks(
    client: AsyncClient, place: Place, owner: UserProfile, customer: UserProfile, db, auth_headers, monkeypatch
):
    def bad_key(**kwargs):
        raise ValueError("Could not deserialize key data")

    vapid = Settings(vapid_public_key="pub", vapid_private_key="not-a-key")
    monkeypatch.setattr(notification_module, "get_settings", lambda: vapid)
    monkeypatch.setattr(web_push_sender, "webpush", bad_key)
    owner.push_subscription = {
        "endpoint": "https://fcm.googleapis.com/fcm/send/abc",
        "keys": {"p256dh": "bad", "auth": "bad"},
    }
    await db.commit()

    resp = await _send(client, auth_headers(customer), place_id=str(place.id), content="مرحبا")
    assert resp.status_code == 201

    stored = await db.execute(select(Message).where(Message.place_id == place.id))
    assert len(stored.scalars().all()) == 1


@pytest.mark.asyncio
async def test_empty_message_rejected(
    client: AsyncClient, place: Place, customer: UserProfile, auth_headers
):
    resp = await _send(client, auth_headers(customer), place_id=str(place.id), content="   ")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_voice_only_message_allowed(
    client: AsyncClient, place: Place, customer: UserProfile, auth_headers
):
    resp = await _send(
        client,
        auth_headers(customer),
        place_id=str(place.id),
        audio_url="https://files.catbox.moe/abc123.webm",
    )
    assert resp.status_code == 201
    assert resp.json()["audio_url"] == "https://files.catbox.moe/abc123.webm"


@pytest.mark.asyncio
async def test_owner_reply_requires_recipient(
    client: AsyncClient, place: Place, owner: UserProfile, auth_headers
):
    resp = await _send(client, auth_headers(owner), place_id=str(place.id), content="أهلاً")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_conversation_flow(
    client: AsyncClient, place: Place, owner: UserProfile, customer: UserProfile, auth_headers
):
    first = await _send(client, auth_headers(customer), place_id=str(place.id), content="سؤال")
    await _send(client, auth_headers(customer), place_id=str(place.id), content="سؤال آخر")
    reply = await _send(
        client,
        auth_headers(owner),
        place_id=str(place.id),
        recipient_id=str(customer.id),
        reply_to=first.json()["id"],
        content="الإجابة",
    )
    assert reply.status_code == 201
    assert reply.json()["replied_message"]["content"] == "سؤال"

    convs = await client.get("/api/v1/messages/conversations", headers=auth_headers(owner))
    assert convs.status_code == 200
    (conversation,) = convs.json()
    assert conversation["partner_id"] == str(customer.id)
    assert conversation["place_name"] == "صيدلية النور"
    assert conversation["last_message"] == "الإجابة"
    assert conversation["unread_count"] == 2
    assert conversation["partner_name"] == "Customer One"

    unread = await client.get("/api/v1/messages/unread-count", headers=auth_headers(owner))
    assert unread.json() == {"count": 2}

    thread = await client.get(
        f"/api/v1/messages/conversations/{customer.id}/{place.id}",
        headers=auth_headers(owner),
    )
    assert [m["content"] for m in thread.json()] == ["سؤال", "سؤال آخر", "الإجابة"]

    marked = await client.post(
        f"/api/v1/messages/conversations/{customer.id}/{place.id}/read",
        headers=auth_headers(owner),
    )
    assert marked.json() == {"count": 2}

    unread = await client.get("/api/v1/messages/unread-count", headers=auth_headers(owner))
    assert unread.json() == {"count": 0}

    # The customer still has the owner's reply unread.
    unread = await client.get("/api/v1/messages/unread-count", headers=auth_headers(customer))
    assert unread.json() == {"count": 1}


@pytest.mark.asyncio
async def test_employee_messaging_permissions(
    client: AsyncClient,
    place: Place,
    customer: UserProfile,
    make_user,
    db,
    auth_headers,
):
    worker = await make_user("worker@example.com", full_name="Worker")
    employee = PlaceEmployee(user_id=worker.id, place_id=place.id, permissions="basic")
    db.add(employee)
    await db.commit()

    await _send(client, auth_headers(customer), place_id=str(place.id), content="مرحبا")

    resp = await _send(
        client,
        auth_headers(worker),
        place_id=str(place.id),
        recipient_id=str(customer.id),
        content="رد",
    )
    assert resp.status_code == 403

    # Basic employees do not see the place inbox.
    convs = await client.get("/api/v1/messages/conversations", headers=auth_headers(worker))
    assert convs.json() == []

    employee.permissions = "messages_posts"
    await db.commit()

    resp = await _send(
        client,
        auth_headers(worker),
        place_id=str(place.id),
        recipient_id=str(customer.id),
        content="رد",
    )
    assert resp.status_code == 201
    assert resp.json()["employee_id"] == str(employee.id)

    convs = await client.get("/api/v1/messages/conversations", headers=auth_headers(worker))
    assert len(convs.json()) == 1


@pytest.mark.asyncio
async def test_mark_single_message_read(
    client: AsyncClient, place: Place, owner: UserProfile, customer: UserProfile, make_user, auth_headers
):
    sent = await _send(client, auth_headers(customer), place_id=str(place.id), content="؟")
    message_id = sent.json()["id"]

    stranger = await make_user("stranger@example.com")
    resp = await client.post(f"/api/v1/messages/{message_id}/read", headers=auth_headers(stranger))
    assert resp.status_code == 403

    resp = await client.post(f"/api/v1/messages/{message_id}/read", headers=auth_headers(owner))
    assert resp.status_code == 200
    assert resp.json()["is_read"] is True
