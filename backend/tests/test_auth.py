"""Tests for registration, login and the current-user endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models import Notification, UserProfile


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["app"] == "BAN Directory"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_register_returns_token_and_sends_welcome(client: AsyncClient, db):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "New.User@Example.com", "password": "secret123", "full_name": "سارة"},
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["access_token"]
    assert data["user"]["email"] == "new.user@example.com"
    assert data["user"]["is_admin"] is False

    result = await db.execute(select(Notification).where(Notification.type == "system"))
    welcome = result.scalars().all()
    assert len(welcome) == 1
    assert "مرحباً" in welcome[0].title_ar


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, owner: UserProfile):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "OWNER@example.com", "password": "secret123"},
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_register_short_password(client: AsyncClient):
    resp = await client.post(
        "/api/v1/auth/register",
        json={"email": "short@example.com", "password": "123"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_login(client: AsyncClient, owner: UserProfile):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "owner@example.com", "password": "secret123"},
    )
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == str(owner.id)


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, owner: UserProfile):
    resp = await client.post(
        "/api/v1/auth/login",
        json={"email": "owner@example.com", "password": "wrong-password"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_me_requires_token(client: AsyncClient):
    resp = await client.get("/api/v1/auth/me")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_me_with_garbage_token(client: AsyncClient):
    resp = await client.get(
        "/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_update_profile(client: AsyncClient, owner: UserProfile, auth_headers):
    resp = await client.patch(
        "/api/v1/users/me",
        json={"full_name": "أحمد", "avatar_url": "https://i.ibb.co/x/me.png"},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["full_name"] == "أحمد"
    assert data["avatar_url"] == "https://i.ibb.co/x/me.png"
    assert data["email"] == "owner@example.com"
