"""Tests for place listing, ownership rules and the view counter."""

import uuid
from datetime import date, timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models import Place, PlaceEmployee, PlaceVisit, UserProfile

PLACE_PAYLOAD = {
    "name_ar": "مطعم الشام",
    "name_en": "Al Sham Restaurant",
    "category": "restaurant",
    "latitude": 30.05,
    "longitude": 31.24,
    "phone_1": "+201111111111",
}


@pytest.mark.asyncio
async def test_create_place_requires_subscription(
    client: AsyncClient, customer: UserProfile, auth_headers
):
    resp = await client.post("/api/v1/places", json=PLACE_PAYLOAD, headers=auth_headers(customer))
    assert resp.status_code == 403
    assert resp.json()["code"] == "SUBSCRIPTION_REQUIRED"


@pytest.mark.asyncio
async def test_create_place_inherits_featured_flag(
    client: AsyncClient, owner: UserProfile, subscription, auth_headers
):
    resp = await client.post("/api/v1/places", json=PLACE_PAYLOAD, headers=auth_headers(owner))
    assert resp.status_code == 201
    data = resp.json()
    assert data["is_featured"] is True
    assert data["subscription_id"] == str(subscription.id)
    assert data["total_views"] == 0


@pytest.mark.asyncio
async def test_place_limit_reached(
    client: AsyncClient, owner: UserProfile, place: Place, auth_headers
):
    # The package allows a single place and the fixture already used it.
    resp = await client.post("/api/v1/places", json=PLACE_PAYLOAD, headers=auth_headers(owner))
    assert resp.status_code == 403
    body = resp.json()
    assert body["code"] == "LIMIT_REACHED"
    assert body["success"] is False


@pytest.mark.asyncio
async def test_create_place_rejects_unknown_category(
    client: AsyncClient, owner: UserProfile, subscription, auth_headers
):
    payload = {**PLACE_PAYLOAD, "category": "casino"}
    resp = await client.post("/api/v1/places", json=payload, headers=auth_headers(owner))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_places_filters(client: AsyncClient, place: Place):
    resp = await client.get("/api/v1/places", params={"category": "pharmacy"})
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()] == [str(place.id)]

    resp = await client.get("/api/v1/places", params={"q": "nour"})
    assert len(resp.json()) == 1

    resp = await client.get("/api/v1/places", params={"category": "store"})
    assert resp.json() == []


@pytest.mark.asyncio
async def test_get_place_not_found(client: AsyncClient):
    resp = await client.get(f"/api/v1/places/{uuid.uuid4()}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_place_owner_only(
    client: AsyncClient, place: Place, owner: UserProfile, customer: UserProfile, auth_headers
):
    resp = await client.patch(
        f"/api/v1/places/{place.id}",
        json={"address": "شارع التحرير"},
        headers=auth_headers(customer),
    )
    assert resp.status_code == 403

    resp = await client.patch(
        f"/api/v1/places/{place.id}",
        json={"address": "شارع التحرير"},
        headers=auth_headers(owner),
    )
    assert resp.status_code == 200
    assert resp.json()["address"] == "شارع التحرير"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [{"name_ar": None}, {"phone_1": None}, {"latitude": None}, {"category": None}, {"name_en": ""}],
)
async def test_update_place_rejects_null_required_fields(
    client: AsyncClient, place: Place, owner: UserProfile, auth_headers, body
):
    resp = await client.patch(
        f"/api/v1/places/{place.id}", json=body, headers=auth_headers(owner)
    )
    assert resp.status_code == 422

    resp = await client.get(f"/api/v1/places/{place.id}")
    assert resp.json()["name_ar"] == "صيدلية النور"


@pytest.mark.asyncio
async def test_toggle_active_twice_restores_state(
    client: AsyncClient, place: Place, owner: UserProfile, auth_headers
):
    url = f"/api/v1/places/{place.id}/toggle-active"
    first = await client.post(url, headers=auth_headers(owner))
    assert first.json()["is_active"] is False

    listing = await client.get("/api/v1/places")
    assert listing.json() == []

    second = await client.post(url, headers=auth_headers(owner))
    assert second.json()["is_active"] is True


@pytest.mark.asyncio
async def test_admin_can_toggle_any_place(
    client: AsyncClient, place: Place, admin: UserProfile, auth_headers
):
    resp = await client.post(
        f"/api/v1/places/{place.id}/toggle-active", headers=auth_headers(admin)
    )
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False


@pytest.mark.asyncio
async def test_record_view_counts(client: AsyncClient, place: Place, db):
    for _ in range(3):
        resp = await client.post(f"/api/v1/places/{place.id}/view")
        assert resp.status_code == 200
    assert resp.json() == {"total_views": 3, "today_views": 3}

    visits = await db.execute(select(PlaceVisit).where(PlaceVisit.place_id == place.id))
    assert len(visits.scalars().all()) == 3


@pytest.mark.asyncio
async def test_record_view_resets_stale_day(client: AsyncClient, place: Place, db):
    place.today_views = 7
    place.total_views = 20
    place.last_view_reset_date = date.today() - timedelta(days=1)
    await db.commit()

    resp = await client.post(f"/api/v1/places/{place.id}/view")
    assert resp.json() == {"total_views": 21, "today_views": 1}


@pytest.mark.asyncio
async def test_my_places_includes_employment(
    client: AsyncClient, place: Place, customer: UserProfile, db, auth_headers
):
    db.add(PlaceEmployee(user_id=customer.id, place_id=place.id, permissions="messages_posts"))
    await db.commit()

    resp = await client.get("/api/v1/places/mine", headers=auth_headers(customer))
    assert resp.status_code == 200
    data = resp.json()
    assert len(data) == 1
    assert data[0]["role"] == "employee"
    assert data[0]["permissions"] == "messages_posts"


@pytest.mark.asyncio
async def test_delete_place(
    client: AsyncClient, place: Place, product, owner: UserProfile, db, auth_headers
):
    resp = await client.delete(f"/api/v1/places/{place.id}", headers=auth_headers(owner))
    assert resp.status_code == 204

    result = await db.execute(select(Place).where(Place.id == place.id))
    assert result.scalar_one_or_none() is None
