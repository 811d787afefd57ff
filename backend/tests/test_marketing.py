"""Tests for admin discount-code and affiliate management."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.models import Affiliate, AffiliateTransaction, UserProfile


def _code_payload(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    data = {
        "code": "ramadan25",
        "discount_percentage": "25",
        "start_date": (now - timedelta(days=1)).isoformat(),
        "end_date": (now + timedelta(days=10)).isoformat(),
        "max_uses": 100,
    }
    data.update(overrides)
    return data


@pytest.mark.asyncio
async def test_create_discount_code(client: AsyncClient, admin: UserProfile, auth_headers):
    resp = await client.post(
        "/api/v1/discount-codes", json=_code_payload(), headers=auth_headers(admin)
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["code"] == "RAMADAN25"
    assert data["used_count"] == 0
    assert data["is_usable"] is True
    assert data["created_by"] == str(admin.id)


@pytest.mark.asyncio
@pytest.mark.parametrize("percentage", ["-1", "100.5", "250"])
async def test_discount_percentage_bounds(
    client: AsyncClient, admin: UserProfile, auth_headers, percentage
):
    resp = await client.post(
        "/api/v1/discount-codes",
        json=_code_payload(discount_percentage=percentage),
        headers=auth_headers(admin),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_discount_window_must_be_ordered(
    client: AsyncClient, admin: UserProfile, auth_headers
):
    now = datetime.now(timezone.utc)
    resp = await client.post(
        "/api/v1/discount-codes",
        json=_code_payload(
            start_date=now.isoformat(), end_date=(now - timedelta(days=1)).isoformat()
        ),
        headers=auth_headers(admin),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_duplicate_code_conflicts(client: AsyncClient, admin: UserProfile, auth_headers):
    await client.post("/api/v1/discount-codes", json=_code_payload(), headers=auth_headers(admin))
    resp = await client.post(
        "/api/v1/discount-codes",
        json=_code_payload(code="RAMADAN25"),
        headers=auth_headers(admin),
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_toggle_code_twice(client: AsyncClient, admin: UserProfile, auth_headers):
    created = await client.post(
        "/api/v1/discount-codes", json=_code_payload(), headers=auth_headers(admin)
    )
    url = f"/api/v1/discount-codes/{created.json()['id']}/toggle-active"

    off = await client.post(url, headers=auth_headers(admin))
    assert off.json()["is_active"] is False
    assert off.json()["is_usable"] is False

    on = await client.post(url, headers=auth_headers(admin))
    assert on.json()["is_active"] is True
    assert on.json()["is_usable"] is True


@pytest.mark.asyncio
async def test_discount_codes_admin_only(
    client: AsyncClient, customer: UserProfile, auth_headers
):
    resp = await client.get("/api/v1/discount-codes", headers=auth_headers(customer))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_create_affiliate_sets_user_flags(
    client: AsyncClient, admin: UserProfile, customer: UserProfile, db, auth_headers
):
    resp = await client.post(
        "/api/v1/affiliates",
        json={
            "user_id": str(customer.id),
            "code": "mona10",
            "discount_percentage": "10",
            "commission_percentage": "20",
        },
        headers=auth_headers(admin),
    )
    assert resp.status_code == 201
    assert resp.json()["code"] == "MONA10"

    await db.refresh(customer)
    assert customer.is_affiliate is True
    assert customer.affiliate_code == "MONA10"

    again = await client.post(
        "/api/v1/affiliates",
        json={"user_id": str(customer.id), "code": "OTHER", "discount_percentage": "5"},
        headers=auth_headers(admin),
    )
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_affiliate_withdrawal_flow(
    client: AsyncClient, admin: UserProfile, customer: UserProfile, db, auth_headers
):
    affiliate = Affiliate(
        user_id=customer.id,
        code="AFFMONA",
        discount_percentage=Decimal("10"),
        commission_percentage=Decimal("10"),
        pending_earnings=Decimal("30"),
        total_earnings=Decimal("30"),
    )
    affiliate.transactions = [
        AffiliateTransaction(transaction_type="earning", amount=Decimal("30"), status="pending")
    ]
    db.add(affiliate)
    await db.commit()

    too_much = await client.post(
        "/api/v1/affiliates/me/withdrawals", json={"amount": "31"}, headers=auth_headers(customer)
    )
    assert too_much.status_code == 400

    resp = await client.post(
        "/api/v1/affiliates/me/withdrawals", json={"amount": "20"}, headers=auth_headers(customer)
    )
    assert resp.status_code == 201
    withdrawal = resp.json()
    assert Decimal(withdrawal["amount"]) == Decimal("-20")
    assert withdrawal["status"] == "pending"

    dashboard = await client.get("/api/v1/affiliates/me", headers=auth_headers(customer))
    assert Decimal(dashboard.json()["stats"]["pending_balance"]) == Decimal("10")

    done = await client.patch(
        f"/api/v1/affiliates/transactions/{withdrawal['id']}",
        json={"status": "completed"},
        headers=auth_headers(admin),
    )
    assert done.status_code == 200

    await db.refresh(affiliate)
    assert Decimal(affiliate.paid_earnings) == Decimal("20")
    assert Decimal(affiliate.pending_earnings) == Decimal("10")

    dashboard = await client.get("/api/v1/affiliates/me", headers=auth_headers(customer))
    assert Decimal(dashboard.json()["stats"]["withdrawn_amount"]) == Decimal("20")


@pytest.mark.asyncio
async def test_admin_affiliate_toggle_generates_code(
    client: AsyncClient, admin: UserProfile, customer: UserProfile, db, auth_headers
):
    resp = await client.put(
        f"/api/v1/admin/users/{customer.id}/affiliate",
        json={"value": True},
        headers=auth_headers(admin),
    )
    assert resp.status_code == 200
    code = resp.json()["affiliate_code"]
    assert code.startswith("AFF") and len(code) == 9

    result = await db.execute(select(Affiliate).where(Affiliate.user_id == customer.id))
    assert result.scalar_one().code == code

    resp = await client.put(
        f"/api/v1/admin/users/{customer.id}/affiliate",
        json={"value": False},
        headers=auth_headers(admin),
    )
    assert resp.json()["is_affiliate"] is False
    assert resp.json()["affiliate_code"] is None
