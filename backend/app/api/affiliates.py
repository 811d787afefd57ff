"""Affiliates: admin management, the affiliate dashboard and withdrawals."""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import get_current_user, require_admin
from app.database import get_db
from app.models import Affiliate, AffiliateTransaction, UserProfile, UserSubscription
from app.services.discounts import code_taken, normalize_code

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/affiliates", tags=["affiliates"])


# --- Schemas ---

class AffiliateCreate(BaseModel):
    user_id: uuid.UUID
    code: str = Field(min_length=2, max_length=50)
    discount_percentage: Decimal = Field(ge=0, le=100)
    commission_percentage: Decimal = Field(default=Decimal("0"), ge=0, le=100)

    @field_validator("code")
    @classmethod
    def upper_code(cls, value: str) -> str:
        return normalize_code(value)


class AffiliateUpdate(BaseModel):
    discount_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    commission_percentage: Decimal | None = Field(default=None, ge=0, le=100)
    is_active: bool | None = None


class AffiliateResponse(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    code: str
    discount_percentage: Decimal
    commission_percentage: Decimal
    total_earnings: Decimal
    paid_earnings: Decimal
    pending_earnings: Decimal
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class TransactionResponse(BaseModel):
    id: uuid.UUID
    affiliate_id: uuid.UUID
    subscription_id: uuid.UUID | None
    transaction_type: str
    amount: Decimal
    commission_percentage: Decimal | None
    description_ar: str | None
    description_en: str | None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class AffiliateStats(BaseModel):
    total_earnings: Decimal
    pending_balance: Decimal
    withdrawn_amount: Decimal
    total_referrals: int
    active_subscriptions: int


class AffiliateDashboard(BaseModel):
    affiliate: AffiliateResponse
    transactions: list[TransactionResponse]
    stats: AffiliateStats


class WithdrawalRequest(BaseModel):
    amount: Decimal


class TransactionStatusUpdate(BaseModel):
    status: Literal["pending", "completed", "failed", "cancelled"]


# --- Helpers ---

async def _get_affiliate(db: AsyncSession, affiliate_id: uuid.UUID) -> Affiliate:
    affiliate = await db.get(Affiliate, affiliate_id)
    if affiliate is None:
        raise HTTPException(status_code=404, detail="المسوق غير موجود")
    return affiliate


async def available_balance(db: AsyncSession, affiliate_id: uuid.UUID) -> Decimal:
    """Earnings minus withdrawals, ignoring failed and cancelled transactions."""
    total = await db.scalar(
        select(func.coalesce(func.sum(AffiliateTransaction.amount), 0)).where(
            AffiliateTransaction.affiliate_id == affiliate_id,
            AffiliateTransaction.status.in_(("pending", "completed")),
        )
    )
    return Decimal(str(total or 0))


async def _stats(
    db: AsyncSession, affiliate: Affiliate, transactions: list[AffiliateTransaction]
) -> AffiliateStats:
    earnings = sum(
        (Decimal(t.amount) for t in transactions
         if t.transaction_type == "earning" and t.status == "completed"),
        Decimal("0"),
    )
    withdrawn = sum(
        (-Decimal(t.amount) for t in transactions
         if t.transaction_type == "withdrawal" and t.status == "completed"),
        Decimal("0"),
    )
    referrals = await db.scalar(
        select(func.count()).select_from(UserSubscription).where(
            UserSubscription.affiliate_code_used == affiliate.code
        )
    )
    active = await db.scalar(
        select(func.count()).select_from(UserSubscription).where(
            UserSubscription.affiliate_code_used == affiliate.code,
            UserSubscription.is_active.is_(True),
        )
    )
    return AffiliateStats(
        total_earnings=earnings,
        pending_balance=await available_balance(db, affiliate.id),
        withdrawn_amount=withdrawn,
        total_referrals=referrals or 0,
        active_subscriptions=active or 0,
    )


# --- Affiliate self-service ---

@router.get("/me", response_model=AffiliateDashboard)
async def my_dashboard(
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Affiliate).where(Affiliate.user_id == user.id))
    affiliate = result.scalar_one_or_none()
    if affiliate is None:
        raise HTTPException(status_code=404, detail="لم يتم العثور على حساب المسوق")

    tx_result = await db.execute(
        select(AffiliateTransaction)
        .where(AffiliateTransaction.affiliate_id == affiliate.id)
        .order_by(AffiliateTransaction.created_at.desc())
        .limit(50)
    )
    transactions = list(tx_result.scalars().all())
    return AffiliateDashboard(
        affiliate=AffiliateResponse.model_validate(affiliate),
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        stats=await _stats(db, affiliate, transactions),
    )


@router.post("/me/withdrawals", response_model=TransactionResponse, status_code=201)
async def request_withdrawal(
    data: WithdrawalRequest,
    user: UserProfile = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Affiliate).where(Affiliate.user_id == user.id))
    affiliate = result.scalar_one_or_none()
    if affiliate is None:
        raise HTTPException(status_code=404, detail="لم يتم العثور على حساب المسوق")

    if data.amount <= 0:
        raise HTTPException(status_code=400, detail="المبلغ غير صحيح")
    if data.amount > await available_balance(db, affiliate.id):
        raise HTTPException(status_code=400, detail="المبلغ أكبر من الرصيد المتاح")

    transaction = AffiliateTransaction(
        affiliate_id=affiliate.id,
        transaction_type="withdrawal",
        amount=-data.amount,
        description_ar=f"طلب سحب {data.amount} جنيه",
        description_en=f"Withdrawal request of {data.amount} EGP",
        status="pending",
    )
    db.add(transaction)
    await db.flush()
    logger.info("Affiliate %s requested withdrawal of %s", affiliate.code, data.amount)
    return transaction


# --- Admin ---

@router.get("", response_model=list[AffiliateResponse])
async def list_affiliates(
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(select(Affiliate).order_by(Affiliate.created_at.desc()))
    return result.scalars().all()


@router.post("", response_model=AffiliateResponse, status_code=201)
async def create_affiliate(
    data: AffiliateCreate,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(UserProfile, data.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="المستخدم غير موجود")

    existing = await db.execute(select(Affiliate.id).where(Affiliate.user_id == user.id))
    if existing.first() is not None:
        raise HTTPException(status_code=409, detail="هذا المستخدم مسوق بالفعل")
    if await code_taken(db, data.code):
        raise HTTPException(status_code=409, detail="الكود مستخدم بالفعل")

    affiliate = Affiliate(
        user_id=user.id,
        code=data.code,
        discount_percentage=data.discount_percentage,
        commission_percentage=data.commission_percentage,
    )
    db.add(affiliate)
    user.is_affiliate = True
    user.affiliate_code = data.code
    await db.flush()
    logger.info("Affiliate %s created for user %s", data.code, user.id)
    return affiliate


@router.patch("/{affiliate_id}", response_model=AffiliateResponse)
async def update_affiliate(
    affiliate_id: uuid.UUID,
    data: AffiliateUpdate,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    affiliate = await _get_affiliate(db, affiliate_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(affiliate, field, value)
    await db.flush()
    await db.refresh(affiliate)
    return affiliate


@router.post("/{affiliate_id}/toggle-active", response_model=AffiliateResponse)
async def toggle_affiliate(
    affiliate_id: uuid.UUID,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    affiliate = await _get_affiliate(db, affiliate_id)
    affiliate.is_active = not affiliate.is_active
    await db.flush()
    await db.refresh(affiliate)
    return affiliate


@router.delete("/{affiliate_id}", status_code=204)
async def delete_affiliate(
    affiliate_id: uuid.UUID,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    affiliate = await _get_affiliate(db, affiliate_id)
    user = await db.get(UserProfile, affiliate.user_id)
    if user is not None:
        user.is_affiliate = False
        user.affiliate_code = None
    await db.delete(affiliate)


@router.patch("/transactions/{transaction_id}", response_model=TransactionResponse)
async def update_transaction_status(
    transaction_id: uuid.UUID,
    data: TransactionStatusUpdate,
    _admin: UserProfile = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    transaction = await db.get(AffiliateTransaction, transaction_id)
    if transaction is None:
        raise HTTPException(status_code=404, detail="المعاملة غير موجودة")

    affiliate = await _get_affiliate(db, transaction.affiliate_id)
    completing = transaction.status != "completed" and data.status == "completed"
    if completing and transaction.transaction_type == "withdrawal":
        paid = -Decimal(transaction.amount)
        affiliate.paid_earnings = Decimal(affiliate.paid_earnings or 0) + paid
        affiliate.pending_earnings = Decimal(affiliate.pending_earnings or 0) - paid

    transaction.status = data.status
    await db.flush()
    return transaction
