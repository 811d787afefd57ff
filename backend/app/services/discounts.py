"""Discount-code and affiliate-code resolution for subscriptions."""

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Affiliate, AffiliateTransaction, DiscountCode, UserSubscription

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class AppliedDiscount:
    """A code that matched, either a ``DiscountCode`` or an ``Affiliate``."""

    type: str  # "code" | "affiliate"
    code: str
    discount_percentage: Decimal
    discount_code: DiscountCode | None = None
    affiliate: Affiliate | None = None


def normalize_code(code: str) -> str:
    return code.strip().upper()


def apply_percentage(price: Decimal, percentage: Decimal) -> tuple[Decimal, Decimal]:
    """Return ``(final_price, discount_amount)`` for a percentage off *price*."""
    price = Decimal(price)
    amount = (price * Decimal(percentage) / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    return price - amount, amount


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def discount_code_usable(code: DiscountCode, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    if not code.is_active:
        return False
    if not (_aware(code.start_date) <= now <= _aware(code.end_date)):
        return False
    if code.max_uses and code.used_count >= code.max_uses:
        return False
    return True


async def resolve_code(db: AsyncSession, raw_code: str) -> AppliedDiscount | None:
    """Look up *raw_code* as a discount code first, then as an affiliate code."""
    code = normalize_code(raw_code)
    if not code:
        return None

    result = await db.execute(select(DiscountCode).where(DiscountCode.code == code))
    discount = result.scalar_one_or_none()
    if discount is not None and discount_code_usable(discount):
        return AppliedDiscount(
            type="code",
            code=code,
            discount_percentage=discount.discount_percentage,
            discount_code=discount,
        )

    result = await db.execute(
        select(Affiliate).where(Affiliate.code == code, Affiliate.is_active.is_(True))
    )
    affiliate = result.scalar_one_or_none()
    if affiliate is not None:
        return AppliedDiscount(
            type="affiliate",
            code=code,
            discount_percentage=affiliate.discount_percentage,
            affiliate=affiliate,
        )
    return None


async def record_usage(
    db: AsyncSession,
    applied: AppliedDiscount,
    subscription: UserSubscription,
    final_price: Decimal,
) -> None:
    """Count a discount-code use, or credit the affiliate's commission."""
    if applied.type == "code":
        discount = applied.discount_code
        discount.used_count = (discount.used_count or 0) + 1
        await db.flush()
        return

    affiliate = applied.affiliate
    commission = Decimal(affiliate.commission_percentage or 0)
    amount = (Decimal(final_price) * commission / 100).quantize(CENT, rounding=ROUND_HALF_UP)
    db.add(
        AffiliateTransaction(
            affiliate_id=affiliate.id,
            subscription_id=subscription.id,
            transaction_type="earning",
            amount=amount,
            commission_percentage=commission,
            description_ar="عمولة اشتراك",
            description_en="Subscription commission",
            status="pending",
        )
    )
    affiliate.pending_earnings = Decimal(affiliate.pending_earnings or 0) + amount
    affiliate.total_earnings = Decimal(affiliate.total_earnings or 0) + amount
    await db.flush()
    logger.info("Affiliate %s earned %s on subscription %s", affiliate.code, amount, subscription.id)


async def code_taken(db: AsyncSession, code: str) -> bool:
    """True when *code* is already used by an affiliate or a discount code."""
    code = normalize_code(code)
    affiliate = await db.execute(select(Affiliate.id).where(Affiliate.code == code))
    if affiliate.first() is not None:
        return True
    discount = await db.execute(select(DiscountCode.id).where(DiscountCode.code == code))
    return discount.first() is not None


async def generate_affiliate_code(db: AsyncSession, prefix: str = "AFF") -> str:
    alphabet = string.ascii_uppercase + string.digits
    while True:
        code = prefix + "".join(secrets.choice(alphabet) for _ in range(6))
        if not await code_taken(db, code):
            return code
