"""Discount resolver: promo, loyalty and referral stacking"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional


@dataclass(frozen=True)
class PromoEvaluation:
    """Outcome of checking a promo code against a subtotal"""
    valid: bool
    discount: int = 0
    reason: Optional[str] = None
    code: Optional[str] = None


@dataclass(frozen=True)
class AppliedDiscounts:
    """Discounts after capping, in application order"""
    promo: int
    loyalty: int
    loyalty_points_used: int
    referral: int

    @property
    def total(self) -> int:
        return self.promo + self.loyalty + self.referral


def normalize_code(code: str) -> str:
    return code.strip().upper()


def evaluate_promo(promo, subtotal: int, now: datetime) -> PromoEvaluation:
    """Check a promo row against the current subtotal.

    ``promo`` is anything exposing the PromoCode attributes (the ORM model in
    practice); ``None`` means the code does not exist.
    """
    if promo is None or not getattr(promo, "is_active", True):
        return PromoEvaluation(valid=False, reason="invalid")

    if promo.valid_from and promo.valid_from > now:
        return PromoEvaluation(valid=False, reason="not yet valid", code=promo.code)
    if promo.valid_until and promo.valid_until < now:
        return PromoEvaluation(valid=False, reason="expired", code=promo.code)
    if promo.max_uses is not None and (promo.uses_count or 0) >= promo.max_uses:
        return PromoEvaluation(valid=False, reason="limit reached", code=promo.code)
    if subtotal < (promo.min_order or 0):
        return PromoEvaluation(valid=False, reason="minimum not met", code=promo.code)

    if promo.discount_type == "percent":
        amount = Decimal(subtotal) * Decimal(promo.discount_value) / Decimal(100)
        discount = int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    else:
        discount = int(promo.discount_value)

    return PromoEvaluation(valid=True, discount=min(discount, subtotal), code=promo.code)


def loyalty_value(points: int, points_per_block: int, value_per_block: int) -> int:
    """Currency value of a points balance, in whole blocks"""
    if points <= 0:
        return 0
    return (points // points_per_block) * value_per_block


def resolve_discounts(
    subtotal: int,
    promo_amount: int = 0,
    loyalty_points: int = 0,
    referral_credit: int = 0,
    points_per_block: int = 10,
    value_per_block: int = 5,
) -> AppliedDiscounts:
    """Cap each discount against what the previous ones left over.

    Order is fixed: promo, then loyalty against ``subtotal - promo``, then
    referral against ``subtotal - promo - loyalty``. Loyalty is rounded down
    to whole blocks so the points consumed always match the value given.
    """
    remaining = max(0, subtotal)

    promo = min(max(0, promo_amount), remaining)
    remaining -= promo

    blocks_held = max(0, loyalty_points) // points_per_block
    blocks_fit = remaining // value_per_block
    blocks = min(blocks_held, blocks_fit)
    loyalty = blocks * value_per_block
    remaining -= loyalty

    referral = min(max(0, referral_credit), remaining)

    return AppliedDiscounts(
        promo=promo,
        loyalty=loyalty,
        loyalty_points_used=blocks * points_per_block,
        referral=referral,
    )
