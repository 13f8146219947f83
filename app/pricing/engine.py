"""Pricing engine shared by order creation, edit, quote and read paths"""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from app.pricing.discounts import AppliedDiscounts, resolve_discounts


@dataclass(frozen=True)
class PriceBreakdown:
    """Itemized totals for one order"""
    subtotal: int
    promo_discount: int
    loyalty_discount: int
    loyalty_points_used: int
    referral_discount: int
    delivery_fee: int
    tip: int
    priority_fee: int
    total: int

    @property
    def discount_total(self) -> int:
        return self.promo_discount + self.loyalty_discount + self.referral_discount

    def as_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "promo_discount": self.promo_discount,
            "loyalty_discount": self.loyalty_discount,
            "loyalty_points_used": self.loyalty_points_used,
            "referral_discount": self.referral_discount,
            "discount_total": self.discount_total,
            "delivery_fee": self.delivery_fee,
            "tip": self.tip,
            "priority_fee": self.priority_fee,
            "total": self.total,
        }


def _field(line: Any, name: str, default: Any = None) -> Any:
    if isinstance(line, Mapping):
        return line.get(name, default)
    return getattr(line, name, default)


def compute_subtotal(lines: Iterable[Any]) -> int:
    """Sum of price_value x quantity over cart lines (dicts or objects)"""
    return sum(
        int(_field(line, "price_value", 0) or 0) * int(_field(line, "quantity", 1) or 1)
        for line in lines
    )


def price_order(
    lines: Iterable[Any],
    delivery_fee: int = 0,
    tip: int = 0,
    priority: bool = False,
    promo_amount: int = 0,
    loyalty_points: int = 0,
    referral_credit: int = 0,
    priority_fee: int = 50,
    points_per_block: int = 10,
    value_per_block: int = 5,
) -> PriceBreakdown:
    """Compute the full breakdown.

    total = max(0, subtotal - discounts + delivery_fee + tip + priority_fee)
    """
    subtotal = compute_subtotal(lines)
    discounts: AppliedDiscounts = resolve_discounts(
        subtotal,
        promo_amount=promo_amount,
        loyalty_points=loyalty_points,
        referral_credit=referral_credit,
        points_per_block=points_per_block,
        value_per_block=value_per_block,
    )
    delivery_fee = max(0, int(delivery_fee or 0))
    tip = max(0, int(tip or 0))
    surcharge = priority_fee if priority else 0

    total = max(0, subtotal - discounts.total + delivery_fee + tip + surcharge)

    return PriceBreakdown(
        subtotal=subtotal,
        promo_discount=discounts.promo,
        loyalty_discount=discounts.loyalty,
        loyalty_points_used=discounts.loyalty_points_used,
        referral_discount=discounts.referral,
        delivery_fee=delivery_fee,
        tip=tip,
        priority_fee=surcharge,
        total=total,
    )


def price_with_settings(lines: Iterable[Any], **kwargs) -> PriceBreakdown:
    """``price_order`` with the configured surcharge and loyalty ratio"""
    from app.config import settings

    kwargs.setdefault("priority_fee", settings.priority_fee)
    kwargs.setdefault("points_per_block", settings.loyalty_points_per_block)
    kwargs.setdefault("value_per_block", settings.loyalty_value_per_block)
    return price_order(lines, **kwargs)
