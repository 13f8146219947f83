"""Pricing engine, discount resolver and delivery fee calculator"""

from app.pricing.delivery import DeliveryFeeCalculator, DeliveryQuote, DeliveryTier, parse_tiers
from app.pricing.discounts import AppliedDiscounts, PromoEvaluation, evaluate_promo, resolve_discounts
from app.pricing.engine import PriceBreakdown, compute_subtotal, price_order, price_with_settings

__all__ = [
    "DeliveryFeeCalculator",
    "DeliveryQuote",
    "DeliveryTier",
    "parse_tiers",
    "AppliedDiscounts",
    "PromoEvaluation",
    "evaluate_promo",
    "resolve_discounts",
    "PriceBreakdown",
    "compute_subtotal",
    "price_order",
    "price_with_settings",
]
