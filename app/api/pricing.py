"""Checkout price quote"""

from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.mapping import Coordinates, MappingService, get_mapping_service
from app.orders.service import lookup_promo, quote_delivery, validate_cart
from app.pricing.discounts import evaluate_promo
from app.pricing.engine import compute_subtotal, price_with_settings
from app.pricing.eta import eta_range
from app.schemas.pricing import QuoteRequest, QuoteResponse

router = APIRouter()


@router.post("/quote", response_model=QuoteResponse)
async def quote(
    request: QuoteRequest,
    db: AsyncSession = Depends(get_db),
    mapping: MappingService = Depends(get_mapping_service),
):
    """Fee, zone, totals and ETA for a dropped pin.

    Uses road distance only; when routing is down the quote fails with 502
    instead of showing a straight-line fee the order would not match.
    """
    lines = [item.model_dump() for item in request.items]
    restaurant_slug, grocery_slug, restaurants = await validate_cart(db, lines)
    primary = restaurants.get(restaurant_slug) or restaurants.get(grocery_slug)
    delivery = await quote_delivery(
        mapping,
        Coordinates(request.delivery_lat, request.delivery_lng),
        primary,
        allow_fallback=False,
    )

    promo_amount = 0
    promo_reason = None
    if request.promo_code:
        promo = await lookup_promo(db, request.promo_code)
        evaluation = evaluate_promo(promo, compute_subtotal(lines), datetime.utcnow())
        promo_amount = evaluation.discount
        promo_reason = evaluation.reason

    breakdown = price_with_settings(
        lines,
        delivery_fee=delivery.fee,
        tip=request.tip,
        priority=request.priority,
        promo_amount=promo_amount,
        loyalty_points=request.loyalty_points,
        referral_credit=request.referral_credit,
    )
    eta_min, eta_max = eta_range(delivery.distance_km, priority=request.priority)

    return QuoteResponse(
        distance_km=round(delivery.distance_km, 2),
        zone_id=delivery.zone_id,
        zone_name=delivery.zone_name,
        pricing=breakdown.as_dict(),
        promo_reason=promo_reason,
        eta_min_minutes=eta_min,
        eta_max_minutes=eta_max,
    )
