"""Tests for the pricing engine, discounts, delivery tiers and quotes"""

from datetime import datetime
from types import SimpleNamespace

import pytest
from httpx import AsyncClient

from app.errors import DeliveryOutOfRange
from app.pricing import DeliveryFeeCalculator, evaluate_promo, parse_tiers, price_order, resolve_discounts
from app.pricing.eta import eta_range

TIERS = "core:General Luna core:3:50;extended:Extended area:6:80;outside:Outside core:25:0:6.5"

ADOBO = [{"restaurant_name": "Kermit", "item_name": "Chicken Adobo", "price_value": 250, "quantity": 2}]


def make_promo(**overrides):
    fields = dict(
        code="SAVE50",
        discount_type="fixed",
        discount_value=50,
        min_order=0,
        max_uses=None,
        uses_count=0,
        valid_from=None,
        valid_until=None,
        is_active=True,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_full_breakdown_with_every_discount():
    """Adobo x2 with promo, loyalty, fee, tip and priority"""
    breakdown = price_order(
        ADOBO,
        delivery_fee=60,
        tip=20,
        priority=True,
        promo_amount=50,
        loyalty_points=100,
        priority_fee=50,
    )

    assert breakdown.subtotal == 500
    assert breakdown.promo_discount == 50
    assert breakdown.loyalty_discount == 50
    assert breakdown.loyalty_points_used == 100
    assert breakdown.discount_total == 100
    assert breakdown.priority_fee == 50
    assert breakdown.total == 530


def test_priority_fee_only_when_flagged():
    breakdown = price_order(ADOBO, delivery_fee=60, priority=False, priority_fee=50)
    assert breakdown.priority_fee == 0
    assert breakdown.total == 560


def test_discounts_capped_in_order():
    """Promo first, then loyalty in whole blocks, then referral"""
    applied = resolve_discounts(100, promo_amount=80, loyalty_points=100, referral_credit=30)

    assert applied.promo == 80
    assert applied.loyalty == 20
    assert applied.loyalty_points_used == 40
    assert applied.referral == 0
    assert applied.total == 100


def test_loyalty_rounds_down_to_whole_blocks():
    applied = resolve_discounts(500, loyalty_points=37)
    assert applied.loyalty == 15
    assert applied.loyalty_points_used == 30


def test_total_never_negative():
    lines = [{"price_value": 40, "quantity": 1}]
    breakdown = price_order(lines, promo_amount=200, referral_credit=200)
    assert breakdown.discount_total == 40
    assert breakdown.total == 0


def test_promo_fixed_and_percent():
    now = datetime(2024, 3, 1, 12, 0)

    fixed = evaluate_promo(make_promo(), 500, now)
    assert fixed.valid and fixed.discount == 50

    percent = evaluate_promo(make_promo(discount_type="percent", discount_value=10), 335, now)
    assert percent.valid and percent.discount == 34

    capped = evaluate_promo(make_promo(discount_value=900), 500, now)
    assert capped.discount == 500


@pytest.mark.parametrize(
    "overrides,subtotal,reason",
    [
        ({"is_active": False}, 500, "invalid"),
        ({"valid_until": datetime(2024, 2, 1)}, 500, "expired"),
        ({"valid_from": datetime(2024, 4, 1)}, 500, "not yet valid"),
        ({"max_uses": 5, "uses_count": 5}, 500, "limit reached"),
        ({"min_order": 300}, 299, "minimum not met"),
    ],
)
def test_promo_rejections(overrides, subtotal, reason):
    evaluation = evaluate_promo(make_promo(**overrides), subtotal, datetime(2024, 3, 1))
    assert not evaluation.valid
    assert evaluation.reason == reason
    assert evaluation.discount == 0


def test_unknown_promo():
    assert evaluate_promo(None, 500, datetime.utcnow()).reason == "invalid"


def test_delivery_tiers():
    calculator = DeliveryFeeCalculator(parse_tiers(TIERS), max_km=25)

    core = calculator.quote(2.4)
    assert (core.zone_id, core.fee) == ("core", 50)
    assert calculator.quote(3.0).zone_id == "core"

    extended = calculator.quote(4.2)
    assert (extended.zone_id, extended.fee) == ("extended", 80)

    # 11 started km, round trip, 6.5 per km
    outside = calculator.quote(10.3)
    assert (outside.zone_id, outside.fee) == ("outside", 143)


def test_delivery_fee_is_monotonic():
    calculator = DeliveryFeeCalculator(parse_tiers(TIERS), max_km=25)
    fees = [calculator.fee_for(tenth / 10) for tenth in range(0, 251)]
    assert fees == sorted(fees)


def test_delivery_out_of_range():
    calculator = DeliveryFeeCalculator(parse_tiers(TIERS), max_km=25)
    with pytest.raises(DeliveryOutOfRange):
        calculator.quote(25.1)
    with pytest.raises(ValueError):
        calculator.quote(-1)


def test_parse_tiers_rejects_garbage():
    with pytest.raises(ValueError):
        parse_tiers("core:3:50")
    with pytest.raises(ValueError):
        parse_tiers(" ; ")


def test_eta_range():
    assert eta_range(2.0) == (24, 40)
    assert eta_range(2.0, priority=True) == (19, 33)
    assert eta_range(2.0, prep_minutes=20) == (29, 38)


@pytest.mark.asyncio
async def test_quote_endpoint(client: AsyncClient, test_restaurant, test_promo):
    """Quote with a promo for a pin 2 km from the restaurant"""
    response = await client.post(
        "/pricing/quote",
        json={
            "items": ADOBO,
            "delivery_lat": 9.7901,
            "delivery_lng": 126.1651,
            "tip": 20,
            "priority": True,
            "promo_code": "save50",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["zone_id"] == "core"
    assert data["distance_km"] == 2.0
    assert data["pricing"]["delivery_fee"] == 50
    assert data["pricing"]["promo_discount"] == 50
    assert data["pricing"]["total"] == 500 - 50 + 50 + 20 + 50
    assert data["promo_reason"] is None
    assert data["eta_min_minutes"] < data["eta_max_minutes"]


@pytest.mark.asyncio
async def test_quote_reports_promo_reason(client: AsyncClient, test_restaurant, test_promo):
    lines = [dict(ADOBO[0], quantity=1)]
    response = await client.post(
        "/pricing/quote",
        json={"items": lines, "delivery_lat": 9.7901, "delivery_lng": 126.1651, "promo_code": "SAVE50"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["promo_reason"] == "minimum not met"
    assert data["pricing"]["promo_discount"] == 0


@pytest.mark.asyncio
async def test_quote_fails_when_routing_is_down(client: AsyncClient, test_restaurant, routing):
    """No straight-line fallback for a quote"""
    routing.failing = True

    response = await client.post(
        "/pricing/quote",
        json={"items": ADOBO, "delivery_lat": 9.7901, "delivery_lng": 126.1651},
    )

    assert response.status_code == 502
    assert response.json()["detail"] == "Could not calculate road distance"


@pytest.mark.asyncio
async def test_quote_out_of_range(client: AsyncClient, test_restaurant, routing):
    routing.km = 40.0

    response = await client.post(
        "/pricing/quote",
        json={"items": ADOBO, "delivery_lat": 9.7901, "delivery_lng": 126.1651},
    )

    assert response.status_code == 400
    assert "limited to 25 km" in response.json()["detail"]


@pytest.mark.asyncio
async def test_validate_promo_endpoint(client: AsyncClient, test_promo):
    response = await client.post("/promos/validate", json={"code": "save50", "subtotal": 400})
    assert response.status_code == 200
    assert response.json() == {"valid": True, "code": "SAVE50", "discount": 50, "reason": None}

    response = await client.post("/promos/validate", json={"code": "NOPE", "subtotal": 400})
    assert response.json()["valid"] is False
    assert response.json()["reason"] == "invalid"
