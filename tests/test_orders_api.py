"""Tests for order creation, customer access, edits, cancels and staff overrides"""

from datetime import datetime, timedelta
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from app.errors import WindowExpired
from app.models.audit import AuditLog
from app.models.order import Order
from app.orders import service
from app.orders.service import cancel_by_customer, edit_order
from app.schemas.order import OrderEdit

CUSTOMER_PHONE = "09170001111"


@pytest.mark.asyncio
async def test_create_order(client: AsyncClient, test_restaurant, order_payload):
    """Cash order with a pin 2 km from the restaurant"""
    response = await client.post("/orders", json=order_payload(tip=20))

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "pending"
    assert data["restaurant_status"] == "pending"
    assert data["restaurant_slug"] == "kermit"
    assert data["grocery_slug"] is None
    assert data["delivery_zone_id"] == "core"
    assert data["delivery_distance_km"] == 2.0
    assert data["pricing"]["subtotal"] == 500
    assert data["pricing"]["delivery_fee"] == 50
    assert data["total"] == 570
    assert data["payment_status"] == "unpaid"

    created = datetime.fromisoformat(data["created_at"])
    cutoff = datetime.fromisoformat(data["cancel_cutoff_at"])
    assert cutoff - created == timedelta(minutes=5)


@pytest.mark.asyncio
async def test_cash_order_requires_coordinates(
    client: AsyncClient, test_restaurant, order_payload, test_db
):
    response = await client.post(
        "/orders", json=order_payload(delivery_lat=None, delivery_lng=None)
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Delivery coordinates are required for cash on delivery"

    count = await test_db.execute(select(func.count(Order.id)))
    assert count.scalar() == 0


@pytest.mark.asyncio
async def test_card_order_without_pin_uses_base_fee(client: AsyncClient, test_restaurant, order_payload):
    response = await client.post(
        "/orders",
        json=order_payload(delivery_lat=None, delivery_lng=None, payment_method="card"),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["delivery_zone_id"] is None
    assert data["pricing"]["delivery_fee"] == 50


@pytest.mark.asyncio
async def test_landmark_is_required(client: AsyncClient, test_restaurant, order_payload):
    response = await client.post("/orders", json=order_payload(landmark="   "))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_two_restaurants_rejected(
    client: AsyncClient, test_restaurant, other_restaurant, order_payload
):
    payload = order_payload()
    payload["items"].append(
        {"restaurant_name": "Shaka", "item_name": "Acai Bowl", "price_value": 220, "quantity": 1}
    )

    response = await client.post("/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Max 1 restaurant and 1 grocery per order"


@pytest.mark.asyncio
async def test_restaurant_plus_grocery_allowed(
    client: AsyncClient, test_restaurant, test_grocery, order_payload
):
    payload = order_payload()
    payload["items"].append(
        {"restaurant_name": "Island Mart", "item_name": "Water 1L", "price_value": 35, "quantity": 2}
    )

    response = await client.post("/orders", json=payload)

    assert response.status_code == 201
    data = response.json()
    assert data["restaurant_slug"] == "kermit"
    assert data["grocery_slug"] == "island-mart"
    assert data["subtotal"] == 570


@pytest.mark.asyncio
async def test_minimum_order_enforced(client: AsyncClient, test_restaurant, order_payload, test_db):
    test_restaurant.min_order = 600
    await test_db.commit()

    response = await client.post("/orders", json=order_payload())

    assert response.status_code == 400
    assert response.json()["detail"] == "Minimum order for Kermit is 600"


@pytest.mark.asyncio
async def test_scheduled_order_needs_future_time(client: AsyncClient, test_restaurant, order_payload):
    past = (datetime.utcnow() - timedelta(hours=1)).isoformat()
    response = await client.post(
        "/orders", json=order_payload(time_window="scheduled", scheduled_at=past)
    )
    assert response.status_code == 400

    future = (datetime.utcnow() + timedelta(hours=2)).isoformat()
    response = await client.post(
        "/orders", json=order_payload(time_window="scheduled", scheduled_at=future)
    )
    assert response.status_code == 201
    assert response.json()["time_window"] == "scheduled"


@pytest.mark.asyncio
async def test_promo_applied_and_counted(
    client: AsyncClient, test_restaurant, test_promo, order_payload, test_db
):
    response = await client.post("/orders", json=order_payload(promo_code="save50"))

    assert response.status_code == 201
    data = response.json()
    assert data["promo_code"] == "SAVE50"
    assert data["pricing"]["promo_discount"] == 50
    assert data["total"] == 500 - 50 + 50

    await test_db.refresh(test_promo)
    assert test_promo.uses_count == 1


@pytest.mark.asyncio
async def test_invalid_promo_rejects_order(client: AsyncClient, test_restaurant, test_promo, order_payload):
    payload = order_payload(promo_code="SAVE50")
    payload["items"][0]["quantity"] = 1

    response = await client.post("/orders", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Promo rejected: minimum not met"


@pytest.mark.asyncio
async def test_routing_outage_falls_back_on_create(
    client: AsyncClient, test_restaurant, order_payload, routing
):
    routing.failing = True

    response = await client.post("/orders", json=order_payload())

    assert response.status_code == 201
    data = response.json()
    assert data["delivery_zone_id"] == "core"
    assert 0 < data["delivery_distance_km"] < 3


@pytest.mark.asyncio
async def test_customer_read_needs_matching_phone(client: AsyncClient, placed_order):
    order_id = placed_order["id"]

    response = await client.get(f"/orders/{order_id}", params={"phone": "+63 917 000 1111"})
    assert response.status_code == 200
    assert response.json()["id"] == order_id

    wrong = await client.get(f"/orders/{order_id}", params={"phone": "09999999999"})
    missing = await client.get(f"/orders/{order_id}")
    unknown = await client.get(
        "/orders/00000000-0000-0000-0000-000000000000", params={"phone": CUSTOMER_PHONE}
    )
    for response in (wrong, missing, unknown):
        assert response.status_code == 404
        assert response.json()["detail"] == "Order not found"


@pytest.mark.asyncio
async def test_order_history(client: AsyncClient, test_restaurant, order_payload):
    for _ in range(2):
        await client.post("/orders", json=order_payload())
    await client.post("/orders", json=order_payload(customer_phone="09180002222"))

    response = await client.get("/orders/history", params={"phone": CUSTOMER_PHONE})

    assert response.status_code == 200
    history = response.json()
    assert len(history) == 2
    assert all(entry["total"] == 550 for entry in history)


@pytest.mark.asyncio
async def test_customer_cancel_inside_window(client: AsyncClient, placed_order):
    order_id = placed_order["id"]

    response = await client.post(
        f"/orders/{order_id}/cancel", json={"phone": CUSTOMER_PHONE, "reason": "Ordered twice"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["cancel_reason"] == "Ordered twice"
    assert data["cancelled_at"] is not None

    again = await client.post(f"/orders/{order_id}/cancel", json={"phone": CUSTOMER_PHONE})
    assert again.status_code == 409
    assert again.json()["detail"] == "Order already cancelled"


@pytest.mark.asyncio
async def test_customer_cancel_with_wrong_phone(client: AsyncClient, placed_order):
    response = await client.post(
        f"/orders/{placed_order['id']}/cancel", json={"phone": "09999999999"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_customer_cancel_after_window(client: AsyncClient, placed_order, test_db):
    later = datetime.utcnow() + timedelta(minutes=6)

    with pytest.raises(WindowExpired):
        await cancel_by_customer(test_db, UUID(placed_order["id"]), CUSTOMER_PHONE, now=later)

    order = await test_db.get(Order, UUID(placed_order["id"]))
    await test_db.refresh(order)
    assert order.status == "pending"


@pytest.mark.asyncio
async def test_customer_edit_touches_only_sent_fields(client: AsyncClient, placed_order):
    order_id = placed_order["id"]

    response = await client.patch(
        f"/orders/{order_id}",
        json={"phone": CUSTOMER_PHONE, "notes": "No onions", "room": "12"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["notes"] == "No onions"
    assert data["room"] == "12"
    assert data["landmark"] == placed_order["landmark"]
    assert data["total"] == placed_order["total"]


@pytest.mark.asyncio
async def test_customer_edit_items_reprices(client: AsyncClient, placed_order):
    response = await client.patch(
        f"/orders/{placed_order['id']}",
        json={
            "phone": CUSTOMER_PHONE,
            "items": [
                {"restaurant_name": "Kermit", "item_name": "Chicken Adobo", "price_value": 250, "quantity": 3},
            ],
        },
    )

    assert response.status_code == 200
    assert response.json()["subtotal"] == 750
    assert response.json()["total"] == 800


@pytest.mark.asyncio
async def test_customer_edit_after_window(client: AsyncClient, placed_order, test_db):
    later = datetime.utcnow() + timedelta(minutes=10)
    with pytest.raises(WindowExpired):
        await edit_order(
            test_db, UUID(placed_order["id"]), OrderEdit(phone=CUSTOMER_PHONE, notes="late"), now=later
        )


@pytest.mark.asyncio
async def test_customer_edit_blocked_once_kitchen_starts(
    client: AsyncClient, accepted_order, restaurant_headers
):
    await client.patch(
        f"/restaurant/orders/{accepted_order['id']}/status",
        json={"status": "preparing"},
        headers=restaurant_headers,
    )

    response = await client.patch(
        f"/orders/{accepted_order['id']}", json={"phone": CUSTOMER_PHONE, "notes": "Extra rice"}
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Order can no longer be edited"


@pytest.mark.asyncio
async def test_staff_status_override(client: AsyncClient, placed_order, staff_headers):
    order_id = placed_order["id"]

    response = await client.patch(
        f"/orders/{order_id}/status", json={"status": "ready"}, headers=staff_headers
    )
    assert response.status_code == 200
    assert response.json()["changed"] is True
    ready_at = response.json()["order"]["ready_at"]
    assert ready_at is not None

    repeat = await client.patch(
        f"/orders/{order_id}/status", json={"status": "ready"}, headers=staff_headers
    )
    assert repeat.status_code == 200
    assert repeat.json()["changed"] is False
    assert repeat.json()["order"]["ready_at"] == ready_at

    back = await client.patch(
        f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=staff_headers
    )
    assert back.status_code == 409


@pytest.mark.asyncio
async def test_terminal_order_rejects_status_changes(client: AsyncClient, placed_order, staff_headers):
    order_id = placed_order["id"]
    await client.patch(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=staff_headers)

    response = await client.patch(
        f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=staff_headers
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Order already delivered"


@pytest.mark.asyncio
async def test_status_change_requires_staff(client: AsyncClient, placed_order, driver_headers):
    anonymous = await client.patch(f"/orders/{placed_order['id']}/status", json={"status": "ready"})
    as_driver = await client.patch(
        f"/orders/{placed_order['id']}/status", json={"status": "ready"}, headers=driver_headers
    )
    assert anonymous.status_code == 401
    assert as_driver.status_code == 401


@pytest.mark.asyncio
async def test_every_write_is_audited(client: AsyncClient, placed_order, staff_headers, test_db):
    await client.patch(
        f"/orders/{placed_order['id']}/status", json={"status": "confirmed"}, headers=staff_headers
    )

    result = await test_db.execute(
        select(AuditLog.action, AuditLog.actor_type)
        .where(AuditLog.resource_id == UUID(placed_order["id"]))
        .order_by(AuditLog.created_at)
    )
    rows = result.all()
    assert [tuple(r) for r in rows] == [("create_order", "customer"), ("status:confirmed", "staff")]


@pytest.mark.asyncio
async def test_staff_list_filters(client: AsyncClient, test_restaurant, order_payload, staff_headers):
    first = (await client.post("/orders", json=order_payload())).json()
    await client.post("/orders", json=order_payload())
    await client.patch(f"/orders/{first['id']}/status", json={"status": "confirmed"}, headers=staff_headers)

    response = await client.get("/orders", params={"status": "confirmed"}, headers=staff_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == first["id"]

    everything = await client.get("/orders", params={"status": "pending,confirmed"}, headers=staff_headers)
    assert everything.json()["total"] == 2

    bad = await client.get("/orders", params={"status": "lost"}, headers=staff_headers)
    assert bad.status_code == 400


@pytest.mark.asyncio
async def test_assign_driver(client: AsyncClient, ready_order, test_driver, staff_headers):
    response = await client.post(
        f"/orders/{ready_order['id']}/assign",
        json={"driver_id": str(test_driver.id)},
        headers=staff_headers,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "assigned"
    assert data["driver_id"] == str(test_driver.id)
    assert data["driver_name"] == "Jun"
    assert data["assigned_at"] is not None


@pytest.mark.asyncio
async def test_assign_offline_driver_rejected(
    client: AsyncClient, placed_order, test_driver, staff_headers, test_db
):
    test_driver.is_available = False
    await test_db.commit()

    response = await client.post(
        f"/orders/{placed_order['id']}/assign",
        json={"driver_id": str(test_driver.id)},
        headers=staff_headers,
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "Driver is offline"


@pytest.mark.asyncio
async def test_change_check(client: AsyncClient, placed_order, staff_headers):
    order_id = placed_order["id"]
    future = (datetime.utcnow() + timedelta(minutes=1)).isoformat()

    quiet = await client.get(
        f"/orders/{order_id}/changes", params={"since": future, "phone": CUSTOMER_PHONE}
    )
    assert quiet.status_code == 200
    assert quiet.json()["changed"] is False

    since = placed_order["updated_at"]
    await client.patch(f"/orders/{order_id}/status", json={"status": "confirmed"}, headers=staff_headers)

    moved = await client.get(f"/orders/{order_id}/changes", params={"since": since, "phone": CUSTOMER_PHONE})
    assert moved.json()["changed"] is True
    assert moved.json()["status"] == "confirmed"


@pytest.mark.asyncio
async def test_card_payment_and_refund(
    client: AsyncClient, test_restaurant, order_payload, staff_headers
):
    order = (await client.post("/orders", json=order_payload(payment_method="card"))).json()
    order_id = order["id"]

    wrong_phone = await client.post(
        f"/webhooks/payments/{order_id}/card", json={"phone": "09999999999", "reference": "ch_1"}
    )
    assert wrong_phone.status_code == 404

    wrong_method = await client.post(
        f"/webhooks/payments/{order_id}/gcash", json={"phone": CUSTOMER_PHONE, "reference": "ch_1"}
    )
    assert wrong_method.status_code == 400

    paid = await client.post(
        f"/webhooks/payments/{order_id}/card", json={"phone": CUSTOMER_PHONE, "reference": "ch_1"}
    )
    assert paid.status_code == 200
    assert paid.json()["payment_status"] == "paid"
    assert paid.json()["payment_reference"] == "ch_1"

    cancelled = await client.post(f"/orders/{order_id}/cancel", json={"phone": CUSTOMER_PHONE})
    assert cancelled.json()["payment_status"] == "refund_pending"

    refunded = await client.post(f"/orders/{order_id}/refunded", headers=staff_headers)
    assert refunded.status_code == 200
    assert refunded.json()["payment_status"] == "refunded"

    again = await client.post(f"/orders/{order_id}/refunded", headers=staff_headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_crypto_confirmation(client: AsyncClient, test_restaurant, order_payload):
    order = (await client.post("/orders", json=order_payload(payment_method="crypto"))).json()
    tx_hash = "0x" + "ab" * 32

    bad_hash = await client.post(
        f"/webhooks/payments/{order['id']}/crypto", json={"phone": CUSTOMER_PHONE, "tx_hash": "0x12"}
    )
    assert bad_hash.status_code == 422

    response = await client.post(
        f"/webhooks/payments/{order['id']}/crypto", json={"phone": CUSTOMER_PHONE, "tx_hash": tx_hash}
    )
    assert response.status_code == 200
    assert response.json()["payment_status"] == "paid"
    assert response.json()["crypto_tx_hash"] == tx_hash


@pytest.mark.asyncio
async def test_loyalty_points_redeemed_and_returned_on_cancel(
    client: AsyncClient, test_restaurant, order_payload, staff_headers
):
    first = (await client.post("/orders", json=order_payload())).json()
    await client.patch(f"/orders/{first['id']}/status", json={"status": "delivered"}, headers=staff_headers)

    loyalty = await client.get("/customers/loyalty", params={"phone": CUSTOMER_PHONE})
    assert loyalty.json()["points"] == 10
    assert loyalty.json()["redeemable_value"] == 5

    second = await client.post("/orders", json=order_payload(loyalty_points=10))
    assert second.status_code == 201
    assert second.json()["pricing"]["loyalty_discount"] == 5
    assert (await client.get("/customers/loyalty", params={"phone": CUSTOMER_PHONE})).json()["points"] == 0

    await client.post(f"/orders/{second.json()['id']}/cancel", json={"phone": CUSTOMER_PHONE})
    assert (await client.get("/customers/loyalty", params={"phone": CUSTOMER_PHONE})).json()["points"] == 10

    too_many = await client.post("/orders", json=order_payload(loyalty_points=500))
    assert too_many.status_code == 400
    assert too_many.json()["detail"] == "Not enough loyalty points"


@pytest.mark.asyncio
async def test_referral_credit(client: AsyncClient, test_restaurant, order_payload):
    await client.post("/orders", json=order_payload())
    referral = (await client.get("/customers/referral", params={"phone": CUSTOMER_PHONE})).json()
    code = referral["code"]
    assert code
    assert referral["available_credits"] == 0

    response = await client.post(
        "/orders", json=order_payload(customer_phone="09185556666", referral_code=code)
    )
    assert response.status_code == 201

    referral = (await client.get("/customers/referral", params={"phone": CUSTOMER_PHONE})).json()
    assert referral["available_credits"] == 50

    spent = await client.post("/orders", json=order_payload(use_referral_credit=True))
    assert spent.json()["pricing"]["referral_discount"] == 50

    referral = (await client.get("/customers/referral", params={"phone": CUSTOMER_PHONE})).json()
    assert referral["available_credits"] == 0
    assert referral["total_credits"] == 50

    unknown = (await client.get("/customers/referral", params={"phone": "09000000000"})).json()
    assert unknown == {"code": None, "total_credits": 0, "available_credits": 0}


@pytest.mark.asyncio
async def test_order_history_matches_six_digits(client: AsyncClient, test_restaurant, order_payload):
    await client.post("/orders", json=order_payload(customer_phone="+63 917 000 1111"))
    await client.post("/orders", json=order_payload(customer_phone="0917-000-1111"))
    # Newer orders from a number that shares only the last four digits
    for _ in range(4):
        await client.post("/orders", json=order_payload(customer_phone="09189991111"))

    response = await client.get("/orders/history", params={"phone": CUSTOMER_PHONE, "limit": 2})

    assert response.status_code == 200
    assert len(response.json()) == 2

    others = await client.get("/orders/history", params={"phone": "09189991111"})
    assert len(others.json()) == 4


async def earn_referral_credit(client, order_payload):
    await client.post("/orders", json=order_payload())
    code = (await client.get("/customers/referral", params={"phone": CUSTOMER_PHONE})).json()["code"]
    await client.post("/orders", json=order_payload(customer_phone="09185556666", referral_code=code))


async def balances(client):
    loyalty = (await client.get("/customers/loyalty", params={"phone": CUSTOMER_PHONE})).json()
    referral = (await client.get("/customers/referral", params={"phone": CUSTOMER_PHONE})).json()
    return loyalty["points"], referral["available_credits"], referral["total_credits"]


@pytest.mark.asyncio
async def test_edit_recaps_discounts_and_returns_credit(
    client: AsyncClient, test_restaurant, test_promo, order_payload, staff_headers
):
    await earn_referral_credit(client, order_payload)
    history = (await client.get("/orders/history", params={"phone": CUSTOMER_PHONE})).json()
    await client.patch(f"/orders/{history[0]['id']}/status", json={"status": "delivered"}, headers=staff_headers)
    assert await balances(client) == (10, 50, 50)

    created = await client.post(
        "/orders",
        json=order_payload(promo_code="SAVE50", loyalty_points=10, use_referral_credit=True),
    )
    assert created.status_code == 201
    order_id = created.json()["id"]
    pricing = created.json()["pricing"]
    assert (pricing["promo_discount"], pricing["loyalty_discount"], pricing["referral_discount"]) == (50, 5, 50)
    assert await balances(client) == (0, 0, 50)

    def cart(price):
        return {
            "phone": CUSTOMER_PHONE,
            "items": [{"restaurant_name": "Kermit", "item_name": "Lumpia", "price_value": price, "quantity": 1}],
        }

    # 60 leaves room for the promo, one loyalty block and 5 of the referral credit
    edited = await client.patch(f"/orders/{order_id}", json=cart(60))
    assert edited.status_code == 200
    pricing = edited.json()["pricing"]
    assert pricing["subtotal"] == 60
    assert (pricing["promo_discount"], pricing["loyalty_discount"], pricing["referral_discount"]) == (50, 5, 5)
    assert await balances(client) == (0, 45, 50)

    # 52 no longer fits a loyalty block and only 2 of the credit
    edited = await client.patch(f"/orders/{order_id}", json=cart(52))
    pricing = edited.json()["pricing"]
    assert (pricing["promo_discount"], pricing["loyalty_discount"], pricing["referral_discount"]) == (50, 0, 2)
    assert pricing["loyalty_points_used"] == 0
    assert await balances(client) == (10, 48, 50)

    await client.post(f"/orders/{order_id}/cancel", json={"phone": CUSTOMER_PHONE})
    assert await balances(client) == (10, 50, 50)


@pytest.mark.asyncio
async def test_referral_credit_spent_twice_is_refused(
    client: AsyncClient, test_restaurant, order_payload, monkeypatch
):
    await earn_referral_credit(client, order_payload)
    spent = await client.post("/orders", json=order_payload(use_referral_credit=True))
    assert spent.json()["pricing"]["referral_discount"] == 50

    # A balance read that raced with the spend above
    async def stale_balance(db, customer_id):
        return 50, 0

    monkeypatch.setattr(service, "referral_balance", stale_balance)

    response = await client.post("/orders", json=order_payload(use_referral_credit=True))

    assert response.status_code == 400
    assert response.json()["detail"] == "Referral credit already used"
    history = (await client.get("/orders/history", params={"phone": CUSTOMER_PHONE})).json()
    assert len(history) == 2
