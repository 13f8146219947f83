"""Tests for the driver portal: claiming, delivery steps, checkpoints and location"""

from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from app.api.auth import create_portal_token
from app.dispatch.location import DriverLocationReporter, HttpLocationPusher, LocationFix
from app.models.audit import AuditLog
from app.orders.state_machine import Actor

CUSTOMER_PHONE = "09170001111"


async def step(client, order_id, status, headers):
    return await client.patch(
        f"/driver/orders/{order_id}/status", json={"status": status}, headers=headers
    )


@pytest.fixture
async def claimed_order(client, ready_order, driver_headers):
    response = await client.post(f"/driver/orders/{ready_order['id']}/claim", headers=driver_headers)
    assert response.status_code == 200, response.text
    return response.json()["order"]


@pytest.fixture
async def out_for_delivery_order(client, claimed_order, driver_headers):
    await step(client, claimed_order["id"], "picked", driver_headers)
    response = await step(client, claimed_order["id"], "out_for_delivery", driver_headers)
    assert response.status_code == 200, response.text
    return response.json()["order"]


@pytest.mark.asyncio
async def test_driver_login(client: AsyncClient, test_driver):
    response = await client.post(
        "/auth/driver/login", json={"phone": "09171234567", "password": "driver123"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["actor"] == "driver"
    assert data["name"] == "Jun"

    bad = await client.post("/auth/driver/login", json={"phone": "09171234567", "password": "wrong"})
    assert bad.status_code == 401


@pytest.mark.asyncio
async def test_ready_orders_visible_to_every_driver(
    client: AsyncClient, ready_order, placed_order, driver_headers, other_driver_headers
):
    for headers in (driver_headers, other_driver_headers):
        response = await client.get("/driver/orders", headers=headers)
        assert response.status_code == 200
        assert [o["id"] for o in response.json()] == [ready_order["id"]]


@pytest.mark.asyncio
async def test_claim_ready_order(client: AsyncClient, claimed_order, test_driver, driver_headers):
    assert claimed_order["status"] == "assigned"
    assert claimed_order["driver_id"] == str(test_driver.id)
    assert claimed_order["assigned_at"] is not None

    again = await client.post(f"/driver/orders/{claimed_order['id']}/claim", headers=driver_headers)
    assert again.status_code == 200
    assert again.json()["changed"] is False
    assert again.json()["order"]["assigned_at"] == claimed_order["assigned_at"]


@pytest.mark.asyncio
async def test_second_driver_cannot_claim(client: AsyncClient, claimed_order, other_driver_headers):
    response = await client.post(
        f"/driver/orders/{claimed_order['id']}/claim", headers=other_driver_headers
    )

    assert response.status_code == 409
    assert response.json()["detail"] == "Order already assigned to another driver"

    hidden = await client.get("/driver/orders", headers=other_driver_headers)
    assert hidden.json() == []


@pytest.mark.asyncio
async def test_cannot_claim_before_ready(client: AsyncClient, accepted_order, driver_headers):
    response = await client.post(f"/driver/orders/{accepted_order['id']}/claim", headers=driver_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_offline_driver_cannot_claim(client: AsyncClient, ready_order, driver_headers):
    offline = await client.put("/driver/availability", json={"is_available": False}, headers=driver_headers)
    assert offline.json()["is_available"] is False

    response = await client.post(f"/driver/orders/{ready_order['id']}/claim", headers=driver_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Go online to claim orders"


@pytest.mark.asyncio
async def test_delivery_steps(client: AsyncClient, claimed_order, driver_headers, staff_headers):
    order_id = claimed_order["id"]

    skipped = await step(client, order_id, "delivered", driver_headers)
    assert skipped.status_code == 409

    for status in ("picked", "out_for_delivery", "delivered"):
        response = await step(client, order_id, status, driver_headers)
        assert response.status_code == 200
        assert response.json()["order"]["status"] == status

    order = (await client.get(f"/orders/{order_id}", headers=staff_headers)).json()
    assert order["picked_at"] is not None
    assert order["out_for_delivery_at"] is not None
    assert order["delivered_at"] is not None

    # Cash snapshot and loyalty award happen on delivery
    assert order["cash"]["expected"] == order["total"]
    loyalty = await client.get("/customers/loyalty", params={"phone": CUSTOMER_PHONE})
    assert loyalty.json()["points"] == 10


@pytest.mark.asyncio
async def test_other_driver_cannot_step(client: AsyncClient, claimed_order, other_driver_headers):
    response = await step(client, claimed_order["id"], "picked", other_driver_headers)

    assert response.status_code == 403
    assert response.json()["detail"] == "Order is not assigned to you"


@pytest.mark.asyncio
async def test_hub_checkpoint(client: AsyncClient, claimed_order, driver_headers):
    url = f"/driver/orders/{claimed_order['id']}/arrived-at-hub"

    first = await client.post(url, headers=driver_headers)
    assert first.status_code == 200
    assert first.json()["changed"] is True
    assert first.json()["order"]["arrived_at_hub"] is True
    stamped = first.json()["order"]["arrived_at_hub_at"]

    second = await client.post(url, headers=driver_headers)
    assert second.json()["changed"] is False
    assert second.json()["order"]["arrived_at_hub_at"] == stamped


@pytest.mark.asyncio
async def test_arrival_only_while_out_for_delivery(
    client: AsyncClient, claimed_order, driver_headers
):
    early = await client.post(f"/driver/orders/{claimed_order['id']}/arrived", headers=driver_headers)
    assert early.status_code == 409

    await step(client, claimed_order["id"], "picked", driver_headers)
    await step(client, claimed_order["id"], "out_for_delivery", driver_headers)

    arrived = await client.post(f"/driver/orders/{claimed_order['id']}/arrived", headers=driver_headers)
    assert arrived.status_code == 200
    assert arrived.json()["order"]["driver_arrived"] is True

    repeat = await client.post(f"/driver/orders/{claimed_order['id']}/arrived", headers=driver_headers)
    assert repeat.json()["changed"] is False


@pytest.mark.asyncio
async def test_location_only_while_out_for_delivery(client: AsyncClient, claimed_order, driver_headers):
    response = await client.put(
        f"/orders/{claimed_order['id']}/driver-location",
        json={"lat": 9.788, "lng": 126.16, "accuracy_m": 12},
        headers=driver_headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_location_visible_to_customer(
    client: AsyncClient, out_for_delivery_order, driver_headers, other_driver_headers
):
    order_id = out_for_delivery_order["id"]

    response = await client.put(
        f"/orders/{order_id}/driver-location",
        json={"lat": 9.788, "lng": 126.16, "accuracy_m": 12},
        headers=driver_headers,
    )
    assert response.status_code == 200

    tracking = await client.get(f"/orders/{order_id}", params={"phone": CUSTOMER_PHONE})
    data = tracking.json()
    assert (data["driver_lat"], data["driver_lng"], data["driver_accuracy_m"]) == (9.788, 126.16, 12)
    assert data["driver_location_updated_at"] is not None

    stranger = await client.put(
        f"/orders/{order_id}/driver-location",
        json={"lat": 9.7, "lng": 126.1},
        headers=other_driver_headers,
    )
    assert stranger.status_code == 403


@pytest.mark.asyncio
async def test_location_pushes_skip_audit_log(
    client: AsyncClient, out_for_delivery_order, driver_headers, test_db
):
    order_id = out_for_delivery_order["id"]

    for lat in (9.781, 9.782, 9.783):
        response = await client.put(
            f"/orders/{order_id}/driver-location",
            json={"lat": lat, "lng": 126.16},
            headers=driver_headers,
        )
        assert response.status_code == 200

    result = await test_db.execute(
        select(AuditLog.action).where(AuditLog.resource_id == UUID(order_id))
    )
    actions = result.scalars().all()
    assert "driver_location" not in actions
    assert "status:out_for_delivery" in actions


@pytest.mark.asyncio
async def test_reporter_pushes_best_fix_through_api(
    client: AsyncClient, out_for_delivery_order, test_driver
):
    """Ten samples in one window become one location write"""
    token = create_portal_token(Actor.DRIVER, str(test_driver.id))
    reporter = DriverLocationReporter(
        HttpLocationPusher(client, out_for_delivery_order["id"], token), interval=15
    )

    for second in range(10):
        await reporter.offer(LocationFix(9.78 + second / 1000, 126.16, 40 - second * 3, timestamp=second))
    assert reporter.writes == 0

    assert await reporter.offer(LocationFix(9.8, 126.17, 50, timestamp=15)) is True
    assert reporter.writes == 1

    data = (await client.get(f"/orders/{out_for_delivery_order['id']}", params={"phone": CUSTOMER_PHONE})).json()
    assert data["driver_accuracy_m"] == 13
    assert data["driver_lat"] == pytest.approx(9.789)


@pytest.mark.asyncio
async def test_driver_earnings(client: AsyncClient, claimed_order, driver_headers, test_db):
    for status in ("picked", "out_for_delivery", "delivered"):
        await step(client, claimed_order["id"], status, driver_headers)

    response = await client.get("/driver/earnings", headers=driver_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["all_time_orders"] == 1
    # 70% of the 50 delivery fee, no tip
    assert data["all_time_total"] == 35.0
    assert data["orders"][0]["driver_share"] == 35.0
    assert data["payouts"] == []
