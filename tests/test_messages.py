"""Tests for the per-order message thread"""

import pytest
from httpx import AsyncClient

from app.orders.state_machine import Actor

CUSTOMER_PHONE = "09170001111"


@pytest.mark.asyncio
async def test_customer_and_restaurant_share_a_thread(
    client: AsyncClient, placed_order, restaurant_headers, staff_headers
):
    url = f"/orders/{placed_order['id']}/messages"

    first = await client.post(url, json={"message": "  Please add extra rice  ", "phone": CUSTOMER_PHONE})
    assert first.status_code == 201
    assert first.json()["sender_type"] == "customer"
    assert first.json()["message"] == "Please add extra rice"

    reply = await client.post(url, json={"message": "Noted!"}, headers=restaurant_headers)
    assert reply.status_code == 201
    assert reply.json()["sender_type"] == "restaurant"
    assert reply.json()["sender_id"] == "kermit"

    await client.post(url, json={"message": "Driver is on the way soon"}, headers=staff_headers)

    thread = await client.get(url, params={"phone": CUSTOMER_PHONE})
    assert thread.status_code == 200
    assert [m["sender_type"] for m in thread.json()] == ["customer", "restaurant", "staff"]


@pytest.mark.asyncio
async def test_wrong_phone_cannot_read_or_post(client: AsyncClient, placed_order):
    url = f"/orders/{placed_order['id']}/messages"

    read = await client.get(url, params={"phone": "09999999999"})
    assert read.status_code == 404

    post = await client.post(url, json={"message": "hello", "phone": "09999999999"})
    assert post.status_code == 404


@pytest.mark.asyncio
async def test_other_restaurant_cannot_post(
    client: AsyncClient, placed_order, other_restaurant, portal_headers
):
    response = await client.post(
        f"/orders/{placed_order['id']}/messages",
        json={"message": "Wrong kitchen"},
        headers=portal_headers(Actor.RESTAURANT, other_restaurant.slug),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "x" * 501])
async def test_message_must_be_non_empty_and_short(client: AsyncClient, placed_order, text):
    response = await client.post(
        f"/orders/{placed_order['id']}/messages",
        json={"message": text, "phone": CUSTOMER_PHONE},
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_oversized_body_is_rejected_by_schema(client: AsyncClient, placed_order):
    response = await client.post(
        f"/orders/{placed_order['id']}/messages",
        json={"message": "x" * 2001, "phone": CUSTOMER_PHONE},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_message_shows_up_in_change_poll(client: AsyncClient, placed_order):
    order_id = placed_order["id"]
    since = placed_order["updated_at"]

    quiet = await client.get(f"/orders/{order_id}/changes", params={"since": since, "phone": CUSTOMER_PHONE})
    assert quiet.json()["last_message_at"] is None

    await client.post(f"/orders/{order_id}/messages", json={"message": "Hi", "phone": CUSTOMER_PHONE})

    polled = await client.get(f"/orders/{order_id}/changes", params={"since": since, "phone": CUSTOMER_PHONE})
    assert polled.json()["last_message_at"] is not None
