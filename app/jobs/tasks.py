"""Background job tasks"""

from datetime import datetime, timedelta
from typing import Dict, List
from uuid import UUID
import asyncio
import httpx
import structlog

from app.jobs.celery_app import celery_app
from app.config import settings

logger = structlog.get_logger()


def run_async(coro):
    """Helper to run async functions in sync context"""
    return asyncio.run(coro)


def enqueue(task, *args) -> bool:
    """Queue a notification task; a broker outage never fails the caller"""
    if not settings.notifications_enabled:
        return False
    try:
        task.delay(*args)
    except Exception as e:
        logger.warning("Failed to enqueue task", task=task.name, error=str(e))
        return False
    return True


def send_ntfy(topic: str, message: str, title: str = None, tags: str = "bell", priority: str = "high"):
    """POST a plain-text push to an ntfy topic"""
    headers = {"Content-Type": "text/plain", "Priority": priority, "Tags": tags}
    if title:
        headers["Title"] = title
    url = f"{settings.ntfy_base_url.rstrip('/')}/{topic}"
    response = httpx.post(url, content=message.encode("utf-8"), headers=headers, timeout=10)
    response.raise_for_status()


def format_new_order_message(
    order_id: str,
    lines: List[dict],
    landmark: str,
    customer_phone: str,
    placed_at: datetime,
) -> str:
    """Body of the restaurant's new-order push"""
    items = "\n".join(f"{line.get('quantity', 1)}x {line.get('item_name')}" for line in lines)
    return (
        f"Order #{order_id[:8].upper()}\n\n"
        f"{items}\n\n"
        f"Landmark: {landmark}\n"
        f"Placed: {placed_at.strftime('%a %b %d %I:%M %p')} UTC\n"
        f"Phone: {customer_phone}"
    )


@celery_app.task(name="notify_restaurants_new_order")
def notify_restaurants_new_order(order_id: str):
    """Push the new order to each restaurant in it"""
    logger.info("Notifying restaurants of new order", order_id=order_id)

    async def _load():
        from app.database import SessionLocal
        from app.models.order import Order
        from app.models.restaurant import Restaurant
        from sqlalchemy import select

        async with SessionLocal() as db:
            order = await db.get(Order, UUID(order_id))
            if not order:
                return None, {}
            slugs = [s for s in (order.restaurant_slug, order.grocery_slug) if s]
            result = await db.execute(select(Restaurant).where(Restaurant.slug.in_(slugs)))
            return order, {r.slug: r for r in result.scalars().all()}

    order, restaurants = run_async(_load())
    if order is None:
        logger.warning("Order vanished before notification", order_id=order_id)
        return

    by_restaurant: Dict[str, List[dict]] = {}
    for line in order.items_json or []:
        by_restaurant.setdefault(line.get("restaurant_slug"), []).append(line)

    for slug, lines in by_restaurant.items():
        restaurant = restaurants.get(slug)
        topic = (restaurant.ntfy_topic if restaurant else None) or settings.ntfy_default_topic
        name = restaurant.name if restaurant else lines[0].get("restaurant_name", slug)
        try:
            send_ntfy(
                topic,
                format_new_order_message(
                    order_id, lines, order.landmark, order.customer_phone, order.created_at
                ),
                title=f"{name} - Order",
                tags="plate_with_cutlery",
            )
            logger.info("Restaurant notified", order_id=order_id, restaurant=slug)
        except httpx.HTTPError as e:
            logger.error(
                "Failed to notify restaurant",
                order_id=order_id,
                restaurant=slug,
                error=str(e),
            )


@celery_app.task(name="send_driver_arrival_sms")
def send_driver_arrival_sms(order_id: str):
    """Text the customer that the driver is outside"""
    logger.info("Sending driver arrival SMS", order_id=order_id)

    async def _load():
        from app.database import SessionLocal
        from app.models.order import Order

        async with SessionLocal() as db:
            return await db.get(Order, UUID(order_id))

    order = run_async(_load())
    if not order:
        return

    if not settings.twilio_account_sid:
        logger.info("Twilio not configured, skipping arrival SMS", order_id=order_id)
        return

    from twilio.rest import Client as TwilioClient

    client = TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
    try:
        client.messages.create(
            body=(
                f"Hi {order.customer_name}, your driver has arrived at {order.landmark}. "
                f"Order #{order_id[:8].upper()}."
            ),
            from_=settings.twilio_phone_number,
            to=order.customer_phone,
        )
        logger.info("Arrival SMS sent", order_id=order_id)
    except Exception as e:
        logger.error("Failed to send arrival SMS", order_id=order_id, error=str(e))


@celery_app.task(name="flag_stale_pending_orders")
def flag_stale_pending_orders():
    """Alert dispatch about orders no restaurant has decided on"""
    logger.info("Checking for stale pending orders")

    async def _find():
        from app.database import SessionLocal
        from app.models.order import Order
        from sqlalchemy import select, and_

        cutoff = datetime.utcnow() - timedelta(minutes=settings.stale_pending_minutes)
        async with SessionLocal() as db:
            result = await db.execute(
                select(Order.id, Order.created_at, Order.restaurant_slug).where(
                    and_(
                        Order.status == "pending",
                        Order.restaurant_status == "pending",
                        Order.created_at < cutoff,
                    )
                )
            )
            return result.all()

    stale = run_async(_find())
    if not stale:
        return

    logger.warning("Stale pending orders", count=len(stale))
    lines = [
        f"#{str(row.id)[:8].upper()} {row.restaurant_slug or '-'} since {row.created_at:%H:%M}"
        for row in stale
    ]
    try:
        send_ntfy(
            settings.ntfy_default_topic,
            "\n".join(lines),
            title=f"{len(stale)} order(s) waiting for a restaurant",
            tags="warning",
            priority="urgent",
        )
    except httpx.HTTPError as e:
        logger.error("Failed to send stale order alert", error=str(e))
