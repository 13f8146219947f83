"""Restaurant decisions and kitchen progress"""

from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import AlreadyDecided, CoordinatesRequired, NotAuthorized, TransitionConflict
from app.models.order import Order
from app.models.restaurant import Restaurant
from app.orders.repository import ActorRef, get_order, patch_order, stamp, status_values, transition
from app.orders.service import on_cancelled, refund_due
from app.orders.state_machine import (
    NON_TERMINAL,
    TERMINAL,
    Actor,
    OrderStatus,
    RestaurantDecision,
    check_restaurant_decision,
)
from app.pricing.eta import estimated_delivery_at

logger = structlog.get_logger()


def _check_restaurant_scope(order: Order, restaurant: Restaurant) -> None:
    if restaurant.slug not in (order.restaurant_slug, order.grocery_slug):
        raise NotAuthorized("Not your order")


async def accept_order(
    db: AsyncSession,
    order_id: UUID,
    restaurant: Restaurant,
    prep_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Restaurant accept: sub-status accepted, canonical pending -> confirmed"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    _check_restaurant_scope(order, restaurant)
    check_restaurant_decision(order.restaurant_status)
    if OrderStatus(order.status) in TERMINAL:
        raise AlreadyDecided(f"Order already {order.status}")
    if order.payment_method == "cash" and (order.delivery_lat is None or order.delivery_lng is None):
        raise CoordinatesRequired()

    if prep_minutes not in settings.prep_minute_choices:
        prep_minutes = settings.default_prep_minutes

    values = {
        "restaurant_status": RestaurantDecision.ACCEPTED.value,
        "restaurant_decided_at": now,
        "prep_minutes": prep_minutes,
        "estimated_delivery_at": estimated_delivery_at(now, prep_minutes, order.delivery_distance_km),
    }
    guards = [Order.restaurant_status == RestaurantDecision.PENDING.value]
    if order.status == OrderStatus.PENDING.value:
        values["status"] = OrderStatus.CONFIRMED.value
        values["confirmed_at"] = stamp("confirmed_at", now)
        guards.append(Order.status == OrderStatus.PENDING.value)
    else:
        # Staff confirmed it already; only record the decision
        guards.append(Order.status.in_(status_values(NON_TERMINAL)))

    actor = ActorRef(Actor.RESTAURANT, restaurant.slug)
    rows = await patch_order(db, order.id, actor, "accept", values, *guards)
    if not rows:
        current = await get_order(db, order.id)
        check_restaurant_decision(current.restaurant_status)
        raise AlreadyDecided(f"Order already {current.status}")

    await db.commit()
    logger.info("Order accepted", order_id=str(order.id), restaurant=restaurant.slug, prep_minutes=prep_minutes)
    return await get_order(db, order.id)


async def reject_order(
    db: AsyncSession,
    order_id: UUID,
    restaurant: Restaurant,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Restaurant reject: sub-status rejected, canonical cancelled"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    _check_restaurant_scope(order, restaurant)
    check_restaurant_decision(order.restaurant_status)
    if OrderStatus(order.status) in TERMINAL:
        raise AlreadyDecided(f"Order already {order.status}")

    values = {
        "restaurant_status": RestaurantDecision.REJECTED.value,
        "restaurant_decided_at": now,
        "status": OrderStatus.CANCELLED.value,
        "cancelled_at": stamp("cancelled_at", now),
        "cancel_reason": reason or "Rejected by restaurant",
    }
    if refund_due(order):
        values["payment_status"] = "refund_pending"

    actor = ActorRef(Actor.RESTAURANT, restaurant.slug)
    rows = await patch_order(
        db, order.id, actor, "reject", values,
        Order.restaurant_status == RestaurantDecision.PENDING.value,
        Order.status.in_(status_values(NON_TERMINAL)),
    )
    if not rows:
        current = await get_order(db, order.id)
        check_restaurant_decision(current.restaurant_status)
        raise AlreadyDecided(f"Order already {current.status}")

    await on_cancelled(db, order)
    await db.commit()
    logger.info("Order rejected", order_id=str(order.id), restaurant=restaurant.slug)
    return await get_order(db, order.id)


async def restaurant_set_status(
    db: AsyncSession,
    order_id: UUID,
    restaurant: Restaurant,
    target: OrderStatus,
    now: Optional[datetime] = None,
) -> Tuple[Order, bool]:
    """Kitchen progress on an accepted order: preparing, ready"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    _check_restaurant_scope(order, restaurant)
    if order.restaurant_status != RestaurantDecision.ACCEPTED.value:
        raise TransitionConflict("Accept the order first")
    actor = ActorRef(Actor.RESTAURANT, restaurant.slug)
    changed = await transition(db, order, target, actor, now)
    await db.commit()
    return await get_order(db, order.id), changed

