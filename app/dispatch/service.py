"""Driver operations: claiming, stepping, checkpoints and live location"""

from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import TransitionConflict, ValidationFailed
from app.models.driver import Driver
from app.models.order import Order
from app.orders.repository import (
    ActorRef,
    check_driver_scope,
    get_order,
    patch_order,
    stamp,
    transition,
)
from app.orders.service import on_delivered
from app.orders.state_machine import Actor, OrderStatus

logger = structlog.get_logger()


async def claim_order(
    db: AsyncSession, order_id: UUID, driver: Driver, now: Optional[datetime] = None
) -> Tuple[Order, bool]:
    """Driver self-assigns a ready order"""
    now = now or datetime.utcnow()
    if not driver.is_available:
        raise ValidationFailed("Go online to claim orders")
    order = await get_order(db, order_id)
    if order.driver_id is not None and order.driver_id != driver.id:
        raise TransitionConflict("Order already assigned to another driver")

    actor = ActorRef(Actor.DRIVER, str(driver.id))
    changed = await transition(
        db, order, OrderStatus.ASSIGNED, actor, now,
        extra={"driver_id": driver.id},
        guards=(or_(Order.driver_id.is_(None), Order.driver_id == driver.id),),
    )
    await db.commit()
    return await get_order(db, order.id), changed


async def advance_order(
    db: AsyncSession,
    order_id: UUID,
    driver: Driver,
    target: OrderStatus,
    now: Optional[datetime] = None,
) -> Tuple[Order, bool]:
    """Driver steps: assigned -> picked -> out_for_delivery -> delivered"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    check_driver_scope(order, driver)
    target = OrderStatus(target)
    if target == OrderStatus.ASSIGNED:
        return await claim_order(db, order_id, driver, now)

    actor = ActorRef(Actor.DRIVER, str(driver.id))
    changed = await transition(
        db, order, target, actor, now, guards=(Order.driver_id == driver.id,)
    )
    if changed and target == OrderStatus.DELIVERED:
        await on_delivered(db, order.id, actor)
    await db.commit()
    return await get_order(db, order.id), changed


async def mark_arrived_at_hub(
    db: AsyncSession, order_id: UUID, driver: Driver, now: Optional[datetime] = None
) -> Tuple[Order, bool]:
    """Hub checkpoint while assigned or picked; set once"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    check_driver_scope(order, driver)
    allowed = (OrderStatus.ASSIGNED.value, OrderStatus.PICKED.value)
    if order.status not in allowed:
        raise TransitionConflict("Hub check-in is only possible before heading out")
    if order.arrived_at_hub_at is not None:
        return order, False

    rows = await patch_order(
        db, order.id, ActorRef(Actor.DRIVER, str(driver.id)), "arrived_at_hub",
        {"arrived_at_hub_at": stamp("arrived_at_hub_at", now)},
        Order.driver_id == driver.id,
        Order.status.in_(allowed),
    )
    if not rows:
        raise TransitionConflict("Order status changed")
    await db.commit()
    return await get_order(db, order.id), True


async def mark_driver_arrived(
    db: AsyncSession, order_id: UUID, driver: Driver, now: Optional[datetime] = None
) -> Tuple[Order, bool]:
    """Driver is at the customer; set once and texts the customer"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    check_driver_scope(order, driver)
    if order.status != OrderStatus.OUT_FOR_DELIVERY.value:
        raise TransitionConflict("Arrival can only be marked while out for delivery")
    if order.driver_arrived_at is not None:
        return order, False

    rows = await patch_order(
        db, order.id, ActorRef(Actor.DRIVER, str(driver.id)), "driver_arrived",
        {"driver_arrived_at": stamp("driver_arrived_at", now)},
        Order.driver_id == driver.id,
        Order.status == OrderStatus.OUT_FOR_DELIVERY.value,
        Order.driver_arrived_at.is_(None),
    )
    if not rows:
        current = await get_order(db, order.id)
        return current, False
    await db.commit()

    from app.jobs.tasks import enqueue, send_driver_arrival_sms

    enqueue(send_driver_arrival_sms, str(order.id))
    return await get_order(db, order.id), True


async def update_driver_location(
    db: AsyncSession,
    order_id: UUID,
    driver: Driver,
    lat: float,
    lng: float,
    accuracy_m: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Live position from the assigned driver while out for delivery"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    check_driver_scope(order, driver)
    if order.status != OrderStatus.OUT_FOR_DELIVERY.value:
        raise TransitionConflict("Location is shared only while out for delivery")

    rows = await patch_order(
        db, order.id, ActorRef(Actor.DRIVER, str(driver.id)), "driver_location",
        {
            "driver_lat": lat,
            "driver_lng": lng,
            "driver_accuracy_m": accuracy_m,
            "driver_location_updated_at": now,
        },
        Order.driver_id == driver.id,
        Order.status == OrderStatus.OUT_FOR_DELIVERY.value,
        audited=False,
    )
    if not rows:
        raise TransitionConflict("Location is shared only while out for delivery")

    await db.execute(
        update(Driver)
        .where(Driver.id == driver.id)
        .values(last_lat=lat, last_lng=lng, last_location_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return await get_order(db, order.id)


async def set_driver_availability(db: AsyncSession, driver: Driver, is_available: bool) -> Driver:
    await db.execute(
        update(Driver)
        .where(Driver.id == driver.id)
        .values(is_available=is_available, updated_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    await db.refresh(driver)
    logger.info("Driver availability changed", driver_id=str(driver.id), is_available=is_available)
    return driver

