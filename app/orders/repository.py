"""Order reads and the write primitives every operation goes through.

Writes never flush a loaded ``Order`` back. Each one is a partial UPDATE
naming only the columns it touches, status changes carry a
``WHERE status IN (...)`` guard and lifecycle timestamps are written with
``COALESCE(existing, now)``. Two portals touching different fields of the
same order therefore never overwrite each other, and a late writer cannot
regress the status.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.sql.elements import ClauseElement

from app.errors import AlreadyDecided, NotAuthorized, OrderNotFound, TransitionConflict, ValidationFailed
from app.models.audit import AuditLog
from app.models.message import OrderMessage
from app.models.order import Order
from app.orders.cart import phone_tail, phones_match
from app.orders.state_machine import (
    TERMINAL,
    TIMESTAMP_FIELDS,
    Actor,
    OrderStatus,
    check_transition,
    sources_for,
)

logger = structlog.get_logger()

ORDER_LOAD_OPTIONS = (selectinload(Order.driver), selectinload(Order.cash_record))

PHONE_SEPARATORS = " -+().\t"


@dataclass(frozen=True)
class ActorRef:
    """Who is performing a mutation"""
    type: Actor
    id: Optional[str] = None


SYSTEM = ActorRef(Actor.SYSTEM)


def status_values(*statuses: Iterable[OrderStatus]) -> List[str]:
    return [s.value for group in statuses for s in group]


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Timestamps are stored as naive UTC"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    return value


async def get_order(db: AsyncSession, order_id: UUID) -> Order:
    """Fresh read of one order, replacing whatever the session holds"""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .options(*ORDER_LOAD_OPTIONS)
        .execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise OrderNotFound()
    return order


async def get_order_for_phone(db: AsyncSession, order_id: UUID, phone: Optional[str]) -> Order:
    """Customer read; a phone mismatch looks exactly like a missing order"""
    order = await get_order(db, order_id)
    if not phones_match(order.customer_phone, phone):
        raise OrderNotFound()
    return order


def check_driver_scope(order: Order, driver) -> None:
    if order.driver_id != driver.id:
        raise NotAuthorized("Order is not assigned to you")


async def list_orders(
    db: AsyncSession,
    statuses: Optional[List[str]] = None,
    restaurant_slug: Optional[str] = None,
    driver_id: Optional[UUID] = None,
    unassigned_only: bool = False,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    offset: int = 0,
    limit: int = 50,
) -> Tuple[List[Order], int]:
    """Filtered, newest-first order list plus the unpaginated count"""
    conditions = []
    if statuses:
        conditions.append(Order.status.in_(statuses))
    if restaurant_slug:
        conditions.append(
            or_(Order.restaurant_slug == restaurant_slug, Order.grocery_slug == restaurant_slug)
        )
    if driver_id is not None and unassigned_only:
        conditions.append(or_(Order.driver_id == driver_id, Order.driver_id.is_(None)))
    elif driver_id is not None:
        conditions.append(Order.driver_id == driver_id)
    elif unassigned_only:
        conditions.append(Order.driver_id.is_(None))
    if from_date:
        conditions.append(Order.created_at >= from_date)
    if to_date:
        conditions.append(Order.created_at <= to_date)

    count_result = await db.execute(select(func.count(Order.id)).where(*conditions))
    total = count_result.scalar()

    result = await db.execute(
        select(Order)
        .where(*conditions)
        .options(*ORDER_LOAD_OPTIONS)
        .order_by(Order.created_at.desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all()), total


async def list_orders_for_phone(db: AsyncSession, phone: str, limit: int = 50) -> List[Order]:
    """Customer order history, matched on the last six digits"""
    tail = phone_tail(phone)
    if len(tail) < 4:
        raise ValidationFailed("Phone required")
    # Stored numbers keep whatever formatting the customer typed
    stored_digits = Order.customer_phone
    for separator in PHONE_SEPARATORS:
        stored_digits = func.replace(stored_digits, separator, "")
    result = await db.execute(
        select(Order)
        .where(stored_digits.like(f"%{tail}"))
        .options(*ORDER_LOAD_OPTIONS)
        .order_by(Order.created_at.desc())
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    return [o for o in result.scalars().all() if phones_match(o.customer_phone, phone)]


async def has_changed_since(db: AsyncSession, order_id: UUID, since: datetime) -> Dict:
    """Cheap poll check: reads two timestamps instead of the whole order"""
    result = await db.execute(
        select(Order.status, Order.updated_at).where(Order.id == order_id)
    )
    row = result.one_or_none()
    if row is None:
        raise OrderNotFound()

    message_result = await db.execute(
        select(func.max(OrderMessage.created_at)).where(OrderMessage.order_id == order_id)
    )
    last_message_at = message_result.scalar()

    since = naive_utc(since)
    changed = row.updated_at > since or (last_message_at is not None and last_message_at > since)
    return {
        "changed": changed,
        "status": row.status,
        "updated_at": row.updated_at,
        "last_message_at": last_message_at,
    }


def audit(db: AsyncSession, actor: ActorRef, action: str, order_id: UUID, values: Dict) -> None:
    data = {
        k: ("now" if isinstance(v, ClauseElement) else _jsonable(v))
        for k, v in values.items()
        if k != "updated_at"
    }
    db.add(
        AuditLog(
            actor_type=actor.type.value,
            actor_id=actor.id,
            action=action,
            resource_type="order",
            resource_id=order_id,
            data_json=data,
        )
    )


async def patch_order(
    db: AsyncSession,
    order_id: UUID,
    actor: ActorRef,
    action: str,
    values: Dict,
    *guards,
    audited: bool = True,
) -> int:
    """Partial UPDATE of the given columns; returns the matched row count.

    High-frequency writes such as live driver positions pass
    ``audited=False`` and skip the audit row.
    """
    values = dict(values, updated_by=actor.type.value, updated_at=datetime.utcnow())
    stmt = (
        update(Order)
        .where(Order.id == order_id, *guards)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount and audited:
        audit(db, actor, action, order_id, values)
    return result.rowcount


def stamp(field: str, now: datetime):
    """First write wins"""
    return func.coalesce(getattr(Order, field), now)


async def transition(
    db: AsyncSession,
    order: Order,
    target: OrderStatus,
    actor: ActorRef,
    now: datetime,
    extra: Optional[Dict] = None,
    guards: Tuple = (),
) -> bool:
    """Guarded status change. Returns ``False`` for an idempotent repeat."""
    target = OrderStatus(target)
    if not check_transition(order.status, target, actor.type):
        return False

    values = {"status": target.value}
    field = TIMESTAMP_FIELDS.get(target)
    if field:
        values[field] = stamp(field, now)
    if extra:
        values.update(extra)

    sources = status_values(sources_for(target, actor.type))
    rows = await patch_order(
        db, order.id, actor, f"status:{target.value}", values,
        Order.status.in_(sources), *guards,
    )
    if not rows:
        # Someone else moved the order between our read and our write
        current = await get_order(db, order.id)
        logger.info(
            "Conditional status update lost",
            order_id=str(order.id),
            target=target.value,
            current=current.status,
            actor=actor.type.value,
        )
        if OrderStatus(current.status) in TERMINAL:
            raise AlreadyDecided(f"Order already {current.status}")
        raise TransitionConflict(f"Order is now {current.status}")

    logger.info(
        "Order status changed",
        order_id=str(order.id),
        from_status=order.status,
        to_status=target.value,
        actor=actor.type.value,
    )
    return True

