"""Cash reconciliation, earnings and commission figures"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import ValidationFailed
from app.models.cash import CashHandling
from app.models.driver import Driver, Payout
from app.models.order import Order
from app.models.restaurant import Restaurant
from app.orders.repository import ORDER_LOAD_OPTIONS, ActorRef, audit, check_driver_scope, get_order
from app.orders.state_machine import OrderStatus

logger = structlog.get_logger()

CASH_TRACKED_STATUSES = (
    OrderStatus.PICKED.value,
    OrderStatus.OUT_FOR_DELIVERY.value,
    OrderStatus.DELIVERED.value,
)


def start_of_business_day(now: datetime) -> datetime:
    """Local midnight expressed in naive UTC"""
    offset = timedelta(hours=settings.local_utc_offset_hours)
    local = now + offset
    return local.replace(hour=0, minute=0, second=0, microsecond=0) - offset


def driver_share(delivery_fee: int, tip: int, delivery_commission_pct: Optional[int]) -> float:
    """Driver keeps the delivery fee minus the platform's cut, plus the whole tip"""
    pct = settings.default_delivery_commission_pct if delivery_commission_pct is None else delivery_commission_pct
    return round((1 - pct / 100) * (delivery_fee or 0) + (tip or 0), 2)


def cost_from_display(price: float, commission_pct: Optional[int]) -> float:
    """Restaurant's price behind a marked-up display price"""
    pct = settings.default_commission_pct if commission_pct is None else commission_pct
    if pct <= -100:
        return price
    return price / (1 + pct / 100)


def _insert_for(db: AsyncSession):
    """Dialect insert that supports ON CONFLICT"""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert
    return pg_insert


async def write_cash(db: AsyncSession, order: Order, values: Dict, actor: ActorRef) -> None:
    """Per-field upsert of the order's cash record.

    One INSERT ... ON CONFLICT DO UPDATE; concurrent first writes from a
    driver and staff land on the same row.
    """
    values = dict(values, updated_by=actor.type.value, updated_at=datetime.utcnow())
    insert = _insert_for(db)
    stmt = insert(CashHandling).values(order_id=order.id, **values)
    stmt = stmt.on_conflict_do_update(index_elements=[CashHandling.order_id], set_=values)
    await db.execute(stmt)
    audit(db, actor, "cash", order.id, values)


async def record_cash(
    db: AsyncSession,
    order_id: UUID,
    actor: ActorRef,
    data,
    driver: Optional[Driver] = None,
) -> Order:
    """Driver or staff cash entry; each amount is settable on its own"""
    order = await get_order(db, order_id)
    if driver is not None:
        check_driver_scope(order, driver)
    if order.payment_method != "cash":
        raise ValidationFailed("Not a cash order")

    values = data.model_dump(exclude_unset=True)
    if not values:
        return order
    await write_cash(db, order, values, actor)
    await db.commit()
    logger.info("Cash recorded", order_id=str(order.id), fields=sorted(values), actor=actor.type.value)
    return await get_order(db, order.id)


async def cash_summary(db: AsyncSession) -> dict:
    """Totals and variances over cash orders that are on the road or done"""
    result = await db.execute(
        select(Order)
        .where(Order.payment_method == "cash", Order.status.in_(CASH_TRACKED_STATUSES))
        .options(*ORDER_LOAD_OPTIONS)
        .order_by(Order.created_at.desc())
        .execution_options(populate_existing=True)
    )
    orders = result.scalars().all()

    total_expected = total_received = total_turned_in = 0
    variances = []
    for order in orders:
        cash = order.cash_record
        if cash is None:
            continue
        total_expected += cash.expected or 0
        total_received += cash.received_from_customer or 0
        total_turned_in += cash.turned_in_at_hub or 0
        if cash.has_variance:
            variances.append({
                "order_id": order.id,
                "status": order.status,
                "driver_name": order.driver.name if order.driver else None,
                "expected": cash.expected,
                "received_from_customer": cash.received_from_customer,
                "turned_in_at_hub": cash.turned_in_at_hub,
                "variance_reason": cash.variance_reason,
            })

    return {
        "order_count": len(orders),
        "total_expected": total_expected,
        "total_received": total_received,
        "total_turned_in": total_turned_in,
        "variances": variances,
    }


async def _restaurants_by_slug(db: AsyncSession) -> Dict[str, Restaurant]:
    result = await db.execute(select(Restaurant))
    return {r.slug: r for r in result.scalars().all()}


async def _paid_payouts(db: AsyncSession, recipient_type: str, recipient_id: str) -> List[dict]:
    result = await db.execute(
        select(Payout)
        .where(
            Payout.recipient_type == recipient_type,
            Payout.recipient_id == recipient_id,
            Payout.status == "paid",
        )
        .order_by(Payout.paid_at.desc())
    )
    return [
        {
            "id": p.id,
            "recipient_type": p.recipient_type,
            "recipient_id": p.recipient_id,
            "amount": p.amount,
            "status": p.status,
            "order_ids": [str(i) for i in p.order_ids or []],
            "paid_at": p.paid_at,
            "created_at": p.created_at,
        }
        for p in result.scalars().all()
    ]


def _primary_slug(order: Order) -> Optional[str]:
    return order.restaurant_slug or order.grocery_slug


async def driver_earnings(db: AsyncSession, driver: Driver, now: Optional[datetime] = None) -> dict:
    """Per-order driver share plus today and all-time totals"""
    now = now or datetime.utcnow()
    day_start = start_of_business_day(now)
    restaurants = await _restaurants_by_slug(db)

    result = await db.execute(
        select(Order)
        .where(Order.driver_id == driver.id, Order.status == OrderStatus.DELIVERED.value)
        .order_by(Order.delivered_at.desc())
    )
    entries = []
    for order in result.scalars().all():
        restaurant = restaurants.get(_primary_slug(order))
        pct = restaurant.delivery_commission_pct if restaurant else None
        entries.append({
            "order_id": order.id,
            "delivered_at": order.delivered_at,
            "delivery_fee": order.delivery_fee,
            "tip": order.tip,
            "driver_share": driver_share(order.delivery_fee, order.tip, pct),
        })

    today = [e for e in entries if e["delivered_at"] and e["delivered_at"] >= day_start]
    payouts = await _paid_payouts(db, "driver", str(driver.id))
    return {
        "today_total": round(sum(e["driver_share"] for e in today), 2),
        "all_time_total": round(sum(e["driver_share"] for e in entries), 2),
        "today_orders": len(today),
        "all_time_orders": len(entries),
        "orders": entries,
        "payouts": payouts,
    }


def _restaurant_lines(order: Order, slug: str) -> Iterable[dict]:
    return (line for line in order.items_json or [] if line.get("restaurant_slug") == slug)


async def restaurant_earnings(db: AsyncSession, restaurant: Restaurant, now: Optional[datetime] = None) -> dict:
    """Food sales at display prices and the restaurant's cost-price share"""
    now = now or datetime.utcnow()
    day_start = start_of_business_day(now)
    result = await db.execute(
        select(Order).where(
            Order.status == OrderStatus.DELIVERED.value,
            (Order.restaurant_slug == restaurant.slug) | (Order.grocery_slug == restaurant.slug),
        )
    )
    orders = result.scalars().all()

    totals = {"today_sales": 0, "today_earnings": 0.0, "all_time_sales": 0, "all_time_earnings": 0.0}
    for order in orders:
        is_today = order.delivered_at is not None and order.delivered_at >= day_start
        for line in _restaurant_lines(order, restaurant.slug):
            qty = int(line.get("quantity") or 1)
            sales = int(line.get("price_value") or 0) * qty
            earned = cost_from_display(line.get("price_value") or 0, restaurant.commission_pct) * qty
            totals["all_time_sales"] += sales
            totals["all_time_earnings"] += earned
            if is_today:
                totals["today_sales"] += sales
                totals["today_earnings"] += earned

    payouts = await _paid_payouts(db, "restaurant", restaurant.slug)
    return {
        "today_sales": totals["today_sales"],
        "today_earnings": round(totals["today_earnings"], 2),
        "all_time_sales": totals["all_time_sales"],
        "all_time_earnings": round(totals["all_time_earnings"], 2),
        "all_time_orders": len(orders),
        "payouts": payouts,
    }


async def commission_income(db: AsyncSession, now: Optional[datetime] = None) -> dict:
    """Platform food and delivery commission on today's delivered orders"""
    now = now or datetime.utcnow()
    day_start = start_of_business_day(now)
    restaurants = await _restaurants_by_slug(db)

    result = await db.execute(
        select(Order).where(
            Order.status == OrderStatus.DELIVERED.value,
            Order.delivered_at >= day_start,
        )
    )

    by_restaurant: Dict[str, dict] = {}
    total_food = total_delivery = 0.0
    for order in result.scalars().all():
        lines = order.items_json or []
        for line in lines:
            slug = line.get("restaurant_slug")
            restaurant = restaurants.get(slug)
            price = line.get("price_value") or 0
            qty = int(line.get("quantity") or 1)
            food = (price - cost_from_display(price, restaurant.commission_pct if restaurant else None)) * qty
            entry = by_restaurant.setdefault(
                line.get("restaurant_name"),
                {"slug": slug, "food_commission": 0.0, "delivery_commission": 0.0},
            )
            entry["food_commission"] += food
            total_food += food

        if lines:
            first = restaurants.get(lines[0].get("restaurant_slug"))
            pct = first.delivery_commission_pct if first else settings.default_delivery_commission_pct
            delivery = (order.delivery_fee or 0) * pct / 100
            by_restaurant[lines[0].get("restaurant_name")]["delivery_commission"] += delivery
            total_delivery += delivery

    return {
        "period_start": day_start,
        "total_food_commission": round(total_food, 2),
        "total_delivery_commission": round(total_delivery, 2),
        "total_commission": round(total_food + total_delivery, 2),
        "by_restaurant": [
            {
                "restaurant_name": name,
                "slug": data["slug"] or "",
                "food_commission": round(data["food_commission"], 2),
                "delivery_commission": round(data["delivery_commission"], 2),
                "total_commission": round(data["food_commission"] + data["delivery_commission"], 2),
            }
            for name, data in by_restaurant.items()
        ],
    }
