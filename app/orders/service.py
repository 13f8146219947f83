"""Customer, staff and payment operations on orders"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.dispatch.ledger import write_cash
from app.errors import (
    AlreadyDecided,
    CoordinatesRequired,
    PromoRejected,
    TransitionConflict,
    ValidationFailed,
)
from app.mapping import Coordinates, MappingService
from app.models.customer import Customer
from app.models.driver import Driver
from app.models.order import Order
from app.models.promo import PromoCode
from app.models.restaurant import ItemAvailability, Restaurant
from app.orders.cart import check_restaurant_mix, line_slug
from app.orders.customers import (
    adjust_loyalty,
    credit_referrer,
    get_or_create_customer,
    referral_balance,
    release_referral_credit,
    return_referral_credit,
    spend_referral_credit,
)
from app.orders.repository import (
    ActorRef,
    audit,
    get_order,
    get_order_for_phone,
    naive_utc,
    patch_order,
    stamp,
    status_values,
    transition,
)
from app.orders.state_machine import (
    EDITABLE,
    NON_TERMINAL,
    TERMINAL,
    Actor,
    OrderStatus,
    RestaurantDecision,
    check_customer_window,
)
from app.pricing.delivery import DeliveryQuote, default_calculator
from app.pricing.discounts import evaluate_promo, normalize_code
from app.pricing.engine import compute_subtotal, price_with_settings

logger = structlog.get_logger()


async def _restaurants_for(db: AsyncSession, lines: List[dict]) -> Dict[str, Restaurant]:
    slugs = {line_slug(line) for line in lines}
    if not slugs:
        return {}
    result = await db.execute(select(Restaurant).where(Restaurant.slug.in_(slugs)))
    return {r.slug: r for r in result.scalars().all()}


async def validate_cart(db: AsyncSession, lines: List[dict]) -> Tuple[Optional[str], Optional[str], Dict[str, Restaurant]]:
    """Slug mix, sold-out items and per-restaurant minimums"""
    for line in lines:
        line["restaurant_slug"] = line_slug(line)

    restaurants = await _restaurants_for(db, lines)
    grocery_slugs = {slug for slug, r in restaurants.items() if r.is_grocery}
    restaurant_slug, grocery_slug = check_restaurant_mix(lines, grocery_slugs)

    for slug in (restaurant_slug, grocery_slug):
        r = restaurants.get(slug) if slug else None
        if r is not None and not r.is_active:
            raise ValidationFailed(f"{r.name} is not taking orders right now")

    if restaurants:
        result = await db.execute(
            select(ItemAvailability).where(
                ItemAvailability.restaurant_id.in_([r.id for r in restaurants.values()]),
                ItemAvailability.is_available.is_(False),
            )
        )
        sold_out = {(a.restaurant_id, a.item_name.lower()) for a in result.scalars().all()}
        for line in lines:
            r = restaurants.get(line["restaurant_slug"])
            if r is not None and (r.id, line["item_name"].lower()) in sold_out:
                raise ValidationFailed(f"{line['item_name']} is sold out")

    for slug, r in restaurants.items():
        if r.min_order:
            spent = compute_subtotal(l for l in lines if l["restaurant_slug"] == slug)
            if spent < r.min_order:
                raise ValidationFailed(f"Minimum order for {r.name} is {r.min_order}")

    return restaurant_slug, grocery_slug, restaurants


async def quote_delivery(
    mapping: MappingService,
    destination: Coordinates,
    origin_restaurant: Optional[Restaurant],
    allow_fallback: bool = True,
) -> DeliveryQuote:
    """Distance from the primary restaurant when it has a pin, else the hub"""
    if origin_restaurant is not None and origin_restaurant.lat is not None and origin_restaurant.lng is not None:
        origin = Coordinates(origin_restaurant.lat, origin_restaurant.lng)
    else:
        origin = Coordinates(settings.hub_lat, settings.hub_lng)
    distance = await mapping.distance_km(origin, destination, allow_fallback=allow_fallback)
    return default_calculator().quote(distance)


async def lookup_promo(db: AsyncSession, code: str) -> Optional[PromoCode]:
    result = await db.execute(select(PromoCode).where(PromoCode.code == normalize_code(code)))
    return result.scalar_one_or_none()


async def create_order(db: AsyncSession, data, mapping: MappingService, now: Optional[datetime] = None) -> Order:
    """Validate, price and persist a new order"""
    now = now or datetime.utcnow()

    if data.payment_method == "cash" and (data.delivery_lat is None or data.delivery_lng is None):
        raise CoordinatesRequired()

    if data.time_window == "scheduled":
        if data.scheduled_at is None:
            raise ValidationFailed("Scheduled orders need a delivery time")
        if naive_utc(data.scheduled_at) <= now:
            raise ValidationFailed("Scheduled time must be in the future")

    lines = [item.model_dump() for item in data.items]
    restaurant_slug, grocery_slug, restaurants = await validate_cart(db, lines)
    subtotal = compute_subtotal(lines)

    promo = None
    promo_amount = 0
    if data.promo_code:
        promo = await lookup_promo(db, data.promo_code)
        evaluation = evaluate_promo(promo, subtotal, now)
        if not evaluation.valid:
            raise PromoRejected(evaluation.reason)
        promo_amount = evaluation.discount

    customer, is_new_customer = await get_or_create_customer(db, data.customer_phone, data.customer_name)
    if data.loyalty_points > customer.loyalty_points:
        raise ValidationFailed("Not enough loyalty points")

    referral_available = 0
    if data.use_referral_credit:
        referral_available, _ = await referral_balance(db, customer.id)

    quote = None
    if data.delivery_lat is not None and data.delivery_lng is not None:
        primary = restaurants.get(restaurant_slug) or restaurants.get(grocery_slug)
        quote = await quote_delivery(
            mapping, Coordinates(data.delivery_lat, data.delivery_lng), primary, allow_fallback=True
        )
    delivery_fee = quote.fee if quote else default_calculator().tiers[0].flat_fee

    breakdown = price_with_settings(
        lines,
        delivery_fee=delivery_fee,
        tip=data.tip,
        priority=data.priority,
        promo_amount=promo_amount,
        loyalty_points=data.loyalty_points,
        referral_credit=referral_available,
    )

    order = Order(
        customer_name=data.customer_name.strip(),
        customer_phone=data.customer_phone.strip(),
        customer_email=data.customer_email,
        delivery_address=(data.delivery_address or "").strip() or "See landmark",
        landmark=data.landmark,
        room=data.room,
        floor=data.floor,
        guest_name=data.guest_name,
        delivery_lat=data.delivery_lat,
        delivery_lng=data.delivery_lng,
        delivery_zone_id=quote.zone_id if quote else None,
        delivery_zone_name=quote.zone_name if quote else None,
        delivery_distance_km=quote.distance_km if quote else None,
        items_json=lines,
        restaurant_slug=restaurant_slug,
        grocery_slug=grocery_slug,
        delivery_fee=breakdown.delivery_fee,
        tip=breakdown.tip,
        priority=data.priority,
        priority_fee=settings.priority_fee if data.priority else 0,
        promo_code=promo.code if promo else None,
        promo_amount=breakdown.promo_discount,
        loyalty_points_redeemed=breakdown.loyalty_points_used,
        referral_credit=breakdown.referral_discount,
        time_window=data.time_window,
        scheduled_at=naive_utc(data.scheduled_at),
        cancel_cutoff_at=now + timedelta(minutes=settings.cancel_window_minutes),
        status=OrderStatus.PENDING.value,
        restaurant_status=RestaurantDecision.PENDING.value,
        payment_method=data.payment_method,
        payment_status="unpaid",
        notes=data.notes,
        allow_substitutions=data.allow_substitutions,
        updated_by=Actor.CUSTOMER.value,
        created_at=now,
        updated_at=now,
    )
    db.add(order)
    await db.flush()

    if promo is not None:
        result = await db.execute(
            update(PromoCode)
            .where(
                PromoCode.id == promo.id,
                or_(PromoCode.max_uses.is_(None), PromoCode.uses_count < PromoCode.max_uses),
            )
            .values(uses_count=PromoCode.uses_count + 1)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            raise PromoRejected("limit reached")

    if breakdown.loyalty_points_used:
        result = await db.execute(
            update(Customer)
            .where(Customer.id == customer.id, Customer.loyalty_points >= breakdown.loyalty_points_used)
            .values(loyalty_points=Customer.loyalty_points - breakdown.loyalty_points_used)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            raise ValidationFailed("Not enough loyalty points")

    if breakdown.referral_discount:
        await spend_referral_credit(db, customer.id, breakdown.referral_discount, order.id, now)

    if data.referral_code and is_new_customer:
        await credit_referrer(db, data.referral_code, customer, now)

    actor = ActorRef(Actor.CUSTOMER, order.customer_phone)
    audit(db, actor, "create_order", order.id, {
        "status": order.status,
        "payment_method": order.payment_method,
        "total": breakdown.total,
    })
    await db.commit()

    logger.info(
        "Order created",
        order_id=str(order.id),
        restaurant=restaurant_slug,
        grocery=grocery_slug,
        total=breakdown.total,
        payment_method=order.payment_method,
    )

    from app.jobs.tasks import enqueue, notify_restaurants_new_order

    enqueue(notify_restaurants_new_order, str(order.id))
    return await get_order(db, order.id)

async def edit_order(db: AsyncSession, order_id: UUID, data, now: Optional[datetime] = None) -> Order:
    """Customer edit of notes, address fields and items inside the window"""
    now = now or datetime.utcnow()
    order = await get_order_for_phone(db, order_id, data.phone)
    check_customer_window(order.status, order.cancel_cutoff_at, now, action="edit")

    fields = data.model_dump(exclude_unset=True, exclude={"phone", "items"})
    values = {k: v for k, v in fields.items() if v is not None or k == "notes"}
    if "delivery_address" in values:
        values["delivery_address"] = (values["delivery_address"] or "").strip() or "See landmark"

    refund_points = 0
    refund_referral = 0
    if data.items is not None:
        lines = [item.model_dump() for item in data.items]
        restaurant_slug, grocery_slug, _ = await validate_cart(db, lines)
        # Re-cap the stored discounts against the new subtotal
        breakdown = price_with_settings(
            lines,
            delivery_fee=order.delivery_fee,
            tip=order.tip,
            priority=order.priority,
            priority_fee=order.priority_fee,
            promo_amount=order.promo_amount,
            loyalty_points=order.loyalty_points_redeemed,
            referral_credit=order.referral_credit,
        )
        refund_points = order.loyalty_points_redeemed - breakdown.loyalty_points_used
        refund_referral = order.referral_credit - breakdown.referral_discount
        values.update(
            items_json=lines,
            restaurant_slug=restaurant_slug,
            grocery_slug=grocery_slug,
            promo_amount=breakdown.promo_discount,
            loyalty_points_redeemed=breakdown.loyalty_points_used,
            referral_credit=breakdown.referral_discount,
        )

    if not values:
        return order

    actor = ActorRef(Actor.CUSTOMER, order.customer_phone)
    rows = await patch_order(
        db, order.id, actor, "edit_order", values,
        Order.status.in_(status_values(EDITABLE)),
        Order.cancel_cutoff_at > now,
    )
    if not rows:
        current = await get_order(db, order.id)
        check_customer_window(current.status, current.cancel_cutoff_at, now, action="edit")
        raise TransitionConflict("Order can no longer be edited")

    if refund_points > 0:
        await adjust_loyalty(db, order.customer_phone, refund_points)
    if refund_referral > 0:
        await return_referral_credit(db, order.id, refund_referral)

    await db.commit()
    logger.info("Order edited", order_id=str(order.id), fields=sorted(values))
    return await get_order(db, order.id)


async def cancel_by_customer(
    db: AsyncSession,
    order_id: UUID,
    phone: str,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Customer cancel while ``now < cancel_cutoff_at``"""
    now = now or datetime.utcnow()
    order = await get_order_for_phone(db, order_id, phone)
    check_customer_window(order.status, order.cancel_cutoff_at, now, action="cancel")

    actor = ActorRef(Actor.CUSTOMER, order.customer_phone)
    values = {
        "status": OrderStatus.CANCELLED.value,
        "cancelled_at": stamp("cancelled_at", now),
        "cancel_reason": reason or "Cancelled by customer",
    }
    if refund_due(order):
        values["payment_status"] = "refund_pending"

    rows = await patch_order(
        db, order.id, actor, "customer_cancel", values,
        Order.status.in_(status_values(NON_TERMINAL)),
        Order.cancel_cutoff_at > now,
    )
    if not rows:
        current = await get_order(db, order.id)
        check_customer_window(current.status, current.cancel_cutoff_at, now, action="cancel")
        raise TransitionConflict(f"Order is now {current.status}")

    await on_cancelled(db, order)
    await db.commit()
    logger.info("Order cancelled by customer", order_id=str(order.id))
    return await get_order(db, order.id)


def refund_due(order: Order) -> bool:
    return order.payment_method != "cash" and order.payment_status == "paid"


async def on_cancelled(db: AsyncSession, order: Order) -> None:
    """Give back the points and referral credit the order consumed"""
    if order.loyalty_points_redeemed:
        await adjust_loyalty(db, order.customer_phone, order.loyalty_points_redeemed)
    await release_referral_credit(db, order.id)


async def on_delivered(db: AsyncSession, order_id: UUID, actor: ActorRef) -> None:
    """Snapshot the cash expected and award loyalty points"""
    order = await get_order(db, order_id)
    if order.payment_method == "cash":
        await write_cash(db, order, {"expected": order.total}, actor)
    await adjust_loyalty(db, order.customer_phone, settings.loyalty_points_per_order)


async def set_status(
    db: AsyncSession,
    order_id: UUID,
    target: OrderStatus,
    actor: ActorRef,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Order, bool]:
    """Staff override: any forward status or cancelled"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    target = OrderStatus(target)

    extra = {}
    if target == OrderStatus.CANCELLED:
        extra["cancel_reason"] = reason or "Cancelled by staff"
        if refund_due(order):
            extra["payment_status"] = "refund_pending"

    changed = await transition(db, order, target, actor, now, extra=extra)
    if changed and target == OrderStatus.DELIVERED:
        await on_delivered(db, order.id, actor)
    if changed and target == OrderStatus.CANCELLED:
        await on_cancelled(db, order)
    await db.commit()
    return await get_order(db, order.id), changed


async def assign_driver(
    db: AsyncSession,
    order_id: UUID,
    driver_id: UUID,
    actor: ActorRef,
    now: Optional[datetime] = None,
) -> Order:
    """Staff assignment; a ready order moves to assigned at the same time"""
    now = now or datetime.utcnow()
    order = await get_order(db, order_id)
    if OrderStatus(order.status) in TERMINAL:
        raise AlreadyDecided(f"Order already {order.status}")

    driver = await db.get(Driver, driver_id)
    if driver is None or not driver.is_active:
        raise ValidationFailed("Driver not found")
    if not driver.is_available:
        raise ValidationFailed("Driver is offline")

    if order.status == OrderStatus.READY.value:
        await transition(
            db, order, OrderStatus.ASSIGNED, actor, now, extra={"driver_id": driver.id}
        )
    else:
        rows = await patch_order(
            db, order.id, actor, "assign_driver", {"driver_id": driver.id},
            Order.status.in_(status_values(NON_TERMINAL)),
        )
        if not rows:
            raise AlreadyDecided("Order already closed")
    await db.commit()
    logger.info("Driver assigned", order_id=str(order.id), driver_id=str(driver.id))
    return await get_order(db, order.id)


async def request_refund(
    db: AsyncSession, order_id: UUID, actor: ActorRef, reason: Optional[str] = None
) -> Order:
    """Flag a paid non-cash order for reversal by the payment provider"""
    order = await get_order(db, order_id)
    if order.payment_method == "cash":
        raise ValidationFailed("Cash orders are refunded at the hub")
    if order.payment_status != "paid":
        raise ValidationFailed("Order is not paid")
    rows = await patch_order(
        db, order.id, actor, "request_refund",
        {"payment_status": "refund_pending", "cancel_reason": reason or order.cancel_reason},
        Order.payment_status == "paid",
    )
    if not rows:
        raise AlreadyDecided("Refund already requested")
    await db.commit()
    return await get_order(db, order.id)


async def mark_refunded(db: AsyncSession, order_id: UUID, actor: ActorRef) -> Order:
    order = await get_order(db, order_id)
    rows = await patch_order(
        db, order.id, actor, "mark_refunded", {"payment_status": "refunded"},
        Order.payment_status == "refund_pending",
    )
    if not rows:
        raise TransitionConflict("No refund pending for this order")
    await db.commit()
    return await get_order(db, order.id)


async def confirm_payment(
    db: AsyncSession,
    order_id: UUID,
    phone: str,
    method: str,
    reference: str,
) -> Order:
    """Provider success signal for card, gcash and paypal orders"""
    order = await get_order_for_phone(db, order_id, phone)
    if order.payment_method != method:
        raise ValidationFailed(f"Order is not a {method} payment")
    if order.payment_status == "paid":
        return order
    rows = await patch_order(
        db, order.id, ActorRef(Actor.CUSTOMER, order.customer_phone), "confirm_payment",
        {"payment_status": "paid", "payment_reference": reference},
        Order.payment_status == "unpaid",
    )
    if not rows:
        raise TransitionConflict(f"Payment is {order.payment_status}")
    await db.commit()
    logger.info("Payment confirmed", order_id=str(order.id), method=method)
    return await get_order(db, order.id)


async def confirm_crypto(
    db: AsyncSession,
    order_id: UUID,
    phone: str,
    tx_hash: str,
    now: Optional[datetime] = None,
) -> Order:
    """On-chain confirmation, accepted within the confirmation window"""
    now = now or datetime.utcnow()
    order = await get_order_for_phone(db, order_id, phone)
    if order.payment_method != "crypto":
        raise ValidationFailed("Order is not a crypto payment")
    window = timedelta(minutes=settings.crypto_confirm_window_minutes)
    if now - order.created_at > window:
        raise ValidationFailed("Confirmation window expired. Contact support.")
    if order.payment_status == "paid":
        return order
    rows = await patch_order(
        db, order.id, ActorRef(Actor.CUSTOMER, order.customer_phone), "confirm_crypto",
        {"payment_status": "paid", "crypto_tx_hash": tx_hash},
        Order.payment_status == "unpaid",
    )
    if not rows:
        raise TransitionConflict(f"Payment is {order.payment_status}")
    await db.commit()
    logger.info("Crypto payment confirmed", order_id=str(order.id))
    return await get_order(db, order.id)


