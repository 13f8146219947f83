"""Order API endpoints shared by the checkout page and the dispatch board"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import Principal, get_current_active_user, get_current_driver, get_optional_principal
from app.database import get_db
from app.errors import NotAuthorized
from app.mapping import MappingService, get_mapping_service
from app.models.driver import Driver
from app.models.order import Order
from app.models.user import User
from app.orders import repository, service
from app.orders.repository import ActorRef
from app.orders.state_machine import Actor, OrderStatus
from app.dispatch.service import update_driver_location
from app.schemas.order import (
    DriverAssign,
    DriverLocationUpdate,
    OrderCancel,
    OrderChangeCheck,
    OrderCreate,
    OrderEdit,
    OrderHistoryEntry,
    OrderListResponse,
    OrderResponse,
    OrderTransitionResponse,
    StatusUpdate,
)
from app.schemas.payment import RefundRequest

router = APIRouter()


def staff_actor(user: User) -> ActorRef:
    return ActorRef(Actor.STAFF, str(user.id))


def parse_statuses(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    try:
        return [OrderStatus(s.strip()).value for s in raw.split(",") if s.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown status in {raw!r}")


async def get_visible_order(
    db: AsyncSession,
    order_id: UUID,
    principal: Optional[Principal],
    phone: Optional[str],
) -> Order:
    """Load an order for whoever is asking.

    Staff see everything, restaurants their own orders, drivers their
    assigned orders plus unclaimed ready ones, and customers need a phone
    that matches the order.
    """
    if principal is None:
        return await repository.get_order_for_phone(db, order_id, phone)

    order = await repository.get_order(db, order_id)
    if principal.user is not None:
        return order
    if principal.restaurant is not None:
        if principal.restaurant.slug not in (order.restaurant_slug, order.grocery_slug):
            raise NotAuthorized("Not your order")
        return order
    if principal.driver is not None:
        claimable = order.driver_id is None and order.status == OrderStatus.READY.value
        if order.driver_id != principal.driver.id and not claimable:
            raise NotAuthorized("Order is not assigned to you")
        return order
    raise NotAuthorized("Not allowed")


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    order_data: OrderCreate,
    db: AsyncSession = Depends(get_db),
    mapping: MappingService = Depends(get_mapping_service),
):
    """Place an order from the checkout page"""
    order = await service.create_order(db, order_data, mapping)
    return OrderResponse.from_order(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    restaurant: Optional[str] = None,
    driver_id: Optional[UUID] = None,
    unassigned: bool = False,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Dispatch board list with pagination"""
    statuses = parse_statuses(status)
    orders, total = await repository.list_orders(
        db,
        statuses=statuses,
        restaurant_slug=restaurant,
        driver_id=driver_id,
        unassigned_only=unassigned,
        from_date=repository.naive_utc(from_date),
        to_date=repository.naive_utc(to_date),
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return OrderListResponse(
        items=[OrderResponse.from_order(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/history", response_model=List[OrderHistoryEntry])
async def order_history(
    phone: str = Query(..., min_length=4),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """Customer's past orders"""
    orders = await repository.list_orders_for_phone(db, phone, limit=limit)
    return [
        OrderHistoryEntry(
            id=o.id,
            status=o.status,
            total=o.total,
            landmark=o.landmark,
            estimated_delivery_at=o.estimated_delivery_at,
            created_at=o.created_at,
            items=o.items_json or [],
        )
        for o in orders
    ]


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: UUID,
    phone: Optional[str] = None,
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
):
    """Order details for the tracking page or a portal"""
    order = await get_visible_order(db, order_id, principal, phone)
    return OrderResponse.from_order(order)


@router.get("/{order_id}/changes", response_model=OrderChangeCheck)
async def check_changes(
    order_id: UUID,
    since: datetime,
    phone: Optional[str] = None,
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
):
    """Cheap poll: has the order or its thread changed since ``since``"""
    await get_visible_order(db, order_id, principal, phone)
    return await repository.has_changed_since(db, order_id, since)


@router.patch("/{order_id}", response_model=OrderResponse)
async def edit_order(
    order_id: UUID,
    edit: OrderEdit,
    db: AsyncSession = Depends(get_db),
):
    """Customer edit inside the cancel window"""
    order = await service.edit_order(db, order_id, edit)
    return OrderResponse.from_order(order)


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: UUID,
    request: OrderCancel,
    db: AsyncSession = Depends(get_db),
):
    """Customer cancel inside the cancel window"""
    order = await service.cancel_by_customer(db, order_id, request.phone, request.reason)
    return OrderResponse.from_order(order)


@router.patch("/{order_id}/status", response_model=OrderTransitionResponse)
async def update_status(
    order_id: UUID,
    update: StatusUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Staff override: any forward status or cancelled"""
    order, changed = await service.set_status(
        db, order_id, update.status, staff_actor(current_user), reason=update.reason
    )
    return OrderTransitionResponse(changed=changed, order=OrderResponse.from_order(order))


@router.post("/{order_id}/assign", response_model=OrderResponse)
async def assign_driver(
    order_id: UUID,
    request: DriverAssign,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Staff assigns an online driver"""
    order = await service.assign_driver(db, order_id, request.driver_id, staff_actor(current_user))
    return OrderResponse.from_order(order)


@router.post("/{order_id}/refund", response_model=OrderResponse)
async def request_refund(
    order_id: UUID,
    request: RefundRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Flag a paid order for reversal with the payment provider"""
    order = await service.request_refund(db, order_id, staff_actor(current_user), request.reason)
    return OrderResponse.from_order(order)


@router.post("/{order_id}/refunded", response_model=OrderResponse)
async def mark_refunded(
    order_id: UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Record that the provider completed the refund"""
    order = await service.mark_refunded(db, order_id, staff_actor(current_user))
    return OrderResponse.from_order(order)


@router.put("/{order_id}/driver-location", response_model=OrderResponse)
async def put_driver_location(
    order_id: UUID,
    location: DriverLocationUpdate,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Live position from the assigned driver"""
    order = await update_driver_location(
        db, order_id, driver, location.lat, location.lng, location.accuracy_m
    )
    return OrderResponse.from_order(order)
