"""Restaurant portal endpoints"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_restaurant
from app.api.orders import parse_statuses
from app.database import get_db
from app.dispatch.ledger import restaurant_earnings
from app.models.restaurant import ItemAvailability, Restaurant
from app.orders import repository
from app.orders.restaurant import accept_order, reject_order, restaurant_set_status
from app.schemas.order import OrderListResponse, OrderResponse, OrderTransitionResponse, StatusUpdate
from app.schemas.restaurant import (
    AcceptRequest,
    ItemAvailabilityResponse,
    ItemAvailabilityUpdate,
    RejectRequest,
    RestaurantEarnings,
    RestaurantResponse,
    RestaurantSettingsUpdate,
)

router = APIRouter()


@router.get("/me", response_model=RestaurantResponse)
async def get_profile(restaurant: Restaurant = Depends(get_current_restaurant)):
    """Signed-in restaurant"""
    return restaurant


@router.patch("/me", response_model=RestaurantResponse)
async def update_settings(
    update: RestaurantSettingsUpdate,
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Payout details, pin, minimum order and notification topic"""
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(restaurant, field, value)
    restaurant.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(restaurant)
    return restaurant


@router.get("/orders", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None, description="Comma-separated statuses"),
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Orders containing this restaurant's items, newest first"""
    orders, total = await repository.list_orders(
        db,
        statuses=parse_statuses(status),
        restaurant_slug=restaurant.slug,
        offset=(page - 1) * page_size,
        limit=page_size,
    )
    return OrderListResponse(
        items=[OrderResponse.from_order(o) for o in orders],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("/orders/{order_id}/accept", response_model=OrderResponse)
async def accept(
    order_id: UUID,
    request: AcceptRequest,
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Accept with a prep-time estimate"""
    order = await accept_order(db, order_id, restaurant, request.prep_minutes)
    return OrderResponse.from_order(order)


@router.post("/orders/{order_id}/reject", response_model=OrderResponse)
async def reject(
    order_id: UUID,
    request: RejectRequest,
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Reject; the order is cancelled"""
    order = await reject_order(db, order_id, restaurant, request.reason)
    return OrderResponse.from_order(order)


@router.patch("/orders/{order_id}/status", response_model=OrderTransitionResponse)
async def update_status(
    order_id: UUID,
    update: StatusUpdate,
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Kitchen progress: preparing, ready"""
    order, changed = await restaurant_set_status(db, order_id, restaurant, update.status)
    return OrderTransitionResponse(changed=changed, order=OrderResponse.from_order(order))


@router.get("/items", response_model=List[ItemAvailabilityResponse])
async def list_item_availability(
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Items with an explicit availability flag"""
    result = await db.execute(
        select(ItemAvailability)
        .where(ItemAvailability.restaurant_id == restaurant.id)
        .order_by(ItemAvailability.item_name)
    )
    return result.scalars().all()


@router.put("/items", response_model=ItemAvailabilityResponse)
async def set_item_availability(
    update: ItemAvailabilityUpdate,
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Mark an item sold out or available again"""
    item_name = update.item_name.strip()
    if not item_name:
        raise HTTPException(status_code=400, detail="Item name is required")

    result = await db.execute(
        select(ItemAvailability).where(
            ItemAvailability.restaurant_id == restaurant.id,
            ItemAvailability.item_name == item_name,
        )
    )
    item = result.scalar_one_or_none()
    if item is None:
        item = ItemAvailability(restaurant_id=restaurant.id, item_name=item_name)
        db.add(item)
    item.is_available = update.is_available
    item.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(item)
    return item


@router.get("/earnings", response_model=RestaurantEarnings)
async def get_earnings(
    restaurant: Restaurant = Depends(get_current_restaurant),
    db: AsyncSession = Depends(get_db),
):
    """Sales and the restaurant's share of delivered orders"""
    return await restaurant_earnings(db, restaurant)
