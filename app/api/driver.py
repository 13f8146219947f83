"""Driver portal endpoints"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_driver
from app.database import get_db
from app.dispatch import service as dispatch
from app.dispatch.ledger import driver_earnings, record_cash
from app.models.driver import Driver
from app.orders import repository
from app.orders.repository import ActorRef
from app.orders.state_machine import DRIVER_VISIBLE, Actor, OrderStatus
from app.schemas.driver import CashUpdate, DriverAvailability, DriverEarnings, DriverResponse
from app.schemas.order import OrderResponse, OrderTransitionResponse, StatusUpdate

router = APIRouter()


@router.get("/me", response_model=DriverResponse)
async def get_profile(driver: Driver = Depends(get_current_driver)):
    """Signed-in driver"""
    return driver


@router.put("/availability", response_model=DriverResponse)
async def set_availability(
    request: DriverAvailability,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Go online or offline"""
    return await dispatch.set_driver_availability(db, driver, request.is_available)


@router.get("/orders", response_model=List[OrderResponse])
async def list_my_orders(
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Active orders assigned to this driver plus unclaimed ready ones"""
    orders, _ = await repository.list_orders(
        db,
        statuses=repository.status_values(DRIVER_VISIBLE),
        driver_id=driver.id,
        unassigned_only=True,
        limit=100,
    )
    visible = [
        o for o in orders
        if o.driver_id == driver.id or o.status == OrderStatus.READY.value
    ]
    return [OrderResponse.from_order(o) for o in visible]


@router.post("/orders/{order_id}/claim", response_model=OrderTransitionResponse)
async def claim(
    order_id: UUID,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Self-assign a ready order"""
    order, changed = await dispatch.claim_order(db, order_id, driver)
    return OrderTransitionResponse(changed=changed, order=OrderResponse.from_order(order))


@router.patch("/orders/{order_id}/status", response_model=OrderTransitionResponse)
async def advance(
    order_id: UUID,
    update: StatusUpdate,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Picked up, out for delivery, delivered"""
    order, changed = await dispatch.advance_order(db, order_id, driver, update.status)
    return OrderTransitionResponse(changed=changed, order=OrderResponse.from_order(order))


@router.post("/orders/{order_id}/arrived-at-hub", response_model=OrderTransitionResponse)
async def arrived_at_hub(
    order_id: UUID,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Hub check-in"""
    order, changed = await dispatch.mark_arrived_at_hub(db, order_id, driver)
    return OrderTransitionResponse(changed=changed, order=OrderResponse.from_order(order))


@router.post("/orders/{order_id}/arrived", response_model=OrderTransitionResponse)
async def arrived(
    order_id: UUID,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """At the customer's door; the customer gets a text"""
    order, changed = await dispatch.mark_driver_arrived(db, order_id, driver)
    return OrderTransitionResponse(changed=changed, order=OrderResponse.from_order(order))


@router.patch("/orders/{order_id}/cash", response_model=OrderResponse)
async def update_cash(
    order_id: UUID,
    update: CashUpdate,
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Cash collected from the customer or handed in at the hub"""
    order = await record_cash(
        db, order_id, ActorRef(Actor.DRIVER, str(driver.id)), update, driver=driver
    )
    return OrderResponse.from_order(order)


@router.get("/earnings", response_model=DriverEarnings)
async def get_earnings(
    driver: Driver = Depends(get_current_driver),
    db: AsyncSession = Depends(get_db),
):
    """Delivery share and tips, today and all time"""
    return await driver_earnings(db, driver)
