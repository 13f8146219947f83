"""Staff administration: drivers, restaurants, cash and payouts"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import get_current_active_user, get_password_hash, require_role
from app.api.orders import staff_actor
from app.database import get_db
from app.dispatch.ledger import cash_summary, commission_income, record_cash
from app.models.driver import Driver, Payout
from app.models.restaurant import Restaurant
from app.models.user import User, UserRole
from app.schemas.driver import (
    CashSummary,
    CashUpdate,
    DriverCreate,
    DriverResponse,
    PayoutCreate,
    PayoutResponse,
)
from app.schemas.order import OrderResponse
from app.schemas.restaurant import (
    CommissionIncome,
    RestaurantConfigUpdate,
    RestaurantCreate,
    RestaurantResponse,
)

router = APIRouter()


@router.get("/cash", response_model=CashSummary)
async def get_cash_summary(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Cash expected, received and turned in, with variances"""
    return await cash_summary(db)


@router.patch("/orders/{order_id}/cash", response_model=OrderResponse)
async def update_cash(
    order_id: UUID,
    update: CashUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Staff cash entry, usually the hub turn-in"""
    order = await record_cash(db, order_id, staff_actor(current_user), update)
    return OrderResponse.from_order(order)


@router.get("/drivers", response_model=List[DriverResponse])
async def list_drivers(
    available_only: bool = Query(True, description="Only online drivers (assignment candidates)"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """Drivers for the assignment picker"""
    query = select(Driver).where(Driver.is_active == True)
    if available_only:
        query = query.where(Driver.is_available == True)
    result = await db.execute(query.order_by(Driver.name))
    return result.scalars().all()


@router.post("/drivers", response_model=DriverResponse, status_code=status.HTTP_201_CREATED)
async def create_driver(
    driver_data: DriverCreate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Create a driver account (admin only)"""
    driver = Driver(
        name=driver_data.name.strip(),
        phone=driver_data.phone.strip(),
        hashed_password=get_password_hash(driver_data.password),
        is_available=False,
    )
    db.add(driver)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Phone already registered")
    await db.refresh(driver)
    return driver


@router.delete("/drivers/{driver_id}", status_code=204)
async def deactivate_driver(
    driver_id: UUID,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Disable a driver account (soft delete)"""
    driver = await db.get(Driver, driver_id)
    if not driver:
        raise HTTPException(status_code=404, detail="Driver not found")

    driver.is_active = False
    driver.is_available = False
    await db.commit()


@router.get("/restaurants", response_model=List[RestaurantResponse])
async def list_restaurants(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
):
    """All partner restaurants and groceries"""
    result = await db.execute(select(Restaurant).order_by(Restaurant.name))
    return result.scalars().all()


@router.post("/restaurants", response_model=RestaurantResponse, status_code=status.HTTP_201_CREATED)
async def create_restaurant(
    restaurant_data: RestaurantCreate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Add a partner (admin only)"""
    data = restaurant_data.model_dump(exclude={"password"})
    restaurant = Restaurant(**data)
    if restaurant_data.password:
        restaurant.hashed_password = get_password_hash(restaurant_data.password)
    db.add(restaurant)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Slug already in use")
    await db.refresh(restaurant)
    return restaurant


@router.patch("/restaurants/{slug}", response_model=RestaurantResponse)
async def update_restaurant(
    slug: str,
    update: RestaurantConfigUpdate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Commercial terms, portal password and settings (admin only)"""
    result = await db.execute(select(Restaurant).where(Restaurant.slug == slug))
    restaurant = result.scalar_one_or_none()
    if not restaurant:
        raise HTTPException(status_code=404, detail="Restaurant not found")

    values = update.model_dump(exclude_unset=True)
    password = values.pop("password", None)
    for field, value in values.items():
        setattr(restaurant, field, value)
    if password:
        restaurant.hashed_password = get_password_hash(password)
    restaurant.updated_at = datetime.utcnow()

    await db.commit()
    await db.refresh(restaurant)
    return restaurant


@router.get("/payouts", response_model=List[PayoutResponse])
async def list_payouts(
    recipient_type: Optional[str] = None,
    recipient_id: Optional[str] = None,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Payout history"""
    query = select(Payout)
    if recipient_type:
        query = query.where(Payout.recipient_type == recipient_type)
    if recipient_id:
        query = query.where(Payout.recipient_id == recipient_id)
    result = await db.execute(query.order_by(Payout.created_at.desc()))
    return result.scalars().all()


@router.post("/payouts", response_model=PayoutResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(
    payout_data: PayoutCreate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Record money paid out to a driver or restaurant (admin only)"""
    now = datetime.utcnow()
    payout = Payout(
        recipient_type=payout_data.recipient_type,
        recipient_id=payout_data.recipient_id,
        amount=payout_data.amount,
        status="paid" if payout_data.paid else "pending",
        order_ids=[str(i) for i in payout_data.order_ids],
        paid_at=now if payout_data.paid else None,
        created_at=now,
    )
    db.add(payout)
    await db.commit()
    await db.refresh(payout)
    return payout


@router.post("/payouts/{payout_id}/paid", response_model=PayoutResponse)
async def mark_payout_paid(
    payout_id: UUID,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Mark a pending payout as paid"""
    payout = await db.get(Payout, payout_id)
    if not payout:
        raise HTTPException(status_code=404, detail="Payout not found")
    if payout.status != "paid":
        payout.status = "paid"
        payout.paid_at = datetime.utcnow()
        await db.commit()
        await db.refresh(payout)
    return payout


@router.get("/commission", response_model=CommissionIncome)
async def get_commission_income(
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Platform commission on today's delivered orders"""
    return await commission_income(db)
