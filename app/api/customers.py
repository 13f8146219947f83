"""Customer loyalty and referral lookups, keyed by phone"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_db
from app.orders.customers import find_customer, referral_balance
from app.pricing.discounts import loyalty_value
from app.schemas.customer import LoyaltyResponse, ReferralResponse

router = APIRouter()


@router.get("/loyalty", response_model=LoyaltyResponse)
async def get_loyalty(
    phone: str = Query(..., min_length=4),
    db: AsyncSession = Depends(get_db),
):
    """Points balance and what it is worth at checkout"""
    customer = await find_customer(db, phone)
    points = customer.loyalty_points if customer else 0
    return LoyaltyResponse(
        points=points,
        points_per_order=settings.loyalty_points_per_order,
        points_per_block=settings.loyalty_points_per_block,
        value_per_block=settings.loyalty_value_per_block,
        redeemable_value=loyalty_value(
            points, settings.loyalty_points_per_block, settings.loyalty_value_per_block
        ),
    )


@router.get("/referral", response_model=ReferralResponse)
async def get_referral(
    phone: str = Query(..., min_length=4),
    db: AsyncSession = Depends(get_db),
):
    """Referral code to share and the credit it has earned"""
    customer = await find_customer(db, phone)
    if customer is None:
        return ReferralResponse(code=None, total_credits=0, available_credits=0)
    available, applied = await referral_balance(db, customer.id)
    return ReferralResponse(
        code=customer.referral_code,
        total_credits=available + applied,
        available_credits=available,
    )
