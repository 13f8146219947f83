"""Restaurant portal schemas"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field

from app.schemas.driver import PayoutResponse


class AcceptRequest(BaseModel):
    """Accept with a prep-time estimate in minutes"""
    prep_minutes: Optional[int] = None


class RejectRequest(BaseModel):
    """Reject with an optional reason shown to the customer"""
    reason: Optional[str] = None


class RestaurantResponse(BaseModel):
    """Restaurant response"""
    id: UUID
    slug: str
    name: str
    is_grocery: bool
    is_active: bool
    commission_pct: int
    delivery_commission_pct: int
    min_order: int
    payout_method: Optional[str]
    gcash_number: Optional[str]
    email: Optional[str]
    lat: Optional[float]
    lng: Optional[float]
    ntfy_topic: Optional[str]

    class Config:
        from_attributes = True


class RestaurantSettingsUpdate(BaseModel):
    """Settings a restaurant manages from its own portal"""
    min_order: Optional[int] = Field(default=None, ge=0)
    payout_method: Optional[str] = Field(default=None, pattern="^(gcash|bank|cash)$")
    gcash_number: Optional[str] = None
    email: Optional[EmailStr] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    ntfy_topic: Optional[str] = None


class RestaurantConfigUpdate(RestaurantSettingsUpdate):
    """Admin-only terms on top of the portal settings"""
    name: Optional[str] = None
    is_grocery: Optional[bool] = None
    is_active: Optional[bool] = None
    commission_pct: Optional[int] = Field(default=None, ge=0)
    delivery_commission_pct: Optional[int] = Field(default=None, ge=0, le=100)
    password: Optional[str] = Field(default=None, min_length=6)


class RestaurantCreate(BaseModel):
    """Create restaurant (admin)"""
    slug: str = Field(min_length=1, max_length=100)
    name: str = Field(min_length=1)
    is_grocery: bool = False
    commission_pct: int = Field(default=30, ge=0)
    delivery_commission_pct: int = Field(default=30, ge=0, le=100)
    min_order: int = Field(default=0, ge=0)
    lat: Optional[float] = None
    lng: Optional[float] = None
    password: Optional[str] = Field(default=None, min_length=6)


class ItemAvailabilityUpdate(BaseModel):
    """Sold-out toggle"""
    item_name: str = Field(min_length=1)
    is_available: bool


class ItemAvailabilityResponse(BaseModel):
    """Sold-out state of one item"""
    item_name: str
    is_available: bool
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class RestaurantEarnings(BaseModel):
    """Restaurant share of delivered orders"""
    today_sales: int
    today_earnings: float
    all_time_sales: int
    all_time_earnings: float
    all_time_orders: int
    payouts: List[PayoutResponse]


class CommissionByRestaurant(BaseModel):
    """Platform commission earned from one restaurant"""
    restaurant_name: str
    slug: str
    food_commission: float
    delivery_commission: float
    total_commission: float


class CommissionIncome(BaseModel):
    """Platform commission since the start of the day"""
    period_start: datetime
    total_food_commission: float
    total_delivery_commission: float
    total_commission: float
    by_restaurant: List[CommissionByRestaurant]
