"""Pricing quote and promo schemas"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID
from pydantic import BaseModel, Field, field_validator

from app.schemas.order import OrderItemIn, PriceBreakdownResponse


class QuoteRequest(BaseModel):
    """Price a cart for a dropped pin before the order exists"""
    items: List[OrderItemIn]
    delivery_lat: float = Field(ge=-90, le=90)
    delivery_lng: float = Field(ge=-180, le=180)
    tip: int = Field(default=0, ge=0)
    priority: bool = False
    promo_code: Optional[str] = None
    loyalty_points: int = Field(default=0, ge=0)
    referral_credit: int = Field(default=0, ge=0)


class QuoteResponse(BaseModel):
    """Quote with the delivery zone and an ETA range"""
    distance_km: float
    zone_id: str
    zone_name: str
    pricing: PriceBreakdownResponse
    promo_reason: Optional[str] = None
    eta_min_minutes: int
    eta_max_minutes: int


class PromoValidateRequest(BaseModel):
    """Checkout promo check"""
    code: str = Field(min_length=1)
    subtotal: int = Field(ge=0)


class PromoValidateResponse(BaseModel):
    """Promo check result"""
    valid: bool
    code: Optional[str] = None
    discount: int = 0
    reason: Optional[str] = None


class PromoCreate(BaseModel):
    """Create promo code"""
    code: str = Field(min_length=1, max_length=50)
    discount_type: Literal["fixed", "percent"] = "fixed"
    discount_value: int = Field(gt=0)
    min_order: int = Field(default=0, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_case(cls, v: str) -> str:
        return v.strip().upper()


class PromoUpdate(BaseModel):
    """Update promo code"""
    discount_type: Optional[Literal["fixed", "percent"]] = None
    discount_value: Optional[int] = Field(default=None, gt=0)
    min_order: Optional[int] = Field(default=None, ge=0)
    max_uses: Optional[int] = Field(default=None, ge=1)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None


class PromoResponse(BaseModel):
    """Promo code response"""
    id: UUID
    code: str
    discount_type: str
    discount_value: int
    min_order: Optional[int]
    max_uses: Optional[int]
    uses_count: Optional[int]
    valid_from: Optional[datetime]
    valid_until: Optional[datetime]
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
