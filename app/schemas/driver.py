"""Driver, dispatch and cash ledger schemas"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID
from pydantic import BaseModel, Field


class DriverAvailability(BaseModel):
    """Online/offline toggle"""
    is_available: bool


class DriverCreate(BaseModel):
    """Create driver account (admin)"""
    name: str = Field(min_length=1)
    phone: str = Field(min_length=4)
    password: str = Field(min_length=6)


class DriverResponse(BaseModel):
    """Driver response"""
    id: UUID
    name: str
    phone: str
    is_active: bool
    is_available: bool
    last_lat: Optional[float]
    last_lng: Optional[float]
    last_location_at: Optional[datetime]

    class Config:
        from_attributes = True


class CashUpdate(BaseModel):
    """Partial cash entry; omitted amounts keep their stored value"""
    received_from_customer: Optional[int] = Field(default=None, ge=0)
    turned_in_at_hub: Optional[int] = Field(default=None, ge=0)
    variance_reason: Optional[str] = None


class CashSummaryEntry(BaseModel):
    """One cash order in the staff reconciliation view"""
    order_id: UUID
    status: str
    driver_name: Optional[str]
    expected: Optional[int]
    received_from_customer: Optional[int]
    turned_in_at_hub: Optional[int]
    variance_reason: Optional[str]


class CashSummary(BaseModel):
    """Totals across picked, out-for-delivery and delivered cash orders"""
    order_count: int
    total_expected: int
    total_received: int
    total_turned_in: int
    variances: List[CashSummaryEntry]


class PayoutCreate(BaseModel):
    """Record a payout (admin)"""
    recipient_type: str = Field(pattern="^(driver|restaurant)$")
    recipient_id: str
    amount: int = Field(gt=0)
    order_ids: List[UUID] = []
    paid: bool = True


class PayoutResponse(BaseModel):
    """Payout response"""
    id: UUID
    recipient_type: str
    recipient_id: str
    amount: int
    status: str
    order_ids: List[str]
    paid_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class DriverEarningsOrder(BaseModel):
    """Driver share of one delivered order"""
    order_id: UUID
    delivered_at: Optional[datetime]
    delivery_fee: int
    tip: int
    driver_share: float


class DriverEarnings(BaseModel):
    """Driver earnings summary"""
    today_total: float
    all_time_total: float
    today_orders: int
    all_time_orders: int
    orders: List[DriverEarningsOrder]
    payouts: List[PayoutResponse]
