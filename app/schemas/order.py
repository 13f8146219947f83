"""Order schemas"""

from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.orders.state_machine import OrderStatus


PaymentMethod = Literal["cash", "card", "gcash", "crypto", "paypal"]


class OrderItemIn(BaseModel):
    """Cart line as sent by the checkout page"""
    restaurant_name: str = Field(min_length=1)
    restaurant_slug: Optional[str] = None
    item_name: str = Field(min_length=1)
    price: Optional[str] = None  # display string, e.g. "250 PHP"
    price_value: int = Field(ge=0)
    quantity: int = Field(default=1, ge=1)


class OrderCreate(BaseModel):
    """Create order request"""
    customer_name: str = Field(min_length=1)
    customer_phone: str = Field(min_length=4)
    customer_email: Optional[EmailStr] = None
    delivery_address: Optional[str] = None
    landmark: str
    room: Optional[str] = None
    floor: Optional[str] = None
    guest_name: Optional[str] = None
    delivery_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    delivery_lng: Optional[float] = Field(default=None, ge=-180, le=180)
    items: List[OrderItemIn]
    tip: int = Field(default=0, ge=0)
    priority: bool = False
    promo_code: Optional[str] = None
    loyalty_points: int = Field(default=0, ge=0)
    use_referral_credit: bool = False
    referral_code: Optional[str] = None  # code of the customer who referred this one
    time_window: Literal["asap", "scheduled"] = "asap"
    scheduled_at: Optional[datetime] = None
    payment_method: PaymentMethod = "cash"
    notes: Optional[str] = None
    allow_substitutions: bool = True

    @field_validator("landmark")
    @classmethod
    def landmark_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Landmark is required")
        return v


class OrderEdit(BaseModel):
    """Customer edit inside the cutoff window; only sent fields change"""
    phone: str
    notes: Optional[str] = None
    landmark: Optional[str] = None
    delivery_address: Optional[str] = None
    room: Optional[str] = None
    floor: Optional[str] = None
    guest_name: Optional[str] = None
    allow_substitutions: Optional[bool] = None
    items: Optional[List[OrderItemIn]] = None

    @field_validator("landmark")
    @classmethod
    def landmark_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("Landmark cannot be blank")
        return v.strip() if v is not None else v


class OrderCancel(BaseModel):
    """Customer cancel request"""
    phone: str
    reason: Optional[str] = None


class StatusUpdate(BaseModel):
    """Staff or restaurant status change"""
    status: OrderStatus
    reason: Optional[str] = None


class DriverAssign(BaseModel):
    """Staff driver assignment"""
    driver_id: UUID


class DriverLocationUpdate(BaseModel):
    """Live position pushed by the assigned driver"""
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    accuracy_m: Optional[float] = Field(default=None, ge=0)


class OrderItemResponse(BaseModel):
    """Order item in response"""
    restaurant_name: str
    restaurant_slug: Optional[str] = None
    item_name: str
    price: Optional[str] = None
    price_value: int
    quantity: int


class PriceBreakdownResponse(BaseModel):
    """Derived totals"""
    subtotal: int
    promo_discount: int
    loyalty_discount: int
    loyalty_points_used: int
    referral_discount: int
    discount_total: int
    delivery_fee: int
    tip: int
    priority_fee: int
    total: int


class CashResponse(BaseModel):
    """Cash-on-delivery reconciliation record"""
    order_id: UUID
    expected: Optional[int]
    received_from_customer: Optional[int]
    turned_in_at_hub: Optional[int]
    variance_reason: Optional[str]
    received_vs_turned_in: Optional[int]
    received_vs_expected: Optional[int]
    has_variance: bool
    updated_by: Optional[str]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Order response"""
    id: UUID
    status: str
    restaurant_status: str
    customer_name: str
    customer_phone: str
    customer_email: Optional[str]
    delivery_address: str
    landmark: str
    room: Optional[str]
    floor: Optional[str]
    guest_name: Optional[str]
    delivery_lat: Optional[float]
    delivery_lng: Optional[float]
    delivery_zone_id: Optional[str]
    delivery_zone_name: Optional[str]
    delivery_distance_km: Optional[float]
    items: List[OrderItemResponse]
    restaurant_slug: Optional[str]
    grocery_slug: Optional[str]
    pricing: PriceBreakdownResponse
    subtotal: int
    total: int
    promo_code: Optional[str]
    priority: bool
    time_window: str
    scheduled_at: Optional[datetime]
    cancel_cutoff_at: datetime
    confirmed_at: Optional[datetime]
    preparing_at: Optional[datetime]
    ready_at: Optional[datetime]
    assigned_at: Optional[datetime]
    picked_at: Optional[datetime]
    out_for_delivery_at: Optional[datetime]
    delivered_at: Optional[datetime]
    cancelled_at: Optional[datetime]
    estimated_delivery_at: Optional[datetime]
    prep_minutes: Optional[int]
    cancel_reason: Optional[str]
    driver_id: Optional[UUID]
    driver_name: Optional[str]
    arrived_at_hub: bool
    arrived_at_hub_at: Optional[datetime]
    driver_arrived: bool
    driver_arrived_at: Optional[datetime]
    driver_lat: Optional[float]
    driver_lng: Optional[float]
    driver_accuracy_m: Optional[float]
    driver_location_updated_at: Optional[datetime]
    payment_method: str
    payment_status: str
    payment_reference: Optional[str]
    crypto_tx_hash: Optional[str]
    notes: Optional[str]
    allow_substitutions: Optional[bool]
    cash: Optional[CashResponse]
    updated_by: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        """Build from an ORM order whose driver and cash record are loaded"""
        pricing = order.pricing
        return cls(
            id=order.id,
            status=order.status,
            restaurant_status=order.restaurant_status,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            customer_email=order.customer_email,
            delivery_address=order.delivery_address,
            landmark=order.landmark,
            room=order.room,
            floor=order.floor,
            guest_name=order.guest_name,
            delivery_lat=order.delivery_lat,
            delivery_lng=order.delivery_lng,
            delivery_zone_id=order.delivery_zone_id,
            delivery_zone_name=order.delivery_zone_name,
            delivery_distance_km=order.delivery_distance_km,
            items=order.items_json or [],
            restaurant_slug=order.restaurant_slug,
            grocery_slug=order.grocery_slug,
            pricing=pricing.as_dict(),
            subtotal=pricing.subtotal,
            total=pricing.total,
            promo_code=order.promo_code,
            priority=bool(order.priority),
            time_window=order.time_window,
            scheduled_at=order.scheduled_at,
            cancel_cutoff_at=order.cancel_cutoff_at,
            confirmed_at=order.confirmed_at,
            preparing_at=order.preparing_at,
            ready_at=order.ready_at,
            assigned_at=order.assigned_at,
            picked_at=order.picked_at,
            out_for_delivery_at=order.out_for_delivery_at,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            estimated_delivery_at=order.estimated_delivery_at,
            prep_minutes=order.prep_minutes,
            cancel_reason=order.cancel_reason,
            driver_id=order.driver_id,
            driver_name=order.driver.name if order.driver else None,
            arrived_at_hub=order.arrived_at_hub_at is not None,
            arrived_at_hub_at=order.arrived_at_hub_at,
            driver_arrived=order.driver_arrived_at is not None,
            driver_arrived_at=order.driver_arrived_at,
            driver_lat=order.driver_lat,
            driver_lng=order.driver_lng,
            driver_accuracy_m=order.driver_accuracy_m,
            driver_location_updated_at=order.driver_location_updated_at,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            payment_reference=order.payment_reference,
            crypto_tx_hash=order.crypto_tx_hash,
            notes=order.notes,
            allow_substitutions=order.allow_substitutions,
            cash=CashResponse.model_validate(order.cash_record) if order.cash_record else None,
            updated_by=order.updated_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderTransitionResponse(BaseModel):
    """Result of a status operation; ``changed`` is false for idempotent repeats"""
    changed: bool
    order: OrderResponse


class OrderListResponse(BaseModel):
    """Paginated order list"""
    items: List[OrderResponse]
    total: int
    page: int
    page_size: int


class OrderHistoryEntry(BaseModel):
    """Past order as listed on the customer's history page"""
    id: UUID
    status: str
    total: int
    landmark: str
    estimated_delivery_at: Optional[datetime]
    created_at: datetime
    items: List[OrderItemResponse]


class OrderChangeCheck(BaseModel):
    """Cheap poll answer: has anything changed since ``since``"""
    changed: bool
    status: str
    updated_at: datetime
    last_message_at: Optional[datetime]
