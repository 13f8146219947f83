"""Pydantic schemas for request/response validation"""

from app.schemas.auth import (
    Token,
    PortalToken,
    TokenPayload,
    LoginRequest,
    DriverLoginRequest,
    RestaurantLoginRequest,
    RefreshRequest,
    UserCreate,
    UserResponse,
)
from app.schemas.order import (
    OrderItemIn,
    OrderCreate,
    OrderEdit,
    OrderCancel,
    StatusUpdate,
    DriverAssign,
    DriverLocationUpdate,
    OrderResponse,
    OrderTransitionResponse,
    OrderListResponse,
    OrderHistoryEntry,
    OrderChangeCheck,
    CashResponse,
    PriceBreakdownResponse,
)
from app.schemas.pricing import (
    QuoteRequest,
    QuoteResponse,
    PromoValidateRequest,
    PromoValidateResponse,
    PromoCreate,
    PromoUpdate,
    PromoResponse,
)
from app.schemas.driver import (
    DriverAvailability,
    DriverCreate,
    DriverResponse,
    CashUpdate,
    CashSummary,
    CashSummaryEntry,
    PayoutCreate,
    PayoutResponse,
    DriverEarnings,
    DriverEarningsOrder,
)
from app.schemas.restaurant import (
    AcceptRequest,
    RejectRequest,
    RestaurantResponse,
    RestaurantSettingsUpdate,
    RestaurantConfigUpdate,
    RestaurantCreate,
    ItemAvailabilityUpdate,
    ItemAvailabilityResponse,
    RestaurantEarnings,
    CommissionIncome,
)
from app.schemas.message import MessageCreate, MessageResponse
from app.schemas.customer import LoyaltyResponse, ReferralResponse
from app.schemas.payment import PaymentConfirmation, CryptoConfirmation, RefundRequest

__all__ = [
    "Token",
    "PortalToken",
    "TokenPayload",
    "LoginRequest",
    "DriverLoginRequest",
    "RestaurantLoginRequest",
    "RefreshRequest",
    "UserCreate",
    "UserResponse",
    "OrderItemIn",
    "OrderCreate",
    "OrderEdit",
    "OrderCancel",
    "StatusUpdate",
    "DriverAssign",
    "DriverLocationUpdate",
    "OrderResponse",
    "OrderTransitionResponse",
    "OrderListResponse",
    "OrderHistoryEntry",
    "OrderChangeCheck",
    "CashResponse",
    "PriceBreakdownResponse",
    "QuoteRequest",
    "QuoteResponse",
    "PromoValidateRequest",
    "PromoValidateResponse",
    "PromoCreate",
    "PromoUpdate",
    "PromoResponse",
    "DriverAvailability",
    "DriverCreate",
    "DriverResponse",
    "CashUpdate",
    "CashSummary",
    "CashSummaryEntry",
    "PayoutCreate",
    "PayoutResponse",
    "DriverEarnings",
    "DriverEarningsOrder",
    "AcceptRequest",
    "RejectRequest",
    "RestaurantResponse",
    "RestaurantSettingsUpdate",
    "RestaurantConfigUpdate",
    "RestaurantCreate",
    "ItemAvailabilityUpdate",
    "ItemAvailabilityResponse",
    "RestaurantEarnings",
    "CommissionIncome",
    "MessageCreate",
    "MessageResponse",
    "LoyaltyResponse",
    "ReferralResponse",
    "PaymentConfirmation",
    "CryptoConfirmation",
    "RefundRequest",
]
