"""Database models"""

from app.models.restaurant import Restaurant, ItemAvailability
from app.models.driver import Driver, Payout
from app.models.order import Order
from app.models.cash import CashHandling
from app.models.message import OrderMessage
from app.models.promo import PromoCode
from app.models.customer import Customer, ReferralCredit
from app.models.audit import AuditLog
from app.models.user import User

__all__ = [
    "Restaurant",
    "ItemAvailability",
    "Driver",
    "Payout",
    "Order",
    "CashHandling",
    "OrderMessage",
    "PromoCode",
    "Customer",
    "ReferralCredit",
    "AuditLog",
    "User",
]
