"""Order model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text, Integer, Float, Boolean, Uuid
from sqlalchemy.orm import relationship

from app.database import Base
from app.pricing.engine import PriceBreakdown, price_order


class Order(Base):
    """Delivery orders shared by the customer, restaurant, driver and staff portals"""
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Customer information
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(30), nullable=False, index=True)
    customer_email = Column(String(255))
    delivery_address = Column(Text, nullable=False, default="See landmark")
    landmark = Column(Text, nullable=False)
    room = Column(String(50))
    floor = Column(String(50))
    guest_name = Column(String(255))

    # Geolocation
    delivery_lat = Column(Float)
    delivery_lng = Column(Float)
    delivery_zone_id = Column(String(50))
    delivery_zone_name = Column(String(100))
    delivery_distance_km = Column(Float)

    # Cart
    # [{"restaurant_name": "...", "restaurant_slug": "...", "item_name": "...",
    #   "price": "250 PHP", "price_value": 250, "quantity": 2}, ...]
    items_json = Column(JSON, nullable=False)
    restaurant_slug = Column(String(100), index=True)
    grocery_slug = Column(String(100), index=True)

    # Pricing inputs (totals are derived, see ``pricing``)
    delivery_fee = Column(Integer, nullable=False, default=0)
    tip = Column(Integer, nullable=False, default=0)
    priority = Column(Boolean, nullable=False, default=False)
    priority_fee = Column(Integer, nullable=False, default=0)
    promo_code = Column(String(50))
    promo_amount = Column(Integer, nullable=False, default=0)
    loyalty_points_redeemed = Column(Integer, nullable=False, default=0)
    referral_credit = Column(Integer, nullable=False, default=0)

    # Timing
    time_window = Column(String(20), nullable=False, default="asap")  # asap, scheduled
    scheduled_at = Column(DateTime)
    cancel_cutoff_at = Column(DateTime, nullable=False)
    confirmed_at = Column(DateTime)
    preparing_at = Column(DateTime)
    ready_at = Column(DateTime)
    assigned_at = Column(DateTime)
    picked_at = Column(DateTime)
    out_for_delivery_at = Column(DateTime)
    delivered_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    estimated_delivery_at = Column(DateTime)

    # Status
    # pending, confirmed, preparing, ready, assigned, picked, out_for_delivery, delivered, cancelled
    status = Column(String(30), nullable=False, default="pending", index=True)
    restaurant_status = Column(String(20), nullable=False, default="pending")  # pending, accepted, rejected
    prep_minutes = Column(Integer)
    restaurant_decided_at = Column(DateTime)
    cancel_reason = Column(Text)

    # Driver
    driver_id = Column(Uuid, ForeignKey("drivers.id"), index=True)
    arrived_at_hub_at = Column(DateTime)
    driver_arrived_at = Column(DateTime)
    driver_lat = Column(Float)
    driver_lng = Column(Float)
    driver_accuracy_m = Column(Float)
    driver_location_updated_at = Column(DateTime)

    # Payment
    payment_method = Column(String(20), nullable=False, default="cash")  # cash, card, gcash, crypto, paypal
    payment_status = Column(String(20), nullable=False, default="unpaid")  # unpaid, paid, refund_pending, refunded
    payment_reference = Column(String(255))
    crypto_tx_hash = Column(String(100))

    # Notes
    notes = Column(Text)
    allow_substitutions = Column(Boolean, default=True)

    # Metadata
    updated_by = Column(String(20), default="customer")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    driver = relationship("Driver", back_populates="orders")
    cash_record = relationship("CashHandling", back_populates="order", uselist=False)
    messages = relationship("OrderMessage", back_populates="order", order_by="OrderMessage.id")

    @property
    def pricing(self) -> PriceBreakdown:
        """Totals recomputed from the stored inputs on every read"""
        from app.config import settings

        return price_order(
            self.items_json or [],
            delivery_fee=self.delivery_fee or 0,
            tip=self.tip or 0,
            priority=bool(self.priority),
            promo_amount=self.promo_amount or 0,
            loyalty_points=self.loyalty_points_redeemed or 0,
            referral_credit=self.referral_credit or 0,
            priority_fee=self.priority_fee or 0,
            points_per_block=settings.loyalty_points_per_block,
            value_per_block=settings.loyalty_value_per_block,
        )

    @property
    def subtotal(self) -> int:
        return self.pricing.subtotal

    @property
    def total(self) -> int:
        return self.pricing.total
