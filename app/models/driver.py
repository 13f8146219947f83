"""Driver and payout models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Float, Integer, JSON, Uuid
from sqlalchemy.orm import relationship

from app.database import Base


class Driver(Base):
    """Delivery riders"""
    __tablename__ = "drivers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    phone = Column(String(30), unique=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)

    # Status
    is_active = Column(Boolean, default=True)
    is_available = Column(Boolean, default=True)  # online/offline toggle

    # Last known position (any order)
    last_lat = Column(Float)
    last_lng = Column(Float)
    last_location_at = Column(DateTime)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    orders = relationship("Order", back_populates="driver")


class Payout(Base):
    """Money paid out to a driver or restaurant"""
    __tablename__ = "payouts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    recipient_type = Column(String(20), nullable=False)  # driver, restaurant
    recipient_id = Column(String(100), nullable=False, index=True)  # driver id or restaurant slug
    amount = Column(Integer, nullable=False)
    status = Column(String(20), default="pending")  # pending, paid
    order_ids = Column(JSON, default=list)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
