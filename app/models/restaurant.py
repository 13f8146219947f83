"""Restaurant-related models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, Float, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship

from app.database import Base


class Restaurant(Base):
    """Restaurant or grocery partner"""
    __tablename__ = "restaurants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_grocery = Column(Boolean, default=False)
    is_active = Column(Boolean, default=True)

    # Commercial terms
    commission_pct = Column(Integer, default=30)  # markup on food
    delivery_commission_pct = Column(Integer, default=30)  # platform share of the delivery fee
    min_order = Column(Integer, default=0)

    # Payout
    payout_method = Column(String(20), default="gcash")  # gcash, bank, cash
    gcash_number = Column(String(30))
    email = Column(String(255))

    # Location
    lat = Column(Float)
    lng = Column(Float)

    # Portal
    hashed_password = Column(String(255))
    ntfy_topic = Column(String(100))

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    item_availability = relationship(
        "ItemAvailability", back_populates="restaurant", cascade="all, delete-orphan"
    )


class ItemAvailability(Base):
    """Sold-out toggle per menu item"""
    __tablename__ = "item_availability"
    __table_args__ = (UniqueConstraint("restaurant_id", "item_name"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    restaurant_id = Column(Uuid, ForeignKey("restaurants.id"), nullable=False)
    item_name = Column(String(255), nullable=False)
    is_available = Column(Boolean, default=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    restaurant = relationship("Restaurant", back_populates="item_availability")
