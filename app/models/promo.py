"""Promo code model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Uuid

from app.database import Base


class PromoCode(Base):
    """Promo codes validated at checkout"""
    __tablename__ = "promo_codes"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(50), unique=True, nullable=False, index=True)  # stored upper-case
    discount_type = Column(String(20), nullable=False, default="fixed")  # fixed, percent
    discount_value = Column(Integer, nullable=False)
    min_order = Column(Integer, default=0)
    max_uses = Column(Integer)
    uses_count = Column(Integer, default=0)
    valid_from = Column(DateTime)
    valid_until = Column(DateTime)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
