"""Customer loyalty and referral models"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Uuid
from sqlalchemy.orm import relationship

from app.database import Base


class Customer(Base):
    """Customer keyed by phone number"""
    __tablename__ = "customers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    phone = Column(String(30), unique=True, nullable=False, index=True)  # digits only
    name = Column(String(255))
    loyalty_points = Column(Integer, nullable=False, default=0)
    referral_code = Column(String(12), unique=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    referral_credits = relationship(
        "ReferralCredit",
        back_populates="referrer",
        foreign_keys="ReferralCredit.referrer_id",
    )


class ReferralCredit(Base):
    """Credit earned by a referrer; pending credits are spendable"""
    __tablename__ = "referral_credits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    referrer_id = Column(Uuid, ForeignKey("customers.id"), nullable=False, index=True)
    referred_phone = Column(String(30))
    amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, applied
    applied_order_id = Column(Uuid, ForeignKey("orders.id"))
    created_at = Column(DateTime, default=datetime.utcnow)
    applied_at = Column(DateTime)

    # Relationships
    referrer = relationship("Customer", back_populates="referral_credits", foreign_keys=[referrer_id])
