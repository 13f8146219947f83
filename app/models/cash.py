"""Cash reconciliation model"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from app.database import Base


class CashHandling(Base):
    """Cash-on-delivery record, one per order; every amount settable on its own"""
    __tablename__ = "cash_handling"

    order_id = Column(Uuid, ForeignKey("orders.id"), primary_key=True)
    expected = Column(Integer)  # order total snapshot at delivery
    received_from_customer = Column(Integer)
    turned_in_at_hub = Column(Integer)
    variance_reason = Column(Text)
    updated_by = Column(String(20))
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="cash_record")

    @property
    def received_vs_turned_in(self):
        if self.received_from_customer is None or self.turned_in_at_hub is None:
            return None
        return self.received_from_customer - self.turned_in_at_hub

    @property
    def received_vs_expected(self):
        if self.received_from_customer is None or self.expected is None:
            return None
        return self.received_from_customer - self.expected

    @property
    def has_variance(self) -> bool:
        return bool(self.received_vs_turned_in) or bool(self.received_vs_expected)
