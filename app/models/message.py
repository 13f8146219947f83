"""Order message thread model"""

from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Text, Integer, Uuid
from sqlalchemy.orm import relationship

from app.database import Base


class OrderMessage(Base):
    """Append-only chat between customer, driver, restaurant and staff"""
    __tablename__ = "order_messages"

    # Integer key doubles as the creation sequence
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Uuid, ForeignKey("orders.id"), nullable=False, index=True)
    sender_type = Column(String(20), nullable=False)  # customer, driver, staff, restaurant
    sender_id = Column(String(100))
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    order = relationship("Order", back_populates="messages")
