"""Audit log model"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, JSON, Uuid

from app.database import Base


class AuditLog(Base):
    """Audit trail of every order mutation"""
    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Actor information
    actor_type = Column(String(20), nullable=False)  # customer, restaurant, driver, staff, system
    actor_id = Column(String(100))  # user/driver id, restaurant slug or customer phone

    # Action details
    action = Column(String(100), nullable=False)  # create_order, set_status, accept, cancel, ...
    resource_type = Column(String(50), default="order")
    resource_id = Column(Uuid, index=True)

    # Change data
    data_json = Column(JSON)  # fields written by the mutation

    created_at = Column(DateTime, default=datetime.utcnow)
