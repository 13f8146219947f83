"""Order message thread schemas"""

from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field


class MessageCreate(BaseModel):
    """New message; customers also send their phone"""
    message: str = Field(max_length=2000)
    phone: Optional[str] = None


class MessageResponse(BaseModel):
    """Message in a thread"""
    id: int
    order_id: UUID
    sender_type: str
    sender_id: Optional[str]
    message: str
    created_at: datetime

    class Config:
        from_attributes = True
