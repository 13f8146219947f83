"""Payment confirmation schemas"""

from typing import Optional
from pydantic import BaseModel, Field


class PaymentConfirmation(BaseModel):
    """Card, GCash or PayPal success signal from the checkout page"""
    phone: str
    reference: str = Field(min_length=1, max_length=255)


class CryptoConfirmation(BaseModel):
    """On-chain transfer confirmation"""
    phone: str
    tx_hash: str = Field(pattern=r"^0x[a-fA-F0-9]{60,}$")


class RefundRequest(BaseModel):
    """Staff refund request"""
    reason: Optional[str] = None
