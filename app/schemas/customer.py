"""Customer loyalty and referral schemas"""

from typing import Optional
from pydantic import BaseModel


class LoyaltyResponse(BaseModel):
    """Points balance for a phone"""
    points: int
    points_per_order: int
    points_per_block: int
    value_per_block: int
    redeemable_value: int


class ReferralResponse(BaseModel):
    """Referral code and credit balances for a phone"""
    code: Optional[str]
    total_credits: int
    available_credits: int
