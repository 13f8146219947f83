"""Payment confirmation handlers.

Gateway sessions are created elsewhere; these endpoints only receive the
success signal and mark the order paid.
"""

from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from app.database import get_db
from app.orders.service import confirm_crypto, confirm_payment
from app.schemas.order import OrderResponse
from app.schemas.payment import CryptoConfirmation, PaymentConfirmation

router = APIRouter()
logger = structlog.get_logger()


@router.post("/{order_id}/crypto", response_model=OrderResponse)
async def handle_crypto_confirmation(
    order_id: UUID,
    confirmation: CryptoConfirmation,
    db: AsyncSession = Depends(get_db),
):
    """On-chain transfer reported by the checkout page"""
    logger.info("Crypto confirmation received", order_id=str(order_id))
    order = await confirm_crypto(db, order_id, confirmation.phone, confirmation.tx_hash)
    return OrderResponse.from_order(order)


@router.post("/{order_id}/{method}", response_model=OrderResponse)
async def handle_payment_confirmation(
    order_id: UUID,
    method: Literal["card", "gcash", "paypal"],
    confirmation: PaymentConfirmation,
    db: AsyncSession = Depends(get_db),
):
    """Card, GCash or PayPal success redirect"""
    logger.info("Payment confirmation received", order_id=str(order_id), method=method)
    order = await confirm_payment(db, order_id, confirmation.phone, method, confirmation.reference)
    return OrderResponse.from_order(order)
