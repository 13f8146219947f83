"""Per-order message thread"""

from typing import List
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ValidationFailed
from app.models.message import OrderMessage
from app.orders.repository import ActorRef

logger = structlog.get_logger()

MAX_MESSAGE_LENGTH = 500


def clean_message(text: str) -> str:
    text = (text or "").strip()
    if not text:
        raise ValidationFailed("Message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise ValidationFailed(f"Message is limited to {MAX_MESSAGE_LENGTH} characters")
    return text


async def list_messages(db: AsyncSession, order_id: UUID) -> List[OrderMessage]:
    """Thread in creation order"""
    result = await db.execute(
        select(OrderMessage).where(OrderMessage.order_id == order_id).order_by(OrderMessage.id)
    )
    return list(result.scalars().all())


async def post_message(db: AsyncSession, order_id: UUID, sender: ActorRef, text: str) -> OrderMessage:
    """Append to the thread; messages are never edited or deleted"""
    message = OrderMessage(
        order_id=order_id,
        sender_type=sender.type.value,
        sender_id=sender.id,
        message=clean_message(text),
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)
    logger.info("Message posted", order_id=str(order_id), sender_type=sender.type.value)
    return message
