"""Order message thread endpoints"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import Principal, get_optional_principal
from app.api.orders import get_visible_order
from app.database import get_db
from app.orders.messages import list_messages, post_message
from app.orders.repository import ActorRef
from app.orders.state_machine import Actor
from app.schemas.message import MessageCreate, MessageResponse

router = APIRouter()


@router.get("", response_model=List[MessageResponse])
async def get_messages(
    order_id: UUID,
    phone: Optional[str] = None,
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
):
    """Whole thread, oldest first"""
    await get_visible_order(db, order_id, principal, phone)
    return await list_messages(db, order_id)


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    order_id: UUID,
    request: MessageCreate,
    principal: Optional[Principal] = Depends(get_optional_principal),
    db: AsyncSession = Depends(get_db),
):
    """Append a message as the authenticated actor, or as the customer by phone"""
    order = await get_visible_order(db, order_id, principal, request.phone)
    sender = principal.actor if principal else ActorRef(Actor.CUSTOMER, order.customer_phone)
    return await post_message(db, order.id, sender, request.message)
