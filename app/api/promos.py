"""Promo code endpoints"""

from datetime import datetime
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.auth import require_role
from app.database import get_db
from app.models.promo import PromoCode
from app.models.user import User, UserRole
from app.orders.service import lookup_promo
from app.pricing.discounts import evaluate_promo
from app.schemas.pricing import (
    PromoCreate,
    PromoResponse,
    PromoUpdate,
    PromoValidateRequest,
    PromoValidateResponse,
)

router = APIRouter()


@router.post("/validate", response_model=PromoValidateResponse)
async def validate_promo(
    request: PromoValidateRequest,
    db: AsyncSession = Depends(get_db),
):
    """Checkout check; the order itself re-validates"""
    promo = await lookup_promo(db, request.code)
    evaluation = evaluate_promo(promo, request.subtotal, datetime.utcnow())
    return PromoValidateResponse(
        valid=evaluation.valid,
        code=evaluation.code,
        discount=evaluation.discount,
        reason=evaluation.reason,
    )


@router.get("", response_model=List[PromoResponse])
async def list_promos(
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """All promo codes, newest first"""
    result = await db.execute(select(PromoCode).order_by(PromoCode.created_at.desc()))
    return result.scalars().all()


@router.post("", response_model=PromoResponse, status_code=status.HTTP_201_CREATED)
async def create_promo(
    promo_data: PromoCreate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Create a promo code (admin only)"""
    promo = PromoCode(**promo_data.model_dump(), uses_count=0)
    db.add(promo)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=400, detail="Promo code already exists")
    await db.refresh(promo)
    return promo


@router.patch("/{promo_id}", response_model=PromoResponse)
async def update_promo(
    promo_id: UUID,
    update: PromoUpdate,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Update a promo code (admin only)"""
    promo = await db.get(PromoCode, promo_id)
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")

    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(promo, field, value)

    await db.commit()
    await db.refresh(promo)
    return promo


@router.delete("/{promo_id}", status_code=204)
async def deactivate_promo(
    promo_id: UUID,
    current_user: User = Depends(require_role(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Deactivate a promo code (soft delete)"""
    promo = await db.get(PromoCode, promo_id)
    if not promo:
        raise HTTPException(status_code=404, detail="Promo code not found")

    promo.is_active = False
    await db.commit()
