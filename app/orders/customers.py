"""Customers keyed by phone: loyalty points and referral credit"""

import secrets
from datetime import datetime
from typing import Optional, Tuple
from uuid import UUID

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.errors import ValidationFailed
from app.models.customer import Customer, ReferralCredit
from app.orders.cart import digits, phone_tail

logger = structlog.get_logger()

REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def _new_referral_code() -> str:
    return "".join(secrets.choice(REFERRAL_CODE_ALPHABET) for _ in range(6))


async def find_customer(db: AsyncSession, phone: str) -> Optional[Customer]:
    tail = phone_tail(phone)
    if not tail:
        return None
    result = await db.execute(
        select(Customer)
        .where(Customer.phone.like(f"%{tail}"))
        .order_by(Customer.created_at)
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_customer(
    db: AsyncSession, phone: str, name: Optional[str] = None
) -> Tuple[Customer, bool]:
    customer = await find_customer(db, phone)
    if customer is not None:
        if not customer.referral_code:
            customer.referral_code = _new_referral_code()
        return customer, False
    customer = Customer(phone=digits(phone), name=name, referral_code=_new_referral_code())
    db.add(customer)
    await db.flush()
    return customer, True


async def referral_balance(db: AsyncSession, customer_id: UUID) -> Tuple[int, int]:
    """(available, total applied) referral credit for a customer"""
    result = await db.execute(
        select(ReferralCredit.status, func.coalesce(func.sum(ReferralCredit.amount), 0))
        .where(ReferralCredit.referrer_id == customer_id)
        .group_by(ReferralCredit.status)
    )
    sums = {status: int(total) for status, total in result.all()}
    return sums.get("pending", 0), sums.get("applied", 0)


async def spend_referral_credit(
    db: AsyncSession, customer_id: UUID, amount: int, order_id: UUID, now: datetime
) -> None:
    """Mark pending credits applied, oldest first, splitting the last one.

    Each row is claimed with a conditional UPDATE so two orders cannot spend
    the same credit; a lost claim raises and the caller rolls back.
    """
    result = await db.execute(
        select(ReferralCredit)
        .where(ReferralCredit.referrer_id == customer_id, ReferralCredit.status == "pending")
        .order_by(ReferralCredit.created_at)
        .execution_options(populate_existing=True)
    )
    remaining = amount
    for credit in result.scalars().all():
        if remaining <= 0:
            break
        claim = update(ReferralCredit).where(
            ReferralCredit.id == credit.id,
            ReferralCredit.status == "pending",
            ReferralCredit.amount == credit.amount,
        )
        if credit.amount <= remaining:
            taken = credit.amount
            claim = claim.values(status="applied", applied_order_id=order_id, applied_at=now)
        else:
            taken = remaining
            claim = claim.values(amount=credit.amount - remaining)
        claimed = await db.execute(claim.execution_options(synchronize_session=False))
        if not claimed.rowcount:
            break
        if taken < credit.amount:
            db.add(
                ReferralCredit(
                    referrer_id=customer_id,
                    referred_phone=credit.referred_phone,
                    amount=taken,
                    status="applied",
                    applied_order_id=order_id,
                    applied_at=now,
                    created_at=credit.created_at,
                )
            )
        remaining -= taken
    if remaining > 0:
        logger.warning("Referral credit spent elsewhere", customer_id=str(customer_id), missing=remaining)
        raise ValidationFailed("Referral credit already used")


async def adjust_loyalty(db: AsyncSession, phone: str, delta: int) -> None:
    """Atomic points increment; a missing customer is created on award"""
    if not delta:
        return
    customer = await find_customer(db, phone)
    if customer is None:
        if delta < 0:
            return
        customer, _ = await get_or_create_customer(db, phone)
    new_balance = Customer.loyalty_points + delta
    await db.execute(
        update(Customer)
        .where(Customer.id == customer.id)
        .values(loyalty_points=case((new_balance < 0, 0), else_=new_balance))
        .execution_options(synchronize_session=False)
    )


async def credit_referrer(db: AsyncSession, code: str, referred: Customer, now: datetime) -> None:
    result = await db.execute(
        select(Customer).where(Customer.referral_code == code.strip().upper())
    )
    referrer = result.scalar_one_or_none()
    if referrer is None or referrer.id == referred.id:
        logger.info("Referral code ignored", code=code)
        return
    db.add(
        ReferralCredit(
            referrer_id=referrer.id,
            referred_phone=referred.phone,
            amount=settings.referral_reward,
            status="pending",
            created_at=now,
        )
    )
    logger.info("Referral credit earned", referrer_id=str(referrer.id))


async def release_referral_credit(db: AsyncSession, order_id: UUID) -> None:
    """Credits spent on a cancelled order become spendable again"""
    await db.execute(
        update(ReferralCredit)
        .where(ReferralCredit.applied_order_id == order_id)
        .values(status="pending", applied_order_id=None, applied_at=None)
        .execution_options(synchronize_session=False)
    )


async def return_referral_credit(db: AsyncSession, order_id: UUID, amount: int) -> None:
    """Give back part of the credit applied to an order, newest rows first.

    The returned amount goes back onto the rows the order holds, so a later
    cancel only releases what is still applied.
    """
    if amount <= 0:
        return
    result = await db.execute(
        select(ReferralCredit)
        .where(ReferralCredit.applied_order_id == order_id, ReferralCredit.status == "applied")
        .order_by(ReferralCredit.created_at.desc(), ReferralCredit.amount)
        .execution_options(populate_existing=True)
    )
    remaining = amount
    for credit in result.scalars().all():
        if remaining <= 0:
            break
        held = update(ReferralCredit).where(
            ReferralCredit.id == credit.id,
            ReferralCredit.applied_order_id == order_id,
            ReferralCredit.amount == credit.amount,
        )
        if credit.amount <= remaining:
            returned = credit.amount
            held = held.values(status="pending", applied_order_id=None, applied_at=None)
        else:
            returned = remaining
            held = held.values(amount=credit.amount - remaining)
        released = await db.execute(held.execution_options(synchronize_session=False))
        if not released.rowcount:
            continue
        if returned < credit.amount:
            db.add(
                ReferralCredit(
                    referrer_id=credit.referrer_id,
                    referred_phone=credit.referred_phone,
                    amount=returned,
                    status="pending",
                    created_at=credit.created_at,
                )
            )
        remaining -= returned
    if remaining > 0:
        logger.warning("Referral credit return short", order_id=str(order_id), missing=remaining)
