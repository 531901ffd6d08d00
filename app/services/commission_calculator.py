"""
Commission deriver.

A booking that reaches fully_paid earns its sales user a flat
commission_per_head (one head: the booking's own customer, companions
have their own bookings). One record per booking; it is voided when the
booking leaves fully_paid and re-earned when it comes back.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.booking import Booking
from app.models.commission import Commission
from app.models.user import User
from app.services.booking_pricing import to_money

logger = logging.getLogger(__name__)

HEADS_PER_BOOKING = 1


async def _commission_amount(db: AsyncSession, sales_user_id) -> Decimal:
    user = await db.get(User, sales_user_id)
    rate = user.commission_per_head if user else None
    return to_money(rate) * HEADS_PER_BOOKING


async def update_commission_status(db: AsyncSession, booking: Booking) -> Optional[Commission]:
    """
    Bring the booking's commission in line with its payment status.

    Safe to call after any booking change: it never creates a second record.
    Returns the commission row, if any.
    """
    result = await db.execute(
        select(Commission).where(Commission.booking_id == booking.id)
    )
    commission = result.scalar_one_or_none()

    if booking.payment_status != "fully_paid" or booking.sales_user_id is None:
        if commission is not None and commission.status != "void":
            commission.status = "void"
            logger.info(
                "Commission %s voided (booking %s is %s)",
                commission.id, booking.id, booking.payment_status,
            )
        return commission

    if commission is None:
        commission = Commission(
            booking_id=booking.id,
            agent_id=booking.sales_user_id,
            amount=await _commission_amount(db, booking.sales_user_id),
            status="earned",
        )
        db.add(commission)
        await db.flush()
        logger.info(
            "Commission created for booking %s: agent=%s amount=%s",
            booking.id, commission.agent_id, commission.amount,
        )
        return commission

    if commission.agent_id != booking.sales_user_id:
        commission.agent_id = booking.sales_user_id
        commission.amount = await _commission_amount(db, booking.sales_user_id)
        logger.info(
            "Commission %s reassigned to agent %s", commission.id, commission.agent_id
        )

    if commission.status != "earned":
        commission.status = "earned"
        logger.info("Commission %s re-earned for booking %s", commission.id, booking.id)

    return commission
