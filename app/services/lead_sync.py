"""
Lead status sync driven by the lead's bookings.
"""

import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.booking import Booking
from app.models.lead import Lead
from app.models.trip import Trip

logger = logging.getLogger(__name__)


async def lead_has_active_bookings(db: AsyncSession, lead_id: int) -> bool:
    result = await db.execute(
        select(func.count())
        .select_from(Booking)
        .where(Booking.lead_id == lead_id, Booking.payment_status != "cancelled")
    )
    return result.scalar_one() > 0


async def sync_lead_from_bookings(
    db: AsyncSession,
    lead_id: int,
    today: Optional[date] = None,
) -> Optional[str]:
    """
    Recompute a lead's status from its bookings:
    - every active booking fully paid on an ended trip -> completed
    - any active booking -> booked
    - every booking cancelled -> cancelled
    A lead without bookings keeps its status. Returns the resulting status.
    """
    today = today or date.today()

    lead = await db.get(Lead, lead_id)
    if lead is None:
        return None

    result = await db.execute(
        select(Booking.payment_status, Trip.end_date)
        .join(Trip, Trip.id == Booking.trip_id)
        .where(Booking.lead_id == lead_id)
    )
    rows = result.all()
    if not rows:
        return lead.status

    active = [(status, end_date) for status, end_date in rows if status != "cancelled"]
    if active and all(status == "fully_paid" and end_date < today for status, end_date in active):
        new_status = "completed"
    elif active:
        new_status = "booked"
    else:
        new_status = "cancelled"

    if lead.status != new_status:
        logger.info("Lead %s status %s -> %s (from bookings)", lead.id, lead.status, new_status)
        lead.status = new_status
    return lead.status


async def cancel_abandoned_leads(db: AsyncSession, days: int) -> int:
    """Cancel leads still 'interested' with no update for `days` days."""
    cutoff = utcnow() - timedelta(days=days)
    result = await db.execute(
        update(Lead)
        .where(Lead.status == "interested", Lead.updated_at < cutoff)
        .values(status="cancelled", updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    count = result.rowcount or 0
    if count:
        logger.info("Cancelled %d abandoned lead(s) older than %d days", count, days)
    return count


async def complete_finished_leads(db: AsyncSession, today: Optional[date] = None) -> int:
    """
    Re-sync 'booked' leads holding a fully paid booking on a trip that has ended.
    Returns how many became completed.
    """
    today = today or date.today()
    result = await db.execute(
        select(Lead.id)
        .join(Booking, Booking.lead_id == Lead.id)
        .join(Trip, Trip.id == Booking.trip_id)
        .where(
            Lead.status == "booked",
            Booking.payment_status == "fully_paid",
            Trip.end_date < today,
        )
        .distinct()
    )
    count = 0
    for lead_id in result.scalars().all():
        if await sync_lead_from_bookings(db, lead_id, today) == "completed":
            count += 1
    if count:
        logger.info("Completed %d lead(s) whose trips have ended", count)
    return count
