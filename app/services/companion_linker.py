"""
Companion linker.

Keeps the companion relation symmetric between bookings of the same trip:
if booking A lists B's customer, B's booking lists A's customer.
A customer has at most one booking per trip, so a companion customer id
identifies the partner booking.
"""

import logging
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.booking import Booking, BookingCompanion
from app.services.booking_pricing import BookingRuleError

logger = logging.getLogger(__name__)


async def _trip_bookings_by_customer(db: AsyncSession, trip_id: int) -> dict[int, Booking]:
    """Active bookings of a trip keyed by customer id, companions loaded."""
    result = await db.execute(
        select(Booking)
        .where(
            Booking.trip_id == trip_id,
            Booking.payment_status != "cancelled",
        )
        .options(selectinload(Booking.companions))
    )
    return {b.customer_id: b for b in result.scalars().all()}


def _add_link(booking: Booking, customer_id: int) -> None:
    if customer_id not in {c.customer_id for c in booking.companions}:
        booking.companions.append(BookingCompanion(customer_id=customer_id))


def _remove_link(booking: Booking, customer_id: int) -> None:
    for link in list(booking.companions):
        if link.customer_id == customer_id:
            booking.companions.remove(link)


async def set_companions(
    db: AsyncSession,
    booking: Booking,
    customer_ids: Iterable[int],
) -> list[int]:
    """
    Replace the booking's companion list and mirror the diff on partner bookings.

    Each companion must be a different customer with an active booking on the
    same trip. Raises BookingRuleError otherwise. Returns the new sorted list.
    """
    wanted = set(customer_ids)
    if booking.customer_id in wanted:
        raise BookingRuleError("A customer cannot be their own companion")

    partners = await _trip_bookings_by_customer(db, booking.trip_id)
    missing = sorted(cid for cid in wanted if cid not in partners)
    if missing:
        raise BookingRuleError(
            f"Companions must have a booking on the same trip (customer ids: {missing})"
        )

    current = {c.customer_id for c in booking.companions}
    added = wanted - current
    removed = current - wanted

    for cid in added:
        _add_link(booking, cid)
        _add_link(partners[cid], booking.customer_id)

    for cid in removed:
        _remove_link(booking, cid)
        partner = partners.get(cid)
        if partner is not None:
            _remove_link(partner, booking.customer_id)

    if added or removed:
        logger.info(
            "Booking %s companions updated: +%s -%s",
            booking.id, sorted(added), sorted(removed),
        )
    return sorted(wanted)


async def unlink_companions(db: AsyncSession, booking: Booking) -> None:
    """
    Remove the booking's customer from every partner booking on its trip
    and clear the booking's own list. Used on trip change, cancel and delete.
    """
    result = await db.execute(
        select(Booking)
        .join(BookingCompanion, BookingCompanion.booking_id == Booking.id)
        .where(
            Booking.trip_id == booking.trip_id,
            Booking.id != booking.id,
            BookingCompanion.customer_id == booking.customer_id,
        )
        .options(selectinload(Booking.companions))
    )
    partners = result.scalars().unique().all()
    for partner in partners:
        _remove_link(partner, booking.customer_id)

    cleared = len(booking.companions)
    booking.companions.clear()

    if partners or cleared:
        logger.info(
            "Booking %s unlinked from %d partner booking(s)", booking.id, len(partners)
        )
