"""
Daily alert job.

- passports expiring soon: notify the customer's sales user
- trips departing soon: notify the sales user of every paid booking
- leads left 'interested' too long: cancelled
- booked leads whose paid trips have ended: completed

Runs from the APScheduler job registered in app.main and from POST /cron/alerts.
"""

import calendar
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import get_settings
from app.database import async_session_maker
from app.models.booking import Booking
from app.models.customer import Passport
from app.models.lead import Lead
from app.models.trip import Trip
from app.services.lead_sync import cancel_abandoned_leads, complete_finished_leads
from app.services.notification_service import notify_user, already_notified

logger = logging.getLogger(__name__)

PASSPORT_ALERT_DEDUP_DAYS = 180


def add_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


async def _passport_owner_sales_user(db: AsyncSession, customer_id: int):
    """Sales user of the customer's latest lead, else of their latest booking."""
    result = await db.execute(
        select(Lead.sales_user_id)
        .where(Lead.customer_id == customer_id, Lead.sales_user_id.isnot(None))
        .order_by(Lead.created_at.desc(), Lead.id.desc())
        .limit(1)
    )
    sales_user_id = result.scalar_one_or_none()
    if sales_user_id is not None:
        return sales_user_id

    result = await db.execute(
        select(Booking.sales_user_id)
        .where(Booking.customer_id == customer_id, Booking.sales_user_id.isnot(None))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def check_passport_expiry(db: AsyncSession, today: date, months: int) -> int:
    """Notify about passports expiring between today and today + months. Returns notifications sent."""
    limit = add_months(today, months)
    result = await db.execute(
        select(Passport)
        .where(Passport.expiry_date >= today, Passport.expiry_date <= limit)
        .options(selectinload(Passport.customer))
        .order_by(Passport.expiry_date)
    )
    passports = result.scalars().all()

    count = 0
    for passport in passports:
        entity_id = str(passport.id)
        if await already_notified(db, "passport_expiry", entity_id, PASSPORT_ALERT_DEDUP_DAYS):
            continue

        sales_user_id = await _passport_owner_sales_user(db, passport.customer_id)
        if sales_user_id is None:
            logger.debug("Passport %s expiring but customer has no sales user", passport.id)
            continue

        days_left = (passport.expiry_date - today).days
        await notify_user(
            db=db,
            user_id=sales_user_id,
            type="passport_expiry",
            title=f"Passport expiring - {passport.customer.display_name}",
            message=(
                f"Passport {passport.passport_number} expires on "
                f"{passport.expiry_date.isoformat()} ({days_left} day(s) left)."
            ),
            link=f"/customers/{passport.customer_id}",
            entity_id=entity_id,
            metadata={
                "customer_id": passport.customer_id,
                "passport_id": passport.id,
                "days_left": days_left,
            },
        )
        count += 1
    return count


async def check_upcoming_trips(db: AsyncSession, today: date, days: int) -> int:
    """Notify sales users of paid bookings on trips starting within `days` days."""
    result = await db.execute(
        select(Booking)
        .join(Trip, Trip.id == Booking.trip_id)
        .where(
            Trip.start_date >= today,
            Trip.start_date <= today + timedelta(days=days),
            Booking.payment_status.in_(["deposit_paid", "fully_paid"]),
            Booking.sales_user_id.isnot(None),
        )
        .options(selectinload(Booking.trip), selectinload(Booking.customer))
        .order_by(Trip.start_date, Booking.id)
    )
    bookings = result.scalars().all()

    count = 0
    for booking in bookings:
        entity_id = str(booking.id)
        if await already_notified(db, "trip_departure", entity_id):
            continue

        days_left = (booking.trip.start_date - today).days
        await notify_user(
            db=db,
            user_id=booking.sales_user_id,
            type="trip_departure",
            title=f"Departure in {days_left} day(s) - {booking.trip.code}",
            message=(
                f"{booking.customer.display_name} departs on {booking.trip.name} "
                f"({booking.trip.start_date.isoformat()})."
            ),
            link=f"/bookings/{booking.id}",
            entity_id=entity_id,
            metadata={
                "booking_id": booking.id,
                "trip_id": booking.trip_id,
                "days_left": days_left,
            },
        )
        count += 1
    return count


async def run_daily_alerts(db: AsyncSession, today: Optional[date] = None) -> dict:
    """Run every check and commit. Returns counts per check."""
    settings = get_settings()
    today = today or date.today()

    counts = {
        "passport_alerts": await check_passport_expiry(db, today, settings.passport_alert_months),
        "trip_alerts": await check_upcoming_trips(db, today, settings.trip_alert_days),
        "abandoned_leads": await cancel_abandoned_leads(db, settings.lead_abandon_days),
        "completed_leads": await complete_finished_leads(db, today),
    }
    await db.commit()

    logger.info(
        "Daily alerts done: %d passport, %d trip, %d abandoned lead(s), %d completed lead(s)",
        counts["passport_alerts"], counts["trip_alerts"], counts["abandoned_leads"],
        counts["completed_leads"],
    )
    return counts


async def process_daily_alerts() -> None:
    """
    Entry point for the scheduled job.

    Creates its own DB session (not a request-scoped dependency).
    """
    async with async_session_maker() as db:
        try:
            await run_daily_alerts(db)
        except Exception:
            logger.exception("Daily alert job failed")
            await db.rollback()
