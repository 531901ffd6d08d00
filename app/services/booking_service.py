"""
Booking service - the booking / payment / commission flow.

Every function works inside the caller's session and never commits:
the route commits once, so a rule violation anywhere rolls back the
whole request.

Flow on each write:
1. validate references (trip, customer, passport, lead, sales user)
2. recompute the total from the trip price, add-ons and discount
3. record / validate installments
4. keep companion links symmetric
5. derive the payment status, then the commission and the lead status
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.booking import Booking, BookingCompanion, Payment
from app.models.customer import Customer, Passport
from app.models.lead import Lead
from app.models.trip import Trip
from app.models.user import User
from app.services.booking_pricing import (
    BookingRuleError,
    TOLERANCE,
    calculate_booking_total,
    derive_payment_status,
    first_payment_amount,
    ratio_value,
    validate_installment,
)
from app.services.commission_calculator import update_commission_status
from app.services.companion_linker import set_companions, unlink_companions
from app.services.lead_sync import sync_lead_from_bookings

logger = logging.getLogger(__name__)


class BookingNotFoundError(LookupError):
    pass


class BookingConflictError(ValueError):
    """The customer already has a booking on this trip."""
    pass


# Fields a client may set on create / update
BOOKING_FIELDS = (
    "customer_id",
    "trip_id",
    "sales_user_id",
    "passport_id",
    "lead_id",
    "note",
    "extra_price_for_single_traveller",
    "room_type",
    "extra_bed",
    "extra_price_per_bed",
    "room_note",
    "seat_type",
    "seat_class",
    "extra_price_per_seat",
    "seat_note",
    "extra_price_per_bag",
    "bag_note",
    "discount_price",
    "discount_note",
    "first_payment_ratio",
)

# Changing any of these re-prices the booking
PRICE_FIELDS = (
    "extra_price_for_single_traveller",
    "extra_price_per_bed",
    "extra_price_per_seat",
    "extra_price_per_bag",
    "discount_price",
)

NOT_NULL_FIELDS = ("extra_bed",)


def booking_load_options():
    """Eager loads needed by the booking flow and the detail response."""
    return (
        selectinload(Booking.customer),
        selectinload(Booking.trip),
        selectinload(Booking.sales_user),
        selectinload(Booking.passport),
        selectinload(Booking.lead),
        selectinload(Booking.companions).selectinload(BookingCompanion.customer),
        selectinload(Booking.payments),
        selectinload(Booking.commission),
    )


def booking_query(booking_id: int, refresh: bool = False, for_update: bool = False):
    stmt = (
        select(Booking)
        .where(Booking.id == booking_id)
        .options(*booking_load_options())
    )
    if for_update:
        stmt = stmt.with_for_update(of=Booking)
    if refresh or for_update:
        stmt = stmt.execution_options(populate_existing=True)
    return stmt


async def get_booking(
    db: AsyncSession,
    booking_id: int,
    refresh: bool = False,
    for_update: bool = False,
) -> Booking:
    """
    Load a booking with everything the flow and the detail view need.
    refresh=True reloads rows already in the session (use after commit).
    for_update=True locks the booking row until the transaction ends.
    """
    stmt = booking_query(booking_id, refresh=refresh, for_update=for_update)
    result = await db.execute(stmt)
    booking = result.scalar_one_or_none()
    if booking is None:
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    return booking


# ============================================================================
# Reference checks
# ============================================================================

async def _require_trip(db: AsyncSession, trip_id: int) -> Trip:
    trip = await db.get(Trip, trip_id)
    if trip is None:
        raise BookingRuleError(f"Trip {trip_id} not found")
    return trip


async def _check_references(db: AsyncSession, values: dict) -> None:
    customer_id = values.get("customer_id")
    if customer_id is not None and await db.get(Customer, customer_id) is None:
        raise BookingRuleError(f"Customer {customer_id} not found")

    passport_id = values.get("passport_id")
    if passport_id is not None:
        passport = await db.get(Passport, passport_id)
        if passport is None or passport.customer_id != customer_id:
            raise BookingRuleError("Passport does not belong to the booking's customer")

    lead_id = values.get("lead_id")
    if lead_id is not None:
        lead = await db.get(Lead, lead_id)
        if lead is None or lead.customer_id != customer_id:
            raise BookingRuleError("Lead does not belong to the booking's customer")

    sales_user_id = values.get("sales_user_id")
    if sales_user_id is not None:
        user = await db.get(User, sales_user_id)
        if user is None or not user.is_active:
            raise BookingRuleError(f"Sales user {sales_user_id} not found or inactive")


async def _check_not_booked(
    db: AsyncSession,
    trip_id: int,
    customer_id: int,
    exclude_booking_id: Optional[int] = None,
) -> None:
    stmt = select(Booking.id).where(
        Booking.trip_id == trip_id,
        Booking.customer_id == customer_id,
    )
    if exclude_booking_id is not None:
        stmt = stmt.where(Booking.id != exclude_booking_id)
    result = await db.execute(stmt)
    if result.first() is not None:
        raise BookingConflictError("This customer already has a booking on this trip")


# ============================================================================
# Payment state
# ============================================================================

async def _refresh_payment_state(db: AsyncSession, booking: Booking, previous_status: Optional[str]) -> None:
    """Derive the payment status, then bring commission and lead in line."""
    booking.payment_status = derive_payment_status(
        booking.total_amount, booking.paid_amount, booking.payment_status
    )
    if booking.payment_status != previous_status:
        logger.info(
            "Booking %s payment status %s -> %s",
            booking.id, previous_status, booking.payment_status,
        )

    await db.flush()
    await update_commission_status(db, booking)
    if booking.lead_id is not None:
        await sync_lead_from_bookings(db, booking.lead_id)


def _add_payment(
    booking: Booking,
    amount,
    paid_at: Optional[datetime] = None,
    proof_of_payment: Optional[str] = None,
    note: Optional[str] = None,
    method: Optional[str] = None,
) -> Payment:
    if booking.payment_status == "cancelled":
        raise BookingRuleError("Cannot record a payment on a cancelled booking")

    installment = len(booking.payments) + 1
    paid = validate_installment(
        installment,
        amount,
        booking.total_amount,
        booking.paid_amount,
        booking.first_payment_ratio,
    )
    payment = Payment(
        installment=installment,
        amount=paid,
        proof_of_payment=proof_of_payment,
        note=note,
        method=method or "other",
    )
    if paid_at is not None:
        payment.paid_at = paid_at
    booking.payments.append(payment)
    return payment


# ============================================================================
# Operations
# ============================================================================

async def create_booking(
    db: AsyncSession,
    values: dict,
    companion_customer_ids: Iterable[int] = (),
    first_payment: Optional[dict] = None,
) -> Booking:
    """
    Create a booking with its total, optional first payment and companions.

    values: BOOKING_FIELDS; customer_id and trip_id are required.
    first_payment: {"amount", "paid_at", "proof_of_payment", "note"}
    """
    data = {k: v for k, v in values.items() if k in BOOKING_FIELDS}
    if data.get("customer_id") is None or data.get("trip_id") is None:
        raise BookingRuleError("customer_id and trip_id are required")
    data.setdefault("first_payment_ratio", "first_payment_50")
    ratio_value(data["first_payment_ratio"])

    trip = await _require_trip(db, data["trip_id"])
    await _check_references(db, data)
    await _check_not_booked(db, data["trip_id"], data["customer_id"])

    booking = Booking(**data, companions=[], payments=[])
    booking.base_price = trip.standard_price
    booking.total_amount = calculate_booking_total(booking)
    booking.payment_status = "deposit_pending"
    db.add(booking)
    await db.flush()

    if first_payment and first_payment.get("amount") is not None:
        _add_payment(booking, **first_payment)

    companion_ids = list(companion_customer_ids or [])
    if companion_ids:
        await set_companions(db, booking, companion_ids)

    await _refresh_payment_state(db, booking, None)

    logger.info(
        "Booking %s created: customer=%s trip=%s total=%s",
        booking.id, booking.customer_id, booking.trip_id, booking.total_amount,
    )
    return booking


async def update_booking(
    db: AsyncSession,
    booking: Booking,
    changes: dict,
    companion_customer_ids: Optional[Iterable[int]] = None,
    payment_status: Optional[str] = None,
    reinstate: bool = False,
) -> Booking:
    """
    Partial update. `booking` must be loaded with booking_load_options().

    - a trip or customer change unlinks the old companions
    - the total is recomputed only on a trip change (new base price) or a
      change to an add-on or the discount
    - payment_status='cancelled' cancels; other explicit statuses are ignored
      in favour of the derived one
    - reinstate=True brings a cancelled booking back
    """
    previous_status = booking.payment_status
    previous_lead_id = booking.lead_id
    changes = {k: v for k, v in changes.items() if k in BOOKING_FIELDS}

    new_trip_id = changes.get("trip_id", booking.trip_id)
    new_customer_id = changes.get("customer_id", booking.customer_id)
    if new_trip_id is None or new_customer_id is None:
        raise BookingRuleError("customer_id and trip_id cannot be empty")
    for field in NOT_NULL_FIELDS:
        if field in changes and changes[field] is None:
            raise BookingRuleError(f"{field} cannot be empty")
    trip_changed = new_trip_id != booking.trip_id
    moved = trip_changed or new_customer_id != booking.customer_id
    reprice = trip_changed or any(field in changes for field in PRICE_FIELDS)

    if "first_payment_ratio" in changes:
        new_ratio = changes["first_payment_ratio"] or "first_payment_50"
        ratio_value(new_ratio)
        if booking.payments and new_ratio != booking.first_payment_ratio:
            raise BookingRuleError("First payment ratio cannot change once the first payment is recorded")
        changes["first_payment_ratio"] = new_ratio

    trip = await _require_trip(db, new_trip_id)
    await _check_references(
        db,
        {
            "customer_id": new_customer_id,
            "passport_id": changes.get("passport_id", booking.passport_id),
            "lead_id": changes.get("lead_id", booking.lead_id),
            "sales_user_id": changes.get("sales_user_id", booking.sales_user_id),
        },
    )

    if moved:
        await _check_not_booked(db, new_trip_id, new_customer_id, exclude_booking_id=booking.id)
        # Partners are found by the old trip / customer
        await unlink_companions(db, booking)

    for field, value in changes.items():
        setattr(booking, field, value)

    paid = booking.paid_amount
    if reprice:
        if trip_changed:
            booking.base_price = trip.standard_price
        total = calculate_booking_total(booking)
        if paid - total > TOLERANCE:
            raise BookingRuleError(
                f"New total {total} is below the amount already paid {paid}"
            )
        booking.total_amount = total
    else:
        total = booking.total_amount

    if payment_status == "cancelled" and booking.payment_status != "cancelled":
        await unlink_companions(db, booking)
        booking.payment_status = "cancelled"
        logger.info("Booking %s cancelled", booking.id)
    elif reinstate and booking.payment_status == "cancelled":
        booking.payment_status = derive_payment_status(total, paid)
        logger.info("Booking %s reinstated", booking.id)

    if companion_customer_ids is not None:
        companion_ids = list(companion_customer_ids)
        if booking.payment_status == "cancelled":
            if companion_ids:
                raise BookingRuleError("A cancelled booking cannot have companions")
        else:
            await set_companions(db, booking, companion_ids)

    await _refresh_payment_state(db, booking, previous_status)

    if previous_lead_id is not None and previous_lead_id != booking.lead_id:
        await sync_lead_from_bookings(db, previous_lead_id)

    return booking


async def record_payment(
    db: AsyncSession,
    booking_id: int,
    amount,
    paid_at: Optional[datetime] = None,
    proof_of_payment: Optional[str] = None,
    note: Optional[str] = None,
    method: Optional[str] = None,
) -> Payment:
    """
    Record the booking's next installment and re-derive status and commission.
    The booking row stays locked until commit so concurrent payments queue up.
    """
    booking = await get_booking(db, booking_id, for_update=True)
    previous_status = booking.payment_status

    payment = _add_payment(
        booking,
        amount,
        paid_at=paid_at,
        proof_of_payment=proof_of_payment,
        note=note,
        method=method,
    )
    await _refresh_payment_state(db, booking, previous_status)

    logger.info(
        "Payment recorded: booking=%s installment=%s amount=%s",
        booking.id, payment.installment, payment.amount,
    )
    return payment


async def delete_booking(db: AsyncSession, booking: Booking) -> None:
    """Delete a booking with its payments and commission, unlinking companions first."""
    lead_id = booking.lead_id
    await unlink_companions(db, booking)
    await db.delete(booking)
    await db.flush()

    if lead_id is not None:
        await sync_lead_from_bookings(db, lead_id)

    logger.info("Booking %s deleted", booking.id)


def payment_summary(booking: Booking) -> dict:
    """Paid / remaining amounts and the expected first payment for display."""
    paid = booking.paid_amount
    return {
        "paid_amount": paid,
        "remaining_amount": max(Decimal(booking.total_amount) - paid, Decimal("0")),
        "first_payment_amount": first_payment_amount(booking.total_amount, booking.first_payment_ratio),
    }
