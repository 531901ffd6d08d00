"""Booking Service - integration tests for the booking / payment / commission flow.

Invariants:
    - Companion links are symmetric between bookings of the same trip
    - A trip change, cancellation or deletion removes the booking from partners
    - At most one commission per booking; voided / re-earned with fully_paid
    - Lead status follows its bookings

Design Decisions:
    - Services never commit; each test commits like a route would
    - Bookings re-read with refresh=True after commit (expire_on_commit=False)
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql

from app.models.base import utcnow
from app.models.commission import Commission
from app.models.lead import Lead
from app.services.booking_alerts import run_daily_alerts
from app.services.booking_pricing import BookingRuleError
from app.services.booking_service import (
    BookingConflictError,
    booking_query,
    create_booking,
    delete_booking,
    get_booking,
    record_payment,
    update_booking,
)
from app.services.commission_calculator import update_commission_status
from app.services.companion_linker import set_companions
from app.services.lead_sync import (
    cancel_abandoned_leads,
    complete_finished_leads,
    sync_lead_from_bookings,
)
from tests.factories import make_customer, make_lead, make_trip


# -- Helpers -------------------------------------------------------------------

async def _book(db, customer, trip, **values):
    companions = values.pop("companions", ())
    first_payment = values.pop("first_payment", None)
    booking = await create_booking(
        db,
        {"customer_id": customer.id, "trip_id": trip.id, **values},
        companion_customer_ids=companions,
        first_payment={"amount": first_payment} if first_payment is not None else None,
    )
    await db.commit()
    return booking


async def _reload(db, booking_id):
    return await get_booking(db, booking_id, refresh=True)


async def _commission_rows(db, booking_id):
    result = await db.execute(
        select(Commission.agent_id, Commission.amount, Commission.status)
        .where(Commission.booking_id == booking_id)
    )
    return result.all()


async def _lead_status(db, lead_id):
    return (await db.execute(select(Lead.status).where(Lead.id == lead_id))).scalar_one()


# ==============================================================================
# Creation
# ==============================================================================


async def test_create_booking_computes_total_and_first_payment(test_db, users):
    customer = await make_customer(test_db)
    trip = await make_trip(test_db, standard_price=Decimal("10000"))

    booking = await _book(
        test_db, customer, trip,
        sales_user_id=users["sales"].id,
        extra_price_per_bag=Decimal("500"),
        discount_price=Decimal("300"),
        first_payment=Decimal("5100"),
    )

    booking = await _reload(test_db, booking.id)
    assert booking.total_amount == Decimal("10200.00")
    assert booking.payment_status == "deposit_paid"
    assert [p.installment for p in booking.payments] == [1]
    assert booking.payments[0].amount == Decimal("5100.00")


async def test_create_booking_rejects_wrong_first_payment(test_db, users):
    customer = await make_customer(test_db)
    trip = await make_trip(test_db)

    with pytest.raises(BookingRuleError, match="First payment must be"):
        await create_booking(
            test_db,
            {"customer_id": customer.id, "trip_id": trip.id},
            first_payment={"amount": Decimal("1000")},
        )


async def test_second_booking_for_same_customer_and_trip_conflicts(test_db, users):
    customer = await make_customer(test_db)
    trip = await make_trip(test_db)
    await _book(test_db, customer, trip)

    with pytest.raises(BookingConflictError):
        await create_booking(test_db, {"customer_id": customer.id, "trip_id": trip.id})


async def test_unknown_trip_rejected(test_db, users):
    customer = await make_customer(test_db)

    with pytest.raises(BookingRuleError, match="Trip 999 not found"):
        await create_booking(test_db, {"customer_id": customer.id, "trip_id": 999})


# ==============================================================================
# Companions
# ==============================================================================


async def test_companions_are_linked_both_ways(test_db, users):
    trip = await make_trip(test_db)
    alice = await make_customer(test_db, "Alice")
    bob = await make_customer(test_db, "Bob")

    a = await _book(test_db, alice, trip)
    b = await _book(test_db, bob, trip, companions=[alice.id])

    assert (await _reload(test_db, b.id)).companion_customer_ids == [alice.id]
    assert (await _reload(test_db, a.id)).companion_customer_ids == [bob.id]


async def test_removing_companion_unlinks_partner(test_db, users):
    trip = await make_trip(test_db)
    alice = await make_customer(test_db, "Alice")
    bob = await make_customer(test_db, "Bob")
    a = await _book(test_db, alice, trip)
    b = await _book(test_db, bob, trip, companions=[alice.id])

    await update_booking(test_db, await _reload(test_db, b.id), {}, companion_customer_ids=[])
    await test_db.commit()

    assert (await _reload(test_db, a.id)).companion_customer_ids == []
    assert (await _reload(test_db, b.id)).companion_customer_ids == []


async def test_changing_trip_resets_companions(test_db, users):
    trip = await make_trip(test_db)
    other_trip = await make_trip(test_db, standard_price=Decimal("8000"))
    alice = await make_customer(test_db, "Alice")
    bob = await make_customer(test_db, "Bob")
    a = await _book(test_db, alice, trip)
    b = await _book(test_db, bob, trip, companions=[alice.id])

    await update_booking(test_db, await _reload(test_db, b.id), {"trip_id": other_trip.id})
    await test_db.commit()

    moved = await _reload(test_db, b.id)
    assert moved.trip_id == other_trip.id
    assert moved.total_amount == Decimal("8000.00")
    assert moved.companion_customer_ids == []
    assert (await _reload(test_db, a.id)).companion_customer_ids == []


async def test_companion_must_be_booked_on_same_trip(test_db, users):
    trip = await make_trip(test_db)
    other_trip = await make_trip(test_db)
    alice = await make_customer(test_db, "Alice")
    bob = await make_customer(test_db, "Bob")
    await _book(test_db, alice, other_trip)
    b = await _book(test_db, bob, trip)

    with pytest.raises(BookingRuleError, match="same trip"):
        await set_companions(test_db, await _reload(test_db, b.id), [alice.id])


async def test_customer_cannot_be_own_companion(test_db, users):
    trip = await make_trip(test_db)
    alice = await make_customer(test_db, "Alice")
    a = await _book(test_db, alice, trip)

    with pytest.raises(BookingRuleError, match="own companion"):
        await set_companions(test_db, await _reload(test_db, a.id), [alice.id])


async def test_cancelled_booking_drops_out_of_companions(test_db, users):
    trip = await make_trip(test_db)
    alice = await make_customer(test_db, "Alice")
    bob = await make_customer(test_db, "Bob")
    carol = await make_customer(test_db, "Carol")
    a = await _book(test_db, alice, trip)
    b = await _book(test_db, bob, trip, companions=[alice.id])
    c = await _book(test_db, carol, trip)

    await update_booking(test_db, await _reload(test_db, a.id), {}, payment_status="cancelled")
    await test_db.commit()

    assert (await _reload(test_db, a.id)).payment_status == "cancelled"
    assert (await _reload(test_db, b.id)).companion_customer_ids == []
    with pytest.raises(BookingRuleError):
        await set_companions(test_db, await _reload(test_db, c.id), [alice.id])


async def test_delete_booking_unlinks_partners(test_db, users):
    trip = await make_trip(test_db)
    alice = await make_customer(test_db, "Alice")
    bob = await make_customer(test_db, "Bob")
    a = await _book(test_db, alice, trip)
    b = await _book(test_db, bob, trip, companions=[alice.id])

    await delete_booking(test_db, await _reload(test_db, b.id))
    await test_db.commit()

    assert (await _reload(test_db, a.id)).companion_customer_ids == []


# ==============================================================================
# Payments & commissions
# ==============================================================================


async def test_full_payment_earns_one_commission(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    customer = await make_customer(test_db)
    booking = await _book(test_db, customer, trip, sales_user_id=users["sales"].id)

    await record_payment(test_db, booking.id, Decimal("5000"))
    await test_db.commit()
    assert await _commission_rows(test_db, booking.id) == []

    await record_payment(test_db, booking.id, Decimal("5000"))
    await test_db.commit()

    booking = await _reload(test_db, booking.id)
    assert booking.payment_status == "fully_paid"
    rows = await _commission_rows(test_db, booking.id)
    assert rows == [(users["sales"].id, Decimal("500.00"), "earned")]

    # Re-deriving never creates a second record
    await update_commission_status(test_db, booking)
    await test_db.commit()
    assert len(await _commission_rows(test_db, booking.id)) == 1


async def test_cancel_voids_and_reinstate_re_earns_commission(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    customer = await make_customer(test_db)
    booking = await _book(
        test_db, customer, trip,
        sales_user_id=users["sales"].id,
        first_payment_ratio="first_payment_100",
        first_payment=Decimal("10000"),
    )

    await update_booking(test_db, await _reload(test_db, booking.id), {}, payment_status="cancelled")
    await test_db.commit()
    assert [r.status for r in await _commission_rows(test_db, booking.id)] == ["void"]

    await update_booking(test_db, await _reload(test_db, booking.id), {}, reinstate=True)
    await test_db.commit()

    assert (await _reload(test_db, booking.id)).payment_status == "fully_paid"
    assert [r.status for r in await _commission_rows(test_db, booking.id)] == ["earned"]


async def test_no_commission_without_sales_user(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    customer = await make_customer(test_db)
    booking = await _book(
        test_db, customer, trip,
        first_payment_ratio="first_payment_100",
        first_payment=Decimal("10000"),
    )

    assert (await _reload(test_db, booking.id)).payment_status == "fully_paid"
    assert await _commission_rows(test_db, booking.id) == []


async def test_sales_user_change_reassigns_commission(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    customer = await make_customer(test_db)
    booking = await _book(
        test_db, customer, trip,
        sales_user_id=users["sales"].id,
        first_payment_ratio="first_payment_100",
        first_payment=Decimal("10000"),
    )

    await update_booking(
        test_db, await _reload(test_db, booking.id), {"sales_user_id": users["sales2"].id},
    )
    await test_db.commit()

    assert await _commission_rows(test_db, booking.id) == [
        (users["sales2"].id, Decimal("300.00"), "earned"),
    ]


async def test_total_cannot_drop_below_amount_paid(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    customer = await make_customer(test_db)
    booking = await _book(
        test_db, customer, trip,
        first_payment_ratio="first_payment_100",
        first_payment=Decimal("10000"),
    )

    with pytest.raises(BookingRuleError, match="below the amount already paid"):
        await update_booking(
            test_db, await _reload(test_db, booking.id), {"discount_price": Decimal("500")},
        )


async def test_trip_price_change_does_not_touch_existing_booking(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    customer = await make_customer(test_db)
    booking = await _book(
        test_db, customer, trip,
        sales_user_id=users["sales"].id,
        first_payment_ratio="first_payment_100",
        first_payment=Decimal("10000"),
    )

    for new_price in (Decimal("12000"), Decimal("8000")):
        trip.standard_price = new_price
        await test_db.commit()

        await update_booking(test_db, await _reload(test_db, booking.id), {"note": "window seat"})
        await test_db.commit()

        booking = await _reload(test_db, booking.id)
        assert booking.base_price == Decimal("10000.00")
        assert booking.total_amount == Decimal("10000.00")
        assert booking.payment_status == "fully_paid"
        assert [r.status for r in await _commission_rows(test_db, booking.id)] == ["earned"]


async def test_add_on_change_reprices_from_stored_base(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    other_trip = await make_trip(test_db, standard_price=Decimal("15000"))
    customer = await make_customer(test_db)
    booking = await _book(test_db, customer, trip)

    trip.standard_price = Decimal("12000")
    await test_db.commit()

    await update_booking(
        test_db, await _reload(test_db, booking.id), {"extra_price_per_bag": Decimal("500")},
    )
    await test_db.commit()
    assert (await _reload(test_db, booking.id)).total_amount == Decimal("10500.00")

    # Moving to another trip takes that trip's current price
    await update_booking(test_db, await _reload(test_db, booking.id), {"trip_id": other_trip.id})
    await test_db.commit()

    booking = await _reload(test_db, booking.id)
    assert booking.base_price == Decimal("15000.00")
    assert booking.total_amount == Decimal("15500.00")


async def test_null_extra_bed_rejected(test_db, users):
    trip = await make_trip(test_db)
    customer = await make_customer(test_db)
    booking = await _book(test_db, customer, trip)

    with pytest.raises(BookingRuleError, match="extra_bed cannot be empty"):
        await update_booking(test_db, await _reload(test_db, booking.id), {"extra_bed": None})


async def test_ratio_locked_after_first_payment(test_db, users):
    trip = await make_trip(test_db)
    customer = await make_customer(test_db)
    booking = await _book(test_db, customer, trip, first_payment=Decimal("5000"))

    with pytest.raises(BookingRuleError, match="cannot change"):
        await update_booking(
            test_db, await _reload(test_db, booking.id), {"first_payment_ratio": "first_payment_30"},
        )


async def test_payment_on_cancelled_booking_rejected(test_db, users):
    trip = await make_trip(test_db)
    customer = await make_customer(test_db)
    booking = await _book(test_db, customer, trip)
    await update_booking(test_db, await _reload(test_db, booking.id), {}, payment_status="cancelled")
    await test_db.commit()

    with pytest.raises(BookingRuleError, match="cancelled booking"):
        await record_payment(test_db, booking.id, Decimal("5000"))


def test_payment_lookup_locks_booking_row():
    sql = str(booking_query(1, for_update=True).compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE OF bookings" in sql

    sql = str(booking_query(1, refresh=True).compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" not in sql


async def test_payment_method_defaults_to_other(test_db, users):
    trip = await make_trip(test_db)
    customer = await make_customer(test_db)
    booking = await _book(test_db, customer, trip, first_payment=Decimal("5000"))

    await record_payment(test_db, booking.id, Decimal("2000"), method="credit_card")
    await test_db.commit()

    booking = await _reload(test_db, booking.id)
    assert [p.method for p in booking.payments] == ["other", "credit_card"]


# ==============================================================================
# Lead sync
# ==============================================================================


async def test_booking_moves_lead_to_booked_then_cancelled(test_db, users):
    trip = await make_trip(test_db)
    customer = await make_customer(test_db)
    lead = await make_lead(test_db, customer, users["sales"])

    booking = await _book(test_db, customer, trip, lead_id=lead.id)
    assert await _lead_status(test_db, lead.id) == "booked"

    await update_booking(test_db, await _reload(test_db, booking.id), {}, payment_status="cancelled")
    await test_db.commit()
    assert await _lead_status(test_db, lead.id) == "cancelled"


async def test_fully_paid_booking_on_ended_trip_completes_lead(test_db, users):
    trip = await make_trip(test_db, start_in_days=-10, length_days=5)
    customer = await make_customer(test_db)
    lead = await make_lead(test_db, customer, users["sales"])

    await _book(
        test_db, customer, trip,
        lead_id=lead.id,
        first_payment_ratio="first_payment_100",
        first_payment=trip.standard_price,
    )

    assert await _lead_status(test_db, lead.id) == "completed"


async def test_daily_job_completes_lead_once_trip_ends(test_db, users):
    trip = await make_trip(test_db, start_in_days=5, length_days=3)
    paid = await make_customer(test_db)
    deposit = await make_customer(test_db)
    paid_lead = await make_lead(test_db, paid, users["sales"])
    deposit_lead = await make_lead(test_db, deposit, users["sales"])

    await _book(
        test_db, paid, trip,
        lead_id=paid_lead.id,
        first_payment_ratio="first_payment_100",
        first_payment=trip.standard_price,
    )
    await _book(test_db, deposit, trip, lead_id=deposit_lead.id, first_payment=Decimal("5000"))
    assert await _lead_status(test_db, paid_lead.id) == "booked"

    # Before the trip ends nothing moves
    assert await complete_finished_leads(test_db, today=trip.end_date) == 0

    counts = await run_daily_alerts(test_db, today=trip.end_date + timedelta(days=1))
    assert counts["completed_leads"] == 1
    assert await _lead_status(test_db, paid_lead.id) == "completed"
    assert await _lead_status(test_db, deposit_lead.id) == "booked"


async def test_lead_without_bookings_keeps_status(test_db, users):
    customer = await make_customer(test_db)
    lead = await make_lead(test_db, customer, users["sales"])

    assert await sync_lead_from_bookings(test_db, lead.id) == "interested"


async def test_cancel_abandoned_leads_only_touches_stale_interested(test_db, users):
    customer = await make_customer(test_db)
    stale = await make_lead(test_db, customer, users["sales"])
    fresh = await make_lead(test_db, customer, users["sales"])
    stale_booked = await make_lead(test_db, customer, users["sales"], status="booked")
    await test_db.execute(
        update(Lead)
        .where(Lead.id.in_([stale.id, stale_booked.id]))
        .values(updated_at=utcnow() - timedelta(days=45))
    )
    await test_db.commit()

    assert await cancel_abandoned_leads(test_db, 30) == 1
    await test_db.commit()

    assert await _lead_status(test_db, stale.id) == "cancelled"
    assert await _lead_status(test_db, fresh.id) == "interested"
    assert await _lead_status(test_db, stale_booked.id) == "booked"

    count = (await test_db.execute(select(func.count()).select_from(Lead))).scalar_one()
    assert count == 3
