"""Booking Alerts - daily passport / departure alerts and their de-duplication.

Tests cover:
    - passports expiring within the window notify the customer's sales user
    - departures within the window notify sales users of paid bookings only
    - a second run sends nothing new
    - add_months clamps to the end of the month
"""

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select

from app.models.notification import Notification
from app.services.booking_alerts import add_months, run_daily_alerts
from app.services.booking_service import create_booking
from tests.factories import make_customer, make_lead, make_passport, make_trip


async def _notifications(db, type):
    result = await db.execute(
        select(Notification.user_id, Notification.entity_id)
        .where(Notification.type == type)
        .order_by(Notification.id)
    )
    return result.all()


def test_add_months_clamps_day():
    assert add_months(date(2026, 8, 31), 6) == date(2027, 2, 28)
    assert add_months(date(2026, 1, 15), 1) == date(2026, 2, 15)


async def test_expiring_passport_notifies_sales_user_once(test_db, users):
    today = date.today()
    customer = await make_customer(test_db)
    await make_lead(test_db, customer, users["sales"])
    expiring = await make_passport(test_db, customer, today + timedelta(days=60))
    await make_passport(test_db, customer, today + timedelta(days=900))

    counts = await run_daily_alerts(test_db, today=today)
    assert counts["passport_alerts"] == 1
    assert await _notifications(test_db, "passport_expiry") == [
        (users["sales"].id, str(expiring.id)),
    ]

    again = await run_daily_alerts(test_db, today=today)
    assert again["passport_alerts"] == 0


async def test_passport_without_sales_user_is_skipped(test_db, users):
    today = date.today()
    customer = await make_customer(test_db)
    await make_passport(test_db, customer, today + timedelta(days=30))

    counts = await run_daily_alerts(test_db, today=today)
    assert counts["passport_alerts"] == 0


async def test_departure_alert_only_for_paid_bookings(test_db, users):
    today = date.today()
    trip = await make_trip(test_db, standard_price=Decimal("10000"), start_in_days=3)
    paid_customer = await make_customer(test_db)
    unpaid_customer = await make_customer(test_db)

    paid = await create_booking(
        test_db,
        {"customer_id": paid_customer.id, "trip_id": trip.id, "sales_user_id": users["sales"].id},
        first_payment={"amount": Decimal("5000")},
    )
    await create_booking(
        test_db,
        {"customer_id": unpaid_customer.id, "trip_id": trip.id, "sales_user_id": users["sales2"].id},
    )
    await test_db.commit()

    counts = await run_daily_alerts(test_db, today=today)
    assert counts["trip_alerts"] == 1
    assert await _notifications(test_db, "trip_departure") == [
        (users["sales"].id, str(paid.id)),
    ]

    again = await run_daily_alerts(test_db, today=today)
    assert again["trip_alerts"] == 0


async def test_far_departure_not_alerted(test_db, users):
    trip = await make_trip(test_db, standard_price=Decimal("10000"), start_in_days=30)
    customer = await make_customer(test_db)
    await create_booking(
        test_db,
        {"customer_id": customer.id, "trip_id": trip.id, "sales_user_id": users["sales"].id},
        first_payment={"amount": Decimal("5000")},
    )
    await test_db.commit()

    counts = await run_daily_alerts(test_db, today=date.today())
    assert counts == {
        "passport_alerts": 0, "trip_alerts": 0, "abandoned_leads": 0, "completed_leads": 0,
    }
