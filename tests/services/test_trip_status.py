"""Trip Status - derived from dates, capacity and active bookings."""

from datetime import date

import pytest

from app.services.trip_status import derive_trip_status

TODAY = date(2026, 10, 18)


@pytest.mark.parametrize(
    "start, end, pax, booked, expected",
    [
        (date(2026, 11, 1), date(2026, 11, 6), 10, 3, "upcoming"),
        (date(2026, 11, 1), date(2026, 11, 6), 10, 10, "sold_out"),
        (date(2026, 11, 1), date(2026, 11, 6), 0, 25, "upcoming"),
        (date(2026, 10, 15), date(2026, 10, 20), 10, 4, "on_trip"),
        (date(2026, 10, 18), date(2026, 10, 18), 10, 4, "on_trip"),
        (date(2026, 10, 1), date(2026, 10, 6), 10, 4, "completed"),
        (date(2026, 10, 1), date(2026, 10, 6), 10, 0, "cancelled"),
        (date(2026, 10, 15), date(2026, 10, 20), 10, 0, "cancelled"),
    ],
)
def test_derive_trip_status(start, end, pax, booked, expected):
    assert derive_trip_status(start, end, pax, booked, TODAY) == expected


def test_upcoming_trip_without_bookings_is_not_cancelled():
    assert derive_trip_status(date(2026, 12, 1), date(2026, 12, 5), 10, 0, TODAY) == "upcoming"
