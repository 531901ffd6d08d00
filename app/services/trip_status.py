"""
Trip status derived from dates and active bookings. Not stored.
"""

from datetime import date
from typing import Optional

TRIP_STATUSES = ("upcoming", "sold_out", "on_trip", "completed", "cancelled")


def derive_trip_status(
    start_date: date,
    end_date: date,
    pax: int,
    active_bookings: int,
    today: Optional[date] = None,
) -> str:
    today = today or date.today()
    started = start_date <= today
    ended = end_date < today

    if started and active_bookings == 0:
        return "cancelled"
    if ended:
        return "completed"
    if started:
        return "on_trip"
    if pax > 0 and active_bookings >= pax:
        return "sold_out"
    return "upcoming"
