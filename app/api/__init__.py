"""
API routes package.
"""

from app.api import (
    auth,
    users,
    customers,
    families,
    passports,
    tags,
    airline_and_airports,
    trips,
    leads,
    bookings,
    payments,
    commissions,
    tasks,
    dashboard,
    notifications,
    cron,
)

__all__ = [
    "auth",
    "users",
    "customers",
    "families",
    "passports",
    "tags",
    "airline_and_airports",
    "trips",
    "leads",
    "bookings",
    "payments",
    "commissions",
    "tasks",
    "dashboard",
    "notifications",
    "cron",
]
