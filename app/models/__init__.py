"""
SQLAlchemy models for the travel back-office.
"""

from app.models.base import Base, EntityBase, TimestampMixin
from app.models.user import User
from app.models.tag import Tag
from app.models.customer import Customer, Passport, customer_tags
from app.models.family import Family, family_customers
from app.models.trip import Trip, AirlineAndAirport
from app.models.lead import Lead
from app.models.booking import Booking, BookingCompanion, Payment
from app.models.commission import Commission
from app.models.task import Task, Interaction
from app.models.notification import Notification

__all__ = [
    "Base",
    "EntityBase",
    "TimestampMixin",
    "User",
    "Tag",
    "Customer",
    "Passport",
    "customer_tags",
    "Family",
    "family_customers",
    "Trip",
    "AirlineAndAirport",
    "Lead",
    # Bookings & payments
    "Booking",
    "BookingCompanion",
    "Payment",
    "Commission",
    # CRM
    "Task",
    "Interaction",
    "Notification",
]
