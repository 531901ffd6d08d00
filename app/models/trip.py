"""
Trip models - the departures the agency sells.
Includes Trip and the AirlineAndAirport catalog it flies with.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import BigInteger, String, Date, Integer, DECIMAL, ForeignKey, Enum as SQLEnum, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import EntityBase

if TYPE_CHECKING:
    from app.models.booking import Booking


class AirlineAndAirport(EntityBase):
    """
    An airline / departure airport pair referenced by trips (e.g. "TG-BKK").
    """

    __tablename__ = "airline_and_airports"

    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    def __repr__(self) -> str:
        return f"<AirlineAndAirport(id={self.id}, code='{self.code}')>"


class Trip(EntityBase):
    """
    A dated departure:
    - group_tour: fixed departure sold seat by seat
    - private_tour: departure organised for a single party
    """

    __tablename__ = "trips"

    type: Mapped[str] = mapped_column(
        SQLEnum("group_tour", "private_tour", name="trip_type_enum"),
        default="group_tour",
        nullable=False,
    )

    # Identity
    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Dates
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Capacity: pax sold seats, foc free-of-charge seats
    pax: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    foc: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    # Crew (tour leader, tour guide, other staff)
    tl: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tg: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    staff: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Pricing
    standard_price: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), default=Decimal("0"), nullable=False)
    extra_price_per_person: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), default=Decimal("0"), nullable=False)

    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    airline_and_airport_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("airline_and_airports.id", ondelete="SET NULL"),
        nullable=True,
    )

    # Relationships
    airline_and_airport: Mapped[Optional["AirlineAndAirport"]] = relationship("AirlineAndAirport")
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking", back_populates="trip", lazy="raise", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, code='{self.code}', name='{self.name}')>"
