"""
Booking, BookingCompanion and Payment models.
A booking is one customer's seat on a trip; up to three installments pay it off.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import (
    BigInteger, Boolean, DateTime, DECIMAL, Enum as SQLEnum, ForeignKey, Integer,
    String, Text, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, EntityBase, utcnow

if TYPE_CHECKING:
    from app.models.commission import Commission
    from app.models.customer import Customer, Passport
    from app.models.lead import Lead
    from app.models.trip import Trip
    from app.models.user import User

PAYMENT_STATUSES = ("deposit_pending", "deposit_paid", "fully_paid", "cancelled")
FIRST_PAYMENT_RATIOS = ("first_payment_100", "first_payment_50", "first_payment_30")
ROOM_TYPES = ("double_bed", "twin_bed")
SEAT_TYPES = ("window", "middle", "aisle")
MAX_INSTALLMENTS = 3
PAYMENT_METHODS = ("cash", "bank_transfer", "credit_card", "other")


class Booking(EntityBase):
    """
    A customer's reservation on a trip, with pricing, room/seat preferences,
    and payment state.
    """

    __tablename__ = "bookings"
    __table_args__ = (
        UniqueConstraint("trip_id", "customer_id", name="uq_bookings_trip_customer"),
    )

    customer_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    trip_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("trips.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    sales_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    passport_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("passports.id", ondelete="SET NULL"),
        nullable=True,
    )
    lead_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("leads.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Add-ons ──────────────────────────────────────────────────────────
    extra_price_for_single_traveller: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(12, 2), nullable=True)

    room_type: Mapped[Optional[str]] = mapped_column(
        SQLEnum(*ROOM_TYPES, name="room_type_enum"),
        nullable=True,
    )
    extra_bed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    extra_price_per_bed: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(12, 2), nullable=True)
    room_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    seat_type: Mapped[Optional[str]] = mapped_column(
        SQLEnum(*SEAT_TYPES, name="seat_type_enum"),
        nullable=True,
    )
    seat_class: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    extra_price_per_seat: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(12, 2), nullable=True)
    seat_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    extra_price_per_bag: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(12, 2), nullable=True)
    bag_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    discount_price: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(12, 2), nullable=True)
    discount_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ── Payment state ────────────────────────────────────────────────────
    # Trip price when the booking was last priced; later trip price changes do not apply
    base_price: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), default=Decimal("0"), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), default=Decimal("0"), nullable=False)
    payment_status: Mapped[str] = mapped_column(
        SQLEnum(*PAYMENT_STATUSES, name="payment_status_enum"),
        default="deposit_pending",
        nullable=False,
        index=True,
    )
    first_payment_ratio: Mapped[str] = mapped_column(
        SQLEnum(*FIRST_PAYMENT_RATIOS, name="first_payment_ratio_enum"),
        default="first_payment_50",
        nullable=False,
    )

    # Relationships
    customer: Mapped["Customer"] = relationship("Customer")
    trip: Mapped["Trip"] = relationship("Trip", back_populates="bookings")
    sales_user: Mapped[Optional["User"]] = relationship("User")
    passport: Mapped[Optional["Passport"]] = relationship("Passport")
    lead: Mapped[Optional["Lead"]] = relationship("Lead", back_populates="bookings")
    companions: Mapped[List["BookingCompanion"]] = relationship(
        "BookingCompanion",
        back_populates="booking",
        cascade="all, delete-orphan",
    )
    payments: Mapped[List["Payment"]] = relationship(
        "Payment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Payment.installment",
    )
    commission: Mapped[Optional["Commission"]] = relationship(
        "Commission",
        back_populates="booking",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, trip_id={self.trip_id}, customer_id={self.customer_id}, "
            f"payment_status='{self.payment_status}')>"
        )

    @property
    def companion_customer_ids(self) -> list[int]:
        return sorted(c.customer_id for c in self.companions)

    @property
    def paid_amount(self) -> Decimal:
        return sum((p.amount for p in self.payments), Decimal("0"))

    def installment(self, number: int) -> Optional["Payment"]:
        for payment in self.payments:
            if payment.installment == number:
                return payment
        return None


class BookingCompanion(Base):
    """
    Companion link: the customer travels together with the booking's customer.
    Kept symmetric across bookings of the same trip by the companion linker.
    """

    __tablename__ = "booking_companions"

    booking_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        primary_key=True,
    )
    customer_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="CASCADE"),
        primary_key=True,
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="companions")
    customer: Mapped["Customer"] = relationship("Customer")

    def __repr__(self) -> str:
        return f"<BookingCompanion(booking_id={self.booking_id}, customer_id={self.customer_id})>"


class Payment(EntityBase):
    """
    One installment (1 = first, 2 = second, 3 = third) paid on a booking.
    """

    __tablename__ = "payments"
    __table_args__ = (
        UniqueConstraint("booking_id", "installment", name="uq_payments_booking_installment"),
        CheckConstraint("installment BETWEEN 1 AND 3", name="ck_payments_installment"),
    )

    booking_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    installment: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), nullable=False)
    method: Mapped[str] = mapped_column(
        SQLEnum(*PAYMENT_METHODS, name="payment_method_enum"),
        default="other",
        nullable=False,
    )
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    proof_of_payment: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, booking_id={self.booking_id}, installment={self.installment}, amount={self.amount})>"
