"""
Commission model - sales commission earned on a fully paid booking.
"""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import BigInteger, DECIMAL, Enum as SQLEnum, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import EntityBase

if TYPE_CHECKING:
    from app.models.booking import Booking
    from app.models.user import User

COMMISSION_STATUSES = ("earned", "void")


class Commission(EntityBase):
    """
    One record per booking (booking_id is unique).
    status is 'void' while the booking is not fully paid any more.
    """

    __tablename__ = "commissions"

    booking_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(DECIMAL(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        SQLEnum(*COMMISSION_STATUSES, name="commission_status_enum"),
        default="earned",
        nullable=False,
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="commission")
    agent: Mapped["User"] = relationship("User")

    def __repr__(self) -> str:
        return f"<Commission(id={self.id}, booking_id={self.booking_id}, amount={self.amount}, status='{self.status}')>"
