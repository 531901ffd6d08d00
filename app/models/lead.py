"""
Lead model - sales pipeline entries before (and while) a customer books.
"""

import uuid
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import BigInteger, String, Integer, Text, ForeignKey, Enum as SQLEnum
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import EntityBase

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.user import User
    from app.models.booking import Booking

LEAD_STATUSES = ("interested", "booked", "completed", "cancelled")
LEAD_SOURCES = ("facebook", "youtube", "tiktok", "friend")


class Lead(EntityBase):
    """
    A sales lead owned by a sales user.
    Status moves interested -> booked -> completed, or to cancelled.
    booked/completed are driven by the lead's bookings.
    """

    __tablename__ = "leads"

    customer_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sales_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    source: Mapped[str] = mapped_column(
        SQLEnum(*LEAD_SOURCES, name="lead_source_enum"),
        default="facebook",
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        SQLEnum(*LEAD_STATUSES, name="lead_status_enum"),
        default="interested",
        nullable=False,
    )

    trip_interest: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pax: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    lead_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    source_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    customer: Mapped["Customer"] = relationship("Customer")
    sales_user: Mapped[Optional["User"]] = relationship("User")
    bookings: Mapped[List["Booking"]] = relationship(
        "Booking", back_populates="lead", lazy="raise", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, customer_id={self.customer_id}, status='{self.status}')>"
