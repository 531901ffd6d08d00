"""
Customer and Passport models.
Customers carry Thai and English names; passports are tracked for expiry alerts.
"""

from datetime import date
from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, Column, Date, Enum as SQLEnum, ForeignKey, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, EntityBase

if TYPE_CHECKING:
    from app.models.tag import Tag


CUSTOMER_TITLES = ("mr", "mrs", "miss", "master", "other")


customer_tags = Table(
    "customer_tags",
    Base.metadata,
    Column("customer_id", BigInteger, ForeignKey("customers.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", BigInteger, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class Customer(EntityBase):
    """
    A traveller (or prospect) known to the agency.
    """

    __tablename__ = "customers"

    # Names
    title: Mapped[Optional[str]] = mapped_column(
        SQLEnum(*CUSTOMER_TITLES, name="customer_title_enum"), nullable=True
    )
    first_name_th: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name_th: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name_en: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name_en: Mapped[str] = mapped_column(String(255), nullable=False)
    nickname: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Contact
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True, index=True)
    line_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    date_of_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    tags: Mapped[List["Tag"]] = relationship("Tag", secondary=customer_tags)
    passports: Mapped[List["Passport"]] = relationship(
        "Passport",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="Passport.expiry_date",
    )

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name='{self.display_name}')>"

    @property
    def display_name(self) -> str:
        """Thai name when both parts are set, English name otherwise."""
        if self.first_name_th and self.last_name_th:
            return f"{self.first_name_th} {self.last_name_th}"
        return f"{self.first_name_en} {self.last_name_en}"

    @property
    def name_en(self) -> str:
        return f"{self.first_name_en} {self.last_name_en}"


class Passport(EntityBase):
    """
    A passport held by a customer. At most one is primary per customer.
    """

    __tablename__ = "passports"

    customer_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    passport_number: Mapped[str] = mapped_column(String(50), nullable=False)
    issuing_country: Mapped[str] = mapped_column(String(100), nullable=False)
    issue_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    customer: Mapped["Customer"] = relationship("Customer", back_populates="passports")

    def __repr__(self) -> str:
        return f"<Passport(id={self.id}, number='{self.passport_number}', expiry={self.expiry_date})>"
