"""
Family model - a household grouping customers who usually travel together.
"""

from typing import Optional, List, TYPE_CHECKING

from sqlalchemy import BigInteger, Column, ForeignKey, String, Table, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, EntityBase

if TYPE_CHECKING:
    from app.models.customer import Customer


family_customers = Table(
    "family_customers",
    Base.metadata,
    Column("family_id", BigInteger, ForeignKey("families.id", ondelete="CASCADE"), primary_key=True),
    Column("customer_id", BigInteger, ForeignKey("customers.id", ondelete="CASCADE"), primary_key=True),
)


class Family(EntityBase):
    """
    A named group of customers with one shared contact point.
    """

    __tablename__ = "families"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Contact
    phone_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    line_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    customers: Mapped[List["Customer"]] = relationship(
        "Customer", secondary=family_customers, order_by="Customer.first_name_en"
    )

    def __repr__(self) -> str:
        return f"<Family(id={self.id}, name='{self.name}')>"
