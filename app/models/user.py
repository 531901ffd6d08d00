"""
User model with role-based access control.
Staff accounts: super admins, admins, sales and operations staff.
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Boolean, DECIMAL, Enum as SQLEnum, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin

USER_ROLES = ("super_admin", "admin", "sales", "staff")


class User(Base, TimestampMixin):
    """
    A back-office user.
    Sales users carry a flat commission rate paid per booked head.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # Identity
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)

    role: Mapped[str] = mapped_column(
        SQLEnum(*USER_ROLES, name="user_role"),
        default="sales",
        nullable=False,
    )

    # Flat amount credited once per fully paid booking
    commission_per_head: Mapped[Optional[Decimal]] = mapped_column(DECIMAL(12, 2), nullable=True)

    # Status
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def name(self) -> str:
        """Full name from first_name and last_name."""
        parts = [self.first_name, self.last_name]
        return " ".join(p for p in parts if p) or self.email

    @property
    def is_admin(self) -> bool:
        return self.role in ("super_admin", "admin")

    @property
    def is_super_admin(self) -> bool:
        return self.role == "super_admin"
