"""
Task and Interaction models - follow-ups and contact history with customers.
"""

import uuid
from datetime import datetime
from typing import Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, Boolean, DateTime, Enum as SQLEnum, ForeignKey, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import EntityBase

if TYPE_CHECKING:
    from app.models.customer import Customer
    from app.models.user import User

TASK_PRIORITIES = ("low", "medium", "high")
INTERACTION_TYPES = ("call", "line", "email", "meeting", "note")


class Task(EntityBase):
    """
    A to-do owned by a user, optionally about a customer.
    """

    __tablename__ = "tasks"

    agent_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    related_customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    priority: Mapped[str] = mapped_column(
        SQLEnum(*TASK_PRIORITIES, name="task_priority_enum"),
        default="medium",
        nullable=False,
    )
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    related_customer: Mapped[Optional["Customer"]] = relationship("Customer")

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title='{self.title}', completed={self.is_completed})>"


class Interaction(EntityBase):
    """
    A logged contact with a customer (call, LINE chat, meeting...).
    """

    __tablename__ = "interactions"

    customer_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    agent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    type: Mapped[str] = mapped_column(
        SQLEnum(*INTERACTION_TYPES, name="interaction_type_enum"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)

    agent: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<Interaction(id={self.id}, customer_id={self.customer_id}, type='{self.type}')>"
