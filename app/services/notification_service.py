"""
Notification service.

Helpers to create in-app notifications for a user, with optional
de-duplication on the record the notification is about.
"""

import logging
import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.notification import Notification

logger = logging.getLogger(__name__)


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    type: str,
    title: str,
    message: Optional[str] = None,
    link: Optional[str] = None,
    entity_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> Notification:
    """
    Create a single in-app notification for a user.

    Args:
        db: Async SQLAlchemy session.
        user_id: Recipient user UUID.
        type: Notification type (e.g. "passport_expiry", "task_assigned").
        title: Short notification title.
        message: Optional longer description.
        link: Optional in-app link for the notification.
        entity_id: Id of the record the notification is about (dedup key).
        metadata: Optional JSON metadata (trip_id, booking_id, etc.).

    Returns:
        The created Notification instance (already flushed with an id).
    """
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        entity_id=entity_id,
        metadata_json=metadata,
        is_read=False,
    )
    db.add(notification)
    await db.flush()

    logger.info(
        "Notification created: type=%s user_id=%s title=%s",
        type,
        user_id,
        title,
    )
    return notification


async def notify_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    type: str,
    title: str,
    message: Optional[str] = None,
    link: Optional[str] = None,
    entity_id: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> Notification:
    """
    Send an in-app notification to a single user.

    This is a convenience alias for :func:`create_notification`.
    """
    return await create_notification(
        db=db,
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        link=link,
        entity_id=entity_id,
        metadata=metadata,
    )


async def already_notified(
    db: AsyncSession,
    type: str,
    entity_id: str,
    within_days: Optional[int] = None,
) -> bool:
    """
    True if a notification of this type about this entity exists,
    optionally only counting the last `within_days` days.
    """
    stmt = (
        select(func.count())
        .select_from(Notification)
        .where(Notification.type == type, Notification.entity_id == entity_id)
    )
    if within_days is not None:
        stmt = stmt.where(Notification.created_at >= utcnow() - timedelta(days=within_days))
    result = await db.execute(stmt)
    return result.scalar_one() > 0
