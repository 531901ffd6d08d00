"""
Notification endpoints. Each user only ever sees their own notifications.
"""

import logging
from datetime import datetime
from typing import Optional, List, Literal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select, update, delete, func

from app.api.deps import CurrentUser, DbSession
from app.models.notification import Notification

logger = logging.getLogger(__name__)
router = APIRouter()

NotificationType = Literal["task_created", "booking_assigned", "passport_expiry", "trip_departure"]


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class NotificationItem(BaseModel):
    id: int
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    entity_id: Optional[str] = None
    is_read: bool
    metadata_json: Optional[dict] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UnreadCountResponse(BaseModel):
    count: int


class MarkAllReadResponse(BaseModel):
    updated: int


class ClearReadResponse(BaseModel):
    deleted: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _mine(user):
    return Notification.user_id == user.id


_unread = Notification.is_read.is_(False)


async def _own_notification_or_404(db, notification_id: int, user) -> Notification:
    notification = (await db.execute(
        select(Notification).where(Notification.id == notification_id, _mine(user))
    )).scalar_one_or_none()
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return notification


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("", response_model=List[NotificationItem])
async def list_notifications(
    db: DbSession,
    user: CurrentUser,
    unread_only: bool = False,
    type: Optional[NotificationType] = None,
    limit: int = Query(50, ge=1, le=200),
):
    """Unread first, newest first within each group."""
    query = select(Notification).where(_mine(user))
    if unread_only:
        query = query.where(_unread)
    if type:
        query = query.where(Notification.type == type)

    query = query.order_by(
        Notification.is_read.asc(),
        Notification.created_at.desc(),
        Notification.id.desc(),
    ).limit(limit)

    notifications = (await db.execute(query)).scalars().all()
    return [NotificationItem.model_validate(n) for n in notifications]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(db: DbSession, user: CurrentUser):
    count = (await db.execute(
        select(func.count()).select_from(Notification).where(_mine(user), _unread)
    )).scalar_one()
    return UnreadCountResponse(count=count)


@router.patch("/{notification_id}/read", response_model=NotificationItem)
async def mark_notification_read(notification_id: int, db: DbSession, user: CurrentUser):
    notification = await _own_notification_or_404(db, notification_id, user)
    notification.is_read = True
    await db.commit()
    return NotificationItem.model_validate(notification)


@router.post("/mark-all-read", response_model=MarkAllReadResponse)
async def mark_all_read(db: DbSession, user: CurrentUser):
    result = await db.execute(
        update(Notification)
        .where(_mine(user), _unread)
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return MarkAllReadResponse(updated=result.rowcount or 0)


@router.delete("/read", response_model=ClearReadResponse)
async def clear_read(db: DbSession, user: CurrentUser):
    """Delete every notification the user has already read."""
    result = await db.execute(
        delete(Notification)
        .where(_mine(user), Notification.is_read.is_(True))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Cleared %d read notification(s) for %s", result.rowcount or 0, user.email)
    return ClearReadResponse(deleted=result.rowcount or 0)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(notification_id: int, db: DbSession, user: CurrentUser):
    notification = await _own_notification_or_404(db, notification_id, user)
    await db.delete(notification)
    await db.commit()
