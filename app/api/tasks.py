"""
Task endpoints. Tasks belong to the current user.
"""

import logging
from datetime import datetime
from typing import Optional, Literal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select

from app.api.deps import CurrentUser, DbSession
from app.api.pagination import Page, paginate, total_pages
from app.models.customer import Customer
from app.models.task import Task
from app.services.notification_service import notify_user

logger = logging.getLogger(__name__)
router = APIRouter()

Priority = Literal["low", "medium", "high"]


# Schemas
class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: datetime
    priority: Priority = "medium"
    related_customer_id: Optional[int] = None


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    priority: Optional[Priority] = None
    related_customer_id: Optional[int] = None
    is_completed: Optional[bool] = None


class TaskResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    due_date: datetime
    priority: str
    is_completed: bool
    related_customer_id: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Helpers
async def _get_own_task_or_404(db, task_id: int, user) -> Task:
    task = await db.get(Task, task_id)
    if not task or task.agent_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Task not found",
        )
    return task


async def _ensure_customer(db, customer_id: Optional[int]) -> None:
    if customer_id is not None and not await db.get(Customer, customer_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        )


# Endpoints
@router.get("", response_model=Page[TaskResponse])
async def list_tasks(
    db: DbSession,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    customer_id: Optional[int] = None,
    is_completed: Optional[bool] = None,
):
    """The current user's tasks, soonest due first."""
    query = select(Task).where(Task.agent_id == user.id)
    if customer_id:
        query = query.where(Task.related_customer_id == customer_id)
    if is_completed is not None:
        query = query.where(Task.is_completed == is_completed)

    query = query.order_by(Task.due_date, Task.id)
    tasks, total = await paginate(db, query, page, page_size)

    return Page[TaskResponse](
        data=[TaskResponse.model_validate(t) for t in tasks],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(data: TaskCreate, db: DbSession, user: CurrentUser):
    """Create a task for the current user and notify them."""
    await _ensure_customer(db, data.related_customer_id)

    task = Task(agent_id=user.id, **data.model_dump())
    db.add(task)
    await db.flush()

    try:
        await notify_user(
            db=db,
            user_id=user.id,
            type="task_created",
            title="New task created",
            message=f'Task "{task.title}" has been created.',
            link=f"/customers/{task.related_customer_id}?tab=tasks" if task.related_customer_id else "/tasks",
            entity_id=str(task.id),
        )
    except Exception as e:
        logger.warning("Failed to send task_created notification: %s", e)

    await db.commit()
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: int, db: DbSession, user: CurrentUser):
    return TaskResponse.model_validate(await _get_own_task_or_404(db, task_id, user))


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(task_id: int, data: TaskUpdate, db: DbSession, user: CurrentUser):
    task = await _get_own_task_or_404(db, task_id, user)
    changes = data.model_dump(exclude_unset=True)

    if "related_customer_id" in changes:
        await _ensure_customer(db, changes["related_customer_id"])

    for field, value in changes.items():
        if field in ("title", "due_date", "priority", "is_completed") and value is None:
            continue
        setattr(task, field, value)

    await db.commit()
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: int, db: DbSession, user: CurrentUser):
    task = await _get_own_task_or_404(db, task_id, user)
    await db.delete(task)
    await db.commit()
