"""
Staff user management.
Listing and editing need admin; creating and deleting need super admin.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Literal

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy import select

from app.api.auth import get_password_hash
from app.api.deps import AdminUser, CurrentUser, DbSession, SuperAdminUser
from app.models.user import User

logger = logging.getLogger(__name__)
router = APIRouter()

Role = Literal["super_admin", "admin", "sales", "staff"]


# ============================================================================
# Schemas
# ============================================================================

class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Role = "sales"
    commission_per_head: Optional[Decimal] = Field(None, ge=0)


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=8)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[Role] = None
    commission_per_head: Optional[Decimal] = Field(None, ge=0)
    is_active: Optional[bool] = None


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    name: str
    phone: Optional[str] = None
    role: str
    commission_per_head: Optional[Decimal] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SalesUserResponse(BaseModel):
    id: uuid.UUID
    name: str
    email: str
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Helpers
# ============================================================================

async def _get_user_or_404(db, user_id: uuid.UUID) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return user


async def _ensure_email_free(db, email: str, exclude_id: Optional[uuid.UUID] = None) -> None:
    query = select(User.id).where(User.email == email)
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists",
        )


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=List[UserResponse])
async def list_users(db: DbSession, user: AdminUser):
    result = await db.execute(select(User).order_by(User.created_at.desc()))
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.get("/sales", response_model=List[SalesUserResponse])
async def list_sales_users(db: DbSession, user: CurrentUser):
    """Active sales users, for assignment pickers."""
    result = await db.execute(
        select(User)
        .where(User.role == "sales", User.is_active == True)  # noqa: E712
        .order_by(User.first_name, User.email)
    )
    return [SalesUserResponse.model_validate(u) for u in result.scalars().all()]


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: uuid.UUID, db: DbSession, user: AdminUser):
    return UserResponse.model_validate(await _get_user_or_404(db, user_id))


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(data: UserCreate, db: DbSession, user: SuperAdminUser):
    await _ensure_email_free(db, data.email)

    new_user = User(
        email=data.email,
        password_hash=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone=data.phone,
        role=data.role,
        commission_per_head=data.commission_per_head,
        is_active=True,
    )
    db.add(new_user)
    await db.commit()

    logger.info("User %s created with role %s by %s", new_user.email, new_user.role, user.email)
    return UserResponse.model_validate(new_user)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: uuid.UUID, data: UserUpdate, db: DbSession, user: AdminUser):
    """
    Update a user. Only a super admin can grant or change the super_admin role.
    """
    target = await _get_user_or_404(db, user_id)
    changes = data.model_dump(exclude_unset=True)

    if not user.is_super_admin and (
        target.is_super_admin or changes.get("role") == "super_admin"
    ):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only a super admin can manage super admin accounts",
        )

    if changes.get("email") and changes["email"] != target.email:
        await _ensure_email_free(db, changes["email"], exclude_id=target.id)

    password = changes.pop("password", None)
    if password:
        target.password_hash = get_password_hash(password)

    for field, value in changes.items():
        setattr(target, field, value)

    await db.commit()
    return UserResponse.model_validate(target)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: uuid.UUID, db: DbSession, user: SuperAdminUser):
    """
    Deactivate a user. Their bookings, leads and commissions stay for reporting.
    """
    target = await _get_user_or_404(db, user_id)
    if target.id == user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account",
        )

    target.is_active = False
    await db.commit()
    logger.info("User %s deactivated by %s", target.email, user.email)
