"""
Authentication endpoints.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, HTTPException, status
from jose import jwt
from passlib.context import CryptContext
from pydantic import BaseModel, EmailStr
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.config import get_settings
from app.api.deps import DbSession, CurrentUser
from app.models.booking import Booking
from app.models.commission import Commission
from app.models.user import User

logger = logging.getLogger(__name__)
router = APIRouter()
settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# Schemas
class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict


class UserInfo(BaseModel):
    id: uuid.UUID
    email: str
    name: str
    role: str
    commission_per_head: Optional[Decimal] = None


class MyCommissionBooking(BaseModel):
    id: int
    customer_name: str
    trip_name: str
    trip_code: str
    total_amount: Decimal
    paid_amount: Decimal
    commission: Decimal
    created_at: datetime


class MyCommissionResponse(BaseModel):
    commission_rate: Decimal
    total_sales: Decimal
    total_commission: Decimal
    total_bookings: int
    bookings: List[MyCommissionBooking]


# Helpers
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user_id: uuid.UUID, expires_delta: timedelta | None = None) -> str:
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": str(user_id),
        "exp": expire,
    }
    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt


# Endpoints
@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, db: DbSession):
    """
    Authenticate user and return JWT token.
    """
    result = await db.execute(
        select(User).where(User.email == request.email, User.is_active == True)  # noqa: E712
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(request.password, user.password_hash):
        logger.info("Failed login for %s", request.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    access_token = create_access_token(user.id)

    return LoginResponse(
        access_token=access_token,
        expires_in=settings.access_token_expire_minutes * 60,
        user={
            "id": str(user.id),
            "email": user.email,
            "name": user.name,
            "role": user.role,
        },
    )


@router.get("/me", response_model=UserInfo)
async def get_current_user_info(user: CurrentUser):
    """
    Get current authenticated user info.
    """
    return UserInfo(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        commission_per_head=user.commission_per_head,
    )


@router.get("/my-commission", response_model=MyCommissionResponse)
async def get_my_commission(db: DbSession, user: CurrentUser):
    """
    Commission summary of the current user: rate, sales on commissioned
    bookings, earned commission and the bookings behind it.
    """
    result = await db.execute(
        select(Commission)
        .where(Commission.agent_id == user.id, Commission.status == "earned")
        .options(
            selectinload(Commission.booking).selectinload(Booking.trip),
            selectinload(Commission.booking).selectinload(Booking.customer),
            selectinload(Commission.booking).selectinload(Booking.payments),
        )
        .order_by(Commission.created_at.desc())
    )
    commissions = result.scalars().all()

    bookings = []
    total_sales = Decimal("0")
    total_commission = Decimal("0")
    for commission in commissions:
        booking = commission.booking
        paid = booking.paid_amount
        total_sales += paid
        total_commission += commission.amount
        bookings.append(MyCommissionBooking(
            id=booking.id,
            customer_name=booking.customer.display_name,
            trip_name=booking.trip.name,
            trip_code=booking.trip.code,
            total_amount=booking.total_amount,
            paid_amount=paid,
            commission=commission.amount,
            created_at=commission.created_at,
        ))

    return MyCommissionResponse(
        commission_rate=user.commission_per_head or Decimal("0"),
        total_sales=total_sales,
        total_commission=total_commission,
        total_bookings=len(bookings),
        bookings=bookings,
    )
