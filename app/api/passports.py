"""
Passport endpoints. A customer has at most one primary passport.
"""

import logging
from datetime import date, datetime
from typing import Optional, List

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, model_validator
from sqlalchemy import select, update

from app.api.deps import CurrentUser, DbSession
from app.models.customer import Customer, Passport

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class PassportCreate(BaseModel):
    customer_id: int
    passport_number: str
    issuing_country: str
    issue_date: Optional[date] = None
    expiry_date: date
    image_url: Optional[str] = None
    is_primary: bool = False

    @model_validator(mode="after")
    def check_dates(self):
        if self.issue_date and self.issue_date >= self.expiry_date:
            raise ValueError("issue_date must be before expiry_date")
        return self


class PassportUpdate(BaseModel):
    passport_number: Optional[str] = None
    issuing_country: Optional[str] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    image_url: Optional[str] = None
    is_primary: Optional[bool] = None


class PassportResponse(BaseModel):
    id: int
    customer_id: int
    passport_number: str
    issuing_country: str
    issue_date: Optional[date] = None
    expiry_date: date
    image_url: Optional[str] = None
    is_primary: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Helpers
# ============================================================================

async def _get_passport_or_404(db, passport_id: int) -> Passport:
    passport = await db.get(Passport, passport_id)
    if not passport:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Passport not found",
        )
    return passport


async def _clear_primary(db, customer_id: int, keep_id: Optional[int] = None) -> None:
    stmt = (
        update(Passport)
        .where(Passport.customer_id == customer_id, Passport.is_primary == True)  # noqa: E712
        .values(is_primary=False)
    )
    if keep_id is not None:
        stmt = stmt.where(Passport.id != keep_id)
    await db.execute(stmt.execution_options(synchronize_session="fetch"))


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=List[PassportResponse])
async def list_passports(
    db: DbSession,
    user: CurrentUser,
    customer_id: Optional[int] = None,
):
    query = select(Passport).order_by(Passport.expiry_date)
    if customer_id:
        query = query.where(Passport.customer_id == customer_id)
    result = await db.execute(query)
    return [PassportResponse.model_validate(p) for p in result.scalars().all()]


@router.get("/{passport_id}", response_model=PassportResponse)
async def get_passport(passport_id: int, db: DbSession, user: CurrentUser):
    return PassportResponse.model_validate(await _get_passport_or_404(db, passport_id))


@router.post("", response_model=PassportResponse, status_code=status.HTTP_201_CREATED)
async def create_passport(data: PassportCreate, db: DbSession, user: CurrentUser):
    """
    Add a passport. The customer's first passport is made primary.
    """
    if not await db.get(Customer, data.customer_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        )

    has_primary = (await db.execute(
        select(Passport.id).where(
            Passport.customer_id == data.customer_id,
            Passport.is_primary == True,  # noqa: E712
        )
    )).first() is not None

    passport = Passport(**data.model_dump())
    if not has_primary:
        passport.is_primary = True
    elif passport.is_primary:
        await _clear_primary(db, data.customer_id)

    db.add(passport)
    await db.commit()
    return PassportResponse.model_validate(passport)


@router.put("/{passport_id}", response_model=PassportResponse)
async def update_passport(passport_id: int, data: PassportUpdate, db: DbSession, user: CurrentUser):
    passport = await _get_passport_or_404(db, passport_id)
    changes = data.model_dump(exclude_unset=True)

    issue_date = changes.get("issue_date", passport.issue_date)
    expiry_date = changes.get("expiry_date", passport.expiry_date)
    if expiry_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="expiry_date cannot be empty",
        )
    if issue_date and issue_date >= expiry_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="issue_date must be before expiry_date",
        )

    if changes.get("is_primary"):
        await _clear_primary(db, passport.customer_id, keep_id=passport.id)

    for field, value in changes.items():
        setattr(passport, field, value)

    await db.commit()
    return PassportResponse.model_validate(passport)


@router.delete("/{passport_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_passport(passport_id: int, db: DbSession, user: CurrentUser):
    passport = await _get_passport_or_404(db, passport_id)
    await db.delete(passport)
    await db.commit()
