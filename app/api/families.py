"""
Family endpoints: households of customers sharing one contact point.
"""

import logging
from datetime import datetime
from typing import Optional, List

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select, or_
from sqlalchemy.orm import selectinload

from app.api.deps import CurrentUser, DbSession
from app.api.pagination import Page, paginate, total_pages
from app.models.customer import Customer
from app.models.family import Family

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class FamilyCreate(BaseModel):
    name: str
    phone_number: Optional[str] = None
    line_id: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None
    customer_ids: List[int] = []


class FamilyUpdate(BaseModel):
    name: Optional[str] = None
    phone_number: Optional[str] = None
    line_id: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None
    customer_ids: Optional[List[int]] = None


class FamilyMember(BaseModel):
    id: int
    display_name: str
    phone_number: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FamilyResponse(BaseModel):
    id: int
    name: str
    phone_number: Optional[str] = None
    line_id: Optional[str] = None
    email: Optional[str] = None
    note: Optional[str] = None
    customers: List[FamilyMember] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Helpers
# ============================================================================

async def _get_family_or_404(db, family_id: int, refresh: bool = False) -> Family:
    query = select(Family).where(Family.id == family_id).options(selectinload(Family.customers))
    if refresh:
        query = query.execution_options(populate_existing=True)
    family = (await db.execute(query)).scalar_one_or_none()
    if not family:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Family not found",
        )
    return family


async def _load_customers(db, customer_ids: List[int]) -> List[Customer]:
    if not customer_ids:
        return []
    result = await db.execute(select(Customer).where(Customer.id.in_(customer_ids)))
    customers = list(result.scalars().all())
    missing = set(customer_ids) - {c.id for c in customers}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown customer ids: {sorted(missing)}",
        )
    return customers


def _require_name(name: Optional[str]) -> str:
    if not name or not name.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="name cannot be empty",
        )
    return name.strip()


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=Page[FamilyResponse])
async def list_families(
    db: DbSession,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    customer_id: Optional[int] = None,
):
    """
    List families by name. search matches the name and contact fields,
    customer_id keeps the families that customer belongs to.
    """
    query = select(Family).options(selectinload(Family.customers))

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Family.name.ilike(pattern),
                Family.phone_number.ilike(pattern),
                Family.line_id.ilike(pattern),
                Family.email.ilike(pattern),
            )
        )
    if customer_id:
        query = query.where(Family.customers.any(Customer.id == customer_id))

    query = query.order_by(Family.name, Family.id)
    families, total = await paginate(db, query, page, page_size)

    return Page[FamilyResponse](
        data=[FamilyResponse.model_validate(f) for f in families],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/{family_id}", response_model=FamilyResponse)
async def get_family(family_id: int, db: DbSession, user: CurrentUser):
    family = await _get_family_or_404(db, family_id)
    return FamilyResponse.model_validate(family)


@router.post("", response_model=FamilyResponse, status_code=status.HTTP_201_CREATED)
async def create_family(data: FamilyCreate, db: DbSession, user: CurrentUser):
    name = _require_name(data.name)
    customers = await _load_customers(db, data.customer_ids)
    family = Family(
        **data.model_dump(exclude={"name", "customer_ids"}),
        name=name,
        customers=customers,
    )
    db.add(family)
    await db.commit()

    logger.info("Family %s created by %s with %s member(s)", family.id, user.email, len(customers))
    family = await _get_family_or_404(db, family.id, refresh=True)
    return FamilyResponse.model_validate(family)


@router.put("/{family_id}", response_model=FamilyResponse)
async def update_family(family_id: int, data: FamilyUpdate, db: DbSession, user: CurrentUser):
    family = await _get_family_or_404(db, family_id)
    changes = data.model_dump(exclude_unset=True)

    if "name" in changes:
        changes["name"] = _require_name(changes["name"])

    customer_ids = changes.pop("customer_ids", None)
    if customer_ids is not None:
        family.customers = await _load_customers(db, customer_ids)

    for field, value in changes.items():
        setattr(family, field, value)

    await db.commit()
    family = await _get_family_or_404(db, family_id, refresh=True)
    return FamilyResponse.model_validate(family)


@router.delete("/{family_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_family(family_id: int, db: DbSession, user: CurrentUser):
    """Delete a family. Its customers are kept."""
    family = await _get_family_or_404(db, family_id)
    await db.delete(family)
    await db.commit()
    logger.info("Family %s deleted by %s", family_id, user.email)
