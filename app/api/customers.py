"""
Customer endpoints: CRUD with tags, passports listing and interactions.
"""

import logging
import uuid
from datetime import date, datetime
from typing import Optional, List, Literal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select, or_, func
from sqlalchemy.orm import selectinload

from app.api.deps import CurrentUser, DbSession
from app.api.pagination import Page, paginate, total_pages
from app.models.booking import Booking
from app.models.customer import Customer, customer_tags
from app.models.tag import Tag
from app.models.task import Interaction

logger = logging.getLogger(__name__)
router = APIRouter()

CustomerTitle = Literal["mr", "mrs", "miss", "master", "other"]


# ============================================================================
# Schemas
# ============================================================================

class TagResponse(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class PassportSummary(BaseModel):
    id: int
    passport_number: str
    issuing_country: str
    expiry_date: date
    is_primary: bool

    model_config = ConfigDict(from_attributes=True)


class CustomerCreate(BaseModel):
    first_name_en: str
    last_name_en: str
    title: Optional[CustomerTitle] = None
    first_name_th: Optional[str] = None
    last_name_th: Optional[str] = None
    nickname: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    line_id: Optional[str] = None
    date_of_birth: Optional[date] = None
    note: Optional[str] = None
    tag_ids: List[int] = []


class CustomerUpdate(BaseModel):
    title: Optional[CustomerTitle] = None
    first_name_en: Optional[str] = None
    last_name_en: Optional[str] = None
    first_name_th: Optional[str] = None
    last_name_th: Optional[str] = None
    nickname: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    line_id: Optional[str] = None
    date_of_birth: Optional[date] = None
    note: Optional[str] = None
    tag_ids: Optional[List[int]] = None


class CustomerResponse(BaseModel):
    id: int
    display_name: str
    title: Optional[str] = None
    first_name_en: str
    last_name_en: str
    first_name_th: Optional[str] = None
    last_name_th: Optional[str] = None
    nickname: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    line_id: Optional[str] = None
    date_of_birth: Optional[date] = None
    note: Optional[str] = None
    tags: List[TagResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerDetail(CustomerResponse):
    passports: List[PassportSummary] = []


class InteractionCreate(BaseModel):
    type: Literal["call", "line", "email", "meeting", "note"]
    content: str


class InteractionResponse(BaseModel):
    id: int
    customer_id: int
    agent_id: Optional[uuid.UUID] = None
    agent_name: Optional[str] = None
    type: str
    content: str
    created_at: datetime


# ============================================================================
# Helpers
# ============================================================================

async def _get_customer_or_404(db, customer_id: int, with_passports: bool = False) -> Customer:
    options = [selectinload(Customer.tags)]
    if with_passports:
        options.append(selectinload(Customer.passports))
    result = await db.execute(
        select(Customer).where(Customer.id == customer_id).options(*options)
    )
    customer = result.scalar_one_or_none()
    if not customer:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Customer not found",
        )
    return customer


async def _load_tags(db, tag_ids: List[int]) -> List[Tag]:
    if not tag_ids:
        return []
    result = await db.execute(select(Tag).where(Tag.id.in_(tag_ids)))
    tags = list(result.scalars().all())
    missing = set(tag_ids) - {t.id for t in tags}
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown tag ids: {sorted(missing)}",
        )
    return tags


def interaction_to_response(interaction: Interaction) -> InteractionResponse:
    return InteractionResponse(
        id=interaction.id,
        customer_id=interaction.customer_id,
        agent_id=interaction.agent_id,
        agent_name=interaction.agent.name if interaction.agent else None,
        type=interaction.type,
        content=interaction.content,
        created_at=interaction.created_at,
    )


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=Page[CustomerResponse])
async def list_customers(
    db: DbSession,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    tag_id: Optional[int] = None,
):
    """
    List customers, newest first. search matches names, nickname, email and phone.
    """
    query = select(Customer).options(selectinload(Customer.tags))

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Customer.first_name_en.ilike(pattern),
                Customer.last_name_en.ilike(pattern),
                Customer.first_name_th.ilike(pattern),
                Customer.last_name_th.ilike(pattern),
                Customer.nickname.ilike(pattern),
                Customer.email.ilike(pattern),
                Customer.phone_number.ilike(pattern),
            )
        )
    if tag_id:
        query = query.where(
            Customer.id.in_(select(customer_tags.c.customer_id).where(customer_tags.c.tag_id == tag_id))
        )

    query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
    customers, total = await paginate(db, query, page, page_size)

    return Page[CustomerResponse](
        data=[CustomerResponse.model_validate(c) for c in customers],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/{customer_id}", response_model=CustomerDetail)
async def get_customer(customer_id: int, db: DbSession, user: CurrentUser):
    customer = await _get_customer_or_404(db, customer_id, with_passports=True)
    return CustomerDetail.model_validate(customer)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(data: CustomerCreate, db: DbSession, user: CurrentUser):
    tags = await _load_tags(db, data.tag_ids)
    customer = Customer(**data.model_dump(exclude={"tag_ids"}), tags=tags)
    db.add(customer)
    await db.commit()

    logger.info("Customer %s created by %s", customer.id, user.email)
    customer = await _get_customer_or_404(db, customer.id)
    return CustomerResponse.model_validate(customer)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(customer_id: int, data: CustomerUpdate, db: DbSession, user: CurrentUser):
    customer = await _get_customer_or_404(db, customer_id)
    changes = data.model_dump(exclude_unset=True)

    tag_ids = changes.pop("tag_ids", None)
    if tag_ids is not None:
        customer.tags = await _load_tags(db, tag_ids)

    for field in ("first_name_en", "last_name_en"):
        if field in changes and not changes[field]:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be empty",
            )

    for field, value in changes.items():
        setattr(customer, field, value)

    await db.commit()
    return CustomerResponse.model_validate(customer)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_customer(customer_id: int, db: DbSession, user: CurrentUser):
    """
    Delete a customer. Refused while the customer has bookings.
    """
    customer = await _get_customer_or_404(db, customer_id, with_passports=True)

    booking_count = (await db.execute(
        select(func.count()).select_from(Booking).where(Booking.customer_id == customer_id)
    )).scalar_one()
    if booking_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Customer has {booking_count} booking(s); delete or move them first",
        )

    await db.delete(customer)
    await db.commit()


# ============================================================================
# Interactions
# ============================================================================

@router.get("/{customer_id}/interactions", response_model=List[InteractionResponse])
async def list_interactions(customer_id: int, db: DbSession, user: CurrentUser):
    await _get_customer_or_404(db, customer_id)
    result = await db.execute(
        select(Interaction)
        .where(Interaction.customer_id == customer_id)
        .options(selectinload(Interaction.agent))
        .order_by(Interaction.created_at.desc(), Interaction.id.desc())
    )
    return [interaction_to_response(i) for i in result.scalars().all()]


@router.post(
    "/{customer_id}/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_interaction(
    customer_id: int,
    data: InteractionCreate,
    db: DbSession,
    user: CurrentUser,
):
    """Log a contact with the customer, attributed to the current user."""
    await _get_customer_or_404(db, customer_id)

    interaction = Interaction(
        customer_id=customer_id,
        agent_id=user.id,
        type=data.type,
        content=data.content,
    )
    db.add(interaction)
    await db.commit()

    return InteractionResponse(
        id=interaction.id,
        customer_id=customer_id,
        agent_id=user.id,
        agent_name=user.name,
        type=interaction.type,
        content=interaction.content,
        created_at=interaction.created_at,
    )
