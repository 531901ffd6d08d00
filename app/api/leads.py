"""
Lead pipeline endpoints.
Leads reference an existing customer or create one on the fly.
Status changes go through the lead status rules; booked / completed
are normally driven by the lead's bookings.
"""

import logging
import uuid
from datetime import datetime
from typing import Optional, List, Literal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy import select, or_, update
from sqlalchemy.orm import selectinload

from app.api.deps import CurrentUser, DbSession
from app.api.pagination import Page, paginate, total_pages
from app.models.booking import Booking
from app.models.customer import Customer
from app.models.lead import Lead
from app.models.task import Interaction
from app.models.user import User
from app.services.lead_status_rules import describe_status_change, validate_status_change
from app.services.lead_sync import lead_has_active_bookings

logger = logging.getLogger(__name__)
router = APIRouter()

LeadStatus = Literal["interested", "booked", "completed", "cancelled"]
LeadSource = Literal["facebook", "youtube", "tiktok", "friend"]


# ============================================================================
# Schemas
# ============================================================================

class NewCustomerInput(BaseModel):
    first_name_en: str = Field(..., min_length=1)
    last_name_en: str = Field(..., min_length=1)
    first_name_th: Optional[str] = None
    last_name_th: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    line_id: Optional[str] = None


class LeadCreate(BaseModel):
    new_customer: bool = False
    customer_id: Optional[int] = None
    customer: Optional[NewCustomerInput] = None
    sales_user_id: uuid.UUID
    source: LeadSource = "facebook"
    status: Literal["interested", "cancelled"] = "interested"
    trip_interest: str = Field(..., min_length=1)
    pax: int = Field(1, ge=1)
    lead_note: Optional[str] = None
    source_note: Optional[str] = None


class LeadUpdate(BaseModel):
    customer_id: Optional[int] = None
    sales_user_id: Optional[uuid.UUID] = None
    source: Optional[LeadSource] = None
    status: Optional[LeadStatus] = None
    reason: Optional[str] = None
    trip_interest: Optional[str] = Field(None, min_length=1)
    pax: Optional[int] = Field(None, ge=1)
    lead_note: Optional[str] = None
    source_note: Optional[str] = None


class LeadCustomer(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    phone_number: Optional[str] = None


class LeadResponse(BaseModel):
    id: int
    customer: LeadCustomer
    sales_user_id: Optional[uuid.UUID] = None
    sales_user_name: Optional[str] = None
    source: str
    status: str
    trip_interest: Optional[str] = None
    pax: int
    lead_note: Optional[str] = None
    source_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class StatusCheckResponse(BaseModel):
    allowed: bool
    warning: Optional[str] = None
    requires_reason: bool = False
    has_active_bookings: bool
    description: str


# ============================================================================
# Helpers
# ============================================================================

def lead_to_response(lead: Lead) -> LeadResponse:
    """Convert a Lead (customer and sales_user loaded) to LeadResponse."""
    return LeadResponse(
        id=lead.id,
        customer=LeadCustomer(
            id=lead.customer.id,
            name=lead.customer.display_name,
            email=lead.customer.email,
            phone_number=lead.customer.phone_number,
        ),
        sales_user_id=lead.sales_user_id,
        sales_user_name=lead.sales_user.name if lead.sales_user else None,
        source=lead.source,
        status=lead.status,
        trip_interest=lead.trip_interest,
        pax=lead.pax,
        lead_note=lead.lead_note,
        source_note=lead.source_note,
        created_at=lead.created_at,
        updated_at=lead.updated_at,
    )


async def _get_lead_or_404(db, lead_id: int, refresh: bool = False) -> Lead:
    query = (
        select(Lead)
        .where(Lead.id == lead_id)
        .options(selectinload(Lead.customer), selectinload(Lead.sales_user))
    )
    if refresh:
        query = query.execution_options(populate_existing=True)
    lead = (await db.execute(query)).scalar_one_or_none()
    if not lead:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Lead not found",
        )
    return lead


async def _require_sales_user(db, user_id: uuid.UUID) -> User:
    sales_user = await db.get(User, user_id)
    if not sales_user or not sales_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Sales user not found",
        )
    if sales_user.role != "sales":
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Selected user must have the sales role",
        )
    return sales_user


async def _check_contact_free(db, data: NewCustomerInput) -> None:
    errors = []
    if data.email and data.email.strip():
        found = (await db.execute(
            select(Customer.id).where(Customer.email == data.email.strip())
        )).first()
        if found:
            errors.append({"field": "email", "message": "This email already exists."})
    if data.phone_number and data.phone_number.strip():
        found = (await db.execute(
            select(Customer.id).where(Customer.phone_number == data.phone_number.strip())
        )).first()
        if found:
            errors.append({"field": "phone_number", "message": "This phone number already exists."})
    if errors:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=errors)


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=Page[LeadResponse])
async def list_leads(
    db: DbSession,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
    source: Optional[LeadSource] = None,
    customer_id: Optional[int] = None,
    sales_user_id: Optional[uuid.UUID] = None,
):
    """
    List leads, newest first. search matches customer names / phone / email,
    trip interest and the sales user's name.
    """
    query = (
        select(Lead)
        .join(Customer, Customer.id == Lead.customer_id)
        .outerjoin(User, User.id == Lead.sales_user_id)
        .options(selectinload(Lead.customer), selectinload(Lead.sales_user))
    )

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Customer.first_name_en.ilike(pattern),
                Customer.last_name_en.ilike(pattern),
                Customer.first_name_th.ilike(pattern),
                Customer.last_name_th.ilike(pattern),
                Customer.phone_number.ilike(pattern),
                Customer.email.ilike(pattern),
                Lead.trip_interest.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )
    if lead_status:
        query = query.where(Lead.status == lead_status)
    if source:
        query = query.where(Lead.source == source)
    if customer_id:
        query = query.where(Lead.customer_id == customer_id)
    if sales_user_id:
        query = query.where(Lead.sales_user_id == sales_user_id)

    query = query.order_by(Lead.created_at.desc(), Lead.id.desc())
    leads, total = await paginate(db, query, page, page_size)

    return Page[LeadResponse](
        data=[lead_to_response(lead) for lead in leads],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/{lead_id}", response_model=LeadResponse)
async def get_lead(lead_id: int, db: DbSession, user: CurrentUser):
    return lead_to_response(await _get_lead_or_404(db, lead_id))


@router.get("/{lead_id}/status-check", response_model=StatusCheckResponse)
async def check_lead_status_change(
    lead_id: int,
    db: DbSession,
    user: CurrentUser,
    new_status: LeadStatus = Query(...),
):
    """Preview whether a status change is allowed and whether it needs a reason."""
    lead = await _get_lead_or_404(db, lead_id)
    has_active = await lead_has_active_bookings(db, lead.id)
    result = validate_status_change(lead.status, new_status, has_active)
    return StatusCheckResponse(
        allowed=result.allowed,
        warning=result.warning,
        requires_reason=result.requires_reason,
        has_active_bookings=has_active,
        description=describe_status_change(lead.status, new_status),
    )


@router.post("", response_model=LeadResponse, status_code=status.HTTP_201_CREATED)
async def create_lead(data: LeadCreate, db: DbSession, user: CurrentUser):
    """
    Create a lead. With new_customer=true the customer is created from
    `customer`; otherwise `customer_id` must reference an existing one.
    """
    await _require_sales_user(db, data.sales_user_id)

    if data.new_customer:
        if data.customer is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Customer details are required for new customers",
            )
        if data.customer_id is not None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="customer_id must not be provided for new customers",
            )
        await _check_contact_free(db, data.customer)
        customer = Customer(**data.customer.model_dump())
        db.add(customer)
        await db.flush()
        customer_id = customer.id
        logger.info("Customer %s created from new lead", customer_id)
    else:
        if data.customer_id is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="customer_id is required for existing customers",
            )
        if not await db.get(Customer, data.customer_id):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Customer not found",
            )
        customer_id = data.customer_id

    lead = Lead(
        customer_id=customer_id,
        sales_user_id=data.sales_user_id,
        source=data.source,
        status=data.status,
        trip_interest=data.trip_interest,
        pax=data.pax,
        lead_note=data.lead_note,
        source_note=data.source_note,
    )
    db.add(lead)
    await db.commit()

    logger.info("Lead %s created for customer %s by %s", lead.id, customer_id, user.email)
    return lead_to_response(await _get_lead_or_404(db, lead.id, refresh=True))


@router.put("/{lead_id}", response_model=LeadResponse)
async def update_lead(lead_id: int, data: LeadUpdate, db: DbSession, user: CurrentUser):
    """
    Update a lead. A status change is validated against the lead status rules;
    skips and reverts need a `reason`, which is logged as a customer interaction.
    """
    lead = await _get_lead_or_404(db, lead_id)
    changes = data.model_dump(exclude_unset=True)
    reason = (changes.pop("reason", None) or "").strip()

    if "sales_user_id" in changes:
        if changes["sales_user_id"] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="sales_user_id cannot be empty",
            )
        await _require_sales_user(db, changes["sales_user_id"])

    if "customer_id" in changes and changes["customer_id"] != lead.customer_id:
        if changes["customer_id"] is None or not await db.get(Customer, changes["customer_id"]):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Customer not found",
            )
        if await lead_has_active_bookings(db, lead.id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Cannot change the customer of a lead with active bookings",
            )

    new_status = changes.pop("status", None)
    if new_status and new_status != lead.status:
        has_active = await lead_has_active_bookings(db, lead.id)
        check = validate_status_change(lead.status, new_status, has_active)
        if not check.allowed:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=check.warning)
        if check.requires_reason and not reason:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=check.warning)

        if reason:
            db.add(Interaction(
                customer_id=changes.get("customer_id", lead.customer_id),
                agent_id=user.id,
                type="note",
                content=f"{describe_status_change(lead.status, new_status)}. Reason: {reason}",
            ))
        logger.info("Lead %s status %s -> %s by %s", lead.id, lead.status, new_status, user.email)
        lead.status = new_status

    for field, value in changes.items():
        if field in ("source", "trip_interest", "pax") and value is None:
            continue
        setattr(lead, field, value)

    await db.commit()
    return lead_to_response(await _get_lead_or_404(db, lead_id, refresh=True))


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_lead(lead_id: int, db: DbSession, user: CurrentUser):
    """Delete a lead; its bookings are kept and detached."""
    lead = await _get_lead_or_404(db, lead_id)
    await db.execute(
        update(Booking)
        .where(Booking.lead_id == lead.id)
        .values(lead_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(lead)
    await db.commit()
