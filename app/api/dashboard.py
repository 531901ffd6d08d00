"""
Dashboard endpoint - counters, revenue and recent activity.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload

from app.api.deps import DbSession, CurrentUser
from app.models.booking import Booking, Payment
from app.models.customer import Customer
from app.models.lead import Lead

router = APIRouter()


class DashboardStats(BaseModel):
    customer_count: int
    active_leads: int
    pending_deposit_bookings: int
    revenue: Decimal


class RecentLead(BaseModel):
    id: int
    customer_name: str
    status: str
    trip_interest: Optional[str] = None
    updated_at: datetime


class RecentBooking(BaseModel):
    id: int
    customer_name: str
    trip_name: str
    trip_start_date: date
    payment_status: str
    total_amount: Decimal
    paid_amount: Decimal
    created_at: datetime


class DashboardResponse(BaseModel):
    stats: DashboardStats
    recent_leads: List[RecentLead]
    recent_bookings: List[RecentBooking]


@router.get("", response_model=DashboardResponse)
async def get_dashboard(db: DbSession, user: CurrentUser):
    """
    Overview: customer count, leads still in play, bookings waiting for a
    deposit, revenue collected on paid bookings, and the latest activity.
    """
    customer_count = (await db.execute(
        select(func.count()).select_from(Customer)
    )).scalar_one()

    active_leads = (await db.execute(
        select(func.count()).select_from(Lead).where(Lead.status == "interested")
    )).scalar_one()

    pending_deposit = (await db.execute(
        select(func.count()).select_from(Booking).where(Booking.payment_status == "deposit_pending")
    )).scalar_one()

    revenue = (await db.execute(
        select(func.coalesce(func.sum(Payment.amount), 0))
        .join(Booking, Booking.id == Payment.booking_id)
        .where(Booking.payment_status.in_(["deposit_paid", "fully_paid"]))
    )).scalar_one()

    recent_leads = (await db.execute(
        select(Lead)
        .options(selectinload(Lead.customer))
        .order_by(Lead.updated_at.desc(), Lead.id.desc())
        .limit(5)
    )).scalars().all()

    recent_bookings = (await db.execute(
        select(Booking)
        .options(
            selectinload(Booking.customer),
            selectinload(Booking.trip),
            selectinload(Booking.payments),
        )
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(5)
    )).scalars().all()

    return DashboardResponse(
        stats=DashboardStats(
            customer_count=customer_count,
            active_leads=active_leads,
            pending_deposit_bookings=pending_deposit,
            revenue=Decimal(str(revenue)),
        ),
        recent_leads=[
            RecentLead(
                id=lead.id,
                customer_name=lead.customer.display_name,
                status=lead.status,
                trip_interest=lead.trip_interest,
                updated_at=lead.updated_at,
            )
            for lead in recent_leads
        ],
        recent_bookings=[
            RecentBooking(
                id=b.id,
                customer_name=b.customer.display_name,
                trip_name=b.trip.name,
                trip_start_date=b.trip.start_date,
                payment_status=b.payment_status,
                total_amount=b.total_amount,
                paid_amount=b.paid_amount,
                created_at=b.created_at,
            )
            for b in recent_bookings
        ],
    )
