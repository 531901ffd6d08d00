"""
Commission reports (admin).
"""

import logging
import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, List

from fastapi import APIRouter, Query
from pydantic import BaseModel
from sqlalchemy import select, or_
from sqlalchemy.orm import selectinload

from app.api.deps import AdminUser, DbSession
from app.models.booking import Booking
from app.models.commission import Commission
from app.models.user import User

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class AgentCommissionSummary(BaseModel):
    agent_id: uuid.UUID
    agent_name: str
    total_trips: int
    total_people: int
    total_commission_amount: Decimal


class CommissionTrip(BaseModel):
    code: str
    name: str
    start_date: date
    end_date: date


class CommissionDetail(BaseModel):
    id: int
    booking_id: int
    trip_code: str
    customer_name: str
    total_people: int
    commission_amount: Decimal
    status: str
    created_at: datetime
    trip: CommissionTrip


# ============================================================================
# Helpers
# ============================================================================

def _created_at_filters(query, created_at_from: Optional[date], created_at_to: Optional[date]):
    """Filter on Commission.created_at; the end date is inclusive."""
    if created_at_from:
        query = query.where(
            Commission.created_at >= datetime.combine(created_at_from, time.min, tzinfo=timezone.utc)
        )
    if created_at_to:
        end = datetime.combine(created_at_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
        query = query.where(Commission.created_at < end)
    return query


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=List[AgentCommissionSummary])
async def list_commissions_by_agent(
    db: DbSession,
    user: AdminUser,
    search: Optional[str] = None,
    created_at_from: Optional[date] = None,
    created_at_to: Optional[date] = None,
):
    """
    Earned commissions grouped by agent.
    total_people counts the booking's customer plus its companions.
    """
    query = (
        select(Commission)
        .join(User, User.id == Commission.agent_id)
        .where(Commission.status == "earned")
        .options(
            selectinload(Commission.agent),
            selectinload(Commission.booking).selectinload(Booking.companions),
        )
    )
    query = _created_at_filters(query, created_at_from, created_at_to)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern)))

    result = await db.execute(query)
    commissions = result.scalars().all()

    groups: dict[uuid.UUID, AgentCommissionSummary] = {}
    for commission in commissions:
        group = groups.get(commission.agent_id)
        if group is None:
            group = AgentCommissionSummary(
                agent_id=commission.agent_id,
                agent_name=commission.agent.name,
                total_trips=0,
                total_people=0,
                total_commission_amount=Decimal("0"),
            )
            groups[commission.agent_id] = group
        group.total_trips += 1
        group.total_people += 1 + len(commission.booking.companions)
        group.total_commission_amount += commission.amount

    return sorted(groups.values(), key=lambda g: g.agent_name.lower())


@router.get("/{agent_id}", response_model=List[CommissionDetail])
async def list_agent_commissions(
    agent_id: uuid.UUID,
    db: DbSession,
    user: AdminUser,
    created_at_from: Optional[date] = None,
    created_at_to: Optional[date] = None,
):
    """
    Per-booking commission detail for one agent, newest first.
    """
    query = (
        select(Commission)
        .where(Commission.agent_id == agent_id)
        .options(
            selectinload(Commission.booking).selectinload(Booking.trip),
            selectinload(Commission.booking).selectinload(Booking.customer),
        )
        .order_by(Commission.created_at.desc(), Commission.id.desc())
    )
    query = _created_at_filters(query, created_at_from, created_at_to)

    result = await db.execute(query)
    details = []
    for commission in result.scalars().all():
        booking = commission.booking
        details.append(CommissionDetail(
            id=commission.id,
            booking_id=booking.id,
            trip_code=booking.trip.code,
            customer_name=booking.customer.display_name,
            total_people=1,
            commission_amount=commission.amount,
            status=commission.status,
            created_at=commission.created_at,
            trip=CommissionTrip(
                code=booking.trip.code,
                name=booking.trip.name,
                start_date=booking.trip.start_date,
                end_date=booking.trip.end_date,
            ),
        ))
    return details
