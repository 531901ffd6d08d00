"""
Trip management endpoints.
Trip status (upcoming / sold_out / on_trip / completed / cancelled) is derived
from dates and active bookings, never stored.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Literal

from fastapi import APIRouter, HTTPException, status, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy import select, func, and_, or_
from sqlalchemy.orm import selectinload

from app.api.deps import DbSession, CurrentUser
from app.api.pagination import Page, total_pages
from app.models.booking import Booking
from app.models.trip import Trip, AirlineAndAirport
from app.services.trip_status import derive_trip_status

logger = logging.getLogger(__name__)
router = APIRouter()

TripType = Literal["group_tour", "private_tour"]
TripStatus = Literal["upcoming", "sold_out", "on_trip", "completed", "cancelled"]


# Schemas
class TripCreate(BaseModel):
    type: TripType = "group_tour"
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1)
    start_date: date
    end_date: date
    pax: int = Field(1, ge=0)
    foc: int = Field(1, ge=0)
    tl: Optional[str] = None
    tg: Optional[str] = None
    staff: Optional[str] = None
    standard_price: Decimal = Field(Decimal("0"), ge=0)
    extra_price_per_person: Decimal = Field(Decimal("0"), ge=0)
    note: Optional[str] = None
    airline_and_airport_id: Optional[int] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class TripUpdate(BaseModel):
    type: Optional[TripType] = None
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    name: Optional[str] = Field(None, min_length=1)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    pax: Optional[int] = Field(None, ge=0)
    foc: Optional[int] = Field(None, ge=0)
    tl: Optional[str] = None
    tg: Optional[str] = None
    staff: Optional[str] = None
    standard_price: Optional[Decimal] = Field(None, ge=0)
    extra_price_per_person: Optional[Decimal] = Field(None, ge=0)
    note: Optional[str] = None
    airline_and_airport_id: Optional[int] = None


class AirlineSummary(BaseModel):
    id: int
    code: str
    name: str


class TripResponse(BaseModel):
    id: int
    type: str
    code: str
    name: str
    start_date: date
    end_date: date
    pax: int
    foc: int
    tl: Optional[str] = None
    tg: Optional[str] = None
    staff: Optional[str] = None
    standard_price: Decimal
    extra_price_per_person: Decimal
    note: Optional[str] = None
    airline_and_airport: Optional[AirlineSummary] = None
    booked_count: int = 0
    status: str
    created_at: datetime
    updated_at: datetime


# Helpers
def _active_counts_subquery():
    return (
        select(Booking.trip_id, func.count(Booking.id).label("booked"))
        .where(Booking.payment_status != "cancelled")
        .group_by(Booking.trip_id)
        .subquery()
    )


def _status_condition(trip_status: str, booked, today: date):
    """SQL condition matching derive_trip_status for one status."""
    started = Trip.start_date <= today
    if trip_status == "cancelled":
        return and_(started, booked == 0)
    if trip_status == "completed":
        return and_(Trip.end_date < today, booked > 0)
    if trip_status == "on_trip":
        return and_(started, Trip.end_date >= today, booked > 0)
    if trip_status == "sold_out":
        return and_(Trip.start_date > today, Trip.pax > 0, booked >= Trip.pax)
    return and_(Trip.start_date > today, or_(Trip.pax <= 0, booked < Trip.pax))


def trip_to_response(trip: Trip, booked: int, today: Optional[date] = None) -> TripResponse:
    airline = trip.airline_and_airport
    return TripResponse(
        id=trip.id,
        type=trip.type,
        code=trip.code,
        name=trip.name,
        start_date=trip.start_date,
        end_date=trip.end_date,
        pax=trip.pax,
        foc=trip.foc,
        tl=trip.tl,
        tg=trip.tg,
        staff=trip.staff,
        standard_price=trip.standard_price,
        extra_price_per_person=trip.extra_price_per_person,
        note=trip.note,
        airline_and_airport=(
            AirlineSummary(id=airline.id, code=airline.code, name=airline.name) if airline else None
        ),
        booked_count=booked,
        status=derive_trip_status(trip.start_date, trip.end_date, trip.pax, booked, today),
        created_at=trip.created_at,
        updated_at=trip.updated_at,
    )


async def _get_trip_or_404(db, trip_id: int, refresh: bool = False) -> Trip:
    query = (
        select(Trip)
        .where(Trip.id == trip_id)
        .options(selectinload(Trip.airline_and_airport))
    )
    if refresh:
        query = query.execution_options(populate_existing=True)
    result = await db.execute(query)
    trip = result.scalar_one_or_none()
    if not trip:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Trip not found",
        )
    return trip


async def _active_booking_count(db, trip_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Booking)
        .where(Booking.trip_id == trip_id, Booking.payment_status != "cancelled")
    )
    return result.scalar_one()


async def _ensure_code_free(db, code: str, exclude_id: Optional[int] = None) -> None:
    query = select(Trip.id).where(Trip.code == code)
    if exclude_id is not None:
        query = query.where(Trip.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Trip code '{code}' already exists",
        )


async def _ensure_airline_exists(db, airline_id: Optional[int]) -> None:
    if airline_id is not None and not await db.get(AirlineAndAirport, airline_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Airline/airport {airline_id} not found",
        )


# Endpoints
@router.get("", response_model=Page[TripResponse])
async def list_trips(
    db: DbSession,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    type: Optional[TripType] = None,
    trip_status: Optional[TripStatus] = Query(None, alias="status"),
    start_date_from: Optional[date] = None,
    start_date_to: Optional[date] = None,
):
    """
    List trips ordered by departure date, with booked count and derived status.
    """
    today = date.today()
    counts = _active_counts_subquery()
    booked = func.coalesce(counts.c.booked, 0)

    query = (
        select(Trip, booked.label("booked"))
        .outerjoin(counts, counts.c.trip_id == Trip.id)
        .options(selectinload(Trip.airline_and_airport))
    )

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(or_(Trip.name.ilike(pattern), Trip.code.ilike(pattern)))
    if type:
        query = query.where(Trip.type == type)
    if start_date_from:
        query = query.where(Trip.start_date >= start_date_from)
    if start_date_to:
        query = query.where(Trip.start_date <= start_date_to)
    if trip_status:
        query = query.where(_status_condition(trip_status, booked, today))

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar_one()

    query = (
        query.order_by(Trip.start_date, Trip.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    rows = (await db.execute(query)).all()

    return Page[TripResponse](
        data=[trip_to_response(trip, count, today) for trip, count in rows],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.post("", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip(data: TripCreate, db: DbSession, user: CurrentUser):
    await _ensure_code_free(db, data.code)
    await _ensure_airline_exists(db, data.airline_and_airport_id)

    trip = Trip(**data.model_dump())
    db.add(trip)
    await db.commit()

    logger.info("Trip %s (%s) created by %s", trip.id, trip.code, user.email)
    trip = await _get_trip_or_404(db, trip.id, refresh=True)
    return trip_to_response(trip, 0)


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip(trip_id: int, db: DbSession, user: CurrentUser):
    trip = await _get_trip_or_404(db, trip_id)
    return trip_to_response(trip, await _active_booking_count(db, trip_id))


@router.patch("/{trip_id}", response_model=TripResponse)
async def update_trip(trip_id: int, data: TripUpdate, db: DbSession, user: CurrentUser):
    """
    Update a trip. A price change does not re-price existing bookings.
    """
    trip = await _get_trip_or_404(db, trip_id)
    changes = data.model_dump(exclude_unset=True)

    for field in ("type", "code", "name", "start_date", "end_date", "pax", "foc",
                  "standard_price", "extra_price_per_person"):
        if field in changes and changes[field] is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{field} cannot be empty",
            )

    if changes.get("code") and changes["code"] != trip.code:
        await _ensure_code_free(db, changes["code"], exclude_id=trip.id)
    if "airline_and_airport_id" in changes:
        await _ensure_airline_exists(db, changes["airline_and_airport_id"])

    start_date = changes.get("start_date", trip.start_date)
    end_date = changes.get("end_date", trip.end_date)
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="end_date must be on or after start_date",
        )

    for field, value in changes.items():
        setattr(trip, field, value)

    await db.commit()

    trip = await _get_trip_or_404(db, trip_id, refresh=True)
    return trip_to_response(trip, await _active_booking_count(db, trip_id))


@router.delete("/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_trip(trip_id: int, db: DbSession, user: CurrentUser):
    """
    Delete a trip. Refused while bookings exist on it.
    """
    trip = await _get_trip_or_404(db, trip_id)

    booking_count = (await db.execute(
        select(func.count()).select_from(Booking).where(Booking.trip_id == trip_id)
    )).scalar_one()
    if booking_count:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Trip has {booking_count} booking(s); delete them first",
        )

    await db.delete(trip)
    await db.commit()
