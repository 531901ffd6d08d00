"""
Booking management endpoints.
Handles listing, creation with first payment and companions, updates,
cancellation and deletion. The pricing / payment / commission rules live
in app.services.booking_service.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Literal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from app.api.deps import CurrentUser, DbSession
from app.api.pagination import Page, paginate, total_pages
from app.models.booking import Booking
from app.models.customer import Customer
from app.models.trip import Trip
from app.services.booking_pricing import BookingRuleError
from app.services.booking_service import (
    BookingConflictError,
    BookingNotFoundError,
    create_booking,
    delete_booking,
    get_booking,
    payment_summary,
    update_booking,
)
from app.services.notification_service import notify_user

logger = logging.getLogger(__name__)
router = APIRouter()

RoomType = Literal["double_bed", "twin_bed"]
SeatType = Literal["window", "middle", "aisle"]
FirstPaymentRatio = Literal["first_payment_100", "first_payment_50", "first_payment_30"]
PaymentStatus = Literal["deposit_pending", "deposit_paid", "fully_paid", "cancelled"]
PaymentMethod = Literal["cash", "bank_transfer", "credit_card", "other"]


# ============================================================================
# Schemas
# ============================================================================

class PaymentInput(BaseModel):
    amount: Decimal
    paid_at: Optional[datetime] = None
    proof_of_payment: Optional[str] = None
    note: Optional[str] = None
    method: PaymentMethod = "other"


class BookingFields(BaseModel):
    sales_user_id: Optional[uuid.UUID] = None
    passport_id: Optional[int] = None
    lead_id: Optional[int] = None
    note: Optional[str] = None
    extra_price_for_single_traveller: Optional[Decimal] = None
    room_type: Optional[RoomType] = None
    extra_bed: bool = False
    extra_price_per_bed: Optional[Decimal] = None
    room_note: Optional[str] = None
    seat_type: Optional[SeatType] = None
    seat_class: Optional[str] = None
    extra_price_per_seat: Optional[Decimal] = None
    seat_note: Optional[str] = None
    extra_price_per_bag: Optional[Decimal] = None
    bag_note: Optional[str] = None
    discount_price: Optional[Decimal] = None
    discount_note: Optional[str] = None


class BookingCreate(BookingFields):
    customer_id: int
    trip_id: int
    first_payment_ratio: FirstPaymentRatio = "first_payment_50"
    companion_customer_ids: List[int] = []
    first_payment: Optional[PaymentInput] = None


class BookingUpdate(BookingFields):
    customer_id: Optional[int] = None
    trip_id: Optional[int] = None
    extra_bed: Optional[bool] = None
    first_payment_ratio: Optional[FirstPaymentRatio] = None
    companion_customer_ids: Optional[List[int]] = None
    payment_status: Optional[PaymentStatus] = None
    reinstate: bool = False


class CustomerSummary(BaseModel):
    id: int
    name: str
    first_name_en: str
    last_name_en: str
    phone_number: Optional[str] = None


class TripSummary(BaseModel):
    id: int
    code: str
    name: str
    start_date: date
    end_date: date
    standard_price: Decimal


class PaymentResponse(BaseModel):
    id: int
    installment: int
    amount: Decimal
    method: str
    paid_at: datetime
    proof_of_payment: Optional[str] = None
    note: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CommissionInfo(BaseModel):
    id: int
    agent_id: uuid.UUID
    amount: Decimal
    status: str

    model_config = ConfigDict(from_attributes=True)


class CompanionResponse(BaseModel):
    customer_id: int
    name: str


class BookingListItem(BaseModel):
    id: int
    customer_id: int
    customer_name: str
    trip_id: int
    trip_code: str
    trip_name: str
    trip_start_date: date
    sales_user_id: Optional[uuid.UUID] = None
    sales_user_name: Optional[str] = None
    total_amount: Decimal
    paid_amount: Decimal
    payment_status: str
    first_payment_ratio: str
    created_at: datetime


class BookingDetail(BaseModel):
    id: int
    customer: CustomerSummary
    trip: TripSummary
    sales_user_id: Optional[uuid.UUID] = None
    sales_user_name: Optional[str] = None
    passport_id: Optional[int] = None
    lead_id: Optional[int] = None
    note: Optional[str] = None
    extra_price_for_single_traveller: Optional[Decimal] = None
    room_type: Optional[str] = None
    extra_bed: bool
    extra_price_per_bed: Optional[Decimal] = None
    room_note: Optional[str] = None
    seat_type: Optional[str] = None
    seat_class: Optional[str] = None
    extra_price_per_seat: Optional[Decimal] = None
    seat_note: Optional[str] = None
    extra_price_per_bag: Optional[Decimal] = None
    bag_note: Optional[str] = None
    discount_price: Optional[Decimal] = None
    discount_note: Optional[str] = None
    base_price: Decimal
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    first_payment_amount: Decimal
    payment_status: str
    first_payment_ratio: str
    companions: List[CompanionResponse] = []
    payments: List[PaymentResponse] = []
    commission: Optional[CommissionInfo] = None
    created_at: datetime
    updated_at: datetime


class CompanionCandidate(BaseModel):
    booking_id: int
    customer_id: int
    name: str
    payment_status: str


# ============================================================================
# Helpers
# ============================================================================

def booking_to_list_item(booking: Booking) -> BookingListItem:
    """Convert a Booking (customer, trip, sales_user, payments loaded) to BookingListItem."""
    return BookingListItem(
        id=booking.id,
        customer_id=booking.customer_id,
        customer_name=booking.customer.display_name,
        trip_id=booking.trip_id,
        trip_code=booking.trip.code,
        trip_name=booking.trip.name,
        trip_start_date=booking.trip.start_date,
        sales_user_id=booking.sales_user_id,
        sales_user_name=booking.sales_user.name if booking.sales_user else None,
        total_amount=booking.total_amount,
        paid_amount=booking.paid_amount,
        payment_status=booking.payment_status,
        first_payment_ratio=booking.first_payment_ratio,
        created_at=booking.created_at,
    )


def booking_to_detail(booking: Booking) -> BookingDetail:
    """Convert a Booking loaded with booking_load_options() to BookingDetail."""
    summary = payment_summary(booking)
    customer = booking.customer
    trip = booking.trip
    return BookingDetail(
        id=booking.id,
        customer=CustomerSummary(
            id=customer.id,
            name=customer.display_name,
            first_name_en=customer.first_name_en,
            last_name_en=customer.last_name_en,
            phone_number=customer.phone_number,
        ),
        trip=TripSummary(
            id=trip.id,
            code=trip.code,
            name=trip.name,
            start_date=trip.start_date,
            end_date=trip.end_date,
            standard_price=trip.standard_price,
        ),
        sales_user_id=booking.sales_user_id,
        sales_user_name=booking.sales_user.name if booking.sales_user else None,
        passport_id=booking.passport_id,
        lead_id=booking.lead_id,
        note=booking.note,
        extra_price_for_single_traveller=booking.extra_price_for_single_traveller,
        room_type=booking.room_type,
        extra_bed=booking.extra_bed,
        extra_price_per_bed=booking.extra_price_per_bed,
        room_note=booking.room_note,
        seat_type=booking.seat_type,
        seat_class=booking.seat_class,
        extra_price_per_seat=booking.extra_price_per_seat,
        seat_note=booking.seat_note,
        extra_price_per_bag=booking.extra_price_per_bag,
        bag_note=booking.bag_note,
        discount_price=booking.discount_price,
        discount_note=booking.discount_note,
        base_price=booking.base_price,
        total_amount=booking.total_amount,
        paid_amount=summary["paid_amount"],
        remaining_amount=summary["remaining_amount"],
        first_payment_amount=summary["first_payment_amount"],
        payment_status=booking.payment_status,
        first_payment_ratio=booking.first_payment_ratio,
        companions=[
            CompanionResponse(customer_id=c.customer_id, name=c.customer.display_name)
            for c in sorted(booking.companions, key=lambda c: c.customer_id)
        ],
        payments=[PaymentResponse.model_validate(p) for p in booking.payments],
        commission=CommissionInfo.model_validate(booking.commission) if booking.commission else None,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


async def _load_booking_or_404(db, booking_id: int, refresh: bool = False) -> Booking:
    try:
        return await get_booking(db, booking_id, refresh=refresh)
    except BookingNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )


async def _commit(db) -> None:
    """Commit, turning a uniqueness race into 409."""
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Booking commit conflict: %s", e.orig)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This customer already has a booking on this trip",
        )


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=Page[BookingListItem])
async def list_bookings(
    db: DbSession,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    payment_status: Optional[PaymentStatus] = None,
    trip_id: Optional[int] = None,
    trip_start_date_from: Optional[date] = None,
    trip_start_date_to: Optional[date] = None,
):
    """
    List bookings, newest first.
    search matches the customer's Thai / English names and nickname.
    """
    query = (
        select(Booking)
        .join(Customer, Customer.id == Booking.customer_id)
        .join(Trip, Trip.id == Booking.trip_id)
        .options(
            selectinload(Booking.customer),
            selectinload(Booking.trip),
            selectinload(Booking.sales_user),
            selectinload(Booking.payments),
        )
    )

    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.where(
            or_(
                Customer.first_name_en.ilike(pattern),
                Customer.last_name_en.ilike(pattern),
                Customer.first_name_th.ilike(pattern),
                Customer.last_name_th.ilike(pattern),
                Customer.nickname.ilike(pattern),
            )
        )
    if payment_status:
        query = query.where(Booking.payment_status == payment_status)
    if trip_id:
        query = query.where(Booking.trip_id == trip_id)
    if trip_start_date_from:
        query = query.where(Trip.start_date >= trip_start_date_from)
    if trip_start_date_to:
        query = query.where(Trip.start_date <= trip_start_date_to)

    query = query.order_by(Booking.created_at.desc(), Booking.id.desc())
    bookings, total = await paginate(db, query, page, page_size)

    return Page[BookingListItem](
        data=[booking_to_list_item(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages(total, page_size),
    )


@router.get("/companion-candidates", response_model=List[CompanionCandidate])
async def list_companion_candidates(
    db: DbSession,
    user: CurrentUser,
    trip_id: int = Query(...),
    exclude_customer_id: Optional[int] = None,
):
    """
    Customers with an active booking on the trip, i.e. who can be picked as companions.
    """
    query = (
        select(Booking)
        .where(Booking.trip_id == trip_id, Booking.payment_status != "cancelled")
        .options(selectinload(Booking.customer))
        .order_by(Booking.id)
    )
    if exclude_customer_id is not None:
        query = query.where(Booking.customer_id != exclude_customer_id)

    result = await db.execute(query)
    return [
        CompanionCandidate(
            booking_id=b.id,
            customer_id=b.customer_id,
            name=b.customer.display_name,
            payment_status=b.payment_status,
        )
        for b in result.scalars().all()
    ]


@router.get("/{booking_id}", response_model=BookingDetail)
async def get_booking_detail(
    booking_id: int,
    db: DbSession,
    user: CurrentUser,
):
    """
    Get full detail of a booking: companions, payments and commission.
    """
    booking = await _load_booking_or_404(db, booking_id)
    return booking_to_detail(booking)


@router.post("", response_model=BookingDetail, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    data: BookingCreate,
    db: DbSession,
    user: CurrentUser,
):
    """
    Create a booking. Total, optional first payment, companions,
    payment status, commission and lead status are handled in one transaction.
    """
    values = data.model_dump(exclude={"companion_customer_ids", "first_payment"})
    first_payment = data.first_payment.model_dump() if data.first_payment else None

    try:
        booking = await create_booking(
            db,
            values,
            companion_customer_ids=data.companion_customer_ids,
            first_payment=first_payment,
        )
    except BookingConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except BookingRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    # Let the assigned sales user know when someone else books for them
    if booking.sales_user_id and booking.sales_user_id != user.id:
        try:
            await notify_user(
                db=db,
                user_id=booking.sales_user_id,
                type="booking_assigned",
                title="New booking assigned to you",
                message=f"{user.name} created booking #{booking.id} for you.",
                link=f"/bookings/{booking.id}",
                entity_id=str(booking.id),
                metadata={"booking_id": booking.id, "trip_id": booking.trip_id},
            )
        except Exception as e:
            logger.warning("Failed to send booking_assigned notification: %s", e)

    await _commit(db)

    booking = await _load_booking_or_404(db, booking.id, refresh=True)
    return booking_to_detail(booking)


@router.put("/{booking_id}", response_model=BookingDetail)
async def update_booking_endpoint(
    booking_id: int,
    data: BookingUpdate,
    db: DbSession,
    user: CurrentUser,
):
    """
    Update a booking (partial).

    - changing trip or customer resets companions
    - payment_status='cancelled' cancels the booking; other explicit
      statuses are ignored, the status is derived from the payments
    - reinstate=true brings a cancelled booking back
    """
    booking = await _load_booking_or_404(db, booking_id)

    changes = data.model_dump(
        exclude_unset=True,
        exclude={"companion_customer_ids", "payment_status", "reinstate"},
    )

    try:
        await update_booking(
            db,
            booking,
            changes,
            companion_customer_ids=data.companion_customer_ids,
            payment_status=data.payment_status,
            reinstate=data.reinstate,
        )
    except BookingConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except BookingRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await _commit(db)

    booking = await _load_booking_or_404(db, booking_id, refresh=True)
    return booking_to_detail(booking)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking_endpoint(
    booking_id: int,
    db: DbSession,
    user: CurrentUser,
):
    """
    Delete a booking with its payments and commission.
    """
    booking = await _load_booking_or_404(db, booking_id)

    await delete_booking(db, booking)
    await db.commit()
