"""
Payment endpoints - record installments against a booking.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from app.api.bookings import PaymentMethod, PaymentResponse
from app.api.deps import CurrentUser, DbSession
from app.models.booking import Payment
from app.services.booking_pricing import BookingRuleError
from app.services.booking_service import (
    BookingNotFoundError,
    get_booking,
    payment_summary,
    record_payment,
)

logger = logging.getLogger(__name__)
router = APIRouter()


# ============================================================================
# Schemas
# ============================================================================

class PaymentCreate(BaseModel):
    booking_id: int
    amount: Decimal
    paid_at: Optional[datetime] = None
    proof_of_payment: Optional[str] = None
    note: Optional[str] = None
    method: PaymentMethod = "other"


class PaymentRecorded(BaseModel):
    payment: PaymentResponse
    booking_id: int
    payment_status: str
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal


# ============================================================================
# Endpoints
# ============================================================================

@router.get("", response_model=List[PaymentResponse])
async def list_payments(
    db: DbSession,
    user: CurrentUser,
    booking_id: int = Query(...),
):
    """List a booking's payments in installment order."""
    result = await db.execute(
        select(Payment)
        .where(Payment.booking_id == booking_id)
        .order_by(Payment.installment)
    )
    return [PaymentResponse.model_validate(p) for p in result.scalars().all()]


@router.post("", response_model=PaymentRecorded, status_code=status.HTTP_201_CREATED)
async def create_payment(
    data: PaymentCreate,
    db: DbSession,
    user: CurrentUser,
):
    """
    Record the next installment of a booking.
    The first installment must match the booking's first payment ratio;
    payments can never exceed the booking total.
    """
    try:
        payment = await record_payment(
            db,
            data.booking_id,
            data.amount,
            paid_at=data.paid_at,
            proof_of_payment=data.proof_of_payment,
            note=data.note,
            method=data.method,
        )
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Payment conflict on booking %s: %s", data.booking_id, e.orig)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another payment was recorded for this booking at the same time; reload and retry",
        )
    except BookingNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )
    except BookingRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    booking = await get_booking(db, data.booking_id, refresh=True)
    summary = payment_summary(booking)
    return PaymentRecorded(
        payment=PaymentResponse.model_validate(payment),
        booking_id=booking.id,
        payment_status=booking.payment_status,
        total_amount=booking.total_amount,
        paid_amount=summary["paid_amount"],
        remaining_amount=summary["remaining_amount"],
    )
