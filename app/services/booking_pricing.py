"""
Booking price and installment rules.

Pure functions, no database access:
- booking total from the base price, add-ons and discount
- first-payment amount for a ratio policy
- installment validation (count, ratio match, never above total)
- payment status derived from total and payments
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional

from app.models.booking import FIRST_PAYMENT_RATIOS, MAX_INSTALLMENTS

CENT = Decimal("0.01")
TOLERANCE = Decimal("0.01")
ZERO = Decimal("0")

RATIO_VALUES = {
    "first_payment_100": Decimal("1.0"),
    "first_payment_50": Decimal("0.5"),
    "first_payment_30": Decimal("0.3"),
}

DEFAULT_RATIO = "first_payment_50"


class BookingRuleError(ValueError):
    """A booking price, payment or companion rule was violated."""
    pass


def to_money(value) -> Decimal:
    """Convert to Decimal rounded half-up to two places. None counts as zero."""
    if value is None:
        return ZERO.quantize(CENT)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise BookingRuleError(f"Invalid amount: {value!r}") from e
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_total(
    base_price,
    single_traveller_extra=None,
    bed_extra=None,
    seat_extra=None,
    bag_extra=None,
    discount=None,
) -> Decimal:
    """
    total = base + single + bed + seat + bag - discount

    Missing add-ons count as zero. Negative add-ons, a negative discount
    or a negative total raise BookingRuleError.
    """
    base = to_money(base_price)
    if base < ZERO:
        raise BookingRuleError("Trip price cannot be negative")

    extras = {
        "extra_price_for_single_traveller": single_traveller_extra,
        "extra_price_per_bed": bed_extra,
        "extra_price_per_seat": seat_extra,
        "extra_price_per_bag": bag_extra,
        "discount_price": discount,
    }
    amounts = {}
    for field, value in extras.items():
        amount = to_money(value)
        if amount < ZERO:
            raise BookingRuleError(f"{field} cannot be negative")
        amounts[field] = amount

    total = (
        base
        + amounts["extra_price_for_single_traveller"]
        + amounts["extra_price_per_bed"]
        + amounts["extra_price_per_seat"]
        + amounts["extra_price_per_bag"]
        - amounts["discount_price"]
    )
    if total < ZERO:
        raise BookingRuleError(
            f"Discount {amounts['discount_price']} exceeds the booking price {total + amounts['discount_price']}"
        )
    return total


def calculate_booking_total(booking) -> Decimal:
    """Total for a Booking (or any object with the same attributes) from its stored base price."""
    return calculate_total(
        booking.base_price,
        single_traveller_extra=booking.extra_price_for_single_traveller,
        bed_extra=booking.extra_price_per_bed,
        seat_extra=booking.extra_price_per_seat,
        bag_extra=booking.extra_price_per_bag,
        discount=booking.discount_price,
    )


def ratio_value(ratio: Optional[str]) -> Decimal:
    if ratio is None:
        ratio = DEFAULT_RATIO
    if ratio not in RATIO_VALUES:
        raise BookingRuleError(
            f"Invalid first payment ratio '{ratio}'. Must be one of {', '.join(FIRST_PAYMENT_RATIOS)}"
        )
    return RATIO_VALUES[ratio]


def first_payment_amount(total, ratio: Optional[str]) -> Decimal:
    """Expected first installment: total x ratio, rounded to 0.01."""
    return (to_money(total) * ratio_value(ratio)).quantize(CENT, rounding=ROUND_HALF_UP)


def validate_first_payment(amount, total, ratio: Optional[str]) -> Decimal:
    """Raise unless amount matches total x ratio within 0.01. Returns the rounded amount."""
    paid = to_money(amount)
    expected = first_payment_amount(total, ratio)
    if abs(paid - expected) > TOLERANCE:
        raise BookingRuleError(
            f"First payment must be {expected} ({ratio or DEFAULT_RATIO} of {to_money(total)}), got {paid}"
        )
    return paid


def validate_installment(
    installment: int,
    amount,
    total,
    paid_so_far,
    ratio: Optional[str],
) -> Decimal:
    """
    Check one installment before it is recorded.

    installment: 1-based position of the new payment
    paid_so_far: sum of the payments already recorded
    """
    if installment < 1 or installment > MAX_INSTALLMENTS:
        raise BookingRuleError(f"A booking accepts at most {MAX_INSTALLMENTS} payments")

    paid = to_money(amount)
    if paid <= ZERO:
        raise BookingRuleError("Payment amount must be greater than zero")

    if installment == 1:
        paid = validate_first_payment(paid, total, ratio)

    remaining = to_money(total) - to_money(paid_so_far)
    if paid - remaining > TOLERANCE:
        raise BookingRuleError(
            f"Payment {paid} exceeds the remaining balance {remaining}"
        )
    return paid


def derive_payment_status(total, paid, current_status: Optional[str] = None) -> str:
    """
    Payment status from amounts. 'cancelled' is sticky and only set explicitly.
    """
    if current_status == "cancelled":
        return "cancelled"

    total = to_money(total)
    paid = to_money(paid)
    if total > ZERO and paid >= total:
        return "fully_paid"
    if paid > ZERO:
        return "deposit_paid"
    return "deposit_pending"
