"""Booking Pricing - tests for pure total, installment and status rules.

Tests cover:
    - calculate_total adds add-ons and subtracts the discount
    - negative add-ons / discounts / totals rejected
    - first payment must match total x ratio within 0.01
    - installments capped at 3 and never above the remaining balance
    - derive_payment_status thresholds and sticky cancelled
"""

from decimal import Decimal

import pytest

from app.services.booking_pricing import (
    BookingRuleError,
    calculate_total,
    derive_payment_status,
    first_payment_amount,
    ratio_value,
    to_money,
    validate_first_payment,
    validate_installment,
)


# ─── calculate_total ─────────────────────────────────────────────

def test_total_is_base_plus_addons_minus_discount():
    total = calculate_total(
        Decimal("10000"),
        bag_extra=Decimal("500"),
        discount=Decimal("300"),
    )
    assert total == Decimal("10200.00")


def test_total_counts_every_addon():
    total = calculate_total(
        "25000.00",
        single_traveller_extra="4500",
        bed_extra="1200",
        seat_extra="800",
        bag_extra="500",
        discount="1000",
    )
    assert total == Decimal("31000.00")


def test_missing_addons_count_as_zero():
    assert calculate_total(Decimal("9999.99")) == Decimal("9999.99")


def test_negative_addon_rejected():
    with pytest.raises(BookingRuleError, match="extra_price_per_bag"):
        calculate_total(Decimal("10000"), bag_extra=Decimal("-1"))


def test_negative_discount_rejected():
    with pytest.raises(BookingRuleError, match="discount_price"):
        calculate_total(Decimal("10000"), discount=Decimal("-50"))


def test_discount_larger_than_price_rejected():
    with pytest.raises(BookingRuleError, match="exceeds"):
        calculate_total(Decimal("1000"), discount=Decimal("1000.01"))


def test_discount_equal_to_price_gives_zero_total():
    assert calculate_total(Decimal("1000"), discount=Decimal("1000")) == Decimal("0.00")


def test_to_money_rounds_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(None) == Decimal("0.00")


def test_to_money_rejects_garbage():
    with pytest.raises(BookingRuleError):
        to_money("ten baht")


# ─── first payment ratio ─────────────────────────────────────────

def test_ratio_values():
    assert ratio_value("first_payment_100") == Decimal("1.0")
    assert ratio_value("first_payment_50") == Decimal("0.5")
    assert ratio_value("first_payment_30") == Decimal("0.3")
    assert ratio_value(None) == Decimal("0.5")


def test_unknown_ratio_rejected():
    with pytest.raises(BookingRuleError, match="Invalid first payment ratio"):
        ratio_value("first_payment_70")


def test_first_payment_amount_rounds_to_cents():
    assert first_payment_amount(Decimal("10200"), "first_payment_50") == Decimal("5100.00")
    assert first_payment_amount(Decimal("9999.99"), "first_payment_30") == Decimal("3000.00")


def test_first_payment_within_tolerance_accepted():
    assert validate_first_payment(Decimal("5100.01"), Decimal("10200"), "first_payment_50") == Decimal("5100.01")


def test_first_payment_mismatch_rejected():
    with pytest.raises(BookingRuleError, match="First payment must be 5100.00"):
        validate_first_payment(Decimal("5000"), Decimal("10200"), "first_payment_50")


# ─── validate_installment ────────────────────────────────────────

def test_first_installment_checks_ratio():
    with pytest.raises(BookingRuleError):
        validate_installment(1, Decimal("3000"), Decimal("10000"), Decimal("0"), "first_payment_50")


def test_later_installment_any_amount_up_to_remaining():
    paid = validate_installment(2, Decimal("1234.56"), Decimal("10000"), Decimal("5000"), "first_payment_50")
    assert paid == Decimal("1234.56")


def test_installment_above_remaining_rejected():
    with pytest.raises(BookingRuleError, match="exceeds the remaining balance"):
        validate_installment(2, Decimal("5000.02"), Decimal("10000"), Decimal("5000"), "first_payment_50")


def test_installment_exactly_remaining_accepted():
    paid = validate_installment(3, Decimal("2000"), Decimal("10000"), Decimal("8000"), "first_payment_50")
    assert paid == Decimal("2000.00")


def test_fourth_installment_rejected():
    with pytest.raises(BookingRuleError, match="at most 3"):
        validate_installment(4, Decimal("1"), Decimal("10000"), Decimal("9000"), "first_payment_50")


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10")])
def test_non_positive_installment_rejected(amount):
    with pytest.raises(BookingRuleError, match="greater than zero"):
        validate_installment(2, amount, Decimal("10000"), Decimal("5000"), "first_payment_50")


# ─── derive_payment_status ───────────────────────────────────────

def test_status_pending_without_payments():
    assert derive_payment_status(Decimal("10200"), Decimal("0")) == "deposit_pending"


def test_status_deposit_paid_when_partially_paid():
    assert derive_payment_status(Decimal("10200"), Decimal("5100")) == "deposit_paid"


def test_status_fully_paid_only_at_total():
    assert derive_payment_status(Decimal("10200"), Decimal("10200")) == "fully_paid"
    assert derive_payment_status(Decimal("10200"), Decimal("10199.99")) == "deposit_paid"


def test_zero_total_is_never_fully_paid():
    assert derive_payment_status(Decimal("0"), Decimal("0")) == "deposit_pending"


def test_cancelled_is_sticky():
    assert derive_payment_status(Decimal("10200"), Decimal("10200"), "cancelled") == "cancelled"
