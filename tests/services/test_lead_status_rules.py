"""Lead Status Rules - tests for manual status change validation.

Tests cover:
    - next pipeline step allowed without reason
    - skips and reverts to manual statuses need a reason
    - system statuses blocked while bookings are active
    - cancelling always needs a reason
"""

from app.services.lead_status_rules import describe_status_change, validate_status_change


def test_same_status_is_noop():
    result = validate_status_change("booked", "booked", has_active_bookings=True)
    assert result.allowed
    assert not result.requires_reason


def test_next_step_allowed_without_reason():
    result = validate_status_change("interested", "booked")
    assert result.allowed
    assert not result.requires_reason
    assert result.warning is None


def test_cancel_requires_reason():
    result = validate_status_change("interested", "cancelled")
    assert result.allowed
    assert result.requires_reason


def test_revert_to_interested_requires_reason():
    result = validate_status_change("completed", "interested")
    assert result.allowed
    assert result.requires_reason
    assert "Reverting" in result.warning


def test_skip_to_completed_requires_reason():
    result = validate_status_change("interested", "completed")
    assert result.allowed
    assert result.requires_reason


def test_system_status_blocked_with_active_bookings():
    result = validate_status_change("interested", "booked", has_active_bookings=True)
    assert not result.allowed
    assert "managed from the bookings" in result.warning


def test_leaving_system_status_blocked_with_active_bookings():
    result = validate_status_change("booked", "cancelled", has_active_bookings=True)
    assert not result.allowed
    assert "Cancel the bookings first" in result.warning


def test_leaving_booked_without_active_bookings_allowed():
    result = validate_status_change("booked", "interested", has_active_bookings=False)
    assert result.allowed
    assert result.requires_reason


def test_unknown_status_rejected():
    result = validate_status_change("interested", "archived")
    assert not result.allowed


def test_describe_known_and_generic_changes():
    assert describe_status_change("interested", "booked") == "Trip booked"
    assert describe_status_change("cancelled", "interested") == (
        "Status changed from cancelled to interested"
    )
