"""
Lead status change validation.

interested -> booked -> completed is the normal path; cancelled can be
reached from anywhere. booked and completed are system statuses driven by
the lead's bookings (see lead_sync).
"""

from dataclasses import dataclass
from typing import Optional

from app.models.lead import LEAD_STATUSES

MANUAL_LEAD_STATUSES = ("interested", "cancelled")
SYSTEM_LEAD_STATUSES = ("booked", "completed")

STATUS_ORDER = {
    "interested": 0,
    "booked": 1,
    "completed": 2,
    "cancelled": 0,
}


@dataclass
class StatusChangeResult:
    allowed: bool
    warning: Optional[str] = None
    requires_reason: bool = False


def validate_status_change(
    current_status: str,
    new_status: str,
    has_active_bookings: bool = False,
) -> StatusChangeResult:
    if current_status == new_status:
        return StatusChangeResult(allowed=True)

    if new_status not in LEAD_STATUSES or current_status not in LEAD_STATUSES:
        return StatusChangeResult(allowed=False, warning=f"Unknown lead status '{new_status}'")

    if has_active_bookings and new_status in SYSTEM_LEAD_STATUSES:
        return StatusChangeResult(
            allowed=False,
            warning="Cannot set this status manually while the lead has active bookings; "
                    "it is managed from the bookings",
        )
    if has_active_bookings and current_status in SYSTEM_LEAD_STATUSES:
        return StatusChangeResult(
            allowed=False,
            warning="Cannot change status while the lead has active bookings. Cancel the bookings first",
        )

    current_order = STATUS_ORDER[current_status]
    next_order = STATUS_ORDER[new_status]

    if next_order == current_order + 1:
        return StatusChangeResult(allowed=True)

    if next_order > current_order + 1 and new_status in MANUAL_LEAD_STATUSES:
        return StatusChangeResult(
            allowed=True,
            warning="Skipping a pipeline step, please give a reason",
            requires_reason=True,
        )

    if next_order < current_order and new_status in MANUAL_LEAD_STATUSES:
        return StatusChangeResult(
            allowed=True,
            warning="Reverting the lead status, please give a reason",
            requires_reason=True,
        )

    if new_status == "cancelled":
        return StatusChangeResult(
            allowed=True,
            warning="Cancelling the lead, please give a reason",
            requires_reason=True,
        )

    if new_status == "booked":
        return StatusChangeResult(
            allowed=True,
            warning="booked is normally set when a booking is created",
            requires_reason=True,
        )

    if new_status == "completed":
        return StatusChangeResult(
            allowed=True,
            warning="completed is normally set once the bookings are completed",
            requires_reason=True,
        )

    return StatusChangeResult(allowed=True)


def describe_status_change(current_status: str, new_status: str) -> str:
    descriptions = {
        ("interested", "booked"): "Trip booked",
        ("booked", "completed"): "Trip completed",
        ("interested", "cancelled"): "Lead cancelled",
        ("booked", "cancelled"): "Booking cancelled",
    }
    return descriptions.get(
        (current_status, new_status),
        f"Status changed from {current_status} to {new_status}",
    )
