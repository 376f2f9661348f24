"""
Salon Booking Engine — Policies
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, Optional

from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.booking import (
    Booking,
    BookingStatus,
    InstanceStatus,
    ServiceInstance,
)
from core.primitives.workflow import BOOKING_STATUS_WORKFLOW
from engines.booking.aggregate import BookingTotals
from engines.fulfillment.commands import FulfillmentAction
from engines.pricing.engine import grand_total

STATUS_TIMESTAMP_FIELDS = {
    BookingStatus.CONFIRMED: "confirmed_at",
    BookingStatus.IN_PROGRESS: "started_at",
    BookingStatus.COMPLETED: "completed_at",
    BookingStatus.CANCELLED: "cancelled_at",
}


def booking_transition_must_be_allowed_policy(
    booking: Booking, target: BookingStatus,
) -> Optional[RejectionReason]:
    if not BOOKING_STATUS_WORKFLOW.is_valid_transition(booking.status, target):
        return RejectionReason(
            code=ReasonCode.INVALID_BOOKING_TRANSITION,
            message=f"Booking cannot move from {booking.status.value} to {target.value}.",
            policy_name="booking_transition_must_be_allowed_policy")
    return None


def booking_must_have_no_served_instances_policy(
    instances: Iterable[ServiceInstance],
) -> Optional[RejectionReason]:
    served = [i for i in instances if i.status == InstanceStatus.SERVED]
    if served:
        return RejectionReason(
            code=ReasonCode.BOOKING_HAS_SERVED_INSTANCES,
            message=f"Booking has {len(served)} served service instance(s) and cannot be cancelled.",
            policy_name="booking_must_have_no_served_instances_policy")
    return None


def booking_must_be_open_policy(booking: Booking) -> Optional[RejectionReason]:
    if booking.is_closed:
        return RejectionReason(
            code=ReasonCode.BOOKING_CLOSED,
            message=f"Booking is {booking.status.value}.",
            policy_name="booking_must_be_open_policy")
    return None


def automatic_status_after(
    action: FulfillmentAction,
    booking: Booking,
    totals: BookingTotals,
) -> Optional[BookingStatus]:
    """
    Next booking status implied by a successful fulfillment action,
    or None when the booking stays where it is. Called again after
    each applied step, so a serve may walk PENDING → IN_PROGRESS → COMPLETED.
    """
    status = booking.status
    if action in (FulfillmentAction.CLAIM, FulfillmentAction.SERVE):
        # a serve also starts a booking whose claim-time write was lost
        if status in (BookingStatus.PENDING, BookingStatus.CONFIRMED):
            return BookingStatus.IN_PROGRESS
    if action == FulfillmentAction.SERVE:
        if not totals.all_served:
            return None
        if status == BookingStatus.IN_PROGRESS:
            return BookingStatus.COMPLETED
        return None
    if action == FulfillmentAction.UNSERVE:
        if status == BookingStatus.COMPLETED:
            return BookingStatus.IN_PROGRESS
    return None


def status_patch(booking: Booking, target: BookingStatus, at: datetime) -> Dict:
    """Status change plus its lifecycle timestamp (first entry only)."""
    patch = {"status": target}
    field_name = STATUS_TIMESTAMP_FIELDS.get(target)
    if field_name is not None and getattr(booking, field_name) is None:
        patch[field_name] = at
    if target == BookingStatus.COMPLETED:
        patch["final_total"] = grand_total(booking.grand_total, booking.grand_discount)
    return patch
