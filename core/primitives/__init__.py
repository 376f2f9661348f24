"""
Salon Primitives — immutable value types shared by every engine.
"""

from core.primitives.booking import (
    CLOSED_BOOKING_STATUSES,
    HELD_STATUSES,
    Booking,
    BookingDraft,
    BookingStatus,
    InstanceDraft,
    InstanceStatus,
    ServiceInstance,
)
from core.primitives.catalog import (
    Branch,
    GiftCertificate,
    RedemptionStatus,
    SelectionKind,
    SelectionLine,
    Service,
    ServiceSet,
    ServiceSetItem,
    Voucher,
)
from core.primitives.commission import CommissionEntry, CommissionStatus
from core.primitives.workflow import BOOKING_STATUS_WORKFLOW, WorkflowDefinition

__all__ = [
    "Booking",
    "BookingDraft",
    "BookingStatus",
    "CLOSED_BOOKING_STATUSES",
    "HELD_STATUSES",
    "InstanceDraft",
    "InstanceStatus",
    "ServiceInstance",
    "Branch",
    "GiftCertificate",
    "RedemptionStatus",
    "SelectionKind",
    "SelectionLine",
    "Service",
    "ServiceSet",
    "ServiceSetItem",
    "Voucher",
    "CommissionEntry",
    "CommissionStatus",
    "BOOKING_STATUS_WORKFLOW",
    "WorkflowDefinition",
]
