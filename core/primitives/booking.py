"""
Salon Booking Primitive — Bookings and Service Instances
=========================================================
A booking is an appointment for one customer. Every purchased
unit of a service becomes its own ServiceInstance that staff
claim and serve independently.

RULES (NON-NEGOTIABLE):
- Snapshots are immutable; changes produce new snapshots
- claimed_by is set iff status is CLAIMED or SERVED
- served_by is set iff status is SERVED
- price_at_booking is frozen at creation
- version increases by one on every persisted change

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Tuple

from core.primitives.catalog import Branch


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class BookingStatus(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


CLOSED_BOOKING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})


class InstanceStatus(Enum):
    UNCLAIMED = "UNCLAIMED"
    CLAIMED = "CLAIMED"
    SERVED = "SERVED"


HELD_STATUSES = frozenset({InstanceStatus.CLAIMED, InstanceStatus.SERVED})


# ══════════════════════════════════════════════════════════════
# SERVICE INSTANCE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ServiceInstance:
    """
    One independently fulfillable unit of a purchased service.
    """
    instance_id: str
    booking_id: str
    service_id: str
    price_at_booking: int
    sequence_order: int
    status: InstanceStatus = InstanceStatus.UNCLAIMED
    claimed_by: Optional[str] = None
    claimed_at: Optional[datetime] = None
    served_by: Optional[str] = None
    served_at: Optional[datetime] = None
    version: int = 1
    service_set_id: Optional[str] = None

    def __post_init__(self):
        if not self.instance_id or not isinstance(self.instance_id, str):
            raise ValueError("instance_id must be a non-empty string.")
        if not self.booking_id or not isinstance(self.booking_id, str):
            raise ValueError("booking_id must be a non-empty string.")
        if not isinstance(self.status, InstanceStatus):
            raise TypeError("status must be InstanceStatus.")
        if not isinstance(self.price_at_booking, int) or self.price_at_booking < 0:
            raise ValueError("price_at_booking must be a non-negative int.")
        if not isinstance(self.sequence_order, int) or self.sequence_order < 1:
            raise ValueError("sequence_order must be >= 1.")
        if not isinstance(self.version, int) or self.version < 1:
            raise ValueError("version must be >= 1.")

        held = self.status in HELD_STATUSES
        if held != (self.claimed_by is not None):
            raise ValueError(
                f"claimed_by must be set iff status is CLAIMED or SERVED "
                f"(status={self.status.value}, claimed_by={self.claimed_by!r})."
            )
        served = self.status == InstanceStatus.SERVED
        if served != (self.served_by is not None):
            raise ValueError(
                f"served_by must be set iff status is SERVED "
                f"(status={self.status.value}, served_by={self.served_by!r})."
            )

    def with_changes(self, **changes) -> ServiceInstance:
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "instance_id": self.instance_id,
            "booking_id": self.booking_id,
            "service_id": self.service_id,
            "service_set_id": self.service_set_id,
            "price_at_booking": self.price_at_booking,
            "sequence_order": self.sequence_order,
            "status": self.status.value,
            "claimed_by": self.claimed_by,
            "claimed_at": self.claimed_at.isoformat() if self.claimed_at else None,
            "served_by": self.served_by,
            "served_at": self.served_at.isoformat() if self.served_at else None,
            "version": self.version,
        }


# ══════════════════════════════════════════════════════════════
# BOOKING
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Booking:
    """
    Appointment header. grand_total is the subtotal before discount;
    final_total caches max(0, grand_total - grand_discount).
    """
    booking_id: str
    branch: Branch
    appointment_date: date
    appointment_time: time
    status: BookingStatus
    grand_total: int
    grand_discount: int = 0
    final_total: Optional[int] = None
    duration_minutes: int = 0
    customer_id: Optional[str] = None
    customer_name: str = ""
    notes: str = ""
    voucher_id: Optional[str] = None
    gift_certificate_id: Optional[str] = None
    created_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    commission_processed_at: Optional[datetime] = None
    version: int = 1

    def __post_init__(self):
        if not self.booking_id or not isinstance(self.booking_id, str):
            raise ValueError("booking_id must be a non-empty string.")
        if not isinstance(self.branch, Branch):
            raise TypeError("branch must be Branch.")
        if not isinstance(self.status, BookingStatus):
            raise TypeError("status must be BookingStatus.")
        for name in ("grand_total", "grand_discount"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative int.")

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_BOOKING_STATUSES

    def with_changes(self, **changes) -> Booking:
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking_id,
            "branch": self.branch.value,
            "appointment_date": self.appointment_date.isoformat(),
            "appointment_time": self.appointment_time.isoformat(),
            "status": self.status.value,
            "grand_total": self.grand_total,
            "grand_discount": self.grand_discount,
            "final_total": self.final_total,
            "duration_minutes": self.duration_minutes,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "voucher_id": self.voucher_id,
            "gift_certificate_id": self.gift_certificate_id,
            "version": self.version,
        }


# ══════════════════════════════════════════════════════════════
# DRAFTS (what a store is asked to create)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class InstanceDraft:
    service_id: str
    price_at_booking: int
    sequence_order: int
    service_set_id: Optional[str] = None


@dataclass(frozen=True)
class BookingDraft:
    """
    A fully priced booking awaiting identifiers from the store.
    """
    branch: Branch
    appointment_date: date
    appointment_time: time
    grand_total: int
    grand_discount: int
    final_total: int
    duration_minutes: int
    instances: Tuple[InstanceDraft, ...]
    created_at: datetime
    customer_id: Optional[str] = None
    customer_name: str = ""
    notes: str = ""
    status: BookingStatus = BookingStatus.PENDING

    def __post_init__(self):
        if not isinstance(self.instances, tuple):
            raise TypeError("instances must be a tuple.")
        if not self.instances:
            raise ValueError("A booking needs at least one service instance.")
        orders = [draft.sequence_order for draft in self.instances]
        if orders != list(range(1, len(orders) + 1)):
            raise ValueError("sequence_order must be 1-based and contiguous.")
