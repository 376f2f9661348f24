"""
Salon Booking Engine — Request Commands
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Optional, Tuple

from core.primitives.booking import BookingStatus
from core.primitives.catalog import Branch, SelectionLine


@dataclass(frozen=True)
class CreateBookingRequest:
    branch: Branch
    appointment_date: date
    appointment_time: time
    lines: Tuple[SelectionLine, ...]
    customer_id: Optional[str] = None
    customer_name: str = ""
    notes: str = ""
    voucher_code: Optional[str] = None
    grand_discount: int = 0

    def __post_init__(self):
        if not isinstance(self.branch, Branch):
            raise TypeError("branch must be Branch.")
        if not isinstance(self.lines, tuple):
            raise TypeError("lines must be a tuple of SelectionLine.")
        if not self.lines:
            raise ValueError("A booking needs at least one service or service set.")
        for line in self.lines:
            if not isinstance(line, SelectionLine):
                raise TypeError("lines must contain SelectionLine values.")
        if not self.customer_id and not self.customer_name.strip():
            raise ValueError("customer_id or customer_name is required.")
        if not isinstance(self.grand_discount, int) or self.grand_discount < 0:
            raise ValueError("grand_discount must be a non-negative integer.")


@dataclass(frozen=True)
class ChangeBookingStatusRequest:
    booking_id: str
    target: BookingStatus
    actor_id: str

    def __post_init__(self):
        if not self.booking_id:
            raise ValueError("booking_id must be non-empty.")
        if not isinstance(self.target, BookingStatus):
            raise TypeError("target must be BookingStatus.")
        if not self.actor_id:
            raise ValueError("actor_id must be non-empty.")
