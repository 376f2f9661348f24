"""
Salon Commission Primitive — earned commission per served instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum


class CommissionStatus(Enum):
    APPLIED = "APPLIED"
    REVERTED = "REVERTED"


@dataclass(frozen=True)
class CommissionEntry:
    """
    rate is a percentage (Decimal("10.00") means 10 %);
    amount is in minor units, rounded half-up.
    """
    booking_id: str
    instance_id: str
    employee_id: str
    basis: int
    rate: Decimal
    amount: int
    created_at: datetime
    status: CommissionStatus = CommissionStatus.APPLIED

    def __post_init__(self):
        if not self.employee_id:
            raise ValueError("employee_id must be non-empty.")
        if not isinstance(self.rate, Decimal):
            raise TypeError("rate must be Decimal.")
        if self.amount < 0 or self.basis < 0:
            raise ValueError("basis and amount must be >= 0.")
