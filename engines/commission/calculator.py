"""
Salon Commission Calculator
============================

RULES (NON-NEGOTIABLE):
- Basis is the instance's price_at_booking (the adjusted price
  for bundle items, the list price otherwise)
- Rate is the highest rate among the earner's roles
- amount = basis * rate / 100, rounded half-up to minor units
- The earner is whoever SERVED the instance
- A booking settles only when every instance is SERVED and the
  earliest serve is at least the settle window old

This module performs no I/O.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, List, Sequence

from core.config.rules import SalonRules
from core.primitives.booking import InstanceStatus, ServiceInstance
from core.primitives.commission import CommissionEntry


def commission_amount(basis: int, rate: Decimal) -> int:
    if not isinstance(rate, Decimal):
        raise TypeError("rate must be Decimal.")
    if basis < 0:
        raise ValueError("basis must be >= 0.")
    raw = Decimal(basis) * rate / Decimal(100)
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def is_settleable(
    instances: Sequence[ServiceInstance],
    now: datetime,
    window_seconds: int,
) -> bool:
    if not instances:
        return False
    if any(instance.status != InstanceStatus.SERVED for instance in instances):
        return False
    earliest = min(instance.served_at for instance in instances)
    return earliest <= now - timedelta(seconds=window_seconds)


def build_entries(
    instances: Iterable[ServiceInstance],
    roles_for: Callable[[str], Iterable[str]],
    rules: SalonRules,
    created_at: datetime,
) -> List[CommissionEntry]:
    entries = []
    for instance in instances:
        if instance.status != InstanceStatus.SERVED:
            raise ValueError(f"Instance {instance.instance_id} is not SERVED.")
        rate = rules.highest_rate(roles_for(instance.served_by))
        entries.append(CommissionEntry(
            booking_id=instance.booking_id,
            instance_id=instance.instance_id,
            employee_id=instance.served_by,
            basis=instance.price_at_booking,
            rate=rate,
            amount=commission_amount(instance.price_at_booking, rate),
            created_at=created_at,
        ))
    return entries
