"""
Salon Booking Aggregate — Instances and Derived Totals
=======================================================
Holds one booking, its service instances, and the totals derived
from them. Totals are recomputed from scratch after every change;
nothing is incrementally patched.

Each instance is wrapped in a PendingInstance so a caller can
show an in-flight change before the store confirms it:

    PENDING    optimistic snapshot shown, confirmed kept for rollback
    CONFIRMED  store accepted; confirmed is authoritative
    REJECTED   store refused; view rolled back to confirmed

Remote snapshots (from the change feed) are merged only when
their version is newer than the held confirmed snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from core.primitives.booking import Booking, InstanceStatus, ServiceInstance
from engines.pricing.engine import grand_total

logger = logging.getLogger("salon.booking")


# ══════════════════════════════════════════════════════════════
# PENDING WRAPPER
# ══════════════════════════════════════════════════════════════

class PendingState(Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class PendingInstance:
    state: PendingState
    confirmed: ServiceInstance
    optimistic: Optional[ServiceInstance] = None

    def __post_init__(self):
        if (self.state == PendingState.PENDING) != (self.optimistic is not None):
            raise ValueError("Only a PENDING entry carries an optimistic snapshot.")

    @property
    def current(self) -> ServiceInstance:
        if self.state == PendingState.PENDING:
            return self.optimistic
        return self.confirmed


# ══════════════════════════════════════════════════════════════
# TOTALS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BookingTotals:
    subtotal: int
    grand_discount: int
    final_total: int
    instance_count: int
    unclaimed_count: int
    claimed_count: int
    served_count: int

    @property
    def remaining_count(self) -> int:
        return self.instance_count - self.served_count

    @property
    def all_served(self) -> bool:
        return self.instance_count > 0 and self.served_count == self.instance_count

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "grand_discount": self.grand_discount,
            "final_total": self.final_total,
            "instance_count": self.instance_count,
            "unclaimed_count": self.unclaimed_count,
            "claimed_count": self.claimed_count,
            "served_count": self.served_count,
            "remaining_count": self.remaining_count,
        }


def recompute(booking: Booking, instances: Iterable[ServiceInstance]) -> BookingTotals:
    """Derive every total from the booking header and instance statuses."""
    counts = {status: 0 for status in InstanceStatus}
    for instance in instances:
        if instance.booking_id != booking.booking_id:
            raise ValueError(
                f"Instance {instance.instance_id} belongs to booking "
                f"{instance.booking_id}, not {booking.booking_id}."
            )
        counts[instance.status] += 1
    return BookingTotals(
        subtotal=booking.grand_total,
        grand_discount=booking.grand_discount,
        final_total=grand_total(booking.grand_total, booking.grand_discount),
        instance_count=sum(counts.values()),
        unclaimed_count=counts[InstanceStatus.UNCLAIMED],
        claimed_count=counts[InstanceStatus.CLAIMED],
        served_count=counts[InstanceStatus.SERVED],
    )


# ══════════════════════════════════════════════════════════════
# AGGREGATE
# ══════════════════════════════════════════════════════════════

class BookingAggregate:

    def __init__(self, booking: Booking, instances: Iterable[ServiceInstance]):
        self._booking = booking
        self._entries: Dict[str, PendingInstance] = {}
        for instance in instances:
            self._entries[instance.instance_id] = PendingInstance(
                state=PendingState.CONFIRMED, confirmed=instance,
            )
        self._totals = recompute(booking, self.instances())

    # ── Views ─────────────────────────────────────────────────

    @property
    def booking(self) -> Booking:
        return self._booking

    @property
    def booking_id(self) -> str:
        return self._booking.booking_id

    @property
    def totals(self) -> BookingTotals:
        return self._totals

    def instances(self) -> List[ServiceInstance]:
        return sorted(
            (entry.current for entry in self._entries.values()),
            key=lambda instance: instance.sequence_order,
        )

    def entry(self, instance_id: str) -> PendingInstance:
        try:
            return self._entries[instance_id]
        except KeyError:
            raise KeyError(
                f"Instance {instance_id} is not part of booking {self.booking_id}."
            ) from None

    def get(self, instance_id: str) -> ServiceInstance:
        return self.entry(instance_id).current

    def has_served_instances(self) -> bool:
        return any(
            entry.confirmed.status == InstanceStatus.SERVED
            for entry in self._entries.values()
        )

    # ── Optimistic lifecycle ──────────────────────────────────

    def begin(self, optimistic: ServiceInstance) -> None:
        held = self.entry(optimistic.instance_id)
        self._entries[optimistic.instance_id] = PendingInstance(
            state=PendingState.PENDING,
            confirmed=held.confirmed,
            optimistic=optimistic,
        )
        self._recompute()

    def confirm(self, snapshot: ServiceInstance) -> None:
        held = self.entry(snapshot.instance_id)
        confirmed = snapshot
        if held.confirmed.version > snapshot.version:
            # A newer remote snapshot already arrived while we waited.
            confirmed = held.confirmed
        self._entries[snapshot.instance_id] = PendingInstance(
            state=PendingState.CONFIRMED, confirmed=confirmed,
        )
        self._recompute()

    def reject(
        self,
        instance_id: str,
        authoritative: Optional[ServiceInstance] = None,
    ) -> None:
        held = self.entry(instance_id)
        confirmed = held.confirmed
        if authoritative is not None and authoritative.version > confirmed.version:
            confirmed = authoritative
        self._entries[instance_id] = PendingInstance(
            state=PendingState.REJECTED, confirmed=confirmed,
        )
        self._recompute()

    # ── Remote merges ─────────────────────────────────────────

    def merge_remote(self, snapshot: ServiceInstance) -> bool:
        """
        Adopt a pushed snapshot if it is newer than what we hold.
        Returns False for duplicates and out-of-order deliveries.
        """
        if snapshot.booking_id != self.booking_id:
            raise ValueError(
                f"Snapshot for booking {snapshot.booking_id} "
                f"pushed to aggregate {self.booking_id}."
            )
        held = self._entries.get(snapshot.instance_id)
        if held is None:
            self._entries[snapshot.instance_id] = PendingInstance(
                state=PendingState.CONFIRMED, confirmed=snapshot,
            )
        elif snapshot.version <= held.confirmed.version:
            logger.debug(
                f"Ignored stale snapshot for instance {snapshot.instance_id} "
                f"(v{snapshot.version} <= v{held.confirmed.version})"
            )
            return False
        else:
            self._entries[snapshot.instance_id] = PendingInstance(
                state=held.state,
                confirmed=snapshot,
                optimistic=held.optimistic,
            )
        self._recompute()
        return True

    def refresh(self, instances: Iterable[ServiceInstance]) -> None:
        for instance in instances:
            self.merge_remote(instance)

    def replace_booking(self, booking: Booking) -> bool:
        if booking.booking_id != self.booking_id:
            raise ValueError("Cannot replace the header with another booking.")
        if booking.version <= self._booking.version:
            return False
        self._booking = booking
        self._recompute()
        return True

    def _recompute(self) -> None:
        self._totals = recompute(self._booking, self.instances())

    def to_dict(self) -> dict:
        return {
            "booking": self._booking.to_dict(),
            "instances": [instance.to_dict() for instance in self.instances()],
            "totals": self._totals.to_dict(),
        }
