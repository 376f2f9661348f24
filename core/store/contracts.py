"""
Salon Store — Contract
=======================
The one seam between the salon engines and durable state.

Every mutating call is either a conditional write (compare the
current status/claimant, then update, as one step) or part of an
atomic pair. A backend never half-applies a call.

Errors (core/store/errors.py):
    StoreConflict        guard did not match current state
    AlreadyUsed          single-use record already consumed
    RecordNotFound       id does not exist
    TransientStoreError  backend/network failure, safe to retry once
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Tuple

from core.primitives.booking import (
    Booking,
    BookingDraft,
    BookingStatus,
    InstanceStatus,
    ServiceInstance,
)
from core.primitives.catalog import GiftCertificate, Service, ServiceSet, Voucher
from core.primitives.commission import CommissionEntry


# Fields a conditional instance write may change.
INSTANCE_PATCH_FIELDS = frozenset({
    "status", "claimed_by", "claimed_at", "served_by", "served_at",
})

# Fields a conditional booking write may change.
BOOKING_PATCH_FIELDS = frozenset({
    "status", "final_total", "confirmed_at", "started_at",
    "completed_at", "cancelled_at", "notes",
})


def check_patch(patch: Mapping[str, Any], allowed: frozenset) -> None:
    unknown = set(patch) - allowed
    if unknown:
        raise ValueError(f"Patch contains non-writable fields: {sorted(unknown)}.")


class SalonStore(Protocol):

    # ── Bookings ──────────────────────────────────────────────

    def create_booking(
        self,
        draft: BookingDraft,
        *,
        voucher_id: Optional[str] = None,
    ) -> Tuple[Booking, List[ServiceInstance]]:
        """
        Create the booking and all of its instances atomically.
        When voucher_id is given the voucher is consumed in the same
        transaction; AlreadyUsed rolls the whole creation back.
        """
        ...  # pragma: no cover

    def get_booking(self, booking_id: str) -> Booking:
        ...  # pragma: no cover

    def conditional_update_booking(
        self,
        booking_id: str,
        *,
        expected_statuses: Iterable[BookingStatus],
        patch: Mapping[str, Any],
        require_no_served: bool = False,
    ) -> Booking:
        ...  # pragma: no cover

    # ── Service instances ─────────────────────────────────────

    def get_instance(self, instance_id: str) -> ServiceInstance:
        ...  # pragma: no cover

    def list_instances(self, booking_id: str) -> List[ServiceInstance]:
        """Instances of a booking ordered by sequence_order."""
        ...  # pragma: no cover

    def conditional_update_instance(
        self,
        instance_id: str,
        *,
        expected_status: InstanceStatus,
        expected_claimant: Optional[str],
        patch: Mapping[str, Any],
    ) -> ServiceInstance:
        """
        Apply patch iff the instance is in expected_status, held by
        expected_claimant (None means unheld) and its booking is not
        closed. Increments version and publishes the new snapshot.
        """
        ...  # pragma: no cover

    # ── Catalog & redemption ──────────────────────────────────

    def get_service(self, service_id: str) -> Optional[Service]:
        ...  # pragma: no cover

    def get_service_set(self, service_set_id: str) -> Optional[ServiceSet]:
        ...  # pragma: no cover

    def get_voucher_by_code(self, code: str) -> Optional[Voucher]:
        ...  # pragma: no cover

    def consume_voucher(self, voucher_id: str) -> Voucher:
        ...  # pragma: no cover

    def get_gift_certificate(self, certificate_id: str) -> Optional[GiftCertificate]:
        ...  # pragma: no cover

    def get_gift_certificate_by_code(self, code: str) -> Optional[GiftCertificate]:
        ...  # pragma: no cover

    def claim_gift_certificate(
        self, certificate_id: str, draft: BookingDraft,
    ) -> Tuple[Booking, List[ServiceInstance]]:
        """Flip the certificate ACTIVE → USED and create the booking, atomically."""
        ...  # pragma: no cover

    # ── Commission ────────────────────────────────────────────

    def record_commissions(
        self,
        booking_id: str,
        entries: Iterable[CommissionEntry],
        processed_at: datetime,
    ) -> Booking:
        """Raises AlreadyUsed when the booking was already settled."""
        ...  # pragma: no cover

    def revert_commissions(self, booking_id: str) -> int:
        ...  # pragma: no cover

    def list_commissions(self, booking_id: str) -> List[CommissionEntry]:
        ...  # pragma: no cover
