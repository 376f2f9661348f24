"""
Salon Store — In-Memory Implementation
=======================================
Reference SalonStore for tests and bootstrap.

Writes are serialized by one lock so every conditional write is
a true compare-and-swap. Committed instance snapshots are pushed
to the optional ChangeFeed after the lock is released.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import datetime
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from core.events.feed import ChangeFeed
from core.primitives.booking import (
    CLOSED_BOOKING_STATUSES,
    Booking,
    BookingDraft,
    BookingStatus,
    InstanceStatus,
    ServiceInstance,
)
from core.primitives.catalog import (
    GiftCertificate,
    RedemptionStatus,
    Service,
    ServiceSet,
    Voucher,
)
from core.primitives.commission import CommissionEntry, CommissionStatus
from core.store.contracts import (
    BOOKING_PATCH_FIELDS,
    INSTANCE_PATCH_FIELDS,
    check_patch,
)
from core.store.errors import AlreadyUsed, RecordNotFound, StoreConflict

logger = logging.getLogger("salon.store")


def _new_id() -> str:
    return str(uuid.uuid4())


class InMemorySalonStore:

    def __init__(self, change_feed: Optional[ChangeFeed] = None) -> None:
        self._feed = change_feed
        self._lock = Lock()
        self._services: Dict[str, Service] = {}
        self._service_sets: Dict[str, ServiceSet] = {}
        self._vouchers: Dict[str, Voucher] = {}
        self._certificates: Dict[str, GiftCertificate] = {}
        self._bookings: Dict[str, Booking] = {}
        self._instances: Dict[str, ServiceInstance] = {}
        self._commissions: Dict[str, List[CommissionEntry]] = {}

    # ══════════════════════════════════════════════════════════
    # SEEDING
    # ══════════════════════════════════════════════════════════

    def add_service(self, service: Service) -> Service:
        with self._lock:
            self._services[service.service_id] = service
        return service

    def add_service_set(self, service_set: ServiceSet) -> ServiceSet:
        with self._lock:
            self._service_sets[service_set.service_set_id] = service_set
        return service_set

    def add_voucher(self, voucher: Voucher) -> Voucher:
        with self._lock:
            self._vouchers[voucher.voucher_id] = voucher
        return voucher

    def add_gift_certificate(self, certificate: GiftCertificate) -> GiftCertificate:
        with self._lock:
            self._certificates[certificate.certificate_id] = certificate
        return certificate

    # ══════════════════════════════════════════════════════════
    # BOOKINGS
    # ══════════════════════════════════════════════════════════

    def _insert_booking(
        self,
        draft: BookingDraft,
        voucher_id: Optional[str],
        gift_certificate_id: Optional[str],
    ) -> Tuple[Booking, List[ServiceInstance]]:
        booking = Booking(
            booking_id=_new_id(),
            branch=draft.branch,
            appointment_date=draft.appointment_date,
            appointment_time=draft.appointment_time,
            status=draft.status,
            grand_total=draft.grand_total,
            grand_discount=draft.grand_discount,
            final_total=draft.final_total,
            duration_minutes=draft.duration_minutes,
            customer_id=draft.customer_id,
            customer_name=draft.customer_name,
            notes=draft.notes,
            voucher_id=voucher_id,
            gift_certificate_id=gift_certificate_id,
            created_at=draft.created_at,
        )
        instances = [
            ServiceInstance(
                instance_id=_new_id(),
                booking_id=booking.booking_id,
                service_id=item.service_id,
                service_set_id=item.service_set_id,
                price_at_booking=item.price_at_booking,
                sequence_order=item.sequence_order,
            )
            for item in draft.instances
        ]
        self._bookings[booking.booking_id] = booking
        for instance in instances:
            self._instances[instance.instance_id] = instance
        return booking, instances

    def create_booking(
        self,
        draft: BookingDraft,
        *,
        voucher_id: Optional[str] = None,
    ) -> Tuple[Booking, List[ServiceInstance]]:
        with self._lock:
            if voucher_id is not None:
                self._consume_voucher_locked(voucher_id)
            booking, instances = self._insert_booking(draft, voucher_id, None)

        logger.info(
            f"Booking {booking.booking_id} created with {len(instances)} instance(s)"
        )
        return booking, instances

    def get_booking(self, booking_id: str) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
        if booking is None:
            raise RecordNotFound("Booking", booking_id)
        return booking

    def conditional_update_booking(
        self,
        booking_id: str,
        *,
        expected_statuses: Iterable[BookingStatus],
        patch: Mapping[str, Any],
        require_no_served: bool = False,
    ) -> Booking:
        check_patch(patch, BOOKING_PATCH_FIELDS)
        expected = frozenset(expected_statuses)
        with self._lock:
            current = self._bookings.get(booking_id)
            if current is None:
                raise RecordNotFound("Booking", booking_id)
            if current.status not in expected:
                raise StoreConflict(
                    "Booking", booking_id, f"Status is {current.status.value}.",
                )
            if require_no_served and any(
                instance.status == InstanceStatus.SERVED
                for instance in self._instances.values()
                if instance.booking_id == booking_id
            ):
                raise StoreConflict(
                    "Booking", booking_id, "Booking has served instances.",
                )
            updated = current.with_changes(version=current.version + 1, **patch)
            self._bookings[booking_id] = updated
        return updated

    # ══════════════════════════════════════════════════════════
    # SERVICE INSTANCES
    # ══════════════════════════════════════════════════════════

    def get_instance(self, instance_id: str) -> ServiceInstance:
        with self._lock:
            instance = self._instances.get(instance_id)
        if instance is None:
            raise RecordNotFound("ServiceInstance", instance_id)
        return instance

    def list_instances(self, booking_id: str) -> List[ServiceInstance]:
        with self._lock:
            rows = [
                instance for instance in self._instances.values()
                if instance.booking_id == booking_id
            ]
        return sorted(rows, key=lambda instance: instance.sequence_order)

    def conditional_update_instance(
        self,
        instance_id: str,
        *,
        expected_status: InstanceStatus,
        expected_claimant: Optional[str],
        patch: Mapping[str, Any],
    ) -> ServiceInstance:
        check_patch(patch, INSTANCE_PATCH_FIELDS)
        with self._lock:
            current = self._instances.get(instance_id)
            if current is None:
                raise RecordNotFound("ServiceInstance", instance_id)
            booking = self._bookings[current.booking_id]
            if booking.status in CLOSED_BOOKING_STATUSES:
                raise StoreConflict(
                    "ServiceInstance", instance_id,
                    f"Booking is {booking.status.value}.",
                )
            if current.status != expected_status or current.claimed_by != expected_claimant:
                raise StoreConflict(
                    "ServiceInstance", instance_id,
                    f"Expected {expected_status.value}/{expected_claimant}, "
                    f"found {current.status.value}/{current.claimed_by}.",
                )
            updated = current.with_changes(version=current.version + 1, **patch)
            self._instances[instance_id] = updated

        if self._feed is not None:
            self._feed.publish(updated)
        return updated

    # ══════════════════════════════════════════════════════════
    # CATALOG & REDEMPTION
    # ══════════════════════════════════════════════════════════

    def get_service(self, service_id: str) -> Optional[Service]:
        with self._lock:
            return self._services.get(service_id)

    def get_service_set(self, service_set_id: str) -> Optional[ServiceSet]:
        with self._lock:
            return self._service_sets.get(service_set_id)

    def get_voucher_by_code(self, code: str) -> Optional[Voucher]:
        with self._lock:
            for voucher in self._vouchers.values():
                if voucher.code == code:
                    return voucher
        return None

    def _consume_voucher_locked(self, voucher_id: str) -> Voucher:
        voucher = self._vouchers.get(voucher_id)
        if voucher is None:
            raise RecordNotFound("Voucher", voucher_id)
        if voucher.status != RedemptionStatus.ACTIVE:
            raise AlreadyUsed("Voucher", voucher_id, f"Status is {voucher.status.value}.")
        used = replace(voucher, status=RedemptionStatus.USED)
        self._vouchers[voucher_id] = used
        return used

    def consume_voucher(self, voucher_id: str) -> Voucher:
        with self._lock:
            return self._consume_voucher_locked(voucher_id)

    def get_gift_certificate(self, certificate_id: str) -> Optional[GiftCertificate]:
        with self._lock:
            return self._certificates.get(certificate_id)

    def get_gift_certificate_by_code(self, code: str) -> Optional[GiftCertificate]:
        with self._lock:
            for certificate in self._certificates.values():
                if certificate.code == code:
                    return certificate
        return None

    def claim_gift_certificate(
        self, certificate_id: str, draft: BookingDraft,
    ) -> Tuple[Booking, List[ServiceInstance]]:
        with self._lock:
            certificate = self._certificates.get(certificate_id)
            if certificate is None:
                raise RecordNotFound("GiftCertificate", certificate_id)
            if certificate.status != RedemptionStatus.ACTIVE:
                raise AlreadyUsed(
                    "GiftCertificate", certificate_id,
                    f"Status is {certificate.status.value}.",
                )
            booking, instances = self._insert_booking(draft, None, certificate_id)
            self._certificates[certificate_id] = replace(
                certificate, status=RedemptionStatus.USED,
            )

        logger.info(
            f"Gift certificate {certificate.code} claimed into booking {booking.booking_id}"
        )
        return booking, instances

    # ══════════════════════════════════════════════════════════
    # COMMISSION
    # ══════════════════════════════════════════════════════════

    def record_commissions(
        self,
        booking_id: str,
        entries: Iterable[CommissionEntry],
        processed_at: datetime,
    ) -> Booking:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None:
                raise RecordNotFound("Booking", booking_id)
            if booking.commission_processed_at is not None:
                raise AlreadyUsed("Booking", booking_id, "Commissions already settled.")
            updated = booking.with_changes(
                commission_processed_at=processed_at, version=booking.version + 1,
            )
            self._bookings[booking_id] = updated
            self._commissions.setdefault(booking_id, []).extend(entries)
        return updated

    def revert_commissions(self, booking_id: str) -> int:
        with self._lock:
            booking = self._bookings.get(booking_id)
            if booking is None:
                raise RecordNotFound("Booking", booking_id)
            entries = self._commissions.get(booking_id, [])
            reverted = 0
            for index, entry in enumerate(entries):
                if entry.status == CommissionStatus.APPLIED:
                    entries[index] = replace(entry, status=CommissionStatus.REVERTED)
                    reverted += 1
            self._bookings[booking_id] = booking.with_changes(
                commission_processed_at=None, version=booking.version + 1,
            )
        return reverted

    def list_commissions(self, booking_id: str) -> List[CommissionEntry]:
        with self._lock:
            return list(self._commissions.get(booking_id, []))
