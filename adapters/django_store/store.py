"""
Salon Store — Django ORM Implementation
========================================
SalonStore backed by the relational tables in models.py.

RULES (NON-NEGOTIABLE):
- Conditional writes are a single filtered UPDATE; zero affected
  rows means the guard did not match
- The booking row is locked (select_for_update) before any instance
  or booking status write, so cancel and serve serialize
- Snapshots are published to the ChangeFeed only AFTER commit
- IntegrityError → StoreConflict, connection errors → TransientStoreError
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from django.db import IntegrityError, InterfaceError, OperationalError, transaction
from django.db.models import F

from adapters.django_store.models import (
    BookingRecord,
    BookingStatusChoice,
    CommissionEntryRecord,
    CommissionStatusChoice,
    GiftCertificateLineRecord,
    GiftCertificateRecord,
    InstanceStatusChoice,
    RedemptionStatusChoice,
    ServiceInstanceRecord,
    ServiceRecord,
    ServiceSetItemRecord,
    ServiceSetRecord,
    VoucherRecord,
)
from core.events.feed import ChangeFeed
from core.primitives.booking import (
    Booking,
    BookingDraft,
    BookingStatus,
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
from core.store.contracts import (
    BOOKING_PATCH_FIELDS,
    INSTANCE_PATCH_FIELDS,
    check_patch,
)
from core.store.errors import (
    AlreadyUsed,
    RecordNotFound,
    StoreConflict,
    TransientStoreError,
)

logger = logging.getLogger("salon.store")

CLOSED_STATUS_VALUES = (BookingStatusChoice.CANCELLED, BookingStatusChoice.NO_SHOW)


@contextmanager
def _translate(operation: str):
    try:
        yield
    except IntegrityError as exc:
        logger.warning(f"Integrity conflict during {operation}: {exc}")
        raise StoreConflict("Store", operation, str(exc)) from exc
    except (OperationalError, InterfaceError) as exc:
        logger.warning(f"Database unavailable during {operation}: {exc}")
        raise TransientStoreError(f"{operation} failed: {exc}") from exc


def _columns(patch: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        name: value.value if isinstance(value, Enum) else value
        for name, value in patch.items()
    }


# ══════════════════════════════════════════════════════════════
# ROW → PRIMITIVE
# ══════════════════════════════════════════════════════════════

def _service_from_row(row: ServiceRecord) -> Service:
    return Service(
        service_id=row.service_id,
        title=row.title,
        price=row.price,
        duration_minutes=row.duration_minutes,
        branch=Branch(row.branch),
        is_active=row.is_active,
    )


def _service_set_from_row(row: ServiceSetRecord) -> ServiceSet:
    return ServiceSet(
        service_set_id=row.service_set_id,
        title=row.title,
        price=row.price,
        items=tuple(
            ServiceSetItem(service_id=item.service_id, adjusted_price=item.adjusted_price)
            for item in row.items.order_by("position")
        ),
        is_active=row.is_active,
    )


def _voucher_from_row(row: VoucherRecord) -> Voucher:
    return Voucher(
        voucher_id=row.voucher_id,
        code=row.code,
        value=row.value,
        status=RedemptionStatus(row.status),
        expires_on=row.expires_on,
        customer_id=row.customer_id,
    )


def _certificate_from_row(row: GiftCertificateRecord) -> GiftCertificate:
    return GiftCertificate(
        certificate_id=row.certificate_id,
        code=row.code,
        lines=tuple(
            SelectionLine(
                kind=SelectionKind(line.kind),
                item_id=line.item_id,
                quantity=line.quantity,
            )
            for line in row.lines.order_by("position")
        ),
        status=RedemptionStatus(row.status),
        expires_on=row.expires_on,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
    )


def _booking_from_row(row: BookingRecord) -> Booking:
    return Booking(
        booking_id=row.booking_id,
        branch=Branch(row.branch),
        appointment_date=row.appointment_date,
        appointment_time=row.appointment_time,
        status=BookingStatus(row.status),
        grand_total=row.grand_total,
        grand_discount=row.grand_discount,
        final_total=row.final_total,
        duration_minutes=row.duration_minutes,
        customer_id=row.customer_id,
        customer_name=row.customer_name,
        notes=row.notes,
        voucher_id=row.voucher_id,
        gift_certificate_id=row.gift_certificate_id,
        created_at=row.created_at,
        confirmed_at=row.confirmed_at,
        started_at=row.started_at,
        completed_at=row.completed_at,
        cancelled_at=row.cancelled_at,
        commission_processed_at=row.commission_processed_at,
        version=row.version,
    )


def _instance_from_row(row: ServiceInstanceRecord) -> ServiceInstance:
    return ServiceInstance(
        instance_id=row.instance_id,
        booking_id=row.booking_id,
        service_id=row.service_id,
        service_set_id=row.service_set_id,
        price_at_booking=row.price_at_booking,
        sequence_order=row.sequence_order,
        status=InstanceStatus(row.status),
        claimed_by=row.claimed_by,
        claimed_at=row.claimed_at,
        served_by=row.served_by,
        served_at=row.served_at,
        version=row.version,
    )


def _commission_from_row(row: CommissionEntryRecord) -> CommissionEntry:
    return CommissionEntry(
        booking_id=row.booking_id,
        instance_id=row.instance_id,
        employee_id=row.employee_id,
        basis=row.basis,
        rate=row.rate,
        amount=row.amount,
        created_at=row.created_at,
        status=CommissionStatus(row.status),
    )


class DjangoSalonStore:

    def __init__(self, change_feed: Optional[ChangeFeed] = None) -> None:
        self._feed = change_feed

    # ══════════════════════════════════════════════════════════
    # SEEDING
    # ══════════════════════════════════════════════════════════

    def add_service(self, service: Service) -> Service:
        with _translate("service seed"):
            ServiceRecord.objects.update_or_create(
                service_id=service.service_id,
                defaults={
                    "title": service.title,
                    "price": service.price,
                    "duration_minutes": service.duration_minutes,
                    "branch": service.branch.value,
                    "is_active": service.is_active,
                },
            )
        return service

    def add_service_set(self, service_set: ServiceSet) -> ServiceSet:
        with _translate("service set seed"), transaction.atomic():
            row, _ = ServiceSetRecord.objects.update_or_create(
                service_set_id=service_set.service_set_id,
                defaults={
                    "title": service_set.title,
                    "price": service_set.price,
                    "is_active": service_set.is_active,
                },
            )
            row.items.all().delete()
            ServiceSetItemRecord.objects.bulk_create([
                ServiceSetItemRecord(
                    service_set=row,
                    service_id=item.service_id,
                    adjusted_price=item.adjusted_price,
                    position=position,
                )
                for position, item in enumerate(service_set.items, start=1)
            ])
        return service_set

    def add_voucher(self, voucher: Voucher) -> Voucher:
        with _translate("voucher seed"):
            VoucherRecord.objects.create(
                voucher_id=voucher.voucher_id,
                code=voucher.code,
                value=voucher.value,
                status=voucher.status.value,
                expires_on=voucher.expires_on,
                customer_id=voucher.customer_id,
            )
        return voucher

    def add_gift_certificate(self, certificate: GiftCertificate) -> GiftCertificate:
        with _translate("gift certificate seed"), transaction.atomic():
            row = GiftCertificateRecord.objects.create(
                certificate_id=certificate.certificate_id,
                code=certificate.code,
                status=certificate.status.value,
                expires_on=certificate.expires_on,
                customer_id=certificate.customer_id,
                customer_name=certificate.customer_name,
            )
            GiftCertificateLineRecord.objects.bulk_create([
                GiftCertificateLineRecord(
                    certificate=row,
                    kind=line.kind.value,
                    item_id=line.item_id,
                    quantity=line.quantity,
                    position=position,
                )
                for position, line in enumerate(certificate.lines, start=1)
            ])
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
        row = BookingRecord.objects.create(
            booking_id=str(uuid.uuid4()),
            branch=draft.branch.value,
            appointment_date=draft.appointment_date,
            appointment_time=draft.appointment_time,
            status=draft.status.value,
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
        instance_rows = ServiceInstanceRecord.objects.bulk_create([
            ServiceInstanceRecord(
                instance_id=str(uuid.uuid4()),
                booking=row,
                service_id=item.service_id,
                service_set_id=item.service_set_id,
                price_at_booking=item.price_at_booking,
                sequence_order=item.sequence_order,
            )
            for item in draft.instances
        ])
        return _booking_from_row(row), [_instance_from_row(r) for r in instance_rows]

    def create_booking(
        self,
        draft: BookingDraft,
        *,
        voucher_id: Optional[str] = None,
    ) -> Tuple[Booking, List[ServiceInstance]]:
        with _translate("booking create"), transaction.atomic():
            if voucher_id is not None:
                self._consume_voucher_row(voucher_id)
            booking, instances = self._insert_booking(draft, voucher_id, None)

        logger.info(
            f"Booking {booking.booking_id} created with {len(instances)} instance(s)"
        )
        return booking, instances

    def get_booking(self, booking_id: str) -> Booking:
        with _translate("booking read"):
            row = BookingRecord.objects.filter(pk=booking_id).first()
        if row is None:
            raise RecordNotFound("Booking", booking_id)
        return _booking_from_row(row)

    def _lock_booking(self, booking_id: str) -> BookingRecord:
        row = BookingRecord.objects.select_for_update().filter(pk=booking_id).first()
        if row is None:
            raise RecordNotFound("Booking", booking_id)
        return row

    def conditional_update_booking(
        self,
        booking_id: str,
        *,
        expected_statuses: Iterable[BookingStatus],
        patch: Mapping[str, Any],
        require_no_served: bool = False,
    ) -> Booking:
        check_patch(patch, BOOKING_PATCH_FIELDS)
        expected = [status.value for status in expected_statuses]
        with _translate("booking update"), transaction.atomic():
            current = self._lock_booking(booking_id)
            if require_no_served and current.instances.filter(
                status=InstanceStatusChoice.SERVED,
            ).exists():
                raise StoreConflict("Booking", booking_id, "Booking has served instances.")
            updated = BookingRecord.objects.filter(
                pk=booking_id, status__in=expected,
            ).update(version=F("version") + 1, **_columns(patch))
            if updated == 0:
                raise StoreConflict("Booking", booking_id, f"Status is {current.status}.")
            row = BookingRecord.objects.get(pk=booking_id)
        return _booking_from_row(row)

    # ══════════════════════════════════════════════════════════
    # SERVICE INSTANCES
    # ══════════════════════════════════════════════════════════

    def get_instance(self, instance_id: str) -> ServiceInstance:
        with _translate("instance read"):
            row = ServiceInstanceRecord.objects.filter(pk=instance_id).first()
        if row is None:
            raise RecordNotFound("ServiceInstance", instance_id)
        return _instance_from_row(row)

    def list_instances(self, booking_id: str) -> List[ServiceInstance]:
        with _translate("instance list"):
            rows = list(
                ServiceInstanceRecord.objects.filter(booking_id=booking_id)
                .order_by("sequence_order")
            )
        return [_instance_from_row(row) for row in rows]

    def conditional_update_instance(
        self,
        instance_id: str,
        *,
        expected_status: InstanceStatus,
        expected_claimant: Optional[str],
        patch: Mapping[str, Any],
    ) -> ServiceInstance:
        check_patch(patch, INSTANCE_PATCH_FIELDS)
        with _translate("instance update"), transaction.atomic():
            booking_id = (
                ServiceInstanceRecord.objects.filter(pk=instance_id)
                .values_list("booking_id", flat=True)
                .first()
            )
            if booking_id is None:
                raise RecordNotFound("ServiceInstance", instance_id)
            booking = self._lock_booking(booking_id)
            if booking.status in CLOSED_STATUS_VALUES:
                raise StoreConflict(
                    "ServiceInstance", instance_id, f"Booking is {booking.status}.",
                )

            updated = ServiceInstanceRecord.objects.filter(
                pk=instance_id,
                status=expected_status.value,
                claimed_by=expected_claimant,
            ).update(version=F("version") + 1, **_columns(patch))
            row = ServiceInstanceRecord.objects.get(pk=instance_id)
            if updated == 0:
                raise StoreConflict(
                    "ServiceInstance", instance_id,
                    f"Expected {expected_status.value}/{expected_claimant}, "
                    f"found {row.status}/{row.claimed_by}.",
                )
            snapshot = _instance_from_row(row)
            if self._feed is not None:
                feed = self._feed
                transaction.on_commit(lambda: feed.publish(snapshot))
        return snapshot

    # ══════════════════════════════════════════════════════════
    # CATALOG & REDEMPTION
    # ══════════════════════════════════════════════════════════

    def get_service(self, service_id: str) -> Optional[Service]:
        with _translate("service read"):
            row = ServiceRecord.objects.filter(pk=service_id).first()
        return _service_from_row(row) if row is not None else None

    def get_service_set(self, service_set_id: str) -> Optional[ServiceSet]:
        with _translate("service set read"):
            row = ServiceSetRecord.objects.filter(pk=service_set_id).first()
            return _service_set_from_row(row) if row is not None else None

    def get_voucher_by_code(self, code: str) -> Optional[Voucher]:
        with _translate("voucher read"):
            row = VoucherRecord.objects.filter(code=code).first()
        return _voucher_from_row(row) if row is not None else None

    def _consume_voucher_row(self, voucher_id: str) -> None:
        flipped = VoucherRecord.objects.filter(
            pk=voucher_id, status=RedemptionStatusChoice.ACTIVE,
        ).update(status=RedemptionStatusChoice.USED)
        if flipped == 0:
            status = (
                VoucherRecord.objects.filter(pk=voucher_id)
                .values_list("status", flat=True)
                .first()
            )
            if status is None:
                raise RecordNotFound("Voucher", voucher_id)
            raise AlreadyUsed("Voucher", voucher_id, f"Status is {status}.")

    def consume_voucher(self, voucher_id: str) -> Voucher:
        with _translate("voucher consume"), transaction.atomic():
            self._consume_voucher_row(voucher_id)
            row = VoucherRecord.objects.get(pk=voucher_id)
        return _voucher_from_row(row)

    def get_gift_certificate(self, certificate_id: str) -> Optional[GiftCertificate]:
        with _translate("gift certificate read"):
            row = GiftCertificateRecord.objects.filter(pk=certificate_id).first()
            return _certificate_from_row(row) if row is not None else None

    def get_gift_certificate_by_code(self, code: str) -> Optional[GiftCertificate]:
        with _translate("gift certificate read"):
            row = GiftCertificateRecord.objects.filter(code=code).first()
            return _certificate_from_row(row) if row is not None else None

    def claim_gift_certificate(
        self, certificate_id: str, draft: BookingDraft,
    ) -> Tuple[Booking, List[ServiceInstance]]:
        with _translate("gift certificate claim"), transaction.atomic():
            flipped = GiftCertificateRecord.objects.filter(
                pk=certificate_id, status=RedemptionStatusChoice.ACTIVE,
            ).update(status=RedemptionStatusChoice.USED)
            if flipped == 0:
                status = (
                    GiftCertificateRecord.objects.filter(pk=certificate_id)
                    .values_list("status", flat=True)
                    .first()
                )
                if status is None:
                    raise RecordNotFound("GiftCertificate", certificate_id)
                raise AlreadyUsed("GiftCertificate", certificate_id, f"Status is {status}.")
            booking, instances = self._insert_booking(draft, None, certificate_id)

        logger.info(
            f"Gift certificate {certificate_id} claimed into booking {booking.booking_id}"
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
        with _translate("commission record"), transaction.atomic():
            current = self._lock_booking(booking_id)
            if current.commission_processed_at is not None:
                raise AlreadyUsed("Booking", booking_id, "Commissions already settled.")
            CommissionEntryRecord.objects.bulk_create([
                CommissionEntryRecord(
                    booking_id=entry.booking_id,
                    instance_id=entry.instance_id,
                    employee_id=entry.employee_id,
                    basis=entry.basis,
                    rate=entry.rate,
                    amount=entry.amount,
                    status=entry.status.value,
                    created_at=entry.created_at,
                )
                for entry in entries
            ])
            BookingRecord.objects.filter(pk=booking_id).update(
                commission_processed_at=processed_at, version=F("version") + 1,
            )
            row = BookingRecord.objects.get(pk=booking_id)
        return _booking_from_row(row)

    def revert_commissions(self, booking_id: str) -> int:
        with _translate("commission revert"), transaction.atomic():
            self._lock_booking(booking_id)
            reverted = CommissionEntryRecord.objects.filter(
                booking_id=booking_id, status=CommissionStatusChoice.APPLIED,
            ).update(status=CommissionStatusChoice.REVERTED)
            BookingRecord.objects.filter(pk=booking_id).update(
                commission_processed_at=None, version=F("version") + 1,
            )
        return reverted

    def list_commissions(self, booking_id: str) -> List[CommissionEntry]:
        with _translate("commission list"):
            rows = list(
                CommissionEntryRecord.objects.filter(booking_id=booking_id).order_by("id")
            )
        return [_commission_from_row(row) for row in rows]
