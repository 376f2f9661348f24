"""
Salon Booking Engine — Booking Service
"""
from __future__ import annotations

import logging
from typing import Optional

from core.commands.outcomes import OperationResult
from core.commands.rejection import ReasonCode
from core.config.rules import SalonRules
from core.primitives.booking import Booking, BookingStatus
from core.store.contracts import SalonStore
from core.store.errors import (
    AlreadyUsed,
    RecordNotFound,
    StoreConflict,
    TransientStoreError,
)
from core.store.retry import call_with_retry
from core.time.clock import Clock, SystemClock
from engines.booking.aggregate import BookingAggregate
from engines.booking.commands import ChangeBookingStatusRequest, CreateBookingRequest
from engines.booking.policies import (
    booking_must_have_no_served_instances_policy,
    booking_transition_must_be_allowed_policy,
    status_patch,
)
from engines.booking.selection import build_booking_draft, resolve_selection
from engines.pricing.engine import apply_voucher
from engines.redemption.services import VoucherGiftCertificateResolver

logger = logging.getLogger("salon.booking")


def transient_io(label: str) -> OperationResult:
    return OperationResult.reject(
        ReasonCode.TRANSIENT_IO,
        f"The store is temporarily unavailable ({label}). Please try again.",
        "store_must_be_reachable_policy",
    )


def booking_not_found(booking_id: str) -> OperationResult:
    return OperationResult.reject(
        ReasonCode.NOT_FOUND,
        f"Booking '{booking_id}' not found.",
        "booking_must_exist_policy",
    )


class BookingService:
    def __init__(self, *, store: SalonStore,
                 resolver: Optional[VoucherGiftCertificateResolver] = None,
                 clock: Optional[Clock] = None,
                 rules: Optional[SalonRules] = None):
        self._store = store
        self._clock = clock or SystemClock()
        self._rules = rules or SalonRules()
        self._resolver = resolver or VoucherGiftCertificateResolver(
            store=store, clock=self._clock, rules=self._rules,
        )

    def _read(self, operation, label: str):
        return call_with_retry(
            operation, retries=self._rules.transient_retries, label=label,
        )

    # ── creation ──────────────────────────────────────────────

    def create_booking(self, request: CreateBookingRequest) -> OperationResult:
        """
        Price the selection, apply an optional voucher, and create the
        booking with all of its instances. A voucher is consumed in the
        same store transaction; if it was used meanwhile nothing is created.
        """
        try:
            resolved = self._read(
                lambda: resolve_selection(
                    request.lines, self._store, self._rules.max_quantity,
                ),
                "catalog lookup",
            )
        except TransientStoreError:
            return transient_io("catalog lookup")
        if not resolved.success:
            return resolved

        selection = resolved.data
        pricing = selection.breakdown(request.grand_discount, self._rules.max_quantity)

        voucher_id = None
        if request.voucher_code:
            checked = self._resolver.check_voucher(request.voucher_code)
            if not checked.success:
                return checked
            pricing = apply_voucher(pricing, checked.data.value)
            voucher_id = checked.data.voucher_id

        draft = build_booking_draft(
            branch=request.branch,
            appointment_date=request.appointment_date,
            appointment_time=request.appointment_time,
            selection=selection,
            pricing=pricing,
            created_at=self._clock.now_utc(),
            customer_id=request.customer_id,
            customer_name=request.customer_name,
            notes=request.notes,
        )

        try:
            booking, instances = self._store.create_booking(draft, voucher_id=voucher_id)
        except AlreadyUsed:
            logger.warning(f"Voucher {request.voucher_code} was used before booking creation")
            return OperationResult.reject(
                ReasonCode.NOT_CLAIMABLE,
                f"Voucher {request.voucher_code.upper()} has already been used.",
                "voucher_must_be_claimable_policy",
            )
        except RecordNotFound:
            logger.warning(f"Voucher {request.voucher_code} disappeared before booking creation")
            return OperationResult.reject(
                ReasonCode.NOT_FOUND,
                f"Voucher {request.voucher_code.upper()} no longer exists.",
                "code_must_exist_policy",
            )
        except StoreConflict:
            logger.warning("Booking creation conflicted with a concurrent write")
            return OperationResult.reject(
                ReasonCode.STALE_STATE,
                "The booking could not be saved because the data changed. Please try again.",
                "booking_must_be_unchanged_policy",
            )
        except TransientStoreError:
            return transient_io("booking creation")

        logger.info(
            f"Booking {booking.booking_id} created: {len(instances)} instance(s), "
            f"total {booking.grand_total}, discount {booking.grand_discount}"
        )
        return OperationResult.ok(BookingAggregate(booking, instances))

    # ── reads ─────────────────────────────────────────────────

    def load(self, booking_id: str) -> OperationResult:
        try:
            booking = self._read(lambda: self._store.get_booking(booking_id), "booking read")
            instances = self._read(
                lambda: self._store.list_instances(booking_id), "instance list",
            )
        except RecordNotFound:
            return booking_not_found(booking_id)
        except TransientStoreError:
            return transient_io("booking read")
        return OperationResult.ok(BookingAggregate(booking, instances))

    # ── status changes ────────────────────────────────────────

    def change_status(self, request: ChangeBookingStatusRequest) -> OperationResult:
        if request.target == BookingStatus.CANCELLED:
            return self.cancel(request.booking_id, request.actor_id)

        try:
            booking = self._read(
                lambda: self._store.get_booking(request.booking_id), "booking read",
            )
        except RecordNotFound:
            return booking_not_found(request.booking_id)
        except TransientStoreError:
            return transient_io("booking read")

        rejection = booking_transition_must_be_allowed_policy(booking, request.target)
        if rejection is not None:
            return OperationResult.fail(rejection)

        try:
            updated = self._read(
                lambda: self._store.conditional_update_booking(
                    booking.booking_id,
                    expected_statuses=(booking.status,),
                    patch=status_patch(booking, request.target, self._clock.now_utc()),
                ),
                "booking status write",
            )
        except StoreConflict:
            return self._stale_booking(booking)
        except TransientStoreError:
            return transient_io("booking status write")

        logger.info(
            f"Booking {booking.booking_id} {booking.status.value} → "
            f"{updated.status.value} by {request.actor_id}"
        )
        return OperationResult.ok(updated)

    def confirm(self, booking_id: str, actor_id: str) -> OperationResult:
        return self.change_status(ChangeBookingStatusRequest(
            booking_id=booking_id, target=BookingStatus.CONFIRMED, actor_id=actor_id,
        ))

    def mark_no_show(self, booking_id: str, actor_id: str) -> OperationResult:
        return self.change_status(ChangeBookingStatusRequest(
            booking_id=booking_id, target=BookingStatus.NO_SHOW, actor_id=actor_id,
        ))

    def cancel(self, booking_id: str, actor_id: str) -> OperationResult:
        """
        Cancel unless any instance is SERVED. The served check is part
        of the conditional write, so a concurrent serve cannot slip in.
        Consumed vouchers stay consumed.
        """
        try:
            booking = self._read(lambda: self._store.get_booking(booking_id), "booking read")
            instances = self._read(
                lambda: self._store.list_instances(booking_id), "instance list",
            )
        except RecordNotFound:
            return booking_not_found(booking_id)
        except TransientStoreError:
            return transient_io("booking read")

        rejection = (
            booking_transition_must_be_allowed_policy(booking, BookingStatus.CANCELLED)
            or booking_must_have_no_served_instances_policy(instances)
        )
        if rejection is not None:
            return OperationResult.fail(rejection)

        try:
            updated = self._read(
                lambda: self._store.conditional_update_booking(
                    booking_id,
                    expected_statuses=(booking.status,),
                    patch=status_patch(booking, BookingStatus.CANCELLED, self._clock.now_utc()),
                    require_no_served=True,
                ),
                "booking cancel",
            )
        except StoreConflict:
            try:
                latest = self._read(
                    lambda: self._store.list_instances(booking_id), "instance list",
                )
            except TransientStoreError:
                return transient_io("instance list")
            rejection = booking_must_have_no_served_instances_policy(latest)
            if rejection is not None:
                logger.warning(f"Cancel of booking {booking_id} lost a race with a serve")
                return OperationResult.fail(rejection)
            return self._stale_booking(booking)
        except TransientStoreError:
            return transient_io("booking cancel")

        logger.info(f"Booking {booking_id} cancelled by {actor_id}")
        return OperationResult.ok(updated)

    def _stale_booking(self, booking: Booking) -> OperationResult:
        logger.warning(
            f"Booking {booking.booking_id} changed since it was read "
            f"(was {booking.status.value})"
        )
        return OperationResult.reject(
            ReasonCode.STALE_STATE,
            "The booking was changed by someone else. Refresh and try again.",
            "booking_must_be_unchanged_policy",
        )
