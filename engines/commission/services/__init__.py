"""
Salon Commission Engine — Settlement Service
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Protocol, Tuple

from core.commands.outcomes import OperationResult
from core.commands.rejection import ReasonCode
from core.config.rules import SalonRules
from core.store.contracts import SalonStore
from core.store.errors import AlreadyUsed, RecordNotFound, TransientStoreError
from core.store.retry import call_with_retry
from core.time.clock import Clock, SystemClock
from engines.commission.calculator import build_entries, is_settleable

logger = logging.getLogger("salon.commission")


class StaffDirectory(Protocol):
    def roles_for(self, employee_id: str) -> Tuple[str, ...]:
        ...  # pragma: no cover


class InMemoryStaffDirectory:
    """Deterministic employee → roles lookup used for bootstrap/tests."""

    def __init__(self, roles: Optional[Mapping[str, Iterable[str]]] = None):
        self._roles: Dict[str, Tuple[str, ...]] = {}
        for employee_id, employee_roles in (roles or {}).items():
            self.assign(employee_id, employee_roles)

    def assign(self, employee_id: str, roles: Iterable[str]) -> None:
        self._roles[employee_id] = tuple(roles)

    def roles_for(self, employee_id: str) -> Tuple[str, ...]:
        return self._roles.get(employee_id, ())


def _transient(label: str) -> OperationResult:
    return OperationResult.reject(
        ReasonCode.TRANSIENT_IO,
        f"The store is temporarily unavailable ({label}). Please try again.",
        "store_must_be_reachable_policy",
    )


class CommissionService:
    def __init__(self, *, store: SalonStore, staff: StaffDirectory,
                 clock: Optional[Clock] = None,
                 rules: Optional[SalonRules] = None):
        self._store = store
        self._staff = staff
        self._clock = clock or SystemClock()
        self._rules = rules or SalonRules()

    def _call(self, operation, label: str):
        return call_with_retry(
            operation, retries=self._rules.transient_retries, label=label,
        )

    def settle(self, booking_id: str) -> OperationResult:
        """
        Record one commission entry per served instance. Settling an
        already-settled booking returns the existing entries.
        """
        try:
            booking = self._call(lambda: self._store.get_booking(booking_id), "booking read")
            if booking.commission_processed_at is not None:
                return OperationResult.ok(self._call(
                    lambda: self._store.list_commissions(booking_id), "commission list",
                ))
            instances = self._call(
                lambda: self._store.list_instances(booking_id), "instance list",
            )
        except RecordNotFound:
            return OperationResult.reject(
                ReasonCode.NOT_FOUND, f"Booking '{booking_id}' not found.",
                "booking_must_exist_policy",
            )
        except TransientStoreError:
            return _transient("booking read")

        now = self._clock.now_utc()
        if booking.is_closed or not is_settleable(
            instances, now, self._rules.settle_window_seconds,
        ):
            return OperationResult.reject(
                ReasonCode.NOT_SETTLEABLE,
                f"Every service must be served for at least "
                f"{self._rules.settle_window_seconds} seconds before commissions settle.",
                "booking_must_be_settleable_policy",
            )

        entries = build_entries(instances, self._staff.roles_for, self._rules, now)
        try:
            self._store.record_commissions(booking_id, entries, now)
        except AlreadyUsed:
            logger.debug(f"Booking {booking_id} was settled concurrently")
            try:
                return OperationResult.ok(self._store.list_commissions(booking_id))
            except TransientStoreError:
                return _transient("commission list")
        except TransientStoreError:
            return _transient("commission write")

        logger.info(
            f"Commissions settled for booking {booking_id}: "
            f"{len(entries)} entries, total {sum(e.amount for e in entries)}"
        )
        return OperationResult.ok(entries)

    def revert(self, booking_id: str) -> OperationResult:
        try:
            reverted = self._call(
                lambda: self._store.revert_commissions(booking_id), "commission revert",
            )
        except RecordNotFound:
            return OperationResult.reject(
                ReasonCode.NOT_FOUND, f"Booking '{booking_id}' not found.",
                "booking_must_exist_policy",
            )
        except TransientStoreError:
            return _transient("commission revert")

        logger.info(f"Reverted {reverted} commission entries for booking {booking_id}")
        return OperationResult.ok(reverted)
