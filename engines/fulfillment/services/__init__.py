"""
Salon Fulfillment Engine — Coordinator
=======================================
The only component that writes service instances.

Every claim/unclaim/serve/unserve is decided by the pure state
machine on a fresh snapshot, then submitted as a conditional write
guarded by the status and claimant that decision was based on.

    guard holds      → store applies, snapshot confirmed
    guard fails      → instance re-read; ALREADY_CLAIMED if somebody
                       else holds it now, STALE_STATE otherwise
    transient error  → retried once, then TRANSIENT_IO

Nothing is ever overwritten blindly. Tracked bookings are kept in
BookingAggregates fed by both local writes and the change feed.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from core.commands.outcomes import OperationResult
from core.commands.rejection import ReasonCode
from core.config.rules import SalonRules
from core.events.feed import ChangeFeed
from core.primitives.booking import HELD_STATUSES, ServiceInstance
from core.store.contracts import SalonStore
from core.store.errors import RecordNotFound, StoreConflict, TransientStoreError
from core.store.retry import call_with_retry
from core.time.clock import Clock, SystemClock
from engines.booking.aggregate import BookingAggregate
from engines.booking.commands import CreateBookingRequest
from engines.booking.policies import (
    automatic_status_after,
    booking_must_be_open_policy,
    status_patch,
)
from engines.booking.services import BookingService, transient_io
from engines.commission.services import CommissionService
from engines.fulfillment import state_machine
from engines.fulfillment.commands import FulfillmentAction

logger = logging.getLogger("salon.fulfillment")


def _same_outcome(latest: ServiceInstance, intended: ServiceInstance) -> bool:
    return (
        latest.status == intended.status
        and latest.claimed_by == intended.claimed_by
        and latest.served_by == intended.served_by
    )


class FulfillmentCoordinator:
    def __init__(self, *, store: SalonStore,
                 change_feed: Optional[ChangeFeed] = None,
                 clock: Optional[Clock] = None,
                 rules: Optional[SalonRules] = None,
                 booking_service: Optional[BookingService] = None,
                 commission_service: Optional[CommissionService] = None):
        self._store = store
        self._feed = change_feed
        self._clock = clock or SystemClock()
        self._rules = rules or SalonRules()
        self._bookings = booking_service or BookingService(
            store=store, clock=self._clock, rules=self._rules,
        )
        self._commissions = commission_service
        self._aggregates: Dict[str, BookingAggregate] = {}

    def _call(self, operation, label: str, on_retry=None):
        return call_with_retry(
            operation,
            retries=self._rules.transient_retries,
            label=label,
            on_retry=on_retry,
        )

    # ══════════════════════════════════════════════════════════
    # TRACKING
    # ══════════════════════════════════════════════════════════

    def track(self, booking_id: str) -> OperationResult:
        """Load a booking into a local aggregate and follow its changes."""
        aggregate = self._aggregates.get(booking_id)
        if aggregate is not None:
            return OperationResult.ok(aggregate)
        loaded = self._bookings.load(booking_id)
        if not loaded.success:
            return loaded
        return OperationResult.ok(self._adopt(loaded.data))

    def _adopt(self, aggregate: BookingAggregate) -> BookingAggregate:
        self._aggregates[aggregate.booking_id] = aggregate
        if self._feed is not None:
            self._feed.subscribe(aggregate.booking_id, self._on_snapshot)
        return aggregate

    def untrack(self, booking_id: str) -> None:
        if self._aggregates.pop(booking_id, None) is not None and self._feed is not None:
            self._feed.unsubscribe(booking_id, self._on_snapshot)

    def aggregate(self, booking_id: str) -> Optional[BookingAggregate]:
        return self._aggregates.get(booking_id)

    def _on_snapshot(self, snapshot: ServiceInstance) -> None:
        self.on_instance_changed(snapshot.instance_id, snapshot)

    def on_instance_changed(self, instance_id: str, snapshot: ServiceInstance) -> bool:
        """
        Merge a pushed snapshot into the tracked aggregate. Duplicates
        and out-of-order deliveries (version not newer) are ignored.
        """
        if snapshot.instance_id != instance_id:
            raise ValueError(
                f"Snapshot is for instance {snapshot.instance_id}, not {instance_id}."
            )
        aggregate = self._aggregates.get(snapshot.booking_id)
        if aggregate is None:
            logger.debug(f"Snapshot for untracked booking {snapshot.booking_id} ignored")
            return False
        merged = aggregate.merge_remote(snapshot)
        if merged:
            logger.debug(
                f"Merged instance {instance_id} v{snapshot.version} "
                f"({snapshot.status.value})"
            )
        return merged

    # ══════════════════════════════════════════════════════════
    # BOOKINGS
    # ══════════════════════════════════════════════════════════

    def create_booking(self, request: CreateBookingRequest) -> OperationResult:
        created = self._bookings.create_booking(request)
        if created.success:
            self._adopt(created.data)
        return created

    def cancel_booking(self, booking_id: str, actor_id: str) -> OperationResult:
        cancelled = self._bookings.cancel(booking_id, actor_id)
        aggregate = self._aggregates.get(booking_id)
        if cancelled.success and aggregate is not None:
            aggregate.replace_booking(cancelled.data)
        return cancelled

    def compute_totals(self, booking_id: str) -> OperationResult:
        aggregate = self._aggregates.get(booking_id)
        if aggregate is not None:
            return OperationResult.ok(aggregate.totals)
        loaded = self._bookings.load(booking_id)
        if not loaded.success:
            return loaded
        return OperationResult.ok(loaded.data.totals)

    def settle_commissions(self, booking_id: str) -> OperationResult:
        if self._commissions is None:
            raise RuntimeError("FulfillmentCoordinator has no CommissionService.")
        settled = self._commissions.settle(booking_id)
        if settled.success:
            self._refresh_header(booking_id)
        return settled

    # ══════════════════════════════════════════════════════════
    # INSTANCE TRANSITIONS
    # ══════════════════════════════════════════════════════════

    def claim(self, instance_id: str, actor_id: str) -> OperationResult:
        return self._transition(FulfillmentAction.CLAIM, instance_id, actor_id)

    def unclaim(self, instance_id: str, actor_id: str) -> OperationResult:
        return self._transition(FulfillmentAction.UNCLAIM, instance_id, actor_id)

    def serve(self, instance_id: str, actor_id: str) -> OperationResult:
        return self._transition(FulfillmentAction.SERVE, instance_id, actor_id)

    def unserve(self, instance_id: str, actor_id: str) -> OperationResult:
        return self._transition(FulfillmentAction.UNSERVE, instance_id, actor_id)

    def _transition(
        self, action: FulfillmentAction, instance_id: str, actor_id: str,
    ) -> OperationResult:
        if not isinstance(actor_id, str) or not actor_id.strip():
            raise ValueError("actor_id must be a non-empty string.")

        try:
            current = self._call(
                lambda: self._store.get_instance(instance_id), "instance read",
            )
        except RecordNotFound:
            return OperationResult.reject(
                ReasonCode.NOT_FOUND,
                f"Service instance '{instance_id}' not found.",
                "instance_must_exist_policy",
            )
        except TransientStoreError:
            return transient_io("instance read")

        tracked = self.track(current.booking_id)
        if not tracked.success:
            return tracked
        aggregate = tracked.data
        aggregate.merge_remote(current)

        rejection = booking_must_be_open_policy(aggregate.booking)
        if rejection is not None:
            return OperationResult.fail(rejection)

        decision = state_machine.apply(action, current, actor_id, self._clock.now_utc())
        if not decision.ok:
            logger.info(
                f"{action.value} of instance {instance_id} by {actor_id} "
                f"rejected: {decision.reason.code}"
            )
            return OperationResult.fail(decision.reason)
        if not decision.changed:
            return OperationResult.ok(current)

        guard = state_machine.expected_guard(action, current)
        aggregate.begin(decision.instance)
        retried = []

        try:
            updated = self._call(
                lambda: self._store.conditional_update_instance(
                    instance_id,
                    expected_status=guard.expected_status,
                    expected_claimant=guard.expected_claimant,
                    patch=decision.patch,
                ),
                f"{action.value.lower()} write",
                on_retry=retried.append,
            )
        except StoreConflict:
            return self._resolve_conflict(
                action, aggregate, current, decision.instance, actor_id, bool(retried),
            )
        except RecordNotFound:
            aggregate.reject(instance_id)
            return OperationResult.reject(
                ReasonCode.NOT_FOUND,
                f"Service instance '{instance_id}' not found.",
                "instance_must_exist_policy",
            )
        except TransientStoreError:
            aggregate.reject(instance_id)
            return transient_io(f"{action.value.lower()} write")

        aggregate.confirm(updated)
        logger.info(
            f"Instance {instance_id} {current.status.value} → {updated.status.value} "
            f"by {actor_id} (v{updated.version})"
        )
        self._after_success(action, aggregate, actor_id)
        return OperationResult.ok(updated)

    def _resolve_conflict(
        self,
        action: FulfillmentAction,
        aggregate: BookingAggregate,
        current: ServiceInstance,
        intended: ServiceInstance,
        actor_id: str,
        retried: bool,
    ) -> OperationResult:
        instance_id = current.instance_id
        try:
            latest = self._call(
                lambda: self._store.get_instance(instance_id), "instance re-read",
            )
        except (RecordNotFound, TransientStoreError):
            aggregate.reject(instance_id)
            return transient_io("instance re-read")

        # A retried write whose first attempt actually landed.
        if retried and latest.version > current.version and _same_outcome(latest, intended):
            aggregate.confirm(latest)
            self._after_success(action, aggregate, actor_id)
            return OperationResult.ok(latest)

        aggregate.reject(instance_id, latest)

        if latest.status == current.status and latest.claimed_by == current.claimed_by:
            self._refresh_header(aggregate.booking_id)
            rejection = booking_must_be_open_policy(aggregate.booking)
            if rejection is not None:
                return OperationResult.fail(rejection)

        if latest.status in HELD_STATUSES and latest.claimed_by not in (None, actor_id):
            logger.warning(
                f"{action.value} of instance {instance_id} by {actor_id} lost "
                f"to {latest.claimed_by}"
            )
            return OperationResult.reject(
                ReasonCode.ALREADY_CLAIMED,
                f"Service instance is already claimed by '{latest.claimed_by}'.",
                "instance_must_not_be_claimed_by_other_policy",
            )

        logger.warning(
            f"{action.value} of instance {instance_id} by {actor_id} hit stale state "
            f"(now {latest.status.value} v{latest.version})"
        )
        return OperationResult.reject(
            ReasonCode.STALE_STATE,
            "The service instance was changed by someone else. Refresh and try again.",
            "instance_must_be_unchanged_policy",
        )

    # ══════════════════════════════════════════════════════════
    # FOLLOW-UPS
    # ══════════════════════════════════════════════════════════

    def _after_success(
        self, action: FulfillmentAction, aggregate: BookingAggregate, actor_id: str,
    ) -> None:
        if action in (FulfillmentAction.SERVE, FulfillmentAction.UNSERVE):
            self._refresh_header(aggregate.booking_id)
            try:
                aggregate.refresh(self._call(
                    lambda: self._store.list_instances(aggregate.booking_id),
                    "instance list",
                ))
            except TransientStoreError:
                logger.warning(
                    f"Could not refresh booking {aggregate.booking_id}; "
                    f"using local view for status"
                )

        self._advance_booking(action, aggregate, actor_id)

        if (
            action == FulfillmentAction.UNSERVE
            and self._commissions is not None
            and aggregate.booking.commission_processed_at is not None
        ):
            reverted = self._commissions.revert(aggregate.booking_id)
            if reverted.success:
                self._refresh_header(aggregate.booking_id)

    def _advance_booking(
        self, action: FulfillmentAction, aggregate: BookingAggregate, actor_id: str,
    ) -> None:
        """
        Apply the booking statuses implied by `action`, one step per
        write. A stale header is re-read and the decision made again.
        """
        for _ in range(4):
            booking = aggregate.booking
            target = automatic_status_after(action, booking, aggregate.totals)
            if target is None:
                return
            try:
                updated = self._call(
                    lambda: self._store.conditional_update_booking(
                        booking.booking_id,
                        expected_statuses=(booking.status,),
                        patch=status_patch(booking, target, self._clock.now_utc()),
                    ),
                    "booking status write",
                )
            except StoreConflict:
                logger.debug(
                    f"Booking {booking.booking_id} already moved from {booking.status.value}"
                )
                self._refresh_header(booking.booking_id)
                continue
            except TransientStoreError:
                logger.warning(
                    f"Booking {booking.booking_id} left {booking.status.value}; "
                    f"{target.value} not recorded"
                )
                return

            aggregate.replace_booking(updated)
            logger.info(
                f"Booking {booking.booking_id} {booking.status.value} → "
                f"{updated.status.value} after {action.value.lower()} by {actor_id}"
            )

    def _refresh_header(self, booking_id: str) -> None:
        aggregate = self._aggregates.get(booking_id)
        if aggregate is None:
            return
        try:
            aggregate.replace_booking(self._call(
                lambda: self._store.get_booking(booking_id), "booking read",
            ))
        except TransientStoreError:
            logger.warning(f"Could not refresh booking {booking_id}")
