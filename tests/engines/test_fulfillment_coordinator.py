"""
Salon Fulfillment Coordinator Tests
====================================
Claim / serve flows against the in-memory store: lost races,
stale state, transient retry, change-feed merges and the booking
status that follows instance progress.
"""

import threading
from datetime import date, time

import pytest

from core.commands.rejection import ReasonCode
from core.primitives.booking import BookingStatus, InstanceStatus
from core.primitives.catalog import Branch, SelectionLine
from core.primitives.commission import CommissionStatus
from core.store.errors import TransientStoreError
from engines.booking.aggregate import PendingState
from engines.booking.commands import CreateBookingRequest
from engines.booking.services import BookingService
from engines.commission.services import CommissionService, InMemoryStaffDirectory
from engines.fulfillment.services import FulfillmentCoordinator


def _request(*lines):
    return CreateBookingRequest(
        branch=Branch.NAILS, appointment_date=date(2026, 3, 2),
        appointment_time=time(10, 30), customer_name="Dana",
        lines=lines or (SelectionLine.service("svc-gel", 2),),
    )


def _coordinator(store, feed, clock, **kwargs):
    return FulfillmentCoordinator(store=store, change_feed=feed, clock=clock, **kwargs)


def _booked(store, feed, clock, *lines, **kwargs):
    coordinator = _coordinator(store, feed, clock, **kwargs)
    aggregate = coordinator.create_booking(_request(*lines)).data
    ids = [i.instance_id for i in aggregate.instances()]
    return coordinator, aggregate, ids


class Passthrough:
    def __init__(self, inner):
        self._inner = inner

    def __getattr__(self, name):
        return getattr(self._inner, name)


class FailingWrites(Passthrough):
    """conditional_update_instance raises TransientStoreError `failures` times."""

    def __init__(self, inner, failures):
        super().__init__(inner)
        self.failures = failures
        self.attempts = 0

    def conditional_update_instance(self, instance_id, **kwargs):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransientStoreError("write timed out")
        return self._inner.conditional_update_instance(instance_id, **kwargs)


class LostResponses(Passthrough):
    """The first write lands but its response never arrives."""

    def __init__(self, inner):
        super().__init__(inner)
        self.lost = 1

    def conditional_update_instance(self, instance_id, **kwargs):
        result = self._inner.conditional_update_instance(instance_id, **kwargs)
        if self.lost:
            self.lost -= 1
            raise TransientStoreError("response lost")
        return result


class StaleReads(Passthrough):
    """get_instance serves queued snapshots before reading the store."""

    def __init__(self, inner, *snapshots):
        super().__init__(inner)
        self.queued = list(snapshots)

    def get_instance(self, instance_id):
        if self.queued:
            return self.queued.pop(0)
        return self._inner.get_instance(instance_id)


class FailingBookingWrites(Passthrough):
    """conditional_update_booking raises TransientStoreError `failures` times."""

    def __init__(self, inner, failures):
        super().__init__(inner)
        self.failures = failures

    def conditional_update_booking(self, booking_id, **kwargs):
        if self.failures > 0:
            self.failures -= 1
            raise TransientStoreError("booking write timed out")
        return self._inner.conditional_update_booking(booking_id, **kwargs)


# ══════════════════════════════════════════════════════════════
# HAPPY PATHS
# ══════════════════════════════════════════════════════════════

class TestEndToEnd:
    def test_claim_contest_serve_unserve_unclaim(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        first = ids[0]

        claimed = coordinator.claim(first, "amy")
        assert claimed.data.status == InstanceStatus.CLAIMED
        assert claimed.data.claimed_by == "amy"

        contested = coordinator.claim(first, "bea")
        assert contested.code == ReasonCode.ALREADY_CLAIMED
        assert store.get_instance(first).claimed_by == "amy"

        served = coordinator.serve(first, "amy")
        assert served.data.status == InstanceStatus.SERVED
        assert served.data.served_by == "amy"

        unserved = coordinator.unserve(first, "amy")
        assert unserved.data.status == InstanceStatus.CLAIMED

        released = coordinator.unclaim(first, "amy")
        assert released.data.status == InstanceStatus.UNCLAIMED
        assert released.data.claimed_by is None
        assert released.data.version == 5

    def test_aggregate_tracks_each_step(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        coordinator.claim(ids[0], "amy")
        assert aggregate.totals.claimed_count == 1
        assert aggregate.entry(ids[0]).state == PendingState.CONFIRMED

        coordinator.serve(ids[0], "amy")
        assert aggregate.totals.served_count == 1
        assert aggregate.totals.remaining_count == 1

    def test_reclaim_by_holder_is_noop(self, store, feed, clock):
        coordinator, _, ids = _booked(store, feed, clock)
        coordinator.claim(ids[0], "amy")
        again = coordinator.claim(ids[0], "amy")
        assert again.success
        assert again.data.version == 2

    def test_serve_requires_claim_owner(self, store, feed, clock):
        coordinator, _, ids = _booked(store, feed, clock)
        coordinator.claim(ids[0], "amy")
        result = coordinator.serve(ids[0], "bea")
        assert result.code == ReasonCode.NOT_OWNER
        assert not result.error.retryable

    def test_serve_unclaimed_is_invalid(self, store, feed, clock):
        coordinator, _, ids = _booked(store, feed, clock)
        result = coordinator.serve(ids[0], "amy")
        assert result.code == ReasonCode.INVALID_TRANSITION

    def test_unknown_instance(self, store, feed, clock):
        result = _coordinator(store, feed, clock).claim("inst-nope", "amy")
        assert result.code == ReasonCode.NOT_FOUND

    def test_blank_actor_raises(self, store, feed, clock):
        coordinator, _, ids = _booked(store, feed, clock)
        with pytest.raises(ValueError, match="actor_id"):
            coordinator.claim(ids[0], "")


# ══════════════════════════════════════════════════════════════
# BOOKING STATUS FOLLOWS INSTANCES
# ══════════════════════════════════════════════════════════════

class TestAutomaticBookingStatus:
    def test_first_claim_starts_booking(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        coordinator.claim(ids[0], "amy")

        booking = store.get_booking(aggregate.booking_id)
        assert booking.status == BookingStatus.IN_PROGRESS
        assert booking.started_at == clock.now_utc()
        assert aggregate.booking.status == BookingStatus.IN_PROGRESS

    def test_last_serve_completes_and_unserve_reopens(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        for instance_id in ids:
            coordinator.claim(instance_id, "amy")
        coordinator.serve(ids[0], "amy")
        assert store.get_booking(aggregate.booking_id).status == BookingStatus.IN_PROGRESS

        coordinator.serve(ids[1], "amy")
        completed = store.get_booking(aggregate.booking_id)
        assert completed.status == BookingStatus.COMPLETED
        assert completed.final_total == 100000
        assert aggregate.totals.all_served

        coordinator.unserve(ids[1], "amy")
        assert store.get_booking(aggregate.booking_id).status == BookingStatus.IN_PROGRESS
        assert aggregate.booking.status == BookingStatus.IN_PROGRESS

    def test_confirmed_booking_starts_on_claim(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        BookingService(store=store, clock=clock).confirm(aggregate.booking_id, "desk")
        coordinator.claim(ids[0], "amy")
        assert store.get_booking(aggregate.booking_id).status == BookingStatus.IN_PROGRESS

    def test_stale_header_does_not_regress_status(self, store, feed, clock):
        device_a, aggregate, ids = _booked(store, feed, clock)
        device_b = _coordinator(store, feed, clock)
        device_b.track(aggregate.booking_id)

        device_a.claim(ids[0], "amy")
        result = device_b.claim(ids[1], "bea")

        assert result.success
        assert device_b.aggregate(aggregate.booking_id).booking.status == BookingStatus.IN_PROGRESS

    def test_serve_catches_up_after_lost_start(self, store, feed, clock):
        _, aggregate, ids = _booked(store, feed, clock, SelectionLine.service("svc-gel"))
        coordinator = _coordinator(FailingBookingWrites(store, failures=2), feed, clock)

        assert coordinator.claim(ids[0], "amy").success
        assert store.get_booking(aggregate.booking_id).status == BookingStatus.PENDING

        assert coordinator.serve(ids[0], "amy").success

        booking = store.get_booking(aggregate.booking_id)
        assert booking.status == BookingStatus.COMPLETED
        assert booking.started_at == clock.now_utc()
        assert booking.final_total == 50000


# ══════════════════════════════════════════════════════════════
# RACES
# ══════════════════════════════════════════════════════════════

class TestRaces:
    def test_claim_lost_on_write(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        stale = store.get_instance(ids[0])
        _coordinator(store, feed, clock).claim(ids[0], "amy")

        racing = _coordinator(StaleReads(store, stale), feed, clock)
        result = racing.claim(ids[0], "bea")

        assert result.code == ReasonCode.ALREADY_CLAIMED
        assert result.error.retryable
        view = racing.aggregate(aggregate.booking_id)
        assert view.entry(ids[0]).state == PendingState.REJECTED
        assert view.get(ids[0]).claimed_by == "amy"

    def test_serve_after_remote_unclaim_is_stale(self, store, feed, clock):
        coordinator, _, ids = _booked(store, feed, clock)
        coordinator.claim(ids[0], "amy")
        held = store.get_instance(ids[0])
        coordinator.unclaim(ids[0], "amy")

        result = _coordinator(StaleReads(store, held), feed, clock).serve(ids[0], "amy")
        assert result.code == ReasonCode.STALE_STATE
        assert store.get_instance(ids[0]).status == InstanceStatus.UNCLAIMED

    def test_parallel_claims_one_winner(self, store, feed, clock):
        _, aggregate, ids = _booked(store, feed, clock)
        devices = [_coordinator(store, feed, clock) for _ in range(2)]
        for device in devices:
            device.track(aggregate.booking_id)
        barrier = threading.Barrier(2)
        results = {}

        def attempt(device, actor):
            barrier.wait()
            results[actor] = device.claim(ids[0], actor)

        threads = [
            threading.Thread(target=attempt, args=(devices[0], "amy")),
            threading.Thread(target=attempt, args=(devices[1], "bea")),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        winners = [actor for actor, result in results.items() if result.success]
        assert len(winners) == 1
        loser = "bea" if winners == ["amy"] else "amy"
        assert results[loser].code == ReasonCode.ALREADY_CLAIMED
        assert store.get_instance(ids[0]).claimed_by == winners[0]


# ══════════════════════════════════════════════════════════════
# TRANSIENT FAILURES
# ══════════════════════════════════════════════════════════════

class TestTransientFailures:
    def test_write_retried_once(self, store, feed, clock):
        _, _, ids = _booked(store, feed, clock)
        flaky = FailingWrites(store, failures=1)
        result = _coordinator(flaky, feed, clock).claim(ids[0], "amy")
        assert result.success
        assert flaky.attempts == 2

    def test_write_gives_up_and_rolls_back(self, store, feed, clock):
        _, aggregate, ids = _booked(store, feed, clock)
        flaky = FailingWrites(store, failures=2)
        coordinator = _coordinator(flaky, feed, clock)

        result = coordinator.claim(ids[0], "amy")

        assert result.code == ReasonCode.TRANSIENT_IO
        view = coordinator.aggregate(aggregate.booking_id)
        assert view.entry(ids[0]).state == PendingState.REJECTED
        assert view.get(ids[0]).status == InstanceStatus.UNCLAIMED
        assert store.get_instance(ids[0]).status == InstanceStatus.UNCLAIMED

    def test_lost_response_recognised_as_success(self, store, feed, clock):
        _, _, ids = _booked(store, feed, clock)
        result = _coordinator(LostResponses(store), feed, clock).claim(ids[0], "amy")
        assert result.success
        assert result.data.claimed_by == "amy"
        assert result.data.version == 2


# ══════════════════════════════════════════════════════════════
# CLOSED BOOKINGS
# ══════════════════════════════════════════════════════════════

class TestClosedBookings:
    def test_claim_on_cancelled_booking(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        assert coordinator.cancel_booking(aggregate.booking_id, "desk").success
        result = coordinator.claim(ids[0], "amy")
        assert result.code == ReasonCode.BOOKING_CLOSED

    def test_cancelled_elsewhere_detected_on_write(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        BookingService(store=store, clock=clock).cancel(aggregate.booking_id, "desk")

        result = coordinator.claim(ids[0], "amy")

        assert result.code == ReasonCode.BOOKING_CLOSED
        assert aggregate.booking.status == BookingStatus.CANCELLED

    def test_cancel_after_serve_refused(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        coordinator.claim(ids[0], "amy")
        coordinator.serve(ids[0], "amy")
        result = coordinator.cancel_booking(aggregate.booking_id, "desk")
        assert result.code == ReasonCode.BOOKING_HAS_SERVED_INSTANCES


# ══════════════════════════════════════════════════════════════
# CHANGE FEED
# ══════════════════════════════════════════════════════════════

class TestChangeFeedMerge:
    def test_remote_claim_visible(self, store, feed, clock):
        device_a, aggregate, ids = _booked(store, feed, clock)
        device_b = _coordinator(store, feed, clock)
        device_b.track(aggregate.booking_id)

        device_a.claim(ids[0], "amy")

        view = device_b.aggregate(aggregate.booking_id)
        assert view.get(ids[0]).claimed_by == "amy"
        assert view.totals.claimed_count == 1

    def test_older_snapshot_ignored(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        original = store.get_instance(ids[0])
        coordinator.claim(ids[0], "amy")

        assert coordinator.on_instance_changed(ids[0], original) is False
        assert aggregate.get(ids[0]).claimed_by == "amy"

    def test_mismatched_id_raises(self, store, feed, clock):
        coordinator, _, ids = _booked(store, feed, clock)
        with pytest.raises(ValueError, match="not"):
            coordinator.on_instance_changed(ids[1], store.get_instance(ids[0]))

    def test_untracked_booking_ignored(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        coordinator.untrack(aggregate.booking_id)
        assert feed.subscriber_count(aggregate.booking_id) == 0
        assert coordinator.on_instance_changed(ids[0], store.get_instance(ids[0])) is False

    def test_compute_totals(self, store, feed, clock):
        coordinator, aggregate, ids = _booked(store, feed, clock)
        coordinator.claim(ids[0], "amy")
        totals = coordinator.compute_totals(aggregate.booking_id).data
        assert totals.claimed_count == 1

        fresh = _coordinator(store, feed, clock)
        assert fresh.compute_totals(aggregate.booking_id).data.claimed_count == 1
        assert fresh.compute_totals("bk-nope").code == ReasonCode.NOT_FOUND


# ══════════════════════════════════════════════════════════════
# COMMISSIONS
# ══════════════════════════════════════════════════════════════

class TestCommissionFollowUps:
    def _with_commissions(self, store, feed, clock):
        staff = InMemoryStaffDirectory({"amy": ["WORKER"]})
        commissions = CommissionService(store=store, staff=staff, clock=clock)
        return _booked(
            store, feed, clock, SelectionLine.service("svc-gel"),
            commission_service=commissions,
        )

    def test_settle_then_unserve_reverts(self, store, feed, clock):
        coordinator, aggregate, ids = self._with_commissions(store, feed, clock)
        coordinator.claim(ids[0], "amy")
        coordinator.serve(ids[0], "amy")
        clock.advance(60)

        settled = coordinator.settle_commissions(aggregate.booking_id)
        assert [entry.amount for entry in settled.data] == [5000]
        assert aggregate.booking.commission_processed_at is not None

        coordinator.unserve(ids[0], "amy")
        statuses = [e.status for e in store.list_commissions(aggregate.booking_id)]
        assert statuses == [CommissionStatus.REVERTED]
        assert store.get_booking(aggregate.booking_id).commission_processed_at is None

    def test_settle_needs_commission_service(self, store, feed, clock):
        coordinator, aggregate, _ = _booked(store, feed, clock)
        with pytest.raises(RuntimeError, match="CommissionService"):
            coordinator.settle_commissions(aggregate.booking_id)
