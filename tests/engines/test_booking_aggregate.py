"""
Salon Booking Aggregate Tests
==============================
Totals recomputation and the pending / confirmed / rejected
lifecycle around optimistic instance updates.
"""

from datetime import date, datetime, time, timezone

import pytest

from core.primitives.booking import Booking, BookingStatus, InstanceStatus, ServiceInstance
from core.primitives.catalog import Branch
from engines.booking.aggregate import BookingAggregate, PendingInstance, PendingState, recompute

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


def _booking(**overrides):
    fields = dict(
        booking_id="bk-1", branch=Branch.NAILS, appointment_date=date(2026, 3, 2),
        appointment_time=time(10, 0), status=BookingStatus.PENDING,
        grand_total=90000, grand_discount=5000,
    )
    fields.update(overrides)
    return Booking(**fields)


def _instance(n, **overrides):
    fields = dict(
        instance_id=f"inst-{n}", booking_id="bk-1", service_id="svc-gel",
        price_at_booking=45000, sequence_order=n,
    )
    fields.update(overrides)
    return ServiceInstance(**fields)


def _claimed(n, by="amy", version=2):
    return _instance(n, status=InstanceStatus.CLAIMED, claimed_by=by,
                     claimed_at=NOW, version=version)


def _aggregate():
    return BookingAggregate(_booking(), [_instance(2), _instance(1)])


class TestRecompute:
    def test_counts_and_totals(self):
        totals = recompute(_booking(), [
            _instance(1),
            _claimed(2),
            _instance(3, status=InstanceStatus.SERVED, claimed_by="amy", served_by="amy"),
        ])
        assert totals.subtotal == 90000
        assert totals.final_total == 85000
        assert (totals.unclaimed_count, totals.claimed_count, totals.served_count) == (1, 1, 1)
        assert totals.remaining_count == 2
        assert not totals.all_served

    def test_discount_floor(self):
        totals = recompute(_booking(grand_discount=100000), [_instance(1)])
        assert totals.final_total == 0

    def test_foreign_instance_rejected(self):
        with pytest.raises(ValueError, match="bk-2"):
            recompute(_booking(), [_instance(1, booking_id="bk-2")])

    def test_empty_booking_not_all_served(self):
        assert not recompute(_booking(), []).all_served


class TestViews:
    def test_instances_sorted_by_sequence(self):
        assert [i.sequence_order for i in _aggregate().instances()] == [1, 2]

    def test_unknown_instance(self):
        with pytest.raises(KeyError, match="inst-9"):
            _aggregate().get("inst-9")

    def test_to_dict(self):
        data = _aggregate().to_dict()
        assert data["totals"]["instance_count"] == 2
        assert data["booking"]["booking_id"] == "bk-1"

    def test_pending_wrapper_shape(self):
        with pytest.raises(ValueError, match="optimistic"):
            PendingInstance(state=PendingState.CONFIRMED, confirmed=_instance(1),
                            optimistic=_instance(1))


class TestOptimisticLifecycle:
    def test_begin_shows_optimistic_and_recomputes(self):
        aggregate = _aggregate()
        aggregate.begin(_claimed(1))

        assert aggregate.entry("inst-1").state == PendingState.PENDING
        assert aggregate.get("inst-1").claimed_by == "amy"
        assert aggregate.entry("inst-1").confirmed.status == InstanceStatus.UNCLAIMED
        assert aggregate.totals.claimed_count == 1

    def test_confirm(self):
        aggregate = _aggregate()
        aggregate.begin(_claimed(1))
        aggregate.confirm(_claimed(1))
        assert aggregate.entry("inst-1").state == PendingState.CONFIRMED
        assert aggregate.get("inst-1").version == 2

    def test_reject_rolls_back(self):
        aggregate = _aggregate()
        aggregate.begin(_claimed(1))
        aggregate.reject("inst-1")

        assert aggregate.entry("inst-1").state == PendingState.REJECTED
        assert aggregate.get("inst-1").status == InstanceStatus.UNCLAIMED
        assert aggregate.totals.claimed_count == 0

    def test_reject_adopts_newer_authoritative(self):
        aggregate = _aggregate()
        aggregate.begin(_claimed(1, by="amy"))
        aggregate.reject("inst-1", _claimed(1, by="bea"))
        assert aggregate.get("inst-1").claimed_by == "bea"

    def test_confirm_keeps_newer_remote(self):
        aggregate = _aggregate()
        aggregate.begin(_claimed(1))
        served = _instance(1, status=InstanceStatus.SERVED, claimed_by="amy",
                           served_by="amy", version=3)
        aggregate.merge_remote(served)
        aggregate.confirm(_claimed(1))
        assert aggregate.get("inst-1").version == 3


class TestRemoteMerge:
    def test_newer_snapshot_merged(self):
        aggregate = _aggregate()
        assert aggregate.merge_remote(_claimed(1)) is True
        assert aggregate.totals.claimed_count == 1

    def test_duplicate_ignored(self):
        aggregate = _aggregate()
        aggregate.merge_remote(_claimed(1))
        assert aggregate.merge_remote(_claimed(1)) is False

    def test_out_of_order_ignored(self):
        aggregate = _aggregate()
        aggregate.merge_remote(_claimed(1, version=3))
        assert aggregate.merge_remote(_claimed(1, by="bea", version=2)) is False
        assert aggregate.get("inst-1").claimed_by == "amy"

    def test_merge_while_pending_keeps_optimistic_view(self):
        aggregate = _aggregate()
        aggregate.begin(_claimed(1))
        aggregate.merge_remote(_claimed(1, by="bea"))
        entry = aggregate.entry("inst-1")
        assert entry.state == PendingState.PENDING
        assert entry.confirmed.claimed_by == "bea"

    def test_wrong_booking(self):
        with pytest.raises(ValueError, match="bk-2"):
            _aggregate().merge_remote(_instance(1, booking_id="bk-2", version=2))

    def test_new_instance_added(self):
        aggregate = _aggregate()
        aggregate.merge_remote(_instance(3))
        assert aggregate.totals.instance_count == 3


class TestHeader:
    def test_replace_booking_only_if_newer(self):
        aggregate = _aggregate()
        assert aggregate.replace_booking(_booking(status=BookingStatus.CONFIRMED, version=2))
        assert not aggregate.replace_booking(_booking(status=BookingStatus.CANCELLED, version=2))
        assert aggregate.booking.status == BookingStatus.CONFIRMED

    def test_replace_with_other_booking(self):
        with pytest.raises(ValueError):
            _aggregate().replace_booking(_booking(booking_id="bk-2", version=5))

    def test_has_served_instances_uses_confirmed(self):
        aggregate = _aggregate()
        aggregate.begin(_instance(1, status=InstanceStatus.SERVED, claimed_by="amy",
                                  served_by="amy", version=2))
        assert not aggregate.has_served_instances()
