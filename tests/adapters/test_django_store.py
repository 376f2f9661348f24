from __future__ import annotations

from datetime import date, time
from decimal import Decimal

import pytest
from django.db import OperationalError

from adapters.django_store.config import rules_from_settings
from adapters.django_store.models import ServiceRecord, VoucherRecord
from adapters.django_store.store import DjangoSalonStore
from core.commands.rejection import ReasonCode
from core.primitives.booking import BookingStatus, InstanceStatus
from core.primitives.catalog import (
    Branch,
    GiftCertificate,
    RedemptionStatus,
    SelectionLine,
    Voucher,
)
from core.primitives.commission import CommissionStatus
from core.store.errors import AlreadyUsed, RecordNotFound, StoreConflict, TransientStoreError
from engines.booking.commands import CreateBookingRequest
from engines.booking.services import BookingService
from engines.commission.services import CommissionService, InMemoryStaffDirectory
from engines.fulfillment.services import FulfillmentCoordinator
from engines.redemption.services import VoucherGiftCertificateResolver

pytestmark = pytest.mark.django_db(transaction=True)


@pytest.fixture
def django_store(transactional_db, feed, catalog_seeder):
    return catalog_seeder(DjangoSalonStore(change_feed=feed))


def _request(**overrides):
    fields = dict(
        branch=Branch.NAILS,
        appointment_date=date(2026, 3, 2),
        appointment_time=time(10, 30),
        customer_name="Dana",
        lines=(SelectionLine.service("svc-gel"), SelectionLine.service_set("set-spa")),
    )
    fields.update(overrides)
    return CreateBookingRequest(**fields)


def _create(django_store, clock, **overrides):
    return BookingService(store=django_store, clock=clock).create_booking(_request(**overrides)).data


def _claim_patch(actor, clock):
    return {
        "status": InstanceStatus.CLAIMED,
        "claimed_by": actor,
        "claimed_at": clock.now_utc(),
    }


# ══════════════════════════════════════════════════════════════
# CATALOG & BOOKINGS
# ══════════════════════════════════════════════════════════════

def test_catalog_round_trip(django_store) -> None:
    spa = django_store.get_service_set("set-spa")
    assert [item.service_id for item in spa.items] == ["svc-gel", "svc-pedi"]
    assert spa.items[0].adjusted_price == 30000
    assert spa.items[1].adjusted_price is None
    assert django_store.get_service("svc-retired").is_active is False
    assert django_store.get_service("svc-nope") is None


def test_create_booking_with_voucher(django_store, clock) -> None:
    django_store.add_voucher(Voucher(voucher_id="v-1", code="BF1234", value=5000))

    aggregate = _create(django_store, clock, voucher_code="bf1234")

    booking = django_store.get_booking(aggregate.booking_id)
    assert booking.grand_total == 150000
    assert booking.grand_discount == 5000
    assert booking.final_total == 145000
    assert booking.voucher_id == "v-1"
    assert booking.created_at == clock.now_utc()
    assert [i.price_at_booking for i in django_store.list_instances(booking.booking_id)] == [
        50000, 30000, 40000,
    ]
    assert VoucherRecord.objects.get(pk="v-1").status == RedemptionStatus.USED.value


def test_voucher_consumed_once(django_store) -> None:
    django_store.add_voucher(Voucher(voucher_id="v-1", code="BF1234", value=5000))
    assert django_store.consume_voucher("v-1").status == RedemptionStatus.USED
    with pytest.raises(AlreadyUsed):
        django_store.consume_voucher("v-1")
    with pytest.raises(RecordNotFound):
        django_store.consume_voucher("v-nope")


def test_missing_records(django_store) -> None:
    with pytest.raises(RecordNotFound):
        django_store.get_booking("bk-nope")
    with pytest.raises(RecordNotFound):
        django_store.get_instance("inst-nope")


def test_database_errors_are_transient(django_store, monkeypatch) -> None:
    def unavailable(*args, **kwargs):
        raise OperationalError("database is locked")

    monkeypatch.setattr(ServiceRecord.objects, "filter", unavailable)
    with pytest.raises(TransientStoreError):
        django_store.get_service("svc-gel")


# ══════════════════════════════════════════════════════════════
# CONDITIONAL WRITES
# ══════════════════════════════════════════════════════════════

def test_instance_conditional_update(django_store, clock) -> None:
    aggregate = _create(django_store, clock)
    instance_id = aggregate.instances()[0].instance_id

    claimed = django_store.conditional_update_instance(
        instance_id,
        expected_status=InstanceStatus.UNCLAIMED,
        expected_claimant=None,
        patch=_claim_patch("amy", clock),
    )
    assert claimed.version == 2
    assert claimed.claimed_by == "amy"

    with pytest.raises(StoreConflict):
        django_store.conditional_update_instance(
            instance_id,
            expected_status=InstanceStatus.UNCLAIMED,
            expected_claimant=None,
            patch=_claim_patch("bea", clock),
        )
    assert django_store.get_instance(instance_id).claimed_by == "amy"


def test_snapshot_published_after_commit(django_store, feed, clock) -> None:
    aggregate = _create(django_store, clock)
    instance_id = aggregate.instances()[0].instance_id
    received = []
    feed.subscribe(aggregate.booking_id, received.append)

    django_store.conditional_update_instance(
        instance_id,
        expected_status=InstanceStatus.UNCLAIMED,
        expected_claimant=None,
        patch=_claim_patch("amy", clock),
    )

    assert [(s.instance_id, s.version) for s in received] == [(instance_id, 2)]


def test_closed_booking_blocks_instance_writes(django_store, clock) -> None:
    aggregate = _create(django_store, clock)
    django_store.conditional_update_booking(
        aggregate.booking_id,
        expected_statuses=(BookingStatus.PENDING,),
        patch={"status": BookingStatus.CANCELLED, "cancelled_at": clock.now_utc()},
    )

    with pytest.raises(StoreConflict):
        django_store.conditional_update_instance(
            aggregate.instances()[0].instance_id,
            expected_status=InstanceStatus.UNCLAIMED,
            expected_claimant=None,
            patch=_claim_patch("amy", clock),
        )


def test_cancel_refused_once_served(django_store, clock) -> None:
    aggregate = _create(django_store, clock)
    coordinator = FulfillmentCoordinator(store=django_store, clock=clock)
    instance_id = aggregate.instances()[0].instance_id
    coordinator.claim(instance_id, "amy")
    coordinator.serve(instance_id, "amy")

    with pytest.raises(StoreConflict):
        django_store.conditional_update_booking(
            aggregate.booking_id,
            expected_statuses=(BookingStatus.IN_PROGRESS,),
            patch={"status": BookingStatus.CANCELLED},
            require_no_served=True,
        )
    result = BookingService(store=django_store, clock=clock).cancel(aggregate.booking_id, "desk")
    assert result.code == ReasonCode.BOOKING_HAS_SERVED_INSTANCES


def test_booking_status_guard(django_store, clock) -> None:
    aggregate = _create(django_store, clock)
    confirmed = django_store.conditional_update_booking(
        aggregate.booking_id,
        expected_statuses=(BookingStatus.PENDING,),
        patch={"status": BookingStatus.CONFIRMED, "confirmed_at": clock.now_utc()},
    )
    assert confirmed.version == 2

    with pytest.raises(StoreConflict):
        django_store.conditional_update_booking(
            aggregate.booking_id,
            expected_statuses=(BookingStatus.PENDING,),
            patch={"status": BookingStatus.CONFIRMED},
        )


# ══════════════════════════════════════════════════════════════
# END TO END
# ══════════════════════════════════════════════════════════════

def test_fulfillment_and_commissions(django_store, feed, clock) -> None:
    staff = InMemoryStaffDirectory({"amy": ["WORKER"], "bea": ["WORKER", "MASSEUSE"]})
    commissions = CommissionService(store=django_store, staff=staff, clock=clock)
    coordinator = FulfillmentCoordinator(
        store=django_store, change_feed=feed, clock=clock, commission_service=commissions,
    )
    aggregate = coordinator.create_booking(_request()).data
    workers = ["amy", "amy", "bea"]
    instance_ids = [i.instance_id for i in aggregate.instances()]

    for instance_id, worker in zip(instance_ids, workers):
        assert coordinator.claim(instance_id, worker).success
    assert coordinator.claim(instance_ids[0], "bea").code == ReasonCode.ALREADY_CLAIMED
    for instance_id, worker in zip(instance_ids, workers):
        assert coordinator.serve(instance_id, worker).success

    booking = django_store.get_booking(aggregate.booking_id)
    assert booking.status == BookingStatus.COMPLETED
    assert booking.final_total == 150000

    clock.advance(60)
    settled = coordinator.settle_commissions(aggregate.booking_id).data
    assert [e.amount for e in settled] == [5000, 3000, 20000]
    stored = django_store.list_commissions(aggregate.booking_id)
    assert [e.rate for e in stored] == [Decimal("10.00"), Decimal("10.00"), Decimal("50.00")]

    coordinator.unserve(instance_ids[2], "bea")
    assert django_store.get_booking(aggregate.booking_id).status == BookingStatus.IN_PROGRESS
    assert {e.status for e in django_store.list_commissions(aggregate.booking_id)} == {
        CommissionStatus.REVERTED,
    }


def test_gift_certificate_claimed_once(django_store, clock) -> None:
    django_store.add_gift_certificate(GiftCertificate(
        certificate_id="gc-1",
        code="GC7K2Q",
        lines=(SelectionLine.service("svc-pedi"), SelectionLine.service("svc-gel", 2)),
        customer_name="Dana",
    ))
    resolver = VoucherGiftCertificateResolver(store=django_store, clock=clock)

    certificate = resolver.check_gift_certificate("gc7k2q").data
    assert [line.item_id for line in certificate.lines] == ["svc-pedi", "svc-gel"]

    first = resolver.claim_gift_certificate("gc-1")
    assert first.data.booking.final_total == 0
    assert first.data.booking.gift_certificate_id == "gc-1"
    assert first.data.totals.instance_count == 3

    second = resolver.claim_gift_certificate("gc-1")
    assert second.code == ReasonCode.NOT_CLAIMABLE
    with pytest.raises(AlreadyUsed):
        django_store.claim_gift_certificate("gc-1", None)


# ══════════════════════════════════════════════════════════════
# SETTINGS
# ══════════════════════════════════════════════════════════════

def test_rules_from_settings(settings) -> None:
    settings.SALON_RULES = {"MAX_QUANTITY": 3, "COMMISSION_RATES": {"WORKER": "12.5"}}
    rules = rules_from_settings()
    assert rules.max_quantity == 3
    assert rules.rate_for("WORKER") == Decimal("12.5")
    assert rules.rate_for("MASSEUSE") == Decimal("0")


def test_rules_default_without_setting(settings) -> None:
    del settings.SALON_RULES
    assert rules_from_settings().settle_window_seconds == 60


def test_unknown_rule_rejected(settings) -> None:
    settings.SALON_RULES = {"MAX_QTY": 3}
    with pytest.raises(ValueError, match="MAX_QTY"):
        rules_from_settings()
