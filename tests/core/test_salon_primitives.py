"""
Salon primitives — value-type invariants, booking workflow, results.
"""

from datetime import date, datetime, time, timezone

import pytest

from core.commands.outcomes import OperationResult
from core.commands.rejection import ReasonCode, RejectionReason
from core.primitives.booking import (
    Booking,
    BookingDraft,
    BookingStatus,
    InstanceDraft,
    InstanceStatus,
    ServiceInstance,
)
from core.primitives.catalog import (
    Branch,
    GiftCertificate,
    SelectionKind,
    SelectionLine,
    ServiceSet,
    ServiceSetItem,
    Voucher,
)
from core.primitives.workflow import BOOKING_STATUS_WORKFLOW, WorkflowDefinition

NOW = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


def _instance(**overrides):
    fields = dict(
        instance_id="inst-1", booking_id="bk-1", service_id="svc-gel",
        price_at_booking=50000, sequence_order=1,
    )
    fields.update(overrides)
    return ServiceInstance(**fields)


def _booking(**overrides):
    fields = dict(
        booking_id="bk-1", branch=Branch.NAILS,
        appointment_date=date(2026, 3, 2), appointment_time=time(10, 0),
        status=BookingStatus.PENDING, grand_total=50000,
    )
    fields.update(overrides)
    return Booking(**fields)


# ══════════════════════════════════════════════════════════════
# SERVICE INSTANCE
# ══════════════════════════════════════════════════════════════

class TestServiceInstance:
    def test_defaults_to_unclaimed_version_one(self):
        instance = _instance()
        assert instance.status == InstanceStatus.UNCLAIMED
        assert instance.claimed_by is None
        assert instance.version == 1

    def test_claimed_requires_claimant(self):
        with pytest.raises(ValueError, match="claimed_by"):
            _instance(status=InstanceStatus.CLAIMED)

    def test_unclaimed_rejects_claimant(self):
        with pytest.raises(ValueError, match="claimed_by"):
            _instance(claimed_by="amy")

    def test_served_requires_server(self):
        with pytest.raises(ValueError, match="served_by"):
            _instance(status=InstanceStatus.SERVED, claimed_by="amy")

    def test_claimed_rejects_server(self):
        with pytest.raises(ValueError, match="served_by"):
            _instance(status=InstanceStatus.CLAIMED, claimed_by="amy", served_by="amy")

    def test_served_snapshot_valid(self):
        instance = _instance(
            status=InstanceStatus.SERVED, claimed_by="amy", claimed_at=NOW,
            served_by="amy", served_at=NOW,
        )
        assert instance.to_dict()["served_at"] == NOW.isoformat()

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError, match="price_at_booking"):
            _instance(price_at_booking=-1)

    def test_sequence_order_is_one_based(self):
        with pytest.raises(ValueError, match="sequence_order"):
            _instance(sequence_order=0)

    def test_with_changes_returns_new_snapshot(self):
        instance = _instance()
        claimed = instance.with_changes(
            status=InstanceStatus.CLAIMED, claimed_by="amy", version=2,
        )
        assert instance.status == InstanceStatus.UNCLAIMED
        assert claimed.claimed_by == "amy"
        assert claimed.version == 2

    def test_immutable(self):
        instance = _instance()
        with pytest.raises(AttributeError):
            instance.status = InstanceStatus.CLAIMED


# ══════════════════════════════════════════════════════════════
# BOOKING & DRAFTS
# ══════════════════════════════════════════════════════════════

class TestBooking:
    def test_closed_statuses(self):
        assert _booking(status=BookingStatus.CANCELLED).is_closed
        assert _booking(status=BookingStatus.NO_SHOW).is_closed
        assert not _booking(status=BookingStatus.COMPLETED).is_closed

    def test_negative_discount_rejected(self):
        with pytest.raises(ValueError, match="grand_discount"):
            _booking(grand_discount=-5)

    def test_status_must_be_enum(self):
        with pytest.raises(TypeError):
            _booking(status="PENDING")

    def test_to_dict(self):
        data = _booking().to_dict()
        assert data["status"] == "PENDING"
        assert data["branch"] == "NAILS"
        assert data["appointment_time"] == "10:00:00"


class TestBookingDraft:
    def _draft(self, orders):
        return BookingDraft(
            branch=Branch.NAILS, appointment_date=date(2026, 3, 2),
            appointment_time=time(10, 0), grand_total=100, grand_discount=0,
            final_total=100, duration_minutes=30,
            instances=tuple(InstanceDraft("svc-gel", 50, order) for order in orders),
            created_at=NOW,
        )

    def test_contiguous_sequence_accepted(self):
        assert len(self._draft([1, 2]).instances) == 2

    def test_gap_in_sequence_rejected(self):
        with pytest.raises(ValueError, match="contiguous"):
            self._draft([1, 3])

    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="at least one"):
            self._draft([])


# ══════════════════════════════════════════════════════════════
# CATALOG
# ══════════════════════════════════════════════════════════════

class TestCatalog:
    def test_selection_line_constructors(self):
        assert SelectionLine.service("svc-gel", 2).kind == SelectionKind.SERVICE
        assert SelectionLine.service_set("set-spa").quantity == 1

    def test_selection_line_rejects_zero_quantity(self):
        with pytest.raises(ValueError, match="quantity"):
            SelectionLine.service("svc-gel", 0)

    def test_selection_line_rejects_bool_quantity(self):
        with pytest.raises(TypeError):
            SelectionLine.service("svc-gel", True)

    def test_service_set_needs_items(self):
        with pytest.raises(ValueError, match="at least one item"):
            ServiceSet(service_set_id="set-x", title="Empty", price=100, items=())

    def test_service_set_ids(self):
        service_set = ServiceSet(
            service_set_id="set-x", title="Duo", price=100,
            items=(ServiceSetItem("a"), ServiceSetItem("b", adjusted_price=10)),
        )
        assert service_set.service_ids() == ("a", "b")

    def test_voucher_code_must_be_uppercase(self):
        with pytest.raises(ValueError, match="uppercase"):
            Voucher(voucher_id="v-1", code="bf12ab", value=1000)

    def test_voucher_expiry_is_inclusive_of_last_day(self):
        voucher = Voucher(voucher_id="v-1", code="BF12AB", value=1000,
                          expires_on=date(2026, 3, 2))
        assert not voucher.is_expired(date(2026, 3, 2))
        assert voucher.is_expired(date(2026, 3, 3))

    def test_gift_certificate_without_expiry_never_expires(self):
        certificate = GiftCertificate(
            certificate_id="gc-1", code="GC0A9Z",
            lines=(SelectionLine.service("svc-gel"),),
        )
        assert not certificate.is_expired(date(2099, 1, 1))


# ══════════════════════════════════════════════════════════════
# BOOKING WORKFLOW
# ══════════════════════════════════════════════════════════════

class TestBookingWorkflow:
    def test_pending_can_start(self):
        assert BOOKING_STATUS_WORKFLOW.is_valid_transition(
            BookingStatus.PENDING, BookingStatus.IN_PROGRESS,
        )

    def test_completed_can_reopen(self):
        assert BOOKING_STATUS_WORKFLOW.is_valid_transition(
            BookingStatus.COMPLETED, BookingStatus.IN_PROGRESS,
        )

    def test_completed_cannot_cancel(self):
        assert not BOOKING_STATUS_WORKFLOW.is_valid_transition(
            BookingStatus.COMPLETED, BookingStatus.CANCELLED,
        )

    def test_terminal_states(self):
        assert BOOKING_STATUS_WORKFLOW.terminal_states == frozenset({
            BookingStatus.CANCELLED, BookingStatus.NO_SHOW,
        })
        assert BOOKING_STATUS_WORKFLOW.allowed_next_states(BookingStatus.NO_SHOW) == frozenset()

    def test_every_status_listed(self):
        with pytest.raises(ValueError, match="NO_SHOW"):
            WorkflowDefinition(
                name="Partial", initial=BookingStatus.PENDING,
                moves={s: frozenset() for s in BookingStatus if s != BookingStatus.NO_SHOW},
            )


# ══════════════════════════════════════════════════════════════
# RESULTS
# ══════════════════════════════════════════════════════════════

class TestOperationResult:
    def test_ok_carries_data(self):
        result = OperationResult.ok({"a": 1})
        assert result.success
        assert result.code is None
        assert result.to_dict() == {"success": True, "data": {"a": 1}}

    def test_failure_requires_reason(self):
        with pytest.raises(ValueError, match="RejectionReason"):
            OperationResult(success=False)

    def test_failure_cannot_carry_data(self):
        reason = RejectionReason(code="X", message="m", policy_name="p")
        with pytest.raises(ValueError, match="data"):
            OperationResult(success=False, data=1, error=reason)

    def test_reject_builds_reason(self):
        result = OperationResult.reject(
            ReasonCode.ALREADY_CLAIMED, "taken", "instance_must_not_be_claimed_by_other_policy",
        )
        assert result.code == ReasonCode.ALREADY_CLAIMED
        assert result.error.retryable
        assert result.to_dict()["error"]["policy_name"].endswith("_policy")

    def test_not_owner_is_not_retryable(self):
        reason = RejectionReason(code=ReasonCode.NOT_OWNER, message="m", policy_name="p")
        assert not reason.retryable

    def test_reason_requires_message(self):
        with pytest.raises(ValueError, match="message"):
            RejectionReason(code="X", message="", policy_name="p")
