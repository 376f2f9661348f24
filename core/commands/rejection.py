"""
Salon Command Layer — Rejection Model
======================================
Expected refusals travel as values. A lost claim race, a serve by
the wrong worker or an unknown voucher code ends in a failed
OperationResult carrying a RejectionReason; only misuse raises.

The code is for callers, the message is for staff, and
policy_name points at the check that said no.
"""

from __future__ import annotations

from dataclasses import dataclass


# ══════════════════════════════════════════════════════════════
# REJECTION REASON
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class RejectionReason:
    """Why an operation was refused. See ReasonCode for codes."""

    code: str
    message: str
    policy_name: str

    def __post_init__(self):
        for field_name in ("code", "message", "policy_name"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"{field_name} must be a non-empty string.")

    @property
    def retryable(self) -> bool:
        """Only lost races and transient I/O are worth another attempt."""
        return self.code in RETRYABLE_CODES

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "policy_name": self.policy_name,
        }


# ══════════════════════════════════════════════════════════════
# STANDARD REJECTION CODES
# ══════════════════════════════════════════════════════════════

class ReasonCode:
    """Rejection codes, grouped by the engine that emits them."""

    # ── Fulfillment ───────────────────────────────────────────
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_OWNER = "NOT_OWNER"
    ALREADY_CLAIMED = "ALREADY_CLAIMED"
    STALE_STATE = "STALE_STATE"

    # ── Redemption ────────────────────────────────────────────
    INVALID_CODE = "INVALID_CODE"
    NOT_CLAIMABLE = "NOT_CLAIMABLE"

    # ── Booking ───────────────────────────────────────────────
    NOT_FOUND = "NOT_FOUND"
    INVALID_SELECTION = "INVALID_SELECTION"
    INVALID_BOOKING_TRANSITION = "INVALID_BOOKING_TRANSITION"
    BOOKING_HAS_SERVED_INSTANCES = "BOOKING_HAS_SERVED_INSTANCES"
    BOOKING_CLOSED = "BOOKING_CLOSED"

    # ── Commission ────────────────────────────────────────────
    NOT_SETTLEABLE = "NOT_SETTLEABLE"

    # ── Infrastructure ────────────────────────────────────────
    TRANSIENT_IO = "TRANSIENT_IO"


RETRYABLE_CODES = frozenset({
    ReasonCode.ALREADY_CLAIMED,
    ReasonCode.STALE_STATE,
    ReasonCode.TRANSIENT_IO,
})
