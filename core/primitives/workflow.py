"""
Salon Workflow Primitive — Booking Lifecycle
=============================================
Which booking status may follow which.

Service instances have their own state machine
(engines/fulfillment/state_machine.py) because their moves carry
actor guards. A booking status change only asks whether the move
is allowed at all, and that is answered here.

RULES (NON-NEGOTIABLE):
- Every status appears in the table, terminal ones with no exits
- A move not listed is refused
- The table is frozen at import time

No persistence logic here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Mapping

from core.primitives.booking import BookingStatus


# ══════════════════════════════════════════════════════════════
# LIFECYCLE SCHEMA
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowDefinition:
    """
    name:    label used in error messages
    initial: status every new booking starts in
    moves:   {status → statuses it may move to}; terminal
             statuses map to an empty set
    """
    name: str
    initial: BookingStatus
    moves: Mapping[BookingStatus, FrozenSet[BookingStatus]]

    def __post_init__(self):
        if not self.name:
            raise ValueError("name must be non-empty.")
        missing = set(BookingStatus) - set(self.moves)
        if missing:
            names = ", ".join(sorted(status.value for status in missing))
            raise ValueError(f"{self.name} workflow has no entry for: {names}.")
        if not self.moves[self.initial]:
            raise ValueError(f"{self.name} workflow cannot start in a terminal status.")

    @property
    def terminal_states(self) -> FrozenSet[BookingStatus]:
        return frozenset(status for status, exits in self.moves.items() if not exits)

    def is_valid_transition(self, current: BookingStatus, target: BookingStatus) -> bool:
        return target in self.moves[current]

    def is_terminal(self, status: BookingStatus) -> bool:
        return not self.moves[status]

    def allowed_next_states(self, current: BookingStatus) -> FrozenSet[BookingStatus]:
        return self.moves[current]


# ══════════════════════════════════════════════════════════════
# BOOKING STATUS LIFECYCLE
# ══════════════════════════════════════════════════════════════

_S = BookingStatus

BOOKING_STATUS_WORKFLOW = WorkflowDefinition(
    name="Booking",
    initial=_S.PENDING,
    moves={
        _S.PENDING: frozenset({_S.CONFIRMED, _S.IN_PROGRESS, _S.CANCELLED, _S.NO_SHOW}),
        _S.CONFIRMED: frozenset({_S.IN_PROGRESS, _S.CANCELLED, _S.NO_SHOW}),
        _S.IN_PROGRESS: frozenset({_S.COMPLETED, _S.CANCELLED}),
        # an unserve re-opens a completed booking
        _S.COMPLETED: frozenset({_S.IN_PROGRESS}),
        _S.CANCELLED: frozenset(),
        _S.NO_SHOW: frozenset(),
    },
)
