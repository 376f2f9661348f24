"""
Salon Core Time — Explicit Clock Protocol
==========================================
Engine code never calls datetime.now() itself.

Claim and serve stamps, voucher expiry and the commission settle
window all read time from an injected Clock. Tests pin it with
FixedClock and walk it forward with advance().
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


# ══════════════════════════════════════════════════════════════
# CLOCK PROTOCOL
# ══════════════════════════════════════════════════════════════

class Clock(Protocol):
    def now_utc(self) -> datetime:
        ...  # pragma: no cover


def today(clock: Clock) -> date:
    """Calendar date used for voucher and gift-certificate expiry."""
    return clock.now_utc().date()


def _require_aware(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        raise ValueError("FixedClock requires timezone-aware datetime.")
    return moment


# ══════════════════════════════════════════════════════════════
# IMPLEMENTATIONS
# ══════════════════════════════════════════════════════════════

class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Clock frozen at a given instant until the test moves it.

        clock = FixedClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
        clock.advance(60)   # settle window has now elapsed
    """

    def __init__(self, moment: datetime) -> None:
        self._moment = _require_aware(moment)

    def now_utc(self) -> datetime:
        return self._moment

    def advance(self, seconds: float) -> None:
        self._moment += timedelta(seconds=seconds)

    def set(self, moment: datetime) -> None:
        self._moment = _require_aware(moment)
