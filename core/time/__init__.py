"""
Salon Core Time — Public API
=============================
Doctrine: NO datetime.now() in engine logic.
"""

from core.time.clock import Clock, FixedClock, SystemClock, today

__all__ = [
    "Clock",
    "FixedClock",
    "SystemClock",
    "today",
]
