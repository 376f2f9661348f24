"""
Salon Store — Public API
=========================
"""

from core.store.contracts import SalonStore
from core.store.errors import (
    AlreadyUsed,
    RecordNotFound,
    StoreConflict,
    StoreError,
    TransientStoreError,
)
from core.store.memory import InMemorySalonStore
from core.store.retry import call_with_retry

__all__ = [
    "SalonStore",
    "InMemorySalonStore",
    "StoreError",
    "StoreConflict",
    "AlreadyUsed",
    "RecordNotFound",
    "TransientStoreError",
    "call_with_retry",
]
