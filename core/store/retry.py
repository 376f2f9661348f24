"""
Salon Store — Transient Retry
==============================
Repeat a store call after a TransientStoreError, a bounded
number of times. Conflicts and not-found are never retried.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from core.store.errors import TransientStoreError

logger = logging.getLogger("salon.store")

T = TypeVar("T")


def call_with_retry(
    operation: Callable[[], T],
    *,
    retries: int = 1,
    label: str = "store call",
    on_retry: Optional[Callable[[int], None]] = None,
) -> T:
    """
    Run operation(); on TransientStoreError run it again, up to
    `retries` more times. The last TransientStoreError propagates.
    """
    last_error: Optional[TransientStoreError] = None
    for attempt in range(retries + 1):
        if attempt and on_retry is not None:
            on_retry(attempt)
        try:
            return operation()
        except TransientStoreError as exc:
            last_error = exc
            logger.warning(
                f"Transient failure on {label} "
                f"(attempt {attempt + 1}/{retries + 1}): {exc}"
            )
    raise last_error
