"""
Salon Change Feed — Instance Snapshot Fan-out
==============================================
Pushes every committed ServiceInstance snapshot to the clients
watching that instance's booking.

Delivery is best-effort and at-least-once: a subscriber may see
the same snapshot twice, or an older snapshot after a newer one.
Receivers order snapshots by ServiceInstance.version.

Publish behavior:
1. Look up subscribers by booking_id
2. Execute callbacks sequentially
3. Catch callback exceptions per subscriber
4. Log failure
5. Continue to next subscriber

A failing subscriber must NOT break delivery to the others or
fail the write that produced the snapshot.

Rules:
- Multiple subscribers per booking allowed
- Duplicate callback for the same booking forbidden
- In-memory only, thread-safe
"""

import logging
from threading import Lock
from typing import Callable

from core.events.errors import ChangeFeedError, DuplicateSubscriberError
from core.primitives.booking import ServiceInstance

logger = logging.getLogger("salon.events")

SnapshotCallback = Callable[[ServiceInstance], None]


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__qualname__", str(callback))


class ChangeFeed:
    """
    In-process subscriber registry keyed by booking id.
    """

    def __init__(self):
        self._subscribers: dict[str, list[SnapshotCallback]] = {}
        self._lock = Lock()

    def subscribe(self, booking_id: str, callback: SnapshotCallback) -> None:
        if not booking_id or not isinstance(booking_id, str):
            raise ChangeFeedError("booking_id must be a non-empty string.")
        if not callable(callback):
            raise ChangeFeedError(
                f"Callback must be callable, got {type(callback)}."
            )

        with self._lock:
            callbacks = self._subscribers.setdefault(booking_id, [])
            # Bound methods compare equal but are not identical.
            if any(existing == callback for existing in callbacks):
                raise DuplicateSubscriberError(booking_id, _callback_name(callback))
            callbacks.append(callback)

        logger.info(f"Subscribed {_callback_name(callback)} → booking {booking_id}")

    def unsubscribe(self, booking_id: str, callback: SnapshotCallback) -> bool:
        with self._lock:
            callbacks = self._subscribers.get(booking_id, [])
            for index, existing in enumerate(callbacks):
                if existing == callback:
                    del callbacks[index]
                    if not callbacks:
                        del self._subscribers[booking_id]
                    return True
        return False

    def subscriber_count(self, booking_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(booking_id, []))

    def publish(self, snapshot: ServiceInstance) -> dict:
        """
        Deliver a snapshot to every subscriber of its booking.

        Returns:
            {
                'instance_id': str,
                'version': int,
                'subscribers_notified': int,
                'subscribers_failed': int,
                'failures': list[dict]
            }

        This method NEVER raises for subscriber failures.
        """
        with self._lock:
            callbacks = list(self._subscribers.get(snapshot.booking_id, []))

        result = {
            "instance_id": snapshot.instance_id,
            "version": snapshot.version,
            "subscribers_notified": 0,
            "subscribers_failed": 0,
            "failures": [],
        }

        if not callbacks:
            logger.debug(
                f"No subscribers for booking {snapshot.booking_id} "
                f"(instance {snapshot.instance_id} v{snapshot.version})"
            )
            return result

        for callback in callbacks:
            name = _callback_name(callback)
            try:
                callback(snapshot)
                result["subscribers_notified"] += 1
            except Exception as exc:
                result["subscribers_failed"] += 1
                result["failures"].append({
                    "callback": name,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                })
                logger.error(
                    f"Subscriber failed: {name} for instance "
                    f"{snapshot.instance_id} v{snapshot.version}: {exc}",
                    exc_info=True,
                )

        logger.debug(
            f"Published instance {snapshot.instance_id} v{snapshot.version}: "
            f"{result['subscribers_notified']} notified, "
            f"{result['subscribers_failed']} failed"
        )
        return result
