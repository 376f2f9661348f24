"""
Salon Change Feed — Errors
===========================
Error types for the change-feed subscription layer.
"""


class ChangeFeedError(Exception):
    """Base error for change-feed operations."""
    pass


class DuplicateSubscriberError(ChangeFeedError):
    """Same callback already subscribed to this booking."""

    def __init__(self, booking_id: str, callback_name: str):
        self.booking_id = booking_id
        self.callback_name = callback_name
        super().__init__(
            f"Callback '{callback_name}' already subscribed "
            f"to booking '{booking_id}'."
        )
