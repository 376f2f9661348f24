"""
Salon Store — Errors
=====================
Every store backend raises these and nothing else.
Backend shapes (ORM exceptions, driver errors) are
translated inside the adapter.
"""


class StoreError(Exception):
    """Base error for store operations."""
    pass


class StoreConflict(StoreError):
    """A conditional write found the record in a different state."""

    def __init__(self, record_type: str, record_id: str, detail: str = ""):
        self.record_type = record_type
        self.record_id = record_id
        self.detail = detail
        message = f"Conditional write on {record_type} '{record_id}' rejected."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class AlreadyUsed(StoreConflict):
    """A single-use record (voucher, gift certificate, settlement) was already consumed."""
    pass


class RecordNotFound(StoreError):
    def __init__(self, record_type: str, record_id: str):
        self.record_type = record_type
        self.record_id = record_id
        super().__init__(f"{record_type} '{record_id}' not found.")


class TransientStoreError(StoreError):
    """Backend or network failure; the same call may succeed if repeated."""
    pass
