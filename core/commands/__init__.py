"""
Salon Command Layer — Results and Rejections
==============================================
Every caller-facing operation produces exactly one OperationResult.
Refusals are first-class values carrying a RejectionReason.
"""

from core.commands.outcomes import OperationResult
from core.commands.rejection import (
    RETRYABLE_CODES,
    ReasonCode,
    RejectionReason,
)

__all__ = [
    "OperationResult",
    "RejectionReason",
    "ReasonCode",
    "RETRYABLE_CODES",
]
