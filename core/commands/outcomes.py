"""
Salon Command Layer — Operation Result Contract
=================================================
Every caller-facing operation returns exactly one OperationResult.

    success=True  → data carries the payload (may be None)
    success=False → error carries a RejectionReason

Rules:
- Result is immutable (frozen dataclass)
- A failed result MUST carry a reason (no silent failures)
- A successful result MUST NOT carry a reason
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from core.commands.rejection import RejectionReason


@dataclass(frozen=True)
class OperationResult:
    """
    Discriminated result: {success: true, data} | {success: false, error}.
    """

    success: bool
    data: Any = None
    error: Optional[RejectionReason] = None

    def __post_init__(self):
        if not isinstance(self.success, bool):
            raise TypeError("success must be bool.")

        if self.success and self.error is not None:
            raise ValueError(
                "Successful result must NOT include a RejectionReason."
            )

        if not self.success:
            if not isinstance(self.error, RejectionReason):
                raise ValueError(
                    "Failed result must include a RejectionReason. "
                    "No silent failures allowed."
                )
            if self.data is not None:
                raise ValueError("Failed result must not carry data.")

    @classmethod
    def ok(cls, data: Any = None) -> OperationResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, reason: RejectionReason) -> OperationResult:
        return cls(success=False, error=reason)

    @classmethod
    def reject(cls, code: str, message: str, policy_name: str) -> OperationResult:
        return cls.fail(RejectionReason(
            code=code, message=message, policy_name=policy_name,
        ))

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error is not None else None

    def to_dict(self) -> dict:
        if self.success:
            data = self.data.to_dict() if hasattr(self.data, "to_dict") else self.data
            return {"success": True, "data": data}
        return {"success": False, "error": self.error.to_dict()}
