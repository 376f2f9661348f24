"""
Salon Core Config — Admin-Configurable Rules
=============================================
Doctrine: No hardcoded business rates in engine logic.
Commission rates, quantity caps, the settle window and the
transient-retry budget come from SalonRules, which an admin
(or Django settings) can override.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Tuple


# ══════════════════════════════════════════════════════════════
# COMMISSION RULE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CommissionRule:
    """
    Commission rate for one staff role.

    rate is a percentage: Decimal("10.00") means 10 %.
    """

    role: str
    rate: Decimal

    def __post_init__(self) -> None:
        if not self.role or not isinstance(self.role, str):
            raise ValueError("role must be a non-empty string.")
        if not isinstance(self.rate, Decimal):
            raise TypeError("rate must be Decimal.")
        if not Decimal("0") <= self.rate <= Decimal("100"):
            raise ValueError(f"Commission rate must be between 0 and 100, got {self.rate}.")


DEFAULT_COMMISSION_RULES: Tuple[CommissionRule, ...] = (
    CommissionRule(role="WORKER", rate=Decimal("10.00")),
    CommissionRule(role="MASSEUSE", rate=Decimal("50.00")),
)


# ══════════════════════════════════════════════════════════════
# SALON RULES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SalonRules:
    max_quantity: int = 10
    settle_window_seconds: int = 60
    transient_retries: int = 1
    code_generation_attempts: int = 10
    commission_rules: Tuple[CommissionRule, ...] = DEFAULT_COMMISSION_RULES

    def __post_init__(self) -> None:
        if self.max_quantity < 1:
            raise ValueError("max_quantity must be >= 1.")
        if self.settle_window_seconds < 0:
            raise ValueError("settle_window_seconds must be >= 0.")
        if self.transient_retries < 0:
            raise ValueError("transient_retries must be >= 0.")
        if self.code_generation_attempts < 1:
            raise ValueError("code_generation_attempts must be >= 1.")
        roles = [rule.role for rule in self.commission_rules]
        if len(roles) != len(set(roles)):
            raise ValueError("commission_rules must not repeat a role.")

    def rate_for(self, role: str) -> Decimal:
        """Rate for a single role; roles without a rule earn nothing."""
        for rule in self.commission_rules:
            if rule.role == role:
                return rule.rate
        return Decimal("0")

    def highest_rate(self, roles: Iterable[str]) -> Decimal:
        return max((self.rate_for(role) for role in roles), default=Decimal("0"))


def rules_from_mapping(overrides: Optional[Mapping[str, Any]]) -> SalonRules:
    """
    Build SalonRules from a plain mapping, e.g.::

        {"MAX_QUANTITY": 5, "COMMISSION_RATES": {"WORKER": "12.5"}}

    Unknown keys are rejected so typos do not pass silently.
    """
    if not overrides:
        return SalonRules()

    known = {
        "MAX_QUANTITY": "max_quantity",
        "SETTLE_WINDOW_SECONDS": "settle_window_seconds",
        "TRANSIENT_RETRIES": "transient_retries",
        "CODE_GENERATION_ATTEMPTS": "code_generation_attempts",
    }
    kwargs = {}
    for key, value in overrides.items():
        if key == "COMMISSION_RATES":
            kwargs["commission_rules"] = tuple(
                CommissionRule(role=role, rate=Decimal(str(rate)))
                for role, rate in value.items()
            )
        elif key in known:
            kwargs[known[key]] = int(value)
        else:
            raise ValueError(f"Unknown salon rule '{key}'.")
    return SalonRules(**kwargs)

