"""
Salon Core Config — Public API
===============================
Admin-configurable rules (commission rates, caps, windows).
"""

from core.config.rules import (
    DEFAULT_COMMISSION_RULES,
    CommissionRule,
    SalonRules,
    rules_from_mapping,
)

__all__ = [
    "CommissionRule",
    "DEFAULT_COMMISSION_RULES",
    "SalonRules",
    "rules_from_mapping",
]
