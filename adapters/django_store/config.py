"""
Salon Store - Settings-backed Rules
===================================
SalonRules built from settings.SALON_RULES. Settings are read on
every call so override_settings applies in tests.
"""

from __future__ import annotations

from django.conf import settings

from core.config.rules import SalonRules, rules_from_mapping


def rules_from_settings() -> SalonRules:
    return rules_from_mapping(getattr(settings, "SALON_RULES", None))
