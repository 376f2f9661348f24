"""
Salon Catalog Primitive — Services, Sets, Vouchers, Gift Certificates
======================================================================
Immutable snapshots of everything a booking can be priced from.

RULES (NON-NEGOTIABLE):
- Prices in integer minor units (no floats)
- Codes are stored uppercase
- A ServiceSet is sold at its own bundle price; per-item
  adjusted prices exist only for commission accounting

This file contains NO persistence logic.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Tuple


# ══════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════

class Branch(Enum):
    """Salon branch a service or booking belongs to."""
    NAILS = "NAILS"
    SKIN = "SKIN"
    LASHES = "LASHES"
    MASSAGE = "MASSAGE"


class RedemptionStatus(Enum):
    """Lifecycle of a voucher or gift certificate."""
    ACTIVE = "ACTIVE"
    USED = "USED"
    EXPIRED = "EXPIRED"


class SelectionKind(Enum):
    SERVICE = "SERVICE"
    SERVICE_SET = "SERVICE_SET"


def _require_amount(value, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int (minor units).")
    if value < 0:
        raise ValueError(f"{name} must be >= 0.")


def _require_id(value, name: str) -> None:
    if not value or not isinstance(value, str):
        raise ValueError(f"{name} must be a non-empty string.")


def _expired(expires_on: Optional[date], today: date) -> bool:
    return expires_on is not None and today > expires_on


# ══════════════════════════════════════════════════════════════
# SERVICE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Service:
    service_id: str
    title: str
    price: int
    duration_minutes: int
    branch: Branch
    is_active: bool = True

    def __post_init__(self):
        _require_id(self.service_id, "service_id")
        _require_amount(self.price, "price")
        if not isinstance(self.branch, Branch):
            raise TypeError("branch must be Branch.")
        if not isinstance(self.duration_minutes, int) or self.duration_minutes < 0:
            raise ValueError("duration_minutes must be a non-negative int.")


# ══════════════════════════════════════════════════════════════
# SERVICE SET (bundle)
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ServiceSetItem:
    """
    One constituent service of a bundle.

    adjusted_price is the commission basis for this item when set;
    otherwise the service's standard price applies.
    """
    service_id: str
    adjusted_price: Optional[int] = None

    def __post_init__(self):
        _require_id(self.service_id, "service_id")
        if self.adjusted_price is not None:
            _require_amount(self.adjusted_price, "adjusted_price")


@dataclass(frozen=True)
class ServiceSet:
    service_set_id: str
    title: str
    price: int
    items: Tuple[ServiceSetItem, ...]
    is_active: bool = True

    def __post_init__(self):
        _require_id(self.service_set_id, "service_set_id")
        _require_amount(self.price, "price")
        if not isinstance(self.items, tuple):
            raise TypeError("items must be a tuple.")
        if not self.items:
            raise ValueError("ServiceSet must contain at least one item.")

    def service_ids(self) -> Tuple[str, ...]:
        return tuple(item.service_id for item in self.items)


# ══════════════════════════════════════════════════════════════
# SELECTION LINES
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SelectionLine:
    """A requested catalog entry and how many units of it."""
    kind: SelectionKind
    item_id: str
    quantity: int = 1

    def __post_init__(self):
        if not isinstance(self.kind, SelectionKind):
            raise TypeError("kind must be SelectionKind.")
        _require_id(self.item_id, "item_id")
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise TypeError("quantity must be int.")
        if self.quantity < 1:
            raise ValueError("quantity must be >= 1.")

    @classmethod
    def service(cls, service_id: str, quantity: int = 1) -> SelectionLine:
        return cls(kind=SelectionKind.SERVICE, item_id=service_id, quantity=quantity)

    @classmethod
    def service_set(cls, service_set_id: str, quantity: int = 1) -> SelectionLine:
        return cls(
            kind=SelectionKind.SERVICE_SET, item_id=service_set_id, quantity=quantity,
        )


# ══════════════════════════════════════════════════════════════
# VOUCHER
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Voucher:
    """Single-use flat discount, code format BF + 4 alphanumerics."""
    voucher_id: str
    code: str
    value: int
    status: RedemptionStatus = RedemptionStatus.ACTIVE
    expires_on: Optional[date] = None
    customer_id: Optional[str] = None

    def __post_init__(self):
        _require_id(self.voucher_id, "voucher_id")
        _require_id(self.code, "code")
        if self.code != self.code.upper():
            raise ValueError("code must be uppercase.")
        _require_amount(self.value, "value")
        if not isinstance(self.status, RedemptionStatus):
            raise TypeError("status must be RedemptionStatus.")

    def is_expired(self, today: date) -> bool:
        return _expired(self.expires_on, today)


# ══════════════════════════════════════════════════════════════
# GIFT CERTIFICATE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class GiftCertificate:
    """
    Pre-paid bundle of services and sets, code format GC + 4
    alphanumerics. Redeemed into a booking in one atomic claim.
    """
    certificate_id: str
    code: str
    lines: Tuple[SelectionLine, ...]
    status: RedemptionStatus = RedemptionStatus.ACTIVE
    expires_on: Optional[date] = None
    customer_id: Optional[str] = None
    customer_name: str = ""

    def __post_init__(self):
        _require_id(self.certificate_id, "certificate_id")
        _require_id(self.code, "code")
        if self.code != self.code.upper():
            raise ValueError("code must be uppercase.")
        if not isinstance(self.lines, tuple):
            raise TypeError("lines must be a tuple.")
        if not isinstance(self.status, RedemptionStatus):
            raise TypeError("status must be RedemptionStatus.")

    def is_expired(self, today: date) -> bool:
        return _expired(self.expires_on, today)
