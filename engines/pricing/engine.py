"""
Salon Pricing Engine — Totals, Discounts, Commission Basis
===========================================================

RULES (NON-NEGOTIABLE):
- Deterministic: same input → same output always
- Integer minor units only (no floats anywhere)
- A service set is charged at its bundle price, never at the
  sum of its constituent service prices
- The grand discount is a flat amount, never a factor
- The payable total never goes below zero
- A voucher REPLACES any earlier grand discount; discounts do not stack
- Commission basis is independent of the bundle sale price and
  never feeds the payable total

Quantities are integers in 1..max_quantity. A quantity or price
outside its domain is a caller bug and raises ValueError/TypeError.

This module performs no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Mapping, Sequence

from core.primitives.catalog import Service, ServiceSet, ServiceSetItem

DEFAULT_MAX_QUANTITY = 10


# ══════════════════════════════════════════════════════════════
# VALIDATION
# ══════════════════════════════════════════════════════════════

def _check_amount(value, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int (minor units), got {type(value).__name__}.")
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}.")


def _check_quantity(quantity, max_quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise TypeError(f"quantity must be int, got {type(quantity).__name__}.")
    if not 1 <= quantity <= max_quantity:
        raise ValueError(f"quantity must be in 1..{max_quantity}, got {quantity}.")


# ══════════════════════════════════════════════════════════════
# PRICED LINE
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricedLine:
    """A resolved selection line: unit price, units, minutes per unit."""
    unit_price: int
    quantity: int
    duration_minutes: int = 0

    def __post_init__(self):
        _check_amount(self.unit_price, "unit_price")
        _check_amount(self.duration_minutes, "duration_minutes")


def service_line(service: Service, quantity: int) -> PricedLine:
    return PricedLine(
        unit_price=service.price,
        quantity=quantity,
        duration_minutes=service.duration_minutes,
    )


def service_set_line(
    service_set: ServiceSet,
    quantity: int,
    services: Mapping[str, Service],
) -> PricedLine:
    """
    A set is priced at its bundle price; its duration per unit is the
    sum of every constituent service's duration.
    """
    minutes = 0
    for item in service_set.items:
        service = services.get(item.service_id)
        if service is None:
            raise ValueError(
                f"Service '{item.service_id}' of set '{service_set.service_set_id}' "
                f"is not in the supplied catalog."
            )
        minutes += service.duration_minutes
    return PricedLine(
        unit_price=service_set.price,
        quantity=quantity,
        duration_minutes=minutes,
    )


# ══════════════════════════════════════════════════════════════
# CORE FORMULAS
# ══════════════════════════════════════════════════════════════

def line_total(
    unit_price: int,
    quantity: int,
    max_quantity: int = DEFAULT_MAX_QUANTITY,
) -> int:
    _check_amount(unit_price, "unit_price")
    _check_quantity(quantity, max_quantity)
    return unit_price * quantity


def subtotal(
    services: Sequence[PricedLine],
    service_sets: Sequence[PricedLine],
    max_quantity: int = DEFAULT_MAX_QUANTITY,
) -> int:
    return (
        sum(line_total(line.unit_price, line.quantity, max_quantity) for line in services)
        + sum(line_total(line.unit_price, line.quantity, max_quantity) for line in service_sets)
    )


def grand_total(subtotal_amount: int, grand_discount: int) -> int:
    _check_amount(subtotal_amount, "subtotal")
    _check_amount(grand_discount, "grand_discount")
    return max(0, subtotal_amount - grand_discount)


def effective_discount(subtotal_amount: int, grand_discount: int) -> int:
    """Portion of the discount actually absorbed by the subtotal."""
    _check_amount(subtotal_amount, "subtotal")
    _check_amount(grand_discount, "grand_discount")
    return min(grand_discount, subtotal_amount)


def total_duration(
    services: Sequence[PricedLine],
    service_sets: Sequence[PricedLine],
) -> int:
    return sum(
        line.duration_minutes * line.quantity
        for line in list(services) + list(service_sets)
    )


def commission_basis(item: ServiceSetItem, service: Service) -> int:
    """Adjusted price of a bundle item, else the service's list price."""
    if item.service_id != service.service_id:
        raise ValueError(
            f"Item refers to service '{item.service_id}', "
            f"got '{service.service_id}'."
        )
    if item.adjusted_price is not None:
        return item.adjusted_price
    return service.price


# ══════════════════════════════════════════════════════════════
# BREAKDOWN
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: int
    grand_discount: int
    grand_total: int
    duration_minutes: int = 0

    def __post_init__(self):
        _check_amount(self.subtotal, "subtotal")
        _check_amount(self.grand_discount, "grand_discount")
        if self.grand_total != grand_total(self.subtotal, self.grand_discount):
            raise ValueError("grand_total must equal max(0, subtotal - grand_discount).")

    @property
    def effective_discount(self) -> int:
        return effective_discount(self.subtotal, self.grand_discount)

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "grand_discount": self.grand_discount,
            "grand_total": self.grand_total,
            "duration_minutes": self.duration_minutes,
        }


def price_selection(
    services: Sequence[PricedLine],
    service_sets: Sequence[PricedLine],
    grand_discount: int = 0,
    max_quantity: int = DEFAULT_MAX_QUANTITY,
) -> PricingBreakdown:
    amount = subtotal(services, service_sets, max_quantity)
    return PricingBreakdown(
        subtotal=amount,
        grand_discount=grand_discount,
        grand_total=grand_total(amount, grand_discount),
        duration_minutes=total_duration(services, service_sets),
    )


def apply_voucher(pricing: PricingBreakdown, voucher_value: int) -> PricingBreakdown:
    """Replace the grand discount with the voucher's flat value."""
    _check_amount(voucher_value, "voucher_value")
    return replace(
        pricing,
        grand_discount=voucher_value,
        grand_total=grand_total(pricing.subtotal, voucher_value),
    )
