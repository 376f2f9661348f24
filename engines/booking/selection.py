"""
Salon Booking Engine — Selection Resolution and Drafting
=========================================================
Turns requested selection lines into catalog snapshots, a
pricing breakdown and the instance drafts a store will create.

One unit of a service becomes one instance. One unit of a set
becomes one instance per constituent service, each carrying its
commission basis as price_at_booking.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Dict, List, Optional, Sequence, Tuple

from core.commands.outcomes import OperationResult
from core.commands.rejection import ReasonCode
from core.primitives.booking import BookingDraft, InstanceDraft
from core.primitives.catalog import (
    Branch,
    SelectionKind,
    SelectionLine,
    Service,
    ServiceSet,
)
from core.store.contracts import SalonStore
from engines.pricing.engine import (
    PricedLine,
    PricingBreakdown,
    commission_basis,
    price_selection,
    service_line,
    service_set_line,
)


@dataclass(frozen=True)
class ResolvedLine:
    line: SelectionLine
    service: Optional[Service] = None
    service_set: Optional[ServiceSet] = None


@dataclass(frozen=True)
class ResolvedSelection:
    lines: Tuple[ResolvedLine, ...]
    services: Dict[str, Service]

    def priced_lines(self) -> Tuple[List[PricedLine], List[PricedLine]]:
        service_lines, set_lines = [], []
        for resolved in self.lines:
            if resolved.service is not None:
                service_lines.append(service_line(resolved.service, resolved.line.quantity))
            else:
                set_lines.append(service_set_line(
                    resolved.service_set, resolved.line.quantity, self.services,
                ))
        return service_lines, set_lines

    def breakdown(self, grand_discount: int, max_quantity: int) -> PricingBreakdown:
        service_lines, set_lines = self.priced_lines()
        return price_selection(service_lines, set_lines, grand_discount, max_quantity)

    def instance_drafts(self) -> Tuple[InstanceDraft, ...]:
        drafts: List[InstanceDraft] = []

        def add(service_id: str, price: int, service_set_id: Optional[str] = None):
            drafts.append(InstanceDraft(
                service_id=service_id,
                price_at_booking=price,
                sequence_order=len(drafts) + 1,
                service_set_id=service_set_id,
            ))

        for resolved in self.lines:
            for _ in range(resolved.line.quantity):
                if resolved.service is not None:
                    add(resolved.service.service_id, resolved.service.price)
                    continue
                for item in resolved.service_set.items:
                    service = self.services[item.service_id]
                    add(
                        service.service_id,
                        commission_basis(item, service),
                        resolved.service_set.service_set_id,
                    )
        return tuple(drafts)


def _invalid(message: str) -> OperationResult:
    return OperationResult.reject(
        ReasonCode.INVALID_SELECTION, message, "selection_must_be_bookable_policy",
    )


def resolve_selection(
    lines: Sequence[SelectionLine],
    store: SalonStore,
    max_quantity: int,
) -> OperationResult:
    """
    Look every line up in the catalog. Unknown or inactive entries
    and quantities above the cap are rejected as INVALID_SELECTION.
    """
    if not lines:
        return _invalid("Select at least one service or service set.")

    resolved: List[ResolvedLine] = []
    services: Dict[str, Service] = {}

    for line in lines:
        if line.quantity > max_quantity:
            return _invalid(
                f"Quantity {line.quantity} for '{line.item_id}' exceeds the maximum of {max_quantity}."
            )

        if line.kind == SelectionKind.SERVICE:
            service = store.get_service(line.item_id)
            if service is None or not service.is_active:
                return _invalid(f"Service '{line.item_id}' is not available.")
            services[service.service_id] = service
            resolved.append(ResolvedLine(line=line, service=service))
            continue

        service_set = store.get_service_set(line.item_id)
        if service_set is None or not service_set.is_active:
            return _invalid(f"Service set '{line.item_id}' is not available.")
        for item in service_set.items:
            service = services.get(item.service_id) or store.get_service(item.service_id)
            if service is None:
                return _invalid(
                    f"Service '{item.service_id}' of set '{line.item_id}' does not exist."
                )
            services[service.service_id] = service
        resolved.append(ResolvedLine(line=line, service_set=service_set))

    return OperationResult.ok(ResolvedSelection(lines=tuple(resolved), services=services))


def build_booking_draft(
    *,
    branch: Branch,
    appointment_date: date,
    appointment_time: time,
    selection: ResolvedSelection,
    pricing: PricingBreakdown,
    created_at: datetime,
    customer_id: Optional[str] = None,
    customer_name: str = "",
    notes: str = "",
) -> BookingDraft:
    return BookingDraft(
        branch=branch,
        appointment_date=appointment_date,
        appointment_time=appointment_time,
        grand_total=pricing.subtotal,
        grand_discount=pricing.effective_discount,
        final_total=pricing.grand_total,
        duration_minutes=pricing.duration_minutes,
        instances=selection.instance_drafts(),
        created_at=created_at,
        customer_id=customer_id,
        customer_name=customer_name,
        notes=notes,
    )
