from engines.pricing.engine import (
    DEFAULT_MAX_QUANTITY,
    PricedLine,
    PricingBreakdown,
    apply_voucher,
    commission_basis,
    effective_discount,
    grand_total,
    line_total,
    price_selection,
    service_line,
    service_set_line,
    subtotal,
    total_duration,
)

__all__ = [
    "DEFAULT_MAX_QUANTITY",
    "PricedLine",
    "PricingBreakdown",
    "apply_voucher",
    "commission_basis",
    "effective_discount",
    "grand_total",
    "line_total",
    "price_selection",
    "service_line",
    "service_set_line",
    "subtotal",
    "total_duration",
]
