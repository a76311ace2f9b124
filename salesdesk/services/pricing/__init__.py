"""Order pricing: subtotal, discount/markup, tax, credit interest and terms."""

from salesdesk.services.pricing.calculator import (
    SALES_TAX_RATE,
    LinePricing,
    PricingError,
    PricingLine,
    PricingOptions,
    PricingSnapshot,
    PricingValidationError,
    clamp_discount,
    compute,
    compute_earnings,
    round_money,
    suggested_interest_percent,
    to_decimal,
)

__all__ = [
    "SALES_TAX_RATE",
    "LinePricing",
    "PricingError",
    "PricingLine",
    "PricingOptions",
    "PricingSnapshot",
    "PricingValidationError",
    "clamp_discount",
    "compute",
    "compute_earnings",
    "round_money",
    "suggested_interest_percent",
    "to_decimal",
]
