"""
Pricing calculation for sales order lines.

This module implements the pure pricing function used by the fulfillment
workspace on every edit and, authoritatively, at completion. It turns line
items and adjustment options into a PricingSnapshot: subtotal, per-line
discount (negative discount is a markup), fixed-rate sales tax, credit
interest and per-term installment amount.

All arithmetic is done in Decimal. The snapshot keeps full precision;
``PricingSnapshot.rounded()`` gives the 2-decimal values that get persisted.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from salesdesk.services.fulfillment.enums import PaymentType

Number = Union[Decimal, int, float, str]

SALES_TAX_RATE = Decimal("0.12")

MIN_DISCOUNT_PERCENT = Decimal("-100")
MAX_DISCOUNT_PERCENT = Decimal("100")
MAX_INTEREST_PERCENT = Decimal("100")

_HUNDRED = Decimal("100")
_ZERO = Decimal("0")
_CENT = Decimal("0.01")


class PricingError(Exception):
    """Base exception for pricing calculation errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class PricingValidationError(PricingError):
    """Raised when pricing inputs are malformed."""

    pass


def to_decimal(value: Optional[Number], field_name: str = "value") -> Decimal:
    """
    Convert a numeric input to Decimal.

    Floats go through ``str`` so 0.1 stays 0.1 rather than its binary
    expansion. ``None`` becomes zero.

    Raises:
        PricingValidationError: If the value is not numeric
    """
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise PricingValidationError(
            f"{field_name} must be numeric", field=field_name, value=value
        )
    elif isinstance(value, int):
        result = Decimal(value)
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise PricingValidationError(
                f"{field_name} must be numeric", field=field_name, value=str(value)
            ) from e

    if not result.is_finite():
        raise PricingValidationError(
            f"{field_name} must be finite", field=field_name, value=str(value)
        )
    return result


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def clamp_discount(value: Optional[Number]) -> Decimal:
    """Clamp a discount percent to [-100, 100]; negative values are markups."""
    discount = to_decimal(value, "discount_percent")
    return max(MIN_DISCOUNT_PERCENT, min(MAX_DISCOUNT_PERCENT, discount))


def suggested_interest_percent(terms: int) -> Decimal:
    """
    Default credit interest for a term count.

    0 for no terms, 2% for one month, 6% up to three, 12% up to six,
    24% up to twelve, then 24% per year capped at 30%.
    """
    if not terms or terms <= 0:
        return Decimal("0")
    if terms <= 1:
        return Decimal("2")
    if terms <= 3:
        return Decimal("6")
    if terms <= 6:
        return Decimal("12")
    if terms <= 12:
        return Decimal("24")
    yearly = (Decimal(terms) / Decimal(12) * Decimal(24)).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return min(Decimal("30"), yearly)


@dataclass(frozen=True)
class PricingLine:
    """
    Pricing input for one order line.

    ``in_stock`` false, or a known ``available`` of zero, excludes the line
    from every sum while it stays visible for display.
    """

    ordered_qty: int
    fulfilled_qty: int
    unit_price: Decimal
    discount_percent: Decimal = _ZERO
    in_stock: bool = True
    available: Optional[int] = None

    @property
    def contributes(self) -> bool:
        return self.in_stock and self.available != 0


@dataclass(frozen=True)
class PricingOptions:
    """Order-level adjustment inputs."""

    tax_enabled: bool = True
    payment_type: PaymentType = PaymentType.CASH
    interest_percent: Decimal = _ZERO
    term_count: int = 1


@dataclass(frozen=True)
class LinePricing:
    """Computed amounts for one line."""

    gross: Decimal
    discount: Decimal
    net: Decimal
    discount_percent: Decimal
    included: bool


@dataclass(frozen=True)
class PricingSnapshot:
    """Derived order totals; never persisted on its own."""

    subtotal: Decimal
    total_discount: Decimal
    net_before_tax: Decimal
    sales_tax: Decimal
    base_total: Decimal
    interest_percent: Decimal
    interest_amount: Decimal
    grand_total: Decimal
    per_term_amount: Decimal
    term_count: int
    lines: tuple[LinePricing, ...] = field(default_factory=tuple)

    def rounded(self) -> dict[str, Decimal]:
        """Totals rounded to cents for persistence and display."""
        return {
            "subtotal": round_money(self.subtotal),
            "total_discount": round_money(self.total_discount),
            "net_before_tax": round_money(self.net_before_tax),
            "sales_tax": round_money(self.sales_tax),
            "base_total": round_money(self.base_total),
            "interest_percent": round_money(self.interest_percent),
            "interest_amount": round_money(self.interest_amount),
            "grand_total": round_money(self.grand_total),
            "per_term_amount": round_money(self.per_term_amount),
        }

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly rounded totals, used for audit payloads."""
        data: dict[str, Any] = {
            key: float(value) for key, value in self.rounded().items()
        }
        data["term_count"] = self.term_count
        return data


def _price_line(line: PricingLine) -> LinePricing:
    if line.fulfilled_qty < 0:
        raise PricingValidationError(
            "Fulfilled quantity cannot be negative", fulfilled_qty=line.fulfilled_qty
        )
    unit_price = to_decimal(line.unit_price, "unit_price")
    if unit_price < _ZERO:
        raise PricingValidationError(
            "Unit price cannot be negative", unit_price=str(unit_price)
        )

    discount_percent = clamp_discount(line.discount_percent)
    if not line.contributes:
        return LinePricing(
            gross=_ZERO,
            discount=_ZERO,
            net=_ZERO,
            discount_percent=discount_percent,
            included=False,
        )

    gross = Decimal(line.fulfilled_qty) * unit_price
    discount = gross * discount_percent / _HUNDRED
    return LinePricing(
        gross=gross,
        discount=discount,
        net=gross - discount,
        discount_percent=discount_percent,
        included=True,
    )


def compute(
    lines: Iterable[PricingLine],
    options: Optional[PricingOptions] = None,
) -> PricingSnapshot:
    """
    Compute order totals from line items and adjustment options.

    Pure and deterministic: no I/O and no state, so it is safe to call on
    every workspace edit.

    Args:
        lines: Pricing inputs per order line
        options: Tax toggle, payment type, interest percent and term count

    Returns:
        PricingSnapshot with full-precision totals

    Raises:
        PricingValidationError: If quantities, prices, interest or terms are invalid
    """
    options = options or PricingOptions()

    if options.term_count < 0:
        raise PricingValidationError(
            "Term count cannot be negative", term_count=options.term_count
        )
    interest_input = to_decimal(options.interest_percent, "interest_percent")
    if interest_input < _ZERO or interest_input > MAX_INTEREST_PERCENT:
        raise PricingValidationError(
            "Interest percent must be between 0 and 100",
            interest_percent=str(interest_input),
        )

    priced = tuple(_price_line(line) for line in lines)

    subtotal = sum((p.gross for p in priced), _ZERO)
    total_discount = sum((p.discount for p in priced), _ZERO)
    net_before_tax = max(_ZERO, subtotal - total_discount)

    sales_tax = net_before_tax * SALES_TAX_RATE if options.tax_enabled else _ZERO
    base_total = net_before_tax + sales_tax

    is_credit = PaymentType(options.payment_type).is_credit
    interest_percent = interest_input if is_credit else _ZERO
    interest_amount = base_total * interest_percent / _HUNDRED
    grand_total = base_total + interest_amount

    if is_credit and options.term_count > 0:
        per_term_amount = grand_total / Decimal(options.term_count)
    else:
        per_term_amount = grand_total

    return PricingSnapshot(
        subtotal=subtotal,
        total_discount=total_discount,
        net_before_tax=net_before_tax,
        sales_tax=sales_tax,
        base_total=base_total,
        interest_percent=interest_percent,
        interest_amount=interest_amount,
        grand_total=grand_total,
        per_term_amount=per_term_amount,
        term_count=options.term_count if is_credit else 1,
        lines=priced,
    )


def compute_earnings(
    unit_price: Number,
    cost_price: Number,
    quantity: int,
    discount_percent: Number = _ZERO,
) -> Decimal:
    """Margin over cost for a sold line, scaled by the line discount."""
    margin = to_decimal(unit_price, "unit_price") - to_decimal(cost_price, "cost_price")
    factor = _HUNDRED - clamp_discount(discount_percent)
    return margin * Decimal(quantity) * factor / _HUNDRED
