"""
Fulfillment workspace: the transient, editable copy of an accepted order.

A workspace lives only in memory for the operator who claimed the order.
Edits recompute pricing immediately and never touch storage; only
``FulfillmentService.complete`` serializes a workspace snapshot.
"""

import copy
import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Optional

from salesdesk.core.identity import REP_NAME_MAX_LENGTH, OperatorIdentity
from salesdesk.core.logging import get_logger
from salesdesk.services.fulfillment.enums import PaymentType
from salesdesk.services.fulfillment.errors import (
    FulfillmentValidationError,
    StockShortfall,
    WorkspaceNotFoundError,
)
from salesdesk.services.pricing.calculator import (
    MAX_INTEREST_PERCENT,
    PricingLine,
    PricingOptions,
    PricingSnapshot,
    clamp_discount,
    compute,
    suggested_interest_percent,
    to_decimal,
)

logger = get_logger(__name__)

PO_NUMBER_MAX_LENGTH = 6

_PO_NUMBER_PATTERN = re.compile(r"^[0-9]+$")
_REP_NAME_PATTERN = re.compile(r"^[A-Za-z ]+$")


@dataclass
class WorkspaceLine:
    """Editable state of one order line."""

    line_id: uuid.UUID
    line_no: int
    inventory_item_id: uuid.UUID
    product_name: str
    unit: str
    ordered_qty: int
    unit_price: Decimal
    available: int
    fulfilled_qty: int
    discount_percent: Decimal = Decimal("0")
    cost_price: Decimal = Decimal("0")
    remarks: str = ""

    @property
    def in_stock(self) -> bool:
        return self.available > 0

    @property
    def exceeds_stock(self) -> bool:
        return self.in_stock and self.fulfilled_qty > self.available

    def to_pricing_line(self) -> PricingLine:
        return PricingLine(
            ordered_qty=self.ordered_qty,
            fulfilled_qty=self.fulfilled_qty,
            unit_price=self.unit_price,
            discount_percent=self.discount_percent,
            in_stock=self.in_stock,
            available=self.available,
        )


@dataclass
class FulfillmentWorkspace:
    """
    Working copy of an accepted order's lines and pricing options.

    Attributes:
        order_id: Order being fulfilled
        order_version: Order version read when the workspace was opened
        operator_email: Operator holding the claim
        payment_type: Customer payment type
        lines: Editable lines in line order
        tax_enabled: Apply the fixed sales tax
        term_count: Installment month count (credit)
        interest_percent: Credit interest percent
        interest_overridden: Operator typed an explicit interest value
        po_number: Purchase order number (digits, up to 6)
        rep_name: Sales rep name (letters and spaces, up to 30)
        forwarder: Optional forwarder
    """

    order_id: uuid.UUID
    order_version: int
    operator_email: str
    payment_type: PaymentType
    lines: list[WorkspaceLine]
    max_terms: int = 60
    tax_enabled: bool = True
    term_count: int = 1
    interest_percent: Decimal = Decimal("0")
    interest_overridden: bool = False
    po_number: str = ""
    rep_name: str = ""
    forwarder: str = ""
    _line_index: dict[int, WorkspaceLine] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        self._line_index = {line.line_no: line for line in self.lines}

    @classmethod
    def from_order(
        cls,
        order: Any,
        availability: Mapping[uuid.UUID, int],
        actor: OperatorIdentity,
        default_terms: int = 1,
        max_terms: int = 60,
    ) -> "FulfillmentWorkspace":
        """
        Open a workspace seeded from an order.

        Fulfilled quantities start at the ordered quantities and discounts
        at zero. Credit orders without an interest percent get the
        suggested interest for their term count.

        Args:
            order: Order with customer and line items (and their inventory) loaded
            availability: Current available quantity per inventory item
            actor: Operator claiming the order
            default_terms: Term count when the order has none
            max_terms: Upper bound for term edits
        """
        payment_type = order.customer.payment_type
        terms = max(1, min(order.payment_terms or default_terms, max_terms))

        if payment_type.is_credit:
            interest = (
                to_decimal(order.interest_percent, "interest_percent")
                if order.interest_percent
                else suggested_interest_percent(terms)
            )
        else:
            interest = Decimal("0")

        lines = []
        for item in order.line_items:
            inventory = item.inventory_item
            lines.append(
                WorkspaceLine(
                    line_id=item.id,
                    line_no=item.line_no,
                    inventory_item_id=item.inventory_item_id,
                    product_name=inventory.product_name,
                    unit=inventory.unit,
                    ordered_qty=item.quantity,
                    unit_price=to_decimal(item.unit_price, "unit_price"),
                    available=availability.get(item.inventory_item_id, 0),
                    fulfilled_qty=item.quantity,
                    discount_percent=Decimal("0"),
                    cost_price=to_decimal(inventory.cost_price, "cost_price"),
                    remarks=item.remarks or "",
                )
            )

        return cls(
            order_id=order.id,
            order_version=order.version,
            operator_email=actor.email,
            payment_type=payment_type,
            lines=lines,
            max_terms=max_terms,
            tax_enabled=True,
            term_count=terms,
            interest_percent=interest,
            po_number="",
            rep_name=actor.rep_name,
            forwarder=order.forwarder or "",
        )

    def line(self, line_no: int) -> WorkspaceLine:
        try:
            return self._line_index[line_no]
        except KeyError:
            raise FulfillmentValidationError(
                {"lines": f"Unknown line {line_no}"},
                order_id=str(self.order_id),
            )

    def update(
        self,
        *,
        quantities: Optional[Mapping[int, int]] = None,
        discounts: Optional[Mapping[int, Any]] = None,
        remarks: Optional[Mapping[int, str]] = None,
        term_count: Optional[int] = None,
        interest_percent: Optional[Any] = None,
        tax_enabled: Optional[bool] = None,
        po_number: Optional[str] = None,
        rep_name: Optional[str] = None,
        forwarder: Optional[str] = None,
    ) -> PricingSnapshot:
        """
        Apply operator edits and return the recomputed pricing.

        Quantities are clamped to [0, ordered], discounts to [-100, 100],
        the term count to [1, max_terms] and interest to [0, 100]. Changing
        the term count re-seeds credit interest until the operator sets an
        explicit interest percent. Line keys are line numbers.
        """
        for line_no, qty in (quantities or {}).items():
            target = self.line(line_no)
            target.fulfilled_qty = max(0, min(int(qty), target.ordered_qty))

        for line_no, discount in (discounts or {}).items():
            self.line(line_no).discount_percent = clamp_discount(discount)

        for line_no, note in (remarks or {}).items():
            self.line(line_no).remarks = (note or "").strip()

        if interest_percent is not None:
            interest = to_decimal(interest_percent, "interest_percent")
            self.interest_percent = max(Decimal("0"), min(MAX_INTEREST_PERCENT, interest))
            self.interest_overridden = True

        if term_count is not None:
            self.term_count = max(1, min(int(term_count), self.max_terms))
            if self.payment_type.is_credit and not self.interest_overridden:
                self.interest_percent = suggested_interest_percent(self.term_count)

        if tax_enabled is not None:
            self.tax_enabled = bool(tax_enabled)
        if po_number is not None:
            self.po_number = po_number.strip()
        if rep_name is not None:
            self.rep_name = rep_name.strip()
        if forwarder is not None:
            self.forwarder = forwarder.strip()

        return self.pricing

    def refresh_availability(self, availability: Mapping[uuid.UUID, int]) -> None:
        """Replace the advisory availability figures with fresh reads."""
        for line in self.lines:
            line.available = availability.get(line.inventory_item_id, 0)

    def pricing_lines(self) -> list[PricingLine]:
        return [line.to_pricing_line() for line in self.lines]

    def pricing_options(self) -> PricingOptions:
        return PricingOptions(
            tax_enabled=self.tax_enabled,
            payment_type=self.payment_type,
            interest_percent=self.interest_percent,
            term_count=self.term_count,
        )

    @property
    def pricing(self) -> PricingSnapshot:
        return compute(self.pricing_lines(), self.pricing_options())

    def validate(self) -> dict[str, str]:
        """
        Check the fields required for confirmation.

        Returns:
            Field name to error message; empty when the workspace is valid
        """
        errors: dict[str, str] = {}

        if not self.po_number:
            errors["po_number"] = "PO number is required"
        elif not _PO_NUMBER_PATTERN.fullmatch(self.po_number):
            errors["po_number"] = "PO number must contain digits only"
        elif len(self.po_number) > PO_NUMBER_MAX_LENGTH:
            errors["po_number"] = (
                f"PO number must be at most {PO_NUMBER_MAX_LENGTH} digits"
            )

        if not self.rep_name:
            errors["rep_name"] = "Sales rep name is required"
        elif not _REP_NAME_PATTERN.fullmatch(self.rep_name):
            errors["rep_name"] = "Sales rep name may contain letters and spaces only"
        elif len(self.rep_name) > REP_NAME_MAX_LENGTH:
            errors["rep_name"] = (
                f"Sales rep name must be at most {REP_NAME_MAX_LENGTH} characters"
            )

        return errors

    def stock_warnings(self) -> list[StockShortfall]:
        """Advisory: lines that are out of stock or exceed the last availability read."""
        return [
            StockShortfall(
                inventory_item_id=line.inventory_item_id,
                product_name=line.product_name,
                requested=line.fulfilled_qty,
                available=line.available,
            )
            for line in self.lines
            if not line.in_stock or line.exceeds_stock
        ]

    def snapshot(self) -> "FulfillmentWorkspace":
        """Independent copy, so later edits cannot leak into a completion."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": str(self.order_id),
            "order_version": self.order_version,
            "operator_email": self.operator_email,
            "payment_type": self.payment_type.value,
            "tax_enabled": self.tax_enabled,
            "term_count": self.term_count,
            "interest_percent": float(self.interest_percent),
            "po_number": self.po_number,
            "rep_name": self.rep_name,
            "forwarder": self.forwarder,
            "lines": [
                {
                    "line_no": line.line_no,
                    "inventory_item_id": str(line.inventory_item_id),
                    "product_name": line.product_name,
                    "ordered_qty": line.ordered_qty,
                    "fulfilled_qty": line.fulfilled_qty,
                    "discount_percent": float(line.discount_percent),
                    "in_stock": line.in_stock,
                }
                for line in self.lines
            ],
        }


class WorkspaceRegistry:
    """
    Open workspaces keyed by order id, held in process memory.

    Nothing here is persisted; discarding a workspace drops its edits.
    """

    def __init__(self) -> None:
        self._workspaces: dict[uuid.UUID, FulfillmentWorkspace] = {}

    def open(self, workspace: FulfillmentWorkspace) -> FulfillmentWorkspace:
        self._workspaces[workspace.order_id] = workspace
        logger.debug("Workspace opened", order_id=str(workspace.order_id))
        return workspace

    def get(self, order_id: uuid.UUID) -> FulfillmentWorkspace:
        try:
            return self._workspaces[order_id]
        except KeyError:
            raise WorkspaceNotFoundError(
                "No open workspace for order", order_id=str(order_id)
            )

    def find(self, order_id: uuid.UUID) -> Optional[FulfillmentWorkspace]:
        return self._workspaces.get(order_id)

    def discard(self, order_id: uuid.UUID) -> bool:
        """Drop a workspace; returns whether one was open."""
        removed = self._workspaces.pop(order_id, None) is not None
        if removed:
            logger.debug("Workspace discarded", order_id=str(order_id))
        return removed

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._workspaces

    def __len__(self) -> int:
        return len(self._workspaces)
