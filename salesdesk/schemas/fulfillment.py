"""
Fulfillment Pydantic schemas for API request/response validation.

This module defines the request bodies for workspace edits and pricing
quotes, and the response shapes for orders, workspaces, pricing snapshots
and completion results.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from salesdesk.database.models.order import Order
from salesdesk.services.fulfillment.enums import (
    InstallmentStatus,
    OrderStatus,
    PaymentType,
    get_allowed_order_transitions,
)
from salesdesk.services.fulfillment.workspace import FulfillmentWorkspace
from salesdesk.services.pricing.calculator import (
    PricingLine,
    PricingOptions,
    PricingSnapshot,
    round_money,
)


class LineEditRequest(BaseModel):
    """Edits to one workspace line, addressed by line number."""

    model_config = ConfigDict(validate_assignment=True)

    line_no: int = Field(..., ge=1, description="Line number within the order")
    fulfilled_qty: Optional[int] = Field(
        None, description="Quantity to fulfill, clamped to [0, ordered]"
    )
    discount_percent: Optional[Decimal] = Field(
        None, description="Discount percent, negative for markup, clamped to [-100, 100]"
    )
    remarks: Optional[str] = Field(None, max_length=500, description="Receipt note")


class WorkspaceUpdateRequest(BaseModel):
    """Partial workspace update; omitted fields are left unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    lines: list[LineEditRequest] = Field(default_factory=list)
    term_count: Optional[int] = Field(None, description="Installment months (credit)")
    interest_percent: Optional[Decimal] = Field(
        None, description="Credit interest percent, clamped to [0, 100]"
    )
    tax_enabled: Optional[bool] = None
    po_number: Optional[str] = Field(None, max_length=50)
    rep_name: Optional[str] = Field(None, max_length=100)
    forwarder: Optional[str] = Field(None, max_length=255)

    @field_validator("lines")
    @classmethod
    def validate_unique_lines(cls, v: list[LineEditRequest]) -> list[LineEditRequest]:
        line_numbers = [line.line_no for line in v]
        if len(line_numbers) != len(set(line_numbers)):
            raise ValueError("Each line may appear only once")
        return v

    def to_update_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``FulfillmentWorkspace.update``."""
        kwargs: dict[str, Any] = {
            "quantities": {
                line.line_no: line.fulfilled_qty
                for line in self.lines
                if line.fulfilled_qty is not None
            },
            "discounts": {
                line.line_no: line.discount_percent
                for line in self.lines
                if line.discount_percent is not None
            },
            "remarks": {
                line.line_no: line.remarks
                for line in self.lines
                if line.remarks is not None
            },
        }
        for name in (
            "term_count",
            "interest_percent",
            "tax_enabled",
            "po_number",
            "rep_name",
            "forwarder",
        ):
            value = getattr(self, name)
            if value is not None:
                kwargs[name] = value
        return kwargs


class PricingLineRequest(BaseModel):
    """One line of a pricing quote."""

    ordered_qty: int = Field(..., ge=0)
    fulfilled_qty: int = Field(..., ge=0)
    unit_price: Decimal = Field(..., ge=0)
    discount_percent: Decimal = Field(default=Decimal("0"))
    in_stock: bool = True
    available: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def validate_fulfilled_within_ordered(self) -> "PricingLineRequest":
        if self.fulfilled_qty > self.ordered_qty:
            raise ValueError("fulfilled_qty cannot exceed ordered_qty")
        return self


class PricingQuoteRequest(BaseModel):
    """Stateless pricing computation request."""

    lines: list[PricingLineRequest] = Field(..., min_length=1)
    tax_enabled: bool = True
    payment_type: PaymentType = PaymentType.CASH
    interest_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    term_count: int = Field(default=1, ge=0)

    def to_pricing_inputs(self) -> tuple[list[PricingLine], PricingOptions]:
        lines = [
            PricingLine(
                ordered_qty=line.ordered_qty,
                fulfilled_qty=line.fulfilled_qty,
                unit_price=line.unit_price,
                discount_percent=line.discount_percent,
                in_stock=line.in_stock,
                available=line.available,
            )
            for line in self.lines
        ]
        options = PricingOptions(
            tax_enabled=self.tax_enabled,
            payment_type=self.payment_type,
            interest_percent=self.interest_percent,
            term_count=self.term_count,
        )
        return lines, options


class LinePricingResponse(BaseModel):
    gross: Decimal
    discount: Decimal
    net: Decimal
    discount_percent: Decimal
    included: bool


class PricingResponse(BaseModel):
    """Totals rounded to cents."""

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
    lines: list[LinePricingResponse] = Field(default_factory=list)

    @classmethod
    def from_snapshot(cls, snapshot: PricingSnapshot) -> "PricingResponse":
        return cls(
            **snapshot.rounded(),
            term_count=snapshot.term_count,
            lines=[
                LinePricingResponse(
                    gross=round_money(line.gross),
                    discount=round_money(line.discount),
                    net=round_money(line.net),
                    discount_percent=line.discount_percent,
                    included=line.included,
                )
                for line in snapshot.lines
            ],
        )


class StockWarningResponse(BaseModel):
    inventory_item_id: UUID
    product_name: str
    requested: int
    available: int


class WorkspaceLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_no: int
    inventory_item_id: UUID
    product_name: str
    unit: str
    ordered_qty: int
    unit_price: Decimal
    available: int
    in_stock: bool
    fulfilled_qty: int
    discount_percent: Decimal
    remarks: str


class WorkspaceResponse(BaseModel):
    """Workspace state with live pricing, warnings and validation."""

    order_id: UUID
    order_version: int
    operator_email: str
    payment_type: PaymentType
    tax_enabled: bool
    term_count: int
    interest_percent: Decimal
    po_number: str
    rep_name: str
    forwarder: str
    lines: list[WorkspaceLineResponse]
    pricing: PricingResponse
    stock_warnings: list[StockWarningResponse]
    validation_errors: dict[str, str]

    @classmethod
    def from_workspace(cls, workspace: FulfillmentWorkspace) -> "WorkspaceResponse":
        return cls(
            order_id=workspace.order_id,
            order_version=workspace.order_version,
            operator_email=workspace.operator_email,
            payment_type=workspace.payment_type,
            tax_enabled=workspace.tax_enabled,
            term_count=workspace.term_count,
            interest_percent=workspace.interest_percent,
            po_number=workspace.po_number,
            rep_name=workspace.rep_name,
            forwarder=workspace.forwarder,
            lines=[
                WorkspaceLineResponse.model_validate(line) for line in workspace.lines
            ],
            pricing=PricingResponse.from_snapshot(workspace.pricing),
            stock_warnings=[
                StockWarningResponse(
                    inventory_item_id=w.inventory_item_id,
                    product_name=w.product_name,
                    requested=w.requested,
                    available=w.available,
                )
                for w in workspace.stock_warnings()
            ],
            validation_errors=workspace.validate(),
        )


class ValidationResponse(BaseModel):
    valid: bool
    errors: dict[str, str] = Field(default_factory=dict)


class OrderLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    line_no: int
    inventory_item_id: UUID
    quantity: int
    unit_price: Decimal
    fulfilled_quantity: Optional[int] = None
    discount_percent: Optional[Decimal] = None
    remarks: Optional[str] = None


class OrderSummaryResponse(BaseModel):
    """Queue entry for the operator order list."""

    id: UUID
    status: OrderStatus
    customer_name: str
    payment_type: PaymentType
    total_amount: Decimal
    accepted_by: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderSummaryResponse":
        return cls(
            id=order.id,
            status=order.status,
            customer_name=order.customer.name,
            payment_type=order.payment_type,
            total_amount=order.total_amount,
            accepted_by=order.accepted_by,
            created_at=order.created_at,
        )


class OrderResponse(OrderSummaryResponse):
    """Order detail including the completion-time financial snapshot."""

    version: int
    customer_email: str
    payment_terms: Optional[int] = None
    interest_percent: Optional[Decimal] = None
    sales_tax: Optional[Decimal] = None
    grand_total_with_interest: Optional[Decimal] = None
    per_term_amount: Optional[Decimal] = None
    forwarder: Optional[str] = None
    salesman: Optional[str] = None
    po_number: Optional[str] = None
    accepted_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    needs_reconciliation: bool = False
    allowed_transitions: list[OrderStatus] = Field(default_factory=list)
    lines: list[OrderLineResponse] = Field(default_factory=list)

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        summary = OrderSummaryResponse.from_order(order).model_dump()
        return cls(
            **summary,
            version=order.version,
            customer_email=order.customer.email,
            payment_terms=order.payment_terms,
            interest_percent=order.interest_percent,
            sales_tax=order.sales_tax,
            grand_total_with_interest=order.grand_total_with_interest,
            per_term_amount=order.per_term_amount,
            forwarder=order.forwarder,
            salesman=order.salesman,
            po_number=order.po_number,
            accepted_at=order.accepted_at,
            processed_by=order.processed_by,
            processed_at=order.processed_at,
            needs_reconciliation=order.needs_reconciliation,
            allowed_transitions=sorted(
                get_allowed_order_transitions(order.status), key=lambda s: s.value
            ),
            lines=[OrderLineResponse.model_validate(item) for item in order.line_items],
        )


class OrderListResponse(BaseModel):
    items: list[OrderSummaryResponse]
    total: int
    skip: int
    limit: int


class InstallmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    term_no: int
    due_date: date
    amount_due: Decimal
    amount_paid: Decimal
    status: InstallmentStatus


class CompletionResponse(BaseModel):
    order: OrderResponse
    pricing: PricingResponse
    sale_count: int
    installments: list[InstallmentResponse] = Field(default_factory=list)
