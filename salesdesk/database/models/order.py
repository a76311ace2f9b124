"""
Order and order line item models.

An order is created upstream in status "requested". The fulfillment pipeline
claims it, and on completion writes the financial snapshot exactly once.
The ``version`` column is the mapper's version counter, so every UPDATE of
an order row is conditional on the version that was read.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salesdesk.database.base import BaseModel, create_table_args
from salesdesk.database.models.customer import Customer
from salesdesk.database.models.inventory import InventoryItem
from salesdesk.services.fulfillment.enums import OrderStatus, PaymentType

FINANCIAL_SNAPSHOT_FIELDS = (
    "sales_tax",
    "grand_total_with_interest",
    "per_term_amount",
    "payment_terms",
    "interest_percent",
    "forwarder",
    "salesman",
    "po_number",
)


class Order(BaseModel):
    """
    Customer sales order.

    Attributes:
        id: Unique order identifier (UUID)
        customer_id: Ordering customer
        status: requested, accepted, completed or rejected
        version: Optimistic lock counter, bumped on every row update
        total_amount: Order-time total (ordered qty x frozen unit price)
        payment_terms: Month count (credit) or 1
        interest_percent: Credit interest applied at completion
        sales_tax: Tax written at completion
        grand_total_with_interest: Final amount due
        per_term_amount: Installment amount (or grand total)
        forwarder: Optional forwarder/shipping agent
        salesman: Sales rep recorded at completion
        po_number: Purchase order number, unique across orders
        accepted_by / accepted_at: Claiming operator and time
        processed_by / processed_at: Completing or rejecting operator and time
        needs_reconciliation: Set when completion failed with an unknown
            storage outcome and must be checked by hand
    """

    __tablename__ = "orders"
    __table_args__ = create_table_args(
        Index("ix_orders_status_created", "status", "created_at"),
        UniqueConstraint("po_number", name="unique_po_number"),
        CheckConstraint(
            "payment_terms IS NULL OR payment_terms >= 1",
            name="ck_orders_payment_terms_positive",
        ),
        comment="Customer sales orders",
    )

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=OrderStatus.REQUESTED,
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )

    # Financial snapshot, null until completion
    payment_terms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    interest_percent: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    sales_tax: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    grand_total_with_interest: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    per_term_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    forwarder: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    salesman: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    po_number: Mapped[Optional[str]] = mapped_column(String(6), nullable=True)

    accepted_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    processed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    needs_reconciliation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    customer: Mapped[Customer] = relationship(lazy="raise")
    line_items: Mapped[list["OrderLineItem"]] = relationship(
        back_populates="order",
        order_by="OrderLineItem.line_no",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def payment_type(self) -> PaymentType:
        return self.customer.payment_type

    def snapshot_fields(self) -> dict:
        """Current values of the completion-time financial fields."""
        return {name: getattr(self, name) for name in FINANCIAL_SNAPSHOT_FIELDS}


class OrderLineItem(BaseModel):
    """
    One product entry within an order.

    Attributes:
        order_id: Owning order
        line_no: Display/processing order within the order
        inventory_item_id: Linked stock item
        quantity: Ordered quantity, immutable
        unit_price: Price frozen at order creation
        fulfilled_quantity: Quantity sold at completion
        discount_percent: Discount (negative = markup) written at completion
        remarks: Receipt note
    """

    __tablename__ = "order_line_items"
    __table_args__ = create_table_args(
        UniqueConstraint("order_id", "line_no", name="uq_order_line_no"),
        CheckConstraint("quantity > 0", name="ck_line_quantity_positive"),
        CheckConstraint(
            "fulfilled_quantity IS NULL OR fulfilled_quantity >= 0",
            name="ck_line_fulfilled_non_negative",
        ),
        CheckConstraint(
            "discount_percent IS NULL OR "
            "(discount_percent >= -100 AND discount_percent <= 100)",
            name="ck_line_discount_range",
        ),
        comment="Order line items",
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    inventory_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    fulfilled_quantity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    discount_percent: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    order: Mapped[Order] = relationship(back_populates="line_items", lazy="raise")
    inventory_item: Mapped[InventoryItem] = relationship(lazy="raise")

    @property
    def ordered_total(self) -> Decimal:
        return Decimal(self.quantity) * self.unit_price
