"""
Sale ledger rows and credit installment schedule written at order completion.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from salesdesk.database.base import BaseModel, create_table_args, utcnow
from salesdesk.services.fulfillment.enums import InstallmentStatus


class SaleRecord(BaseModel):
    """
    One sold line, consumed by cash and daily reporting.

    Attributes:
        order_id: Completed order the sale belongs to
        inventory_item_id: Item sold
        quantity_sold: Fulfilled quantity
        amount: Line amount after discount (or markup)
        earnings: Margin over cost price after discount
        recorded_at: Sale timestamp
    """

    __tablename__ = "sale_records"
    __table_args__ = create_table_args(
        CheckConstraint("quantity_sold > 0", name="ck_sale_quantity_positive"),
        comment="Append-only sales ledger",
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    inventory_item_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("inventory_items.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    quantity_sold: Mapped[int] = mapped_column(Integer, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    earnings: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class OrderInstallment(BaseModel):
    """
    One scheduled payment of a credit order.

    Attributes:
        order_id: Completed credit order
        term_no: 1-based term number
        due_date: Date the term falls due
        amount_due: Scheduled amount
        amount_paid: Collected so far (payment collection is handled elsewhere)
        status: unpaid, partial or paid
    """

    __tablename__ = "order_installments"
    __table_args__ = create_table_args(
        UniqueConstraint("order_id", "term_no", name="uq_installment_term"),
        CheckConstraint("term_no >= 1", name="ck_installment_term_positive"),
        comment="Credit installment schedule",
    )

    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    term_no: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount_due: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    status: Mapped[InstallmentStatus] = mapped_column(
        SQLEnum(
            InstallmentStatus,
            name="installment_status",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=InstallmentStatus.UNPAID,
    )
