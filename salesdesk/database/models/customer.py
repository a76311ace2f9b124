"""
Customer model.

Customers are created upstream by order intake; the fulfillment pipeline only
reads them, chiefly for the payment type that drives interest and terms.
"""

from typing import Optional

from sqlalchemy import Enum as SQLEnum
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from salesdesk.database.base import BaseModel, create_table_args
from salesdesk.services.fulfillment.enums import PaymentType


class Customer(BaseModel):
    """
    Ordering customer.

    Attributes:
        id: Unique customer identifier (UUID)
        code: Transaction code shown to the customer for tracking
        name: Customer display name
        email: Contact email
        payment_type: Cash, Credit or Balance
        address: Delivery address
        contact_number: Phone number
    """

    __tablename__ = "customers"
    __table_args__ = create_table_args(comment="Customers placing sales orders")

    code: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
        unique=True,
        comment="Customer-facing transaction code",
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payment_type: Mapped[PaymentType] = mapped_column(
        SQLEnum(
            PaymentType,
            name="payment_type",
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=PaymentType.CASH,
    )
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    contact_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
