"""
Inventory model for per-SKU stock tracking.

Available quantity is edited by catalog administration (outside this service)
and decremented here only when an order completes.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from salesdesk.database.base import BaseModel, create_table_args


class InventoryItem(BaseModel):
    """
    Stock keeping unit with its current availability and price.

    Attributes:
        id: Unique inventory item identifier (UUID)
        sku: Stock keeping unit code
        product_name: Display name
        unit: Unit of measure (pcs, box, roll...)
        available: Quantity on hand, never negative
        unit_price: Current selling price (orders freeze their own copy)
        cost_price: Acquisition cost used for earnings on sale records
    """

    __tablename__ = "inventory_items"
    __table_args__ = create_table_args(
        CheckConstraint("available >= 0", name="ck_inventory_available_non_negative"),
        CheckConstraint("unit_price >= 0", name="ck_inventory_unit_price_non_negative"),
        comment="Per-SKU stock and pricing",
    )

    sku: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str] = mapped_column(String(32), nullable=False, default="pcs")
    available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=Decimal("0.00")
    )
    cost_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )

    @property
    def in_stock(self) -> bool:
        return (self.available or 0) > 0
