"""
Database models package initialization.

Models are imported here so they are registered with the Base metadata
before ``create_all`` runs and relationships can be resolved.
"""

from salesdesk.database.base import (
    Base,
    BaseModel,
    TimestampMixin,
    UUIDMixin,
    create_table_args,
)
from salesdesk.database.models.audit import AuditLogEntry
from salesdesk.database.models.customer import Customer
from salesdesk.database.models.inventory import InventoryItem
from salesdesk.database.models.order import Order, OrderLineItem
from salesdesk.database.models.sale import OrderInstallment, SaleRecord

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UUIDMixin",
    "create_table_args",
    "AuditLogEntry",
    "Customer",
    "InventoryItem",
    "Order",
    "OrderLineItem",
    "OrderInstallment",
    "SaleRecord",
]
