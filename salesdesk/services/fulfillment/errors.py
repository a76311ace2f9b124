"""
Fulfillment error taxonomy.

Every error carries a message plus structured context for logging and the
HTTP error body.
"""

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from salesdesk.services.fulfillment.enums import OrderStatus


class FulfillmentError(Exception):
    """Base exception for fulfillment errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class OrderNotFoundError(FulfillmentError):
    """Raised when an order does not exist."""

    pass


class WorkspaceNotFoundError(FulfillmentError):
    """Raised when no open workspace exists for an order."""

    pass


class InvalidTransitionError(FulfillmentError):
    """Raised when an operation is attempted from a state that forbids it.

    Also raised when another operator changed the order first (version
    mismatch) or when the workspace belongs to another claim.
    """

    def __init__(
        self,
        message: str,
        current_state: Optional[OrderStatus] = None,
        target_state: Optional[OrderStatus] = None,
        **context: Any,
    ):
        super().__init__(message, **context)
        self.current_state = current_state
        self.target_state = target_state


class FulfillmentValidationError(FulfillmentError):
    """Raised when workspace fields block confirmation.

    ``field_errors`` maps a field name to a user-facing message.
    """

    def __init__(self, field_errors: dict[str, str], **context: Any):
        fields = ", ".join(sorted(field_errors))
        super().__init__(f"Invalid workspace fields: {fields}", **context)
        self.field_errors = dict(field_errors)


@dataclass(frozen=True)
class StockShortfall:
    """One line whose fulfilled quantity exceeds availability."""

    inventory_item_id: uuid.UUID
    product_name: str
    requested: int
    available: int

    @property
    def missing(self) -> int:
        return self.requested - self.available

    def to_dict(self) -> dict[str, Any]:
        return {
            "inventory_item_id": str(self.inventory_item_id),
            "product_name": self.product_name,
            "requested": self.requested,
            "available": self.available,
        }


class InsufficientStockError(FulfillmentError):
    """Raised when at least one line cannot be covered by current stock."""

    def __init__(self, shortfalls: Sequence[StockShortfall], **context: Any):
        names = ", ".join(s.product_name for s in shortfalls)
        super().__init__(f"Insufficient stock for {names}", **context)
        self.shortfalls = list(shortfalls)


class PartialWriteError(FulfillmentError):
    """Raised when a storage write fails during completion.

    ``rolled_back`` is true when the transaction was rolled back cleanly.
    ``needs_reconciliation`` is true when the outcome is unknown and the
    order has been flagged for manual review.
    """

    def __init__(
        self,
        message: str,
        rolled_back: bool = True,
        needs_reconciliation: bool = False,
        **context: Any,
    ):
        super().__init__(message, **context)
        self.rolled_back = rolled_back
        self.needs_reconciliation = needs_reconciliation


class AuditLogError(FulfillmentError):
    """Raised inside the audit recorder; never escapes it."""

    pass
