"""Order status and payment enums for sales order fulfillment.

This module defines the order lifecycle status with its transition table,
the customer payment types the pricing rules depend on, and the status of
installment rows written for credit orders.
"""

from enum import Enum
from typing import Dict, Set


class OrderStatus(str, Enum):
    """Order lifecycle status with state machine transitions.

    Valid transitions:
    - REQUESTED -> ACCEPTED, REJECTED
    - ACCEPTED -> COMPLETED, REJECTED
    - COMPLETED -> (terminal state)
    - REJECTED -> (terminal state)
    """

    REQUESTED = "requested"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Convert string to OrderStatus enum.

        Args:
            value: String representation of status

        Returns:
            OrderStatus enum value

        Raises:
            ValueError: If value is not a valid status
        """
        try:
            return cls(value.lower())
        except ValueError:
            valid_values = ", ".join([s.value for s in cls])
            raise ValueError(
                f"Invalid order status: {value}. "
                f"Valid values are: {valid_values}"
            )

    def is_terminal(self) -> bool:
        """Check if status is a terminal state (COMPLETED, REJECTED)."""
        return self in {OrderStatus.COMPLETED, OrderStatus.REJECTED}

    def is_editable(self) -> bool:
        """Only an accepted order can be edited in a workspace."""
        return self == OrderStatus.ACCEPTED


class PaymentType(str, Enum):
    """Customer payment arrangement.

    Interest and installment division only apply to CREDIT.
    """

    CASH = "Cash"
    CREDIT = "Credit"
    BALANCE = "Balance"

    @property
    def is_credit(self) -> bool:
        return self == PaymentType.CREDIT


class InstallmentStatus(str, Enum):
    """Payment state of one installment row."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


# Order status transition rules
ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, Set[OrderStatus]] = {
    OrderStatus.REQUESTED: {
        OrderStatus.ACCEPTED,
        OrderStatus.REJECTED,
    },
    OrderStatus.ACCEPTED: {
        OrderStatus.COMPLETED,
        OrderStatus.REJECTED,
    },
    OrderStatus.COMPLETED: set(),
    OrderStatus.REJECTED: set(),
}


def validate_order_status_transition(
    current_status: OrderStatus,
    new_status: OrderStatus,
) -> bool:
    """Validate if order status transition is allowed.

    Args:
        current_status: Current order status
        new_status: Desired new status

    Returns:
        True if transition is valid, False otherwise
    """
    return new_status in ORDER_STATUS_TRANSITIONS.get(current_status, set())


def get_allowed_order_transitions(current_status: OrderStatus) -> Set[OrderStatus]:
    """Get set of allowed transitions from current order status."""
    return ORDER_STATUS_TRANSITIONS.get(current_status, set()).copy()
