"""Order state machine for sales order fulfillment.

This module implements the OrderStateMachine class that validates and
applies the Requested -> Accepted -> Completed / Rejected lifecycle.
Transitions are checked against the transition table, then against
per-transition guards, and side effects stamp who moved the order and
when. The machine never commits; the calling service owns the transaction.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from salesdesk.core.identity import OperatorIdentity
from salesdesk.core.logging import get_logger
from salesdesk.database.base import utcnow
from salesdesk.services.fulfillment.enums import (
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from salesdesk.services.fulfillment.errors import InvalidTransitionError

logger = get_logger(__name__)

Guard = Callable[[Any, OperatorIdentity], Optional[str]]


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    Guards return None when the transition may proceed, otherwise a
    reason string that becomes the InvalidTransitionError message.
    """

    def __init__(self, enforce_claim_owner: bool = True):
        """Initialize state machine.

        Args:
            enforce_claim_owner: Only the accepting operator may complete
        """
        self.enforce_claim_owner = enforce_claim_owner
        self._transition_guards: Dict[
            tuple[OrderStatus, OrderStatus], Guard
        ] = self._initialize_guards()
        self._side_effects: Dict[
            OrderStatus, Callable[[Any, OperatorIdentity, datetime], None]
        ] = self._initialize_side_effects()

    def _initialize_guards(self) -> Dict[tuple[OrderStatus, OrderStatus], Guard]:
        return {
            (OrderStatus.REQUESTED, OrderStatus.ACCEPTED): self._guard_unclaimed,
            (OrderStatus.ACCEPTED, OrderStatus.COMPLETED): self._guard_claim_owner,
        }

    def _initialize_side_effects(
        self,
    ) -> Dict[OrderStatus, Callable[[Any, OperatorIdentity, datetime], None]]:
        return {
            OrderStatus.ACCEPTED: self._effect_accepted,
            OrderStatus.COMPLETED: self._effect_processed,
            OrderStatus.REJECTED: self._effect_processed,
        }

    def validate_transition(
        self,
        order: Any,
        target_status: OrderStatus,
        actor: OperatorIdentity,
        expected_version: Optional[int] = None,
    ) -> bool:
        """Validate if transition to target status is allowed.

        Args:
            order: Order instance to validate
            target_status: Desired target status
            actor: Operator initiating the transition
            expected_version: Order version the caller last read

        Returns:
            True if transition is valid

        Raises:
            InvalidTransitionError: If transition is invalid
        """
        current_status = order.status

        logger.debug(
            "Validating state transition",
            order_id=str(order.id),
            current_status=current_status.value,
            target_status=target_status.value,
            actor=actor.email,
        )

        if not validate_order_status_transition(current_status, target_status):
            allowed = get_allowed_order_transitions(current_status)
            raise InvalidTransitionError(
                f"Invalid transition from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                allowed_transitions=sorted(s.value for s in allowed),
            )

        if expected_version is not None and order.version != expected_version:
            raise InvalidTransitionError(
                "Order was modified by another operator",
                current_state=current_status,
                target_state=target_status,
                order_id=str(order.id),
                expected_version=expected_version,
                actual_version=order.version,
            )

        guard = self._transition_guards.get((current_status, target_status))
        if guard is not None:
            reason = guard(order, actor)
            if reason:
                raise InvalidTransitionError(
                    reason,
                    current_state=current_status,
                    target_state=target_status,
                    order_id=str(order.id),
                    guard_failed=True,
                )

        return True

    def apply_transition(
        self,
        order: Any,
        target_status: OrderStatus,
        actor: OperatorIdentity,
        expected_version: Optional[int] = None,
    ) -> OrderStatus:
        """Validate and apply a transition in memory.

        The new status is written on flush; the version counter makes that
        write conditional on the version read.

        Returns:
            The previous status
        """
        self.validate_transition(order, target_status, actor, expected_version)

        old_status = order.status
        now = utcnow()
        order.status = target_status

        side_effect = self._side_effects.get(target_status)
        if side_effect is not None:
            side_effect(order, actor, now)

        logger.info(
            "State transition applied",
            order_id=str(order.id),
            transition=f"{old_status.value}->{target_status.value}",
            actor=actor.email,
        )
        return old_status

    def can_edit(self, order: Any) -> bool:
        return order.status.is_editable()

    # Transition Guards

    def _guard_unclaimed(self, order: Any, actor: OperatorIdentity) -> Optional[str]:
        if order.accepted_by:
            return f"Order already claimed by {order.accepted_by}"
        return None

    def _guard_claim_owner(self, order: Any, actor: OperatorIdentity) -> Optional[str]:
        if not self.enforce_claim_owner:
            return None
        if order.accepted_by and order.accepted_by != actor.email:
            return f"Order is claimed by {order.accepted_by}"
        return None

    # Side Effects

    def _effect_accepted(
        self, order: Any, actor: OperatorIdentity, now: datetime
    ) -> None:
        order.accepted_by = actor.email
        order.accepted_at = now

    def _effect_processed(
        self, order: Any, actor: OperatorIdentity, now: datetime
    ) -> None:
        order.processed_by = actor.email
        order.processed_at = now


def get_order_state_machine(enforce_claim_owner: bool = True) -> OrderStateMachine:
    """Factory function to create OrderStateMachine instance."""
    return OrderStateMachine(enforce_claim_owner=enforce_claim_owner)
