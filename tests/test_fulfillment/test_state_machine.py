"""
Test suite for OrderStateMachine.

Tests cover the transition table, claim guards, version checks and the
actor/timestamp side effects.
"""

from unittest.mock import Mock
from uuid import uuid4

import pytest

from salesdesk.core.identity import OperatorIdentity
from salesdesk.services.fulfillment.enums import (
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from salesdesk.services.fulfillment.errors import InvalidTransitionError
from salesdesk.services.fulfillment.state_machine import (
    OrderStateMachine,
    get_order_state_machine,
)


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
def state_machine() -> OrderStateMachine:
    return OrderStateMachine(enforce_claim_owner=True)


@pytest.fixture
def actor() -> OperatorIdentity:
    return OperatorIdentity(email="ana.reyes@example.com", role="sales")


@pytest.fixture
def mock_order() -> Mock:
    """Create mock order in requested status.

    Returns:
        Mock order instance with lifecycle attributes
    """
    order = Mock()
    order.id = uuid4()
    order.status = OrderStatus.REQUESTED
    order.version = 1
    order.accepted_by = None
    order.accepted_at = None
    order.processed_by = None
    order.processed_at = None
    return order


# ============================================================================
# Transition Table Tests
# ============================================================================


class TestTransitionTable:
    """Test the static transition rules."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.REQUESTED, OrderStatus.ACCEPTED),
            (OrderStatus.REQUESTED, OrderStatus.REJECTED),
            (OrderStatus.ACCEPTED, OrderStatus.COMPLETED),
            (OrderStatus.ACCEPTED, OrderStatus.REJECTED),
        ],
    )
    def test_allowed_transitions(self, current, target) -> None:
        assert validate_order_status_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.REQUESTED, OrderStatus.COMPLETED),
            (OrderStatus.ACCEPTED, OrderStatus.ACCEPTED),
            (OrderStatus.COMPLETED, OrderStatus.REJECTED),
            (OrderStatus.REJECTED, OrderStatus.ACCEPTED),
            (OrderStatus.COMPLETED, OrderStatus.ACCEPTED),
        ],
    )
    def test_forbidden_transitions(self, current, target) -> None:
        assert not validate_order_status_transition(current, target)

    @pytest.mark.parametrize("status", [OrderStatus.COMPLETED, OrderStatus.REJECTED])
    def test_terminal_states(self, status: OrderStatus) -> None:
        assert status.is_terminal()
        assert get_allowed_order_transitions(status) == set()

    def test_only_accepted_is_editable(self) -> None:
        assert [s for s in OrderStatus if s.is_editable()] == [OrderStatus.ACCEPTED]

    def test_from_string(self) -> None:
        assert OrderStatus.from_string("Accepted") is OrderStatus.ACCEPTED
        with pytest.raises(ValueError, match="Invalid order status"):
            OrderStatus.from_string("shipped")


# ============================================================================
# Validation Tests
# ============================================================================


class TestValidateTransition:
    def test_accept_requested_order(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        assert state_machine.validate_transition(mock_order, OrderStatus.ACCEPTED, actor)

    def test_complete_from_requested_fails(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(mock_order, OrderStatus.COMPLETED, actor)

        error = exc_info.value
        assert error.current_state == OrderStatus.REQUESTED
        assert error.target_state == OrderStatus.COMPLETED
        assert error.context["allowed_transitions"] == ["accepted", "rejected"]

    def test_version_mismatch_fails(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        mock_order.status = OrderStatus.ACCEPTED
        mock_order.accepted_by = actor.email
        mock_order.version = 3

        with pytest.raises(InvalidTransitionError, match="modified by another operator"):
            state_machine.validate_transition(
                mock_order, OrderStatus.COMPLETED, actor, expected_version=2
            )

    def test_complete_by_other_operator_fails(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        mock_order.status = OrderStatus.ACCEPTED
        mock_order.accepted_by = "someone.else@example.com"

        with pytest.raises(InvalidTransitionError) as exc_info:
            state_machine.validate_transition(mock_order, OrderStatus.COMPLETED, actor)
        assert exc_info.value.context["guard_failed"] is True

    def test_claim_owner_not_enforced(self, mock_order: Mock, actor) -> None:
        machine = get_order_state_machine(enforce_claim_owner=False)
        mock_order.status = OrderStatus.ACCEPTED
        mock_order.accepted_by = "someone.else@example.com"

        assert machine.validate_transition(mock_order, OrderStatus.COMPLETED, actor)

    def test_reject_by_other_operator_allowed(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        mock_order.status = OrderStatus.ACCEPTED
        mock_order.accepted_by = "someone.else@example.com"

        assert state_machine.validate_transition(mock_order, OrderStatus.REJECTED, actor)


# ============================================================================
# Apply Tests
# ============================================================================


class TestApplyTransition:
    def test_accept_records_claim(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        previous = state_machine.apply_transition(mock_order, OrderStatus.ACCEPTED, actor)

        assert previous == OrderStatus.REQUESTED
        assert mock_order.status == OrderStatus.ACCEPTED
        assert mock_order.accepted_by == actor.email
        assert mock_order.accepted_at is not None
        assert mock_order.processed_by is None

    def test_reject_records_processor(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        state_machine.apply_transition(mock_order, OrderStatus.REJECTED, actor)

        assert mock_order.status == OrderStatus.REJECTED
        assert mock_order.processed_by == actor.email
        assert mock_order.processed_at is not None

    def test_failed_transition_leaves_order_untouched(
        self, state_machine: OrderStateMachine, mock_order: Mock, actor
    ) -> None:
        mock_order.status = OrderStatus.REJECTED

        with pytest.raises(InvalidTransitionError):
            state_machine.apply_transition(mock_order, OrderStatus.ACCEPTED, actor)

        assert mock_order.status == OrderStatus.REJECTED
        assert mock_order.accepted_by is None

    def test_only_accepted_order_can_be_edited(
        self, state_machine: OrderStateMachine, mock_order: Mock
    ) -> None:
        assert not state_machine.can_edit(mock_order)

        mock_order.status = OrderStatus.ACCEPTED
        assert state_machine.can_edit(mock_order)
