"""
Sales order fulfillment service.

This module implements the FulfillmentService class that claims requested
orders, keeps the operator's workspace, and finalizes an accepted order in a
single transaction: inventory deductions, line fulfillment, sale records,
the credit installment schedule, the financial snapshot and the status
change either all land or none do. Audit entries are written after the
business commit, in their own session.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from salesdesk.core.config import Settings, get_settings
from salesdesk.core.identity import OperatorIdentity
from salesdesk.core.logging import get_logger, log_performance
from salesdesk.database.base import utcnow
from salesdesk.database.models.order import Order
from salesdesk.database.models.sale import OrderInstallment
from salesdesk.services.audit.recorder import (
    ACTION_ACCEPT,
    ACTION_COMPLETE,
    ACTION_REJECT,
    AuditRecorder,
)
from salesdesk.services.fulfillment.enums import OrderStatus
from salesdesk.services.fulfillment.errors import (
    FulfillmentError,
    FulfillmentValidationError,
    InsufficientStockError,
    InvalidTransitionError,
    OrderNotFoundError,
    PartialWriteError,
    StockShortfall,
    WorkspaceNotFoundError,
)
from salesdesk.services.fulfillment.installments import build_installment_schedule
from salesdesk.services.fulfillment.repository import OrderRepository
from salesdesk.services.fulfillment.state_machine import get_order_state_machine
from salesdesk.services.fulfillment.workspace import (
    FulfillmentWorkspace,
    WorkspaceRegistry,
)
from salesdesk.services.inventory.ledger import InventoryLedger
from salesdesk.services.pricing.calculator import (
    PricingSnapshot,
    compute_earnings,
    round_money,
)

logger = get_logger(__name__)

PO_NUMBER_TAKEN = "PO number already exists"


@dataclass
class CompletionResult:
    """Outcome of a successful completion."""

    order: Order
    pricing: PricingSnapshot
    sale_count: int = 0
    installments: list[OrderInstallment] = field(default_factory=list)


class FulfillmentService:
    """
    Fulfillment service orchestrating the order lifecycle.

    Attributes:
        session: Async database session owning the business transactions
        repository: Order repository for data access
        ledger: Inventory ledger sharing the same session
        state_machine: Lifecycle rules and guards
        registry: Open workspaces
        audit_recorder: Optional audit writer
    """

    def __init__(
        self,
        session: AsyncSession,
        audit_recorder: Optional[AuditRecorder] = None,
        registry: Optional[WorkspaceRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.repository = OrderRepository(session)
        self.ledger = InventoryLedger(session)
        self.state_machine = get_order_state_machine(
            enforce_claim_owner=self.settings.enforce_claim_owner
        )
        self.registry = registry if registry is not None else WorkspaceRegistry()
        self.audit_recorder = audit_recorder

    async def get_order(self, order_id: uuid.UUID, refresh: bool = False) -> Order:
        """
        Load an order with its customer and lines.

        Raises:
            OrderNotFoundError: If order not found
        """
        order = await self.repository.get_order_by_id(order_id, refresh=refresh)
        if order is None:
            raise OrderNotFoundError("Order not found", order_id=str(order_id))
        return order

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Order], int]:
        return await self.repository.list_orders(status=status, skip=skip, limit=limit)

    async def accept(
        self, order_id: uuid.UUID, actor: OperatorIdentity
    ) -> FulfillmentWorkspace:
        """
        Claim a requested order and open its workspace.

        Args:
            order_id: Order to claim
            actor: Claiming operator

        Returns:
            Workspace seeded from the order and current availability

        Raises:
            OrderNotFoundError: If order not found
            InvalidTransitionError: If the order is not requested, or another
                operator claimed it first
        """
        logger.info("Accepting order", order_id=str(order_id), actor=actor.email)

        order = await self.get_order(order_id, refresh=True)
        await self._commit_transition(order, OrderStatus.ACCEPTED, actor)

        availability = await self.ledger.get_availability(
            item.inventory_item_id for item in order.line_items
        )
        workspace = self.registry.open(
            FulfillmentWorkspace.from_order(
                order,
                availability,
                actor,
                default_terms=self.settings.default_payment_terms,
                max_terms=self.settings.max_payment_terms,
            )
        )

        details = self.repository.describe(order)
        details["accepted_by"] = actor.email
        await self._audit(actor, ACTION_ACCEPT, details)

        logger.info(
            "Order accepted",
            order_id=str(order_id),
            actor=actor.email,
            version=order.version,
            stock_warnings=len(workspace.stock_warnings()),
        )
        return workspace

    async def reject(self, order_id: uuid.UUID, actor: OperatorIdentity) -> Order:
        """
        Reject a requested or accepted order.

        Inventory is not touched. Any open workspace is discarded and its
        current totals go into the audit entry.

        Raises:
            OrderNotFoundError: If order not found
            InvalidTransitionError: If the order is already terminal
        """
        logger.info("Rejecting order", order_id=str(order_id), actor=actor.email)

        order = await self.get_order(order_id, refresh=True)
        await self._commit_transition(order, OrderStatus.REJECTED, actor)

        workspace = self.registry.find(order_id)
        details = self.repository.describe(order)
        if workspace is not None:
            details["totals"] = workspace.pricing.to_dict()
        self.registry.discard(order_id)

        await self._audit(actor, ACTION_REJECT, details)

        logger.info("Order rejected", order_id=str(order_id), actor=actor.email)
        return order

    async def get_workspace(
        self,
        order_id: uuid.UUID,
        actor: OperatorIdentity,
        refresh: bool = False,
    ) -> FulfillmentWorkspace:
        """
        Return the open workspace, reopening it for the claim owner if it
        was cancelled.

        Args:
            refresh: Re-read availability for the advisory stock warnings

        Raises:
            WorkspaceNotFoundError: If the order is not accepted
            InvalidTransitionError: If another operator holds the claim
        """
        workspace = self.registry.find(order_id)
        if workspace is None:
            order = await self.get_order(order_id)
            if not self.state_machine.can_edit(order):
                raise WorkspaceNotFoundError(
                    "Order has no workspace in its current state",
                    order_id=str(order_id),
                    status=order.status.value,
                )
            if self.settings.enforce_claim_owner and order.accepted_by != actor.email:
                raise InvalidTransitionError(
                    f"Order is claimed by {order.accepted_by}",
                    current_state=order.status,
                    order_id=str(order_id),
                )
            availability = await self.ledger.get_availability(
                item.inventory_item_id for item in order.line_items
            )
            return self.registry.open(
                FulfillmentWorkspace.from_order(
                    order,
                    availability,
                    actor,
                    default_terms=self.settings.default_payment_terms,
                    max_terms=self.settings.max_payment_terms,
                )
            )

        self._check_workspace_owner(workspace, actor)
        if refresh:
            availability = await self.ledger.get_availability(
                line.inventory_item_id for line in workspace.lines
            )
            workspace.refresh_availability(availability)
        return workspace

    def update_workspace(
        self,
        order_id: uuid.UUID,
        actor: OperatorIdentity,
        **fields: Any,
    ) -> FulfillmentWorkspace:
        """
        Apply operator edits to the open workspace; storage is untouched.

        Accepts the keyword fields of ``FulfillmentWorkspace.update``.
        """
        workspace = self.registry.get(order_id)
        self._check_workspace_owner(workspace, actor)
        workspace.update(**fields)
        return workspace

    def validate(
        self, order_id: uuid.UUID, actor: OperatorIdentity
    ) -> dict[str, str]:
        """Field errors blocking confirmation; empty when ready."""
        workspace = self.registry.get(order_id)
        self._check_workspace_owner(workspace, actor)
        return workspace.validate()

    def cancel(self, order_id: uuid.UUID, actor: OperatorIdentity) -> bool:
        """Discard workspace edits; the order stays accepted."""
        workspace = self.registry.find(order_id)
        if workspace is not None:
            self._check_workspace_owner(workspace, actor)
        discarded = self.registry.discard(order_id)
        logger.info(
            "Workspace cancelled",
            order_id=str(order_id),
            actor=actor.email,
            discarded=discarded,
        )
        return discarded

    async def complete(
        self,
        order_id: uuid.UUID,
        workspace: FulfillmentWorkspace,
        actor: OperatorIdentity,
    ) -> CompletionResult:
        """
        Finalize an accepted order from a workspace snapshot.

        Stock is re-read authoritatively inside the transaction; a shortfall
        on any line that was in stock in the workspace aborts before anything
        is written, including a line drained to zero since it was confirmed.
        Lines already out of stock in the workspace are completed with a
        fulfilled quantity of zero.

        Args:
            order_id: Order to complete
            workspace: Workspace whose state is persisted
            actor: Completing operator

        Returns:
            CompletionResult with the completed order and final pricing

        Raises:
            FulfillmentValidationError: Missing/malformed fields or a reused PO number
            InvalidTransitionError: Wrong state, lost race, stale workspace or
                another operator's claim
            InsufficientStockError: A line exceeds current availability
            PartialWriteError: A storage write failed
        """
        snapshot = workspace.snapshot()
        if snapshot.order_id != order_id:
            raise InvalidTransitionError(
                "Workspace belongs to a different order",
                order_id=str(order_id),
                workspace_order_id=str(snapshot.order_id),
            )

        field_errors = snapshot.validate()
        if field_errors:
            raise FulfillmentValidationError(field_errors, order_id=str(order_id))

        with log_performance(logger, "complete_order", order_id=str(order_id)):
            result = await self._complete_in_transaction(order_id, snapshot, actor)

        self.registry.discard(order_id)
        await self._audit(
            actor, ACTION_COMPLETE, self._completion_details(result, snapshot)
        )

        logger.info(
            "Order completed",
            order_id=str(order_id),
            actor=actor.email,
            grand_total=str(result.order.grand_total_with_interest),
            sales=result.sale_count,
            installments=len(result.installments),
        )
        return result

    async def _complete_in_transaction(
        self,
        order_id: uuid.UUID,
        snapshot: FulfillmentWorkspace,
        actor: OperatorIdentity,
    ) -> CompletionResult:
        try:
            result = await self._apply_completion(order_id, snapshot, actor)
            await self.session.flush()

        except FulfillmentError:
            await self.session.rollback()
            raise

        except StaleDataError as e:
            await self.session.rollback()
            logger.warning(
                "Order changed during completion", order_id=str(order_id)
            )
            raise InvalidTransitionError(
                "Order was modified by another operator",
                target_state=OrderStatus.COMPLETED,
                order_id=str(order_id),
            ) from e

        except IntegrityError as e:
            await self.session.rollback()
            if "po_number" in str(e.orig):
                raise FulfillmentValidationError(
                    {"po_number": PO_NUMBER_TAKEN}, order_id=str(order_id)
                ) from e
            logger.error(
                "Completion rejected by database constraint",
                order_id=str(order_id),
                error=str(e),
            )
            raise PartialWriteError(
                "Completion failed, no changes were saved",
                rolled_back=True,
                order_id=str(order_id),
                error=str(e),
            ) from e

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Completion write failed",
                order_id=str(order_id),
                error=str(e),
                error_type=type(e).__name__,
            )
            raise PartialWriteError(
                "Completion failed, no changes were saved",
                rolled_back=True,
                order_id=str(order_id),
                error=str(e),
            ) from e

        try:
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.critical(
                "Completion commit failed, outcome unknown",
                order_id=str(order_id),
                error=str(e),
            )
            await self._flag_for_reconciliation(order_id)
            raise PartialWriteError(
                "Completion outcome unknown, order flagged for reconciliation",
                rolled_back=False,
                needs_reconciliation=True,
                order_id=str(order_id),
                error=str(e),
            ) from e

        return result

    async def _apply_completion(
        self,
        order_id: uuid.UUID,
        snapshot: FulfillmentWorkspace,
        actor: OperatorIdentity,
    ) -> CompletionResult:
        order = await self.get_order(order_id, refresh=True)
        self.state_machine.validate_transition(
            order, OrderStatus.COMPLETED, actor, expected_version=snapshot.order_version
        )

        if await self.repository.is_po_number_taken(
            snapshot.po_number, exclude_order_id=order.id
        ):
            raise FulfillmentValidationError(
                {"po_number": PO_NUMBER_TAKEN}, order_id=str(order_id)
            )

        availability = await self.ledger.get_availability(
            line.inventory_item_id for line in snapshot.lines
        )
        shortfalls = self._find_shortfalls(snapshot, availability)
        if shortfalls:
            logger.warning(
                "Completion blocked by stock shortfall",
                order_id=str(order_id),
                shortfalls=[s.to_dict() for s in shortfalls],
            )
            raise InsufficientStockError(shortfalls, order_id=str(order_id))

        pricing = snapshot.pricing
        items = {item.id: item for item in order.line_items}
        sale_count = 0

        for line, priced in zip(snapshot.lines, pricing.lines):
            item = items[line.line_id]
            fulfilled = line.fulfilled_qty if priced.included else 0

            item.fulfilled_quantity = fulfilled
            item.discount_percent = round_money(priced.discount_percent)
            item.remarks = line.remarks or None

            if fulfilled > 0:
                await self.ledger.deduct(
                    line.inventory_item_id, fulfilled, product_name=line.product_name
                )
                self.repository.add_sale_record(
                    order_id=order.id,
                    inventory_item_id=line.inventory_item_id,
                    quantity_sold=fulfilled,
                    amount=round_money(priced.net),
                    earnings=round_money(
                        compute_earnings(
                            line.unit_price,
                            line.cost_price,
                            fulfilled,
                            priced.discount_percent,
                        )
                    ),
                )
                sale_count += 1

        rounded = pricing.rounded()
        order.payment_terms = pricing.term_count
        order.interest_percent = rounded["interest_percent"]
        order.sales_tax = rounded["sales_tax"]
        order.grand_total_with_interest = rounded["grand_total"]
        order.per_term_amount = rounded["per_term_amount"]
        order.forwarder = snapshot.forwarder or None
        order.salesman = snapshot.rep_name
        order.po_number = snapshot.po_number

        installments: list[OrderInstallment] = []
        if snapshot.payment_type.is_credit:
            schedule = build_installment_schedule(
                rounded["grand_total"],
                pricing.term_count,
                utcnow().date(),
                self.settings.first_installment_offset_months,
            )
            installments = self.repository.add_installments(order.id, schedule)

        self.state_machine.apply_transition(
            order, OrderStatus.COMPLETED, actor, expected_version=snapshot.order_version
        )

        return CompletionResult(
            order=order,
            pricing=pricing,
            sale_count=sale_count,
            installments=installments,
        )

    @staticmethod
    def _find_shortfalls(
        snapshot: FulfillmentWorkspace, availability: dict[uuid.UUID, int]
    ) -> list[StockShortfall]:
        """
        Compare total demand per item against its authoritative availability.

        Lines count when they were in stock in the confirmed snapshot, so a
        line drained to zero since confirmation is a shortfall rather than
        being completed at zero.
        """
        demand: dict[uuid.UUID, int] = {}
        names: dict[uuid.UUID, str] = {}
        available: dict[uuid.UUID, int] = {}
        for line in snapshot.lines:
            if not line.in_stock:
                continue
            demand[line.inventory_item_id] = (
                demand.get(line.inventory_item_id, 0) + line.fulfilled_qty
            )
            names.setdefault(line.inventory_item_id, line.product_name)
            available[line.inventory_item_id] = availability.get(
                line.inventory_item_id, 0
            )

        return [
            StockShortfall(
                inventory_item_id=item_id,
                product_name=names[item_id],
                requested=requested,
                available=available[item_id],
            )
            for item_id, requested in demand.items()
            if requested > available[item_id]
        ]

    async def _commit_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        actor: OperatorIdentity,
    ) -> None:
        """Apply a status-only transition and commit it, version-checked."""
        order_id = str(order.id)
        try:
            self.state_machine.apply_transition(order, target_status, actor)
            await self.session.commit()

        except InvalidTransitionError:
            await self.session.rollback()
            raise

        except StaleDataError as e:
            await self.session.rollback()
            logger.warning(
                "Lost transition race",
                order_id=order_id,
                target_status=target_status.value,
                actor=actor.email,
            )
            raise InvalidTransitionError(
                "Order was modified by another operator",
                target_state=target_status,
                order_id=order_id,
            ) from e

        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Failed to save order transition",
                order_id=order_id,
                target_status=target_status.value,
                error=str(e),
            )
            raise PartialWriteError(
                "Failed to save order transition",
                rolled_back=True,
                order_id=order_id,
                error=str(e),
            ) from e

    async def _flag_for_reconciliation(self, order_id: uuid.UUID) -> None:
        try:
            await self.session.rollback()
            await self.repository.mark_needs_reconciliation(order_id)
            await self.session.commit()
        except SQLAlchemyError as e:
            logger.critical(
                "Failed to flag order for reconciliation",
                order_id=str(order_id),
                error=str(e),
            )

    def _check_workspace_owner(
        self, workspace: FulfillmentWorkspace, actor: OperatorIdentity
    ) -> None:
        if self.settings.enforce_claim_owner and workspace.operator_email != actor.email:
            raise InvalidTransitionError(
                f"Workspace is held by {workspace.operator_email}",
                current_state=OrderStatus.ACCEPTED,
                order_id=str(workspace.order_id),
            )

    def _completion_details(
        self, result: CompletionResult, snapshot: FulfillmentWorkspace
    ) -> dict[str, Any]:
        order = result.order
        details = self.repository.describe(order)
        details["lines"] = [
            {
                "product_name": line.product_name,
                "ordered_qty": line.ordered_qty,
                "fulfilled_qty": line.fulfilled_qty if priced.included else 0,
                "discount_percent": priced.discount_percent,
                "amount": round_money(priced.net),
            }
            for line, priced in zip(snapshot.lines, result.pricing.lines)
        ]
        details["totals"] = result.pricing.to_dict()
        details["po_number"] = order.po_number
        details["salesman"] = order.salesman
        return details

    async def _audit(
        self, actor: OperatorIdentity, action: str, details: dict[str, Any]
    ) -> None:
        if self.audit_recorder is None:
            return
        await self.audit_recorder.record(actor, action, details)
