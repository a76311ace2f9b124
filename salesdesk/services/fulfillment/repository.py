"""
Order data access repository for the fulfillment pipeline.

This module implements the OrderRepository class providing async methods for
loading orders with their customer and line items, listing the operator
queue, and staging the rows written at completion (sale records and the
installment schedule). The repository never commits; the fulfillment
service owns every transaction boundary.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salesdesk.core.logging import get_logger
from salesdesk.database.models.order import Order, OrderLineItem
from salesdesk.database.models.sale import OrderInstallment, SaleRecord
from salesdesk.services.fulfillment.enums import InstallmentStatus, OrderStatus
from salesdesk.services.fulfillment.errors import FulfillmentError

logger = get_logger(__name__)


class OrderRepositoryError(FulfillmentError):
    """Raised when an order query fails at the storage layer."""

    pass


class OrderRepository:
    """
    Repository for order data access operations.

    Relationships on the models are ``lazy="raise"``, so every query that
    hands an order to the service eager-loads what the service touches.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def get_order_by_id(
        self,
        order_id: uuid.UUID,
        include_items: bool = True,
        refresh: bool = False,
    ) -> Optional[Order]:
        """
        Get order by ID with customer and, optionally, line items.

        Args:
            order_id: Order identifier
            include_items: Load line items and their inventory items
            refresh: Overwrite any stale copy held in the session

        Returns:
            Order if found, None otherwise

        Raises:
            OrderRepositoryError: If the query fails
        """
        try:
            stmt = (
                select(Order)
                .where(Order.id == order_id)
                .options(selectinload(Order.customer))
            )
            if include_items:
                stmt = stmt.options(
                    selectinload(Order.line_items).selectinload(
                        OrderLineItem.inventory_item
                    )
                )
            if refresh:
                stmt = stmt.execution_options(populate_existing=True)

            result = await self.session.execute(stmt)
            return result.scalar_one_or_none()

        except SQLAlchemyError as e:
            logger.error(
                "Failed to retrieve order",
                order_id=str(order_id),
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to retrieve order",
                order_id=str(order_id),
                error=str(e),
            ) from e

    async def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[Order], int]:
        """
        List orders, oldest first, with optional status filter.

        Returns:
            Tuple of (orders, total count)
        """
        try:
            conditions = []
            if status is not None:
                conditions.append(Order.status == status)

            count_stmt = select(func.count()).select_from(Order).where(*conditions)
            total = (await self.session.execute(count_stmt)).scalar_one()

            stmt = (
                select(Order)
                .where(*conditions)
                .options(selectinload(Order.customer))
                .order_by(Order.created_at.asc())
                .offset(skip)
                .limit(limit)
            )
            result = await self.session.execute(stmt)
            orders = list(result.scalars().all())

            logger.debug(
                "Orders listed",
                status=status.value if status else None,
                count=len(orders),
                total=total,
            )
            return orders, total

        except SQLAlchemyError as e:
            logger.error(
                "Failed to list orders",
                status=status.value if status else None,
                error=str(e),
            )
            raise OrderRepositoryError("Failed to list orders", error=str(e)) from e

    async def is_po_number_taken(
        self, po_number: str, exclude_order_id: Optional[uuid.UUID] = None
    ) -> bool:
        stmt = select(Order.id).where(Order.po_number == po_number)
        if exclude_order_id is not None:
            stmt = stmt.where(Order.id != exclude_order_id)
        result = await self.session.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    def add_sale_record(
        self,
        order_id: uuid.UUID,
        inventory_item_id: uuid.UUID,
        quantity_sold: int,
        amount: Decimal,
        earnings: Decimal,
    ) -> SaleRecord:
        """Stage one sale ledger row in the current transaction."""
        record = SaleRecord(
            order_id=order_id,
            inventory_item_id=inventory_item_id,
            quantity_sold=quantity_sold,
            amount=amount,
            earnings=earnings,
        )
        self.session.add(record)
        return record

    def add_installments(
        self,
        order_id: uuid.UUID,
        schedule: Sequence[tuple[int, date, Decimal]],
    ) -> list[OrderInstallment]:
        """Stage installment rows given (term_no, due_date, amount_due) tuples."""
        installments = [
            OrderInstallment(
                order_id=order_id,
                term_no=term_no,
                due_date=due_date,
                amount_due=amount_due,
                amount_paid=Decimal("0.00"),
                status=InstallmentStatus.UNPAID,
            )
            for term_no, due_date, amount_due in schedule
        ]
        self.session.add_all(installments)
        return installments

    async def get_sale_records(self, order_id: uuid.UUID) -> list[SaleRecord]:
        result = await self.session.execute(
            select(SaleRecord)
            .where(SaleRecord.order_id == order_id)
            .order_by(SaleRecord.recorded_at)
        )
        return list(result.scalars().all())

    async def get_installments(self, order_id: uuid.UUID) -> list[OrderInstallment]:
        result = await self.session.execute(
            select(OrderInstallment)
            .where(OrderInstallment.order_id == order_id)
            .order_by(OrderInstallment.term_no)
        )
        return list(result.scalars().all())

    async def mark_needs_reconciliation(self, order_id: uuid.UUID) -> None:
        """
        Flag an order for manual review.

        Issued as a plain UPDATE so it does not depend on the version the
        failed transaction read.
        """
        await self.session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(needs_reconciliation=True)
            .execution_options(synchronize_session=False)
        )

    def describe(self, order: Order) -> dict[str, Any]:
        """Audit/detail payload: customer, ordered lines and totals."""
        return {
            "order_id": order.id,
            "customer_name": order.customer.name,
            "customer_email": order.customer.email,
            "payment_type": order.payment_type,
            "status": order.status,
            "items": [
                {
                    "product_name": item.inventory_item.product_name,
                    "ordered_qty": item.quantity,
                    "unit_price": item.unit_price,
                    "line_total": item.ordered_total,
                }
                for item in order.line_items
            ],
            "total_amount": order.total_amount,
        }
