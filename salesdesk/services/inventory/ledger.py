"""
Inventory ledger for stock availability checks and deductions.

Reads are used twice: advisory when a workspace is opened or refreshed, and
authoritatively at completion. Deductions are a single conditional UPDATE so
availability can never go negative even if another writer got there first.
"""

import uuid
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salesdesk.core.logging import get_logger
from salesdesk.database.models.inventory import InventoryItem
from salesdesk.services.fulfillment.errors import (
    FulfillmentError,
    InsufficientStockError,
    StockShortfall,
)

logger = get_logger(__name__)


class InventoryItemNotFoundError(FulfillmentError):
    """Raised when an inventory item does not exist."""

    pass


class InventoryLedger:
    """
    Per-SKU available quantity.

    Does not commit: deductions join the caller's transaction so the
    completion unit of work can roll them back.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_available(self, inventory_item_id: uuid.UUID) -> int:
        """
        Read the current available quantity.

        Raises:
            InventoryItemNotFoundError: If the item does not exist
        """
        result = await self.session.execute(
            select(InventoryItem.available).where(InventoryItem.id == inventory_item_id)
        )
        available = result.scalar_one_or_none()
        if available is None:
            raise InventoryItemNotFoundError(
                "Inventory item not found",
                inventory_item_id=str(inventory_item_id),
            )
        return available

    async def get_availability(
        self, inventory_item_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, int]:
        """Read available quantities for several items in one query.

        Unknown ids are omitted from the result.
        """
        ids = list(set(inventory_item_ids))
        if not ids:
            return {}

        result = await self.session.execute(
            select(InventoryItem.id, InventoryItem.available).where(
                InventoryItem.id.in_(ids)
            )
        )
        return {row.id: row.available for row in result}

    async def deduct(
        self,
        inventory_item_id: uuid.UUID,
        amount: int,
        product_name: str = "",
    ) -> int:
        """
        Subtract ``amount`` from availability.

        Args:
            inventory_item_id: Item to deduct from
            amount: Quantity to remove, zero is a no-op
            product_name: Used in the shortfall message

        Returns:
            The new available quantity

        Raises:
            ValueError: If amount is negative
            InsufficientStockError: If availability would go negative
            InventoryItemNotFoundError: If the item does not exist
        """
        if amount < 0:
            raise ValueError("Deduction amount cannot be negative")
        if amount == 0:
            return await self.get_available(inventory_item_id)

        result = await self.session.execute(
            update(InventoryItem)
            .where(
                InventoryItem.id == inventory_item_id,
                InventoryItem.available >= amount,
            )
            .values(available=InventoryItem.available - amount)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            available = await self.get_available(inventory_item_id)
            logger.warning(
                "Stock deduction refused",
                inventory_item_id=str(inventory_item_id),
                requested=amount,
                available=available,
            )
            raise InsufficientStockError(
                [
                    StockShortfall(
                        inventory_item_id=inventory_item_id,
                        product_name=product_name or str(inventory_item_id),
                        requested=amount,
                        available=available,
                    )
                ]
            )

        new_available = await self.get_available(inventory_item_id)
        logger.debug(
            "Stock deducted",
            inventory_item_id=str(inventory_item_id),
            amount=amount,
            remaining=new_available,
        )
        return new_available
