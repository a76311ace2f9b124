"""
Pytest configuration and shared test fixtures.

Every test gets a fresh in-memory SQLite database with all tables created,
plus factories for customers, inventory items and requested orders.
"""

import os

os.environ.setdefault("APP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENVIRONMENT", "test")

from decimal import Decimal
from typing import AsyncGenerator, Awaitable, Callable, Optional, Sequence
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from salesdesk.core.config import Settings
from salesdesk.core.identity import OperatorIdentity
from salesdesk.database.connection import (
    create_engine,
    create_session_factory,
    init_database,
)
from salesdesk.database.models import (
    Customer,
    InventoryItem,
    Order,
    OrderLineItem,
)
from salesdesk.services.audit.recorder import AuditRecorder
from salesdesk.services.fulfillment.enums import OrderStatus, PaymentType
from salesdesk.services.fulfillment.service import FulfillmentService
from salesdesk.services.fulfillment.workspace import WorkspaceRegistry

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
def settings() -> Settings:
    """Test settings with claim ownership enforced."""
    return Settings(
        database_url=TEST_DATABASE_URL,
        environment="test",
        enforce_claim_owner=True,
        default_payment_terms=1,
        max_payment_terms=60,
        first_installment_offset_months=1,
    )


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Fresh in-memory database with every table created.

    Yields:
        AsyncEngine bound to a single shared SQLite connection
    """
    engine = create_engine(TEST_DATABASE_URL)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Session used by the code under test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def registry() -> WorkspaceRegistry:
    return WorkspaceRegistry()


@pytest.fixture
def audit_recorder(session_factory: async_sessionmaker[AsyncSession]) -> AuditRecorder:
    return AuditRecorder(session_factory)


@pytest.fixture
def service(
    db_session: AsyncSession,
    audit_recorder: AuditRecorder,
    registry: WorkspaceRegistry,
    settings: Settings,
) -> FulfillmentService:
    """FulfillmentService wired to the test database."""
    return FulfillmentService(
        db_session,
        audit_recorder=audit_recorder,
        registry=registry,
        settings=settings,
    )


@pytest.fixture
def operator() -> OperatorIdentity:
    return OperatorIdentity(email="ana.reyes@example.com", role="sales", name="Ana Reyes")


@pytest.fixture
def other_operator() -> OperatorIdentity:
    return OperatorIdentity(email="joel.tan@example.com", role="sales", name="Joel Tan")


@pytest.fixture
def make_customer(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[Customer]]:
    """Factory for persisted customers."""
    counter = {"n": 0}

    async def _make(
        payment_type: PaymentType = PaymentType.CASH,
        name: str = "Rivera Hardware",
    ) -> Customer:
        counter["n"] += 1
        customer = Customer(
            code=f"TX-{counter['n']:04d}",
            name=name,
            email=f"orders{counter['n']}@rivera.example.com",
            payment_type=payment_type,
            address="12 Mabini St",
            contact_number="09171234567",
        )
        db_session.add(customer)
        await db_session.commit()
        return customer

    return _make


@pytest.fixture
def make_item(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[InventoryItem]]:
    """Factory for persisted inventory items."""
    counter = {"n": 0}

    async def _make(
        available: int = 100,
        unit_price: Decimal = Decimal("50.00"),
        cost_price: Optional[Decimal] = Decimal("30.00"),
        product_name: Optional[str] = None,
    ) -> InventoryItem:
        counter["n"] += 1
        item = InventoryItem(
            sku=f"SKU-{counter['n']:04d}",
            product_name=product_name or f"Product {counter['n']}",
            unit="pcs",
            available=available,
            unit_price=unit_price,
            cost_price=cost_price,
        )
        db_session.add(item)
        await db_session.commit()
        return item

    return _make


@pytest.fixture
def make_order(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[Order]]:
    """
    Factory for requested orders.

    ``lines`` is a sequence of (inventory_item, quantity) or
    (inventory_item, quantity, unit_price) tuples.
    """

    async def _make(
        customer: Customer,
        lines: Sequence[tuple],
        payment_terms: Optional[int] = None,
        interest_percent: Optional[Decimal] = None,
        status: OrderStatus = OrderStatus.REQUESTED,
    ) -> Order:
        line_items = []
        total = Decimal("0")
        for line_no, line in enumerate(lines, start=1):
            item, quantity = line[0], line[1]
            unit_price = line[2] if len(line) > 2 else item.unit_price
            total += Decimal(quantity) * unit_price
            line_items.append(
                OrderLineItem(
                    line_no=line_no,
                    inventory_item_id=item.id,
                    quantity=quantity,
                    unit_price=unit_price,
                )
            )

        order = Order(
            customer_id=customer.id,
            status=status,
            total_amount=total,
            payment_terms=payment_terms,
            interest_percent=interest_percent,
            line_items=line_items,
        )
        db_session.add(order)
        await db_session.commit()
        return order

    return _make


@pytest.fixture
def available_of(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[UUID], Awaitable[int]]:
    """Read current availability through a separate session.

    Deductions are conditional UPDATE statements, so loaded InventoryItem
    objects do not see them.
    """

    async def _read(item_id: UUID) -> int:
        async with session_factory() as session:
            result = await session.execute(
                select(InventoryItem.available).where(InventoryItem.id == item_id)
            )
            return result.scalar_one()

    return _read


@pytest.fixture
def load_order(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[UUID], Awaitable[Order]]:
    """Read an order with its lines through a separate session."""

    async def _read(order_id: UUID) -> Order:
        async with session_factory() as session:
            result = await session.execute(
                select(Order)
                .where(Order.id == order_id)
                .options(selectinload(Order.line_items))
            )
            return result.scalar_one()

    return _read


@pytest.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
    registry: WorkspaceRegistry,
    audit_recorder: AuditRecorder,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app with sessions, registry and audit bound to the test database."""
    from salesdesk.api.deps import get_audit_recorder, get_workspace_registry
    from salesdesk.database.connection import get_db
    from salesdesk.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_workspace_registry] = lambda: registry
    app.dependency_overrides[get_audit_recorder] = lambda: audit_recorder

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def operator_headers() -> dict[str, str]:
    return {
        "X-Operator-Email": "Ana.Reyes@example.com",
        "X-Operator-Role": "sales",
        "X-Operator-Name": "Ana Reyes",
    }
