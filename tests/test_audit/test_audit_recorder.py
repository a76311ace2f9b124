"""
Tests for the audit recorder.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from salesdesk.core.identity import OperatorIdentity
from salesdesk.database.models import AuditLogEntry
from salesdesk.services.audit.recorder import (
    ACTION_ACCEPT,
    AuditRecorder,
    to_jsonable,
)
from salesdesk.services.fulfillment.enums import PaymentType


@pytest.fixture
def actor() -> OperatorIdentity:
    return OperatorIdentity(email="ana.reyes@example.com", role="sales")


class TestToJsonable:
    def test_converts_nested_values(self) -> None:
        order_id = uuid4()
        payload = to_jsonable(
            {
                "order_id": order_id,
                "total": Decimal("504.00"),
                "payment_type": PaymentType.CREDIT,
                "due": date(2026, 2, 1),
                "items": [{"unit_price": Decimal("50")}],
            }
        )

        assert payload == {
            "order_id": str(order_id),
            "total": 504.0,
            "payment_type": "Credit",
            "due": "2026-02-01",
            "items": [{"unit_price": 50.0}],
        }


class TestRecord:
    @pytest.mark.asyncio
    async def test_record_persists_entry(self, session_factory, actor) -> None:
        recorder = AuditRecorder(session_factory)

        entry = await recorder.record(
            actor, ACTION_ACCEPT, {"order_id": uuid4(), "total_amount": Decimal("10")}
        )

        assert entry is not None
        async with session_factory() as session:
            stored = (await session.execute(select(AuditLogEntry))).scalars().all()

        assert len(stored) == 1
        assert stored[0].action == "Accept Sales Order"
        assert stored[0].actor_email == actor.email
        assert stored[0].actor_role == "sales"
        assert stored[0].details["total_amount"] == 10.0

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, session_factory, actor) -> None:
        recorder = AuditRecorder(session_factory)

        with patch(
            "sqlalchemy.ext.asyncio.AsyncSession.commit",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            entry = await recorder.record(actor, ACTION_ACCEPT, {})

        assert entry is None
        async with session_factory() as session:
            stored = (await session.execute(select(AuditLogEntry))).scalars().all()
        assert stored == []

    @pytest.mark.asyncio
    async def test_session_factory_failure_is_swallowed(self, actor) -> None:
        factory = MagicMock(side_effect=RuntimeError("pool exhausted"))
        recorder = AuditRecorder(factory)

        assert await recorder.record(actor, ACTION_ACCEPT) is None
