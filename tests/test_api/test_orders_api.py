"""
API tests for the order fulfillment endpoints.

Exercises the operator workflow over HTTP and the mapping of fulfillment
errors to status codes.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient

from salesdesk.services.fulfillment.enums import PaymentType

API = "/api/v1/orders"


@pytest.fixture
async def requested_order(make_customer, make_item, make_order):
    customer = await make_customer(PaymentType.CASH, name="Rivera Hardware")
    item = await make_item(available=20, unit_price=Decimal("50.00"), product_name="Hex Bolt")
    order = await make_order(customer, [(item, 10)])
    return order, item


class TestIdentity:
    @pytest.mark.asyncio
    async def test_missing_operator_header(self, client: AsyncClient) -> None:
        response = await client.get(API)
        assert response.status_code == 401


class TestQueue:
    @pytest.mark.asyncio
    async def test_list_and_filter(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        response = await client.get(API, headers=operator_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["status"] == "requested"
        assert data["items"][0]["customer_name"] == "Rivera Hardware"

        response = await client.get(
            API, params={"status": "completed"}, headers=operator_headers
        )
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_status_filter_ignores_case(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        response = await client.get(
            API, params={"status": "Requested"}, headers=operator_headers
        )
        assert response.status_code == 200
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client: AsyncClient, operator_headers) -> None:
        response = await client.get(API, params={"status": "shipped"}, headers=operator_headers)
        assert response.status_code == 422
        assert "Valid values are" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_get_order(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        response = await client.get(f"{API}/{order.id}", headers=operator_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 1
        assert data["lines"][0]["quantity"] == 10
        assert data["grand_total_with_interest"] is None
        assert data["allowed_transitions"] == ["accepted", "rejected"]

    @pytest.mark.asyncio
    async def test_unknown_order(self, client: AsyncClient, operator_headers) -> None:
        response = await client.get(f"{API}/{uuid4()}", headers=operator_headers)
        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "OrderNotFoundError"


class TestWorkflow:
    @pytest.mark.asyncio
    async def test_accept_edit_complete(
        self, client: AsyncClient, operator_headers, requested_order, available_of
    ) -> None:
        order, item = requested_order

        response = await client.post(f"{API}/{order.id}/accept", headers=operator_headers)
        assert response.status_code == 200
        workspace = response.json()
        assert workspace["operator_email"] == "ana.reyes@example.com"
        assert workspace["lines"][0]["fulfilled_qty"] == 10
        assert workspace["validation_errors"] == {"po_number": "PO number is required"}

        response = await client.patch(
            f"{API}/{order.id}/workspace",
            json={
                "lines": [{"line_no": 1, "discount_percent": "10"}],
                "po_number": "1001",
            },
            headers=operator_headers,
        )
        assert response.status_code == 200
        assert Decimal(response.json()["pricing"]["grand_total"]) == Decimal("504")

        response = await client.post(
            f"{API}/{order.id}/workspace/validate", headers=operator_headers
        )
        assert response.json() == {"valid": True, "errors": {}}

        response = await client.post(f"{API}/{order.id}/complete", headers=operator_headers)
        assert response.status_code == 200
        result = response.json()
        assert result["order"]["status"] == "completed"
        assert Decimal(result["order"]["grand_total_with_interest"]) == Decimal("504")
        assert result["sale_count"] == 1
        assert result["installments"] == []
        assert await available_of(item.id) == 10

        response = await client.get(f"{API}/{order.id}/workspace", headers=operator_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_accept_twice_conflicts(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        await client.post(f"{API}/{order.id}/accept", headers=operator_headers)

        response = await client.post(
            f"{API}/{order.id}/accept",
            headers={"X-Operator-Email": "joel.tan@example.com"},
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["error"] == "InvalidTransitionError"
        assert detail["current_state"] == "accepted"

    @pytest.mark.asyncio
    async def test_reject(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        response = await client.post(f"{API}/{order.id}/reject", headers=operator_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["processed_by"] == "ana.reyes@example.com"

        response = await client.post(f"{API}/{order.id}/accept", headers=operator_headers)
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_complete_with_invalid_fields(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        await client.post(f"{API}/{order.id}/accept", headers=operator_headers)
        await client.patch(
            f"{API}/{order.id}/workspace",
            json={"po_number": "12ab", "rep_name": "R2D2"},
            headers=operator_headers,
        )

        response = await client.post(f"{API}/{order.id}/complete", headers=operator_headers)

        assert response.status_code == 422
        assert set(response.json()["detail"]["field_errors"]) == {"po_number", "rep_name"}

    @pytest.mark.asyncio
    async def test_complete_with_shortfall(
        self, client: AsyncClient, operator_headers, make_customer, make_item, make_order
    ) -> None:
        customer = await make_customer()
        item = await make_item(available=5, product_name="Duct Tape")
        order = await make_order(customer, [(item, 6)])

        await client.post(f"{API}/{order.id}/accept", headers=operator_headers)
        await client.patch(
            f"{API}/{order.id}/workspace", json={"po_number": "2002"}, headers=operator_headers
        )
        response = await client.post(f"{API}/{order.id}/complete", headers=operator_headers)

        assert response.status_code == 409
        shortfall = response.json()["detail"]["shortfalls"][0]
        assert shortfall["product_name"] == "Duct Tape"
        assert shortfall["requested"] == 6
        assert shortfall["available"] == 5

    @pytest.mark.asyncio
    async def test_complete_without_workspace(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        response = await client.post(f"{API}/{order.id}/complete", headers=operator_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_edit_by_other_operator(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        await client.post(f"{API}/{order.id}/accept", headers=operator_headers)

        response = await client.patch(
            f"{API}/{order.id}/workspace",
            json={"po_number": "3003"},
            headers={"X-Operator-Email": "joel.tan@example.com"},
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_validate_by_other_operator(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        await client.post(f"{API}/{order.id}/accept", headers=operator_headers)

        response = await client.post(
            f"{API}/{order.id}/workspace/validate",
            headers={"X-Operator-Email": "joel.tan@example.com"},
        )
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_duplicate_line_edit_rejected(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        await client.post(f"{API}/{order.id}/accept", headers=operator_headers)

        response = await client.patch(
            f"{API}/{order.id}/workspace",
            json={"lines": [{"line_no": 1, "fulfilled_qty": 1}, {"line_no": 1}]},
            headers=operator_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "Validation Error"

    @pytest.mark.asyncio
    async def test_cancel_and_reopen(
        self, client: AsyncClient, operator_headers, requested_order
    ) -> None:
        order, _ = requested_order
        await client.post(f"{API}/{order.id}/accept", headers=operator_headers)
        await client.patch(
            f"{API}/{order.id}/workspace", json={"po_number": "4004"}, headers=operator_headers
        )

        response = await client.delete(f"{API}/{order.id}/workspace", headers=operator_headers)
        assert response.status_code == 204

        response = await client.delete(f"{API}/{order.id}/workspace", headers=operator_headers)
        assert response.status_code == 404

        response = await client.get(f"{API}/{order.id}/workspace", headers=operator_headers)
        assert response.status_code == 200
        assert response.json()["po_number"] == ""
