"""
Order fulfillment API endpoints.

This module implements the FastAPI router for the operator workflow:
listing the order queue, claiming (accept) and rejecting orders, editing
the fulfillment workspace, validating it and completing the order. Service
errors are mapped to HTTP status codes with a structured detail body.
"""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from salesdesk.api.deps import CurrentOperator, Fulfillment
from salesdesk.core.logging import get_logger
from salesdesk.schemas.fulfillment import (
    CompletionResponse,
    InstallmentResponse,
    OrderListResponse,
    OrderResponse,
    OrderSummaryResponse,
    PricingResponse,
    ValidationResponse,
    WorkspaceResponse,
    WorkspaceUpdateRequest,
)
from salesdesk.services.fulfillment.enums import OrderStatus
from salesdesk.services.fulfillment.errors import (
    FulfillmentError,
    FulfillmentValidationError,
    InsufficientStockError,
    InvalidTransitionError,
    OrderNotFoundError,
    PartialWriteError,
    WorkspaceNotFoundError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])

_STATUS_BY_ERROR: list[tuple[type[FulfillmentError], int]] = [
    (OrderNotFoundError, status.HTTP_404_NOT_FOUND),
    (WorkspaceNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidTransitionError, status.HTTP_409_CONFLICT),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (FulfillmentValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PartialWriteError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def to_http_exception(error: FulfillmentError) -> HTTPException:
    """Map a fulfillment error to an HTTPException with a structured detail."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status_code = code
            break

    detail: dict[str, Any] = {
        "error": type(error).__name__,
        "message": error.message,
    }
    if isinstance(error, FulfillmentValidationError):
        detail["field_errors"] = error.field_errors
    elif isinstance(error, InsufficientStockError):
        detail["shortfalls"] = [s.to_dict() for s in error.shortfalls]
    elif isinstance(error, InvalidTransitionError):
        detail["current_state"] = (
            error.current_state.value if error.current_state else None
        )
        detail["target_state"] = error.target_state.value if error.target_state else None
    elif isinstance(error, PartialWriteError):
        detail["rolled_back"] = error.rolled_back
        detail["needs_reconciliation"] = error.needs_reconciliation

    if status_code >= 500:
        logger.error("Fulfillment request failed", **detail, context=error.context)
    else:
        logger.warning("Fulfillment request refused", **detail)

    return HTTPException(status_code=status_code, detail=detail)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Operator queue, oldest first, optionally filtered by status",
)
async def list_orders(
    service: Fulfillment,
    operator: CurrentOperator,
    status_filter: Optional[str] = Query(
        None, alias="status", description="Filter by order status, case-insensitive"
    ),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of records"),
) -> OrderListResponse:
    order_status: Optional[OrderStatus] = None
    if status_filter is not None:
        try:
            order_status = OrderStatus.from_string(status_filter)
        except ValueError as e:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)
            ) from e

    try:
        orders, total = await service.list_orders(
            status=order_status, skip=skip, limit=limit
        )
    except FulfillmentError as e:
        raise to_http_exception(e) from e

    return OrderListResponse(
        items=[OrderSummaryResponse.from_order(order) for order in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{order_id}", response_model=OrderResponse, summary="Get order details")
async def get_order(
    order_id: UUID,
    service: Fulfillment,
    operator: CurrentOperator,
) -> OrderResponse:
    try:
        order = await service.get_order(order_id)
    except FulfillmentError as e:
        raise to_http_exception(e) from e
    return OrderResponse.from_order(order)


@router.post(
    "/{order_id}/accept",
    response_model=WorkspaceResponse,
    summary="Accept order",
    description="Claim a requested order and open its fulfillment workspace",
)
async def accept_order(
    order_id: UUID,
    service: Fulfillment,
    operator: CurrentOperator,
) -> WorkspaceResponse:
    """
    Claim a requested order.

    Raises:
        HTTPException: 404 if the order does not exist, 409 if it is not
            requested or was claimed first by another operator
    """
    try:
        workspace = await service.accept(order_id, operator)
    except FulfillmentError as e:
        raise to_http_exception(e) from e
    return WorkspaceResponse.from_workspace(workspace)


@router.post("/{order_id}/reject", response_model=OrderResponse, summary="Reject order")
async def reject_order(
    order_id: UUID,
    service: Fulfillment,
    operator: CurrentOperator,
) -> OrderResponse:
    try:
        order = await service.reject(order_id, operator)
    except FulfillmentError as e:
        raise to_http_exception(e) from e
    return OrderResponse.from_order(order)


@router.get(
    "/{order_id}/workspace",
    response_model=WorkspaceResponse,
    summary="Get workspace",
    description="Current workspace with live pricing; reopens a cancelled workspace",
)
async def get_workspace(
    order_id: UUID,
    service: Fulfillment,
    operator: CurrentOperator,
    refresh: bool = Query(False, description="Re-read stock availability"),
) -> WorkspaceResponse:
    try:
        workspace = await service.get_workspace(order_id, operator, refresh=refresh)
    except FulfillmentError as e:
        raise to_http_exception(e) from e
    return WorkspaceResponse.from_workspace(workspace)


@router.patch(
    "/{order_id}/workspace",
    response_model=WorkspaceResponse,
    summary="Update workspace",
)
async def update_workspace(
    order_id: UUID,
    request: WorkspaceUpdateRequest,
    service: Fulfillment,
    operator: CurrentOperator,
) -> WorkspaceResponse:
    """Apply edits; nothing is written to storage."""
    try:
        workspace = service.update_workspace(
            order_id, operator, **request.to_update_kwargs()
        )
    except FulfillmentError as e:
        raise to_http_exception(e) from e
    return WorkspaceResponse.from_workspace(workspace)


@router.post(
    "/{order_id}/workspace/validate",
    response_model=ValidationResponse,
    summary="Validate workspace",
)
async def validate_workspace(
    order_id: UUID,
    service: Fulfillment,
    operator: CurrentOperator,
) -> ValidationResponse:
    try:
        errors = service.validate(order_id, operator)
    except FulfillmentError as e:
        raise to_http_exception(e) from e
    return ValidationResponse(valid=not errors, errors=errors)


@router.delete(
    "/{order_id}/workspace",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel workspace",
    description="Discard workspace edits; the order stays accepted",
)
async def cancel_workspace(
    order_id: UUID,
    service: Fulfillment,
    operator: CurrentOperator,
) -> None:
    try:
        discarded = service.cancel(order_id, operator)
    except FulfillmentError as e:
        raise to_http_exception(e) from e
    if not discarded:
        raise to_http_exception(
            WorkspaceNotFoundError("No open workspace for order", order_id=str(order_id))
        )


@router.post(
    "/{order_id}/complete",
    response_model=CompletionResponse,
    summary="Complete order",
    description="Persist the workspace: deduct stock, record sales, write totals",
)
async def complete_order(
    order_id: UUID,
    service: Fulfillment,
    operator: CurrentOperator,
) -> CompletionResponse:
    """
    Complete an accepted order from its open workspace.

    Raises:
        HTTPException: 404 without an open workspace, 409 on a state conflict
            or stock shortfall, 422 on invalid fields, 500 on a failed write
    """
    try:
        workspace = service.registry.get(order_id)
        result = await service.complete(order_id, workspace, operator)
    except FulfillmentError as e:
        raise to_http_exception(e) from e

    return CompletionResponse(
        order=OrderResponse.from_order(result.order),
        pricing=PricingResponse.from_snapshot(result.pricing),
        sale_count=result.sale_count,
        installments=[
            InstallmentResponse.model_validate(i) for i in result.installments
        ],
    )
