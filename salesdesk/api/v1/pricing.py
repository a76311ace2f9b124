"""
Pricing quote endpoint.

Stateless: runs the pricing calculator on the posted lines and options.
"""

from fastapi import APIRouter, HTTPException, status

from salesdesk.api.deps import CurrentOperator
from salesdesk.core.logging import get_logger
from salesdesk.schemas.fulfillment import PricingQuoteRequest, PricingResponse
from salesdesk.services.pricing.calculator import PricingError, compute

logger = get_logger(__name__)

router = APIRouter(prefix="/pricing", tags=["pricing"])


@router.post("/quote", response_model=PricingResponse, summary="Quote order pricing")
async def quote(
    request: PricingQuoteRequest,
    operator: CurrentOperator,
) -> PricingResponse:
    lines, options = request.to_pricing_inputs()
    try:
        snapshot = compute(lines, options)
    except PricingError as e:
        logger.warning("Pricing quote rejected", error=str(e), context=e.context)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": type(e).__name__, "message": str(e)},
        ) from e
    return PricingResponse.from_snapshot(snapshot)
