"""Quote endpoints"""
import logging
from fastapi import APIRouter, Depends

from valet_quotes.schemas.quote import QuoteRequest, QuoteResult, PricingOptions
from valet_quotes.services.pricing import generate_pricing_options
from valet_quotes.services.quoting import QuoteService
from valet_quotes.api.deps import get_quote_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/quotes", tags=["quotes"])


@router.post("/calc", response_model=QuoteResult)
async def calc_quote(req: QuoteRequest, service: QuoteService = Depends(get_quote_service)):
    result = await service.quote(req)
    logger.info(
        f"Quoted {req.service_type}/{req.vehicle_category} at ${result.quote.total} "
        f"(estimator: {result.estimator_status})"
    )
    return result


@router.post("/options", response_model=PricingOptions)
async def quote_options(req: QuoteRequest):
    return generate_pricing_options(req)
