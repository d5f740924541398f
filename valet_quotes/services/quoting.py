import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from valet_quotes.schemas.quote import QuoteRequest, QuoteResult
from valet_quotes.core.enums import ServiceType, EstimatorStatus
from valet_quotes.core.config import settings
from valet_quotes.core.metrics import quotes_calculated
from valet_quotes.services.pricing import resolve_price, blend_quotes
from valet_quotes.services.history import HistoricalStore
from valet_quotes.services.estimator import PriceEstimator, EstimatorContext
from valet_quotes.services.market import service_type_trends

logger = logging.getLogger(__name__)


class QuoteService:

    def __init__(
        self,
        store: HistoricalStore,
        estimator: Optional[PriceEstimator] = None,
        estimator_timeout: Optional[float] = None,
    ):
        self.store = store
        self.estimator = estimator
        if estimator_timeout is None:
            estimator_timeout = settings.ESTIMATOR_TIMEOUT
        self.estimator_timeout = estimator_timeout

    async def _suggest(self, req: QuoteRequest, context: EstimatorContext):
        try:
            return await asyncio.wait_for(self.estimator.suggest(req, context), timeout=self.estimator_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Estimator exceeded {self.estimator_timeout}s, using tier pricing")
            return None

    async def quote(self, req: QuoteRequest, now: Optional[datetime] = None) -> QuoteResult:
        now = now or datetime.now(timezone.utc)
        tier_quote = resolve_price(req, now)
        service_type = ServiceType(req.service_type)

        prediction = await self.store.predict(req, now)

        final_quote = tier_quote
        if self.estimator is None:
            status = EstimatorStatus.DISABLED
        else:
            context = EstimatorContext(
                tier_quote=tier_quote,
                historical_prediction=prediction,
                market_insights=service_type_trends(service_type, now),
            )
            suggestion = await self._suggest(req, context)
            if suggestion is None:
                status = EstimatorStatus.UNAVAILABLE
            elif suggestion.confidence > settings.BLEND_CONFIDENCE_THRESHOLD:
                final_quote = blend_quotes(service_type, tier_quote, suggestion, prediction)
                status = EstimatorStatus.BLENDED
            else:
                logger.info(f"Estimator confidence {suggestion.confidence} too low, using tier pricing")
                status = EstimatorStatus.LOW_CONFIDENCE

        quotes_calculated.labels(service_type=str(service_type), strategy=str(final_quote.strategy)).inc()
        return QuoteResult(
            quote=final_quote,
            tier_quote=tier_quote,
            historical_prediction=prediction,
            estimator_status=status,
        )
