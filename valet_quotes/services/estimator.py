"""Bridge to a third-party price suggestion service (OpenAI-compatible chat completions)"""
import json
import re
import time
import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from valet_quotes.schemas.quote import QuoteRequest, PriceQuote, HistoricalPrediction
from valet_quotes.core.enums import ServiceType, PricingStrategy
from valet_quotes.core.config import settings
from valet_quotes.core.exceptions import EstimatorUnavailable
from valet_quotes.core.metrics import estimator_requests, estimator_duration
from valet_quotes.services.conversion import expected_conversion
from valet_quotes.services.pricing import round_currency

logger = logging.getLogger(__name__)

JSON_OBJECT = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = (
    "You are a valet service pricing expert. Generate accurate, competitive quotes "
    "based on market rates and service factors."
)


class EstimatorContext(BaseModel):
    tier_quote: PriceQuote
    historical_prediction: Optional[HistoricalPrediction] = None
    market_insights: dict = {}


class EstimatorSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    base_price: float = Field(..., alias="basePrice", ge=0)
    additional_fees: float = Field(0.0, alias="additionalFees")
    total: float = Field(..., gt=0)
    estimated_time: Optional[str] = Field(None, alias="estimatedTime")
    factors: List[str] = []
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)


class PriceEstimator(ABC):
    """Never raises from suggest(): every failure becomes None."""

    async def suggest(self, req: QuoteRequest, context: EstimatorContext) -> Optional[PriceQuote]:
        start_time = time.time()
        try:
            suggestion = await self.fetch_suggestion(req, context)
            estimator_requests.labels(outcome="success").inc()
            return suggestion
        except httpx.TimeoutException:
            logger.warning(f"Estimator timeout for {req.service_type} quote")
            estimator_requests.labels(outcome="timeout").inc()
        except EstimatorUnavailable as e:
            logger.warning(f"Estimator unavailable: {e}")
            estimator_requests.labels(outcome="unavailable").inc()
        except Exception as e:
            logger.warning(f"Estimator request failed: {e}")
            estimator_requests.labels(outcome="error").inc()
        finally:
            estimator_duration.observe(time.time() - start_time)
        return None

    @abstractmethod
    async def fetch_suggestion(self, req: QuoteRequest, context: EstimatorContext) -> PriceQuote:
        ...


def build_prompt(req: QuoteRequest, context: EstimatorContext) -> str:
    tier = context.tier_quote
    lines = [
        "Generate a realistic valet service quote based on the following customer request:",
        "",
        f"Location: {req.location}",
        f"Service Type: {req.service_type}",
        f"Vehicle Category: {req.vehicle_category}",
        f"Duration: {req.duration_band} hours",
        "",
        f"Tier-based quote: base ${tier.base_price}, fees ${tier.additional_fees}, total ${tier.total}",
        f"Tier pricing factors: {', '.join(tier.factors)}",
    ]
    prediction = context.historical_prediction
    if prediction is not None:
        lines.append(
            f"Historical prediction: ${prediction.predicted_price} "
            f"(confidence {prediction.confidence:.2f}, {prediction.sample_size} similar quotes)"
        )
    if context.market_insights:
        lines.append(f"Market insights: {json.dumps(context.market_insights, sort_keys=True, default=str)}")
    lines += [
        "",
        "Provide a response in this exact JSON format:",
        "{",
        '  "basePrice": [number],',
        '  "additionalFees": [number],',
        '  "total": [number],',
        '  "estimatedTime": "[duration string]",',
        '  "factors": ["factor1", "factor2", "factor3"],',
        '  "confidence": [number between 0 and 1]',
        "}",
        "",
        "Make the pricing realistic and competitive. Factors should explain the pricing decisions.",
    ]
    return "\n".join(lines)


def parse_suggestion(content: str, req: QuoteRequest, default_confidence: float) -> PriceQuote:
    match = JSON_OBJECT.search(content or "")
    if not match:
        raise EstimatorUnavailable("Response contained no JSON object")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise EstimatorUnavailable(f"Malformed JSON in response: {e}")

    suggestion = EstimatorSuggestion.model_validate(data)
    total = round_currency(suggestion.total)
    confidence = suggestion.confidence if suggestion.confidence is not None else default_confidence
    return PriceQuote(
        base_price=round_currency(suggestion.base_price),
        additional_fees=round_currency(suggestion.additional_fees),
        total=total,
        estimated_duration=suggestion.estimated_time or str(req.duration_band),
        factors=tuple(suggestion.factors),
        confidence=confidence,
        expected_conversion_rate=expected_conversion(ServiceType(req.service_type), total),
        strategy=PricingStrategy.AI,
    )


class ChatCompletionEstimator(PriceEstimator):

    def __init__(
        self,
        url: str,
        api_key: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 300,
        default_confidence: float = 0.75,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.default_confidence = default_confidence
        self.timeout = timeout
        self._client = client

    async def fetch_suggestion(self, req: QuoteRequest, context: EstimatorContext) -> PriceQuote:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(req, context)},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        if self._client is not None:
            response = await self._client.post(self.url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.url, json=payload, headers=headers)

        if not 200 <= response.status_code < 300:
            raise EstimatorUnavailable(f"Status {response.status_code} from estimator")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise EstimatorUnavailable(f"Unexpected response shape: {e}")

        return parse_suggestion(content, req, self.default_confidence)


def build_estimator() -> Optional[PriceEstimator]:
    if not settings.ESTIMATOR_API_KEY:
        return None
    return ChatCompletionEstimator(
        url=settings.ESTIMATOR_URL,
        api_key=settings.ESTIMATOR_API_KEY,
        model=settings.ESTIMATOR_MODEL,
        temperature=settings.ESTIMATOR_TEMPERATURE,
        max_tokens=settings.ESTIMATOR_MAX_TOKENS,
        default_confidence=settings.ESTIMATOR_DEFAULT_CONFIDENCE,
        timeout=settings.ESTIMATOR_TIMEOUT,
    )
