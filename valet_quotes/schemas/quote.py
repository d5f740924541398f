from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Tuple
from valet_quotes.core.enums import (
    ServiceType,
    VehicleCategory,
    DurationBand,
    PricingStrategy,
    EstimatorStatus,
)


class QuoteRequest(BaseModel):
    service_type: ServiceType
    vehicle_category: VehicleCategory = VehicleCategory.STANDARD
    location: str = Field(..., min_length=1, max_length=255)
    duration_band: DurationBand


class PriceQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_price: int
    additional_fees: int
    total: int
    estimated_duration: str
    factors: Tuple[str, ...] = ()
    confidence: float = Field(..., ge=0.0, le=1.0)
    expected_conversion_rate: float = Field(..., ge=0.0, le=1.0)
    strategy: PricingStrategy = PricingStrategy.TIER


class HistoricalPrediction(BaseModel):
    model_config = ConfigDict(frozen=True)

    predicted_price: int
    confidence: float = Field(..., ge=0.0, le=1.0)
    sample_size: int
    factors: Tuple[str, ...] = ()


class QuoteResult(BaseModel):
    """Final quote plus the deterministic tier quote it was built from.

    When the estimator is disabled, unavailable or not confident enough,
    ``quote`` equals ``tier_quote`` exactly and no fallback factor is added;
    the reason is carried by ``estimator_status`` only.
    """
    quote: PriceQuote
    tier_quote: PriceQuote
    historical_prediction: Optional[HistoricalPrediction] = None
    estimator_status: EstimatorStatus = Field(
        ...,
        description="blended when the estimator suggestion was used, otherwise why the tier quote was returned",
    )


class PricingOption(BaseModel):
    quote: PriceQuote
    strategy: str
    description: str


class PricingOptions(BaseModel):
    conservative: PricingOption
    competitive: PricingOption
    premium: PricingOption
