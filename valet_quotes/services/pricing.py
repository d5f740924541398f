import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from valet_quotes.schemas.quote import (
    QuoteRequest,
    PriceQuote,
    HistoricalPrediction,
    PricingOption,
    PricingOptions,
)
from valet_quotes.core.enums import ServiceType, VehicleCategory, DurationBand, PricingStrategy
from valet_quotes.core.exceptions import (
    UnsupportedServiceType,
    UnsupportedVehicleCategory,
    UnsupportedDurationBand,
)
from valet_quotes.core.config import settings
from valet_quotes.services.tiers import get_tier, duration_multiplier, location_premium
from valet_quotes.services.location import classify
from valet_quotes.services.demand import demand_multiplier
from valet_quotes.services.conversion import expected_conversion, nudge_toward_best_band

logger = logging.getLogger(__name__)

TIER_CONFIDENCE = 0.92
MAX_CONFIDENCE = 0.95
HIGH_DEMAND_THRESHOLD = 1.05
OFF_PEAK_THRESHOLD = 0.95
PREMIUM_MARKUP = 1.15

TIER_WEIGHT = 0.4
SUGGESTED_WEIGHT = 0.4
HISTORY_WEIGHT = 0.2


def round_currency(amount: float) -> int:
    """Half-up rounding to whole dollars."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _coerce(enum_cls, value, error_cls):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        raise error_cls(value)


def resolve_price(
    req: QuoteRequest,
    now: Optional[datetime] = None,
    optimize_for_conversion: bool = True,
    include_market_factors: bool = True,
) -> PriceQuote:
    service_type = _coerce(ServiceType, req.service_type, UnsupportedServiceType)
    vehicle_category = _coerce(VehicleCategory, req.vehicle_category, UnsupportedVehicleCategory)
    duration_band = _coerce(DurationBand, req.duration_band, UnsupportedDurationBand)
    now = now or datetime.now(timezone.utc)

    tier = get_tier(service_type)
    base_price = tier.base.optimal
    additional_fees = 0.0
    factors = [f"{service_type} valet service"]

    if vehicle_category == VehicleCategory.LUXURY:
        additional_fees += tier.luxury_premium.optimal
        factors.append("Luxury vehicle handling")
    elif vehicle_category == VehicleCategory.EXOTIC:
        additional_fees += tier.exotic_premium.optimal
        factors.append("Exotic vehicle premium")

    location_category = classify(req.location)
    premium = location_premium(tier, location_category)
    if premium > 0:
        additional_fees += premium
        factors.append(f"{location_category} location premium")

    multiplier = duration_multiplier(tier, duration_band)
    base_price *= multiplier
    if multiplier > 1.0:
        factors.append(f"Extended duration ({duration_band})")

    total = base_price + additional_fees

    if include_market_factors:
        demand = demand_multiplier(now)
        total *= demand
        if demand > HIGH_DEMAND_THRESHOLD:
            factors.append("High demand period")
        elif demand < OFF_PEAK_THRESHOLD:
            factors.append("Off-peak pricing")

    if optimize_for_conversion:
        optimized = nudge_toward_best_band(service_type, total)
        if optimized != total:
            total = optimized
            factors.append("Conversion optimized")

    total = round_currency(total)
    return PriceQuote(
        base_price=round_currency(base_price),
        additional_fees=round_currency(additional_fees),
        total=total,
        estimated_duration=str(duration_band),
        factors=tuple(factors),
        confidence=TIER_CONFIDENCE,
        expected_conversion_rate=expected_conversion(service_type, total),
        strategy=PricingStrategy.TIER,
    )


def generate_pricing_options(req: QuoteRequest, now: Optional[datetime] = None) -> PricingOptions:
    now = now or datetime.now(timezone.utc)
    competitive = resolve_price(req, now)
    unoptimized = resolve_price(req, now, optimize_for_conversion=False)
    premium_total = round_currency(competitive.total * PREMIUM_MARKUP)

    return PricingOptions(
        conservative=PricingOption(
            quote=resolve_price(req, now, optimize_for_conversion=True),
            strategy="conservative",
            description="Optimized for highest conversion rate",
        ),
        competitive=PricingOption(
            quote=competitive,
            strategy="competitive",
            description="Market-competitive pricing",
        ),
        premium=PricingOption(
            quote=unoptimized.model_copy(update={
                "total": premium_total,
                "expected_conversion_rate": expected_conversion(ServiceType(req.service_type), premium_total),
            }),
            strategy="premium",
            description="Premium service positioning",
        ),
    )


def blend_quotes(
    service_type: ServiceType,
    tier_quote: PriceQuote,
    suggestion: PriceQuote,
    prediction: Optional[HistoricalPrediction] = None,
) -> PriceQuote:
    """Weighted combination of tier, suggested and historical prices.

    The historical share is split evenly between the other two when no
    prediction clears the confidence threshold.
    """
    use_history = prediction is not None and prediction.confidence > settings.HISTORY_CONFIDENCE_THRESHOLD
    if use_history:
        blended = (
            tier_quote.total * TIER_WEIGHT
            + suggestion.total * SUGGESTED_WEIGHT
            + prediction.predicted_price * HISTORY_WEIGHT
        )
    else:
        blended = (
            tier_quote.total * (TIER_WEIGHT + HISTORY_WEIGHT / 2)
            + suggestion.total * (SUGGESTED_WEIGHT + HISTORY_WEIGHT / 2)
        )

    factors = list(tier_quote.factors) + ["AI market analysis"]
    if use_history:
        factors.append(f"Historical data ({prediction.sample_size} similar quotes)")

    total = round_currency(blended)
    logger.debug(f"Blended {service_type} quote: tier={tier_quote.total} suggested={suggestion.total} final={total}")
    return PriceQuote(
        base_price=tier_quote.base_price,
        additional_fees=round_currency(blended - tier_quote.base_price),
        total=total,
        estimated_duration=tier_quote.estimated_duration,
        factors=tuple(factors),
        confidence=min(MAX_CONFIDENCE, (tier_quote.confidence + suggestion.confidence) / 2),
        expected_conversion_rate=expected_conversion(service_type, total),
        strategy=PricingStrategy.HYBRID,
    )
