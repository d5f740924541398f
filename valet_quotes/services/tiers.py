"""Reference pricing tiers per service type."""
from typing import Dict
from pydantic import BaseModel, ConfigDict, model_validator
from valet_quotes.core.enums import ServiceType, LocationCategory, DurationBand
from valet_quotes.core.exceptions import ConfigurationError


class PriceRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float
    max: float
    optimal: float

    @model_validator(mode="after")
    def check_bounds(self):
        if not (self.min <= self.optimal <= self.max):
            raise ConfigurationError(
                f"Invalid price range: expected min <= optimal <= max, got {self.min}/{self.optimal}/{self.max}"
            )
        return self


class ServiceTier(BaseModel):
    model_config = ConfigDict(frozen=True)

    base: PriceRange
    luxury_premium: PriceRange
    exotic_premium: PriceRange
    location_premium: Dict[LocationCategory, float] = {}
    duration_multiplier: Dict[DurationBand, float] = {}

    @model_validator(mode="after")
    def check_multipliers(self):
        for band, multiplier in self.duration_multiplier.items():
            if multiplier < 1.0:
                raise ConfigurationError(f"Duration multiplier for {band} must be >= 1.0, got {multiplier}")
        return self


def _location(downtown: float, suburban: float, remote: float) -> Dict[LocationCategory, float]:
    return {
        LocationCategory.DOWNTOWN: downtown,
        LocationCategory.SUBURBAN: suburban,
        LocationCategory.REMOTE: remote,
    }


def _duration(*multipliers: float) -> Dict[DurationBand, float]:
    return dict(zip(DurationBand, multipliers))


PRICING_TIERS: Dict[ServiceType, ServiceTier] = {
    ServiceType.EVENT: ServiceTier(
        base=PriceRange(min=40, max=60, optimal=50),
        luxury_premium=PriceRange(min=15, max=25, optimal=20),
        exotic_premium=PriceRange(min=25, max=40, optimal=32),
        location_premium=_location(15, 0, 8),
        duration_multiplier=_duration(1.0, 1.1, 1.2, 1.3, 1.4),
    ),
    ServiceType.RESTAURANT: ServiceTier(
        base=PriceRange(min=30, max=50, optimal=40),
        luxury_premium=PriceRange(min=10, max=20, optimal=15),
        exotic_premium=PriceRange(min=20, max=35, optimal=27),
        location_premium=_location(12, 0, 6),
        duration_multiplier=_duration(1.0, 1.0, 1.1, 1.2, 1.3),
    ),
    ServiceType.HOTEL: ServiceTier(
        base=PriceRange(min=35, max=55, optimal=45),
        luxury_premium=PriceRange(min=12, max=22, optimal=17),
        exotic_premium=PriceRange(min=22, max=37, optimal=29),
        location_premium=_location(13, 0, 7),
        duration_multiplier=_duration(1.0, 1.0, 1.1, 1.2, 1.3),
    ),
    ServiceType.CORPORATE: ServiceTier(
        base=PriceRange(min=50, max=75, optimal=62),
        luxury_premium=PriceRange(min=18, max=28, optimal=23),
        exotic_premium=PriceRange(min=28, max=43, optimal=35),
        location_premium=_location(18, 0, 10),
        duration_multiplier=_duration(1.0, 1.1, 1.2, 1.3, 1.4),
    ),
    ServiceType.PRIVATE: ServiceTier(
        base=PriceRange(min=45, max=65, optimal=55),
        luxury_premium=PriceRange(min=15, max=25, optimal=20),
        exotic_premium=PriceRange(min=25, max=40, optimal=32),
        location_premium=_location(15, 0, 8),
        duration_multiplier=_duration(1.0, 1.1, 1.2, 1.3, 1.4),
    ),
}


def get_tier(service_type: ServiceType, tiers: Dict[ServiceType, ServiceTier] = PRICING_TIERS) -> ServiceTier:
    try:
        return tiers[service_type]
    except KeyError:
        raise ConfigurationError(f"No pricing tier configured for service type '{service_type}'")


def duration_multiplier(tier: ServiceTier, band: DurationBand) -> float:
    try:
        return tier.duration_multiplier[band]
    except KeyError:
        raise ConfigurationError(f"No duration multiplier configured for band '{band}'")


def location_premium(tier: ServiceTier, category: LocationCategory) -> float:
    return tier.location_premium.get(category, 0.0)
