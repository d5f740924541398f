from datetime import datetime, timezone
from typing import Optional
from valet_quotes.core.enums import ServiceType, Season
from valet_quotes.services.demand import current_season

PRICE_ELASTICITY = {
    ServiceType.EVENT: -0.7,
    ServiceType.RESTAURANT: -0.9,
    ServiceType.HOTEL: -0.8,
    ServiceType.CORPORATE: -0.5,
    ServiceType.PRIVATE: -0.6,
}

SEASONAL_DEMAND = {
    Season.SPRING: {ServiceType.EVENT: 1.1, ServiceType.RESTAURANT: 1.0, ServiceType.HOTEL: 1.2,
                    ServiceType.CORPORATE: 0.9, ServiceType.PRIVATE: 1.3},
    Season.SUMMER: {ServiceType.EVENT: 1.4, ServiceType.RESTAURANT: 1.2, ServiceType.HOTEL: 1.5,
                    ServiceType.CORPORATE: 0.8, ServiceType.PRIVATE: 1.6},
    Season.FALL: {ServiceType.EVENT: 1.2, ServiceType.RESTAURANT: 1.1, ServiceType.HOTEL: 1.3,
                  ServiceType.CORPORATE: 1.1, ServiceType.PRIVATE: 1.4},
    Season.WINTER: {ServiceType.EVENT: 0.8, ServiceType.RESTAURANT: 0.9, ServiceType.HOTEL: 0.9,
                    ServiceType.CORPORATE: 1.2, ServiceType.PRIVATE: 0.7},
}

COMPETITOR_PRICING = {
    ServiceType.EVENT: {"min": 35, "avg": 52, "max": 75},
    ServiceType.RESTAURANT: {"min": 25, "avg": 42, "max": 65},
    ServiceType.HOTEL: {"min": 30, "avg": 48, "max": 70},
    ServiceType.CORPORATE: {"min": 45, "avg": 68, "max": 95},
    ServiceType.PRIVATE: {"min": 40, "avg": 58, "max": 85},
}

MARKET_BENCHMARKS = {
    ServiceType.EVENT: {"low": 45, "avg": 58, "high": 75},
    ServiceType.RESTAURANT: {"low": 35, "avg": 48, "high": 62},
    ServiceType.HOTEL: {"low": 40, "avg": 52, "high": 68},
    ServiceType.CORPORATE: {"low": 55, "avg": 72, "high": 95},
    ServiceType.PRIVATE: {"low": 50, "avg": 65, "high": 85},
}
DEFAULT_BENCHMARK = {"low": 40, "avg": 55, "high": 75}


def service_type_trends(service_type: ServiceType, now: Optional[datetime] = None) -> dict:
    now = now or datetime.now(timezone.utc)
    seasonal = SEASONAL_DEMAND[current_season(now)][service_type]

    if seasonal > 1.1:
        adjustment = "increase"
    elif seasonal < 0.9:
        adjustment = "decrease"
    else:
        adjustment = "maintain"

    return {
        "seasonal_demand": seasonal,
        "price_elasticity": PRICE_ELASTICITY[service_type],
        "recommended_adjustment": adjustment,
        "competitor_average": COMPETITOR_PRICING[service_type]["avg"],
    }


def market_benchmarks(service_type: ServiceType) -> dict:
    return MARKET_BENCHMARKS.get(service_type, DEFAULT_BENCHMARK)
