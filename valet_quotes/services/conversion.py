"""Expected acceptance rate by price band"""
import logging
from typing import Dict, List, NamedTuple, Optional
from valet_quotes.core.enums import ServiceType

logger = logging.getLogger(__name__)

DEFAULT_CONVERSION_RATE = 0.5


class PriceBand(NamedTuple):
    lower: float
    upper: Optional[float]  # None means open-ended
    rate: float

    def contains(self, price: float) -> bool:
        return price >= self.lower and (self.upper is None or price <= self.upper)

    @property
    def label(self) -> str:
        if self.upper is None:
            return f"{self.lower:g}+"
        return f"{self.lower:g}-{self.upper:g}"


CONVERSION_BANDS: Dict[ServiceType, List[PriceBand]] = {
    ServiceType.EVENT: [
        PriceBand(40, 50, 0.85),
        PriceBand(50, 60, 0.75),
        PriceBand(60, 70, 0.65),
        PriceBand(70, 80, 0.50),
        PriceBand(80, None, 0.35),
    ],
    ServiceType.RESTAURANT: [
        PriceBand(30, 40, 0.90),
        PriceBand(40, 50, 0.80),
        PriceBand(50, 60, 0.65),
        PriceBand(60, 70, 0.45),
        PriceBand(70, None, 0.30),
    ],
    ServiceType.HOTEL: [
        PriceBand(35, 45, 0.88),
        PriceBand(45, 55, 0.78),
        PriceBand(55, 65, 0.68),
        PriceBand(65, 75, 0.52),
        PriceBand(75, None, 0.38),
    ],
    ServiceType.CORPORATE: [
        PriceBand(50, 65, 0.82),
        PriceBand(65, 80, 0.72),
        PriceBand(80, 95, 0.62),
        PriceBand(95, 110, 0.48),
        PriceBand(110, None, 0.35),
    ],
    ServiceType.PRIVATE: [
        PriceBand(45, 60, 0.86),
        PriceBand(60, 75, 0.76),
        PriceBand(75, 90, 0.66),
        PriceBand(90, 105, 0.51),
        PriceBand(105, None, 0.38),
    ],
}


def find_band(service_type: ServiceType, price: float) -> Optional[PriceBand]:
    for band in CONVERSION_BANDS.get(service_type, []):
        if band.contains(price):
            return band
    return None


def expected_conversion(service_type: ServiceType, price: float) -> float:
    band = find_band(service_type, price)
    if band is None:
        logger.warning(
            f"Price {price} for {service_type} falls outside every conversion band, "
            f"using default rate {DEFAULT_CONVERSION_RATE}"
        )
        return DEFAULT_CONVERSION_RATE
    return band.rate


def nudge_toward_best_band(service_type: ServiceType, price: float) -> float:
    """Shallow search: only the band containing the price is considered,
    so the price is returned as-is."""
    best_price = price
    best_rate = 0.0
    for band in CONVERSION_BANDS.get(service_type, []):
        if band.contains(price) and band.rate > best_rate:
            best_rate = band.rate
            best_price = price
    return best_price
