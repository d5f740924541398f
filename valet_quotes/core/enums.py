from enum import Enum


class ServiceType(str, Enum):
    EVENT = "event"
    RESTAURANT = "restaurant"
    HOTEL = "hotel"
    CORPORATE = "corporate"
    PRIVATE = "private"

    def __str__(self):
        return self.value


class VehicleCategory(str, Enum):
    STANDARD = "standard"
    LUXURY = "luxury"
    EXOTIC = "exotic"
    SUV = "suv"
    TRUCK = "truck"

    def __str__(self):
        return self.value


class LocationCategory(str, Enum):
    DOWNTOWN = "downtown"
    SUBURBAN = "suburban"
    REMOTE = "remote"

    def __str__(self):
        return self.value


class DurationBand(str, Enum):
    ONE_TO_TWO = "1-2"
    TWO_TO_FOUR = "2-4"
    FOUR_TO_SIX = "4-6"
    SIX_TO_EIGHT = "6-8"
    EIGHT_PLUS = "8+"

    def __str__(self):
        return self.value


class PricingStrategy(str, Enum):
    TIER = "tier"
    AI = "ai"
    HYBRID = "hybrid"

    def __str__(self):
        return self.value


class EstimatorStatus(str, Enum):
    DISABLED = "disabled"
    UNAVAILABLE = "unavailable"
    LOW_CONFIDENCE = "low_confidence"
    BLENDED = "blended"

    def __str__(self):
        return self.value


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"

    def __str__(self):
        return self.value
