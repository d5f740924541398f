"""Pricing error taxonomy"""


class PricingError(Exception):
    pass


class UnsupportedServiceType(PricingError, ValueError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Unsupported service type: {value}")


class UnsupportedVehicleCategory(PricingError, ValueError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Unsupported vehicle category: {value}")


class UnsupportedDurationBand(PricingError, ValueError):
    def __init__(self, value):
        self.value = value
        super().__init__(f"Unsupported duration band: {value}")


class ConfigurationError(PricingError):
    """Reference data is missing an entry for a valid enum member."""


class EstimatorUnavailable(PricingError):
    """The external estimator could not produce a usable suggestion."""
