import pytest
from datetime import datetime, timezone
from pydantic import ValidationError

from valet_quotes.services.pricing import (
    resolve_price,
    generate_pricing_options,
    blend_quotes,
    round_currency,
)
from valet_quotes.services.tiers import PRICING_TIERS, PriceRange, ServiceTier, get_tier
from valet_quotes.schemas.quote import QuoteRequest, PriceQuote, HistoricalPrediction
from valet_quotes.core.enums import ServiceType, VehicleCategory, DurationBand, PricingStrategy
from valet_quotes.core.exceptions import (
    UnsupportedServiceType,
    UnsupportedVehicleCategory,
    UnsupportedDurationBand,
    ConfigurationError,
)

NEUTRAL_NOW = datetime(2025, 4, 17, 14, 0, tzinfo=timezone.utc)
SATURDAY_SUMMER_EVENING = datetime(2025, 7, 19, 19, 0, tzinfo=timezone.utc)
MONDAY_WINTER_MORNING = datetime(2025, 1, 13, 8, 0, tzinfo=timezone.utc)


def _request(service_type="event", vehicle_category="standard", location="123 Main St, Suburb", duration_band="1-2"):
    return QuoteRequest(
        service_type=service_type,
        vehicle_category=vehicle_category,
        location=location,
        duration_band=duration_band,
    )


@pytest.mark.pricing
class TestReferenceScenarios:
    """Known quotes at a timestamp where the demand multiplier is 1.0"""

    def test_event_standard_suburban(self):
        quote = resolve_price(_request(), NEUTRAL_NOW)

        assert quote.base_price == 50
        assert quote.additional_fees == 0
        assert quote.total == 50
        assert quote.factors == ("event valet service",)
        assert quote.estimated_duration == "1-2"
        assert quote.expected_conversion_rate == 0.85
        assert quote.confidence == 0.92
        assert quote.strategy == PricingStrategy.TIER

    def test_event_exotic_downtown(self):
        quote = resolve_price(_request(vehicle_category="exotic", location="Downtown Plaza"), NEUTRAL_NOW)

        # 32 exotic + 15 downtown
        assert quote.base_price == 50
        assert quote.additional_fees == 47
        assert quote.total == 97
        assert "Exotic vehicle premium" in quote.factors
        assert "downtown location premium" in quote.factors
        assert quote.expected_conversion_rate == 0.35

    def test_corporate_extended_duration(self):
        quote = resolve_price(_request(service_type="corporate", duration_band="8+"), NEUTRAL_NOW)

        # 62 * 1.4 = 86.8
        assert quote.base_price == 87
        assert quote.additional_fees == 0
        assert quote.total == 87
        assert "Extended duration (8+)" in quote.factors
        assert quote.expected_conversion_rate == 0.62

    def test_restaurant_luxury_downtown(self):
        quote = resolve_price(
            _request(service_type="restaurant", vehicle_category="luxury", location="Downtown bistro"),
            NEUTRAL_NOW,
        )

        assert quote.base_price == 40
        assert quote.additional_fees == 27
        assert quote.total == 67
        assert quote.factors == (
            "restaurant valet service",
            "Luxury vehicle handling",
            "downtown location premium",
        )

    def test_remote_location_premium(self):
        quote = resolve_price(_request(location="Lakeside farm"), NEUTRAL_NOW)

        assert quote.additional_fees == 8
        assert "remote location premium" in quote.factors


@pytest.mark.pricing
class TestDemandAdjustment:

    def test_high_demand_period(self):
        quote = resolve_price(_request(), SATURDAY_SUMMER_EVENING)

        # 50 * 1.2 * 1.4 * 1.2 = 100.8
        assert quote.total == 101
        assert quote.base_price == 50
        assert "High demand period" in quote.factors

    def test_off_peak_pricing(self):
        quote = resolve_price(_request(), MONDAY_WINTER_MORNING)

        # 50 * 0.9 * 0.8 * 0.9 = 32.4
        assert quote.total == 32
        assert "Off-peak pricing" in quote.factors
        # below the lowest event band
        assert quote.expected_conversion_rate == 0.5

    def test_market_factors_can_be_excluded(self):
        quote = resolve_price(_request(), SATURDAY_SUMMER_EVENING, include_market_factors=False)

        assert quote.total == 50
        assert "High demand period" not in quote.factors

    def test_total_tracks_demand_multiplier(self):
        from valet_quotes.services.demand import demand_multiplier

        for now in (NEUTRAL_NOW, SATURDAY_SUMMER_EVENING, MONDAY_WINTER_MORNING):
            quote = resolve_price(_request(), now)
            assert abs(quote.total - 50 * demand_multiplier(now)) <= 0.5


@pytest.mark.pricing
class TestPricingProperties:

    @pytest.mark.parametrize("service_type", list(ServiceType))
    @pytest.mark.parametrize("vehicle_category", list(VehicleCategory))
    def test_determinism(self, service_type, vehicle_category):
        req = _request(service_type=service_type, vehicle_category=vehicle_category, location="Downtown hall")
        assert resolve_price(req, SATURDAY_SUMMER_EVENING) == resolve_price(req, SATURDAY_SUMMER_EVENING)

    @pytest.mark.parametrize("service_type", list(ServiceType))
    @pytest.mark.parametrize("duration_band", list(DurationBand))
    @pytest.mark.parametrize("location", ["Downtown Plaza", "Quiet suburb", "Hilltop ranch"])
    def test_additivity(self, service_type, duration_band, location):
        for vehicle_category in VehicleCategory:
            req = _request(service_type, vehicle_category, location, duration_band)
            quote = resolve_price(req, NEUTRAL_NOW)
            assert abs(quote.total - (quote.base_price + quote.additional_fees)) <= 1

    @pytest.mark.parametrize("service_type", list(ServiceType))
    def test_duration_monotonicity(self, service_type):
        base_prices = [
            resolve_price(_request(service_type=service_type, duration_band=band), NEUTRAL_NOW).base_price
            for band in DurationBand
        ]
        assert base_prices == sorted(base_prices)

    @pytest.mark.parametrize("service_type", list(ServiceType))
    def test_premium_additivity(self, service_type):
        fees = [
            resolve_price(_request(service_type=service_type, vehicle_category=category), NEUTRAL_NOW).additional_fees
            for category in (VehicleCategory.STANDARD, VehicleCategory.LUXURY, VehicleCategory.EXOTIC)
        ]
        assert fees[0] < fees[1] < fees[2]

    @pytest.mark.parametrize("vehicle_category", [VehicleCategory.SUV, VehicleCategory.TRUCK])
    def test_suv_and_truck_carry_no_premium(self, vehicle_category):
        quote = resolve_price(_request(vehicle_category=vehicle_category), NEUTRAL_NOW)
        assert quote.additional_fees == 0

    @pytest.mark.parametrize("now", [NEUTRAL_NOW, SATURDAY_SUMMER_EVENING, MONDAY_WINTER_MORNING])
    def test_bounds(self, now):
        for service_type in ServiceType:
            for vehicle_category in VehicleCategory:
                quote = resolve_price(_request(service_type, vehicle_category, "Downtown"), now)
                assert 0.0 <= quote.confidence <= 1.0
                assert 0.0 <= quote.expected_conversion_rate <= 1.0


@pytest.mark.pricing
class TestInputValidation:

    def test_unknown_service_type_rejected_by_schema(self):
        with pytest.raises(ValidationError):
            _request(service_type="yacht")

    def test_empty_location_rejected(self):
        with pytest.raises(ValidationError):
            _request(location="")

    def test_unsupported_service_type(self):
        req = QuoteRequest.model_construct(
            service_type="yacht", vehicle_category="standard", location="Downtown", duration_band="1-2"
        )
        with pytest.raises(UnsupportedServiceType) as exc:
            resolve_price(req, NEUTRAL_NOW)
        assert exc.value.value == "yacht"
        assert isinstance(exc.value, ValueError)

    def test_unsupported_vehicle_category(self):
        req = QuoteRequest.model_construct(
            service_type="event", vehicle_category="bus", location="Downtown", duration_band="1-2"
        )
        with pytest.raises(UnsupportedVehicleCategory):
            resolve_price(req, NEUTRAL_NOW)

    def test_unsupported_duration_band(self):
        req = QuoteRequest.model_construct(
            service_type="event", vehicle_category="standard", location="Downtown", duration_band="12+"
        )
        with pytest.raises(UnsupportedDurationBand):
            resolve_price(req, NEUTRAL_NOW)


class TestTierTable:

    def test_every_service_type_has_a_tier(self):
        assert set(PRICING_TIERS) == set(ServiceType)

    def test_missing_tier_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            get_tier(ServiceType.EVENT, tiers={})

    def test_invalid_price_range(self):
        with pytest.raises(ConfigurationError):
            PriceRange(min=50, max=40, optimal=45)

    def test_duration_multiplier_below_one(self):
        with pytest.raises(ConfigurationError):
            ServiceTier(
                base=PriceRange(min=40, max=60, optimal=50),
                luxury_premium=PriceRange(min=15, max=25, optimal=20),
                exotic_premium=PriceRange(min=25, max=40, optimal=32),
                duration_multiplier={DurationBand.ONE_TO_TWO: 0.9},
            )


class TestRounding:

    @pytest.mark.parametrize("amount,expected", [
        (86.8, 87),
        (100.5, 101),
        (32.4, 32),
        (0.5, 1),
        (49.49, 49),
    ])
    def test_half_up(self, amount, expected):
        assert round_currency(amount) == expected


@pytest.mark.pricing
class TestPricingOptions:

    def test_three_options(self):
        options = generate_pricing_options(_request(), NEUTRAL_NOW)

        assert options.conservative.strategy == "conservative"
        assert options.competitive.strategy == "competitive"
        assert options.premium.strategy == "premium"
        assert options.competitive.quote.total == 50
        assert options.conservative.quote.total == 50

    def test_premium_markup(self):
        options = generate_pricing_options(_request(service_type="corporate", duration_band="8+"), NEUTRAL_NOW)

        # 87 * 1.15 = 100.05
        assert options.premium.quote.total == 100
        assert options.premium.quote.expected_conversion_rate == 0.48


def _tier_quote(total=50, confidence=0.92):
    return PriceQuote(
        base_price=50,
        additional_fees=total - 50,
        total=total,
        estimated_duration="1-2",
        factors=("event valet service",),
        confidence=confidence,
        expected_conversion_rate=0.85,
    )


def _suggestion(total=70, confidence=0.9):
    return PriceQuote(
        base_price=55,
        additional_fees=total - 55,
        total=total,
        estimated_duration="2 hours",
        factors=("Market rate",),
        confidence=confidence,
        expected_conversion_rate=0.5,
        strategy=PricingStrategy.AI,
    )


@pytest.mark.pricing
class TestBlending:

    def test_blend_without_history(self):
        quote = blend_quotes(ServiceType.EVENT, _tier_quote(50), _suggestion(70))

        # 50 * 0.5 + 70 * 0.5
        assert quote.total == 60
        assert quote.base_price == 50
        assert quote.additional_fees == 10
        assert quote.strategy == PricingStrategy.HYBRID
        assert quote.factors == ("event valet service", "AI market analysis")

    def test_blend_with_confident_history(self):
        prediction = HistoricalPrediction(predicted_price=80, confidence=0.8, sample_size=8)
        quote = blend_quotes(ServiceType.EVENT, _tier_quote(50), _suggestion(70), prediction)

        # 50 * 0.4 + 70 * 0.4 + 80 * 0.2
        assert quote.total == 64
        assert quote.additional_fees == 14
        assert quote.factors[-1] == "Historical data (8 similar quotes)"

    def test_low_confidence_history_is_redistributed(self):
        prediction = HistoricalPrediction(predicted_price=200, confidence=0.3, sample_size=3)
        quote = blend_quotes(ServiceType.EVENT, _tier_quote(50), _suggestion(70), prediction)

        assert quote.total == 60
        assert "Historical data (3 similar quotes)" not in quote.factors

    def test_blended_confidence_is_capped(self):
        quote = blend_quotes(ServiceType.EVENT, _tier_quote(50, confidence=0.99), _suggestion(70, confidence=1.0))
        assert quote.confidence == 0.95

    def test_blended_confidence_is_the_mean(self):
        quote = blend_quotes(ServiceType.EVENT, _tier_quote(50, confidence=0.92), _suggestion(70, confidence=0.8))
        assert quote.confidence == pytest.approx(0.86)
