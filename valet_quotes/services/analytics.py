"""Read-side rollups over historical quote outcomes.

Every function is pure over the records it is given; nothing is maintained
incrementally. Callers decide what to cache.
"""
import math
import re
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from valet_quotes.core.enums import ServiceType
from valet_quotes.schemas.history import HistoricalQuoteRecord
from valet_quotes.schemas.analytics import (
    ConversionRates,
    RecentTrends,
    PerformanceMetrics,
    RevenueAnalysis,
    TrendPoint,
    TrendAnalysis,
    Alert,
    DashboardMetrics,
    ForecastRange,
    PeriodForecast,
    DemandForecast,
    PricingInsights,
    PricingEffectiveness,
    MarketPosition,
)
from valet_quotes.services.history import as_utc
from valet_quotes.services.location import normalize_location
from valet_quotes.services.market import service_type_trends, market_benchmarks, COMPETITOR_PRICING
from valet_quotes.services.pricing import round_currency
from valet_quotes.services.tiers import get_tier

TIMEFRAME_PATTERN = re.compile(r"^(\d+)d$")
MIN_RANGE_SAMPLE = 3
MAX_TIMEFRAME_DAYS = 3650


def parse_timeframe(timeframe: str) -> int:
    match = TIMEFRAME_PATTERN.match(timeframe or "")
    if not match or int(match.group(1)) <= 0:
        raise ValueError(f"Invalid timeframe '{timeframe}', expected e.g. '30d'")
    days = int(match.group(1))
    if days > MAX_TIMEFRAME_DAYS:
        raise ValueError(f"Timeframe '{timeframe}' exceeds the maximum of {MAX_TIMEFRAME_DAYS}d")
    return days


def price_range(price: float) -> str:
    if price < 40:
        return "0-40"
    if price < 60:
        return "40-60"
    if price < 80:
        return "60-80"
    if price < 100:
        return "80-100"
    return "100+"


def _mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0


def _acceptance(records: Sequence[HistoricalQuoteRecord]) -> float:
    if not records:
        return 0.0
    return sum(1 for r in records if r.accepted) / len(records)


def _rates_by(records: Sequence[HistoricalQuoteRecord], key) -> Dict[str, float]:
    groups = defaultdict(list)
    for r in records:
        groups[key(r)].append(r)
    return {name: _acceptance(group) for name, group in groups.items()}


def conversion_rates(records: Sequence[HistoricalQuoteRecord]) -> ConversionRates:
    return ConversionRates(
        overall=_acceptance(records),
        by_service_type=_rates_by(records, lambda r: str(r.service_type)),
        by_vehicle_category=_rates_by(records, lambda r: str(r.vehicle_category)),
        by_price_range=_rates_by(records, lambda r: price_range(r.quoted_price)),
        by_duration_band=_rates_by(records, lambda r: str(r.duration_band)),
    )


def top_service_types(accepted: Sequence[HistoricalQuoteRecord], limit: int = 3) -> List[dict]:
    counts = defaultdict(int)
    for r in accepted:
        counts[str(r.service_type)] += 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [{"type": name, "count": count} for name, count in ranked[:limit]]


def recent_trends(records: Sequence[HistoricalQuoteRecord], now: datetime) -> RecentTrends:
    """Week-over-week change in quote volume and conversion."""
    now = as_utc(now)
    last_week = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    this_week = [r for r in records if as_utc(r.date) >= last_week]
    previous_week = [r for r in records if two_weeks_ago <= as_utc(r.date) < last_week]

    if not previous_week:
        return RecentTrends()
    return RecentTrends(
        quotes_growth=(len(this_week) - len(previous_week)) / len(previous_week),
        conversion_growth=_acceptance(this_week) - _acceptance(previous_week),
    )


def performance_metrics(records: Sequence[HistoricalQuoteRecord], now: datetime) -> PerformanceMetrics:
    accepted = [r for r in records if r.accepted]
    scores = [r.satisfaction_score for r in accepted if r.satisfaction_score is not None]
    return PerformanceMetrics(
        total_quotes=len(records),
        accepted_quotes=len(accepted),
        conversion_rate=_acceptance(records),
        average_quote_value=_mean(r.final_price for r in accepted),
        total_revenue=sum(r.final_price for r in accepted),
        average_satisfaction=_mean(scores),
        top_service_types=top_service_types(accepted),
        recent_trends=recent_trends(records, now),
    )


def project_monthly_revenue(daily_revenue: Dict[str, float]) -> float:
    recent_days = sorted(daily_revenue.items(), reverse=True)[:7]
    if not recent_days:
        return 0.0
    return _mean(revenue for _, revenue in recent_days) * 30


def revenue_analysis(records: Sequence[HistoricalQuoteRecord]) -> RevenueAnalysis:
    accepted = [r for r in records if r.accepted]
    daily = defaultdict(float)
    monthly = defaultdict(float)
    by_type = defaultdict(float)

    for r in accepted:
        date = as_utc(r.date)
        daily[date.strftime("%Y-%m-%d")] += r.final_price
        monthly[date.strftime("%Y-%m")] += r.final_price
        by_type[str(r.service_type)] += r.final_price

    daily_values = [daily[day] for day in sorted(daily)]
    recent = sum(daily_values[-7:])
    previous = sum(daily_values[-14:-7])

    return RevenueAnalysis(
        daily_revenue=dict(sorted(daily.items())),
        monthly_revenue=dict(sorted(monthly.items())),
        weekly_growth=(recent - previous) / previous if previous > 0 else 0.0,
        projected_monthly=project_monthly_revenue(daily),
        revenue_by_service_type=[
            {"type": name, "revenue": revenue}
            for name, revenue in sorted(by_type.items(), key=lambda item: item[1], reverse=True)
        ],
    )


def time_periods(days: int, now: datetime) -> List[dict]:
    """Split the trailing window into roughly ten consecutive periods."""
    now = as_utc(now)
    period_length = max(1, days // 10)
    periods = []
    i = days
    while i > 0:
        start = now - timedelta(days=i)
        end = now - timedelta(days=max(0, i - period_length))
        periods.append({"start": start, "end": end, "label": start.strftime("%Y-%m-%d")})
        i -= period_length
    return periods


def trend_analysis(records: Sequence[HistoricalQuoteRecord], timeframe: str, now: datetime) -> TrendAnalysis:
    trends = TrendAnalysis()
    for period in time_periods(parse_timeframe(timeframe), now):
        in_period = [r for r in records if period["start"] <= as_utc(r.date) < period["end"]]
        accepted = [r for r in in_period if r.accepted]
        scores = [r.satisfaction_score for r in accepted if r.satisfaction_score is not None]
        label = period["label"]

        trends.quote_trend.append(TrendPoint(period=label, value=len(in_period)))
        trends.conversion_trend.append(TrendPoint(period=label, value=_acceptance(in_period)))
        trends.price_trend.append(TrendPoint(period=label, value=_mean(r.final_price for r in accepted)))
        trends.satisfaction_trend.append(TrendPoint(period=label, value=_mean(scores)))
    return trends


def top_price_ranges(records: Sequence[HistoricalQuoteRecord], limit: int = 5) -> List[dict]:
    counts = defaultdict(int)
    for r in records:
        if r.accepted:
            counts[f"${price_range(r.final_price)}"] += 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [{"range": name, "count": count} for name, count in ranked[:limit]]


def top_locations(records: Sequence[HistoricalQuoteRecord], limit: int = 10) -> List[dict]:
    counts = defaultdict(int)
    for r in records:
        if r.accepted:
            counts[normalize_location(r.location)] += 1
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [{"location": name, "count": count} for name, count in ranked[:limit]]


def generate_alerts(performance: PerformanceMetrics, rates: ConversionRates) -> List[Alert]:
    alerts = []
    if performance.total_quotes == 0:
        return alerts

    if performance.conversion_rate < 0.6:
        alerts.append(Alert(
            type="warning",
            title="Low Conversion Rate",
            message=f"Current conversion rate is {performance.conversion_rate * 100:.1f}%. "
                    f"Consider reviewing pricing strategy.",
            action="Review pricing tiers and competitor analysis",
        ))

    if performance.conversion_rate > 0.9:
        alerts.append(Alert(
            type="success",
            title="High Conversion Rate",
            message=f"Excellent conversion rate of {performance.conversion_rate * 100:.1f}%. "
                    f"Consider testing higher prices.",
            action="Test premium pricing strategy",
        ))

    for service_type, rate in rates.by_service_type.items():
        if rate < 0.5:
            alerts.append(Alert(
                type="warning",
                title=f"Low {service_type} Performance",
                message=f"{service_type} service has {rate * 100:.1f}% conversion rate.",
                action=f"Review {service_type} pricing and market positioning",
            ))

    if performance.recent_trends.quotes_growth < -0.2:
        alerts.append(Alert(
            type="error",
            title="Declining Quote Volume",
            message="Quote requests have decreased by more than 20% recently.",
            action="Investigate market conditions and marketing effectiveness",
        ))
    return alerts


def dashboard_metrics(records: Sequence[HistoricalQuoteRecord], timeframe: str, now: datetime) -> DashboardMetrics:
    performance = performance_metrics(records, now)
    rates = conversion_rates(records)
    return DashboardMetrics(
        overview=performance,
        conversion_rates=rates,
        revenue_analysis=revenue_analysis(records),
        trend_analysis=trend_analysis(records, timeframe, now),
        top_performers={
            "service_types": performance.top_service_types,
            "price_ranges": top_price_ranges(records),
            "locations": top_locations(records),
        },
        alerts=generate_alerts(performance, rates),
    )


def _insights(accepted: Sequence[HistoricalQuoteRecord], service_type: ServiceType, now: datetime) -> List[str]:
    insights = []
    avg_quoted = _mean(r.quoted_price for r in accepted)
    avg_final = _mean(r.final_price for r in accepted)
    if avg_final < avg_quoted * 0.95:
        insights.append("Customers frequently negotiate prices down - consider starting with more competitive quotes")

    if _mean(r.conversion_time_seconds for r in accepted) > 1800:
        insights.append("Long conversion times detected - consider simplifying the booking process")

    scores = [r.satisfaction_score for r in accepted if r.satisfaction_score is not None]
    if scores and _mean(scores) < 4.5:
        insights.append("Customer satisfaction could be improved - review service quality")

    seasonal = service_type_trends(service_type, now)["seasonal_demand"]
    if seasonal > 1.2:
        insights.append("High seasonal demand - consider premium pricing")
    elif seasonal < 0.8:
        insights.append("Low seasonal demand - consider promotional pricing")
    return insights


def pricing_insights(
    records: Sequence[HistoricalQuoteRecord],
    service_type: ServiceType,
    now: Optional[datetime] = None,
) -> PricingInsights:
    now = now or datetime.now(timezone.utc)
    of_type = [r for r in records if r.service_type == service_type]
    accepted = [r for r in of_type if r.accepted]

    if not accepted:
        return PricingInsights(
            service_type=str(service_type),
            insights=["Insufficient historical data for analysis"],
        )

    prices = [r.quoted_price for r in accepted]
    groups = defaultdict(list)
    for r in of_type:
        groups[price_range(r.quoted_price)].append(r)

    best_group = None
    best_rate = 0.0
    for group in groups.values():
        rate = _acceptance(group)
        if rate > best_rate:
            best_rate = rate
            best_group = group

    average_price = _mean(prices)
    optimal = _mean(r.quoted_price for r in best_group) if best_group else average_price

    return PricingInsights(
        service_type=str(service_type),
        average_price=round_currency(average_price),
        price_range={"min": min(prices), "max": max(prices)},
        optimal_price_point=optimal,
        conversion_rate=_acceptance(of_type),
        insights=_insights(accepted, service_type, now),
        trends=service_type_trends(service_type, now),
        competitor_data=COMPETITOR_PRICING[service_type],
    )


def group_by_price_buckets(records: Sequence[HistoricalQuoteRecord], width: int = 20) -> Dict[str, dict]:
    buckets = defaultdict(list)
    for r in records:
        lower = int(r.quoted_price // width) * width
        buckets[f"{lower}-{lower + width - 1}"].append(r)

    return {
        name: {
            "total": len(group),
            "accepted": sum(1 for r in group if r.accepted),
            "conversion_rate": _acceptance(group),
            "average_price": _mean(r.quoted_price for r in group),
        }
        for name, group in buckets.items()
    }


def optimal_price_bucket(buckets: Dict[str, dict]) -> Optional[dict]:
    """Best conversion x ln(price) among buckets with enough samples."""
    best = None
    best_score = 0.0
    for name, data in buckets.items():
        if data["total"] < MIN_RANGE_SAMPLE or data["average_price"] <= 0:
            continue
        score = data["conversion_rate"] * math.log(data["average_price"])
        if score > best_score:
            best_score = score
            best = {
                "range": name,
                "conversion_rate": data["conversion_rate"],
                "average_price": round_currency(data["average_price"]),
                "sample_size": data["total"],
            }
    return best


def effectiveness_score(buckets: Dict[str, dict]) -> str:
    if not buckets:
        return "insufficient_data"
    avg_conversion = _mean(b["conversion_rate"] for b in buckets.values())
    avg_price = _mean(b["average_price"] for b in buckets.values())
    if avg_conversion > 0.8 and avg_price > 60:
        return "excellent"
    if avg_conversion > 0.7 and avg_price > 50:
        return "good"
    if avg_conversion > 0.6:
        return "fair"
    return "needs_improvement"


def price_elasticity(buckets: Dict[str, dict]) -> Optional[float]:
    points = sorted(
        (b for b in buckets.values() if b["total"] >= MIN_RANGE_SAMPLE),
        key=lambda b: b["average_price"],
    )
    if len(points) < 2:
        return None
    first, last = points[0], points[-1]
    if first["average_price"] == 0 or first["conversion_rate"] == 0:
        return None
    price_change = (last["average_price"] - first["average_price"]) / first["average_price"]
    demand_change = (last["conversion_rate"] - first["conversion_rate"]) / first["conversion_rate"]
    return demand_change / price_change if price_change != 0 else None


def pricing_effectiveness(records: Sequence[HistoricalQuoteRecord], service_type: ServiceType) -> PricingEffectiveness:
    of_type = [r for r in records if r.service_type == service_type]
    accepted = [r for r in of_type if r.accepted]

    if not accepted:
        return PricingEffectiveness(
            service_type=str(service_type),
            effectiveness="insufficient_data",
            recommendations=["Gather more quote data for analysis"],
        )

    buckets = group_by_price_buckets(of_type)
    optimal = optimal_price_bucket(buckets)
    tier_optimal = get_tier(service_type).base.optimal
    actual_average = _mean(r.final_price for r in accepted)

    recommendations = []
    if actual_average < tier_optimal * 0.9:
        recommendations.append("Consider increasing base prices - market may support higher rates")
    elif actual_average > tier_optimal * 1.1:
        recommendations.append("Monitor conversion rates - prices may be above optimal range")
    if optimal and optimal["conversion_rate"] > 0.8:
        recommendations.append("High conversion rate indicates potential for premium pricing")

    return PricingEffectiveness(
        service_type=str(service_type),
        effectiveness=effectiveness_score(buckets),
        optimal_price_range=optimal,
        current_average=round_currency(actual_average),
        tier_recommended=round_currency(tier_optimal),
        recommendations=recommendations,
        price_elasticity=price_elasticity(buckets),
    )


def market_share_label(quote_volume: int) -> str:
    if quote_volume > 100:
        return "high"
    if quote_volume > 50:
        return "medium"
    if quote_volume > 20:
        return "low"
    return "emerging"


def market_position(records: Sequence[HistoricalQuoteRecord], service_type: ServiceType) -> MarketPosition:
    accepted = [r for r in records if r.service_type == service_type and r.accepted]
    if not accepted:
        return MarketPosition(
            service_type=str(service_type),
            position="unknown",
            recommendations=["Insufficient data for competitive analysis"],
        )

    average = _mean(r.final_price for r in accepted)
    benchmarks = market_benchmarks(service_type)

    position = "competitive"
    recommendations = []
    if average < benchmarks["low"]:
        position = "budget"
        recommendations.append("Consider price increases to improve margins")
    elif average > benchmarks["high"]:
        position = "premium"
        recommendations.append("Ensure value proposition justifies premium pricing")

    advantages = []
    if average <= benchmarks["avg"]:
        advantages.append("Competitive pricing")
    advantages += [
        "AI-powered pricing optimization",
        "Real-time quote generation",
        "Comprehensive service coverage",
    ]

    return MarketPosition(
        service_type=str(service_type),
        position=position,
        our_average=round_currency(average),
        market_range=benchmarks,
        recommendations=recommendations,
        market_share=market_share_label(len(accepted)),
        competitive_advantages=advantages,
    )


def volatility(values: Sequence[float]) -> float:
    if len(values) < 2:
        return 0.0
    mean = _mean(values)
    return math.sqrt(_mean((v - mean) ** 2 for v in values))


def monthly_trends(records: Sequence[HistoricalQuoteRecord]) -> dict:
    monthly = defaultdict(lambda: {"quotes": 0, "revenue": 0.0})
    for r in records:
        month = as_utc(r.date).strftime("%Y-%m")
        monthly[month]["quotes"] += 1
        if r.accepted:
            monthly[month]["revenue"] += r.final_price

    months = sorted(monthly)
    growth_rates = []
    for previous, current in zip(months, months[1:]):
        if monthly[previous]["quotes"] > 0:
            growth_rates.append((monthly[current]["quotes"] - monthly[previous]["quotes"]) / monthly[previous]["quotes"])

    return {
        "growth": _mean(growth_rates),
        "volatility": volatility(growth_rates),
        "monthly_data": {month: monthly[month] for month in months},
    }


def forecast_next_period(trends: dict, days: int) -> PeriodForecast:
    monthly_data = trends["monthly_data"]
    base_quotes = monthly_data[max(monthly_data)]["quotes"] if monthly_data else 0
    expected = base_quotes * math.pow(1 + trends["growth"], days / 30)
    return PeriodForecast(
        expected_quotes=round_currency(expected),
        range=ForecastRange(low=round_currency(expected * 0.8), high=round_currency(expected * 1.2)),
    )


def seasonal_factors(records: Sequence[HistoricalQuoteRecord]) -> Dict[int, float]:
    """Quote count per calendar month relative to the yearly monthly average."""
    counts = defaultdict(int)
    for r in records:
        counts[as_utc(r.date).month] += 1

    average = len(records) / 12
    if average == 0:
        return {month: 0.0 for month in range(1, 13)}
    return {month: counts[month] / average for month in range(1, 13)}


def forecast_confidence(record_count: int) -> str:
    if record_count < 10:
        return "low"
    if record_count < 50:
        return "medium"
    return "high"


def demand_forecast(records: Sequence[HistoricalQuoteRecord]) -> DemandForecast:
    trends = monthly_trends(records)

    recommendations = []
    if trends["growth"] > 0.1:
        recommendations.append("Strong growth trend - consider scaling operations")
    elif trends["growth"] < -0.1:
        recommendations.append("Declining trend - review marketing and pricing strategy")
    if trends["volatility"] > 0.3:
        recommendations.append("High volatility detected - implement demand smoothing strategies")

    return DemandForecast(
        next_month=forecast_next_period(trends, 30),
        next_quarter=forecast_next_period(trends, 90),
        seasonal_factors=seasonal_factors(records),
        growth=trends["growth"],
        volatility=trends["volatility"],
        confidence=forecast_confidence(len(records)),
        recommendations=recommendations,
    )
