from pydantic import BaseModel
from typing import Dict, List, Optional


class ConversionRates(BaseModel):
    overall: float = 0.0
    by_service_type: Dict[str, float] = {}
    by_vehicle_category: Dict[str, float] = {}
    by_price_range: Dict[str, float] = {}
    by_duration_band: Dict[str, float] = {}


class RecentTrends(BaseModel):
    quotes_growth: float = 0.0
    conversion_growth: float = 0.0


class PerformanceMetrics(BaseModel):
    total_quotes: int = 0
    accepted_quotes: int = 0
    conversion_rate: float = 0.0
    average_quote_value: float = 0.0
    total_revenue: float = 0.0
    average_satisfaction: float = 0.0
    top_service_types: List[dict] = []
    recent_trends: RecentTrends = RecentTrends()


class RevenueAnalysis(BaseModel):
    daily_revenue: Dict[str, float] = {}
    monthly_revenue: Dict[str, float] = {}
    weekly_growth: float = 0.0
    projected_monthly: float = 0.0
    revenue_by_service_type: List[dict] = []


class TrendPoint(BaseModel):
    period: str
    value: float


class TrendAnalysis(BaseModel):
    quote_trend: List[TrendPoint] = []
    conversion_trend: List[TrendPoint] = []
    price_trend: List[TrendPoint] = []
    satisfaction_trend: List[TrendPoint] = []


class Alert(BaseModel):
    type: str
    title: str
    message: str
    action: str


class DashboardMetrics(BaseModel):
    overview: PerformanceMetrics
    conversion_rates: ConversionRates
    revenue_analysis: RevenueAnalysis
    trend_analysis: TrendAnalysis
    top_performers: Dict[str, List[dict]] = {}
    alerts: List[Alert] = []


class ForecastRange(BaseModel):
    low: int
    high: int


class PeriodForecast(BaseModel):
    expected_quotes: int
    range: ForecastRange


class DemandForecast(BaseModel):
    next_month: PeriodForecast
    next_quarter: PeriodForecast
    seasonal_factors: Dict[int, float]
    growth: float
    volatility: float
    confidence: str
    recommendations: List[str] = []


class PricingInsights(BaseModel):
    service_type: str
    average_price: float = 0.0
    price_range: Dict[str, float] = {"min": 0, "max": 0}
    optimal_price_point: float = 0.0
    conversion_rate: float = 0.0
    insights: List[str] = []
    trends: Optional[dict] = None
    competitor_data: Optional[dict] = None


class PricingEffectiveness(BaseModel):
    service_type: str
    effectiveness: str
    optimal_price_range: Optional[dict] = None
    current_average: Optional[int] = None
    tier_recommended: Optional[int] = None
    recommendations: List[str] = []
    price_elasticity: Optional[float] = None


class MarketPosition(BaseModel):
    service_type: str
    position: str
    our_average: Optional[int] = None
    market_range: Optional[Dict[str, float]] = None
    recommendations: List[str] = []
    market_share: Optional[str] = None
    competitive_advantages: List[str] = []
