"""
Feature Extraction Service - Named Feature Vectors for the Predictive Models

Maps an enterprise snapshot plus historical series into one FeatureVector per
model type:

1. RATE FEATURES - budget, revenue, expenses, customers, rate, affordability,
   seasonal adjustment, calendar month and query-intent flags
2. BEHAVIOR FEATURES - price elasticity from paired rate/usage changes,
   service quality and competitive landscape proxies
3. TIME-SERIES FEATURES - span, average, variance, half-over-half trend and
   twelve monthly seasonal indicators
4. ANOMALY FEATURES - sampling frequency and the first four statistical moments
5. REVENUE FEATURES - monthly revenue, annualised growth, stability, retention,
   satisfaction, churn and competition

Every extractor is a total function. A value missing from the source data
(absent, zero or non-finite) is replaced by the default in FEATURE_DEFAULTS
and recorded in FeatureVector.defaulted, which lowers completeness instead
of raising.

Every vector carries TotalRevenue and TotalExpenses so models can reject a
request with no financial evidence at all.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence

import pandas as pd

from rate_engine.models import (
    AnomalyDetectionConfig,
    EnterpriseContext,
    FeatureSet,
    FeatureVector,
    FinancialDataPoint,
    HistoricalDataPoint,
    OptimizationParameters,
    QueryIntent,
    SamplingFrequency,
)
from rate_engine.services.statistics import (
    excess_kurtosis,
    is_finite,
    mean,
    population_std,
    sample_variance,
    skewness,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Defaults substituted when a feature is missing from the source data.
FEATURE_DEFAULTS: Dict[str, float] = {
    "TotalBudget": 0.0,
    "TotalRevenue": 0.0,
    "TotalExpenses": 0.0,
    "CustomerBase": 0.0,
    "CurrentRate": 0.0,
    # Neutral: between the 0.6 and 0.8 affordability thresholds
    "AffordabilityIndex": 0.7,
    "SeasonalAdjustment": 0.0,
    "PriceElasticity": -0.5,
    "ServiceQuality": 5.0,
    "CompetitiveLandscape": 4.0,
    "UtilityBurden": 0.1,
    "CurrentRevenue": 0.0,
    "OperationalCosts": 0.0,
    "HistoricalGrowthRate": 0.0,
    "RevenueStability": 0.5,
    "CustomerRetention": 0.97,
    "CustomerSatisfaction": 5.0,
    "ChurnRate": 0.02,
    "MarketShareGrowth": 0.0,
}

# Elasticity is only estimated from at least this many paired changes
MIN_ELASTICITY_PAIRS: int = 2

# Mean interval (days) upper bounds for sampling frequency classification
SAMPLING_THRESHOLDS: List[tuple] = [
    (1.5, SamplingFrequency.DAILY),
    (7.5, SamplingFrequency.WEEKLY),
    (31.0, SamplingFrequency.MONTHLY),
    (366.0, SamplingFrequency.ANNUAL),
]

# Only the first ten observations are used to infer sampling frequency
SAMPLING_WINDOW: int = 10

DAYS_PER_MONTH: float = 30.44


# =============================================================================
# Feature Builder
# =============================================================================


class _FeatureBuilder:
    """Accumulates features and records which ones fell back to defaults."""

    def __init__(self, feature_set: FeatureSet) -> None:
        self.feature_set = feature_set
        self.features: Dict[str, float] = {}
        self.labels: Dict[str, str] = {}
        self.defaulted: List[str] = []

    def observe(self, name: str, value: Optional[float]) -> None:
        """Store value, or the documented default when value is missing."""
        if value is None or not is_finite(value) or value == 0:
            self.features[name] = FEATURE_DEFAULTS.get(name, 0.0)
            self.defaulted.append(name)
        else:
            self.features[name] = float(value)

    def set(self, name: str, value: float) -> None:
        """Store a derived value that is always meaningful, including zero."""
        self.features[name] = float(value)

    def label(self, name: str, value: str) -> None:
        self.labels[name] = value

    def build(self) -> FeatureVector:
        return FeatureVector(
            feature_set=self.feature_set,
            features=self.features,
            labels=self.labels,
            defaulted=self.defaulted,
        )


def _observe_financials(builder: _FeatureBuilder, context: Optional[EnterpriseContext]) -> None:
    if context is None:
        builder.observe("TotalRevenue", None)
        builder.observe("TotalExpenses", None)
        return
    builder.observe("TotalRevenue", context.total_revenue)
    builder.observe("TotalExpenses", context.total_expenses)


# =============================================================================
# History Helpers
# =============================================================================


def history_frame(history: Sequence[HistoricalDataPoint]) -> pd.DataFrame:
    """
    Convert historical points into a date-ordered DataFrame.

    Columns: date (datetime64), rate, revenue, usage, customer_count, month,
    quarter. An empty history yields an empty frame with the same columns.
    """
    columns = ["date", "rate", "revenue", "usage", "customer_count"]
    if not history:
        frame = pd.DataFrame(columns=columns + ["month", "quarter"])
        return frame

    frame = pd.DataFrame([p.model_dump() for p in history], columns=columns)
    frame["date"] = pd.to_datetime(frame["date"])
    frame = frame.sort_values("date", kind="stable").reset_index(drop=True)
    frame["month"] = frame["date"].dt.month
    frame["quarter"] = (frame["month"] - 1) // 3
    return frame


def monthly_averages(frame: pd.DataFrame, column: str = "revenue") -> Dict[int, float]:
    """Average of column per calendar month (1-12), only for months with data."""
    if frame.empty:
        return {}
    grouped = frame.groupby("month")[column].mean()
    return {int(month): float(value) for month, value in grouped.items()}


def estimate_price_elasticity(history: Sequence[HistoricalDataPoint]) -> Optional[float]:
    """
    Estimate elasticity as mean usage change over mean rate change.

    Consecutive observations (ordered by date) form a pair when the earlier
    one has a positive rate and usage.

    Returns:
        Elasticity, or None when fewer than MIN_ELASTICITY_PAIRS pairs exist
        or the mean rate change is zero
    """
    if len(history) < 2:
        return None

    ordered = sorted(history, key=lambda p: p.date)
    rate_changes: List[float] = []
    usage_changes: List[float] = []
    for prev, curr in zip(ordered, ordered[1:]):
        if prev.rate > 0 and prev.usage > 0:
            rate_changes.append((curr.rate - prev.rate) / prev.rate)
            usage_changes.append((curr.usage - prev.usage) / prev.usage)

    if len(rate_changes) < MIN_ELASTICITY_PAIRS:
        return None

    avg_rate_change = mean(rate_changes)
    if avg_rate_change == 0:
        return None
    return mean(usage_changes) / avg_rate_change


def estimate_service_quality(context: EnterpriseContext) -> float:
    """
    Service quality proxy (0-10) from the expense/revenue ratio.

    <0.8 -> 9, <1.0 -> 7, <1.2 -> 5, otherwise 3.
    """
    ratio = context.total_expenses / context.total_revenue if context.total_revenue > 0 else 1.0
    if ratio < 0.8:
        return 9.0
    if ratio < 1.0:
        return 7.0
    if ratio < 1.2:
        return 5.0
    return 3.0


def assess_competitive_landscape(context: EnterpriseContext) -> float:
    """
    Competition score (0-10) from the enterprise name.

    Water and sewer are natural monopolies (2); trash hauling can face
    competition (6); anything else gets 4.
    """
    name = context.name.lower()
    if "water" in name or "sewer" in name:
        return 2.0
    if "trash" in name:
        return 6.0
    return 4.0


def determine_sampling_frequency(series: Sequence[FinancialDataPoint]) -> SamplingFrequency:
    """Classify spacing of the first SAMPLING_WINDOW observations."""
    if len(series) < 2:
        return SamplingFrequency.UNKNOWN

    window = series[:SAMPLING_WINDOW]
    intervals = [
        (curr.timestamp - prev.timestamp).total_seconds() / 86400.0
        for prev, curr in zip(window, window[1:])
    ]
    avg_interval = mean(intervals)
    for upper, frequency in SAMPLING_THRESHOLDS:
        if avg_interval <= upper:
            return frequency
    return SamplingFrequency.IRREGULAR


def annualized_growth(first: float, last: float, months: float) -> float:
    """Compound annual growth between two monthly values months apart."""
    if first <= 0 or last <= 0 or months <= 0:
        return 0.0
    return (last / first) ** (12.0 / months) - 1.0


# =============================================================================
# Extractors
# =============================================================================


def extract_rate_features(
    context: EnterpriseContext,
    intent: Optional[QueryIntent] = None,
    as_of: Optional[date] = None,
) -> FeatureVector:
    """
    Build rate-optimization features.

    Args:
        context: Enterprise snapshot
        intent: Optional upstream query intent; contributes complexity,
            clarity and precision flags
        as_of: Reference date for the seasonal month (default: today)

    Returns:
        FeatureVector with feature_set RATE
    """
    as_of = as_of or date.today()
    builder = _FeatureBuilder(FeatureSet.RATE)
    builder.observe("TotalBudget", context.total_budget)
    _observe_financials(builder, context)
    builder.observe("CustomerBase", context.customer_count)
    builder.observe("CurrentRate", context.current_rate)
    builder.observe("AffordabilityIndex", context.affordability_index)
    builder.set("SeasonalAdjustment", context.seasonal_adjustment)
    builder.set("Month", as_of.month)

    if intent is not None:
        builder.set("QueryComplexity", intent.complexity_score)
        builder.set("QueryClarity", intent.clarity_score)
        builder.set("RequiresPrecision", 1.0 if intent.requires_precision else 0.0)
        builder.set("RequiresRateAnalysis", 1.0 if intent.requires_rate_analysis else 0.0)

    return builder.build()


def extract_behavior_features(
    context: EnterpriseContext,
    history: Sequence[HistoricalDataPoint] = (),
    params: Optional[OptimizationParameters] = None,
) -> FeatureVector:
    """
    Build customer-behaviour features.

    Elasticity falls back to -0.5 when history has fewer than two paired
    rate/usage changes.
    """
    builder = _FeatureBuilder(FeatureSet.BEHAVIOR)
    _observe_financials(builder, context)
    builder.observe("CustomerBase", context.customer_count)
    builder.observe("AffordabilityIndex", context.affordability_index)
    builder.observe("PriceElasticity", estimate_price_elasticity(list(history)))
    builder.set("ServiceQuality", estimate_service_quality(context))
    builder.set("CompetitiveLandscape", assess_competitive_landscape(context))
    builder.observe(
        "UtilityBurden",
        context.current_rate / 100.0 if context.current_rate > 0 else None,
    )
    if params is not None:
        builder.set("MaxRateIncrease", params.max_rate_increase)
    return builder.build()


def extract_time_series_features(
    history: Sequence[HistoricalDataPoint],
    context: Optional[EnterpriseContext] = None,
) -> FeatureVector:
    """
    Build time-series features from revenue history.

    SeasonalIndicator_<m> is present only for calendar months that have data;
    SeasonalIndicatorCount says how many.

    Without a context, TotalRevenue is the sum of historical revenue.
    """
    builder = _FeatureBuilder(FeatureSet.TIME_SERIES)
    frame = history_frame(history)

    if context is not None:
        _observe_financials(builder, context)
    else:
        builder.observe("TotalRevenue", float(frame["revenue"].sum()) if not frame.empty else None)
        builder.observe("TotalExpenses", None)

    builder.set("DataPoints", len(frame))
    if frame.empty:
        builder.observe("AverageRevenue", None)
        builder.set("SeasonalIndicatorCount", 0)
        return builder.build()

    revenues = frame["revenue"].astype(float).tolist()
    span_days = (frame["date"].iloc[-1] - frame["date"].iloc[0]).days
    builder.set("TimeSpanMonths", span_days / DAYS_PER_MONTH)
    builder.observe("AverageRevenue", mean(revenues))
    builder.set("RevenueVariance", sample_variance(revenues))

    half = len(revenues) // 2
    trend = 0.0
    if half > 0:
        first_half = mean(revenues[:half])
        second_half = mean(revenues[half:])
        trend = (second_half - first_half) / first_half if first_half != 0 else 0.0
    builder.set("TrendDirection", trend)

    indicators = monthly_averages(frame)
    for month, value in indicators.items():
        builder.set(f"SeasonalIndicator_{month}", value)
    builder.set("SeasonalIndicatorCount", len(indicators))
    return builder.build()


def extract_anomaly_features(
    series: Sequence[FinancialDataPoint],
    config: Optional[AnomalyDetectionConfig] = None,
    context: Optional[EnterpriseContext] = None,
) -> FeatureVector:
    """
    Build anomaly-detection features.

    Moments (Mean, Variance, StandardDeviation, Skewness, Kurtosis) are only
    present when the series is non-empty. SamplingFrequency and the latest
    timestamp are exposed as labels.
    """
    config = config or AnomalyDetectionConfig()
    builder = _FeatureBuilder(FeatureSet.ANOMALY)
    ordered = sorted(series, key=lambda p: p.timestamp)
    values = [p.value for p in ordered]

    if context is not None:
        _observe_financials(builder, context)
    else:
        builder.observe("TotalRevenue", sum(abs(v) for v in values) if values else None)
        builder.observe("TotalExpenses", None)

    builder.set("DataLength", len(values))
    builder.set("BaselineWindow", config.baseline_window)
    builder.set("SensitivityLevel", config.sensitivity)
    builder.label("SamplingFrequency", determine_sampling_frequency(ordered).value)

    if values:
        variance = sample_variance(values)
        builder.set("Mean", mean(values))
        builder.set("Variance", variance)
        builder.set("StandardDeviation", variance ** 0.5)
        builder.set("Skewness", skewness(values))
        builder.set("Kurtosis", excess_kurtosis(values))
        latest = ordered[-1].timestamp
        builder.set("LatestMonth", latest.month)
        builder.label("LatestTimestamp", latest.isoformat())

    return builder.build()


def extract_revenue_features(
    context: EnterpriseContext,
    history: Sequence[HistoricalDataPoint] = (),
) -> FeatureVector:
    """
    Build revenue-prediction features.

    CurrentRevenue is monthly: the latest historical revenue when history
    exists, otherwise total_revenue / 12. Growth is annualised from the first
    and last historical revenue.
    """
    builder = _FeatureBuilder(FeatureSet.REVENUE)
    _observe_financials(builder, context)
    frame = history_frame(history)
    builder.set("DataPoints", len(frame))

    if not frame.empty and float(frame["revenue"].iloc[-1]) > 0:
        builder.observe("CurrentRevenue", float(frame["revenue"].iloc[-1]))
    else:
        builder.observe("CurrentRevenue", context.total_revenue / 12.0)
    builder.observe("OperationalCosts", context.total_expenses / 12.0)

    growth: Optional[float] = None
    stability: Optional[float] = None
    market_share_growth: Optional[float] = None
    if len(frame) >= 2:
        revenues = frame["revenue"].astype(float).tolist()
        months = (frame["date"].iloc[-1] - frame["date"].iloc[0]).days / DAYS_PER_MONTH
        growth = annualized_growth(revenues[0], revenues[-1], months) or None
        avg = mean(revenues)
        if avg > 0:
            stability = max(0.1, 1.0 - population_std(revenues) / avg)
        first_customers = int(frame["customer_count"].iloc[0])
        last_customers = int(frame["customer_count"].iloc[-1])
        if first_customers > 0:
            market_share_growth = (last_customers - first_customers) / first_customers or None

    builder.observe("HistoricalGrowthRate", growth)
    builder.observe("RevenueStability", stability)
    builder.observe("MarketShareGrowth", market_share_growth)

    builder.observe("CustomerRetention", None)
    builder.observe("ChurnRate", None)
    builder.set("CustomerSatisfaction", estimate_service_quality(context))
    builder.set("CompetitionLevel", assess_competitive_landscape(context))
    return builder.build()


def extract_features(
    feature_set: FeatureSet,
    context: Optional[EnterpriseContext] = None,
    history: Sequence[HistoricalDataPoint] = (),
    params: Optional[OptimizationParameters] = None,
    intent: Optional[QueryIntent] = None,
    series: Sequence[FinancialDataPoint] = (),
    config: Optional[AnomalyDetectionConfig] = None,
    as_of: Optional[date] = None,
) -> FeatureVector:
    """
    Dispatch to the extractor for feature_set.

    Rate, behaviour and revenue features require a context; passing None
    yields an empty placeholder context so extraction still succeeds with
    every feature defaulted.
    """
    if context is None and feature_set in (FeatureSet.RATE, FeatureSet.BEHAVIOR, FeatureSet.REVENUE):
        logger.debug(f"No context supplied for {feature_set.value} features; using defaults")
        context = EnterpriseContext(name="Unknown")

    if feature_set == FeatureSet.RATE:
        return extract_rate_features(context, intent=intent, as_of=as_of)
    if feature_set == FeatureSet.BEHAVIOR:
        return extract_behavior_features(context, history, params)
    if feature_set == FeatureSet.TIME_SERIES:
        return extract_time_series_features(history, context)
    if feature_set == FeatureSet.ANOMALY:
        return extract_anomaly_features(series, config, context)
    return extract_revenue_features(context, history)
