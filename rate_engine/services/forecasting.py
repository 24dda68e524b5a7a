"""
Forecasting Models - Seasonal and Revenue Projections

SeasonalForecastModel:
    value(i) = average * (1 + trend * i * 0.01) * seasonal(month)
    - seasonal(month) = indicator[month] / mean(indicators) with all twelve
      monthly indicators, otherwise the default utility pattern
      (June-August 1.2, December-February 0.9, else 1.0)
    - uncertainty(i) = value * 0.1 * i
    - month confidence = max(0.3, 0.9 - 0.05 * i)
    - forecast confidence starts at 0.8 and loses 0.02 per horizon month

RevenuePredictionModel:
    value(i) = current * (1 + growth / 12) ** i * seasonal(month)
    - seasonal: summer 1.15, winter 0.95, fall 1.05, spring 1.0
    - uncertainty(i) = value * 0.1 * sqrt(i)
    - month confidence = max(0.4, 0.9 - 0.03 * i)

Horizon and start month come from the ForecastMonths feature and the
ForecastStart label (ISO date); month i of the forecast is i calendar months
after the start.
"""

import logging
import math
from datetime import date
from typing import Dict, List

import pandas as pd

from rate_engine.core.exceptions import ComputationFaultError, InsufficientDataError
from rate_engine.models import (
    ConfidenceInterval,
    FeatureSet,
    FeatureVector,
    MonthlyForecast,
    RevenueOptimization,
    RevenuePredictionResult,
    RevenueScenario,
    RiskLevel,
    SeasonalForecast,
)
from rate_engine.services.predictive_models import FALLBACK_CONFIDENCE, PredictiveModel
from rate_engine.services.statistics import clamp, coefficient_of_variation, mean

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_FORECAST_MONTHS: int = 12
DEFAULT_FORECAST_BASE: float = 10000.0

# Default utility pattern used without a full year of monthly indicators
DEFAULT_SEASONAL_PATTERN: Dict[int, float] = {
    6: 1.2, 7: 1.2, 8: 1.2,
    12: 0.9, 1: 0.9, 2: 0.9,
}

REVENUE_SEASONAL_PATTERN: Dict[int, float] = {
    6: 1.15, 7: 1.15, 8: 1.15,
    12: 0.95, 1: 0.95, 2: 0.95,
    9: 1.05, 10: 1.05, 11: 1.05,
}

TREND_PER_MONTH: float = 0.01
SEASONAL_UNCERTAINTY_RATE: float = 0.10
REVENUE_UNCERTAINTY_RATE: float = 0.10
HORIZON_CONFIDENCE_DECAY: float = 0.02

# (level, share of the 95% half-width)
INTERVAL_LEVELS = [("95", 1.0), ("80", 0.6), ("50", 0.3)]

# (name, multiplier, probability, description, key assumptions)
REVENUE_SCENARIOS = [
    ("Conservative", 0.9, 0.3, "Economic downturn or service disruptions",
     ["Reduced customer demand", "Economic stress"]),
    ("Base", 1.0, 0.5, "Expected performance under normal conditions",
     ["Normal demand patterns", "Stable economic conditions"]),
    ("Optimistic", 1.1, 0.2, "Growth from new customers or rate optimization",
     ["Customer growth", "Successful rate optimization"]),
]


# =============================================================================
# Shared Helpers
# =============================================================================


def forecast_start(features: FeatureVector, strict: bool = True) -> date:
    """
    First day of the forecast from the ForecastStart label (default: today).

    With strict=False a malformed label yields today instead of raising.
    """
    start = features.labels.get("ForecastStart")
    if not start:
        return date.today()
    try:
        return date.fromisoformat(start)
    except ValueError:
        if strict:
            raise
        logger.warning(f"Ignoring malformed ForecastStart label {start!r}")
        return date.today()


def forecast_horizon(features: FeatureVector, strict: bool = True) -> int:
    """Forecast length in months; non-strict parsing maps non-finite values to the default."""
    months = features.get("ForecastMonths", DEFAULT_FORECAST_MONTHS)
    if not math.isfinite(months):
        if strict:
            raise ComputationFaultError(f"forecast horizon {months} is not finite", stage="forecasting")
        logger.warning(f"Ignoring non-finite ForecastMonths {months}")
        months = DEFAULT_FORECAST_MONTHS
    return max(0, int(months))


def month_offset(start: date, months: int) -> date:
    """Calendar date `months` months after start, clamped to month end."""
    return (pd.Timestamp(start) + pd.DateOffset(months=months)).date()


def seasonal_indicators(features: FeatureVector) -> Dict[int, float]:
    """Monthly indicators present in the features, keyed by calendar month."""
    return {
        month: features.get(f"SeasonalIndicator_{month}")
        for month in range(1, 13)
        if features.has(f"SeasonalIndicator_{month}")
    }


def seasonal_factor(month: int, indicators: Dict[int, float]) -> float:
    """
    Multiplier for a calendar month.

    Uses indicator / mean(indicators) when all twelve months are known,
    otherwise DEFAULT_SEASONAL_PATTERN.
    """
    if len(indicators) < 12:
        return DEFAULT_SEASONAL_PATTERN.get(month, 1.0)
    avg = mean(list(indicators.values()))
    return indicators[month] / avg if avg > 0 else 1.0


def revenue_seasonal_factor(month: int) -> float:
    return REVENUE_SEASONAL_PATTERN.get(month, 1.0)


def horizon_totals(forecasts: List[MonthlyForecast]) -> Dict[str, float]:
    return {
        "value": sum(f.predicted_value for f in forecasts),
        "lower": sum(f.lower_bound for f in forecasts),
        "upper": sum(f.upper_bound for f in forecasts),
    }


# =============================================================================
# Seasonal Forecast Model
# =============================================================================


class SeasonalForecastModel(PredictiveModel):
    """
    Trend plus seasonal projection of monthly revenue.

    The estimate is the total predicted value over the horizon; its bounds are
    the summed monthly 95% bounds.

    Example:
        >>> features = extract_time_series_features(history).with_values(ForecastMonths=6)
        >>> forecast = SeasonalForecastModel().predict(features)
        >>> len(forecast.monthly_forecasts)
        6
    """

    name = "SeasonalForecaster"
    version = "2.0.0"
    confidence = 0.79
    feature_set = FeatureSet.TIME_SERIES

    def _predict(self, features: FeatureVector) -> SeasonalForecast:
        average = features.get("AverageRevenue")
        if average <= 0:
            raise InsufficientDataError("no historical revenue to forecast from", stage=self.name)

        months = forecast_horizon(features)
        indicators = seasonal_indicators(features)
        forecasts = self._monthly_forecasts(features, indicators, months)
        trend, seasonal, irregular, residual = self._decompose(features, indicators)
        confidence = self._forecast_confidence(features, months)
        totals = horizon_totals(forecasts)

        return SeasonalForecast(
            model_name=self.name,
            model_version=self.version,
            estimate=totals["value"],
            lower_bound=totals["lower"],
            upper_bound=totals["upper"],
            confidence=confidence,
            forecast_months=months,
            monthly_forecasts=forecasts,
            seasonal_factors=[
                1.0 + seasonal * math.sin(2 * math.pi * month / 12 + math.pi / 4)
                for month in range(1, 13)
            ],
            confidence_intervals=self._confidence_intervals(forecasts),
            trend_component=trend,
            seasonal_component=seasonal,
            irregular_component=irregular,
            residual_component=residual,
            influential_factors=self._influential_factors(features, indicators),
            forecast_quality=self._quality(features, months),
            risk_factors=self._risk_factors(forecasts, confidence, trend, irregular),
        )

    def _monthly_forecasts(
        self,
        features: FeatureVector,
        indicators: Dict[int, float],
        months: int
    ) -> List[MonthlyForecast]:
        start = forecast_start(features)
        average = features.get("AverageRevenue")
        trend = features.get("TrendDirection")

        forecasts: List[MonthlyForecast] = []
        for i in range(1, months + 1):
            target = month_offset(start, i)
            trended = average * (1 + trend * i * TREND_PER_MONTH)
            factor = seasonal_factor(target.month, indicators)
            value = trended * factor
            uncertainty = abs(value) * SEASONAL_UNCERTAINTY_RATE * i
            forecasts.append(MonthlyForecast(
                month_index=i,
                forecast_date=target,
                predicted_value=value,
                lower_bound=value - uncertainty,
                upper_bound=value + uncertainty,
                confidence=max(0.3, 0.9 - i * 0.05),
                seasonal_factor=factor,
            ))
        return forecasts

    @staticmethod
    def _decompose(features: FeatureVector, indicators: Dict[int, float]):
        """(trend, seasonal, irregular, residual) components."""
        average = features.get("AverageRevenue")
        variance = features.get("RevenueVariance")
        trend = features.get("TrendDirection")
        seasonal = max(indicators.values()) / average - 1 if indicators else 0.1
        irregular = math.sqrt(variance) / average if variance > 0 else 0.05
        residual = 1.0 - abs(trend) - abs(seasonal) - abs(irregular)
        return trend, seasonal, irregular, residual

    @staticmethod
    def _confidence_intervals(forecasts: List[MonthlyForecast]) -> Dict[str, ConfidenceInterval]:
        total = sum(f.predicted_value for f in forecasts)
        half_width = sum((f.upper_bound - f.lower_bound) / 2 for f in forecasts)
        return {
            level: ConfidenceInterval(lower=total - half_width * share, upper=total + half_width * share)
            for level, share in INTERVAL_LEVELS
        }

    @staticmethod
    def _relative_variance(features: FeatureVector) -> float:
        average = features.get("AverageRevenue")
        return features.get("RevenueVariance") / (average * average) if average else 0.0

    def _forecast_confidence(self, features: FeatureVector, months: int) -> float:
        points = features.get("DataPoints")
        confidence = 0.8
        if points < 12:
            confidence -= 0.2
        if points > 24:
            confidence += 0.1
        if self._relative_variance(features) > 0.25:
            confidence -= 0.15
        confidence -= months * HORIZON_CONFIDENCE_DECAY
        return clamp(confidence, 0.3, 0.9)

    def _influential_factors(self, features: FeatureVector, indicators: Dict[int, float]) -> List[str]:
        factors: List[str] = []
        trend = features.get("TrendDirection")
        if abs(trend) > 0.05:
            factors.append(f"Strong {'upward' if trend > 0 else 'downward'} trend")
        if indicators:
            spread = max(indicators.values()) - min(indicators.values())
            if spread > features.get("AverageRevenue") * 0.2:
                factors.append("Significant seasonal patterns")
        if self._relative_variance(features) > 0.1:
            factors.append("High data volatility")
        factors.extend(["Climate and weather patterns", "Economic conditions", "Regulatory environment"])
        return factors

    def _quality(self, features: FeatureVector, months: int) -> str:
        data = "Good" if features.get("DataPoints") >= 24 else "Limited"
        horizon = "Reliable" if months <= 12 else "Extended"
        stability = "Stable" if self._relative_variance(features) < 0.1 else "Variable"
        return f"Data: {data}, Horizon: {horizon}, Stability: {stability}"

    @staticmethod
    def _risk_factors(
        forecasts: List[MonthlyForecast],
        confidence: float,
        trend: float,
        irregular: float
    ) -> List[str]:
        risks: List[str] = []
        if confidence < 0.6:
            risks.append("Low forecast confidence - treat projections as indicative")
        if trend < -0.1:
            risks.append("Declining revenue trend")
        if irregular > 0.2:
            risks.append("High irregular variation in historical data")
        wide = [
            f for f in forecasts
            if f.predicted_value and (f.upper_bound - f.lower_bound) / abs(f.predicted_value) > 0.3
        ]
        if forecasts and len(wide) > len(forecasts) / 2:
            risks.append("High forecast variability over the horizon")
        return risks

    def fallback(self, features: FeatureVector, message: str) -> SeasonalForecast:
        average = features.get("AverageRevenue")
        base = average if average > 0 else DEFAULT_FORECAST_BASE
        start = forecast_start(features, strict=False)
        months = forecast_horizon(features, strict=False)

        forecasts: List[MonthlyForecast] = []
        for i in range(1, months + 1):
            target = month_offset(start, i)
            factor = DEFAULT_SEASONAL_PATTERN.get(target.month, 1.0)
            value = base * factor
            forecasts.append(MonthlyForecast(
                month_index=i,
                forecast_date=target,
                predicted_value=value,
                lower_bound=value * 0.85,
                upper_bound=value * 1.15,
                confidence=FALLBACK_CONFIDENCE,
                seasonal_factor=factor,
            ))

        totals = horizon_totals(forecasts)
        return SeasonalForecast(
            model_name=self.name,
            model_version=self.version,
            estimate=totals["value"],
            lower_bound=totals["lower"],
            upper_bound=totals["upper"],
            confidence=FALLBACK_CONFIDENCE,
            error_message=message,
            forecast_months=months,
            monthly_forecasts=forecasts,
            seasonal_factors=[DEFAULT_SEASONAL_PATTERN.get(m, 1.0) for m in range(1, 13)],
            influential_factors=[f"Simple forecast due to: {message}"],
            forecast_quality="Basic - Limited by processing error",
            risk_factors=["Forecast produced in degraded mode"],
        )


# =============================================================================
# Revenue Prediction Model
# =============================================================================


def projected_growth_rate(values: List[float]) -> float:
    """Annualised growth between the first and last projected month."""
    if len(values) < 2 or values[0] <= 0 or values[-1] <= 0:
        return 0.0
    return (values[-1] / values[0]) ** (12.0 / len(values)) - 1


def projected_stability(values: List[float]) -> float:
    """max(0.1, 1 - CV); 0.5 without values."""
    if not values:
        return 0.5
    return max(0.1, 1.0 - coefficient_of_variation(values, empty_value=0.0))


class RevenuePredictionModel(PredictiveModel):
    """
    Compounded growth and seasonal revenue projection with scenarios.

    The estimate is total predicted revenue over the horizon.
    """

    name = "RevenuePredictor"
    version = "1.6.0"
    confidence = 0.81
    feature_set = FeatureSet.REVENUE

    def _predict(self, features: FeatureVector) -> RevenuePredictionResult:
        months = forecast_horizon(features)
        predictions = self._monthly_predictions(features, months)
        values = [p.predicted_value for p in predictions]
        totals = horizon_totals(predictions)
        growth = projected_growth_rate(values)
        stability = projected_stability(values)

        return RevenuePredictionResult(
            model_name=self.name,
            model_version=self.version,
            estimate=totals["value"],
            lower_bound=totals["lower"],
            upper_bound=totals["upper"],
            confidence=self._confidence(features),
            prediction_months=months,
            monthly_predictions=predictions,
            scenarios=[
                RevenueScenario(
                    name=name,
                    multiplier=multiplier,
                    total_revenue=totals["value"] * multiplier,
                    probability=probability,
                    description=description,
                    key_assumptions=assumptions,
                )
                for name, multiplier, probability, description, assumptions in REVENUE_SCENARIOS
            ],
            optimizations=self._optimizations(features, months),
            growth_rate=growth,
            stability_score=stability,
            risk_factors=self._risks(features, predictions, growth, stability),
            opportunities=self._opportunities(features, values, growth),
            prediction_quality=self._quality(features, months),
        )

    def _monthly_predictions(self, features: FeatureVector, months: int) -> List[MonthlyForecast]:
        start = forecast_start(features)
        base = features.get("CurrentRevenue")
        growth = features.get("HistoricalGrowthRate")

        predictions: List[MonthlyForecast] = []
        for i in range(1, months + 1):
            target = month_offset(start, i)
            trended = base * (1 + growth / 12) ** i
            factor = revenue_seasonal_factor(target.month)
            value = trended * factor
            uncertainty = abs(value) * REVENUE_UNCERTAINTY_RATE * math.sqrt(i)
            predictions.append(MonthlyForecast(
                month_index=i,
                forecast_date=target,
                predicted_value=value,
                lower_bound=value - uncertainty,
                upper_bound=value + uncertainty,
                confidence=max(0.4, 0.9 - i * 0.03),
                seasonal_factor=factor,
            ))
        return predictions

    @staticmethod
    def _optimizations(features: FeatureVector, months: int) -> List[RevenueOptimization]:
        current = features.get("CurrentRevenue")
        costs = features.get("OperationalCosts")
        return [
            RevenueOptimization(
                name="Rate Structure",
                potential_increase=current * 0.05 * months,
                description="Optimize rate structure based on cost recovery analysis",
                implementation_effort="Medium",
                time_to_implement="3-6 months",
                risk_level=RiskLevel.LOW,
            ),
            RevenueOptimization(
                name="Operational Efficiency",
                potential_increase=costs * 0.05 * months,
                description="Reduce operational costs through efficiency improvements",
                implementation_effort="Medium",
                time_to_implement="6-12 months",
                risk_level=RiskLevel.LOW,
            ),
            RevenueOptimization(
                name="New Revenue Streams",
                potential_increase=current * 0.10 * months,
                description="Develop new revenue sources (fees, services, partnerships)",
                implementation_effort="High",
                time_to_implement="12-24 months",
                risk_level=RiskLevel.MEDIUM,
            ),
        ]

    @staticmethod
    def _risks(
        features: FeatureVector,
        predictions: List[MonthlyForecast],
        growth: float,
        stability: float
    ) -> List[str]:
        risks: List[str] = []
        if predictions and mean([p.confidence for p in predictions]) < 0.6:
            risks.append("Low prediction confidence due to data limitations")
        if growth < 0:
            risks.append("Declining revenue trend predicted")
        if features.get("ChurnRate") > 0.05:
            risks.append("High customer churn rate impacting revenue")
        if stability < 0.6:
            risks.append("High revenue volatility expected")
        return risks or ["Low revenue risk profile"]

    @staticmethod
    def _opportunities(features: FeatureVector, values: List[float], growth: float) -> List[str]:
        opportunities: List[str] = []
        if growth > 0.03:
            opportunities.append("Strong growth trend - consider capacity expansion")
        if features.get("CustomerSatisfaction") > 8.0:
            opportunities.append("High customer satisfaction - opportunity for rate optimization")
        if features.get("MarketShareGrowth") > 0.02:
            opportunities.append("Growing market share - expand service offerings")
        if values and min(values) > 0 and max(values) / min(values) > 1.2:
            opportunities.append("Seasonal demand patterns - opportunity for seasonal pricing")
        return opportunities or ["Stable revenue base for strategic planning"]

    @staticmethod
    def _confidence(features: FeatureVector) -> float:
        confidence = 0.7
        if features.get("DataPoints") > 24:
            confidence += 0.1
        if features.get("CustomerRetention") > 0.95:
            confidence += 0.05
        if features.get("CustomerSatisfaction") > 7.0:
            confidence += 0.05
        if features.get("ChurnRate") > 0.1:
            confidence -= 0.1
        if features.get("CompetitionLevel") > 7.0:
            confidence -= 0.05
        return clamp(confidence, 0.4, 0.9)

    @staticmethod
    def _quality(features: FeatureVector, months: int) -> str:
        data = "Robust" if features.get("DataPoints") >= 24 else "Limited"
        horizon = "Short-term" if months <= 12 else "Long-term"
        market = "Stable Market" if features.get("CompetitionLevel") < 5.0 else "Competitive Market"
        return f"{data} data, {horizon} horizon, {market}"

    def fallback(self, features: FeatureVector, message: str) -> RevenuePredictionResult:
        months = forecast_horizon(features, strict=False)
        total = max(0.0, features.get("CurrentRevenue")) * months
        return RevenuePredictionResult(
            model_name=self.name,
            model_version=self.version,
            estimate=total,
            lower_bound=total * 0.9,
            upper_bound=total * 1.1,
            confidence=FALLBACK_CONFIDENCE,
            error_message=message,
            prediction_months=months,
            growth_rate=0.02,
            risk_factors=[f"Prediction error: {message}"],
            prediction_quality="Error Recovery Mode",
        )
