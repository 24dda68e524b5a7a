"""
Enumeration definitions for the rate optimization engine.

All enums inherit from both `str` and `Enum` so that Pydantic models serialize
them as plain strings in API responses and result bundles.

Vocabulary groups:
- Risk and severity scales: RiskLevel, AnomalySeverity, BiasRiskLevel, ImpactLevel
- Scenario and model identifiers: ScenarioType, ModelKey, FeatureSet
- Time-series vocabulary: PatternType, TrendStrength, VolatilityLevel, SamplingFrequency
- Anomaly and streaming vocabulary: AnomalyType, OptimizationStage
"""

from enum import Enum


# =============================================================================
# Risk and Severity Scales
# =============================================================================


class RiskLevel(str, Enum):
    """
    Qualitative risk level attached to scenarios and risk assessments.

    Ordering matters for tie-breaking: Low < Medium < High.
    """
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def rank(self) -> int:
        """Numeric rank used when comparing risk levels."""
        return {"Low": 0, "Medium": 1, "High": 2}[self.value]


class AnomalySeverity(str, Enum):
    """Severity attached to a detected financial anomaly."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class BiasRiskLevel(str, Enum):
    """
    Bias risk level derived from the number of raised bias flags.

    - none: no flags
    - moderate: one flag
    - elevated: two flags
    - high: three or more flags
    """
    NONE = "none"
    MODERATE = "moderate"
    ELEVATED = "elevated"
    HIGH = "high"


class ImpactLevel(str, Enum):
    """Expected customer impact of a scenario, bucketed by adjustment size."""
    MINIMAL = "Minimal"
    MODERATE = "Moderate"
    SIGNIFICANT = "Significant"


# =============================================================================
# Scenario and Model Identifiers
# =============================================================================


class ScenarioType(str, Enum):
    """
    Kind of candidate scenario produced by the scenario engine.

    Conservative, Balanced and Aggressive are always generated; Custom only
    when custom targets are supplied; Seasonal only when the enterprise has a
    material seasonal adjustment. StatusQuo is the degraded fallback.
    """
    CONSERVATIVE = "Conservative"
    BALANCED = "Balanced"
    AGGRESSIVE = "Aggressive"
    CUSTOM = "Custom"
    SEASONAL = "Seasonal"
    STATUS_QUO = "StatusQuo"


class ModelKey(str, Enum):
    """Registry keys for the predictive models."""
    RATE_OPTIMIZATION = "rate_optimization"
    CUSTOMER_BEHAVIOR = "customer_behavior"
    ANOMALY_DETECTION = "anomaly_detection"
    SEASONAL_FORECAST = "seasonal_forecast"
    REVENUE_PREDICTION = "revenue_prediction"


class FeatureSet(str, Enum):
    """Named feature sets produced by the feature extractor."""
    RATE = "rate"
    BEHAVIOR = "behavior"
    TIME_SERIES = "time_series"
    ANOMALY = "anomaly"
    REVENUE = "revenue"


# =============================================================================
# Time-Series Vocabulary
# =============================================================================


class PatternType(str, Enum):
    """Kinds of historical pattern reported by the time-series analyzer."""
    TREND = "trend"
    MONTHLY_SEASONAL = "monthly_seasonal"
    QUARTERLY_SEASONAL = "quarterly_seasonal"
    VOLATILITY = "volatility"
    GROWTH = "growth"
    INSUFFICIENT_DATA = "insufficient_data"
    ANALYSIS_ERROR = "analysis_error"


class TrendStrength(str, Enum):
    """Trend strength buckets on the absolute normalized slope."""
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"


class VolatilityLevel(str, Enum):
    """Coefficient-of-variation buckets: <0.05, <0.10, <0.20, <0.30, >=0.30."""
    VERY_LOW = "very low"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very high"


class SamplingFrequency(str, Enum):
    """Sampling frequency inferred from the spacing of observations."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ANNUAL = "annual"
    IRREGULAR = "irregular"
    UNKNOWN = "unknown"


# =============================================================================
# Anomaly and Streaming Vocabulary
# =============================================================================


class AnomalyType(str, Enum):
    """Type tags emitted by the three anomaly detection layers."""
    # Statistical layer
    HIGH_VOLATILITY = "high_volatility"
    DISTRIBUTION_SKEW = "distribution_skew"
    # Pattern layer
    IRREGULAR_TIMING = "irregular_timing"
    INSUFFICIENT_DATA = "insufficient_data"
    # Contextual layer
    YEAR_END_SPENDING = "year_end_spending"
    SEASONAL_VARIATION = "seasonal_variation"
    # Degraded result
    DETECTION_ERROR = "detection_error"


class OptimizationStage(str, Enum):
    """Pipeline stages reported by streaming progress updates."""
    INITIALIZING = "initializing"
    GENERATING_SCENARIOS = "generating_scenarios"
    EVALUATING_SCENARIOS = "evaluating_scenarios"
    SELECTING_OPTIMAL = "selecting_optimal"
    BUILDING_PLAN = "building_plan"
    COMPLETED = "completed"
    FAILED = "failed"
