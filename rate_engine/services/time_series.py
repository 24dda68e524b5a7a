"""
Time-Series Analysis Service - Historical Revenue Pattern Detection

Runs four independent detectors over the revenue column of historical data:

1. TREND - least-squares slope normalized by the mean
   - strong > 0.1, moderate > 0.05, otherwise weak (absolute value)
   - direction from last-third mean minus first-third mean
   - requires at least 3 points
2. SEASONALITY - calendar-month and calendar-quarter group averages
   - strength = max(group average) / mean(group averages) - 1
   - monthly pattern reported when strength > 0.10
   - quarterly pattern reported when strength > 0.15
   - requires at least 12 points
3. VOLATILITY - population coefficient of variation
   - very low < 0.05 <= low < 0.10 <= moderate < 0.20 <= high < 0.30 <= very high
   - requires at least 5 points
4. GROWTH - period-over-period growth rates
   - stability = max(0.1, 1 - 5 * CV(growth rates)), 0.5 with fewer than 2 rates
   - requires at least 6 points

Detectors return None (or an empty list) when their minimum is not met; the
aggregate analyze_historical_patterns never raises.
"""

import logging
from typing import Dict, List, Optional, Sequence

import pandas as pd

from rate_engine.models import (
    HistoricalDataPoint,
    HistoricalPattern,
    PatternType,
    TrendStrength,
    VolatilityLevel,
)
from rate_engine.services.feature_extraction import history_frame, monthly_averages
from rate_engine.services.statistics import clamp, coefficient_of_variation, mean, normalized_slope

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MIN_TREND_POINTS: int = 3
MIN_SEASONAL_POINTS: int = 12
MIN_VOLATILITY_POINTS: int = 5
MIN_GROWTH_POINTS: int = 6

STRONG_TREND_THRESHOLD: float = 0.10
MODERATE_TREND_THRESHOLD: float = 0.05

MONTHLY_SEASONAL_THRESHOLD: float = 0.10
QUARTERLY_SEASONAL_THRESHOLD: float = 0.15

# (upper bound, level); CV at or above the last bound is VERY_HIGH
VOLATILITY_BANDS = [
    (0.05, VolatilityLevel.VERY_LOW),
    (0.10, VolatilityLevel.LOW),
    (0.20, VolatilityLevel.MODERATE),
    (0.30, VolatilityLevel.HIGH),
]

VOLATILITY_RECOMMENDATIONS: Dict[VolatilityLevel, List[str]] = {
    VolatilityLevel.VERY_LOW: ["Revenue is very stable - maintain current approach"],
    VolatilityLevel.LOW: ["Revenue is stable - good foundation for planning"],
    VolatilityLevel.MODERATE: ["Some revenue variation - monitor trends closely"],
    VolatilityLevel.HIGH: [
        "High revenue volatility - implement risk management strategies",
        "Consider reserve fund for revenue fluctuations",
    ],
    VolatilityLevel.VERY_HIGH: [
        "Very high volatility - urgent need for stabilization strategies",
        "Investigate causes of revenue instability",
    ],
}


# =============================================================================
# Classification Helpers
# =============================================================================


def classify_trend_strength(slope: float) -> TrendStrength:
    magnitude = abs(slope)
    if magnitude > STRONG_TREND_THRESHOLD:
        return TrendStrength.STRONG
    if magnitude > MODERATE_TREND_THRESHOLD:
        return TrendStrength.MODERATE
    return TrendStrength.WEAK


def classify_volatility(cv: float) -> VolatilityLevel:
    for upper, level in VOLATILITY_BANDS:
        if cv < upper:
            return level
    return VolatilityLevel.VERY_HIGH


def describe_stability(stability: float) -> str:
    if stability > 0.8:
        return "very stable"
    if stability > 0.6:
        return "stable"
    if stability > 0.4:
        return "moderate"
    if stability > 0.2:
        return "unstable"
    return "very unstable"


def seasonal_strength(group_averages: Sequence[float]) -> float:
    """
    Relative peak of group averages: max / mean - 1.

    Groups with a non-positive average are ignored.
    """
    positive = [v for v in group_averages if v > 0]
    if not positive:
        return 0.0
    return max(positive) / mean(positive) - 1.0


def calculate_growth_rates(revenues: Sequence[float]) -> List[float]:
    """Period-over-period growth, skipping periods that follow zero revenue."""
    return [
        (curr - prev) / prev
        for prev, curr in zip(revenues, revenues[1:])
        if prev > 0
    ]


def calculate_growth_stability(growth_rates: Sequence[float]) -> float:
    if len(growth_rates) < 2:
        return 0.5
    return max(0.1, 1.0 - coefficient_of_variation(growth_rates) * 5)


# =============================================================================
# Detectors
# =============================================================================


def analyze_trend(frame: pd.DataFrame) -> Optional[HistoricalPattern]:
    """
    Detect a linear revenue trend.

    Args:
        frame: Date-ordered history frame (see history_frame)

    Returns:
        Trend pattern, or None with fewer than MIN_TREND_POINTS points
    """
    if len(frame) < MIN_TREND_POINTS:
        return None

    revenues = frame["revenue"].astype(float).tolist()
    slope = normalized_slope(revenues)
    n = len(revenues)
    direction = mean(revenues[2 * n // 3:]) - mean(revenues[: n // 3])
    direction_text = "increasing" if direction > 0 else "decreasing"
    strength = classify_trend_strength(slope)

    if direction > 0 and strength == TrendStrength.STRONG:
        recommendations = [
            "Strong positive trend - consider rate stabilization strategies",
            "Monitor for sustainability of growth trend",
        ]
    elif direction < 0 and strength == TrendStrength.STRONG:
        recommendations = [
            "Strong negative trend - investigate underlying causes",
            "Consider revenue enhancement strategies",
        ]
    else:
        recommendations = ["Stable trend - maintain current strategies"]

    return HistoricalPattern(
        pattern_type=PatternType.TREND,
        description=f"{strength.value} {direction_text} trend detected",
        confidence=clamp(abs(slope), 0.0, 1.0),
        strength=abs(slope),
        direction=direction_text,
        recommendations=recommendations,
    )


def detect_seasonal_patterns(frame: pd.DataFrame) -> List[HistoricalPattern]:
    """
    Detect monthly and quarterly seasonality.

    Returns:
        Zero, one or two patterns; empty with fewer than MIN_SEASONAL_POINTS points
    """
    patterns: List[HistoricalPattern] = []
    if len(frame) < MIN_SEASONAL_POINTS:
        return patterns

    monthly = seasonal_strength(list(monthly_averages(frame).values()))
    if monthly > MONTHLY_SEASONAL_THRESHOLD:
        patterns.append(HistoricalPattern(
            pattern_type=PatternType.MONTHLY_SEASONAL,
            description=f"Monthly seasonal pattern detected with {monthly:.1%} variation",
            confidence=min(0.9, monthly * 5),
            strength=monthly,
            recommendations=[
                "Account for seasonal revenue variations in budgeting",
                "Consider seasonal rate adjustments if appropriate",
            ],
        ))

    quarterly_avgs = frame.groupby("quarter")["revenue"].mean().astype(float).tolist()
    quarterly = seasonal_strength(quarterly_avgs)
    if quarterly > QUARTERLY_SEASONAL_THRESHOLD:
        patterns.append(HistoricalPattern(
            pattern_type=PatternType.QUARTERLY_SEASONAL,
            description=f"Quarterly seasonal pattern detected with {quarterly:.1%} variation",
            confidence=min(0.8, quarterly * 3),
            strength=quarterly,
            recommendations=[
                "Plan for quarterly revenue fluctuations",
                "Align expense timing with revenue patterns",
            ],
        ))

    return patterns


def analyze_volatility(frame: pd.DataFrame) -> Optional[HistoricalPattern]:
    if len(frame) < MIN_VOLATILITY_POINTS:
        return None

    cv = coefficient_of_variation(frame["revenue"].astype(float).tolist())
    level = classify_volatility(cv)
    return HistoricalPattern(
        pattern_type=PatternType.VOLATILITY,
        description=f"Revenue volatility is {level.value}",
        confidence=0.8,
        strength=cv,
        recommendations=list(VOLATILITY_RECOMMENDATIONS[level]),
    )


def analyze_growth(frame: pd.DataFrame) -> Optional[HistoricalPattern]:
    if len(frame) < MIN_GROWTH_POINTS:
        return None

    growth_rates = calculate_growth_rates(frame["revenue"].astype(float).tolist())
    if not growth_rates:
        return None

    avg_growth = mean(growth_rates)
    stability = calculate_growth_stability(growth_rates)

    if avg_growth > 0.05 and stability > 0.6:
        recommendations = [
            "Consistent positive growth - good financial trajectory",
            "Consider infrastructure investments to support growth",
        ]
    elif avg_growth < -0.05:
        recommendations = [
            "Declining growth trend - investigate root causes",
            "Implement revenue recovery strategies",
        ]
    elif stability < 0.4:
        recommendations = [
            "Unstable growth pattern - focus on stabilization",
            "Identify factors causing growth volatility",
        ]
    else:
        recommendations = ["Stable moderate growth - maintain current approach"]

    return HistoricalPattern(
        pattern_type=PatternType.GROWTH,
        description=(
            f"Average growth rate: {avg_growth:.2%}, "
            f"Stability: {describe_stability(stability)}"
        ),
        confidence=clamp(stability, 0.0, 1.0),
        strength=abs(avg_growth),
        direction="positive" if avg_growth > 0 else "negative",
        recommendations=recommendations,
    )


def analyze_historical_patterns(history: Sequence[HistoricalDataPoint]) -> List[HistoricalPattern]:
    """
    Run every detector over the revenue history.

    Args:
        history: Historical observations in any order

    Returns:
        All patterns found. Empty history yields one insufficient_data
        pattern (confidence 0.1); an internal fault yields one
        analysis_error pattern (confidence 0).

    Example:
        >>> patterns = analyze_historical_patterns(history)
        >>> [p.pattern_type.value for p in patterns]
        ['trend', 'monthly_seasonal', 'volatility', 'growth']
    """
    if not history:
        return [HistoricalPattern(
            pattern_type=PatternType.INSUFFICIENT_DATA,
            description="Limited historical data available for pattern analysis",
            confidence=0.1,
            recommendations=["Collect more historical data for better predictions"],
        )]

    try:
        frame = history_frame(history)
        patterns: List[HistoricalPattern] = []

        trend = analyze_trend(frame)
        if trend is not None:
            patterns.append(trend)

        patterns.extend(detect_seasonal_patterns(frame))

        volatility = analyze_volatility(frame)
        if volatility is not None:
            patterns.append(volatility)

        growth = analyze_growth(frame)
        if growth is not None:
            patterns.append(growth)

        return patterns

    except Exception as e:
        logger.error(f"Historical pattern analysis failed: {e}", exc_info=True)
        return [HistoricalPattern(
            pattern_type=PatternType.ANALYSIS_ERROR,
            description=f"Pattern analysis encountered an error: {e}",
            confidence=0.0,
            recommendations=["Review data quality and try analysis again"],
        )]
