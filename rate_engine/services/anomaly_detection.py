"""
Financial Anomaly Detection - Three Independent Detection Layers

1. STATISTICAL - thresholds on the supplied moments
   - StandardDeviation > 2 x sensitivity -> high_volatility (Medium)
   - |Skewness| > 2 -> distribution_skew (Low)
2. PATTERN - properties of the series itself
   - irregular sampling frequency -> irregular_timing (Medium)
   - fewer points than the baseline window -> insufficient_data (Low)
3. CONTEXTUAL - calendar-aware municipal finance patterns
   - November/December -> year_end_spending (Low)
   - June-August with a known mean -> seasonal_variation (Low)

Each layer appends zero or more anomalies and never suppresses the others.
The reference month for the contextual layer is ReferenceMonth when the
engine supplies it, otherwise the month of the latest observation.
"""

import logging
from datetime import datetime
from typing import List

from rate_engine.models import (
    Anomaly,
    AnomalyDetectionResult,
    AnomalySeverity,
    AnomalyType,
    FeatureSet,
    FeatureVector,
    SamplingFrequency,
)
from rate_engine.services.predictive_models import PredictiveModel
from rate_engine.services.statistics import clamp

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

VOLATILITY_SENSITIVITY_MULTIPLIER: float = 2.0
VOLATILITY_SCORE_SCALE: float = 1000.0
SKEWNESS_THRESHOLD: float = 2.0
SKEWNESS_SCORE_SCALE: float = 10.0
YEAR_END_START_MONTH: int = 11
SUMMER_MONTHS = (6, 7, 8)


# =============================================================================
# Detection Layers
# =============================================================================


def _reference_timestamp(features: FeatureVector) -> datetime:
    latest = features.labels.get("LatestTimestamp")
    if latest:
        return datetime.fromisoformat(latest)
    return datetime.now()


def _reference_month(features: FeatureVector, timestamp: datetime) -> int:
    if features.has("ReferenceMonth"):
        return int(features.get("ReferenceMonth"))
    if features.has("LatestMonth"):
        return int(features.get("LatestMonth"))
    return timestamp.month


def detect_statistical_anomalies(features: FeatureVector, timestamp: datetime) -> List[Anomaly]:
    """
    Statistical layer: volatility and skew thresholds on the moments.

    Args:
        features: Anomaly feature vector
        timestamp: Timestamp stamped on every anomaly

    Returns:
        Zero, one or two anomalies
    """
    anomalies: List[Anomaly] = []
    sensitivity = features.get("SensitivityLevel", 0.05)

    if features.has("StandardDeviation"):
        std = features.get("StandardDeviation")
        if std > sensitivity * VOLATILITY_SENSITIVITY_MULTIPLIER:
            anomalies.append(Anomaly(
                timestamp=timestamp,
                anomaly_type=AnomalyType.HIGH_VOLATILITY,
                severity=AnomalySeverity.MEDIUM,
                anomaly_score=min(1.0, std / VOLATILITY_SCORE_SCALE),
                expected_value=sensitivity * VOLATILITY_SENSITIVITY_MULTIPLIER,
                actual_value=std,
                deviation=std,
                description="Unusually high data volatility detected",
                potential_causes=["Irregular spending patterns", "Data entry errors", "Seasonal variations"],
                recommended_actions=["Review recent transactions", "Verify data accuracy"],
                confidence=0.7,
            ))

    if features.has("Skewness"):
        skew = features.get("Skewness")
        if abs(skew) > SKEWNESS_THRESHOLD:
            anomalies.append(Anomaly(
                timestamp=timestamp,
                anomaly_type=AnomalyType.DISTRIBUTION_SKEW,
                severity=AnomalySeverity.LOW,
                anomaly_score=clamp(abs(skew) / SKEWNESS_SCORE_SCALE, 0.0, 1.0),
                actual_value=skew,
                deviation=abs(skew) - SKEWNESS_THRESHOLD,
                description=f"Data distribution highly skewed ({skew:.2f})",
                potential_causes=["Outlier transactions", "Irregular billing cycles"],
                recommended_actions=["Investigate extreme values", "Consider data transformation"],
                confidence=0.6,
            ))

    return anomalies


def detect_pattern_anomalies(features: FeatureVector, timestamp: datetime) -> List[Anomaly]:
    """Pattern layer: irregular sampling and short history."""
    anomalies: List[Anomaly] = []

    if features.labels.get("SamplingFrequency") == SamplingFrequency.IRREGULAR.value:
        anomalies.append(Anomaly(
            timestamp=timestamp,
            anomaly_type=AnomalyType.IRREGULAR_TIMING,
            severity=AnomalySeverity.MEDIUM,
            anomaly_score=0.6,
            description="Irregular data sampling pattern detected",
            potential_causes=["Inconsistent data collection", "System issues"],
            recommended_actions=["Standardize data collection intervals", "Check system reliability"],
            confidence=0.8,
        ))

    length = features.get("DataLength")
    window = features.get("BaselineWindow", 30)
    if length < window:
        anomalies.append(Anomaly(
            timestamp=timestamp,
            anomaly_type=AnomalyType.INSUFFICIENT_DATA,
            severity=AnomalySeverity.LOW,
            anomaly_score=0.3,
            expected_value=window,
            actual_value=length,
            deviation=window - length,
            description="Insufficient historical data for reliable analysis",
            potential_causes=["New system implementation", "Data loss"],
            recommended_actions=["Extend data collection period", "Verify data completeness"],
            confidence=0.9,
        ))

    return anomalies


def detect_contextual_anomalies(features: FeatureVector, timestamp: datetime) -> List[Anomaly]:
    """Contextual layer: year-end spending and summer usage surges."""
    anomalies: List[Anomaly] = []
    month = _reference_month(features, timestamp)

    if month >= YEAR_END_START_MONTH:
        anomalies.append(Anomaly(
            timestamp=timestamp,
            anomaly_type=AnomalyType.YEAR_END_SPENDING,
            severity=AnomalySeverity.LOW,
            anomaly_score=0.4,
            description="Year-end spending surge period - monitor for budget exhaustion",
            potential_causes=["Use-or-lose budget policies", "Deferred maintenance"],
            recommended_actions=["Review remaining budget allocations", "Prioritize essential expenses"],
            confidence=0.8,
        ))

    if month in SUMMER_MONTHS and features.has("Mean"):
        anomalies.append(Anomaly(
            timestamp=timestamp,
            anomaly_type=AnomalyType.SEASONAL_VARIATION,
            severity=AnomalySeverity.LOW,
            anomaly_score=0.2,
            actual_value=features.get("Mean"),
            description="Summer seasonal usage pattern - expect higher consumption",
            potential_causes=["Increased irrigation", "Higher temperatures"],
            recommended_actions=["Monitor peak capacity", "Plan for seasonal revenue variation"],
            confidence=0.7,
        ))

    return anomalies


# =============================================================================
# Model
# =============================================================================


class AnomalyDetectionModel(PredictiveModel):
    """
    Runs the statistical, pattern and contextual layers in order.

    The estimate is the highest anomaly score (0 when nothing is flagged),
    bounded by [0, 1].

    Example:
        >>> features = extract_anomaly_features(series, AnomalyDetectionConfig())
        >>> result = AnomalyDetectionModel().predict(features)
        >>> [a.anomaly_type.value for a in result.anomalies]
        ['high_volatility', 'insufficient_data']
    """

    name = "FinancialAnomalyDetector"
    version = "1.5.0"
    confidence = 0.84
    feature_set = FeatureSet.ANOMALY

    def _predict(self, features: FeatureVector) -> AnomalyDetectionResult:
        timestamp = _reference_timestamp(features)
        anomalies: List[Anomaly] = []
        anomalies.extend(detect_statistical_anomalies(features, timestamp))
        anomalies.extend(detect_pattern_anomalies(features, timestamp))
        anomalies.extend(detect_contextual_anomalies(features, timestamp))

        logger.debug(f"{self.name} flagged {len(anomalies)} anomalies")
        top_score = max((a.anomaly_score for a in anomalies), default=0.0)
        return AnomalyDetectionResult(
            model_name=self.name,
            model_version=self.version,
            estimate=top_score,
            lower_bound=0.0,
            upper_bound=1.0,
            confidence=self.confidence,
            anomalies=anomalies,
        )

    def fallback(self, features: FeatureVector, message: str) -> AnomalyDetectionResult:
        error = Anomaly(
            timestamp=datetime.now(),
            anomaly_type=AnomalyType.DETECTION_ERROR,
            severity=AnomalySeverity.LOW,
            anomaly_score=0.1,
            description=f"Anomaly detection failed: {message}",
            recommended_actions=["Review data quality", "Retry detection with different parameters"],
            confidence=0.0,
        )
        return AnomalyDetectionResult(
            model_name=self.name,
            model_version=self.version,
            estimate=error.anomaly_score,
            lower_bound=0.0,
            upper_bound=1.0,
            confidence=0.0,
            error_message=message,
            anomalies=[error],
        )
