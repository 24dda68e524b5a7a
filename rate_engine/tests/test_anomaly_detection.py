"""
Test suite for the three-layer financial anomaly detector.

The tests verify:
1. A standard deviation above 2 x sensitivity yields a Medium high_volatility anomaly
2. Skew, irregular timing and short history are flagged independently
3. Contextual anomalies follow the reference month (year end, summer)
4. Detection degrades to a single detection_error anomaly instead of raising
"""

from datetime import datetime, timedelta
from typing import List

import pytest

from rate_engine.models import (
    AnomalyDetectionConfig,
    AnomalySeverity,
    AnomalyType,
    FeatureSet,
    FeatureVector,
    FinancialDataPoint,
)
from rate_engine.services.anomaly_detection import (
    AnomalyDetectionModel,
    detect_contextual_anomalies,
    detect_pattern_anomalies,
    detect_statistical_anomalies,
)
from rate_engine.services.engine import RateOptimizationEngine
from rate_engine.services.feature_extraction import extract_anomaly_features

STAMP = datetime(2024, 4, 15)


def _vector(**features: float) -> FeatureVector:
    base = {"TotalRevenue": 1000.0, "TotalExpenses": 0.0, "SensitivityLevel": 0.05}
    base.update(features)
    return FeatureVector(feature_set=FeatureSet.ANOMALY, features=base)


def _types(anomalies) -> List[AnomalyType]:
    return [a.anomaly_type for a in anomalies]


# =============================================================================
# STATISTICAL LAYER
# =============================================================================


class TestStatisticalLayer:
    """Tests for detect_statistical_anomalies."""

    def test_high_volatility_above_twice_sensitivity(self) -> None:
        anomalies = detect_statistical_anomalies(_vector(StandardDeviation=0.5), STAMP)

        assert _types(anomalies) == [AnomalyType.HIGH_VOLATILITY]
        assert anomalies[0].severity == AnomalySeverity.MEDIUM
        assert anomalies[0].expected_value == pytest.approx(0.1)

    def test_volatility_at_threshold_is_not_flagged(self) -> None:
        assert detect_statistical_anomalies(_vector(StandardDeviation=0.1), STAMP) == []

    @pytest.mark.parametrize("skew", [2.5, -3.0])
    def test_distribution_skew(self, skew: float) -> None:
        anomalies = detect_statistical_anomalies(_vector(Skewness=skew), STAMP)

        assert _types(anomalies) == [AnomalyType.DISTRIBUTION_SKEW]
        assert anomalies[0].severity == AnomalySeverity.LOW

    def test_missing_moments_flag_nothing(self) -> None:
        assert detect_statistical_anomalies(_vector(), STAMP) == []


# =============================================================================
# PATTERN AND CONTEXTUAL LAYERS
# =============================================================================


class TestPatternAndContextualLayers:
    """Tests for detect_pattern_anomalies and detect_contextual_anomalies."""

    def test_short_history_is_insufficient(self) -> None:
        anomalies = detect_pattern_anomalies(_vector(DataLength=10, BaselineWindow=30), STAMP)

        assert _types(anomalies) == [AnomalyType.INSUFFICIENT_DATA]
        assert anomalies[0].deviation == 20

    def test_irregular_sampling(self) -> None:
        features = _vector(DataLength=40, BaselineWindow=30).with_values(
            labels={"SamplingFrequency": "irregular"}
        )
        assert _types(detect_pattern_anomalies(features, STAMP)) == [AnomalyType.IRREGULAR_TIMING]

    @pytest.mark.parametrize(
        "month,expected",
        [
            (11, [AnomalyType.YEAR_END_SPENDING]),
            (12, [AnomalyType.YEAR_END_SPENDING]),
            (7, [AnomalyType.SEASONAL_VARIATION]),
            (4, []),
        ],
    )
    def test_reference_month(self, month: int, expected: List[AnomalyType]) -> None:
        features = _vector(ReferenceMonth=month, Mean=500.0)
        assert _types(detect_contextual_anomalies(features, STAMP)) == expected

    def test_summer_without_mean_is_quiet(self) -> None:
        assert detect_contextual_anomalies(_vector(ReferenceMonth=7), STAMP) == []


# =============================================================================
# MODEL
# =============================================================================


class TestAnomalyDetectionModel:
    """Tests for AnomalyDetectionModel.predict and the engine entry point."""

    def test_volatile_short_series(self, volatile_series: List[FinancialDataPoint]) -> None:
        """Ten monthly points ending in September: volatile and below the 30-point window."""
        result = AnomalyDetectionModel().predict(extract_anomaly_features(volatile_series))

        assert not result.is_fallback
        assert _types(result.anomalies) == [AnomalyType.HIGH_VOLATILITY, AnomalyType.INSUFFICIENT_DATA]
        assert result.estimate == max(a.anomaly_score for a in result.anomalies)

    def test_layers_do_not_suppress_each_other(
        self,
        volatile_series: List[FinancialDataPoint],
        engine: RateOptimizationEngine
    ) -> None:
        result = engine.detect_anomalies(volatile_series, reference_month=12)

        assert AnomalyType.HIGH_VOLATILITY in _types(result.anomalies)
        assert AnomalyType.INSUFFICIENT_DATA in _types(result.anomalies)
        assert AnomalyType.YEAR_END_SPENDING in _types(result.anomalies)

    def test_custom_config_window(self, volatile_series: List[FinancialDataPoint]) -> None:
        config = AnomalyDetectionConfig(baseline_window=5, sensitivity=1000.0)
        result = AnomalyDetectionModel().predict(extract_anomaly_features(volatile_series, config))
        assert result.anomalies == []
        assert result.estimate == 0.0

    def test_irregular_series(self) -> None:
        start = datetime(2020, 1, 1)
        series = [
            FinancialDataPoint(timestamp=start + timedelta(days=400 * i), value=100.0)
            for i in range(4)
        ]
        result = AnomalyDetectionModel().predict(extract_anomaly_features(series))
        assert AnomalyType.IRREGULAR_TIMING in _types(result.anomalies)

    def test_all_zero_series_degrades(
        self,
        engine: RateOptimizationEngine,
        faults: list
    ) -> None:
        """No financial evidence: one detection_error anomaly, confidence 0."""
        series = [FinancialDataPoint(timestamp=STAMP, value=0.0)]
        result = engine.detect_anomalies(series)

        assert result.is_fallback
        assert result.confidence == 0.0
        assert _types(result.anomalies) == [AnomalyType.DETECTION_ERROR]
        assert len(faults) == 1
