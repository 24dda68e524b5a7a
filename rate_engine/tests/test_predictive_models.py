"""
Test suite for the rate optimization and customer behavior models.

The tests verify:
1. The optimal rate is base x efficiency x affordability x seasonal with a
   +/-10% range, for the documented factor branches
2. Every model returns a fallback (confidence <= 0.3, error message) instead
   of raising when revenue and expenses are both zero
3. The registry raises ModelUnavailableError for unknown keys
4. Customer behavior retention, churn and segment bounds follow their rules
"""

from datetime import date
from typing import Callable, List

import pytest

from rate_engine.core.exceptions import ModelUnavailableError
from rate_engine.models import (
    EnterpriseContext,
    FeatureSet,
    FeatureVector,
    HistoricalDataPoint,
    ModelKey,
)
from rate_engine.services.anomaly_detection import AnomalyDetectionModel
from rate_engine.services.feature_extraction import (
    extract_anomaly_features,
    extract_behavior_features,
    extract_rate_features,
    extract_revenue_features,
    extract_time_series_features,
)
from rate_engine.services.forecasting import RevenuePredictionModel, SeasonalForecastModel
from rate_engine.services.predictive_models import (
    FALLBACK_CONFIDENCE,
    CustomerBehaviorModel,
    ModelRegistry,
    RateOptimizationModel,
    calculate_affordability_factor,
    calculate_churn_risk,
    calculate_customer_impact_score,
    calculate_efficiency_factor,
    calculate_retention_rate,
    calculate_revenue_optimization_score,
    calculate_seasonal_factor,
    calculate_usage_change,
)


# =============================================================================
# RATE FACTORS
# =============================================================================


class TestRateFactors:
    """Tests for the individual rate factor branches."""

    @pytest.mark.parametrize(
        "revenue,expenses,expected",
        [
            (130.0, 100.0, 0.95),
            (120.0, 100.0, 1.0),
            (96.0, 100.0, 1.0),
            (85.0, 100.0, 1.1),
            (0.0, 100.0, 1.0),
        ],
    )
    def test_efficiency_factor(self, revenue: float, expenses: float, expected: float) -> None:
        assert calculate_efficiency_factor(revenue, expenses) == expected

    @pytest.mark.parametrize(
        "index,expected",
        [(0.9, 1.05), (0.8, 1.0), (0.6, 1.0), (0.55, 0.95)],
    )
    def test_affordability_factor(self, index: float, expected: float) -> None:
        assert calculate_affordability_factor(index) == expected

    @pytest.mark.parametrize(
        "month,expected",
        [(7, 1.1), (1, 0.94), (12, 0.94), (4, 1.0), (10, 1.0)],
    )
    def test_seasonal_factor(self, month: int, expected: float) -> None:
        """Adjustment 0.2: summer +10%, winter -6%."""
        assert calculate_seasonal_factor(0.2, month) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "proposed,expected",
        [(102.0, 9.0), (108.0, 7.0), (115.0, 5.0), (125.0, 3.0), (140.0, 1.0)],
    )
    def test_customer_impact_score(self, proposed: float, expected: float) -> None:
        assert calculate_customer_impact_score(100.0, proposed) == expected

    def test_revenue_optimization_score_break_even(self) -> None:
        """40 x 1000 x 12 = 480000 against 500000 expenses is a 0.96 ratio."""
        assert calculate_revenue_optimization_score(40.0, 1000, 500000.0) == 4.0
        assert calculate_revenue_optimization_score(50.0, 1000, 500000.0) == 9.0
        assert calculate_revenue_optimization_score(50.0, 1000, 0.0) == 5.0


# =============================================================================
# RATE OPTIMIZATION MODEL
# =============================================================================


class TestRateOptimizationModel:
    """Tests for RateOptimizationModel.predict."""

    def test_low_affordability_water_utility(
        self,
        water_context: EnterpriseContext,
        as_of: date
    ) -> None:
        """
        Base rate is max(40, 500000 / 1000 / 12) = 41.67.

        Revenue/expenses is 0.96, inside the neutral efficiency band, and
        affordability 0.55 applies the 0.95 factor.
        """
        result = RateOptimizationModel().predict(extract_rate_features(water_context, as_of=as_of))

        base = 500000.0 / 1000 / 12
        assert not result.is_fallback
        assert result.base_rate == pytest.approx(base)
        assert result.efficiency_factor == 1.0
        assert result.affordability_factor == 0.95
        assert result.optimal_rate == pytest.approx(base * 0.95)
        assert result.min_rate == pytest.approx(base * 0.95 * 0.9)
        assert result.max_rate == pytest.approx(base * 0.95 * 1.1)

    def test_underfunded_utility_applies_efficiency_factor(
        self,
        underfunded_context: EnterpriseContext,
        as_of: date
    ) -> None:
        """Revenue/expenses 0.857 < 0.9 gives optimal = base x 1.1 x 0.95."""
        result = RateOptimizationModel().predict(extract_rate_features(underfunded_context, as_of=as_of))

        base = 560000.0 / 1000 / 12
        assert result.efficiency_factor == 1.1
        assert result.affordability_factor == 0.95
        assert result.optimal_rate == pytest.approx(base * 1.1 * 0.95)
        assert result.min_rate <= result.optimal_rate <= result.max_rate

    def test_summer_seasonal_adjustment(self, sewer_context: EnterpriseContext) -> None:
        """July with a 10% seasonal adjustment raises the rate by 5%."""
        result = RateOptimizationModel().predict(
            extract_rate_features(sewer_context, as_of=date(2024, 7, 15))
        )

        assert result.seasonal_factor == pytest.approx(1.05)
        assert result.seasonal_adjustment == pytest.approx(5.0)

    def test_confidence_and_summary(self, water_context: EnterpriseContext, as_of: date) -> None:
        """All evidence present: 0.7 + 0.1 + 0.1 + 0.05 + 0.05 = 1.0, capped at 0.95."""
        result = RateOptimizationModel().predict(extract_rate_features(water_context, as_of=as_of))

        assert result.confidence == pytest.approx(0.95)
        assert "Recommended rate" in result.recommendation_summary
        assert "Monitor customer burden carefully" in result.implementation_recommendations

    def test_fallback_on_empty_financials(self, empty_context: EnterpriseContext, as_of: date) -> None:
        """Current rate +/-5% with confidence 0.3."""
        result = RateOptimizationModel().predict(extract_rate_features(empty_context, as_of=as_of))

        assert result.is_fallback
        assert result.confidence == FALLBACK_CONFIDENCE
        assert result.optimal_rate == 20.0
        assert result.min_rate == pytest.approx(19.0)
        assert result.max_rate == pytest.approx(21.0)

    def test_wrong_feature_set_falls_back(self, water_context: EnterpriseContext) -> None:
        result = RateOptimizationModel().predict(extract_behavior_features(water_context))

        assert result.is_fallback
        assert "expected rate features" in result.error_message


# =============================================================================
# FALLBACK CONTRACT
# =============================================================================


FEATURE_BUILDERS: List[Callable] = [
    lambda ctx: (RateOptimizationModel(), extract_rate_features(ctx, as_of=date(2024, 4, 1))),
    lambda ctx: (CustomerBehaviorModel(), extract_behavior_features(ctx)),
    lambda ctx: (AnomalyDetectionModel(), extract_anomaly_features([], context=ctx)),
    lambda ctx: (SeasonalForecastModel(), extract_time_series_features([], ctx)),
    lambda ctx: (RevenuePredictionModel(), extract_revenue_features(ctx)),
]


class TestFallbackContract:
    """Every model degrades instead of raising on a context with no financials."""

    @pytest.mark.parametrize("build", FEATURE_BUILDERS)
    def test_zero_revenue_and_expenses(self, build: Callable, empty_context: EnterpriseContext) -> None:
        model, features = build(empty_context)
        result = model.predict(features)

        assert result.confidence <= FALLBACK_CONFIDENCE
        assert result.error_message
        assert result.lower_bound <= result.estimate <= result.upper_bound

    @pytest.mark.parametrize(
        "months,labels,expected_months",
        [
            (3.0, {"ForecastStart": "not-a-date"}, 3),
            (float("nan"), {}, 12),
            (float("inf"), {"ForecastStart": "2024-04-01"}, 12),
        ],
    )
    def test_seasonal_malformed_start_or_horizon(
        self,
        months: float,
        labels: dict,
        expected_months: int
    ) -> None:
        """A bad start label or non-finite horizon still yields a fallback forecast."""
        features = FeatureVector(
            feature_set=FeatureSet.TIME_SERIES,
            features={"TotalRevenue": 1.0, "AverageRevenue": 100.0, "ForecastMonths": months},
            labels=labels,
        )
        result = SeasonalForecastModel().predict(features)

        assert result.is_fallback
        assert result.confidence <= FALLBACK_CONFIDENCE
        assert result.forecast_months == expected_months
        assert len(result.monthly_forecasts) == expected_months

    def test_revenue_non_finite_horizon(self) -> None:
        features = FeatureVector(
            feature_set=FeatureSet.REVENUE,
            features={"TotalRevenue": 1200.0, "CurrentRevenue": 100.0, "ForecastMonths": float("nan")},
            labels={"ForecastStart": "not-a-date"},
        )
        result = RevenuePredictionModel().predict(features)

        assert result.is_fallback
        assert result.prediction_months == 12
        assert result.estimate == pytest.approx(1200.0)


# =============================================================================
# MODEL REGISTRY
# =============================================================================


class TestModelRegistry:
    """Tests for ModelRegistry."""

    def test_get_registered_model(self) -> None:
        registry = ModelRegistry({ModelKey.RATE_OPTIMIZATION: RateOptimizationModel()})

        assert registry.get("rate_optimization").name == "RateOptimizer"
        assert ModelKey.RATE_OPTIMIZATION in registry
        assert len(registry) == 1

    def test_missing_model_raises(self) -> None:
        registry = ModelRegistry()

        with pytest.raises(ModelUnavailableError) as exc_info:
            registry.get(ModelKey.SEASONAL_FORECAST)
        assert exc_info.value.model_key == "seasonal_forecast"

    def test_versions_for_audit(self) -> None:
        registry = ModelRegistry({"customer_behavior": CustomerBehaviorModel()})
        assert registry.versions() == {"customer_behavior": "CustomerBehaviorPredictor 1.8.0"}


# =============================================================================
# CUSTOMER BEHAVIOR MODEL
# =============================================================================


class TestCustomerBehaviorModel:
    """Tests for CustomerBehaviorModel and its helpers."""

    def test_usage_change_amplified_for_low_affordability(self) -> None:
        """-0.5 elasticity x 10% x 1.5 = -7.5%."""
        assert calculate_usage_change(-0.5, 0.55) == pytest.approx(-7.5)
        assert calculate_usage_change(-0.5, 0.95) == pytest.approx(-3.5)
        assert calculate_usage_change(-0.5, 0.7) == pytest.approx(-5.0)

    @pytest.mark.parametrize(
        "affordability,quality,competition,expected",
        [
            (0.4, 4.0, 8.0, 87.0),
            (0.65, 9.0, 2.0, 96.0),
            (0.9, 9.0, 2.0, 98.0),
            (0.1, 1.0, 9.0, 87.0),
        ],
    )
    def test_retention_rate(
        self,
        affordability: float,
        quality: float,
        competition: float,
        expected: float
    ) -> None:
        assert calculate_retention_rate(affordability, quality, competition) == expected

    def test_churn_risk_capped(self) -> None:
        assert calculate_churn_risk(0.4, 4.0, 8.0) == 18.0
        assert calculate_churn_risk(0.9, 9.0, 2.0) == 2.0

    def test_water_utility_behavior(self, water_context: EnterpriseContext) -> None:
        """
        Default elasticity, affordability 0.55, service quality 5, water monopoly.

        Usage -7.5%, retention 95%, churn 6%, segment bounds -11.25 to -6.75.
        """
        result = CustomerBehaviorModel().predict(extract_behavior_features(water_context))

        assert not result.is_fallback
        assert result.usage_change_percent == pytest.approx(-7.5)
        assert result.retention_rate == 95.0
        assert result.churn_risk == 6.0
        assert result.lower_bound == pytest.approx(-11.25)
        assert result.upper_bound == pytest.approx(-6.75)
        assert result.confidence == pytest.approx(0.75)
        assert [s.segment for s in result.segment_impacts] == ["Residential", "Commercial", "Industrial"]
        assert "Affordability constraints" in result.key_drivers

    def test_estimated_elasticity_raises_confidence(
        self,
        water_context: EnterpriseContext,
        elastic_history: List[HistoricalDataPoint]
    ) -> None:
        result = CustomerBehaviorModel().predict(extract_behavior_features(water_context, elastic_history))

        assert result.price_elasticity == pytest.approx(-0.8, abs=1e-6)
        assert result.confidence == pytest.approx(0.85)

    def test_feature_set_is_behavior(self) -> None:
        assert CustomerBehaviorModel.feature_set == FeatureSet.BEHAVIOR
