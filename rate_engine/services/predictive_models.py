"""
Predictive Models - Closed-Form Rate and Customer Behaviour Calculators

Every model shares one interface: name, version, base confidence and
predict(features) -> PredictionResult. None of them is trained; each is a
deterministic formula with the fixed coefficients declared below so they can
be audited and tested directly.

This module holds:
1. PredictiveModel - the shared interface and the never-raise predict wrapper
2. ModelRegistry - explicit key -> model map injected into the engine
3. RateOptimizationModel - optimal rate with efficiency, affordability and
   seasonal factors and a +/-10% range
4. CustomerBehaviorModel - usage change, retention, churn and segment impacts

The anomaly, seasonal forecast and revenue models live in anomaly_detection.py
and forecasting.py and implement the same interface.

Failure policy: predict() validates its features, then catches every fault
and returns the model's fallback with confidence <= 0.3 and an error message.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Mapping, Optional

from rate_engine.core.exceptions import (
    ComputationFaultError,
    InsufficientDataError,
    ModelUnavailableError,
)
from rate_engine.models import (
    CustomerBehaviorPrediction,
    CustomerSegmentImpact,
    FeatureSet,
    FeatureVector,
    PredictionResult,
    RatePrediction,
)
from rate_engine.services.statistics import clamp, is_finite

logger = logging.getLogger(__name__)


# =============================================================================
# Shared Constants
# =============================================================================

# Confidence ceiling for any degraded result
FALLBACK_CONFIDENCE: float = 0.3

# Rate optimization coefficients
RATE_RANGE_VARIANCE: float = 0.10
EFFICIENCY_HIGH_RATIO: float = 1.2
EFFICIENCY_LOW_RATIO: float = 0.9
EFFICIENCY_HIGH_FACTOR: float = 0.95
EFFICIENCY_LOW_FACTOR: float = 1.1
AFFORDABILITY_HIGH_INDEX: float = 0.8
AFFORDABILITY_LOW_INDEX: float = 0.6
AFFORDABILITY_HIGH_FACTOR: float = 1.05
AFFORDABILITY_LOW_FACTOR: float = 0.95
SUMMER_MONTHS = (6, 7, 8)
WINTER_MONTHS = (12, 1, 2)
SUMMER_SEASONAL_WEIGHT: float = 0.5
WINTER_SEASONAL_WEIGHT: float = 0.3

# Customer behaviour coefficients
ASSUMED_RATE_CHANGE: float = 0.10
LOW_AFFORDABILITY_AMPLIFIER: float = 1.5
HIGH_AFFORDABILITY_DAMPENER: float = 0.7
BASE_RETENTION: float = 97.0
RETENTION_BOUNDS = (85.0, 99.0)
BASE_CHURN: float = 2.0
MAX_CHURN: float = 25.0

# (segment, population %, usage multiplier, churn multiplier, revenue %)
CUSTOMER_SEGMENTS = [
    ("Residential", 85.0, 0.9, 0.8, 75.0),
    ("Commercial", 12.0, 1.2, 1.5, 20.0),
    ("Industrial", 3.0, 1.5, 2.0, 5.0),
]


# =============================================================================
# Model Interface
# =============================================================================


class PredictiveModel(ABC):
    """
    Shared interface for the closed-form predictive models.

    Subclasses set name/version/confidence and implement _predict and
    fallback. Callers only use predict(), which never raises.
    """

    name: str = "PredictiveModel"
    version: str = "1.0.0"
    confidence: float = 0.7
    feature_set: FeatureSet = FeatureSet.RATE

    def predict(self, features: FeatureVector) -> PredictionResult:
        """
        Run the model, degrading to the fallback on any fault.

        Args:
            features: Feature vector produced by the feature extractor

        Returns:
            Model-specific PredictionResult; fallback results carry a
            non-empty error_message and confidence <= 0.3
        """
        try:
            self.validate(features)
            return self._predict(features)
        except Exception as e:
            logger.warning(f"{self.name} v{self.version} degraded to fallback: {e}")
            return self.fallback(features, f"{self.name} error: {e}")

    def validate(self, features: FeatureVector) -> None:
        """
        Reject feature vectors with no financial evidence.

        Raises:
            InsufficientDataError: when both TotalRevenue and TotalExpenses are 0
        """
        if features.feature_set != self.feature_set:
            raise InsufficientDataError(
                f"expected {self.feature_set.value} features, got {features.feature_set.value}",
                stage=self.name,
            )
        if features.get("TotalRevenue") == 0 and features.get("TotalExpenses") == 0:
            raise InsufficientDataError(
                "total revenue and total expenses are both zero",
                stage=self.name,
            )

    @abstractmethod
    def _predict(self, features: FeatureVector) -> PredictionResult:
        """Compute the prediction; may raise."""

    @abstractmethod
    def fallback(self, features: FeatureVector, message: str) -> PredictionResult:
        """Conservative result centred on current values."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, version={self.version!r})"


# =============================================================================
# Model Registry
# =============================================================================


class ModelRegistry:
    """
    Explicit key -> model map passed into the engine at construction.

    Example:
        >>> registry = ModelRegistry({"rate_optimization": RateOptimizationModel()})
        >>> registry.get("rate_optimization").name
        'RateOptimizer'
        >>> "seasonal_forecast" in registry
        False

    get() raises ModelUnavailableError for an unregistered key.
    """

    def __init__(self, models: Optional[Mapping[str, PredictiveModel]] = None) -> None:
        self._models: Dict[str, PredictiveModel] = {}
        for key, model in (models or {}).items():
            self.register(key, model)

    def register(self, key: str, model: PredictiveModel) -> None:
        key = getattr(key, "value", key)
        if key in self._models:
            logger.info(f"Replacing registered model '{key}' with {model!r}")
        self._models[key] = model

    def get(self, key: str) -> PredictiveModel:
        key = getattr(key, "value", key)
        try:
            return self._models[key]
        except KeyError:
            raise ModelUnavailableError(key) from None

    def versions(self) -> Dict[str, str]:
        """Model name and version per key, for audit trails."""
        return {key: f"{m.name} {m.version}" for key, m in self._models.items()}

    def __contains__(self, key: object) -> bool:
        return getattr(key, "value", key) in self._models

    def __iter__(self) -> Iterator[str]:
        return iter(self._models)

    def __len__(self) -> int:
        return len(self._models)


# =============================================================================
# Rate Optimization Model
# =============================================================================


def calculate_base_rate(features: FeatureVector) -> float:
    """max(current rate, expenses / customers / 12)."""
    customers = max(features.get("CustomerBase"), 1.0)
    cost_recovery_rate = features.get("TotalExpenses") / customers / 12.0
    return max(features.get("CurrentRate"), cost_recovery_rate)


def calculate_efficiency_factor(revenue: float, expenses: float) -> float:
    """0.95 when revenue/expenses > 1.2, 1.1 when < 0.9, else 1.0."""
    if revenue <= 0 or expenses <= 0:
        return 1.0
    ratio = revenue / expenses
    if ratio > EFFICIENCY_HIGH_RATIO:
        return EFFICIENCY_HIGH_FACTOR
    if ratio < EFFICIENCY_LOW_RATIO:
        return EFFICIENCY_LOW_FACTOR
    return 1.0


def calculate_affordability_factor(affordability_index: float) -> float:
    """1.05 above 0.8, 0.95 below 0.6, else 1.0."""
    if affordability_index > AFFORDABILITY_HIGH_INDEX:
        return AFFORDABILITY_HIGH_FACTOR
    if affordability_index < AFFORDABILITY_LOW_INDEX:
        return AFFORDABILITY_LOW_FACTOR
    return 1.0


def calculate_seasonal_factor(seasonal_adjustment: float, month: int) -> float:
    """Summer 1 + 0.5 * adj, winter 1 - 0.3 * adj, spring and fall 1.0."""
    if month in SUMMER_MONTHS:
        return 1.0 + seasonal_adjustment * SUMMER_SEASONAL_WEIGHT
    if month in WINTER_MONTHS:
        return 1.0 - seasonal_adjustment * WINTER_SEASONAL_WEIGHT
    return 1.0


def calculate_customer_impact_score(current_rate: float, proposed_rate: float) -> float:
    """
    Customer impact on a 1-9 scale; higher means a gentler change.

    |change| < 5% -> 9, < 10% -> 7, < 20% -> 5, < 30% -> 3, otherwise 1.
    Neutral 5 without a current rate.
    """
    if current_rate <= 0:
        return 5.0
    change = abs((proposed_rate - current_rate) / current_rate)
    if change < 0.05:
        return 9.0
    if change < 0.10:
        return 7.0
    if change < 0.20:
        return 5.0
    if change < 0.30:
        return 3.0
    return 1.0


def calculate_revenue_optimization_score(
    proposed_rate: float,
    customers: float,
    expenses: float
) -> float:
    """
    Break-even score from projected annual revenue over expenses.

    >= 1.20 -> 9, >= 1.10 -> 8, >= 1.05 -> 7, >= 1.00 -> 6, >= 0.95 -> 4,
    otherwise 2. Neutral 5 without expenses.
    """
    if expenses <= 0:
        return 5.0
    ratio = proposed_rate * customers * 12 / expenses
    for threshold, score in ((1.20, 9.0), (1.10, 8.0), (1.05, 7.0), (1.00, 6.0), (0.95, 4.0)):
        if ratio >= threshold:
            return score
    return 2.0


def build_rate_summary(prediction: RatePrediction) -> str:
    """Plain-text recommendation summary for a rate prediction."""
    lines = [
        f"Optimal rate range: ${prediction.min_rate:.2f} - ${prediction.max_rate:.2f}",
        f"Recommended rate: ${prediction.optimal_rate:.2f}",
    ]
    if prediction.seasonal_adjustment != 0:
        lines.append(f"Seasonal adjustment: {prediction.seasonal_adjustment:.1f}%")
    if prediction.confidence > 0.8:
        lines.append("High confidence in optimization results")
    elif prediction.confidence > 0.6:
        lines.append("Moderate confidence - consider additional data")
    else:
        lines.append("Low confidence - recommend careful monitoring")
    return "\n".join(lines)


class RateOptimizationModel(PredictiveModel):
    """
    Optimal monthly rate from cost recovery, efficiency, affordability and season.

    optimal = base * efficiency * affordability * seasonal, range = optimal +/- 10%.

    Example:
        >>> features = extract_rate_features(context, as_of=date(2024, 4, 1))
        >>> result = RateOptimizationModel().predict(features)
        >>> result.min_rate <= result.optimal_rate <= result.max_rate
        True
    """

    name = "RateOptimizer"
    version = "2.1.0"
    confidence = 0.82
    feature_set = FeatureSet.RATE

    def _predict(self, features: FeatureVector) -> RatePrediction:
        current_rate = features.get("CurrentRate")
        revenue = features.get("TotalRevenue")
        expenses = features.get("TotalExpenses")
        customers = features.get("CustomerBase")
        affordability = features.get("AffordabilityIndex")
        seasonal_adjustment = features.get("SeasonalAdjustment")

        base_rate = calculate_base_rate(features)
        efficiency = calculate_efficiency_factor(revenue, expenses)
        affordability_factor = calculate_affordability_factor(affordability)
        seasonal = calculate_seasonal_factor(seasonal_adjustment, int(features.get("Month", 1)))

        optimal = base_rate * efficiency * affordability_factor * seasonal
        if not is_finite(optimal) or optimal < 0:
            raise ComputationFaultError(f"optimal rate is {optimal}", stage=self.name)

        variance = optimal * RATE_RANGE_VARIANCE
        prediction = RatePrediction(
            model_name=self.name,
            model_version=self.version,
            estimate=optimal,
            lower_bound=max(0.0, optimal - variance),
            upper_bound=optimal + variance,
            confidence=self._confidence(features),
            base_rate=base_rate,
            efficiency_factor=efficiency,
            affordability_factor=affordability_factor,
            seasonal_factor=seasonal,
            seasonal_adjustment=(seasonal - 1.0) * 100,
            seasonal_factors=self._seasonal_notes(seasonal_adjustment),
            optimization_score=self._optimization_score(current_rate, optimal, affordability),
            revenue_projection=optimal * customers * 12,
            affordability_impact=self._affordability_impact(current_rate, optimal, affordability),
            implementation_recommendations=self._recommendations(current_rate, optimal, affordability),
            customer_impact_score=calculate_customer_impact_score(current_rate, optimal),
            revenue_optimization_score=calculate_revenue_optimization_score(optimal, customers, expenses),
        )
        return prediction.model_copy(update={"recommendation_summary": build_rate_summary(prediction)})

    def _confidence(self, features: FeatureVector) -> float:
        confidence = 0.7
        if features.get("CustomerBase") > 100:
            confidence += 0.1
        if features.get("TotalRevenue") > 0 and features.get("TotalExpenses") > 0:
            confidence += 0.1
        if features.get("CurrentRate") > 0:
            confidence += 0.05
        if features.is_observed("AffordabilityIndex"):
            confidence += 0.05
        return min(0.95, confidence)

    @staticmethod
    def _seasonal_notes(seasonal_adjustment: float) -> List[str]:
        if abs(seasonal_adjustment) > 0.1:
            return [
                "Significant seasonal usage variations detected",
                "Summer peak usage periods",
                "Winter usage reduction patterns",
            ]
        return ["Stable year-round usage patterns"]

    @staticmethod
    def _optimization_score(current_rate: float, optimal: float, affordability: float) -> float:
        score = 5.0
        if current_rate > 0:
            change = abs((optimal - current_rate) / current_rate)
            if change < 0.05:
                score += 2.0
            elif change < 0.10:
                score += 1.0
            elif change > 0.25:
                score -= 1.0
        if affordability > AFFORDABILITY_HIGH_INDEX:
            score += 1.0
        elif affordability < AFFORDABILITY_LOW_INDEX:
            score -= 1.0
        return clamp(score, 1.0, 10.0)

    @staticmethod
    def _affordability_impact(current_rate: float, optimal: float, affordability: float) -> float:
        # 1-10, lower is better for customers
        if current_rate <= 0:
            return 5.0
        change = (optimal - current_rate) / current_rate
        impact = change / max(affordability, 0.1)
        return clamp(5.0 + impact * 10, 1.0, 10.0)

    @staticmethod
    def _recommendations(current_rate: float, optimal: float, affordability: float) -> List[str]:
        recommendations: List[str] = []
        if current_rate > 0:
            change = (optimal - current_rate) / current_rate
            if abs(change) > 0.15:
                recommendations.append("Consider phased implementation over 6-12 months")
                recommendations.append("Communicate changes to customers well in advance")
            if change > 0.1:
                recommendations.append("Provide clear justification for rate increase")
                recommendations.append("Consider customer assistance programs")
            if change < -0.1:
                recommendations.append("Rate reduction opportunity - ensure long-term sustainability")
        if affordability < 0.7:
            recommendations.append("Monitor customer burden carefully")
            recommendations.append("Consider graduated rate structure")
        return recommendations or ["Current rate structure appears optimal"]

    def fallback(self, features: FeatureVector, message: str) -> RatePrediction:
        current_rate = max(0.0, features.get("CurrentRate"))
        return RatePrediction(
            model_name=self.name,
            model_version=self.version,
            estimate=current_rate,
            lower_bound=current_rate * 0.95,
            upper_bound=current_rate * 1.05,
            confidence=FALLBACK_CONFIDENCE,
            error_message=message,
            base_rate=current_rate,
            customer_impact_score=5.0,
            revenue_optimization_score=5.0,
            implementation_recommendations=["Retain current rate until data issues are resolved"],
            recommendation_summary=(
                f"Conservative rate adjustment recommended due to analysis error: {message}"
            ),
        )


# =============================================================================
# Customer Behavior Model
# =============================================================================


def calculate_usage_change(elasticity: float, affordability: float) -> float:
    """Usage change in percent for an assumed 10% rate change."""
    change = elasticity * ASSUMED_RATE_CHANGE
    if affordability < AFFORDABILITY_LOW_INDEX:
        change *= LOW_AFFORDABILITY_AMPLIFIER
    elif affordability > 0.9:
        change *= HIGH_AFFORDABILITY_DAMPENER
    return change * 100


def calculate_retention_rate(affordability: float, service_quality: float, competition: float) -> float:
    """Retention in percent, starting at 97 and clamped to [85, 99]."""
    retention = BASE_RETENTION
    if affordability < 0.5:
        retention -= 5.0
    elif affordability < 0.7:
        retention -= 2.0
    if service_quality < 5.0:
        retention -= 3.0
    elif service_quality > 8.0:
        retention += 1.0
    if competition > 7.0:
        retention -= 2.0
    return clamp(retention, *RETENTION_BOUNDS)


def calculate_churn_risk(affordability: float, service_quality: float, competition: float) -> float:
    """Churn risk in percent, starting at 2 and capped at 25."""
    churn = BASE_CHURN
    if affordability < 0.5:
        churn += 8.0
    elif affordability < 0.7:
        churn += 4.0
    if service_quality < 5.0:
        churn += 5.0
    if competition > 7.0:
        churn += 3.0
    return min(MAX_CHURN, churn)


class CustomerBehaviorModel(PredictiveModel):
    """
    Customer response to a rate change.

    The estimate is the expected usage change in percent; its bounds span the
    least and most sensitive customer segments.
    """

    name = "CustomerBehaviorPredictor"
    version = "1.8.0"
    confidence = 0.76
    feature_set = FeatureSet.BEHAVIOR

    def _predict(self, features: FeatureVector) -> CustomerBehaviorPrediction:
        elasticity = features.get("PriceElasticity", -0.5)
        affordability = features.get("AffordabilityIndex")
        service_quality = features.get("ServiceQuality")
        competition = features.get("CompetitiveLandscape")

        usage = calculate_usage_change(elasticity, affordability)
        retention = calculate_retention_rate(affordability, service_quality, competition)
        churn = calculate_churn_risk(affordability, service_quality, competition)
        revenue_impact = ((1 + usage / 100) * (1 - (100 - retention) / 100) - 1) * 100

        segments = [
            CustomerSegmentImpact(
                segment=segment,
                population_share=population,
                usage_change=usage * usage_mult,
                churn_risk=churn * churn_mult,
                revenue_share=revenue_share,
            )
            for segment, population, usage_mult, churn_mult, revenue_share in CUSTOMER_SEGMENTS
        ]
        segment_usage = [s.usage_change for s in segments] + [usage]

        return CustomerBehaviorPrediction(
            model_name=self.name,
            model_version=self.version,
            estimate=usage,
            lower_bound=min(segment_usage),
            upper_bound=max(segment_usage),
            confidence=self._confidence(features),
            retention_rate=retention,
            price_elasticity=elasticity,
            affordability_index=affordability,
            churn_risk=churn,
            revenue_impact=revenue_impact,
            segment_impacts=segments,
            key_drivers=self._drivers(elasticity, affordability, service_quality, competition),
            behavior_risks=self._risks(usage, churn, affordability, service_quality),
            recommended_mitigations=self._mitigations(usage, churn, elasticity, affordability),
        )

    def _confidence(self, features: FeatureVector) -> float:
        confidence = 0.6
        customers = features.get("CustomerBase")
        if customers > 500:
            confidence += 0.1
        if customers > 1000:
            confidence += 0.05
        if features.is_observed("PriceElasticity"):
            confidence += 0.1
        if features.is_observed("AffordabilityIndex"):
            confidence += 0.05
        return min(0.9, confidence)

    @staticmethod
    def _drivers(elasticity: float, affordability: float, quality: float, competition: float) -> List[str]:
        drivers: List[str] = []
        if affordability < 0.7:
            drivers.append("Affordability constraints")
        if abs(elasticity) > 1.0:
            drivers.append("High price sensitivity")
        if quality > 8.0:
            drivers.append("High service satisfaction")
        elif quality < 5.0:
            drivers.append("Service quality concerns")
        if competition > 6.0:
            drivers.append("Competitive market pressures")
        return drivers or ["Standard utility customer behavior patterns"]

    @staticmethod
    def _risks(usage: float, churn: float, affordability: float, quality: float) -> List[str]:
        risks: List[str] = []
        if usage < -10.0:
            risks.append("Significant usage reduction expected")
        if churn > 10.0:
            risks.append("Elevated customer churn risk")
        if affordability < AFFORDABILITY_LOW_INDEX:
            risks.append("Customer affordability stress")
        if quality < 6.0:
            risks.append("Service quality may drive negative behavior")
        return risks or ["Low behavioral risk profile"]

    @staticmethod
    def _mitigations(usage: float, churn: float, elasticity: float, affordability: float) -> List[str]:
        strategies: List[str] = []
        if churn > 10.0:
            strategies.append("Implement customer retention program")
        if affordability < 0.7:
            strategies.append("Consider payment assistance programs")
        if usage < -10.0:
            strategies.append("Plan for reduced usage revenue impact")
        if elasticity < -1.0:
            strategies.append("Rate changes will significantly impact usage - phase implementation")
        return strategies or ["Monitor customer response closely"]

    def fallback(self, features: FeatureVector, message: str) -> CustomerBehaviorPrediction:
        return CustomerBehaviorPrediction(
            model_name=self.name,
            model_version=self.version,
            estimate=-2.0,
            lower_bound=-2.0,
            upper_bound=-2.0,
            confidence=FALLBACK_CONFIDENCE,
            error_message=message,
            retention_rate=95.0,
            price_elasticity=-0.5,
            affordability_index=features.get("AffordabilityIndex", 0.7),
            churn_risk=5.0,
            key_drivers=["Rate sensitivity", "Economic conditions"],
            recommended_mitigations=[
                "Gradual rate implementation",
                "Customer communication plan",
            ],
        )
