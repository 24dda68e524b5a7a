"""
Confidence estimation for optimization results.

Three independent signals, averaged into the overall confidence:
- data quality: 0.5 plus 0.1 for each populated context field group
- model: 0.7 adjusted by score and risk level, clamped to [0.3, 1]
- implementation: 0.6 adjusted by duration and customer impact, clamped to [0.3, 1]
"""

from typing import List

from rate_engine.models import (
    EnterpriseContext,
    ImpactLevel,
    OptimizationConfidence,
    OptimizationScenario,
    RiskLevel,
)
from rate_engine.services.predictive_models import FALLBACK_CONFIDENCE
from rate_engine.services.statistics import clamp, mean


def data_quality_confidence(context: EnterpriseContext) -> float:
    confidence = 0.5
    if context.total_budget > 0:
        confidence += 0.1
    if context.customer_count > 0:
        confidence += 0.1
    if context.total_revenue > 0:
        confidence += 0.1
    if len(context.accounts) > 10:
        confidence += 0.1
    if context.affordability_index > 0:
        confidence += 0.1
    return min(1.0, confidence)


def model_confidence(scenario: OptimizationScenario) -> float:
    confidence = 0.7
    if scenario.evaluation is not None and scenario.evaluation.overall_score > 0.8:
        confidence += 0.1
    if scenario.risk_level == RiskLevel.LOW:
        confidence += 0.1
    elif scenario.risk_level == RiskLevel.HIGH:
        confidence -= 0.1
    return clamp(confidence, 0.3, 1.0)


def implementation_confidence(scenario: OptimizationScenario) -> float:
    confidence = 0.6
    if scenario.implementation_days <= 30:
        confidence += 0.1
    if scenario.expected_impact == ImpactLevel.MINIMAL:
        confidence += 0.15
    elif scenario.expected_impact == ImpactLevel.SIGNIFICANT:
        confidence -= 0.1
    return clamp(confidence, 0.3, 1.0)


def scenario_confidence(scenario: OptimizationScenario) -> float:
    """Mean of overall score, affordability score, 1 - risk and compliance (1 or 0.5)."""
    evaluation = scenario.evaluation
    if evaluation is None:
        return 0.5
    return clamp(mean([
        evaluation.overall_score,
        evaluation.affordability_score,
        1 - evaluation.risk_score,
        1.0 if evaluation.regulatory_compliance else 0.5,
    ]), 0.0, 1.0)


def confidence_factors(data_quality: float, model: float, implementation: float) -> List[str]:
    factors: List[str] = []

    if data_quality > 0.8:
        factors.append("High data quality supports reliable predictions")
    elif data_quality < 0.6:
        factors.append("Limited data quality may reduce prediction accuracy")

    if model > 0.8:
        factors.append("Model predictions show high confidence")
    elif model < 0.6:
        factors.append("Model uncertainty requires careful validation")

    if implementation > 0.8:
        factors.append("Implementation plan appears feasible")
    elif implementation < 0.6:
        factors.append("Implementation challenges may arise")

    return factors or ["Standard confidence level for optimization"]


def estimate_optimization_confidence(
    context: EnterpriseContext,
    scenario: OptimizationScenario
) -> OptimizationConfidence:
    """
    Aggregate confidence for the selected scenario.

    Returns:
        OptimizationConfidence whose overall value is the mean of the three signals
    """
    data_quality = data_quality_confidence(context)
    model = model_confidence(scenario)
    implementation = implementation_confidence(scenario)
    return OptimizationConfidence(
        data_quality_confidence=data_quality,
        model_confidence=model,
        implementation_confidence=implementation,
        overall_confidence=(data_quality + model + implementation) / 3,
        confidence_factors=confidence_factors(data_quality, model, implementation),
    )


def degraded_confidence(message: str) -> OptimizationConfidence:
    """Confidence attached to a fallback result."""
    return OptimizationConfidence(
        data_quality_confidence=FALLBACK_CONFIDENCE,
        model_confidence=FALLBACK_CONFIDENCE,
        implementation_confidence=FALLBACK_CONFIDENCE,
        overall_confidence=FALLBACK_CONFIDENCE,
        confidence_factors=[f"Optimization degraded: {message}"],
    )
