"""
Scenario Engine - Candidate Rate Adjustments, Evaluation and Selection

Three stages, all pure functions of (context, params):

1. GENERATE - always Conservative, Balanced and Aggressive; Custom when custom
   targets are supplied; Seasonal when |seasonal adjustment| > 5%
   - Conservative: 3%, Low risk, 30 days notice
   - Balanced: up to 8% scaled by affordability, budget pressure and
     demand elasticity, Medium risk, 60 days notice
   - Aggressive: same scaling up to 15%, High risk, 90 days notice
   - Custom: first custom target (default 5%), 60 days notice
   - Seasonal: half the seasonal adjustment, 45 days notice
   Every proposed adjustment is capped by params.max_rate_increase.
2. EVALUATE - revenue change, affordability score, risk score, complexity,
   regulatory compliance and one weighted overall score
3. SELECT - highest weighted score among compliant scenarios; ties go to the
   lower risk level, then to the earlier generated scenario

Regulatory gate:
    Non-compliant when any single adjustment exceeds 20% or a rate change
    gives customers less than 30 days notice. Non-compliant scenarios are
    still evaluated and reported, but are never selected as optimal.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

from rate_engine.models import (
    EnterpriseContext,
    ImpactLevel,
    OptimizationParameters,
    OptimizationScenario,
    RateAdjustment,
    RiskLevel,
    ScenarioEvaluation,
    ScenarioType,
)
from rate_engine.services.feature_extraction import FEATURE_DEFAULTS
from rate_engine.services.statistics import clamp

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

CONSERVATIVE_ADJUSTMENT: float = 0.03
BALANCED_MAX_ADJUSTMENT: float = 0.08
AGGRESSIVE_MAX_ADJUSTMENT: float = 0.15
DEFAULT_CUSTOM_ADJUSTMENT: float = 0.05
SEASONAL_SCENARIO_THRESHOLD: float = 0.05
SEASONAL_ADJUSTMENT_SHARE: float = 0.5

# Regulatory gate defaults (Settings.min_notice_days / max_compliant_adjustment)
MIN_NOTICE_DAYS: int = 30
MAX_COMPLIANT_ADJUSTMENT: float = 0.20

# Risk score accumulation
BASE_SCENARIO_RISK: float = 0.2
LARGE_ADJUSTMENT_THRESHOLD: float = 0.10
LARGE_ADJUSTMENT_RISK: float = 0.3
LOW_AFFORDABILITY_THRESHOLD: float = 0.6
LOW_AFFORDABILITY_RISK: float = 0.2
LONG_IMPLEMENTATION_DAYS: int = 90
LONG_IMPLEMENTATION_RISK: float = 0.1

# Revenue change that earns a full revenue score
REVENUE_NORMALIZER: float = 100000.0

# (customer count upper bound, demand elasticity)
DEMAND_ELASTICITY_BANDS = [
    (500, -0.8),
    (1000, -0.6),
    (2000, -0.4),
]
LARGE_SYSTEM_ELASTICITY: float = -0.2


# =============================================================================
# Adjustment Sizing
# =============================================================================


def estimate_demand_elasticity(customer_count: int) -> float:
    """Smaller systems are more price sensitive: -0.8 / -0.6 / -0.4 / -0.2."""
    for upper, elasticity in DEMAND_ELASTICITY_BANDS:
        if customer_count < upper:
            return elasticity
    return LARGE_SYSTEM_ELASTICITY


def resolve_affordability(context: EnterpriseContext) -> float:
    """The context's affordability index, or the neutral default when missing."""
    return context.affordability_index or FEATURE_DEFAULTS["AffordabilityIndex"]


def calculate_optimal_adjustment(context: EnterpriseContext, max_adjustment: float) -> float:
    """
    Scale max_adjustment by affordability, budget pressure and elasticity.

    adjustment = max * max(0.5, affordability) * (1 - remaining/budget) * (1 + elasticity)

    Args:
        context: Enterprise snapshot
        max_adjustment: Upper bound for the result

    Returns:
        Adjustment fraction in [0, max_adjustment]
    """
    affordability_factor = max(0.5, resolve_affordability(context))
    budget_pressure = (
        context.budget_remaining / context.total_budget if context.total_budget > 0 else 0.0
    )
    elasticity = estimate_demand_elasticity(context.customer_count)

    adjustment = max_adjustment * affordability_factor
    adjustment *= 1 - budget_pressure
    adjustment *= 1 + elasticity
    return clamp(adjustment, 0.0, max_adjustment)


def _cap(adjustment: float, params: OptimizationParameters) -> float:
    # Proposed rate must stay >= 0, so never below -100%
    return clamp(adjustment, -1.0, params.max_rate_increase)


def _adjustment(
    context: EnterpriseContext,
    fraction: float,
    effective_date: date,
    justification: str
) -> RateAdjustment:
    return RateAdjustment(
        rate_category="Base Rate",
        current_rate=context.current_rate,
        proposed_rate=context.current_rate * (1 + fraction),
        percentage_change=fraction,
        effective_date=effective_date,
        justification=justification,
    )


# =============================================================================
# Generation
# =============================================================================


def generate_scenarios(
    context: EnterpriseContext,
    params: OptimizationParameters,
    as_of: Optional[date] = None
) -> List[OptimizationScenario]:
    """
    Build the candidate scenarios for one optimization run.

    Deterministic for fixed (context, params, as_of); sequence numbers record
    generation order for tie-breaking.

    Args:
        context: Enterprise snapshot
        params: Optimization goals; max_rate_increase caps every adjustment
        as_of: Date notice periods are counted from (default: today)

    Returns:
        Conservative, Balanced, Aggressive, then Custom and Seasonal when they apply
    """
    as_of = as_of or date.today()
    scenarios: List[OptimizationScenario] = []

    conservative = _cap(CONSERVATIVE_ADJUSTMENT, params)
    scenarios.append(OptimizationScenario(
        name="Conservative Optimization",
        scenario_type=ScenarioType.CONSERVATIVE,
        description="Minimal rate adjustments with focus on stability",
        adjustments=[_adjustment(
            context, conservative, as_of + timedelta(days=30),
            "Conservative adjustment to maintain revenue stability",
        )],
        risk_level=RiskLevel.LOW,
        implementation_days=30,
        notice_days=30,
        expected_impact=ImpactLevel.MINIMAL,
    ))

    balanced = _cap(calculate_optimal_adjustment(context, BALANCED_MAX_ADJUSTMENT), params)
    scenarios.append(OptimizationScenario(
        name="Balanced Optimization",
        scenario_type=ScenarioType.BALANCED,
        description="Moderate rate adjustments balancing revenue and affordability",
        adjustments=[_adjustment(
            context, balanced, as_of + timedelta(days=60),
            "Balanced adjustment optimizing revenue while maintaining affordability",
        )],
        risk_level=RiskLevel.MEDIUM,
        implementation_days=60,
        notice_days=60,
        expected_impact=ImpactLevel.MODERATE,
    ))

    aggressive = _cap(calculate_optimal_adjustment(context, AGGRESSIVE_MAX_ADJUSTMENT), params)
    scenarios.append(OptimizationScenario(
        name="Aggressive Optimization",
        scenario_type=ScenarioType.AGGRESSIVE,
        description="Significant rate adjustments for maximum revenue optimization",
        adjustments=[_adjustment(
            context, aggressive, as_of + timedelta(days=90),
            "Aggressive adjustment for maximum revenue optimization",
        )],
        risk_level=RiskLevel.HIGH,
        implementation_days=90,
        notice_days=90,
        expected_impact=ImpactLevel.SIGNIFICANT,
    ))

    if params.custom_targets:
        scenarios.append(_custom_scenario(context, params, as_of))

    if abs(context.seasonal_adjustment) > SEASONAL_SCENARIO_THRESHOLD:
        scenarios.append(_seasonal_scenario(context, params, as_of))

    scenarios = [s.model_copy(update={"sequence": i}) for i, s in enumerate(scenarios)]
    logger.debug(f"Generated {len(scenarios)} scenarios for {context.name}")
    return scenarios


def _custom_scenario(
    context: EnterpriseContext,
    params: OptimizationParameters,
    as_of: date
) -> OptimizationScenario:
    target = next(iter(params.custom_targets.values()), DEFAULT_CUSTOM_ADJUSTMENT)
    fraction = _cap(target, params)

    if fraction > 0.10:
        risk = RiskLevel.HIGH
    elif fraction > 0.05:
        risk = RiskLevel.MEDIUM
    else:
        risk = RiskLevel.LOW

    return OptimizationScenario(
        name="Custom Optimization",
        scenario_type=ScenarioType.CUSTOM,
        description="Custom scenario based on specific optimization targets",
        adjustments=[_adjustment(
            context, fraction, as_of + timedelta(days=60),
            "Custom adjustment based on specific optimization parameters",
        )],
        risk_level=risk,
        implementation_days=60,
        notice_days=60,
        expected_impact=ImpactLevel.SIGNIFICANT if fraction > 0.10 else ImpactLevel.MODERATE,
    )


def _seasonal_scenario(
    context: EnterpriseContext,
    params: OptimizationParameters,
    as_of: date
) -> OptimizationScenario:
    seasonal = context.seasonal_adjustment
    fraction = _cap(seasonal * SEASONAL_ADJUSTMENT_SHARE, params)

    return OptimizationScenario(
        name="Seasonal Optimization",
        scenario_type=ScenarioType.SEASONAL,
        description="Rate adjustments accounting for seasonal usage patterns",
        adjustments=[_adjustment(
            context, fraction, as_of + timedelta(days=45),
            "Seasonal adjustment based on usage patterns",
        )],
        risk_level=RiskLevel.MEDIUM if abs(seasonal) > 0.10 else RiskLevel.LOW,
        implementation_days=45,
        notice_days=45,
        expected_impact=ImpactLevel.MODERATE,
    )


def create_status_quo_scenario(
    context: EnterpriseContext,
    as_of: Optional[date] = None
) -> OptimizationScenario:
    """Zero-change scenario returned when optimization cannot proceed."""
    as_of = as_of or date.today()
    return OptimizationScenario(
        name="Status Quo (Fallback)",
        scenario_type=ScenarioType.STATUS_QUO,
        description="Maintain current rates due to optimization constraints",
        adjustments=[_adjustment(
            context, 0.0, as_of,
            "No changes recommended due to system constraints",
        )],
        risk_level=RiskLevel.LOW,
        implementation_days=1,
        notice_days=0,
        expected_impact=ImpactLevel.MINIMAL,
    )


# =============================================================================
# Evaluation
# =============================================================================


def check_regulatory_compliance(
    scenario: OptimizationScenario,
    min_notice_days: int = MIN_NOTICE_DAYS,
    max_adjustment: float = MAX_COMPLIANT_ADJUSTMENT
) -> Tuple[bool, List[str]]:
    """
    Apply the regulatory gate.

    The notice requirement only applies to scenarios that change a rate.

    Returns:
        (compliant, list of issues)
    """
    issues: List[str] = []
    largest = scenario.max_adjustment
    if largest > max_adjustment:
        issues.append(
            f"Adjustment of {largest:.1%} exceeds the {max_adjustment:.0%} annual limit"
        )
    if largest > 0 and scenario.notice_days < min_notice_days:
        issues.append(
            f"Notice period of {scenario.notice_days} days is below the "
            f"{min_notice_days}-day minimum"
        )
    return not issues, issues


def calculate_risk_score(scenario: OptimizationScenario, affordability: float) -> float:
    """Base 0.2, +0.3 large adjustment, +0.2 low affordability, +0.1 long rollout, capped at 1."""
    risk = BASE_SCENARIO_RISK
    if scenario.max_adjustment > LARGE_ADJUSTMENT_THRESHOLD:
        risk += LARGE_ADJUSTMENT_RISK
    if affordability < LOW_AFFORDABILITY_THRESHOLD:
        risk += LOW_AFFORDABILITY_RISK
    if scenario.implementation_days > LONG_IMPLEMENTATION_DAYS:
        risk += LONG_IMPLEMENTATION_RISK
    return min(1.0, risk)


def classify_risk(risk_score: float) -> RiskLevel:
    if risk_score > 0.7:
        return RiskLevel.HIGH
    if risk_score > 0.4:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_impact(adjustment: float) -> ImpactLevel:
    if adjustment > 0.10:
        return ImpactLevel.SIGNIFICANT
    if adjustment > 0.05:
        return ImpactLevel.MODERATE
    return ImpactLevel.MINIMAL


def assess_implementation_complexity(scenario: OptimizationScenario) -> float:
    complexity = 0.3
    if len(scenario.adjustments) > 1:
        complexity += 0.1
    if scenario.expected_impact == ImpactLevel.SIGNIFICANT:
        complexity += 0.2
    if scenario.implementation_days > 60:
        complexity += 0.1
    return min(1.0, complexity)


def calculate_weighted_score(
    revenue_change: float,
    affordability_score: float,
    risk_score: float,
    params: OptimizationParameters
) -> float:
    """
    revenue_weight * min(1, max(0, revenue / 100000))
    + affordability_weight * affordability_score
    + risk_weight * (1 - risk_score)
    """
    revenue_score = clamp(revenue_change / REVENUE_NORMALIZER, 0.0, 1.0)
    return (
        revenue_score * params.revenue_weight
        + affordability_score * params.affordability_weight
        + (1 - risk_score) * params.risk_weight
    )


def evaluate_scenario(
    scenario: OptimizationScenario,
    context: EnterpriseContext,
    params: Optional[OptimizationParameters] = None,
    min_notice_days: int = MIN_NOTICE_DAYS,
    max_compliant_adjustment: float = MAX_COMPLIANT_ADJUSTMENT
) -> ScenarioEvaluation:
    """
    Score one scenario against the enterprise snapshot.

    Idempotent: the scenario and context are not modified.

    Args:
        scenario: Candidate scenario
        context: Enterprise snapshot
        params: Supplies the scoring weights (default 0.4 / 0.4 / 0.2)
        min_notice_days: Regulatory notice minimum
        max_compliant_adjustment: Regulatory single-adjustment maximum

    Returns:
        ScenarioEvaluation with 0 <= risk_score <= 1 and overall_score >= 0
    """
    params = params or OptimizationParameters()
    adjustment = scenario.adjustments[0].percentage_change if scenario.adjustments else 0.0
    affordability = resolve_affordability(context)

    revenue_change = adjustment * context.total_revenue
    affordability_score = max(0.1, affordability - adjustment * 2)
    risk_score = calculate_risk_score(scenario, affordability)
    compliant, issues = check_regulatory_compliance(
        scenario, min_notice_days=min_notice_days, max_adjustment=max_compliant_adjustment
    )

    return ScenarioEvaluation(
        revenue_change=revenue_change,
        affordability_score=affordability_score,
        impact_level=classify_impact(adjustment),
        risk_score=risk_score,
        risk_level=classify_risk(risk_score),
        implementation_complexity=assess_implementation_complexity(scenario),
        regulatory_compliance=compliant,
        compliance_issues=issues,
        overall_score=max(0.0, calculate_weighted_score(
            revenue_change, affordability_score, risk_score, params
        )),
    )


def evaluate_scenarios(
    scenarios: Sequence[OptimizationScenario],
    context: EnterpriseContext,
    params: Optional[OptimizationParameters] = None,
    **gate: float
) -> List[OptimizationScenario]:
    """Copies of scenarios with evaluation and weighted_score filled in."""
    evaluated: List[OptimizationScenario] = []
    for scenario in scenarios:
        evaluation = evaluate_scenario(scenario, context, params, **gate)
        evaluated.append(scenario.model_copy(update={
            "evaluation": evaluation,
            "weighted_score": evaluation.overall_score,
        }))
    return evaluated


# =============================================================================
# Selection
# =============================================================================


def _ranking_key(scenario: OptimizationScenario):
    score = scenario.weighted_score if scenario.weighted_score is not None else 0.0
    # Rounded so floating-point noise does not defeat the tie-breaks
    return (-round(score, 9), scenario.risk_level.rank, scenario.sequence)


def select_optimal_scenario(
    scenarios: Sequence[OptimizationScenario],
    params: Optional[OptimizationParameters] = None
) -> Optional[OptimizationScenario]:
    """
    Pick the highest weighted score among evaluated, compliant scenarios.

    Scores are recomputed with params' weights when params is given.

    Returns:
        The optimal scenario, or None when no scenario is compliant
    """
    candidates = [
        s for s in scenarios
        if s.evaluation is not None and s.evaluation.regulatory_compliance
    ]
    if params is not None:
        candidates = [
            s.model_copy(update={"weighted_score": max(0.0, calculate_weighted_score(
                s.evaluation.revenue_change,
                s.evaluation.affordability_score,
                s.evaluation.risk_score,
                params,
            ))})
            for s in candidates
        ]
    if not candidates:
        logger.warning("No compliant scenario available for selection")
        return None
    return min(candidates, key=_ranking_key)


def rank_alternatives(
    scenarios: Sequence[OptimizationScenario],
    optimal: OptimizationScenario,
    limit: int = 3
) -> List[OptimizationScenario]:
    """Every other scenario, best first, including non-compliant ones."""
    others = [s for s in scenarios if s.sequence != optimal.sequence or s.name != optimal.name]
    return sorted(others, key=_ranking_key)[:limit]
