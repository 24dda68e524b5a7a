"""
Explainability Reporter - Feature Importance, Transparency and Bias Flags

Annotates a recommendation with why it was produced and how far it can be
trusted. The reporter never blocks a recommendation: it only adds flags,
limitations and a mandatory human-validation checklist.

Scoring:
    importance       fixed contributions for budget, customers, revenue, rate,
                     affordability and seasonality, each included only when the
                     underlying value is present, normalised to sum to 1
    data quality     mean(completeness, feature coverage, feature stability)
    reliability      mean(accuracy, stability, min(1, months / 12))
    transparency     mean(data quality, reliability, coverage, explanation depth)

Bias flags (heuristic, not statistical proof):
    - fewer than 500 customers
    - more than two of the top three features derived from history
    - standard deviation of importance values above 0.3
    Risk level by flag count: 0 none, 1 moderate, 2 elevated, 3+ high.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from rate_engine.models import (
    AuditTrail,
    BiasAssessment,
    BiasRiskLevel,
    ComplianceAssessment,
    DecisionPath,
    EnterpriseContext,
    ExplainabilityAnalysis,
    ExplainabilityReport,
    HistoricalDataPoint,
    QueryIntent,
)
from rate_engine.services.feature_extraction import DAYS_PER_MONTH, extract_rate_features
from rate_engine.services.predictive_models import FALLBACK_CONFIDENCE
from rate_engine.services.statistics import clamp, coefficient_of_variation, mean, population_std

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# (feature, weight); included only when the context supplies the value
FEATURE_WEIGHTS: List[Tuple[str, float]] = [
    ("Budget Amount", 0.25),
    ("Customer Base Size", 0.20),
    ("Revenue Patterns", 0.18),
    ("Current Rate Structure", 0.15),
    ("Customer Affordability", 0.12),
    ("Seasonal Variations", 0.10),
]

HISTORY_KEYWORDS = ("historical", "past")
HISTORY_DERIVED_FEATURES = {"Revenue Patterns", "Seasonal Variations"}

CROSS_VALIDATION_SCORE: float = 0.82
SMALL_SAMPLE_CUSTOMERS: int = 500
IMPORTANCE_SPREAD_LIMIT: float = 0.3
KEY_FACTOR_THRESHOLD: float = 0.1
TRANSPARENCY_REQUIREMENT: float = 0.7

BIAS_MITIGATIONS = [
    "Validate results with expert knowledge",
    "Consider additional data sources",
    "Monitor for bias in future predictions",
    "Regular model retraining with diverse data",
]

ALTERNATIVE_APPROACHES = [
    "Conservative Approach: Smaller rate adjustments with longer implementation",
    "Accelerated Implementation: Faster rollout with enhanced monitoring",
    "Status Quo: Maintain current rates with operational efficiency focus",
]


# =============================================================================
# Feature Importance
# =============================================================================


def _feature_present(context: EnterpriseContext) -> Dict[str, bool]:
    return {
        "Budget Amount": context.total_budget > 0,
        "Customer Base Size": context.customer_count > 0,
        "Revenue Patterns": context.total_revenue > 0,
        "Current Rate Structure": context.current_rate > 0,
        "Customer Affordability": context.affordability_index > 0,
        "Seasonal Variations": abs(context.seasonal_adjustment) > 0.01,
    }


def calculate_feature_importance(context: EnterpriseContext) -> Dict[str, float]:
    """
    Normalised importance of the features behind a recommendation.

    Args:
        context: Enterprise snapshot

    Returns:
        Feature name -> share of influence, summing to 1; empty when no
        feature is present
    """
    present = _feature_present(context)
    raw = {name: weight for name, weight in FEATURE_WEIGHTS if present[name]}
    total = sum(raw.values())
    if total <= 0:
        return {}
    return {name: weight / total for name, weight in raw.items()}


def calculate_feature_coverage(context: EnterpriseContext) -> float:
    """Share of ten key context fields that are populated."""
    fields = [
        context.total_budget > 0,
        context.customer_count > 0,
        context.total_revenue > 0,
        context.total_expenses > 0,
        context.current_rate > 0,
        context.affordability_index > 0,
        len(context.accounts) > 0,
        context.year_to_date_spending > 0,
        context.budget_remaining > 0,
        context.seasonal_adjustment != 0,
    ]
    return sum(fields) / len(fields)


def calculate_feature_stability(importance: Dict[str, float]) -> float:
    """max(0.1, 1 - CV) of the importance values; 0.5 without features."""
    if not importance:
        return 0.5
    cv = coefficient_of_variation(list(importance.values()), empty_value=0.0)
    return clamp(1.0 - cv, 0.1, 1.0)


def top_features(importance: Dict[str, float], limit: int = 3) -> List[Tuple[str, float]]:
    return sorted(importance.items(), key=lambda item: item[1], reverse=True)[:limit]


# =============================================================================
# Decision Path
# =============================================================================


def _historical_months(context: EnterpriseContext, history: Sequence[HistoricalDataPoint]) -> int:
    if len(history) >= 2:
        dates = sorted(point.date for point in history)
        return max(1, round((dates[-1] - dates[0]).days / DAYS_PER_MONTH))
    accounts = len(context.accounts)
    if accounts > 50:
        return 24
    if accounts > 20:
        return 12
    if accounts > 10:
        return 6
    return 3


def _estimate_accuracy(text: str, context: EnterpriseContext) -> float:
    accuracy = 0.75
    if len(context.accounts) > 10:
        accuracy += 0.05
    if context.total_budget > 0 and context.total_revenue > 0:
        accuracy += 0.1
    if len(text) > 500:
        accuracy += 0.05
    if "$" in text and "%" in text:
        accuracy += 0.05
    return min(0.95, accuracy)


def _estimate_stability(text: str) -> float:
    lowered = text.lower()
    stability = 0.7
    if "recommend" in lowered or "suggest" in lowered:
        stability += 0.1
    if "uncertain" in lowered or "variable" in lowered:
        stability -= 0.1
    return clamp(stability, 0.3, 0.9)


def _key_insights(text: str, intent: QueryIntent) -> List[str]:
    lowered = text.lower()
    insights: List[str] = []
    if intent.requires_rate_analysis:
        insights.append("Analysis focused on rate optimization and customer impact")
        if "increase" in lowered:
            insights.append("Rate increase scenario was evaluated")
        if "afford" in lowered:
            insights.append("Customer affordability was considered")
    if "scenario" in intent.intent_type.lower():
        insights.append("Multiple scenario outcomes were evaluated")
        insights.append("Risk factors and mitigation strategies were considered")
    insights.append("Analysis based on current municipal financial data")
    insights.append("Recommendations align with regulatory best practices")
    return insights


def _uncertainties(text: str, context: EnterpriseContext) -> List[str]:
    uncertainties: List[str] = []
    if context.customer_count < SMALL_SAMPLE_CUSTOMERS:
        uncertainties.append("Small customer base may limit prediction accuracy")
    if len(context.accounts) < 20:
        uncertainties.append("Limited historical data reduces forecast confidence")
    if len(text) < 300:
        uncertainties.append("Analysis may be incomplete due to processing constraints")
    uncertainties.append("Economic conditions may change affecting customer behavior")
    uncertainties.append("Regulatory changes could impact implementation")
    return uncertainties


def _confidence_indicators(text: str) -> List[str]:
    lowered = text.lower()
    indicators: List[str] = []
    if "recommend" in lowered:
        indicators.append("Clear recommendations provided")
    if "$" in text or "%" in text:
        indicators.append("Quantitative analysis included")
    if "customer" in lowered:
        indicators.append("Customer impact considered")
    if len(text) > 800:
        indicators.append("Comprehensive analysis performed")
    return indicators or ["Basic analysis completed"]


def _decision_logic(context: EnterpriseContext, intent: QueryIntent) -> str:
    steps = [
        f"1. Assessed financial position of {context.name} "
        f"(budget ${context.total_budget:,.0f}, revenue ${context.total_revenue:,.0f})",
        f"2. Evaluated customer base of {context.customer_count} customers "
        f"and affordability index {context.affordability_index:.2f}",
        f"3. Interpreted a {intent.intent_type.replace('_', ' ')} request "
        f"of complexity {intent.complexity_score}/10",
        "4. Weighed revenue needs against customer affordability and risk",
        "5. Checked candidate adjustments against regulatory constraints",
        "6. Produced a recommendation subject to human review",
    ]
    return "\n".join(steps)


def analyze_decision_path(
    analysis_text: str,
    context: EnterpriseContext,
    intent: Optional[QueryIntent] = None,
    history: Sequence[HistoricalDataPoint] = ()
) -> DecisionPath:
    """
    Reconstruct how a recommendation was reached.

    Args:
        analysis_text: The recommendation text being explained
        context: Enterprise snapshot the recommendation was built from
        intent: Upstream query intent (default: general analysis)
        history: Historical series, used for the months-of-history estimate

    Returns:
        DecisionPath with accuracy, stability, insights and uncertainties
    """
    intent = intent or QueryIntent()
    return DecisionPath(
        model_accuracy=_estimate_accuracy(analysis_text, context),
        prediction_stability=_estimate_stability(analysis_text),
        historical_months=_historical_months(context, history),
        key_insights=_key_insights(analysis_text, intent),
        uncertainties=_uncertainties(analysis_text, context),
        confidence_indicators=_confidence_indicators(analysis_text),
        decision_logic=_decision_logic(context, intent),
    )


# =============================================================================
# Transparency Metrics
# =============================================================================


def calculate_transparency_metrics(
    completeness: float,
    coverage: float,
    stability: float,
    decision_path: DecisionPath,
    importance: Dict[str, float]
) -> Dict[str, float]:
    """
    Component scores and the overall transparency score.

    Returns:
        Dict with DataQuality, ModelReliability, FeatureCompleteness,
        ExplanationDepth, Auditability and Transparency, all in [0, 1]
    """
    data_quality = mean([completeness, coverage, stability])
    reliability = mean([
        decision_path.model_accuracy,
        decision_path.prediction_stability,
        min(1.0, decision_path.historical_months / 12),
    ])

    depth = 0.5
    if len(decision_path.key_insights) >= 3:
        depth += 0.2
    if len(decision_path.confidence_indicators) >= 2:
        depth += 0.15
    if decision_path.decision_logic:
        depth += 0.15
    depth = min(1.0, depth)

    auditability = 0.6
    if len(importance) >= 3:
        auditability += 0.1
    if decision_path.key_insights:
        auditability += 0.1
    if decision_path.uncertainties:
        auditability += 0.1
    if decision_path.decision_logic:
        auditability += 0.1
    auditability = min(1.0, auditability)

    return {
        "DataQuality": data_quality,
        "ModelReliability": reliability,
        "FeatureCompleteness": coverage,
        "ExplanationDepth": depth,
        "Auditability": auditability,
        "Transparency": clamp(mean([data_quality, reliability, coverage, depth]), 0.0, 1.0),
    }


# =============================================================================
# Bias, Limitations and Validation
# =============================================================================


def _is_history_derived(name: str) -> bool:
    lowered = name.lower()
    return name in HISTORY_DERIVED_FEATURES or any(k in lowered for k in HISTORY_KEYWORDS)


def bias_risk_level(flag_count: int) -> BiasRiskLevel:
    if flag_count >= 3:
        return BiasRiskLevel.HIGH
    if flag_count == 2:
        return BiasRiskLevel.ELEVATED
    if flag_count == 1:
        return BiasRiskLevel.MODERATE
    return BiasRiskLevel.NONE


def assess_bias(importance: Dict[str, float], customer_count: int) -> BiasAssessment:
    """
    Heuristic bias flags for a recommendation.

    Note:
        For importance maps from calculate_feature_importance only the
        small-sample flag can fire, so the level is NONE or MODERATE.
        FEATURE_WEIGHTS holds just two history-derived features, and the
        population std of any normalised subset stays below about 0.21
        (Budget Amount with Seasonal Variations). The history and spread
        flags fire only for caller-supplied importance maps.
    """
    flags: List[str] = []

    if customer_count < SMALL_SAMPLE_CUSTOMERS:
        flags.append("Small sample size may not represent broader patterns")

    historical = [name for name, _ in top_features(importance) if _is_history_derived(name)]
    if len(historical) > 2:
        flags.append("Heavy reliance on historical data may not account for future changes")

    if population_std(list(importance.values())) > IMPORTANCE_SPREAD_LIMIT:
        flags.append("Uneven feature importance distribution may indicate model bias")

    return BiasAssessment(
        flags=flags,
        risk_level=bias_risk_level(len(flags)),
        mitigation_strategies=list(BIAS_MITIGATIONS) if flags else [],
    )


def identify_limitations(metrics: Dict[str, float], intent: QueryIntent) -> List[str]:
    limitations: List[str] = []
    if metrics["DataQuality"] < 0.8:
        limitations.append("Limited data quality may affect prediction accuracy")
    if metrics["ModelReliability"] < 0.7:
        limitations.append("Model reliability is below optimal threshold")
    if intent.complexity_score > 7:
        limitations.append("High query complexity may introduce additional uncertainty")
    if metrics["FeatureCompleteness"] < 0.9:
        limitations.append("Incomplete feature set may miss important factors")
    return limitations or ["No significant limitations identified"]


def suggest_validation_steps(decision_path: DecisionPath, context: EnterpriseContext) -> List[str]:
    """Human-validation checklist; never empty."""
    steps = [
        "Verify all input data for accuracy and completeness",
        "Cross-reference recommendations with regulatory requirements",
        "Validate assumptions with subject matter experts",
    ]
    if decision_path.model_accuracy < 0.8:
        steps.append("Perform additional accuracy testing with recent data")
    if context.risk_factors:
        steps.append("Review identified risk factors and mitigation strategies")
    steps.extend([
        "Test recommendations with pilot program if feasible",
        "Document decision rationale for audit trail",
        "Plan monitoring strategy for implementation results",
    ])
    return steps


# =============================================================================
# Narrative
# =============================================================================


def describe_factor(name: str) -> str:
    lowered = name.lower()
    if "budget" in lowered:
        return "Total budget size influences the scale of rate adjustments that are feasible"
    if "customer base" in lowered:
        return "Number of customers determines how costs are distributed across ratepayers"
    if "revenue" in lowered:
        return "Current revenue patterns indicate whether rates cover operating costs"
    if "rate" in lowered:
        return "The existing rate structure anchors how far rates can move"
    if "afford" in lowered:
        return "Customer ability to pay limits how much rates can increase"
    if "season" in lowered:
        return "Seasonal usage swings affect timing and size of adjustments"
    return "Contributes to the overall recommendation"


def build_narrative(
    importance: Dict[str, float],
    decision_path: DecisionPath,
    overall_confidence: float,
    validation_steps: List[str]
) -> str:
    """Plain-text explanation for reviewers."""
    lines = ["PRIMARY DECISION FACTORS"]
    for rank, (name, value) in enumerate(top_features(importance), start=1):
        lines.append(f"{rank}. {name} ({value:.1%} influence): {describe_factor(name)}")
    if not importance:
        lines.append("No quantitative factors were available")

    lines.extend([
        "",
        "DECISION CONFIDENCE",
        f"Overall confidence: {overall_confidence:.0%}",
        f"Model accuracy: {decision_path.model_accuracy:.0%}",
        f"Prediction stability: {decision_path.prediction_stability:.0%}",
        f"Historical data used: {decision_path.historical_months} months",
        "",
        "KEY INSIGHTS",
    ])
    lines.extend(f"- {insight}" for insight in decision_path.key_insights)
    lines.extend(["", "UNCERTAINTIES"])
    lines.extend(f"- {item}" for item in decision_path.uncertainties)
    lines.extend(["", "VALIDATION CHECKLIST"])
    lines.extend(f"[ ] {step}" for step in validation_steps)
    return "\n".join(lines)


# =============================================================================
# Public Entry Points
# =============================================================================


def generate_explanation(
    analysis_text: str,
    context: EnterpriseContext,
    intent: Optional[QueryIntent] = None,
    history: Sequence[HistoricalDataPoint] = ()
) -> ExplainabilityAnalysis:
    """
    Explain a recommendation.

    Never raises: any fault yields a degraded analysis with transparency 0.3,
    a manual-review checklist and an error message.

    Args:
        analysis_text: Recommendation text produced upstream
        context: Enterprise snapshot the recommendation was built from
        intent: Upstream query intent
        history: Optional historical series

    Returns:
        ExplainabilityAnalysis
    """
    intent = intent or QueryIntent()
    try:
        importance = calculate_feature_importance(context)
        coverage = calculate_feature_coverage(context)
        stability = calculate_feature_stability(importance)
        completeness = extract_rate_features(context, intent=intent).completeness
        decision_path = analyze_decision_path(analysis_text, context, intent, history)
        metrics = calculate_transparency_metrics(
            completeness, coverage, stability, decision_path, importance
        )

        confidence_factors = {
            "CrossValidation": CROSS_VALIDATION_SCORE,
            "ModelAccuracy": decision_path.model_accuracy,
            "PredictionStability": decision_path.prediction_stability,
            "DataCompleteness": completeness,
        }
        confidence_factors["OverallConfidence"] = clamp(
            0.3 * CROSS_VALIDATION_SCORE
            + 0.3 * decision_path.model_accuracy
            + 0.2 * decision_path.prediction_stability
            + 0.2 * completeness,
            0.0, 1.0,
        )

        validation_steps = suggest_validation_steps(decision_path, context)
        return ExplainabilityAnalysis(
            feature_importance=importance,
            feature_stability=stability,
            cross_validation_score=CROSS_VALIDATION_SCORE,
            decision_path=decision_path,
            transparency_score=metrics["Transparency"],
            data_quality_score=metrics["DataQuality"],
            model_reliability_score=metrics["ModelReliability"],
            feature_completeness_score=metrics["FeatureCompleteness"],
            explanation_depth_score=metrics["ExplanationDepth"],
            auditability_score=metrics["Auditability"],
            narrative_explanation=build_narrative(
                importance, decision_path, confidence_factors["OverallConfidence"], validation_steps
            ),
            key_decision_factors=[
                f"{name} ({value:.1%} influence)"
                for name, value in top_features(importance, limit=len(importance))
                if value > KEY_FACTOR_THRESHOLD
            ],
            alternative_scenarios=list(ALTERNATIVE_APPROACHES),
            confidence_factors=confidence_factors,
            bias_assessment=assess_bias(importance, context.customer_count),
            limitations=identify_limitations(metrics, intent),
            validation_steps=validation_steps,
        )
    except Exception as e:
        logger.error(f"Explainability analysis failed for {context.name}: {e}", exc_info=True)
        return fallback_explanation(str(e))


def fallback_explanation(message: str) -> ExplainabilityAnalysis:
    return ExplainabilityAnalysis(
        transparency_score=FALLBACK_CONFIDENCE,
        narrative_explanation=f"Explainability analysis could not be completed: {message}",
        limitations=["Limited explainability due to processing error"],
        validation_steps=["Manual review required", "Verify data inputs"],
        error_message=message,
    )


def build_executive_summary(analysis: ExplainabilityAnalysis, context: EnterpriseContext) -> str:
    factors = ", ".join(analysis.key_decision_factors[:3]) or "none identified"
    bias = analysis.bias_assessment
    return "\n".join([
        f"EXECUTIVE SUMMARY: {context.name}",
        f"Transparency score: {analysis.transparency_score:.0%}",
        f"Primary decision factors: {factors}",
        f"Bias risk: {bias.risk_level.value} ({len(bias.flags)} flag(s))",
        f"Human validation steps required: {len(analysis.validation_steps)}",
        "This recommendation is advisory and requires human review before implementation.",
    ])


def assess_compliance(analysis: ExplainabilityAnalysis) -> ComplianceAssessment:
    """Transparency, explainability, oversight and bias-assessment checks."""
    meets_transparency = analysis.transparency_score >= TRANSPARENCY_REQUIREMENT
    meets_explainability = len(analysis.narrative_explanation) > 100
    has_oversight = bool(analysis.validation_steps)
    flags = analysis.bias_assessment.flags

    score = 0.6
    if meets_transparency:
        score += 0.15
    if len(analysis.key_decision_factors) >= 3:
        score += 0.1
    if has_oversight:
        score += 0.1
    if len(flags) <= 2:
        score += 0.05

    notes = [
        "AI decision subject to human review and approval",
        f"Transparency requirement {'met' if meets_transparency else 'not met'} "
        f"({analysis.transparency_score:.0%} vs {TRANSPARENCY_REQUIREMENT:.0%})",
    ]
    if analysis.error_message:
        notes.append(f"Analysis degraded: {analysis.error_message}")

    recommendations: List[str] = []
    if analysis.transparency_score < 0.8:
        recommendations.append("Improve data quality and model documentation")
    if len(flags) > 2:
        recommendations.append("Implement bias mitigation strategies")
    recommendations.extend([
        "Maintain human oversight for all rate decisions",
        "Document validation results for audit purposes",
        "Review explainability reports periodically",
        "Communicate decision rationale to stakeholders",
    ])

    return ComplianceAssessment(
        meets_transparency_requirements=meets_transparency,
        meets_explainability_standards=meets_explainability,
        has_human_oversight=has_oversight,
        has_bias_assessment=True,
        compliance_score=min(1.0, score),
        compliance_notes=notes,
        recommendations=recommendations,
    )


def generate_report(
    analysis: ExplainabilityAnalysis,
    context: EnterpriseContext,
    query_type: str = "rate_optimization",
    model_versions: Optional[Dict[str, str]] = None
) -> ExplainabilityReport:
    """
    Wrap an analysis with an executive summary, audit trail and compliance assessment.

    Args:
        analysis: Result of generate_explanation
        context: Enterprise snapshot
        query_type: Recorded in the audit trail
        model_versions: Registered model versions, recorded in the audit trail

    Returns:
        ExplainabilityReport
    """
    audit = AuditTrail(
        timestamp=datetime.now(),
        query_type=query_type,
        data_sources=[
            f"Enterprise: {context.name}",
            f"Customer Base: {context.customer_count} customers",
            f"Budget: ${context.total_budget:,.0f}",
            f"Data Quality: {analysis.data_quality_score:.0%}",
        ],
        model_versions=dict(model_versions or {}),
        compliance_notes=["AI decision subject to human review and approval"],
    )
    return ExplainabilityReport(
        analysis=analysis,
        executive_summary=build_executive_summary(analysis, context),
        audit_trail=audit,
        compliance=assess_compliance(analysis),
    )
