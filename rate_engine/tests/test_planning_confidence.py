"""
Test suite for result assembly: plans, risk assessment, outcomes and confidence.

The tests verify:
1. The implementation plan has four back-to-back phases totalling 72 days
2. High-risk scenarios get extra mitigation and escalation steps
3. Optimization risk accumulates from large adjustments, low affordability
   and regulatory issues
4. Confidence signals follow their additive rules and stay within bounds
"""

from datetime import date, timedelta

import pytest

from rate_engine.models import (
    EnterpriseContext,
    ImpactLevel,
    OptimizationParameters,
    OptimizationScenario,
    RateAdjustment,
    RiskLevel,
    ScenarioType,
)
from rate_engine.services.confidence import (
    confidence_factors,
    data_quality_confidence,
    degraded_confidence,
    estimate_optimization_confidence,
    implementation_confidence,
    model_confidence,
    scenario_confidence,
)
from rate_engine.services.planning import (
    assess_optimization_risks,
    build_implementation_plan,
    build_monitoring_plan,
    calculate_expected_outcomes,
    failed_risk_assessment,
    generate_risk_mitigation,
)
from rate_engine.services.scenario_engine import evaluate_scenario, generate_scenarios


def _scenario(
    adjustment: float,
    risk_level: RiskLevel = RiskLevel.LOW,
    days: int = 30,
    impact: ImpactLevel = ImpactLevel.MINIMAL
) -> OptimizationScenario:
    return OptimizationScenario(
        name="Test Scenario",
        scenario_type=ScenarioType.CUSTOM,
        adjustments=[RateAdjustment(
            current_rate=40.0,
            proposed_rate=40.0 * (1 + adjustment),
            percentage_change=adjustment,
            effective_date=date(2024, 5, 1),
        )],
        risk_level=risk_level,
        implementation_days=days,
        notice_days=days,
        expected_impact=impact,
    )


def _evaluated(scenario: OptimizationScenario, context: EnterpriseContext) -> OptimizationScenario:
    evaluation = evaluate_scenario(scenario, context)
    return scenario.model_copy(update={"evaluation": evaluation, "weighted_score": evaluation.overall_score})


# =============================================================================
# IMPLEMENTATION AND MONITORING PLANS
# =============================================================================


class TestImplementationPlan:
    """Tests for build_implementation_plan and build_monitoring_plan."""

    def test_phases_are_sequential(self, water_context: EnterpriseContext, as_of: date) -> None:
        plan = build_implementation_plan(_scenario(0.03), water_context, as_of)

        assert [p.name for p in plan.phases] == [
            "Preparation and Planning",
            "Customer Communication",
            "Rate Implementation",
            "Monitoring and Adjustment",
        ]
        assert [p.duration_days for p in plan.phases] == [14, 21, 7, 30]
        assert plan.total_duration_days == 72
        assert plan.phases[0].start_date == as_of
        for previous, current in zip(plan.phases, plan.phases[1:]):
            assert current.start_date == previous.end_date
        assert plan.phases[-1].end_date == as_of + timedelta(days=72)

    def test_checkpoints_and_communication(self, water_context: EnterpriseContext, as_of: date) -> None:
        plan = build_implementation_plan(_scenario(0.03), water_context, as_of)

        assert plan.checkpoints[0] == "End of Preparation and Planning: All systems updated"
        assert len(plan.checkpoints) == 4
        assert "Target Audience: 1000 customers" in plan.communication_plan
        assert "Rate Change: 3.0%" in plan.communication_plan
        assert plan.rollback_procedures

    def test_high_risk_mitigation(self) -> None:
        assert len(generate_risk_mitigation(_scenario(0.03))) == 3
        high = generate_risk_mitigation(_scenario(0.12, risk_level=RiskLevel.HIGH))
        assert len(high) == 6
        assert "Pilot program before full implementation" in high

    def test_monitoring_plan(self, as_of: date) -> None:
        plan = build_monitoring_plan(_scenario(0.03), as_of)

        assert plan.monitoring_frequency == "Weekly"
        assert plan.review_dates == [date(2024, 5, 1), date(2024, 5, 31), date(2024, 6, 30)]
        assert plan.alert_thresholds["RevenueDeviation"] == pytest.approx(0.10)
        assert len(plan.escalation_procedures) == 3

    def test_high_risk_monitoring_briefs_board(self, as_of: date) -> None:
        plan = build_monitoring_plan(_scenario(0.12, risk_level=RiskLevel.HIGH), as_of)
        assert plan.escalation_procedures[-1] == "Brief governing board after each scheduled review"


# =============================================================================
# RISK ASSESSMENT AND OUTCOMES
# =============================================================================


class TestRiskAssessment:
    """Tests for assess_optimization_risks and calculate_expected_outcomes."""

    def test_large_increase_for_low_affordability(self, water_context: EnterpriseContext) -> None:
        """0.3 base + 0.2 (adjustment > 10%) + 0.1 (affordability < 0.7) = 0.6."""
        assessment = assess_optimization_risks(_scenario(0.12), water_context)

        assert assessment.risk_score == pytest.approx(0.6)
        assert assessment.risk_level == RiskLevel.MEDIUM
        assert len(assessment.risk_factors) == 2

    def test_small_increase_for_healthy_utility(self, sewer_context: EnterpriseContext) -> None:
        assessment = assess_optimization_risks(_scenario(0.03), sewer_context)

        assert assessment.risk_score == pytest.approx(0.3)
        assert assessment.risk_level == RiskLevel.LOW
        assert assessment.risk_factors == []

    def test_regulatory_issues_are_risk_factors(self, sewer_context: EnterpriseContext) -> None:
        scenario = _evaluated(_scenario(0.25, days=10), sewer_context)
        assessment = assess_optimization_risks(scenario, sewer_context)

        regulatory = [f for f in assessment.risk_factors if f.startswith("Regulatory Risk:")]
        assert len(regulatory) == 2

    def test_failed_assessment(self) -> None:
        assessment = failed_risk_assessment("no data")

        assert assessment.risk_level == RiskLevel.HIGH
        assert assessment.risk_score == 1.0
        assert assessment.risk_factors == ["Optimization Error: no data"]

    def test_expected_outcomes(self, water_context: EnterpriseContext) -> None:
        outcomes = calculate_expected_outcomes(_evaluated(_scenario(0.03), water_context))

        assert len(outcomes) == 7
        assert outcomes[0] == "Projected annual revenue change: $14,400"
        assert outcomes[1] == "Customer impact: Minimal"
        assert outcomes[2] == "Time to full implementation: 30d"

    def test_expected_outcomes_without_evaluation(self) -> None:
        outcomes = calculate_expected_outcomes(_scenario(0.03))
        assert outcomes[1] == "Customer impact: Unknown"
        assert outcomes[3] == "Success probability: 50%"


# =============================================================================
# CONFIDENCE
# =============================================================================


class TestConfidence:
    """Tests for the confidence signals."""

    def test_data_quality_confidence(
        self,
        water_context: EnterpriseContext,
        sewer_context: EnterpriseContext,
        empty_context: EnterpriseContext
    ) -> None:
        assert data_quality_confidence(water_context) == pytest.approx(0.9)
        assert data_quality_confidence(sewer_context) == pytest.approx(1.0)
        assert data_quality_confidence(empty_context) == pytest.approx(0.6)

    @pytest.mark.parametrize(
        "risk_level,expected",
        [(RiskLevel.LOW, 0.8), (RiskLevel.MEDIUM, 0.7), (RiskLevel.HIGH, 0.6)],
    )
    def test_model_confidence_by_risk(self, risk_level: RiskLevel, expected: float) -> None:
        assert model_confidence(_scenario(0.03, risk_level=risk_level)) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "days,impact,expected",
        [
            (30, ImpactLevel.MINIMAL, 0.85),
            (60, ImpactLevel.MODERATE, 0.6),
            (90, ImpactLevel.SIGNIFICANT, 0.5),
        ],
    )
    def test_implementation_confidence(self, days: int, impact: ImpactLevel, expected: float) -> None:
        assert implementation_confidence(_scenario(0.03, days=days, impact=impact)) == pytest.approx(expected)

    def test_overall_is_mean_of_signals(self, water_context: EnterpriseContext, as_of: date) -> None:
        conservative = generate_scenarios(water_context, OptimizationParameters(), as_of)[0]
        confidence = estimate_optimization_confidence(water_context, _evaluated(conservative, water_context))

        expected = (
            confidence.data_quality_confidence
            + confidence.model_confidence
            + confidence.implementation_confidence
        ) / 3
        assert confidence.overall_confidence == pytest.approx(expected)
        assert 0.0 <= confidence.overall_confidence <= 1.0
        assert confidence.confidence_factors

    def test_default_confidence_factor(self) -> None:
        assert confidence_factors(0.7, 0.7, 0.7) == ["Standard confidence level for optimization"]

    def test_scenario_confidence(self, water_context: EnterpriseContext) -> None:
        assert scenario_confidence(_scenario(0.03)) == 0.5
        evaluated = _evaluated(_scenario(0.03), water_context)
        assert 0.0 <= scenario_confidence(evaluated) <= 1.0

    def test_degraded_confidence(self) -> None:
        confidence = degraded_confidence("boom")

        assert confidence.overall_confidence == pytest.approx(0.3)
        assert confidence.confidence_factors == ["Optimization degraded: boom"]
