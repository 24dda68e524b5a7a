"""
Test suite for scenario generation, evaluation and selection.

The tests verify:
1. Generation is deterministic and adds Custom and Seasonal scenarios only
   when their triggers are present
2. Every adjustment is capped by the caller's maximum rate increase
3. Evaluation scores, risk and impact follow their documented formulas and
   evaluating twice gives identical results
4. The regulatory gate rejects adjustments above 20% or notice below 30 days
5. Selection never picks a non-compliant scenario and breaks ties by lower
   risk, then earlier generation
"""

from datetime import date
from typing import List

import pytest

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
from rate_engine.services.scenario_engine import (
    calculate_optimal_adjustment,
    calculate_risk_score,
    calculate_weighted_score,
    check_regulatory_compliance,
    classify_impact,
    classify_risk,
    create_status_quo_scenario,
    estimate_demand_elasticity,
    evaluate_scenario,
    evaluate_scenarios,
    generate_scenarios,
    rank_alternatives,
    select_optimal_scenario,
)


def _scenario(
    name: str,
    adjustment: float,
    notice_days: int = 60,
    implementation_days: int = 60,
    risk_level: RiskLevel = RiskLevel.MEDIUM,
    sequence: int = 0
) -> OptimizationScenario:
    return OptimizationScenario(
        name=name,
        scenario_type=ScenarioType.CUSTOM,
        adjustments=[RateAdjustment(
            current_rate=40.0,
            proposed_rate=40.0 * (1 + adjustment),
            percentage_change=adjustment,
            effective_date=date(2024, 6, 1),
        )],
        risk_level=risk_level,
        implementation_days=implementation_days,
        notice_days=notice_days,
        sequence=sequence,
    )


def _scored(scenario: OptimizationScenario, score: float, compliant: bool = True) -> OptimizationScenario:
    evaluation = ScenarioEvaluation(
        revenue_change=0.0,
        affordability_score=0.5,
        impact_level=ImpactLevel.MINIMAL,
        risk_score=0.2,
        risk_level=scenario.risk_level,
        implementation_complexity=0.3,
        regulatory_compliance=compliant,
        overall_score=score,
    )
    return scenario.model_copy(update={"evaluation": evaluation, "weighted_score": score})


# =============================================================================
# GENERATION
# =============================================================================


class TestScenarioGeneration:
    """Tests for generate_scenarios."""

    def test_core_scenarios(
        self,
        water_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        scenarios = generate_scenarios(water_context, default_params, as_of)

        assert [s.scenario_type for s in scenarios] == [
            ScenarioType.CONSERVATIVE,
            ScenarioType.BALANCED,
            ScenarioType.AGGRESSIVE,
        ]
        assert [s.sequence for s in scenarios] == [0, 1, 2]
        assert [s.notice_days for s in scenarios] == [30, 60, 90]
        assert [s.risk_level for s in scenarios] == [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]
        assert scenarios[0].adjustments[0].percentage_change == pytest.approx(0.03)
        assert scenarios[0].adjustments[0].effective_date == date(2024, 5, 1)

    def test_scaled_adjustments(
        self,
        water_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        """
        Affordability 0.55, budget pressure 1 - 125000/500000 = 0.75 and
        elasticity -0.4 for 1000 customers scale both maxima by 0.2475.
        """
        balanced, aggressive = generate_scenarios(water_context, default_params, as_of)[1:3]

        assert balanced.adjustments[0].percentage_change == pytest.approx(0.08 * 0.2475)
        assert aggressive.adjustments[0].percentage_change == pytest.approx(0.15 * 0.2475)
        assert balanced.adjustments[0].proposed_rate == pytest.approx(40.0 * (1 + 0.08 * 0.2475))

    def test_custom_and_seasonal_scenarios(self, sewer_context: EnterpriseContext, as_of: date) -> None:
        params = OptimizationParameters(custom_targets={"Base Rate": 0.06})
        scenarios = generate_scenarios(sewer_context, params, as_of)

        types = [s.scenario_type for s in scenarios]
        assert types[3:] == [ScenarioType.CUSTOM, ScenarioType.SEASONAL]
        custom, seasonal = scenarios[3], scenarios[4]
        assert custom.adjustments[0].percentage_change == pytest.approx(0.06)
        assert custom.risk_level == RiskLevel.MEDIUM
        assert seasonal.adjustments[0].percentage_change == pytest.approx(0.05)
        assert seasonal.notice_days == 45
        assert seasonal.risk_level == RiskLevel.LOW

    def test_max_rate_increase_caps_every_adjustment(
        self,
        water_context: EnterpriseContext,
        as_of: date
    ) -> None:
        params = OptimizationParameters(max_rate_increase=0.01, custom_targets={"Base Rate": 0.12})
        for scenario in generate_scenarios(water_context, params, as_of):
            assert scenario.max_adjustment <= 0.01 + 1e-12

    def test_generation_is_deterministic(
        self,
        sewer_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        first = generate_scenarios(sewer_context, default_params, as_of)
        second = generate_scenarios(sewer_context, default_params, as_of)
        assert first == second

    @pytest.mark.parametrize(
        "customers,expected",
        [(100, -0.8), (500, -0.6), (1500, -0.4), (2000, -0.2), (50000, -0.2)],
    )
    def test_demand_elasticity_bands(self, customers: int, expected: float) -> None:
        assert estimate_demand_elasticity(customers) == expected

    def test_optimal_adjustment_never_exceeds_max(self) -> None:
        context = EnterpriseContext(name="Water", customer_count=5000, affordability_index=1.0)
        assert calculate_optimal_adjustment(context, 0.08) == pytest.approx(0.08 * 0.8)


# =============================================================================
# EVALUATION
# =============================================================================


class TestScenarioEvaluation:
    """Tests for evaluate_scenario and its scoring helpers."""

    def test_conservative_evaluation(
        self,
        water_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        """
        3% of 480000 = 14400 revenue, affordability 0.55 - 0.06 = 0.49,
        risk 0.2 + 0.2 (affordability < 0.6) = 0.4.
        """
        conservative = generate_scenarios(water_context, default_params, as_of)[0]
        evaluation = evaluate_scenario(conservative, water_context, default_params)

        assert evaluation.revenue_change == pytest.approx(14400.0)
        assert evaluation.affordability_score == pytest.approx(0.49)
        assert evaluation.risk_score == pytest.approx(0.4)
        assert evaluation.risk_level == RiskLevel.LOW
        assert evaluation.impact_level == ImpactLevel.MINIMAL
        assert evaluation.regulatory_compliance
        assert evaluation.overall_score == pytest.approx(0.144 * 0.4 + 0.49 * 0.4 + 0.6 * 0.2)

    def test_evaluation_is_idempotent(
        self,
        water_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        scenario = generate_scenarios(water_context, default_params, as_of)[1]
        snapshot = scenario.model_copy(deep=True)

        first = evaluate_scenario(scenario, water_context, default_params)
        second = evaluate_scenario(scenario, water_context, default_params)

        assert first == second
        assert scenario == snapshot
        assert scenario.evaluation is None

    def test_affordability_score_floor(self, water_context: EnterpriseContext) -> None:
        evaluation = evaluate_scenario(_scenario("Large", 0.4), water_context)
        assert evaluation.affordability_score == pytest.approx(0.1)

    @pytest.mark.parametrize(
        "adjustment,affordability,days,expected",
        [
            (0.05, 0.8, 60, 0.2),
            (0.12, 0.8, 60, 0.5),
            (0.12, 0.5, 60, 0.7),
            (0.12, 0.5, 120, 0.8),
        ],
    )
    def test_risk_score(self, adjustment: float, affordability: float, days: int, expected: float) -> None:
        scenario = _scenario("Risk", adjustment, implementation_days=days)
        assert calculate_risk_score(scenario, affordability) == pytest.approx(expected)

    @pytest.mark.parametrize("score,expected", [(0.8, RiskLevel.HIGH), (0.5, RiskLevel.MEDIUM), (0.4, RiskLevel.LOW)])
    def test_classify_risk(self, score: float, expected: RiskLevel) -> None:
        assert classify_risk(score) == expected

    @pytest.mark.parametrize("adjustment,expected", [(0.12, ImpactLevel.SIGNIFICANT), (0.08, ImpactLevel.MODERATE), (0.03, ImpactLevel.MINIMAL)])
    def test_classify_impact(self, adjustment: float, expected: ImpactLevel) -> None:
        assert classify_impact(adjustment) == expected

    def test_revenue_score_saturates(self) -> None:
        params = OptimizationParameters(revenue_weight=1.0, affordability_weight=0.0, risk_weight=0.0)
        assert calculate_weighted_score(250000.0, 0.5, 0.2, params) == pytest.approx(1.0)
        assert calculate_weighted_score(-50000.0, 0.5, 0.2, params) == 0.0


# =============================================================================
# REGULATORY GATE
# =============================================================================


class TestRegulatoryCompliance:
    """Tests for check_regulatory_compliance."""

    def test_compliant_scenario(self) -> None:
        compliant, issues = check_regulatory_compliance(_scenario("Ok", 0.05, notice_days=30))
        assert compliant
        assert issues == []

    def test_adjustment_above_limit(self) -> None:
        compliant, issues = check_regulatory_compliance(_scenario("Big", 0.25))
        assert not compliant
        assert "exceeds the 20% annual limit" in issues[0]

    def test_short_notice(self) -> None:
        compliant, issues = check_regulatory_compliance(_scenario("Rushed", 0.05, notice_days=20))
        assert not compliant
        assert "below the 30-day minimum" in issues[0]

    def test_status_quo_needs_no_notice(self, water_context: EnterpriseContext, as_of: date) -> None:
        status_quo = create_status_quo_scenario(water_context, as_of)

        compliant, _ = check_regulatory_compliance(status_quo)
        assert compliant
        assert status_quo.notice_days == 0
        assert status_quo.adjustments[0].proposed_rate == water_context.current_rate

    def test_custom_gate(self) -> None:
        compliant, issues = check_regulatory_compliance(
            _scenario("Ok", 0.05, notice_days=45), min_notice_days=60, max_adjustment=0.04
        )
        assert not compliant
        assert len(issues) == 2


# =============================================================================
# SELECTION
# =============================================================================


class TestScenarioSelection:
    """Tests for select_optimal_scenario and rank_alternatives."""

    def test_non_compliant_scenario_never_selected(
        self,
        water_context: EnterpriseContext,
        as_of: date
    ) -> None:
        """A 25% custom increase scores highest but fails the gate."""
        params = OptimizationParameters(max_rate_increase=0.5, custom_targets={"Base Rate": 0.25})
        evaluated = evaluate_scenarios(generate_scenarios(water_context, params, as_of), water_context, params)
        custom = evaluated[3]

        assert not custom.evaluation.regulatory_compliance
        assert custom.weighted_score == max(s.weighted_score for s in evaluated)

        optimal = select_optimal_scenario(evaluated, params)
        assert optimal is not None
        assert optimal.scenario_type != ScenarioType.CUSTOM
        assert optimal.evaluation.regulatory_compliance

    def test_none_when_nothing_compliant(
        self,
        water_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        evaluated = evaluate_scenarios(
            generate_scenarios(water_context, default_params, as_of),
            water_context,
            default_params,
            min_notice_days=120,
        )
        assert select_optimal_scenario(evaluated) is None

    def test_highest_score_wins(
        self,
        water_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        evaluated = evaluate_scenarios(
            generate_scenarios(water_context, default_params, as_of), water_context, default_params
        )
        optimal = select_optimal_scenario(evaluated, default_params)
        assert optimal.weighted_score == pytest.approx(max(s.weighted_score for s in evaluated))

    def test_weights_change_the_winner(
        self,
        water_context: EnterpriseContext,
        default_params: OptimizationParameters,
        as_of: date
    ) -> None:
        evaluated = evaluate_scenarios(
            generate_scenarios(water_context, default_params, as_of), water_context, default_params
        )
        revenue_only = OptimizationParameters(revenue_weight=1.0, affordability_weight=0.0, risk_weight=0.0)
        affordability_only = OptimizationParameters(revenue_weight=0.0, affordability_weight=1.0, risk_weight=0.0)

        assert select_optimal_scenario(evaluated, revenue_only).scenario_type == ScenarioType.AGGRESSIVE
        assert select_optimal_scenario(evaluated, affordability_only).scenario_type == ScenarioType.BALANCED

    def test_tie_goes_to_lower_risk(self) -> None:
        high = _scored(_scenario("High", 0.05, risk_level=RiskLevel.HIGH, sequence=0), 0.5)
        low = _scored(_scenario("Low", 0.05, risk_level=RiskLevel.LOW, sequence=1), 0.5)

        assert select_optimal_scenario([high, low]).name == "Low"

    def test_tie_goes_to_earlier_scenario(self) -> None:
        first = _scored(_scenario("First", 0.05, sequence=0), 0.5)
        second = _scored(_scenario("Second", 0.05, sequence=1), 0.5)

        assert select_optimal_scenario([second, first]).name == "First"

    def test_unevaluated_scenarios_are_ignored(self) -> None:
        assert select_optimal_scenario([_scenario("Raw", 0.05)]) is None

    def test_alternatives_exclude_optimal(self) -> None:
        scenarios: List[OptimizationScenario] = [
            _scored(_scenario(f"S{i}", 0.05, sequence=i), 0.1 * i, compliant=i != 3)
            for i in range(5)
        ]
        optimal = select_optimal_scenario(scenarios)
        alternatives = rank_alternatives(scenarios, optimal)

        assert optimal.name == "S4"
        assert [s.name for s in alternatives] == ["S3", "S2", "S1"]
