"""
Result assembly for a selected scenario: implementation plan, monitoring plan,
risk assessment and expected outcomes.

The implementation plan always has four sequential phases:
    Preparation and Planning (14 days) -> Customer Communication (21 days)
    -> Rate Implementation (7 days) -> Monitoring and Adjustment (30 days)
starting on the as-of date.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional

from rate_engine.models import (
    EnterpriseContext,
    ImplementationPhase,
    ImplementationPlan,
    MonitoringPlan,
    OptimizationScenario,
    RiskAssessment,
    RiskLevel,
)
from rate_engine.services.scenario_engine import classify_risk, resolve_affordability

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# (name, days, activities, dependencies, success criteria)
IMPLEMENTATION_PHASES = [
    (
        "Preparation and Planning",
        14,
        [
            "Review and approve rate optimization plan",
            "Update billing systems and rate tables",
            "Prepare customer communication materials",
            "Train customer service staff on changes",
        ],
        ["Management approval", "System access"],
        ["All systems updated", "Staff trained", "Communications ready"],
    ),
    (
        "Customer Communication",
        21,
        [
            "Send formal rate change notifications",
            "Conduct public meetings if required",
            "Update website and public materials",
            "Handle customer inquiries and concerns",
        ],
        ["Approved communication materials"],
        ["All customers notified", "Public meetings completed", "Inquiry process functioning"],
    ),
    (
        "Rate Implementation",
        7,
        [
            "Activate new rate schedules",
            "Verify billing system calculations",
            "Process first bills with new rates",
            "Monitor system performance",
        ],
        ["System testing completed", "Customer notification period ended"],
        ["New rates active", "Billing accuracy verified", "No system errors"],
    ),
    (
        "Monitoring and Adjustment",
        30,
        [
            "Monitor revenue impact",
            "Track customer satisfaction",
            "Analyze usage patterns",
            "Make minor adjustments if needed",
        ],
        ["Rate implementation completed"],
        ["Revenue targets met", "Customer satisfaction maintained", "System stability confirmed"],
    ),
]

CRITICAL_SUCCESS_FACTORS = [
    "Stakeholder buy-in and approval",
    "Accurate billing system implementation",
    "Effective customer communication",
    "Regulatory compliance maintenance",
    "Continuous monitoring and adjustment",
]

RESOURCE_REQUIREMENTS = [
    "IT support for system updates",
    "Customer service training",
    "Communication materials development",
    "Project management coordination",
    "Regulatory compliance review",
]

ROLLBACK_PROCEDURES = [
    "Identify rollback triggers and conditions",
    "Prepare previous rate schedule restoration",
    "Plan customer communication for rollback",
    "Document lessons learned and adjustments needed",
]

MONITORING_METRICS = [
    "Revenue Collection",
    "Customer Satisfaction",
    "Usage Patterns",
    "Payment Timeliness",
]

ALERT_THRESHOLDS = {
    "RevenueDeviation": 0.10,
    "CustomerComplaints": 0.05,
    "UsageChange": 0.15,
}

REVIEW_OFFSETS_DAYS = (30, 60, 90)

BASE_OPTIMIZATION_RISK: float = 0.3


# =============================================================================
# Implementation Plan
# =============================================================================


def generate_risk_mitigation(scenario: OptimizationScenario) -> List[str]:
    mitigation = [
        "Gradual implementation approach",
        "Enhanced customer communication strategy",
        "Regular monitoring and feedback collection",
    ]
    if scenario.risk_level == RiskLevel.HIGH:
        mitigation.extend([
            "Pilot program before full implementation",
            "Customer assistance program development",
            "Public hearing and community engagement",
        ])
    return mitigation


def generate_communication_plan(scenario: OptimizationScenario, context: EnterpriseContext) -> str:
    change = scenario.adjustments[0].percentage_change if scenario.adjustments else 0.0
    lines = [
        "COMMUNICATION PLAN",
        "===================",
        f"Target Audience: {context.customer_count} customers",
        f"Rate Change: {change:.1%}",
        f"Notification Timeline: {scenario.notice_days}+ days before implementation",
        "Communication Channels:",
        "- Direct mail notifications",
        "- Website updates",
        "- Public meetings (if required)",
        "- Customer service training",
    ]
    return "\n".join(lines)


def build_implementation_plan(
    scenario: OptimizationScenario,
    context: EnterpriseContext,
    as_of: Optional[date] = None
) -> ImplementationPlan:
    """
    Phased rollout plan for the selected scenario.

    Args:
        scenario: Selected scenario
        context: Enterprise snapshot (customer count for the communication plan)
        as_of: First day of the preparation phase (default: today)

    Returns:
        ImplementationPlan with four back-to-back phases
    """
    start = as_of or date.today()
    phases: List[ImplementationPhase] = []
    for name, days, activities, dependencies, criteria in IMPLEMENTATION_PHASES:
        end = start + timedelta(days=days)
        phases.append(ImplementationPhase(
            name=name,
            duration_days=days,
            start_date=start,
            end_date=end,
            activities=list(activities),
            dependencies=list(dependencies),
            success_criteria=list(criteria),
        ))
        start = end

    return ImplementationPlan(
        phases=phases,
        total_duration_days=sum(p.duration_days for p in phases),
        critical_success_factors=list(CRITICAL_SUCCESS_FACTORS),
        resource_requirements=list(RESOURCE_REQUIREMENTS),
        risk_mitigation=generate_risk_mitigation(scenario),
        checkpoints=[f"End of {p.name}: {p.success_criteria[0]}" for p in phases],
        rollback_procedures=list(ROLLBACK_PROCEDURES),
        communication_plan=generate_communication_plan(scenario, context),
    )


# =============================================================================
# Monitoring Plan
# =============================================================================


def build_monitoring_plan(
    scenario: OptimizationScenario,
    as_of: Optional[date] = None
) -> MonitoringPlan:
    """Weekly monitoring with reviews 30, 60 and 90 days after as_of."""
    as_of = as_of or date.today()
    escalation = [
        f"Revenue deviation above {ALERT_THRESHOLDS['RevenueDeviation']:.0%}: notify finance director",
        f"Complaint rate above {ALERT_THRESHOLDS['CustomerComplaints']:.0%}: review customer assistance options",
        f"Usage change above {ALERT_THRESHOLDS['UsageChange']:.0%}: re-run rate optimization",
    ]
    if scenario.risk_level == RiskLevel.HIGH:
        escalation.append("Brief governing board after each scheduled review")

    return MonitoringPlan(
        monitoring_frequency="Weekly",
        key_metrics=list(MONITORING_METRICS),
        alert_thresholds=dict(ALERT_THRESHOLDS),
        review_dates=[as_of + timedelta(days=offset) for offset in REVIEW_OFFSETS_DAYS],
        escalation_procedures=escalation,
    )


# =============================================================================
# Risk Assessment
# =============================================================================


def assess_optimization_risks(
    scenario: OptimizationScenario,
    context: EnterpriseContext
) -> RiskAssessment:
    """
    Overall risk of implementing the selected scenario.

    Base 0.3, +0.2 when any adjustment exceeds 10%, +0.1 when affordability
    is below 0.7; capped at 1.
    """
    risk_score = BASE_OPTIMIZATION_RISK
    factors: List[str] = []

    if any(a.percentage_change > 0.10 for a in scenario.adjustments):
        factors.append("Customer Satisfaction Risk: Large rate increases may impact customer satisfaction")
        risk_score += 0.2

    if resolve_affordability(context) < 0.7:
        factors.append("Affordability Risk: Low customer affordability may limit rate increase acceptance")
        risk_score += 0.1

    if scenario.evaluation is not None and not scenario.evaluation.regulatory_compliance:
        factors.extend(f"Regulatory Risk: {issue}" for issue in scenario.evaluation.compliance_issues)

    risk_score = min(1.0, risk_score)
    return RiskAssessment(
        risk_level=classify_risk(risk_score),
        risk_score=risk_score,
        risk_factors=factors,
        mitigation_strategies=[
            "Implement changes gradually",
            "Enhanced customer communication",
            "Monitor customer feedback closely",
        ],
        contingency_plans=[
            "Restore previous rate schedule if revenue deviates beyond alert thresholds",
            "Offer payment plans to customers reporting hardship",
        ],
    )


def failed_risk_assessment(message: str) -> RiskAssessment:
    return RiskAssessment(
        risk_level=RiskLevel.HIGH,
        risk_score=1.0,
        risk_factors=[f"Optimization Error: {message}"],
        mitigation_strategies=["Review input data and rerun optimization"],
        contingency_plans=["Maintain current rates until optimization succeeds"],
    )


# =============================================================================
# Expected Outcomes
# =============================================================================


def calculate_expected_outcomes(scenario: OptimizationScenario) -> List[str]:
    evaluation = scenario.evaluation
    revenue = evaluation.revenue_change if evaluation else 0.0
    impact = evaluation.impact_level.value if evaluation else "Unknown"
    success = min(1.0, evaluation.overall_score) if evaluation else 0.5
    return [
        f"Projected annual revenue change: ${revenue:,.0f}",
        f"Customer impact: {impact}",
        f"Time to full implementation: {scenario.implementation_days}d",
        f"Success probability: {success:.0%}",
        "Improved revenue stability",
        "Better cost recovery",
        "Enhanced service sustainability",
    ]
