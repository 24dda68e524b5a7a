"""
Pydantic models for the rate optimization engine.

This module provides type-safe data validation and serialization for every
entity that crosses the engine boundary:

- Input snapshots: EnterpriseContext, BudgetAccount, HistoricalDataPoint,
  FinancialDataPoint, OptimizationParameters, AnomalyDetectionConfig, QueryIntent
- Feature vectors built once per request: FeatureVector
- Model outputs: PredictionResult and its model-specific subclasses
- Scenario models: RateAdjustment, OptimizationScenario, ScenarioEvaluation
- Result bundles: RateOptimizationResult with its plans and assessments
- Explainability: ExplainabilityAnalysis, BiasAssessment, ExplainabilityReport
- API request bodies

Input snapshots are frozen; the engine never mutates what callers hand in.
All models use Pydantic v2 syntax.
"""

from datetime import datetime, date as DateType
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rate_engine.models.enums import (
    AnomalySeverity,
    AnomalyType,
    BiasRiskLevel,
    FeatureSet,
    ImpactLevel,
    OptimizationStage,
    PatternType,
    RiskLevel,
    ScenarioType,
)


# =============================================================================
# Default Scoring Weights
# =============================================================================
# Revenue / affordability / risk weights used when the caller does not supply
# its own. Settings.revenue_weight etc. carry the same values for the API.

DEFAULT_REVENUE_WEIGHT: float = 0.4
DEFAULT_AFFORDABILITY_WEIGHT: float = 0.4
DEFAULT_RISK_WEIGHT: float = 0.2


# =============================================================================
# Input Snapshots
# =============================================================================


class BudgetAccount(BaseModel):
    """
    A named budget account from the chart of accounts.

    Accounts whose section is "revenue" count toward revenue when totals are
    derived from accounts; every other section counts as an expense.
    """
    model_config = ConfigDict(frozen=True)

    account_number: str = Field(..., description="Chart-of-accounts number")
    name: str = Field(..., description="Account display name")
    section: str = Field(
        default="expense",
        description="Account section, e.g. 'revenue', 'operations', 'debt_service'"
    )
    budget_amount: float = Field(default=0.0, description="Budgeted amount for the fiscal year")
    year_to_date_amount: float = Field(default=0.0, description="Actual amount posted year to date")


class EnterpriseContext(BaseModel):
    """
    Read-only financial snapshot of a utility enterprise.

    Supplied per request by the persistence layer. Missing or zero fields are
    tolerated everywhere: feature extraction substitutes defaults and lowers
    completeness instead of failing.
    """
    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "name": "Water Enterprise",
                "customer_count": 1000,
                "total_budget": 520000.0,
                "total_revenue": 480000.0,
                "total_expenses": 500000.0,
                "current_rate": 40.0,
                "affordability_index": 0.55,
                "seasonal_adjustment": 0.0,
                "accounts": []
            }
        }
    )

    name: str = Field(..., description="Enterprise name, e.g. 'Water', 'Sewer', 'Trash'")
    municipality: Optional[str] = Field(default=None, description="Owning municipality")
    customer_count: int = Field(default=0, ge=0, description="Number of billed customers")
    total_budget: float = Field(default=0.0, description="Total budget for the fiscal year")
    total_revenue: float = Field(default=0.0, description="Total annual revenue")
    total_expenses: float = Field(default=0.0, description="Total annual expenses")
    current_rate: float = Field(default=0.0, ge=0.0, description="Current required monthly rate per customer")
    affordability_index: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Normalized ability to pay (0-1); lower is more price sensitive"
    )
    seasonal_adjustment: float = Field(
        default=0.0,
        description="Seasonal adjustment factor as a fraction (0.1 = 10% swing)"
    )
    year_to_date_spending: float = Field(default=0.0, description="Spending posted year to date")
    budget_remaining: float = Field(default=0.0, description="Unspent budget remaining")
    accounts: List[BudgetAccount] = Field(default_factory=list, description="Named budget accounts")
    risk_factors: List[str] = Field(default_factory=list, description="Known enterprise risk factors")

    @classmethod
    def from_accounts(
        cls,
        name: str,
        accounts: List[BudgetAccount],
        **fields: Any
    ) -> "EnterpriseContext":
        """
        Build a context whose totals are aggregated from its accounts.

        Revenue-section accounts sum into total_revenue; all others into
        total_expenses. Budget totals and year-to-date spending are derived
        from expense accounts unless supplied explicitly.

        Args:
            name: Enterprise name
            accounts: Budget accounts to aggregate
            **fields: Any other EnterpriseContext field, taking precedence
                over derived values

        Returns:
            EnterpriseContext with derived totals
        """
        revenue = sum(a.budget_amount for a in accounts if a.section.lower() == "revenue")
        expense_accounts = [a for a in accounts if a.section.lower() != "revenue"]
        expenses = sum(a.budget_amount for a in expense_accounts)
        ytd = sum(a.year_to_date_amount for a in expense_accounts)

        derived: Dict[str, Any] = {
            "total_revenue": revenue,
            "total_expenses": expenses,
            "total_budget": expenses,
            "year_to_date_spending": ytd,
            "budget_remaining": max(0.0, expenses - ytd),
        }
        derived.update(fields)
        return cls(name=name, accounts=list(accounts), **derived)

    @property
    def percent_of_budget_used(self) -> float:
        """Share of the total budget spent year to date, in percent."""
        if self.total_budget <= 0:
            return 0.0
        return self.year_to_date_spending / self.total_budget * 100

    @property
    def key_metrics(self) -> Dict[str, float]:
        """Headline ratios: budget variance, cash flow and operational efficiency."""
        return {
            "BudgetVariance": self.total_budget - self.year_to_date_spending,
            "CashFlow": self.total_revenue - self.total_expenses,
            "OperationalEfficiency": (
                self.total_revenue / self.total_expenses if self.total_expenses > 0 else 0.0
            ),
        }


class HistoricalDataPoint(BaseModel):
    """One dated observation of rate, revenue, usage and customers."""
    model_config = ConfigDict(frozen=True)

    date: DateType = Field(..., description="Observation date")
    rate: float = Field(default=0.0, description="Rate in effect")
    revenue: float = Field(default=0.0, description="Revenue for the period")
    usage: float = Field(default=0.0, description="Usage volume for the period")
    customer_count: int = Field(default=0, ge=0, description="Customers billed in the period")


class FinancialDataPoint(BaseModel):
    """A timestamped financial value used for anomaly detection."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(..., description="Observation timestamp")
    value: float = Field(..., description="Observed amount")
    category: Optional[str] = Field(default=None, description="Optional account or metric label")


class QueryIntent(BaseModel):
    """
    Output of the upstream natural-language classifier.

    Consumed only as a set of flags and scores; the engine never parses the
    user's question itself.
    """
    intent_type: str = Field(default="general_analysis", description="Intent category")
    clarity_score: float = Field(default=0.5, ge=0.0, le=1.0, description="Question clarity (0-1)")
    complexity_score: int = Field(default=5, ge=1, le=10, description="Question complexity (1-10)")
    requires_rate_analysis: bool = Field(default=False, description="Question concerns rates")
    requires_precision: bool = Field(default=False, description="Question asks for exact figures")
    key_concepts: List[str] = Field(default_factory=list, description="Extracted concepts")
    required_data: List[str] = Field(default_factory=list, description="Data the answer needs")


class OptimizationParameters(BaseModel):
    """Caller-supplied goals and weights for a rate optimization run."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "target_revenue": 520000.0,
                "max_rate_increase": 0.15,
                "min_affordability_index": 0.7,
                "revenue_weight": 0.4,
                "affordability_weight": 0.4,
                "risk_weight": 0.2,
                "optimization_method": "balanced",
                "custom_targets": {"Base Rate": 0.06}
            }
        }
    )

    target_revenue: Optional[float] = Field(default=None, description="Desired annual revenue")
    max_rate_increase: float = Field(
        default=0.15,
        ge=0.0,
        description="Upper bound on any single proposed adjustment, as a fraction"
    )
    min_affordability_index: float = Field(default=0.7, ge=0.0, le=1.0)
    revenue_weight: float = Field(default=DEFAULT_REVENUE_WEIGHT, ge=0.0)
    affordability_weight: float = Field(default=DEFAULT_AFFORDABILITY_WEIGHT, ge=0.0)
    risk_weight: float = Field(default=DEFAULT_RISK_WEIGHT, ge=0.0)
    optimization_method: str = Field(default="balanced", description="Free-form method tag")
    custom_targets: Dict[str, float] = Field(
        default_factory=dict,
        description="Named custom adjustment targets as fractions"
    )


class AnomalyDetectionConfig(BaseModel):
    """Tuning knobs for anomaly detection."""
    sensitivity: float = Field(default=0.05, gt=0.0, description="Sensitivity level")
    baseline_window: int = Field(default=30, ge=1, description="Minimum history length")
    detection_method: str = Field(default="ensemble")


# =============================================================================
# Feature Vectors
# =============================================================================


class FeatureVector(BaseModel):
    """
    Named numeric features for one model type, built once per request.

    Features missing from the source data are filled with documented defaults
    and listed in `defaulted`; `completeness` is the share of features that
    came from real data.
    """
    feature_set: FeatureSet = Field(..., description="Which model the features feed")
    features: Dict[str, float] = Field(default_factory=dict)
    labels: Dict[str, str] = Field(
        default_factory=dict,
        description="Categorical features, e.g. SamplingFrequency"
    )
    defaulted: List[str] = Field(default_factory=list, description="Features filled with defaults")

    @property
    def completeness(self) -> float:
        """Share of numeric features sourced from data rather than defaults."""
        if not self.features:
            return 0.0
        return max(0.0, 1.0 - len(self.defaulted) / len(self.features))

    def get(self, name: str, default: float = 0.0) -> float:
        return self.features.get(name, default)

    def has(self, name: str) -> bool:
        return name in self.features

    def is_observed(self, name: str) -> bool:
        """True when the feature exists and was not filled with a default."""
        return name in self.features and name not in self.defaulted

    def with_values(
        self,
        labels: Optional[Dict[str, str]] = None,
        **values: float
    ) -> "FeatureVector":
        """Copy with extra or replaced features and labels."""
        return self.model_copy(update={
            "features": {**self.features, **{k: float(v) for k, v in values.items()}},
            "labels": {**self.labels, **(labels or {})},
        })


# =============================================================================
# Model Outputs
# =============================================================================


class PredictionResult(BaseModel):
    """
    Generic predictive model output.

    Invariant: lower_bound <= estimate <= upper_bound. Confidence is always set.
    A non-empty error_message marks a degraded fallback result.
    """
    model_config = ConfigDict(protected_namespaces=())

    model_name: str = Field(..., description="Producing model name")
    model_version: str = Field(..., description="Producing model version")
    estimate: float = Field(..., description="Point estimate")
    lower_bound: float = Field(..., description="Lower bound of the estimate")
    upper_bound: float = Field(..., description="Upper bound of the estimate")
    confidence: float = Field(..., ge=0.0, le=1.0)
    error_message: Optional[str] = Field(default=None, description="Set on fallback results")

    @model_validator(mode="after")
    def _check_bounds(self) -> "PredictionResult":
        if not self.lower_bound <= self.estimate <= self.upper_bound:
            raise ValueError(
                f"bounds violated: {self.lower_bound} <= {self.estimate} <= {self.upper_bound}"
            )
        return self

    @property
    def is_fallback(self) -> bool:
        return bool(self.error_message)


class RatePrediction(PredictionResult):
    """Rate optimization output; estimate is the optimal monthly rate."""
    base_rate: float = Field(default=0.0, description="Rate before factors are applied")
    efficiency_factor: float = Field(default=1.0)
    affordability_factor: float = Field(default=1.0)
    seasonal_factor: float = Field(default=1.0)
    seasonal_adjustment: float = Field(default=0.0, description="Seasonal effect in percent")
    seasonal_factors: List[str] = Field(default_factory=list)
    optimization_score: float = Field(default=5.0, description="Overall quality on a 1-10 scale")
    revenue_projection: float = Field(default=0.0, description="Annual revenue at the optimal rate")
    affordability_impact: float = Field(default=5.0, description="Affordability impact on a 1-10 scale")
    implementation_recommendations: List[str] = Field(default_factory=list)
    customer_impact_score: Optional[float] = Field(default=None, description="1-9, higher is gentler")
    revenue_optimization_score: Optional[float] = Field(default=None, description="2-9")
    recommendation_summary: Optional[str] = Field(default=None)

    @property
    def optimal_rate(self) -> float:
        return self.estimate

    @property
    def min_rate(self) -> float:
        return self.lower_bound

    @property
    def max_rate(self) -> float:
        return self.upper_bound


class CustomerSegmentImpact(BaseModel):
    """Predicted response of one customer segment."""
    segment: str
    population_share: float = Field(..., description="Share of customers, in percent")
    usage_change: float = Field(..., description="Usage change, in percent")
    churn_risk: float = Field(..., description="Churn risk, in percent")
    revenue_share: float = Field(..., description="Share of revenue, in percent")


class CustomerBehaviorPrediction(PredictionResult):
    """Customer behaviour output; estimate is the expected usage change in percent."""
    retention_rate: float = Field(..., description="Customer retention, in percent")
    price_elasticity: float
    affordability_index: float
    churn_risk: float = Field(..., description="Churn risk, in percent")
    revenue_impact: float = Field(default=0.0, description="Net revenue impact, in percent")
    segment_impacts: List[CustomerSegmentImpact] = Field(default_factory=list)
    key_drivers: List[str] = Field(default_factory=list)
    behavior_risks: List[str] = Field(default_factory=list)
    recommended_mitigations: List[str] = Field(default_factory=list)

    @property
    def usage_change_percent(self) -> float:
        return self.estimate


class Anomaly(BaseModel):
    """A flagged financial anomaly."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "anomaly_type": "high_volatility",
                "severity": "Medium",
                "anomaly_score": 0.42,
                "expected_value": 0.1,
                "actual_value": 420.0,
                "confidence": 0.7
            }
        }
    )

    anomaly_id: str = Field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = Field(..., description="When the anomaly was observed")
    anomaly_type: AnomalyType
    severity: AnomalySeverity
    anomaly_score: float = Field(default=0.0, ge=0.0, le=1.0)
    expected_value: float = Field(default=0.0)
    actual_value: float = Field(default=0.0)
    deviation: float = Field(default=0.0)
    description: str = Field(default="")
    potential_causes: List[str] = Field(default_factory=list)
    recommended_actions: List[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class AnomalyDetectionResult(PredictionResult):
    """Anomaly model output; estimate is the highest anomaly score (0-1)."""
    anomalies: List[Anomaly] = Field(default_factory=list)


class MonthlyForecast(BaseModel):
    """One forecast month."""
    month_index: int = Field(..., ge=1, description="1-based offset from the forecast start")
    forecast_date: DateType
    predicted_value: float
    lower_bound: float
    upper_bound: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    seasonal_factor: float = Field(default=1.0)


class ConfidenceInterval(BaseModel):
    lower: float
    upper: float


class SeasonalForecast(PredictionResult):
    """Seasonal forecast; estimate is the total over the horizon."""
    forecast_months: int = Field(..., ge=0)
    monthly_forecasts: List[MonthlyForecast] = Field(default_factory=list)
    seasonal_factors: List[float] = Field(
        default_factory=list,
        description="Twelve calendar-month adjustment multipliers"
    )
    confidence_intervals: Dict[str, ConfidenceInterval] = Field(
        default_factory=dict,
        description="Horizon totals keyed by level: '95', '80', '50'"
    )
    trend_component: float = Field(default=0.0)
    seasonal_component: float = Field(default=0.0)
    irregular_component: float = Field(default=0.0)
    residual_component: float = Field(default=0.0)
    influential_factors: List[str] = Field(default_factory=list)
    forecast_quality: str = Field(default="Unknown")
    risk_factors: List[str] = Field(default_factory=list)


class RevenueScenario(BaseModel):
    name: str
    multiplier: float
    total_revenue: float
    probability: float = Field(..., ge=0.0, le=1.0)
    description: str = ""
    key_assumptions: List[str] = Field(default_factory=list)


class RevenueOptimization(BaseModel):
    name: str
    potential_increase: float = Field(..., description="Additional revenue over the horizon")
    description: str = ""
    implementation_effort: str = "Medium"
    time_to_implement: str = ""
    risk_level: RiskLevel = RiskLevel.LOW


class RevenuePredictionResult(PredictionResult):
    """Revenue prediction; estimate is total revenue over the horizon."""
    prediction_months: int = Field(..., ge=0)
    monthly_predictions: List[MonthlyForecast] = Field(default_factory=list)
    scenarios: List[RevenueScenario] = Field(default_factory=list)
    optimizations: List[RevenueOptimization] = Field(default_factory=list)
    growth_rate: float = Field(default=0.0, description="Annual growth rate as a fraction")
    stability_score: float = Field(default=0.5)
    risk_factors: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    prediction_quality: str = Field(default="Unknown")


class HistoricalPattern(BaseModel):
    """A pattern found in historical revenue."""
    pattern_type: PatternType
    description: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    strength: float = Field(default=0.0)
    direction: Optional[str] = Field(default=None)
    recommendations: List[str] = Field(default_factory=list)


# =============================================================================
# Scenario Models
# =============================================================================


class RateAdjustment(BaseModel):
    """A proposed change from the current rate to a new rate."""
    rate_category: str = Field(default="Base Rate")
    current_rate: float = Field(..., ge=0.0)
    proposed_rate: float = Field(..., ge=0.0)
    percentage_change: float = Field(..., description="Change as a fraction (0.03 = 3%)")
    effective_date: DateType
    justification: str = Field(default="")


class ScenarioEvaluation(BaseModel):
    """Scores for one candidate scenario."""
    revenue_change: float = Field(..., description="Projected annual revenue change")
    affordability_score: float = Field(..., ge=0.0)
    impact_level: ImpactLevel
    risk_score: float = Field(..., ge=0.0, le=1.0)
    risk_level: RiskLevel
    implementation_complexity: float = Field(..., ge=0.0, le=1.0)
    regulatory_compliance: bool
    compliance_issues: List[str] = Field(default_factory=list)
    overall_score: float = Field(..., ge=0.0)


class OptimizationScenario(BaseModel):
    """A named candidate set of rate adjustments."""
    name: str
    scenario_type: ScenarioType
    description: str = ""
    adjustments: List[RateAdjustment] = Field(default_factory=list)
    risk_level: RiskLevel
    implementation_days: int = Field(..., ge=0, description="Expected implementation duration")
    notice_days: int = Field(..., ge=0, description="Customer notice before the first effective date")
    expected_impact: ImpactLevel = ImpactLevel.MINIMAL
    sequence: int = Field(default=0, description="Generation order, used for tie-breaking")
    evaluation: Optional[ScenarioEvaluation] = None
    weighted_score: Optional[float] = None

    @property
    def max_adjustment(self) -> float:
        if not self.adjustments:
            return 0.0
        return max(abs(a.percentage_change) for a in self.adjustments)


# =============================================================================
# Result Bundle
# =============================================================================


class ImplementationPhase(BaseModel):
    name: str
    duration_days: int
    start_date: DateType
    end_date: DateType
    activities: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)
    success_criteria: List[str] = Field(default_factory=list)


class ImplementationPlan(BaseModel):
    """Phased rollout of the selected scenario."""
    phases: List[ImplementationPhase] = Field(default_factory=list)
    total_duration_days: int = 0
    critical_success_factors: List[str] = Field(default_factory=list)
    resource_requirements: List[str] = Field(default_factory=list)
    risk_mitigation: List[str] = Field(default_factory=list)
    checkpoints: List[str] = Field(default_factory=list)
    rollback_procedures: List[str] = Field(default_factory=list)
    communication_plan: str = ""


class MonitoringPlan(BaseModel):
    monitoring_frequency: str = "Weekly"
    key_metrics: List[str] = Field(default_factory=list)
    alert_thresholds: Dict[str, float] = Field(default_factory=dict)
    review_dates: List[DateType] = Field(default_factory=list)
    escalation_procedures: List[str] = Field(default_factory=list)


class RiskAssessment(BaseModel):
    risk_level: RiskLevel
    risk_score: float = Field(..., ge=0.0, le=1.0)
    risk_factors: List[str] = Field(default_factory=list)
    mitigation_strategies: List[str] = Field(default_factory=list)
    contingency_plans: List[str] = Field(default_factory=list)


class OptimizationConfidence(BaseModel):
    data_quality_confidence: float = Field(..., ge=0.0, le=1.0)
    model_confidence: float = Field(..., ge=0.0, le=1.0)
    implementation_confidence: float = Field(..., ge=0.0, le=1.0)
    overall_confidence: float = Field(..., ge=0.0, le=1.0)
    confidence_factors: List[str] = Field(default_factory=list)


class RateOptimizationResult(BaseModel):
    """Complete output of a rate optimization run."""
    enterprise_name: str
    generated_at: datetime = Field(default_factory=datetime.now)
    optimal_scenario: OptimizationScenario
    alternative_scenarios: List[OptimizationScenario] = Field(default_factory=list)
    implementation_plan: ImplementationPlan
    confidence_metrics: OptimizationConfidence
    monitoring_plan: MonitoringPlan
    risk_assessment: RiskAssessment
    regulatory_compliance: bool
    rate_prediction: Optional[RatePrediction] = None
    expected_outcomes: List[str] = Field(default_factory=list)
    recommendation_summary: str = ""
    validity_period: str = "90 days"
    error_message: Optional[str] = None


class OptimizationUpdate(BaseModel):
    """Progress event emitted between pipeline stages."""
    stage: OptimizationStage
    progress: float = Field(..., ge=0.0, le=100.0)
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)
    scenarios: List[OptimizationScenario] = Field(default_factory=list)
    current_best: Optional[OptimizationScenario] = None
    result: Optional[RateOptimizationResult] = None


# =============================================================================
# Explainability
# =============================================================================


class DecisionPath(BaseModel):
    model_accuracy: float = Field(..., ge=0.0, le=1.0)
    prediction_stability: float = Field(..., ge=0.0, le=1.0)
    historical_months: int = Field(..., ge=0)
    key_insights: List[str] = Field(default_factory=list)
    uncertainties: List[str] = Field(default_factory=list)
    confidence_indicators: List[str] = Field(default_factory=list)
    decision_logic: str = ""


class BiasAssessment(BaseModel):
    flags: List[str] = Field(default_factory=list)
    risk_level: BiasRiskLevel = BiasRiskLevel.NONE
    mitigation_strategies: List[str] = Field(default_factory=list)


class ExplainabilityAnalysis(BaseModel):
    """Why a recommendation was produced, and how far to trust it."""
    model_config = ConfigDict(protected_namespaces=())

    feature_importance: Dict[str, float] = Field(default_factory=dict)
    feature_stability: float = Field(default=0.5, ge=0.0, le=1.0)
    cross_validation_score: float = Field(default=0.0, ge=0.0, le=1.0)
    decision_path: Optional[DecisionPath] = None
    transparency_score: float = Field(..., ge=0.0, le=1.0)
    data_quality_score: float = Field(default=0.0, ge=0.0, le=1.0)
    model_reliability_score: float = Field(default=0.0, ge=0.0, le=1.0)
    feature_completeness_score: float = Field(default=0.0, ge=0.0, le=1.0)
    explanation_depth_score: float = Field(default=0.0, ge=0.0, le=1.0)
    auditability_score: float = Field(default=0.0, ge=0.0, le=1.0)
    narrative_explanation: str = ""
    key_decision_factors: List[str] = Field(default_factory=list)
    alternative_scenarios: List[str] = Field(default_factory=list)
    confidence_factors: Dict[str, float] = Field(default_factory=dict)
    bias_assessment: BiasAssessment = Field(default_factory=BiasAssessment)
    limitations: List[str] = Field(default_factory=list)
    validation_steps: List[str] = Field(default_factory=list)
    error_message: Optional[str] = None


class AuditTrail(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    timestamp: datetime = Field(default_factory=datetime.now)
    user: str = "AI-System"
    query_type: str
    data_sources: List[str] = Field(default_factory=list)
    model_versions: Dict[str, str] = Field(default_factory=dict)
    compliance_notes: List[str] = Field(default_factory=list)


class ComplianceAssessment(BaseModel):
    meets_transparency_requirements: bool
    meets_explainability_standards: bool
    has_human_oversight: bool
    has_bias_assessment: bool
    compliance_score: float = Field(..., ge=0.0, le=1.0)
    compliance_notes: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ExplainabilityReport(BaseModel):
    analysis: ExplainabilityAnalysis
    executive_summary: str
    audit_trail: AuditTrail
    compliance: ComplianceAssessment
    generated_at: datetime = Field(default_factory=datetime.now)


# =============================================================================
# API Request Models
# =============================================================================


class OptimizationRequest(BaseModel):
    context: EnterpriseContext
    parameters: Optional[OptimizationParameters] = None
    history: List[HistoricalDataPoint] = Field(default_factory=list)
    intent: Optional[QueryIntent] = None
    as_of: Optional[DateType] = Field(default=None, description="Defaults to today")


class ExplainRequest(BaseModel):
    context: EnterpriseContext
    analysis_text: str = Field(default="", description="Recommendation text to explain")
    query_type: str = Field(default="rate_optimization")
    intent: Optional[QueryIntent] = None


class ForecastRequest(BaseModel):
    history: List[HistoricalDataPoint] = Field(default_factory=list)
    months: int = Field(default=12, ge=1, le=60)
    context: Optional[EnterpriseContext] = None
    as_of: Optional[DateType] = None


class AnomalyRequest(BaseModel):
    series: List[FinancialDataPoint] = Field(default_factory=list)
    config: Optional[AnomalyDetectionConfig] = None
    context: Optional[EnterpriseContext] = None
