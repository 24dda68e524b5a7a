"""
Package initialization file for engine models.

Exports all Pydantic schemas and enumerations from schemas.py and enums.py so
other modules can import data models from rate_engine.models directly.

Usage:
    from rate_engine.models import (
        EnterpriseContext,
        OptimizationParameters,
        RateOptimizationResult,
        RiskLevel,
        # ... etc
    )
"""

# =============================================================================
# Enums
# =============================================================================

from rate_engine.models.enums import (
    # Risk and severity scales
    RiskLevel,
    AnomalySeverity,
    BiasRiskLevel,
    ImpactLevel,
    # Scenario and model identifiers
    ScenarioType,
    ModelKey,
    FeatureSet,
    # Time-series vocabulary
    PatternType,
    TrendStrength,
    VolatilityLevel,
    SamplingFrequency,
    # Anomaly and streaming vocabulary
    AnomalyType,
    OptimizationStage,
)

# =============================================================================
# Schemas
# =============================================================================

from rate_engine.models.schemas import (
    # Default weights
    DEFAULT_REVENUE_WEIGHT,
    DEFAULT_AFFORDABILITY_WEIGHT,
    DEFAULT_RISK_WEIGHT,
    # Input snapshots
    BudgetAccount,
    EnterpriseContext,
    HistoricalDataPoint,
    FinancialDataPoint,
    QueryIntent,
    OptimizationParameters,
    AnomalyDetectionConfig,
    # Features
    FeatureVector,
    # Model outputs
    PredictionResult,
    RatePrediction,
    CustomerSegmentImpact,
    CustomerBehaviorPrediction,
    Anomaly,
    AnomalyDetectionResult,
    MonthlyForecast,
    ConfidenceInterval,
    SeasonalForecast,
    RevenueScenario,
    RevenueOptimization,
    RevenuePredictionResult,
    HistoricalPattern,
    # Scenarios
    RateAdjustment,
    ScenarioEvaluation,
    OptimizationScenario,
    # Result bundle
    ImplementationPhase,
    ImplementationPlan,
    MonitoringPlan,
    RiskAssessment,
    OptimizationConfidence,
    RateOptimizationResult,
    OptimizationUpdate,
    # Explainability
    DecisionPath,
    BiasAssessment,
    ExplainabilityAnalysis,
    AuditTrail,
    ComplianceAssessment,
    ExplainabilityReport,
    # API requests
    OptimizationRequest,
    ExplainRequest,
    ForecastRequest,
    AnomalyRequest,
)

__all__ = [
    # Enums
    "RiskLevel",
    "AnomalySeverity",
    "BiasRiskLevel",
    "ImpactLevel",
    "ScenarioType",
    "ModelKey",
    "FeatureSet",
    "PatternType",
    "TrendStrength",
    "VolatilityLevel",
    "SamplingFrequency",
    "AnomalyType",
    "OptimizationStage",
    # Schemas
    "DEFAULT_REVENUE_WEIGHT",
    "DEFAULT_AFFORDABILITY_WEIGHT",
    "DEFAULT_RISK_WEIGHT",
    "BudgetAccount",
    "EnterpriseContext",
    "HistoricalDataPoint",
    "FinancialDataPoint",
    "QueryIntent",
    "OptimizationParameters",
    "AnomalyDetectionConfig",
    "FeatureVector",
    "PredictionResult",
    "RatePrediction",
    "CustomerSegmentImpact",
    "CustomerBehaviorPrediction",
    "Anomaly",
    "AnomalyDetectionResult",
    "MonthlyForecast",
    "ConfidenceInterval",
    "SeasonalForecast",
    "RevenueScenario",
    "RevenueOptimization",
    "RevenuePredictionResult",
    "HistoricalPattern",
    "RateAdjustment",
    "ScenarioEvaluation",
    "OptimizationScenario",
    "ImplementationPhase",
    "ImplementationPlan",
    "MonitoringPlan",
    "RiskAssessment",
    "OptimizationConfidence",
    "RateOptimizationResult",
    "OptimizationUpdate",
    "DecisionPath",
    "BiasAssessment",
    "ExplainabilityAnalysis",
    "AuditTrail",
    "ComplianceAssessment",
    "ExplainabilityReport",
    "OptimizationRequest",
    "ExplainRequest",
    "ForecastRequest",
    "AnomalyRequest",
]
