"""
Services Module

This module contains the business logic of the rate optimization engine. Every
service is stateless: outputs depend only on the arguments passed in.

Services:
- statistics: Shared numeric helpers (mean, variance, CV, moments, slope)
- feature_extraction: Enterprise snapshot + history -> feature vectors
- time_series: Trend, seasonal, volatility and growth pattern detection
- predictive_models: Model interface, registry, rate and behaviour models
- anomaly_detection: Statistical, pattern and contextual anomaly layers
- forecasting: Seasonal forecast and revenue prediction models
- scenario_engine: Scenario generation, evaluation and selection
- planning: Implementation plan, monitoring plan, risk assessment
- confidence: Data-quality, model and implementation confidence
- explainability: Feature importance, transparency, bias and reports
- engine: RateOptimizationEngine, the public entry points

All services are consumed through the engine by the API layer (rate_engine/api/).
"""

# =============================================================================
# Feature Extraction Exports
# Pure functions mapping a snapshot and history into named feature vectors,
# with documented defaults and a completeness ratio
# =============================================================================

from rate_engine.services.feature_extraction import (
    FEATURE_DEFAULTS,
    extract_features,
    extract_rate_features,
    extract_behavior_features,
    extract_time_series_features,
    extract_anomaly_features,
    extract_revenue_features,
    history_frame,
)

# =============================================================================
# Time-Series Exports
# =============================================================================

from rate_engine.services.time_series import (
    analyze_historical_patterns,
    analyze_trend,
    detect_seasonal_patterns,
    analyze_volatility,
    analyze_growth,
)

# =============================================================================
# Predictive Model Exports
# Shared interface, registry and the five closed-form models
# =============================================================================

from rate_engine.services.predictive_models import (
    FALLBACK_CONFIDENCE,
    PredictiveModel,
    ModelRegistry,
    RateOptimizationModel,
    CustomerBehaviorModel,
)
from rate_engine.services.anomaly_detection import AnomalyDetectionModel
from rate_engine.services.forecasting import (
    SeasonalForecastModel,
    RevenuePredictionModel,
)

# =============================================================================
# Scenario Engine Exports
# Generation, evaluation with the regulatory gate, and selection
# =============================================================================

from rate_engine.services.scenario_engine import (
    generate_scenarios,
    evaluate_scenario,
    evaluate_scenarios,
    select_optimal_scenario,
    rank_alternatives,
    create_status_quo_scenario,
    check_regulatory_compliance,
)

# =============================================================================
# Result Assembly Exports
# =============================================================================

from rate_engine.services.planning import (
    build_implementation_plan,
    build_monitoring_plan,
    assess_optimization_risks,
    calculate_expected_outcomes,
)
from rate_engine.services.confidence import (
    estimate_optimization_confidence,
    scenario_confidence,
)

# =============================================================================
# Explainability Exports
# =============================================================================

from rate_engine.services.explainability import (
    calculate_feature_importance,
    assess_bias,
    generate_explanation,
    generate_report,
)

# =============================================================================
# Engine Exports
# =============================================================================

from rate_engine.services.engine import (
    RateOptimizationEngine,
    default_registry,
)

__all__ = [
    # Feature extraction
    'FEATURE_DEFAULTS',
    'extract_features',
    'extract_rate_features',
    'extract_behavior_features',
    'extract_time_series_features',
    'extract_anomaly_features',
    'extract_revenue_features',
    'history_frame',
    # Time series
    'analyze_historical_patterns',
    'analyze_trend',
    'detect_seasonal_patterns',
    'analyze_volatility',
    'analyze_growth',
    # Predictive models
    'FALLBACK_CONFIDENCE',
    'PredictiveModel',
    'ModelRegistry',
    'RateOptimizationModel',
    'CustomerBehaviorModel',
    'AnomalyDetectionModel',
    'SeasonalForecastModel',
    'RevenuePredictionModel',
    # Scenario engine
    'generate_scenarios',
    'evaluate_scenario',
    'evaluate_scenarios',
    'select_optimal_scenario',
    'rank_alternatives',
    'create_status_quo_scenario',
    'check_regulatory_compliance',
    # Result assembly
    'build_implementation_plan',
    'build_monitoring_plan',
    'assess_optimization_risks',
    'calculate_expected_outcomes',
    'estimate_optimization_confidence',
    'scenario_confidence',
    # Explainability
    'calculate_feature_importance',
    'assess_bias',
    'generate_explanation',
    'generate_report',
    # Engine
    'RateOptimizationEngine',
    'default_registry',
]
