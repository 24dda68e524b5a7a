"""
Rate Optimization Engine - Public Entry Points

Orchestrates feature extraction, the predictive models, the scenario engine,
result assembly and explainability behind one object.

Pipeline for optimize_rates / stream_optimization:
    1. Rate prediction for the enterprise (RateOptimizationModel)
    2. Scenario generation
    3. Scenario evaluation, one scenario at a time
    4. Selection of the optimal compliant scenario (Status Quo when none)
    5. Implementation plan, monitoring plan, risk assessment, confidence

Progress updates are emitted between stages at 0, 20, 40, 40-80 (one per
evaluated scenario), 80, 95 and 100 percent. The synchronous entry point
forwards them to an optional observer callback; the async entry point yields
them.

Failure policy:
    No public method raises. Faults are logged, forwarded to the injected
    fault handler as RateEngineError instances, and replaced by a degraded
    result carrying error_message and confidence <= 0.3.

The engine holds no per-request state, so one instance can serve concurrent
requests.
"""

import asyncio
import logging
from datetime import date
from typing import (
    AsyncIterator,
    Callable,
    Dict,
    Iterator,
    List,
    Optional,
    Sequence,
    Type,
)

from rate_engine.core.exceptions import (
    ComputationFaultError,
    InsufficientDataError,
    ModelUnavailableError,
    RateEngineError,
)
from rate_engine.models import (
    AnomalyDetectionConfig,
    AnomalyDetectionResult,
    CustomerBehaviorPrediction,
    EnterpriseContext,
    ExplainabilityAnalysis,
    ExplainabilityReport,
    FeatureVector,
    FinancialDataPoint,
    HistoricalDataPoint,
    HistoricalPattern,
    ModelKey,
    OptimizationParameters,
    OptimizationScenario,
    OptimizationStage,
    OptimizationUpdate,
    PatternType,
    PredictionResult,
    QueryIntent,
    RateOptimizationResult,
    RatePrediction,
    RevenuePredictionResult,
    SeasonalForecast,
)
from rate_engine.services import explainability, planning
from rate_engine.services.anomaly_detection import AnomalyDetectionModel
from rate_engine.services.confidence import (
    degraded_confidence,
    estimate_optimization_confidence,
    scenario_confidence,
)
from rate_engine.services.feature_extraction import (
    extract_anomaly_features,
    extract_behavior_features,
    extract_rate_features,
    extract_revenue_features,
    extract_time_series_features,
)
from rate_engine.services.forecasting import (
    DEFAULT_FORECAST_MONTHS,
    RevenuePredictionModel,
    SeasonalForecastModel,
)
from rate_engine.services.predictive_models import (
    CustomerBehaviorModel,
    ModelRegistry,
    PredictiveModel,
    RateOptimizationModel,
)
from rate_engine.services.scenario_engine import (
    MAX_COMPLIANT_ADJUSTMENT,
    MIN_NOTICE_DAYS,
    create_status_quo_scenario,
    evaluate_scenarios,
    generate_scenarios,
    rank_alternatives,
    select_optimal_scenario,
)
from rate_engine.services.time_series import analyze_historical_patterns

logger = logging.getLogger(__name__)

FaultHandler = Callable[[RateEngineError], None]
Observer = Callable[[OptimizationUpdate], None]

# Used to build a fallback result when a key is missing from the registry
MODEL_CLASSES: Dict[ModelKey, Type[PredictiveModel]] = {
    ModelKey.RATE_OPTIMIZATION: RateOptimizationModel,
    ModelKey.CUSTOMER_BEHAVIOR: CustomerBehaviorModel,
    ModelKey.ANOMALY_DETECTION: AnomalyDetectionModel,
    ModelKey.SEASONAL_FORECAST: SeasonalForecastModel,
    ModelKey.REVENUE_PREDICTION: RevenuePredictionModel,
}


def default_registry() -> ModelRegistry:
    """Registry holding one instance of each of the five models."""
    return ModelRegistry({key: cls() for key, cls in MODEL_CLASSES.items()})


def build_recommendation_summary(scenario: OptimizationScenario) -> str:
    if not scenario.adjustments:
        return f"Recommended: {scenario.name}"
    adjustment = scenario.adjustments[0]
    lines = [
        f"Recommended: {scenario.name}",
        f"Rate change: ${adjustment.current_rate:.2f} -> ${adjustment.proposed_rate:.2f} "
        f"({adjustment.percentage_change:+.1%}) effective {adjustment.effective_date.isoformat()}",
    ]
    if scenario.evaluation is not None:
        lines.append(
            f"Weighted score {scenario.evaluation.overall_score:.2f}, "
            f"{scenario.evaluation.risk_level.value} risk, "
            f"{scenario.evaluation.impact_level.value} customer impact"
        )
    return "\n".join(lines)


class RateOptimizationEngine:
    """
    Stateless facade over the rate optimization services.

    Args:
        registry: Predictive models keyed by ModelKey (default: all five)
        fault_handler: Called with every fault caught at a public boundary
        default_parameters: Used when a call omits OptimizationParameters
        anomaly_config: Used when a call omits AnomalyDetectionConfig
        default_forecast_months: Horizon when a forecast call omits one
        min_notice_days: Regulatory notice minimum
        max_compliant_adjustment: Regulatory single-adjustment maximum

    Example:
        >>> engine = RateOptimizationEngine()
        >>> result = engine.optimize_rates(context, as_of=date(2024, 4, 1))
        >>> result.optimal_scenario.evaluation.regulatory_compliance
        True
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        fault_handler: Optional[FaultHandler] = None,
        default_parameters: Optional[OptimizationParameters] = None,
        anomaly_config: Optional[AnomalyDetectionConfig] = None,
        default_forecast_months: int = DEFAULT_FORECAST_MONTHS,
        min_notice_days: int = MIN_NOTICE_DAYS,
        max_compliant_adjustment: float = MAX_COMPLIANT_ADJUSTMENT,
    ) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.fault_handler = fault_handler
        self.default_parameters = default_parameters or OptimizationParameters()
        self.anomaly_config = anomaly_config or AnomalyDetectionConfig()
        self.default_forecast_months = default_forecast_months
        self.min_notice_days = min_notice_days
        self.max_compliant_adjustment = max_compliant_adjustment

    @classmethod
    def from_settings(
        cls,
        settings,
        registry: Optional[ModelRegistry] = None,
        fault_handler: Optional[FaultHandler] = None
    ) -> "RateOptimizationEngine":
        """Engine configured from a rate_engine.core.config.Settings instance."""
        return cls(
            registry=registry,
            fault_handler=fault_handler,
            default_parameters=settings.default_parameters(),
            anomaly_config=settings.anomaly_config(),
            default_forecast_months=settings.default_forecast_months,
            min_notice_days=settings.min_notice_days,
            max_compliant_adjustment=settings.max_compliant_adjustment,
        )

    # =========================================================================
    # Fault handling
    # =========================================================================

    def _report(self, error: RateEngineError) -> None:
        if self.fault_handler is None:
            return
        try:
            self.fault_handler(error)
        except Exception as e:
            logger.error(f"Fault handler raised while reporting '{error}': {e}", exc_info=True)

    def _run_model(self, key: ModelKey, features: FeatureVector) -> PredictionResult:
        try:
            model = self.registry.get(key)
        except ModelUnavailableError as e:
            logger.warning(str(e))
            self._report(e)
            return MODEL_CLASSES[key]().fallback(features, e.message)

        result = model.predict(features)
        if result.error_message:
            self._report(ComputationFaultError(result.error_message, stage=model.name))
        return result

    # =========================================================================
    # Model entry points
    # =========================================================================

    def predict_optimal_rates(
        self,
        context: EnterpriseContext,
        intent: Optional[QueryIntent] = None,
        as_of: Optional[date] = None
    ) -> RatePrediction:
        """Optimal monthly rate and range for the enterprise."""
        features = extract_rate_features(context, intent=intent, as_of=as_of)
        return self._run_model(ModelKey.RATE_OPTIMIZATION, features)

    def predict_customer_behavior(
        self,
        context: EnterpriseContext,
        history: Sequence[HistoricalDataPoint] = (),
        params: Optional[OptimizationParameters] = None
    ) -> CustomerBehaviorPrediction:
        """Usage, retention and churn response to a rate change."""
        features = extract_behavior_features(context, history, params)
        return self._run_model(ModelKey.CUSTOMER_BEHAVIOR, features)

    def detect_anomalies(
        self,
        series: Sequence[FinancialDataPoint],
        config: Optional[AnomalyDetectionConfig] = None,
        context: Optional[EnterpriseContext] = None,
        reference_month: Optional[int] = None
    ) -> AnomalyDetectionResult:
        """
        Statistical, pattern and contextual anomalies in a financial series.

        reference_month overrides the calendar month used by the contextual
        layer (default: month of the latest observation).
        """
        features = extract_anomaly_features(series, config or self.anomaly_config, context)
        if reference_month is not None:
            features = features.with_values(ReferenceMonth=reference_month)
        return self._run_model(ModelKey.ANOMALY_DETECTION, features)

    def _forecast_features(
        self,
        features: FeatureVector,
        months: Optional[int],
        as_of: Optional[date]
    ) -> FeatureVector:
        start = as_of or date.today()
        horizon = months if months is not None else self.default_forecast_months
        return features.with_values(
            labels={"ForecastStart": start.isoformat()},
            ForecastMonths=horizon,
        )

    def generate_seasonal_forecast(
        self,
        history: Sequence[HistoricalDataPoint],
        months: Optional[int] = None,
        context: Optional[EnterpriseContext] = None,
        as_of: Optional[date] = None
    ) -> SeasonalForecast:
        """Monthly forecast over the horizon with seasonal factors and intervals."""
        features = extract_time_series_features(history, context)
        return self._run_model(
            ModelKey.SEASONAL_FORECAST, self._forecast_features(features, months, as_of)
        )

    def predict_revenue(
        self,
        context: EnterpriseContext,
        history: Sequence[HistoricalDataPoint] = (),
        months: Optional[int] = None,
        as_of: Optional[date] = None
    ) -> RevenuePredictionResult:
        """Revenue over the horizon with scenarios and optimisation opportunities."""
        features = extract_revenue_features(context, history)
        return self._run_model(
            ModelKey.REVENUE_PREDICTION, self._forecast_features(features, months, as_of)
        )

    def analyze_historical_patterns(
        self,
        history: Sequence[HistoricalDataPoint]
    ) -> List[HistoricalPattern]:
        """Trend, seasonal, volatility and growth patterns in revenue history."""
        patterns = analyze_historical_patterns(history)
        for pattern in patterns:
            if pattern.pattern_type == PatternType.ANALYSIS_ERROR:
                self._report(ComputationFaultError(pattern.description, stage="time_series"))
        return patterns

    # =========================================================================
    # Rate optimization
    # =========================================================================

    def _update(self, stage: OptimizationStage, progress: float, message: str, **fields) -> OptimizationUpdate:
        logger.debug(f"Optimization {stage.value} {progress:.0f}%: {message}")
        return OptimizationUpdate(stage=stage, progress=progress, message=message, **fields)

    def _optimization_updates(
        self,
        context: EnterpriseContext,
        params: Optional[OptimizationParameters],
        history: Sequence[HistoricalDataPoint],
        intent: Optional[QueryIntent],
        as_of: Optional[date]
    ) -> Iterator[OptimizationUpdate]:
        as_of = as_of or date.today()
        params = params or self.default_parameters
        gate = {
            "min_notice_days": self.min_notice_days,
            "max_compliant_adjustment": self.max_compliant_adjustment,
        }

        yield self._update(OptimizationStage.INITIALIZING, 0, "Starting real-time rate optimization...")
        try:
            if context.total_revenue == 0 and context.total_expenses == 0:
                raise InsufficientDataError(
                    "total revenue and total expenses are both zero", stage="optimization"
                )

            yield self._update(
                OptimizationStage.GENERATING_SCENARIOS, 20,
                "Analyzing current financial position and customer data...",
            )
            rate_prediction = self.predict_optimal_rates(context, intent, as_of)
            scenarios = generate_scenarios(context, params, as_of)
            yield self._update(
                OptimizationStage.GENERATING_SCENARIOS, 40,
                f"Generated {len(scenarios)} optimization scenarios...",
                scenarios=scenarios,
            )

            evaluated: List[OptimizationScenario] = []
            for index, scenario in enumerate(scenarios, start=1):
                evaluated.extend(evaluate_scenarios([scenario], context, params, **gate))
                yield self._update(
                    OptimizationStage.EVALUATING_SCENARIOS,
                    40 + 40 * index / len(scenarios),
                    f"Evaluated scenario: {scenario.name}",
                    scenarios=list(evaluated),
                )

            optimal = select_optimal_scenario(evaluated, params)
            if optimal is None:
                status_quo = create_status_quo_scenario(context, as_of).model_copy(
                    update={"sequence": len(evaluated)}
                )
                optimal = evaluate_scenarios([status_quo], context, params, **gate)[0]
            yield self._update(
                OptimizationStage.SELECTING_OPTIMAL, 80,
                f"Optimal scenario identified: {optimal.name}",
                current_best=optimal,
            )

            behavior = self.predict_customer_behavior(context, history, params)
            result = self._assemble_result(
                context, params, optimal, evaluated, rate_prediction, behavior, as_of
            )
            yield self._update(
                OptimizationStage.BUILDING_PLAN, 95,
                "Generated comprehensive implementation plan...",
                current_best=optimal,
            )
            yield self._update(
                OptimizationStage.COMPLETED, 100,
                f"Rate optimization completed: {optimal.name}",
                current_best=optimal,
                result=result,
            )
        except Exception as e:
            logger.error(f"Rate optimization failed for {context.name}: {e}", exc_info=True)
            error = e if isinstance(e, RateEngineError) else ComputationFaultError(str(e), stage="optimization")
            self._report(error)
            result = self._fallback_result(context, params, as_of, str(error))
            yield self._update(
                OptimizationStage.FAILED, 100,
                f"Optimization failed: {error}",
                current_best=result.optimal_scenario,
                result=result,
            )

    def _assemble_result(
        self,
        context: EnterpriseContext,
        params: OptimizationParameters,
        optimal: OptimizationScenario,
        evaluated: List[OptimizationScenario],
        rate_prediction: RatePrediction,
        behavior: CustomerBehaviorPrediction,
        as_of: date
    ) -> RateOptimizationResult:
        outcomes = planning.calculate_expected_outcomes(optimal)
        outcomes.append(f"Scenario confidence: {scenario_confidence(optimal):.0%}")
        if not behavior.is_fallback:
            outcomes.append(f"Expected customer retention: {behavior.retention_rate:.1f}%")
        evaluation = optimal.evaluation
        if evaluation is not None and evaluation.affordability_score < params.min_affordability_index:
            outcomes.append(
                f"Affordability score {evaluation.affordability_score:.2f} is below the "
                f"{params.min_affordability_index:.2f} target"
            )

        return RateOptimizationResult(
            enterprise_name=context.name,
            optimal_scenario=optimal,
            alternative_scenarios=rank_alternatives(evaluated, optimal),
            implementation_plan=planning.build_implementation_plan(optimal, context, as_of),
            confidence_metrics=estimate_optimization_confidence(context, optimal),
            monitoring_plan=planning.build_monitoring_plan(optimal, as_of),
            risk_assessment=planning.assess_optimization_risks(optimal, context),
            regulatory_compliance=bool(evaluation and evaluation.regulatory_compliance),
            rate_prediction=rate_prediction,
            expected_outcomes=outcomes,
            recommendation_summary=build_recommendation_summary(optimal),
        )

    def _fallback_result(
        self,
        context: EnterpriseContext,
        params: OptimizationParameters,
        as_of: date,
        message: str
    ) -> RateOptimizationResult:
        status_quo = create_status_quo_scenario(context, as_of)
        status_quo = evaluate_scenarios(
            [status_quo], context, params,
            min_notice_days=self.min_notice_days,
            max_compliant_adjustment=self.max_compliant_adjustment,
        )[0]
        return RateOptimizationResult(
            enterprise_name=context.name,
            optimal_scenario=status_quo,
            implementation_plan=planning.build_implementation_plan(status_quo, context, as_of),
            confidence_metrics=degraded_confidence(message),
            monitoring_plan=planning.build_monitoring_plan(status_quo, as_of),
            risk_assessment=planning.failed_risk_assessment(message),
            regulatory_compliance=True,
            expected_outcomes=["Current rates maintained pending data review"],
            recommendation_summary=f"Maintain current rates: optimization could not complete ({message})",
            error_message=message,
        )

    def optimize_rates(
        self,
        context: EnterpriseContext,
        params: Optional[OptimizationParameters] = None,
        history: Sequence[HistoricalDataPoint] = (),
        intent: Optional[QueryIntent] = None,
        as_of: Optional[date] = None,
        observer: Optional[Observer] = None
    ) -> RateOptimizationResult:
        """
        Run the full optimization pipeline.

        Args:
            context: Enterprise snapshot
            params: Goals and scoring weights (default: engine defaults)
            history: Historical observations, used for behaviour prediction
            intent: Upstream query intent
            as_of: Reference date for effective dates and plans (default: today)
            observer: Called with each OptimizationUpdate as it is produced

        Returns:
            RateOptimizationResult; a Status Quo result with error_message on failure
        """
        result: Optional[RateOptimizationResult] = None
        for update in self._optimization_updates(context, params, history, intent, as_of):
            if observer is not None:
                try:
                    observer(update)
                except Exception as e:
                    logger.warning(f"Optimization observer raised: {e}")
            if update.result is not None:
                result = update.result
        return result

    async def stream_optimization(
        self,
        context: EnterpriseContext,
        params: Optional[OptimizationParameters] = None,
        history: Sequence[HistoricalDataPoint] = (),
        intent: Optional[QueryIntent] = None,
        as_of: Optional[date] = None
    ) -> AsyncIterator[OptimizationUpdate]:
        """
        Async generator of progress updates; the last one carries the result.

        Example:
            >>> async for update in engine.stream_optimization(context):
            ...     print(f"{update.progress:.0f}% {update.message}")
        """
        for update in self._optimization_updates(context, params, history, intent, as_of):
            yield update
            await asyncio.sleep(0)

    # =========================================================================
    # Explainability
    # =========================================================================

    def explain_recommendation(
        self,
        analysis_text: str,
        context: EnterpriseContext,
        intent: Optional[QueryIntent] = None,
        history: Sequence[HistoricalDataPoint] = ()
    ) -> ExplainabilityAnalysis:
        """Feature importance, transparency scores and bias flags for a recommendation."""
        analysis = explainability.generate_explanation(analysis_text, context, intent, history)
        if analysis.error_message:
            self._report(ComputationFaultError(analysis.error_message, stage="explainability"))
        return analysis

    def generate_explainability_report(
        self,
        analysis_text: str,
        context: EnterpriseContext,
        query_type: str = "rate_optimization",
        intent: Optional[QueryIntent] = None,
        history: Sequence[HistoricalDataPoint] = ()
    ) -> ExplainabilityReport:
        """Analysis plus executive summary, audit trail and compliance assessment."""
        analysis = self.explain_recommendation(analysis_text, context, intent, history)
        try:
            return explainability.generate_report(
                analysis, context, query_type, model_versions=self.registry.versions()
            )
        except Exception as e:
            logger.error(f"Explainability report failed for {context.name}: {e}", exc_info=True)
            self._report(ComputationFaultError(str(e), stage="explainability_report"))
            return explainability.generate_report(
                explainability.fallback_explanation(str(e)), context, query_type
            )
