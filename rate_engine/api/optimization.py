"""
FastAPI router module for rate optimization and explainability endpoints.

Endpoints:
- POST /optimization/rates: Full optimization run (scenarios, plan, confidence)
- POST /optimization/explain: Explainability report for a recommendation text

The engine never raises; a degraded result comes back with error_message set
and is returned to the caller as-is. HTTP errors are reserved for requests
that cannot be processed at all (400) and unexpected failures (500).
"""

import logging

from fastapi import APIRouter, HTTPException

from rate_engine.core.dependencies import EngineDep
from rate_engine.models import (
    ExplainabilityReport,
    ExplainRequest,
    OptimizationRequest,
    RateOptimizationResult,
)

# Configure logging
logger = logging.getLogger(__name__)

# Create router with prefix and tags for OpenAPI documentation
router = APIRouter(prefix="/optimization", tags=["optimization"])


# =============================================================================
# POST /optimization/rates - Run rate optimization
# =============================================================================


@router.post("/rates", response_model=RateOptimizationResult)
async def optimize_rates(
    request: OptimizationRequest,
    engine: EngineDep,
) -> RateOptimizationResult:
    """
    Run the rate optimization pipeline for one enterprise.

    Generates Conservative, Balanced and Aggressive scenarios (plus Custom and
    Seasonal when applicable), evaluates them, selects the best compliant one
    and builds the implementation plan, monitoring plan, risk assessment and
    confidence metrics around it.

    Args:
        request: Enterprise context, optional parameters, history, intent and as-of date
        engine: Injected rate optimization engine

    Returns:
        RateOptimizationResult

    Raises:
        HTTPException 400: If the context has neither revenue nor expenses
        HTTPException 500: If the optimization fails unexpectedly
    """
    context = request.context
    if context.total_revenue == 0 and context.total_expenses == 0:
        raise HTTPException(
            status_code=400,
            detail=f"Enterprise '{context.name}' has no revenue or expense data",
        )

    try:
        result = engine.optimize_rates(
            context,
            params=request.parameters,
            history=request.history,
            intent=request.intent,
            as_of=request.as_of,
        )
        logger.info(
            f"Optimized rates for {context.name}: {result.optimal_scenario.name} "
            f"(confidence {result.confidence_metrics.overall_confidence:.2f})"
        )
        return result
    except Exception as e:
        logger.error(f"Error optimizing rates for {context.name}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error optimizing rates: {str(e)}",
        )


# =============================================================================
# POST /optimization/explain - Explainability report
# =============================================================================


@router.post("/explain", response_model=ExplainabilityReport)
async def explain_recommendation(
    request: ExplainRequest,
    engine: EngineDep,
) -> ExplainabilityReport:
    """
    Build an explainability report for a recommendation.

    The report carries feature importance, transparency scores, bias flags,
    a human-validation checklist, an executive summary, an audit trail and a
    compliance assessment.

    Args:
        request: Enterprise context, recommendation text, query type and intent
        engine: Injected rate optimization engine

    Returns:
        ExplainabilityReport

    Raises:
        HTTPException 400: If analysis_text is empty
        HTTPException 500: If report generation fails unexpectedly
    """
    if not request.analysis_text.strip():
        raise HTTPException(
            status_code=400,
            detail="analysis_text must not be empty",
        )

    try:
        return engine.generate_explainability_report(
            request.analysis_text,
            request.context,
            query_type=request.query_type,
            intent=request.intent,
        )
    except Exception as e:
        logger.error(f"Error explaining recommendation for {request.context.name}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Error generating explainability report: {str(e)}",
        )
