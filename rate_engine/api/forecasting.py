"""
FastAPI router module for forecasting and historical analysis endpoints.

Endpoints:
- POST /forecasting/seasonal: Seasonal forecast over a horizon
- POST /forecasting/revenue: Revenue prediction with scenarios
- POST /forecasting/anomalies: Financial anomalies in a series
- POST /forecasting/patterns: Trend, seasonal, volatility and growth patterns
"""

import logging
from typing import List

from fastapi import APIRouter, HTTPException

from rate_engine.core.dependencies import EngineDep
from rate_engine.models import (
    Anomaly,
    AnomalyRequest,
    ForecastRequest,
    HistoricalDataPoint,
    HistoricalPattern,
    RevenuePredictionResult,
    SeasonalForecast,
)

# Configure logging
logger = logging.getLogger(__name__)

# Create router with prefix and tags for OpenAPI documentation
router = APIRouter(prefix="/forecasting", tags=["forecasting"])


# =============================================================================
# POST /forecasting/seasonal
# =============================================================================


@router.post("/seasonal", response_model=SeasonalForecast)
async def seasonal_forecast(
    request: ForecastRequest,
    engine: EngineDep,
) -> SeasonalForecast:
    """
    Forecast revenue month by month with seasonal factors.

    Raises:
        HTTPException 400: If history is empty
        HTTPException 500: If forecasting fails unexpectedly
    """
    if not request.history:
        raise HTTPException(status_code=400, detail="history must contain at least one data point")

    try:
        return engine.generate_seasonal_forecast(
            request.history,
            months=request.months,
            context=request.context,
            as_of=request.as_of,
        )
    except Exception as e:
        logger.error(f"Error generating seasonal forecast: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating seasonal forecast: {str(e)}")


# =============================================================================
# POST /forecasting/revenue
# =============================================================================


@router.post("/revenue", response_model=RevenuePredictionResult)
async def revenue_prediction(
    request: ForecastRequest,
    engine: EngineDep,
) -> RevenuePredictionResult:
    """
    Predict revenue over the horizon with Conservative/Base/Optimistic scenarios.

    Raises:
        HTTPException 400: If no enterprise context is supplied
        HTTPException 500: If prediction fails unexpectedly
    """
    if request.context is None:
        raise HTTPException(status_code=400, detail="context is required for revenue prediction")

    try:
        return engine.predict_revenue(
            request.context,
            history=request.history,
            months=request.months,
            as_of=request.as_of,
        )
    except Exception as e:
        logger.error(f"Error predicting revenue for {request.context.name}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error predicting revenue: {str(e)}")


# =============================================================================
# POST /forecasting/anomalies
# =============================================================================


@router.post("/anomalies", response_model=List[Anomaly])
async def detect_anomalies(
    request: AnomalyRequest,
    engine: EngineDep,
) -> List[Anomaly]:
    """
    Flag statistical, pattern and contextual anomalies in a financial series.

    Raises:
        HTTPException 400: If the series is empty
        HTTPException 500: If detection fails unexpectedly
    """
    if not request.series:
        raise HTTPException(status_code=400, detail="series must contain at least one data point")

    try:
        result = engine.detect_anomalies(request.series, config=request.config, context=request.context)
        logger.info(f"Detected {len(result.anomalies)} anomalies in {len(request.series)} points")
        return result.anomalies
    except Exception as e:
        logger.error(f"Error detecting anomalies: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error detecting anomalies: {str(e)}")


# =============================================================================
# POST /forecasting/patterns
# =============================================================================


@router.post("/patterns", response_model=List[HistoricalPattern])
async def historical_patterns(
    history: List[HistoricalDataPoint],
    engine: EngineDep,
) -> List[HistoricalPattern]:
    """
    Detect trend, seasonal, volatility and growth patterns in revenue history.

    Raises:
        HTTPException 400: If history is empty
        HTTPException 500: If analysis fails unexpectedly
    """
    if not history:
        raise HTTPException(status_code=400, detail="history must contain at least one data point")

    try:
        return engine.analyze_historical_patterns(history)
    except Exception as e:
        logger.error(f"Error analyzing historical patterns: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error analyzing historical patterns: {str(e)}")
