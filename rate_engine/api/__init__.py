"""
API package initialization.

This package contains FastAPI router modules exposing the rate optimization
engine as an optional JSON surface:
- optimization: Rate optimization runs and explainability reports
- forecasting: Seasonal forecasts, revenue prediction, anomalies and patterns
"""

from fastapi import APIRouter

# Import router modules
from rate_engine.api.optimization import router as optimization_router
from rate_engine.api.forecasting import router as forecasting_router

# Create main API router
api_router = APIRouter()

# Include all sub-routers (each has its own prefix)
api_router.include_router(optimization_router)
api_router.include_router(forecasting_router)

# Export all routers for selective imports
__all__ = [
    "api_router",
    "optimization_router",
    "forecasting_router",
]
