"""
FastAPI application entry point for the Rate Optimization Engine API.

Configures logging, CORS and the API routers, and creates the shared engine
at startup. The engine itself is a library; this application is an optional
JSON surface over it.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rate_engine import __version__
from rate_engine.api import forecasting_router, optimization_router
from rate_engine.core.config import get_settings
from rate_engine.core.dependencies import close_engine, init_engine

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Create the shared engine on startup and drop it on shutdown.

    The registered model versions are logged once the engine exists.
    """
    # Startup
    logger.info(f"{settings.app_name} starting")
    engine = init_engine(settings)
    logger.info(f"Registered models: {engine.registry.versions()}")

    yield

    # Shutdown
    logger.info(f"{settings.app_name} shutting down")
    close_engine()


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=__version__,
    description=(
        "Predictive rate optimization and explainability for municipal utility "
        "enterprises. Provides endpoints for rate optimization, explainability "
        "reports, seasonal and revenue forecasts, anomaly detection and "
        "historical pattern analysis."
    ),
    lifespan=lifespan,
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register API routers (each has its own prefix)
app.include_router(optimization_router)
app.include_router(forecasting_router)


@app.get("/health")
async def health_check():
    """
    Liveness probe for load balancers.

    Returns:
        {"status": "healthy"}
    """
    return {"status": "healthy"}


@app.get("/")
async def root():
    """
    Service name, version and documentation links.

    Returns:
        Dict with name, version, docs and openapi paths
    """
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


# Run with uvicorn when executed directly
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rate_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
