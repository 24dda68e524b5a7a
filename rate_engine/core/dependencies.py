"""
FastAPI dependency injection module for the rate optimization API.

Provides reusable dependencies for configuration access and the engine
instance, so endpoint handlers never construct either themselves.

Key Dependencies Provided:
- get_settings_dependency: Returns the cached Settings singleton
- SettingsDep: Type alias for injecting Settings into endpoints
- get_engine: Returns the process-wide RateOptimizationEngine
- EngineDep: Type alias for injecting the engine into endpoints

Engine lifecycle:
    The engine is stateless, so one instance is shared by every request. It
    is created by init_engine() in the application lifespan, or lazily on the
    first get_engine() call, and dropped by close_engine().

Faults caught by the engine are forwarded to log_fault, which records them
on the "rate_engine.audit" logger.

Usage Examples:
    @router.post("/rates")
    async def optimize(request: OptimizationRequest, engine: EngineDep):
        return engine.optimize_rates(request.context, request.parameters)

    # In tests
    app.dependency_overrides[get_engine] = lambda: RateOptimizationEngine(registry)
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends

from rate_engine.core.config import Settings, get_settings
from rate_engine.core.exceptions import RateEngineError
from rate_engine.services.engine import RateOptimizationEngine

audit_logger = logging.getLogger("rate_engine.audit")


# =============================================================================
# Global Engine Singleton
# =============================================================================

# None until init_engine() or the first get_engine() call
_engine: Optional[RateOptimizationEngine] = None


def log_fault(error: RateEngineError) -> None:
    """Fault handler wired into the API engine: one audit log line per fault."""
    audit_logger.warning(f"{type(error).__name__} at {error.stage or 'engine'}: {error.message}")


def init_engine(settings: Optional[Settings] = None) -> RateOptimizationEngine:
    """
    Create the shared engine from settings.

    Args:
        settings: Settings to configure the engine with (default: get_settings())

    Returns:
        RateOptimizationEngine: The newly created shared engine.
    """
    global _engine
    _engine = RateOptimizationEngine.from_settings(
        settings or get_settings(),
        fault_handler=log_fault,
    )
    return _engine


def close_engine() -> None:
    """Drop the shared engine; the next get_engine() call creates a new one."""
    global _engine
    _engine = None


# =============================================================================
# Dependency Providers
# =============================================================================


def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    This is a thin wrapper around get_settings() so FastAPI's dependency
    override mechanism can replace it in tests:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings

    Returns:
        Settings: The cached Settings instance.
    """
    return get_settings()


def get_engine() -> RateOptimizationEngine:
    """
    Return the shared RateOptimizationEngine, creating it if needed.

    Returns:
        RateOptimizationEngine: Engine configured from the current settings.
    """
    if _engine is None:
        return init_engine()
    return _engine


# =============================================================================
# Type Aliases for Dependency Injection
# =============================================================================

# Usage: async def endpoint(settings: SettingsDep)
SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]

# Usage: async def endpoint(engine: EngineDep)
EngineDep = Annotated[RateOptimizationEngine, Depends(get_engine)]
