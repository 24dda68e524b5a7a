"""
Core infrastructure package for the rate optimization engine.

Provides:
- Configuration management via pydantic-settings
- The engine error taxonomy

This module re-exports key components from submodules for convenient importing:

    from rate_engine.core import get_settings, InsufficientDataError

FastAPI dependency providers live in rate_engine.core.dependencies and are
imported from there directly, since they depend on the services package.
"""

# =============================================================================
# Re-exports from rate_engine.core.config
# =============================================================================
from rate_engine.core.config import Settings, get_settings

# =============================================================================
# Re-exports from rate_engine.core.exceptions
# =============================================================================
from rate_engine.core.exceptions import (
    RateEngineError,
    InsufficientDataError,
    ComputationFaultError,
    ModelUnavailableError,
)

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Error taxonomy (from exceptions.py)
    'RateEngineError',
    'InsufficientDataError',
    'ComputationFaultError',
    'ModelUnavailableError',
]
