"""
Error taxonomy for the rate optimization engine.

These exceptions are raised inside the engine and caught at its public
boundary, where they are logged, forwarded to the fault handler and turned
into degraded results. Callers of the engine never see them.

- InsufficientDataError: too little history or missing required context fields
- ComputationFaultError: an unexpected numeric problem in an otherwise valid request
- ModelUnavailableError: a predictive model key that is not registered
"""

from typing import Optional


class RateEngineError(Exception):
    """Base class for engine faults."""

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"[{self.stage}] {self.message}"
        return self.message


class InsufficientDataError(RateEngineError):
    """Not enough data to produce a meaningful result."""


class ComputationFaultError(RateEngineError):
    """A calculation produced an unusable value (NaN, infinity, negative rate)."""


class ModelUnavailableError(RateEngineError):
    """The requested predictive model is not registered."""

    def __init__(self, model_key: str) -> None:
        super().__init__(f"Model '{model_key}' is not available", stage="registry")
        self.model_key = model_key
