"""
Statistical helper functions shared by the engine services.

Small numpy-backed routines used by feature extraction, time-series analysis
and the predictive models. All helpers are total: empty or degenerate input
returns 0 (or the documented fallback) instead of raising.
"""

import math
from typing import Sequence

import numpy as np


# =============================================================================
# Central Tendency and Dispersion
# =============================================================================


def mean(values: Sequence[float]) -> float:
    """
    Calculate the arithmetic mean of a sequence of values.

    Args:
        values: Numeric values

    Returns:
        Arithmetic mean, or 0 for an empty sequence
    """
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=np.float64)))


def sample_variance(values: Sequence[float]) -> float:
    """
    Calculate the sample variance (n - 1 denominator).

    Returns:
        Sample variance, or 0 if fewer than 2 values
    """
    if len(values) < 2:
        return 0.0
    return float(np.var(np.asarray(values, dtype=np.float64), ddof=1))


def population_std(values: Sequence[float]) -> float:
    """Population standard deviation (ddof=0), or 0 if fewer than 2 values."""
    if len(values) < 2:
        return 0.0
    return float(np.std(np.asarray(values, dtype=np.float64)))


def coefficient_of_variation(values: Sequence[float], empty_value: float = 0.0) -> float:
    """
    Population coefficient of variation (std / mean).

    Args:
        values: Numeric values
        empty_value: Returned when the mean is not positive or there are
            fewer than 2 values

    Returns:
        std / mean for a positive mean, otherwise empty_value
    """
    if len(values) < 2:
        return empty_value
    avg = mean(values)
    if avg <= 0:
        return empty_value
    return population_std(values) / avg


# =============================================================================
# Higher Moments
# =============================================================================


def skewness(values: Sequence[float]) -> float:
    """
    Adjusted Fisher-Pearson sample skewness.

    n * sum(z^3) / ((n - 1)(n - 2)) with z computed against the sample
    standard deviation. Returns 0 for fewer than 3 values or zero spread.
    """
    n = len(values)
    if n < 3:
        return 0.0
    std = math.sqrt(sample_variance(values))
    if std == 0:
        return 0.0
    z = (np.asarray(values, dtype=np.float64) - mean(values)) / std
    return float(n * np.sum(z ** 3) / ((n - 1) * (n - 2)))


def excess_kurtosis(values: Sequence[float]) -> float:
    """
    Sample excess kurtosis.

    n(n+1) sum(z^4) / ((n-1)(n-2)(n-3)) - 3(n-1)^2 / ((n-2)(n-3)).
    Returns 0 for fewer than 4 values or zero spread.
    """
    n = len(values)
    if n < 4:
        return 0.0
    std = math.sqrt(sample_variance(values))
    if std == 0:
        return 0.0
    z = (np.asarray(values, dtype=np.float64) - mean(values)) / std
    kurt = n * (n + 1) * float(np.sum(z ** 4)) / ((n - 1) * (n - 2) * (n - 3))
    adjustment = 3 * (n - 1) ** 2 / ((n - 2) * (n - 3))
    return kurt - adjustment


# =============================================================================
# Regression and Bounds
# =============================================================================


def normalized_slope(values: Sequence[float]) -> float:
    """
    Least-squares slope over the time index, divided by the series mean.

    Returns:
        Normalized slope, or 0 when fewer than 2 values or the mean is 0
    """
    if len(values) < 2:
        return 0.0
    avg = mean(values)
    if avg == 0:
        return 0.0
    y = np.asarray(values, dtype=np.float64)
    x = np.arange(len(y), dtype=np.float64)
    slope = np.polyfit(x, y, 1)[0]
    return float(slope) / avg


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def is_finite(value: float) -> bool:
    return bool(np.isfinite(value))
