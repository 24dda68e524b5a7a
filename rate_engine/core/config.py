"""
Settings and environment management for the rate optimization engine.

Configuration is loaded with pydantic-settings from environment variables and
an optional .env file, and cached through @lru_cache so it is read once per
process.

Environment Variables:
- APP_NAME: Display name for the API (default: Rate Optimization Engine)
- LOG_LEVEL: Root logging level (default: INFO)
- CORS_ORIGINS: JSON list of allowed browser origins
- REVENUE_WEIGHT / AFFORDABILITY_WEIGHT / RISK_WEIGHT: Default scenario
  scoring weights (0.4 / 0.4 / 0.2)
- MAX_RATE_INCREASE: Default cap on a single adjustment (0.15)
- MIN_AFFORDABILITY_INDEX: Default affordability floor (0.7)
- ANOMALY_SENSITIVITY / ANOMALY_BASELINE_WINDOW:
  Anomaly detection defaults (0.05 / 30)
- DEFAULT_FORECAST_MONTHS: Forecast horizon when none is requested (12)
- MIN_NOTICE_DAYS / MAX_COMPLIANT_ADJUSTMENT: Regulatory gate (30 days / 0.20)

Usage:
    from rate_engine.core.config import get_settings

    settings = get_settings()
    params = settings.default_parameters()
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

from rate_engine.models import AnomalyDetectionConfig, OptimizationParameters


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        app_name: API title shown in OpenAPI docs.
        log_level: Logging level name passed to logging.basicConfig.
        cors_origins: Origins allowed by the CORS middleware.
        revenue_weight: Default revenue weight for scenario scoring.
        affordability_weight: Default affordability weight for scenario scoring.
        risk_weight: Default risk weight for scenario scoring.
        max_rate_increase: Default upper bound on a single proposed adjustment.
        min_affordability_index: Default affordability floor.
        anomaly_sensitivity: Sensitivity level for the statistical anomaly layer.
        anomaly_baseline_window: Minimum series length before data is sufficient.
        default_forecast_months: Forecast horizon when the caller omits one.
        min_notice_days: Shortest compliant customer notice period.
        max_compliant_adjustment: Largest compliant single adjustment.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
    )

    # =========================================================================
    # Application
    # =========================================================================

    app_name: str = 'Rate Optimization Engine'
    log_level: str = 'INFO'
    cors_origins: List[str] = [
        'http://localhost:3000',
        'http://127.0.0.1:3000',
    ]

    # =========================================================================
    # Scenario Scoring Defaults
    # =========================================================================

    # Weighted score = revenue * w_rev + affordability * w_aff + (1 - risk) * w_risk
    revenue_weight: float = 0.4
    affordability_weight: float = 0.4
    risk_weight: float = 0.2

    max_rate_increase: float = 0.15
    min_affordability_index: float = 0.7

    # =========================================================================
    # Anomaly Detection Defaults
    # =========================================================================

    anomaly_sensitivity: float = 0.05
    anomaly_baseline_window: int = 30

    # =========================================================================
    # Forecasting and Regulatory Gate
    # =========================================================================

    default_forecast_months: int = 12

    # A scenario is non-compliant when its notice period is shorter than
    # min_notice_days or any single adjustment exceeds max_compliant_adjustment
    min_notice_days: int = 30
    max_compliant_adjustment: float = 0.20

    def default_parameters(self) -> OptimizationParameters:
        """Optimization parameters built from the configured defaults."""
        return OptimizationParameters(
            max_rate_increase=self.max_rate_increase,
            min_affordability_index=self.min_affordability_index,
            revenue_weight=self.revenue_weight,
            affordability_weight=self.affordability_weight,
            risk_weight=self.risk_weight,
        )

    def anomaly_config(self) -> AnomalyDetectionConfig:
        """Anomaly detection config built from the configured defaults."""
        return AnomalyDetectionConfig(
            sensitivity=self.anomaly_sensitivity,
            baseline_window=self.anomaly_baseline_window,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings: The cached settings instance.

    Note:
        To refresh settings in tests, clear the cache:
        >>> get_settings.cache_clear()
    """
    return Settings()
