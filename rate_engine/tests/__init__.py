'''
Rate Optimization Engine Test Suite

Test Modules:
-------------
- test_feature_extraction.py: Feature vectors, defaults and completeness
  - Statistics helpers (mean, CV, skewness, kurtosis, slope)
  - Rate, behavior, time-series, anomaly and revenue feature sets
  - Missing values replaced by documented defaults

- test_time_series.py: Historical pattern detection
  - Monthly and quarterly seasonality
  - Trend direction, volatility bands and growth

- test_predictive_models.py: Model contract and registry
  - Rate optimization factors and bounds
  - Customer behavior elasticity response
  - Fallback results on invalid input

- test_anomaly_detection.py: Statistical, pattern and contextual layers

- test_forecasting.py: Seasonal forecast and revenue prediction
  - Nested confidence intervals, horizon decay

- test_scenario_engine.py: Scenario generation, evaluation and selection
  - Regulatory gate, weighted score, tie-breaks

- test_planning_confidence.py: Plans, risk assessment and confidence

- test_explainability.py: Importance, bias flags, validation checklist

- test_engine.py: End-to-end optimization, progress updates, fault handling

- test_api.py: FastAPI routers (400 validation, HTTP round trips)

Running Tests:
--------------
    pip install -e ".[test]"
    pytest -v

    # Skip the API tests:
    pytest -m "not api"

Configuration:
--------------
See conftest.py for shared fixtures and test configuration.
'''

# Package is empty by design - all tests are in individual modules
# This file enables pytest discovery of the tests directory

__all__ = []
