"""
Rate Optimization Engine Package.

Predictive rate-optimization and explainability engine for municipal utility
enterprises. Given a financial snapshot of an enterprise and its history, it
proposes rate adjustments, forecasts revenue, flags financial anomalies and
explains its recommendations for human review.

Subpackages:
    - api: FastAPI route handlers (optional HTTP surface)
    - core: Configuration, error taxonomy and dependencies
    - models: Pydantic schemas and enums
    - services: Feature extraction, predictive models, scenarios and explainability
"""

__version__ = "1.0.0"
