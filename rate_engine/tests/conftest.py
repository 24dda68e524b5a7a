"""
Pytest Configuration and Shared Fixtures for Rate Engine Tests.

This module provides fixtures and configuration for all engine tests, supporting:
- Async test execution with pytest-asyncio (streaming optimization, API handlers)
- Enterprise snapshots: a cost-recovery-short water utility, a well-funded
  sewer utility and an empty placeholder with no financial data
- Historical series: 24 monthly points with winter revenue 30% above summer
- Financial series for anomaly detection
- A fault-recording engine so tests can assert on reported faults

Fixture Dates:
    Every fixture is anchored to fixed dates so results never depend on the
    day the suite runs. AS_OF is in April, outside both the summer and the
    winter seasonal windows.
"""

from datetime import date, datetime, timedelta
from typing import List

import pytest

from rate_engine.core.exceptions import RateEngineError
from rate_engine.models import (
    BudgetAccount,
    EnterpriseContext,
    FinancialDataPoint,
    HistoricalDataPoint,
    OptimizationParameters,
    QueryIntent,
)
from rate_engine.services.engine import RateOptimizationEngine


# ============================================================
# PYTEST PLUGINS CONFIGURATION
# ============================================================

# Configure pytest-asyncio for async test support
# This must be a module-level constant named pytest_plugins
pytest_plugins: List[str] = ['pytest_asyncio']


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Configure custom pytest markers for test organization.

    Custom markers defined:
    - slow: Marks tests as slow (deselect with -m "not slow")
    - api: Marks tests that exercise the FastAPI layer

    Usage:
        # Run only engine tests:
        pytest -m "not api"

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line(
        'markers',
        'slow: marks tests as slow (deselect with -m "not slow")'
    )
    config.addinivalue_line(
        'markers',
        'api: marks tests that exercise the FastAPI routers'
    )


# ============================================================
# REFERENCE DATES
# ============================================================

# April: neither a summer nor a winter month
AS_OF: date = date(2024, 4, 1)

WINTER_MONTHS = (12, 1, 2)
SUMMER_MONTHS = (6, 7, 8)


def seasonal_revenue(month: int) -> float:
    """Monthly revenue with December-February 30% above June-August."""
    if month in WINTER_MONTHS:
        return 1300.0
    if month in SUMMER_MONTHS:
        return 1000.0
    return 1100.0


# ============================================================
# ENTERPRISE CONTEXT FIXTURES
# ============================================================

@pytest.fixture
def as_of() -> date:
    """Fixed reference date used by every date-sensitive test."""
    return AS_OF


@pytest.fixture
def water_context() -> EnterpriseContext:
    """
    Water utility whose revenue falls short of expenses.

    Revenue/expenses = 0.96 and affordability 0.55, so the rate model applies
    the low-affordability factor (0.95) and a neutral efficiency factor.

    Returns:
        EnterpriseContext with every key field populated
    """
    return EnterpriseContext(
        name="Water",
        municipality="Springfield",
        customer_count=1000,
        total_budget=500000.0,
        total_revenue=480000.0,
        total_expenses=500000.0,
        current_rate=40.0,
        affordability_index=0.55,
        year_to_date_spending=375000.0,
        budget_remaining=125000.0,
    )


@pytest.fixture
def underfunded_context(water_context: EnterpriseContext) -> EnterpriseContext:
    """Water utility with revenue/expenses of 0.857, below the 0.9 efficiency threshold."""
    return water_context.model_copy(update={"total_expenses": 560000.0})


@pytest.fixture
def sewer_context() -> EnterpriseContext:
    """
    Healthy sewer utility built from budget accounts.

    Twelve accounts, affordability 0.85, customer base above 2000 and a
    10% seasonal swing.
    """
    accounts = [
        BudgetAccount(account_number="4000", name="Sewer Service Charges",
                      section="Revenue", budget_amount=1200000.0, year_to_date_amount=600000.0),
        BudgetAccount(account_number="4010", name="Connection Fees",
                      section="Revenue", budget_amount=60000.0, year_to_date_amount=30000.0),
    ]
    accounts.extend(
        BudgetAccount(
            account_number=f"50{i:02d}",
            name=f"Operating Expense {i}",
            section="Expenses",
            budget_amount=100000.0,
            year_to_date_amount=50000.0,
        )
        for i in range(10)
    )
    return EnterpriseContext.from_accounts(
        "Sewer",
        accounts,
        municipality="Springfield",
        customer_count=2500,
        current_rate=35.0,
        affordability_index=0.85,
        seasonal_adjustment=0.10,
    )


@pytest.fixture
def empty_context() -> EnterpriseContext:
    """Enterprise with neither revenue nor expenses."""
    return EnterpriseContext(name="Trash", customer_count=300, current_rate=20.0)


@pytest.fixture
def rate_intent() -> QueryIntent:
    """Intent for a precise rate question."""
    return QueryIntent(
        intent_type="rate_scenario_analysis",
        clarity_score=0.9,
        complexity_score=6,
        requires_rate_analysis=True,
        requires_precision=True,
        key_concepts=["rate increase", "affordability"],
    )


@pytest.fixture
def default_params() -> OptimizationParameters:
    """Default optimization parameters (weights 0.4 / 0.4 / 0.2)."""
    return OptimizationParameters()


# ============================================================
# HISTORICAL SERIES FIXTURES
# ============================================================

@pytest.fixture
def history_24() -> List[HistoricalDataPoint]:
    """
    24 monthly observations from January 2022 to December 2023.

    Revenue is 1300 in December-February, 1000 in June-August and 1100
    otherwise; rate, usage and customers stay flat.
    """
    points: List[HistoricalDataPoint] = []
    for i in range(24):
        month = i % 12 + 1
        year = 2022 + i // 12
        points.append(HistoricalDataPoint(
            date=date(year, month, 1),
            rate=40.0,
            revenue=seasonal_revenue(month),
            usage=1000.0,
            customer_count=1000,
        ))
    return points


@pytest.fixture
def growing_history() -> List[HistoricalDataPoint]:
    """Six monthly points with revenue rising by 200 each month."""
    return [
        HistoricalDataPoint(
            date=date(2023, month, 1),
            rate=40.0,
            revenue=1000.0 + 200.0 * (month - 1),
            usage=1000.0,
            customer_count=1000 + 10 * (month - 1),
        )
        for month in range(1, 7)
    ]


@pytest.fixture
def elastic_history() -> List[HistoricalDataPoint]:
    """Three points where each 10% rate rise cuts usage by 8%."""
    return [
        HistoricalDataPoint(date=date(2023, 1, 1), rate=10.0, revenue=1000.0, usage=100.0, customer_count=100),
        HistoricalDataPoint(date=date(2023, 2, 1), rate=11.0, revenue=1012.0, usage=92.0, customer_count=100),
        HistoricalDataPoint(date=date(2023, 3, 1), rate=12.1, revenue=1024.1, usage=84.64, customer_count=100),
    ]


# ============================================================
# FINANCIAL SERIES FIXTURES
# ============================================================

def monthly_series(values: List[float], start: datetime = datetime(2024, 1, 1)) -> List[FinancialDataPoint]:
    """Financial points 30 days apart starting at start."""
    return [
        FinancialDataPoint(timestamp=start + timedelta(days=30 * i), value=value, category="Operating")
        for i, value in enumerate(values)
    ]


@pytest.fixture
def volatile_series() -> List[FinancialDataPoint]:
    """Ten monthly spending values with a standard deviation far above 0.1."""
    return monthly_series([1000.0, 1200.0, 900.0, 1500.0, 800.0, 1100.0, 1300.0, 950.0, 1050.0, 1250.0])


# ============================================================
# ENGINE FIXTURES
# ============================================================

@pytest.fixture
def faults() -> List[RateEngineError]:
    """List the recording engine appends reported faults to."""
    return []


@pytest.fixture
def engine(faults: List[RateEngineError]) -> RateOptimizationEngine:
    """Engine with the default registry whose fault handler records every fault."""
    return RateOptimizationEngine(fault_handler=faults.append)
