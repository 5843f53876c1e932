"""
Centralized conventions for the forecasting engine.
"""
from .types import Statement


class EngineConfig:
    # The cash account is rolled forward from the base profit account
    # instead of being compiled from a rule.
    CASH_ACCOUNT = "Cash"
    BASE_PROFIT_ACCOUNT = "Profit Before Tax"

    # Actual snapshots are numbered sequentially from this year.
    FIRST_ACTUAL_YEAR = 2000
    DEFAULT_YEARS = 5

    # Fiscal-year column labels: "FY:2001"
    PERIOD_PREFIX = "FY:"

    DEFAULT_STATEMENT = Statement.PL
