"""Portfolio finance calculations.

Pure functions for investor cash flows, time-weighted and money-weighted
returns. No I/O.

Usage:
    from portfolio_metrics.core.finance import calculate_ttwror, calculate_irr
"""

from .cashflows import extract_cash_flows, total_invested, total_withdrawn
from .performance import calculate_performance
from .returns import (
    annualize_return,
    calculate_irr,
    calculate_ttwror,
    npv_and_derivative,
    solve_irr,
    ttwror_periods,
)

__all__ = [
    "extract_cash_flows",
    "total_invested",
    "total_withdrawn",
    "calculate_ttwror",
    "ttwror_periods",
    "annualize_return",
    "calculate_irr",
    "solve_irr",
    "npv_and_derivative",
    "calculate_performance",
]
