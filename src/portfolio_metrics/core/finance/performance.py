"""Portfolio performance summary built from the extractor and calculators."""

from datetime import datetime
from typing import Iterable, Optional

from ..config import DEFAULT_CONFIG, CalculationConfig
from ..models import PerformanceResult, Transaction, Valuation
from .cashflows import extract_cash_flows
from .returns import DateLike, annualize_return, calculate_ttwror, solve_irr, to_datetime


def calculate_performance(
    transactions: Iterable[Transaction],
    valuations: Iterable[Valuation],
    current_value: float,
    as_of: DateLike,
    config: Optional[CalculationConfig] = None,
) -> PerformanceResult:
    """Compute TTWROR, IRR and capital totals for one ledger.

    Cash flows and valuations dated after ``as_of`` are ignored. ``days``
    is the span covered by the remaining valuations and drives the
    annualized TTWROR.

    Args:
        transactions: Ledger in any order.
        valuations: Portfolio value checkpoints for TTWROR.
        current_value: Portfolio value on ``as_of`` (IRR terminal value).
        as_of: Evaluation date.
        config: Calculation settings; defaults to DEFAULT_CONFIG.

    Returns:
        A freshly computed PerformanceResult.
    """
    config = config or DEFAULT_CONFIG
    cutoff = as_of.date() if isinstance(as_of, datetime) else as_of
    flows = extract_cash_flows(transactions, end=cutoff)
    points = sorted(
        (v for v in valuations if to_datetime(v.date).date() <= cutoff),
        key=lambda v: to_datetime(v.date),
    )

    invested = sum((f.amount for f in flows if f.amount > 0), 0.0)
    withdrawn = sum((-f.amount for f in flows if f.amount < 0), 0.0)

    ttwror = calculate_ttwror(flows, points, config)
    days = 0
    if len(points) >= 2:
        days = (to_datetime(points[-1].date) - to_datetime(points[0].date)).days
    irr = solve_irr(flows, current_value, as_of, config=config)

    return PerformanceResult(
        ttwror_percent=ttwror,
        irr_percent=irr.percent,
        absolute_gain=current_value - (invested - withdrawn),
        total_invested=invested,
        total_withdrawn=withdrawn,
        current_value=current_value,
        ttwror_annualized_percent=annualize_return(ttwror, days),
        irr_converged=irr.converged,
        irr_iterations=irr.iterations,
        days=days,
    )
