"""Portfolio return calculations: TTWROR and IRR.

All functions are pure: they accept CashFlow and Valuation sequences and
return floats or result records. No I/O, no side effects, inputs are never
mutated. Degenerate inputs yield 0 rather than an exception.
"""

import logging
import math
from datetime import date, datetime
from typing import Iterable, Optional, Sequence, Union

from ..config import DEFAULT_CONFIG, CalculationConfig
from ..models import CashFlow, IRRResult, PeriodReturn, Valuation

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime]

_SECONDS_PER_DAY = 86400.0


def to_datetime(value: DateLike) -> datetime:
    """Promote a date to midnight so dates and datetimes compare and subtract."""
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def ttwror_periods(
    cash_flows: Iterable[CashFlow],
    valuations: Iterable[Valuation],
    config: Optional[CalculationConfig] = None,
) -> list[PeriodReturn]:
    """Split a valuation series into TTWROR sub-periods.

    Each consecutive pair of checkpoints forms one period with factor
    ``V_end / (V_start + net_flow)``. When the denominator is <= 0 the
    period is kept with ``factor=None`` and contributes nothing.

    Which period owns a flow dated exactly on a checkpoint depends on
    ``config.flows_at_period_start``:
      True:  checkpoint values are taken before that day's flows, so the
             flow opens the following period:  start <= date < end
      False: the flow closes the period ending there: start < date <= end

    Args:
        cash_flows: Investor flows (positive = contribution), any order.
        valuations: Portfolio value checkpoints, any order.
        config: Calculation settings; defaults to DEFAULT_CONFIG.

    Returns:
        One PeriodReturn per consecutive checkpoint pair, in date order.
    """
    config = config or DEFAULT_CONFIG
    points = sorted(valuations, key=lambda v: to_datetime(v.date))
    flows = sorted(
        ((to_datetime(f.date), f.amount) for f in cash_flows),
        key=lambda item: item[0],
    )

    periods = []
    for prev, curr in zip(points, points[1:]):
        lo, hi = to_datetime(prev.date), to_datetime(curr.date)
        if config.flows_at_period_start:
            net_flow = sum((amount for when, amount in flows if lo <= when < hi), 0.0)
        else:
            net_flow = sum((amount for when, amount in flows if lo < when <= hi), 0.0)

        denominator = prev.value + net_flow
        if denominator <= 0:
            logger.debug(
                "TTWROR: skipping period %s..%s (start %.2f + flow %.2f <= 0)",
                prev.date, curr.date, prev.value, net_flow,
            )
            factor = None
        else:
            factor = curr.value / denominator

        periods.append(PeriodReturn(
            start_date=prev.date,
            end_date=curr.date,
            start_value=prev.value,
            end_value=curr.value,
            net_flow=net_flow,
            factor=factor,
        ))
    return periods


def calculate_ttwror(
    cash_flows: Iterable[CashFlow],
    valuations: Iterable[Valuation],
    config: Optional[CalculationConfig] = None,
) -> float:
    """Calculate the True Time-Weighted Rate of Return.

    Sub-period factors are chained geometrically, which removes the effect
    of contribution timing from the measured return.
    Formula: TTWROR = prod(V_end_i / (V_start_i + net_flow_i)) - 1

    Returns:
        TTWROR in percent, e.g. 8.39 for +8.39%. Returns 0.0 when fewer
        than two valuations are supplied.
    """
    valuations = list(valuations)
    if len(valuations) < 2:
        return 0.0
    cumulative = 1.0
    for period in ttwror_periods(cash_flows, valuations, config):
        if period.factor is not None:
            cumulative *= period.factor
    return (cumulative - 1.0) * 100


def annualize_return(percent: float, days: int, days_in_year: int = 365) -> float:
    """Convert a total return over ``days`` into an annual rate.

    Formula: (1 + r)^(365 / days) - 1

    Returns:
        Annualized return in percent; 0.0 when ``days <= 0``, the total
        return is -100% or worse, or the result overflows.
    """
    rate = percent / 100
    if days <= 0 or rate <= -1:
        return 0.0
    try:
        return ((1 + rate) ** (days_in_year / days) - 1) * 100
    except OverflowError:
        logger.debug("annualize_return overflow: %.4f%% over %d days", percent, days)
        return 0.0


def irr_flow_series(
    cash_flows: Iterable[CashFlow],
    final_value: float,
    final_date: DateLike,
    days_per_year: float = DEFAULT_CONFIG.days_per_year,
) -> list[tuple[float, float]]:
    """Build the (years, amount) series the IRR solver discounts.

    Contributions become negative (money leaving the investor), the terminal
    value is a positive flow on ``final_date``. Years are measured from the
    earliest flow.
    """
    series = [(to_datetime(cf.date), -cf.amount) for cf in cash_flows]
    series.append((to_datetime(final_date), final_value))
    series.sort(key=lambda item: item[0])
    origin = series[0][0]
    return [
        ((when - origin).total_seconds() / _SECONDS_PER_DAY / days_per_year, amount)
        for when, amount in series
    ]


def npv_and_derivative(rate: float, series: Sequence[tuple[float, float]]) -> tuple[float, float]:
    """NPV of a (years, amount) series at ``rate`` and its derivative dNPV/dr.

    NPV(r)  = sum(amount / (1+r)^t)
    NPV'(r) = sum(-t * amount / (1+r)^(t+1))

    Returns (nan, nan) when the discounting overflows or underflows to zero.
    """
    base = 1.0 + rate
    npv = 0.0
    derivative = 0.0
    try:
        for years, amount in series:
            discount = base ** years
            npv += amount / discount
            derivative -= years * amount / (discount * base)
    except (OverflowError, ZeroDivisionError):
        return math.nan, math.nan
    return npv, derivative


def solve_irr(
    cash_flows: Iterable[CashFlow],
    final_value: float,
    final_date: DateLike,
    max_iterations: Optional[int] = None,
    tolerance: Optional[float] = None,
    config: Optional[CalculationConfig] = None,
) -> IRRResult:
    """Solve for the annualized Internal Rate of Return by Newton–Raphson.

    Starts at ``config.irr_initial_guess`` and iterates
    ``r -= NPV(r) / NPV'(r)``, clamping r into
    ``[irr_min_rate, irr_max_rate]`` after every step. Stops when
    ``|NPV| < tolerance`` (converged), when the derivative is zero or the
    NPV is not finite, or after ``max_iterations``.

    Args:
        cash_flows: Investor flows (positive = contribution), any order.
        final_value: Portfolio value on ``final_date``.
        final_date: Date of the terminal valuation.
        max_iterations: Iteration cap; defaults to config.irr_max_iterations.
        tolerance: NPV tolerance; defaults to config.irr_tolerance.
        config: Calculation settings; defaults to DEFAULT_CONFIG.

    Returns:
        IRRResult with the rate as a fraction and whether it converged.
        An empty flow list yields a converged rate of 0 after 0 iterations.
    """
    config = config or DEFAULT_CONFIG
    if max_iterations is None:
        max_iterations = config.irr_max_iterations
    if tolerance is None:
        tolerance = config.irr_tolerance

    flows = list(cash_flows)
    if not flows:
        return IRRResult(rate=0.0, converged=True, iterations=0)

    series = irr_flow_series(flows, final_value, final_date, config.days_per_year)
    rate = config.irr_initial_guess
    iterations = 0
    while iterations < max_iterations:
        npv, derivative = npv_and_derivative(rate, series)
        if not (math.isfinite(npv) and math.isfinite(derivative)):
            logger.debug("IRR: non-finite NPV at rate %.6f, stopping", rate)
            break
        if abs(npv) < tolerance:
            return IRRResult(rate=rate, converged=True, iterations=iterations)
        if derivative == 0:
            logger.debug("IRR: flat NPV curve at rate %.6f, stopping", rate)
            break
        rate -= npv / derivative
        rate = min(max(rate, config.irr_min_rate), config.irr_max_rate)
        iterations += 1

    logger.debug("IRR did not converge after %d iterations (rate %.6f)", iterations, rate)
    return IRRResult(rate=rate, converged=False, iterations=iterations)


def calculate_irr(
    cash_flows: Iterable[CashFlow],
    final_value: float,
    final_date: DateLike,
    max_iterations: Optional[int] = None,
    tolerance: Optional[float] = None,
    config: Optional[CalculationConfig] = None,
) -> float:
    """IRR in percent. Use solve_irr to learn whether the value converged."""
    return solve_irr(cash_flows, final_value, final_date, max_iterations, tolerance, config).percent
