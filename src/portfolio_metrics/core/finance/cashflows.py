"""Investor cash-flow extraction.

Turns a transaction ledger into the external cash flows that TTWROR and
IRR neutralise. Pure functions; no I/O.
"""

from datetime import date
from typing import Iterable, Optional

from ..models import CashFlow, Transaction, TransactionType

_INBOUND = frozenset({TransactionType.DEPOSIT, TransactionType.DELIVERY_INBOUND})
_OUTBOUND = frozenset({TransactionType.WITHDRAWAL, TransactionType.DELIVERY_OUTBOUND})


def cash_flow_sign(tx: Transaction) -> int:
    """Return +1, -1 or 0 for how a transaction moves investor capital.

    Transfers count only when their counterpart is outside the ledger
    (no ``counter_owner``); a paired transfer between two of the
    investor's own portfolios moves nothing across the boundary.
    Dividends, interest, fees, taxes and plain buys/sells are internal.
    """
    if tx.type in _INBOUND:
        return 1
    if tx.type in _OUTBOUND:
        return -1
    if tx.counter_owner is None:
        if tx.type == TransactionType.TRANSFER_IN:
            return 1
        if tx.type == TransactionType.TRANSFER_OUT:
            return -1
    return 0


def extract_cash_flows(
    transactions: Iterable[Transaction],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> list[CashFlow]:
    """Extract investor cash flows from a ledger.

    Args:
        transactions: Transactions in any order.
        start: Optional inclusive lower date bound.
        end: Optional inclusive upper date bound.

    Returns:
        CashFlow list in input order. Callers sort by date themselves.
    """
    flows = []
    for tx in transactions:
        sign = cash_flow_sign(tx)
        if sign == 0:
            continue
        if start is not None and tx.date < start:
            continue
        if end is not None and tx.date > end:
            continue
        flows.append(CashFlow(date=tx.date, amount=sign * tx.amount))
    return flows


def total_invested(transactions: Iterable[Transaction]) -> float:
    """Sum of all contributions (positive flows)."""
    return sum((f.amount for f in extract_cash_flows(transactions) if f.amount > 0), 0.0)


def total_withdrawn(transactions: Iterable[Transaction]) -> float:
    """Sum of all withdrawals, as a positive number."""
    return sum((-f.amount for f in extract_cash_flows(transactions) if f.amount < 0), 0.0)
