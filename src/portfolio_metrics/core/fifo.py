"""FIFO lot tracking per (security, owner).

BUY-class transactions open lots; SELL-class transactions consume the
earliest open lots first. Paired transfers (``counter_owner`` set) move
lots between owners with their original cost and acquisition date.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from .config import DEFAULT_CONFIG, CalculationConfig
from .finance.returns import to_datetime
from .models import Lot, LotConsumption, Transaction, TransactionType

logger = logging.getLogger(__name__)

# Same-day processing order: acquisitions, transfers in, transfers out, disposals
_TYPE_RANK = {
    TransactionType.BUY: 1,
    TransactionType.DELIVERY_INBOUND: 1,
    TransactionType.TRANSFER_IN: 2,
    TransactionType.TRANSFER_OUT: 3,
    TransactionType.SELL: 4,
    TransactionType.DELIVERY_OUTBOUND: 4,
}


def ledger_order(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Sort by (date, type rank, sequence, input position). Input is untouched."""
    indexed = list(enumerate(transactions))
    indexed.sort(key=lambda item: (
        to_datetime(item[1].date),
        _TYPE_RANK.get(item[1].type, 5),
        item[1].sequence,
        item[0],
    ))
    return [tx for _, tx in indexed]


def _take(lot: Lot, shares: float, epsilon: float) -> tuple[float, float]:
    """Remove up to ``shares`` from a lot; return (shares taken, cost released).

    A lot left with dust is closed outright so its whole cost is released.
    """
    if lot.shares_remaining - shares <= epsilon:
        taken, cost = lot.shares_remaining, lot.cost_basis_remaining
        lot.shares_remaining = 0.0
        lot.cost_basis_remaining = 0.0
        return taken, cost
    cost = lot.cost_basis_remaining * shares / lot.shares_remaining
    lot.shares_remaining -= shares
    lot.cost_basis_remaining -= cost
    return shares, cost


class FifoTracker:
    """Mutable lot book. Feed transactions in ledger order via apply()."""

    def __init__(self, config: Optional[CalculationConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self._lots: dict[tuple[str, str], list[Lot]] = defaultdict(list)
        self._currency: dict[tuple[str, str], str] = {}
        self.consumptions: list[LotConsumption] = []

    def _gross(self, tx: Transaction, sign: int) -> float:
        # sign=+1 for acquisition cost, -1 for disposal proceeds
        if self.config.fees_included_in_amount:
            return tx.amount
        return tx.amount + sign * (tx.fees + tx.taxes)

    def apply(self, tx: Transaction) -> None:
        if not tx.security_ref or tx.type not in _TYPE_RANK:
            return
        shares = abs(tx.shares)
        if shares == 0:
            logger.debug("FIFO: ignoring %s of %s without shares", tx.type.value, tx.security_ref)
            return
        key = (tx.security_ref, tx.owner)
        if tx.currency:
            self._currency[key] = tx.currency

        if tx.counter_owner is not None:
            if tx.type == TransactionType.TRANSFER_OUT:
                return  # the paired TRANSFER_IN moves the lots
            if tx.type == TransactionType.TRANSFER_IN:
                self._move(tx, shares)
                return

        if tx.type.is_buy_class:
            cost = self._gross(tx, 1)
            self._lots[key].append(Lot(
                security_ref=tx.security_ref,
                owner=tx.owner,
                acquired=tx.date,
                shares=shares,
                cost_basis=cost,
                shares_remaining=shares,
                cost_basis_remaining=cost,
                sequence=tx.sequence,
            ))
        else:
            self._consume(tx, shares)

    def _consume(self, tx: Transaction, shares: float) -> None:
        eps = self.config.dust_threshold
        proceeds = self._gross(tx, -1)
        remaining = shares
        for lot in self._lots.get((tx.security_ref, tx.owner), []):
            if remaining <= eps:
                break
            if lot.is_closed(eps):
                continue
            taken, cost = _take(lot, min(lot.shares_remaining, remaining), eps)
            self.consumptions.append(LotConsumption(
                security_ref=tx.security_ref,
                owner=tx.owner,
                sale_date=tx.date,
                acquired=lot.acquired,
                shares=taken,
                cost_basis=cost,
                proceeds=proceeds * taken / shares,
            ))
            remaining -= taken
        if remaining > eps:
            logger.warning(
                "FIFO: %s of %.8f %s in '%s' on %s exceeds open lots by %.8f shares",
                tx.type.value, shares, tx.security_ref, tx.owner, tx.date, remaining,
            )

    def _move(self, tx: Transaction, shares: float) -> None:
        eps = self.config.dust_threshold
        source = self._lots.get((tx.security_ref, tx.counter_owner), [])
        dest = self._lots[(tx.security_ref, tx.owner)]
        remaining = shares
        for lot in source:
            if remaining <= eps:
                break
            if lot.is_closed(eps):
                continue
            taken, cost = _take(lot, min(lot.shares_remaining, remaining), eps)
            dest.append(Lot(
                security_ref=lot.security_ref,
                owner=tx.owner,
                acquired=lot.acquired,
                shares=taken,
                cost_basis=cost,
                shares_remaining=taken,
                cost_basis_remaining=cost,
                sequence=lot.sequence,
            ))
            remaining -= taken
        if remaining > eps:
            logger.warning(
                "FIFO: transfer of %s from '%s' to '%s' short by %.8f shares, adding zero-cost lot",
                tx.security_ref, tx.counter_owner, tx.owner, remaining,
            )
            dest.append(Lot(
                security_ref=tx.security_ref,
                owner=tx.owner,
                acquired=tx.date,
                shares=remaining,
                cost_basis=0.0,
                shares_remaining=remaining,
                cost_basis_remaining=0.0,
                sequence=tx.sequence,
            ))
        dest.sort(key=lambda lot: (to_datetime(lot.acquired), lot.sequence))

    def open_lots(self, security_ref: Optional[str] = None, owner: Optional[str] = None) -> list[Lot]:
        eps = self.config.dust_threshold
        return [
            lot
            for (ref, own), lots in self._lots.items()
            if (security_ref is None or ref == security_ref) and (owner is None or own == owner)
            for lot in lots
            if not lot.is_closed(eps)
        ]

    def positions(self) -> dict[tuple[str, str], tuple[float, float]]:
        """(security_ref, owner) -> (shares, cost basis) summed over open lots."""
        result = {}
        for key in self._lots:
            lots = self.open_lots(*key)
            if lots:
                result[key] = (
                    sum(lot.shares_remaining for lot in lots),
                    sum(lot.cost_basis_remaining for lot in lots),
                )
        return result

    def shares(self, security_ref: Optional[str] = None, owner: Optional[str] = None) -> float:
        return sum((lot.shares_remaining for lot in self.open_lots(security_ref, owner)), 0.0)

    def cost_basis(self, security_ref: Optional[str] = None, owner: Optional[str] = None) -> float:
        return sum((lot.cost_basis_remaining for lot in self.open_lots(security_ref, owner)), 0.0)

    def currency_of(self, security_ref: str, owner: str) -> str:
        return self._currency.get((security_ref, owner), "")

    @property
    def realized_gain(self) -> float:
        return sum((c.realized_gain for c in self.consumptions), 0.0)


def build_lots(
    transactions: Iterable[Transaction],
    config: Optional[CalculationConfig] = None,
) -> FifoTracker:
    """Replay a ledger in date order and return the resulting lot book."""
    tracker = FifoTracker(config)
    for tx in ledger_order(transactions):
        tracker.apply(tx)
    return tracker


def cost_basis_history(
    transactions: Iterable[Transaction],
    security_ref: Optional[str] = None,
    owner: Optional[str] = None,
    config: Optional[CalculationConfig] = None,
) -> list[tuple[date, float]]:
    """Remaining FIFO cost basis after each trading day, for charting.

    Only days with a position-affecting transaction matching the filters
    produce a point; several transactions on one day yield one point.
    """
    tracker = FifoTracker(config)
    history: list[tuple[date, float]] = []
    for tx in ledger_order(transactions):
        tracker.apply(tx)
        if not tx.security_ref or tx.type not in _TYPE_RANK:
            continue
        if security_ref is not None and tx.security_ref != security_ref:
            continue
        if owner is not None and owner not in (tx.owner, tx.counter_owner):
            continue
        point = (tx.date, tracker.cost_basis(security_ref, owner))
        if history and history[-1][0] == tx.date:
            history[-1] = point
        else:
            history.append(point)
    return history


def realized_gains(
    transactions: Iterable[Transaction],
    config: Optional[CalculationConfig] = None,
) -> float:
    """Total FIFO realized gain: sale proceeds minus released cost basis."""
    return build_lots(transactions, config).realized_gain
