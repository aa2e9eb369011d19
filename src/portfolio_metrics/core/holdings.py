"""Holdings, cost basis and allocation.

All functions are pure: they accept transactions or Holding objects and
return new records. Missing prices resolve to 0, which shows up as a full
unrealized loss rather than an error.
"""

from collections.abc import Mapping
from typing import Callable, Iterable, Optional, Union

from .config import DEFAULT_CONFIG, CalculationConfig
from .fifo import build_lots
from .models import AccountBalance, Holding, Security, SecurityPosition, Transaction, TransactionType

PriceLookup = Union[Mapping, Callable[[str], Optional[float]], None]
Securities = Union[Mapping, Iterable[Security], None]

_CASH_IN = frozenset({
    TransactionType.DEPOSIT,
    TransactionType.DIVIDEND,
    TransactionType.INTEREST,
    TransactionType.TRANSFER_IN,
    TransactionType.FEES_REFUND,
    TransactionType.TAX_REFUND,
})
_CASH_OUT = frozenset({
    TransactionType.WITHDRAWAL,
    TransactionType.FEES,
    TransactionType.TAXES,
    TransactionType.INTEREST_CHARGE,
    TransactionType.TRANSFER_OUT,
})


def _index_securities(securities: Securities) -> dict[str, Security]:
    if securities is None:
        return {}
    if isinstance(securities, Mapping):
        return dict(securities)
    return {s.ref: s for s in securities}


def resolve_price(security_ref: str, price_lookup: PriceLookup = None, security: Optional[Security] = None) -> float:
    """Latest price for a security: lookup first, then Security.latest_price, else 0."""
    price = None
    if callable(price_lookup):
        price = price_lookup(security_ref)
    elif price_lookup is not None:
        price = price_lookup.get(security_ref)
    if price is None and security is not None:
        price = security.latest_price
    return float(price) if price is not None else 0.0


def calculate_holdings(
    transactions: Iterable[Transaction],
    securities: Securities = None,
    price_lookup: PriceLookup = None,
    config: Optional[CalculationConfig] = None,
) -> list[Holding]:
    """Aggregate a ledger into one Holding per (security, owner).

    Transactions are replayed in date order through FIFO lots; the cost
    basis of a holding is the remaining cost of its open lots. Positions at
    or below ``config.dust_threshold`` shares are dropped.

    Args:
        transactions: Portfolio transactions in any order.
        securities: Security metadata, as a ref -> Security mapping or an
            iterable of Security objects.
        price_lookup: ref -> latest price, as a mapping or a callable.
        config: Calculation settings; defaults to DEFAULT_CONFIG.

    Returns:
        Holdings sorted by current value, largest first.
    """
    config = config or DEFAULT_CONFIG
    catalogue = _index_securities(securities)
    tracker = build_lots(transactions, config)

    holdings = []
    for (ref, owner), (shares, cost) in tracker.positions().items():
        if shares <= config.dust_threshold:
            continue
        security = catalogue.get(ref)
        currency = security.currency if security is not None else ""
        holdings.append(Holding(
            security_ref=ref,
            owner=owner,
            shares=shares,
            cost_basis=cost,
            current_price=resolve_price(ref, price_lookup, security),
            currency=currency or tracker.currency_of(ref, owner),
            name=security.name if security is not None else "",
            isin=security.isin if security is not None else "",
        ))
    holdings.sort(key=lambda h: h.current_value, reverse=True)
    return holdings


def group_holdings_by_security(holdings: Iterable[Holding]) -> list[SecurityPosition]:
    """Sum holdings of the same security across owners.

    Securities are matched by ISIN, falling back to name, then ref.
    """
    positions: dict[str, SecurityPosition] = {}
    for h in holdings:
        key = h.isin or h.name or h.security_ref
        pos = positions.get(key)
        if pos is None:
            pos = positions[key] = SecurityPosition(
                identity=key, name=h.name, isin=h.isin, currency=h.currency,
            )
        pos.shares += h.shares
        pos.cost_basis += h.cost_basis
        pos.current_value += h.current_value
        pos.holdings.append(h)
    return sorted(positions.values(), key=lambda p: p.current_value, reverse=True)


def calculate_account_balances(
    transactions: Iterable[Transaction],
    config: Optional[CalculationConfig] = None,
) -> list[AccountBalance]:
    """Cash balance per owner from a cash-account ledger.

    Buys and sells settle their amount plus or minus fees and taxes unless
    ``config.fees_included_in_amount`` says the amount is already gross.
    Deliveries and unknown types move no cash.
    """
    config = config or DEFAULT_CONFIG
    balances: dict[str, AccountBalance] = {}
    for tx in transactions:
        acct = balances.get(tx.owner)
        if acct is None:
            acct = balances[tx.owner] = AccountBalance(owner=tx.owner, balance=0.0)
        if tx.currency:
            acct.currency = tx.currency

        if tx.type in _CASH_IN:
            acct.balance += tx.amount
        elif tx.type in _CASH_OUT:
            acct.balance -= tx.amount
        elif tx.type == TransactionType.BUY:
            charges = 0.0 if config.fees_included_in_amount else tx.fees + tx.taxes
            acct.balance -= tx.amount + charges
        elif tx.type == TransactionType.SELL:
            charges = 0.0 if config.fees_included_in_amount else tx.fees + tx.taxes
            acct.balance += tx.amount - charges
    return list(balances.values())


def total_value(holdings: Iterable[Holding]) -> float:
    """Sum the current market value of all holdings (unpriced count as 0)."""
    return sum((h.current_value for h in holdings), 0.0)


def total_cost_basis(holdings: Iterable[Holding]) -> float:
    return sum((h.cost_basis for h in holdings), 0.0)


def total_unrealized_pnl(holdings: Iterable[Holding]) -> float:
    """Market value minus cost basis.

    Holdings without a price contribute their full cost basis as a loss
    until a price is supplied.
    """
    holdings = list(holdings)
    return total_value(holdings) - total_cost_basis(holdings)


def allocation_by_security(holdings: Iterable[Holding]) -> dict[str, float]:
    """Percentage of portfolio value per security (ISIN, name or ref).

    Returns:
        Dict mapping security identity to a percentage rounded to 2 places,
        e.g. {"IE00BK5BQT80": 70.0}. Empty dict when total value is 0.
    """
    holdings = list(holdings)
    port_value = total_value(holdings)
    if port_value == 0:
        return {}
    result: dict[str, float] = {}
    for h in holdings:
        key = h.isin or h.name or h.security_ref
        result[key] = round(result.get(key, 0.0) + h.current_value / port_value * 100, 2)
    return result
