"""Data models for the portfolio metrics core."""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


class TransactionType(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    DELIVERY_INBOUND = "DELIVERY_INBOUND"
    DELIVERY_OUTBOUND = "DELIVERY_OUTBOUND"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    DIVIDEND = "DIVIDEND"
    INTEREST = "INTEREST"
    INTEREST_CHARGE = "INTEREST_CHARGE"
    FEES = "FEES"
    FEES_REFUND = "FEES_REFUND"
    TAXES = "TAXES"
    TAX_REFUND = "TAX_REFUND"
    UNKNOWN = "UNKNOWN"

    @property
    def is_buy_class(self) -> bool:
        return self in BUY_CLASS

    @property
    def is_sell_class(self) -> bool:
        return self in SELL_CLASS


BUY_CLASS = frozenset({
    TransactionType.BUY,
    TransactionType.DELIVERY_INBOUND,
    TransactionType.TRANSFER_IN,
})
SELL_CLASS = frozenset({
    TransactionType.SELL,
    TransactionType.DELIVERY_OUTBOUND,
    TransactionType.TRANSFER_OUT,
})


@dataclass(frozen=True)
class Transaction:
    """A dated ledger event. Amounts in currency units, shares unscaled."""
    date: date
    type: TransactionType
    amount: float = 0.0
    security_ref: Optional[str] = None
    shares: float = 0.0
    fees: float = 0.0
    taxes: float = 0.0
    currency: str = ""
    owner: str = ""  # portfolio or account key
    counter_owner: Optional[str] = None  # other side of an internal transfer
    sequence: int = 0
    note: str = ""


@dataclass(frozen=True)
class CashFlow:
    """Investor cash flow: positive = contribution, negative = withdrawal."""
    date: date
    amount: float


@dataclass(frozen=True)
class Valuation:
    date: date
    value: float


@dataclass
class Security:
    ref: str
    name: str = ""
    isin: str = ""
    ticker: str = ""
    currency: str = ""
    latest_price: Optional[float] = None

    @property
    def identity(self) -> str:
        """Grouping key across portfolios: ISIN, else name, else ref."""
        return self.isin or self.name or self.ref


@dataclass
class Lot:
    """A FIFO lot created by a BUY-class transaction."""
    security_ref: str
    owner: str
    acquired: date
    shares: float
    cost_basis: float
    shares_remaining: float
    cost_basis_remaining: float
    sequence: int = 0

    @property
    def cost_per_share(self) -> float:
        if self.shares == 0:
            return 0.0
        return self.cost_basis / self.shares

    def is_closed(self, epsilon: float) -> bool:
        return self.shares_remaining <= epsilon


@dataclass(frozen=True)
class LotConsumption:
    """Part of a lot released by a sale."""
    security_ref: str
    owner: str
    sale_date: date
    acquired: date
    shares: float
    cost_basis: float
    proceeds: float

    @property
    def realized_gain(self) -> float:
        return self.proceeds - self.cost_basis


@dataclass
class Holding:
    security_ref: str
    owner: str
    shares: float = 0.0
    cost_basis: float = 0.0
    current_price: float = 0.0
    currency: str = ""
    name: str = ""
    isin: str = ""

    @property
    def current_value(self) -> float:
        return self.shares * self.current_price

    @property
    def gain_loss(self) -> float:
        return self.current_value - self.cost_basis

    @property
    def gain_loss_percent(self) -> float:
        if self.cost_basis == 0:
            return 0.0
        return self.gain_loss / self.cost_basis * 100


@dataclass
class SecurityPosition:
    """One security summed across every owner that holds it."""
    identity: str
    name: str = ""
    isin: str = ""
    currency: str = ""
    shares: float = 0.0
    cost_basis: float = 0.0
    current_value: float = 0.0
    holdings: list[Holding] = field(default_factory=list)

    @property
    def owners(self) -> list[str]:
        return [h.owner for h in self.holdings]

    @property
    def gain_loss(self) -> float:
        return self.current_value - self.cost_basis

    @property
    def gain_loss_percent(self) -> float:
        if self.cost_basis == 0:
            return 0.0
        return self.gain_loss / self.cost_basis * 100


@dataclass(frozen=True)
class PeriodReturn:
    """TTWROR sub-period between two valuation checkpoints."""
    start_date: date
    end_date: date
    start_value: float
    end_value: float
    net_flow: float
    factor: Optional[float]  # None when the period was skipped

    @property
    def return_rate(self) -> float:
        if self.factor is None:
            return 0.0
        return self.factor - 1


@dataclass(frozen=True)
class IRRResult:
    rate: float  # decimal fraction, 0.1 = 10%
    converged: bool
    iterations: int

    @property
    def percent(self) -> float:
        return self.rate * 100


@dataclass(frozen=True)
class PerformanceResult:
    ttwror_percent: float
    irr_percent: float
    absolute_gain: float
    total_invested: float
    total_withdrawn: float
    current_value: float
    ttwror_annualized_percent: float = 0.0
    irr_converged: bool = True
    irr_iterations: int = 0
    days: int = 0


@dataclass
class AccountBalance:
    owner: str
    balance: float
    currency: str = ""
