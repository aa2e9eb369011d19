"""Tests for holdings aggregation, grouping and cash balances."""

from datetime import date

import pytest

from portfolio_metrics.core.config import CalculationConfig
from portfolio_metrics.core.holdings import (
    allocation_by_security,
    calculate_account_balances,
    calculate_holdings,
    group_holdings_by_security,
    resolve_price,
    total_cost_basis,
    total_unrealized_pnl,
    total_value,
)
from portfolio_metrics.core.models import Holding, Security, Transaction, TransactionType as T

D1 = date(2024, 1, 10)
D2 = date(2024, 2, 10)
D3 = date(2024, 3, 10)


def _tx(d, type_, shares, amount, ref="s1", owner="P1", **kwargs):
    return Transaction(
        date=d, type=type_, amount=amount, security_ref=ref, shares=shares, owner=owner, **kwargs
    )


def _cash(d, type_, amount, owner="cash", **kwargs):
    return Transaction(date=d, type=type_, amount=amount, owner=owner, **kwargs)


def _holding(ref, shares, cost, price, owner="P1", isin="", name=""):
    return Holding(
        security_ref=ref, owner=owner, shares=shares, cost_basis=cost,
        current_price=price, isin=isin, name=name,
    )


SECURITIES = {
    "s1": Security(ref="s1", name="World ETF", isin="IE00B4L5Y983", currency="EUR"),
    "s2": Security(ref="s2", name="Apple", isin="US0378331005", currency="USD", latest_price=190.0),
}


# ---------------------------------------------------------------------------
# calculate_holdings
# ---------------------------------------------------------------------------

class TestCalculateHoldings:
    def test_single_buy(self):
        holdings = calculate_holdings([_tx(D1, T.BUY, 10, 1000)], SECURITIES, {"s1": 110.0})
        assert len(holdings) == 1
        h = holdings[0]
        assert h.shares == pytest.approx(10)
        assert h.cost_basis == pytest.approx(1000)
        assert h.current_value == pytest.approx(1100)
        assert h.gain_loss == pytest.approx(100)
        assert h.gain_loss_percent == pytest.approx(10)
        assert h.name == "World ETF"
        assert h.isin == "IE00B4L5Y983"
        assert h.currency == "EUR"

    def test_partial_sell_uses_fifo_cost(self):
        txs = [
            _tx(D1, T.BUY, 10, 1000),
            _tx(D2, T.BUY, 10, 2000),
            _tx(D3, T.SELL, 15, 3000),
        ]
        (h,) = calculate_holdings(txs, SECURITIES, {"s1": 210.0})
        assert h.shares == pytest.approx(5)
        assert h.cost_basis == pytest.approx(1000)

    def test_buy_then_sell_all_disappears(self):
        txs = [_tx(D1, T.BUY, 10, 1000), _tx(D2, T.SELL, 10, 1200)]
        assert calculate_holdings(txs, SECURITIES, {"s1": 120.0}) == []

    def test_dust_position_dropped(self):
        txs = [_tx(D1, T.BUY, 0.00005, 0.01)]
        assert calculate_holdings(txs) == []

    def test_empty_ledger(self):
        assert calculate_holdings([]) == []

    def test_one_holding_per_owner(self):
        txs = [
            _tx(D1, T.BUY, 10, 1000, owner="A"),
            _tx(D1, T.BUY, 5, 550, owner="B"),
        ]
        holdings = calculate_holdings(txs, SECURITIES, {"s1": 100.0})
        assert {(h.owner, h.shares) for h in holdings} == {("A", 10), ("B", 5)}

    def test_shares_additive_across_owners(self):
        txs = [
            _tx(D1, T.BUY, 10, 1000, owner="A"),
            _tx(D1, T.BUY, 5, 550, owner="B"),
            _tx(D2, T.SELL, 2, 240, owner="A"),
            _tx(D3, T.TRANSFER_IN, 3, 0, owner="B", counter_owner="A"),
        ]
        holdings = calculate_holdings(txs)
        net = 10 + 5 - 2
        assert sum(h.shares for h in holdings) == pytest.approx(net)

    def test_missing_price_counts_as_zero(self):
        (h,) = calculate_holdings([_tx(D1, T.BUY, 10, 1000)], SECURITIES)
        assert h.current_price == 0.0
        assert h.current_value == 0.0
        assert h.gain_loss == pytest.approx(-1000)

    def test_latest_price_fallback(self):
        (h,) = calculate_holdings([_tx(D1, T.BUY, 2, 300, ref="s2")], SECURITIES)
        assert h.current_price == 190.0
        assert h.currency == "USD"

    def test_lookup_overrides_latest_price(self):
        (h,) = calculate_holdings([_tx(D1, T.BUY, 2, 300, ref="s2")], SECURITIES, {"s2": 200.0})
        assert h.current_price == 200.0

    def test_callable_price_lookup(self):
        (h,) = calculate_holdings([_tx(D1, T.BUY, 10, 1000)], SECURITIES, lambda ref: 150.0)
        assert h.current_value == pytest.approx(1500)

    def test_securities_as_iterable(self):
        (h,) = calculate_holdings([_tx(D1, T.BUY, 10, 1000)], list(SECURITIES.values()))
        assert h.name == "World ETF"

    def test_unknown_security_kept_with_transaction_currency(self):
        (h,) = calculate_holdings([_tx(D1, T.BUY, 1, 50, ref="zzz", currency="CHF")], SECURITIES)
        assert h.security_ref == "zzz"
        assert h.name == ""
        assert h.currency == "CHF"

    def test_sorted_by_value_descending(self):
        txs = [
            _tx(D1, T.BUY, 1, 100, ref="s1"),
            _tx(D1, T.BUY, 1, 100, ref="s2"),
        ]
        holdings = calculate_holdings(txs, SECURITIES, {"s1": 100.0, "s2": 500.0})
        assert [h.security_ref for h in holdings] == ["s2", "s1"]

    def test_cost_basis_never_negative(self):
        txs = [
            _tx(D1, T.BUY, 10, 1000),
            _tx(D2, T.SELL, 3, 9000),
            _tx(D3, T.SELL, 20, 100),
            _tx(D3, T.BUY, 1, 10),
        ]
        for h in calculate_holdings(txs):
            assert h.cost_basis >= 0

    def test_fees_flag(self):
        cfg = CalculationConfig(fees_included_in_amount=False)
        (h,) = calculate_holdings([_tx(D1, T.BUY, 10, 1000, fees=5, taxes=1)], config=cfg)
        assert h.cost_basis == pytest.approx(1006)

    def test_idempotent(self):
        txs = [_tx(D1, T.BUY, 10, 1000), _tx(D2, T.SELL, 4, 600)]
        first = calculate_holdings(txs, SECURITIES, {"s1": 100.0})
        second = calculate_holdings(txs, SECURITIES, {"s1": 100.0})
        assert first == second


class TestResolvePrice:
    def test_mapping(self):
        assert resolve_price("s1", {"s1": 12}) == 12.0

    def test_missing_everywhere(self):
        assert resolve_price("s1", {}) == 0.0

    def test_callable_returning_none_falls_back(self):
        sec = Security(ref="s1", latest_price=7.5)
        assert resolve_price("s1", lambda ref: None, sec) == 7.5


# ---------------------------------------------------------------------------
# Grouping and totals
# ---------------------------------------------------------------------------

class TestGroupHoldings:
    def test_sums_same_isin_across_owners(self):
        holdings = [
            _holding("s1", 10, 1000, 110, owner="A", isin="IE1"),
            _holding("s1", 5, 600, 110, owner="B", isin="IE1"),
            _holding("s2", 1, 100, 90, owner="A", isin="US1"),
        ]
        positions = group_holdings_by_security(holdings)
        assert [p.identity for p in positions] == ["IE1", "US1"]
        ie = positions[0]
        assert ie.shares == 15
        assert ie.cost_basis == 1600
        assert ie.current_value == pytest.approx(1650)
        assert ie.owners == ["A", "B"]
        assert ie.gain_loss == pytest.approx(50)

    def test_falls_back_to_name_then_ref(self):
        holdings = [
            _holding("a", 1, 10, 10, name="Gold"),
            _holding("b", 1, 10, 10, name="Gold"),
            _holding("c", 1, 10, 10),
        ]
        identities = {p.identity: p.shares for p in group_holdings_by_security(holdings)}
        assert identities == {"Gold": 2, "c": 1}

    def test_empty(self):
        assert group_holdings_by_security([]) == []


class TestTotals:
    def test_totals(self):
        holdings = [_holding("a", 10, 1000, 120), _holding("b", 5, 500, 80)]
        assert total_value(holdings) == pytest.approx(1600)
        assert total_cost_basis(holdings) == pytest.approx(1500)
        assert total_unrealized_pnl(holdings) == pytest.approx(100)

    def test_unpriced_holding_is_full_loss(self):
        assert total_unrealized_pnl([_holding("a", 10, 1000, 0)]) == pytest.approx(-1000)

    def test_allocation(self):
        holdings = [_holding("a", 7, 700, 100, isin="X"), _holding("b", 3, 300, 100, isin="Y")]
        assert allocation_by_security(holdings) == {"X": 70.0, "Y": 30.0}

    def test_allocation_zero_value(self):
        assert allocation_by_security([_holding("a", 1, 10, 0)]) == {}

    def test_allocation_merges_owners(self):
        holdings = [
            _holding("a", 1, 10, 50, owner="A", isin="X"),
            _holding("a", 1, 10, 50, owner="B", isin="X"),
        ]
        assert allocation_by_security(holdings) == {"X": 100.0}


# ---------------------------------------------------------------------------
# Account balances
# ---------------------------------------------------------------------------

class TestAccountBalances:
    def test_cash_movements(self):
        txs = [
            _cash(D1, T.DEPOSIT, 1000, currency="EUR"),
            _cash(D2, T.BUY, 600, security_ref="s1", shares=6),
            _cash(D2, T.DIVIDEND, 12),
            _cash(D2, T.FEES, 2),
            _cash(D3, T.SELL, 300, security_ref="s1", shares=2),
            _cash(D3, T.WITHDRAWAL, 100),
        ]
        (acct,) = calculate_account_balances(txs)
        assert acct.owner == "cash"
        assert acct.currency == "EUR"
        assert acct.balance == pytest.approx(1000 - 600 + 12 - 2 + 300 - 100)

    def test_fees_settled_when_not_in_amount(self):
        cfg = CalculationConfig(fees_included_in_amount=False)
        txs = [
            _cash(D1, T.DEPOSIT, 1000),
            _cash(D2, T.BUY, 500, fees=5, taxes=0),
            _cash(D3, T.SELL, 200, fees=1, taxes=4),
        ]
        (acct,) = calculate_account_balances(txs, cfg)
        assert acct.balance == pytest.approx(1000 - 505 + 195)

    def test_per_owner(self):
        txs = [
            _cash(D1, T.DEPOSIT, 100, owner="a"),
            _cash(D1, T.DEPOSIT, 50, owner="b"),
            _cash(D2, T.TRANSFER_OUT, 30, owner="a", counter_owner="b"),
            _cash(D2, T.TRANSFER_IN, 30, owner="b", counter_owner="a"),
        ]
        balances = {a.owner: a.balance for a in calculate_account_balances(txs)}
        assert balances == {"a": 70, "b": 80}

    def test_deliveries_and_unknown_move_no_cash(self):
        txs = [
            _cash(D1, T.DELIVERY_INBOUND, 500, security_ref="s1", shares=5),
            _cash(D1, T.UNKNOWN, 999),
        ]
        (acct,) = calculate_account_balances(txs)
        assert acct.balance == 0.0

    def test_empty(self):
        assert calculate_account_balances([]) == []
