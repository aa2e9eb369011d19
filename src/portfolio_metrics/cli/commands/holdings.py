"""Holdings commands."""

from typing import Optional

import typer
from rich.table import Table

from ...core.config import get_config
from ...core.holdings import (
    calculate_holdings,
    group_holdings_by_security,
    total_cost_basis,
    total_unrealized_pnl,
    total_value,
)
from ..common import console, load_or_exit, signed

app = typer.Typer(help="Current holdings and cost basis")


def _display_name(h) -> str:
    """Return best available display name for a holding."""
    if h.name and h.isin:
        return f"{h.name} ({h.isin})"
    return h.name or h.isin or h.security_ref


@app.command("list")
def list_holdings(
    ledger: str = typer.Argument(..., help="Ledger JSON file"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Only this portfolio"),
):
    """List holdings per portfolio, largest position first."""
    data = load_or_exit(ledger)
    holdings = calculate_holdings(data.transactions, data.securities, data.prices, get_config())
    if owner is not None:
        holdings = [h for h in holdings if h.owner == owner]
    if not holdings:
        console.print("[yellow]No open positions.[/yellow]")
        return

    table = Table(title="Holdings")
    table.add_column("Security", style="bold")
    table.add_column("Portfolio")
    table.add_column("Shares", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("P&L %", justify="right")

    for h in holdings:
        price_str = f"{h.current_price:,.4f}" if h.current_price else "—"
        table.add_row(
            _display_name(h),
            h.owner or "—",
            f"{h.shares:,.4f}",
            f"{h.cost_basis:,.2f} {h.currency}".strip(),
            price_str,
            f"{h.current_value:,.2f}",
            signed(h.gain_loss),
            signed(h.gain_loss_percent, "%"),
        )

    total_pnl = total_unrealized_pnl(holdings)
    table.add_row(
        "", "", "",
        f"[bold]{total_cost_basis(holdings):,.2f}[/bold]",
        "",
        f"[bold]{total_value(holdings):,.2f}[/bold]",
        signed(total_pnl),
        "",
    )
    console.print(table)


@app.command("grouped")
def grouped(ledger: str = typer.Argument(..., help="Ledger JSON file")):
    """Total position per security across all portfolios."""
    data = load_or_exit(ledger)
    holdings = calculate_holdings(data.transactions, data.securities, data.prices, get_config())
    positions = group_holdings_by_security(holdings)
    if not positions:
        console.print("[yellow]No open positions.[/yellow]")
        return

    table = Table(title="Holdings by security")
    table.add_column("Security", style="bold")
    table.add_column("Portfolios")
    table.add_column("Shares", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Value", justify="right")
    table.add_column("P&L", justify="right")

    for pos in positions:
        table.add_row(
            pos.name or pos.identity,
            ", ".join(o or "—" for o in pos.owners),
            f"{pos.shares:,.4f}",
            f"{pos.cost_basis:,.2f}",
            f"{pos.current_value:,.2f}",
            signed(pos.gain_loss),
        )
    console.print(table)
