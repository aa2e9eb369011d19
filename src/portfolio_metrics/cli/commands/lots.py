"""FIFO lot commands."""

from typing import Optional

import typer
from rich.table import Table

from ...core.config import get_config
from ...core.fifo import build_lots, cost_basis_history
from ..common import check_security, console, load_or_exit, signed

app = typer.Typer(help="FIFO lots and realized gains")


@app.command("list")
def list_lots(
    ledger: str = typer.Argument(..., help="Ledger JSON file"),
    security: Optional[str] = typer.Option(None, "--security", "-s", help="Security ref"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Portfolio"),
):
    """List open FIFO lots, oldest first, and the realized gain so far."""
    data = load_or_exit(ledger)
    check_security(data, security)
    tracker = build_lots(data.transactions, get_config())
    lots = tracker.open_lots(security, owner)

    if lots:
        table = Table(title="Open lots")
        table.add_column("Security", style="bold")
        table.add_column("Portfolio")
        table.add_column("Acquired")
        table.add_column("Shares", justify="right")
        table.add_column("Remaining", justify="right")
        table.add_column("Cost Remaining", justify="right")
        table.add_column("Cost/Share", justify="right")
        for lot in lots:
            table.add_row(
                lot.security_ref,
                lot.owner or "—",
                lot.acquired.isoformat(),
                f"{lot.shares:,.4f}",
                f"{lot.shares_remaining:,.4f}",
                f"{lot.cost_basis_remaining:,.2f}",
                f"{lot.cost_per_share:,.4f}",
            )
        console.print(table)
    else:
        console.print("[yellow]No open lots.[/yellow]")

    sold = [
        c for c in tracker.consumptions
        if (security is None or c.security_ref == security) and (owner is None or c.owner == owner)
    ]
    if sold:
        realized = sum(c.realized_gain for c in sold)
        console.print(f"  Realized gain: {signed(realized)}  ({len(sold)} lot consumptions)")


@app.command("history")
def history(
    ledger: str = typer.Argument(..., help="Ledger JSON file"),
    security: Optional[str] = typer.Option(None, "--security", "-s", help="Security ref"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Portfolio"),
):
    """Show remaining FIFO cost basis after each trading day."""
    data = load_or_exit(ledger)
    check_security(data, security)
    points = cost_basis_history(data.transactions, security, owner, get_config())
    if not points:
        console.print("[yellow]No matching transactions.[/yellow]")
        return

    table = Table(title="Cost basis history")
    table.add_column("Date")
    table.add_column("Cost Basis", justify="right")
    for day, cost in points:
        table.add_row(day.isoformat(), f"{cost:,.2f}")
    console.print(table)
