"""Performance commands: TTWROR and IRR."""

from datetime import date
from typing import Optional

import typer
from rich.table import Table

from ...core.config import get_config
from ...core.exceptions import LedgerFormatError
from ...core.finance import calculate_performance, extract_cash_flows, ttwror_periods
from ...core.holdings import calculate_holdings, total_value
from ...importers.ledger import parse_date
from ..common import console, load_or_exit, signed

app = typer.Typer(help="Time-weighted and money-weighted returns")


def _as_of(raw: Optional[str], data) -> date:
    if raw:
        try:
            return parse_date(raw)
        except LedgerFormatError as e:
            console.print(f"[red]Invalid --as-of: {e}[/red]")
            raise typer.Exit(1)
    dates = [v.date for v in data.valuations] + [t.date for t in data.transactions]
    return max(dates) if dates else date.today()


@app.command("summary")
def summary(
    ledger: str = typer.Argument(..., help="Ledger JSON file"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Evaluation date (YYYY-MM-DD)"),
    value: Optional[float] = typer.Option(None, "--value", help="Current portfolio value (default: holdings value)"),
):
    """Show TTWROR, IRR and invested capital."""
    data = load_or_exit(ledger)
    cfg = get_config()
    when = _as_of(as_of, data)
    if value is None:
        value = total_value(calculate_holdings(data.transactions, data.securities, data.prices, cfg))

    result = calculate_performance(data.transactions, data.valuations, value, when, cfg)

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value", justify="right")

    table.add_row("As of", when.isoformat())
    table.add_row("Total Invested", f"{result.total_invested:,.2f}")
    table.add_row("Total Withdrawn", f"{result.total_withdrawn:,.2f}")
    table.add_row("[bold]Current Value[/bold]", f"[bold]{result.current_value:,.2f}[/bold]")
    table.add_row("Absolute Gain", signed(result.absolute_gain))
    table.add_row("TTWROR", signed(result.ttwror_percent, "%"))
    if result.days:
        table.add_row(f"TTWROR p.a. ({result.days} days)", signed(result.ttwror_annualized_percent, "%"))
    irr_note = "" if result.irr_converged else " [yellow](not converged)[/yellow]"
    table.add_row("IRR", signed(result.irr_percent, "%") + irr_note)

    console.print(table)
    if len(data.valuations) < 2:
        console.print("[dim]TTWROR needs at least two valuations in the ledger.[/dim]")


@app.command("periods")
def periods(ledger: str = typer.Argument(..., help="Ledger JSON file")):
    """Show the TTWROR sub-periods between valuation checkpoints."""
    data = load_or_exit(ledger)
    rows = ttwror_periods(extract_cash_flows(data.transactions), data.valuations, get_config())
    if not rows:
        console.print("[yellow]Need at least two valuations.[/yellow]")
        return

    table = Table(title="TTWROR periods")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Start", justify="right")
    table.add_column("Net Flow", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Return", justify="right")

    for p in rows:
        ret = signed(p.return_rate * 100, "%") if p.factor is not None else "[dim]skipped[/dim]"
        table.add_row(
            p.start_date.isoformat(),
            p.end_date.isoformat(),
            f"{p.start_value:,.2f}",
            f"{p.net_flow:,.2f}",
            f"{p.end_value:,.2f}",
            ret,
        )
    console.print(table)
