"""Helpers shared by CLI commands."""

from typing import Optional

import typer
from rich.console import Console

from ..core.exceptions import LedgerFormatError, UnknownSecurityError
from ..importers.ledger import LedgerData, load_ledger

console = Console()


def load_or_exit(path: str) -> LedgerData:
    """Load a ledger file, printing skipped-record warnings; exit 1 on failure."""
    try:
        data = load_ledger(path)
    except LedgerFormatError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    for warning in data.warnings:
        console.print(f"[yellow]Skipped {warning}[/yellow]")
    return data


def check_security(data: LedgerData, ref: Optional[str]) -> None:
    if ref is None:
        return
    try:
        data.require_security(ref)
    except UnknownSecurityError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


def signed(value: float, suffix: str = "") -> str:
    """Green/red markup for a signed number."""
    color = "green" if value >= 0 else "red"
    return f"[{color}]{value:+,.2f}{suffix}[/{color}]"
