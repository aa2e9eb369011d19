"""Configuration commands."""

import dataclasses

import typer
from rich.table import Table

from ...core.config import DEFAULT_CONFIG, get_config, update_config
from ...core.exceptions import ConfigError
from ..common import console

app = typer.Typer(help="Calculation settings (config.json)")


@app.command("show")
def show():
    """Show the active calculation settings."""
    cfg = get_config()
    table = Table(title="Configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Default", justify="right", style="dim")
    for f in dataclasses.fields(cfg):
        table.add_row(f.name, str(getattr(cfg, f.name)), str(getattr(DEFAULT_CONFIG, f.name)))
    console.print(table)


@app.command("set")
def set_value(
    key: str = typer.Argument(..., help="Setting name, e.g. dust_threshold"),
    value: str = typer.Argument(..., help="New value"),
):
    """Change one setting and save it."""
    try:
        cfg = update_config(key, value)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]{key} = {getattr(cfg, key)}[/green]")
