"""Portfolio Metrics CLI — main entry point."""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from .commands import config, holdings, lots, performance

app = typer.Typer(
    name="pm",
    help="Holdings, FIFO cost basis, TTWROR and IRR for Portfolio Performance ledgers",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

app.add_typer(holdings.app, name="holdings", help="Current holdings and cost basis")
app.add_typer(performance.app, name="performance", help="TTWROR and IRR")
app.add_typer(lots.app, name="lots", help="FIFO lots and realized gains")
app.add_typer(config.app, name="config", help="Calculation settings")


@app.callback()
def startup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log calculation diagnostics"),
):
    """Configure logging."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


if __name__ == "__main__":
    app()
