"""Typer CLI: natgas-trader once, run, signals, status, history."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.logging import RichHandler

from natgas_trader.errors import ConfigInvalid, InvariantViolation

app = typer.Typer(
    name="natgas-trader",
    help="Weather- and storage-driven natural gas ETF trader",
    no_args_is_help=True,
)
console = Console()


def _execute(main: Callable[[], Coroutine[Any, Any, None]]) -> None:
    """Run an async command, mapping fatal errors to exit codes."""
    try:
        asyncio.run(main())
    except ConfigInvalid as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=1)
    except InvariantViolation as exc:
        console.print(f"[red]Position invariant violated, stopping:[/red] {exc}")
        raise typer.Exit(code=2)
    except httpx.HTTPError as exc:
        console.print(f"[red]Broker unreachable:[/red] {exc}")
        raise typer.Exit(code=1)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Configure logging before any command runs."""
    from natgas_trader.config import get_settings

    try:
        level = get_settings().log_level
    except ConfigInvalid:
        # The command itself reports the invalid configuration
        level = "INFO"
    logging.basicConfig(
        level="DEBUG" if verbose else level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


@app.command()
def once() -> None:
    """Run a single live trading cycle."""

    async def _run() -> None:
        from natgas_trader.pipeline import run_once
        from natgas_trader.signals.formatters import format_table

        result = await run_once()
        format_table(result, console)

    _execute(_run)


@app.command()
def run(
    interval_hours: float = typer.Option(
        24.0, "--interval-hours", "-i", min=0.01,
        help="Hours between trading cycles",
    ),
) -> None:
    """Trade continuously, one cycle every --interval-hours."""

    async def _run() -> None:
        from natgas_trader.pipeline import run_continuous

        console.print(f"[bold]Starting continuous trading, every {interval_hours:g}h[/bold]")
        await run_continuous(interval_hours)

    try:
        _execute(_run)
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")


@app.command()
def signals(
    output: str = typer.Option(
        "table", "--output", "-o",
        help="Output format: table, json",
    ),
) -> None:
    """Fetch and score signals and show the decision from FLAT. Trades nothing."""

    async def _run() -> None:
        from natgas_trader.pipeline import preview_cycle
        from natgas_trader.signals.formatters import format_json, format_table

        result = await preview_cycle()
        if output == "json":
            typer.echo(format_json(result))
        else:
            format_table(result, console)

    _execute(_run)


@app.command()
def status() -> None:
    """Show the brokerage account and open positions."""

    async def _run() -> None:
        from natgas_trader.config import get_settings, require_broker_credentials
        from natgas_trader.signals.formatters import format_portfolio
        from natgas_trader.trading.alpaca import AlpacaTrader

        settings = get_settings()
        require_broker_credentials(settings)
        async with AlpacaTrader(settings) as trader:
            summary = await trader.get_portfolio_summary()
        format_portfolio(summary, console)

    _execute(_run)


@app.command()
def history(
    limit: int = typer.Option(10, "--limit", "-n", min=1, help="Recent decisions to show"),
) -> None:
    """Show the cycle journal summary and recent decisions."""

    async def _run() -> None:
        from natgas_trader.signals.formatters import format_history
        from natgas_trader.trading.journal import CycleJournal

        journal = CycleJournal()
        summary = await journal.get_summary()
        decisions = await journal.recent_decisions(limit)
        format_history(summary, decisions, console)

    _execute(_run)


if __name__ == "__main__":
    app()
