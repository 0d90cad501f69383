"""Cycle output formatters: structured records, Rich tables, JSON, Telegram."""

from __future__ import annotations

import json

from rich.console import Console
from rich.table import Table

from natgas_trader.common.types import JsonDict
from natgas_trader.signals.models import NormalizedSignal, SignalSnapshot
from natgas_trader.trading.models import CycleResult, DecisionRecord


def snapshot_record(snapshot: SignalSnapshot) -> JsonDict:
    """The per-cycle signal snapshot as a flat JSON-able dict."""
    return {
        "timestamp": snapshot.timestamp.isoformat(),
        "temperature_signal": round(snapshot.temperature.value, 4),
        "inventory_signal": round(snapshot.inventory.value, 4),
        "storm_signal": round(snapshot.storm.value, 4),
        "total_signal": round(snapshot.composite, 4),
        "weights": {
            "temperature": snapshot.weights.temperature_weight,
            "inventory": snapshot.weights.inventory_weight,
            "storm": snapshot.weights.storm_weight,
        },
        "degraded": snapshot.degraded_sources,
        "readings": snapshot.readings,
    }


def decision_record(decision: DecisionRecord) -> JsonDict:
    return {
        "timestamp": decision.timestamp.isoformat(),
        "composite": round(decision.composite, 4),
        "position_before": decision.position_before.value,
        "action": decision.action.value,
        "target": decision.target.value,
        "legs": decision.legs,
        "confidence": round(decision.confidence, 2),
        "buy_threshold": decision.buy_threshold,
        "sell_threshold": decision.sell_threshold,
    }


def cycle_record(result: CycleResult) -> JsonDict:
    record: JsonDict = {
        "cycle_id": result.cycle_id,
        "snapshot": snapshot_record(result.snapshot),
        "decision": decision_record(result.decision),
        "position_after": result.position_after.value,
        "data_quality": result.data_quality,
    }
    if result.report is not None:
        record["execution"] = {
            "succeeded": result.report.succeeded,
            "error": result.report.error,
            "fills": [
                {
                    "side": f.side.value,
                    "symbol": f.symbol,
                    "qty": f.qty,
                    "avg_price": f.avg_price,
                    "order_id": f.order_id,
                }
                for f in result.report.fills
            ],
        }
    return record


def format_json(result: CycleResult) -> str:
    return json.dumps(cycle_record(result), indent=2, default=str)


def _signal_cell(signal: NormalizedSignal) -> str:
    color = "green" if signal.value > 0 else "red" if signal.value < 0 else "white"
    text = f"[{color}]{signal.value:+.3f}[/{color}]"
    if signal.degraded:
        text += " [yellow](degraded)[/yellow]"
    return text


def format_table(result: CycleResult, console: Console | None = None) -> None:
    """Print the cycle's signals and decision as Rich tables."""
    if console is None:
        console = Console()

    snap = result.snapshot
    signals = Table(
        title="Natural Gas Signals",
        caption=f"Generated at {snap.timestamp.strftime('%Y-%m-%d %H:%M UTC')}",
    )
    signals.add_column("Source", width=12)
    signals.add_column("Signal", justify="right", width=22)
    signals.add_column("Weight", justify="right", width=7)
    signals.add_column("Note", width=40, no_wrap=False)

    weights = snap.weights
    for signal, weight in (
        (snap.temperature, weights.temperature_weight),
        (snap.inventory, weights.inventory_weight),
        (snap.storm, weights.storm_weight),
    ):
        signals.add_row(signal.source.value, _signal_cell(signal), f"{weight:.2f}", signal.note)
    signals.add_row("[bold]composite[/bold]", f"[bold]{snap.composite:+.3f}[/bold]", "", "")
    console.print(signals)

    decision = result.decision
    action_color = "green" if decision.action.value == "BUY" else "dim"
    console.print(
        f"\nDecision: [{action_color}]{decision.action.value}[/{action_color}] "
        f"(thresholds {decision.sell_threshold:+.2f} / {decision.buy_threshold:+.2f}, "
        f"confidence {decision.confidence:.2f})"
    )
    if decision.legs:
        console.print(f"  Legs: {' -> '.join(decision.legs)}")
    console.print(
        f"  Position: {decision.position_before.value} -> {result.position_after.value}"
    )

    if result.report is not None:
        for fill in result.report.fills:
            price = f" @ ${fill.avg_price:.2f}" if fill.avg_price else ""
            console.print(f"  [green]Filled[/green] {fill.side.value} {fill.qty:g} {fill.symbol}{price}")
        if result.report.error:
            console.print(f"  [red]Execution failed:[/red] {result.report.error}")

    for note in result.data_quality:
        console.print(f"  [yellow]Data quality:[/yellow] {note}")


def format_portfolio(summary: JsonDict, console: Console | None = None) -> None:
    if console is None:
        console = Console()

    console.print(
        f"[bold]Portfolio[/bold]  value ${summary['total_value']:,.2f}  "
        f"cash ${summary['cash']:,.2f}  buying power ${summary['buying_power']:,.2f}"
    )
    positions = summary.get("positions") or []
    if not positions:
        console.print("[dim]No open positions.[/dim]")
        return

    table = Table(title="Open Positions")
    table.add_column("Symbol", width=8)
    table.add_column("Qty", justify="right", width=10)
    table.add_column("Price", justify="right", width=10)
    table.add_column("Value", justify="right", width=12)
    table.add_column("Unrealized P/L", justify="right", width=16)
    for p in positions:
        pl_color = "green" if p["unrealized_pl"] >= 0 else "red"
        table.add_row(
            p["symbol"],
            f"{p['qty']:g}",
            f"${p['current_price']:,.2f}",
            f"${p['market_value']:,.2f}",
            f"[{pl_color}]${p['unrealized_pl']:,.2f} ({p['unrealized_plpc']:+.1%})[/{pl_color}]",
        )
    console.print(table)


def format_history(summary: dict, decisions: list[dict], console: Console | None = None) -> None:
    if console is None:
        console = Console()

    console.print("[bold]Cycle Journal Summary[/bold]")
    console.print(f"  Cycles:               {summary['cycles']}")
    console.print(f"  Buy decisions:        {summary['buys']}")
    console.print(f"  Holds:                {summary['holds']}")
    console.print(f"  Fills:                {summary['fills']}")
    console.print(f"  Execution failures:   {summary['execution_failures']}")
    console.print(f"  Data-quality events:  {summary['data_quality_events']}")
    if summary["avg_composite"] is not None:
        console.print(f"  Avg composite:        {summary['avg_composite']:+.3f}")

    if not decisions:
        return

    table = Table(title="Recent Decisions", show_lines=True)
    table.add_column("Time", width=20)
    table.add_column("Composite", justify="right", width=9)
    table.add_column("Action", width=6)
    table.add_column("From", width=13)
    table.add_column("Target", width=13)
    table.add_column("Legs", width=24)
    table.add_column("Degraded", width=20)
    for d in decisions:
        table.add_row(
            d["timestamp"][:19],
            f"{d['composite']:+.3f}",
            d["action"],
            d["position_before"],
            d["target"],
            (d["legs"] or "").replace(",", " -> "),
            d.get("degraded") or "",
        )
    console.print(table)


def format_telegram_decision(result: CycleResult) -> str:
    """Format a traded (or failed) cycle for Telegram (Markdown)."""
    snap = result.snapshot
    decision = result.decision
    if result.execution_failed:
        header = "\u26a0\ufe0f *TRADE FAILED*"
    else:
        header = "\U0001f514 *TRADE EXECUTED*"

    lines = [
        header,
        "",
        f"Legs: {' -> '.join(decision.legs) or 'none'}",
        f"Position: {decision.position_before.value} -> {result.position_after.value}",
        f"Composite: {snap.composite:+.3f} (confidence {decision.confidence:.2f})",
        "",
        f"Temperature: {snap.temperature.value:+.3f}",
        f"Inventory: {snap.inventory.value:+.3f}",
        f"Storm: {snap.storm.value:+.3f}",
    ]
    if result.report is not None and result.report.error:
        lines.append("")
        lines.append(f"Error: {result.report.error[:200]}")
    if result.data_quality:
        lines.append(f"Degraded: {', '.join(snap.degraded_sources)}")
    return "\n".join(lines)
