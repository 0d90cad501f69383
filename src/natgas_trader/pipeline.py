"""Top-level cycle orchestrator.

Wires together: source fetching → normalization → aggregation → decision →
execution → position update. Each cycle holds the position lock end to end,
so cycles never overlap.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

import aiosqlite
import httpx
from rich.console import Console

from natgas_trader.common.types import SymbolPair
from natgas_trader.config import Settings, get_settings, require_broker_credentials
from natgas_trader.errors import InvariantViolation, SourceTimeout, SourceUnavailable
from natgas_trader.notifications.telegram import TelegramNotifier
from natgas_trader.signals.aggregator import composite_score
from natgas_trader.signals.formatters import decision_record, snapshot_record
from natgas_trader.signals.models import (
    RawReading,
    SignalSnapshot,
    SourceKind,
    StorageReading,
    StormReading,
    TemperatureReading,
    WeightConfig,
)
from natgas_trader.signals.normalizer import neutral, normalize_or_neutral
from natgas_trader.sources.eia import fetch_storage_reading
from natgas_trader.sources.noaa import fetch_storm_reading
from natgas_trader.sources.openmeteo import fetch_temperature_reading
from natgas_trader.trading.alpaca import AlpacaTrader
from natgas_trader.trading.decision import decide
from natgas_trader.trading.executor import LegExecutor, execute_intent
from natgas_trader.trading.journal import DATA_QUALITY, EXECUTION_FAILED, CycleJournal
from natgas_trader.trading.models import (
    CycleResult,
    DecisionRecord,
    ExecutionReport,
    Position,
    TradeIntent,
)
from natgas_trader.trading.position import PositionState

logger = logging.getLogger(__name__)
console = Console(stderr=True)


@dataclass
class GatheredReadings:
    """Raw readings for one cycle; None where the source failed."""

    temperature: TemperatureReading | None = None
    storage: StorageReading | None = None
    storm: StormReading | None = None
    failures: dict[SourceKind, str] = field(default_factory=dict)


async def _fetch_source(
    source: SourceKind,
    fetch: Callable[[Settings], Awaitable[RawReading]],
    settings: Settings,
    timeout: float,
) -> RawReading:
    """Run one fetch under the per-source timeout, normalizing its failures."""
    try:
        return await asyncio.wait_for(fetch(settings), timeout)
    except asyncio.TimeoutError as exc:
        raise SourceTimeout(source.value, f"no answer within {timeout:.0f}s") from exc
    except SourceUnavailable:
        raise
    except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
        raise SourceUnavailable(source.value, f"{type(exc).__name__}: {exc}") from exc


async def gather_readings(
    timeout: float | None = None,
    settings: Settings | None = None,
) -> GatheredReadings:
    """Fetch all three sources concurrently with the given settings.

    A failing or slow source degrades to None and is recorded in
    ``failures``; it never blocks the other two.
    """
    settings = settings or get_settings()
    if timeout is None:
        timeout = settings.source_timeout

    fetchers: list[tuple[SourceKind, Callable[[Settings], Awaitable[RawReading]]]] = [
        (SourceKind.TEMPERATURE, fetch_temperature_reading),
        (SourceKind.INVENTORY, fetch_storage_reading),
        (SourceKind.STORM, fetch_storm_reading),
    ]
    console.print("[bold]Fetching temperature, storage and storm data...[/bold]")
    results = await asyncio.gather(
        *(_fetch_source(kind, fetch, settings, timeout) for kind, fetch in fetchers),
        return_exceptions=True,
    )

    gathered = GatheredReadings()
    for (kind, _), result in zip(fetchers, results):
        if isinstance(result, SourceUnavailable):
            gathered.failures[kind] = result.reason
            logger.warning("Source %s degraded: %s", kind.value, result.reason)
            console.print(f"  [yellow]{kind.value}: {result.reason}[/yellow]")
            continue
        if isinstance(result, Exception):
            gathered.failures[kind] = f"{type(result).__name__}: {result}"
            logger.error("Source %s failed unexpectedly", kind.value, exc_info=result)
            console.print(f"  [red]{kind.value}: {result}[/red]")
            continue
        if isinstance(result, BaseException):
            raise result

        if kind is SourceKind.TEMPERATURE:
            gathered.temperature = result
        elif kind is SourceKind.INVENTORY:
            gathered.storage = result
        else:
            gathered.storm = result

    return gathered


def compute_snapshot(
    gathered: GatheredReadings,
    weights: WeightConfig,
    now: datetime | None = None,
) -> SignalSnapshot:
    """Normalize each reading (degrading failures to neutral) and aggregate."""
    signals = {}
    for kind, reading in (
        (SourceKind.TEMPERATURE, gathered.temperature),
        (SourceKind.INVENTORY, gathered.storage),
        (SourceKind.STORM, gathered.storm),
    ):
        if reading is None and kind in gathered.failures:
            signals[kind] = neutral(kind, gathered.failures[kind])
        else:
            signals[kind] = normalize_or_neutral(kind, reading)

    readings: dict[str, object] = {}
    if gathered.temperature is not None:
        readings["temperature"] = asdict(gathered.temperature)
    if gathered.storage is not None:
        readings["inventory"] = asdict(gathered.storage)
    if gathered.storm is not None:
        readings["storm"] = {
            "severity": gathered.storm.severity.value,
            "alert_count": gathered.storm.alert_count,
        }

    temperature = signals[SourceKind.TEMPERATURE]
    inventory = signals[SourceKind.INVENTORY]
    storm = signals[SourceKind.STORM]
    return SignalSnapshot(
        temperature=temperature,
        inventory=inventory,
        storm=storm,
        composite=composite_score(temperature, inventory, storm, weights),
        weights=weights,
        timestamp=now or datetime.now(timezone.utc),
        readings=readings,
    )


def _data_quality_notes(snapshot: SignalSnapshot) -> list[str]:
    return [
        f"{s.source.value}: {s.note}"
        for s in (snapshot.temperature, snapshot.inventory, snapshot.storm)
        if s.degraded
    ]


def evaluate(
    snapshot: SignalSnapshot,
    position: Position,
    settings: Settings,
) -> tuple[TradeIntent, DecisionRecord]:
    """Run the decision engine and build the journaled decision record."""
    intent = decide(
        snapshot.composite,
        position,
        settings.buy_threshold,
        settings.sell_threshold,
        size=settings.position_size,
    )
    symbols = settings.symbols
    decision = DecisionRecord(
        timestamp=snapshot.timestamp,
        composite=snapshot.composite,
        position_before=position,
        action=intent.action,
        target=intent.target,
        legs=[f"{leg.side.value} {leg.position.symbol(symbols)}" for leg in intent.legs],
        confidence=intent.confidence,
        buy_threshold=settings.buy_threshold,
        sell_threshold=settings.sell_threshold,
    )
    return intent, decision


async def _execute_shielded(
    intent: TradeIntent,
    state: PositionState,
    executor: LegExecutor,
    symbols: SymbolPair,
) -> tuple[ExecutionReport, bool]:
    """Execute an intent so that cancellation cannot abandon an in-flight order.

    Returns the report and whether a cancellation arrived meanwhile; the
    caller re-raises it once the outcome is recorded.
    """
    task = asyncio.ensure_future(execute_intent(intent, state, executor, symbols))
    cancelled = False
    while True:
        try:
            report = await asyncio.shield(task)
            return report, cancelled
        except asyncio.CancelledError:
            if task.done() and not task.cancelled():
                return task.result(), True
            cancelled = True
            logger.warning("Shutdown requested with orders in flight; finishing execution first")


async def _journal(action: Awaitable[int]) -> None:
    """Write to the journal; a journal failure never breaks a cycle."""
    try:
        await action
    except (aiosqlite.Error, OSError) as exc:
        logger.error("Journal write failed: %s", exc)


async def run_cycle(
    state: PositionState,
    executor: LegExecutor,
    settings: Settings | None = None,
    journal: CycleJournal | None = None,
    notifier: TelegramNotifier | None = None,
) -> CycleResult:
    """Run one full decision cycle.

    Always produces exactly one snapshot and one decision record, even when
    sources degraded. ExecutionFailed ends the cycle with the position as
    the last confirmed fill left it; InvariantViolation propagates.
    """
    settings = settings or get_settings()
    cycle_id = uuid.uuid4().hex[:12]

    async with state.lock:
        console.rule(f"Trading cycle {cycle_id}")
        logger.info("Starting cycle %s, position %s", cycle_id, state.current().value)

        gathered = await gather_readings(settings.source_timeout, settings)
        snapshot = compute_snapshot(gathered, settings.weights)
        position_before = state.current()
        intent, decision = evaluate(snapshot, position_before, settings)
        data_quality = _data_quality_notes(snapshot)

        logger.info("SIGNAL SNAPSHOT: %s", json.dumps(snapshot_record(snapshot), default=str))
        logger.info("DECISION: %s", json.dumps(decision_record(decision)))
        console.print(
            f"  Composite [bold]{snapshot.composite:+.3f}[/bold] -> "
            f"{intent.action.value} {' -> '.join(decision.legs)}"
        )

        if journal is not None:
            await _journal(journal.log_snapshot(cycle_id, snapshot))
            await _journal(journal.log_decision(cycle_id, decision))
            for note in data_quality:
                source = note.split(":", 1)[0]
                await _journal(journal.log_event(cycle_id, DATA_QUALITY, source, note))

        report: ExecutionReport | None = None
        cancelled = False
        if not intent.is_hold:
            report, cancelled = await _execute_shielded(intent, state, executor, settings.symbols)
            for fill in report.fills:
                logger.info(
                    "TRADE EXECUTED: %s",
                    json.dumps({"cycle_id": cycle_id, "side": fill.side.value, "symbol": fill.symbol,
                                "qty": fill.qty, "avg_price": fill.avg_price, "order_id": fill.order_id}),
                )
                if journal is not None:
                    await _journal(journal.log_fill(cycle_id, fill))
            if report.error:
                console.print(f"  [red]Execution failed: {report.error}[/red]")
                if journal is not None:
                    await _journal(journal.log_event(cycle_id, EXECUTION_FAILED, "execution", report.error))

        result = CycleResult(
            cycle_id=cycle_id,
            snapshot=snapshot,
            decision=decision,
            intent=intent,
            position_after=state.current(),
            report=report,
            data_quality=data_quality,
        )

    if notifier is not None:
        await notifier.notify(result)
    if cancelled:
        raise asyncio.CancelledError()

    logger.info("Cycle %s complete, position %s", cycle_id, result.position_after.value)
    return result


async def preview_cycle(settings: Settings | None = None) -> CycleResult:
    """Score current signals and show the decision from FLAT, trading nothing."""
    settings = settings or get_settings()
    gathered = await gather_readings(settings.source_timeout, settings)
    snapshot = compute_snapshot(gathered, settings.weights)
    intent, decision = evaluate(snapshot, Position.FLAT, settings)
    return CycleResult(
        cycle_id="preview",
        snapshot=snapshot,
        decision=decision,
        intent=intent,
        position_after=Position.FLAT,
        data_quality=_data_quality_notes(snapshot),
    )


async def load_position_state(trader: AlpacaTrader, settings: Settings) -> PositionState:
    """Check the account and derive the startup position from broker holdings."""
    account = await trader.get_account()
    console.print(
        f"Connected to Alpaca: equity ${account.equity:,.2f}, "
        f"buying power ${account.buying_power:,.2f}"
    )
    primary_qty, inverse_qty = await trader.get_held_quantities(settings.symbols)
    state = PositionState.from_holdings(primary_qty, inverse_qty)
    logger.info(
        "Startup position %s (%s=%g, %s=%g)",
        state.current().value, settings.symbol, primary_qty, settings.inverse_symbol, inverse_qty,
    )
    return state


async def run_once(settings: Settings | None = None) -> CycleResult:
    """Connect to the broker and run a single cycle."""
    settings = settings or get_settings()
    require_broker_credentials(settings)
    journal = CycleJournal(settings.db_path)
    notifier = TelegramNotifier() if settings.telegram_enabled else None

    async with AlpacaTrader(settings) as trader:
        state = await load_position_state(trader, settings)
        return await run_cycle(state, trader, settings, journal, notifier)


async def run_continuous(
    interval_hours: float,
    settings: Settings | None = None,
    max_cycles: int | None = None,
) -> None:
    """Run a cycle every ``interval_hours`` until cancelled.

    A cycle that dies on an unexpected error is retried after
    ``retry_delay`` seconds. InvariantViolation stops the loop.
    """
    settings = settings or get_settings()
    require_broker_credentials(settings)
    journal = CycleJournal(settings.db_path)
    notifier = TelegramNotifier() if settings.telegram_enabled else None

    async with AlpacaTrader(settings) as trader:
        state = await load_position_state(trader, settings)
        completed = 0
        while max_cycles is None or completed < max_cycles:
            try:
                await run_cycle(state, trader, settings, journal, notifier)
                delay = interval_hours * 3600
                logger.info("Waiting %.1f hour(s) until next cycle", interval_hours)
            except InvariantViolation:
                raise
            except Exception:
                logger.exception("Trading cycle failed, retrying in %.0fs", settings.retry_delay)
                delay = settings.retry_delay
            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break
            await asyncio.sleep(delay)
