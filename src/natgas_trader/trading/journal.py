"""SQLite journal of per-cycle snapshots, decisions, fills and events."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from natgas_trader.config import get_settings
from natgas_trader.signals.models import SignalSnapshot
from natgas_trader.trading.models import DecisionRecord, Fill

_CREATE_SNAPSHOTS = """
CREATE TABLE IF NOT EXISTS snapshots (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cycle_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    temperature_signal REAL NOT NULL,
    inventory_signal REAL NOT NULL,
    storm_signal REAL NOT NULL,
    composite REAL NOT NULL,
    weights TEXT,
    degraded TEXT,
    readings TEXT
);
"""

_CREATE_DECISIONS = """
CREATE TABLE IF NOT EXISTS decisions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cycle_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    composite REAL NOT NULL,
    position_before TEXT NOT NULL,
    action TEXT NOT NULL,
    target TEXT NOT NULL,
    legs TEXT,
    confidence REAL,
    buy_threshold REAL,
    sell_threshold REAL
);
"""

_CREATE_FILLS = """
CREATE TABLE IF NOT EXISTS fills (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cycle_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    side TEXT NOT NULL,
    symbol TEXT NOT NULL,
    qty REAL NOT NULL,
    avg_price REAL,
    order_id TEXT,
    status TEXT
);
"""

_CREATE_EVENTS = """
CREATE TABLE IF NOT EXISTS events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cycle_id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    category TEXT NOT NULL,  -- data_quality | execution_failed
    source TEXT,
    message TEXT
);
"""

_CREATE_INDEX = """
CREATE INDEX IF NOT EXISTS idx_decisions_cycle_id ON decisions(cycle_id);
"""

DATA_QUALITY = "data_quality"
EXECUTION_FAILED = "execution_failed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CycleJournal:
    """Append-only record of what each cycle saw and did.

    Never read back into a decision; it exists for the operator.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or get_settings().db_path
        self._ready = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def _ensure_db(self) -> None:
        """Create database and tables if they don't exist."""
        if self._ready:
            return
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for ddl in (_CREATE_SNAPSHOTS, _CREATE_DECISIONS, _CREATE_FILLS, _CREATE_EVENTS, _CREATE_INDEX):
                await db.execute(ddl)
            await db.commit()
        self._ready = True

    async def _insert(self, sql: str, params: tuple) -> int:
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(sql, params)
            await db.commit()
            return cursor.lastrowid

    async def log_snapshot(self, cycle_id: str, snapshot: SignalSnapshot) -> int:
        """Log the cycle's normalized signals. Returns the row ID."""
        weights = snapshot.weights
        return await self._insert(
            """INSERT INTO snapshots
               (cycle_id, timestamp, temperature_signal, inventory_signal,
                storm_signal, composite, weights, degraded, readings)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                cycle_id,
                snapshot.timestamp.isoformat(),
                snapshot.temperature.value,
                snapshot.inventory.value,
                snapshot.storm.value,
                snapshot.composite,
                json.dumps({
                    "temperature": weights.temperature_weight,
                    "inventory": weights.inventory_weight,
                    "storm": weights.storm_weight,
                }),
                ",".join(snapshot.degraded_sources),
                json.dumps(snapshot.readings, default=str),
            ),
        )

    async def log_decision(self, cycle_id: str, decision: DecisionRecord) -> int:
        return await self._insert(
            """INSERT INTO decisions
               (cycle_id, timestamp, composite, position_before, action, target,
                legs, confidence, buy_threshold, sell_threshold)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                cycle_id,
                decision.timestamp.isoformat(),
                decision.composite,
                decision.position_before.value,
                decision.action.value,
                decision.target.value,
                ",".join(decision.legs),
                decision.confidence,
                decision.buy_threshold,
                decision.sell_threshold,
            ),
        )

    async def log_fill(self, cycle_id: str, fill: Fill) -> int:
        return await self._insert(
            """INSERT INTO fills
               (cycle_id, timestamp, side, symbol, qty, avg_price, order_id, status)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                cycle_id, _now(), fill.side.value, fill.symbol, fill.qty,
                fill.avg_price, fill.order_id, fill.status,
            ),
        )

    async def log_event(self, cycle_id: str, category: str, source: str, message: str) -> int:
        return await self._insert(
            """INSERT INTO events (cycle_id, timestamp, category, source, message)
               VALUES (?, ?, ?, ?, ?)""",
            (cycle_id, _now(), category, source, message),
        )

    async def recent_decisions(self, limit: int = 10) -> list[dict]:
        """Most recent decisions joined with their snapshot, newest first."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                """SELECT d.cycle_id, d.timestamp, d.composite, d.position_before,
                          d.action, d.target, d.legs, d.confidence,
                          s.temperature_signal, s.inventory_signal, s.storm_signal,
                          s.degraded
                   FROM decisions d
                   LEFT JOIN snapshots s ON s.cycle_id = d.cycle_id
                   ORDER BY d.id DESC LIMIT ?""",
                (limit,),
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def events_for_cycle(self, cycle_id: str) -> list[dict]:
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT category, source, message FROM events WHERE cycle_id = ? ORDER BY id",
                (cycle_id,),
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_summary(self) -> dict:
        """Counts across the whole journal."""
        await self._ensure_db()
        async with aiosqlite.connect(str(self._db_path)) as db:
            async def scalar(sql: str, params: tuple = ()) -> int:
                cursor = await db.execute(sql, params)
                row = await cursor.fetchone()
                return row[0] or 0

            cycles = await scalar("SELECT COUNT(*) FROM decisions")
            buys = await scalar("SELECT COUNT(*) FROM decisions WHERE action = 'BUY'")
            fills = await scalar("SELECT COUNT(*) FROM fills")
            failures = await scalar(
                "SELECT COUNT(*) FROM events WHERE category = ?", (EXECUTION_FAILED,),
            )
            degraded = await scalar(
                "SELECT COUNT(*) FROM events WHERE category = ?", (DATA_QUALITY,),
            )
            cursor = await db.execute("SELECT AVG(composite) FROM snapshots")
            avg_row = await cursor.fetchone()

        return {
            "cycles": cycles,
            "buys": buys,
            "holds": cycles - buys,
            "fills": fills,
            "execution_failures": failures,
            "data_quality_events": degraded,
            "avg_composite": avg_row[0] if avg_row else None,
        }
