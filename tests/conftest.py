"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from natgas_trader.common.types import SymbolPair
from natgas_trader.config import Settings
from natgas_trader.errors import ExecutionFailed
from natgas_trader.signals.models import (
    NormalizedSignal,
    SignalSnapshot,
    SourceKind,
    StorageReading,
    StormReading,
    StormSeverity,
    TemperatureReading,
    WeightConfig,
)
from natgas_trader.trading.models import Fill, Position, Side, TradeLeg


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and any config.env on disk."""
    return Settings(
        _env_file=None,
        alpaca_api_key="test-key",
        alpaca_secret_key="test-secret",
        eia_api_key="test-eia",
        order_fill_wait=0.0,
        retry_delay=0.0,
        source_timeout=5.0,
        db_path=tmp_path / "journal.db",
    )


@pytest.fixture
def symbols():
    return SymbolPair(primary="BOIL", inverse="KOLD")


@pytest.fixture
def weights():
    return WeightConfig(temperature_weight=0.5, inventory_weight=0.4, storm_weight=0.1)


@pytest.fixture
def cold_reading():
    """45 HDD against a 25 HDD baseline: temperature signal 0.8."""
    return TemperatureReading(observed_hdd=45.0, historical_average_hdd=25.0)


@pytest.fixture
def tight_storage():
    """800 Bcf against a 2000 Bcf average: inventory signal 0.6."""
    return StorageReading(current_bcf=800.0, historical_average_bcf=2000.0)


@pytest.fixture
def calm_storm():
    return StormReading(severity=StormSeverity.NONE, alert_count=0)


@pytest.fixture
def sample_snapshot(now, weights):
    """Composite 0.64: bullish enough to buy the primary ETF."""
    return SignalSnapshot(
        temperature=NormalizedSignal(SourceKind.TEMPERATURE, 0.8),
        inventory=NormalizedSignal(SourceKind.INVENTORY, 0.6),
        storm=NormalizedSignal(SourceKind.STORM, 0.0, degraded=True, note="NWS alerts timeout"),
        composite=0.64,
        weights=weights,
        timestamp=now,
        readings={"temperature": {"observed_hdd": 45.0, "historical_average_hdd": 25.0}},
    )


class FakeExecutor:
    """Stands in for the broker: fills every leg unless told to fail it."""

    def __init__(self, fail_on: set[tuple[Side, Position]] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.calls: list[tuple[Side, str, float]] = []

    async def execute_leg(self, leg: TradeLeg, symbols: SymbolPair, position_size: float) -> Fill:
        symbol = leg.position.symbol(symbols)
        self.calls.append((leg.side, symbol, position_size))
        if (leg.side, leg.position) in self.fail_on:
            raise ExecutionFailed(symbol, leg.side.value, "order ended rejected")
        return Fill(
            side=leg.side,
            position=leg.position,
            symbol=symbol,
            qty=40.0,
            avg_price=25.0,
            order_id=f"order-{len(self.calls)}",
        )


@pytest.fixture
def fake_executor():
    """Factory for FakeExecutor instances."""
    return FakeExecutor
