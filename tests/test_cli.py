"""Tests for CLI commands with mocked dependencies."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from typer.testing import CliRunner

from natgas_trader.cli import app
from natgas_trader.errors import ConfigInvalid, InvariantViolation
from natgas_trader.trading.models import (
    Action,
    CycleResult,
    DecisionRecord,
    Position,
    TradeIntent,
)

runner = CliRunner()


@pytest.fixture
def preview_result(sample_snapshot):
    return CycleResult(
        cycle_id="preview",
        snapshot=sample_snapshot,
        decision=DecisionRecord(
            timestamp=sample_snapshot.timestamp, composite=0.64,
            position_before=Position.FLAT, action=Action.BUY, target=Position.LONG_PRIMARY,
            legs=["buy BOIL"], confidence=2.0, buy_threshold=0.3, sell_threshold=-0.3,
        ),
        intent=TradeIntent(action=Action.BUY, target=Position.LONG_PRIMARY),
        position_after=Position.FLAT,
        data_quality=["storm: NWS alerts timeout"],
    )


class TestSignalsCommand:
    def test_json_output(self, preview_result):
        async def mock_preview():
            return preview_result

        with patch("natgas_trader.pipeline.preview_cycle", side_effect=mock_preview):
            result = runner.invoke(app, ["signals", "--output", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["decision"]["legs"] == ["buy BOIL"]

    def test_table_output(self, preview_result):
        async def mock_preview():
            return preview_result

        with patch("natgas_trader.pipeline.preview_cycle", side_effect=mock_preview):
            result = runner.invoke(app, ["signals"])

        assert result.exit_code == 0
        assert "Natural Gas Signals" in result.output


class TestOnceCommand:
    def test_runs_cycle(self, preview_result):
        async def mock_once():
            return preview_result

        with patch("natgas_trader.pipeline.run_once", side_effect=mock_once):
            result = runner.invoke(app, ["once"])

        assert result.exit_code == 0
        assert "Decision" in result.output

    def test_missing_credentials_exit_1(self):
        with patch("natgas_trader.pipeline.run_once", AsyncMock(side_effect=ConfigInvalid("Alpaca API credentials not found"))):
            result = runner.invoke(app, ["once"])

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_invariant_violation_exit_2(self):
        with patch("natgas_trader.pipeline.run_once", AsyncMock(side_effect=InvariantViolation("both held"))):
            result = runner.invoke(app, ["once"])

        assert result.exit_code == 2
        assert "invariant" in result.output


class TestRunCommand:
    def test_passes_interval(self):
        with patch("natgas_trader.pipeline.run_continuous", AsyncMock()) as mock_run:
            result = runner.invoke(app, ["run", "--interval-hours", "6"])

        assert result.exit_code == 0
        mock_run.assert_awaited_once_with(6.0)

    def test_rejects_zero_interval(self):
        result = runner.invoke(app, ["run", "--interval-hours", "0"])
        assert result.exit_code != 0


class TestStatusCommand:
    def test_shows_portfolio(self, settings):
        trader = AsyncMock()
        trader.__aenter__ = AsyncMock(return_value=trader)
        trader.__aexit__ = AsyncMock(return_value=False)
        trader.get_portfolio_summary.return_value = {
            "total_value": 10000.0, "equity": 10000.0, "cash": 5000.0,
            "buying_power": 8000.0, "positions": [],
        }

        with (
            patch("natgas_trader.config.get_settings", return_value=settings),
            patch("natgas_trader.trading.alpaca.AlpacaTrader", return_value=trader),
        ):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "$10,000.00" in result.output

    def test_no_credentials(self, settings):
        settings = settings.model_copy(update={"alpaca_api_key": ""})
        with patch("natgas_trader.config.get_settings", return_value=settings):
            result = runner.invoke(app, ["status"])

        assert result.exit_code == 1


class TestHistoryCommand:
    def test_shows_summary(self, settings):
        with patch("natgas_trader.trading.journal.get_settings", return_value=settings):
            result = runner.invoke(app, ["history", "--limit", "5"])

        assert result.exit_code == 0
        assert "Cycle Journal Summary" in result.output
