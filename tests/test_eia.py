"""Tests for the EIA weekly storage source."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from natgas_trader.errors import SourceUnavailable
from natgas_trader.sources.eia import fetch_storage_reading, parse_storage_series


def _payload(rows):
    return {"response": {"data": rows}}


def _recent(days_ago: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).strftime("%Y-%m-%d")


def _mock_client(get):
    instance = AsyncMock()
    instance.get = get
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    return instance


class TestParseStorageSeries:
    def test_sorted_oldest_first(self):
        since = datetime(2025, 1, 1, tzinfo=timezone.utc)
        points = parse_storage_series(
            _payload([
                {"period": "2025-02-07", "value": "2100"},
                {"period": "2025-01-31", "value": 2300},
            ]),
            since,
        )
        assert [v for _, v in points] == [2300.0, 2100.0]

    def test_skips_bad_rows_and_old_rows(self):
        since = datetime(2025, 1, 1, tzinfo=timezone.utc)
        points = parse_storage_series(
            _payload([
                {"period": "2024-12-27", "value": "3000"},
                {"period": "garbage", "value": "1"},
                {"period": "2025-01-10", "value": None},
                {"period": "2025-01-17", "value": "n/a"},
                {"period": "2025-01-24", "value": "2500"},
            ]),
            since,
        )
        assert points == [(datetime(2025, 1, 24, tzinfo=timezone.utc), 2500.0)]

    def test_empty_payload(self):
        assert parse_storage_series({}, datetime(2025, 1, 1, tzinfo=timezone.utc)) == []


@pytest.mark.asyncio
async def test_reading_is_latest_vs_mean(settings):
    resp = MagicMock()
    resp.json.return_value = _payload([
        {"period": _recent(21), "value": "3000"},
        {"period": _recent(14), "value": "2000"},
        {"period": _recent(7), "value": "1000"},
    ])

    with (
        patch("natgas_trader.sources.eia.get_settings", return_value=settings),
        patch("natgas_trader.sources.eia.HttpClient", return_value=_mock_client(AsyncMock(return_value=resp))),
    ):
        reading = await fetch_storage_reading()

    assert reading.current_bcf == 1000.0
    assert reading.historical_average_bcf == pytest.approx(2000.0)


@pytest.mark.asyncio
async def test_missing_api_key(settings):
    settings = settings.model_copy(update={"eia_api_key": ""})
    with (
        patch("natgas_trader.sources.eia.get_settings", return_value=settings),
        pytest.raises(SourceUnavailable, match="key"),
    ):
        await fetch_storage_reading()


@pytest.mark.asyncio
async def test_http_error_is_unavailable(settings):
    request = httpx.Request("GET", settings.eia_api_url)
    error = httpx.HTTPStatusError("forbidden", request=request, response=httpx.Response(403, request=request))

    with (
        patch("natgas_trader.sources.eia.get_settings", return_value=settings),
        patch("natgas_trader.sources.eia.HttpClient", return_value=_mock_client(AsyncMock(side_effect=error))),
        pytest.raises(SourceUnavailable, match="403"),
    ):
        await fetch_storage_reading()


@pytest.mark.asyncio
async def test_too_few_points(settings):
    resp = MagicMock()
    resp.json.return_value = _payload([{"period": _recent(7), "value": "1800"}])

    with (
        patch("natgas_trader.sources.eia.get_settings", return_value=settings),
        patch("natgas_trader.sources.eia.HttpClient", return_value=_mock_client(AsyncMock(return_value=resp))),
        pytest.raises(SourceUnavailable, match="insufficient"),
    ):
        await fetch_storage_reading()


@pytest.mark.asyncio
async def test_explicit_settings_used(settings):
    settings = settings.model_copy(update={"eia_api_key": "cycle-key"})
    resp = MagicMock()
    resp.json.return_value = _payload([
        {"period": _recent(14), "value": "2000"},
        {"period": _recent(7), "value": "1800"},
    ])
    get = AsyncMock(return_value=resp)

    with (
        patch("natgas_trader.sources.eia.get_settings", side_effect=AssertionError("read env")),
        patch("natgas_trader.sources.eia.HttpClient", return_value=_mock_client(get)),
    ):
        reading = await fetch_storage_reading(settings)

    assert reading.current_bcf == 1800.0
    assert get.call_args.kwargs["params"]["api_key"] == "cycle-key"
