"""Tests for the Open-Meteo heating-degree-day source."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import numpy as np
import pytest

from natgas_trader.errors import SourceUnavailable
from natgas_trader.sources.openmeteo import fetch_temperature_reading, heating_degree_days


def _make_mock_response(json_data):
    resp = MagicMock()
    resp.json.return_value = json_data
    resp.raise_for_status = MagicMock()
    return resp


def _daily(highs, lows):
    return {"daily": {"temperature_2m_max": highs, "temperature_2m_min": lows}}


def _mock_client(get):
    instance = AsyncMock()
    instance.get = get
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    return instance


class TestHeatingDegreeDays:
    def test_cold_days(self):
        hdd = heating_degree_days([40.0, 50.0], [20.0, 30.0])
        np.testing.assert_allclose(hdd, [35.0, 25.0])

    def test_warm_days_are_zero(self):
        hdd = heating_degree_days([90.0], [70.0])
        assert hdd.tolist() == [0.0]

    def test_custom_base(self):
        assert heating_degree_days([60.0], [40.0], base_temp=55.0).tolist() == [5.0]

    def test_mismatched_lengths_truncate(self):
        assert len(heating_degree_days([40.0, 41.0, 42.0], [20.0])) == 1


@pytest.mark.asyncio
async def test_fetch_averages_regions(settings):
    settings = settings.model_copy(
        update={"weather_regions": ["40.7,-74.0", "41.9,-87.6"], "forecast_days": 2},
    )
    responses = iter([
        _make_mock_response(_daily([40.0, 40.0], [20.0, 20.0])),  # 35 + 35 = 70
        _make_mock_response(_daily([60.0, 60.0], [40.0, 40.0])),  # 15 + 15 = 30
    ])
    calls = []

    async def mock_get(url, params=None):
        calls.append(params)
        return next(responses)

    with (
        patch("natgas_trader.sources.openmeteo.get_settings", return_value=settings),
        patch("natgas_trader.sources.openmeteo.HttpClient", return_value=_mock_client(mock_get)),
    ):
        reading = await fetch_temperature_reading()

    assert reading.observed_hdd == pytest.approx(50.0)
    assert reading.historical_average_hdd == settings.historical_average_hdd
    assert calls[0]["temperature_unit"] == "fahrenheit"
    assert calls[0]["forecast_days"] == 2


@pytest.mark.asyncio
async def test_failed_region_is_skipped(settings):
    settings = settings.model_copy(update={"weather_regions": ["40.7,-74.0", "41.9,-87.6"]})

    async def mock_get(url, params=None):
        if params["latitude"] == 40.7:
            request = httpx.Request("GET", url)
            raise httpx.HTTPStatusError(
                "boom", request=request, response=httpx.Response(503, request=request),
            )
        return _make_mock_response(_daily([45.0], [25.0]))

    with (
        patch("natgas_trader.sources.openmeteo.get_settings", return_value=settings),
        patch("natgas_trader.sources.openmeteo.HttpClient", return_value=_mock_client(mock_get)),
    ):
        reading = await fetch_temperature_reading()

    assert reading.observed_hdd == pytest.approx(30.0)


@pytest.mark.asyncio
async def test_all_regions_fail(settings):
    async def mock_get(url, params=None):
        raise httpx.ReadTimeout("timed out")

    with (
        patch("natgas_trader.sources.openmeteo.get_settings", return_value=settings),
        patch("natgas_trader.sources.openmeteo.HttpClient", return_value=_mock_client(mock_get)),
        pytest.raises(SourceUnavailable) as excinfo,
    ):
        await fetch_temperature_reading()

    assert excinfo.value.source == "temperature"


@pytest.mark.asyncio
async def test_missing_daily_key_is_unavailable(settings):
    settings = settings.model_copy(update={"weather_regions": ["40.7,-74.0"]})

    async def mock_get(url, params=None):
        return _make_mock_response({"error": True})

    with (
        patch("natgas_trader.sources.openmeteo.get_settings", return_value=settings),
        patch("natgas_trader.sources.openmeteo.HttpClient", return_value=_mock_client(mock_get)),
        pytest.raises(SourceUnavailable),
    ):
        await fetch_temperature_reading()


@pytest.mark.asyncio
async def test_explicit_settings_used(settings):
    settings = settings.model_copy(
        update={"weather_regions": ["40.7,-74.0"], "historical_average_hdd": 40.0, "http_timeout": 7.0},
    )

    async def mock_get(url, params=None):
        return _make_mock_response(_daily([45.0], [25.0]))

    with (
        patch("natgas_trader.sources.openmeteo.get_settings", side_effect=AssertionError("read env")),
        patch("natgas_trader.sources.openmeteo.HttpClient", return_value=_mock_client(mock_get)) as MockClient,
    ):
        reading = await fetch_temperature_reading(settings)

    assert reading.historical_average_hdd == 40.0
    assert MockClient.call_args.kwargs["timeout"] == 7.0
