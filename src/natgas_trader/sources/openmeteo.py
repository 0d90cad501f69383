"""Open-Meteo forecast client and heating-degree-day reading."""

from __future__ import annotations

import asyncio
import logging

import httpx
import numpy as np
from numpy.typing import NDArray

from natgas_trader.common.http import HttpClient
from natgas_trader.common.types import parse_region
from natgas_trader.config import Settings, get_settings
from natgas_trader.errors import SourceUnavailable
from natgas_trader.signals.models import TemperatureReading

logger = logging.getLogger(__name__)


def heating_degree_days(
    temp_max: NDArray[np.float64] | list[float],
    temp_min: NDArray[np.float64] | list[float],
    base_temp: float = 65.0,
) -> NDArray[np.float64]:
    """Daily HDD: how far the day's mean temperature sits below ``base_temp``."""
    highs = np.asarray(temp_max, dtype=np.float64)
    lows = np.asarray(temp_min, dtype=np.float64)
    n = min(len(highs), len(lows))
    avg = (highs[:n] + lows[:n]) / 2.0
    return np.maximum(base_temp - avg, 0.0)


async def fetch_daily_temperatures(
    client: HttpClient, url: str, lat: float, lon: float, days: int,
) -> tuple[list[float], list[float]]:
    """Fetch daily max/min °F for ``days`` days ahead."""
    resp = await client.get(
        url,
        params={
            "latitude": lat,
            "longitude": lon,
            "daily": "temperature_2m_max,temperature_2m_min",
            "temperature_unit": "fahrenheit",
            "timezone": "America/New_York",
            "forecast_days": days,
        },
    )
    daily = resp.json().get("daily")
    if daily is None:
        raise ValueError(f"Open-Meteo response missing 'daily' key for ({lat}, {lon})")
    highs = [v for v in daily["temperature_2m_max"] if v is not None]
    lows = [v for v in daily["temperature_2m_min"] if v is not None]
    return highs, lows


async def _region_hdd(
    client: HttpClient, url: str, region: str, days: int, base_temp: float,
) -> float | None:
    lat, lon = parse_region(region)
    try:
        highs, lows = await fetch_daily_temperatures(client, url, lat, lon, days)
    except httpx.HTTPStatusError as exc:
        logger.warning("Open-Meteo HTTP %d for %s", exc.response.status_code, region)
        return None
    except httpx.TimeoutException:
        logger.warning("Open-Meteo timeout for %s", region)
        return None
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning("Open-Meteo parse error for %s: %s", region, exc)
        return None

    if not highs or not lows:
        logger.warning("Open-Meteo returned no temperatures for %s", region)
        return None
    hdd = float(heating_degree_days(highs, lows, base_temp).sum())
    logger.info("Region %s: HDD = %.2f over %d day(s)", region, hdd, min(len(highs), len(lows)))
    return hdd


async def fetch_temperature_reading(settings: Settings | None = None) -> TemperatureReading:
    """Average forecast HDD across the configured regions.

    Regions that fail are skipped; if none answer the source is unavailable.
    """
    settings = settings or get_settings()
    regions = settings.weather_regions

    async with HttpClient(timeout=settings.http_timeout) as client:
        results = await asyncio.gather(*(
            _region_hdd(
                client, settings.weather_api_url, r,
                settings.forecast_days, settings.hdd_base_temp_f,
            )
            for r in regions
        ))

    valid = [hdd for hdd in results if hdd is not None]
    if not valid:
        raise SourceUnavailable("temperature", f"no weather data from {len(regions)} region(s)")

    avg_hdd = float(np.mean(valid))
    logger.info(
        "Average HDD %.2f from %d/%d region(s), baseline %.2f",
        avg_hdd, len(valid), len(regions), settings.historical_average_hdd,
    )
    return TemperatureReading(
        observed_hdd=avg_hdd,
        historical_average_hdd=settings.historical_average_hdd,
    )
