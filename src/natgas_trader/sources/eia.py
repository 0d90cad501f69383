"""EIA weekly natural gas storage client."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import httpx
import numpy as np

from natgas_trader.common.http import HttpClient
from natgas_trader.config import Settings, get_settings
from natgas_trader.errors import SourceUnavailable
from natgas_trader.signals.models import StorageReading

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 365


def _parse_period(s: str) -> datetime | None:
    """EIA periods are dates ("2025-01-10"); tolerate full ISO timestamps too."""
    if not s:
        return None
    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_value(v: object) -> float | None:
    if isinstance(v, (int, float)):
        return float(v)
    if isinstance(v, str):
        try:
            return float(v)
        except ValueError:
            return None
    return None


def parse_storage_series(payload: dict, since: datetime) -> list[tuple[datetime, float]]:
    """Extract (period, Bcf) points on or after ``since``, oldest first."""
    points: list[tuple[datetime, float]] = []
    for row in payload.get("response", {}).get("data", []):
        period = _parse_period(str(row.get("period", "")))
        value = _parse_value(row.get("value"))
        if period is None or value is None:
            continue
        if period >= since:
            points.append((period, value))
    points.sort(key=lambda p: p[0])
    return points


async def fetch_storage_series(settings: Settings | None = None) -> list[tuple[datetime, float]]:
    """Fetch the last year of weekly storage values."""
    settings = settings or get_settings()
    if not settings.eia_api_key:
        raise SourceUnavailable("inventory", "EIA API key not provided")

    end = datetime.now(timezone.utc)
    start = end - timedelta(days=LOOKBACK_DAYS)
    params = {
        "api_key": settings.eia_api_key,
        "frequency": "weekly",
        "data[]": "value",
        "start": start.strftime("%Y-%m-%d"),
        "end": end.strftime("%Y-%m-%d"),
        "sort[0][column]": "period",
        "sort[0][direction]": "asc",
        "length": 1000,
    }
    logger.info("Fetching EIA storage from %s to %s", params["start"], params["end"])

    async with HttpClient(timeout=settings.http_timeout) as client:
        try:
            resp = await client.get(settings.eia_api_url, params=params)
        except httpx.HTTPStatusError as exc:
            raise SourceUnavailable("inventory", f"EIA HTTP {exc.response.status_code}") from exc
        except httpx.TimeoutException as exc:
            raise SourceUnavailable("inventory", "EIA timeout") from exc
        try:
            payload = resp.json()
        except ValueError as exc:
            raise SourceUnavailable("inventory", f"EIA response not JSON: {exc}") from exc

    points = parse_storage_series(payload, start)
    logger.info("Parsed %d EIA storage point(s)", len(points))
    return points


async def fetch_storage_reading(settings: Settings | None = None) -> StorageReading:
    """Latest storage vs. the mean of the trailing year."""
    points = await fetch_storage_series(settings)
    if len(points) < 2:
        raise SourceUnavailable("inventory", f"insufficient storage data ({len(points)} point(s))")

    values = np.array([v for _, v in points], dtype=np.float64)
    current = float(values[-1])
    average = float(values.mean())
    logger.info("Current storage %.0f Bcf, trailing average %.0f Bcf", current, average)
    return StorageReading(current_bcf=current, historical_average_bcf=average)
