"""NOAA/NWS active alerts client and storm severity reading."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from natgas_trader.common.http import HttpClient
from natgas_trader.config import Settings, get_settings
from natgas_trader.errors import SourceUnavailable
from natgas_trader.signals.models import StormReading, StormSeverity

logger = logging.getLogger(__name__)

# Event names that matter for gas demand or Gulf production
RELEVANT_KEYWORDS = (
    "storm", "winter", "blizzard", "ice", "freeze", "hurricane", "tornado", "severe",
)


@dataclass
class StormAlert:
    """A relevant active NWS alert."""

    event: str
    severity: str
    urgency: str = ""
    area: str = ""


def is_relevant(event: str) -> bool:
    lowered = event.lower()
    return any(keyword in lowered for keyword in RELEVANT_KEYWORDS)


def classify_alert(alert: StormAlert) -> StormSeverity:
    """Map one NWS alert onto the storm severity scale.

    NWS "Extreme" severity trumps the product type; otherwise the product
    type in the event name (Warning > Watch > Advisory) decides.
    """
    if alert.severity.lower() == "extreme":
        return StormSeverity.SEVERE
    event = alert.event.lower()
    if "warning" in event:
        return StormSeverity.WARNING
    if "watch" in event:
        return StormSeverity.WATCH
    return StormSeverity.ADVISORY


def worst_severity(alerts: list[StormAlert]) -> StormSeverity:
    worst = StormSeverity.NONE
    for alert in alerts:
        severity = classify_alert(alert)
        if severity.rank > worst.rank:
            worst = severity
    return worst


def parse_alerts(payload: dict) -> list[StormAlert]:
    """Keep only alerts whose event name is storm-related."""
    alerts: list[StormAlert] = []
    for feature in payload.get("features", []):
        props = feature.get("properties") or {}
        event = props.get("event") or ""
        if not is_relevant(event):
            continue
        alerts.append(
            StormAlert(
                event=event,
                severity=props.get("severity") or "",
                urgency=props.get("urgency") or "",
                area=props.get("areaDesc") or "",
            )
        )
    return alerts


async def fetch_storm_alerts(settings: Settings | None = None) -> list[StormAlert]:
    settings = settings or get_settings()
    headers = {"User-Agent": settings.nws_user_agent, "Accept": "application/geo+json"}

    async with HttpClient(
        base_url=settings.noaa_api_url, headers=headers, timeout=settings.http_timeout,
    ) as client:
        try:
            resp = await client.get(
                "/alerts/active",
                params={"status": "actual", "message_type": "alert"},
            )
        except httpx.HTTPStatusError as exc:
            raise SourceUnavailable("storm", f"NWS alerts HTTP {exc.response.status_code}") from exc
        except httpx.TimeoutException as exc:
            raise SourceUnavailable("storm", "NWS alerts timeout") from exc

        if not resp.text.strip():
            logger.warning("NWS alerts API returned an empty body")
            return []
        try:
            payload = resp.json()
        except ValueError as exc:
            raise SourceUnavailable("storm", f"NWS alerts response not JSON: {exc}") from exc

    alerts = parse_alerts(payload)
    logger.info(
        "NWS: %d relevant alert(s) out of %d", len(alerts), len(payload.get("features", [])),
    )
    return alerts


async def fetch_storm_reading(settings: Settings | None = None) -> StormReading:
    """Worst relevant active alert, or NONE when there are no alerts."""
    alerts = await fetch_storm_alerts(settings)
    severity = worst_severity(alerts)
    for alert in alerts:
        logger.debug("Alert %s (%s) -> %s", alert.event, alert.severity, classify_alert(alert).value)
    logger.info("Storm severity: %s", severity.value)
    return StormReading(severity=severity, alert_count=len(alerts))
