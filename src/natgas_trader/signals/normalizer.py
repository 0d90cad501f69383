"""Map raw readings into bounded [-1, 1] signals."""

from __future__ import annotations

import logging
import math

from natgas_trader.common.types import clamp
from natgas_trader.errors import InvalidBaseline
from natgas_trader.signals.models import (
    NormalizedSignal,
    RawReading,
    SourceKind,
    StorageReading,
    StormReading,
    StormSeverity,
    TemperatureReading,
)

logger = logging.getLogger(__name__)

STORM_SIGNAL: dict[StormSeverity, float] = {
    StormSeverity.NONE: 0.0,
    StormSeverity.ADVISORY: 0.25,
    StormSeverity.WATCH: 0.5,
    StormSeverity.WARNING: 0.75,
    StormSeverity.SEVERE: 1.0,
}


def _check_baseline(source: SourceKind, baseline: float | None) -> float:
    if baseline is None or not math.isfinite(baseline) or baseline == 0.0:
        raise InvalidBaseline(f"{source.value} baseline is {baseline!r}")
    return baseline


def _relative_deviation(source: SourceKind, numerator: float, baseline: float | None) -> float:
    base = _check_baseline(source, baseline)
    if not math.isfinite(numerator):
        raise InvalidBaseline(f"{source.value} reading is not finite: {numerator!r}")
    return clamp(numerator / base)


def normalize_temperature(reading: TemperatureReading) -> float:
    """Colder than average (more HDD) is bullish: more gas burned for heat."""
    base = reading.historical_average_hdd
    return _relative_deviation(
        SourceKind.TEMPERATURE,
        reading.observed_hdd - (base if base is not None else 0.0),
        base,
    )


def normalize_inventory(reading: StorageReading) -> float:
    """Storage below average is bullish: tighter supply."""
    base = reading.historical_average_bcf
    return _relative_deviation(
        SourceKind.INVENTORY,
        (base if base is not None else 0.0) - reading.current_bcf,
        base,
    )


def normalize_storm(reading: StormReading) -> float:
    """Storms only ever add bullish pressure."""
    return STORM_SIGNAL[reading.severity]


def normalize(reading: RawReading) -> NormalizedSignal:
    """Normalize any raw reading. Raises InvalidBaseline on a bad baseline."""
    if isinstance(reading, TemperatureReading):
        value = normalize_temperature(reading)
    elif isinstance(reading, StorageReading):
        value = normalize_inventory(reading)
    elif isinstance(reading, StormReading):
        value = normalize_storm(reading)
    else:
        raise TypeError(f"Unsupported reading type: {type(reading).__name__}")
    return NormalizedSignal(source=reading.kind, value=value)


def neutral(source: SourceKind, note: str) -> NormalizedSignal:
    return NormalizedSignal(source=source, value=0.0, degraded=True, note=note)


def normalize_or_neutral(source: SourceKind, reading: RawReading | None) -> NormalizedSignal:
    """Normalize, degrading to a neutral 0.0 signal instead of failing.

    A missing reading (the fetch failed) or an invalid baseline both produce
    a degraded signal so one bad source never blocks the decision.
    """
    if reading is None:
        return neutral(source, "source unavailable")
    if reading.kind is not source:
        raise ValueError(f"{type(reading).__name__} is a {reading.kind.value} reading, not {source.value}")
    try:
        return normalize(reading)
    except InvalidBaseline as exc:
        logger.warning("Invalid baseline for %s, using neutral signal: %s", source.value, exc)
        return neutral(source, f"invalid baseline: {exc}")
