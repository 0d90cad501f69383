"""Signal data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SourceKind(Enum):
    """Which external data source a reading came from."""

    TEMPERATURE = "temperature"
    INVENTORY = "inventory"
    STORM = "storm"


class StormSeverity(Enum):
    """Storm alert severity, ordered from calmest to worst."""

    NONE = "none"
    ADVISORY = "advisory"
    WATCH = "watch"
    WARNING = "warning"
    SEVERE = "severe"

    @property
    def rank(self) -> int:
        return list(StormSeverity).index(self)


@dataclass(frozen=True)
class TemperatureReading:
    """Heating degree days, observed (forecast) vs. historical average."""

    observed_hdd: float
    historical_average_hdd: float | None

    kind = SourceKind.TEMPERATURE


@dataclass(frozen=True)
class StorageReading:
    """Working gas in storage (Bcf), current vs. historical average."""

    current_bcf: float
    historical_average_bcf: float | None

    kind = SourceKind.INVENTORY


@dataclass(frozen=True)
class StormReading:
    """Worst relevant storm alert severity currently active."""

    severity: StormSeverity = StormSeverity.NONE
    alert_count: int = 0

    kind = SourceKind.STORM


RawReading = TemperatureReading | StorageReading | StormReading


@dataclass(frozen=True)
class NormalizedSignal:
    """A reading mapped into [-1, 1]. Positive is bullish for natural gas.

    Attributes:
        source: which data source produced it
        value: signal strength in [-1, 1]
        degraded: True if the source failed and value is a neutral stand-in
        note: why the signal degraded, if it did
    """

    source: SourceKind
    value: float
    degraded: bool = False
    note: str = ""


@dataclass(frozen=True)
class WeightConfig:
    """Relative contribution of each source to the composite score."""

    temperature_weight: float
    inventory_weight: float
    storm_weight: float

    def scaled(self, k: float) -> WeightConfig:
        return WeightConfig(
            temperature_weight=self.temperature_weight * k,
            inventory_weight=self.inventory_weight * k,
            storm_weight=self.storm_weight * k,
        )


@dataclass
class SignalSnapshot:
    """All three normalized signals plus the composite for one cycle."""

    temperature: NormalizedSignal
    inventory: NormalizedSignal
    storm: NormalizedSignal
    composite: float
    weights: WeightConfig
    timestamp: datetime
    readings: dict[str, object] = field(default_factory=dict)

    @property
    def degraded_sources(self) -> list[str]:
        return [
            s.source.value
            for s in (self.temperature, self.inventory, self.storm)
            if s.degraded
        ]
