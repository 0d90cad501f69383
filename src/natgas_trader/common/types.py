"""Shared type aliases and small value types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

# Latitude/longitude pair
LatLon: TypeAlias = tuple[float, float]

# JSON-like dict
JsonDict: TypeAlias = dict[str, object]


@dataclass(frozen=True)
class SymbolPair:
    """The two mutually exclusive ETFs: primary is long gas, inverse is short."""

    primary: str
    inverse: str


def parse_region(region: str) -> LatLon:
    """Parse a ``"lat,lon"`` region string."""
    parts = region.split(",")
    if len(parts) != 2:
        raise ValueError(f"Invalid region {region!r}, expected 'lat,lon'")
    lat, lon = float(parts[0]), float(parts[1])
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        raise ValueError(f"Region {region!r} is out of range")
    return lat, lon


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
