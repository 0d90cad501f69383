"""Weighted combination of normalized signals."""

from __future__ import annotations

from natgas_trader.signals.models import NormalizedSignal, WeightConfig


def composite_score(
    temperature: NormalizedSignal | float,
    inventory: NormalizedSignal | float,
    storm: NormalizedSignal | float,
    weights: WeightConfig,
) -> float:
    """Weighted sum of the three signals.

    Not divided by the weight total and not clamped; thresholds are set
    with the raw weighted range in mind.
    """
    t = temperature.value if isinstance(temperature, NormalizedSignal) else temperature
    i = inventory.value if isinstance(inventory, NormalizedSignal) else inventory
    s = storm.value if isinstance(storm, NormalizedSignal) else storm
    return (
        weights.temperature_weight * t
        + weights.inventory_weight * i
        + weights.storm_weight * s
    )
