"""Domain exceptions.

Only ConfigInvalid and InvariantViolation are fatal. Everything else is
isolated to a single source or a single cycle.
"""

from __future__ import annotations


class NatGasTraderError(Exception):
    """Base class for all natgas-trader errors."""


class InvalidBaseline(NatGasTraderError):
    """A reading's historical baseline is zero, missing, or not finite."""


class SourceUnavailable(NatGasTraderError):
    """A data source failed to produce a reading this cycle."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class SourceTimeout(SourceUnavailable):
    """A data source did not answer within the per-source timeout."""


class ConfigInvalid(NatGasTraderError):
    """Configuration failed validation at startup."""


class ExecutionFailed(NatGasTraderError):
    """The broker rejected or did not confirm an order."""

    def __init__(self, symbol: str, side: str, reason: str) -> None:
        super().__init__(f"{side} {symbol}: {reason}")
        self.symbol = symbol
        self.side = side
        self.reason = reason


class InvariantViolation(NatGasTraderError):
    """Position state was asked to do something that can only be a logic bug."""
