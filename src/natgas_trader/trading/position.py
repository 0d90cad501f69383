"""The one piece of state that survives between cycles."""

from __future__ import annotations

import asyncio
import logging

from natgas_trader.errors import InvariantViolation
from natgas_trader.trading.models import Fill, Position, Side

logger = logging.getLogger(__name__)


class PositionState:
    """Holds the current Position and enforces mutual exclusivity.

    Only broker-confirmed fills move it. The cycle orchestrator holds
    ``lock`` for a whole cycle so cycles never interleave.
    """

    def __init__(self, position: Position = Position.FLAT) -> None:
        self._position = position
        self.lock = asyncio.Lock()

    @classmethod
    def from_holdings(cls, primary_qty: float, inverse_qty: float) -> PositionState:
        """Build the startup state from brokerage quantities."""
        if primary_qty > 0 and inverse_qty > 0:
            raise InvariantViolation(
                f"Broker reports both legs held (primary={primary_qty}, inverse={inverse_qty})"
            )
        if primary_qty > 0:
            return cls(Position.LONG_PRIMARY)
        if inverse_qty > 0:
            return cls(Position.LONG_INVERSE)
        return cls(Position.FLAT)

    def current(self) -> Position:
        return self._position

    def apply(self, fill: Fill) -> Position:
        """Apply a confirmed fill and return the new position."""
        if fill.position is Position.FLAT:
            raise InvariantViolation(f"Fill for {fill.symbol} has no position to move")

        before = self._position
        if fill.side is Side.BUY:
            if before is fill.position.opposite:
                raise InvariantViolation(
                    f"Buy of {fill.position.value} confirmed while holding "
                    f"{before.value} with no intervening sell"
                )
            self._position = fill.position
        else:
            if before is not fill.position:
                raise InvariantViolation(
                    f"Sell of {fill.position.value} confirmed while holding {before.value}"
                )
            self._position = Position.FLAT

        logger.info(
            "Position %s -> %s (%s %s x%g)",
            before.value, self._position.value, fill.side.value, fill.symbol, fill.qty,
        )
        return self._position

    def __repr__(self) -> str:
        return f"PositionState({self._position.value})"
