"""Trading data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from natgas_trader.common.types import SymbolPair
from natgas_trader.signals.models import SignalSnapshot


class Position(Enum):
    """Which of the two mutually exclusive ETFs is held, if any."""

    FLAT = "flat"
    LONG_PRIMARY = "long_primary"
    LONG_INVERSE = "long_inverse"

    @property
    def opposite(self) -> Position:
        if self is Position.LONG_PRIMARY:
            return Position.LONG_INVERSE
        if self is Position.LONG_INVERSE:
            return Position.LONG_PRIMARY
        return Position.FLAT

    def symbol(self, symbols: SymbolPair) -> str:
        if self is Position.LONG_PRIMARY:
            return symbols.primary
        if self is Position.LONG_INVERSE:
            return symbols.inverse
        return ""


class Action(Enum):
    BUY = "BUY"
    HOLD = "HOLD"


class Side(Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass(frozen=True)
class TradeLeg:
    """One order: buy into or sell out of a position."""

    side: Side
    position: Position


@dataclass(frozen=True)
class TradeIntent:
    """What the decision engine wants done this cycle.

    Attributes:
        action: BUY (open or flip into target) or HOLD
        target: position the intent ends in if every leg fills
        legs: ordered orders; a flip is SELL(current) then BUY(target)
        size: dollar amount for the BUY leg
        composite: composite score the decision was made on
        confidence: how far past the threshold the score is, capped at 2.0
    """

    action: Action
    target: Position
    legs: tuple[TradeLeg, ...] = ()
    size: float = 0.0
    composite: float = 0.0
    confidence: float = 0.0

    @property
    def is_hold(self) -> bool:
        return self.action is Action.HOLD

    @property
    def is_flip(self) -> bool:
        return len(self.legs) == 2


@dataclass(frozen=True)
class Fill:
    """A broker-confirmed execution of one leg."""

    side: Side
    position: Position
    symbol: str
    qty: float
    avg_price: float | None = None
    order_id: str = ""
    status: str = "filled"


@dataclass
class ExecutionReport:
    """Outcome of running an intent's legs against the broker."""

    intent: TradeIntent
    fills: list[Fill] = field(default_factory=list)
    error: str | None = None
    skipped_legs: list[TradeLeg] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class DecisionRecord:
    """One decision per cycle, as journaled."""

    timestamp: datetime
    composite: float
    position_before: Position
    action: Action
    target: Position
    legs: list[str]
    confidence: float
    buy_threshold: float
    sell_threshold: float


@dataclass
class CycleResult:
    """Everything one cycle saw, decided and did."""

    cycle_id: str
    snapshot: SignalSnapshot
    decision: DecisionRecord
    intent: TradeIntent
    position_after: Position
    report: ExecutionReport | None = None
    data_quality: list[str] = field(default_factory=list)

    @property
    def traded(self) -> bool:
        return self.report is not None and bool(self.report.fills)

    @property
    def execution_failed(self) -> bool:
        return self.report is not None and not self.report.succeeded
