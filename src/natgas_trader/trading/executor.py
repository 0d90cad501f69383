"""Run a trade intent's legs in order against the execution collaborator."""

from __future__ import annotations

import logging
from typing import Protocol

from natgas_trader.common.types import SymbolPair
from natgas_trader.errors import ExecutionFailed
from natgas_trader.trading.models import ExecutionReport, Fill, TradeIntent, TradeLeg
from natgas_trader.trading.position import PositionState

logger = logging.getLogger(__name__)


class LegExecutor(Protocol):
    """Anything that can turn a leg into a confirmed fill (AlpacaTrader in production)."""

    async def execute_leg(
        self, leg: TradeLeg, symbols: SymbolPair, position_size: float,
    ) -> Fill:
        ...


async def execute_intent(
    intent: TradeIntent,
    state: PositionState,
    executor: LegExecutor,
    symbols: SymbolPair,
) -> ExecutionReport:
    """Execute each leg, applying every confirmed fill to ``state``.

    Stops at the first failed leg: if the close of a flip fails, the open
    is never attempted, so exposure is never doubled. A failed leg leaves
    the position exactly as the last confirmed fill left it.

    InvariantViolation from ``state.apply`` is not caught.
    """
    report = ExecutionReport(intent=intent)
    if intent.is_hold:
        return report

    for idx, leg in enumerate(intent.legs):
        symbol = leg.position.symbol(symbols)
        logger.info("Leg %d/%d: %s %s", idx + 1, len(intent.legs), leg.side.value, symbol)
        try:
            fill = await executor.execute_leg(leg, symbols, intent.size)
        except ExecutionFailed as exc:
            logger.error("Execution failed: %s", exc)
            report.error = str(exc)
            report.skipped_legs = list(intent.legs[idx + 1:])
            if report.skipped_legs:
                logger.warning(
                    "Skipping %d remaining leg(s) after failure", len(report.skipped_legs),
                )
            return report

        state.apply(fill)
        report.fills.append(fill)

    return report
