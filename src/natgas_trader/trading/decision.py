"""Threshold decision engine with a hysteresis dead zone."""

from __future__ import annotations

from natgas_trader.trading.models import Action, Position, Side, TradeIntent, TradeLeg

MAX_CONFIDENCE = 2.0


def compute_confidence(composite: float, threshold: float) -> float:
    """How far past the threshold the score landed, capped at 2x.

    A zero threshold has no scale to compare against, so any crossing
    counts as 1.0.
    """
    if abs(threshold) < 1e-12:
        return 1.0
    return min(abs(composite) / abs(threshold), MAX_CONFIDENCE)


def _move_to(target: Position, current: Position) -> tuple[TradeLeg, ...]:
    if current is target:
        return ()
    if current is Position.FLAT:
        return (TradeLeg(Side.BUY, target),)
    # Both positions can never coexist: close before opening.
    return (TradeLeg(Side.SELL, current), TradeLeg(Side.BUY, target))


def decide(
    composite: float,
    position: Position,
    buy_threshold: float,
    sell_threshold: float,
    *,
    size: float = 0.0,
) -> TradeIntent:
    """Turn a composite score and the current position into a trade intent.

    Rules, in order:
      1. composite >= buy_threshold  -> end up LONG_PRIMARY
      2. composite <= sell_threshold -> end up LONG_INVERSE
      3. otherwise                   -> HOLD, whatever is held

    Already holding the target is a HOLD. Assumes buy_threshold >=
    sell_threshold; that is enforced when settings load.
    """
    if composite >= buy_threshold:
        target, threshold = Position.LONG_PRIMARY, buy_threshold
    elif composite <= sell_threshold:
        target, threshold = Position.LONG_INVERSE, sell_threshold
    else:
        return TradeIntent(action=Action.HOLD, target=position, composite=composite)

    legs = _move_to(target, position)
    if not legs:
        return TradeIntent(action=Action.HOLD, target=position, composite=composite)

    return TradeIntent(
        action=Action.BUY,
        target=target,
        legs=legs,
        size=size,
        composite=composite,
        confidence=compute_confidence(composite, threshold),
    )
