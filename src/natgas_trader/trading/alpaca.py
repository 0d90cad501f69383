"""Alpaca REST client: account, positions, prices and market orders."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from natgas_trader.common.http import HttpClient
from natgas_trader.common.types import JsonDict, SymbolPair
from natgas_trader.config import Settings, get_settings
from natgas_trader.errors import ExecutionFailed
from natgas_trader.trading.models import Fill, Side, TradeLeg

logger = logging.getLogger(__name__)

_TERMINAL_STATUSES = {"filled", "canceled", "expired", "rejected", "done_for_day", "replaced"}


def _to_float(value: object, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    return float(value)  # type: ignore[arg-type]


@dataclass
class AlpacaAccount:
    """Alpaca account balances."""

    status: str
    equity: float
    buying_power: float
    cash: float
    portfolio_value: float

    @classmethod
    def from_api(cls, data: dict) -> AlpacaAccount:
        return cls(
            status=data.get("status", ""),
            equity=_to_float(data.get("equity")),
            buying_power=_to_float(data.get("buying_power")),
            cash=_to_float(data.get("cash")),
            portfolio_value=_to_float(data.get("portfolio_value")),
        )


@dataclass
class AlpacaPosition:
    """An open Alpaca position."""

    symbol: str
    qty: float
    market_value: float
    avg_entry_price: float
    unrealized_pl: float
    unrealized_plpc: float

    @property
    def current_price(self) -> float:
        return self.market_value / self.qty if self.qty else 0.0

    @classmethod
    def from_api(cls, data: dict) -> AlpacaPosition:
        return cls(
            symbol=data.get("symbol", ""),
            qty=_to_float(data.get("qty")),
            market_value=_to_float(data.get("market_value")),
            avg_entry_price=_to_float(data.get("avg_entry_price")),
            unrealized_pl=_to_float(data.get("unrealized_pl")),
            unrealized_plpc=_to_float(data.get("unrealized_plpc")),
        )


@dataclass
class AlpacaOrder:
    """An Alpaca order as returned by /v2/orders."""

    order_id: str
    symbol: str
    qty: float
    side: str
    status: str
    filled_qty: float = 0.0
    filled_avg_price: float | None = None
    submitted_at: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL_STATUSES

    @classmethod
    def from_api(cls, data: dict) -> AlpacaOrder:
        avg = data.get("filled_avg_price")
        return cls(
            order_id=data.get("id", ""),
            symbol=data.get("symbol", ""),
            qty=_to_float(data.get("qty")),
            side=str(data.get("side", "")).lower(),
            status=str(data.get("status", "")).lower(),
            filled_qty=_to_float(data.get("filled_qty")),
            filled_avg_price=_to_float(avg) if avg not in (None, "") else None,
            submitted_at=data.get("submitted_at") or "",
        )


def _is_confirmed(order: AlpacaOrder, side: Side) -> bool:
    """Whether an order moved the position.

    A sell must fully fill: a partial sell leaves shares behind and the
    position is still open. A buy that filled at all means we now hold it.
    """
    if order.status == "filled":
        return True
    if side is Side.BUY:
        return order.filled_qty > 0
    return False


class AlpacaTrader:
    """Execution collaborator backed by the Alpaca trading and data APIs."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        headers = {
            "APCA-API-KEY-ID": self._settings.alpaca_api_key,
            "APCA-API-SECRET-KEY": self._settings.alpaca_secret_key,
        }
        self._trading = HttpClient(
            base_url=self._settings.alpaca_base_url, headers=headers, timeout=self._settings.http_timeout,
        )
        self._data = HttpClient(
            base_url=self._settings.alpaca_data_url, headers=headers, timeout=self._settings.http_timeout,
        )

    async def close(self) -> None:
        await self._trading.close()
        await self._data.close()

    async def __aenter__(self) -> AlpacaTrader:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # --- account and positions ---

    async def get_account(self) -> AlpacaAccount:
        resp = await self._trading.get("/v2/account")
        return AlpacaAccount.from_api(resp.json())

    async def get_position(self, symbol: str) -> AlpacaPosition | None:
        """Current position in ``symbol``, or None when nothing is held."""
        try:
            resp = await self._trading.get(f"/v2/positions/{symbol}")
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        return AlpacaPosition.from_api(resp.json())

    async def get_positions(self) -> list[AlpacaPosition]:
        resp = await self._trading.get("/v2/positions")
        return [AlpacaPosition.from_api(p) for p in resp.json()]

    async def get_held_quantities(self, symbols: SymbolPair) -> tuple[float, float]:
        """(primary_qty, inverse_qty) currently held at the broker."""
        primary, inverse = await asyncio.gather(
            self.get_position(symbols.primary),
            self.get_position(symbols.inverse),
        )
        return (primary.qty if primary else 0.0, inverse.qty if inverse else 0.0)

    async def get_latest_price(self, symbol: str) -> float:
        """Latest trade price: bar close, then quote, then position value / qty."""
        try:
            resp = await self._data.get(f"/v2/stocks/{symbol}/bars/latest")
            bar = resp.json().get("bar") or {}
            if bar.get("c"):
                return float(bar["c"])
        except httpx.HTTPError as exc:
            logger.info("Latest bar for %s unavailable (%s), trying quote", symbol, exc)

        try:
            resp = await self._data.get(f"/v2/stocks/{symbol}/quotes/latest")
            quote = resp.json().get("quote") or {}
            for key in ("bp", "ap"):
                if quote.get(key):
                    return float(quote[key])
        except httpx.HTTPError as exc:
            logger.info("Latest quote for %s unavailable (%s)", symbol, exc)

        position = await self.get_position(symbol)
        if position is not None and position.qty:
            logger.info("Using position-based price for %s: $%.2f", symbol, position.current_price)
            return position.current_price

        raise ValueError(f"No price available for {symbol} from bars, quotes, or positions")

    # --- orders ---

    async def get_open_orders(self, symbol: str | None = None) -> list[AlpacaOrder]:
        params: dict = {"status": "open"}
        if symbol:
            params["symbols"] = symbol
        resp = await self._trading.get("/v2/orders", params=params)
        return [AlpacaOrder.from_api(o) for o in resp.json()]

    async def get_order(self, order_id: str) -> AlpacaOrder:
        resp = await self._trading.get(f"/v2/orders/{order_id}")
        return AlpacaOrder.from_api(resp.json())

    async def cancel_order(self, order_id: str) -> None:
        await self._trading.delete(f"/v2/orders/{order_id}")

    async def cancel_opposite_orders(self, symbol: str, side: Side) -> int:
        """Cancel open orders on ``symbol`` that would wash-trade against ``side``."""
        orders = await self.get_open_orders(symbol)
        opposite = Side.SELL.value if side is Side.BUY else Side.BUY.value

        cancelled = 0
        for order in orders:
            if order.side != opposite:
                continue
            logger.info("Cancelling opposite %s order %s on %s", order.side, order.order_id, symbol)
            try:
                await self.cancel_order(order.order_id)
                cancelled += 1
            except httpx.HTTPError as exc:
                logger.warning("Failed to cancel order %s: %s", order.order_id, exc)

        if cancelled:
            await asyncio.sleep(1.0)
        return cancelled

    async def _submit(self, side: Side, qty: float, symbol: str) -> AlpacaOrder:
        resp = await self._trading.post(
            "/v2/orders",
            json={
                "symbol": symbol,
                "qty": str(qty),
                "side": side.value,
                "type": "market",
                "time_in_force": "day",
            },
        )
        return AlpacaOrder.from_api(resp.json())

    async def place_market_order(self, side: Side, qty: float, symbol: str) -> AlpacaOrder:
        """Submit a day market order, retrying once after a wash-trade reject."""
        try:
            await self.cancel_opposite_orders(symbol, side)
        except httpx.HTTPError as exc:
            logger.warning("Could not check open orders on %s: %s", symbol, exc)

        logger.info("Placing %s order for %g shares of %s", side.value, qty, symbol)
        try:
            return await self._submit(side, qty, symbol)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code != 403 or "wash trade" not in exc.response.text.lower():
                raise
            logger.warning("Wash trade reject on %s, cancelling opposite orders and retrying", symbol)
            await self.cancel_opposite_orders(symbol, side)
            await asyncio.sleep(self._settings.order_fill_wait)
            return await self._submit(side, qty, symbol)

    async def wait_for_fill(self, order: AlpacaOrder) -> AlpacaOrder:
        """Poll an order until it is terminal; cancel it if it never gets there.

        The order is always resolved before returning so nothing is left
        working at the broker that the position state does not know about.
        """
        if not order.order_id:
            return order
        for _ in range(self._settings.order_fill_polls):
            if order.is_terminal:
                return order
            await asyncio.sleep(self._settings.order_fill_wait)
            order = await self.get_order(order.order_id)
        if order.is_terminal:
            return order

        logger.warning("Order %s still %s, cancelling", order.order_id, order.status)
        try:
            await self.cancel_order(order.order_id)
        except httpx.HTTPStatusError as exc:
            # 422 means it reached a terminal state in the meantime
            if exc.response.status_code != 422:
                raise
        return await self.get_order(order.order_id)

    async def execute_leg(self, leg: TradeLeg, symbols: SymbolPair, position_size: float) -> Fill:
        """Execute one leg and return the confirmed fill.

        Raises ExecutionFailed for anything short of a confirmed fill.
        """
        symbol = leg.position.symbol(symbols)
        side = leg.side
        try:
            if side is Side.SELL:
                held = await self.get_position(symbol)
                if held is None or held.qty <= 0:
                    raise ExecutionFailed(symbol, side.value, "no broker position to sell")
                qty = abs(held.qty)
            else:
                price = await self.get_latest_price(symbol)
                if price <= 0:
                    raise ExecutionFailed(symbol, side.value, f"bad price {price}")
                qty = max(int(position_size / price), 1)
                logger.info(
                    "%s price $%.2f, position size $%.2f -> %d shares",
                    symbol, price, position_size, qty,
                )

            order = await self.place_market_order(side, qty, symbol)
            order = await self.wait_for_fill(order)
        except httpx.HTTPStatusError as exc:
            raise ExecutionFailed(
                symbol, side.value, f"HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExecutionFailed(symbol, side.value, f"{type(exc).__name__}: {exc}") from exc
        except (ValueError, KeyError, TypeError) as exc:
            raise ExecutionFailed(symbol, side.value, str(exc)) from exc

        if not _is_confirmed(order, side):
            raise ExecutionFailed(symbol, side.value, f"order {order.order_id} ended {order.status}")

        return Fill(
            side=side,
            position=leg.position,
            symbol=symbol,
            qty=order.filled_qty or order.qty,
            avg_price=order.filled_avg_price,
            order_id=order.order_id,
            status=order.status,
        )

    async def get_portfolio_summary(self) -> JsonDict:
        positions, account = await asyncio.gather(self.get_positions(), self.get_account())
        return {
            "total_value": account.portfolio_value,
            "equity": account.equity,
            "cash": account.cash,
            "buying_power": account.buying_power,
            "positions": [
                {
                    "symbol": p.symbol,
                    "qty": p.qty,
                    "current_price": p.current_price,
                    "market_value": p.market_value,
                    "unrealized_pl": p.unrealized_pl,
                    "unrealized_plpc": p.unrealized_plpc,
                }
                for p in positions
            ],
        }
