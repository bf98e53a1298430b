"""Paper trading adapter: in-memory order book with simulated fills."""

import asyncio
import dataclasses
import logging
from typing import Any

from orderflow.models.common import TradingPlatform, new_id, utc_now
from orderflow.models.order import (
    ExecutionRequest,
    Order,
    OrderStatus,
    OrderType,
)

logger = logging.getLogger(__name__)

# Order types that fill (or die) on arrival instead of resting on the book
IMMEDIATE_TYPES = frozenset({OrderType.MARKET, OrderType.FOK, OrderType.IOC})


class PaperAdapter:
    """Simulates a trading platform without touching the network.

    Resting orders stay OPEN until `fill`, `expire` or `cancel_order` moves
    them on, which makes the adapter handy for driving the status tracker.
    """

    def __init__(
        self,
        platform: TradingPlatform = TradingPlatform.POLYMARKET,
        latency_ms: int = 0,
        ready: bool = True,
    ):
        self.platform = platform
        self.latency_ms = latency_ms
        self.ready = ready
        self._orders: dict[str, Order] = {}

    async def _simulate_latency(self) -> None:
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

    async def is_ready(self) -> bool:
        return self.ready

    async def place_order(self, request: ExecutionRequest) -> Order:
        await self._simulate_latency()
        now = utc_now()
        immediate = request.order_type in IMMEDIATE_TYPES
        order = Order(
            id=f"paper-{new_id()}",
            platform=self.platform,
            market_id=request.market_id,
            outcome=request.outcome,
            side=request.side,
            order_type=request.order_type,
            status=OrderStatus.FILLED if immediate else OrderStatus.OPEN,
            size=request.size,
            filled_size=request.size if immediate else 0.0,
            remaining_size=0.0 if immediate else request.size,
            price=request.price,
            average_price=request.price if immediate else None,
            created_at=now,
            updated_at=now,
            client_order_id=request.client_order_id,
            expires_at=request.expires_at,
        )
        self._orders[order.id] = order
        logger.info(
            "PAPER: %s %s %.2f @ %.4f on %s -> %s",
            request.side,
            request.outcome,
            request.size,
            request.price,
            request.market_id,
            order.status,
        )
        return order

    async def cancel_order(self, order_id: str) -> bool:
        await self._simulate_latency()
        order = self._orders.get(order_id)
        if order is None or order.is_terminal:
            return False
        self._update(order, status=OrderStatus.CANCELLED)
        return True

    async def get_order(self, order_id: str) -> Order | None:
        await self._simulate_latency()
        return self._orders.get(order_id)

    def fill(self, order_id: str, size: float | None = None, price: float | None = None) -> Order:
        """Fill `size` more units (everything remaining by default)."""
        order = self._orders[order_id]
        qty = order.remaining_size if size is None else min(size, order.remaining_size)
        fill_price = order.price if price is None else price
        filled = order.filled_size + qty
        prev_cost = (order.average_price or 0.0) * order.filled_size
        average = (prev_cost + fill_price * qty) / filled if filled > 0 else None
        remaining = order.size - filled
        status = OrderStatus.FILLED if remaining <= 0 else OrderStatus.PARTIALLY_FILLED
        return self._update(
            order,
            status=status,
            filled_size=filled,
            remaining_size=max(remaining, 0.0),
            average_price=average,
        )

    def expire(self, order_id: str) -> Order:
        return self._update(self._orders[order_id], status=OrderStatus.EXPIRED)

    def reject(self, order_id: str) -> Order:
        return self._update(self._orders[order_id], status=OrderStatus.REJECTED)

    def _update(self, order: Order, **changes: Any) -> Order:
        updated = dataclasses.replace(order, updated_at=utc_now(), **changes)
        self._orders[order.id] = updated
        return updated


def create_paper_adapter(config: dict[str, Any]) -> PaperAdapter:
    """Registry factory: builds a PaperAdapter from a plain config dict."""
    return PaperAdapter(
        platform=TradingPlatform(config.get("platform", TradingPlatform.POLYMARKET)),
        latency_ms=int(config.get("latency_ms", 0)),
        ready=bool(config.get("ready", True)),
    )
