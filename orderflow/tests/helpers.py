"""Builders and waits shared by the test suites."""

import asyncio

from orderflow.models.common import TradingPlatform
from orderflow.models.order import (
    ExecutionRequest,
    Order,
    OrderSide,
    OrderStatus,
    OrderType,
)

USER = "0xAbC0000000000000000000000000000000000001"


def make_order(
    order_id: str = "order-1",
    status: OrderStatus = OrderStatus.OPEN,
    filled_size: float = 0.0,
    size: float = 10.0,
    price: float = 0.42,
    **overrides,
) -> Order:
    fields = dict(
        id=order_id,
        platform=TradingPlatform.POLYMARKET,
        market_id="market-1",
        outcome="YES",
        side=OrderSide.BUY,
        order_type=OrderType.LIMIT,
        status=status,
        size=size,
        filled_size=filled_size,
        remaining_size=size - filled_size,
        price=price,
    )
    fields.update(overrides)
    return Order(**fields)


def make_request(**overrides) -> ExecutionRequest:
    fields = dict(
        platform=TradingPlatform.POLYMARKET,
        user_address=USER,
        market_id="market-1",
        outcome="YES",
        side=OrderSide.BUY,
        size=10.0,
        price=0.42,
    )
    fields.update(overrides)
    return ExecutionRequest(**fields)


async def wait_until(predicate, timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)
