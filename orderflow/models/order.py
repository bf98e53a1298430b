"""Unified cross-platform order models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import TypeAlias

from orderflow.models.common import TradingPlatform, utc_now

Outcome: TypeAlias = str | int  # "YES" / "NO" or an outcome index


class OrderStatus(StrEnum):
    PENDING = "PENDING"
    OPEN = "OPEN"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    REJECTED = "REJECTED"


TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset({
    OrderStatus.FILLED,
    OrderStatus.CANCELLED,
    OrderStatus.EXPIRED,
    OrderStatus.REJECTED,
})


def is_terminal(status: OrderStatus) -> bool:
    return status in TERMINAL_STATUSES


class OrderSide(StrEnum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(StrEnum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    GTC = "GTC"
    GTD = "GTD"
    FOK = "FOK"
    IOC = "IOC"


@dataclass(frozen=True)
class ExecutionRequest:
    platform: TradingPlatform
    user_address: str
    market_id: str
    outcome: Outcome
    side: OrderSide
    size: float
    price: float  # probability, 0-1
    order_type: OrderType = OrderType.LIMIT
    client_order_id: str | None = None
    track_status: bool = False
    user_id: str | None = None
    max_retries: int | None = None  # overrides the router default
    webhook_url: str | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True)
class Order:
    id: str
    platform: TradingPlatform
    market_id: str
    outcome: Outcome
    side: OrderSide
    order_type: OrderType
    status: OrderStatus
    size: float
    filled_size: float
    remaining_size: float
    price: float
    average_price: float | None = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    client_order_id: str | None = None
    expires_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "platform": self.platform.value,
            "market_id": self.market_id,
            "outcome": self.outcome,
            "side": self.side.value,
            "order_type": self.order_type.value,
            "status": self.status.value,
            "size": self.size,
            "filled_size": self.filled_size,
            "remaining_size": self.remaining_size,
            "price": self.price,
            "average_price": self.average_price,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "client_order_id": self.client_order_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        return cls(
            id=data["id"],
            platform=TradingPlatform(data["platform"]),
            market_id=data["market_id"],
            outcome=data["outcome"],
            side=OrderSide(data["side"]),
            order_type=OrderType(data["order_type"]),
            status=OrderStatus(data["status"]),
            size=data["size"],
            filled_size=data["filled_size"],
            remaining_size=data["remaining_size"],
            price=data["price"],
            average_price=data.get("average_price"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            client_order_id=data.get("client_order_id"),
        )
