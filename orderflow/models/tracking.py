"""Order tracking models."""

from dataclasses import dataclass, field
from datetime import datetime

from orderflow.models.common import TradingPlatform, utc_now
from orderflow.models.order import Order, OrderStatus


@dataclass(frozen=True)
class TrackingOptions:
    """Per-subscription overrides. None means: use the tracker config."""

    polling_interval_ms: int | None = None
    timeout_ms: int | None = None
    stop_on_terminal: bool | None = None
    user_address: str | None = None
    notify: bool | None = None  # None: notify when user_address is set


@dataclass(frozen=True)
class OrderStatusUpdate:
    subscription_id: str
    order_id: str
    platform: TradingPlatform
    previous_status: OrderStatus
    new_status: OrderStatus
    order: Order
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class SubscriptionInfo:
    """Read-only snapshot of a tracking subscription."""

    id: str
    order_id: str
    platform: TradingPlatform
    polling_interval_ms: int
    timeout_ms: int | None
    stop_on_terminal: bool
    is_active: bool
    last_status: OrderStatus | None
    user_address: str | None
    notify: bool
    created_at: datetime
