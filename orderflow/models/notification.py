"""Trade notification models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from orderflow.models.common import TradingPlatform, utc_now
from orderflow.models.order import Order


class NotificationType(StrEnum):
    ORDER_FILLED = "ORDER_FILLED"
    ORDER_PARTIALLY_FILLED = "ORDER_PARTIALLY_FILLED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_REJECTED = "ORDER_REJECTED"
    ORDER_EXPIRED = "ORDER_EXPIRED"
    POSITION_CLOSED = "POSITION_CLOSED"
    PNL_ALERT = "PNL_ALERT"


class DeliveryMethod(StrEnum):
    WEBHOOK = "WEBHOOK"
    EMAIL = "EMAIL"
    IN_APP = "IN_APP"
    NONE = "NONE"


class DeliveryStatus(StrEnum):
    PENDING = "PENDING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class Notification:
    id: str
    type: NotificationType
    user_address: str
    platform: TradingPlatform
    order: Order
    message: str
    delivery_method: DeliveryMethod
    delivery_status: DeliveryStatus
    timestamp: datetime = field(default_factory=utc_now)
    webhook_url: str | None = None
    delivery_error: str | None = None


@dataclass(frozen=True)
class NotificationPreferences:
    notify_on_fill: bool = True
    notify_on_partial_fill: bool = False
    notify_on_cancel: bool = False
    notify_on_reject: bool = True
    webhook_url: str | None = None
    email: str | None = None
