"""Execution results and audit-log models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from orderflow.models.common import TradingPlatform, utc_now
from orderflow.models.order import Order


class ExecutionErrorCode(StrEnum):
    INVALID_REQUEST = "INVALID_REQUEST"
    PLATFORM_UNAVAILABLE = "PLATFORM_UNAVAILABLE"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    MARKET_NOT_FOUND = "MARKET_NOT_FOUND"
    PRICE_MOVED = "PRICE_MOVED"
    ORDER_REJECTED = "ORDER_REJECTED"
    TIMEOUT = "TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ExecutionEventType(StrEnum):
    ORDER_SUBMITTED = "ORDER_SUBMITTED"
    ORDER_ACCEPTED = "ORDER_ACCEPTED"
    ORDER_REJECTED = "ORDER_REJECTED"
    ORDER_FILLED = "ORDER_FILLED"
    ORDER_PARTIALLY_FILLED = "ORDER_PARTIALLY_FILLED"
    ORDER_CANCELLED = "ORDER_CANCELLED"
    ORDER_EXPIRED = "ORDER_EXPIRED"
    ORDER_STATUS_CHANGED = "ORDER_STATUS_CHANGED"
    EXECUTION_STARTED = "EXECUTION_STARTED"
    EXECUTION_COMPLETED = "EXECUTION_COMPLETED"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    RETRY_ATTEMPTED = "RETRY_ATTEMPTED"
    NOTIFICATION_SENT = "NOTIFICATION_SENT"
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"


@dataclass(frozen=True)
class ExecutionResult:
    success: bool
    execution_id: str
    platform: TradingPlatform
    order: Order | None = None
    error: str | None = None
    error_code: ExecutionErrorCode | None = None
    retry_count: int = 0
    subscription_id: str | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class CancelResult:
    success: bool
    execution_id: str
    platform: TradingPlatform
    order_id: str
    error: str | None = None
    error_code: ExecutionErrorCode | None = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ExecutionLogEntry:
    id: str
    execution_id: str
    event_type: ExecutionEventType
    platform: TradingPlatform
    user_address: str
    market_id: str
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None
    order_id: str | None = None
    error: str | None = None
    duration_ms: float | None = None


@dataclass
class LogQuery:
    """Filter for audit-log queries. Set fields are AND-combined."""

    execution_id: str | None = None
    user_address: str | None = None
    user_id: str | None = None
    platform: TradingPlatform | None = None
    event_type: ExecutionEventType | None = None
    order_id: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    limit: int = 100
    offset: int = 0

    def matches(self, entry: ExecutionLogEntry) -> bool:
        if self.execution_id and entry.execution_id != self.execution_id:
            return False
        if self.user_address and entry.user_address.lower() != self.user_address.lower():
            return False
        if self.user_id and entry.user_id != self.user_id:
            return False
        if self.platform and entry.platform != self.platform:
            return False
        if self.event_type and entry.event_type != self.event_type:
            return False
        if self.order_id and entry.order_id != self.order_id:
            return False
        if self.start and entry.timestamp < self.start:
            return False
        if self.end and entry.timestamp > self.end:
            return False
        return True


@dataclass(frozen=True)
class LogStats:
    total_entries: int
    entries_by_type: dict[str, int]
    entries_by_platform: dict[str, int]
