"""Pydantic v2 configuration schema with strict validation."""

from enum import StrEnum

from pydantic import BaseModel, Field

from orderflow.models.common import TradingPlatform
from orderflow.models.order import OrderType


class ConsoleLogLevel(StrEnum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class RouterConfig(BaseModel):
    model_config = {"extra": "forbid"}

    default_max_retries: int = Field(default=3, ge=0, le=20)
    retry_delay_ms: int = Field(default=1000, ge=0)
    request_timeout_ms: int = Field(default=30_000, gt=0)
    enable_logging: bool = True
    enable_tracking: bool = True
    enable_notifications: bool = True


class TrackerConfig(BaseModel):
    model_config = {"extra": "forbid"}

    default_polling_interval_ms: int = Field(default=2000, gt=0)
    default_timeout_ms: int | None = Field(default=3_600_000, gt=0)  # 1 hour
    max_subscriptions: int = Field(default=100, ge=1)


class LoggerConfig(BaseModel):
    model_config = {"extra": "forbid"}

    max_entries: int = Field(default=10_000, ge=1)
    enable_console: bool = False
    console_log_level: ConsoleLogLevel = ConsoleLogLevel.INFO
    enable_persistence: bool = False


class PreferencesConfig(BaseModel):
    model_config = {"extra": "forbid"}

    notify_on_fill: bool = True
    notify_on_partial_fill: bool = False
    notify_on_cancel: bool = False
    notify_on_reject: bool = True


class NotifierConfig(BaseModel):
    model_config = {"extra": "forbid"}

    enable_webhooks: bool = True
    enable_email: bool = False
    webhook_timeout_ms: int = Field(default=10_000, gt=0)
    default_preferences: PreferencesConfig = PreferencesConfig()


class PlatformOrderConfig(BaseModel):
    """Order constraints for one platform. Prices are probabilities."""

    model_config = {"extra": "forbid", "frozen": True}

    supported_order_types: list[OrderType]
    tick_size: float = Field(gt=0)
    size_increment: float = Field(gt=0)
    min_price: float = Field(ge=0, le=1)
    max_price: float = Field(ge=0, le=1)
    maker_fee: float = Field(default=0.0, ge=0)
    taker_fee: float = Field(default=0.0, ge=0)


class OrderBuilderConfig(BaseModel):
    model_config = {"extra": "forbid"}

    default_order_type: OrderType = OrderType.LIMIT
    default_slippage_tolerance: float = Field(default=0.01, ge=0, le=1)
    min_order_size: float = Field(default=0.01, gt=0)
    max_order_size: float = Field(default=1_000_000, gt=0)
    # Replaces the built-in table entry for each platform listed
    platforms: dict[TradingPlatform, PlatformOrderConfig] = {}


class StorageConfig(BaseModel):
    model_config = {"extra": "forbid"}

    db_path: str = "data/orderflow.db"


class OrderflowConfig(BaseModel):
    model_config = {"extra": "forbid"}

    router: RouterConfig = RouterConfig()
    tracker: TrackerConfig = TrackerConfig()
    logger: LoggerConfig = LoggerConfig()
    notifier: NotifierConfig = NotifierConfig()
    orders: OrderBuilderConfig = OrderBuilderConfig()
    storage: StorageConfig = StorageConfig()
