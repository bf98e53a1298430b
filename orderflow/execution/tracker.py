"""Order status tracker: independent polling loops per tracked order.

Each subscription owns one asyncio task (sleep, poll, compare, emit, repeat)
and an optional timeout handle. The first successful poll only records the
baseline status; later polls emit an OrderStatusUpdate whenever the status
differs from the last one seen.

Stopping a subscription cancels its next scheduled tick. An adapter call that
is already in flight is left to finish and its result is dropped, so no
callback fires once `is_active` is False.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from orderflow.adapters.base import TradingAdapter
from orderflow.adapters.registry import AdapterRegistry, default_registry
from orderflow.config.schema import TrackerConfig
from orderflow.execution.audit_log import ExecutionLogger
from orderflow.execution.errors import (
    AdapterUnavailableError,
    OrderNotFoundError,
    TrackingLimitError,
)
from orderflow.execution.notifier import (
    TradeNotifier,
    format_status_message,
    notification_type_for,
)
from orderflow.models.common import TradingPlatform, new_id, utc_now
from orderflow.models.execution import ExecutionEventType
from orderflow.models.notification import DeliveryMethod
from orderflow.models.order import Order, OrderStatus
from orderflow.models.tracking import OrderStatusUpdate, SubscriptionInfo, TrackingOptions

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

StatusCallback = Callable[[OrderStatusUpdate], Awaitable[None] | None]
ErrorCallback = Callable[[Exception], Awaitable[None] | None]


@dataclass
class _Subscription:
    id: str
    order_id: str
    platform: TradingPlatform
    polling_interval_ms: int
    timeout_ms: int | None
    stop_on_terminal: bool
    user_address: str | None
    notify: bool = True
    created_at: datetime = field(default_factory=utc_now)
    is_active: bool = True
    last_status: OrderStatus | None = None
    status_callbacks: list[StatusCallback] = field(default_factory=list)
    error_callbacks: list[ErrorCallback] = field(default_factory=list)
    task: asyncio.Task | None = None
    timeout_handle: asyncio.TimerHandle | None = None
    polling: bool = False

    def snapshot(self) -> SubscriptionInfo:
        return SubscriptionInfo(
            id=self.id,
            order_id=self.order_id,
            platform=self.platform,
            polling_interval_ms=self.polling_interval_ms,
            timeout_ms=self.timeout_ms,
            stop_on_terminal=self.stop_on_terminal,
            is_active=self.is_active,
            last_status=self.last_status,
            user_address=self.user_address,
            notify=self.notify,
            created_at=self.created_at,
        )


class SubscriptionHandle:
    """Caller-side view of a subscription returned by `track_order`."""

    def __init__(self, tracker: "OrderStatusTracker", sub: _Subscription):
        self._tracker = tracker
        self._sub = sub

    @property
    def id(self) -> str:
        return self._sub.id

    @property
    def order_id(self) -> str:
        return self._sub.order_id

    @property
    def platform(self) -> TradingPlatform:
        return self._sub.platform

    @property
    def is_active(self) -> bool:
        return self._sub.is_active

    @property
    def last_status(self) -> OrderStatus | None:
        return self._sub.last_status

    def on_status_update(self, callback: StatusCallback) -> "SubscriptionHandle":
        self._sub.status_callbacks.append(callback)
        return self

    def on_error(self, callback: ErrorCallback) -> "SubscriptionHandle":
        self._sub.error_callbacks.append(callback)
        return self

    def stop(self) -> None:
        self._tracker.stop_tracking(self._sub.id)

    def __repr__(self) -> str:
        return (
            f"SubscriptionHandle(id={self.id!r}, order_id={self.order_id!r}, "
            f"platform={self.platform!s}, is_active={self.is_active})"
        )


class OrderStatusTracker:
    def __init__(
        self,
        config: TrackerConfig | None = None,
        registry: AdapterRegistry | None = None,
        execution_logger: ExecutionLogger | None = None,
        notifier: TradeNotifier | None = None,
    ):
        self.config = config or TrackerConfig()
        self.registry = registry or default_registry
        self.execution_logger = execution_logger
        self.notifier = notifier
        self._subscriptions: dict[str, _Subscription] = {}
        self._tasks: set[asyncio.Task] = set()

    def track_order(
        self,
        platform: TradingPlatform,
        order_id: str,
        options: TrackingOptions | None = None,
    ) -> SubscriptionHandle:
        """Start polling an order. Must be called from a running event loop.

        Raises TrackingLimitError, without creating anything, when the
        tracker already holds `max_subscriptions` active subscriptions.
        """
        active = sum(1 for s in self._subscriptions.values() if s.is_active)
        if active >= self.config.max_subscriptions:
            raise TrackingLimitError(self.config.max_subscriptions)

        loop = asyncio.get_running_loop()
        options = options or TrackingOptions()
        sub = _Subscription(
            id=new_id(),
            order_id=order_id,
            platform=platform,
            polling_interval_ms=options.polling_interval_ms or self.config.default_polling_interval_ms,
            timeout_ms=(
                options.timeout_ms if options.timeout_ms is not None
                else self.config.default_timeout_ms
            ),
            stop_on_terminal=True if options.stop_on_terminal is None else options.stop_on_terminal,
            user_address=options.user_address,
            notify=options.notify if options.notify is not None else bool(options.user_address),
        )
        self._subscriptions[sub.id] = sub
        sub.task = loop.create_task(self._run(sub), name=f"track-{platform}-{order_id}")
        self._tasks.add(sub.task)
        sub.task.add_done_callback(self._tasks.discard)
        if sub.timeout_ms is not None:
            sub.timeout_handle = loop.call_later(sub.timeout_ms / 1000, self._expire, sub.id)

        logger.info(
            "Tracking %s order %s (subscription %s, every %dms)",
            platform, order_id, sub.id, sub.polling_interval_ms,
        )
        return SubscriptionHandle(self, sub)

    def stop_tracking(self, subscription_id: str) -> None:
        """Deactivate and forget a subscription. Unknown ids are ignored."""
        sub = self._subscriptions.pop(subscription_id, None)
        if sub is None:
            return
        sub.is_active = False
        if sub.timeout_handle is not None:
            sub.timeout_handle.cancel()
            sub.timeout_handle = None
        # A task mid-poll exits on its own once it sees is_active=False
        if sub.task is not None and not sub.polling and not sub.task.done():
            sub.task.cancel()
        logger.debug("Stopped tracking subscription %s", subscription_id)

    async def get_order_status(self, platform: TradingPlatform, order_id: str) -> Order | None:
        """One-shot lookup with no subscription side effects. Never raises."""
        try:
            adapter = self._resolve_adapter(platform)
            if adapter is None:
                return None
            return await adapter.get_order(order_id)
        except Exception:
            logger.warning("Order lookup failed for %s %s", platform, order_id, exc_info=True)
            return None

    def get_active_subscriptions(self) -> list[SubscriptionInfo]:
        return [s.snapshot() for s in self._subscriptions.values() if s.is_active]

    def shutdown(self) -> None:
        """Stop every subscription and release all timers."""
        for subscription_id in list(self._subscriptions):
            self.stop_tracking(subscription_id)

    async def aclose(self) -> None:
        """shutdown() and wait for every poll task, including ones stopped mid-poll."""
        self.shutdown()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- Polling ---

    async def _run(self, sub: _Subscription) -> None:
        interval = sub.polling_interval_ms / 1000
        while sub.is_active:
            await asyncio.sleep(interval)
            if not sub.is_active:
                break
            sub.polling = True
            try:
                await self._poll(sub)
            finally:
                sub.polling = False

    async def _poll(self, sub: _Subscription) -> None:
        try:
            adapter = self._resolve_adapter(sub.platform)
            if adapter is None:
                await self._emit_error(sub, AdapterUnavailableError(sub.platform))
                return
            order = await adapter.get_order(sub.order_id)
        except Exception as e:
            logger.warning("Poll failed for %s order %s: %s", sub.platform, sub.order_id, e)
            await self._emit_error(sub, e)
            return

        if not sub.is_active:
            # Stopped while the call was in flight
            return
        if order is None:
            await self._emit_error(sub, OrderNotFoundError(sub.order_id))
            return

        previous = sub.last_status
        sub.last_status = order.status
        if previous is not None and previous != order.status:
            update = OrderStatusUpdate(
                subscription_id=sub.id,
                order_id=sub.order_id,
                platform=sub.platform,
                previous_status=previous,
                new_status=order.status,
                order=order,
            )
            logger.info(
                "Order %s on %s: %s -> %s",
                sub.order_id, sub.platform, previous, order.status,
            )
            await self._emit_update(sub, update)
            await self._log_status_change(sub, update)
            await self._send_notification(sub, update)

        if sub.stop_on_terminal and order.is_terminal and sub.is_active:
            logger.info("Order %s reached terminal status %s", sub.order_id, order.status)
            self.stop_tracking(sub.id)

    def _resolve_adapter(self, platform: TradingPlatform) -> TradingAdapter | None:
        if self.registry.get(platform) is None:
            return None
        return self.registry.get_or_create(platform)

    def _expire(self, subscription_id: str) -> None:
        sub = self._subscriptions.get(subscription_id)
        if sub is None:
            return
        logger.info(
            "Tracking timed out after %dms for order %s (subscription %s)",
            sub.timeout_ms, sub.order_id, subscription_id,
        )
        sub.timeout_handle = None
        self.stop_tracking(subscription_id)

    async def _emit_update(self, sub: _Subscription, update: OrderStatusUpdate) -> None:
        for callback in list(sub.status_callbacks):
            if not sub.is_active:
                return
            await _invoke(callback, update, sub)

    async def _emit_error(self, sub: _Subscription, error: Exception) -> None:
        for callback in list(sub.error_callbacks):
            if not sub.is_active:
                return
            await _invoke(callback, error, sub)

    async def _log_status_change(self, sub: _Subscription, update: OrderStatusUpdate) -> None:
        if self.execution_logger is None:
            return
        try:
            await self.execution_logger.log(
                execution_id=sub.id,
                event_type=ExecutionEventType.ORDER_STATUS_CHANGED,
                platform=sub.platform,
                user_address=sub.user_address or ZERO_ADDRESS,
                order_id=sub.order_id,
                market_id=update.order.market_id,
                data={
                    "previous_status": update.previous_status.value,
                    "new_status": update.new_status.value,
                    "filled_size": update.order.filled_size,
                    "remaining_size": update.order.remaining_size,
                },
            )
        except Exception:
            logger.exception("Failed to log status change for %s", sub.order_id)

    async def _send_notification(self, sub: _Subscription, update: OrderStatusUpdate) -> None:
        if self.notifier is None or not sub.notify or not sub.user_address:
            return
        notification_type = notification_type_for(update.new_status)
        if notification_type is None:
            return

        user = sub.user_address
        if self.notifier.should_notify(user, notification_type):
            method = self.notifier.preferred_method(user)
        else:
            # Opted out: keep a SKIPPED record in the history
            method = DeliveryMethod.NONE
        try:
            await self.notifier.notify(
                notification_type=notification_type,
                user_address=user,
                platform=sub.platform,
                order=update.order,
                message=format_status_message(update),
                delivery_method=method,
            )
        except Exception:
            logger.exception("Failed to notify %s about order %s", user, sub.order_id)


async def _invoke(callback: Callable[[Any], Any], arg: Any, sub: _Subscription) -> None:
    try:
        result = callback(arg)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("Callback failed for subscription %s", sub.id)
