"""Execution router: single entry point for placing and cancelling orders.

`execute` and `cancel` never raise. Every outcome, including a missing
adapter, a timeout or exhausted retries, comes back as a result object whose
`error` text is suitable for direct display. All log entries of one call
share its execution id.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable
from typing import Any, TypeVar

from orderflow.adapters.base import TradingAdapter
from orderflow.adapters.registry import AdapterRegistry, default_registry
from orderflow.config.schema import RouterConfig
from orderflow.execution.audit_log import ExecutionLogger
from orderflow.execution.errors import ExecutionTimeoutError, TrackingLimitError
from orderflow.execution.notifier import TradeNotifier, notification_type_for
from orderflow.execution.order_builder import OrderBuilder, default_order_builder
from orderflow.execution.tracker import OrderStatusTracker
from orderflow.models.common import TradingPlatform, new_id
from orderflow.models.execution import (
    CancelResult,
    ExecutionErrorCode,
    ExecutionEventType,
    ExecutionResult,
)
from orderflow.models.order import ExecutionRequest, Order
from orderflow.models.tracking import TrackingOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")

# First match wins, so "timeout" outranks anything else in the same message
_ERROR_KEYWORDS: list[tuple[tuple[str, ...], ExecutionErrorCode]] = [
    (("timeout",), ExecutionErrorCode.TIMEOUT),
    (("network",), ExecutionErrorCode.NETWORK_ERROR),
    (("balance", "insufficient"), ExecutionErrorCode.INSUFFICIENT_BALANCE),
    (("auth", "unauthorized"), ExecutionErrorCode.AUTHENTICATION_FAILED),
    (("market", "not found"), ExecutionErrorCode.MARKET_NOT_FOUND),
    (("price", "slippage"), ExecutionErrorCode.PRICE_MOVED),
    (("reject",), ExecutionErrorCode.ORDER_REJECTED),
]


def error_code_for(message: str) -> ExecutionErrorCode:
    """Classify a failure message into an ExecutionErrorCode."""
    lowered = message.lower()
    for keywords, code in _ERROR_KEYWORDS:
        if any(k in lowered for k in keywords):
            return code
    return ExecutionErrorCode.UNKNOWN_ERROR


def validate_request(
    request: ExecutionRequest, order_builder: OrderBuilder | None = None
) -> str | None:
    """Return a description of the first problem found, or None.

    Prices are checked against the platform range as submitted. Off-grid
    prices and sizes are left to the platform.
    """
    if not request.platform:
        return "platform is required"
    if not request.user_address:
        return "user_address is required"
    if not request.market_id:
        return "market_id is required"
    if request.size <= 0:
        return f"size must be positive, got {request.size}"
    if request.max_retries is not None and request.max_retries < 0:
        return "max_retries must not be negative"

    builder = order_builder or default_order_builder
    limits = builder.get_platform_config(request.platform)
    if not limits.min_price <= request.price <= limits.max_price:
        return (
            f"price must be between {limits.min_price} and {limits.max_price} "
            f"on {request.platform}, got {request.price}"
        )
    check = builder.validate_order(request)
    if not check.success:
        return check.errors[0]
    return None


def _message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class ExecutionRouter:
    def __init__(
        self,
        config: RouterConfig | None = None,
        registry: AdapterRegistry | None = None,
        execution_logger: ExecutionLogger | None = None,
        tracker: OrderStatusTracker | None = None,
        notifier: TradeNotifier | None = None,
        order_builder: OrderBuilder | None = None,
    ):
        self.config = config or RouterConfig()
        self.registry = registry or default_registry
        self.execution_logger = execution_logger
        self.tracker = tracker
        self.notifier = notifier
        self.order_builder = order_builder or default_order_builder

    async def execute(self, request: ExecutionRequest) -> ExecutionResult:
        """Place an order with bounded retries and a per-attempt timeout."""
        execution_id = new_id()
        started = time.monotonic()
        await self._log(
            execution_id,
            ExecutionEventType.EXECUTION_STARTED,
            request.platform,
            request.user_address,
            request.market_id,
            data=_request_data(request),
            user_id=request.user_id,
        )

        problem = validate_request(request, self.order_builder)
        if problem is not None:
            return await self._fail_execution(
                execution_id, request, ExecutionErrorCode.INVALID_REQUEST, problem, started
            )

        adapter = self._resolve_adapter(request.platform)
        if adapter is None:
            return await self._fail_execution(
                execution_id,
                request,
                ExecutionErrorCode.PLATFORM_UNAVAILABLE,
                f"No adapter available for platform: {request.platform}",
                started,
            )

        try:
            ready = await self._with_timeout(adapter.is_ready())
        except Exception as e:
            logger.warning("Readiness check failed for %s: %s", request.platform, e)
            ready = False
        if not ready:
            return await self._fail_execution(
                execution_id,
                request,
                ExecutionErrorCode.AUTHENTICATION_FAILED,
                "Trading adapter is not authenticated",
                started,
            )

        max_retries = (
            request.max_retries if request.max_retries is not None
            else self.config.default_max_retries
        )
        last_error: Exception | None = None
        for attempt in range(max_retries + 1):
            try:
                order = await self._with_timeout(adapter.place_order(request))
            except Exception as e:
                last_error = e
                logger.warning(
                    "Execution %s attempt %d/%d failed: %s",
                    execution_id, attempt + 1, max_retries + 1, _message(e),
                )
                if attempt < max_retries:
                    await self._log(
                        execution_id,
                        ExecutionEventType.RETRY_ATTEMPTED,
                        request.platform,
                        request.user_address,
                        request.market_id,
                        data={"attempt": attempt + 1, "error": _message(e)},
                        user_id=request.user_id,
                    )
                    await asyncio.sleep(self.config.retry_delay_ms / 1000)
                continue
            return await self._complete_execution(execution_id, request, order, attempt, started)

        assert last_error is not None
        error = _message(last_error)
        return await self._fail_execution(
            execution_id, request, error_code_for(error), error, started, retry_count=max_retries
        )

    async def cancel(
        self,
        platform: TradingPlatform,
        order_id: str,
        user_address: str = "",
        market_id: str = "",
    ) -> CancelResult:
        """Cancel an order. A platform answering False is reported, not retried."""
        execution_id = new_id()
        started = time.monotonic()
        await self._log(
            execution_id,
            ExecutionEventType.EXECUTION_STARTED,
            platform,
            user_address,
            market_id,
            data={"action": "cancel", "order_id": order_id},
            order_id=order_id,
        )

        adapter = self._resolve_adapter(platform)
        if adapter is None:
            return await self._fail_cancel(
                execution_id, platform, order_id, user_address, market_id,
                ExecutionErrorCode.PLATFORM_UNAVAILABLE,
                f"No adapter available for platform: {platform}",
                started,
            )

        cancelled = False
        error: str | None = None
        for attempt in range(self.config.default_max_retries + 1):
            try:
                cancelled = bool(await self._with_timeout(adapter.cancel_order(order_id)))
                error = None
                break
            except Exception as e:
                error = _message(e)
                logger.warning("Cancel %s attempt %d failed: %s", order_id, attempt + 1, error)
                if attempt < self.config.default_max_retries:
                    await self._log(
                        execution_id,
                        ExecutionEventType.RETRY_ATTEMPTED,
                        platform,
                        user_address,
                        market_id,
                        data={"attempt": attempt + 1, "error": error},
                        order_id=order_id,
                    )
                    await asyncio.sleep(self.config.retry_delay_ms / 1000)

        if error is not None:
            return await self._fail_cancel(
                execution_id, platform, order_id, user_address, market_id,
                error_code_for(error), error, started,
            )
        if not cancelled:
            return await self._fail_cancel(
                execution_id, platform, order_id, user_address, market_id,
                ExecutionErrorCode.ORDER_REJECTED, "Cancel rejected by platform", started,
            )

        await self._log(
            execution_id, ExecutionEventType.ORDER_CANCELLED, platform, user_address, market_id,
            data={"order_id": order_id}, order_id=order_id, duration_ms=_elapsed_ms(started),
        )
        logger.info("Cancelled %s order %s (execution %s)", platform, order_id, execution_id)
        return CancelResult(
            success=True, execution_id=execution_id, platform=platform, order_id=order_id
        )

    async def get_execution_status(self, execution_id: str) -> ExecutionResult | None:
        """Rebuild an execution's outcome from the audit log."""
        if self.execution_logger is None:
            return None
        entries = await self.execution_logger.get_execution_logs(execution_id)
        if not entries:
            return None

        final = next(
            (
                e for e in entries
                if e.event_type in (
                    ExecutionEventType.EXECUTION_COMPLETED,
                    ExecutionEventType.ORDER_CANCELLED,
                    ExecutionEventType.EXECUTION_FAILED,
                )
            ),
            None,
        )
        if final is None:
            return ExecutionResult(
                success=False,
                execution_id=execution_id,
                platform=entries[0].platform,
                error="Execution in progress",
                timestamp=entries[0].timestamp,
            )

        if final.event_type != ExecutionEventType.EXECUTION_FAILED:
            order_data = final.data.get("order")
            return ExecutionResult(
                success=True,
                execution_id=execution_id,
                platform=final.platform,
                order=Order.from_dict(order_data) if order_data else None,
                retry_count=final.data.get("retry_count", 0),
                subscription_id=final.data.get("subscription_id"),
                timestamp=final.timestamp,
            )
        code = final.data.get("error_code")
        return ExecutionResult(
            success=False,
            execution_id=execution_id,
            platform=final.platform,
            error=final.error or final.data.get("error"),
            error_code=ExecutionErrorCode(code) if code else None,
            retry_count=final.data.get("retry_count", 0),
            timestamp=final.timestamp,
        )

    def is_platform_available(self, platform: TradingPlatform) -> bool:
        return self.registry.get(platform) is not None

    # --- Internals ---

    def _resolve_adapter(self, platform: TradingPlatform) -> TradingAdapter | None:
        if self.registry.get(platform) is None:
            return None
        try:
            return self.registry.get_or_create(platform)
        except Exception:
            logger.exception("Adapter factory for %s failed", platform)
            return None

    async def _with_timeout(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, self.config.request_timeout_ms / 1000)
        except TimeoutError as e:
            raise ExecutionTimeoutError(self.config.request_timeout_ms) from e

    async def _complete_execution(
        self,
        execution_id: str,
        request: ExecutionRequest,
        order: Order,
        attempt: int,
        started: float,
    ) -> ExecutionResult:
        await self._log(
            execution_id,
            ExecutionEventType.ORDER_ACCEPTED,
            request.platform,
            request.user_address,
            request.market_id,
            data={"order": order.to_dict(), "attempts": attempt + 1},
            user_id=request.user_id,
            order_id=order.id,
            duration_ms=_elapsed_ms(started),
        )

        subscription_id = None
        tracking_error = None
        if request.track_status and self.tracker is not None and self.config.enable_tracking:
            try:
                handle = self.tracker.track_order(
                    request.platform,
                    order.id,
                    TrackingOptions(
                        stop_on_terminal=True,
                        user_address=request.user_address,
                        notify=self.config.enable_notifications,
                    ),
                )
                subscription_id = handle.id
            except TrackingLimitError as e:
                # The order is placed regardless; only the monitoring is missing
                tracking_error = str(e)
                logger.warning("Order %s placed but not tracked: %s", order.id, e)

        if order.is_terminal:
            await self._notify_terminal(request, order)

        await self._log(
            execution_id,
            ExecutionEventType.EXECUTION_COMPLETED,
            request.platform,
            request.user_address,
            request.market_id,
            data={
                "order": order.to_dict(),
                "retry_count": attempt,
                "subscription_id": subscription_id,
                "tracking_error": tracking_error,
            },
            user_id=request.user_id,
            order_id=order.id,
            duration_ms=_elapsed_ms(started),
        )
        logger.info(
            "Execution %s placed %s order %s (%s) after %d attempt(s)",
            execution_id, request.platform, order.id, order.status, attempt + 1,
        )
        return ExecutionResult(
            success=True,
            execution_id=execution_id,
            platform=request.platform,
            order=order,
            retry_count=attempt,
            subscription_id=subscription_id,
        )

    async def _fail_execution(
        self,
        execution_id: str,
        request: ExecutionRequest,
        code: ExecutionErrorCode,
        error: str,
        started: float,
        retry_count: int = 0,
    ) -> ExecutionResult:
        await self._log(
            execution_id,
            ExecutionEventType.EXECUTION_FAILED,
            request.platform,
            request.user_address,
            request.market_id,
            data={"error": error, "error_code": code.value, "retry_count": retry_count},
            user_id=request.user_id,
            error=error,
            duration_ms=_elapsed_ms(started),
        )
        logger.error("Execution %s failed (%s): %s", execution_id, code, error)
        return ExecutionResult(
            success=False,
            execution_id=execution_id,
            platform=request.platform,
            error=error,
            error_code=code,
            retry_count=retry_count,
        )

    async def _fail_cancel(
        self,
        execution_id: str,
        platform: TradingPlatform,
        order_id: str,
        user_address: str,
        market_id: str,
        code: ExecutionErrorCode,
        error: str,
        started: float,
    ) -> CancelResult:
        await self._log(
            execution_id,
            ExecutionEventType.EXECUTION_FAILED,
            platform,
            user_address,
            market_id,
            data={"action": "cancel", "error": error, "error_code": code.value},
            order_id=order_id,
            error=error,
            duration_ms=_elapsed_ms(started),
        )
        logger.error("Cancel of %s order %s failed (%s): %s", platform, order_id, code, error)
        return CancelResult(
            success=False,
            execution_id=execution_id,
            platform=platform,
            order_id=order_id,
            error=error,
            error_code=code,
        )

    async def _notify_terminal(self, request: ExecutionRequest, order: Order) -> None:
        """Orders that come back already terminal never produce a tracked transition."""
        if self.notifier is None or not self.config.enable_notifications:
            return
        notification_type = notification_type_for(order.status)
        if notification_type is None:
            return
        if not self.notifier.should_notify(request.user_address, notification_type):
            return
        try:
            await self.notifier.notify(
                notification_type=notification_type,
                user_address=request.user_address,
                platform=request.platform,
                order=order,
                message=f"Order {order.status.lower()} on placement: {order.side} {order.size:g} {order.outcome}",
                delivery_method=self.notifier.preferred_method(request.user_address),
                webhook_url=request.webhook_url,
            )
        except Exception:
            logger.exception("Failed to notify %s about order %s", request.user_address, order.id)

    async def _log(
        self,
        execution_id: str,
        event_type: ExecutionEventType,
        platform: TradingPlatform,
        user_address: str,
        market_id: str,
        data: dict[str, Any],
        user_id: str | None = None,
        order_id: str | None = None,
        error: str | None = None,
        duration_ms: float | None = None,
    ) -> None:
        if self.execution_logger is None or not self.config.enable_logging:
            return
        try:
            await self.execution_logger.log(
                execution_id=execution_id,
                event_type=event_type,
                platform=platform,
                user_address=user_address,
                market_id=market_id,
                data=data,
                user_id=user_id,
                order_id=order_id,
                error=error,
                duration_ms=duration_ms,
            )
        except Exception:
            logger.exception("Failed to log %s for execution %s", event_type, execution_id)


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 3)


def _request_data(request: ExecutionRequest) -> dict[str, Any]:
    return {
        "market_id": request.market_id,
        "outcome": request.outcome,
        "side": str(request.side),
        "order_type": str(request.order_type),
        "size": request.size,
        "price": request.price,
        "client_order_id": request.client_order_id,
        "track_status": request.track_status,
    }
