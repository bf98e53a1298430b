"""Trade notifier: per-user notification dispatch and history."""

import dataclasses
import logging

import httpx

from orderflow.adapters.base import EmailAdapter
from orderflow.config.schema import NotifierConfig
from orderflow.execution.audit_log import ExecutionLogger
from orderflow.models.common import TradingPlatform, new_id, utc_now
from orderflow.models.execution import ExecutionEventType
from orderflow.models.notification import (
    DeliveryMethod,
    DeliveryStatus,
    Notification,
    NotificationPreferences,
    NotificationType,
)
from orderflow.models.order import Order, OrderSide, OrderStatus
from orderflow.models.tracking import OrderStatusUpdate

logger = logging.getLogger(__name__)

STATUS_NOTIFICATION_TYPES: dict[OrderStatus, NotificationType] = {
    OrderStatus.FILLED: NotificationType.ORDER_FILLED,
    OrderStatus.PARTIALLY_FILLED: NotificationType.ORDER_PARTIALLY_FILLED,
    OrderStatus.CANCELLED: NotificationType.ORDER_CANCELLED,
    OrderStatus.REJECTED: NotificationType.ORDER_REJECTED,
    OrderStatus.EXPIRED: NotificationType.ORDER_EXPIRED,
}

_EMAIL_SUBJECTS = {
    NotificationType.ORDER_FILLED: "Order Filled",
    NotificationType.ORDER_PARTIALLY_FILLED: "Order Partially Filled",
    NotificationType.ORDER_CANCELLED: "Order Cancelled",
    NotificationType.ORDER_REJECTED: "Order Rejected",
    NotificationType.ORDER_EXPIRED: "Order Expired",
}


class DeliveryError(Exception):
    """A notification channel could not deliver."""


def notification_type_for(status: OrderStatus) -> NotificationType | None:
    """Map an order status to the notification it triggers, if any."""
    return STATUS_NOTIFICATION_TYPES.get(status)


def _outcome_label(order: Order) -> str:
    return f"Outcome {order.outcome}" if isinstance(order.outcome, int) else str(order.outcome)


def format_status_message(update: OrderStatusUpdate) -> str:
    """Human-readable text for a status transition."""
    order = update.order
    outcome = _outcome_label(order)
    if update.new_status == OrderStatus.FILLED:
        verb = "bought" if order.side == OrderSide.BUY else "sold"
        price_cents = (order.average_price or order.price) * 100
        return f"Order filled: {verb} {order.filled_size:g} {outcome} @ {price_cents:.1f}¢"
    if update.new_status == OrderStatus.PARTIALLY_FILLED:
        return f"Order partially filled: {order.filled_size:g}/{order.size:g} {outcome}"
    if update.new_status in (OrderStatus.CANCELLED, OrderStatus.REJECTED, OrderStatus.EXPIRED):
        return f"Order {update.new_status.lower()}: {order.side} {order.size:g} {outcome}"
    return f"Order status changed to {update.new_status}"


class TradeNotifier:
    def __init__(
        self,
        config: NotifierConfig | None = None,
        execution_logger: ExecutionLogger | None = None,
        email_adapter: EmailAdapter | None = None,
    ):
        self.config = config or NotifierConfig()
        self.execution_logger = execution_logger
        self.email_adapter = email_adapter
        self._preferences: dict[str, NotificationPreferences] = {}
        self._history: dict[str, list[Notification]] = {}

    # --- Preferences ---

    def get_preferences(self, user_address: str) -> NotificationPreferences:
        stored = self._preferences.get(user_address.lower())
        if stored is not None:
            return stored
        return NotificationPreferences(**self.config.default_preferences.model_dump())

    def set_preferences(self, user_address: str, **changes) -> NotificationPreferences:
        """Merge `changes` into the user's current preferences."""
        updated = dataclasses.replace(self.get_preferences(user_address), **changes)
        self._preferences[user_address.lower()] = updated
        return updated

    def should_notify(self, user_address: str, notification_type: NotificationType) -> bool:
        prefs = self.get_preferences(user_address)
        if notification_type == NotificationType.ORDER_FILLED:
            return prefs.notify_on_fill
        if notification_type == NotificationType.ORDER_PARTIALLY_FILLED:
            return prefs.notify_on_partial_fill
        if notification_type == NotificationType.ORDER_CANCELLED:
            return prefs.notify_on_cancel
        if notification_type == NotificationType.ORDER_REJECTED:
            return prefs.notify_on_reject
        return True

    def preferred_method(self, user_address: str) -> DeliveryMethod:
        """Webhook > email > in-app, limited to the channels that are enabled."""
        prefs = self.get_preferences(user_address)
        if prefs.webhook_url and self.config.enable_webhooks:
            return DeliveryMethod.WEBHOOK
        if prefs.email and self.config.enable_email:
            return DeliveryMethod.EMAIL
        return DeliveryMethod.IN_APP

    # --- Dispatch ---

    async def notify(
        self,
        *,
        notification_type: NotificationType,
        user_address: str,
        platform: TradingPlatform,
        order: Order,
        message: str,
        delivery_method: DeliveryMethod = DeliveryMethod.IN_APP,
        webhook_url: str | None = None,
    ) -> Notification:
        """Deliver a notification and record it in the user's history."""
        prefs = self.get_preferences(user_address)
        notification = Notification(
            id=new_id(),
            type=notification_type,
            user_address=user_address,
            platform=platform,
            order=order,
            message=message,
            delivery_method=delivery_method,
            delivery_status=DeliveryStatus.PENDING,
            timestamp=utc_now(),
            webhook_url=webhook_url or prefs.webhook_url,
        )

        status, error = await self._deliver(notification, prefs)
        notification = dataclasses.replace(
            notification, delivery_status=status, delivery_error=error
        )
        if status == DeliveryStatus.FAILED:
            logger.warning(
                "Notification %s to %s failed via %s: %s",
                notification.id, user_address, delivery_method, error,
            )

        self._history.setdefault(user_address.lower(), []).append(notification)
        await self._log_notification(notification)
        return notification

    def get_notification_history(
        self,
        user_address: str,
        limit: int | None = None,
        notification_type: NotificationType | None = None,
    ) -> list[Notification]:
        """Notifications sent to a user, oldest first."""
        history = self._history.get(user_address.lower(), [])
        if notification_type is not None:
            history = [n for n in history if n.type == notification_type]
        if limit is not None:
            history = history[-limit:] if limit > 0 else []
        return list(history)

    async def _deliver(
        self, notification: Notification, prefs: NotificationPreferences
    ) -> tuple[DeliveryStatus, str | None]:
        method = notification.delivery_method
        if method == DeliveryMethod.IN_APP:
            # Stored for polling; nothing to transport
            return DeliveryStatus.DELIVERED, None
        if method == DeliveryMethod.NONE:
            return DeliveryStatus.SKIPPED, None

        try:
            if method == DeliveryMethod.WEBHOOK:
                return await self._deliver_webhook(notification), None
            return await self._deliver_email(notification, prefs), None
        except DeliveryError as e:
            return DeliveryStatus.FAILED, str(e)

    async def _deliver_webhook(self, notification: Notification) -> DeliveryStatus:
        if not self.config.enable_webhooks:
            raise DeliveryError("Webhook delivery disabled")
        if not notification.webhook_url:
            raise DeliveryError("No webhook URL provided")

        headers = {
            "Content-Type": "application/json",
            "X-Orderflow-Event": notification.type.value,
            "X-Orderflow-Notification-Id": notification.id,
        }
        try:
            async with httpx.AsyncClient(timeout=self.config.webhook_timeout_ms / 1000) as client:
                resp = await client.post(
                    notification.webhook_url,
                    json=webhook_payload(notification),
                    headers=headers,
                )
        except httpx.RequestError as e:
            raise DeliveryError(f"Webhook request failed: {e}") from e
        if resp.status_code >= 400:
            raise DeliveryError(f"Webhook failed with status {resp.status_code}")
        return DeliveryStatus.DELIVERED

    async def _deliver_email(
        self, notification: Notification, prefs: NotificationPreferences
    ) -> DeliveryStatus:
        if not self.config.enable_email:
            raise DeliveryError("Email delivery disabled")
        if not prefs.email:
            raise DeliveryError("No email address on file")
        if self.email_adapter is None:
            # Queued until an email transport is attached
            return DeliveryStatus.PENDING

        try:
            sent = await self.email_adapter.send_email(
                prefs.email, email_subject(notification), email_body(notification)
            )
        except Exception as e:
            raise DeliveryError(f"Email delivery failed: {e}") from e
        if not sent:
            raise DeliveryError("Email delivery failed")
        return DeliveryStatus.DELIVERED

    async def _log_notification(self, notification: Notification) -> None:
        if self.execution_logger is None:
            return
        event = (
            ExecutionEventType.NOTIFICATION_FAILED
            if notification.delivery_status == DeliveryStatus.FAILED
            else ExecutionEventType.NOTIFICATION_SENT
        )
        try:
            await self.execution_logger.log(
                execution_id=notification.id,
                event_type=event,
                platform=notification.platform,
                user_address=notification.user_address,
                order_id=notification.order.id,
                market_id=notification.order.market_id,
                data={
                    "notification_type": notification.type.value,
                    "delivery_method": notification.delivery_method.value,
                    "delivery_status": notification.delivery_status.value,
                },
                error=notification.delivery_error,
            )
        except Exception:
            logger.exception("Failed to log notification %s", notification.id)


def webhook_payload(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type.value,
        "timestamp": notification.timestamp.isoformat(),
        "platform": notification.platform.value,
        "user_address": notification.user_address,
        "message": notification.message,
        "order": notification.order.to_dict(),
    }


def email_subject(notification: Notification) -> str:
    title = _EMAIL_SUBJECTS.get(notification.type, "Trade Notification")
    return f"{title} - {notification.platform}"


def email_body(notification: Notification) -> str:
    order = notification.order
    price_cents = (order.average_price or order.price) * 100
    lines = [
        notification.message,
        "",
        "Order Details:",
        f"- Market: {order.market_id}",
        f"- Side: {order.side}",
        f"- Outcome: {order.outcome}",
        f"- Size: {order.filled_size:g}/{order.size:g}",
        f"- Price: {price_cents:.2f}¢",
        "",
        f"Platform: {notification.platform}",
        f"Time: {notification.timestamp.isoformat()}",
    ]
    return "\n".join(lines)
