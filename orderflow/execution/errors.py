"""Exception taxonomy for the execution core."""


class OrderflowError(Exception):
    """Base class for errors raised by the execution core."""


class ConfigurationError(OrderflowError):
    """Programmer or operator misuse: fails fast at the call site."""


class TrackingLimitError(ConfigurationError):
    """Raised when a new subscription would exceed max_subscriptions."""

    def __init__(self, max_subscriptions: int):
        super().__init__(f"Maximum subscription limit ({max_subscriptions}) reached")
        self.max_subscriptions = max_subscriptions


class ExecutionTimeoutError(OrderflowError):
    """An adapter call did not finish within the request timeout."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Request timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class AdapterUnavailableError(OrderflowError):
    """No adapter could be resolved for a platform."""

    def __init__(self, platform: str):
        super().__init__(f"Adapter not available for {platform}")
        self.platform = platform


class OrderNotFoundError(OrderflowError):
    """The adapter has no record of the order."""

    def __init__(self, order_id: str):
        super().__init__(f"Order not found: {order_id}")
        self.order_id = order_id
