"""Wire the execution components together from one config."""

import logging
from dataclasses import dataclass

from orderflow.adapters.base import EmailAdapter, LogStorageAdapter
from orderflow.adapters.registry import AdapterRegistry, default_registry
from orderflow.config.schema import OrderflowConfig
from orderflow.execution.audit_log import ExecutionLogger
from orderflow.execution.notifier import TradeNotifier
from orderflow.execution.order_builder import OrderBuilder
from orderflow.execution.router import ExecutionRouter
from orderflow.execution.tracker import OrderStatusTracker

logger = logging.getLogger(__name__)


@dataclass
class ExecutionServices:
    router: ExecutionRouter
    tracker: OrderStatusTracker
    logger: ExecutionLogger
    notifier: TradeNotifier
    registry: AdapterRegistry

    async def aclose(self) -> None:
        """Stop all tracking and wait for in-flight polls."""
        await self.tracker.aclose()


def create_execution_services(
    config: OrderflowConfig | None = None,
    registry: AdapterRegistry | None = None,
    storage: LogStorageAdapter | None = None,
    email_adapter: EmailAdapter | None = None,
) -> ExecutionServices:
    """Build logger -> notifier -> tracker -> router sharing one registry."""
    config = config or OrderflowConfig()
    registry = registry or default_registry

    execution_logger = ExecutionLogger(config.logger, storage=storage)
    notifier = TradeNotifier(
        config.notifier, execution_logger=execution_logger, email_adapter=email_adapter
    )
    tracker = OrderStatusTracker(
        config.tracker,
        registry=registry,
        execution_logger=execution_logger,
        notifier=notifier,
    )
    router = ExecutionRouter(
        config.router,
        registry=registry,
        execution_logger=execution_logger,
        tracker=tracker,
        notifier=notifier,
        order_builder=OrderBuilder(config.orders),
    )
    logger.debug(
        "Execution services ready (platforms: %s)",
        ", ".join(registry.get_available_platforms()) or "none",
    )
    return ExecutionServices(
        router=router,
        tracker=tracker,
        logger=execution_logger,
        notifier=notifier,
        registry=registry,
    )
