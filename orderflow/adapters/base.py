"""Protocols for the collaborators the execution core consumes.

The router and tracker depend on exactly the four trading operations below;
authentication, balances and market data live in the concrete adapters.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, TypeAlias, runtime_checkable

from orderflow.models.execution import ExecutionLogEntry, LogQuery
from orderflow.models.order import ExecutionRequest, Order


@runtime_checkable
class TradingAdapter(Protocol):
    """Platform-specific implementation of the trading contract."""

    async def place_order(self, request: ExecutionRequest) -> Order: ...

    async def cancel_order(self, order_id: str) -> bool: ...

    async def get_order(self, order_id: str) -> Order | None: ...

    async def is_ready(self) -> bool: ...


AdapterFactory: TypeAlias = Callable[[dict[str, Any]], TradingAdapter]


@runtime_checkable
class LogStorageAdapter(Protocol):
    """Durable sink for audit-log entries."""

    async def save(self, entry: ExecutionLogEntry) -> None: ...

    async def query(self, query: LogQuery) -> list[ExecutionLogEntry]: ...

    async def get_by_execution_id(self, execution_id: str) -> list[ExecutionLogEntry]: ...


@runtime_checkable
class EmailAdapter(Protocol):
    """Outbound email transport used by the notifier."""

    async def send_email(self, to: str, subject: str, body: str) -> bool: ...
