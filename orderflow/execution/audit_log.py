"""Execution logger: bounded, queryable, append-only audit trail.

Entries live in an in-memory FIFO capped at `max_entries`; the oldest entry is
evicted on overflow. An optional storage adapter receives every entry as well,
but a failing sink never fails the caller: audit problems must not block
trading.
"""

import json
import logging
from collections import deque
from typing import Any

from orderflow.adapters.base import LogStorageAdapter
from orderflow.config.schema import ConsoleLogLevel, LoggerConfig
from orderflow.models.common import TradingPlatform, new_id, utc_now
from orderflow.models.execution import (
    ExecutionEventType,
    ExecutionLogEntry,
    LogQuery,
    LogStats,
)

logger = logging.getLogger(__name__)

_CONSOLE_LEVELS = {
    ConsoleLogLevel.DEBUG: logging.DEBUG,
    ConsoleLogLevel.INFO: logging.INFO,
    ConsoleLogLevel.WARNING: logging.WARNING,
    ConsoleLogLevel.ERROR: logging.ERROR,
}


class ExecutionLogger:
    def __init__(
        self,
        config: LoggerConfig | None = None,
        storage: LogStorageAdapter | None = None,
    ):
        self.config = config or LoggerConfig()
        self.storage = storage
        self._entries: deque[ExecutionLogEntry] = deque()
        self._by_execution: dict[str, list[ExecutionLogEntry]] = {}

    @property
    def persistence_enabled(self) -> bool:
        return self.config.enable_persistence and self.storage is not None

    async def log(
        self,
        *,
        execution_id: str,
        event_type: ExecutionEventType,
        platform: TradingPlatform,
        user_address: str = "",
        market_id: str = "",
        data: dict[str, Any] | None = None,
        user_id: str | None = None,
        order_id: str | None = None,
        error: str | None = None,
        duration_ms: float | None = None,
    ) -> ExecutionLogEntry:
        """Append an event and return the stored entry."""
        entry = ExecutionLogEntry(
            id=new_id(),
            execution_id=execution_id,
            event_type=event_type,
            platform=platform,
            user_address=user_address,
            market_id=market_id,
            timestamp=utc_now(),
            data=dict(data or {}),
            user_id=user_id,
            order_id=order_id,
            error=error,
            duration_ms=duration_ms,
        )
        self._append(entry)

        if self.config.enable_console:
            self._to_console(entry)

        if self.persistence_enabled:
            try:
                await self.storage.save(entry)
            except Exception:
                logger.exception("Failed to persist log entry %s", entry.id)

        return entry

    async def query(self, query: LogQuery | None = None, **filters: Any) -> list[ExecutionLogEntry]:
        """Entries matching every given filter, most recent first."""
        query = query or LogQuery(**filters)

        if self.persistence_enabled:
            try:
                return await self.storage.query(query)
            except Exception:
                logger.warning("Log storage query failed, falling back to memory", exc_info=True)

        matched = [e for e in self._entries if query.matches(e)]
        # Reverse first so equal timestamps come out newest-first after the stable sort
        matched.reverse()
        matched.sort(key=lambda e: e.timestamp, reverse=True)
        return matched[query.offset:query.offset + query.limit]

    async def get_execution_logs(self, execution_id: str) -> list[ExecutionLogEntry]:
        """All entries for one execution in creation (replay) order."""
        if self.persistence_enabled:
            try:
                return await self.storage.get_by_execution_id(execution_id)
            except Exception:
                logger.warning("Log storage lookup failed, falling back to memory", exc_info=True)

        entries = self._by_execution.get(execution_id, [])
        return sorted(entries, key=lambda e: e.timestamp)

    def get_stats(self) -> LogStats:
        by_type: dict[str, int] = {}
        by_platform: dict[str, int] = {}
        for entry in self._entries:
            by_type[entry.event_type] = by_type.get(entry.event_type, 0) + 1
            by_platform[entry.platform] = by_platform.get(entry.platform, 0) + 1
        return LogStats(
            total_entries=len(self._entries),
            entries_by_type=by_type,
            entries_by_platform=by_platform,
        )

    def clear(self) -> None:
        """Drop in-memory entries. External storage is left untouched."""
        self._entries.clear()
        self._by_execution.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _append(self, entry: ExecutionLogEntry) -> None:
        self._entries.append(entry)
        self._by_execution.setdefault(entry.execution_id, []).append(entry)

        while len(self._entries) > self.config.max_entries:
            evicted = self._entries.popleft()
            siblings = self._by_execution.get(evicted.execution_id)
            if siblings:
                # The evicted entry is the oldest of its execution as well
                if siblings[0] is evicted:
                    siblings.pop(0)
                else:
                    siblings.remove(evicted)
                if not siblings:
                    del self._by_execution[evicted.execution_id]

    def _to_console(self, entry: ExecutionLogEntry) -> None:
        level = logging.ERROR if entry.error else logging.INFO
        if level < _CONSOLE_LEVELS[self.config.console_log_level]:
            return
        detail = entry.error if entry.error else json.dumps(entry.data, default=str)
        logger.log(
            level,
            "[%s] [%s] [%s] %s",
            entry.platform,
            entry.event_type,
            entry.execution_id,
            detail,
        )


def create_log_entry(
    execution_id: str,
    event_type: ExecutionEventType,
    platform: TradingPlatform,
    user_address: str,
    market_id: str,
    data: dict[str, Any],
    *,
    user_id: str | None = None,
    order_id: str | None = None,
    error: str | None = None,
    duration_ms: float | None = None,
) -> dict[str, Any]:
    """Build keyword arguments for `ExecutionLogger.log`."""
    return {
        "execution_id": execution_id,
        "event_type": event_type,
        "platform": platform,
        "user_address": user_address,
        "market_id": market_id,
        "data": data,
        "user_id": user_id,
        "order_id": order_id,
        "error": error,
        "duration_ms": duration_ms,
    }
