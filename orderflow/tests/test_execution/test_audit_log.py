"""Tests for the execution audit logger."""

import logging
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from orderflow.config.schema import ConsoleLogLevel, LoggerConfig
from orderflow.execution.audit_log import ExecutionLogger, create_log_entry
from orderflow.models.common import TradingPlatform, utc_now
from orderflow.models.execution import ExecutionEventType, LogQuery

PM = TradingPlatform.POLYMARKET


async def _log(audit: ExecutionLogger, execution_id: str, event=ExecutionEventType.EXECUTION_STARTED, **kw):
    return await audit.log(
        execution_id=execution_id,
        event_type=event,
        platform=kw.pop("platform", PM),
        user_address=kw.pop("user_address", "0xAAA"),
        market_id="market-1",
        **kw,
    )


class TestAppend:
    @pytest.mark.asyncio
    async def test_log_returns_entry(self):
        audit = ExecutionLogger()
        entry = await _log(audit, "exec-1", data={"size": 10}, duration_ms=12.5)
        assert entry.execution_id == "exec-1"
        assert entry.data == {"size": 10}
        assert entry.duration_ms == 12.5
        assert entry.id
        assert len(audit) == 1

    @pytest.mark.asyncio
    async def test_fifo_eviction(self):
        audit = ExecutionLogger(LoggerConfig(max_entries=3))
        for i in range(5):
            await _log(audit, f"exec-{i}")

        assert len(audit) == 3
        remaining = {e.execution_id for e in await audit.query()}
        assert remaining == {"exec-2", "exec-3", "exec-4"}
        # Index stays in sync with the evicted entries
        assert await audit.get_execution_logs("exec-0") == []
        assert len(await audit.get_execution_logs("exec-4")) == 1

    @pytest.mark.asyncio
    async def test_keeps_most_recent(self):
        audit = ExecutionLogger(LoggerConfig(max_entries=5))
        for i in range(10):
            await _log(audit, f"exec-{i}")
        assert audit.get_stats().total_entries == 5
        kept = sorted(e.execution_id for e in await audit.query())
        assert kept == [f"exec-{i}" for i in range(5, 10)]

    @pytest.mark.asyncio
    async def test_eviction_within_one_execution(self):
        audit = ExecutionLogger(LoggerConfig(max_entries=2))
        await _log(audit, "exec-1", ExecutionEventType.EXECUTION_STARTED)
        await _log(audit, "exec-1", ExecutionEventType.ORDER_ACCEPTED)
        await _log(audit, "exec-1", ExecutionEventType.EXECUTION_COMPLETED)

        events = [e.event_type for e in await audit.get_execution_logs("exec-1")]
        assert events == [ExecutionEventType.ORDER_ACCEPTED, ExecutionEventType.EXECUTION_COMPLETED]


class TestQuery:
    @pytest.mark.asyncio
    async def test_newest_first(self):
        audit = ExecutionLogger()
        for i in range(3):
            await _log(audit, f"exec-{i}")
        assert [e.execution_id for e in await audit.query()] == ["exec-2", "exec-1", "exec-0"]

    @pytest.mark.asyncio
    async def test_execution_logs_oldest_first(self):
        audit = ExecutionLogger()
        await _log(audit, "exec-1", ExecutionEventType.EXECUTION_STARTED)
        await _log(audit, "exec-2", ExecutionEventType.EXECUTION_STARTED)
        await _log(audit, "exec-1", ExecutionEventType.EXECUTION_FAILED, error="boom")

        events = [e.event_type for e in await audit.get_execution_logs("exec-1")]
        assert events == [ExecutionEventType.EXECUTION_STARTED, ExecutionEventType.EXECUTION_FAILED]

    @pytest.mark.asyncio
    async def test_filters_are_combined(self):
        audit = ExecutionLogger()
        await _log(audit, "a", ExecutionEventType.EXECUTION_FAILED, platform=TradingPlatform.KALSHI)
        await _log(audit, "b", ExecutionEventType.EXECUTION_FAILED)
        await _log(audit, "c", ExecutionEventType.EXECUTION_COMPLETED)

        result = await audit.query(platform=PM, event_type=ExecutionEventType.EXECUTION_FAILED)
        assert [e.execution_id for e in result] == ["b"]

    @pytest.mark.asyncio
    async def test_user_address_is_case_insensitive(self):
        audit = ExecutionLogger()
        await _log(audit, "a", user_address="0xAbCdEf")
        assert len(await audit.query(user_address="0xabcdef")) == 1

    @pytest.mark.asyncio
    async def test_limit_and_offset(self):
        audit = ExecutionLogger()
        for i in range(5):
            await _log(audit, f"exec-{i}")

        page = await audit.query(LogQuery(limit=2, offset=1))
        assert [e.execution_id for e in page] == ["exec-3", "exec-2"]

    @pytest.mark.asyncio
    async def test_time_window(self):
        audit = ExecutionLogger()
        await _log(audit, "a")
        now = utc_now()
        assert len(await audit.query(start=now + timedelta(seconds=1))) == 0
        assert len(await audit.query(end=now + timedelta(seconds=1))) == 1


class TestStats:
    @pytest.mark.asyncio
    async def test_counts(self):
        audit = ExecutionLogger()
        await _log(audit, "a", ExecutionEventType.EXECUTION_STARTED)
        await _log(audit, "a", ExecutionEventType.EXECUTION_COMPLETED)
        await _log(audit, "b", ExecutionEventType.EXECUTION_STARTED, platform=TradingPlatform.LIMITLESS)

        stats = audit.get_stats()
        assert stats.total_entries == 3
        assert stats.entries_by_type == {"EXECUTION_STARTED": 2, "EXECUTION_COMPLETED": 1}
        assert stats.entries_by_platform == {"POLYMARKET": 2, "LIMITLESS": 1}

    @pytest.mark.asyncio
    async def test_clear(self):
        audit = ExecutionLogger()
        await _log(audit, "a")
        audit.clear()
        assert len(audit) == 0
        assert audit.get_stats().total_entries == 0
        assert await audit.get_execution_logs("a") == []


class TestPersistence:
    @pytest.mark.asyncio
    async def test_entries_forwarded_to_storage(self):
        storage = MagicMock()
        storage.save = AsyncMock()
        audit = ExecutionLogger(LoggerConfig(enable_persistence=True), storage=storage)
        entry = await _log(audit, "a")
        storage.save.assert_awaited_once_with(entry)

    @pytest.mark.asyncio
    async def test_storage_ignored_when_disabled(self):
        storage = MagicMock()
        storage.save = AsyncMock()
        audit = ExecutionLogger(LoggerConfig(enable_persistence=False), storage=storage)
        await _log(audit, "a")
        storage.save.assert_not_awaited()
        assert not audit.persistence_enabled

    @pytest.mark.asyncio
    async def test_storage_failure_is_contained(self):
        storage = MagicMock()
        storage.save = AsyncMock(side_effect=OSError("disk full"))
        storage.query = AsyncMock(side_effect=OSError("disk full"))
        audit = ExecutionLogger(LoggerConfig(enable_persistence=True), storage=storage)

        entry = await _log(audit, "a")
        assert entry.execution_id == "a"
        # Reads fall back to the in-memory buffer
        assert [e.id for e in await audit.query()] == [entry.id]

    @pytest.mark.asyncio
    async def test_query_delegates_to_storage(self):
        storage = MagicMock()
        storage.save = AsyncMock()
        storage.query = AsyncMock(return_value=[])
        storage.get_by_execution_id = AsyncMock(return_value=[])
        audit = ExecutionLogger(LoggerConfig(enable_persistence=True), storage=storage)
        await _log(audit, "a")

        assert await audit.query(execution_id="a") == []
        assert await audit.get_execution_logs("a") == []
        storage.query.assert_awaited_once()
        storage.get_by_execution_id.assert_awaited_once_with("a")


class TestConsole:
    @pytest.mark.asyncio
    async def test_console_mirror(self, caplog):
        audit = ExecutionLogger(LoggerConfig(enable_console=True))
        with caplog.at_level(logging.INFO, logger="orderflow.execution.audit_log"):
            await _log(audit, "exec-7", ExecutionEventType.ORDER_ACCEPTED)
        assert "[POLYMARKET] [ORDER_ACCEPTED] [exec-7]" in caplog.text

    @pytest.mark.asyncio
    async def test_console_level_filters_info(self, caplog):
        audit = ExecutionLogger(
            LoggerConfig(enable_console=True, console_log_level=ConsoleLogLevel.ERROR)
        )
        with caplog.at_level(logging.DEBUG, logger="orderflow.execution.audit_log"):
            await _log(audit, "ok", ExecutionEventType.ORDER_ACCEPTED)
            await _log(audit, "bad", ExecutionEventType.EXECUTION_FAILED, error="boom")
        assert "[ok]" not in caplog.text
        assert "[bad] boom" in caplog.text


def test_create_log_entry_kwargs():
    kwargs = create_log_entry(
        "exec-1", ExecutionEventType.RETRY_ATTEMPTED, PM, "0xAAA", "market-1", {"attempt": 1}
    )
    assert kwargs["execution_id"] == "exec-1"
    assert kwargs["data"] == {"attempt": 1}
    assert kwargs["error"] is None
