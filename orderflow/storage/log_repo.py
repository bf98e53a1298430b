"""Repository for execution audit-log entries, plus the LogStorageAdapter over it."""

import json
import sqlite3
from datetime import datetime, timezone

from orderflow.models.common import TradingPlatform
from orderflow.models.execution import ExecutionEventType, ExecutionLogEntry, LogQuery


def _ts(value: datetime) -> str:
    # Fixed-width UTC text so lexical order equals chronological order
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def save_log_entry(conn: sqlite3.Connection, entry: ExecutionLogEntry) -> None:
    """Persist one entry. Re-saving the same id is a no-op."""
    conn.execute(
        "INSERT OR IGNORE INTO execution_logs "
        "(id, execution_id, event_type, platform, user_address, user_id, "
        "market_id, order_id, timestamp, data_json, error, duration_ms) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            entry.id,
            entry.execution_id,
            entry.event_type.value,
            entry.platform.value,
            entry.user_address,
            entry.user_id,
            entry.market_id,
            entry.order_id,
            _ts(entry.timestamp),
            json.dumps(entry.data, default=str),
            entry.error,
            entry.duration_ms,
        ),
    )
    conn.commit()


def query_log_entries(conn: sqlite3.Connection, query: LogQuery) -> list[ExecutionLogEntry]:
    """Entries matching the query, most recent first."""
    clauses = []
    params: list = []
    if query.execution_id:
        clauses.append("execution_id = ?")
        params.append(query.execution_id)
    if query.user_address:
        clauses.append("user_address = ? COLLATE NOCASE")
        params.append(query.user_address)
    if query.user_id:
        clauses.append("user_id = ?")
        params.append(query.user_id)
    if query.platform:
        clauses.append("platform = ?")
        params.append(str(query.platform))
    if query.event_type:
        clauses.append("event_type = ?")
        params.append(str(query.event_type))
    if query.order_id:
        clauses.append("order_id = ?")
        params.append(query.order_id)
    if query.start:
        clauses.append("timestamp >= ?")
        params.append(_ts(query.start))
    if query.end:
        clauses.append("timestamp <= ?")
        params.append(_ts(query.end))

    where = f"WHERE {' AND '.join(clauses)} " if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM execution_logs {where}"
        "ORDER BY timestamp DESC, rowid DESC LIMIT ? OFFSET ?",
        (*params, query.limit, query.offset),
    ).fetchall()
    return [_row_to_entry(r) for r in rows]


def get_entries_for_execution(
    conn: sqlite3.Connection, execution_id: str
) -> list[ExecutionLogEntry]:
    """All entries of one execution in the order they were written."""
    rows = conn.execute(
        "SELECT * FROM execution_logs WHERE execution_id = ? ORDER BY timestamp, rowid",
        (execution_id,),
    ).fetchall()
    return [_row_to_entry(r) for r in rows]


def count_entries(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM execution_logs").fetchone()[0]


def count_by_event_type(conn: sqlite3.Connection) -> dict[str, int]:
    rows = conn.execute(
        "SELECT event_type, COUNT(*) AS n FROM execution_logs "
        "GROUP BY event_type ORDER BY n DESC, event_type"
    ).fetchall()
    return {r["event_type"]: r["n"] for r in rows}


def count_by_platform(conn: sqlite3.Connection) -> dict[str, int]:
    rows = conn.execute(
        "SELECT platform, COUNT(*) AS n FROM execution_logs "
        "GROUP BY platform ORDER BY n DESC, platform"
    ).fetchall()
    return {r["platform"]: r["n"] for r in rows}


def _row_to_entry(row: sqlite3.Row) -> ExecutionLogEntry:
    return ExecutionLogEntry(
        id=row["id"],
        execution_id=row["execution_id"],
        event_type=ExecutionEventType(row["event_type"]),
        platform=TradingPlatform(row["platform"]),
        user_address=row["user_address"],
        market_id=row["market_id"],
        timestamp=datetime.fromisoformat(row["timestamp"]),
        data=json.loads(row["data_json"]),
        user_id=row["user_id"],
        order_id=row["order_id"],
        error=row["error"],
        duration_ms=row["duration_ms"],
    )


class SqliteLogStorage:
    """LogStorageAdapter backed by the execution_logs table.

    Calls run synchronously on the event loop thread; each one is a single
    indexed statement against a local file.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    async def save(self, entry: ExecutionLogEntry) -> None:
        save_log_entry(self.conn, entry)

    async def query(self, query: LogQuery) -> list[ExecutionLogEntry]:
        return query_log_entries(self.conn, query)

    async def get_by_execution_id(self, execution_id: str) -> list[ExecutionLogEntry]:
        return get_entries_for_execution(self.conn, execution_id)
