"""Initial schema: the execution audit log and config snapshots."""

import sqlite3

DDL = [
    """
    CREATE TABLE IF NOT EXISTS execution_logs (
        id TEXT PRIMARY KEY,
        execution_id TEXT NOT NULL,
        event_type TEXT NOT NULL,
        platform TEXT NOT NULL,
        user_address TEXT NOT NULL DEFAULT '',
        user_id TEXT,
        market_id TEXT NOT NULL DEFAULT '',
        order_id TEXT,
        timestamp TEXT NOT NULL,
        data_json TEXT NOT NULL DEFAULT '{}',
        error TEXT,
        duration_ms REAL
    )
    """,
    (
        "CREATE INDEX IF NOT EXISTS idx_execution_logs_execution "
        "ON execution_logs(execution_id, timestamp)"
    ),
    "CREATE INDEX IF NOT EXISTS idx_execution_logs_timestamp ON execution_logs(timestamp)",
    (
        "CREATE INDEX IF NOT EXISTS idx_execution_logs_user "
        "ON execution_logs(user_address COLLATE NOCASE)"
    ),
    "CREATE INDEX IF NOT EXISTS idx_execution_logs_order ON execution_logs(order_id)",
    (
        "CREATE INDEX IF NOT EXISTS idx_execution_logs_type_platform "
        "ON execution_logs(event_type, platform)"
    ),

    # Config snapshots, keyed by config_hash
    """
    CREATE TABLE IF NOT EXISTS config_snapshots (
        config_hash TEXT PRIMARY KEY,
        config_json TEXT NOT NULL,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


def up(conn: sqlite3.Connection) -> None:
    for stmt in DDL:
        conn.execute(stmt)
    conn.commit()
