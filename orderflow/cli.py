"""CLI entry point for the order execution core."""

import argparse
import asyncio
import json
import logging

from orderflow.adapters.paper import create_paper_adapter
from orderflow.adapters.registry import AdapterRegistry
from orderflow.config.loader import (
    get_config_value,
    load_config,
    set_config_value,
    snapshot_config,
)
from orderflow.execution.services import create_execution_services
from orderflow.models.common import TradingPlatform
from orderflow.models.execution import ExecutionEventType, LogQuery
from orderflow.models.order import ExecutionRequest, OrderSide, OrderType
from orderflow.storage import log_repo
from orderflow.storage.database import open_database
from orderflow.storage.log_repo import SqliteLogStorage

DEFAULT_CONFIG = "config/orderflow.yaml"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="orderflow",
        description="Prediction-market order execution core",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG, help="Config YAML path"
    )
    parser.add_argument(
        "--db", default=None, help="SQLite DB path (overrides storage.db_path)"
    )

    sub = parser.add_subparsers(dest="command")

    # config show / config set
    config_p = sub.add_parser("config", help="Config operations")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Display current config")
    set_p = config_sub.add_parser("set", help="Set a config value")
    set_p.add_argument("keyvalue", help="key=value to set")

    # logs
    logs_p = sub.add_parser("logs", help="Query the persisted audit log")
    logs_p.add_argument("--execution-id", help="Only this execution, oldest first")
    logs_p.add_argument("--user", help="Filter by user address")
    logs_p.add_argument("--order-id", help="Filter by order id")
    logs_p.add_argument(
        "--platform", choices=[p.value for p in TradingPlatform], help="Filter by platform"
    )
    logs_p.add_argument(
        "--event-type",
        choices=[e.value for e in ExecutionEventType],
        help="Filter by event type",
    )
    logs_p.add_argument("--limit", type=int, default=20, help="Max entries to show")
    logs_p.add_argument("--json", action="store_true", help="Emit JSON lines")

    # stats
    sub.add_parser("stats", help="Audit log counts by event type and platform")

    # paper
    paper_p = sub.add_parser("paper", help="Place one order against the paper adapter")
    paper_p.add_argument("market_id")
    paper_p.add_argument("--outcome", default="YES")
    paper_p.add_argument("--side", choices=[s.value for s in OrderSide], default="BUY")
    paper_p.add_argument(
        "--type", dest="order_type", choices=[t.value for t in OrderType], default="FOK"
    )
    paper_p.add_argument("--size", type=float, default=10.0)
    paper_p.add_argument("--price", type=float, default=0.5)
    paper_p.add_argument("--user", default="0x0000000000000000000000000000000000000001")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    db_path = args.db or config.storage.db_path

    if args.command == "config":
        return _cmd_config(config, args)
    elif args.command == "logs":
        return _cmd_logs(db_path, args)
    elif args.command == "stats":
        return _cmd_stats(db_path)
    elif args.command == "paper":
        return asyncio.run(_cmd_paper(config, db_path, args))
    else:
        parser.print_help()
        return 1


def _cmd_config(config, args) -> int:
    if args.config_command == "show":
        print(config.model_dump_json(indent=2))
        return 0
    elif args.config_command == "set":
        kv = args.keyvalue
        if "=" not in kv:
            print("Error: use key=value format")
            return 1
        key, value = kv.split("=", 1)
        try:
            new_config = set_config_value(config, key.strip(), value.strip())
            print(f"Set {key} = {get_config_value(new_config, key.strip())}")
            return 0
        except Exception as e:
            print(f"Error: {e}")
            return 1
    else:
        print("Use: config show | config set key=value")
        return 1


def _cmd_logs(db_path, args) -> int:
    conn = open_database(db_path)
    if args.execution_id:
        entries = log_repo.get_entries_for_execution(conn, args.execution_id)
    else:
        entries = log_repo.query_log_entries(
            conn,
            LogQuery(
                user_address=args.user,
                order_id=args.order_id,
                platform=TradingPlatform(args.platform) if args.platform else None,
                event_type=ExecutionEventType(args.event_type) if args.event_type else None,
                limit=args.limit,
            ),
        )
    conn.close()

    if not entries:
        print("No log entries")
        return 0
    for e in entries:
        if args.json:
            print(json.dumps({
                "id": e.id,
                "execution_id": e.execution_id,
                "event_type": e.event_type.value,
                "platform": e.platform.value,
                "timestamp": e.timestamp.isoformat(),
                "order_id": e.order_id,
                "error": e.error,
                "data": e.data,
            }, default=str))
        else:
            detail = f" error={e.error}" if e.error else ""
            order = f" order={e.order_id}" if e.order_id else ""
            print(
                f"{e.timestamp.isoformat()} {e.platform:<10} {e.event_type:<22} "
                f"{e.execution_id}{order}{detail}"
            )
    return 0


def _cmd_stats(db_path) -> int:
    conn = open_database(db_path)
    total = log_repo.count_entries(conn)
    by_type = log_repo.count_by_event_type(conn)
    by_platform = log_repo.count_by_platform(conn)
    conn.close()

    print(f"Total entries: {total}")
    print("By event type:")
    for name, n in by_type.items():
        print(f"  {name}: {n}")
    print("By platform:")
    for name, n in by_platform.items():
        print(f"  {name}: {n}")
    return 0


async def _cmd_paper(config, db_path, args) -> int:
    conn = open_database(db_path)
    print(f"Config: {snapshot_config(config, conn)}")
    registry = AdapterRegistry()
    platform = TradingPlatform.POLYMARKET
    registry.register(platform, create_paper_adapter)

    config = config.model_copy(
        update={"logger": config.logger.model_copy(update={"enable_persistence": True})}
    )
    services = create_execution_services(
        config, registry=registry, storage=SqliteLogStorage(conn)
    )
    outcome = int(args.outcome) if args.outcome.isdigit() else args.outcome
    try:
        result = await services.router.execute(
            ExecutionRequest(
                platform=platform,
                user_address=args.user,
                market_id=args.market_id,
                outcome=outcome,
                side=OrderSide(args.side),
                order_type=OrderType(args.order_type),
                size=args.size,
                price=args.price,
            )
        )
    finally:
        await services.aclose()
        conn.close()

    if not result.success:
        print(f"FAILED [{result.error_code}] {result.error}")
        print(f"Execution: {result.execution_id}")
        return 1
    order = result.order
    print(f"Execution: {result.execution_id}")
    print(
        f"Order {order.id}: {order.status} {order.side} "
        f"{order.filled_size:g}/{order.size:g} {order.outcome} @ {order.price:.3f}"
    )
    return 0
