"""Shared test fixtures."""

import sqlite3
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import yaml

from orderflow.adapters.paper import PaperAdapter
from orderflow.adapters.registry import AdapterRegistry
from orderflow.config.schema import OrderflowConfig, RouterConfig, TrackerConfig
from orderflow.models.common import TradingPlatform
from orderflow.storage.database import connect, run_migrations
from orderflow.tests.helpers import make_order


@pytest.fixture
def tmp_db(tmp_path: Path) -> sqlite3.Connection:
    """A migrated temporary SQLite database."""
    conn = connect(tmp_path / "test.db")
    run_migrations(conn)
    yield conn
    conn.close()


@pytest.fixture
def default_config() -> OrderflowConfig:
    return OrderflowConfig()


@pytest.fixture
def fast_router_config() -> RouterConfig:
    """Router config with retry delays short enough for unit tests."""
    return RouterConfig(default_max_retries=2, retry_delay_ms=1, request_timeout_ms=200)


@pytest.fixture
def fast_tracker_config() -> TrackerConfig:
    return TrackerConfig(default_polling_interval_ms=10, default_timeout_ms=None)


@pytest.fixture
def config_yaml_path(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    data = {
        "router": {"default_max_retries": 5, "retry_delay_ms": 250},
        "tracker": {"max_subscriptions": 10},
        "logger": {"enable_console": True, "console_log_level": "warning"},
    }
    path = tmp_path / "test_config.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


@pytest.fixture
def paper_adapter() -> PaperAdapter:
    return PaperAdapter()


@pytest.fixture
def registry(paper_adapter: PaperAdapter) -> AdapterRegistry:
    """Registry whose POLYMARKET factory always hands out `paper_adapter`."""
    reg = AdapterRegistry()
    reg.register(TradingPlatform.POLYMARKET, lambda config: paper_adapter)
    return reg


@pytest.fixture
def mock_adapter() -> AsyncMock:
    """An adapter whose every call is an AsyncMock, ready by default."""
    adapter = AsyncMock()
    adapter.is_ready.return_value = True
    adapter.place_order.return_value = make_order()
    adapter.cancel_order.return_value = True
    adapter.get_order.return_value = make_order()
    return adapter


@pytest.fixture
def mock_registry(mock_adapter: AsyncMock) -> AdapterRegistry:
    reg = AdapterRegistry()
    reg.register(TradingPlatform.POLYMARKET, lambda config: mock_adapter)
    return reg
