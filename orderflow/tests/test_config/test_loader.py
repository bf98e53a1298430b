"""Tests for config loading, snapshot persistence, and get/set."""

import sqlite3
from pathlib import Path

import pytest
from pydantic import ValidationError

from orderflow.config.loader import (
    config_hash,
    get_config_value,
    load_config,
    set_config_value,
    snapshot_config,
)
from orderflow.config.schema import ConsoleLogLevel, OrderflowConfig, RouterConfig


class TestLoadConfig:
    def test_load_from_yaml(self, config_yaml_path: Path):
        config = load_config(config_yaml_path)
        assert config.router.default_max_retries == 5
        assert config.router.retry_delay_ms == 250
        assert config.tracker.max_subscriptions == 10
        assert config.logger.console_log_level == ConsoleLogLevel.WARNING
        # Unspecified sections keep their defaults
        assert config.notifier.webhook_timeout_ms == 10_000

    def test_empty_yaml_uses_defaults(self, tmp_path: Path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == OrderflowConfig()

    def test_missing_file_uses_defaults(self, tmp_path: Path):
        assert load_config(tmp_path / "nope.yaml") == OrderflowConfig()

    def test_unknown_section_rejected(self, tmp_path: Path):
        path = tmp_path / "bad.yaml"
        path.write_text("exchange:\n  name: foo\n")
        with pytest.raises(ValidationError):
            load_config(path)


class TestConfigHash:
    def test_deterministic(self):
        assert config_hash(OrderflowConfig()) == config_hash(OrderflowConfig())

    def test_different_config_different_hash(self):
        c2 = OrderflowConfig(router=RouterConfig(default_max_retries=1))
        assert config_hash(OrderflowConfig()) != config_hash(c2)


class TestSnapshotConfig:
    def test_persists_to_db(self, default_config: OrderflowConfig, tmp_db: sqlite3.Connection):
        h = snapshot_config(default_config, tmp_db)
        row = tmp_db.execute(
            "SELECT config_json FROM config_snapshots WHERE config_hash = ?", (h,)
        ).fetchone()
        assert row is not None

    def test_idempotent(self, default_config: OrderflowConfig, tmp_db: sqlite3.Connection):
        h1 = snapshot_config(default_config, tmp_db)
        h2 = snapshot_config(default_config, tmp_db)
        assert h1 == h2
        count = tmp_db.execute("SELECT COUNT(*) FROM config_snapshots").fetchone()[0]
        assert count == 1


class TestGetConfigValue:
    def test_dotted_key(self, default_config: OrderflowConfig):
        assert get_config_value(default_config, "router.retry_delay_ms") == 1000

    def test_nested(self, default_config: OrderflowConfig):
        assert get_config_value(default_config, "notifier.default_preferences.notify_on_fill") is True

    def test_invalid_key(self, default_config: OrderflowConfig):
        with pytest.raises(KeyError):
            get_config_value(default_config, "nonexistent.key")


class TestSetConfigValue:
    def test_set_and_revalidate(self, default_config: OrderflowConfig):
        new_config = set_config_value(default_config, "tracker.max_subscriptions", 7)
        assert new_config.tracker.max_subscriptions == 7
        # Original untouched
        assert default_config.tracker.max_subscriptions == 100

    def test_set_string_coercion(self, default_config: OrderflowConfig):
        new_config = set_config_value(default_config, "router.default_max_retries", "5")
        assert new_config.router.default_max_retries == 5

    def test_bool_coercion(self, default_config: OrderflowConfig):
        new_config = set_config_value(default_config, "router.enable_tracking", "false")
        assert new_config.router.enable_tracking is False
        new_config = set_config_value(new_config, "router.enable_tracking", "yes")
        assert new_config.router.enable_tracking is True

    def test_unknown_key(self, default_config: OrderflowConfig):
        with pytest.raises(KeyError):
            set_config_value(default_config, "router.nope", "1")

    def test_invalid_value_raises(self, default_config: OrderflowConfig):
        with pytest.raises(ValidationError):
            set_config_value(default_config, "router.request_timeout_ms", -1)
