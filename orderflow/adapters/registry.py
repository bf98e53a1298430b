"""Trading adapter registry: platform -> factory, plus a keyed instance cache."""

import logging
from typing import Any

from orderflow.adapters.base import AdapterFactory, TradingAdapter
from orderflow.execution.errors import ConfigurationError
from orderflow.models.common import TradingPlatform

logger = logging.getLogger(__name__)


class AdapterRegistry:
    def __init__(self) -> None:
        self._factories: dict[TradingPlatform, AdapterFactory] = {}
        self._instances: dict[str, TradingAdapter] = {}

    def register(self, platform: TradingPlatform, factory: AdapterFactory) -> None:
        """Register (or replace) the adapter factory for a platform."""
        if platform in self._factories:
            logger.info("Replacing adapter factory for %s", platform)
        self._factories[platform] = factory

    def get(self, platform: TradingPlatform) -> AdapterFactory | None:
        return self._factories.get(platform)

    def get_all(self) -> dict[TradingPlatform, AdapterFactory]:
        return dict(self._factories)

    def get_or_create(
        self,
        platform: TradingPlatform,
        config: dict[str, Any] | None = None,
        key: str | None = None,
    ) -> TradingAdapter:
        """Return the cached adapter for `key`, creating it on first use.

        The key defaults to "<platform>:default", so per-user instances can be
        kept apart with keys like "POLYMARKET:0xabc...".
        """
        instance_key = key or f"{platform}:default"
        existing = self._instances.get(instance_key)
        if existing is not None:
            return existing

        factory = self._factories.get(platform)
        if factory is None:
            raise ConfigurationError(f"No adapter registered for platform: {platform}")

        instance = factory(config or {})
        self._instances[instance_key] = instance
        logger.debug("Created %s adapter instance %s", platform, instance_key)
        return instance

    def remove_instance(self, key: str) -> bool:
        return self._instances.pop(key, None) is not None

    def clear_instances(self) -> None:
        self._instances.clear()

    def get_available_platforms(self) -> list[TradingPlatform]:
        return list(self._factories)

    def is_registered(self, platform: TradingPlatform) -> bool:
        return platform in self._factories


# Convenience instance for applications that want a process-wide registry.
# Router and tracker accept any registry explicitly.
default_registry = AdapterRegistry()


def register_trading_adapter(platform: TradingPlatform, factory: AdapterFactory) -> None:
    default_registry.register(platform, factory)


def get_trading_adapter(
    platform: TradingPlatform,
    config: dict[str, Any] | None = None,
    key: str | None = None,
) -> TradingAdapter:
    return default_registry.get_or_create(platform, config, key)
