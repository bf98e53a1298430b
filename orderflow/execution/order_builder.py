"""Order construction and per-platform validation.

`build_order` turns loose order input into an ExecutionRequest that respects
the target platform's order types, price range, tick size and size
increment. Out-of-range prices and off-grid prices or sizes are adjusted and
reported as warnings; anything that cannot be adjusted is an error. No
signing happens here.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime

from orderflow.config.schema import OrderBuilderConfig, PlatformOrderConfig
from orderflow.models.common import TradingPlatform
from orderflow.models.order import ExecutionRequest, OrderSide, OrderType, Outcome

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM_CONFIG: dict[TradingPlatform, PlatformOrderConfig] = {
    TradingPlatform.LIMITLESS: PlatformOrderConfig(
        supported_order_types=[OrderType.LIMIT, OrderType.GTC, OrderType.FOK, OrderType.IOC],
        tick_size=0.001,
        size_increment=0.01,
        min_price=0.001,
        max_price=0.999,
        maker_fee=0.0,
        taker_fee=0.02,
    ),
    TradingPlatform.POLYMARKET: PlatformOrderConfig(
        supported_order_types=[OrderType.LIMIT, OrderType.GTC, OrderType.GTD, OrderType.FOK],
        tick_size=0.01,
        size_increment=1,
        min_price=0.01,
        max_price=0.99,
        maker_fee=0.0,
        taker_fee=0.02,
    ),
    TradingPlatform.KALSHI: PlatformOrderConfig(
        supported_order_types=[OrderType.LIMIT, OrderType.MARKET],
        tick_size=0.01,
        size_increment=1,
        min_price=0.01,
        max_price=0.99,
        maker_fee=0.01,
        taker_fee=0.01,
    ),
    TradingPlatform.MANIFOLD: PlatformOrderConfig(
        supported_order_types=[OrderType.MARKET],
        tick_size=0.01,
        size_increment=1,
        min_price=0.01,
        max_price=0.99,
    ),
    # Forecasting only, no trading
    TradingPlatform.METACULUS: PlatformOrderConfig(
        supported_order_types=[],
        tick_size=0.01,
        size_increment=1,
        min_price=0.01,
        max_price=0.99,
    ),
}

# Differences smaller than this are float noise, not an adjustment
_EPSILON = 1e-4


@dataclass(frozen=True)
class OrderBuildInput:
    platform: TradingPlatform
    market_id: str
    outcome: Outcome
    side: OrderSide
    size: float
    price: float | None = None  # required unless MARKET
    order_type: OrderType | None = None
    expires_at: datetime | None = None
    client_order_id: str | None = None
    slippage_tolerance: float | None = None  # MARKET only


@dataclass(frozen=True)
class FeeEstimate:
    maker_fee: float
    taker_fee: float
    total_fee: float


@dataclass
class OrderBuildResult:
    success: bool
    order: ExecutionRequest | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    estimated_fees: FeeEstimate | None = None
    original_price: float | None = None
    adjusted_price: float | None = None
    original_size: float | None = None
    adjusted_size: float | None = None

    @property
    def adjusted(self) -> bool:
        return self.adjusted_price is not None or self.adjusted_size is not None


def _round_to(value: float, increment: float) -> float:
    # Half-up, then trim the binary noise left by the multiplication
    return round(math.floor(value / increment + 0.5) * increment, 10)


class OrderBuilder:
    def __init__(self, config: OrderBuilderConfig | None = None):
        self.config = config or OrderBuilderConfig()
        self._platforms = {**DEFAULT_PLATFORM_CONFIG, **self.config.platforms}

    def get_platform_config(self, platform: TradingPlatform) -> PlatformOrderConfig:
        """Constraints for `platform`, falling back to the LIMITLESS table."""
        return self._platforms.get(platform, DEFAULT_PLATFORM_CONFIG[TradingPlatform.LIMITLESS])

    def build_order(self, spec: OrderBuildInput, user_address: str = "") -> OrderBuildResult:
        platform_config = self.get_platform_config(spec.platform)
        order_type = spec.order_type or self.config.default_order_type
        result = OrderBuildResult(success=False)

        if order_type not in platform_config.supported_order_types:
            supported = ", ".join(platform_config.supported_order_types) or "none"
            result.errors.append(
                f"Order type '{order_type}' not supported on {spec.platform}. "
                f"Supported types: {supported}"
            )

        price = spec.price
        if order_type == OrderType.MARKET:
            price = self._market_price(spec, platform_config)
        elif price is None:
            result.errors.append("Price required for limit orders")
        else:
            price = self._adjust_price(price, platform_config, result)

        size = spec.size
        if size < self.config.min_order_size:
            result.errors.append(f"Size {size} below minimum {self.config.min_order_size}")
        if size > self.config.max_order_size:
            result.errors.append(f"Size {size} above maximum {self.config.max_order_size}")
        rounded_size = _round_to(size, platform_config.size_increment)
        if abs(rounded_size - size) > _EPSILON:
            result.original_size = size
            result.adjusted_size = size = rounded_size
            result.warnings.append(f"Size rounded to increment: {size}")

        if not spec.market_id or not spec.market_id.strip():
            result.errors.append("Market ID is required")

        if result.errors:
            logger.debug("Order for %s rejected: %s", spec.platform, "; ".join(result.errors))
            return result

        result.order = ExecutionRequest(
            platform=spec.platform,
            user_address=user_address,
            market_id=spec.market_id,
            outcome=spec.outcome,
            side=spec.side,
            size=size,
            price=price,
            order_type=order_type,
            client_order_id=spec.client_order_id,
            expires_at=spec.expires_at,
        )
        result.estimated_fees = self.estimate_fees(result.order)
        result.success = True
        return result

    def validate_order(self, request: ExecutionRequest) -> OrderBuildResult:
        """Run an existing request back through `build_order`."""
        return self.build_order(
            OrderBuildInput(
                platform=request.platform,
                market_id=request.market_id,
                outcome=request.outcome,
                side=request.side,
                size=request.size,
                price=request.price,
                order_type=request.order_type,
                expires_at=request.expires_at,
                client_order_id=request.client_order_id,
            ),
            user_address=request.user_address,
        )

    def estimate_fees(self, request: ExecutionRequest) -> FeeEstimate:
        """MARKET orders pay the taker rate, everything else the maker rate."""
        platform_config = self.get_platform_config(request.platform)
        notional = request.size * request.price
        maker_fee = notional * platform_config.maker_fee
        taker_fee = notional * platform_config.taker_fee
        total = taker_fee if request.order_type == OrderType.MARKET else maker_fee
        return FeeEstimate(maker_fee=maker_fee, taker_fee=taker_fee, total_fee=total)

    def _market_price(self, spec: OrderBuildInput, platform_config: PlatformOrderConfig) -> float:
        # Worst acceptable price, bounded by the platform range
        slippage = spec.slippage_tolerance or self.config.default_slippage_tolerance
        if spec.side == OrderSide.BUY:
            price = platform_config.max_price * (1 + slippage)
        else:
            price = platform_config.min_price * (1 - slippage)
        return max(platform_config.min_price, min(platform_config.max_price, price))

    def _adjust_price(
        self, price: float, platform_config: PlatformOrderConfig, result: OrderBuildResult
    ) -> float:
        if price < platform_config.min_price or price > platform_config.max_price:
            clamped = max(platform_config.min_price, min(platform_config.max_price, price))
            bound = "minimum" if price < platform_config.min_price else "maximum"
            result.original_price = price
            result.adjusted_price = clamped
            result.warnings.append(f"Price adjusted from {price} to {clamped} ({bound})")
            price = clamped

        rounded = _round_to(price, platform_config.tick_size)
        if abs(rounded - price) > _EPSILON:
            if result.original_price is None:
                result.original_price = price
            result.adjusted_price = price = rounded
            result.warnings.append(f"Price rounded to tick size: {price}")
        return price


def market_order(
    platform: TradingPlatform,
    market_id: str,
    outcome: Outcome,
    side: OrderSide,
    size: float,
    slippage_tolerance: float | None = None,
) -> OrderBuildInput:
    return OrderBuildInput(
        platform=platform,
        market_id=market_id,
        outcome=outcome,
        side=side,
        size=size,
        order_type=OrderType.MARKET,
        slippage_tolerance=slippage_tolerance,
    )


def limit_order(
    platform: TradingPlatform,
    market_id: str,
    outcome: Outcome,
    side: OrderSide,
    size: float,
    price: float,
    order_type: OrderType = OrderType.GTC,
) -> OrderBuildInput:
    return OrderBuildInput(
        platform=platform,
        market_id=market_id,
        outcome=outcome,
        side=side,
        size=size,
        price=price,
        order_type=order_type,
    )


default_order_builder = OrderBuilder()
