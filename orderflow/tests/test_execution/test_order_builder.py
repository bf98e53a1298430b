"""Tests for order construction and per-platform limits."""

import pytest

from orderflow.config.schema import OrderBuilderConfig, PlatformOrderConfig
from orderflow.execution.order_builder import (
    OrderBuilder,
    OrderBuildInput,
    limit_order,
    market_order,
)
from orderflow.models.common import TradingPlatform
from orderflow.models.order import OrderSide, OrderType
from orderflow.tests.helpers import USER, make_request

LIMITLESS = TradingPlatform.LIMITLESS
POLYMARKET = TradingPlatform.POLYMARKET


def _input(**overrides) -> OrderBuildInput:
    fields = dict(
        platform=LIMITLESS,
        market_id="btc-100k",
        outcome="YES",
        side=OrderSide.BUY,
        size=100.0,
        price=0.65,
        order_type=OrderType.GTC,
    )
    fields.update(overrides)
    return OrderBuildInput(**fields)


@pytest.fixture
def builder() -> OrderBuilder:
    return OrderBuilder()


class TestBuildOrder:
    def test_valid_limit_order(self, builder):
        result = builder.build_order(_input(), user_address=USER)
        assert result.success is True
        assert result.errors == []
        order = result.order
        assert order.market_id == "btc-100k"
        assert order.side == OrderSide.BUY
        assert order.size == 100.0
        assert order.price == 0.65
        assert order.order_type == OrderType.GTC
        assert order.user_address == USER
        assert not result.adjusted

    def test_unsupported_order_type(self, builder):
        result = builder.build_order(_input(order_type=OrderType.MARKET))
        assert result.success is False
        assert result.order is None
        assert any("not supported" in e for e in result.errors)

    def test_price_required_for_limit(self, builder):
        result = builder.build_order(_input(price=None))
        assert result.success is False
        assert "Price required for limit orders" in result.errors

    def test_price_clamped_to_platform_maximum(self, builder):
        result = builder.build_order(_input(price=1.5))
        assert result.success is True
        assert result.order.price == 0.999
        assert result.original_price == 1.5
        assert any("adjusted" in w for w in result.warnings)

    def test_price_rounded_to_tick(self, builder):
        result = builder.build_order(_input(price=0.6543))
        assert result.order.price == 0.654
        assert result.adjusted_price == 0.654

    def test_polymarket_tick_is_coarser(self, builder):
        result = builder.build_order(_input(platform=POLYMARKET, price=0.657, size=10))
        assert result.order.price == 0.66

    def test_size_rounded_to_increment(self, builder):
        result = builder.build_order(_input(platform=POLYMARKET, size=10.4))
        assert result.success is True
        assert result.order.size == 10
        assert result.original_size == 10.4
        assert result.adjusted_size == 10

    @pytest.mark.parametrize("size,message", [
        (0.001, "below minimum"),
        (2_000_000, "above maximum"),
    ])
    def test_size_bounds(self, builder, size, message):
        result = builder.build_order(_input(size=size))
        assert result.success is False
        assert any(message in e for e in result.errors)

    def test_market_id_required(self, builder):
        result = builder.build_order(_input(market_id="  "))
        assert "Market ID is required" in result.errors

    def test_errors_are_collected(self, builder):
        result = builder.build_order(_input(market_id="", size=0.001))
        assert len(result.errors) == 2

    def test_market_order_price_bounds(self, builder):
        buy = builder.build_order(
            market_order(TradingPlatform.KALSHI, "m", "YES", OrderSide.BUY, 10)
        )
        sell = builder.build_order(
            market_order(TradingPlatform.KALSHI, "m", "YES", OrderSide.SELL, 10)
        )
        assert buy.order.order_type == OrderType.MARKET
        assert buy.order.price == 0.99
        assert sell.order.price == 0.01

    def test_default_order_type(self, builder):
        result = builder.build_order(_input(order_type=None))
        assert result.order.order_type == OrderType.LIMIT

    def test_optional_fields_and_numeric_outcome(self, builder):
        result = builder.build_order(_input(client_order_id="my-order-123", outcome=0))
        assert result.order.client_order_id == "my-order-123"
        assert result.order.outcome == 0

    def test_metaculus_cannot_trade(self, builder):
        result = builder.build_order(_input(platform=TradingPlatform.METACULUS))
        assert result.success is False
        assert "Supported types: none" in result.errors[0]


class TestValidateOrder:
    def test_valid_request(self, builder):
        result = builder.validate_order(make_request())
        assert result.success is True
        assert result.order.user_address == USER

    def test_invalid_request(self, builder):
        result = builder.validate_order(make_request(order_type=OrderType.IOC))
        assert result.success is False


class TestPlatformConfig:
    def test_defaults(self, builder):
        assert builder.get_platform_config(LIMITLESS).tick_size == 0.001
        assert builder.get_platform_config(POLYMARKET).tick_size == 0.01
        assert builder.get_platform_config(TradingPlatform.MANIFOLD).supported_order_types == [
            OrderType.MARKET
        ]

    def test_config_overrides_one_platform(self):
        custom = PlatformOrderConfig(
            supported_order_types=[OrderType.LIMIT],
            tick_size=0.05,
            size_increment=5,
            min_price=0.05,
            max_price=0.95,
        )
        builder = OrderBuilder(OrderBuilderConfig(platforms={POLYMARKET: custom}))
        assert builder.get_platform_config(POLYMARKET) == custom
        assert builder.get_platform_config(LIMITLESS).tick_size == 0.001


class TestFees:
    def test_limit_order_pays_maker(self, builder):
        request = make_request(platform=LIMITLESS, size=100, price=0.5)
        fees = builder.estimate_fees(request)
        assert fees.maker_fee == 0
        assert fees.taker_fee == pytest.approx(1.0)
        assert fees.total_fee == 0

    def test_market_order_pays_taker(self, builder):
        request = make_request(
            platform=LIMITLESS, size=100, price=0.5, order_type=OrderType.MARKET
        )
        assert builder.estimate_fees(request).total_fee == pytest.approx(1.0)

    def test_build_includes_fees(self, builder):
        result = builder.build_order(
            _input(platform=TradingPlatform.KALSHI, order_type=OrderType.LIMIT)
        )
        assert result.estimated_fees.maker_fee == pytest.approx(0.65)
        assert result.estimated_fees.total_fee == pytest.approx(0.65)


def test_limit_order_helper():
    spec = limit_order(LIMITLESS, "btc-100k", "YES", OrderSide.SELL, 100, 0.65)
    assert spec.price == 0.65
    assert spec.side == OrderSide.SELL
    assert spec.order_type == OrderType.GTC
