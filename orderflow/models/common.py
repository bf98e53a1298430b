"""Common types and helpers shared across models."""

import uuid
from datetime import UTC, datetime
from enum import StrEnum


class TradingPlatform(StrEnum):
    POLYMARKET = "POLYMARKET"
    LIMITLESS = "LIMITLESS"
    KALSHI = "KALSHI"
    MANIFOLD = "MANIFOLD"
    METACULUS = "METACULUS"


def utc_now() -> datetime:
    return datetime.now(UTC)


def new_id() -> str:
    return str(uuid.uuid4())
