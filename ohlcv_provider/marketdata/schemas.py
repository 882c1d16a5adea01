"""Pydantic schemas for market data API."""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ohlcv_provider.marketdata.models import Candle


class CandleSchema(BaseModel):
    """Candle data schema."""

    timestamp: int = Field(..., description="Candle open time, ms since epoch (UTC)")
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    @classmethod
    def from_candle(cls, candle: Candle) -> "CandleSchema":
        return cls(**candle.model_dump())


class CandleListSchema(BaseModel):
    """List of candles."""

    count: int
    total: int
    candles: List[CandleSchema]
    earliest: Optional[int] = None
    latest: Optional[int] = None


class ProviderStatusSchema(BaseModel):
    """Provider readiness and buffer summary."""

    symbol: str
    timeframe: str
    days: int
    ready: bool
    backfilled: bool
    closed: bool
    updating: bool
    size: int
    first_timestamp: Optional[int] = None
    last_timestamp: Optional[int] = None
    ticks: int
    backfill: Optional[Dict[str, Any]] = None


class IntegrityCheckSchema(BaseModel):
    """Buffer integrity check result."""

    timeframe: str
    earliest: Optional[int] = None
    latest: Optional[int] = None
    expected_count: int
    actual_count: int
    missing_count: int
    duplicates_count: int = 0
    out_of_order_count: int = 0
    stale_count: int = 0
    missing_ranges: List[tuple[int, int]] = Field(default_factory=list)
    is_complete: bool
