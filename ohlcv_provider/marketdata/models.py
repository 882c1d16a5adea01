"""In-memory market data models."""
from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from decimal import Decimal, InvalidOperation
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


ReadinessPolicy = Literal["fail_open", "fail_closed"]
EventKind = Literal["backfill_complete", "backfill_failed", "update_failed", "update_recovered"]
StopReason = Literal["exhausted", "covered", "caught_up", "error", "cancelled"]

CANDLE_FIELDS = ("timestamp", "open", "high", "low", "close", "volume")


def _to_decimal(value: Any, name: str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise ValueError(f"{name} is missing")
    try:
        # str() keeps float inputs at their printed precision
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{name} is not numeric: {value!r}") from None


class Candle(BaseModel):
    """One OHLCV candle. Prices and volume are passed through untouched."""

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(..., description="Candle open time, ms since epoch (UTC)")
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal

    @classmethod
    def from_raw(cls, raw: Any) -> "Candle":
        """
        Normalize what a candle source returns into a Candle.

        Accepts a Candle, a row ``[timestamp, open, high, low, close, volume]``
        or a mapping with those keys.

        Raises ValueError if the record cannot be interpreted.
        """
        if isinstance(raw, Candle):
            return raw

        if isinstance(raw, Mapping):
            values = [raw.get(name) for name in CANDLE_FIELDS]
        elif isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)):
            if len(raw) < len(CANDLE_FIELDS):
                raise ValueError(f"Candle row needs {len(CANDLE_FIELDS)} fields, got {len(raw)}")
            values = list(raw[: len(CANDLE_FIELDS)])
        else:
            raise ValueError(f"Unsupported candle record: {type(raw).__name__}")

        ts = values[0]
        if isinstance(ts, bool) or not isinstance(ts, (int, float)):
            raise ValueError(f"timestamp must be numeric ms, got {ts!r}")
        if isinstance(ts, float) and not math.isfinite(ts):
            raise ValueError(f"timestamp must be finite, got {ts!r}")

        return cls(
            timestamp=int(ts),
            open=_to_decimal(values[1], "open"),
            high=_to_decimal(values[2], "high"),
            low=_to_decimal(values[3], "low"),
            close=_to_decimal(values[4], "close"),
            volume=_to_decimal(values[5], "volume"),
        )

    def to_row(self) -> list[Any]:
        return [self.timestamp, self.open, self.high, self.low, self.close, self.volume]


class ProviderSettings(BaseModel):
    """Immutable provider configuration."""

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    timeframe: str = "1m"
    days: int = Field(default=7, gt=0)
    update_interval_ms: int = Field(default=10_000, gt=0)
    limit: int = Field(default=1000, gt=0)
    backfill_pause_ms: int = Field(default=500, ge=0)
    readiness_policy: ReadinessPolicy = "fail_open"
    drop_stale_candles: bool = True


class ProviderEvent(BaseModel):
    """Notification published by a provider's background activity."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    symbol: str
    timeframe: str
    message: str
    at_ms: int
    details: dict[str, Any] = Field(default_factory=dict)


class BackfillReport(BaseModel):
    """Outcome of one historical load."""

    chunks: int = 0
    loaded: int = 0
    dropped: int = 0
    evicted: int = 0
    stop_reason: Optional[StopReason] = None
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.stop_reason in ("exhausted", "covered", "caught_up")
