"""Candle source abstraction."""
import logging
from typing import Any, List, Protocol, Sequence

from ohlcv_provider.marketdata.models import Candle

logger = logging.getLogger(__name__)


class CandleSource(Protocol):
    """Protocol for paginated candle sources (exchange clients, mocks)."""

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str,
        since: int,
        limit: int,
    ) -> Sequence[Any]:
        """
        Fetch up to `limit` candles starting at `since`.

        Args:
            symbol: Trading pair (e.g., 'BTC/USDT')
            timeframe: Candle interval (e.g., '1m', '1h')
            since: Inclusive start, ms since epoch (UTC)
            limit: Maximum number of candles to return

        Returns:
            Candles or rows ``[timestamp, open, high, low, close, volume]``
            sorted ascending by timestamp. Empty when no data exists at or
            after `since`.

        Raises:
            Any exception on transport, auth or rate-limit problems. No retry
            is expected from the source.
        """
        ...


def normalize_chunk(raw_chunk: Sequence[Any]) -> List[Candle]:
    """Convert one fetched chunk into Candles, skipping invalid records."""
    candles = []
    for raw in raw_chunk:
        try:
            candles.append(Candle.from_raw(raw))
        except (ValueError, ArithmeticError, TypeError) as e:
            logger.warning(f"Validation failed for candle: {e}")
            continue
    return candles
