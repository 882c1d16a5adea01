"""Candle retention: keep only the trailing window."""
import logging

from ohlcv_provider.marketdata.buffer import CandleBuffer
from ohlcv_provider.marketdata.timeframes import window_start

logger = logging.getLogger(__name__)


def prune_expired(buffer: CandleBuffer, days: int, now_ms: int) -> int:
    """Remove candles older than `days` before `now_ms` from the front.

    An empty buffer is a no-op. The newest candle is never touched unless it
    is itself outside the window.

    Returns the number of candles evicted.
    """
    if buffer.is_empty():
        return 0

    cutoff = window_start(now_ms, days)
    evicted = buffer.evict_before(cutoff)

    if evicted:
        logger.debug(f"Pruned {evicted} candles older than {days} days (cutoff: {cutoff})")

    return evicted
