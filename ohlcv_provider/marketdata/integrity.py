"""Market data integrity checking and gap detection."""
import logging
from typing import List, Sequence, Tuple

from ohlcv_provider.marketdata.models import Candle
from ohlcv_provider.marketdata.timeframes import candles_per_window, timeframe_to_ms, window_start

logger = logging.getLogger(__name__)


def check_integrity(
    candles: Sequence[Candle],
    timeframe: str,
    days: int,
    now_ms: int,
) -> dict:
    """
    Check data integrity: detect gaps, duplicates, expected vs actual counts.

    Purely diagnostic, nothing is repaired.

    Args:
        candles: Candles in buffer order
        timeframe: Candle interval
        days: Window length
        now_ms: Reference time for the window boundary

    Returns:
        Dict with:
        - earliest, latest (ms or None)
        - expected_count, actual_count
        - missing_count (candles absent between earliest and latest)
        - duplicates_count, out_of_order_count
        - missing_ranges (list of (start, end) ms, start inclusive end exclusive)
        - stale_count (candles older than the window start)
        - is_complete (bool)
    """
    interval_ms = timeframe_to_ms(timeframe)
    cutoff = window_start(now_ms, days)

    earliest = candles[0].timestamp if candles else None
    latest = candles[-1].timestamp if candles else None
    actual_count = len(candles)
    expected_count = candles_per_window(timeframe, days)

    missing_ranges: List[Tuple[int, int]] = []
    missing_count = 0
    duplicates_count = 0
    out_of_order_count = 0
    stale_count = 0

    prev_ts = None
    for candle in candles:
        if candle.timestamp < cutoff:
            stale_count += 1

        if prev_ts is not None:
            if candle.timestamp == prev_ts:
                duplicates_count += 1
                continue
            if candle.timestamp < prev_ts:
                out_of_order_count += 1
                continue

            expected_next = prev_ts + interval_ms
            if candle.timestamp > expected_next:
                missing_ranges.append((expected_next, candle.timestamp))
                missing_count += (candle.timestamp - expected_next) // interval_ms

        prev_ts = candle.timestamp

    is_complete = (
        not missing_ranges
        and duplicates_count == 0
        and out_of_order_count == 0
        and stale_count == 0
    )

    logger.info(
        f"Integrity check {timeframe}: "
        f"actual={actual_count}, expected={expected_count}, "
        f"missing={missing_count}, duplicates={duplicates_count}, "
        f"out_of_order={out_of_order_count}, complete={is_complete}"
    )

    return {
        "timeframe": timeframe,
        "earliest": earliest,
        "latest": latest,
        "expected_count": expected_count,
        "actual_count": actual_count,
        "missing_count": missing_count,
        "duplicates_count": duplicates_count,
        "out_of_order_count": out_of_order_count,
        "stale_count": stale_count,
        "missing_ranges": missing_ranges,
        "is_complete": is_complete,
    }
