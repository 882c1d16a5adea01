"""Supported candle timeframes and their durations."""
from ohlcv_provider.marketdata.errors import UnsupportedTimeframeError

MINUTE_MS = 60_000
DAY_MS = 24 * 60 * MINUTE_MS

# Identifiers follow the fetch_ohlcv convention used by exchange clients.
TIMEFRAME_MS = {
    "1m": MINUTE_MS,
    "3m": 3 * MINUTE_MS,
    "5m": 5 * MINUTE_MS,
    "15m": 15 * MINUTE_MS,
    "30m": 30 * MINUTE_MS,
    "1h": 60 * MINUTE_MS,
    "2h": 120 * MINUTE_MS,
    "4h": 240 * MINUTE_MS,
    "6h": 360 * MINUTE_MS,
    "8h": 480 * MINUTE_MS,
    "12h": 720 * MINUTE_MS,
    "1d": DAY_MS,
    "3d": 3 * DAY_MS,
    "1w": 7 * DAY_MS,
}


def timeframe_to_ms(timeframe: str) -> int:
    """Return the duration of one candle in milliseconds.

    Raises:
        UnsupportedTimeframeError: timeframe is not registered.
    """
    try:
        return TIMEFRAME_MS[timeframe]
    except (KeyError, TypeError):
        raise UnsupportedTimeframeError(timeframe) from None


def is_supported(timeframe: str) -> bool:
    return timeframe in TIMEFRAME_MS


def window_start(now_ms: int, days: int) -> int:
    """Oldest timestamp (inclusive) a window of `days` keeps at `now_ms`."""
    return now_ms - days * DAY_MS


def candles_per_window(timeframe: str, days: int) -> int:
    """Expected candle count for a full window, used for diagnostics."""
    return (days * DAY_MS) // timeframe_to_ms(timeframe)
