"""Time-windowed OHLCV candle provider."""
