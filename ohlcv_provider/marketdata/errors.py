"""Error taxonomy for the windowed candle provider."""


class ConfigurationError(ValueError):
    """Provider configuration is invalid; raised at construction."""


class UnsupportedTimeframeError(ConfigurationError):
    """Requested timeframe is not in the interval registry."""

    def __init__(self, timeframe: str) -> None:
        super().__init__(f"Unsupported timeframe: {timeframe}")
        self.timeframe = timeframe


class FetchError(RuntimeError):
    """Candle source could not deliver data (transport, auth, rate limit)."""


class CandleBufferError(Exception):
    """Base class for buffer read failures."""


class EmptyBufferError(CandleBufferError, LookupError):
    """Buffer holds no candles."""

    def __init__(self, message: str = "Candle buffer is empty") -> None:
        super().__init__(message)


class IndexOutOfRangeError(CandleBufferError, IndexError):
    """Position is outside [0, size)."""

    def __init__(self, position: int, size: int) -> None:
        super().__init__(f"Position {position} out of range for buffer of size {size}")
        self.position = position
        self.size = size
