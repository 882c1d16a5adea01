"""Windowed candle buffer package."""
from ohlcv_provider.marketdata.buffer import CandleBuffer, CandleView
from ohlcv_provider.marketdata.errors import (
    CandleBufferError,
    ConfigurationError,
    EmptyBufferError,
    FetchError,
    IndexOutOfRangeError,
    UnsupportedTimeframeError,
)
from ohlcv_provider.marketdata.models import BackfillReport, Candle, ProviderEvent, ProviderSettings
from ohlcv_provider.marketdata.provider import OHLCVProvider
from ohlcv_provider.marketdata.provider_base import CandleSource
from ohlcv_provider.marketdata.provider_mock import MockProvider

__all__ = [
    "BackfillReport",
    "Candle",
    "CandleBuffer",
    "CandleBufferError",
    "CandleSource",
    "CandleView",
    "ConfigurationError",
    "EmptyBufferError",
    "FetchError",
    "IndexOutOfRangeError",
    "MockProvider",
    "OHLCVProvider",
    "ProviderEvent",
    "ProviderSettings",
    "UnsupportedTimeframeError",
]
