"""Configuration management for the candle provider service."""
import os
from dotenv import load_dotenv

from ohlcv_provider.marketdata.models import ProviderSettings
from ohlcv_provider.marketdata.timeframes import is_supported


load_dotenv()


class Config:
    """Load and validate environment configuration."""

    # Optional integrations
    WEBHOOK_URL: str = os.getenv("WEBHOOK_URL", "")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    BOT_NAME: str = os.getenv("BOT_NAME", "OHLCVProvider")

    # Market data configuration
    SYMBOL: str = os.getenv("SYMBOL", "BTC/USDT")
    TIMEFRAME: str = os.getenv("TIMEFRAME", "1m")
    MARKET_DATA_PROVIDER: str = os.getenv("MARKET_DATA_PROVIDER", "mock")
    WINDOW_DAYS: int = 7
    UPDATE_INTERVAL_MS: int = 10000
    FETCH_LIMIT: int = 1000
    BACKFILL_PAUSE_MS: int = 500
    READINESS_POLICY: str = os.getenv("READINESS_POLICY", "fail_open")

    @classmethod
    def validate(cls) -> None:
        """Validate configuration and load numeric overrides from the environment."""
        if not cls.SYMBOL:
            raise ValueError("SYMBOL environment variable is required")

        if not is_supported(cls.TIMEFRAME):
            raise ValueError(f"Invalid TIMEFRAME: {cls.TIMEFRAME}")

        cls.WINDOW_DAYS = cls._positive_int("WINDOW_DAYS", cls.WINDOW_DAYS)
        cls.UPDATE_INTERVAL_MS = cls._positive_int("UPDATE_INTERVAL_MS", cls.UPDATE_INTERVAL_MS)
        cls.FETCH_LIMIT = cls._positive_int("FETCH_LIMIT", cls.FETCH_LIMIT)

        try:
            pause = int(os.getenv("BACKFILL_PAUSE_MS", str(cls.BACKFILL_PAUSE_MS)))
            if pause < 0:
                raise ValueError("BACKFILL_PAUSE_MS must be non-negative")
            cls.BACKFILL_PAUSE_MS = pause
        except ValueError as e:
            raise ValueError(f"Invalid BACKFILL_PAUSE_MS: {e}")

        if cls.READINESS_POLICY not in ("fail_open", "fail_closed"):
            raise ValueError(f"Invalid READINESS_POLICY: {cls.READINESS_POLICY}")

        # Validate provider
        if cls.MARKET_DATA_PROVIDER not in ("mock",):
            raise ValueError(f"Invalid MARKET_DATA_PROVIDER: {cls.MARKET_DATA_PROVIDER}")

        if cls.WEBHOOK_URL and not cls.WEBHOOK_URL.startswith(("http://", "https://")):
            raise ValueError("WEBHOOK_URL must be an http(s) URL")

    @classmethod
    def _positive_int(cls, name: str, default: int) -> int:
        try:
            value = int(os.getenv(name, str(default)))
            if value <= 0:
                raise ValueError(f"{name} must be a positive integer")
            return value
        except ValueError as e:
            raise ValueError(f"Invalid {name}: {e}")

    @classmethod
    def provider_settings(cls) -> ProviderSettings:
        """Immutable settings for one provider built from the current config."""
        return ProviderSettings(
            symbol=cls.SYMBOL,
            timeframe=cls.TIMEFRAME,
            days=cls.WINDOW_DAYS,
            update_interval_ms=cls.UPDATE_INTERVAL_MS,
            limit=cls.FETCH_LIMIT,
            backfill_pause_ms=cls.BACKFILL_PAUSE_MS,
            readiness_policy=cls.READINESS_POLICY,
        )
