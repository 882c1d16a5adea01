"""FastAPI application entrypoint."""
import asyncio
import logging
import sys

from fastapi import FastAPI
from pydantic import BaseModel

from ohlcv_provider.config import Config
from ohlcv_provider.marketdata.models import ProviderEvent
from ohlcv_provider.marketdata.provider import OHLCVProvider
from ohlcv_provider.marketdata.provider_mock import MockProvider
from ohlcv_provider.marketdata.router import router as candles_router
from ohlcv_provider.notifier import Notifier

# Configure logging
logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Validate config on startup
try:
    Config.validate()
except ValueError as e:
    logger.error(f"Configuration error: {e}")
    sys.exit(1)

app = FastAPI(title="OHLCV Window Provider", version="1.0.0")
app.include_router(candles_router)
notifier = Notifier(Config.WEBHOOK_URL)


class MessageResponse(BaseModel):
    """Standard response model."""
    message: str


def _build_source():
    if Config.MARKET_DATA_PROVIDER == "mock":
        return MockProvider()
    raise ValueError(f"Invalid MARKET_DATA_PROVIDER: {Config.MARKET_DATA_PROVIDER}")


def _forward_event(event: ProviderEvent) -> None:
    """Send provider events to the webhook off the event loop."""
    if notifier.enabled:
        asyncio.get_running_loop().run_in_executor(None, notifier, event)


@app.on_event("startup")
async def startup_event() -> None:
    """Create the provider and start the backfill in the background."""
    settings = Config.provider_settings()
    logger.info(f"Starting candle provider for {settings.symbol}/{settings.timeframe}")

    provider = OHLCVProvider(_build_source(), settings=settings)
    provider.subscribe(_forward_event)
    provider.start()
    app.state.provider = provider
    await asyncio.get_running_loop().run_in_executor(
        None, notifier.send_started, settings.symbol, settings.timeframe
    )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Cleanup on shutdown."""
    logger.info("Shutting down...")
    provider = getattr(app.state, "provider", None)
    if provider is not None:
        await provider.close()
        await asyncio.get_running_loop().run_in_executor(
            None, notifier.send_stopped, provider.symbol, provider.timeframe
        )


@app.get("/health")
async def health_check() -> MessageResponse:
    """Health check endpoint."""
    return MessageResponse(message="OK")


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting {Config.BOT_NAME} on 0.0.0.0:8000")
    logger.info(f"Market Data Provider: {Config.MARKET_DATA_PROVIDER}")
    uvicorn.run(app, host="0.0.0.0", port=8000)
