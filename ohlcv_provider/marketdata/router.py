"""FastAPI routes for reading the candle window."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ohlcv_provider.marketdata.errors import EmptyBufferError, IndexOutOfRangeError
from ohlcv_provider.marketdata.provider import OHLCVProvider
from ohlcv_provider.marketdata.schemas import (
    CandleListSchema,
    CandleSchema,
    IntegrityCheckSchema,
    ProviderStatusSchema,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/candles", tags=["market-data"])


def get_provider(request: Request) -> OHLCVProvider:
    """Provider attached to the application at startup."""
    provider = getattr(request.app.state, "provider", None)
    if provider is None:
        raise HTTPException(status_code=503, detail="Candle provider not configured")
    return provider


def require_ready(provider: OHLCVProvider = Depends(get_provider)) -> OHLCVProvider:
    if not provider.is_data_available():
        raise HTTPException(
            status_code=503,
            detail=f"Data for {provider.symbol}/{provider.timeframe} is still loading",
        )
    return provider


# ==== PUBLIC ENDPOINTS ====

@router.get("/status", response_model=ProviderStatusSchema)
async def get_status(provider: OHLCVProvider = Depends(get_provider)) -> ProviderStatusSchema:
    """Readiness and buffer summary; available while loading."""
    return ProviderStatusSchema(**provider.status())


@router.get("/latest", response_model=CandleSchema)
async def get_latest_candle(provider: OHLCVProvider = Depends(require_ready)) -> CandleSchema:
    """Newest candle in the window."""
    try:
        return CandleSchema.from_candle(provider.get_last())
    except EmptyBufferError:
        raise HTTPException(status_code=404, detail=f"No candles found for {provider.symbol}/{provider.timeframe}")


@router.get("/first", response_model=CandleSchema)
async def get_first_candle(provider: OHLCVProvider = Depends(require_ready)) -> CandleSchema:
    """Oldest candle in the window."""
    try:
        return CandleSchema.from_candle(provider.get_first())
    except EmptyBufferError:
        raise HTTPException(status_code=404, detail=f"No candles found for {provider.symbol}/{provider.timeframe}")


@router.get("/integrity", response_model=IntegrityCheckSchema)
async def get_integrity(provider: OHLCVProvider = Depends(require_ready)) -> IntegrityCheckSchema:
    """Gap and duplicate diagnostics for the current window."""
    return IntegrityCheckSchema(**provider.integrity_report())


@router.get("/{position}", response_model=CandleSchema)
async def get_candle_at(
    position: int,
    provider: OHLCVProvider = Depends(require_ready),
) -> CandleSchema:
    """Candle at zero-based position from the oldest."""
    try:
        return CandleSchema.from_candle(provider.get(position))
    except IndexOutOfRangeError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("", response_model=CandleListSchema)
async def get_candles(
    start: Optional[int] = Query(None, description="Start time, ms (inclusive)"),
    end: Optional[int] = Query(None, description="End time, ms (exclusive)"),
    limit: int = Query(5000, ge=1, le=50000),
    provider: OHLCVProvider = Depends(require_ready),
) -> CandleListSchema:
    """
    Get candles from the window.

    - start: inclusive
    - end: exclusive
    - Returns the newest `limit` matching candles in ascending order
    """
    candles = provider.get_all_in_array()
    total = len(candles)

    if start is not None:
        candles = [c for c in candles if c.timestamp >= start]
    if end is not None:
        candles = [c for c in candles if c.timestamp < end]
    if len(candles) > limit:
        candles = candles[-limit:]

    candle_schemas = [CandleSchema.from_candle(c) for c in candles]
    return CandleListSchema(
        count=len(candle_schemas),
        total=total,
        candles=candle_schemas,
        earliest=candle_schemas[0].timestamp if candle_schemas else None,
        latest=candle_schemas[-1].timestamp if candle_schemas else None,
    )
