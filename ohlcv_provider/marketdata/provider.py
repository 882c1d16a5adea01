"""Time-windowed OHLCV provider: backfill, live updates, eviction, reads."""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ohlcv_provider.marketdata.backfill import BackfillEngine
from ohlcv_provider.marketdata.buffer import CandleBuffer, CandleView
from ohlcv_provider.marketdata.integrity import check_integrity
from ohlcv_provider.marketdata.models import (
    BackfillReport,
    Candle,
    EventKind,
    ProviderEvent,
    ProviderSettings,
    ReadinessPolicy,
)
from ohlcv_provider.marketdata.provider_base import CandleSource
from ohlcv_provider.marketdata.timeframes import timeframe_to_ms
from ohlcv_provider.marketdata.updater import LiveUpdater

logger = logging.getLogger(__name__)

EventListener = Callable[[ProviderEvent], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


class OHLCVProvider:
    """
    Keeps the last `days` of candles for one symbol/timeframe in memory.

    Lifecycle:
        Loading -> start() backfills in the background
        Ready   -> backfill finished (even partially); live updates running
    The provider stays ready until close().

    Example:
        provider = OHLCVProvider(client, "BTC/USDT")
        provider.start()
        await provider.wait_ready()
        last = provider.get_last()
    """

    def __init__(
        self,
        source: CandleSource,
        symbol: Optional[str] = None,
        timeframe: str = "1m",
        days: int = 7,
        update_interval_ms: int = 10_000,
        limit: int = 1000,
        *,
        settings: Optional[ProviderSettings] = None,
        backfill_pause_ms: int = 500,
        readiness_policy: ReadinessPolicy = "fail_open",
        drop_stale_candles: bool = True,
        clock: Optional[Callable[[], int]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if settings is None:
            settings = ProviderSettings(
                symbol=symbol,
                timeframe=timeframe,
                days=days,
                update_interval_ms=update_interval_ms,
                limit=limit,
                backfill_pause_ms=backfill_pause_ms,
                readiness_policy=readiness_policy,
                drop_stale_candles=drop_stale_candles,
            )

        # Fail fast before any background work is scheduled
        self.interval_ms = timeframe_to_ms(settings.timeframe)

        self.settings = settings
        self.source = source
        self.clock = clock or _now_ms

        self._buffer = CandleBuffer()
        self._view = CandleView(self._buffer)
        self._is_ready = False
        self._backfilled = False
        self._closed = False
        self._ready_event = asyncio.Event()
        self._listeners: List[EventListener] = []
        self._backfill_task: Optional[asyncio.Task] = None
        self._backfill_report: Optional[BackfillReport] = None

        self._backfill = BackfillEngine(source, self._buffer, settings, self.clock, sleep=sleep)
        self._updater = LiveUpdater(
            source,
            self._buffer,
            settings,
            self.clock,
            on_success=self._on_tick_success,
            on_failure=self._on_tick_failure,
        )

        logger.info(
            f"OHLCVProvider initialized for {settings.symbol}/{settings.timeframe} "
            f"(days={settings.days}, limit={settings.limit}, policy={settings.readiness_policy})"
        )

    # ==================== Lifecycle ====================

    @property
    def symbol(self) -> str:
        return self.settings.symbol

    @property
    def timeframe(self) -> str:
        return self.settings.timeframe

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def backfill_report(self) -> Optional[BackfillReport]:
        return self._backfill_report

    def start(self) -> asyncio.Task:
        """Schedule the backfill. Needs a running event loop; idempotent."""
        if self._closed:
            raise RuntimeError("Provider is closed")
        if self._backfill_task is None:
            self._backfill_task = asyncio.get_running_loop().create_task(
                self._run(), name=f"backfill:{self.symbol}:{self.timeframe}"
            )
        return self._backfill_task

    async def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait until backfill has finished.

        Returns False on timeout or when the provider was closed before the
        backfill finished.
        """
        try:
            await asyncio.wait_for(self._ready_event.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return self._backfilled

    async def refresh(self) -> int:
        """Run one live tick immediately. Only valid once backfill has finished."""
        if not self._backfilled or self._closed:
            return 0
        return await self._updater.tick()

    async def close(self) -> None:
        """Stop live updates, cancel an unfinished backfill and release the buffer."""
        if self._closed:
            return
        self._closed = True
        self._is_ready = False

        await self._updater.stop()

        task = self._backfill_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        self._buffer.clear()
        self._ready_event.set()
        logger.info(f"OHLCVProvider for {self.symbol}/{self.timeframe} closed")

    async def __aenter__(self) -> "OHLCVProvider":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _run(self) -> None:
        try:
            report = await self._backfill.run()
        except asyncio.CancelledError:
            self._backfill_report = BackfillReport(stop_reason="cancelled")
            raise
        except Exception as e:
            logger.error(f"Backfill for {self.symbol}/{self.timeframe} crashed: {e}", exc_info=True)
            report = BackfillReport(stop_reason="error", error=str(e) or type(e).__name__)

        self._backfill_report = report
        if self._closed:
            return

        self._backfilled = True
        self._is_ready = True
        self._ready_event.set()

        if report.stop_reason == "error":
            self._publish(
                "backfill_failed",
                f"Backfill stopped early: {report.error}; serving {self._buffer.size()} candles",
                report.model_dump(),
            )
        else:
            self._publish(
                "backfill_complete",
                f"Data for {self.symbol} in last {self.settings.days} days loaded",
                report.model_dump(),
            )
        logger.info(f"Data for {self.symbol} in last {self.settings.days} days loaded ({self._buffer.size()} candles)")

        self._updater.start()

    # ==================== Readiness policy ====================

    def _on_tick_success(self, appended: int) -> None:
        if self._closed or self._is_ready:
            return
        self._is_ready = True
        self._publish("update_recovered", "Live updates recovered", {"appended": appended})

    def _on_tick_failure(self, error: Exception) -> None:
        if self.settings.readiness_policy == "fail_closed":
            self._is_ready = False
        self._publish(
            "update_failed",
            f"Live update failed: {error}",
            {"error": str(error) or type(error).__name__, "policy": self.settings.readiness_policy},
        )

    # ==================== Events ====================

    def subscribe(self, listener: EventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _publish(self, kind: EventKind, message: str, details: Dict[str, Any]) -> None:
        event = ProviderEvent(
            kind=kind,
            symbol=self.symbol,
            timeframe=self.timeframe,
            message=message,
            at_ms=self.clock(),
            details=details,
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed on {kind}: {e}", exc_info=True)

    # ==================== Reads ====================

    def is_data_available(self) -> bool:
        return self._is_ready

    def get(self, position: int) -> Candle:
        """Candle at zero-based position from the oldest. Raises IndexOutOfRangeError."""
        return self._buffer.at(position)

    def get_first(self) -> Candle:
        return self._buffer.front()

    def get_last(self) -> Candle:
        return self._buffer.back()

    def get_all_in_array(self) -> List[Candle]:
        """
        Copy of every candle, oldest first.

        Expensive for large windows (O(size) under the buffer lock); prefer
        get/get_last or get_all_in_deque for hot paths.
        """
        return self._buffer.to_list()

    def get_all_in_deque(self) -> CandleView:
        """Read-only live view over the internal buffer."""
        return self._view

    def __len__(self) -> int:
        return len(self._buffer)

    def integrity_report(self) -> dict:
        return check_integrity(
            self._buffer.to_list(),
            self.timeframe,
            self.settings.days,
            self.clock(),
        )

    def status(self) -> Dict[str, Any]:
        snapshot = self._buffer.to_list()
        size = len(snapshot)
        first = snapshot[0].timestamp if snapshot else None
        last = snapshot[-1].timestamp if snapshot else None
        return {
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "days": self.settings.days,
            "ready": self._is_ready,
            "backfilled": self._backfilled,
            "closed": self._closed,
            "updating": self._updater.running,
            "size": size,
            "first_timestamp": first,
            "last_timestamp": last,
            "ticks": self._updater.ticks,
            "backfill": self._backfill_report.model_dump() if self._backfill_report else None,
        }
