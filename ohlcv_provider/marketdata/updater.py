"""Periodic live append of candles newer than the buffer's back."""
import asyncio
import logging
from typing import Callable, Optional

from ohlcv_provider.marketdata.buffer import CandleBuffer
from ohlcv_provider.marketdata.models import ProviderSettings
from ohlcv_provider.marketdata.provider_base import CandleSource, normalize_chunk
from ohlcv_provider.marketdata.retention import prune_expired
from ohlcv_provider.marketdata.timeframes import timeframe_to_ms, window_start

logger = logging.getLogger(__name__)


class LiveUpdater:
    """Fetch-append-evict on a fixed period.

    Ticks run one at a time: the loop awaits each tick before sleeping again
    and tick() itself holds an asyncio.Lock, so a manual tick cannot
    interleave with a scheduled one.
    """

    def __init__(
        self,
        source: CandleSource,
        buffer: CandleBuffer,
        settings: ProviderSettings,
        clock: Callable[[], int],
        on_success: Optional[Callable[[int], None]] = None,
        on_failure: Optional[Callable[[Exception], None]] = None,
    ) -> None:
        self.source = source
        self.buffer = buffer
        self.settings = settings
        self.clock = clock
        self.on_success = on_success
        self.on_failure = on_failure
        self.interval_ms = timeframe_to_ms(settings.timeframe)
        self.ticks = 0
        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.warning("Live updater already running")
            return
        self._stopped = False
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name=f"live-updater:{self.settings.symbol}:{self.settings.timeframe}"
        )
        logger.info(
            f"Live updates for {self.settings.symbol}/{self.settings.timeframe} "
            f"every {self.settings.update_interval_ms} ms"
        )

    async def stop(self) -> None:
        self._stopped = True
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Live updates for {self.settings.symbol}/{self.settings.timeframe} stopped")

    async def _loop(self) -> None:
        interval_s = self.settings.update_interval_ms / 1000
        while not self._stopped:
            await asyncio.sleep(interval_s)
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Error in live update loop: {e}", exc_info=True)
                if self.on_failure is not None:
                    self.on_failure(e)

    async def tick(self) -> int:
        """
        Run one fetch-append-evict cycle.

        Returns:
            Number of candles appended. 0 on fetch failure, in which case the
            buffer is left as it was; the next tick is the retry.
        """
        async with self._tick_lock:
            settings = self.settings
            self.ticks += 1

            if self.buffer.is_empty():
                since = window_start(self.clock(), settings.days)
            else:
                since = self.buffer.back().timestamp + self.interval_ms

            try:
                raw_chunk = await self.source.fetch_ohlcv(
                    settings.symbol,
                    settings.timeframe,
                    since,
                    settings.limit,
                )
            except Exception as e:
                logger.error(f"Error while updating candles from {since}: {e}", exc_info=True)
                if self.on_failure is not None:
                    self.on_failure(e)
                return 0

            if self._stopped:
                logger.debug(f"Discarding {len(raw_chunk)} candles fetched after stop")
                return 0

            appended, dropped = self.buffer.append_chunk(
                normalize_chunk(raw_chunk), drop_stale=settings.drop_stale_candles
            )
            evicted = prune_expired(self.buffer, settings.days, self.clock())

            if appended or dropped or evicted:
                logger.debug(
                    f"Tick {self.ticks} {settings.symbol}/{settings.timeframe}: "
                    f"appended={appended}, dropped={dropped}, evicted={evicted}"
                )

            if self.on_success is not None:
                self.on_success(appended)
            return appended
