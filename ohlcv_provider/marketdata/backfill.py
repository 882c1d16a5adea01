"""Paginated historical load of the trailing window."""
import asyncio
import logging
from typing import Awaitable, Callable

from ohlcv_provider.marketdata.buffer import CandleBuffer
from ohlcv_provider.marketdata.models import BackfillReport, ProviderSettings
from ohlcv_provider.marketdata.provider_base import CandleSource, normalize_chunk
from ohlcv_provider.marketdata.retention import prune_expired
from ohlcv_provider.marketdata.timeframes import timeframe_to_ms, window_start

logger = logging.getLogger(__name__)


class BackfillEngine:
    """Fills a buffer with every candle in [now - days, now]."""

    def __init__(
        self,
        source: CandleSource,
        buffer: CandleBuffer,
        settings: ProviderSettings,
        clock: Callable[[], int],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.source = source
        self.buffer = buffer
        self.settings = settings
        self.clock = clock
        self.sleep = sleep
        self.interval_ms = timeframe_to_ms(settings.timeframe)

    async def run(self) -> BackfillReport:
        """
        Load history chunk by chunk.

        Strategy:
        1. Start at now - days
        2. Fetch up to `limit` candles, append them, advance the cursor past
           the last returned candle
        3. Stop when the source returns nothing, when the window is covered
           and the source returned a short chunk, or when the cursor passes now
        4. Pause between chunks to respect source rate limits
        5. A fetch failure ends the load; loaded candles stay
        6. Evict anything that fell out of the window meanwhile

        Returns:
            BackfillReport describing how the load ended.
        """
        settings = self.settings
        report = BackfillReport()
        since = window_start(self.clock(), settings.days)
        cursor = since

        logger.info(
            f"Starting backfill for {settings.symbol}/{settings.timeframe} "
            f"({settings.days} days from {since})"
        )

        while True:
            try:
                raw_chunk = await self.source.fetch_ohlcv(
                    settings.symbol,
                    settings.timeframe,
                    cursor,
                    settings.limit,
                )
            except Exception as e:
                logger.error(f"Error while downloading candles from {cursor}: {e}", exc_info=True)
                report.stop_reason = "error"
                report.error = str(e) or type(e).__name__
                break

            report.chunks += 1

            if not raw_chunk:
                report.stop_reason = "exhausted"
                break

            candles = normalize_chunk(raw_chunk)
            if not candles:
                logger.error(f"Source returned {len(raw_chunk)} records but none were valid; stopping backfill")
                report.stop_reason = "error"
                report.error = "no valid candles in chunk"
                break

            appended, dropped = self.buffer.append_chunk(candles, drop_stale=settings.drop_stale_candles)
            report.loaded += appended
            report.dropped += dropped
            cursor = candles[-1].timestamp + self.interval_ms

            logger.debug(f"Backfill chunk {report.chunks}: {appended} appended, {dropped} dropped, next {cursor}")

            if self._window_covered(since) and len(raw_chunk) < settings.limit:
                report.stop_reason = "covered"
                break
            if cursor > self.clock():
                report.stop_reason = "caught_up"
                break

            await self.sleep(settings.backfill_pause_ms / 1000)

        report.evicted = prune_expired(self.buffer, settings.days, self.clock())

        logger.info(
            f"Backfill for {settings.symbol}/{settings.timeframe} finished: "
            f"reason={report.stop_reason}, chunks={report.chunks}, loaded={report.loaded}, "
            f"dropped={report.dropped}, evicted={report.evicted}, size={self.buffer.size()}"
        )
        return report

    def _window_covered(self, since: int) -> bool:
        """True when the oldest candle lies within one interval of the window start."""
        if self.buffer.is_empty():
            return False
        return self.buffer.front().timestamp - self.interval_ms < since
