"""Deterministic mock candle source."""
import hashlib
import logging
import time
from decimal import Decimal
from typing import Callable, List, Optional

from ohlcv_provider.marketdata.models import Candle
from ohlcv_provider.marketdata.timeframes import timeframe_to_ms

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class MockProvider:
    """Deterministic mock source - same inputs produce same outputs."""

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self.clock = clock or _now_ms
        self.calls = 0
        logger.info("MockProvider initialized (deterministic)")

    async def fetch_ohlcv(
        self,
        symbol: str,
        timeframe: str,
        since: int,
        limit: int,
    ) -> List[Candle]:
        """
        Generate deterministic candles.

        Ensures:
        - Same symbol/timeframe/since/limit => same output
        - Candles aligned to timeframe boundaries (first one at or after since)
        - Closed candles only: nothing that opens after now - interval
        - Ascending order, at most `limit` candles
        """
        self.calls += 1
        interval_ms = timeframe_to_ms(timeframe)

        # Align start to timeframe boundary (ceil)
        start = -(-since // interval_ms) * interval_ms
        last_closed = (self.clock() // interval_ms) * interval_ms - interval_ms

        candles = []
        current = start
        while current <= last_closed and len(candles) < limit:
            candles.append(self._generate_candle(symbol, timeframe, current))
            current += interval_ms

        logger.debug(
            f"MockProvider generated {len(candles)} candles "
            f"for {symbol} {timeframe} (since {since}, limit {limit})"
        )
        return candles

    def _generate_candle(self, symbol: str, timeframe: str, timestamp: int) -> Candle:
        """Generate single deterministic candle."""
        seed_str = f"{symbol}:{timeframe}:{timestamp}"
        seed = int(hashlib.md5(seed_str.encode()).hexdigest(), 16)

        base_price = Decimal("30000") if symbol.startswith("BTC") else Decimal("100")

        open_delta = Decimal(seed % 1000 - 500) / 100
        open_price = base_price + open_delta

        high_offset = Decimal((seed // 1000) % 500) / 100
        low_offset = Decimal((seed // 1000000) % 500) / 100
        close_offset = Decimal((seed // 1000000000) % 1000 - 500) / 100

        close_price = open_price + close_offset
        high_price = max(open_price + high_offset, open_price, close_price)
        low_price = min(open_price - low_offset, open_price, close_price)

        volume = Decimal((seed // 7) % 100000) / 1000 + 1

        return Candle(
            timestamp=timestamp,
            open=open_price,
            high=high_price,
            low=low_price,
            close=close_price,
            volume=volume,
        )
