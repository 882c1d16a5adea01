"""Tests for the paginated backfill."""
from decimal import Decimal
from typing import Any, List

import pytest

from ohlcv_provider.marketdata.backfill import BackfillEngine
from ohlcv_provider.marketdata.buffer import CandleBuffer
from ohlcv_provider.marketdata.errors import FetchError
from ohlcv_provider.marketdata.models import Candle, ProviderSettings
from ohlcv_provider.marketdata.provider_mock import MockProvider
from ohlcv_provider.marketdata.timeframes import DAY_MS

NOW = 1_700_006_400_000
MINUTE = 60_000


def rows(start: int, count: int, step: int = MINUTE) -> List[list]:
    return [[start + i * step, 1.0, 2.0, 0.5, 1.5, 10.0] for i in range(count)]


class ScriptedSource:
    """Returns queued responses in order; an Exception entry is raised."""

    def __init__(self, responses: List[Any]) -> None:
        self.responses = list(responses)
        self.calls = []

    async def fetch_ohlcv(self, symbol, timeframe, since, limit):
        self.calls.append({"symbol": symbol, "timeframe": timeframe, "since": since, "limit": limit})
        if not self.responses:
            return []
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class SleepRecorder:
    def __init__(self) -> None:
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_engine(source, days: int = 7, limit: int = 1000, timeframe: str = "1m", **overrides):
    settings = ProviderSettings(symbol="BTC/USDT", timeframe=timeframe, days=days, limit=limit, **overrides)
    buffer = CandleBuffer()
    sleep = SleepRecorder()
    engine = BackfillEngine(source, buffer, settings, clock=lambda: NOW, sleep=sleep)
    return engine, buffer, sleep


@pytest.mark.asyncio
async def test_backfill_stops_on_empty_chunk():
    since = NOW - 7 * DAY_MS
    source = ScriptedSource([rows(since, 1000), rows(since + 1000 * MINUTE, 1000), []])
    engine, buffer, sleep = make_engine(source)

    report = await engine.run()

    assert len(source.calls) == 3
    assert buffer.size() == 2000
    timestamps = [c.timestamp for c in buffer]
    assert timestamps == sorted(timestamps)
    assert report.chunks == 3
    assert report.loaded == 2000
    assert report.stop_reason == "exhausted"
    assert report.complete


@pytest.mark.asyncio
async def test_backfill_advances_cursor_past_last_candle():
    since = NOW - 7 * DAY_MS
    source = ScriptedSource([rows(since, 1000), rows(since + 1000 * MINUTE, 1000), []])
    engine, _, _ = make_engine(source)

    await engine.run()

    assert [call["since"] for call in source.calls] == [
        since,
        since + 1000 * MINUTE,
        since + 2000 * MINUTE,
    ]
    assert all(call["limit"] == 1000 for call in source.calls)
    assert all(call["symbol"] == "BTC/USDT" and call["timeframe"] == "1m" for call in source.calls)


@pytest.mark.asyncio
async def test_backfill_pauses_between_chunks():
    since = NOW - 7 * DAY_MS
    source = ScriptedSource([rows(since, 1000), rows(since + 1000 * MINUTE, 1000), []])
    engine, _, sleep = make_engine(source)

    await engine.run()

    assert sleep.delays == [0.5, 0.5]


@pytest.mark.asyncio
async def test_backfill_stops_when_window_covered_and_chunk_short():
    since = NOW - DAY_MS
    source = ScriptedSource([rows(since, 10)])
    engine, buffer, sleep = make_engine(source, days=1)

    report = await engine.run()

    assert len(source.calls) == 1
    assert report.stop_reason == "covered"
    assert buffer.size() == 10
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_backfill_full_chunk_does_not_count_as_covered():
    since = NOW - DAY_MS
    source = ScriptedSource([rows(since, 5), rows(since + 5 * MINUTE, 3)])
    engine, buffer, _ = make_engine(source, days=1, limit=5)

    report = await engine.run()

    assert len(source.calls) == 2
    assert report.stop_reason == "covered"
    assert buffer.size() == 8


@pytest.mark.asyncio
async def test_backfill_stops_when_cursor_passes_now():
    since = NOW - DAY_MS
    # A full page whose last candle opens at now
    source = ScriptedSource([rows(since, 721, step=2 * MINUTE), rows(NOW + MINUTE, 1)])
    engine, _, _ = make_engine(source, days=1, limit=721)

    report = await engine.run()

    assert len(source.calls) == 1
    assert report.stop_reason == "caught_up"


@pytest.mark.asyncio
async def test_backfill_against_mock_source_is_interval_generic():
    engine, buffer, _ = make_engine(MockProvider(clock=lambda: NOW), days=2, timeframe="1h")

    report = await engine.run()

    assert report.stop_reason == "covered"
    assert buffer.size() == 48
    assert buffer.front().timestamp == NOW - 2 * DAY_MS
    assert buffer.back().timestamp == NOW - 60 * MINUTE


@pytest.mark.asyncio
async def test_backfill_mock_source_multiple_pages():
    source = MockProvider(clock=lambda: NOW)
    engine, buffer, sleep = make_engine(source, days=1)

    report = await engine.run()

    assert source.calls == 2
    assert report.loaded == 1440
    assert buffer.size() == 1440
    assert sleep.delays == [0.5]


@pytest.mark.asyncio
async def test_backfill_fetch_error_keeps_partial_data():
    since = NOW - 7 * DAY_MS
    source = ScriptedSource([rows(since, 1000), FetchError("rate limited"), rows(since, 1000)])
    engine, buffer, _ = make_engine(source)

    report = await engine.run()

    assert len(source.calls) == 2
    assert buffer.size() == 1000
    assert report.stop_reason == "error"
    assert report.error == "rate limited"
    assert not report.complete


@pytest.mark.asyncio
async def test_backfill_error_on_first_chunk():
    source = ScriptedSource([ConnectionError()])
    engine, buffer, _ = make_engine(source)

    report = await engine.run()

    assert buffer.size() == 0
    assert report.stop_reason == "error"
    assert report.error == "ConnectionError"


@pytest.mark.asyncio
async def test_backfill_drops_overlapping_candles():
    since = NOW - DAY_MS
    # Second page overlaps the first by two candles
    source = ScriptedSource([rows(since, 5), rows(since + 3 * MINUTE, 4), []])
    engine, buffer, _ = make_engine(source, days=1, limit=5)

    report = await engine.run()

    assert report.dropped == 2
    assert buffer.size() == 7
    timestamps = [c.timestamp for c in buffer]
    assert timestamps == sorted(set(timestamps))


@pytest.mark.asyncio
async def test_backfill_stops_on_chunk_without_valid_candles():
    source = ScriptedSource([[["bad"], ["worse"]]])
    engine, buffer, _ = make_engine(source)

    report = await engine.run()

    assert len(source.calls) == 1
    assert report.stop_reason == "error"
    assert buffer.size() == 0


@pytest.mark.asyncio
async def test_backfill_evicts_candles_outside_window():
    since = NOW - DAY_MS
    stale = [Candle(timestamp=since - MINUTE, open=Decimal(1), high=Decimal(1), low=Decimal(1), close=Decimal(1), volume=Decimal(1))]
    source = ScriptedSource([stale + [Candle.from_raw(r) for r in rows(since, 3)]])
    engine, buffer, _ = make_engine(source, days=1)

    report = await engine.run()

    assert report.evicted == 1
    assert buffer.front().timestamp == since
