"""Tests for the candle window buffer."""
from decimal import Decimal

import pytest

from ohlcv_provider.marketdata.buffer import CandleBuffer, CandleView
from ohlcv_provider.marketdata.errors import EmptyBufferError, IndexOutOfRangeError
from ohlcv_provider.marketdata.models import Candle


def make_candle(timestamp: int, close: str = "100.5") -> Candle:
    price = Decimal(close)
    return Candle(timestamp=timestamp, open=price, high=price, low=price, close=price, volume=Decimal("1"))


def filled_buffer(count: int, start: int = 0, step: int = 60_000) -> CandleBuffer:
    return CandleBuffer(make_candle(start + i * step) for i in range(count))


def test_push_back_and_pop_front_keep_order():
    buffer = CandleBuffer()
    for ts in (1000, 2000, 3000):
        buffer.push_back(make_candle(ts))

    assert buffer.size() == 3
    assert buffer.front().timestamp == 1000
    assert buffer.back().timestamp == 3000

    assert buffer.pop_front().timestamp == 1000
    assert buffer.front().timestamp == 2000
    assert len(buffer) == 2


def test_empty_buffer_reads_raise():
    buffer = CandleBuffer()

    with pytest.raises(EmptyBufferError):
        buffer.front()
    with pytest.raises(EmptyBufferError):
        buffer.back()
    with pytest.raises(EmptyBufferError):
        buffer.pop_front()


def test_at_bounds():
    buffer = filled_buffer(5)

    assert buffer.at(0).timestamp == 0
    assert buffer.at(4).timestamp == 4 * 60_000

    with pytest.raises(IndexOutOfRangeError):
        buffer.at(5)
    with pytest.raises(IndexOutOfRangeError):
        buffer.at(-1)

    with pytest.raises(IndexOutOfRangeError):
        CandleBuffer().at(0)


def test_at_matches_iteration():
    buffer = filled_buffer(20)

    iterated = list(buffer)
    assert [buffer.at(i) for i in range(buffer.size())] == iterated


def test_to_list_is_a_copy():
    buffer = filled_buffer(3)

    snapshot = buffer.to_list()
    buffer.push_back(make_candle(10 * 60_000))
    buffer.pop_front()

    assert [c.timestamp for c in snapshot] == [0, 60_000, 120_000]
    assert buffer.to_list() == buffer.to_list()


def test_append_chunk_drops_stale_candles():
    buffer = filled_buffer(3)

    appended, dropped = buffer.append_chunk(
        [make_candle(60_000), make_candle(120_000), make_candle(180_000), make_candle(240_000)]
    )

    assert (appended, dropped) == (2, 2)
    timestamps = [c.timestamp for c in buffer]
    assert timestamps == sorted(set(timestamps))


def test_append_chunk_keeps_everything_without_drop_stale():
    buffer = filled_buffer(2)

    appended, dropped = buffer.append_chunk([make_candle(60_000)], drop_stale=False)

    assert (appended, dropped) == (1, 0)
    assert buffer.size() == 3


def test_evict_before_only_touches_front():
    buffer = filled_buffer(10)

    removed = buffer.evict_before(4 * 60_000)

    assert removed == 4
    assert buffer.front().timestamp == 4 * 60_000
    assert buffer.back().timestamp == 9 * 60_000


def test_view_is_live_and_read_only():
    buffer = filled_buffer(3)
    view = CandleView(buffer)

    assert len(view) == 3
    buffer.push_back(make_candle(3 * 60_000))
    assert len(view) == 4
    assert view[3].timestamp == 3 * 60_000
    assert view.back() == buffer.back()
    assert [c.timestamp for c in view[1:3]] == [60_000, 120_000]

    assert not hasattr(view, "append")
    assert not hasattr(view, "push_back")
    assert not hasattr(view, "pop_front")
    with pytest.raises(TypeError):
        view[0] = make_candle(0)
    with pytest.raises(AttributeError):
        view.extra = 1

    with pytest.raises(IndexOutOfRangeError):
        view[4]


def test_view_iteration_is_a_snapshot():
    buffer = filled_buffer(3)
    view = CandleView(buffer)

    seen = []
    for candle in view:
        seen.append(candle.timestamp)
        if len(seen) == 1:
            buffer.push_back(make_candle(10 * 60_000))

    assert seen == [0, 60_000, 120_000]
