"""Ordered candle container with append-at-back / evict-at-front access."""
from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable, Iterator, Sequence
from typing import Deque, List, Tuple, Union, overload

from ohlcv_provider.marketdata.errors import EmptyBufferError, IndexOutOfRangeError
from ohlcv_provider.marketdata.models import Candle


class CandleBuffer:
    """
    Candles ascending by timestamp.

    Mutated only through push_back/append_chunk (new data) and
    pop_front/evict_before (eviction). Every operation holds the lock, so a
    reader on another thread never sees a half-applied mutation.
    """

    def __init__(self, candles: Iterable[Candle] = ()) -> None:
        self._candles: Deque[Candle] = deque(candles)
        self._lock = threading.Lock()

    def push_back(self, candle: Candle) -> None:
        """Append a candle. Caller guarantees it is not older than back()."""
        with self._lock:
            self._candles.append(candle)

    def append_chunk(self, candles: Iterable[Candle], drop_stale: bool = True) -> Tuple[int, int]:
        """Append candles in received order.

        With drop_stale, a candle whose timestamp is not strictly after the
        current back is skipped.

        Returns (appended, dropped).
        """
        appended = 0
        dropped = 0
        with self._lock:
            for candle in candles:
                if drop_stale and self._candles and candle.timestamp <= self._candles[-1].timestamp:
                    dropped += 1
                    continue
                self._candles.append(candle)
                appended += 1
        return appended, dropped

    def pop_front(self) -> Candle:
        with self._lock:
            if not self._candles:
                raise EmptyBufferError()
            return self._candles.popleft()

    def evict_before(self, cutoff_ms: int) -> int:
        """Drop candles with timestamp < cutoff_ms from the front; return count."""
        removed = 0
        with self._lock:
            while self._candles and self._candles[0].timestamp < cutoff_ms:
                self._candles.popleft()
                removed += 1
        return removed

    def front(self) -> Candle:
        with self._lock:
            if not self._candles:
                raise EmptyBufferError()
            return self._candles[0]

    def back(self) -> Candle:
        with self._lock:
            if not self._candles:
                raise EmptyBufferError()
            return self._candles[-1]

    def at(self, position: int) -> Candle:
        """Zero-based access from the front."""
        with self._lock:
            size = len(self._candles)
            if not isinstance(position, int) or position < 0 or position >= size:
                raise IndexOutOfRangeError(position, size)
            return self._candles[position]

    def size(self) -> int:
        return len(self._candles)

    def is_empty(self) -> bool:
        return not self._candles

    def to_list(self) -> List[Candle]:
        """Point-in-time copy of all candles. O(size): not for hot paths."""
        with self._lock:
            return list(self._candles)

    def clear(self) -> None:
        with self._lock:
            self._candles.clear()

    def __len__(self) -> int:
        return len(self._candles)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self.to_list())

    def __repr__(self) -> str:
        return f"CandleBuffer(size={len(self._candles)})"


class CandleView(Sequence):
    """Read-only live view over a CandleBuffer.

    Length and positional reads reflect the buffer at call time; iteration
    walks a snapshot taken when iteration starts.
    """

    __slots__ = ("_buffer",)

    def __init__(self, buffer: CandleBuffer) -> None:
        self._buffer = buffer

    @overload
    def __getitem__(self, index: int) -> Candle: ...

    @overload
    def __getitem__(self, index: slice) -> List[Candle]: ...

    def __getitem__(self, index: Union[int, slice]) -> Union[Candle, List[Candle]]:
        if isinstance(index, slice):
            return self._buffer.to_list()[index]
        return self._buffer.at(index)

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[Candle]:
        return iter(self._buffer.to_list())

    def __reversed__(self) -> Iterator[Candle]:
        return reversed(self._buffer.to_list())

    def __contains__(self, candle: object) -> bool:
        return candle in self._buffer.to_list()

    def front(self) -> Candle:
        return self._buffer.front()

    def back(self) -> Candle:
        return self._buffer.back()

    def __repr__(self) -> str:
        return f"CandleView(size={len(self._buffer)})"
