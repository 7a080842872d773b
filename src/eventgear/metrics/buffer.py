# src/eventgear/metrics/buffer.py
"""Fixed-capacity rolling buffer of (timestamp, count) pairs.

Answers "how many events in the last N ms" without keeping one entry per
event: entries sharing a timestamp are coalesced into one slot.

Key design decisions:
- Preallocated parallel lists: no allocation on the hot path
- Circular write pointer: insertion past capacity overwrites the oldest slot
- clean() only shrinks the logical size, no data movement
- Aggregate logging: overwrites are logged every 1000, not per entry
"""

from __future__ import annotations

from collections.abc import Iterator
import structlog

from eventgear.contracts.errors import ValidationError
from eventgear.contracts.limits import ENGINE_LIMITS
from eventgear.contracts.metrics import BufferEntry
from eventgear.core.clock import DEFAULT_CLOCK, Clock

logger = structlog.get_logger(__name__)


class RollingTimestampBuffer:
    """Circular buffer of coalesced timestamp counts.

    Thread Safety:
        NOT thread-safe. The TelemetryEngine only touches it while holding
        its registration gate.

    Example:
        buffer = RollingTimestampBuffer(capacity=3)
        for ts in (1, 2, 3, 4):
            buffer.add_entry(ts)
        [e.timestamp for e in buffer.get_all_entries()]  # [2, 3, 4]
    """

    # Log aggregate overwrites every N to avoid Warning Fatigue
    _LOG_INTERVAL = 1000

    def __init__(
        self,
        capacity: int,
        *,
        max_capacity: int = ENGINE_LIMITS.max_rolling_buffer_capacity,
        clock: Clock | None = None,
    ) -> None:
        """Initialize the rolling buffer.

        Args:
            capacity: Number of slots, capped at ``max_capacity``
            max_capacity: Hard ceiling for ``capacity``
            clock: Clock used by get_count_in_last_milliseconds when no
                explicit ``now`` is given. Defaults to the system clock.

        Raises:
            ValidationError: If capacity is not a positive integer.
        """
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise ValidationError(f"capacity must be an integer, got {type(capacity).__name__}")
        if capacity <= 0:
            raise ValidationError(f"capacity must be > 0, got {capacity}")
        self._capacity = min(capacity, max_capacity)
        self._clock = clock if clock is not None else DEFAULT_CLOCK
        self._overwritten_count = 0
        self._last_logged_overwrite_count = 0
        self.reset()

    def reset(self) -> None:
        """Clear every slot and rewind the write pointer."""
        self._timestamps: list[float] = [0.0] * self._capacity
        self._counts: list[int] = [0] * self._capacity
        self._pointer = 0
        self._size = 0

    def _oldest_index(self) -> int:
        return (self._pointer - self._size) % self._capacity

    def add_entry(self, timestamp: float, count: int = 1) -> None:
        """Record ``count`` events at ``timestamp``.

        Coalesces into the most recently written slot when it carries the
        same timestamp; otherwise writes a new slot, overwriting the oldest
        one once the buffer is full.
        """
        if self._size > 0:
            newest = (self._pointer - 1) % self._capacity
            if self._timestamps[newest] == timestamp:
                self._counts[newest] += count
                return

        was_full = self._size == self._capacity
        self._timestamps[self._pointer] = timestamp
        self._counts[self._pointer] = count
        self._pointer = (self._pointer + 1) % self._capacity
        if not was_full:
            self._size += 1
            return

        self._overwritten_count += 1
        if self._overwritten_count - self._last_logged_overwrite_count >= self._LOG_INTERVAL:
            logger.debug(
                "Rolling buffer full - oldest entries overwritten",
                overwritten_since_last_log=self._LOG_INTERVAL,
                overwritten_total=self._overwritten_count,
                capacity=self._capacity,
            )
            self._last_logged_overwrite_count = self._overwritten_count

    def clean(self, min_timestamp: float) -> None:
        """Logically drop the oldest entries older than ``min_timestamp``."""
        while self._size > 0 and self._timestamps[self._oldest_index()] < min_timestamp:
            self._size -= 1

    def _iter_valid(self) -> Iterator[tuple[float, int]]:
        index = self._oldest_index()
        for _ in range(self._size):
            yield self._timestamps[index], self._counts[index]
            index = (index + 1) % self._capacity

    def filter(self, start: float, end: float) -> list[BufferEntry]:
        """Entries with ``start <= timestamp < end``, oldest first."""
        if self._size == 0 or start >= end:
            return []
        return [BufferEntry(ts, count) for ts, count in self._iter_valid() if start <= ts < end]

    def get_all_entries(self) -> list[BufferEntry]:
        """Every valid entry, oldest first."""
        return [BufferEntry(ts, count) for ts, count in self._iter_valid()]

    def sum_counts_in_timeframe(self, start: float, end: float) -> int:
        """Sum of counts with ``start <= timestamp <= end`` (both inclusive)."""
        return sum(count for ts, count in self._iter_valid() if start <= ts <= end)

    def get_count_in_last_milliseconds(self, milliseconds: float, now: float | None = None) -> int:
        """Events recorded within ``milliseconds`` before ``now``.

        Args:
            milliseconds: Window length
            now: Window end; defaults to the buffer's clock reading
        """
        if now is None:
            now = self._clock.now()
        return self.sum_counts_in_timeframe(now - milliseconds, now)

    @property
    def size(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def overwritten_count(self) -> int:
        """Number of slots overwritten because the buffer was full."""
        return self._overwritten_count

    def __len__(self) -> int:
        return self._size
