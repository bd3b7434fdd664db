"""Fixed-capacity time-series buffer for one telemetry channel."""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Tuple

logger = logging.getLogger(__name__)

Point = Tuple[float, float]


class SampleBuffer:
    """FIFO buffer of (timestamp, value) pairs for one channel.

    Timestamps are seconds elapsed since the first sample pushed after
    construction or the last clear() ("t0"). Once the buffer holds
    max_points entries, every push discards the oldest pair.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty buffer.

        Args:
            clock: Monotonic time source in seconds. Defaults to time.monotonic.
        """
        self._clock = clock
        self._times: Deque[float] = deque()
        self._values: Deque[float] = deque()
        self._t0: Optional[float] = None
        self._lock = threading.Lock()

    def push(self, value: float, max_points: int) -> None:
        """Append a value stamped with the time elapsed since t0.

        The first push after construction or clear() sets t0, so its
        timestamp is 0.0. If the buffer then holds more than max_points
        entries, the oldest are evicted until it fits.

        Args:
            value: Sample value
            max_points: Capacity to enforce after appending
        """
        if max_points <= 0:
            raise ValueError(f"max_points must be positive, got {max_points}")

        with self._lock:
            now = self._clock()
            if self._t0 is None:
                self._t0 = now
            self._times.append(now - self._t0)
            self._values.append(value)

            while len(self._values) > max_points:
                self._times.popleft()
                self._values.popleft()

    def clear(self) -> None:
        """Remove all samples and unset t0."""
        with self._lock:
            count = len(self._values)
            self._times.clear()
            self._values.clear()
            self._t0 = None
            logger.debug(f"Cleared {count} samples from buffer")

    def snapshot(self) -> List[Point]:
        """Get a copy of all current samples.

        Returns:
            List of (timestamp, value) tuples, ordered oldest to newest
        """
        with self._lock:
            return list(zip(self._times, self._values))

    @property
    def times(self) -> List[float]:
        """Copy of the timestamps, oldest first."""
        with self._lock:
            return list(self._times)

    @property
    def values(self) -> List[float]:
        """Copy of the values, oldest first."""
        with self._lock:
            return list(self._values)

    @property
    def t0(self) -> Optional[float]:
        """Clock reading of the first sample, None when unset."""
        return self._t0

    def latest(self) -> Optional[Point]:
        """Most recent (timestamp, value), or None if empty."""
        with self._lock:
            if not self._values:
                return None
            return self._times[-1], self._values[-1]

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
