"""
Depth-1 frame channel between the capture callback and the render loop.

The capture thread must never block, and a slow terminal must never build a
backlog of stale audio. The buffer therefore holds at most one frame: a new
frame replaces an unconsumed one (drop oldest, process latest).

Usage:
    buffer = LatestFrameBuffer()

    # Producer (audio callback thread)
    buffer.put(timestamp, audio_data)

    # Consumer (render thread)
    result = buffer.get(timeout=0.1)
    if result is not None:
        timestamp, audio_data = result
"""

import threading
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np


@dataclass
class BufferStats:
    """Statistics for buffer operations."""
    writes: int = 0
    reads: int = 0
    overruns: int = 0      # Frames replaced before they were read
    underruns: int = 0     # Reads that timed out on an empty buffer


class BufferClosed(Exception):
    """Raised by get() once the buffer has been closed and drained."""


class LatestFrameBuffer:
    """
    Single-slot, drop-oldest channel for audio frames.

    Thread-safe for any number of producers and one consumer. A fatal error
    reported with fail() is raised from the consumer's next get().
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._slot: Optional[Tuple[float, np.ndarray]] = None
        self._error: Optional[BaseException] = None
        self._closed = False
        self._stats = BufferStats()

    def put(self, timestamp: float, data: np.ndarray) -> bool:
        """
        Store a frame, replacing any unread one. Never blocks for long.

        Returns:
            False if the buffer is closed and the frame was discarded
        """
        with self._cond:
            if self._closed:
                return False
            if self._slot is not None:
                self._stats.overruns += 1
            self._slot = (timestamp, data)
            self._stats.writes += 1
            self._cond.notify()
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[Tuple[float, np.ndarray]]:
        """
        Take the latest frame, waiting up to `timeout` seconds.

        Returns:
            (timestamp, audio_data) or None on timeout

        Raises:
            The exception passed to fail(), or BufferClosed after close()
        """
        with self._cond:
            if self._slot is None and self._error is None and not self._closed:
                self._cond.wait(timeout)

            if self._error is not None:
                raise self._error
            if self._slot is None:
                if self._closed:
                    raise BufferClosed()
                self._stats.underruns += 1
                return None

            result = self._slot
            self._slot = None
            self._stats.reads += 1
            return result

    def fail(self, error: BaseException):
        """Record a fatal producer error and wake the consumer."""
        with self._cond:
            self._error = error
            self._cond.notify_all()

    def close(self):
        """Stop accepting frames and wake the consumer."""
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def stats(self) -> BufferStats:
        """Get buffer statistics."""
        return self._stats
