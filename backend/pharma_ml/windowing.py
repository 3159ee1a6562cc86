"""
windowing.py — Count-Based Rolling Window per Batch
=====================================================

Keeps the last N readings of every batch for short-term pattern
detection.  The window is count-based rather than time-based: devices
report late and out of order over flaky cellular links, and the spike
and drift strategies reason in "readings ago", not seconds.

How it works:
    1. Each reading is appended to a deque of fixed capacity.
    2. When the deque is full the oldest reading is evicted (FIFO).
    3. Statistics (mean, std, linear trend slope) are computed on demand
       over the whole window or its last K entries.

Used for:
    - Sudden spike:  newest value vs. mean/std of the previous K readings
    - Gradual drift: least-squares slope over the window
    - Forecasting:   one-step extrapolation of that slope
"""

import logging
import threading
from collections import deque

import numpy as np

from . import config

logger = logging.getLogger("pharma_ml.windowing")


class RollingWindow:
    """
    Fixed-capacity, insertion-ordered history of readings for one batch.

    Attributes:
        capacity (int): Maximum number of readings kept.
        _buffer (deque[Reading]): Readings, most recent last.
    """

    def __init__(self, capacity: int = None):
        """
        Args:
            capacity: Window size. Defaults to config.WINDOW_CAPACITY (20).
        """
        self.capacity = config.WINDOW_CAPACITY if capacity is None else capacity
        self._buffer = deque(maxlen=self.capacity)

    def append(self, reading) -> None:
        """Add a reading; evicts the oldest when full."""
        self._buffer.append(reading)

    def readings(self) -> list:
        """Readings in insertion order, most recent last."""
        return list(self._buffer)

    def values(self, dimension: str, last: int = None,
               exclude_latest: bool = False) -> np.ndarray:
        """
        Values of one dimension as a float array.

        Args:
            dimension: "temperature" or "humidity".
            last: Only the most recent `last` entries (after exclusion).
            exclude_latest: Drop the newest entry first (the reading under test).
        """
        items = list(self._buffer)
        if exclude_latest:
            items = items[:-1]
        if last is not None:
            items = items[-last:] if last > 0 else []
        return np.array([r.value(dimension) for r in items], dtype=np.float64)

    def latest(self):
        return self._buffer[-1] if self._buffer else None

    def mean(self, dimension: str, **kwargs) -> float:
        vals = self.values(dimension, **kwargs)
        return float(vals.mean()) if len(vals) else 0.0

    def std(self, dimension: str, **kwargs) -> float:
        """Population standard deviation (ddof=0)."""
        vals = self.values(dimension, **kwargs)
        return float(vals.std(ddof=0)) if len(vals) else 0.0

    def slope(self, dimension: str, **kwargs) -> float:
        """
        Least-squares trend slope in units per reading.

        Readings are indexed 0..n-1 in arrival order; timestamps are not
        used because late arrivals would otherwise bend the trend.

        Returns:
            Slope, or 0.0 with fewer than two points.
        """
        vals = self.values(dimension, **kwargs)
        if len(vals) < 2:
            return 0.0
        x = np.arange(len(vals), dtype=np.float64)
        slope, _intercept = np.polyfit(x, vals, 1)
        return float(slope)

    def __len__(self) -> int:
        return len(self._buffer)

    def to_state(self) -> list:
        return list(self._buffer)

    def restore(self, readings: list) -> None:
        self._buffer = deque(readings, maxlen=self.capacity)


class RollingWindowTracker:
    """
    Rolling windows keyed by batch id.

    Windows are created lazily on first append.  Callers that need
    append-then-read consistency for one batch serialize through the
    batch lock held by BatchProfileStore.
    """

    def __init__(self, capacity: int = None):
        self.capacity = config.WINDOW_CAPACITY if capacity is None else capacity
        self._windows = {}
        self._create_lock = threading.Lock()

    def _get_or_create(self, batch_id: str) -> RollingWindow:
        window = self._windows.get(batch_id)
        if window is None:
            with self._create_lock:
                window = self._windows.get(batch_id)
                if window is None:
                    window = RollingWindow(self.capacity)
                    self._windows[batch_id] = window
        return window

    def append(self, batch_id: str, reading) -> RollingWindow:
        window = self._get_or_create(batch_id)
        window.append(reading)
        logger.debug(f"Window {batch_id}: {len(window)}/{window.capacity} readings")
        return window

    def window(self, batch_id: str) -> RollingWindow:
        """Window for a batch (empty if the batch has never reported)."""
        window = self._windows.get(batch_id)
        return window if window is not None else RollingWindow(self.capacity)

    def __contains__(self, batch_id: str) -> bool:
        return batch_id in self._windows

    def to_state(self) -> dict:
        return {bid: w.to_state() for bid, w in list(self._windows.items())}

    def restore(self, state: dict) -> None:
        for bid, readings in state.items():
            self._get_or_create(bid).restore(readings)
