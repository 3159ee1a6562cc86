"""
statistics.py — Per-Batch and Global Rollups
==============================================

Running counters updated in O(1) per reading:
    total readings, anomaly count,
    sum / min / max of temperature and humidity,
    sum of confidences (for the running average).

Each batch has its own counter object with its own lock.  The engine
records while already holding the batch lock, so that lock is never
contended; it only makes snapshot reads consistent.  Global statistics
sum the per-batch counters instead of rescanning any history.
"""

import logging
import math
import threading

from . import config
from .data_models import BatchStatistics, GlobalStatistics

logger = logging.getLogger("pharma_ml.statistics")


class BatchCounters:
    """Running totals for one batch."""

    __slots__ = ("medicine_model", "total", "anomalies", "sum_temperature",
                 "sum_humidity", "min_temperature", "max_temperature",
                 "min_humidity", "max_humidity", "sum_confidence", "lock")

    def __init__(self, medicine_model):
        self.medicine_model = medicine_model
        self.total = 0
        self.anomalies = 0
        self.sum_temperature = 0.0
        self.sum_humidity = 0.0
        self.min_temperature = math.inf
        self.max_temperature = -math.inf
        self.min_humidity = math.inf
        self.max_humidity = -math.inf
        self.sum_confidence = 0.0
        self.lock = threading.Lock()

    def add(self, reading, verdict) -> None:
        with self.lock:
            self.total += 1
            if verdict.is_anomaly:
                self.anomalies += 1
            t, h = reading.temperature, reading.humidity
            self.sum_temperature += t
            self.sum_humidity += h
            self.min_temperature = min(self.min_temperature, t)
            self.max_temperature = max(self.max_temperature, t)
            self.min_humidity = min(self.min_humidity, h)
            self.max_humidity = max(self.max_humidity, h)
            self.sum_confidence += verdict.confidence

    def snapshot(self) -> dict:
        with self.lock:
            return {name: getattr(self, name) for name in self.__slots__
                    if name != "lock"}

    def restore(self, state: dict) -> None:
        with self.lock:
            for name, value in state.items():
                if name != "lock":
                    setattr(self, name, value)


class StatisticsAggregator:
    """
    Incremental statistics over every ingested reading.

    Args:
        registry: MedicineModelRegistry, for the list of model names.
        warmup: Readings after which a batch counts as having adaptive
            thresholds. Defaults to config.ADAPTIVE_WARMUP_READINGS.
    """

    def __init__(self, registry=None, warmup: int = None):
        self.registry = registry
        self.warmup = config.ADAPTIVE_WARMUP_READINGS if warmup is None else warmup
        self._batches = {}
        self._create_lock = threading.Lock()

    def _counters(self, batch_id: str, medicine_model) -> BatchCounters:
        counters = self._batches.get(batch_id)
        if counters is None:
            with self._create_lock:
                counters = self._batches.get(batch_id)
                if counters is None:
                    counters = BatchCounters(medicine_model)
                    self._batches[batch_id] = counters
        return counters

    def record(self, batch_id: str, reading, verdict, medicine_model) -> None:
        """Add one classified reading to the batch's counters."""
        self._counters(batch_id, medicine_model).add(reading, verdict)

    def batch_stats(self, batch_id: str):
        """
        Statistics of one batch.

        Returns:
            BatchStatistics, or None if the batch has no readings yet.
            None means "no data yet", not a failure.
        """
        counters = self._batches.get(batch_id)
        if counters is None:
            return None
        snap = counters.snapshot()
        total = snap["total"]
        if total == 0:
            return None
        return BatchStatistics(
            batch_id=batch_id,
            total_readings=total,
            anomaly_count=snap["anomalies"],
            average_temperature=snap["sum_temperature"] / total,
            average_humidity=snap["sum_humidity"] / total,
            temperature_range=(snap["min_temperature"], snap["max_temperature"]),
            humidity_range=(snap["min_humidity"], snap["max_humidity"]),
            average_confidence=snap["sum_confidence"] / total,
            medicine_model=snap["medicine_model"],
        )

    def global_stats(self) -> GlobalStatistics:
        """Sum of per-batch contributions."""
        total_batches = total = anomalies = adaptive = 0
        sum_confidence = 0.0
        for counters in list(self._batches.values()):
            snap = counters.snapshot()
            if snap["total"] == 0:
                continue
            total_batches += 1
            total += snap["total"]
            anomalies += snap["anomalies"]
            sum_confidence += snap["sum_confidence"]
            if snap["total"] >= self.warmup:
                adaptive += 1

        return GlobalStatistics(
            total_batches=total_batches,
            total_readings=total,
            total_anomalies=anomalies,
            adaptive_thresholds=adaptive,
            average_confidence=sum_confidence / total if total else 0.0,
            medicine_models=self.registry.names() if self.registry is not None else [],
        )

    # ── State export (snapshots) ──────────────────────────────────

    def export_batch(self, batch_id: str):
        """Counter snapshot of one batch, or None if it has none."""
        counters = self._batches.get(batch_id)
        return counters.snapshot() if counters is not None else None

    def restore_state(self, state: dict) -> None:
        for batch_id, snap in state.items():
            self._counters(batch_id, snap["medicine_model"]).restore(snap)
        logger.info(f"Restored statistics for {len(state)} batches")
