"""
profile_store.py — Per-Batch Adaptive Profiles
================================================

The store exclusively owns one BatchProfile and one RollingWindow per
batch id.  Profiles are created lazily on the first reading of a batch
and live for the life of the process.

Concurrency:
    Every batch has its own re-entrant lock.  Everything that mutates a
    batch (window append, classification against the profile, EMA update,
    statistics) runs inside `with store.lock(batch_id):`, so readings for
    one batch are applied in arrival order without lost updates while
    different batches never touch the same lock.

    The lock registry itself is a dict filled lazily; a short creation
    lock with a double-checked lookup guards only the first access of
    each batch id.
"""

import logging
import threading

from . import config
from .ema import AdaptiveThreshold
from .windowing import RollingWindowTracker

logger = logging.getLogger("pharma_ml.profile_store")


class BatchProfile:
    """
    Adaptive state for one batch.

    Attributes:
        batch_id (str): Batch identifier.
        medicine_model (MedicineModel): Tolerance model fixed at creation.
        thresholds (dict[str, AdaptiveThreshold]): One band per dimension.
        reading_count (int): Readings folded into the profile so far.
    """

    def __init__(self, batch_id: str, medicine_model, alpha: float = None,
                 strict: bool = None):
        self.batch_id = batch_id
        self.medicine_model = medicine_model
        self.reading_count = 0
        self.thresholds = {
            dim: AdaptiveThreshold(medicine_model.range_for(dim), alpha=alpha,
                                   strict=strict)
            for dim in config.DIMENSIONS
        }

    def threshold(self, dimension: str) -> AdaptiveThreshold:
        return self.thresholds[dimension]

    def is_warmed_up(self, warmup: int = None) -> bool:
        """True once adaptive bands are trusted for classification."""
        warmup = config.ADAPTIVE_WARMUP_READINGS if warmup is None else warmup
        return self.reading_count >= warmup

    def to_state(self) -> dict:
        return {
            "medicine_model": self.medicine_model,
            "reading_count": self.reading_count,
            "thresholds": {d: t.to_state() for d, t in self.thresholds.items()},
        }

    def __repr__(self):
        bands = ", ".join(
            f"{d}={t.center:.2f}±{t.spread:.2f}" for d, t in self.thresholds.items()
        )
        return (f"BatchProfile({self.batch_id!r}, {self.medicine_model.name}, "
                f"n={self.reading_count}, {bands})")


class BatchProfileStore:
    """
    Registry of batch profiles, rolling windows and per-batch locks.

    Injectable and process-scoped: construct a fresh store per engine
    (and per test) instead of sharing module-level state.
    """

    def __init__(self, alpha: float = None, drift_resistance: float = None,
                 window_capacity: int = None, strict: bool = None):
        """
        Args:
            alpha: EMA factor for adaptive thresholds. Defaults to config.EMA_ALPHA.
            drift_resistance: 0..1 damping of the EMA for anomalous readings.
                Defaults to config.DRIFT_RESISTANCE.
            window_capacity: Rolling window size. Defaults to config.WINDOW_CAPACITY.
            strict: Raise on invariant violations. Defaults to config.STRICT_INVARIANTS.
        """
        self.alpha = alpha if alpha is not None else config.EMA_ALPHA
        self.drift_resistance = (drift_resistance if drift_resistance is not None
                                 else config.DRIFT_RESISTANCE)
        if not 0.0 <= self.drift_resistance <= 1.0:
            raise ValueError(f"drift_resistance must be in [0, 1], got {self.drift_resistance}")
        self.strict = strict
        self._profiles = {}
        self._locks = {}
        self._registry_lock = threading.Lock()
        self._windows = RollingWindowTracker(window_capacity)

    # ── Locks ─────────────────────────────────────────────────────

    def lock(self, batch_id: str) -> threading.RLock:
        """Per-batch re-entrant lock, created on first use."""
        lock = self._locks.get(batch_id)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.get(batch_id)
                if lock is None:
                    lock = threading.RLock()
                    self._locks[batch_id] = lock
        return lock

    # ── Profiles ──────────────────────────────────────────────────

    def get_or_create(self, batch_id: str, medicine_model) -> BatchProfile:
        """
        Return the profile of a batch, creating it on first access.

        A new profile starts centered on the medicine's optimal point.
        An existing profile keeps the model it was created with.
        """
        with self.lock(batch_id):
            profile = self._profiles.get(batch_id)
            if profile is None:
                profile = BatchProfile(batch_id, medicine_model, alpha=self.alpha,
                                       strict=self.strict)
                self._profiles[batch_id] = profile
                logger.info(f"Created profile for batch {batch_id} "
                            f"(model: {medicine_model.name})")
            elif profile.medicine_model is not medicine_model:
                logger.debug(f"Batch {batch_id} keeps model "
                             f"{profile.medicine_model.name}, ignoring {medicine_model.name}")
            return profile

    def get(self, batch_id: str):
        """Profile of a batch, or None."""
        return self._profiles.get(batch_id)

    def update(self, batch_id: str, reading, anomalous: bool = False) -> BatchProfile:
        """
        Fold a reading into the batch's adaptive thresholds.

        Anomalous readings move the center with alpha * (1 - drift_resistance)
        and, with any resistance at all, cannot widen the spread.  A batch
        left out of refrigeration keeps alarming instead of learning the bad
        temperature as its new normal.

        Raises:
            KeyError: If the batch has no profile yet.
        """
        with self.lock(batch_id):
            profile = self._profiles.get(batch_id)
            if profile is None:
                raise KeyError(f"No profile for batch '{batch_id}'")
            resisted = anomalous and self.drift_resistance > 0.0
            alpha = self.alpha * (1.0 - self.drift_resistance) if anomalous else self.alpha
            for dim, threshold in profile.thresholds.items():
                threshold.update(reading.value(dim), alpha=alpha, widen=not resisted)
            profile.reading_count += 1
            return profile

    # ── Rolling windows ───────────────────────────────────────────

    def append(self, batch_id: str, reading):
        with self.lock(batch_id):
            return self._windows.append(batch_id, reading)

    def window(self, batch_id: str):
        return self._windows.window(batch_id)

    # ── Introspection ─────────────────────────────────────────────

    def batch_ids(self) -> list:
        return list(self._profiles.keys())

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, batch_id: str) -> bool:
        return batch_id in self._profiles

    # ── State export (snapshots) ──────────────────────────────────

    def export_batch(self, batch_id: str) -> tuple:
        """(profile state, window state) of one batch, copied under its lock."""
        with self.lock(batch_id):
            return (self._profiles[batch_id].to_state(),
                    self._windows.window(batch_id).to_state())

    def restore_state(self, state: dict) -> None:
        for batch_id, pstate in state.get("profiles", {}).items():
            with self.lock(batch_id):
                profile = BatchProfile(batch_id, pstate["medicine_model"],
                                       alpha=self.alpha, strict=self.strict)
                profile.reading_count = int(pstate["reading_count"])
                for dim, tstate in pstate["thresholds"].items():
                    profile.thresholds[dim].restore(tstate)
                self._profiles[batch_id] = profile
        self._windows.restore(state.get("windows", {}))
        logger.info(f"Restored {len(state.get('profiles', {}))} batch profiles")
