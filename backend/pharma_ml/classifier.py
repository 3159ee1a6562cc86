"""
classifier.py — Multi-Strategy Anomaly Classifier
===================================================

Three independent strategies look at every reading, per dimension:

    threshold_violation — outside the medicine's hard range       → HIGH
                          outside the batch's adaptive band       → MEDIUM
                          (adaptive band only after warm-up)
    sudden_spike        — |x − mean(prev K)| > SPIKE_SIGMA · std  → MEDIUM
                          beyond SPIKE_HIGH_SIGMA · std           → HIGH
    gradual_drift       — window trend crosses a hard bound within
                          DRIFT_HORIZON readings                  → LOW
                          within half the horizon                 → MEDIUM

Any triggered strategy makes the reading anomalous.  The verdict takes
the maximum severity; its pattern is the strategy of the strongest
signal.  Equal severities go to temperature first (a temperature
excursion does more damage in cold-chain storage than a humidity one),
then to strategy order threshold > spike > drift.
"""

import logging
from dataclasses import dataclass

from . import config
from .data_models import (
    AnomalyVerdict, Reasons, HIGH, MEDIUM, LOW, SEVERITY_RANK,
    PATTERN_NONE, THRESHOLD_VIOLATION, SUDDEN_SPIKE, GRADUAL_DRIFT,
)

logger = logging.getLogger("pharma_ml.classifier")

STRATEGY_ORDER = (THRESHOLD_VIOLATION, SUDDEN_SPIKE, GRADUAL_DRIFT)
DIMENSION_ORDER = {dim: i for i, dim in enumerate(config.DIMENSIONS)}


@dataclass(frozen=True)
class Signal:
    """One strategy firing on one dimension."""
    strategy: str
    dimension: str
    severity: str
    magnitude: float

    def sort_key(self):
        return (-SEVERITY_RANK[self.severity],
                DIMENSION_ORDER[self.dimension],
                STRATEGY_ORDER.index(self.strategy))


class AnomalyClassifier:
    """
    Applies the threshold, spike and drift strategies to a reading.

    All tunables default to config values and can be overridden per
    instance for testing or per-deployment calibration.
    """

    def __init__(self, warmup: int = None,
                 spike_lookback: int = None, spike_min_history: int = None,
                 spike_sigma: float = None, spike_high_sigma: float = None,
                 spike_min_std: dict = None,
                 drift_min_points: int = None, drift_horizon: int = None,
                 drift_min_slope: dict = None):
        self.warmup = config.ADAPTIVE_WARMUP_READINGS if warmup is None else warmup
        self.spike_lookback = (config.SPIKE_LOOKBACK if spike_lookback is None
                               else spike_lookback)
        self.spike_min_history = (config.SPIKE_MIN_HISTORY if spike_min_history is None
                                  else spike_min_history)
        self.spike_sigma = config.SPIKE_SIGMA if spike_sigma is None else spike_sigma
        self.spike_high_sigma = (config.SPIKE_HIGH_SIGMA if spike_high_sigma is None
                                 else spike_high_sigma)
        self.spike_min_std = (config.SPIKE_MIN_STD if spike_min_std is None
                              else spike_min_std)
        self.drift_min_points = (config.DRIFT_MIN_POINTS if drift_min_points is None
                                 else drift_min_points)
        self.drift_horizon = (config.DRIFT_HORIZON if drift_horizon is None
                              else drift_horizon)
        self.drift_min_slope = (config.DRIFT_MIN_SLOPE if drift_min_slope is None
                                else drift_min_slope)

    # ── Strategies ────────────────────────────────────────────────

    def check_threshold(self, reading, profile, medicine_model) -> list:
        signals = []
        adaptive = profile.is_warmed_up(self.warmup)
        for dim in config.DIMENSIONS:
            value = reading.value(dim)
            tolerance = medicine_model.range_for(dim)
            if not tolerance.contains(value):
                excess = max(tolerance.min - value, value - tolerance.max)
                signals.append(Signal(THRESHOLD_VIOLATION, dim, HIGH, excess))
            elif adaptive and not profile.threshold(dim).contains(value):
                signals.append(Signal(THRESHOLD_VIOLATION, dim, MEDIUM,
                                      profile.threshold(dim).z(value)))
        return signals

    def spike_applicable(self, window) -> bool:
        return len(window) - 1 >= self.spike_min_history

    def check_spike(self, reading, window) -> list:
        """Compare the reading with the readings before it in the window."""
        if not self.spike_applicable(window):
            return []
        signals = []
        for dim in config.DIMENSIONS:
            prior = window.values(dim, last=self.spike_lookback, exclude_latest=True)
            std = max(float(prior.std(ddof=0)), self.spike_min_std[dim])
            sigma = abs(reading.value(dim) - float(prior.mean())) / std
            if sigma > self.spike_sigma:
                severity = HIGH if sigma > self.spike_high_sigma else MEDIUM
                signals.append(Signal(SUDDEN_SPIKE, dim, severity, sigma))
        return signals

    def drift_applicable(self, window) -> bool:
        return len(window) >= self.drift_min_points

    def check_drift(self, reading, window, medicine_model) -> list:
        """
        Early warning: the trend is still inside the hard range but will
        leave it within the horizon if it continues.
        """
        if not self.drift_applicable(window):
            return []
        signals = []
        for dim in config.DIMENSIONS:
            value = reading.value(dim)
            tolerance = medicine_model.range_for(dim)
            if not tolerance.contains(value):
                continue
            slope = window.slope(dim)
            if abs(slope) < self.drift_min_slope[dim]:
                continue
            bound = tolerance.max if slope > 0 else tolerance.min
            steps = (bound - value) / slope
            if steps <= self.drift_horizon:
                severity = MEDIUM if steps <= self.drift_horizon / 2 else LOW
                signals.append(Signal(GRADUAL_DRIFT, dim, severity, steps))
        return signals

    # ── Verdict ───────────────────────────────────────────────────

    def classify(self, reading, profile, window, medicine_model) -> AnomalyVerdict:
        """
        Classify a reading.

        Args:
            reading: The Reading under test.
            profile: BatchProfile with thresholds from *before* this reading.
            window: RollingWindow whose newest entry is this reading.
            medicine_model: Tolerance model of the batch.

        Returns:
            AnomalyVerdict (confidence left at 0.0 for the scorer to fill).
        """
        signals = (self.check_threshold(reading, profile, medicine_model)
                   + self.check_spike(reading, window)
                   + self.check_drift(reading, window, medicine_model))

        applicable = (1 + int(self.spike_applicable(window))
                      + int(self.drift_applicable(window)))
        triggered = len({s.strategy for s in signals})

        if not signals:
            return AnomalyVerdict(
                is_anomaly=False, severity=None, pattern=PATTERN_NONE,
                reasons=Reasons(), strategies_applicable=applicable,
                strategies_triggered=0,
            )

        primary = min(signals, key=Signal.sort_key)
        dims = {s.dimension for s in signals}
        strategies = {s.strategy for s in signals}
        reasons = Reasons(
            temperature="temperature" in dims,
            humidity="humidity" in dims,
            sudden_change=SUDDEN_SPIKE in strategies,
            gradual_drift=GRADUAL_DRIFT in strategies,
            pattern=primary.strategy,
        )
        logger.debug(f"Batch {reading.batch_id}: signals="
                     f"{[(s.strategy, s.dimension, s.severity) for s in signals]}")
        return AnomalyVerdict(
            is_anomaly=True, severity=primary.severity, pattern=primary.strategy,
            reasons=reasons, strategies_applicable=applicable,
            strategies_triggered=triggered,
        )
