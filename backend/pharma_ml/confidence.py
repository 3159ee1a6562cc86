"""
confidence.py — Confidence Scorer
==================================

Turns a verdict into a confidence in [0, 1] that the verdict is right.

    agreeing  = strategies that triggered           (anomalous reading)
              = applicable strategies, none fired   (normal reading)
    base      = BASE_CONFIDENCE[agreeing]           (0.3, 0.55, 0.75, 0.9)
    d         = min(1, max_dim z / DEVIATION_Z_CAP), z = |x − center| / spread
    deviation = d for anomalies, (1 − d) for normal readings
    history   = min(1, reading_count / HISTORY_CAP)

    confidence = clamp(base + DEVIATION_WEIGHT·deviation + HISTORY_WEIGHT·history)

Deterministic: same profile, window and reading give the same number.
"""

from . import config
from .utils import clamp


class ConfidenceScorer:

    def __init__(self, base: tuple = None, deviation_weight: float = None,
                 deviation_z_cap: float = None, history_weight: float = None,
                 history_cap: int = None):
        self.base = tuple(config.BASE_CONFIDENCE if base is None else base)
        self.deviation_weight = (config.DEVIATION_WEIGHT if deviation_weight is None
                                 else deviation_weight)
        self.deviation_z_cap = (config.DEVIATION_Z_CAP if deviation_z_cap is None
                                else deviation_z_cap)
        self.history_weight = (config.HISTORY_WEIGHT if history_weight is None
                               else history_weight)
        self.history_cap = config.HISTORY_CAP if history_cap is None else history_cap

    def normalized_deviation(self, reading, profile) -> float:
        z = max(profile.threshold(dim).z(reading.value(dim)) for dim in config.DIMENSIONS)
        return min(1.0, z / self.deviation_z_cap)

    def score(self, verdict, reading, profile) -> float:
        """
        Args:
            verdict: AnomalyVerdict from the classifier.
            reading: The classified Reading.
            profile: BatchProfile as used for classification (pre-update).

        Returns:
            Confidence in [0, 1].
        """
        if verdict.is_anomaly:
            agreeing = verdict.strategies_triggered
        else:
            agreeing = verdict.strategies_applicable
        base = self.base[min(agreeing, len(self.base) - 1)]

        d = self.normalized_deviation(reading, profile)
        deviation = d if verdict.is_anomaly else 1.0 - d
        history = min(1.0, profile.reading_count / self.history_cap)

        return clamp(base + self.deviation_weight * deviation
                     + self.history_weight * history, 0.0, 1.0)
