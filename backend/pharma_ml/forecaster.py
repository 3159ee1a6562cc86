"""
forecaster.py — Next-Step Forecast and Risk Level
===================================================

next value = last value + window trend slope (one reading ahead),
             clipped to what a DHT22 can physically report.

risk level = mean of
                 severity weight  (none 0 / low 0.4 / medium 0.7 / high 1.0)
                 forecast distance from the optimal point, per hard range
             clamped to [0, 1].

The risk rises with severity and with how far the next reading is
expected to be from optimal, so a normal reading trending away from
optimal already carries some risk.
"""

import logging

import numpy as np

from . import config
from .data_models import Prediction
from .utils import clamp

logger = logging.getLogger("pharma_ml.forecaster")


class Forecaster:

    def __init__(self, severity_risk: dict = None, physical_bounds: dict = None):
        self.severity_risk = (config.SEVERITY_RISK if severity_risk is None
                              else severity_risk)
        self.physical_bounds = (config.PHYSICAL_BOUNDS if physical_bounds is None
                                else physical_bounds)

    def next_value(self, window, dimension: str) -> float:
        latest = window.latest()
        if latest is None:
            raise ValueError("Cannot forecast from an empty window")
        lo, hi = self.physical_bounds[dimension]
        return float(np.clip(latest.value(dimension) + window.slope(dimension), lo, hi))

    def distance_from_optimal(self, medicine_model, dimension: str, value: float) -> float:
        """|value − optimal| normalized by the hard range, capped at 1."""
        tolerance = medicine_model.range_for(dimension)
        return min(1.0, abs(value - tolerance.optimal) / tolerance.span)

    def predict(self, window, profile, verdict) -> Prediction:
        """
        Args:
            window: RollingWindow including the current reading.
            profile: BatchProfile of the batch (for its medicine model).
            verdict: AnomalyVerdict of the current reading.
        """
        next_temp = self.next_value(window, "temperature")
        next_hum = self.next_value(window, "humidity")

        model = profile.medicine_model
        distance = max(
            self.distance_from_optimal(model, "temperature", next_temp),
            self.distance_from_optimal(model, "humidity", next_hum),
        )
        severity_weight = self.severity_risk[verdict.severity if verdict.is_anomaly else None]
        risk = clamp((severity_weight + distance) / 2.0, 0.0, 1.0)
        logger.debug(f"Forecast {profile.batch_id}: T={next_temp:.2f} "
                     f"H={next_hum:.2f} risk={risk:.3f}")

        return Prediction(next_temperature=next_temp, next_humidity=next_hum,
                          risk_level=risk)
