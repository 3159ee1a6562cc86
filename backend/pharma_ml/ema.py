"""
ema.py — Exponential Moving Average and Adaptive Threshold Band
=================================================================

EMA Formula: EMA_t = alpha * current + (1 - alpha) * EMA_(t-1)

Every batch keeps one AdaptiveThreshold per dimension:
    center — EMA of the readings themselves
    spread — EMA of the absolute deviation from the center
    band   — center ± BAND_WIDTH * spread, clamped to the medicine's hard range

Clamping to the hard range is what stops a batch that drifts into real
danger from adapting its own alarm away: however long a vial of insulin
sits at 15 °C, its band can never stretch past 8 °C.
"""

import math
import logging

from . import config
from .exceptions import InvariantViolation
from .utils import clamp

logger = logging.getLogger("pharma_ml.ema")


class EMASmoother:
    """
    EMA smoother.

    Attributes:
        alpha (float): Default smoothing factor (0 < alpha <= 1).
        _current_ema (float | None): Current EMA value.
    """

    def __init__(self, alpha: float = None, initial: float = None):
        """
        Args:
            alpha: Smoothing factor. Defaults to config.EMA_ALPHA (0.1).
            initial: Seed value; if None the first update seeds the EMA.
        """
        self.alpha = alpha if alpha is not None else config.EMA_ALPHA
        self._current_ema = initial

    def update(self, value: float, alpha: float = None) -> float:
        """
        Update EMA with a new value and return the smoothed result.

        Args:
            value: New observation.
            alpha: Per-update smoothing factor overriding self.alpha.
        Returns:
            Smoothed EMA value.
        """
        a = self.alpha if alpha is None else alpha
        if self._current_ema is None:
            self._current_ema = value
        else:
            self._current_ema = a * value + (1 - a) * self._current_ema
        return self._current_ema

    def get_current(self):
        """Get current EMA value without updating."""
        return self._current_ema

    def set_current(self, value: float) -> None:
        self._current_ema = value

    def reset(self):
        """Reset EMA state."""
        self._current_ema = None


class AdaptiveThreshold:
    """
    Self-adjusting expected-value band for one dimension of one batch.

    Attributes:
        hard_min, hard_max (float): Medicine hard bounds.
        min_spread (float): Floor for the spread.
        band_width (float): Band half-width in spreads.
        strict (bool): Raise InvariantViolation instead of repairing state.
    """

    def __init__(self, tolerance, alpha: float = None,
                 spread_fraction: float = None,
                 min_spread_fraction: float = None,
                 band_width: float = None,
                 strict: bool = None):
        """
        Args:
            tolerance: ToleranceRange of the medicine for this dimension.
            alpha: EMA factor. Defaults to config.EMA_ALPHA.
            spread_fraction: Initial spread as fraction of the hard range.
            min_spread_fraction: Spread floor as fraction of the hard range.
            band_width: Band half-width in units of spread.
            strict: Defaults to config.STRICT_INVARIANTS.
        """
        self.tolerance = tolerance
        self.hard_min = float(tolerance.min)
        self.hard_max = float(tolerance.max)
        self.band_width = band_width if band_width is not None else config.BAND_WIDTH
        self.strict = config.STRICT_INVARIANTS if strict is None else strict

        spread_fraction = (spread_fraction if spread_fraction is not None
                           else config.DEFAULT_SPREAD_FRACTION)
        min_spread_fraction = (min_spread_fraction if min_spread_fraction is not None
                               else config.MIN_SPREAD_FRACTION)
        self.default_spread = spread_fraction * tolerance.span
        self.min_spread = min_spread_fraction * tolerance.span

        self._center = EMASmoother(alpha, initial=float(tolerance.optimal))
        self._spread = EMASmoother(alpha, initial=max(self.default_spread, self.min_spread))

    @property
    def alpha(self) -> float:
        return self._center.alpha

    @property
    def center(self) -> float:
        return self._center.get_current()

    @property
    def spread(self) -> float:
        return self._spread.get_current()

    def update(self, value: float, alpha: float = None, widen: bool = True) -> None:
        """
        Fold one observation into the band.

        The deviation is measured against the center *before* it moves.
        With widen=False the deviation is capped at the current spread, so
        the observation can pull the band along but never make it wider.
        """
        deviation = abs(value - self.center)
        if not widen:
            deviation = min(deviation, self.spread)
        center = self._center.update(value, alpha)
        self._center.set_current(clamp(center, self.hard_min, self.hard_max))

        spread = self._spread.update(deviation, alpha)
        self._spread.set_current(max(spread, self.min_spread))
        self._check_invariants()

    def band(self) -> tuple:
        """Current (lower, upper) band, always within the hard bounds."""
        lower = self.center - self.band_width * self.spread
        upper = self.center + self.band_width * self.spread
        return (clamp(lower, self.hard_min, self.hard_max),
                clamp(upper, self.hard_min, self.hard_max))

    def contains(self, value: float) -> bool:
        lower, upper = self.band()
        return lower <= value <= upper

    def z(self, value: float) -> float:
        """Deviation from the center in spreads."""
        return abs(value - self.center) / self.spread

    def _check_invariants(self) -> None:
        center, spread = self.center, self.spread
        ok = (math.isfinite(center) and math.isfinite(spread)
              and self.hard_min <= center <= self.hard_max
              and spread >= self.min_spread)
        if ok:
            return
        message = (f"Adaptive threshold out of bounds: center={center} spread={spread} "
                   f"hard=[{self.hard_min}, {self.hard_max}]")
        if self.strict:
            raise InvariantViolation(message)
        logger.debug(message + " (repaired)")
        if not math.isfinite(center):
            center = float(self.tolerance.optimal)
        self._center.set_current(clamp(center, self.hard_min, self.hard_max))
        if not math.isfinite(spread) or spread < self.min_spread:
            self._spread.set_current(max(self.default_spread, self.min_spread))

    # ── State export (snapshots) ──────────────────────────────────

    def to_state(self) -> dict:
        return {"center": self.center, "spread": self.spread}

    def restore(self, state: dict) -> None:
        self._center.set_current(float(state["center"]))
        self._spread.set_current(float(state["spread"]))
        self._check_invariants()
