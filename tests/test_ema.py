# -*- coding: utf-8 -*-
"""EMA smoother and adaptive threshold band."""

import math
import random

import pytest

from backend.pharma_ml.data_models import ToleranceRange
from backend.pharma_ml.ema import AdaptiveThreshold, EMASmoother
from backend.pharma_ml.exceptions import InvariantViolation

INSULIN_TEMP = ToleranceRange(min=2, max=8, optimal=4)


def test_ema_smoother_seeds_then_smooths():
    ema = EMASmoother(alpha=0.5)
    assert ema.update(10.0) == 10.0
    assert ema.update(20.0) == pytest.approx(15.0)
    assert ema.update(20.0, alpha=1.0) == pytest.approx(20.0)
    ema.reset()
    assert ema.get_current() is None


def test_initial_band_is_optimal_plus_default_spread_clamped():
    band = AdaptiveThreshold(INSULIN_TEMP)
    assert band.center == pytest.approx(4.0)
    assert band.spread == pytest.approx(1.5)       # 0.25 * (8 - 2)
    assert band.band() == (pytest.approx(2.0), pytest.approx(8.0))


def test_steady_readings_narrow_band_to_spread_floor():
    band = AdaptiveThreshold(INSULIN_TEMP, alpha=0.1)
    for _ in range(100):
        band.update(5.0)
    assert band.center == pytest.approx(5.0, abs=1e-3)
    assert band.spread == pytest.approx(0.6)       # 0.1 * (8 - 2)
    lower, upper = band.band()
    assert lower == pytest.approx(3.2, abs=1e-3)
    assert upper == pytest.approx(6.8, abs=1e-3)
    assert band.contains(5.5)
    assert not band.contains(7.5)


def test_band_never_leaves_hard_bounds_under_adversarial_input():
    rng = random.Random(7)
    band = AdaptiveThreshold(INSULIN_TEMP, alpha=0.9)
    values = [1e9, -1e9, 1000.0, -273.0, 8.0001, 1.9999]
    for _ in range(500):
        band.update(rng.choice(values) * rng.random())
        lower, upper = band.band()
        assert 2.0 <= lower <= upper <= 8.0
        assert 2.0 <= band.center <= 8.0


def test_nan_is_fatal_in_strict_mode():
    band = AdaptiveThreshold(INSULIN_TEMP, strict=True)
    with pytest.raises(InvariantViolation):
        band.update(float("nan"))


def test_nan_is_repaired_silently_in_production_mode():
    band = AdaptiveThreshold(INSULIN_TEMP, strict=False)
    band.update(float("nan"))
    assert math.isfinite(band.spread)
    lower, upper = band.band()
    assert 2.0 <= lower <= upper <= 8.0


def test_narrow_update_moves_center_without_widening():
    band = AdaptiveThreshold(INSULIN_TEMP, alpha=0.1)
    band.update(8.0, widen=False)
    assert band.spread == pytest.approx(1.5)
    assert band.center == pytest.approx(4.4)

    widened = AdaptiveThreshold(INSULIN_TEMP, alpha=0.1)
    widened.update(8.0)
    assert widened.spread == pytest.approx(1.75)   # 0.1 * 4 + 0.9 * 1.5
