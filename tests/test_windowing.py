# -*- coding: utf-8 -*-
"""Rolling window tracker."""

import pytest

from backend.pharma_ml.windowing import RollingWindow, RollingWindowTracker

from conftest import make_reading


def test_window_evicts_oldest_on_overflow():
    window = RollingWindow(capacity=3)
    for i in range(5):
        window.append(make_reading(float(i), 50.0, seconds=i))
    assert len(window) == 3
    assert list(window.values("temperature")) == [2.0, 3.0, 4.0]
    assert window.latest().temperature == 4.0


def test_insertion_order_kept_for_late_arrivals():
    window = RollingWindow(capacity=5)
    window.append(make_reading(1.0, 50.0, seconds=10))
    window.append(make_reading(2.0, 50.0, seconds=5))
    assert [r.temperature for r in window.readings()] == [1.0, 2.0]


def test_values_can_exclude_latest_and_limit():
    window = RollingWindow(capacity=10)
    for t in (1.0, 2.0, 3.0, 4.0, 5.0):
        window.append(make_reading(t, 50.0))
    assert list(window.values("temperature", last=2, exclude_latest=True)) == [3.0, 4.0]
    assert window.mean("temperature", exclude_latest=True) == pytest.approx(2.5)


def test_slope_of_linear_series():
    window = RollingWindow(capacity=20)
    for i in range(10):
        window.append(make_reading(4.0 + 0.5 * i, 30.0 - 2.0 * i))
    assert window.slope("temperature") == pytest.approx(0.5)
    assert window.slope("humidity") == pytest.approx(-2.0)


def test_slope_and_std_of_short_windows_are_zero():
    window = RollingWindow(capacity=20)
    assert window.slope("temperature") == 0.0
    window.append(make_reading(5.0, 30.0))
    assert window.slope("temperature") == 0.0
    assert window.std("temperature") == 0.0


def test_tracker_keeps_batches_apart():
    tracker = RollingWindowTracker(capacity=4)
    tracker.append("A", make_reading(1.0, 50.0, batch_id="A"))
    tracker.append("B", make_reading(9.0, 50.0, batch_id="B"))
    tracker.append("A", make_reading(2.0, 50.0, batch_id="A"))
    assert list(tracker.window("A").values("temperature")) == [1.0, 2.0]
    assert list(tracker.window("B").values("temperature")) == [9.0]
    assert len(tracker.window("unknown")) == 0
    assert "unknown" not in tracker
