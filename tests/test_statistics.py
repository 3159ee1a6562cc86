# -*- coding: utf-8 -*-
"""Incremental batch and global statistics."""

import pytest

from backend.pharma_ml.data_models import AnomalyVerdict, Reasons, HIGH
from backend.pharma_ml.medicine_models import BUILTIN_MODELS
from backend.pharma_ml.statistics import StatisticsAggregator

from conftest import make_reading

ASPIRIN = BUILTIN_MODELS["Aspirin"]


def verdict(anomalous, confidence):
    return AnomalyVerdict(is_anomaly=anomalous, severity=HIGH if anomalous else None,
                          pattern="none", reasons=Reasons(), confidence=confidence)


def test_unknown_batch_has_no_statistics():
    assert StatisticsAggregator().batch_stats("nope") is None


def test_batch_statistics_are_exact(registry):
    agg = StatisticsAggregator(registry)
    agg.record("B-1", make_reading(20.0, 50.0), verdict(False, 0.8), ASPIRIN)
    agg.record("B-1", make_reading(22.0, 40.0), verdict(False, 0.6), ASPIRIN)
    agg.record("B-1", make_reading(30.0, 60.0), verdict(True, 1.0), ASPIRIN)

    stats = agg.batch_stats("B-1")
    assert stats.total_readings == 3
    assert stats.anomaly_count == 1
    assert stats.anomaly_rate == 1 / 3
    assert stats.average_temperature == pytest.approx(24.0)
    assert stats.average_humidity == pytest.approx(50.0)
    assert stats.temperature_range == (20.0, 30.0)
    assert stats.humidity_range == (40.0, 60.0)
    assert stats.average_confidence == pytest.approx(0.8)
    assert stats.medicine_model is ASPIRIN

    doc = stats.to_dict()
    assert doc["temperatureRange"] == {"min": 20.0, "max": 30.0}
    assert doc["medicineModel"]["name"] == "Aspirin"


def test_global_statistics_sum_batches(registry):
    agg = StatisticsAggregator(registry, warmup=2)
    agg.record("A", make_reading(20.0, 50.0, batch_id="A"), verdict(True, 0.5), ASPIRIN)
    agg.record("A", make_reading(20.0, 50.0, batch_id="A"), verdict(False, 0.5), ASPIRIN)
    agg.record("B", make_reading(20.0, 50.0, batch_id="B"), verdict(False, 1.0), ASPIRIN)

    stats = agg.global_stats()
    assert stats.total_batches == 2
    assert stats.total_readings == 3
    assert stats.total_anomalies == 1
    assert stats.adaptive_thresholds == 1
    assert stats.average_confidence == pytest.approx(2.0 / 3)
    assert "Insulin" in stats.medicine_models
    assert stats.to_dict()["anomalyRate"] == 1 / 3


def test_empty_global_statistics():
    stats = StatisticsAggregator().global_stats()
    assert stats.total_readings == 0
    assert stats.anomaly_rate == 0.0
    assert stats.average_confidence == 0.0


def test_export_and_restore_round_trip(registry):
    agg = StatisticsAggregator(registry)
    agg.record("B-1", make_reading(21.0, 45.0), verdict(True, 0.9), ASPIRIN)

    restored = StatisticsAggregator(registry)
    restored.restore_state({"B-1": agg.export_batch("B-1")})
    assert restored.batch_stats("B-1") == agg.batch_stats("B-1")
