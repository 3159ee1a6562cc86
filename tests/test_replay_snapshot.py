# -*- coding: utf-8 -*-
"""History replay from CSV and joblib snapshots."""

import threading

import joblib
import pytest

from backend.pharma_ml.engine import AnomalyEngine
from backend.pharma_ml.replay import load_history, replay_history, main
from backend.pharma_ml.snapshot import export_state, load_snapshot, save_snapshot

from conftest import make_payload

HISTORY_CSV = """batch_id,device_id,temp,humidity,timestamp,medicine_type
BATCH-INSULIN-1,DHT22_001,4.5,31,2024-01-01T00:00:02Z,
BATCH-INSULIN-1,DHT22_001,4.0,30,2024-01-01T00:00:01Z,Insulin
BATCH-INSULIN-1,DHT22_001,warm,30,2024-01-01T00:00:03Z,
,DHT22_001,4.0,30,2024-01-01T00:00:04Z,
BATCH-ASPIRIN-1,DHT22_002,21.0,50,2024-01-01T00:00:05Z,
BATCH-ASPIRIN-1,DHT22_002,inf,50,2024-01-01T00:00:06Z,
"""


@pytest.fixture
def history_file(tmp_path):
    path = tmp_path / "history.csv"
    path.write_text(HISTORY_CSV)
    return str(path)


def test_load_history_cleans_and_sorts(history_file):
    records = load_history(history_file)
    assert len(records) == 3
    assert [r["temperature"] for r in records] == [4.0, 4.5, 21.0]
    assert records[0]["medicineType"] == "Insulin"
    assert "medicineType" not in records[1]
    assert records[0]["batchId"] == "BATCH-INSULIN-1"


def test_load_history_requires_columns(tmp_path):
    path = tmp_path / "bad.csv"
    path.write_text("batchId,temperature\nB-1,20\n")
    with pytest.raises(ValueError):
        load_history(str(path))


def test_replay_warms_up_engine(history_file, engine):
    assert replay_history(engine, load_history(history_file)) == 3
    stats = engine.global_statistics()
    assert stats.total_batches == 2
    assert stats.total_readings == 3
    assert engine.store.get("BATCH-INSULIN-1").reading_count == 2


def test_replay_skips_invalid_records(engine):
    records = [make_payload(), {"batchId": "B-2"}, make_payload(seconds=1)]
    assert replay_history(engine, records) == 2


def test_cli_reports_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.csv")]) == 1
    assert main([]) == 2


def test_snapshot_round_trip_restores_adaptive_state(tmp_path, registry):
    path = str(tmp_path / "snap" / "engine.joblib")
    source = AnomalyEngine(registry=registry)
    restored = AnomalyEngine(registry=registry)
    try:
        for i in range(15):
            source.ingest(make_payload(temperature=20.0 + (i % 3) * 0.3, seconds=i))
        save_snapshot(source, path)
        load_snapshot(restored, path)

        assert restored.batch_statistics("BATCH-ASPIRIN-001") == \
            source.batch_statistics("BATCH-ASPIRIN-001")
        assert restored.store.get("BATCH-ASPIRIN-001").reading_count == 15

        nxt = make_payload(temperature=23.5, seconds=100)
        assert restored.ingest(nxt).to_dict() == source.ingest(nxt).to_dict()
    finally:
        source.close()
        restored.close()


def test_unsupported_snapshot_is_rejected(tmp_path, engine):
    path = str(tmp_path / "other.joblib")
    joblib.dump({"version": 99}, path)
    with pytest.raises(ValueError):
        load_snapshot(engine, path)


def test_snapshot_taken_during_ingestion_is_consistent(tmp_path, registry):
    source = AnomalyEngine(registry=registry)
    batches = [f"BATCH-ASPIRIN-{n}" for n in range(4)]
    stop = threading.Event()

    def ingest():
        i = 0
        while not stop.is_set() and i < 5000:
            source.ingest(make_payload(batch_id=batches[i % len(batches)],
                                       temperature=20.0 + (i % 5) * 0.2, seconds=i))
            i += 1

    worker = threading.Thread(target=ingest)
    worker.start()
    try:
        states = [export_state(source) for _ in range(50)]
        path = str(tmp_path / "live.joblib")
        save_snapshot(source, path)
    finally:
        stop.set()
        worker.join()

    for state in states:
        profiles, statistics = state["store"]["profiles"], state["statistics"]
        assert set(profiles) == set(statistics)
        for batch_id, profile in profiles.items():
            assert profile["reading_count"] == statistics[batch_id]["total"]
            assert len(state["store"]["windows"][batch_id]) == min(profile["reading_count"], 20)

    restored = AnomalyEngine(registry=registry)
    try:
        load_snapshot(restored, path)
        for batch_id in restored.store.batch_ids():
            assert restored.store.get(batch_id).reading_count == \
                restored.batch_statistics(batch_id).total_readings
    finally:
        restored.close()
        source.close()
