"""
snapshot.py — Engine State Persistence
========================================

Saves and restores the adaptive state of an engine (batch profiles,
rolling windows, statistics counters) with joblib, so a service restart
does not throw every batch back to its medicine defaults.

Locks and subscriber threads are not part of a snapshot; a restored
engine recreates them lazily.
"""

import os
import logging

import joblib

logger = logging.getLogger("pharma_ml.snapshot")

SNAPSHOT_VERSION = 1


def export_state(engine) -> dict:
    """
    Consistent copy of the engine's adaptive state.

    A batch's profile, window and counters are copied together under
    the batch lock, the same lock ingest() holds while updating all
    three, so a reading is either in every part of the copy or in none.
    """
    store, aggregator = engine.store, engine.aggregator
    profiles, windows, statistics = {}, {}, {}
    for batch_id in store.batch_ids():
        with store.lock(batch_id):
            profiles[batch_id], windows[batch_id] = store.export_batch(batch_id)
            counters = aggregator.export_batch(batch_id)
        if counters is not None:
            statistics[batch_id] = counters
    return {
        "version": SNAPSHOT_VERSION,
        "store": {"profiles": profiles, "windows": windows},
        "statistics": statistics,
    }


def save_snapshot(engine, path: str) -> None:
    """
    Serialize the engine's adaptive state to disk.

    Args:
        engine: AnomalyEngine to snapshot.
        path: Output file path (directories are created as needed).
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    state = export_state(engine)
    joblib.dump(state, path)
    logger.info(f"Snapshot of {len(state['store']['profiles'])} batches saved to {path}")


def load_snapshot(engine, path: str):
    """
    Restore adaptive state from disk into an engine.

    Args:
        engine: AnomalyEngine to restore into (normally freshly built).
        path: Snapshot written by save_snapshot().

    Returns:
        The engine, for chaining.

    Raises:
        ValueError: If the file is not a snapshot of a supported version.
    """
    state = joblib.load(path)
    if not isinstance(state, dict) or state.get("version") != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot format in {path}")
    engine.store.restore_state(state["store"])
    engine.aggregator.restore_state(state["statistics"])
    logger.info(f"Snapshot loaded from {path}")
    return engine
