"""
replay.py — Warm Start from Historical Readings
=================================================

Reads an export of past environmental readings (CSV) and replays it
through an engine so batch profiles, windows and statistics start from
real history instead of medicine defaults.

This script can be run standalone:
    python -m backend.pharma_ml.replay readings.csv

Or called programmatically:
    from backend.pharma_ml.replay import load_history, replay_history
    replay_history(engine, load_history("readings.csv"))

Replay flow:
    1. Load the CSV (camelCase or snake_case headers)
    2. Drop rows with missing ids or non-numeric / non-finite values
    3. Sort by timestamp so profiles adapt in arrival order
    4. Ingest every row through the engine
"""

import os
import sys
import json
import logging

import numpy as np
import pandas as pd

from .engine import AnomalyEngine
from .exceptions import ReadingValidationError
from .utils import setup_logging

logger = logging.getLogger("pharma_ml.replay")

# Accepted header spellings → canonical wire field
COLUMN_ALIASES = {
    "batch_id": "batchId",
    "batchid": "batchId",
    "device_id": "deviceId",
    "deviceid": "deviceId",
    "medicine_type": "medicineType",
    "medicinetype": "medicineType",
    "temp": "temperature",
    "hum": "humidity",
    "time": "timestamp",
}

REQUIRED_COLUMNS = ["batchId", "deviceId", "temperature", "humidity"]


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    renamed = {}
    for col in df.columns:
        key = str(col).strip()
        renamed[col] = COLUMN_ALIASES.get(key.lower(), key)
    return df.rename(columns=renamed)


def load_history(path: str) -> list:
    """
    Load and clean historical readings from a CSV file.

    Args:
        path: CSV file with at least batchId, deviceId, temperature,
            humidity columns; timestamp and medicineType are optional.

    Returns:
        List of reading dicts (wire shape), oldest first.

    Raises:
        ValueError: If a required column is missing.
    """
    df = _normalize_columns(pd.read_csv(path))

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"History file {path} lacks columns: {missing}")

    before = len(df)
    for col in ("temperature", "humidity"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df = df.replace([np.inf, -np.inf], np.nan)
    df = df.dropna(subset=REQUIRED_COLUMNS)
    df["batchId"] = df["batchId"].astype(str).str.strip()
    df["deviceId"] = df["deviceId"].astype(str).str.strip()
    df = df[(df["batchId"] != "") & (df["deviceId"] != "")]

    if "timestamp" in df.columns:
        df["timestamp"] = pd.to_datetime(df["timestamp"], errors="coerce", utc=True)
        df = df.dropna(subset=["timestamp"])
        df = df.sort_values("timestamp", kind="stable")
        df["timestamp"] = df["timestamp"].map(lambda ts: ts.isoformat())

    dropped = before - len(df)
    if dropped > 0:
        logger.info(f"Removed {dropped} unusable rows "
                    f"({dropped / before * 100:.1f}% of history)")

    columns = [c for c in REQUIRED_COLUMNS + ["timestamp", "medicineType"] if c in df.columns]
    records = df[columns].to_dict("records")
    for record in records:
        if "medicineType" in record and pd.isna(record["medicineType"]):
            del record["medicineType"]
    logger.info(f"Loaded {len(records)} historical readings from {path}")
    return records


def replay_history(engine: AnomalyEngine, records: list) -> int:
    """
    Ingest historical records in order.

    Records that fail validation are skipped with a warning.

    Returns:
        Number of readings ingested.
    """
    ingested = 0
    for i, record in enumerate(records):
        try:
            engine.ingest(record)
            ingested += 1
        except ReadingValidationError as e:
            logger.warning(f"History row {i} rejected: {e.errors}")
    logger.info(f"Replayed {ingested}/{len(records)} historical readings")
    return ingested


def main(argv: list = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("usage: python -m backend.pharma_ml.replay <history.csv>", file=sys.stderr)
        return 2

    setup_logging()
    path = argv[0]
    if not os.path.exists(path):
        logger.error(f"History file not found: {path}")
        return 1

    engine = AnomalyEngine()
    try:
        replay_history(engine, load_history(path))
        print(json.dumps(engine.global_statistics().to_dict(), indent=2))
    finally:
        engine.close()
    return 0


# ── CLI entry point ──────────────────────────────────────────────
if __name__ == "__main__":
    sys.exit(main())
