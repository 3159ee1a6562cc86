# -*- coding: utf-8 -*-
"""Shared fixtures: fresh engines, registries and payload builders."""

from datetime import datetime, timedelta, timezone

import pytest

from backend.pharma_ml.engine import AnomalyEngine
from backend.pharma_ml.medicine_models import MedicineModelRegistry
from backend.pharma_ml.ml_service import create_app
from backend.pharma_ml.data_models import Reading

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_payload(batch_id="BATCH-ASPIRIN-001", temperature=20.0, humidity=50.0,
                 device_id="DHT22_001", seconds=0, **extra):
    payload = {
        "batchId": batch_id,
        "deviceId": device_id,
        "temperature": temperature,
        "humidity": humidity,
        "timestamp": (BASE_TIME + timedelta(seconds=seconds)).isoformat(),
    }
    payload.update(extra)
    return payload


def make_reading(temperature, humidity, batch_id="B-1", seconds=0):
    return Reading(
        batch_id=batch_id,
        device_id="DHT22_001",
        temperature=float(temperature),
        humidity=float(humidity),
        timestamp=BASE_TIME + timedelta(seconds=seconds),
    )


@pytest.fixture
def registry():
    return MedicineModelRegistry()


@pytest.fixture
def engine(registry):
    eng = AnomalyEngine(registry=registry)
    yield eng
    eng.close()


@pytest.fixture
def client(engine):
    app = create_app(engine)
    app.config["TESTING"] = True
    return app.test_client()
