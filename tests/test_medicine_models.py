# -*- coding: utf-8 -*-
"""Medicine model registry: resolution, fallback and model files."""

import json
import logging

import pytest

from backend.pharma_ml import config
from backend.pharma_ml.data_models import MedicineModel, ToleranceRange
from backend.pharma_ml.medicine_models import MedicineModelRegistry, load_models_file


def test_exact_match_is_case_insensitive(registry):
    assert registry.resolve("insulin").name == "Insulin"
    assert registry.resolve("  ASPIRIN ").name == "Aspirin"


def test_fuzzy_match_on_batch_id(registry):
    assert registry.resolve("BATCH-LISINOPRIL-2024-07").name == "Lisinopril"
    assert registry.resolve("amoxicillin 500mg capsules").name == "Amoxicillin"


def test_unknown_falls_back_to_default_and_warns_once(registry, caplog):
    with caplog.at_level(logging.WARNING, logger="pharma_ml.medicine_models"):
        first = registry.resolve("Paracetamol")
        second = registry.resolve("Paracetamol")
    assert first is second is registry.default
    assert first.name == "Generic Medicine"
    assert len([r for r in caplog.records if "reduced precision" in r.message]) == 1


def test_empty_key_resolves_to_default(registry):
    assert registry.resolve(None) is registry.default
    assert registry.resolve("") is registry.default


def test_names_include_builtin_models(registry):
    names = registry.names()
    for name in ("Aspirin", "Amoxicillin", "Insulin", "Lisinopril", "default"):
        assert name in names


def test_tolerance_range_requires_min_optimal_max_order():
    with pytest.raises(ValueError):
        ToleranceRange(min=8, max=2, optimal=5)
    with pytest.raises(ValueError):
        ToleranceRange(min=2, max=8, optimal=8)


def test_models_file_adds_models(tmp_path):
    path = tmp_path / "models.json"
    path.write_text(json.dumps([{
        "name": "Vaccine",
        "temperatureRange": {"min": 2, "max": 8, "optimal": 5},
        "humidityRange": {"min": 20, "max": 60, "optimal": 40},
    }]))
    registry = MedicineModelRegistry(models_file=str(path))
    model = registry.resolve("vaccine-lot-17")
    assert isinstance(model, MedicineModel)
    assert model.name == "Vaccine"
    assert model.temperature_range.optimal == 5
    assert registry.resolve("Aspirin").name == "Aspirin"


def test_models_file_rejects_invalid_ranges(tmp_path):
    path = tmp_path / "models.json"
    path.write_text(json.dumps({"broken": {
        "name": "Broken",
        "temperatureRange": {"min": 10, "max": 5, "optimal": 7},
        "humidityRange": {"min": 20, "max": 60, "optimal": 40},
    }}))
    with pytest.raises(ValueError, match="broken"):
        load_models_file(str(path))


def test_unknown_type_falls_back_to_batch_id(registry):
    assert registry.resolve("Humulin", "BATCH-INSULIN-7").name == "Insulin"
    assert registry.resolve("Aspirin", "BATCH-INSULIN-7").name == "Aspirin"
    assert registry.resolve(None, "BATCH-LISINOPRIL-3").name == "Lisinopril"


def test_generic_batches_without_type_warn_once(registry, caplog):
    with caplog.at_level(logging.WARNING, logger="pharma_ml.medicine_models"):
        for n in range(50):
            assert registry.resolve(None, f"LOT-{n}") is registry.default
    assert len([r for r in caplog.records if "reduced precision" in r.message]) == 1


def test_warned_types_are_bounded(registry, caplog, monkeypatch):
    monkeypatch.setattr(config, "MAX_WARNED_MEDICINE_TYPES", 2)
    with caplog.at_level(logging.WARNING, logger="pharma_ml.medicine_models"):
        for n in range(10):
            registry.resolve(f"Unlisted-{n}")
    assert len(registry._warned) == 2
    assert len([r for r in caplog.records if "reduced precision" in r.message]) == 2
