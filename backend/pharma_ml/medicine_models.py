"""
medicine_models.py — Medicine Tolerance Model Registry
========================================================

Each medicine type has hard storage bounds for temperature and humidity
plus an optimal point.  Every batch profile is anchored to one of these
models; the adaptive thresholds of a batch may never leave its hard bounds.

Resolution order:
    1. the medicine type: exact name match (case-insensitive), then a
       fuzzy match on a known model name contained in it
    2. the batch id, the same way, e.g. "BATCH-INSULIN-0042" → Insulin
    3. the conservative default model

Falling back to the default is never an error, only a loss of precision,
so it is logged as a warning (once per medicine type) and resolution
continues.
"""

import json
import logging
import threading

from . import config
from .data_models import MedicineModel, ToleranceRange

logger = logging.getLogger("pharma_ml.medicine_models")

BUILTIN_MODELS = {
    "Aspirin": MedicineModel(
        name="Aspirin",
        temperature_range=ToleranceRange(min=15, max=25, optimal=20),
        humidity_range=ToleranceRange(min=40, max=60, optimal=50),
    ),
    "Amoxicillin": MedicineModel(
        name="Amoxicillin",
        temperature_range=ToleranceRange(min=2, max=8, optimal=5),
        humidity_range=ToleranceRange(min=30, max=50, optimal=40),
    ),
    "Insulin": MedicineModel(
        name="Insulin",
        temperature_range=ToleranceRange(min=2, max=8, optimal=4),
        humidity_range=ToleranceRange(min=20, max=40, optimal=30),
    ),
    "Lisinopril": MedicineModel(
        name="Lisinopril",
        temperature_range=ToleranceRange(min=20, max=25, optimal=22),
        humidity_range=ToleranceRange(min=45, max=65, optimal=55),
    ),
    config.DEFAULT_MODEL_KEY: MedicineModel(
        name="Generic Medicine",
        temperature_range=ToleranceRange(min=15, max=25, optimal=20),
        humidity_range=ToleranceRange(min=40, max=60, optimal=50),
    ),
}


def load_models_file(path: str) -> dict:
    """
    Load medicine models from a JSON file.

    The file holds either a list of model objects or a mapping of
    key → model object, each shaped like MedicineModel.to_dict().

    Returns:
        Dict of key → MedicineModel.

    Raises:
        ValueError: If any entry is malformed or violates min < optimal < max.
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)

    items = raw.items() if isinstance(raw, dict) else ((m.get("name"), m) for m in raw)
    models = {}
    for key, entry in items:
        try:
            model = MedicineModel.from_dict(entry)
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid medicine model '{key}' in {path}: {e}") from e
        models[str(key or model.name)] = model

    logger.info(f"Loaded {len(models)} medicine models from {path}")
    return models


class MedicineModelRegistry:
    """
    Read-only lookup of medicine tolerance models.

    Attributes:
        default (MedicineModel): Model returned when nothing matches.
    """

    def __init__(self, models: dict = None, models_file: str = None):
        """
        Args:
            models: key → MedicineModel.  Defaults to BUILTIN_MODELS.
            models_file: Optional JSON file merged over the models.
                Defaults to config.MEDICINE_MODELS_FILE.
        """
        self._models = dict(models if models is not None else BUILTIN_MODELS)
        models_file = models_file if models_file is not None else config.MEDICINE_MODELS_FILE
        if models_file:
            self._models.update(load_models_file(models_file))

        self.default = self._models.get(config.DEFAULT_MODEL_KEY,
                                        BUILTIN_MODELS[config.DEFAULT_MODEL_KEY])
        self._by_lower = {
            key.lower(): model for key, model in self._models.items()
            if key != config.DEFAULT_MODEL_KEY
        }
        # Longest names first so "Insulin Glargine" wins over "Insulin".
        self._fuzzy_order = sorted(self._by_lower, key=len, reverse=True)
        self._warned = set()
        self._warned_lock = threading.Lock()

    def _match(self, key: str):
        key = (key or "").strip().lower()
        if not key:
            return None
        model = self._by_lower.get(key)
        if model is not None:
            return model
        for name in self._fuzzy_order:
            if name in key:
                return self._by_lower[name]
        return None

    def resolve(self, medicine_type: str, batch_id: str = None) -> MedicineModel:
        """
        Resolve a medicine type to a tolerance model, falling back to the
        batch id (e.g. "BATCH-INSULIN-7" with an unknown brand name).

        Never raises; when neither matches the default model is returned.
        """
        model = self._match(medicine_type) or self._match(batch_id)
        if model is not None:
            return model

        # One warning per medicine type; batch ids are not tracked.
        warn_key = (medicine_type or "").strip().lower()
        with self._warned_lock:
            first_time = (warn_key not in self._warned
                          and len(self._warned) < config.MAX_WARNED_MEDICINE_TYPES)
            if first_time:
                self._warned.add(warn_key)
        message = (f"No medicine model for type '{medicine_type}' (batch {batch_id}), "
                   f"using '{self.default.name}' (reduced precision)")
        if first_time:
            logger.warning(message)
        else:
            logger.debug(message)
        return self.default

    def get(self, name: str):
        """Exact (case-insensitive) lookup; None when absent."""
        return self._by_lower.get((name or "").lower())

    def names(self) -> list:
        """Configured model keys, the default included."""
        return list(self._models.keys())

    def models(self) -> list:
        return list(self._models.values())
