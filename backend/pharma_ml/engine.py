"""
engine.py — Real-Time Ingestion Engine
========================================

Accepts readings one at a time and runs the full pipeline:
    validate -> resolve medicine -> profile + window -> classify
             -> confidence -> forecast -> adapt profile -> statistics
             -> publish to subscribers

Everything between "profile" and "statistics" runs under the batch's
lock; publishing happens after the lock is released so a slow
subscriber never holds up the next reading of the same batch.
"""

import logging
from dataclasses import replace

from .classifier import AnomalyClassifier
from .confidence import ConfidenceScorer
from .data_models import EnrichedReading, HIGH
from .events import EventEmitter
from .forecaster import Forecaster
from .medicine_models import MedicineModelRegistry
from .profile_store import BatchProfileStore
from .schemas import parse_reading
from .statistics import StatisticsAggregator

logger = logging.getLogger("pharma_ml.engine")


class AnomalyEngine:
    """
    End-to-end anomaly engine for pharmaceutical batch readings.

    All collaborators are injectable; by default each engine gets its
    own fresh registry, store, aggregator and emitter.

    Usage:
        engine = AnomalyEngine()
        enriched = engine.ingest({"batchId": "B-1", "deviceId": "DHT22_001",
                                  "temperature": 21.5, "humidity": 48.0})
        engine.close()
    """

    def __init__(self, registry: MedicineModelRegistry = None,
                 store: BatchProfileStore = None,
                 classifier: AnomalyClassifier = None,
                 scorer: ConfidenceScorer = None,
                 forecaster: Forecaster = None,
                 aggregator: StatisticsAggregator = None,
                 emitter: EventEmitter = None):
        self.registry = registry if registry is not None else MedicineModelRegistry()
        self.store = store if store is not None else BatchProfileStore()
        self.classifier = classifier if classifier is not None else AnomalyClassifier()
        self.scorer = scorer if scorer is not None else ConfidenceScorer()
        self.forecaster = forecaster if forecaster is not None else Forecaster()
        if aggregator is None:
            aggregator = StatisticsAggregator(self.registry, warmup=self.classifier.warmup)
        self.aggregator = aggregator
        self.emitter = emitter if emitter is not None else EventEmitter()

    def resolve_model(self, reading):
        """Medicine model of the batch, else resolved from the reading's type and batch id."""
        profile = self.store.get(reading.batch_id)
        if profile is not None:
            return profile.medicine_model
        return self.registry.resolve(reading.medicine_type, reading.batch_id)

    def ingest(self, payload) -> EnrichedReading:
        """
        Process a single reading through the pipeline.

        Args:
            payload: Raw dict (camelCase wire shape) or a Reading.

        Returns:
            EnrichedReading with verdict, confidence and prediction.

        Raises:
            ReadingValidationError: If the payload is malformed.
        """
        reading = parse_reading(payload)
        batch_id = reading.batch_id
        medicine_model = self.resolve_model(reading)

        with self.store.lock(batch_id):
            profile = self.store.get_or_create(batch_id, medicine_model)
            medicine_model = profile.medicine_model
            window = self.store.append(batch_id, reading)

            verdict = self.classifier.classify(reading, profile, window, medicine_model)
            confidence = self.scorer.score(verdict, reading, profile)
            verdict = replace(verdict, confidence=confidence)
            prediction = self.forecaster.predict(window, profile, verdict)

            self.store.update(batch_id, reading, anomalous=verdict.is_anomaly)
            self.aggregator.record(batch_id, reading, verdict, medicine_model)

            enriched = EnrichedReading(
                reading=reading,
                medicine_model=medicine_model.name,
                verdict=verdict,
                prediction=prediction,
            )

        self._log_verdict(enriched)
        self.emitter.publish_reading(enriched)
        return enriched

    def _log_verdict(self, enriched) -> None:
        r, v, p = enriched.reading, enriched.verdict, enriched.prediction
        log_msg = (f"Batch {r.batch_id} [{enriched.medicine_model}] "
                   f"T={r.temperature} H={r.humidity} pattern={v.pattern} "
                   f"severity={v.severity} confidence={v.confidence:.2f} "
                   f"risk={p.risk_level:.2f}")
        if v.severity == HIGH:
            logger.warning(log_msg)
        elif v.is_anomaly:
            logger.info(log_msg)
        else:
            logger.debug(log_msg)

    # ── Queries ───────────────────────────────────────────────────

    def global_statistics(self):
        return self.aggregator.global_stats()

    def batch_statistics(self, batch_id: str):
        """BatchStatistics, or None when the batch has no readings yet."""
        return self.aggregator.batch_stats(batch_id)

    def recent_readings(self, batch_id: str, limit: int = None) -> list:
        """The batch's rolling window, newest first."""
        if batch_id not in self.store:
            return []
        with self.store.lock(batch_id):
            readings = self.store.window(batch_id).readings()
        readings.reverse()
        return readings[:limit] if limit is not None else readings

    def close(self) -> None:
        """Stop subscriber workers."""
        self.emitter.close()
