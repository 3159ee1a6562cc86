"""
backend.pharma_ml — Environmental Anomaly Engine for PharmaTrust
=================================================================

This package implements the real-time anomaly detection engine for
pharmaceutical batch monitoring.  IoT devices report temperature and
humidity for the batch they travel with; every reading is judged against
the tolerance model of that batch's medicine and against the batch's own
adaptive history.

Architecture:
    DHT22 Sensors → MQTT / HTTP → IoT Service → Python ML Engine
                                                     ↓
                                         Per-reading pipeline:
                                           1. Payload validation
                                           2. Medicine model resolution
                                           3. Batch profile + rolling window
                                           4. Threshold / spike / drift strategies
                                           5. Confidence scoring
                                           6. One-step forecast + risk level
                                           7. Statistics rollup
                                                     ↓
                                         Enriched reading → subscribers (MQTT)

Modules:
    config          — Tunables and service settings
    data_models     — Reading, verdict, prediction and statistics records
    schemas         — Ingestion payload validation (pydantic)
    medicine_models — Medicine tolerance model registry
    ema             — EMA smoother and adaptive threshold band
    windowing       — Fixed-capacity rolling windows per batch
    profile_store   — Per-batch adaptive profiles and locks
    classifier      — Multi-strategy anomaly classifier
    confidence      — Confidence scorer
    forecaster      — Next-step forecast and risk level
    statistics      — Per-batch and global rollups
    events          — Fan-out event emitter and MQTT publisher
    engine          — End-to-end ingestion engine
    replay          — Warm start from historical CSV exports
    snapshot        — Engine state persistence
    ml_service      — Flask HTTP service
    utils           — Logging setup and numeric helpers
"""

__version__ = "1.0.0"
__author__ = "PharmaTrust IoT Team"
