"""
ml_service.py — Anomaly Engine HTTP Service (Flask)
=====================================================

HTTP surface of the engine, consumed by the IoT gateway, the web
dashboard and the integration scripts.

Endpoints:
    GET  /health                           — Service health check
    POST /readings                         — Ingest one reading, return ML analysis
    GET  /readings?batchId=&limit=         — Recent readings of a batch (newest first)
    GET  /ml/statistics                    — Global statistics
    GET  /ml/batch/<batchId>/statistics    — Batch statistics (404 = no data yet)
    GET  /ml/models                        — Configured medicine models
    POST /ml/snapshot                      — Persist engine state to ML_SNAPSHOT_PATH

Run:
    python -m backend.pharma_ml.ml_service
    # Starts on port 4003 by default (configurable via ML_SERVICE_PORT env var)
"""

import os
import logging

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

from . import config
from .engine import AnomalyEngine
from .events import MqttPublisher
from .exceptions import ReadingValidationError
from .replay import load_history, replay_history
from .snapshot import load_snapshot, save_snapshot
from .utils import setup_logging

logger = logging.getLogger("pharma_ml.service")


def build_engine() -> AnomalyEngine:
    """
    Engine wired for production use.

    Attaches the MQTT publisher when MQTT_ENABLED is set and warm-starts
    from the snapshot (ML_SNAPSHOT_PATH) or, failing that, from the
    history export (HISTORY_CSV_PATH).
    """
    engine = AnomalyEngine()

    if config.MQTT_ENABLED:
        engine.emitter.subscribe(MqttPublisher().connect(), name="mqtt")

    if config.SNAPSHOT_PATH and os.path.exists(config.SNAPSHOT_PATH):
        load_snapshot(engine, config.SNAPSHOT_PATH)
    elif config.HISTORY_CSV_PATH:
        replay_history(engine, load_history(config.HISTORY_CSV_PATH))

    return engine


def create_app(engine: AnomalyEngine = None) -> Flask:
    """
    Build the Flask app around an engine.

    Args:
        engine: Engine to serve. A fresh AnomalyEngine when None.
    """
    engine = engine if engine is not None else AnomalyEngine()
    app = Flask(__name__)
    app.config["ENGINE"] = engine

    @app.route("/health", methods=["GET"])
    def health():
        """Health check endpoint."""
        return jsonify({
            "status": "ok",
            "service": config.SERVICE_NAME,
        })

    @app.route("/readings", methods=["POST"])
    def ingest_reading():
        """
        Ingest one reading.

        Expects JSON body:
            { batchId, deviceId, temperature, humidity, timestamp?, medicineType? }

        Returns:
            { ok, data: <enriched reading>, mlAnalysis: {confidence, reasons, prediction} }
        """
        data = request.get_json(force=True, silent=True)
        if data is None:
            return jsonify({"error": "Invalid input",
                            "details": [{"field": "", "message": "No JSON body provided"}]}), 400

        try:
            enriched = engine.ingest(data)
        except ReadingValidationError as e:
            logger.info(f"Rejected reading: {e.errors}")
            return jsonify({"error": "Invalid input", "details": e.errors}), 400

        doc = enriched.to_dict()
        return jsonify({
            "ok": True,
            "data": doc,
            "mlAnalysis": {
                "confidence": doc["confidence"],
                "reasons": doc["mlReasons"],
                "prediction": doc["prediction"],
            },
        })

    @app.route("/readings", methods=["GET"])
    def list_readings():
        batch_id = (request.args.get("batchId") or "").strip()
        if not batch_id:
            return jsonify({"error": "batchId query parameter is required"}), 400
        limit = request.args.get("limit", default=50, type=int)
        limit = max(1, min(engine.store.window(batch_id).capacity, limit))
        items = [r.to_dict() for r in engine.recent_readings(batch_id, limit)]
        return jsonify({"items": items})

    @app.route("/ml/statistics", methods=["GET"])
    def ml_statistics():
        return jsonify({"stats": engine.global_statistics().to_dict()})

    @app.route("/ml/batch/<batch_id>/statistics", methods=["GET"])
    def batch_statistics(batch_id):
        stats = engine.batch_statistics(batch_id)
        if stats is None:
            return jsonify({"error": "Batch not found"}), 404
        return jsonify({"batchId": batch_id, "stats": stats.to_dict()})

    @app.route("/ml/models", methods=["GET"])
    def medicine_models():
        return jsonify({"models": [m.to_dict() for m in engine.registry.models()]})

    @app.route("/ml/snapshot", methods=["POST"])
    def snapshot():
        """Persist adaptive state to ML_SNAPSHOT_PATH."""
        path = config.SNAPSHOT_PATH
        if not path:
            return jsonify({"status": "failed",
                            "message": "ML_SNAPSHOT_PATH is not configured"}), 400
        save_snapshot(engine, path)
        return jsonify({"status": "success", "path": path})

    @app.errorhandler(Exception)
    def handle_error(e):
        if isinstance(e, HTTPException):
            return e
        logger.error(f"Request failed: {e}", exc_info=True)
        return jsonify({"error": "Internal error"}), 500

    return app


if __name__ == "__main__":
    setup_logging()
    port = config.SERVICE_PORT
    logger.info(f"Starting ML service on port {port}")
    create_app(build_engine()).run(host="0.0.0.0", port=port, debug=False)
