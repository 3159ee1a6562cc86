"""
config.py — Engine Configuration Constants
===========================================

Centralizes the tunables and service settings used by the anomaly engine.
Tuning these values adjusts how quickly batch profiles adapt, how
sensitive the spike and drift strategies are, and how confident the
engine claims to be.

Readings come from DHT22 sensors travelling with each batch:
- temperature in °C
- relative humidity in %
- one reading every few seconds per device, many devices per batch
"""

import os

# ═══════════════════════════════════════════════════════════════════
# RUNTIME MODE
# ═══════════════════════════════════════════════════════════════════

# "development" turns internal invariant violations into exceptions;
# anything else clamps them silently.
ENVIRONMENT = os.environ.get("PHARMA_ML_ENV", "production").lower()
STRICT_INVARIANTS = ENVIRONMENT == "development"

# ═══════════════════════════════════════════════════════════════════
# ROLLING WINDOW
# ═══════════════════════════════════════════════════════════════════

# Number of recent readings kept per batch.  The oldest is evicted
# on overflow.
WINDOW_CAPACITY = 20

# ═══════════════════════════════════════════════════════════════════
# ADAPTIVE THRESHOLDS (per batch)
# ═══════════════════════════════════════════════════════════════════

# EMA smoothing factor for the adaptive center and spread.
#   Higher alpha → profile follows recent readings faster.
#   Lower  alpha → steadier band, slower to adapt.
EMA_ALPHA = 0.1

# How strongly the profile resists adapting toward readings that were
# themselves classified anomalous.  Effective alpha for such readings is
# EMA_ALPHA * (1 - DRIFT_RESISTANCE).  0.0 = plain EMA, 1.0 = frozen.
DRIFT_RESISTANCE = 0.8

# Initial spread as a fraction of the medicine's hard range (max - min).
DEFAULT_SPREAD_FRACTION = 0.25

# Spread never shrinks below this fraction of the hard range, so a batch
# with perfectly steady readings does not flag every decimal of noise.
MIN_SPREAD_FRACTION = 0.1

# Adaptive band half-width in units of spread.
BAND_WIDTH = 3.0

# Adaptive band violations are only reported once a batch has at least
# this many readings.  Before that only the hard medicine bounds apply.
ADAPTIVE_WARMUP_READINGS = 10

# ═══════════════════════════════════════════════════════════════════
# SUDDEN SPIKE DETECTION
# ═══════════════════════════════════════════════════════════════════

SPIKE_LOOKBACK = 5
SPIKE_MIN_HISTORY = 3
SPIKE_SIGMA = 3.0
SPIKE_HIGH_SIGMA = 6.0

# Floor for the rolling standard deviation, per dimension.  A perfectly
# flat history would otherwise turn any 0.1 °C wobble into a spike.
SPIKE_MIN_STD = {
    "temperature": 0.5,
    "humidity": 2.0,
}

# ═══════════════════════════════════════════════════════════════════
# GRADUAL DRIFT DETECTION
# ═══════════════════════════════════════════════════════════════════

DRIFT_MIN_POINTS = 5

# Steps (readings) ahead the trend is extrapolated.
DRIFT_HORIZON = 5

# Slopes smaller than this (units per reading) are treated as noise.
DRIFT_MIN_SLOPE = {
    "temperature": 0.1,
    "humidity": 0.5,
}

# ═══════════════════════════════════════════════════════════════════
# CONFIDENCE SCORING
# ═══════════════════════════════════════════════════════════════════

# Base confidence by number of agreeing strategies (0..3).
BASE_CONFIDENCE = (0.3, 0.55, 0.75, 0.9)

DEVIATION_WEIGHT = 0.2
DEVIATION_Z_CAP = 6.0

HISTORY_WEIGHT = 0.1
HISTORY_CAP = 50

# ═══════════════════════════════════════════════════════════════════
# FORECASTING
# ═══════════════════════════════════════════════════════════════════

SEVERITY_RISK = {
    None: 0.0,
    "low": 0.4,
    "medium": 0.7,
    "high": 1.0,
}

# Plausible physical range of a DHT22 reading; forecasts are clipped to it.
PHYSICAL_BOUNDS = {
    "temperature": (-40.0, 80.0),
    "humidity": (0.0, 100.0),
}

# ═══════════════════════════════════════════════════════════════════
# MEDICINE MODELS
# ═══════════════════════════════════════════════════════════════════

# Optional JSON file with extra or overriding medicine tolerance models.
MEDICINE_MODELS_FILE = os.environ.get("MEDICINE_MODELS_FILE")

DEFAULT_MODEL_KEY = "default"

# Distinct unknown medicine types warned about at WARNING; later ones log at DEBUG.
MAX_WARNED_MEDICINE_TYPES = 256

# ═══════════════════════════════════════════════════════════════════
# EVENT FAN-OUT
# ═══════════════════════════════════════════════════════════════════

# Per-subscriber queue bound.  Messages beyond it are dropped.
SUBSCRIBER_QUEUE_SIZE = 1000

MQTT_ENABLED = os.environ.get("MQTT_ENABLED", "false").lower() in ("1", "true", "yes")
MQTT_BROKER_HOST = os.environ.get("MQTT_BROKER_HOST", "localhost")
MQTT_BROKER_PORT = int(os.environ.get("MQTT_BROKER_PORT", "1883"))
MQTT_CLIENT_ID = os.environ.get("MQTT_CLIENT_ID", "pharmatrust-ml-engine")
MQTT_READING_TOPIC = "pharmatrust/iot/reading"
MQTT_ANOMALY_TOPIC = "pharmatrust/iot/anomaly"

# ═══════════════════════════════════════════════════════════════════
# SERVICE
# ═══════════════════════════════════════════════════════════════════

SERVICE_NAME = "pharma-ml"
SERVICE_PORT = int(os.environ.get("ML_SERVICE_PORT", "4003"))

# CSV export of past readings replayed at service start.
HISTORY_CSV_PATH = os.environ.get("HISTORY_CSV_PATH")

# Engine state snapshot (joblib).  Loaded at start when present, written
# on POST /ml/snapshot.
SNAPSHOT_PATH = os.environ.get("ML_SNAPSHOT_PATH")

# ═══════════════════════════════════════════════════════════════════
# LOGGING
# ═══════════════════════════════════════════════════════════════════

LOG_LEVEL = os.environ.get("ML_LOG_LEVEL", "INFO")

DIMENSIONS = ("temperature", "humidity")
