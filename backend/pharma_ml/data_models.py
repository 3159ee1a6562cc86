# data_models.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

# Severity levels (ordinal)
LOW = "low"
MEDIUM = "medium"
HIGH = "high"

SEVERITY_RANK = {None: 0, LOW: 1, MEDIUM: 2, HIGH: 3}

# Detection patterns
PATTERN_NONE = "none"
THRESHOLD_VIOLATION = "threshold_violation"
SUDDEN_SPIKE = "sudden_spike"
GRADUAL_DRIFT = "gradual_drift"


@dataclass(frozen=True)
class ToleranceRange:
    min: float
    max: float
    optimal: float

    def __post_init__(self):
        if not (self.min < self.optimal < self.max):
            raise ValueError(
                f"Tolerance range requires min < optimal < max, "
                f"got min={self.min} optimal={self.optimal} max={self.max}"
            )

    @property
    def span(self) -> float:
        return self.max - self.min

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max, "optimal": self.optimal}


@dataclass(frozen=True)
class MedicineModel:
    """Tolerance profile for one medicine type."""
    name: str
    temperature_range: ToleranceRange
    humidity_range: ToleranceRange

    def range_for(self, dimension: str) -> ToleranceRange:
        if dimension == "temperature":
            return self.temperature_range
        if dimension == "humidity":
            return self.humidity_range
        raise KeyError(dimension)

    @classmethod
    def from_dict(cls, data: dict) -> "MedicineModel":
        """Build from the camelCase shape used in JSON model files."""
        return cls(
            name=str(data["name"]),
            temperature_range=ToleranceRange(**data["temperatureRange"]),
            humidity_range=ToleranceRange(**data["humidityRange"]),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "temperatureRange": self.temperature_range.to_dict(),
            "humidityRange": self.humidity_range.to_dict(),
        }


@dataclass(frozen=True)
class Reading:
    """One validated sensor sample."""
    batch_id: str
    device_id: str
    temperature: float
    humidity: float
    timestamp: datetime
    medicine_type: Optional[str] = None

    def value(self, dimension: str) -> float:
        if dimension == "temperature":
            return self.temperature
        if dimension == "humidity":
            return self.humidity
        raise KeyError(dimension)

    def to_dict(self) -> dict:
        return {
            "batchId": self.batch_id,
            "deviceId": self.device_id,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class Reasons:
    temperature: bool = False
    humidity: bool = False
    sudden_change: bool = False
    gradual_drift: bool = False
    pattern: str = PATTERN_NONE

    def to_dict(self) -> dict:
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "suddenChange": self.sudden_change,
            "gradualDrift": self.gradual_drift,
            "pattern": self.pattern,
        }


@dataclass(frozen=True)
class AnomalyVerdict:
    is_anomaly: bool
    severity: Optional[str]          # None when the reading is normal
    pattern: str
    reasons: Reasons
    strategies_applicable: int = 0
    strategies_triggered: int = 0
    confidence: float = 0.0


@dataclass(frozen=True)
class Prediction:
    next_temperature: float
    next_humidity: float
    risk_level: float

    def to_dict(self) -> dict:
        return {
            "nextTemperature": round(self.next_temperature, 2),
            "nextHumidity": round(self.next_humidity, 2),
            "riskLevel": round(self.risk_level, 4),
        }


@dataclass(frozen=True)
class EnrichedReading:
    """A reading plus everything the engine concluded about it."""
    reading: Reading
    medicine_model: str
    verdict: AnomalyVerdict
    prediction: Prediction

    @property
    def is_anomaly(self) -> bool:
        return self.verdict.is_anomaly

    def to_dict(self) -> dict:
        data = self.reading.to_dict()
        data.update({
            "medicineModel": self.medicine_model,
            "isAnomaly": self.verdict.is_anomaly,
            "severity": self.verdict.severity,
            "confidence": round(self.verdict.confidence, 4),
            "mlReasons": self.verdict.reasons.to_dict(),
            "prediction": self.prediction.to_dict(),
        })
        return data


@dataclass
class BatchStatistics:
    batch_id: str
    total_readings: int
    anomaly_count: int
    average_temperature: float
    average_humidity: float
    temperature_range: Tuple[float, float]
    humidity_range: Tuple[float, float]
    average_confidence: float
    medicine_model: MedicineModel

    @property
    def anomaly_rate(self) -> float:
        return self.anomaly_count / self.total_readings if self.total_readings else 0.0

    def to_dict(self) -> dict:
        return {
            "totalReadings": self.total_readings,
            "anomalyCount": self.anomaly_count,
            "anomalyRate": self.anomaly_rate,
            "averageTemperature": round(self.average_temperature, 2),
            "averageHumidity": round(self.average_humidity, 2),
            "temperatureRange": {"min": self.temperature_range[0],
                                 "max": self.temperature_range[1]},
            "humidityRange": {"min": self.humidity_range[0],
                              "max": self.humidity_range[1]},
            "averageConfidence": round(self.average_confidence, 4),
            "medicineModel": self.medicine_model.to_dict(),
        }


@dataclass
class GlobalStatistics:
    total_batches: int
    total_readings: int
    total_anomalies: int
    adaptive_thresholds: int
    average_confidence: float
    medicine_models: List[str] = field(default_factory=list)

    @property
    def anomaly_rate(self) -> float:
        return self.total_anomalies / self.total_readings if self.total_readings else 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            "totalBatches": self.total_batches,
            "totalReadings": self.total_readings,
            "totalAnomalies": self.total_anomalies,
            "anomalyRate": self.anomaly_rate,
            "adaptiveThresholds": self.adaptive_thresholds,
            "averageConfidence": round(self.average_confidence, 4),
            "medicineModels": list(self.medicine_models),
        }
