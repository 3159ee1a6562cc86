# backend/pharma_ml/schemas.py

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .data_models import Reading
from .exceptions import ReadingValidationError
from .utils import is_finite_number


class ReadingPayload(BaseModel):
    """Wire shape of one reading as posted by devices and the IoT gateway."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    batchId: str = Field(..., min_length=1)
    deviceId: str = Field(..., min_length=1)
    temperature: float = Field(..., allow_inf_nan=False)
    humidity: float = Field(..., allow_inf_nan=False)
    timestamp: Optional[datetime] = None     # ISO-8601 or epoch seconds
    medicineType: Optional[str] = None

    @field_validator("temperature", "humidity", mode="before")
    @classmethod
    def _finite_number(cls, value):
        # JSON numbers only: no booleans, no numeric strings.
        if not is_finite_number(value):
            raise ValueError("must be a finite number")
        return float(value)


def parse_reading(payload) -> Reading:
    """
    Validate a raw payload and convert it to an immutable Reading.

    Naive timestamps are taken as UTC; a missing timestamp means "now".

    Raises:
        ReadingValidationError: payload is not a mapping, a required field
            is missing or empty, or a measurement is not a finite number.
    """
    if isinstance(payload, Reading):
        return payload
    if not isinstance(payload, dict):
        raise ReadingValidationError(
            "Reading payload must be a JSON object",
            [{"field": "", "message": f"got {type(payload).__name__}"}],
        )

    try:
        parsed = ReadingPayload.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ReadingValidationError("Invalid reading", errors) from e

    ts = parsed.timestamp or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)

    return Reading(
        batch_id=parsed.batchId,
        device_id=parsed.deviceId,
        temperature=parsed.temperature,
        humidity=parsed.humidity,
        timestamp=ts,
        medicine_type=parsed.medicineType or None,
    )
