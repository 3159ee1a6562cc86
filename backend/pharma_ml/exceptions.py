"""
exceptions.py — Engine Error Types
===================================

    PharmaMLError            — base class for everything raised by the engine
    ReadingValidationError   — malformed reading rejected at ingestion
    InvariantViolation       — internal state broke an invariant (development only)
"""


class PharmaMLError(Exception):
    """Base class for engine errors."""


class ReadingValidationError(PharmaMLError, ValueError):
    """
    A reading failed validation at the ingestion boundary.

    Attributes:
        errors (list[dict]): One entry per offending field, each with
            ``field`` and ``message`` keys.
    """

    def __init__(self, message: str, errors: list = None):
        super().__init__(message)
        self.errors = errors or []


class InvariantViolation(PharmaMLError, AssertionError):
    """Internal invariant broken; a programming error, not bad input."""
