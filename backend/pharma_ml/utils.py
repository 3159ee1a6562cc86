"""
utils.py — Shared Utility Functions and Logging Setup
======================================================

Common helpers used across the engine modules.
"""

import math
import numbers
import logging

from . import config


def setup_logging(level: str = None) -> None:
    """
    Configure console logging for the engine.

    Sets up a console handler with timestamp, logger name, level,
    and message. All pharma_ml.* loggers inherit this configuration.

    Args:
        level: Log level string (DEBUG/INFO/WARNING/ERROR/CRITICAL).
               Defaults to config.LOG_LEVEL.
    """
    level = level if level is not None else config.LOG_LEVEL
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    engine_logger = logging.getLogger("pharma_ml")
    engine_logger.setLevel(numeric_level)

    # Avoid duplicate handlers on repeated calls
    if not engine_logger.handlers:
        engine_logger.addHandler(handler)


def clamp(value: float, lower: float, upper: float) -> float:
    """Clamp value into [lower, upper]."""
    return max(lower, min(upper, value))


def is_finite_number(value) -> bool:
    """True for real numbers that are neither NaN nor infinite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return math.isfinite(value)
