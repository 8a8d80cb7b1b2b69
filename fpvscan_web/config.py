"""
Configuration constants and environment parsing for fpvscan Web.

All FPVSCAN_* environment variables used by the HTTP adapter are parsed here
and exported as module-level constants. Blueprints import from this module
rather than reading os.environ directly.
"""
from __future__ import annotations

import os


def _int_env(name: str, default: int) -> int:
    """Parse an integer from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return max(1, int(float(val)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    """Parse a float from environment, returning default on missing/invalid."""
    val = os.getenv(name)
    if not val:
        return default
    try:
        return float(val)
    except ValueError:
        return default


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------
API_TOKEN: str = os.getenv("FPVSCAN_TOKEN", "")
"""Optional bearer token protecting /api/* endpoints."""


# ---------------------------------------------------------------------------
# Request limits
# ---------------------------------------------------------------------------
ERROR_RING_MAX: int = _int_env("FPVSCAN_ERROR_RING_MAX", 100)
"""Number of captured request errors kept for /api/debug/errors."""

DETECTIONS_DRAIN_LIMIT: int = _int_env("FPVSCAN_DETECTIONS_LIMIT", 64)
"""Maximum detection events returned by one GET /api/detections."""

MEASURE_MAX_SAMPLES: int = _int_env("FPVSCAN_MEASURE_MAX_SAMPLES", 1_048_576)
"""Largest sample_count accepted by GET /api/measure."""

STOP_TIMEOUT_S: float = _float_env("FPVSCAN_STOP_TIMEOUT_S", 5.0)
"""Seconds to wait for the scan thread when the server shuts down."""
