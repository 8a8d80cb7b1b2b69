"""Numeric helper functions used across DSP logic."""

import numpy as np


def db10(x: np.ndarray, floor: float = 1e-20) -> np.ndarray:
    """Return 10 * log10(x) with floor to keep inputs positive."""
    return 10.0 * np.log10(np.maximum(x, floor))


def round_to_step(value: float, step: int, low: int, high: int) -> int:
    """Clamp value into [low, high] and snap it to the nearest multiple of step.

    Half steps round up so that 4 dB on an 8 dB ladder becomes 8 dB.
    """
    clipped = float(np.clip(value, low, high))
    snapped = int(np.floor((clipped - low) / step + 0.5)) * step + low
    return int(min(snapped, high - ((high - low) % step)))
