"""Dataclasses shared across sampler, detection, and scan-loop layers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

from fpvscan.util.time import epoch_to_utc_str


@dataclass(frozen=True)
class PowerReading:
    frequency_hz: int
    power_db: float
    timestamp: float
    spectrum_db: Tuple[float, ...] = field(default=(), repr=False)

    @property
    def ok(self) -> bool:
        """False for a failed acquisition (power is -inf)."""
        return not (math.isinf(self.power_db) and self.power_db < 0)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "frequency_hz": self.frequency_hz,
            "power_db": self.power_db if self.ok else None,
            "timestamp": epoch_to_utc_str(self.timestamp),
            "spectrum_db": list(self.spectrum_db),
        }


@dataclass(frozen=True)
class DetectionEvent:
    frequency_hz: int
    power_db: float
    ratio_observed: float
    timestamp: float
    baseline_db: float = float("nan")

    def summary(self) -> str:
        """Compact "frequency_hz,power_db" form polled by the presentation layer."""
        return f"{self.frequency_hz},{self.power_db:.1f}"

    def describe(self) -> str:
        return (
            f"FREQ={self.frequency_hz / 1e6:.1f} MHz; POWER={self.power_db:.1f} dB; "
            f"NOISE={self.baseline_db:.1f} dB; DELTA_DB={self.ratio_observed:.1f}"
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "frequency_hz": self.frequency_hz,
            "power_db": round(self.power_db, 2),
            "ratio_observed": round(self.ratio_observed, 2),
            "baseline_db": round(self.baseline_db, 2),
            "timestamp": epoch_to_utc_str(self.timestamp),
        }
