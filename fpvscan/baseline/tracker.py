"""Per-frequency rolling noise-floor estimate."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

import numpy as np


@dataclass
class BaselineEntry:
    baseline_db: float
    observations: int = 1
    last_update: float = 0.0


class BaselineTracker:
    """Exponential moving average of power per frequency.

    The first observation of a frequency seeds its entry directly, so there is
    no cold-start bias. ``alpha`` is the only knob governing how quickly the
    floor follows the measurements; small values keep a genuine transmission
    from raising its own floor within a few visits.
    """

    def __init__(self, alpha: float = 0.1, default_db: float = -100.0):
        self.alpha = float(np.clip(alpha, 1e-3, 1.0))
        self.default_db = float(default_db)
        self._entries: Dict[int, BaselineEntry] = {}

    def observe(self, frequency_hz: int, power_db: float) -> Optional[float]:
        """Fold one reading into the baseline and return the new estimate.

        Non-finite readings (failed acquisitions) are ignored.
        """
        if not math.isfinite(power_db):
            return None
        key = int(frequency_hz)
        now = time.time()
        entry = self._entries.get(key)
        if entry is None:
            self._entries[key] = BaselineEntry(float(power_db), 1, now)
            return float(power_db)
        entry.baseline_db = (1.0 - self.alpha) * entry.baseline_db + self.alpha * float(power_db)
        entry.observations += 1
        entry.last_update = now
        return entry.baseline_db

    def baseline_for(self, frequency_hz: int) -> float:
        entry = self._entries.get(int(frequency_hz))
        return entry.baseline_db if entry is not None else self.default_db

    def observations(self, frequency_hz: int) -> int:
        entry = self._entries.get(int(frequency_hz))
        return entry.observations if entry is not None else 0

    def reset(self) -> None:
        """Forget every floor, e.g. after moving the receiver."""
        self._entries.clear()

    def shift(self, delta_db: float) -> None:
        """Move every floor by delta_db after a receiver gain change."""
        if not delta_db:
            return
        for entry in self._entries.values():
            entry.baseline_db += float(delta_db)

    def as_dict(self) -> Dict[int, float]:
        return {hz: round(e.baseline_db, 2) for hz, e in sorted(self._entries.items())}

    def __len__(self) -> int:
        return len(self._entries)
