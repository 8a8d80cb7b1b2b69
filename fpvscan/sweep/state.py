"""Immutable values exchanged between the scan thread and its callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fpvscan.detection.types import DetectionEvent, PowerReading
from fpvscan.drivers.gain import GainSettings
from fpvscan.io.bandplan import BandMode


@dataclass(frozen=True)
class ScanControls:
    """Operator settings read by the scan thread at the top of each iteration."""

    band_mode: BandMode = BandMode.AUTO
    gain: GainSettings = GainSettings()
    ratio_threshold_db: float = 6.0
    dwell_s: float = 0.0


@dataclass(frozen=True)
class ScanState:
    is_device_connected: bool = False
    is_scanning: bool = False
    last_detection: Optional[DetectionEvent] = None
    current_frequency_hz: Optional[int] = None
    band_mode: BandMode = BandMode.AUTO
    last_reading: Optional[PowerReading] = None
    iterations: int = 0
    cycles: int = 0
    session: int = 0
    last_error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "is_device_connected": self.is_device_connected,
            "is_scanning": self.is_scanning,
            "last_detection": self.last_detection.as_dict() if self.last_detection else None,
            "current_frequency_hz": self.current_frequency_hz,
            "band_mode": int(self.band_mode),
            "band_label": self.band_mode.label,
            "last_reading": self.last_reading.as_dict() if self.last_reading else None,
            "iterations": self.iterations,
            "cycles": self.cycles,
            "session": self.session,
            "last_error": self.last_error,
        }
