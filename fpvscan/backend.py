"""Polling boundary consumed by the presentation layer.

The presentation layer drives the scanner through a small, exception-free
surface and polls for status at its own cadence (500 ms in the handset UI).
Nothing is pushed to it; detection events can additionally be drained in
order through :meth:`ScannerBackend.drain_events`.
"""

from __future__ import annotations

import math
from typing import Any, List, Optional

from fpvscan.detection.types import DetectionEvent
from fpvscan.drivers import open_device
from fpvscan.drivers.errors import DeviceError
from fpvscan.drivers.gain import GainSettings
from fpvscan.dsp.power import DEFAULT_SAMPLE_COUNT, DEFAULT_SAMPLE_RATE_HZ, SampleSpec
from fpvscan.io.bandplan import BandPlan
from fpvscan.io.profiles import ScanProfile, resolve_profile
from fpvscan.sweep.loop import ScanLoop
from fpvscan.sweep.state import ScanState
from fpvscan.util.logging import get_logger
from fpvscan.util.scan_logger import ScanLogger

logger = get_logger(__name__)


class ScannerBackend:
    """Boundary adapter around one ScanLoop instance."""

    def __init__(self, loop: ScanLoop) -> None:
        self.loop = loop

    def start_scan(self) -> bool:
        """Start scanning; False when the device could not be opened."""
        try:
            self.loop.start()
        except DeviceError:
            return False
        return True

    def stop_scan(self) -> None:
        self.loop.stop(wait=False)

    def is_device_connected(self) -> bool:
        return self.loop.snapshot().is_device_connected

    def is_scanning(self) -> bool:
        return self.loop.snapshot().is_scanning

    def get_last_detection(self) -> Optional[str]:
        event = self.loop.snapshot().last_detection
        return event.summary() if event is not None else None

    def last_error(self) -> Optional[str]:
        return self.loop.snapshot().last_error

    def set_band_mode(self, mode_index: int) -> None:
        self.loop.set_band_mode(int(mode_index))

    def set_detection_ratio(self, ratio: float) -> None:
        self.loop.set_detection_ratio(ratio)

    def set_gain(self, lna_gain_db: int, vga_gain_db: int, amp_enabled: bool) -> None:
        self.loop.set_gain(GainSettings(int(lna_gain_db), int(vga_gain_db), bool(amp_enabled)))

    def reset_baseline(self) -> None:
        self.loop.reset_baseline()

    def measure_power(
        self,
        frequency_hz: int,
        sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ,
        sample_count: int = DEFAULT_SAMPLE_COUNT,
    ) -> float:
        """Synchronous one-shot power reading; -inf on any failure."""
        try:
            spec = SampleSpec(frequency_hz, sample_rate_hz, sample_count)
        except (TypeError, ValueError) as exc:
            logger.warning("Rejected measurement request: %s", exc)
            return -math.inf
        return self.loop.measure_once(spec).power_db

    def snapshot(self) -> ScanState:
        return self.loop.snapshot()

    def drain_events(self, max_events: Optional[int] = None) -> List[DetectionEvent]:
        return self.loop.drain_events(max_events)

    def shutdown(self, timeout: Optional[float] = None) -> None:
        """Stop scanning, wait for the scan thread and release the device."""
        self.loop.close(timeout)


def create_backend(
    profile: Optional[ScanProfile] = None,
    *,
    driver: str = "hackrf",
    bandplan_csv: Optional[str] = None,
    jsonl: Optional[str] = None,
    **driver_kwargs: Any,
) -> ScannerBackend:
    """Wire a device, band plan and scan loop from a profile."""
    profile = profile or resolve_profile(None)
    if driver == "hackrf":
        driver_kwargs.setdefault("timeout_factor", profile.timeout_factor)
    device = open_device(driver, **driver_kwargs)
    loop = ScanLoop(
        device,
        profile=profile,
        band_plan=BandPlan.from_csv(bandplan_csv),
        scan_logger=ScanLogger.from_path(jsonl) if jsonl else None,
    )
    return ScannerBackend(loop)
