"""Synthetic SDR front end for bench runs and tests.

Produces complex Gaussian noise at a configurable floor and adds a tone for
every carrier that falls inside the tuned passband. Gain changes shift the
received power the way a real receiver chain would, relative to the default
HackRF setting (LNA 24 dB, VGA 20 dB, amp on).
"""

from __future__ import annotations

import time
from typing import Dict, List, Optional, Tuple

import numpy as np

from fpvscan.drivers.base import DeviceHandle
from fpvscan.drivers.errors import (
    DeviceBusyError,
    DeviceError,
    DeviceIOError,
    DeviceNotFoundError,
    InvalidParameterError,
)

REFERENCE_GAIN_DB = 24 + 20 + 14


class SimulatedDevice(DeviceHandle):
    """In-process stand-in for a HackRF."""

    name = "sim"

    def __init__(
        self,
        *,
        noise_floor_db: float = -90.0,
        carriers: Optional[Dict[int, float]] = None,
        present: bool = True,
        busy: bool = False,
        acquire_delay_s: float = 0.0,
        seed: Optional[int] = None,
    ) -> None:
        self.noise_floor_db = float(noise_floor_db)
        self.carriers: Dict[int, float] = dict(carriers or {})
        self.present = present
        self.busy = busy
        self.acquire_delay_s = float(acquire_delay_s)
        self._rng = np.random.default_rng(seed)
        self._open = False
        self._frequency_hz: Optional[int] = None
        self._sample_rate_hz: Optional[int] = None
        self._lna_db = 24
        self._vga_db = 20
        self._amp = True
        self._faults: List[DeviceError] = []
        self.open_count = 0
        self.close_count = 0
        self.acquire_count = 0
        self.gain_writes: List[Tuple[str, object]] = []
        self.tuned: List[int] = []

    # Fault injection -------------------------------------------------

    def fail_next(self, error: DeviceError, count: int = 1) -> None:
        """Make the next ``count`` acquisitions raise ``error``."""
        self._faults.extend([error] * int(count))

    def unplug(self) -> None:
        """Simulate the USB cable being pulled."""
        self.present = False
        self._open = False

    def replug(self) -> None:
        self.present = True

    def set_carrier(self, frequency_hz: int, power_db: Optional[float]) -> None:
        if power_db is None:
            self.carriers.pop(int(frequency_hz), None)
        else:
            self.carriers[int(frequency_hz)] = float(power_db)

    # DeviceHandle ----------------------------------------------------

    def open(self) -> None:
        if self._open:
            return
        if not self.present:
            raise DeviceNotFoundError("no simulated device attached", device=self.name)
        if self.busy:
            raise DeviceBusyError("simulated device claimed by another process", device=self.name)
        self._open = True
        self._frequency_hz = None
        self._sample_rate_hz = None
        self.open_count += 1

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        self.close_count += 1

    def is_connected(self) -> bool:
        return self._open and self.present

    def configure(self, frequency_hz: int, sample_rate_hz: int) -> None:
        self.validate_tuning(frequency_hz, sample_rate_hz)
        if not self.is_connected():
            raise DeviceIOError("device is not open", device=self.name)
        self._frequency_hz = int(frequency_hz)
        self._sample_rate_hz = int(sample_rate_hz)
        self.tuned.append(int(frequency_hz))

    def _gain_offset_db(self) -> float:
        return float(self._lna_db + self._vga_db + (14 if self._amp else 0) - REFERENCE_GAIN_DB)

    def acquire_samples(self, sample_count: int) -> np.ndarray:
        if not self.is_connected():
            raise DeviceIOError("device is not open", device=self.name)
        count = int(sample_count)
        if count <= 0:
            raise InvalidParameterError("sample_count must be positive", device=self.name)
        self.acquire_count += 1
        if self.acquire_delay_s > 0:
            time.sleep(self.acquire_delay_s)
        if self._faults:
            raise self._faults.pop(0)
        rate = float(self._sample_rate_hz or self.SAMPLE_RATE_RANGE_HZ[0])
        tuned = int(self._frequency_hz or 0)
        offset_db = self._gain_offset_db()

        noise_var = 10.0 ** ((self.noise_floor_db + offset_db) / 10.0)
        scale = np.sqrt(noise_var / 2.0)
        samples = (self._rng.standard_normal(count) + 1j * self._rng.standard_normal(count)) * scale
        t = np.arange(count) / rate
        for carrier_hz, power_db in self.carriers.items():
            delta = float(carrier_hz - tuned)
            if abs(delta) > rate / 2.0:
                continue
            amplitude = np.sqrt(10.0 ** ((power_db + offset_db) / 10.0))
            samples = samples + amplitude * np.exp(2j * np.pi * delta * t)
        return samples.astype(np.complex64)

    def set_lna_gain(self, gain_db: int) -> None:
        self._require_open()
        self._lna_db = int(gain_db)
        self.gain_writes.append(("LNA", int(gain_db)))

    def set_vga_gain(self, gain_db: int) -> None:
        self._require_open()
        self._vga_db = int(gain_db)
        self.gain_writes.append(("VGA", int(gain_db)))

    def set_amp_enabled(self, enabled: bool) -> None:
        self._require_open()
        self._amp = bool(enabled)
        self.gain_writes.append(("AMP", bool(enabled)))

    def _require_open(self) -> None:
        if not self.is_connected():
            raise DeviceIOError("device is not open", device=self.name)
