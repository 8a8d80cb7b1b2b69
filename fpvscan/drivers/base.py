"""Abstract device handle owned by the scan loop."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np

from fpvscan.drivers.errors import InvalidParameterError


class DeviceHandle(ABC):
    """Exclusive connection to one SDR front end.

    Implementations raise :class:`~fpvscan.drivers.errors.DeviceError`
    subclasses. Only ``is_connected`` is guaranteed not to raise.
    """

    name = "device"

    # HackRF One tuning and ADC limits.
    FREQ_RANGE_HZ: Tuple[int, int] = (1_000_000, 6_000_000_000)
    SAMPLE_RATE_RANGE_HZ: Tuple[int, int] = (2_000_000, 20_000_000)

    # Acquisition deadline is timeout_factor times the nominal capture time.
    timeout_factor: float = 2.0
    min_timeout_s: float = 0.05

    @abstractmethod
    def open(self) -> None:
        """Claim the hardware. Calling it while already open is a no-op."""

    @abstractmethod
    def close(self) -> None:
        """Release the hardware. Safe to call when already closed."""

    @abstractmethod
    def is_connected(self) -> bool:
        """Non-blocking liveness probe."""

    @abstractmethod
    def configure(self, frequency_hz: int, sample_rate_hz: int) -> None:
        """Tune the center frequency and set the ADC sample rate."""

    @abstractmethod
    def acquire_samples(self, sample_count: int) -> np.ndarray:
        """Block until ``sample_count`` complex IQ samples are captured."""

    @abstractmethod
    def set_lna_gain(self, gain_db: int) -> None:
        ...

    @abstractmethod
    def set_vga_gain(self, gain_db: int) -> None:
        ...

    @abstractmethod
    def set_amp_enabled(self, enabled: bool) -> None:
        ...

    def validate_tuning(self, frequency_hz: int, sample_rate_hz: int) -> None:
        f_low, f_high = self.FREQ_RANGE_HZ
        if not f_low <= int(frequency_hz) <= f_high:
            raise InvalidParameterError(
                f"frequency {frequency_hz} Hz outside {f_low}-{f_high} Hz", device=self.name
            )
        r_low, r_high = self.SAMPLE_RATE_RANGE_HZ
        if not r_low <= int(sample_rate_hz) <= r_high:
            raise InvalidParameterError(
                f"sample rate {sample_rate_hz} Hz outside {r_low}-{r_high} Hz", device=self.name
            )

    def acquisition_timeout_s(self, sample_count: int, sample_rate_hz: float) -> float:
        """Deadline for capturing ``sample_count`` samples at ``sample_rate_hz``."""
        nominal = float(sample_count) / max(float(sample_rate_hz), 1.0)
        return max(self.timeout_factor * nominal, self.min_timeout_s)

    def __enter__(self) -> "DeviceHandle":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
