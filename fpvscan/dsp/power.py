"""Scalar power measurement at a single center frequency."""

from __future__ import annotations

import time
from dataclasses import dataclass

import numpy as np

from fpvscan.detection.types import PowerReading
from fpvscan.drivers.base import DeviceHandle
from fpvscan.drivers.errors import DeviceError
from fpvscan.dsp.fft import coarse_spectrum_db
from fpvscan.util.logging import get_logger

DEFAULT_SAMPLE_RATE_HZ = 2_000_000
DEFAULT_SAMPLE_COUNT = 65_536

logger = get_logger(__name__)


@dataclass(frozen=True)
class SampleSpec:
    frequency_hz: int
    sample_rate_hz: int = DEFAULT_SAMPLE_RATE_HZ
    sample_count: int = DEFAULT_SAMPLE_COUNT

    def __post_init__(self) -> None:
        for name in ("frequency_hz", "sample_rate_hz", "sample_count"):
            value = getattr(self, name)
            if isinstance(value, bool) or int(value) != value or int(value) <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")
            object.__setattr__(self, name, int(value))


def iq_power_db(samples: np.ndarray, min_power_db: float = -120.0) -> float:
    """Mean instantaneous power of complex IQ samples in dB, floored at min_power_db."""
    if samples.size == 0:
        return float(min_power_db)
    mean_power = float(np.mean(np.abs(samples) ** 2))
    if mean_power <= 0.0:
        return float(min_power_db)
    return float(max(10.0 * np.log10(mean_power), min_power_db))


class PowerSampler:
    """Tune, capture and reduce a batch of IQ samples to one PowerReading.

    Device errors never escape: a failed acquisition is reported as a reading
    whose power is negative infinity.
    """

    def __init__(
        self,
        *,
        min_power_db: float = -120.0,
        settle_samples: int = 8192,
        spectrum_bins: int = 64,
    ) -> None:
        self.min_power_db = float(min_power_db)
        self.settle_samples = max(0, int(settle_samples))
        self.spectrum_bins = max(0, int(spectrum_bins))

    def measure_power(self, spec: SampleSpec, device: DeviceHandle) -> PowerReading:
        started = time.monotonic()
        try:
            device.configure(spec.frequency_hz, spec.sample_rate_hz)
            if self.settle_samples:
                # Samples straddling the retune are not representative.
                device.acquire_samples(self.settle_samples)
            samples = device.acquire_samples(spec.sample_count)
        except DeviceError as exc:
            logger.warning(
                "Acquisition failed at %.3f MHz: %s",
                spec.frequency_hz / 1e6,
                exc,
                extra={"frequency_hz": spec.frequency_hz, "error_type": exc.kind},
            )
            return PowerReading(spec.frequency_hz, float("-inf"), time.time())

        power_db = iq_power_db(samples, self.min_power_db)
        spectrum = coarse_spectrum_db(samples, spec.sample_rate_hz, self.spectrum_bins)
        del samples
        logger.debug(
            "%.3f MHz -> %.1f dB",
            spec.frequency_hz / 1e6,
            power_db,
            extra={
                "frequency_hz": spec.frequency_hz,
                "power_db": power_db,
                "duration_ms": round((time.monotonic() - started) * 1000.0, 1),
            },
        )
        return PowerReading(spec.frequency_hz, power_db, time.time(), spectrum)
