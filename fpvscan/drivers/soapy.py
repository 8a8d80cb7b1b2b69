"""SoapySDR-backed HackRF device handle."""

from __future__ import annotations

import time
from typing import Dict, List, Optional

import numpy as np

from fpvscan.drivers.base import DeviceHandle
from fpvscan.drivers.errors import (
    AcquisitionTimeoutError,
    DeviceBusyError,
    DeviceIOError,
    DeviceNotFoundError,
    InvalidParameterError,
)
from fpvscan.util.logging import get_logger

try:  # pragma: no cover - optional dependency
    import SoapySDR  # type: ignore
    from SoapySDR import SOAPY_SDR_CF32, SOAPY_SDR_RX  # type: ignore

    HAVE_SOAPY = True
except Exception:  # pragma: no cover - optional dependency
    HAVE_SOAPY = False
    SoapySDR = None  # type: ignore
    SOAPY_SDR_CF32 = "CF32"  # type: ignore
    SOAPY_SDR_RX = 1  # type: ignore

# SoapySDR readStream return codes we retry on.
SOAPY_SDR_TIMEOUT = -1
SOAPY_SDR_OVERFLOW = -4

# HackRF front-end amplifier gain when enabled.
AMP_GAIN_DB = 14.0

_READ_CHUNK = 16384
_BUSY_MARKERS = ("busy", "resource", "access denied", "libusb_error_access", "already in use")

logger = get_logger(__name__)


def _stream_ret(st) -> int:
    """Normalize the readStream result across SoapySDR binding versions."""
    n = getattr(st, "ret", st)
    if isinstance(n, tuple):
        n = n[0]
    if isinstance(n, (list, np.ndarray)):
        n = int(n[0])
    return int(n)


class SoapyDeviceHandle(DeviceHandle):
    """HackRF One reached through SoapySDR (``driver=hackrf``)."""

    def __init__(
        self,
        driver: str = "hackrf",
        soapy_args: Optional[Dict[str, str]] = None,
        *,
        timeout_factor: float = 2.0,
        bandwidth_hz: Optional[float] = None,
    ) -> None:
        self.driver = driver
        self.name = f"soapy:{driver}"
        self.soapy_args: Dict[str, str] = {str(k): str(v) for k, v in (soapy_args or {}).items()}
        self.timeout_factor = float(timeout_factor)
        self.bandwidth_hz = bandwidth_hz
        self.dev = None
        self.stream = None
        self._sample_rate_hz: Optional[float] = None
        self._frequency_hz: Optional[float] = None

    def _device_args(self) -> Dict[str, str]:
        dev_args: Dict[str, str] = {"driver": self.driver}
        dev_args.update(self.soapy_args)
        return dev_args

    def open(self) -> None:
        if self.dev is not None:
            return
        if not HAVE_SOAPY:
            raise DeviceNotFoundError("SoapySDR not available", device=self.name)
        dev_args = self._device_args()
        try:
            found: List = list(SoapySDR.Device.enumerate(dev_args))
        except Exception as exc:
            raise DeviceNotFoundError(f"enumerate failed: {exc}", device=self.name) from exc
        if not found:
            raise DeviceNotFoundError(f"no device matches {dev_args}", device=self.name)
        try:
            dev = SoapySDR.Device(dev_args)
        except Exception as exc:
            msg = str(exc)
            if any(marker in msg.lower() for marker in _BUSY_MARKERS):
                raise DeviceBusyError(msg, device=self.name) from exc
            raise DeviceNotFoundError(msg, device=self.name) from exc
        try:
            try:
                dev.setAntenna(SOAPY_SDR_RX, 0, "RX")
            except Exception:
                pass
            stream = dev.setupStream(SOAPY_SDR_RX, SOAPY_SDR_CF32)
            dev.activateStream(stream)
        except Exception as exc:
            self._unmake(dev)
            raise DeviceIOError(f"stream setup failed: {exc}", device=self.name) from exc
        self.dev = dev
        self.stream = stream
        self._sample_rate_hz = None
        self._frequency_hz = None
        logger.info("Opened %s", dev_args, extra={"device": self.name})

    @staticmethod
    def _unmake(dev) -> None:
        try:
            SoapySDR.Device.unmake(dev)
        except Exception:
            pass

    def close(self) -> None:
        dev, stream = self.dev, self.stream
        self.dev = None
        self.stream = None
        if dev is None:
            return
        try:
            dev.deactivateStream(stream)
            dev.closeStream(stream)
        except Exception as exc:
            logger.debug("Stream teardown failed: %s", exc, extra={"device": self.name})
        self._unmake(dev)
        logger.info("Closed device", extra={"device": self.name})

    def is_connected(self) -> bool:
        dev = self.dev
        if dev is None:
            return False
        try:
            dev.getHardwareKey()
        except Exception:
            return False
        return True

    def _require_open(self):
        if self.dev is None:
            raise DeviceIOError("device is not open", device=self.name)
        return self.dev

    def configure(self, frequency_hz: int, sample_rate_hz: int) -> None:
        self.validate_tuning(frequency_hz, sample_rate_hz)
        dev = self._require_open()
        try:
            if self._sample_rate_hz != float(sample_rate_hz):
                dev.setSampleRate(SOAPY_SDR_RX, 0, float(sample_rate_hz))
                try:
                    dev.setBandwidth(SOAPY_SDR_RX, 0, float(self.bandwidth_hz or sample_rate_hz))
                except Exception:
                    pass
                self._sample_rate_hz = float(sample_rate_hz)
            dev.setFrequency(SOAPY_SDR_RX, 0, float(frequency_hz))
            self._frequency_hz = float(frequency_hz)
        except Exception as exc:
            raise DeviceIOError(f"configure failed: {exc}", device=self.name) from exc

    def acquire_samples(self, sample_count: int) -> np.ndarray:
        dev = self._require_open()
        count = int(sample_count)
        if count <= 0:
            raise InvalidParameterError("sample_count must be positive", device=self.name)
        rate = self._sample_rate_hz or float(self.SAMPLE_RATE_RANGE_HZ[0])
        timeout_s = self.acquisition_timeout_s(count, rate)
        deadline = time.monotonic() + timeout_s
        out = np.empty(count, dtype=np.complex64)
        got = 0
        while got < count:
            remaining_s = deadline - time.monotonic()
            if remaining_s <= 0:
                raise AcquisitionTimeoutError(
                    f"captured {got}/{count} samples in {timeout_s:.3f}s", device=self.name
                )
            chunk = int(min(_READ_CHUNK, count - got))
            try:
                st = dev.readStream(self.stream, [out[got : got + chunk]], chunk, timeoutUs=int(remaining_s * 1e6))
            except Exception as exc:
                raise DeviceIOError(f"readStream failed: {exc}", device=self.name) from exc
            n = _stream_ret(st)
            if n > 0:
                got += n
            elif n in (0, SOAPY_SDR_TIMEOUT, SOAPY_SDR_OVERFLOW):
                time.sleep(0.001)
            else:
                raise DeviceIOError(f"readStream error {n}", device=self.name)
        return out

    def _set_gain(self, element: str, value: float) -> None:
        dev = self._require_open()
        try:
            dev.setGain(SOAPY_SDR_RX, 0, element, float(value))
        except Exception as exc:
            raise DeviceIOError(f"setGain {element} failed: {exc}", device=self.name) from exc

    def set_lna_gain(self, gain_db: int) -> None:
        self._set_gain("LNA", gain_db)

    def set_vga_gain(self, gain_db: int) -> None:
        self._set_gain("VGA", gain_db)

    def set_amp_enabled(self, enabled: bool) -> None:
        self._set_gain("AMP", AMP_GAIN_DB if enabled else 0.0)
