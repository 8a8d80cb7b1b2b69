from types import SimpleNamespace
from typing import List

import numpy as np
import pytest

from fpvscan.drivers import soapy
from fpvscan.drivers.errors import (
    AcquisitionTimeoutError,
    DeviceBusyError,
    DeviceIOError,
    DeviceNotFoundError,
    InvalidParameterError,
)
from fpvscan.drivers.soapy import SoapyDeviceHandle


class _FakeDevice:
    """Minimal stand-in for SoapySDR.Device recording every call."""

    def __init__(self, returns: List[int]) -> None:
        self.returns = list(returns)
        self.calls: List[tuple] = []
        self.alive = True

    def setAntenna(self, *args):
        self.calls.append(("setAntenna",) + args)

    def setupStream(self, *args):
        return "stream"

    def activateStream(self, stream):
        self.calls.append(("activateStream", stream))

    def deactivateStream(self, stream):
        self.calls.append(("deactivateStream", stream))

    def closeStream(self, stream):
        self.calls.append(("closeStream", stream))

    def getHardwareKey(self):
        if not self.alive:
            raise RuntimeError("device gone")
        return "HackRF"

    def setSampleRate(self, direction, channel, rate):
        self.calls.append(("setSampleRate", rate))

    def setBandwidth(self, direction, channel, bw):
        self.calls.append(("setBandwidth", bw))

    def setFrequency(self, direction, channel, freq):
        self.calls.append(("setFrequency", freq))

    def setGain(self, direction, channel, element, value):
        self.calls.append(("setGain", element, value))

    def readStream(self, stream, buffs, count, timeoutUs=0):
        n = self.returns.pop(0) if self.returns else count
        if n > 0:
            n = min(n, count)
            buffs[0][:n] = 1 + 0j
        return SimpleNamespace(ret=n)


def _install(monkeypatch, *, found=True, device=None, ctor_error=None):
    made: List[_FakeDevice] = []
    unmade: List[_FakeDevice] = []

    class _Device:
        @staticmethod
        def enumerate(args):
            return [dict(args)] if found else []

        @staticmethod
        def unmake(dev):
            unmade.append(dev)

        def __new__(cls, args):
            if ctor_error is not None:
                raise ctor_error
            dev = device or _FakeDevice([])
            made.append(dev)
            return dev

    monkeypatch.setattr(soapy, "SoapySDR", SimpleNamespace(Device=_Device))
    monkeypatch.setattr(soapy, "HAVE_SOAPY", True)
    return made, unmade


def test_open_without_bindings_is_not_found(monkeypatch) -> None:
    monkeypatch.setattr(soapy, "HAVE_SOAPY", False)
    with pytest.raises(DeviceNotFoundError):
        SoapyDeviceHandle().open()


def test_open_with_no_device_is_not_found(monkeypatch) -> None:
    _install(monkeypatch, found=False)
    with pytest.raises(DeviceNotFoundError):
        SoapyDeviceHandle().open()


def test_open_maps_busy_errors(monkeypatch) -> None:
    _install(monkeypatch, ctor_error=RuntimeError("hackrf_open() failed: Resource busy"))
    with pytest.raises(DeviceBusyError):
        SoapyDeviceHandle().open()


def test_open_close_lifecycle(monkeypatch) -> None:
    made, unmade = _install(monkeypatch)
    handle = SoapyDeviceHandle(soapy_args={"serial": "abcd"})
    handle.open()
    handle.open()
    assert len(made) == 1
    assert handle.is_connected()

    handle.close()
    handle.close()
    assert not handle.is_connected()
    assert unmade == made
    assert ("closeStream", "stream") in made[0].calls


def test_is_connected_false_when_probe_fails(monkeypatch) -> None:
    dev = _FakeDevice([])
    _install(monkeypatch, device=dev)
    handle = SoapyDeviceHandle()
    handle.open()
    dev.alive = False
    assert handle.is_connected() is False


def test_configure_skips_redundant_rate_writes(monkeypatch) -> None:
    dev = _FakeDevice([])
    _install(monkeypatch, device=dev)
    handle = SoapyDeviceHandle()
    handle.open()
    handle.configure(5_806_000_000, 2_000_000)
    handle.configure(5_843_000_000, 2_000_000)
    rates = [c for c in dev.calls if c[0] == "setSampleRate"]
    freqs = [c[1] for c in dev.calls if c[0] == "setFrequency"]
    assert len(rates) == 1
    assert freqs == [5_806_000_000.0, 5_843_000_000.0]


def test_configure_rejects_out_of_range(monkeypatch) -> None:
    _install(monkeypatch)
    handle = SoapyDeviceHandle()
    handle.open()
    with pytest.raises(InvalidParameterError):
        handle.configure(7_000_000_000, 2_000_000)
    with pytest.raises(InvalidParameterError):
        handle.configure(2_450_000_000, 40_000_000)


def test_acquire_retries_timeouts_and_overflows(monkeypatch) -> None:
    dev = _FakeDevice([soapy.SOAPY_SDR_TIMEOUT, soapy.SOAPY_SDR_OVERFLOW, 100, 0])
    _install(monkeypatch, device=dev)
    handle = SoapyDeviceHandle()
    handle.open()
    handle.configure(2_450_000_000, 2_000_000)
    samples = handle.acquire_samples(1000)
    assert samples.shape == (1000,)
    assert samples.dtype == np.complex64
    assert np.all(samples == 1 + 0j)


def test_acquire_raises_io_error_on_stream_error(monkeypatch) -> None:
    dev = _FakeDevice([-7])
    _install(monkeypatch, device=dev)
    handle = SoapyDeviceHandle()
    handle.open()
    with pytest.raises(DeviceIOError):
        handle.acquire_samples(1000)


def test_acquire_times_out(monkeypatch) -> None:
    dev = _FakeDevice([soapy.SOAPY_SDR_TIMEOUT] * 10_000)
    _install(monkeypatch, device=dev)
    handle = SoapyDeviceHandle(timeout_factor=1.0)
    handle.min_timeout_s = 0.01
    handle.open()
    handle.configure(2_450_000_000, 20_000_000)
    with pytest.raises(AcquisitionTimeoutError):
        handle.acquire_samples(1000)


def test_gain_elements(monkeypatch) -> None:
    dev = _FakeDevice([])
    _install(monkeypatch, device=dev)
    handle = SoapyDeviceHandle()
    handle.open()
    handle.set_lna_gain(24)
    handle.set_vga_gain(20)
    handle.set_amp_enabled(True)
    handle.set_amp_enabled(False)
    gains = [c[1:] for c in dev.calls if c[0] == "setGain"]
    assert gains == [("LNA", 24.0), ("VGA", 20.0), ("AMP", 14.0), ("AMP", 0.0)]


def test_operations_on_closed_handle_raise() -> None:
    handle = SoapyDeviceHandle()
    with pytest.raises(DeviceIOError):
        handle.acquire_samples(10)
    with pytest.raises(DeviceIOError):
        handle.set_lna_gain(8)
