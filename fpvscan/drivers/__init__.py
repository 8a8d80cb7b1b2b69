"""SDR device handles.

- base: abstract DeviceHandle contract
- soapy: HackRF through SoapySDR
- simulated: synthetic front end for bench runs and tests
- gain: GainSettings clamping and GainController
"""

from __future__ import annotations

from typing import Any

from fpvscan.drivers.base import DeviceHandle
from fpvscan.drivers.errors import DeviceError
from fpvscan.drivers.simulated import SimulatedDevice
from fpvscan.drivers.soapy import HAVE_SOAPY, SoapyDeviceHandle

DRIVERS = ("hackrf", "sim")


def open_device(driver: str = "hackrf", **kwargs: Any) -> DeviceHandle:
    """Build (but do not open) a device handle by driver name."""
    key = str(driver).lower()
    if key == "sim":
        return SimulatedDevice(**kwargs)
    if key == "hackrf":
        return SoapyDeviceHandle("hackrf", **kwargs)
    raise ValueError(f"unknown driver '{driver}' (expected one of {', '.join(DRIVERS)})")


__all__ = ["DRIVERS", "DeviceError", "DeviceHandle", "HAVE_SOAPY", "SimulatedDevice", "SoapyDeviceHandle", "open_device"]
