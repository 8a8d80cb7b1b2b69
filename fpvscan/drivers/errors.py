"""Device error taxonomy shared by every driver."""

from __future__ import annotations


class DeviceError(Exception):
    """Base class for hardware-layer failures.

    ``kind`` carries the taxonomy name so that callers can report a failure
    without matching on the concrete class.
    """

    kind = "DeviceError"

    def __init__(self, message: str = "", *, device: str = "") -> None:
        super().__init__(message or self.kind)
        self.device = device

    def __str__(self) -> str:
        text = super().__str__()
        return f"{self.kind}: {text}" if text != self.kind else text


class DeviceNotFoundError(DeviceError):
    """No compatible hardware is attached."""

    kind = "NotFound"


class DeviceBusyError(DeviceError):
    """Hardware is claimed by another process."""

    kind = "Busy"


class InvalidParameterError(DeviceError):
    """Frequency, sample rate or gain outside the supported range."""

    kind = "InvalidParameter"


class AcquisitionTimeoutError(DeviceError):
    """No samples arrived within the acquisition deadline."""

    kind = "Timeout"


class DeviceIOError(DeviceError):
    """USB transfer or stream failure."""

    kind = "IOError"


__all__ = [
    "DeviceError",
    "DeviceNotFoundError",
    "DeviceBusyError",
    "InvalidParameterError",
    "AcquisitionTimeoutError",
    "DeviceIOError",
]
