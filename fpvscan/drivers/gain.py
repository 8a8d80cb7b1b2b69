"""Receiver gain settings and their application to a device."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fpvscan.drivers.base import DeviceHandle
from fpvscan.util.logging import get_logger
from fpvscan.util.math import round_to_step

LNA_RANGE_DB = (0, 40)
LNA_STEP_DB = 8
VGA_RANGE_DB = (0, 62)
VGA_STEP_DB = 2
AMP_GAIN_DB = 14

logger = get_logger(__name__)


@dataclass(frozen=True)
class GainSettings:
    lna_gain_db: int = 24
    vga_gain_db: int = 20
    amp_enabled: bool = True

    @property
    def total_db(self) -> int:
        """Nominal receive chain gain (the amp adds a fixed 14 dB)."""
        return self.lna_gain_db + self.vga_gain_db + (AMP_GAIN_DB if self.amp_enabled else 0)

    def clamped(self) -> "GainSettings":
        """Snap every field to the nearest valid hardware step."""
        return GainSettings(
            lna_gain_db=round_to_step(self.lna_gain_db, LNA_STEP_DB, *LNA_RANGE_DB),
            vga_gain_db=round_to_step(self.vga_gain_db, VGA_STEP_DB, *VGA_RANGE_DB),
            amp_enabled=bool(self.amp_enabled),
        )

    def as_dict(self) -> dict:
        return {
            "lna_gain_db": self.lna_gain_db,
            "vga_gain_db": self.vga_gain_db,
            "amp_enabled": self.amp_enabled,
        }


class GainController:
    """Apply gain settings, skipping writes that would not change the hardware.

    The scan loop calls :meth:`apply` on every iteration; only a real change
    reaches the device. :meth:`reset` must be called whenever the device is
    (re)opened since a fresh session starts from unknown gain.
    """

    def __init__(self) -> None:
        self._applied: Optional[GainSettings] = None

    @property
    def applied(self) -> Optional[GainSettings]:
        return self._applied

    def reset(self) -> None:
        self._applied = None

    def apply(self, settings: GainSettings, device: DeviceHandle) -> GainSettings:
        target = settings.clamped()
        previous = self._applied
        if previous == target:
            return target
        if previous is None or previous.lna_gain_db != target.lna_gain_db:
            device.set_lna_gain(target.lna_gain_db)
        if previous is None or previous.vga_gain_db != target.vga_gain_db:
            device.set_vga_gain(target.vga_gain_db)
        if previous is None or previous.amp_enabled != target.amp_enabled:
            device.set_amp_enabled(target.amp_enabled)
        self._applied = target
        logger.debug(
            "Gain applied lna=%d vga=%d amp=%s",
            target.lna_gain_db,
            target.vga_gain_db,
            target.amp_enabled,
        )
        return target
