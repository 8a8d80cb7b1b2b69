"""FPV band table: band-mode selector to the ordered channel frequencies to visit."""

from __future__ import annotations

import csv
import enum
import os
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple


class BandMode(enum.IntEnum):
    AUTO = 0
    BAND_1_2GHZ = 1
    BAND_2_4GHZ = 2
    BAND_3_3GHZ = 3
    BAND_5_8GHZ = 4

    @classmethod
    def from_index(cls, index: int) -> "BandMode":
        """Clamp a UI selector index into the valid 0..4 range."""
        return cls(min(max(int(index), int(cls.AUTO)), int(cls.BAND_5_8GHZ)))

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    BandMode.AUTO: "Auto",
    BandMode.BAND_1_2GHZ: "1.2 GHz",
    BandMode.BAND_2_4GHZ: "2.4 GHz",
    BandMode.BAND_3_3GHZ: "3.3 GHz",
    BandMode.BAND_5_8GHZ: "5.8 GHz",
}


@dataclass(frozen=True)
class Channel:
    mode: BandMode
    frequency_hz: int
    label: str


def _mhz(mode: BandMode, prefix: str, values: Iterable[int]) -> List[Channel]:
    return [Channel(mode, mhz * 1_000_000, f"{prefix}{i}") for i, mhz in enumerate(values, start=1)]


# Common analog FPV video allocations.
DEFAULT_CHANNELS: List[Channel] = (
    _mhz(BandMode.BAND_1_2GHZ, "1G3-", [1080, 1120, 1160, 1200, 1240, 1280, 1320, 1360])
    + _mhz(BandMode.BAND_2_4GHZ, "2G4-", [2370, 2390, 2410, 2430, 2450, 2470, 2490, 2510])
    + _mhz(BandMode.BAND_3_3GHZ, "3G3-", [3330, 3350, 3370, 3390, 3410, 3430, 3450, 3470])
    + _mhz(BandMode.BAND_5_8GHZ, "R", [5658, 5695, 5732, 5769, 5806, 5843, 5880, 5917])
)


class BandPlan:
    """Immutable mapping from BandMode to channel frequencies.

    ``frequencies_for`` has no side effects and always returns the same finite
    tuple for the same mode, so a scan cycle can restart it from the top.
    """

    def __init__(self, channels: Optional[Iterable[Channel]] = None) -> None:
        table: Dict[BandMode, List[Channel]] = {mode: [] for mode in BandMode if mode is not BandMode.AUTO}
        for ch in channels if channels is not None else DEFAULT_CHANNELS:
            if ch.mode is BandMode.AUTO:
                continue
            table[ch.mode].append(ch)
        self._channels: Dict[BandMode, Tuple[Channel, ...]] = {}
        self._plans: Dict[BandMode, Tuple[int, ...]] = {}
        for mode, chans in table.items():
            ordered = sorted({c.frequency_hz: c for c in chans}.values(), key=lambda c: c.frequency_hz)
            self._channels[mode] = tuple(ordered)
            self._plans[mode] = tuple(c.frequency_hz for c in ordered)
        union = sorted({hz for plan in self._plans.values() for hz in plan})
        self._plans[BandMode.AUTO] = tuple(union)

    @classmethod
    def from_csv(cls, csv_path: Optional[str]) -> "BandPlan":
        """Load a channel table with columns ``mode,frequency_hz[,label]``.

        ``mode`` accepts the selector index (1..4) or the enum name. Rows that
        cannot be parsed are skipped. No path yields the defaults; a path
        that does not exist raises FileNotFoundError.
        """
        if not csv_path:
            return cls()
        if not os.path.exists(csv_path):
            raise FileNotFoundError(f"channel table not found: {csv_path}")
        channels: List[Channel] = []
        with open(csv_path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            for row in reader:
                try:
                    mode = _parse_mode(row.get("mode") or "")
                    freq = int(float(row.get("frequency_hz") or row.get("freq_hz") or ""))
                except (KeyError, ValueError):
                    continue
                if freq <= 0:
                    continue
                label = (row.get("label") or "").strip() or f"{freq / 1e6:.0f}"
                channels.append(Channel(mode, freq, label))
        return cls(channels)

    def frequencies_for(self, mode: BandMode) -> Tuple[int, ...]:
        return self._plans[BandMode(mode)]

    def channels_for(self, mode: BandMode) -> Tuple[Channel, ...]:
        mode = BandMode(mode)
        if mode is BandMode.AUTO:
            merged = {c.frequency_hz: c for m in self._channels for c in self._channels[m]}
            return tuple(merged[hz] for hz in self._plans[BandMode.AUTO])
        return self._channels[mode]

    def label_for(self, frequency_hz: int) -> str:
        for mode, chans in self._channels.items():
            for ch in chans:
                if ch.frequency_hz == frequency_hz:
                    return f"{mode.label} {ch.label}"
        return f"{frequency_hz / 1e6:.1f} MHz"


def _parse_mode(text: str) -> BandMode:
    text = text.strip()
    if text.isdigit():
        return BandMode(int(text))
    return BandMode[text.upper()]
