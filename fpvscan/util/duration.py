"""``--duration`` parsing."""

from __future__ import annotations

import argparse
import re
from typing import Any, Optional

_DURATION_RE = re.compile(r"^\s*(-?\d+(?:\.\d*)?|-?\.\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
_UNIT_SECONDS = {"": 1.0, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0}


def parse_duration_to_seconds(raw: Optional[Any]) -> Optional[float]:
    """Seconds for '45', '0.5', '10m', '2h' or '1d'; None for None or blank."""
    if raw is None:
        return None
    if isinstance(raw, (int, float)):
        seconds = float(raw)
    else:
        text = str(raw)
        if not text.strip():
            return None
        match = _DURATION_RE.match(text)
        if match is None:
            raise argparse.ArgumentTypeError(f"Invalid duration '{raw}' (use e.g. 30, 10m, 2h)")
        seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2).lower()]
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"Duration must be non-negative: '{raw}'")
    return seconds
