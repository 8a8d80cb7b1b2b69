"""Detection state machine: power vs. baseline ratio with per-frequency debounce."""

from __future__ import annotations

import enum
import time
from typing import Callable, Dict, Optional

from fpvscan.detection.types import DetectionEvent, PowerReading
from fpvscan.util.logging import get_logger

logger = get_logger(__name__)

# Window in scan cycles; a persistent carrier re-triggers once per cycle.
CYCLE_MARGIN = 2.0


class DetectorState(enum.Enum):
    IDLE = "idle"
    ARMED = "armed"
    TRIGGERED = "triggered"


class DetectionEngine:
    """Compare readings against their baseline and emit debounced events.

    States: IDLE -> ARMED -> TRIGGERED -> ARMED. TRIGGERED only exists for the
    duration of the evaluation that emits an event. IDLE means the scan loop
    is stopped; evaluations made while IDLE produce nothing.

    Triggers at a frequency that last triggered less than ``debounce_s`` ago
    are coalesced into the earlier event. ``debounce_s`` is ``cooldown_s``,
    stretched to cover two scan cycles once the loop has reported
    a cycle period. Every trigger, emitted or not, restarts that frequency's
    cool-down, so a transmitter that never goes quiet produces exactly one
    event.
    """

    def __init__(
        self,
        ratio_threshold_db: float = 6.0,
        *,
        cooldown_s: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._threshold_db = float(ratio_threshold_db)
        self.cooldown_s = max(0.0, float(cooldown_s))
        self._clock = clock
        self._state = DetectorState.IDLE
        self._last_trigger: Dict[int, float] = {}
        self._cycle_s = 0.0
        self.events_emitted = 0
        self.triggers_coalesced = 0

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def ratio_threshold_db(self) -> float:
        return self._threshold_db

    def arm(self) -> None:
        if self._state is DetectorState.IDLE:
            self._state = DetectorState.ARMED

    def disarm(self) -> None:
        self._state = DetectorState.IDLE
        self._last_trigger.clear()

    @property
    def debounce_s(self) -> float:
        return max(self.cooldown_s, CYCLE_MARGIN * self._cycle_s)

    def set_ratio_threshold(self, value: float) -> None:
        self._threshold_db = float(value)

    def set_cycle_period(self, seconds: float) -> None:
        """Record how long the last full pass over the band took."""
        self._cycle_s = max(0.0, float(seconds))

    def evaluate(
        self,
        reading: PowerReading,
        baseline_db: float,
        ratio_threshold: Optional[float] = None,
    ) -> Optional[DetectionEvent]:
        if self._state is DetectorState.IDLE or not reading.ok:
            return None
        threshold = self._threshold_db if ratio_threshold is None else float(ratio_threshold)
        ratio = float(reading.power_db) - float(baseline_db)
        if ratio < threshold:
            return None

        self._state = DetectorState.TRIGGERED
        try:
            now = self._clock()
            key = int(reading.frequency_hz)
            previous = self._last_trigger.get(key)
            self._last_trigger[key] = now
            if previous is not None and (now - previous) < self.debounce_s:
                self.triggers_coalesced += 1
                return None
            event = DetectionEvent(
                frequency_hz=key,
                power_db=float(reading.power_db),
                ratio_observed=ratio,
                timestamp=reading.timestamp,
                baseline_db=float(baseline_db),
            )
            self.events_emitted += 1
            logger.info(
                "Detection %s",
                event.describe(),
                extra={"frequency_hz": key, "power_db": event.power_db, "ratio_db": ratio},
            )
            return event
        finally:
            self._state = DetectorState.ARMED
