from fpvscan.detection.engine import DetectionEngine, DetectorState
from fpvscan.detection.types import DetectionEvent, PowerReading


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _reading(freq: int = 5_806_000_000, power: float = -60.0) -> PowerReading:
    return PowerReading(freq, power, 1_700_000_000.0)


def _armed(threshold: float = 6.0, cooldown: float = 3.0):
    clock = _Clock()
    engine = DetectionEngine(threshold, cooldown_s=cooldown, clock=clock)
    engine.arm()
    return engine, clock


def test_idle_engine_never_emits() -> None:
    engine = DetectionEngine(6.0)
    assert engine.state is DetectorState.IDLE
    assert engine.evaluate(_reading(power=-20.0), -90.0) is None


def test_emits_when_ratio_reaches_threshold() -> None:
    engine, _ = _armed(6.0)
    event = engine.evaluate(_reading(power=-84.0), -90.0)
    assert isinstance(event, DetectionEvent)
    assert event.frequency_hz == 5_806_000_000
    assert event.ratio_observed == 6.0
    assert event.baseline_db == -90.0
    assert engine.state is DetectorState.ARMED


def test_ratio_is_power_minus_baseline() -> None:
    engine, clock = _armed(10.0)
    event = engine.evaluate(_reading(power=-70.0), -90.0)
    assert event is not None
    assert event.ratio_observed == 20.0
    clock.now += 60.0
    assert engine.evaluate(_reading(power=-85.0), -90.0) is None
    assert engine.events_emitted == 1


def test_below_threshold_is_silent() -> None:
    engine, _ = _armed(6.0)
    assert engine.evaluate(_reading(power=-84.5), -90.0) is None
    assert engine.events_emitted == 0


def test_failed_reading_is_skipped() -> None:
    engine, _ = _armed(0.0)
    assert engine.evaluate(_reading(power=float("-inf")), -90.0) is None


def test_explicit_threshold_overrides_configured() -> None:
    engine, _ = _armed(6.0)
    assert engine.evaluate(_reading(power=-87.0), -90.0, ratio_threshold=3.0) is not None


def test_cooldown_coalesces_repeated_triggers() -> None:
    engine, clock = _armed(6.0, cooldown=3.0)
    assert engine.evaluate(_reading(), -90.0) is not None
    clock.now += 1.0
    assert engine.evaluate(_reading(), -90.0) is None
    clock.now += 2.5
    # Still within 3 s of the previous trigger: the window slides.
    assert engine.evaluate(_reading(), -90.0) is None
    assert engine.triggers_coalesced == 2
    clock.now += 3.5
    assert engine.evaluate(_reading(), -90.0) is not None
    assert engine.events_emitted == 2


def test_debounce_window_stretches_to_scan_cycle() -> None:
    engine, clock = _armed(6.0, cooldown=3.0)
    assert engine.debounce_s == 3.0
    engine.set_cycle_period(4.0)
    assert engine.debounce_s == 8.0
    assert engine.evaluate(_reading(), -90.0) is not None
    clock.now += 4.0
    # One cycle later the carrier is still on: same transmission.
    assert engine.evaluate(_reading(), -90.0) is None
    engine.set_cycle_period(0.5)
    assert engine.debounce_s == 3.0


def test_cooldown_is_per_frequency() -> None:
    engine, _ = _armed(6.0)
    assert engine.evaluate(_reading(freq=5_806_000_000), -90.0) is not None
    assert engine.evaluate(_reading(freq=5_843_000_000), -90.0) is not None


def test_disarm_clears_debounce() -> None:
    engine, _ = _armed(6.0)
    assert engine.evaluate(_reading(), -90.0) is not None
    engine.disarm()
    assert engine.state is DetectorState.IDLE
    engine.arm()
    assert engine.evaluate(_reading(), -90.0) is not None


def test_event_summary_and_describe() -> None:
    event = DetectionEvent(5_806_000_000, -61.24, 28.76, 0.0, baseline_db=-90.0)
    assert event.summary() == "5806000000,-61.2"
    assert event.describe() == "FREQ=5806.0 MHz; POWER=-61.2 dB; NOISE=-90.0 dB; DELTA_DB=28.8"
