import json
import math
import time
from pathlib import Path

import pytest

from fpvscan.detection.types import PowerReading
from fpvscan.drivers.errors import DeviceNotFoundError
from fpvscan.drivers.gain import GainSettings
from fpvscan.drivers.simulated import SimulatedDevice
from fpvscan.dsp.power import SampleSpec
from fpvscan.io.bandplan import BandMode, BandPlan
from fpvscan.io.profiles import ScanProfile
from fpvscan.sweep.loop import ScanLoop
from fpvscan.util.scan_logger import ScanLogger

R5_HZ = 5_806_000_000


def _profile(**overrides) -> ScanProfile:
    values = dict(
        name="test",
        sample_count=4096,
        settle_samples=0,
        spectrum_bins=8,
        warmup_visits=2,
        cooldown_s=3600.0,
        band_mode=int(BandMode.BAND_5_8GHZ),
        max_consecutive_failures=2,
        reconnect_interval_s=0.05,
    )
    values.update(overrides)
    return ScanProfile(**values)


def _loop(device: SimulatedDevice, **overrides) -> ScanLoop:
    return ScanLoop(device, profile=_profile(**overrides), band_plan=BandPlan())


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_start_and_stop_releases_device() -> None:
    dev = SimulatedDevice(seed=1)
    loop = _loop(dev)
    loop.start()
    try:
        assert loop.snapshot().is_scanning
        assert loop.snapshot().is_device_connected
        assert _wait_until(lambda: loop.snapshot().iterations >= 3)
    finally:
        loop.stop()
    state = loop.snapshot()
    assert not state.is_scanning
    assert not state.is_device_connected
    assert dev.close_count == 1
    assert not loop.is_running()


def test_start_is_idempotent_while_running() -> None:
    dev = SimulatedDevice(seed=1)
    loop = _loop(dev)
    loop.start()
    try:
        loop.start()
        assert dev.open_count == 1
        assert loop.snapshot().session == 1
    finally:
        loop.stop()


def test_start_failure_reports_error_and_allows_retry() -> None:
    dev = SimulatedDevice(present=False)
    loop = _loop(dev)
    with pytest.raises(DeviceNotFoundError):
        loop.start()
    state = loop.snapshot()
    assert not state.is_scanning
    assert state.last_error.startswith("NotFound")

    dev.replug()
    loop.start()
    try:
        assert loop.snapshot().is_scanning
        assert loop.snapshot().last_error is None
    finally:
        loop.stop()


def test_carrier_appearing_after_warmup_is_detected() -> None:
    # Keep the carrier key present from the start so the dict never resizes.
    dev = SimulatedDevice(noise_floor_db=-90.0, carriers={R5_HZ: -200.0}, seed=3)
    loop = _loop(dev)
    loop.start()
    try:
        assert _wait_until(lambda: loop.snapshot().cycles >= 3)
        assert loop.snapshot().last_detection is None
        dev.set_carrier(R5_HZ, -50.0)
        assert _wait_until(lambda: loop.snapshot().last_detection is not None)
    finally:
        loop.stop()
    event = loop.snapshot().last_detection
    assert event.frequency_hz == R5_HZ
    assert event.power_db == pytest.approx(-50.0, abs=1.0)
    assert event.ratio_observed >= 6.0
    events = loop.drain_events()
    assert [e.frequency_hz for e in events] == [R5_HZ]
    assert loop.drain_events() == []
    # Readings above the threshold are kept out of the floor.
    assert loop.tracker.baseline_for(R5_HZ) < -80.0


def test_stop_waits_for_in_flight_acquisition() -> None:
    dev = SimulatedDevice(acquire_delay_s=0.3, seed=1)
    loop = _loop(dev)
    loop.start()
    assert _wait_until(lambda: dev.acquire_count >= 1)
    loop.stop(wait=False)
    assert loop.snapshot().is_scanning
    loop.stop(wait=True)
    assert not loop.snapshot().is_scanning
    assert dev.close_count == 1


def test_band_change_takes_effect_while_running() -> None:
    dev = SimulatedDevice(seed=1)
    loop = _loop(dev)
    plan_24 = set(BandPlan().frequencies_for(BandMode.BAND_2_4GHZ))
    loop.start()
    try:
        assert _wait_until(lambda: loop.snapshot().iterations >= 1)
        loop.set_band_mode(2)
        assert _wait_until(lambda: loop.snapshot().current_frequency_hz in plan_24)
        assert loop.snapshot().band_mode is BandMode.BAND_2_4GHZ
    finally:
        loop.stop()


def test_band_mode_index_is_clamped() -> None:
    loop = _loop(SimulatedDevice())
    loop.set_band_mode(9)
    assert loop.controls().band_mode is BandMode.BAND_5_8GHZ
    loop.set_band_mode(-1)
    assert loop.controls().band_mode is BandMode.AUTO


def test_gain_change_reaches_device() -> None:
    dev = SimulatedDevice(seed=1)
    loop = _loop(dev)
    loop.start()
    try:
        loop.set_gain(GainSettings(40, 62, False))
        assert _wait_until(lambda: ("LNA", 40) in dev.gain_writes)
        assert _wait_until(lambda: ("AMP", False) in dev.gain_writes)
    finally:
        loop.stop()
    assert loop.controls().gain == GainSettings(40, 62, False)


def test_gain_change_shifts_baseline() -> None:
    dev = SimulatedDevice(seed=1)
    dev.open()
    loop = _loop(dev)
    loop._apply_gain(GainSettings(24, 20, True))
    loop.tracker.observe(R5_HZ, -90.0)
    loop._apply_gain(GainSettings(32, 20, True))
    assert loop.tracker.baseline_for(R5_HZ) == pytest.approx(-82.0)


def test_ratio_setter_validates() -> None:
    loop = _loop(SimulatedDevice())
    loop.set_detection_ratio(9.5)
    assert loop.controls().ratio_threshold_db == 9.5
    with pytest.raises(ValueError):
        loop.set_detection_ratio(float("nan"))


def test_process_gates_baseline_and_honours_warmup() -> None:
    loop = _loop(SimulatedDevice())
    loop.engine.arm()
    loop.tracker.observe(R5_HZ, -90.0)
    # One visit is below the warm-up count: no event, reading folds in.
    assert loop._process(PowerReading(R5_HZ, -60.0, time.time())) is None
    assert loop.tracker.observations(R5_HZ) == 2

    floor = loop.tracker.baseline_for(R5_HZ)
    event = loop._process(PowerReading(R5_HZ, floor + 20.0, time.time()))
    assert event is not None
    assert loop.tracker.observations(R5_HZ) == 2
    assert loop.tracker.baseline_for(R5_HZ) == floor


def test_measure_once_when_idle_opens_device() -> None:
    dev = SimulatedDevice(noise_floor_db=-90.0, seed=1)
    loop = _loop(dev)
    reading = loop.measure_once(SampleSpec(2_450_000_000, 2_000_000, 4096))
    assert reading.ok
    assert reading.power_db == pytest.approx(-90.0, abs=1.0)
    assert dev.is_connected()
    assert loop.snapshot().is_device_connected
    loop.close()
    assert not dev.is_connected()


def test_measure_once_when_idle_without_device() -> None:
    loop = _loop(SimulatedDevice(present=False))
    reading = loop.measure_once(SampleSpec(2_450_000_000))
    assert math.isinf(reading.power_db)


def test_measure_once_while_scanning_runs_on_scan_thread() -> None:
    dev = SimulatedDevice(seed=1)
    loop = _loop(dev)
    loop.start()
    try:
        reading = loop.measure_once(SampleSpec(2_450_000_000, 2_000_000, 4096))
    finally:
        loop.stop()
    assert reading.ok
    assert 2_450_000_000 in dev.tuned


def test_reconnects_after_unplug() -> None:
    dev = SimulatedDevice(seed=1)
    loop = _loop(dev)
    loop.start()
    try:
        assert _wait_until(lambda: loop.snapshot().iterations >= 1)
        dev.unplug()
        assert _wait_until(lambda: not loop.snapshot().is_device_connected)
        assert loop.snapshot().is_scanning
        dev.replug()
        assert _wait_until(lambda: loop.snapshot().is_device_connected and dev.open_count >= 2)
        before = loop.snapshot().iterations
        assert _wait_until(lambda: loop.snapshot().iterations > before)
    finally:
        loop.stop()


def test_baseline_survives_restart_and_session_increments(tmp_path: Path) -> None:
    dev = SimulatedDevice(seed=1)
    log_path = tmp_path / "scan.jsonl"
    loop = ScanLoop(dev, profile=_profile(), scan_logger=ScanLogger.from_path(str(log_path)))
    loop.start()
    assert _wait_until(lambda: loop.snapshot().cycles >= 1)
    loop.stop()
    tracked = len(loop.tracker)
    assert tracked == len(BandPlan().frequencies_for(BandMode.BAND_5_8GHZ))

    loop.start()
    try:
        assert loop.snapshot().session == 2
        assert len(loop.tracker) == tracked
    finally:
        loop.stop()

    events = [json.loads(line)["event"] for line in log_path.read_text(encoding="utf-8").splitlines()]
    assert events == ["scan_start", "scan_stop", "scan_start", "scan_stop"]


def test_reset_baseline_when_idle_and_running() -> None:
    dev = SimulatedDevice(seed=1)
    loop = _loop(dev)
    loop.tracker.observe(R5_HZ, -90.0)
    loop.reset_baseline()
    assert len(loop.tracker) == 0

    loop.set_dwell(0.05)
    loop.start()
    try:
        assert _wait_until(lambda: loop.snapshot().cycles >= 2)
        loop.reset_baseline()
        # The scan thread clears the floors at its next iteration and re-learns them.
        assert _wait_until(lambda: loop.tracker.observations(R5_HZ) <= 1)
    finally:
        loop.stop()


def test_gain_change_while_stopped_moves_floor_on_restart() -> None:
    dev = SimulatedDevice(noise_floor_db=-90.0, seed=5)
    loop = _loop(dev)
    loop.start()
    try:
        assert _wait_until(lambda: loop.snapshot().cycles >= 3)
    finally:
        loop.stop()
    assert loop.tracker.baseline_for(R5_HZ) == pytest.approx(-90.0, abs=1.0)

    # 40 + 40 + 14 dB against the default 24 + 20 + 14 dB.
    loop.set_gain(GainSettings(40, 40, True))
    visits = dev.acquire_count
    loop.start()
    try:
        assert _wait_until(lambda: dev.acquire_count >= visits + 16)
    finally:
        loop.stop()
    assert loop.snapshot().last_detection is None
    assert loop.drain_events() == []
    assert loop.tracker.baseline_for(R5_HZ) == pytest.approx(-54.0, abs=1.5)


def test_persistent_carrier_longer_than_cooldown_cycle_emits_once() -> None:
    dev = SimulatedDevice(noise_floor_db=-90.0, carriers={R5_HZ: -200.0}, seed=3)
    # Eight channels at 20 ms dwell make each cycle longer than the cool-down.
    loop = _loop(dev, cooldown_s=0.05, dwell_s=0.02)
    loop.start()
    try:
        assert _wait_until(lambda: loop.snapshot().cycles >= 3)
        dev.set_carrier(R5_HZ, -50.0)
        assert _wait_until(lambda: loop.snapshot().last_detection is not None)
        seen = loop.snapshot().cycles
        assert _wait_until(lambda: loop.snapshot().cycles >= seen + 4)
    finally:
        loop.stop()
    assert [e.frequency_hz for e in loop.drain_events()] == [R5_HZ]
    assert loop.engine.triggers_coalesced >= 3
