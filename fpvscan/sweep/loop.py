"""Background scan loop tying device, sampler, baseline and detection together."""

from __future__ import annotations

import math
import queue
import threading
import time
from collections import deque
from concurrent.futures import CancelledError, Future, TimeoutError as FutureTimeout
from dataclasses import replace
from typing import Deque, List, Optional, Tuple, Union

from fpvscan.baseline.tracker import BaselineTracker
from fpvscan.detection.engine import DetectionEngine
from fpvscan.detection.types import DetectionEvent, PowerReading
from fpvscan.drivers.base import DeviceHandle
from fpvscan.drivers.errors import DeviceError
from fpvscan.drivers.gain import GainController, GainSettings
from fpvscan.dsp.power import PowerSampler, SampleSpec
from fpvscan.io.bandplan import BandMode, BandPlan
from fpvscan.io.profiles import ScanProfile, resolve_profile
from fpvscan.sweep.state import ScanControls, ScanState
from fpvscan.util.logging import get_logger, log_exception
from fpvscan.util.scan_logger import ScanLogger

logger = get_logger(__name__)

_Request = Tuple[SampleSpec, "Future[PowerReading]"]


def _failed_reading(spec: SampleSpec) -> PowerReading:
    return PowerReading(spec.frequency_hz, float("-inf"), time.time())


class ScanLoop:
    """Own the device and run the sweep on one dedicated thread.

    Callers interact only through the thread-safe surface: ``start``,
    ``stop``, ``snapshot``, the setters, ``measure_once`` and
    ``drain_events``. The device, gain controller, tracker and engine are
    touched from the scan thread only while a scan is running.
    """

    def __init__(
        self,
        device: DeviceHandle,
        *,
        profile: Optional[ScanProfile] = None,
        band_plan: Optional[BandPlan] = None,
        sampler: Optional[PowerSampler] = None,
        tracker: Optional[BaselineTracker] = None,
        engine: Optional[DetectionEngine] = None,
        gain_controller: Optional[GainController] = None,
        scan_logger: Optional[ScanLogger] = None,
    ) -> None:
        self.profile = profile or resolve_profile(None)
        p = self.profile
        self.device = device
        self.band_plan = band_plan or BandPlan()
        self.sampler = sampler or PowerSampler(
            min_power_db=p.min_power_db,
            settle_samples=p.settle_samples,
            spectrum_bins=p.spectrum_bins,
        )
        self.tracker = tracker or BaselineTracker(alpha=p.ema_alpha, default_db=p.default_baseline_db)
        self.engine = engine or DetectionEngine(p.ratio_threshold_db, cooldown_s=p.cooldown_s)
        self.gain_controller = gain_controller or GainController()
        self.scan_logger = scan_logger
        self.warmup_visits = max(1, int(p.warmup_visits))
        self.gate_baseline = bool(p.gate_baseline)

        self._controls = ScanControls(
            band_mode=BandMode.from_index(p.band_mode),
            gain=GainSettings(p.lna_gain_db, p.vga_gain_db, p.amp_enabled).clamped(),
            ratio_threshold_db=float(p.ratio_threshold_db),
            dwell_s=max(0.0, float(p.dwell_s)),
        )
        self._controls_lock = threading.Lock()
        self._state = ScanState(band_mode=self._controls.band_mode)
        self._state_lock = threading.Lock()
        self._events: Deque[DetectionEvent] = deque(maxlen=max(1, int(p.event_queue_size)))
        self._requests: "queue.Queue[_Request]" = queue.Queue()
        self._stop_event = threading.Event()
        self._reset_baseline = threading.Event()
        self._lifecycle = threading.RLock()
        self._thread: Optional[threading.Thread] = None
        self._session = 0
        # Gain the learned floors were measured at; survives controller resets.
        self._baseline_gain: Optional[GainSettings] = None

    # ------------------------------------------------------------------
    # Caller-side surface
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the device and start scanning; no-op if already running.

        Raises DeviceError when the device cannot be opened, leaving the loop
        stopped and ready for another attempt.
        """
        with self._lifecycle:
            thread = self._thread
            if thread is not None and thread.is_alive():
                if not self._stop_event.is_set():
                    return
                thread.join()
            self._thread = None
            try:
                self.device.open()
            except DeviceError as exc:
                logger.warning("Device open failed: %s", exc, extra={"device": self.device.name, "error_type": exc.kind})
                self._publish(is_device_connected=False, last_error=str(exc))
                raise
            self.gain_controller.reset()
            self.engine.arm()
            self._stop_event.clear()
            self._session += 1
            controls = self.controls()
            self._publish(
                is_device_connected=True,
                is_scanning=True,
                session=self._session,
                band_mode=controls.band_mode,
                last_error=None,
            )
            if self.scan_logger:
                self.scan_logger.start_session(
                    self._session,
                    device=self.device.name,
                    band_mode=controls.band_mode.label,
                    gain=controls.gain.as_dict(),
                    ratio_threshold_db=controls.ratio_threshold_db,
                    profile=self.profile.name,
                )
            logger.info(
                "Scan started session=%d band=%s ratio=%.1f dB",
                self._session,
                controls.band_mode.label,
                controls.ratio_threshold_db,
                extra={"device": self.device.name},
            )
            self._thread = threading.Thread(target=self._run, name="fpvscan-loop", daemon=True)
            self._thread.start()

    def stop(self, wait: bool = True, timeout: Optional[float] = None) -> None:
        """Ask the scan thread to exit after its in-flight iteration.

        ``is_scanning`` turns False only once the thread has finished that
        iteration and released the device.
        """
        with self._lifecycle:
            self._stop_event.set()
            thread = self._thread
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop scanning and release the device, including after an idle measurement."""
        self.stop(wait=True, timeout=timeout)
        with self._lifecycle:
            thread = self._thread
            if thread is not None and thread.is_alive():
                return
            self.device.close()
            self._publish(is_device_connected=False)

    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def snapshot(self) -> ScanState:
        with self._state_lock:
            return self._state

    def controls(self) -> ScanControls:
        with self._controls_lock:
            return self._controls

    def set_band_mode(self, mode: Union[BandMode, int]) -> None:
        band = BandMode.from_index(int(mode))
        with self._controls_lock:
            self._controls = replace(self._controls, band_mode=band)

    def set_gain(self, settings: GainSettings) -> None:
        clamped = settings.clamped()
        with self._controls_lock:
            self._controls = replace(self._controls, gain=clamped)

    def set_detection_ratio(self, value: float) -> None:
        ratio = float(value)
        if not math.isfinite(ratio):
            raise ValueError(f"detection ratio must be finite, got {value!r}")
        with self._controls_lock:
            self._controls = replace(self._controls, ratio_threshold_db=ratio)

    def set_dwell(self, seconds: float) -> None:
        with self._controls_lock:
            self._controls = replace(self._controls, dwell_s=max(0.0, float(seconds)))

    def reset_baseline(self) -> None:
        """Discard every learned noise floor; warm-up starts over."""
        with self._lifecycle:
            thread = self._thread
            if thread is not None and thread.is_alive():
                if not self._stop_event.is_set():
                    self._reset_baseline.set()
                    return
                thread.join()
            self.tracker.reset()
        logger.info("Baseline cleared")

    def drain_events(self, max_events: Optional[int] = None) -> List[DetectionEvent]:
        """Pop queued detection events, oldest first, without blocking."""
        out: List[DetectionEvent] = []
        with self._state_lock:
            while self._events and (max_events is None or len(out) < max_events):
                out.append(self._events.popleft())
        return out

    def measure_once(self, spec: SampleSpec) -> PowerReading:
        """One-shot measurement outside the sweep sequence.

        While scanning, the request is handed to the scan thread so the device
        is never touched from two threads. Otherwise the device is opened here
        and left open. Any failure yields a -inf reading.
        """
        with self._lifecycle:
            thread = self._thread
            if thread is not None and thread.is_alive() and not self._stop_event.is_set():
                future: "Future[PowerReading]" = Future()
                self._requests.put((spec, future))
            else:
                if thread is not None and thread.is_alive():
                    thread.join()
                return self._measure_idle(spec)

        p = self.profile
        timeout = (
            2.0 * self.device.acquisition_timeout_s(spec.sample_count + p.settle_samples, spec.sample_rate_hz)
            + 2.0 * self.device.acquisition_timeout_s(p.sample_count + p.settle_samples, p.sample_rate_hz)
            + self.controls().dwell_s
            + 1.0
        )
        try:
            return future.result(timeout=timeout)
        except (FutureTimeout, CancelledError):
            logger.warning("One-shot measurement at %.3f MHz timed out", spec.frequency_hz / 1e6)
            return _failed_reading(spec)

    def _measure_idle(self, spec: SampleSpec) -> PowerReading:
        try:
            self.device.open()
        except DeviceError as exc:
            logger.warning("Device open failed: %s", exc, extra={"device": self.device.name, "error_type": exc.kind})
            self._publish(is_device_connected=False, last_error=str(exc))
            return _failed_reading(spec)
        self._publish(is_device_connected=True)
        self._apply_gain(self.controls().gain)
        return self.sampler.measure_power(spec, self.device)

    # ------------------------------------------------------------------
    # Scan thread
    # ------------------------------------------------------------------

    def _publish(self, event: Optional[DetectionEvent] = None, **changes) -> None:
        with self._state_lock:
            if event is not None:
                self._events.append(event)
                changes["last_detection"] = event
            self._state = replace(self._state, **changes)

    def _apply_gain(self, gain: GainSettings) -> None:
        try:
            applied = self.gain_controller.apply(gain, self.device)
        except DeviceError as exc:
            logger.warning("Gain update failed: %s", exc, extra={"device": self.device.name, "error_type": exc.kind})
            return
        reference = self._baseline_gain
        if reference is not None and applied.total_db != reference.total_db:
            # Keep floors comparable with readings taken at the new gain.
            delta = applied.total_db - reference.total_db
            self.tracker.shift(delta)
            logger.debug("Baseline shifted by %+.1f dB for new gain", delta)
        self._baseline_gain = applied

    def _service_requests(self) -> None:
        while True:
            try:
                spec, future = self._requests.get_nowait()
            except queue.Empty:
                return
            if not future.set_running_or_notify_cancel():
                continue
            future.set_result(self.sampler.measure_power(spec, self.device))

    def _fail_pending_requests(self) -> None:
        while True:
            try:
                spec, future = self._requests.get_nowait()
            except queue.Empty:
                return
            if future.set_running_or_notify_cancel():
                future.set_result(_failed_reading(spec))

    def _process(self, reading: PowerReading) -> Optional[DetectionEvent]:
        if not reading.ok:
            return None
        freq = reading.frequency_hz
        baseline_db = self.tracker.baseline_for(freq)
        warm = self.tracker.observations(freq) >= self.warmup_visits
        event = self.engine.evaluate(reading, baseline_db) if warm else None
        above = warm and (reading.power_db - baseline_db) >= self.engine.ratio_threshold_db
        if not (self.gate_baseline and above):
            self.tracker.observe(freq, reading.power_db)
        return event

    def _reconnect(self) -> bool:
        self.device.close()
        try:
            self.device.open()
        except DeviceError as exc:
            self._publish(is_device_connected=False, last_error=str(exc))
            logger.debug("Reconnect failed: %s", exc, extra={"device": self.device.name})
            return False
        self.gain_controller.reset()
        self._publish(is_device_connected=True, last_error=None)
        logger.info("Device reconnected", extra={"device": self.device.name})
        return True

    def _run(self) -> None:
        p = self.profile
        mode: Optional[BandMode] = None
        frequencies: Tuple[int, ...] = ()
        index = 0
        failures = 0
        connected = True
        iterations = 0
        cycles = 0
        cycle_started = time.monotonic()
        try:
            while not self._stop_event.is_set():
                controls = self.controls()
                if controls.band_mode != mode:
                    mode = controls.band_mode
                    frequencies = self.band_plan.frequencies_for(mode)
                    index = 0
                    logger.info("Band %s: %d frequencies", mode.label, len(frequencies))
                    cycle_started = time.monotonic()
                if controls.ratio_threshold_db != self.engine.ratio_threshold_db:
                    self.engine.set_ratio_threshold(controls.ratio_threshold_db)
                if self._reset_baseline.is_set():
                    self._reset_baseline.clear()
                    self.tracker.reset()
                    logger.info("Baseline cleared")

                if not connected:
                    connected = self._reconnect()
                    if not connected:
                        self._stop_event.wait(p.reconnect_interval_s)
                        continue

                self._service_requests()
                if not frequencies:
                    self._stop_event.wait(max(controls.dwell_s, 0.1))
                    continue

                freq = frequencies[index]
                self._apply_gain(controls.gain)
                spec = SampleSpec(freq, p.sample_rate_hz, p.sample_count)
                reading = self.sampler.measure_power(spec, self.device)
                event = self._process(reading)

                index += 1
                if index >= len(frequencies):
                    index = 0
                    cycles += 1
                    now = time.monotonic()
                    self.engine.set_cycle_period(now - cycle_started)
                    cycle_started = now
                iterations += 1
                failures = 0 if reading.ok else failures + 1
                if failures >= p.max_consecutive_failures:
                    failures = 0
                    connected = self.device.is_connected()
                    if not connected:
                        logger.warning("Device lost after repeated failures", extra={"device": self.device.name})

                self._publish(
                    event,
                    is_device_connected=connected,
                    current_frequency_hz=freq,
                    band_mode=mode,
                    last_reading=reading,
                    iterations=iterations,
                    cycles=cycles,
                )
                if event is not None and self.scan_logger:
                    self.scan_logger.log("detection", **event.as_dict())

                if controls.dwell_s > 0:
                    self._stop_event.wait(controls.dwell_s)
        except Exception as exc:
            log_exception(logger, "Scan loop crashed", error_type="scan_loop", device=self.device.name)
            self._publish(last_error=f"{type(exc).__name__}: {exc}")
        finally:
            self.engine.disarm()
            self.device.close()
            self._fail_pending_requests()
            self._publish(is_scanning=False, is_device_connected=False)
            if self.scan_logger:
                self.scan_logger.log("scan_stop", iterations=iterations, cycles=cycles)
            logger.info("Scan stopped after %d iterations (%d cycles)", iterations, cycles)
