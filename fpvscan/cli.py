#!/usr/bin/env python3
"""fpvscan scanner CLI entrypoint."""

from __future__ import annotations

import argparse
import json
import math
import os
import sys
import time
from typing import Any, Dict, List, Optional, Set

from fpvscan.backend import ScannerBackend, create_backend
from fpvscan.drivers import DRIVERS, HAVE_SOAPY
from fpvscan.io.bandplan import BandMode
from fpvscan.io.profiles import ScanProfile, resolve_profile, serialize_profiles
from fpvscan.util.duration import parse_duration_to_seconds
from fpvscan.util.exit_codes import ExitCode
from fpvscan.util.logging import configure_logging

# CLI attribute -> ScanProfile field
_PROFILE_FLAGS = {
    "band": "band_mode",
    "ratio": "ratio_threshold_db",
    "lna": "lna_gain_db",
    "vga": "vga_gain_db",
    "amp": "amp_enabled",
    "samp_rate": "sample_rate_hz",
    "sample_count": "sample_count",
    "alpha": "ema_alpha",
    "cooldown": "cooldown_s",
    "dwell": "dwell_s",
    "warmup": "warmup_visits",
}


def run(args: argparse.Namespace) -> int:
    """Top-level CLI dispatcher; returns a process exit code."""
    if getattr(args, "list_profiles", False):
        _emit_profiles_json()
        return ExitCode.SUCCESS

    configure_logging(level=args.log_level, json_file=args.log_json)
    backend = create_backend(
        args.scan_profile,
        driver=args.driver,
        bandplan_csv=args.bandplan,
        jsonl=args.jsonl,
        **_driver_kwargs(args),
    )
    if args.measure is not None:
        return _run_measure(backend, args)
    return _run_scan(backend, args)


def _driver_kwargs(args: argparse.Namespace) -> Dict[str, Any]:
    if args.driver == "sim":
        carriers = {hz: db for hz, db in args.sim_carrier}
        return {"noise_floor_db": args.sim_noise_db, "carriers": carriers, "seed": args.sim_seed}
    soapy_args: Dict[str, str] = {}
    if args.soapy_args:
        for kv in str(args.soapy_args).split(","):
            if "=" in kv:
                k, v = kv.split("=", 1)
                soapy_args[k.strip()] = v.strip()
    return {"soapy_args": soapy_args}


def _run_measure(backend: ScannerBackend, args: argparse.Namespace) -> int:
    profile: ScanProfile = args.scan_profile
    try:
        power_db = backend.measure_power(int(args.measure), profile.sample_rate_hz, profile.sample_count)
    finally:
        backend.shutdown()
    if math.isinf(power_db):
        print(f"[measure] {args.measure / 1e6:.3f} MHz: no reading ({backend.last_error() or 'acquisition failed'})", file=sys.stderr)
        return ExitCode.DEVICE_UNAVAILABLE
    print(f"[measure] {args.measure / 1e6:.3f} MHz: {power_db:.1f} dB", flush=True)
    return ExitCode.SUCCESS


def _run_scan(backend: ScannerBackend, args: argparse.Namespace) -> int:
    if not backend.start_scan():
        print(f"[scan] unable to start: {backend.last_error()}", file=sys.stderr)
        return ExitCode.DEVICE_UNAVAILABLE

    profile: ScanProfile = args.scan_profile
    band = BandMode.from_index(profile.band_mode)
    plan = backend.loop.band_plan
    print(
        f"[scan] begin driver={args.driver} profile={profile.name} band={band.label} "
        f"channels={len(plan.channels_for(band))} ratio={profile.ratio_threshold_db:.1f} dB "
        f"lna={profile.lna_gain_db} vga={profile.vga_gain_db} amp={'on' if profile.amp_enabled else 'off'}",
        flush=True,
    )
    duration_s = parse_duration_to_seconds(args.duration)
    start_time = time.time()
    last_cycles = 0
    try:
        while True:
            time.sleep(args.poll)
            for event in backend.drain_events():
                print(f"[detect] {plan.label_for(event.frequency_hz)} {event.describe()}", flush=True)
            state = backend.snapshot()
            if state.cycles != last_cycles:
                last_cycles = state.cycles
                power = state.last_reading.power_db if state.last_reading else float("-inf")
                print(
                    f"[scan] cycle={state.cycles} iterations={state.iterations} "
                    f"connected={1 if state.is_device_connected else 0} last_db={power:.1f}",
                    flush=True,
                )
            if not state.is_scanning:
                print(f"[scan] {ExitCode.message(ExitCode.SCAN_ABORTED)}: {state.last_error or 'scan thread exited'}", file=sys.stderr)
                return ExitCode.SCAN_ABORTED
            if duration_s is not None and (time.time() - start_time) >= duration_s:
                break
    except KeyboardInterrupt:
        pass
    finally:
        backend.shutdown()
    print(f"[scan] end cycles={backend.snapshot().cycles}", flush=True)
    return ExitCode.SUCCESS


def _parse_carrier(text: str):
    try:
        freq, power = text.split(":", 1)
        return int(float(freq)), float(power)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected FREQ_HZ:POWER_DB, got '{text}'") from exc


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    p = argparse.ArgumentParser(
        description="FPV video-link scanner for HackRF (SoapySDR) or a simulated front end",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("--driver", choices=list(DRIVERS), help="Device driver (default hackrf)")
    p.add_argument("--soapy-args", dest="soapy_args", type=str, help="Comma-separated Soapy device args (e.g., 'serial=0000000000000000abcd')")
    p.add_argument("--profile", type=str, help="Scan profile name (see --list-profiles; default fpv_default)")
    p.add_argument("--list-profiles", dest="list_profiles", action="store_true", help="Print built-in scan profiles as JSON and exit")
    p.add_argument("--bandplan", type=str, help="Optional channel table CSV (mode,frequency_hz,label)")

    p.add_argument("--band", type=int, choices=[int(m) for m in BandMode], help="Band selector: 0=Auto 1=1.2 2=2.4 3=3.3 4=5.8 GHz")
    p.add_argument("--ratio", type=float, help="Detection ratio above the noise floor [dB]")
    p.add_argument("--lna", type=int, help="LNA gain [dB], 0-40 in 8 dB steps")
    p.add_argument("--vga", type=int, help="VGA gain [dB], 0-62 in 2 dB steps")
    p.add_argument("--amp", dest="amp", action="store_true", help="Enable the front-end amplifier")
    p.add_argument("--no-amp", dest="amp", action="store_false", help="Disable the front-end amplifier")
    p.add_argument("--samp-rate", dest="samp_rate", type=int, help="Sample rate [Hz]")
    p.add_argument("--sample-count", dest="sample_count", type=int, help="IQ samples per power reading")
    p.add_argument("--alpha", type=float, help="Baseline EMA smoothing factor (0-1]")
    p.add_argument("--cooldown", type=float, help="Seconds before the same channel may alert again")
    p.add_argument("--dwell", type=float, help="Pause after each reading [s]")
    p.add_argument("--warmup", type=int, help="Readings per channel before detection is enabled")

    p.add_argument("--measure", type=float, help="One-shot power measurement at this frequency [Hz], then exit")
    p.add_argument("--duration", type=str, help="Scan for a duration (e.g., '300', '10m', '2h'); default until Ctrl-C")
    p.add_argument("--poll", type=float, help="Status poll interval [s] (default 0.5)")
    p.add_argument("--jsonl", type=str, help="Append scan events as JSON lines to this path")
    p.add_argument("--log-level", dest="log_level", type=str, help="DEBUG, INFO, WARNING or ERROR")
    p.add_argument("--log-json", dest="log_json", type=str, help="Also write JSON log records to this file")

    p.add_argument("--sim-carrier", dest="sim_carrier", type=_parse_carrier, action="append", help="Simulated carrier FREQ_HZ:POWER_DB (repeatable, --driver sim)")
    p.add_argument("--sim-noise-db", dest="sim_noise_db", type=float, help="Simulated noise floor [dB] (default -90)")
    p.add_argument("--sim-seed", dest="sim_seed", type=int, help="Random seed for the simulated device")

    args = p.parse_args(argv)
    overrides: Set[str] = set()

    _set_default(args, overrides, "driver", "hackrf")
    _set_default(args, overrides, "soapy_args", None)
    _set_default(args, overrides, "profile", None)
    _set_default(args, overrides, "list_profiles", False)
    _set_default(args, overrides, "bandplan", None)
    for attr in _PROFILE_FLAGS:
        _set_default(args, overrides, attr, None)
    _set_default(args, overrides, "measure", None)
    _set_default(args, overrides, "duration", None)
    _set_default(args, overrides, "poll", 0.5)
    _set_default(args, overrides, "jsonl", None)
    _set_default(args, overrides, "log_level", None)
    _set_default(args, overrides, "log_json", None)
    _set_default(args, overrides, "sim_carrier", [])
    _set_default(args, overrides, "sim_noise_db", -90.0)
    _set_default(args, overrides, "sim_seed", None)

    if args.list_profiles:
        return args

    try:
        base = resolve_profile(args.profile)
    except KeyError:
        p.error(f"Unknown scan profile '{args.profile}'. Use --list-profiles to inspect options.")
    args.scan_profile = base.with_overrides(**{field: getattr(args, attr) for attr, field in _PROFILE_FLAGS.items()})

    if args.bandplan and not os.path.exists(args.bandplan):
        p.error(f"--bandplan file not found: {args.bandplan}")
    if args.driver == "hackrf" and not HAVE_SOAPY:
        p.error("SoapySDR Python bindings not installed (e.g. apt install python3-soapysdr soapysdr-module-hackrf), or use --driver sim.")
    if args.driver != "sim" and (args.sim_carrier or "sim_noise_db" in overrides):
        p.error("--sim-* options require --driver sim")
    if args.poll <= 0:
        p.error("--poll must be > 0")
    if args.measure is not None and not (math.isfinite(args.measure) and args.measure > 0):
        p.error("--measure must be a positive frequency in Hz")
    prof = args.scan_profile
    if prof.sample_count <= 0 or prof.sample_rate_hz <= 0:
        p.error("--samp-rate and --sample-count must be > 0")
    if not 0.0 < prof.ema_alpha <= 1.0:
        p.error("--alpha must be in (0, 1]")

    if args.duration:
        try:
            parse_duration_to_seconds(args.duration)
        except argparse.ArgumentTypeError as exc:
            p.error(str(exc))

    return args


def _set_default(args: argparse.Namespace, overrides: Set[str], attr: str, value: Any) -> None:
    if hasattr(args, attr):
        overrides.add(attr)
    else:
        setattr(args, attr, value)


def _emit_profiles_json() -> None:
    payload = serialize_profiles()
    print(json.dumps(payload, indent=2, sort_keys=True))


def main(argv: Optional[List[str]] = None) -> None:
    sys.exit(run(parse_args(argv)))


if __name__ == "__main__":
    main()
