"""
Scanner control API blueprint for fpvscan Web.

One endpoint per backend operation. Status is polled; nothing is pushed.
"""
from __future__ import annotations

import math
from typing import Any, Dict

from flask import Blueprint, abort, jsonify, request

from fpvscan.dsp.power import DEFAULT_SAMPLE_COUNT, DEFAULT_SAMPLE_RATE_HZ
from fpvscan_web import config
from fpvscan_web.app import get_backend
from fpvscan_web.auth import require_auth

bp = Blueprint("api_scan", __name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def json_body() -> Dict[str, Any]:
    """Return the request JSON object, aborting with 400 on anything else."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="expected a JSON object body")
    return payload


def status_payload() -> Dict[str, Any]:
    backend = get_backend()
    payload = backend.snapshot().as_dict()
    controls = backend.loop.controls()
    payload["controls"] = {
        "band_mode": int(controls.band_mode),
        "gain": controls.gain.as_dict(),
        "ratio_threshold_db": controls.ratio_threshold_db,
        "dwell_s": controls.dwell_s,
    }
    return payload


def _number(payload: Dict[str, Any], key: str, cast=float):
    if key not in payload:
        abort(400, description=f"{key} is required")
    try:
        return cast(payload[key])
    except (TypeError, ValueError):
        abort(400, description=f"invalid {key}: {payload[key]!r}")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@bp.post("/api/scan/start")
def api_scan_start():
    require_auth()
    backend = get_backend()
    if not backend.start_scan():
        return jsonify({"started": False, "error": backend.last_error()}), 503
    return jsonify({"started": True, "status": status_payload()})


@bp.post("/api/scan/stop")
def api_scan_stop():
    """Request a stop; the scan thread finishes its in-flight reading first."""
    require_auth()
    get_backend().stop_scan()
    return jsonify({"stopping": True})


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------


@bp.get("/api/status")
def api_status():
    require_auth()
    return jsonify(status_payload())


@bp.get("/api/detection/last")
def api_detection_last():
    """Most recent detection as "frequency_hz,power_db", or null."""
    require_auth()
    return jsonify({"detection": get_backend().get_last_detection()})


@bp.get("/api/detections")
def api_detections():
    """Drain queued detection events, oldest first."""
    require_auth()
    limit = request.args.get("limit", type=int) or config.DETECTIONS_DRAIN_LIMIT
    limit = max(1, min(limit, config.DETECTIONS_DRAIN_LIMIT))
    events = get_backend().drain_events(limit)
    return jsonify({"events": [e.as_dict() for e in events]})


# ---------------------------------------------------------------------------
# Operator settings
# ---------------------------------------------------------------------------


@bp.post("/api/band")
def api_band():
    """Select the band (0=Auto .. 4=5.8 GHz); out-of-range indices are clamped."""
    require_auth()
    mode = _number(json_body(), "mode", int)
    backend = get_backend()
    backend.set_band_mode(mode)
    return jsonify({"band_mode": int(backend.loop.controls().band_mode)})


@bp.post("/api/ratio")
def api_ratio():
    require_auth()
    ratio = _number(json_body(), "ratio", float)
    if not math.isfinite(ratio):
        abort(400, description="ratio must be finite")
    backend = get_backend()
    backend.set_detection_ratio(ratio)
    return jsonify({"ratio_threshold_db": backend.loop.controls().ratio_threshold_db})


@bp.post("/api/gain")
def api_gain():
    """Update gain; omitted fields keep their current value."""
    require_auth()
    payload = json_body()
    backend = get_backend()
    current = backend.loop.controls().gain
    lna = _number(payload, "lna", int) if "lna" in payload else current.lna_gain_db
    vga = _number(payload, "vga", int) if "vga" in payload else current.vga_gain_db
    amp = payload.get("amp", current.amp_enabled)
    if not isinstance(amp, bool):
        abort(400, description="amp must be true or false")
    backend.set_gain(lna, vga, amp)
    return jsonify({"gain": backend.loop.controls().gain.as_dict()})


@bp.post("/api/baseline/reset")
def api_baseline_reset():
    """Forget the learned noise floors, e.g. after relocating the antenna."""
    require_auth()
    get_backend().reset_baseline()
    return jsonify({"ok": True})


# ---------------------------------------------------------------------------
# One-shot measurement
# ---------------------------------------------------------------------------


@bp.get("/api/measure")
def api_measure():
    """Blocking single reading; power_db is null when the acquisition failed."""
    require_auth()
    freq = request.args.get("frequency_hz", type=float)
    if freq is None:
        abort(400, description="frequency_hz is required")
    if not math.isfinite(freq) or freq <= 0:
        abort(400, description="frequency_hz must be a positive finite number")
    rate = request.args.get("sample_rate_hz", type=int) or DEFAULT_SAMPLE_RATE_HZ
    count = request.args.get("sample_count", type=int) or DEFAULT_SAMPLE_COUNT
    if count > config.MEASURE_MAX_SAMPLES:
        abort(400, description=f"sample_count exceeds {config.MEASURE_MAX_SAMPLES}")
    power_db = get_backend().measure_power(int(freq), rate, count)
    return jsonify({
        "frequency_hz": int(freq),
        "sample_rate_hz": rate,
        "sample_count": count,
        "power_db": power_db if math.isfinite(power_db) else None,
    })
