"""
Debug and observability API blueprint for fpvscan Web.

Provides error tracking and a view of the active scan configuration.
"""
from __future__ import annotations

import os
from dataclasses import asdict
from typing import Any, Dict

from flask import Blueprint, jsonify, request

from fpvscan_web import config
from fpvscan_web.app import error_ring, get_backend, recent_errors
from fpvscan_web.auth import require_auth

bp = Blueprint("api_debug", __name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


@bp.get("/api/debug/errors")
def api_debug_errors():
    """Recent captured errors from the ring buffer."""
    require_auth()

    limit = request.args.get("limit", type=int) or 50
    limit = max(1, min(limit, config.ERROR_RING_MAX))
    return jsonify({"errors": recent_errors(limit), "total_captured": len(error_ring())})


@bp.delete("/api/debug/errors")
def api_debug_errors_clear():
    require_auth()
    error_ring().clear()
    return jsonify({"ok": True})


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@bp.get("/api/debug/config")
def api_debug_config():
    """Runtime configuration: environment switches and the active scan profile."""
    require_auth()
    loop = get_backend().loop

    payload: Dict[str, Any] = {
        "env": {
            "FPVSCAN_TOKEN": "***" if config.API_TOKEN else "(not set)",
            "FPVSCAN_DEBUG": os.environ.get("FPVSCAN_DEBUG", "(not set)"),
            "FPVSCAN_LOG_LEVEL": os.environ.get("FPVSCAN_LOG_LEVEL", "(not set)"),
        },
        "constants": {
            "ERROR_RING_MAX": config.ERROR_RING_MAX,
            "DETECTIONS_DRAIN_LIMIT": config.DETECTIONS_DRAIN_LIMIT,
            "MEASURE_MAX_SAMPLES": config.MEASURE_MAX_SAMPLES,
        },
        "device": loop.device.name,
        "profile": asdict(loop.profile),
    }
    return jsonify(payload)
