"""
Application factory for fpvscan Web.

Wires together blueprints, the scanner backend, error handling and request
middleware.
"""
from __future__ import annotations

import traceback as tb
from collections import deque
from datetime import datetime, timezone
from time import perf_counter
from typing import Any, Deque, Dict, List

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from fpvscan.backend import ScannerBackend
from fpvscan.util.logging import get_logger
from fpvscan_web.config import ERROR_RING_MAX

logger = get_logger(__name__)


def create_app(backend: ScannerBackend) -> Flask:
    """Create and configure the Flask application around one backend."""
    app = Flask(__name__)

    # ------------------------------------------------------------------
    # App-level state
    # ------------------------------------------------------------------
    app.extensions["fpvscan_backend"] = backend
    app.extensions["fpvscan_error_ring"] = deque(maxlen=ERROR_RING_MAX)

    # ------------------------------------------------------------------
    # Request timing middleware
    # ------------------------------------------------------------------

    @app.before_request
    def log_request_start():
        request._start_time = perf_counter()

    @app.after_request
    def log_request_end(response):
        if hasattr(request, "_start_time"):
            duration_ms = (perf_counter() - request._start_time) * 1000
            # Slow requests (>500ms) or errors only; the UI polls constantly
            if duration_ms > 500 or response.status_code >= 400:
                logger.debug(
                    "%s %s -> %d (%.1fms)",
                    request.method,
                    request.path,
                    response.status_code,
                    duration_ms,
                    extra={"duration_ms": round(duration_ms, 1)},
                )
        return response

    # ------------------------------------------------------------------
    # Error handlers
    # ------------------------------------------------------------------

    @app.errorhandler(HTTPException)
    def http_error_as_json(exc: HTTPException):
        return jsonify({"error": exc.description, "status": exc.code}), exc.code

    @app.errorhandler(Exception)
    def capture_error_to_ring(exc: Exception):
        entry = {
            "ts": datetime.now(timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "path": request.path,
            "method": request.method,
            "error": str(exc),
            "type": type(exc).__name__,
            "traceback": tb.format_exc(),
        }
        error_ring(app).append(entry)
        logger.error("%s %s failed: %s", request.method, request.path, exc, extra={"error_type": type(exc).__name__})
        return jsonify({"error": str(exc), "type": type(exc).__name__, "status": 500}), 500

    # ------------------------------------------------------------------
    # Register blueprints
    # ------------------------------------------------------------------
    from fpvscan_web.blueprints.api_debug import bp as api_debug_bp
    from fpvscan_web.blueprints.api_scan import bp as api_scan_bp

    app.register_blueprint(api_scan_bp)
    app.register_blueprint(api_debug_bp)

    return app


def get_backend() -> ScannerBackend:
    """Get the ScannerBackend bound to the current Flask app."""
    return current_app.extensions["fpvscan_backend"]


def error_ring(app: Any = None) -> Deque[Dict[str, Any]]:
    app = app or current_app
    return app.extensions["fpvscan_error_ring"]


def recent_errors(limit: int) -> List[Dict[str, Any]]:
    """Newest-first copy of at most ``limit`` captured errors."""
    ring = list(error_ring())
    return list(reversed(ring[-limit:]))
