#!/usr/bin/env python3
"""
fpvscan Web — Entry point.

Thin CLI shim that builds a scanner backend and runs the Flask application.

Run:
    python fpvscan-web.py --driver hackrf --host 0.0.0.0 --port 8080

Environment:
    FPVSCAN_TOKEN            Protect /api/* endpoints (optional)
    FPVSCAN_LOG_LEVEL        Log level (default INFO)
"""
from __future__ import annotations

import argparse


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        description="fpvscan Web — HTTP control surface for the FPV scanner"
    )
    ap.add_argument(
        "--driver",
        choices=["hackrf", "sim"],
        default="hackrf",
        help="Device driver (default: hackrf)",
    )
    ap.add_argument(
        "--profile",
        default=None,
        help="Scan profile name (default: fpv_default)",
    )
    ap.add_argument(
        "--jsonl",
        default=None,
        help="Append scan events as JSON lines to this path",
    )
    ap.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind the web server (default: 0.0.0.0)",
    )
    ap.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to listen on (default: 8080)",
    )
    args = ap.parse_args(argv)

    from fpvscan.io.profiles import resolve_profile

    try:
        args.scan_profile = resolve_profile(args.profile)
    except KeyError:
        ap.error(f"Unknown scan profile '{args.profile}'")
    return args


def main():
    args = parse_args()

    from fpvscan import create_backend
    from fpvscan_web import create_app
    from fpvscan_web.config import STOP_TIMEOUT_S

    backend = create_backend(args.scan_profile, driver=args.driver, jsonl=args.jsonl)
    app = create_app(backend)
    try:
        app.run(host=args.host, port=args.port, threaded=True)
    finally:
        backend.shutdown(STOP_TIMEOUT_S)


if __name__ == "__main__":
    main()
