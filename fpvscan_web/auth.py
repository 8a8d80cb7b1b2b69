"""
Authentication helpers for fpvscan Web.

Provides require_auth for protecting API endpoints with bearer token
authentication.
"""
from __future__ import annotations

from flask import abort, request

from fpvscan_web import config


def require_auth() -> None:
    """
    Check bearer token authentication for the current request.

    If FPVSCAN_TOKEN is not set, authentication is disabled (open access).
    Otherwise, the request must include a valid Authorization header.

    Raises:
        werkzeug.exceptions.Unauthorized: If token is invalid or missing.
    """
    if not config.API_TOKEN:
        return

    hdr = request.headers.get("Authorization", "")
    if hdr != f"Bearer {config.API_TOKEN}":
        abort(401)
