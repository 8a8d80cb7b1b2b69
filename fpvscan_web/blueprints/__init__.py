"""
Blueprints package for fpvscan Web.

- api_scan: scanner control and status polling (/api/scan/*, /api/status, ...)
- api_debug: error tracking and runtime configuration (/api/debug/*)
"""
from __future__ import annotations
