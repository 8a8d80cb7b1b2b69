"""
fpvscan Web — Flask adapter exposing the scanner backend over HTTP.

The presentation layer polls these endpoints (500 ms in the handset UI)
instead of calling ScannerBackend in-process.

Usage:
    from fpvscan import create_backend
    from fpvscan_web import create_app
    app = create_app(create_backend(driver="sim"))
    app.run(host="0.0.0.0", port=8080)
"""
from __future__ import annotations

__version__ = "0.1.0"

from fpvscan_web.app import create_app

__all__ = ["create_app", "__version__"]
