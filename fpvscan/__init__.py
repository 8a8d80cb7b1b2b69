"""
fpvscan — FPV video-link scanner for HackRF-class SDRs.

Sweeps the 1.2 / 2.4 / 3.3 / 5.8 GHz FPV bands, keeps a rolling noise floor
per channel and flags transmissions that rise a configurable number of dB
above it.

Usage:
    from fpvscan import create_backend
    backend = create_backend(driver="hackrf")
    backend.start_scan()
    backend.get_last_detection()
"""
from __future__ import annotations

__version__ = "0.1.0"

from fpvscan.backend import ScannerBackend, create_backend

__all__ = ["ScannerBackend", "create_backend", "__version__"]
