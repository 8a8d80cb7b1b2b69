"""Scan profile dataclasses and helpers."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class ScanProfile:
    """Every tunable of the scanning and detection pipeline."""

    name: str
    # Acquisition
    sample_rate_hz: int = 2_000_000
    sample_count: int = 65_536
    settle_samples: int = 8192
    min_power_db: float = -120.0
    spectrum_bins: int = 64
    timeout_factor: float = 2.0
    # Baseline
    ema_alpha: float = 0.1
    default_baseline_db: float = -100.0
    warmup_visits: int = 3
    gate_baseline: bool = True
    # Detection
    ratio_threshold_db: float = 6.0
    cooldown_s: float = 3.0
    # Loop cadence and fault policy
    dwell_s: float = 0.0
    max_consecutive_failures: int = 10
    reconnect_interval_s: float = 2.0
    event_queue_size: int = 64
    # Initial operator settings
    band_mode: int = 0
    lna_gain_db: int = 24
    vga_gain_db: int = 20
    amp_enabled: bool = True
    description: str = ""

    def with_overrides(self, **overrides: Any) -> "ScanProfile":
        """Return a copy with non-None overrides applied."""
        known = {f.name for f in fields(self)}
        values = {k: v for k, v in overrides.items() if v is not None and k in known}
        return replace(self, **values) if values else self


def default_scan_profiles() -> Dict[str, ScanProfile]:
    profiles = [
        ScanProfile(
            name="fpv_default",
            description="Balanced sweep of all FPV video bands",
        ),
        ScanProfile(
            name="fpv_sensitive",
            description="Lower threshold and slower baseline for weak or distant links",
            sample_count=131_072,
            ema_alpha=0.05,
            warmup_visits=5,
            ratio_threshold_db=4.0,
            cooldown_s=5.0,
            lna_gain_db=32,
            vga_gain_db=30,
        ),
        ScanProfile(
            name="fpv_fast",
            description="Short captures for quick band passes at close range",
            sample_count=16_384,
            settle_samples=4096,
            spectrum_bins=32,
            ema_alpha=0.2,
            warmup_visits=2,
            ratio_threshold_db=8.0,
            cooldown_s=2.0,
            lna_gain_db=16,
            vga_gain_db=16,
        ),
    ]
    return {p.name.lower(): p for p in profiles}


def resolve_profile(name: Optional[str]) -> ScanProfile:
    """Look up a built-in profile by name (case-insensitive); None selects fpv_default."""
    profiles = default_scan_profiles()
    key = str(name or "fpv_default").lower()
    if key not in profiles:
        raise KeyError(f"Unknown scan profile '{name}'")
    return profiles[key]


def serialize_profiles() -> Dict[str, Any]:
    """Return ordered JSON-serializable description of built-in profiles."""

    profiles = default_scan_profiles()
    ordered = sorted(profiles.values(), key=lambda p: p.name.lower())
    return {"profiles": [asdict(prof) for prof in ordered]}
