"""PSD helper routines for the spectrum bar."""

from __future__ import annotations

from typing import Tuple

import numpy as np  # type: ignore
from scipy.signal import welch  # type: ignore

from fpvscan.util.math import db10


def compute_psd_db(samples: np.ndarray, samp_rate: float, fft_size: int) -> Tuple[np.ndarray, np.ndarray]:
    """Return (baseband freqs, psd_db) for complex IQ input, DC centred."""
    nperseg = int(min(fft_size, samples.size))
    freqs, psd = welch(
        samples,
        fs=samp_rate,
        nperseg=nperseg,
        noverlap=0,
        return_onesided=False,
        scaling="density",
    )
    order = np.argsort(freqs)
    return freqs[order], db10(psd[order])


def coarse_spectrum_db(samples: np.ndarray, samp_rate: float, bins: int) -> Tuple[float, ...]:
    """Collapse the PSD into ``bins`` equal-width buckets (mean power per bucket)."""
    if bins <= 0 or samples.size == 0:
        return ()
    fft_size = int(max(bins, min(1024, samples.size)))
    _, psd_db = compute_psd_db(samples, samp_rate, fft_size)
    bins = min(bins, psd_db.size)
    edges = np.linspace(0, psd_db.size, bins + 1).astype(int)
    lin = 10.0 ** (psd_db / 10.0)
    means = np.array([np.mean(lin[lo:hi]) for lo, hi in zip(edges[:-1], edges[1:])])
    return tuple(round(float(v), 2) for v in db10(means))
