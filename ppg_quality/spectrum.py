"""
Spectral analysis of one detrended window.

Algorithm
---------
1. Zero-pad (or truncate) the window to exactly ``fft_size`` samples.
2. Take the complex FFT and keep the first ``fft_size / 2`` bins; the power
   of bin *i* is ``real_i² + imag_i²``.
3. Sum the power inside the cardiac band (signal) and outside it (noise),
   always skipping bin 0 (DC), and express the ratio in dB.
4. The strongest bin inside the band is the heart-rate candidate.

Band edges that fall outside the spectrum are clamped, not rejected: a band
that does not fit simply yields a low SNR, which the quality classifier
reports as a poor signal.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from ppg_quality.config import check_fft_size
from ppg_quality.detrend import ArrayLike

#: Added to both powers before the ratio / log so silence gives 0 dB.
EPSILON = 1e-10


@dataclass(frozen=True)
class SpectralResult:
    """One-sided power spectral density of a window."""

    psd: np.ndarray            # fft_size / 2 non-negative bins
    freq_resolution: float     # Hz per bin
    fft_size: int
    sample_rate: float

    @property
    def frequencies(self) -> np.ndarray:
        """Centre frequency (Hz) of every PSD bin."""
        return np.arange(self.psd.size) * self.freq_resolution


@dataclass(frozen=True)
class BandPower:
    """Band-limited power split of a PSD."""

    snr_db: float
    peak_index: int
    peak_frequency: float
    signal_power: float
    noise_power: float
    total_power: float


def compute_spectrum(
    signal: ArrayLike,
    fft_size: int = 256,
    sample_rate: float = 60.0,
) -> SpectralResult:
    """
    Return the power spectral density of *signal*.

    Parameters
    ----------
    signal:
        Detrended window.  Shorter inputs are zero-padded, longer ones
        truncated to *fft_size* samples.
    fft_size:
        Transform length, a power of two ≥ 2.
    sample_rate:
        Sampling rate in Hz.

    Raises
    ------
    ConfigurationError
        If *fft_size* is not a power of two ≥ 2.
    """
    check_fft_size(fft_size)
    x = np.asarray(signal, dtype=np.float64).ravel()

    padded = np.zeros(fft_size, dtype=np.float64)
    n = min(x.size, fft_size)
    padded[:n] = x[:n]

    spectrum = np.fft.fft(padded)[: fft_size // 2]
    psd = spectrum.real ** 2 + spectrum.imag ** 2

    return SpectralResult(
        psd=psd,
        freq_resolution=sample_rate / fft_size,
        fft_size=fft_size,
        sample_rate=sample_rate,
    )


def band_indices(
    n_bins: int,
    freq_resolution: float,
    low_hz: float,
    high_hz: float,
) -> tuple[int, int]:
    """Return the inclusive bin range ``[low, high]`` of a band, clamped to ``[1, n_bins-1]``."""
    top = max(n_bins - 1, 1)
    low_idx = math.floor(low_hz / freq_resolution)
    high_idx = math.ceil(high_hz / freq_resolution)
    low_idx = min(max(low_idx, 1), top)
    high_idx = min(max(high_idx, 1), top)
    return low_idx, high_idx


def band_snr(
    psd: ArrayLike,
    freq_resolution: float,
    low_hz: float = 0.75,
    high_hz: float = 4.0,
) -> BandPower:
    """
    Split *psd* into in-band signal power and out-of-band noise power.

    ``snr_db = 10·log10((signal + ε) / (noise + ε))`` with ``ε = 1e-10``, so
    an all-zero spectrum gives 0 dB.  The peak index is 0 (and the peak
    frequency 0 Hz) when the band holds no power at all.
    """
    p = np.asarray(psd, dtype=np.float64).ravel()
    low_idx, high_idx = band_indices(p.size, freq_resolution, low_hz, high_hz)

    total_power = float(p[1:].sum())
    band = p[low_idx:high_idx + 1]
    signal_power = float(band.sum())
    noise_power = max(total_power - signal_power, 0.0)

    peak_index = 0
    if band.size and band.max() > 0:
        peak_index = low_idx + int(np.argmax(band))

    snr_db = 10.0 * math.log10((signal_power + EPSILON) / (noise_power + EPSILON))

    return BandPower(
        snr_db=snr_db,
        peak_index=peak_index,
        peak_frequency=peak_index * freq_resolution,
        signal_power=signal_power,
        noise_power=noise_power,
        total_power=total_power,
    )
