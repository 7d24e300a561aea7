"""
Signal-processing configuration.

All tunables of the pipeline live in one immutable :class:`SignalConfig`,
validated once at construction so that nothing downstream has to re-check
them per window.

Defaults
--------
window_length     300 samples   (5 s at 60 FPS)
sample_rate       60 Hz         (target camera frame rate)
cardiac_band_low  0.75 Hz       (45 BPM)
cardiac_band_high 4.0 Hz        (240 BPM)
fft_size          256           (power of two; shorter than the window, so
                                 the FFT only sees the first 256 samples)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from typing import Any, Mapping

from ppg_quality.errors import ConfigurationError

logger = logging.getLogger(__name__)


def check_fft_size(fft_size: int) -> int:
    """Return *fft_size* if it is a power of two ≥ 2, else raise."""
    if isinstance(fft_size, bool) or not isinstance(fft_size, int):
        raise ConfigurationError(f"fft_size must be an integer, got {fft_size!r}")
    if fft_size < 2 or fft_size & (fft_size - 1):
        raise ConfigurationError(
            f"fft_size must be a power of two >= 2, got {fft_size}"
        )
    return fft_size


def check_window_length(window_length: int) -> int:
    """Return *window_length* if it is an integer ≥ 2, else raise."""
    if isinstance(window_length, bool) or not isinstance(window_length, int):
        raise ConfigurationError(
            f"window_length must be an integer, got {window_length!r}"
        )
    if window_length < 2:
        raise ConfigurationError(
            f"window_length must be >= 2, got {window_length}"
        )
    return window_length


@dataclass(frozen=True)
class SignalConfig:
    """
    Construction-time parameters of the quality pipeline.

    Parameters
    ----------
    window_length:
        Number of samples per analysis window.
    sample_rate:
        Sampling rate of the incoming stream in Hz (camera FPS).
    cardiac_band_low, cardiac_band_high:
        Edges of the cardiac frequency band in Hz.
    fft_size:
        FFT length; must be a power of two.  Windows are zero-padded or
        truncated to this length.
    warmup_samples:
        Leading samples to discard while the camera exposure settles.
    neutral_level:
        Value reported as the per-sample AC output before the first window.
    """

    window_length: int = 300
    sample_rate: float = 60.0
    cardiac_band_low: float = 0.75
    cardiac_band_high: float = 4.0
    fft_size: int = 256
    warmup_samples: int = 0
    neutral_level: float = 0.5

    def __post_init__(self) -> None:
        check_window_length(self.window_length)
        check_fft_size(self.fft_size)
        if not self.sample_rate > 0:
            raise ConfigurationError(
                f"sample_rate must be positive, got {self.sample_rate}"
            )
        if not 0 <= self.cardiac_band_low < self.cardiac_band_high:
            raise ConfigurationError(
                "cardiac band must satisfy 0 <= low < high, got "
                f"[{self.cardiac_band_low}, {self.cardiac_band_high}]"
            )
        if isinstance(self.warmup_samples, bool) or not isinstance(self.warmup_samples, int) \
                or self.warmup_samples < 0:
            raise ConfigurationError(
                f"warmup_samples must be a non-negative integer, got {self.warmup_samples!r}"
            )

        if self.fft_size < self.window_length:
            logger.info(
                "fft_size=%d is shorter than window_length=%d – the spectrum "
                "only uses the first %d samples of each window.",
                self.fft_size, self.window_length, self.fft_size,
            )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def freq_resolution(self) -> float:
        """Width of one FFT bin in Hz."""
        return self.sample_rate / self.fft_size

    @property
    def window_seconds(self) -> float:
        return self.window_length / self.sample_rate

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any] | None = None) -> "SignalConfig":
        """
        Build a config from a plain mapping, filling missing keys with defaults.

        Raises
        ------
        ConfigurationError
            If *options* contains a key that is not a config field.
        """
        options = dict(options or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ConfigurationError(f"Unknown signal option(s): {', '.join(unknown)}")
        return cls(**options)
