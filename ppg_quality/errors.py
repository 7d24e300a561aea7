"""Exceptions raised by the signal-quality pipeline."""

from __future__ import annotations


class PPGQualityError(Exception):
    """Base class for every error raised by :mod:`ppg_quality`."""


class ConfigurationError(PPGQualityError, ValueError):
    """Invalid construction-time parameter (window length, FFT size, band...)."""


class InvalidInputError(PPGQualityError, ValueError):
    """A window of samples that cannot be processed."""
