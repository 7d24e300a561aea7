"""
PPG Quality — real-time signal-quality metrics for camera photoplethysmography.

Feed one inverted red-channel intensity per camera frame (finger over the
lens) into a :class:`WindowScheduler`; once per window it estimates heart
rate, band-limited SNR, perfusion index and beat interval, classifies the
signal quality and produces a guidance hint for the user.
"""

from ppg_quality.config import SignalConfig
from ppg_quality.detrend import detrend
from ppg_quality.errors import ConfigurationError, InvalidInputError, PPGQualityError
from ppg_quality.quality import (
    ProcessorState,
    QualityEvaluator,
    QualityMetrics,
    QualityStatus,
)
from ppg_quality.scheduler import DutyPhase, SignalUpdate, WindowScheduler
from ppg_quality.spectrum import BandPower, SpectralResult, band_snr, compute_spectrum

__version__ = "0.1.0"
__author__ = "ppg_quality"

__all__ = [
    "BandPower",
    "ConfigurationError",
    "DutyPhase",
    "InvalidInputError",
    "PPGQualityError",
    "ProcessorState",
    "QualityEvaluator",
    "QualityMetrics",
    "QualityStatus",
    "SignalConfig",
    "SignalUpdate",
    "SpectralResult",
    "WindowScheduler",
    "band_snr",
    "compute_spectrum",
    "detrend",
]
