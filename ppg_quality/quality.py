"""
Signal-quality evaluation of one processed window.

For every window the evaluator derives

* **SNR** – cardiac-band power over out-of-band power (dB), from the PSD.
* **Heart rate / IBI** – from the strongest in-band PSD bin.
* **Perfusion index** – RMS of the detrended (AC) window over the mean of
  the raw (DC) window, in percent.
* **Stability** – ratio of the smaller to the larger variance of two
  consecutive windows (1 = unchanged, → 0 = wildly changing).

and turns them into a :class:`QualityStatus` plus a short guidance hint.

The only state that survives between windows is :class:`ProcessorState`
(previous variance and the good-quality sample counter).  It is owned by
one evaluator instance and is only written after a window's metrics were
fully computed, so a failed window leaves it untouched.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from ppg_quality.config import SignalConfig
from ppg_quality.detrend import ArrayLike
from ppg_quality.errors import InvalidInputError
from ppg_quality.spectrum import EPSILON, BandPower, band_snr, compute_spectrum

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------
SNR_EXCELLENT_DB = 10.0
SNR_GOOD_DB      = 5.0
SNR_FAIR_DB      = 0.0

PI_NO_COVER      = 0.3      # % – camera not covered at all
PI_LOW           = 1.0      # % – finger too light on the lens
PI_HIGH          = 15.0     # % – finger pressed too hard
STABILITY_MIN    = 0.5

MAX_HEART_RATE   = 300      # BPM – anything above is not a pulse

# ---------------------------------------------------------------------------
# Guidance messages
# ---------------------------------------------------------------------------
GUIDANCE_COVER_CAMERA   = "Cover camera completely with finger"
GUIDANCE_ADJUST_FINGER  = "Adjust finger placement"
GUIDANCE_PRESS_FIRMER   = "Press finger more firmly"
GUIDANCE_REDUCE_PRESSURE = "Reduce finger pressure slightly"
GUIDANCE_HOLD_STILL     = "Hold finger still"
GUIDANCE_ADJUSTING      = "Adjusting... hold steady"
GUIDANCE_GOOD           = "Good signal - hold steady"
GUIDANCE_EXCELLENT      = "Excellent signal!"
GUIDANCE_INSUFFICIENT   = "Insufficient signal - check sensor"


class QualityStatus(str, Enum):
    EXCELLENT = "Excellent"
    GOOD      = "Good"
    FAIR      = "Fair"
    POOR      = "Poor"


@dataclass
class ProcessorState:
    """Cross-window state of a :class:`QualityEvaluator`."""

    previous_variance: float = 0.0
    quality_frame_count: int = 0

    def reset(self) -> None:
        self.previous_variance = 0.0
        self.quality_frame_count = 0


@dataclass(frozen=True)
class QualityMetrics:
    """Immutable quality snapshot of one processed window."""

    snr_db: float
    perfusion_index: float
    heart_rate: int
    ibi: int
    signal_stability: float
    quality_status: QualityStatus
    guidance_message: str
    quality_frame_count: int
    # Diagnostics
    signal_power: float = 0.0
    noise_power: float = 0.0
    peak_frequency: float = 0.0
    window_index: int = 0

    def as_dict(self) -> Dict[str, Any]:
        """Plain-dict view (status as its string value), e.g. for JSON."""
        data = asdict(self)
        data["quality_status"] = self.quality_status.value
        return data


# ---------------------------------------------------------------------------
# Pure metric functions
# ---------------------------------------------------------------------------

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _finite_or_zero(value: float) -> float:
    return float(value) if math.isfinite(value) else 0.0


def perfusion_index(raw: ArrayLike, detrended: ArrayLike) -> Tuple[float, float]:
    """
    Return ``(pi, variance)`` of a window.

    ``variance`` is the mean square of the detrended window and
    ``pi = sqrt(variance) / (mean(raw) + ε) · 100``.

    Raises
    ------
    InvalidInputError
        If the windows are empty or differ in length.
    """
    raw_arr = np.asarray(raw, dtype=np.float64).ravel()
    ac_arr = np.asarray(detrended, dtype=np.float64).ravel()
    if raw_arr.size == 0:
        raise InvalidInputError("perfusion index needs a non-empty window")
    if raw_arr.size != ac_arr.size:
        raise InvalidInputError(
            f"raw and detrended windows differ in length ({raw_arr.size} != {ac_arr.size})"
        )

    dc = float(np.mean(raw_arr))
    variance = float(np.mean(ac_arr ** 2))
    ac = math.sqrt(variance) if variance >= 0 else math.nan
    pi = ac / (dc + EPSILON) * 100.0
    return pi, variance


def stability_ratio(current_variance: float, previous_variance: float) -> float:
    """``min / (max + ε)`` of two variances; 1.0 when there is no previous one."""
    if previous_variance == 0:
        return 1.0
    return min(current_variance, previous_variance) / (
        max(current_variance, previous_variance) + EPSILON
    )


def classify(snr_db: float) -> QualityStatus:
    """Map an SNR in dB to a :class:`QualityStatus` (NaN → POOR)."""
    if snr_db >= SNR_EXCELLENT_DB:
        return QualityStatus.EXCELLENT
    if snr_db >= SNR_GOOD_DB:
        return QualityStatus.GOOD
    if snr_db >= SNR_FAIR_DB:
        return QualityStatus.FAIR
    return QualityStatus.POOR


def guidance(snr_db: float, pi: float, stability: float) -> str:
    """Return a hint telling the user how to improve the signal."""
    if not all(math.isfinite(v) for v in (snr_db, pi, stability)):
        return GUIDANCE_INSUFFICIENT

    if snr_db < SNR_FAIR_DB:
        if pi < PI_NO_COVER:
            return GUIDANCE_COVER_CAMERA
        return GUIDANCE_ADJUST_FINGER

    if snr_db < SNR_GOOD_DB:
        if pi < PI_LOW:
            return GUIDANCE_PRESS_FIRMER
        if pi > PI_HIGH:
            return GUIDANCE_REDUCE_PRESSURE
        if stability < STABILITY_MIN:
            return GUIDANCE_HOLD_STILL
        return GUIDANCE_ADJUSTING

    if snr_db < SNR_EXCELLENT_DB:
        return GUIDANCE_GOOD

    return GUIDANCE_EXCELLENT


def heart_rate_bpm(peak_frequency: float) -> int:
    """Peak frequency (Hz) → whole beats per minute; 0 if undefined."""
    if not math.isfinite(peak_frequency) or peak_frequency <= 0:
        return 0
    return _round_half_up(peak_frequency * 60.0)


def inter_beat_interval(heart_rate: int) -> int:
    """Heart rate (BPM) → inter-beat interval in ms; 0 outside ``(0, 300)``."""
    if 0 < heart_rate < MAX_HEART_RATE:
        return _round_half_up(60000.0 / heart_rate)
    return 0


# ---------------------------------------------------------------------------
# Stateful evaluator
# ---------------------------------------------------------------------------

class QualityEvaluator:
    """
    Turns one (raw, detrended) window pair into :class:`QualityMetrics`.

    Parameters
    ----------
    config:
        Signal configuration (FFT size, sample rate, cardiac band, window
        length used to advance the good-quality counter).
    state:
        Initial cross-window state; a fresh :class:`ProcessorState` if omitted.

    Notes
    -----
    Windows must be evaluated in temporal order: stability compares each
    window with the one before it.
    """

    def __init__(
        self,
        config: Optional[SignalConfig] = None,
        state: Optional[ProcessorState] = None,
    ) -> None:
        self.config = config if config is not None else SignalConfig()
        self.state = state if state is not None else ProcessorState()

    # ------------------------------------------------------------------
    # Individual metrics
    # ------------------------------------------------------------------

    perfusion_index = staticmethod(perfusion_index)
    classify = staticmethod(classify)
    guidance = staticmethod(guidance)

    def stability(self, current_variance: float) -> float:
        """
        Return the variance ratio against the previous window and store
        *current_variance* as the new previous variance.
        """
        ratio = stability_ratio(current_variance, self.state.previous_variance)
        self.state.previous_variance = current_variance
        return ratio

    @property
    def quality_frame_count(self) -> int:
        return self.state.quality_frame_count

    # ------------------------------------------------------------------
    # Whole-window pass
    # ------------------------------------------------------------------

    def evaluate(
        self,
        raw: ArrayLike,
        detrended: ArrayLike,
        window_index: int = 0,
    ) -> QualityMetrics:
        """
        Compute all metrics of one window and advance the state.

        Raises
        ------
        InvalidInputError
            If the windows are empty or of different lengths.  The state is
            not modified in that case.
        """
        cfg = self.config
        pi, variance = perfusion_index(raw, detrended)

        spectrum = compute_spectrum(detrended, cfg.fft_size, cfg.sample_rate)
        band: BandPower = band_snr(
            spectrum.psd,
            spectrum.freq_resolution,
            cfg.cardiac_band_low,
            cfg.cardiac_band_high,
        )

        heart_rate = heart_rate_bpm(band.peak_frequency)
        ibi = inter_beat_interval(heart_rate)

        snr_db = band.snr_db
        finite = all(math.isfinite(v) for v in (snr_db, pi, variance))

        # Everything that can raise has run; the state is only touched
        # from here on, and only for a fully finite window.
        if finite:
            stability = self.stability(variance)
            status = classify(snr_db)
            if snr_db >= SNR_GOOD_DB:
                self.state.quality_frame_count += cfg.window_length
        else:
            stability = math.nan
            status = QualityStatus.POOR
            logger.warning(
                "Window %d has non-finite metrics – state not updated.", window_index
            )
        message = guidance(snr_db, pi, stability)

        metrics = QualityMetrics(
            snr_db=_finite_or_zero(snr_db),
            perfusion_index=_finite_or_zero(pi),
            heart_rate=heart_rate,
            ibi=ibi,
            signal_stability=_finite_or_zero(stability),
            quality_status=status,
            guidance_message=message,
            quality_frame_count=self.state.quality_frame_count,
            signal_power=_finite_or_zero(band.signal_power),
            noise_power=_finite_or_zero(band.noise_power),
            peak_frequency=_finite_or_zero(band.peak_frequency),
            window_index=window_index,
        )

        logger.debug(
            "Window %d: SNR=%.2f dB HR=%d BPM PI=%.3f%% stability=%.2f status=%s",
            window_index, metrics.snr_db, heart_rate, metrics.perfusion_index,
            metrics.signal_stability, status.value,
        )
        return metrics

    def reset(self) -> None:
        """Zero the previous variance and the good-quality counter."""
        self.state.reset()
