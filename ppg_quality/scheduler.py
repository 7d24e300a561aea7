"""
Per-sample ingestion loop with an Active / Hold duty cycle.

Each call to :meth:`WindowScheduler.push` stores one sample.  Every
``window_length`` samples a window boundary is reached and the duty-cycle
phase of that window is decided by :func:`phase_for_window`:

* **Active** – detrend the window, run the spectral and quality analysis,
  emit a new :class:`~ppg_quality.quality.QualityMetrics` and make the
  detrended window the current AC waveform.
* **Hold** – no analysis; the AC waveform becomes a flat line at the mean
  of the last Active window and the last metrics remain valid.

Phases alternate in runs of 100 windows (100 Active, 100 Hold, ...).  The
purpose of the alternation is not documented; it is kept for
compatibility with existing recordings.

The scheduler is synchronous and single-threaded: one instance must never
be fed from two threads at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

import numpy as np

from ppg_quality.buffer import SampleBuffer
from ppg_quality.config import SignalConfig
from ppg_quality.detrend import detrend
from ppg_quality.errors import InvalidInputError
from ppg_quality.quality import QualityEvaluator, QualityMetrics, QualityStatus

logger = logging.getLogger(__name__)

#: Number of consecutive windows spent in one phase before switching.
PHASE_RUN_LENGTH = 100


class DutyPhase(Enum):
    ACTIVE = "active"
    HOLD   = "hold"


def phase_for_window(window_index: int, run_length: int = PHASE_RUN_LENGTH) -> DutyPhase:
    """Return the duty-cycle phase of window number *window_index*."""
    if (window_index // run_length) % 2 == 0:
        return DutyPhase.ACTIVE
    return DutyPhase.HOLD


@dataclass(frozen=True)
class SignalUpdate:
    """Per-sample streaming output for plotting consumers."""

    time: float            # seconds since the first ingested sample
    value: float           # current AC sample
    is_processing: bool    # True once an Active window boundary was reached, False in Hold


QualityCallback = Callable[[QualityMetrics], None]
SignalCallback = Callable[[SignalUpdate], None]


class WindowScheduler:
    """
    Drives the quality pipeline from a stream of scalar samples.

    Parameters
    ----------
    config:
        Signal configuration; defaults to :class:`SignalConfig()`.
    on_quality_update:
        Called with every new :class:`QualityMetrics` (once per Active window).
    on_signal_update:
        Called with a :class:`SignalUpdate` for every ingested sample.
    evaluator:
        Quality evaluator to use; a new one bound to *config* if omitted.
    """

    def __init__(
        self,
        config: Optional[SignalConfig] = None,
        on_quality_update: Optional[QualityCallback] = None,
        on_signal_update: Optional[SignalCallback] = None,
        evaluator: Optional[QualityEvaluator] = None,
    ) -> None:
        self.config = config if config is not None else SignalConfig()
        self.on_quality_update = on_quality_update
        self.on_signal_update = on_signal_update
        self.evaluator = evaluator if evaluator is not None else QualityEvaluator(self.config)

        self._buffer = SampleBuffer(self.config.window_length, self.config.neutral_level)
        self._init_stream_state()

    def _init_stream_state(self) -> None:
        cfg = self.config
        self._ac_window = np.full(cfg.window_length, cfg.neutral_level, dtype=np.float64)
        self._ac_sample: float = cfg.neutral_level
        self._hold_level: float = cfg.neutral_level
        self._phase: DutyPhase = DutyPhase.ACTIVE
        self._is_processing: bool = False
        self._window_index: int = 0
        self._skipped: int = 0
        self._latest: Optional[QualityMetrics] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def push(self, sample: float) -> Optional[QualityMetrics]:
        """
        Ingest one sample.

        Returns
        -------
        QualityMetrics or None
            The metrics of the window completed by this sample when it was an
            Active window, otherwise *None*.
        """
        if self._skipped < self.config.warmup_samples:
            self._skipped += 1
            return None

        length = self.config.window_length
        sample_index = self._buffer.total_samples
        self._buffer.push(float(sample))

        metrics = None
        if self._buffer.is_full_window:
            metrics = self._on_boundary(self._buffer.total_samples // length)

        self._ac_sample = float(self._ac_window[sample_index % length])

        if self.on_signal_update is not None:
            self.on_signal_update(SignalUpdate(
                time=sample_index / self.config.sample_rate,
                value=self._ac_sample,
                is_processing=self._is_processing,
            ))
        return metrics

    def reset(self) -> None:
        """Forget all samples, windows and evaluator state."""
        self._buffer.reset()
        self.evaluator.reset()
        self._init_stream_state()
        logger.info("Scheduler reset.")

    @property
    def ac_sample(self) -> float:
        """AC value aligned with the most recently ingested sample."""
        return self._ac_sample

    @property
    def phase(self) -> DutyPhase:
        return self._phase

    @property
    def window_index(self) -> int:
        """Index of the last completed window (0 before the first boundary)."""
        return self._window_index

    @property
    def total_samples(self) -> int:
        """Samples ingested after the warm-up."""
        return self._buffer.total_samples

    @property
    def sample_index(self) -> int:
        """Position of the next sample inside the current window."""
        return self._buffer.cursor

    @property
    def latest_metrics(self) -> Optional[QualityMetrics]:
        return self._latest

    @property
    def signal_quality(self) -> Optional[QualityStatus]:
        return self._latest.quality_status if self._latest is not None else None

    @property
    def quality_frame_count(self) -> int:
        return self.evaluator.quality_frame_count

    # ------------------------------------------------------------------
    # Window boundary handling
    # ------------------------------------------------------------------

    def _on_boundary(self, window_index: int) -> Optional[QualityMetrics]:
        phase = phase_for_window(window_index)
        if phase is not self._phase:
            logger.info("Window %d: duty cycle %s → %s.",
                        window_index, self._phase.value, phase.value)
        self._phase = phase
        self._window_index = window_index
        self._is_processing = phase is DutyPhase.ACTIVE

        if phase is DutyPhase.HOLD:
            self._ac_window = np.full(
                self.config.window_length, self._hold_level, dtype=np.float64
            )
            return None
        return self._process_window(window_index)

    def _process_window(self, window_index: int) -> Optional[QualityMetrics]:
        raw = self._buffer.snapshot()
        try:
            ac = detrend(raw)
            metrics = self.evaluator.evaluate(raw, ac, window_index=window_index)
        except InvalidInputError as exc:
            logger.warning("Window %d skipped: %s", window_index, exc)
            return None

        self._ac_window = ac
        self._hold_level = float(np.mean(ac))
        self._latest = metrics

        if self.on_quality_update is not None:
            self.on_quality_update(metrics)
        return metrics
