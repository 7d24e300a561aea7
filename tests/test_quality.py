"""
Unit tests for QualityEvaluator and the per-window metric functions.
Run with:  pytest tests/test_quality.py
"""

from __future__ import annotations

import dataclasses
import math

import numpy as np
import pytest

from ppg_quality.config import SignalConfig
from ppg_quality.detrend import detrend
from ppg_quality.errors import InvalidInputError
from ppg_quality.quality import (
    GUIDANCE_ADJUST_FINGER,
    GUIDANCE_ADJUSTING,
    GUIDANCE_COVER_CAMERA,
    GUIDANCE_EXCELLENT,
    GUIDANCE_GOOD,
    GUIDANCE_HOLD_STILL,
    GUIDANCE_INSUFFICIENT,
    GUIDANCE_PRESS_FIRMER,
    GUIDANCE_REDUCE_PRESSURE,
    ProcessorState,
    QualityEvaluator,
    QualityStatus,
    classify,
    guidance,
    heart_rate_bpm,
    inter_beat_interval,
    perfusion_index,
)
from ppg_quality.sources import synthetic_ppg


def _synthetic_window(seed: int = 0) -> np.ndarray:
    """5 s of 0.5 + 0.01·sin(2π·1.2·t) + N(0, 0.001) at 60 Hz."""
    return synthetic_ppg(5.0, sample_rate=60.0, heart_rate_hz=1.2,
                         amplitude=0.01, baseline=0.5, noise_std=0.001, seed=seed)


# ---------------------------------------------------------------------------
# Pure metric functions
# ---------------------------------------------------------------------------

class TestClassify:

    @pytest.mark.parametrize("snr,expected", [
        (10.0, QualityStatus.EXCELLENT),
        (25.0, QualityStatus.EXCELLENT),
        (9.999, QualityStatus.GOOD),
        (5.0, QualityStatus.GOOD),
        (4.999, QualityStatus.FAIR),
        (0.0, QualityStatus.FAIR),
        (-0.001, QualityStatus.POOR),
        (-30.0, QualityStatus.POOR),
    ])
    def test_boundaries(self, snr, expected):
        assert classify(snr) is expected

    def test_nan_is_poor(self):
        assert classify(math.nan) is QualityStatus.POOR

    def test_status_values(self):
        assert [s.value for s in QualityStatus] == ["Excellent", "Good", "Fair", "Poor"]


class TestGuidance:

    @pytest.mark.parametrize("snr,pi,stability,expected", [
        (-3.0, 0.1, 1.0, GUIDANCE_COVER_CAMERA),
        (-3.0, 0.3, 1.0, GUIDANCE_ADJUST_FINGER),
        (2.0, 0.5, 1.0, GUIDANCE_PRESS_FIRMER),
        (2.0, 20.0, 1.0, GUIDANCE_REDUCE_PRESSURE),
        (2.0, 5.0, 0.2, GUIDANCE_HOLD_STILL),
        (2.0, 5.0, 0.9, GUIDANCE_ADJUSTING),
        (0.0, 1.0, 0.5, GUIDANCE_ADJUSTING),
        (7.0, 0.01, 0.0, GUIDANCE_GOOD),
        (10.0, 0.01, 0.0, GUIDANCE_EXCELLENT),
    ])
    def test_decision_order(self, snr, pi, stability, expected):
        assert guidance(snr, pi, stability) == expected

    @pytest.mark.parametrize("args", [
        (math.nan, 1.0, 1.0), (5.0, math.nan, 1.0), (5.0, 1.0, math.inf),
    ])
    def test_non_finite_input(self, args):
        assert guidance(*args) == GUIDANCE_INSUFFICIENT


class TestHeartRateAndIbi:

    def test_heart_rate_from_peak(self):
        assert heart_rate_bpm(1.2) == 72
        assert heart_rate_bpm(0.0) == 0
        assert heart_rate_bpm(math.nan) == 0

    def test_heart_rate_rounds_half_up(self):
        assert heart_rate_bpm(1.875) == 113    # 112.5 BPM

    @pytest.mark.parametrize("hr,ibi", [(72, 833), (60, 1000), (299, 201), (1, 60000)])
    def test_ibi(self, hr, ibi):
        assert inter_beat_interval(hr) == ibi

    @pytest.mark.parametrize("hr", [0, 300, 450])
    def test_ibi_undefined(self, hr):
        assert inter_beat_interval(hr) == 0


class TestPerfusionIndex:

    def test_known_values(self):
        raw = np.full(100, 0.5)
        ac = np.tile([0.005, -0.005], 50)
        pi, variance = perfusion_index(raw, ac)
        assert variance == pytest.approx(2.5e-5)
        assert pi == pytest.approx(1.0)

    def test_zero_ac(self):
        pi, variance = perfusion_index(np.full(10, 0.4), np.zeros(10))
        assert pi == 0.0
        assert variance == 0.0

    def test_length_mismatch(self):
        with pytest.raises(InvalidInputError):
            perfusion_index(np.ones(10), np.ones(9))

    def test_empty(self):
        with pytest.raises(InvalidInputError):
            perfusion_index([], [])


# ---------------------------------------------------------------------------
# Stateful evaluator
# ---------------------------------------------------------------------------

class TestStability:

    def test_first_call_seeds_state(self):
        ev = QualityEvaluator()
        assert ev.stability(3.0) == 1.0
        assert ev.state.previous_variance == 3.0

    def test_equal_variances(self):
        ev = QualityEvaluator()
        ev.stability(4.0)
        assert ev.stability(4.0) == pytest.approx(1.0)

    def test_symmetric_ratio(self):
        ev = QualityEvaluator()
        ev.stability(4.0)
        assert ev.stability(1.0) == pytest.approx(0.25)
        assert ev.stability(4.0) == pytest.approx(0.25)

    def test_diverging_variances_decrease(self):
        ev = QualityEvaluator()
        ratios = [ev.stability(v) for v in [1.0, 2.0, 8.0, 64.0, 1024.0, 65536.0]]
        assert ratios[0] == 1.0
        assert all(b < a for a, b in zip(ratios, ratios[1:]))
        assert ratios[-1] < 0.02


class TestQualityEvaluator:

    def test_reset_zeroes_state(self):
        ev = QualityEvaluator(state=ProcessorState(previous_variance=0.7,
                                                   quality_frame_count=1200))
        ev.reset()
        assert ev.state.previous_variance == 0
        assert ev.state.quality_frame_count == 0

    def test_synthetic_pulse(self):
        raw = _synthetic_window()
        metrics = QualityEvaluator().evaluate(raw, detrend(raw), window_index=1)

        assert abs(metrics.heart_rate - 72) <= 2
        assert metrics.quality_status in (QualityStatus.GOOD, QualityStatus.EXCELLENT)
        assert metrics.ibi == int(math.floor(60000 / metrics.heart_rate + 0.5))
        assert metrics.perfusion_index == pytest.approx(0.01 / math.sqrt(2) / 0.5 * 100, rel=0.1)
        assert metrics.signal_stability == 1.0
        assert metrics.quality_frame_count == 300
        assert metrics.window_index == 1

    def test_counter_accumulates_per_good_window(self):
        ev = QualityEvaluator()
        for seed in range(3):
            raw = _synthetic_window(seed)
            metrics = ev.evaluate(raw, detrend(raw))
        assert metrics.quality_frame_count == 900
        assert ev.quality_frame_count == 900

    def test_counter_uses_configured_window_length(self):
        cfg = SignalConfig(window_length=512, fft_size=512)
        raw = synthetic_ppg(512 / 60.0, seed=3)
        metrics = QualityEvaluator(cfg).evaluate(raw, detrend(raw))
        assert metrics.snr_db >= 5
        assert metrics.quality_frame_count == 512

    def test_constant_input(self):
        raw = np.full(300, 0.5)
        metrics = QualityEvaluator().evaluate(raw, detrend(raw))
        assert metrics.snr_db == pytest.approx(0.0, abs=1e-9)
        assert metrics.perfusion_index == pytest.approx(0.0, abs=1e-9)
        assert metrics.quality_status is QualityStatus.FAIR
        assert metrics.guidance_message == GUIDANCE_PRESS_FIRMER
        assert metrics.heart_rate == 0
        assert metrics.ibi == 0
        assert metrics.quality_frame_count == 0

    def test_nan_window_is_coerced_and_state_untouched(self):
        ev = QualityEvaluator(state=ProcessorState(previous_variance=2e-5,
                                                   quality_frame_count=600))
        raw = np.full(300, 0.5)
        raw[10] = np.nan
        metrics = ev.evaluate(raw, raw - 0.5)

        assert metrics.quality_status is QualityStatus.POOR
        assert metrics.guidance_message == GUIDANCE_INSUFFICIENT
        for value in (metrics.snr_db, metrics.perfusion_index,
                      metrics.signal_stability, metrics.peak_frequency):
            assert math.isfinite(value)
        assert metrics.heart_rate == 0
        assert ev.state.previous_variance == 2e-5
        assert ev.state.quality_frame_count == 600

    def test_nan_in_raw_only_forces_poor(self):
        ev = QualityEvaluator()
        raw = _synthetic_window()
        ac = detrend(raw)
        raw[3] = np.nan
        metrics = ev.evaluate(raw, ac)

        assert metrics.quality_status is QualityStatus.POOR
        assert metrics.guidance_message == GUIDANCE_INSUFFICIENT
        assert metrics.quality_frame_count == 0
        assert ev.state == ProcessorState()

    def test_pipeline_stability_tracks_consecutive_windows(self):
        ev = QualityEvaluator()
        first = _synthetic_window(0)
        second = 0.5 + 2.0 * (_synthetic_window(1) - 0.5)   # 4× the variance
        _, var_first = perfusion_index(first, detrend(first))
        _, var_second = perfusion_index(second, detrend(second))

        assert ev.evaluate(first, detrend(first)).signal_stability == 1.0
        assert ev.state.previous_variance == pytest.approx(var_first)

        metrics = ev.evaluate(second, detrend(second))
        assert metrics.signal_stability == pytest.approx(var_first / var_second, rel=1e-4)
        assert metrics.signal_stability == pytest.approx(0.25, rel=0.1)
        assert ev.state.previous_variance == pytest.approx(var_second)

    def test_failed_window_does_not_touch_state(self):
        ev = QualityEvaluator()
        raw = _synthetic_window()
        ev.evaluate(raw, detrend(raw))
        before = dataclasses.replace(ev.state)

        with pytest.raises(InvalidInputError):
            ev.evaluate(raw, detrend(raw)[:-1])
        assert ev.state == before

    def test_instances_are_isolated(self):
        a, b = QualityEvaluator(), QualityEvaluator()
        raw = _synthetic_window()
        a.evaluate(raw, detrend(raw))
        assert b.state == ProcessorState()

    def test_metrics_are_immutable(self):
        raw = _synthetic_window()
        metrics = QualityEvaluator().evaluate(raw, detrend(raw))
        with pytest.raises(dataclasses.FrozenInstanceError):
            metrics.heart_rate = 0

    def test_as_dict(self):
        raw = _synthetic_window()
        data = QualityEvaluator().evaluate(raw, detrend(raw)).as_dict()
        assert data["quality_status"] in ("Good", "Excellent")
        assert set(data) >= {"snr_db", "perfusion_index", "heart_rate", "ibi",
                             "signal_stability", "guidance_message",
                             "quality_frame_count"}
