#!/usr/bin/env python3
"""
PPG Quality – command-line host.

Streams samples from one source through the quality pipeline and prints a
line (or a JSON object) for every analysed window.

Usage
-----
    python main.py (--input PATH | --video PATH | --camera-index N | --synthetic SECONDS) [OPTIONS]

Sources
-------
    --input PATH         Text/CSV file with one sample per line ("-" = stdin)
    --video PATH         Video file; each frame → inverted mean red intensity
    --camera-index INT   Live OpenCV camera (finger over lens, torch on)
    --synthetic FLOAT    Generated 72 BPM test signal of the given length (s)

Options
-------
    --window INT         Samples per analysis window (default: 300)
    --fps FLOAT          Sample rate in Hz (default: 60)
    --fft-size INT       FFT length, power of two (default: 256)
    --band-low FLOAT     Cardiac band lower edge in Hz (default: 0.75)
    --band-high FLOAT    Cardiac band upper edge in Hz (default: 4.0)
    --warmup INT         Leading samples to discard (default: 0)
    --json               Print one JSON object per metrics record
    --log-level LEVEL    Logging level (default: INFO)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Iterable

from ppg_quality.config import SignalConfig
from ppg_quality.errors import PPGQualityError
from ppg_quality.quality import QualityMetrics
from ppg_quality.scheduler import WindowScheduler
from ppg_quality.sources import VideoSampleSource, read_samples, synthetic_ppg

logger = logging.getLogger("ppg_quality")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Real-time PPG signal-quality metrics from a scalar sample stream",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", type=Path, default=None,
                        help="Text/CSV file with one sample per line ('-' = stdin)")
    source.add_argument("--video", type=Path, default=None,
                        help="Video file to extract samples from")
    source.add_argument("--camera-index", type=int, default=None,
                        help="OpenCV VideoCapture index of a live camera")
    source.add_argument("--synthetic", type=float, default=None, metavar="SECONDS",
                        help="Generate a synthetic 72 BPM signal of this length")

    defaults = SignalConfig()
    parser.add_argument("--window", type=int, default=defaults.window_length,
                        help="Samples per analysis window")
    parser.add_argument("--fps", type=float, default=defaults.sample_rate,
                        help="Sample rate in Hz")
    parser.add_argument("--fft-size", type=int, default=defaults.fft_size,
                        help="FFT length (power of two)")
    parser.add_argument("--band-low", type=float, default=defaults.cardiac_band_low,
                        help="Cardiac band lower edge (Hz)")
    parser.add_argument("--band-high", type=float, default=defaults.cardiac_band_high,
                        help="Cardiac band upper edge (Hz)")
    parser.add_argument("--warmup", type=int, default=defaults.warmup_samples,
                        help="Leading samples to discard")
    parser.add_argument("--seed", type=int, default=None,
                        help="Noise seed for --synthetic")
    parser.add_argument("--json", action="store_true",
                        help="Print one JSON object per metrics record")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SignalConfig:
    return SignalConfig(
        window_length=args.window,
        sample_rate=args.fps,
        cardiac_band_low=args.band_low,
        cardiac_band_high=args.band_high,
        fft_size=args.fft_size,
        warmup_samples=args.warmup,
    )


def format_metrics(metrics: QualityMetrics) -> str:
    if metrics.heart_rate > 0:
        pulse = f"HR={metrics.heart_rate} BPM  IBI={metrics.ibi} ms"
    else:
        pulse = "HR=--"
    return (
        f"[window {metrics.window_index}] {metrics.quality_status.value:<9} "
        f"SNR={metrics.snr_db:6.2f} dB  PI={metrics.perfusion_index:.3f}%  "
        f"{pulse}  stability={metrics.signal_stability:.2f}  "
        f"– {metrics.guidance_message}"
    )


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def stream(scheduler: WindowScheduler, samples: Iterable[float]) -> None:
    """Feed *samples* into *scheduler* one at a time."""
    for sample in samples:
        scheduler.push(sample)


def run(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s – %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = build_config(args)
    except PPGQualityError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    emitted = 0

    def print_metrics(metrics: QualityMetrics) -> None:
        nonlocal emitted
        emitted += 1
        if args.json:
            print(json.dumps(metrics.as_dict()), flush=True)
        else:
            print(format_metrics(metrics), flush=True)

    scheduler = WindowScheduler(config, on_quality_update=print_metrics)
    logger.info(
        "Window %d samples (%.1f s at %.1f Hz), FFT %d, band %.2f–%.2f Hz.",
        config.window_length, config.window_seconds, config.sample_rate,
        config.fft_size, config.cardiac_band_low, config.cardiac_band_high,
    )

    try:
        if args.synthetic is not None:
            stream(scheduler, synthetic_ppg(
                args.synthetic, sample_rate=config.sample_rate, seed=args.seed,
            ))
        elif args.input is not None:
            stream(scheduler, read_samples(args.input))
        else:
            video = args.video if args.video is not None else args.camera_index
            with VideoSampleSource(video) as source:
                if source.fps and abs(source.fps - config.sample_rate) > 1.0:
                    logger.warning(
                        "Source reports %.1f FPS but --fps is %.1f; heart rate "
                        "estimates will be off.", source.fps, config.sample_rate,
                    )
                stream(scheduler, source)
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    except (OSError, RuntimeError, PPGQualityError) as exc:
        logger.error("%s", exc)
        return 1

    logger.info(
        "Done – %d samples, %d metrics records, quality frame count %d.",
        scheduler.total_samples,
        emitted,
        scheduler.quality_frame_count,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    return run(parse_args(argv))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    sys.exit(main())
