"""
Sample sources for the command-line host.

These helpers turn recordings into the scalar stream the quality pipeline
consumes.  They are host plumbing: nothing in the core imports them.

* :class:`VideoSampleSource` – video file or camera via OpenCV; each frame
  becomes ``1 − mean(red) / 255`` (a finger over a lit lens makes the frame
  red, and more blood in the tissue makes it darker).
* :func:`read_samples` – one number per line or per CSV row.
* :func:`synthetic_ppg` – sinusoidal pulse plus drift and noise, for demos
  and tests.
"""

from __future__ import annotations

import csv
import logging
import sys
from pathlib import Path
from typing import Generator, Iterator, Optional, TextIO, Union

import cv2
import numpy as np

from ppg_quality.errors import InvalidInputError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Frame → sample
# ---------------------------------------------------------------------------

def frame_to_sample(frame: np.ndarray) -> float:
    """
    Return the inverted, normalised mean red intensity of a BGR *frame*.

    Parameters
    ----------
    frame:
        BGR image array (H × W × 3, uint8).
    """
    if frame.ndim != 3 or frame.shape[2] < 3:
        raise InvalidInputError(f"expected an H×W×3 BGR frame, got shape {frame.shape}")
    red_mean = float(np.mean(frame[:, :, 2]))    # channel 2 = Red in BGR
    return 1.0 - red_mean / 255.0


class VideoSampleSource:
    """
    Iterate PPG samples from a video file or camera device.

    Parameters
    ----------
    source:
        Path to a video file, or an OpenCV camera index.
    max_null_frames:
        Consecutive failed reads tolerated on a live camera before giving up.
    """

    def __init__(self, source: Union[str, Path, int], max_null_frames: int = 10) -> None:
        self.source = source
        self.max_null_frames = max_null_frames
        self._cap: Optional[cv2.VideoCapture] = None

    @property
    def is_camera(self) -> bool:
        return isinstance(self.source, int)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        target = self.source if self.is_camera else str(self.source)
        cap = cv2.VideoCapture(target)
        if not cap.isOpened():
            raise RuntimeError(f"Cannot open video source {self.source!r}")
        self._cap = cap
        logger.info("Video source opened – %s (%.1f FPS reported)", self.source, self.fps)

    def close(self) -> None:
        if self._cap is None:
            return
        self._cap.release()
        self._cap = None
        logger.info("Video source closed.")

    def __enter__(self) -> "VideoSampleSource":
        self.open()
        return self

    def __exit__(self, *_) -> None:
        self.close()

    @property
    def fps(self) -> float:
        """Frame rate reported by the backend (0.0 if unknown)."""
        if self._cap is None:
            return 0.0
        return float(self._cap.get(cv2.CAP_PROP_FPS) or 0.0)

    # ------------------------------------------------------------------
    # Iteration
    # ------------------------------------------------------------------

    def samples(self) -> Generator[float, None, None]:
        """Yield one sample per frame until the stream ends."""
        if self._cap is None:
            raise RuntimeError("Video source is not open.  Call open() first.")

        null_streak = 0
        while self._cap is not None:
            ok, frame = self._cap.read()
            if not ok or frame is None:
                if not self.is_camera:
                    break                          # end of file
                null_streak += 1
                if null_streak >= self.max_null_frames:
                    logger.error(
                        "Camera returned %d consecutive empty frames – aborting.",
                        null_streak,
                    )
                    break
                continue
            null_streak = 0
            yield frame_to_sample(frame)

    def __iter__(self) -> Iterator[float]:
        return self.samples()


# ---------------------------------------------------------------------------
# Text input
# ---------------------------------------------------------------------------

def _parse_lines(stream: TextIO) -> Generator[float, None, None]:
    for line_no, row in enumerate(csv.reader(stream), start=1):
        if not row or not row[0].strip() or row[0].lstrip().startswith("#"):
            continue
        try:
            yield float(row[0])
        except ValueError as exc:
            raise InvalidInputError(f"line {line_no}: not a number: {row[0]!r}") from exc


def read_samples(path: Union[str, Path]) -> Generator[float, None, None]:
    """
    Yield the samples stored in *path* (first CSV column, ``-`` for stdin).

    Blank lines and lines starting with ``#`` are skipped.
    """
    if str(path) == "-":
        yield from _parse_lines(sys.stdin)
        return
    with open(path, newline="") as fh:
        yield from _parse_lines(fh)


# ---------------------------------------------------------------------------
# Synthetic signal
# ---------------------------------------------------------------------------

def synthetic_ppg(
    duration: float,
    sample_rate: float = 60.0,
    heart_rate_hz: float = 1.2,
    amplitude: float = 0.01,
    baseline: float = 0.5,
    noise_std: float = 0.001,
    drift: float = 0.0,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    Return ``baseline + drift·t + amplitude·sin(2π·f·t) + noise``.

    Parameters
    ----------
    duration:
        Length of the signal in seconds.
    drift:
        Linear baseline drift per second.
    seed:
        Seed for the noise generator (reproducible output).
    """
    n = int(round(duration * sample_rate))
    t = np.arange(n) / sample_rate
    rng = np.random.default_rng(seed)
    noise = rng.normal(0.0, noise_std, n) if noise_std > 0 else np.zeros(n)
    return baseline + drift * t + amplitude * np.sin(2 * np.pi * heart_rate_hz * t) + noise
