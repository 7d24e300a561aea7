"""
Linear detrending.

Removes the straight line that best fits a window in the least-squares
sense, leaving the oscillatory (AC) part of the PPG signal.  Slow drifts
from finger pressure changes and auto-exposure are mostly linear over a
few seconds, so a first-order fit is enough.

The fit is ``y ≈ intercept + slope·i`` for ``i = 0 … n-1``::

    slope     = (n·Σ(i·y) − Σi·Σy) / (n·Σi² − (Σi)²)
    intercept = mean(y) − slope·mean(i)
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np
from scipy import stats

from ppg_quality.errors import InvalidInputError

ArrayLike = Union[Sequence[float], np.ndarray]


def linear_fit(window: ArrayLike) -> tuple[float, float]:
    """
    Return ``(slope, intercept)`` of the OLS line through *window*.

    Raises
    ------
    InvalidInputError
        If *window* has fewer than 2 samples (the regression is undefined).
    """
    y = np.asarray(window, dtype=np.float64).ravel()
    n = y.size
    if n < 2:
        raise InvalidInputError(f"detrend needs at least 2 samples, got {n}")

    fit = stats.linregress(np.arange(n, dtype=np.float64), y)
    return float(fit.slope), float(fit.intercept)


def detrend(window: ArrayLike) -> np.ndarray:
    """
    Return *window* with its least-squares linear trend subtracted.

    The output has the same length and index correspondence as the input.

    Raises
    ------
    InvalidInputError
        If *window* has fewer than 2 samples.
    """
    y = np.asarray(window, dtype=np.float64).ravel()
    slope, intercept = linear_fit(y)
    return y - (intercept + slope * np.arange(y.size, dtype=np.float64))
