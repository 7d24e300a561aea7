"""
Fixed-capacity sample store for one analysis window.

The buffer is an arena of ``capacity`` slots addressed by a cursor: sample
number *k* (counting from zero since construction or the last reset) is
written to slot ``k % capacity``.  Slots are overwritten in place, never
rotated, so the storage order equals chronological order only at the exact
moment a window has been filled (``total_samples % capacity == 0``).  That
is the only point at which :class:`~ppg_quality.scheduler.WindowScheduler`
reads it; a mid-window snapshot mixes two windows.
"""

from __future__ import annotations

import numpy as np

from ppg_quality.config import check_window_length


class SampleBuffer:
    """
    Positional ring store of the most recent ``capacity`` raw samples.

    Parameters
    ----------
    capacity:
        Window length in samples (≥ 2).
    fill_value:
        Initial content of every slot.
    """

    def __init__(self, capacity: int, fill_value: float = 0.0) -> None:
        self.capacity = check_window_length(capacity)
        self._fill_value = float(fill_value)
        self._data = np.full(self.capacity, self._fill_value, dtype=np.float64)
        self._total = 0

    def push(self, sample: float) -> None:
        """Write *sample* at slot ``total_samples % capacity``."""
        self._data[self._total % self.capacity] = sample
        self._total += 1

    def snapshot(self) -> np.ndarray:
        """Return a copy of the slots in storage order (length ``capacity``)."""
        return self._data.copy()

    @property
    def total_samples(self) -> int:
        """Number of samples pushed since construction / reset."""
        return self._total

    @property
    def cursor(self) -> int:
        """Slot the next sample will be written to."""
        return self._total % self.capacity

    @property
    def is_full_window(self) -> bool:
        """True right after the last slot of a window has been written."""
        return self._total > 0 and self._total % self.capacity == 0

    def reset(self) -> None:
        self._data.fill(self._fill_value)
        self._total = 0

    def __len__(self) -> int:
        return self.capacity
