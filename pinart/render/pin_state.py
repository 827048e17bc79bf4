"""
In-memory pin state.

Holds the current height of every pin. Used headless and as the shared
state the preview window draws from.
"""
import threading
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from .base import BasePinSink


class PinState(BasePinSink):
    """Latest height per pin slot, starting flat at zero."""

    def __init__(self, pin_count: int):
        self.pin_count = pin_count
        self._heights = np.zeros(pin_count, dtype=np.float64)
        self._lock = threading.Lock()
        self.frames_applied = 0

    def apply(self, heights: Sequence[float]) -> None:
        heights = np.asarray(heights, dtype=np.float64)
        if heights.shape != (self.pin_count,):
            raise ValueError(
                f"Expected {self.pin_count} pin heights, got {heights.shape}"
            )
        with self._lock:
            self._heights = heights.copy()
            self.frames_applied += 1

    @property
    def heights(self) -> NDArray[np.float64]:
        """Copy of the current heights."""
        with self._lock:
            return self._heights.copy()
