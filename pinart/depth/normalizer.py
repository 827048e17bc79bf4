"""
Depth range normalization.

Maps raw relative depth onto [0, 1] using the observed min/max of a
single frame. No calibration and no cross-frame state.
"""

from __future__ import annotations

from typing import Tuple, Union

import numpy as np
from numpy.typing import NDArray

from pinart.core.contracts import DepthBuffer
from pinart.core.errors import EmptyDepthError

ArrayLike = Union[float, NDArray[np.floating]]


def compute_range(buffer: DepthBuffer) -> Tuple[float, float]:
    """
    Find the minimum and maximum sample of a buffer.

    Args:
        buffer: Depth buffer to scan

    Returns:
        Tuple of (min, max)

    Raises:
        EmptyDepthError: If the buffer holds no samples
    """
    if buffer.is_empty:
        raise EmptyDepthError("Cannot compute the range of an empty depth buffer")

    samples = buffer.samples
    return float(samples.min()), float(samples.max())


def normalize(value: ArrayLike, depth_min: float, depth_max: float) -> ArrayLike:
    """
    Rescale raw depth into [0, 1] for values inside [depth_min, depth_max].

    A constant field (depth_max == depth_min) normalizes to 0 everywhere.
    Works element-wise on numpy arrays.
    """
    depth_range = depth_max - depth_min

    if depth_range == 0:
        if isinstance(value, np.ndarray):
            return np.zeros_like(value, dtype=np.float64)
        return 0.0

    return (value - depth_min) / depth_range
