"""
Quadratic resampling of a depth field.

Evaluates a DepthBuffer at continuous pixel coordinates with separable
2nd-order Lagrange interpolation over a 3x3 neighborhood. Smoother than
bilinear for pin actuation, and exact for any quadratic field.

Results may overshoot the local min/max of the neighborhood; Lagrange
quadratics are not convexity-preserving.
"""

from __future__ import annotations

from typing import Union

import numpy as np
from numpy.typing import NDArray

from pinart.core.contracts import DepthBuffer
from pinart.core.errors import DepthShapeError

Coordinate = Union[float, NDArray[np.floating]]

# Smallest buffer side that still holds a full 3x3 neighborhood
MIN_RESAMPLE_SIZE = 3


def lagrange(y0: Coordinate, y1: Coordinate, y2: Coordinate, t: Coordinate) -> Coordinate:
    """
    Evaluate the quadratic through (0, y0), (1, y1), (2, y2) at t.

    Uses the closed-form Lagrange basis. Accepts scalars or numpy arrays.
    """
    c0 = y0 * ((t - 1) * (t - 2)) / ((0 - 1) * (0 - 2))
    c1 = y1 * ((t - 0) * (t - 2)) / ((1 - 0) * (1 - 2))
    c2 = y2 * ((t - 0) * (t - 1)) / ((2 - 0) * (2 - 1))
    return c0 + c1 + c2


def clamp_coordinates(
    buffer: DepthBuffer,
    u: Coordinate,
    v: Coordinate,
):
    """Pull (u, v) into [1, width-2] x [1, height-2]."""
    u = np.clip(u, 1, buffer.width - 2)
    v = np.clip(v, 1, buffer.height - 2)
    return u, v


def sample_quadratic(buffer: DepthBuffer, u: Coordinate, v: Coordinate) -> Coordinate:
    """
    Sample the depth field at continuous coordinates.

    Coordinates outside the interior are clamped one pixel inward so a
    full 3x3 neighborhood always exists. Edge pixels are never the center
    of a neighborhood.

    Args:
        buffer: Depth buffer to sample
        u: Horizontal pixel coordinate(s)
        v: Vertical pixel coordinate(s), same shape as u

    Returns:
        Interpolated value(s); a float for scalar input

    Raises:
        DepthShapeError: If the buffer is smaller than 3x3
    """
    if buffer.width < MIN_RESAMPLE_SIZE or buffer.height < MIN_RESAMPLE_SIZE:
        raise DepthShapeError(
            f"Quadratic resampling needs at least a {MIN_RESAMPLE_SIZE}x{MIN_RESAMPLE_SIZE} "
            f"buffer, got {buffer.width}x{buffer.height}"
        )

    u, v = clamp_coordinates(buffer, u, v)

    # Neighborhood starts one sample before floor(u); fx/fy measured from there
    x0 = np.floor(u).astype(np.intp) - 1
    y0 = np.floor(v).astype(np.intp) - 1
    fx = u - x0
    fy = v - y0

    data = buffer.as_array()

    def d(x, y):
        return data[y, x]

    row0 = lagrange(d(x0, y0), d(x0 + 1, y0), d(x0 + 2, y0), fx)
    row1 = lagrange(d(x0, y0 + 1), d(x0 + 1, y0 + 1), d(x0 + 2, y0 + 1), fx)
    row2 = lagrange(d(x0, y0 + 2), d(x0 + 1, y0 + 2), d(x0 + 2, y0 + 2), fx)

    result = lagrange(row0, row1, row2, fy)

    if np.ndim(result) == 0:
        return float(result)
    return result
