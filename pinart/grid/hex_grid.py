"""
Hexagonal pin grid topology.

Handles:
- Pin index <-> linear slot mapping
- World-space pin positions with the odd-row half offset
- Footprint of the pin field and its enclosing frame
- Pin index -> depth buffer sample coordinate
"""

from __future__ import annotations

from typing import Iterator, Tuple

import numpy as np
from numpy.typing import NDArray

from pinart.core.contracts import GridSpec, PinIndex


class HexGridMapper:
    """
    Fixed pin layout for the whole session.

    Odd rows are shifted by half the column spacing, giving a honeycomb
    packing. Sampling is independent of that offset: every pin samples
    the depth buffer at the center of its cell in a uniform grid that
    stretches over the buffer, whatever its resolution.
    """

    def __init__(self, grid: GridSpec, mirror_x: bool = False):
        """
        Initialize the mapper.

        Args:
            grid: Static grid configuration
            mirror_x: Flip world-space x positions (matches a mirrored camera view)
        """
        self.grid = grid
        self.mirror_x = mirror_x

    # ------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------

    def _check(self, row: int, col: int):
        if not (0 <= row < self.grid.rows and 0 <= col < self.grid.cols):
            raise IndexError(
                f"Pin ({row}, {col}) outside {self.grid.rows}x{self.grid.cols} grid"
            )

    def index(self, row: int, col: int) -> int:
        """Linear slot of a pin, row-major."""
        self._check(row, col)
        return row * self.grid.cols + col

    def pin_index(self, slot: int) -> PinIndex:
        """Inverse of index()."""
        if not (0 <= slot < self.grid.pin_count):
            raise IndexError(f"Slot {slot} outside grid of {self.grid.pin_count} pins")
        return PinIndex(slot // self.grid.cols, slot % self.grid.cols)

    def iter_pins(self) -> Iterator[PinIndex]:
        """All pins in slot order."""
        for row in range(self.grid.rows):
            for col in range(self.grid.cols):
                yield PinIndex(row, col)

    # ------------------------------------------------------------
    # Physical layout
    # ------------------------------------------------------------

    @property
    def footprint(self) -> Tuple[float, float]:
        """(total_width, total_height) spanned by the pin centers plus clearance."""
        g = self.grid
        total_width = (g.cols - 1) * g.spacing_x + g.clearance
        total_height = (g.rows - 1) * g.spacing_y + g.clearance
        return (total_width, total_height)

    @property
    def frame_size(self) -> Tuple[float, float]:
        """Size of the enclosing frame (footprint plus border on each side)."""
        total_width, total_height = self.footprint
        border = self.grid.border
        return (total_width + 2 * border, total_height + 2 * border)

    def local_position(self, row: int, col: int) -> Tuple[float, float]:
        """Uncentered (x, z) position with the odd-row half offset."""
        self._check(row, col)
        hx = self.grid.spacing_x
        x = col * hx + (row % 2) * (hx / 2)
        z = row * self.grid.spacing_y
        return (x, z)

    def pin_position(self, row: int, col: int) -> Tuple[float, float]:
        """World (x, z) position of a pin, centered on the footprint."""
        x, z = self.local_position(row, col)
        total_width, total_height = self.footprint

        x -= total_width / 2
        z -= total_height / 2
        if self.mirror_x:
            x = -x
        return (x, z)

    def pin_positions(self) -> NDArray[np.float64]:
        """(pin_count, 2) array of world positions in slot order."""
        return np.array(
            [self.pin_position(row, col) for row, col in self.iter_pins()],
            dtype=np.float64,
        )

    # ------------------------------------------------------------
    # Depth buffer sampling
    # ------------------------------------------------------------

    def sample_steps(self, width: int, height: int) -> Tuple[float, float]:
        """Buffer-space distance between neighboring pins."""
        step_x = width / max(self.grid.cols - 1, 1)
        step_y = height / max(self.grid.rows - 1, 1)
        return (step_x, step_y)

    def sample_coordinate(self, row: int, col: int, width: int, height: int) -> Tuple[float, float]:
        """
        Continuous (u, v) in depth-buffer pixel space for one pin.

        Points past the last pixel are expected; the resampler clamps them.
        """
        self._check(row, col)
        step_x, step_y = self.sample_steps(width, height)
        return ((col + 0.5) * step_x, (row + 0.5) * step_y)

    def sample_coordinates(
        self,
        width: int,
        height: int,
    ) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """
        Sample coordinates for every pin, flattened in slot order.

        Returns:
            Tuple of (u, v) arrays of length pin_count
        """
        step_x, step_y = self.sample_steps(width, height)
        cols = (np.arange(self.grid.cols, dtype=np.float64) + 0.5) * step_x
        rows = (np.arange(self.grid.rows, dtype=np.float64) + 0.5) * step_y
        u = np.tile(cols, self.grid.rows)
        v = np.repeat(rows, self.grid.cols)
        return u, v
