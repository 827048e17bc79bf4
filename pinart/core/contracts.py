"""
Core data contracts for the pin art pipeline.

All components must adhere to these contracts for:
- Immutability of per-frame depth data
- Deterministic pin heights
- A pin count that never depends on the depth resolution
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import NamedTuple, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from .errors import DepthShapeError


# ============================================================
# DEPTH DATA
# ============================================================

@dataclass(frozen=True, eq=False)
class DepthBuffer:
    """
    Immutable view over one frame of dense depth samples.

    Samples are stored row-major with the origin at the top-left.
    Values are relative depth magnitudes with no defined unit.

    A buffer with zero width or height and no samples is allowed so that
    an empty frame can travel through the pipeline and be skipped there.
    """
    width: int
    height: int
    samples: Union[Sequence[float], NDArray[np.floating]] = field(repr=False)

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise DepthShapeError(
                f"Depth buffer dimensions must be non-negative, got {self.width}x{self.height}"
            )

        data = np.array(self.samples, dtype=np.float64).reshape(-1)
        if data.size != self.width * self.height:
            raise DepthShapeError(
                f"Depth buffer expects {self.width * self.height} samples "
                f"({self.width}x{self.height}), got {data.size}"
            )

        data.setflags(write=False)
        object.__setattr__(self, "samples", data)

    @classmethod
    def from_array(cls, array: NDArray[np.floating]) -> DepthBuffer:
        """Build a buffer from an H x W array (e.g. a model output)."""
        array = np.asarray(array)
        if array.ndim == 3 and array.shape[0] == 1:
            array = array[0]  # Drop a leading batch axis
        if array.ndim != 2:
            raise DepthShapeError(f"Expected a 2D depth map, got shape {array.shape}")
        height, width = array.shape
        return cls(width=int(width), height=int(height), samples=array)

    @classmethod
    def empty(cls) -> DepthBuffer:
        return cls(width=0, height=0, samples=[])

    @property
    def size(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    def at(self, x: int, y: int) -> float:
        """Get the sample at integer pixel (x, y)."""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        return float(self.samples[y * self.width + x])

    def as_array(self) -> NDArray[np.float64]:
        """Read-only H x W view of the samples."""
        return self.samples.reshape(self.height, self.width)


# ============================================================
# PIN GRID
# ============================================================

@dataclass(frozen=True)
class GridSpec:
    """
    Static pin array topology.

    Set once at startup and never mutated during a run.

    Attributes:
        rows: Number of pin rows
        cols: Number of pins per row
        spacing_x: Distance between adjacent pins in a row
        spacing_y: Distance between adjacent rows
        clearance: Extra width/height added around the outer pin centers
        border: Frame margin on every side of the pin field
    """
    rows: int
    cols: int
    spacing_x: float
    spacing_y: float
    clearance: float = 0.0
    border: float = 0.0

    def __post_init__(self):
        if self.rows <= 0 or self.cols <= 0:
            raise ValueError(f"Grid must have at least one pin, got {self.rows}x{self.cols}")
        if self.spacing_x <= 0 or self.spacing_y <= 0:
            raise ValueError(
                f"Pin spacing must be positive, got ({self.spacing_x}, {self.spacing_y})"
            )
        if self.clearance < 0 or self.border < 0:
            raise ValueError("Clearance and border must be non-negative")

    @classmethod
    def hexagonal(
        cls,
        rows: int,
        cols: int,
        spacing: float,
        border: float = 0.0,
    ) -> GridSpec:
        """
        Honeycomb spacing derived from a single pin pitch.

        Columns are sqrt(3) * spacing apart and rows 1.5 * spacing apart.
        """
        return cls(
            rows=rows,
            cols=cols,
            spacing_x=math.sqrt(3) * spacing,
            spacing_y=1.5 * spacing,
            clearance=spacing,
            border=border,
        )

    @property
    def pin_count(self) -> int:
        return self.rows * self.cols


class PinIndex(NamedTuple):
    """Grid position of one pin."""
    row: int
    col: int


# ============================================================
# PIPELINE MESSAGES
# ============================================================

@dataclass(frozen=True, eq=False)
class FramePacket:
    """
    One published depth frame.

    Handed from the inference task to the actuation task through the
    latest-frame slot.
    """
    sequence: int
    timestamp_ms: float
    buffer: DepthBuffer
    source: str = "unknown"  # "model" | "placeholder" | "flat"
    inference_time_ms: float = 0.0


@dataclass(eq=False)
class ActuationResult:
    """Outcome of one actuation pass."""
    applied: bool
    sequence: Optional[int] = None
    heights: Optional[NDArray[np.float64]] = None
    depth_min: float = 0.0
    depth_max: float = 0.0
    latency_ms: float = 0.0

    # Set when the frame was skipped
    skip_reason: Optional[str] = None
