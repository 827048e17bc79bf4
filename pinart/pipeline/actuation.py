"""
Pin Actuation Pass.

Turns one depth frame into one height per pin:

1. Compute the frame's min/max once
2. Map every pin to a sample coordinate
3. Resample the depth field quadratically
4. Normalize and scale by the maximum displacement
5. Write all heights to the sink

Pins are independent of each other; the only shared step is the range
scan, which completes before any pin is processed. A bad frame is
skipped and the sink keeps its previous heights.
"""

from __future__ import annotations

import time
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from loguru import logger

from pinart.core.contracts import (
    ActuationResult,
    DepthBuffer,
    FramePacket,
    GridSpec,
    PinIndex,
)
from pinart.core.errors import PinArtError
from pinart.depth.normalizer import compute_range, normalize
from pinart.depth.resampler import sample_quadratic
from pinart.grid.hex_grid import HexGridMapper
from pinart.render.base import BasePinSink


def pin_height(
    pin: PinIndex,
    buffer: DepthBuffer,
    grid: GridSpec,
    scale: float,
    value_range: Optional[Tuple[float, float]] = None,
) -> float:
    """
    Height of a single pin for one frame.

    Args:
        pin: Pin to evaluate
        buffer: Frame depth buffer
        grid: Pin grid configuration
        scale: Maximum pin displacement
        value_range: Precomputed (min, max) of the buffer

    Returns:
        Normalized depth at the pin, times scale
    """
    if value_range is None:
        value_range = compute_range(buffer)
    depth_min, depth_max = value_range

    u, v = HexGridMapper(grid).sample_coordinate(pin.row, pin.col, buffer.width, buffer.height)
    raw = sample_quadratic(buffer, u, v)
    return scale * normalize(raw, depth_min, depth_max)


class PinActuationPass:
    """
    Per-frame depth to pin height conversion.

    Guarantees:
    - The buffer is read once per pass
    - Identical inputs give bit-identical heights
    - Empty or malformed frames never raise; the sink is left untouched
    """

    def __init__(
        self,
        grid: GridSpec,
        max_displacement: float,
        mapper: Optional[HexGridMapper] = None,
    ):
        """
        Initialize actuation pass.

        Args:
            grid: Static pin grid configuration
            max_displacement: Height of a pin at the farthest/nearest normalized depth
            mapper: Grid mapper to reuse (built from grid if omitted)
        """
        self.grid = grid
        self.max_displacement = max_displacement
        self.mapper = mapper or HexGridMapper(grid)

        # Performance tracking
        self._pass_times: list[float] = []
        self.frames_applied = 0
        self.frames_skipped = 0

    def compute_heights(self, buffer: DepthBuffer) -> Tuple[NDArray[np.float64], float, float]:
        """
        Heights for every pin, in slot order.

        Raises:
            EmptyDepthError: If the buffer has no samples
            DepthShapeError: If the buffer is too small to resample
        """
        depth_min, depth_max = compute_range(buffer)

        u, v = self.mapper.sample_coordinates(buffer.width, buffer.height)
        raw = sample_quadratic(buffer, u, v)
        heights = self.max_displacement * normalize(raw, depth_min, depth_max)
        return heights, depth_min, depth_max

    def run(
        self,
        buffer: Optional[DepthBuffer],
        sink: BasePinSink,
        sequence: Optional[int] = None,
    ) -> ActuationResult:
        """
        Process one frame and write its heights to the sink.

        Args:
            buffer: Depth buffer for this frame (None counts as empty)
            sink: Consumer of the heights
            sequence: Frame sequence number, for logging

        Returns:
            ActuationResult describing what happened
        """
        start_time = time.perf_counter()

        if buffer is None or buffer.is_empty:
            return self._skip(sequence, "empty depth buffer")

        try:
            heights, depth_min, depth_max = self.compute_heights(buffer)
        except PinArtError as e:
            return self._skip(sequence, str(e))

        sink.apply(heights)
        self.frames_applied += 1

        latency_ms = (time.perf_counter() - start_time) * 1000
        self._record_pass_time(latency_ms)

        if depth_max == depth_min:
            logger.debug(f"Frame {sequence}: constant depth {depth_min}, pins flat")

        return ActuationResult(
            applied=True,
            sequence=sequence,
            heights=heights,
            depth_min=depth_min,
            depth_max=depth_max,
            latency_ms=latency_ms,
        )

    def run_packet(self, packet: Optional[FramePacket], sink: BasePinSink) -> ActuationResult:
        """Convenience wrapper for a published frame packet."""
        if packet is None:
            return self._skip(None, "no frame available", level="DEBUG")
        return self.run(packet.buffer, sink, sequence=packet.sequence)

    def _skip(self, sequence: Optional[int], reason: str, level: str = "WARNING") -> ActuationResult:
        self.frames_skipped += 1
        logger.log(level, f"Skipping frame {sequence}: {reason}")
        return ActuationResult(applied=False, sequence=sequence, skip_reason=reason)

    def _record_pass_time(self, time_ms: float):
        """Record pass time for monitoring."""
        self._pass_times.append(time_ms)
        if len(self._pass_times) > 100:
            self._pass_times.pop(0)

    @property
    def average_pass_time_ms(self) -> float:
        """Get average pass time."""
        if not self._pass_times:
            return 0.0
        return sum(self._pass_times) / len(self._pass_times)
