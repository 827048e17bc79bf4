"""
Core data contracts for the pin art pipeline.

Data flow per frame (NEVER REORDER):
1. Depth estimate arrives as an immutable DepthBuffer
2. Min/max range is computed once for the whole buffer
3. Every pin maps to a continuous sample coordinate
4. The depth field is resampled quadratically at that coordinate
5. The sample is normalized and scaled into a pin height
"""

from .contracts import (
    DepthBuffer,
    GridSpec,
    PinIndex,
    FramePacket,
    ActuationResult,
)
from .errors import PinArtError, DepthShapeError, EmptyDepthError
