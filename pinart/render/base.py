"""
Base class for pin height sinks.

To add a new sink:
1. Create a new file in the render/ directory
2. Inherit from BasePinSink
3. Implement apply()
4. Register in render/__init__.py SINKS dict
"""
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from pinart.core.contracts import FramePacket


class BasePinSink(ABC):
    """Abstract base class for anything that consumes pin heights.

    A sink receives one flat sequence of heights per frame, one value
    per pin slot in row-major (row * cols + col) order. How the heights
    are shown or driven is up to the sink.
    """

    def setup(self) -> None:
        """Prepare sink resources (windows, devices, etc.)."""
        pass

    @abstractmethod
    def apply(self, heights: Sequence[float]) -> None:
        """Apply one frame of pin heights.

        Args:
            heights: One height per pin slot, row-major
        """
        pass

    def show_depth(self, packet: Optional[FramePacket], stats: Optional[dict] = None) -> None:
        """Optionally display the depth frame the heights came from."""
        pass

    def poll_input(self) -> Optional[int]:
        """Poll for user input.

        Returns:
            Key code or None if no input
        """
        return None

    def cleanup(self) -> None:
        """Release sink resources."""
        pass
