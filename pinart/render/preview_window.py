"""
OpenCV preview of the pin field.

Top-down view of the hex pin array, shaded by height, next to the
grayscale depth map the heights were computed from.
Renders overlay text after composing for crisp output.
"""
from typing import Optional, Sequence

import cv2
import numpy as np
from numpy.typing import NDArray
from loguru import logger

from pinart.core.contracts import DepthBuffer, FramePacket
from pinart.depth.normalizer import compute_range, normalize
from pinart.grid.hex_grid import HexGridMapper
from .base import BasePinSink


def depth_to_image(buffer: DepthBuffer, mirror: bool = True) -> NDArray[np.uint8]:
    """Grayscale visualization of a depth buffer; near (large values) is dark.

    Args:
        buffer: Depth buffer to visualize
        mirror: Flip horizontally to match a mirrored camera view

    Returns:
        H x W uint8 image, or an empty 1x1 image for an empty buffer
    """
    if buffer.is_empty:
        return np.zeros((1, 1), dtype=np.uint8)

    depth_min, depth_max = compute_range(buffer)
    norm = normalize(buffer.as_array(), depth_min, depth_max)
    gray = (255 * (1 - norm)).clip(0, 255).astype(np.uint8)
    if mirror:
        gray = cv2.flip(gray, 1)
    return gray


class PreviewWindow(BasePinSink):
    """OpenCV window showing pins and depth side by side.

    Pins are drawn as filled circles at their hex positions, brighter
    when raised. The depth panel is scaled to the pin panel's height.
    """

    def __init__(
        self,
        mapper: HexGridMapper,
        max_displacement: float,
        canvas_width: int = 720,
        window_name: str = "Pin Art",
        show_depth_panel: bool = True,
        pin_radius: Optional[float] = None,
        mirror: Optional[bool] = None,
    ):
        """
        Initialize preview.

        Args:
            mapper: Grid mapper providing pin positions
            max_displacement: Height that maps to full brightness
            canvas_width: Pin panel width in pixels
            window_name: OpenCV window title
            show_depth_panel: Draw the depth map next to the pins
            pin_radius: Drawn pin radius in world units (half the column spacing if omitted)
            mirror: Flip the depth panel horizontally (follows the mapper if omitted)
        """
        self.mapper = mapper
        self.max_displacement = max_displacement
        self.canvas_width = canvas_width
        self.window_name = window_name
        self.show_depth_panel = show_depth_panel
        self.mirror = mapper.mirror_x if mirror is None else mirror

        frame_w, frame_h = mapper.frame_size
        self._scale = canvas_width / frame_w
        self.canvas_height = max(1, int(round(frame_h * self._scale)))

        # Pixel centers never change for a session
        positions = mapper.pin_positions()
        self._centers = np.empty_like(positions, dtype=np.int32)
        self._centers[:, 0] = np.round(positions[:, 0] * self._scale + canvas_width / 2)
        self._centers[:, 1] = np.round(positions[:, 1] * self._scale + self.canvas_height / 2)
        if pin_radius is None:
            pin_radius = mapper.grid.spacing_x / 2
        self._radius = max(1, int(round(pin_radius * self._scale)))

        self._pin_panel = np.zeros((self.canvas_height, canvas_width, 3), dtype=np.uint8)
        self._depth_panel: Optional[NDArray[np.uint8]] = None
        self._stats: dict = {}

    def setup(self) -> None:
        cv2.namedWindow(self.window_name, cv2.WINDOW_NORMAL)
        logger.info(f"Preview window opened: {self.canvas_width}x{self.canvas_height}")

    def render_pins(self, heights: Sequence[float]) -> NDArray[np.uint8]:
        """Draw the pin panel for one frame of heights."""
        panel = np.zeros((self.canvas_height, self.canvas_width, 3), dtype=np.uint8)
        scale = self.max_displacement if self.max_displacement > 0 else 1.0
        shades = (60 + 195 * np.clip(np.asarray(heights) / scale, 0.0, 1.0)).astype(np.uint8)

        for (cx, cy), shade in zip(self._centers, shades):
            s = int(shade)
            cv2.circle(panel, (int(cx), int(cy)), self._radius, (s, s, s), -1)
        return panel

    def apply(self, heights: Sequence[float]) -> None:
        self._pin_panel = self.render_pins(heights)
        self._refresh()

    def show_depth(self, packet: Optional[FramePacket], stats: Optional[dict] = None) -> None:
        if stats:
            self._stats = stats
        if packet is None or not self.show_depth_panel:
            return
        gray = depth_to_image(packet.buffer, mirror=self.mirror)
        h, w = gray.shape
        target_w = max(1, int(round(w * self.canvas_height / h)))
        gray = cv2.resize(gray, (target_w, self.canvas_height), interpolation=cv2.INTER_AREA)
        self._depth_panel = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    def _refresh(self):
        display = self._pin_panel
        if self._depth_panel is not None:
            display = np.hstack([display, self._depth_panel])
        else:
            display = display.copy()

        self._draw_overlay(display)
        cv2.imshow(self.window_name, display)

    def _draw_overlay(self, frame: NDArray[np.uint8]):
        """Draw stats text on frame."""
        lines = []
        if "fps" in self._stats:
            lines.append(f"FPS: {self._stats['fps']:.2f}")
        if "inference_ms" in self._stats:
            lines.append(f"Inference: {self._stats['inference_ms']:.1f}ms")
        if "input_size" in self._stats:
            lines.append(f"Input: {self._stats['input_size']}")

        for i, text in enumerate(lines):
            cv2.putText(
                frame, text, (10, 25 + 20 * i),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 255, 0), 1
            )

    def poll_input(self) -> Optional[int]:
        """Poll for keyboard input; also pumps window events.

        Returns:
            Key code (0-255) or None if no key pressed
        """
        key = cv2.waitKey(1) & 0xFF
        if key == 255:  # No key pressed
            return None
        return key

    def cleanup(self) -> None:
        cv2.destroyWindow(self.window_name)
