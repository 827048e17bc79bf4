"""
Webcam Capture.

Handles:
- Camera acquisition through OpenCV
- BGR to RGB conversion
- Capture rate tracking
"""

from __future__ import annotations

import time
import threading
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger


class VideoCapture:
    """
    Webcam source feeding the depth estimator.

    Guarantees:
    - RGB format output
    - Thread-safe access to the latest frame
    """

    def __init__(
        self,
        device_index: int = 0,
        width: int = 720,
        height: int = 720,
        fps: int = 30,
    ):
        """
        Initialize video capture.

        Args:
            device_index: Camera device index
            width: Requested capture width
            height: Requested capture height
            fps: Requested frames per second
        """
        self.device_index = device_index
        self.width = width
        self.height = height
        self.fps = fps

        # State
        self._capture: Optional[cv2.VideoCapture] = None
        self._is_running = False
        self._lock = threading.Lock()
        self._frame_count: int = 0

        # Performance tracking
        self._frame_times: list[float] = []
        self._actual_fps: float = 0.0

    def start(self) -> bool:
        """
        Open the camera.

        Returns:
            True if started successfully
        """
        if self._is_running:
            return True

        try:
            self._capture = cv2.VideoCapture(self.device_index)

            if not self._capture.isOpened():
                logger.error(f"Failed to open camera {self.device_index}")
                return False

            self._capture.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self._capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self._capture.set(cv2.CAP_PROP_FPS, self.fps)
            # Only the newest frame matters
            self._capture.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            actual_width = int(self._capture.get(cv2.CAP_PROP_FRAME_WIDTH))
            actual_height = int(self._capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
            actual_fps = self._capture.get(cv2.CAP_PROP_FPS)

            logger.info(
                f"Video capture started: {actual_width}x{actual_height} @ {actual_fps}fps"
            )

            self._is_running = True
            return True

        except cv2.error as e:
            logger.error(f"Failed to start video capture: {e}")
            return False

    def stop(self):
        """Release the camera."""
        self._is_running = False

        if self._capture is not None:
            self._capture.release()
            self._capture = None

        logger.info("Video capture stopped")

    def read_frame(self) -> Tuple[Optional[NDArray[np.uint8]], float, int]:
        """
        Read a frame from the camera.

        Returns:
            Tuple of (frame, timestamp_ms, frame_id)
            - frame: RGB frame or None on failure
            - timestamp_ms: Capture timestamp in milliseconds
            - frame_id: Sequential frame number
        """
        if not self._is_running or self._capture is None:
            return (None, 0.0, 0)

        ret, frame = self._capture.read()

        if not ret or frame is None:
            return (None, 0.0, self._frame_count)

        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        timestamp_ms = time.time() * 1000

        with self._lock:
            self._frame_count += 1
            self._frame_times.append(time.perf_counter())
            if len(self._frame_times) > 30:
                self._frame_times.pop(0)
            self._update_fps()
            frame_id = self._frame_count

        return (frame_rgb, timestamp_ms, frame_id)

    def _update_fps(self):
        """Calculate actual FPS from frame times."""
        if len(self._frame_times) < 2:
            return

        duration = self._frame_times[-1] - self._frame_times[0]
        if duration > 0:
            self._actual_fps = (len(self._frame_times) - 1) / duration

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def actual_fps(self) -> float:
        return self._actual_fps
