"""
Monocular Depth Estimation with Software Fallback.

Supports:
- Depth Anything V2 through Hugging Face transformers
- Heuristic placeholder depth when the model is unavailable
- Live change of the model input resolution
"""

from __future__ import annotations

import threading
import time
from typing import Optional, Tuple
import numpy as np
from numpy.typing import NDArray
import cv2
from loguru import logger

from pinart.core.contracts import DepthBuffer


DEFAULT_MODEL_ID = "depth-anything/Depth-Anything-V2-Small-hf"


class DepthEstimator:
    """
    Image to DepthBuffer adapter around an external depth model.

    Priority:
    1. Depth Anything V2 (transformers)
    2. Placeholder depth from image heuristics
    3. Flat depth plane

    Output is relative depth with no unit; larger values are nearer,
    as produced by the model. No smoothing across frames.
    """

    def __init__(
        self,
        model_id: str = DEFAULT_MODEL_ID,
        device: str = "cpu",
        input_size: int = 504,
        use_model: bool = True,
    ):
        """
        Initialize depth estimator.

        Args:
            model_id: Hugging Face model identifier
            device: Inference device ("cpu", "cuda", "cuda:0", ...)
            input_size: Square model input resolution in pixels
            use_model: Try to load the neural model at all
        """
        self.model_id = model_id
        self.device = device
        self.use_model = use_model

        # Model state
        self._model = None
        self._processor = None
        self._torch = None
        self._is_initialized = False
        self._lock = threading.Lock()

        self._input_size = input_size

        # Performance tracking
        self._inference_times: list[float] = []

    def initialize(self) -> bool:
        """
        Initialize depth estimation backend.

        Returns:
            True if initialization successful
        """
        if self.use_model and self._initialize_model():
            self._is_initialized = True
            logger.info(f"Depth estimation using {self.model_id} on {self.device}")
            return True

        logger.warning("Depth model unavailable, using placeholder depth")
        self._is_initialized = True
        return True

    def _initialize_model(self) -> bool:
        """Load the transformers depth model and its image processor."""
        try:
            import torch
            from transformers import AutoImageProcessor, AutoModelForDepthEstimation

            dtype = torch.float16 if self.device.startswith("cuda") else torch.float32

            logger.info(f"Loading depth model {self.model_id}...")
            self._processor = AutoImageProcessor.from_pretrained(self.model_id)
            self._model = AutoModelForDepthEstimation.from_pretrained(
                self.model_id, torch_dtype=dtype
            )
            self._model.to(self.device)
            self._model.eval()
            self._torch = torch

            self._apply_input_size()
            return True

        except Exception as e:
            logger.warning(f"Failed to initialize depth model: {e}")
            self._model = None
            self._processor = None
            return False

    def set_input_size(self, size: int):
        """
        Change the model input resolution.

        Only the size of subsequent depth buffers changes; the pin grid
        is unaffected.
        """
        if size <= 0:
            raise ValueError(f"Input size must be positive, got {size}")
        with self._lock:
            self._input_size = size
            self._apply_input_size()
        logger.info(f"Depth input size set to {size}")

    def _apply_input_size(self):
        if self._processor is not None:
            self._processor.size = {"height": self._input_size, "width": self._input_size}

    @property
    def input_size(self) -> int:
        return self._input_size

    @property
    def using_model(self) -> bool:
        return self._model is not None

    def estimate(
        self,
        frame: NDArray[np.uint8],
    ) -> Tuple[DepthBuffer, str, float]:
        """
        Estimate a depth buffer for a frame.

        Args:
            frame: RGB frame (H x W x 3)

        Returns:
            Tuple of (depth_buffer, source, inference_time_ms)
            - source: "model", "placeholder", or "flat"
        """
        if not self._is_initialized:
            self.initialize()

        start_time = time.perf_counter()

        if self._model is not None:
            depth_map = self._estimate_model(frame)
            if depth_map is not None:
                inference_time = (time.perf_counter() - start_time) * 1000
                self._record_inference_time(inference_time)
                return DepthBuffer.from_array(depth_map), "model", inference_time

        depth_map = self._estimate_placeholder(frame)
        if depth_map is not None:
            inference_time = (time.perf_counter() - start_time) * 1000
            self._record_inference_time(inference_time)
            return DepthBuffer.from_array(depth_map), "placeholder", inference_time

        depth_map = self._flat_fallback(self._input_size)
        inference_time = (time.perf_counter() - start_time) * 1000
        return DepthBuffer.from_array(depth_map), "flat", inference_time

    def _estimate_model(
        self,
        frame: NDArray[np.uint8],
    ) -> Optional[NDArray[np.float32]]:
        """Run the depth model on one frame."""
        from PIL import Image

        torch = self._torch
        try:
            with self._lock:
                inputs = self._processor(images=Image.fromarray(frame), return_tensors="pt")
            inputs = {k: v.to(self.device, dtype=self._model.dtype) for k, v in inputs.items()}

            with torch.no_grad():
                outputs = self._model(**inputs)

            return outputs.predicted_depth.squeeze(0).float().cpu().numpy()

        except Exception as e:
            logger.error(f"Depth model inference failed: {e}")
            return None

    def _estimate_placeholder(
        self,
        frame: NDArray[np.uint8],
    ) -> Optional[NDArray[np.float32]]:
        """
        Synthetic relative depth from image heuristics.

        Brighter and lower regions read as nearer. Output is resized to
        the current input size so resolution changes still show up.
        """
        try:
            size = self._input_size
            small = cv2.resize(frame, (size, size), interpolation=cv2.INTER_AREA)

            gray_u8 = cv2.cvtColor(small, cv2.COLOR_RGB2GRAY)
            gray = cv2.GaussianBlur(gray_u8.astype(np.float32), (15, 15), 0)

            vertical_gradient = np.linspace(0.0, 1.0, size, dtype=np.float32).reshape(-1, 1)
            vertical_gradient = np.tile(vertical_gradient, (1, size))

            depth_map = gray / 255.0 * 0.5 + vertical_gradient * 0.5

            # Edges often indicate depth discontinuities
            edges = cv2.Canny(gray_u8, 50, 150)
            edges_blur = cv2.GaussianBlur(edges.astype(np.float32) / 255.0, (11, 11), 0)
            depth_map = depth_map + edges_blur * 0.25

            return depth_map.astype(np.float32)

        except cv2.error as e:
            logger.error(f"Placeholder depth failed: {e}")
            return None

    def _flat_fallback(self, size: int) -> NDArray[np.float32]:
        """Flat depth plane as ultimate fallback."""
        return np.ones((size, size), dtype=np.float32)

    def _record_inference_time(self, time_ms: float):
        """Record inference time for monitoring."""
        self._inference_times.append(time_ms)
        if len(self._inference_times) > 100:
            self._inference_times.pop(0)

    @property
    def average_inference_time_ms(self) -> float:
        """Get average inference time."""
        if not self._inference_times:
            return 0.0
        return sum(self._inference_times) / len(self._inference_times)

    def shutdown(self):
        """Clean up resources."""
        self._model = None
        self._processor = None
        self._is_initialized = False
        logger.info("Depth estimator shutdown complete")
