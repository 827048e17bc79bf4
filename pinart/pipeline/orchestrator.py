"""
Pipeline Orchestrator.

Runs two independent periodic tasks:

Inference task (background thread):
1. Acquire an RGB frame
2. Estimate depth
3. Publish the depth buffer to the latest-frame slot

Actuation task (caller thread, so OpenCV windows stay on one thread):
1. Read the latest depth frame once
2. Convert it to pin heights
3. Hand the heights to the sink

The tasks only share the latest-frame slot. Either may run faster than
the other; stale frames are dropped, never queued.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Optional

from loguru import logger

from pinart.capture.frame_slot import LatestFrameSlot
from pinart.core.contracts import ActuationResult, FramePacket, GridSpec
from pinart.pipeline.actuation import PinActuationPass
from pinart.render.base import BasePinSink

# Depth Anything works on multiples of its 14 pixel patch size
INPUT_SIZE_STEP = 14
MIN_INPUT_SIZE = 112


class PinArtPipeline:
    """
    Main pipeline orchestrator.

    Guarantees:
    - The actuation pass never sees a partially written frame
    - A failing frame is logged and skipped, the loops keep running
    - Changing the model input size never changes the pin grid
    """

    def __init__(
        self,
        source,
        estimator,
        sink: BasePinSink,
        grid: GridSpec,
        max_displacement: float,
        inference_interval_s: float = 0.05,
        actuation_interval_s: float = 1 / 60,
        actuation: Optional[PinActuationPass] = None,
        stop_timeout_s: float = 5.0,
    ):
        """
        Initialize pipeline orchestrator.

        Args:
            source: Frame source with start(), stop(), read_frame()
            estimator: Depth estimator with initialize(), estimate(), set_input_size()
            sink: Consumer of pin heights
            grid: Static pin grid
            max_displacement: Height of a fully raised pin
            inference_interval_s: Minimum period of the inference task
            actuation_interval_s: Period of the actuation task
            actuation: Actuation pass to reuse (built from grid if omitted)
            stop_timeout_s: How long stop() waits for the inference task
        """
        self.source = source
        self.estimator = estimator
        self.sink = sink
        self.grid = grid
        self.inference_interval_s = inference_interval_s
        self.actuation_interval_s = actuation_interval_s
        self.stop_timeout_s = stop_timeout_s

        self.slot = LatestFrameSlot()
        self.actuation = actuation or PinActuationPass(grid, max_displacement)

        self._stop_event = threading.Event()
        self._inference_thread: Optional[threading.Thread] = None
        self._last_applied_sequence: Optional[int] = None

        # Inference rate tracking
        self._publish_times: deque = deque(maxlen=30)

        # Failure tracking, one counter per task
        self.consecutive_failures = {"inference": 0, "actuation": 0}
        self.last_failure_reason: Optional[str] = None

        logger.info(f"Pipeline initialized: {grid.rows}x{grid.cols} pins")

    # ------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------

    def start(self) -> bool:
        """
        Start capture, load the model and launch the inference task.

        Returns:
            True if started successfully
        """
        if not self.source.start():
            logger.error("Failed to start video source")
            return False

        if not self.estimator.initialize():
            logger.warning("Depth estimator initialization failed")

        self.sink.setup()

        self._stop_event.clear()
        self._inference_thread = threading.Thread(
            target=self._inference_loop, name="pinart-inference", daemon=True
        )
        self._inference_thread.start()

        logger.info("Pipeline started")
        return True

    def stop(self):
        """Stop both tasks and release resources."""
        self._stop_event.set()
        inference_alive = False
        if self._inference_thread is not None:
            self._inference_thread.join(timeout=self.stop_timeout_s)
            inference_alive = self._inference_thread.is_alive()
            if inference_alive:
                logger.warning(
                    f"Inference task still running after {self.stop_timeout_s:.1f}s, "
                    "leaving the estimator loaded"
                )
            else:
                self._inference_thread = None

        self.source.stop()
        if not inference_alive:
            self.estimator.shutdown()
        self.sink.cleanup()
        logger.info(
            f"Pipeline stopped: {self.slot.published_count} frames published, "
            f"{self.slot.dropped_count} dropped, {self.actuation.frames_skipped} skipped"
        )

    def run(self, max_passes: Optional[int] = None):
        """
        Run the actuation task on the calling thread until stopped.

        Args:
            max_passes: Stop after this many actuation ticks (None = forever)
        """
        if not self.start():
            return

        passes = 0
        try:
            while not self._stop_event.is_set():
                tick = time.perf_counter()
                self._guarded(self.step_actuation, "actuation")

                key = self.sink.poll_input()
                if key is not None:
                    self.handle_keyboard(key)

                passes += 1
                if max_passes is not None and passes >= max_passes:
                    break

                elapsed = time.perf_counter() - tick
                self._stop_event.wait(max(0.0, self.actuation_interval_s - elapsed))

        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        finally:
            self.stop()

    def request_stop(self):
        """Ask both loops to exit at their next tick."""
        self._stop_event.set()

    # ------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------

    def _inference_loop(self):
        logger.debug("Inference task running")
        while not self._stop_event.is_set():
            tick = time.perf_counter()
            self._guarded(self.step_inference, "inference")
            elapsed = time.perf_counter() - tick
            self._stop_event.wait(max(0.0, self.inference_interval_s - elapsed))
        logger.debug("Inference task exited")

    def step_inference(self) -> Optional[FramePacket]:
        """
        Capture one frame, estimate depth and publish it.

        Returns:
            The published packet, or None if no frame was available
        """
        frame, timestamp_ms, frame_id = self.source.read_frame()
        if frame is None:
            return None

        buffer, depth_source, inference_ms = self.estimator.estimate(frame)
        packet = self.slot.publish(
            buffer,
            source=depth_source,
            inference_time_ms=inference_ms,
            timestamp_ms=timestamp_ms,
        )
        self._publish_times.append(time.perf_counter())

        logger.debug(
            f"Frame {frame_id} -> depth #{packet.sequence} "
            f"{buffer.width}x{buffer.height} ({depth_source}, {inference_ms:.1f}ms)"
        )
        return packet

    def step_actuation(self) -> Optional[ActuationResult]:
        """
        Apply the latest depth frame to the pins.

        Returns:
            Result of the pass, or None if there was no new frame
        """
        packet = self.slot.latest()
        if packet is None or packet.sequence == self._last_applied_sequence:
            return None

        self.sink.show_depth(packet, self.stats)
        result = self.actuation.run_packet(packet, self.sink)
        self._last_applied_sequence = packet.sequence
        return result

    def _guarded(self, step, name: str):
        """Run one task step; log failures and keep going."""
        try:
            step()
            self.consecutive_failures[name] = 0
        except Exception as e:
            self.consecutive_failures[name] += 1
            self.last_failure_reason = f"{name}: {e}"
            logger.exception(
                f"{name.capitalize()} step failed ({self.consecutive_failures[name]} in a row)"
            )

    # ------------------------------------------------------------
    # Controls and stats
    # ------------------------------------------------------------

    def set_input_size(self, size: int):
        """Change the depth model input resolution while running."""
        self.estimator.set_input_size(size)

    def handle_keyboard(self, key: int):
        """
        Handle a key from the sink window.

        q / ESC quits, + and - step the model input size.
        """
        if key in (ord("q"), 27):
            logger.info("Quit requested")
            self.request_stop()
        elif key in (ord("+"), ord("=")):
            self.set_input_size(self.estimator.input_size + INPUT_SIZE_STEP)
        elif key == ord("-"):
            new_size = self.estimator.input_size - INPUT_SIZE_STEP
            if new_size >= MIN_INPUT_SIZE:
                self.set_input_size(new_size)

    @property
    def inference_fps(self) -> float:
        if len(self._publish_times) < 2:
            return 0.0
        duration = self._publish_times[-1] - self._publish_times[0]
        if duration <= 0:
            return 0.0
        return (len(self._publish_times) - 1) / duration

    @property
    def stats(self) -> dict:
        return {
            "fps": self.inference_fps,
            "inference_ms": self.estimator.average_inference_time_ms,
            "input_size": self.estimator.input_size,
            "pass_ms": self.actuation.average_pass_time_ms,
            "dropped": self.slot.dropped_count,
        }
