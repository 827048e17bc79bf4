"""Tests for the pipeline orchestrator, estimator fallback and preview helpers."""

import threading

import numpy as np
import pytest

from pinart.config import Config
from pinart.core.contracts import DepthBuffer, FramePacket, GridSpec
from pinart.depth.depth_estimator import DepthEstimator
from pinart.grid.hex_grid import HexGridMapper
from pinart.pipeline.orchestrator import INPUT_SIZE_STEP, PinArtPipeline
from pinart.render import get_sink
from pinart.render.base import BasePinSink
from pinart.render.pin_state import PinState
from pinart.render.preview_window import PreviewWindow, depth_to_image


class FakeSource:
    def __init__(self, frames=True):
        self.frames = frames
        self.started = False
        self.stopped = False
        self.count = 0

    def start(self):
        self.started = True
        return True

    def stop(self):
        self.stopped = True

    def read_frame(self):
        if not self.frames:
            return (None, 0.0, self.count)
        self.count += 1
        frame = np.full((16, 16, 3), self.count, dtype=np.uint8)
        return (frame, 1000.0 * self.count, self.count)


class FakeEstimator:
    def __init__(self, input_size=8):
        self.input_size = input_size
        self.average_inference_time_ms = 0.0
        self.calls = 0
        self.shut_down = False

    def initialize(self):
        return True

    def estimate(self, frame):
        self.calls += 1
        ys, xs = np.mgrid[0:self.input_size, 0:self.input_size]
        depth = (xs + ys + self.calls).astype(np.float64)
        return DepthBuffer.from_array(depth), "fake", 1.0

    def set_input_size(self, size):
        self.input_size = size

    def shutdown(self):
        self.shut_down = True


class BlockingEstimator(FakeEstimator):
    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def estimate(self, frame):
        self.entered.set()
        self.release.wait(timeout=5.0)
        return super().estimate(frame)


class RecordingSink(BasePinSink):
    def __init__(self, keys=()):
        self.applied = []
        self.depth_packets = []
        self.keys = list(keys)

    def apply(self, heights):
        self.applied.append(np.asarray(heights).copy())

    def show_depth(self, packet, stats=None):
        self.depth_packets.append(packet)

    def poll_input(self):
        return self.keys.pop(0) if self.keys else None


@pytest.fixture
def grid():
    return GridSpec.hexagonal(4, 5, 0.2)


def make_pipeline(grid, sink=None, source=None, estimator=None, **kwargs):
    return PinArtPipeline(
        source=source or FakeSource(),
        estimator=estimator or FakeEstimator(),
        sink=sink or PinState(grid.pin_count),
        grid=grid,
        max_displacement=10.0,
        inference_interval_s=0.001,
        actuation_interval_s=0.001,
        **kwargs,
    )


class TestSteps:
    def test_inference_publishes(self, grid):
        pipeline = make_pipeline(grid)
        packet = pipeline.step_inference()
        assert packet.sequence == 1
        assert packet.source == "fake"
        assert pipeline.slot.latest() is packet

    def test_no_frame_publishes_nothing(self, grid):
        pipeline = make_pipeline(grid, source=FakeSource(frames=False))
        assert pipeline.step_inference() is None
        assert pipeline.slot.latest() is None

    def test_actuation_applies_latest(self, grid):
        sink = PinState(grid.pin_count)
        pipeline = make_pipeline(grid, sink=sink)
        pipeline.step_inference()
        result = pipeline.step_actuation()
        assert result.applied
        assert sink.frames_applied == 1
        assert sink.heights.max() <= 10.0 + 1e-9

    def test_actuation_without_frame(self, grid):
        pipeline = make_pipeline(grid)
        assert pipeline.step_actuation() is None

    def test_same_frame_not_reapplied(self, grid):
        sink = RecordingSink()
        pipeline = make_pipeline(grid, sink=sink)
        pipeline.step_inference()
        pipeline.step_actuation()
        assert pipeline.step_actuation() is None
        assert len(sink.applied) == 1

    def test_skipped_frames_dropped_not_queued(self, grid):
        sink = RecordingSink()
        pipeline = make_pipeline(grid, sink=sink)
        for _ in range(3):
            pipeline.step_inference()
        pipeline.step_actuation()
        assert len(sink.applied) == 1
        assert sink.depth_packets[0].sequence == 3
        assert pipeline.slot.dropped_count == 2

    def test_input_size_change_keeps_pin_count(self, grid):
        sink = RecordingSink()
        estimator = FakeEstimator(input_size=8)
        pipeline = make_pipeline(grid, sink=sink, estimator=estimator)
        pipeline.step_inference()
        pipeline.step_actuation()
        pipeline.set_input_size(20)
        packet = pipeline.step_inference()
        pipeline.step_actuation()
        assert packet.buffer.width == 20
        assert [len(h) for h in sink.applied] == [grid.pin_count, grid.pin_count]

    def test_failing_step_is_contained(self, grid):
        pipeline = make_pipeline(grid)

        def boom():
            raise RuntimeError("bad frame")

        pipeline._guarded(boom, "inference")
        assert pipeline.consecutive_failures["inference"] == 1
        assert "bad frame" in pipeline.last_failure_reason
        pipeline._guarded(pipeline.step_inference, "inference")
        assert pipeline.consecutive_failures["inference"] == 0

    def test_failure_counters_are_per_task(self, grid):
        pipeline = make_pipeline(grid)

        def boom():
            raise RuntimeError("model crashed")

        for _ in range(3):
            pipeline._guarded(boom, "inference")
            pipeline._guarded(pipeline.step_actuation, "actuation")

        assert pipeline.consecutive_failures == {"inference": 3, "actuation": 0}


class TestKeyboard:
    def test_plus_minus_change_input_size(self, grid):
        estimator = FakeEstimator(input_size=224)
        pipeline = make_pipeline(grid, estimator=estimator)
        pipeline.handle_keyboard(ord("+"))
        assert estimator.input_size == 224 + INPUT_SIZE_STEP
        pipeline.handle_keyboard(ord("-"))
        pipeline.handle_keyboard(ord("-"))
        assert estimator.input_size == 224 - INPUT_SIZE_STEP

    def test_quit(self, grid):
        pipeline = make_pipeline(grid)
        pipeline.handle_keyboard(ord("q"))
        assert pipeline._stop_event.is_set()


class TestRun:
    def test_run_until_quit(self, grid):
        source = FakeSource()
        estimator = FakeEstimator()
        sink = RecordingSink(keys=[None, None, ord("q")])
        pipeline = make_pipeline(grid, sink=sink, source=source, estimator=estimator)

        pipeline.run(max_passes=1000)

        assert source.started and source.stopped
        assert estimator.shut_down
        assert pipeline._inference_thread is None

    def test_run_max_passes(self, grid):
        source = FakeSource()
        pipeline = make_pipeline(grid, source=source)
        pipeline.run(max_passes=5)
        assert source.stopped

    def test_stop_waits_for_busy_inference(self, grid):
        estimator = BlockingEstimator()
        pipeline = make_pipeline(grid, estimator=estimator, stop_timeout_s=0.05)
        assert pipeline.start()
        assert estimator.entered.wait(timeout=5.0)

        pipeline.stop()
        assert not estimator.shut_down
        thread = pipeline._inference_thread
        assert thread is not None and thread.is_alive()

        estimator.release.set()
        thread.join(timeout=5.0)
        assert not thread.is_alive()


class TestDepthEstimatorFallback:
    def test_placeholder_depth(self):
        estimator = DepthEstimator(use_model=False, input_size=64)
        frame = np.random.default_rng(0).integers(0, 255, (48, 80, 3), dtype=np.uint8)
        buffer, source, elapsed_ms = estimator.estimate(frame)
        assert source == "placeholder"
        assert (buffer.width, buffer.height) == (64, 64)
        assert elapsed_ms >= 0.0

    def test_input_size_changes_output(self):
        estimator = DepthEstimator(use_model=False, input_size=64)
        estimator.set_input_size(32)
        frame = np.zeros((40, 40, 3), dtype=np.uint8)
        buffer, _, _ = estimator.estimate(frame)
        assert buffer.width == 32

    def test_rejects_bad_input_size(self):
        with pytest.raises(ValueError):
            DepthEstimator(use_model=False).set_input_size(0)


class TestDepthImage:
    def test_constant_is_white(self):
        image = depth_to_image(DepthBuffer(width=4, height=3, samples=[2.0] * 12))
        assert image.shape == (3, 4)
        assert image.dtype == np.uint8
        assert np.all(image == 255)

    def test_mirrored_ramp(self):
        buffer = DepthBuffer(width=3, height=3, samples=[0, 1, 2] * 3)
        plain = depth_to_image(buffer, mirror=False)
        mirrored = depth_to_image(buffer, mirror=True)
        assert plain[0, 0] == 255 and plain[0, 2] == 0
        np.testing.assert_array_equal(mirrored, plain[:, ::-1])

    def test_empty(self):
        assert depth_to_image(DepthBuffer.empty()).shape == (1, 1)


class TestPreviewMirror:
    def ramp_packet(self):
        buffer = DepthBuffer(width=3, height=3, samples=[0, 1, 2] * 3)
        return FramePacket(sequence=1, timestamp_ms=0.0, buffer=buffer)

    @pytest.mark.parametrize("mirror_x", [False, True])
    def test_depth_panel_follows_mapper(self, grid, mirror_x):
        window = PreviewWindow(HexGridMapper(grid, mirror_x=mirror_x), 10.0, canvas_width=120)
        window.show_depth(self.ramp_packet())
        panel = window._depth_panel
        left, right = int(panel[0, 0, 0]), int(panel[0, -1, 0])
        if mirror_x:
            assert left < right
        else:
            assert left > right

    def test_explicit_mirror_overrides_mapper(self, grid):
        window = PreviewWindow(HexGridMapper(grid, mirror_x=True), 10.0, mirror=False)
        assert window.mirror is False


class TestSinkRegistry:
    def test_headless(self, grid):
        sink = get_sink("headless", HexGridMapper(grid), Config())
        assert isinstance(sink, PinState)
        assert len(sink.heights) == grid.pin_count

    def test_opencv_uses_config(self, grid):
        config = Config()
        config.max_displacement = 4.0
        sink = get_sink("opencv", HexGridMapper(grid, mirror_x=True), config)
        assert isinstance(sink, PreviewWindow)
        assert sink.max_displacement == 4.0
        assert sink.mirror is True

    def test_unknown(self, grid):
        with pytest.raises(ValueError):
            get_sink("hologram", HexGridMapper(grid), Config())
