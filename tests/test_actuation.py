"""Tests for the per-frame pin actuation pass."""

import numpy as np
import pytest

from pinart.core.contracts import DepthBuffer, GridSpec, PinIndex
from pinart.depth.normalizer import compute_range
from pinart.pipeline.actuation import PinActuationPass, pin_height
from pinart.render.pin_state import PinState


def make_sink(grid, fill=0.0):
    sink = PinState(grid.pin_count)
    if fill:
        sink.apply(np.full(grid.pin_count, fill))
    return sink


@pytest.fixture
def ramp_buffer():
    return DepthBuffer(width=4, height=4, samples=list(range(16)))


class TestEndToEnd:
    def test_four_by_four_ramp(self, ramp_buffer):
        grid = GridSpec(rows=2, cols=2, spacing_x=1.0, spacing_y=1.0)
        sink = make_sink(grid)
        result = PinActuationPass(grid, max_displacement=10).run(ramp_buffer, sink)

        # Every cell center lands past the interior and clamps to (2, 2) -> 10
        assert result.applied
        assert (result.depth_min, result.depth_max) == (0.0, 15.0)
        np.testing.assert_allclose(sink.heights, [10 * 10 / 15] * 4, atol=1e-6)

    def test_quadratic_field_three_by_three(self):
        # f(x, y) = x^2 + y on a 6x6 buffer; min 0, max 30
        ys, xs = np.mgrid[0:6, 0:6].astype(np.float64)
        buffer = DepthBuffer.from_array(xs**2 + ys)
        grid = GridSpec(rows=3, cols=3, spacing_x=1.0, spacing_y=1.0)
        sink = make_sink(grid)
        PinActuationPass(grid, max_displacement=10).run(buffer, sink)

        # Sample points 1.5, 4.5, 7.5 clamp to 1.5, 4, 4 on both axes
        axis = [1.5, 4.0, 4.0]
        expected = [10 * (u**2 + v) / 30 for v in axis for u in axis]
        np.testing.assert_allclose(sink.heights, expected, atol=1e-6)


class TestPassBehaviour:
    def test_deterministic(self):
        rng = np.random.default_rng(42)
        buffer = DepthBuffer.from_array(rng.random((48, 64)))
        grid = GridSpec.hexagonal(12, 16, 0.2)
        actuation = PinActuationPass(grid, max_displacement=5.0)

        first = actuation.run(buffer, make_sink(grid)).heights
        second = actuation.run(buffer, make_sink(grid)).heights
        assert first.tobytes() == second.tobytes()

    def test_constant_frame_gives_flat_pins(self):
        grid = GridSpec(rows=3, cols=4, spacing_x=1.0, spacing_y=1.0)
        sink = make_sink(grid, fill=3.0)
        buffer = DepthBuffer(width=5, height=5, samples=[7.0] * 25)
        result = PinActuationPass(grid, max_displacement=10).run(buffer, sink)
        assert result.applied
        assert np.all(sink.heights == 0.0)

    def test_empty_frame_keeps_previous_heights(self):
        grid = GridSpec(rows=2, cols=3, spacing_x=1.0, spacing_y=1.0)
        sink = make_sink(grid, fill=4.0)
        actuation = PinActuationPass(grid, max_displacement=10)

        result = actuation.run(DepthBuffer(width=0, height=0, samples=[]), sink)

        assert not result.applied
        assert result.skip_reason
        assert np.all(sink.heights == 4.0)
        assert sink.frames_applied == 1
        assert actuation.frames_skipped == 1

    def test_none_buffer_is_skipped(self):
        grid = GridSpec(rows=2, cols=2, spacing_x=1.0, spacing_y=1.0)
        sink = make_sink(grid, fill=1.0)
        result = PinActuationPass(grid, max_displacement=10).run(None, sink)
        assert not result.applied
        assert np.all(sink.heights == 1.0)

    def test_too_small_frame_is_skipped(self):
        grid = GridSpec(rows=2, cols=2, spacing_x=1.0, spacing_y=1.0)
        sink = make_sink(grid, fill=2.0)
        buffer = DepthBuffer(width=2, height=2, samples=[0, 1, 2, 3])
        result = PinActuationPass(grid, max_displacement=10).run(buffer, sink)
        assert not result.applied
        assert np.all(sink.heights == 2.0)

    def test_resolution_change_keeps_pin_count(self):
        grid = GridSpec.hexagonal(6, 6, 0.2)
        actuation = PinActuationPass(grid, max_displacement=1.0)
        for size in (8, 33, 120):
            buffer = DepthBuffer.from_array(np.random.default_rng(size).random((size, size)))
            result = actuation.run(buffer, make_sink(grid))
            assert result.heights.shape == (36,)


class TestPinHeight:
    def test_matches_full_pass(self):
        rng = np.random.default_rng(7)
        buffer = DepthBuffer.from_array(rng.normal(size=(11, 17)))
        grid = GridSpec(rows=5, cols=7, spacing_x=1.0, spacing_y=1.0)
        heights = PinActuationPass(grid, max_displacement=3.0).run(buffer, make_sink(grid)).heights

        value_range = compute_range(buffer)
        for row in range(grid.rows):
            for col in range(grid.cols):
                single = pin_height(PinIndex(row, col), buffer, grid, 3.0, value_range)
                assert single == pytest.approx(heights[row * grid.cols + col], abs=1e-12)

    def test_computes_range_when_missing(self, ramp_buffer):
        grid = GridSpec(rows=2, cols=2, spacing_x=1.0, spacing_y=1.0)
        assert pin_height(PinIndex(1, 0), ramp_buffer, grid, 15.0) == pytest.approx(10.0)


class TestPinState:
    def test_starts_flat(self):
        assert np.all(PinState(5).heights == 0.0)

    def test_rejects_wrong_length(self):
        with pytest.raises(ValueError):
            PinState(4).apply([1.0, 2.0])
