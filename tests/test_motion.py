"""Unit tests for the blob motion model."""

import os
import sys
import random

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.motion import (
    BASE_HZ,
    Blob,
    blob_position,
    effective_cycle_count,
    generate_blobs,
    loop_progress,
)


class TestEffectiveCycleCount:
    """Whole-cycle rounding."""

    def test_rounds_to_nearest(self):
        # 1 * 1.0 * 0.5 * 10 = 5
        assert effective_cycle_count(1, 1.0, 10) == 5
        # 2 * 1.3 * 0.5 * 7 = 9.1
        assert effective_cycle_count(2, 1.3, 7) == 9

    def test_half_rounds_up(self):
        # 1 * 1.0 * 0.5 * 5 = 2.5
        assert effective_cycle_count(1, 1.0, 5) == 3

    def test_floored_at_one(self):
        assert effective_cycle_count(1, 0.1, 5) == 1
        assert effective_cycle_count(1, 0.01, 1) == 1

    def test_uses_base_rate(self):
        assert effective_cycle_count(1, 2.0, 10) == int(2.0 * BASE_HZ * 10)


class TestLoopProgress:

    def test_wraps_at_duration(self):
        assert loop_progress(0, 10) == 0.0
        assert loop_progress(5000, 10) == pytest.approx(0.5)
        assert loop_progress(10000, 10) == 0.0
        assert loop_progress(12500, 10) == pytest.approx(0.25)

    def test_always_below_one(self):
        for ms in (0, 999.999, 9999.9999, 1e9):
            assert 0.0 <= loop_progress(ms, 10) < 1.0


class TestBlobPosition:
    """The loop must close whatever speed and duration are picked."""

    def _blob(self):
        return Blob("#ff0000", 300, phase_x=0.7, phase_y=2.1,
                    base_cycles_x=2, base_cycles_y=1)

    @pytest.mark.parametrize("speed,duration", [(1.0, 10), (0.1, 5), (3.7, 13), (4.0, 90)])
    def test_loop_closes(self, speed, duration):
        blob = self._blob()
        start = blob_position(blob, speed, duration, 0, 1920, 1080)
        end = blob_position(blob, speed, duration, duration * 1000, 1920, 1080)
        assert end[0] == pytest.approx(start[0], abs=1e-6)
        assert end[1] == pytest.approx(start[1], abs=1e-6)

    def test_stays_inside_travel_box(self):
        blob = self._blob()
        for ms in range(0, 10000, 250):
            x, y = blob_position(blob, 1.0, 10, ms, 1920, 1080)
            assert 1920 * 0.325 <= x <= 1920 * 0.675
            assert 1080 * 0.325 <= y <= 1080 * 0.675

    def test_actually_moves(self):
        blob = self._blob()
        a = blob_position(blob, 1.0, 10, 0, 1920, 1080)
        b = blob_position(blob, 1.0, 10, 1300, 1920, 1080)
        assert a != b


class TestGenerateBlobs:

    def test_one_blob_per_color(self):
        colors = ["#ff0000", "#00ff00", "#0000ff"]
        blobs = generate_blobs(colors, 1080, 1920, random.Random(1))
        assert [b.color for b in blobs] == colors

    def test_seed_ranges(self):
        for blob in generate_blobs(["#ffffff"] * 8, 1920, 1080, random.Random(7)):
            assert 1080 * 0.4 <= blob.radius <= 1080 * 0.8
            assert blob.base_cycles_x in (1, 2)
            assert blob.base_cycles_y in (1, 2)

    def test_same_seed_same_blobs(self):
        a = generate_blobs(["#ff0000", "#00ff00"], 1920, 1080, random.Random(3))
        b = generate_blobs(["#ff0000", "#00ff00"], 1920, 1080, random.Random(3))
        assert [(x.radius, x.phase_x) for x in a] == [(y.radius, y.phase_x) for y in b]
