"""Unit tests for blend modes and frame composition."""

import os
import sys
import random

import numpy as np
import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.compositor import (
    BLEND_FUNCTIONS,
    FrameCompositor,
    blend,
    cover_fit,
    paste_over,
)
from vidquotes.design import BLEND_MODES, new_design, set_logo, update_layer
from vidquotes.motion import generate_blobs


def blank_design(**changes):
    """Design with no visible text, so only the stage under test paints."""
    return update_layer(new_design(**changes), "1", text="")


class TestBlendModes:

    def _apply(self, mode, b, s):
        backdrop = np.full((1, 1, 3), b, dtype=np.float32)
        source = np.full((1, 1, 3), s, dtype=np.float32)
        alpha = np.ones((1, 1, 1), dtype=np.float32)
        return float(blend(backdrop, source, alpha, mode)[0, 0, 0])

    def test_every_design_mode_has_a_formula(self):
        assert set(BLEND_MODES) == set(BLEND_FUNCTIONS)

    @pytest.mark.parametrize("mode,b,s,expected", [
        ("source-over", 0.2, 0.7, 0.7),
        ("screen", 0.5, 0.5, 0.75),
        ("multiply", 0.5, 0.5, 0.25),
        ("difference", 0.2, 0.7, 0.5),
        ("exclusion", 0.5, 0.5, 0.5),
        ("overlay", 0.25, 1.0, 0.5),
        ("hard-light", 1.0, 0.25, 0.5),
        ("soft-light", 0.5, 0.5, 0.5),
    ])
    def test_formulas(self, mode, b, s, expected):
        assert self._apply(mode, b, s) == pytest.approx(expected, abs=1e-6)

    def test_alpha_mixes_with_backdrop(self):
        backdrop = np.zeros((1, 1, 3), dtype=np.float32)
        source = np.ones((1, 1, 3), dtype=np.float32)
        alpha = np.full((1, 1, 1), 0.25, dtype=np.float32)
        out = blend(backdrop, source, alpha, "source-over")
        assert out[0, 0, 0] == pytest.approx(0.25)


class TestImageHelpers:

    def test_cover_fit_fills_and_crops(self):
        image = np.zeros((100, 400, 3), dtype=np.uint8)
        image[:, 150:250] = 255
        fitted = cover_fit(image, 200, 200)
        assert fitted.shape == (200, 200, 3)
        # Center stripe survives the crop
        assert fitted[100, 100, 0] == 255

    def test_paste_over_clips_and_respects_alpha(self):
        frame = np.zeros((10, 10, 3), dtype=np.float32)
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        rgba[..., 0] = 255
        rgba[:2, :, 3] = 255
        paste_over(frame, rgba, 8, 8, 1.0)
        assert frame[8, 8, 0] == pytest.approx(1.0)
        assert frame[9, 9, 0] == pytest.approx(1.0)
        paste_over(frame, rgba, 0, 0, 0.5)
        assert frame[0, 0, 0] == pytest.approx(0.5)
        assert frame[3, 3, 0] == 0.0


class TestFrameCompositor:

    def test_output_shape_and_type(self):
        frame = FrameCompositor().render(blank_design(aspect_ratio="1:1"), [], None, 0)
        assert frame.dtype == np.uint8
        assert frame.shape == (1080, 1080, 3)

    def test_zero_background_opacity_is_black(self):
        design = blank_design(bg_color="#ff0000", bg_opacity=0.0)
        frame = FrameCompositor().render(design, [], None, 0)
        assert not frame.any()

    def test_background_color(self):
        design = blank_design(bg_color="#ffffff", bg_opacity=0.5, aspect_ratio="4:5")
        frame = FrameCompositor().render(design, [], None, 0)
        assert tuple(frame[0, 0]) == (128, 128, 128)

    def test_background_image(self):
        image = np.full((50, 50, 3), 200, dtype=np.uint8)
        design = blank_design(bg_type="image", bg_image=image)
        frame = FrameCompositor().render(design, [], None, 0)
        assert tuple(frame[540, 960]) == (200, 200, 200)

    def test_blobs_paint_and_are_deterministic(self):
        design = blank_design()
        blobs = generate_blobs(design["colors"], 1920, 1080, random.Random(5))
        compositor = FrameCompositor()
        a = compositor.render(design, blobs, None, 1234)
        b = compositor.render(design, blobs, None, 1234)
        assert a.any()
        assert np.array_equal(a, b)

    def test_loop_closes(self):
        design = blank_design(duration=7, speed=1.3)
        blobs = generate_blobs(design["colors"], 1920, 1080, random.Random(5))
        compositor = FrameCompositor()
        first = compositor.render(design, blobs, None, 0).astype(int)
        last = compositor.render(design, blobs, None, 7000).astype(int)
        assert np.abs(first - last).max() <= 1

    def test_zero_blob_opacity_hides_blobs(self):
        design = blank_design(blob_opacity=0.0)
        blobs = generate_blobs(design["colors"], 1920, 1080, random.Random(5))
        frame = FrameCompositor().render(design, blobs, None, 0)
        assert not frame.any()

    def test_logo(self):
        logo = np.full((10, 20, 3), 255, dtype=np.uint8)
        design = set_logo(blank_design(), logo)
        frame = FrameCompositor().render(design, [], None, 0)
        assert tuple(frame[540, 960]) == (255, 255, 255)
        assert tuple(frame[0, 0]) == (0, 0, 0)

    def test_text_is_drawn(self):
        design = update_layer(new_design(), "1", text="HELLO", text_shadow=False)
        frame = FrameCompositor().render(design, [], None, 0)
        assert frame[400:680, :, :].max() > 200
        assert not frame[:100].any()
