"""Unit tests for design construction, edits and validation."""

import os
import sys

import numpy as np
import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes import design as dz
from vidquotes.errors import InputError


class TestPalette:

    def test_add_color_caps_at_max(self):
        d = dz.new_design(colors=["#000000"] * dz.MAX_COLORS)
        assert dz.add_color(d) is d

    def test_add_color_appends_white(self):
        d = dz.add_color(dz.new_design())
        assert len(d["colors"]) == 6
        assert d["colors"][-1] == "#ffffff"

    def test_remove_color_keeps_minimum(self):
        d = dz.new_design(colors=["#000000", "#ffffff"])
        assert dz.remove_color(d, 0) is d

    def test_remove_color(self):
        d = dz.remove_color(dz.new_design(), 1)
        assert d["colors"] == ["#FF0080", "#0070F3", "#00DFD8", "#FF4D4D"]

    def test_set_color_rejects_bad_hex(self):
        with pytest.raises(ValueError):
            dz.set_color(dz.new_design(), 0, "pink")

    def test_edits_do_not_mutate(self):
        d = dz.new_design()
        dz.add_color(d)
        dz.set_color(d, 0, "#123456")
        assert d["colors"] == dz.DEFAULT_COLORS


class TestAspectRatio:

    def test_cycle_order(self):
        d = dz.new_design()
        seen = []
        for _ in range(4):
            d = dz.cycle_aspect_ratio(d)
            seen.append(d["aspect_ratio"])
        assert seen == ["9:16", "1:1", "4:5", "16:9"]

    def test_canvas_size(self):
        assert dz.canvas_size(dz.new_design(aspect_ratio="4:5")) == (1080, 1350)


class TestTextLayers:

    def test_add_layer_offsets_position(self):
        d, layer_id = dz.add_text_layer(dz.new_design())
        layer = dz.get_layer(d, layer_id)
        assert layer["text"] == "New Text"
        assert layer["y"] == pytest.approx(0.6)

    def test_last_layer_cannot_be_removed(self):
        d = dz.new_design()
        same, active = dz.remove_text_layer(d, "1")
        assert same is d
        assert active == "1"

    def test_remove_layer_activates_last(self):
        d, a = dz.add_text_layer(dz.new_design())
        d, b = dz.add_text_layer(d)
        d, active = dz.remove_text_layer(d, b)
        assert active == a
        assert len(d["text_layers"]) == 2

    def test_job_name(self):
        d = dz.update_layer(dz.new_design(), "1", text="")
        assert dz.job_name(d) == "Untitled"
        d = dz.update_layer(d, "1", text="A very long quote that goes on")
        assert dz.job_name(d) == "A very long quote th"


class TestAudioTrim:

    def test_set_audio_defaults_to_whole_file(self):
        d = dz.set_audio(dz.new_design(), "/music/a.mp3", "a.mp3", 42.0)
        assert (d["audio_start"], d["audio_end"]) == (0.0, 42.0)

    def test_trim_is_clamped(self):
        d = dz.set_audio(dz.new_design(), "/music/a.mp3", "a.mp3", 42.0)
        d = dz.set_audio_trim(d, -5, 100)
        assert (d["audio_start"], d["audio_end"]) == (0.0, 42.0)

    def test_trim_requires_start_before_end(self):
        d = dz.set_audio(dz.new_design(), "/music/a.mp3", "a.mp3", 42.0)
        with pytest.raises(InputError):
            dz.set_audio_trim(d, 10, 10)

    def test_trim_without_audio(self):
        with pytest.raises(InputError):
            dz.set_audio_trim(dz.new_design(), 0, 1)


class TestValidation:

    def test_default_is_valid(self):
        dz.validate_design(dz.new_design())

    @pytest.mark.parametrize("changes", [
        {"colors": ["#ffffff"]},
        {"colors": ["#ffffff"] * 9},
        {"colors": ["#ffffff", "nope"]},
        {"duration": 0},
        {"blend_mode": "dodge"},
        {"weather_type": "hail"},
    ])
    def test_rejects(self, changes):
        with pytest.raises(InputError):
            dz.validate_design(dz.new_design(**changes))

    def test_unknown_field(self):
        with pytest.raises(KeyError):
            dz.with_changes(dz.new_design(), colour="#fff")


class TestSnapshot:

    def test_snapshot_isolated_from_later_edits(self):
        d = dz.new_design()
        snap = dz.snapshot_design(d)
        d["text_layers"][0]["text"] = "changed"
        d["colors"].append("#000000")
        assert snap["text_layers"][0]["text"] == "Vid Quotes"
        assert len(snap["colors"]) == 5

    def test_snapshot_shares_media(self):
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        d = dz.set_background_image(dz.new_design(), image)
        assert dz.snapshot_design(d)["bg_image"] is image
        assert d["bg_type"] == "image"
