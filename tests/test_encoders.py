"""Unit tests for encoder detection and profile selection (no FFmpeg needed)."""

import os
import sys

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes.encoders import build_profile, has_encoder, profile_video_args, resolve_profile
from vidquotes.errors import CapabilityError

ENCODERS_FULL = """Encoders:
 V..... = Video
 ------
 V....D libx264              libx264 H.264 / AVC / MPEG-4 AVC
 V....D libvpx-vp9           libvpx VP9
 A....D aac                  AAC (Advanced Audio Coding)
 A....D libopus              libopus Opus
"""

ENCODERS_WEBM_ONLY = """Encoders:
 V....D libvpx-vp9           libvpx VP9
 A....D libopus              libopus Opus
"""

CPU_ONLY = (None, "libx264 (CPU)")


class TestHasEncoder:

    def test_matches_name_column(self):
        assert has_encoder("libx264", ENCODERS_FULL)
        assert has_encoder("aac", ENCODERS_FULL)

    def test_no_substring_match(self):
        assert not has_encoder("libx26", ENCODERS_FULL)
        assert not has_encoder("VP9", ENCODERS_FULL)

    def test_empty_listing(self):
        assert not has_encoder("libx264", "")


class TestResolveProfile:

    def test_prefers_mp4(self):
        profile = resolve_profile(ENCODERS_FULL, hw_encoder=CPU_ONLY)
        assert profile["extension"] == "mp4"
        assert profile["video_codec"] == "libx264"
        assert profile["audio_codec"] == "aac"

    def test_uses_verified_hw_encoder(self):
        profile = resolve_profile(ENCODERS_FULL, hw_encoder=("h264_nvenc", "NVENC (NVIDIA GPU)"))
        assert profile["video_codec"] == "h264_nvenc"
        assert profile["extension"] == "mp4"

    def test_falls_back_to_webm(self):
        profile = resolve_profile(ENCODERS_WEBM_ONLY, hw_encoder=CPU_ONLY)
        assert profile["extension"] == "webm"
        assert profile["video_codec"] == "libvpx-vp9"
        assert profile["audio_codec"] == "libopus"

    def test_nothing_supported(self):
        with pytest.raises(CapabilityError):
            resolve_profile("", hw_encoder=CPU_ONLY)


class TestProfileArgs:

    def test_bitrate(self):
        args = profile_video_args(build_profile("mp4", "libx264", "cpu"), 5)
        assert args[args.index("-b:v") + 1] == "5M"
        assert args[args.index("-maxrate") + 1] == "6M"
        assert args[args.index("-pix_fmt") + 1] == "yuv420p"

    def test_mp4_faststart(self):
        assert "+faststart" in build_profile("mp4", "libx264", "cpu")["container_args"]
        assert build_profile("webm", "libvpx-vp9", "cpu")["container_args"] == []
