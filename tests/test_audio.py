"""Unit tests for loop timing, the preview audio player and the chime."""

import io
import os
import sys
import wave

import numpy as np
import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vidquotes import audio
from vidquotes.audio import (
    LoopRegion,
    PreviewAudioPlayer,
    chime_wav_bytes,
    synthesize_chime,
)


class FakeClock:

    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(autouse=True)
def no_winsound(monkeypatch):
    monkeypatch.setattr(audio, "HAS_SOUND", False)


class TestLoopRegion:

    def test_requires_start_before_end(self):
        with pytest.raises(ValueError):
            LoopRegion(5, 5)

    def test_position_at(self):
        region = LoopRegion(10, 14)
        assert region.position_at(0) == 10
        assert region.position_at(3) == pytest.approx(13)
        assert region.position_at(5) == pytest.approx(11)

    def test_wrap(self):
        region = LoopRegion(10, 14)
        assert region.wrap(12) == 12
        assert region.wrap(14) == 10
        assert region.wrap(3) == 10


class TestPreviewAudioPlayer:

    def test_tick_loops_within_region(self):
        clock = FakeClock()
        player = PreviewAudioPlayer(clock)
        player.load(None, 10.0, 14.0)
        player.play()
        clock.advance(3.0)
        assert player.tick() == pytest.approx(13.0)
        clock.advance(2.0)
        assert player.tick() == pytest.approx(11.0)

    def test_manual_wrap_agrees_with_native_loop(self):
        clock = FakeClock()
        region = LoopRegion(2.5, 7.25)
        player = PreviewAudioPlayer(clock)
        player.load(None, region.start, region.end)
        player.play()
        elapsed = 0.0
        for step in (0.4, 1.7, 3.3, 0.05, 4.75, 9.9, 0.6):
            clock.advance(step)
            elapsed += step
            assert player.tick() == pytest.approx(region.position_at(elapsed), abs=1e-9)

    def test_pause_freezes_position(self):
        clock = FakeClock()
        player = PreviewAudioPlayer(clock)
        player.load(None, 0.0, 10.0)
        player.play()
        clock.advance(2.0)
        player.pause()
        clock.advance(5.0)
        assert player.position == pytest.approx(2.0)

    def test_stop_rewinds(self):
        clock = FakeClock()
        player = PreviewAudioPlayer(clock)
        player.load(None, 3.0, 10.0)
        player.play()
        clock.advance(2.0)
        player.stop()
        assert player.position == pytest.approx(3.0)

    def test_set_trim_clamps_position(self):
        clock = FakeClock()
        player = PreviewAudioPlayer(clock)
        player.load(None, 0.0, 10.0)
        player.play()
        clock.advance(8.0)
        player.tick()
        player.set_trim(1.0, 5.0)
        assert player.tick() == pytest.approx(1.0)

    def test_unloaded_player(self):
        player = PreviewAudioPlayer(FakeClock())
        player.play()
        assert player.tick() == 0.0

    def test_load_releases_previous_segment(self):
        class Segment:
            released = False

            def release(self):
                self.released = True

        first, second = Segment(), Segment()
        player = PreviewAudioPlayer(FakeClock())
        player.load(first, 0, 1)
        player.load(second, 0, 1)
        assert first.released
        assert not second.released
        player.unload()
        assert second.released


class TestChime:

    def test_length_and_dtype(self):
        samples = synthesize_chime(8000)
        assert samples.dtype == np.int16
        assert len(samples) == 12000

    def test_fades_out(self):
        samples = synthesize_chime(8000).astype(np.float64)
        head = np.abs(samples[400:2000]).max()
        tail = np.abs(samples[-400:]).max()
        assert tail < head * 0.05

    def test_wav_bytes(self):
        with wave.open(io.BytesIO(chime_wav_bytes(8000)), "rb") as wav:
            assert wav.getnchannels() == 1
            assert wav.getsampwidth() == 2
            assert wav.getframerate() == 8000
            assert wav.getnframes() == 12000

    def test_play_chime_without_winsound_logs(self, caplog):
        with caplog.at_level("INFO"):
            audio.play_chime()
        assert "Export complete" in caplog.text
