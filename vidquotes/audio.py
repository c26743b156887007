"""
Vid Quotes - Audio
Probing, trimmed-segment decoding, loop-region timing and the completion chime.

Two loop mechanisms exist and must agree:
    - capture: the decoded [start, end) segment is fed to FFmpeg with -stream_loop,
      i.e. a native loop region (LoopRegion.position_at)
    - preview: playback position is tracked and reset to start whenever it crosses
      end (LoopRegion.wrap, applied by PreviewAudioPlayer.tick)
"""

import io
import os
import math
import time
import wave
import shutil
import tempfile
import threading
import subprocess
import logging
from typing import Callable, Optional

import numpy as np

from vidquotes.encoders import NO_WINDOW, get_ffmpeg_path, get_ffprobe_path
from vidquotes.errors import DecodeError

logger = logging.getLogger(__name__)

# Notification sound (Windows built-in)
try:
    import winsound
    HAS_SOUND = True
except ImportError:
    HAS_SOUND = False

SEGMENT_SAMPLE_RATE = 48000


# ═══════════════════════════════════════════════════════════════════════════════
# PROBE & DECODE
# ═══════════════════════════════════════════════════════════════════════════════

def probe_duration(path: str) -> float:
    """Total duration in seconds, read from the file's metadata with ffprobe."""
    try:
        result = subprocess.run(
            [get_ffprobe_path(), "-v", "error",
             "-show_entries", "format=duration",
             "-of", "default=noprint_wrappers=1:nokey=1", path],
            capture_output=True, text=True, timeout=30,
            creationflags=NO_WINDOW,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise DecodeError(f"Could not read audio '{os.path.basename(path)}': {e}")
    try:
        duration = float(result.stdout.strip())
    except ValueError:
        duration = 0.0
    if result.returncode != 0 or not math.isfinite(duration) or duration <= 0:
        raise DecodeError(f"Unsupported or corrupt audio file: {os.path.basename(path)}")
    return duration


def decode_segment(path: str, start: float, end: float, out_path: str) -> str:
    """Decode [start, end) of an audio file to 16-bit stereo WAV."""
    cmd = [
        get_ffmpeg_path(), "-y", "-hide_banner", "-loglevel", "error",
        "-i", path, "-vn",
        "-af", f"atrim=start={start:.3f}:end={end:.3f},asetpts=PTS-STARTPTS",
        "-ac", "2", "-ar", str(SEGMENT_SAMPLE_RATE), "-c:a", "pcm_s16le",
        out_path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=120,
                                creationflags=NO_WINDOW)
    except (OSError, subprocess.SubprocessError) as e:
        raise DecodeError(f"Audio decode failed: {e}")
    if result.returncode != 0 or not os.path.exists(out_path):
        raise DecodeError(f"Audio decode failed: {(result.stderr or '').strip()[-300:]}")
    return out_path


class DecodedSegment:
    """A trimmed audio segment decoded into its own temp directory."""

    def __init__(self, source: str, start: float, end: float):
        self.source = source
        self.start = start
        self.end = end
        self._tmp_dir = tempfile.mkdtemp(prefix="vidquotes_audio_")
        self.path = os.path.join(self._tmp_dir, "segment.wav")

    def decode(self) -> "DecodedSegment":
        try:
            decode_segment(self.source, self.start, self.end, self.path)
        except DecodeError:
            self.release()
            raise
        return self

    def release(self):
        shutil.rmtree(self._tmp_dir, ignore_errors=True)


# ═══════════════════════════════════════════════════════════════════════════════
# LOOP TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class LoopRegion:
    """The [start, end) window an attached audio track loops within."""

    def __init__(self, start: float, end: float):
        if not start < end:
            raise ValueError(f"Loop start ({start}) must be before end ({end})")
        self.start = start
        self.end = end

    @property
    def length(self) -> float:
        return self.end - self.start

    def position_at(self, elapsed: float) -> float:
        """Source position after ``elapsed`` seconds of native looped playback from start."""
        return self.start + math.fmod(max(0.0, elapsed), self.length)

    def wrap(self, position: float) -> float:
        """Manual loop detection: anything outside [start, end) snaps back to start."""
        if position < self.start or position >= self.end:
            return self.start
        return position


class PreviewAudioPlayer:
    """
    Loops the trimmed audio segment while the live preview runs.

    Position is advanced from a monotonic clock and wrapped with manual loop
    detection, so it never leaves [start, end). On Windows the decoded segment is
    also played through winsound.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._segment: Optional[DecodedSegment] = None
        self.region: Optional[LoopRegion] = None
        self.playing = False
        self._position = 0.0
        self._last_tick = None

    def load(self, segment: Optional[DecodedSegment], start: float, end: float):
        """Swap in a new decoded segment (or None for silent position tracking)."""
        self.stop()
        if self._segment is not None and self._segment is not segment:
            self._segment.release()
        self._segment = segment
        self.region = LoopRegion(start, end)
        self._position = start

    def unload(self):
        self.stop()
        if self._segment is not None:
            self._segment.release()
        self._segment = None
        self.region = None

    def set_trim(self, start: float, end: float):
        self.region = LoopRegion(start, end)
        self._position = self.region.wrap(self._position)

    def play(self):
        if self.region is None or self.playing:
            return
        self._position = self.region.wrap(self._position)
        self._last_tick = self._clock()
        self.playing = True
        if HAS_SOUND and self._segment is not None:
            # winsound can't seek, so the segment restarts from its beginning
            self._position = self.region.start
            winsound.PlaySound(self._segment.path,
                               winsound.SND_FILENAME | winsound.SND_ASYNC | winsound.SND_LOOP)

    def pause(self):
        if not self.playing:
            return
        self.tick()
        self.playing = False
        if HAS_SOUND:
            winsound.PlaySound(None, 0)

    def stop(self):
        self.pause()
        if self.region is not None:
            self._position = self.region.start

    def tick(self) -> float:
        """Advance the tracked position to now, looping at the end of the region."""
        if self.region is None:
            return 0.0
        if self.playing:
            now = self._clock()
            delta = now - self._last_tick
            self._last_tick = now
            position = self._position + delta
            if position >= self.region.end:
                overshoot = math.fmod(position - self.region.end, self.region.length)
                position = self.region.start + overshoot
            self._position = self.region.wrap(position)
        return self._position

    @property
    def position(self) -> float:
        return self.tick()


# ═══════════════════════════════════════════════════════════════════════════════
# COMPLETION CHIME
# ═══════════════════════════════════════════════════════════════════════════════

def _exp_ramp(t, t0, t1, v0, v1):
    frac = np.clip((t - t0) / (t1 - t0), 0.0, 1.0)
    return v0 * (v1 / v0) ** frac


def synthesize_chime(sample_rate: int = 44100) -> np.ndarray:
    """
    Bell chime: a sine gliding 880 -> 1100 Hz (0.1 s) -> 440 Hz (1.5 s) plus a
    quieter 1760 Hz triangle harmonic that dies out after 1.0 s. Returns int16 mono.
    """
    t = np.arange(int(sample_rate * 1.5)) / sample_rate

    freq = np.where(t < 0.1, _exp_ramp(t, 0.0, 0.1, 880.0, 1100.0),
                    _exp_ramp(t, 0.1, 1.5, 1100.0, 440.0))
    phase = 2 * np.pi * np.cumsum(freq) / sample_rate
    gain = np.where(t < 0.05, 0.3 * t / 0.05, _exp_ramp(t, 0.05, 1.5, 0.3, 0.001))
    tone = np.sin(phase) * gain

    cycle = (t * 1760.0) % 1.0
    triangle = 4.0 * np.abs(cycle - 0.5) - 1.0
    gain2 = np.where(t < 0.05, 0.1 * t / 0.05, _exp_ramp(t, 0.05, 1.0, 0.1, 0.001))
    gain2[t >= 1.0] = 0.0
    tone += triangle * gain2

    return (np.clip(tone, -1.0, 1.0) * 32767).astype(np.int16)


def chime_wav_bytes(sample_rate: int = 44100) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(synthesize_chime(sample_rate).tobytes())
    return buf.getvalue()


def play_chime():
    """Play the completion chime without blocking the caller."""
    if not HAS_SOUND:
        logger.info("🔔 Export complete")
        return

    data = chime_wav_bytes()

    def _play():
        try:
            winsound.PlaySound(data, winsound.SND_MEMORY)
        except RuntimeError as e:
            logger.debug("Chime playback failed: %s", e)

    threading.Thread(target=_play, daemon=True).start()
