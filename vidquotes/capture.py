"""
Vid Quotes - Capture/Encode Pipeline
Drives the compositor at wall-clock cadence for the configured duration and pipes
the frames into FFmpeg, muxing the looping audio segment when one is attached.

Timing is wall-clock driven: the output has a fixed number of frame slots
(duration x fps) and each tick writes its freshly rendered frame into every slot
that has come due since the previous tick. A slow machine therefore produces
repeated frames, never a shorter or longer clip.
"""

import os
import time
import threading
import subprocess
import logging
from typing import Callable, List, Optional

from vidquotes.audio import DecodedSegment, play_chime
from vidquotes.design import canvas_size
from vidquotes.encoders import (
    NO_WINDOW, get_ffmpeg_path, profile_video_args, resolve_profile,
)
from vidquotes.errors import CapabilityError, DecodeError, EncodeError, InputError

logger = logging.getLogger(__name__)

EXPORT_FPS = 60
VIDEO_BITRATE_MBPS = 5
OUTPUT_PREFIX = "quote-vid-"


def output_filename(extension: str, suffix: Optional[str] = None,
                    now: Callable[[], float] = time.time) -> str:
    """quote-vid-<suffix>.<ext>, or quote-vid-<epoch ms>.<ext> without a suffix."""
    tag = suffix if suffix else str(int(now() * 1000))
    return f"{OUTPUT_PREFIX}{tag}.{extension}"


def build_ffmpeg_command(profile: dict, width: int, height: int, fps: int,
                         duration: float, output_path: str,
                         audio_path: Optional[str] = None,
                         bitrate_mbps: float = VIDEO_BITRATE_MBPS) -> List[str]:
    cmd = [
        get_ffmpeg_path(), "-y", "-hide_banner", "-loglevel", "error",
        "-f", "rawvideo",
        "-vcodec", "rawvideo",
        "-pix_fmt", "rgb24",
        "-s", f"{width}x{height}",
        "-r", str(fps),
        "-i", "pipe:0",
    ]
    if audio_path:
        # The decoded segment already spans [start, end); loop it for the whole clip
        cmd.extend(["-stream_loop", "-1", "-i", audio_path])
    cmd.extend(["-map", "0:v:0"])
    if audio_path:
        cmd.extend(["-map", "1:a:0"])

    cmd.extend(profile_video_args(profile, bitrate_mbps))
    if audio_path:
        cmd.extend(profile["audio_args"])
    cmd.extend(["-t", f"{duration:.3f}"])
    cmd.extend(profile["container_args"])
    cmd.append(output_path)
    return cmd


class CapturePipeline:
    """
    Records one design to a video file. Idle -> Recording -> Idle per call;
    a second record() while one is running is rejected.
    """

    def __init__(self, compositor, output_dir: Optional[str] = None,
                 fps: int = EXPORT_FPS,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], None] = time.sleep,
                 popen=subprocess.Popen,
                 profile_resolver: Callable[[], dict] = resolve_profile,
                 segment_factory=DecodedSegment,
                 chime: Callable[[], None] = play_chime):
        self.compositor = compositor
        self.output_dir = output_dir
        self.fps = fps
        self._clock = clock
        self._sleep = sleep
        self._popen = popen
        self._resolve_profile = profile_resolver
        self._segment_factory = segment_factory
        self._chime = chime
        self.is_recording = False

    # ── Audio ──

    def _prepare_audio(self, design: dict) -> Optional[DecodedSegment]:
        if not design["audio"]:
            return None
        try:
            segment = self._segment_factory(
                design["audio"], design["audio_start"], design["audio_end"]
            )
            return segment.decode()
        except DecodeError as e:
            logger.warning("Audio decode failed, recording without sound: %s", e)
            return None

    # ── Recording ──

    def record(self, design: dict, blobs, weather, suffix: Optional[str] = None,
               progress_callback: Optional[Callable[[float], None]] = None) -> str:
        """
        Capture ``design`` for its configured duration and return the output path.

        Raises CapabilityError (no drawing surface, no encoding profile) or
        EncodeError (FFmpeg failed). Audio decode problems only drop the sound.
        """
        if self.is_recording:
            raise InputError("A recording is already in progress")

        width, height = canvas_size(design)
        if width <= 0 or height <= 0:
            raise CapabilityError(f"Drawing surface unavailable ({width}x{height})")

        profile = self._resolve_profile()
        output_dir = self.output_dir or os.getcwd()
        os.makedirs(output_dir, exist_ok=True)
        output_path = os.path.join(output_dir, output_filename(profile["extension"], suffix))

        self.is_recording = True
        segment = None
        try:
            segment = self._prepare_audio(design)
            cmd = build_ffmpeg_command(
                profile, width, height, self.fps, design["duration"], output_path,
                audio_path=segment.path if segment else None,
            )
            logger.info("Recording %s with %s (%s)", os.path.basename(output_path),
                        profile["label"], "audio" if segment else "silent")
            logger.info("FFmpeg cmd: %s", " ".join(cmd))
            self._encode(cmd, design, blobs, weather, output_path, progress_callback)
        finally:
            if segment is not None:
                segment.release()
            self.is_recording = False

        logger.info("✅ Saved %s", output_path)
        self._chime()
        return output_path

    def _encode(self, cmd: List[str], design: dict, blobs, weather, output_path: str,
                progress_callback: Optional[Callable[[float], None]]):
        stderr_lines = []
        proc = self._popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            creationflags=NO_WINDOW,
        )

        def _drain_stderr():
            try:
                for line in iter(proc.stderr.readline, b''):
                    stderr_lines.append(line.decode('utf-8', errors='replace').strip())
            except (OSError, ValueError):
                pass

        stderr_thread = threading.Thread(target=_drain_stderr, daemon=True)
        stderr_thread.start()

        def _stderr_tail() -> str:
            return "\n".join(stderr_lines[-10:])[-500:] or "Unknown error"

        try:
            try:
                self._drive(proc, design, blobs, weather, progress_callback)
                proc.stdin.close()
            except (BrokenPipeError, OSError) as e:
                stderr_thread.join(timeout=5)
                raise EncodeError(f"FFmpeg stopped accepting frames ({e}):\n{_stderr_tail()}")

            returncode = proc.wait()
            stderr_thread.join(timeout=5)
            if returncode != 0:
                raise EncodeError(f"FFmpeg encoding failed (code {returncode}):\n{_stderr_tail()}")
        except Exception:
            try:
                proc.kill()
            except OSError:
                pass
            if os.path.exists(output_path):
                os.remove(output_path)
            raise

    def _drive(self, proc, design: dict, blobs, weather,
               progress_callback: Optional[Callable[[float], None]]):
        duration = float(design["duration"])
        total = max(1, int(round(duration * self.fps)))
        written = 0
        data = None

        start = self._clock()
        while True:
            elapsed = self._clock() - start
            if elapsed >= duration:
                break

            frame = self.compositor.render(design, blobs, weather, elapsed * 1000.0)
            data = frame.tobytes()
            due = min(total, int(elapsed * self.fps) + 1)
            while written < due:
                proc.stdin.write(data)
                written += 1

            if progress_callback:
                progress_callback(min(100.0, elapsed / duration * 100.0))

            ahead = written / self.fps - (self._clock() - start)
            if ahead > 0:
                self._sleep(ahead)

        # Slots that came due after the final tick repeat the last frame
        if data is None:
            data = self.compositor.render(design, blobs, weather, 0.0).tobytes()
        while written < total:
            proc.stdin.write(data)
            written += 1

        if progress_callback:
            progress_callback(100.0)
