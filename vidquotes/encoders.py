"""
Vid Quotes - FFmpeg Discovery & Encoding Profiles
Finds the FFmpeg/ffprobe executables, verifies hardware H.264 encoders and picks the
container/codec profile an export will use.

Profiles, in order of preference:
    mp4   H.264 (verified GPU encoder, else libx264) + AAC
    webm  VP9 (libvpx-vp9) + Opus
"""

import os
import sys
import shutil
import tempfile
import subprocess
import logging
from typing import Optional, Tuple

from vidquotes.errors import CapabilityError

logger = logging.getLogger(__name__)

# Hides console windows for child processes on Windows; 0 elsewhere
NO_WINDOW = getattr(subprocess, "CREATE_NO_WINDOW", 0)

_EXE = ".exe" if os.name == "nt" else ""


def _find_tool(name: str) -> str:
    """Find a bundled FFmpeg tool first, then fall back to the system PATH."""
    filename = name + _EXE
    search_bases = [os.path.dirname(os.path.abspath(__file__)), os.getcwd()]
    if getattr(sys, 'frozen', False):
        search_bases.insert(0, os.path.dirname(sys.executable))
    if hasattr(sys, '_MEIPASS'):
        search_bases.insert(0, sys._MEIPASS)
    for base in search_bases:
        # ../ffmpeg/<tool> (one level up from vidquotes/) or ./ffmpeg/<tool>
        for candidate in (os.path.join(os.path.dirname(base), "ffmpeg", filename),
                          os.path.join(base, "ffmpeg", filename)):
            if os.path.isfile(candidate):
                return candidate
    found = shutil.which(name)
    if found:
        return found
    # Last resort: let the OS resolve it
    return name


def get_ffmpeg_path() -> str:
    return _find_tool("ffmpeg")


def get_ffprobe_path() -> str:
    return _find_tool("ffprobe")


# ═══════════════════════════════════════════════════════════════════════════════
# ENCODER DETECTION
# ═══════════════════════════════════════════════════════════════════════════════

# Module-level caches so FFmpeg is only probed once per app session
_encoder_list_cache = None
_hw_encoder_cache = None

HW_ENCODERS = [
    ("h264_nvenc", "NVENC (NVIDIA GPU)", ["-preset", "p4", "-rc", "vbr"]),
    ("h264_amf",   "AMF (AMD GPU)",      ["-quality", "balanced"]),
    ("h264_qsv",   "QSV (Intel GPU)",    ["-preset", "medium"]),
]


def list_encoders(force_recheck: bool = False) -> str:
    """Raw text of `ffmpeg -encoders`, or "" when FFmpeg can't be run."""
    global _encoder_list_cache
    if _encoder_list_cache is not None and not force_recheck:
        return _encoder_list_cache
    try:
        result = subprocess.run(
            [get_ffmpeg_path(), "-hide_banner", "-encoders"],
            capture_output=True, text=True, timeout=10,
            creationflags=NO_WINDOW,
        )
        _encoder_list_cache = result.stdout or ""
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("FFmpeg encoder listing failed: %s", e)
        _encoder_list_cache = ""
    return _encoder_list_cache


def has_encoder(name: str, encoder_text: Optional[str] = None) -> bool:
    text = list_encoders() if encoder_text is None else encoder_text
    return any(
        len(parts) > 1 and parts[1] == name
        for parts in (line.split() for line in text.splitlines())
    )


def detect_working_hw_encoder(force_recheck: bool = False) -> Tuple[Optional[str], str]:
    """Detect a working hardware H.264 encoder by actually test-encoding.

    FFmpeg builds often list h264_nvenc, h264_amf and h264_qsv whatever GPU is
    present, so each listed candidate encodes a one-frame 8x8 clip to prove it works.

    Returns:
        (encoder_name, label), e.g. ("h264_nvenc", "NVENC (NVIDIA GPU)"),
        or (None, "libx264 (CPU)") if no hardware encoder works.
    """
    global _hw_encoder_cache
    if _hw_encoder_cache is not None and not force_recheck:
        return _hw_encoder_cache

    ffmpeg = get_ffmpeg_path()
    enc_list_text = list_encoders(force_recheck)

    for enc_name, enc_label, _ in HW_ENCODERS:
        if not has_encoder(enc_name, enc_list_text):
            continue

        fd, tmp_path = tempfile.mkstemp(suffix=".mp4")
        os.close(fd)
        try:
            result = subprocess.run(
                [ffmpeg, "-y", "-hide_banner", "-loglevel", "error",
                 "-f", "lavfi", "-i", "color=black:s=64x64:d=0.04:r=25",
                 "-c:v", enc_name, "-pix_fmt", "yuv420p", tmp_path],
                capture_output=True, text=True, timeout=10,
                creationflags=NO_WINDOW,
            )
            if result.returncode == 0:
                logger.info("✅ HW encoder verified: %s (%s)", enc_name, enc_label)
                _hw_encoder_cache = (enc_name, enc_label)
                return _hw_encoder_cache
            logger.info("❌ HW encoder %s listed but FAILED test: %s",
                        enc_name, (result.stderr or "unknown")[:200])
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("HW encoder test for %s failed: %s", enc_name, e)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    logger.info("No working HW encoder found, will use libx264 (CPU)")
    _hw_encoder_cache = (None, "libx264 (CPU)")
    return _hw_encoder_cache


# ═══════════════════════════════════════════════════════════════════════════════
# PROFILES
# ═══════════════════════════════════════════════════════════════════════════════

def _video_args(codec: str, bitrate_mbps: float) -> list:
    bitrate = f"{bitrate_mbps:g}M"
    maxrate = f"{bitrate_mbps * 1.2:g}M"
    bufsize = f"{bitrate_mbps * 2:g}M"
    presets = {name: args for name, _, args in HW_ENCODERS}
    if codec in presets:
        extra = presets[codec]
    elif codec == "libx264":
        extra = ["-preset", "medium"]
    else:
        # libvpx-vp9: realtime-ish speed, row multithreading
        extra = ["-deadline", "good", "-cpu-used", "4", "-row-mt", "1"]
    return ["-c:v", codec] + extra + [
        "-b:v", bitrate, "-maxrate", maxrate, "-bufsize", bufsize,
        "-pix_fmt", "yuv420p",
    ]


def build_profile(name: str, video_codec: str, label: str) -> dict:
    if name == "mp4":
        return {
            "name": "mp4",
            "extension": "mp4",
            "label": label,
            "video_codec": video_codec,
            "audio_codec": "aac",
            "audio_args": ["-c:a", "aac", "-b:a", "192k"],
            "container_args": ["-movflags", "+faststart"],
        }
    return {
        "name": "webm",
        "extension": "webm",
        "label": label,
        "video_codec": video_codec,
        "audio_codec": "libopus",
        "audio_args": ["-c:a", "libopus", "-b:a", "160k"],
        "container_args": [],
    }


def profile_video_args(profile: dict, bitrate_mbps: float) -> list:
    return _video_args(profile["video_codec"], bitrate_mbps)


def resolve_profile(encoder_text: Optional[str] = None, hw_encoder=None) -> dict:
    """
    Pick the preferred MP4 profile, falling back to WebM.
    Raises CapabilityError if FFmpeg supports neither.
    """
    text = list_encoders() if encoder_text is None else encoder_text

    if has_encoder("aac", text):
        enc_name, enc_label = hw_encoder or detect_working_hw_encoder()
        if enc_name:
            return build_profile("mp4", enc_name, enc_label)
        if has_encoder("libx264", text):
            return build_profile("mp4", "libx264", "libx264 (CPU)")

    if has_encoder("libvpx-vp9", text) and has_encoder("libopus", text):
        logger.info("MP4/H.264 unavailable, falling back to WebM/VP9")
        return build_profile("webm", "libvpx-vp9", "libvpx-vp9 (CPU)")

    raise CapabilityError(
        "No supported encoding profile: FFmpeg needs libx264+aac or libvpx-vp9+libopus"
    )
