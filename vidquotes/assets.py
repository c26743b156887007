"""
Vid Quotes - Asset Loading
Decodes uploaded images and data URLs, reads quote files, and keeps the
repository of generated images.
"""

import os
import base64
import threading
import logging
from typing import List, Optional

import cv2
import numpy as np

from vidquotes.design import new_id
from vidquotes.errors import DecodeError, InputError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif", ".tif", ".tiff")
AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg", ".m4a", ".aac", ".flac", ".opus")


# ═══════════════════════════════════════════════════════════════════════════════
# IMAGES
# ═══════════════════════════════════════════════════════════════════════════════

def decode_image_bytes(data: bytes, label: str = "image") -> np.ndarray:
    """Decode encoded image bytes to a uint8 RGB or RGBA array."""
    buf = np.frombuffer(data, dtype=np.uint8)
    image = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED) if buf.size else None
    if image is None:
        raise DecodeError(f"Could not decode {label}")

    if image.dtype != np.uint8:
        # 16-bit PNG/TIFF
        image = (image / 257).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2RGB)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2RGBA)
    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


def decode_image(path: str) -> np.ndarray:
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise DecodeError(f"Could not read '{os.path.basename(path)}': {e}")
    return decode_image_bytes(data, os.path.basename(path))


def decode_data_url(data_url: str) -> np.ndarray:
    """Decode a data:<mime>;base64,<payload> image."""
    header, _, payload = data_url.partition(",")
    if not header.startswith("data:") or ";base64" not in header or not payload:
        raise DecodeError("Not a base64 image data URL")
    try:
        data = base64.b64decode(payload, validate=True)
    except ValueError as e:
        raise DecodeError(f"Bad image payload: {e}")
    return decode_image_bytes(data, "generated image")


# ═══════════════════════════════════════════════════════════════════════════════
# QUOTES
# ═══════════════════════════════════════════════════════════════════════════════

def parse_quotes(text: str) -> List[str]:
    """One quote per non-empty line, trimmed."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def read_quotes_file(path: str) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8-sig", errors="replace") as f:
            quotes = parse_quotes(f.read())
    except OSError as e:
        raise InputError(f"Could not read '{os.path.basename(path)}': {e}")
    if not quotes:
        raise InputError(f"'{os.path.basename(path)}' contains no quotes")
    logger.info("Loaded %d quotes from %s", len(quotes), path)
    return quotes


# ═══════════════════════════════════════════════════════════════════════════════
# IMAGE REPOSITORY
# ═══════════════════════════════════════════════════════════════════════════════

class ImageRepository:
    """Generated images, newest first. Entries are {id, src, prompt}; src is a data URL."""

    def __init__(self):
        self._entries: List[dict] = []
        self._lock = threading.Lock()

    def add(self, src: str, prompt: str) -> dict:
        entry = {"id": new_id(), "src": src, "prompt": prompt}
        with self._lock:
            self._entries.insert(0, entry)
        return entry

    def get(self, entry_id: str) -> Optional[dict]:
        with self._lock:
            for entry in self._entries:
                if entry["id"] == entry_id:
                    return entry
        return None

    def remove(self, entry_id: str):
        with self._lock:
            self._entries = [e for e in self._entries if e["id"] != entry_id]

    @property
    def entries(self) -> List[dict]:
        with self._lock:
            return list(self._entries)

    def __len__(self):
        with self._lock:
            return len(self._entries)
