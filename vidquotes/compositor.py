"""
Vid Quotes - Frame Compositor
Composes one frame from a design: background, blurred blobs, weather, logo, text.

Everything the compositor reads is passed in explicitly (design, blob set, weather
system, elapsed time), so the live preview and the export pipeline get identical
frames for identical inputs. Working frames are float32 RGB in [0, 1]; the result
is uint8 RGB ready to be shown or piped into FFmpeg.

Stage order:
    1. opaque black
    2. background color or cover-fitted image, at background opacity
    3. blobs: radial gradients, Gaussian blur, blend mode, blob opacity
    4. weather particles (the only stage that mutates state: the particle population)
    5. logo
    6. text layers
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from vidquotes.design import canvas_size, hex_to_rgb
from vidquotes.errors import CapabilityError
from vidquotes.motion import Blob, blob_position
from vidquotes.typography import FontRegistry, draw_text_layers
from vidquotes.weather import WeatherSystem

logger = logging.getLogger(__name__)

# Blobs are heavily blurred, so they are painted at reduced resolution and upscaled
BLOB_RENDER_SCALE = 0.25

# Gradients fade to transparent at the radius; the painted disc extends past it
BLOB_EXTENT = 1.5

_EPS = 1e-6


# ═══════════════════════════════════════════════════════════════════════════════
# BLEND MODES (W3C compositing, opaque backdrop)
# ═══════════════════════════════════════════════════════════════════════════════

def _screen(b, s):
    return b + s - b * s


def _hard_light(b, s):
    return np.where(s <= 0.5, 2.0 * b * s, _screen(b, 2.0 * s - 1.0))


def _soft_light(b, s):
    d = np.where(b <= 0.25, ((16.0 * b - 12.0) * b + 4.0) * b, np.sqrt(b))
    return np.where(
        s <= 0.5,
        b - (1.0 - 2.0 * s) * b * (1.0 - b),
        b + (2.0 * s - 1.0) * (d - b),
    )


BLEND_FUNCTIONS = {
    "source-over": lambda b, s: s,
    "screen":      _screen,
    "multiply":    lambda b, s: b * s,
    "overlay":     lambda b, s: _hard_light(s, b),
    "hard-light":  _hard_light,
    "soft-light":  _soft_light,
    "difference":  lambda b, s: np.abs(b - s),
    "exclusion":   lambda b, s: b + s - 2.0 * b * s,
}


def blend(backdrop: np.ndarray, source: np.ndarray, alpha: np.ndarray, mode: str) -> np.ndarray:
    """Composite ``source`` (straight color) with per-pixel ``alpha`` onto ``backdrop``."""
    fn = BLEND_FUNCTIONS.get(mode, BLEND_FUNCTIONS["source-over"])
    mixed = fn(backdrop, source)
    return backdrop + (mixed - backdrop) * alpha


# ═══════════════════════════════════════════════════════════════════════════════
# IMAGE HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def cover_fit(image: np.ndarray, width: int, height: int) -> np.ndarray:
    """Scale an image to cover width x height (aspect preserved), center-cropped."""
    img_h, img_w = image.shape[:2]
    ratio = max(width / img_w, height / img_h)
    new_w = max(width, int(round(img_w * ratio)))
    new_h = max(height, int(round(img_h * ratio)))
    interp = cv2.INTER_AREA if ratio < 1 else cv2.INTER_LINEAR
    resized = cv2.resize(image, (new_w, new_h), interpolation=interp)
    x0 = (new_w - width) // 2
    y0 = (new_h - height) // 2
    return resized[y0:y0 + height, x0:x0 + width]


def _split_rgba(image: np.ndarray):
    """uint8 RGB(A) -> (float RGB, float alpha)."""
    rgb = image[..., :3].astype(np.float32) / 255.0
    if image.ndim == 3 and image.shape[2] == 4:
        alpha = image[..., 3:4].astype(np.float32) / 255.0
    else:
        alpha = np.ones(image.shape[:2] + (1,), dtype=np.float32)
    return rgb, alpha


def paste_over(frame: np.ndarray, image: np.ndarray, x: int, y: int, opacity: float):
    """Alpha-composite a uint8 RGB(A) image onto the frame at (x, y), clipped."""
    frame_h, frame_w = frame.shape[:2]
    img_h, img_w = image.shape[:2]
    x0, y0 = max(0, x), max(0, y)
    x1, y1 = min(frame_w, x + img_w), min(frame_h, y + img_h)
    if x0 >= x1 or y0 >= y1:
        return
    crop = image[y0 - y:y1 - y, x0 - x:x1 - x]
    rgb, alpha = _split_rgba(crop)
    alpha *= opacity
    region = frame[y0:y1, x0:x1]
    region *= 1.0 - alpha
    region += rgb * alpha


# ═══════════════════════════════════════════════════════════════════════════════
# COMPOSITOR
# ═══════════════════════════════════════════════════════════════════════════════

class FrameCompositor:
    """Renders complete frames. One instance is shared by preview and export."""

    def __init__(self, fonts: Optional[FontRegistry] = None):
        self.fonts = fonts or FontRegistry()
        # Resized copies of decoded media, keyed by (id(source), w, h).
        # The source is kept in the value so its id can't be reused while cached.
        self._media_cache = {}
        self._grid_cache = {}

    def render(self, design: dict, blobs: List[Blob], weather: Optional[WeatherSystem],
               elapsed_ms: float) -> np.ndarray:
        """Render one frame at ``elapsed_ms`` into the loop. Returns uint8 RGB (h, w, 3)."""
        width, height = canvas_size(design)
        if width <= 0 or height <= 0:
            raise CapabilityError(f"Drawing surface unavailable ({width}x{height})")

        frame = np.zeros((height, width, 3), dtype=np.float32)
        self._draw_background(frame, design)
        self._draw_blobs(frame, design, blobs, elapsed_ms)
        if weather is not None:
            weather.step(frame, design)
        self._draw_logo(frame, design)
        draw_text_layers(frame, design["text_layers"], self.fonts)

        np.clip(frame, 0.0, 1.0, out=frame)
        return (frame * 255.0 + 0.5).astype(np.uint8)

    def _cached(self, source: np.ndarray, width: int, height: int, build):
        key = (id(source), width, height)
        hit = self._media_cache.get(key)
        if hit is not None and hit[0] is source:
            return hit[1]
        if len(self._media_cache) > 16:
            self._media_cache.clear()
        value = build()
        self._media_cache[key] = (source, value)
        return value

    # ── Stage 2 ──

    def _draw_background(self, frame: np.ndarray, design: dict):
        opacity = design["bg_opacity"]
        height, width = frame.shape[:2]

        if design["bg_type"] == "color":
            color = np.array(hex_to_rgb(design["bg_color"]), dtype=np.float32) / 255.0
            frame[:] = color * opacity
        elif design["bg_type"] == "image" and design["bg_image"] is not None:
            image = design["bg_image"]
            fitted = self._cached(image, width, height,
                                  lambda: cover_fit(image, width, height))
            paste_over(frame, fitted, 0, 0, opacity)
        # Otherwise the black base stays

    # ── Stage 3 ──

    def _grid(self, width: int, height: int):
        key = (width, height)
        grid = self._grid_cache.get(key)
        if grid is None:
            ys, xs = np.mgrid[0:height, 0:width].astype(np.float32)
            grid = (xs + 0.5, ys + 0.5)
            self._grid_cache[key] = grid
        return grid

    def _draw_blobs(self, frame: np.ndarray, design: dict, blobs: List[Blob],
                    elapsed_ms: float):
        if not blobs:
            return
        height, width = frame.shape[:2]
        small_w = max(1, int(round(width * BLOB_RENDER_SCALE)))
        small_h = max(1, int(round(height * BLOB_RENDER_SCALE)))
        sx = small_w / width
        sy = small_h / height
        xs, ys = self._grid(small_w, small_h)
        sigma = design["blur_level"] * BLOB_RENDER_SCALE
        blob_opacity = design["blob_opacity"]
        mode = design["blend_mode"]

        for blob in blobs:
            x, y = blob_position(blob, design["speed"], design["duration"], elapsed_ms,
                                 width, height)
            radius = blob.radius * BLOB_RENDER_SCALE
            dist = np.sqrt((xs - x * sx) ** 2 + (ys - y * sy) ** 2)
            alpha = np.clip(1.0 - dist / max(radius, _EPS), 0.0, 1.0)
            alpha[dist > radius * BLOB_EXTENT] = 0.0

            if sigma > 0:
                alpha = cv2.GaussianBlur(alpha, (0, 0), sigma)

            alpha = cv2.resize(alpha, (width, height), interpolation=cv2.INTER_LINEAR)
            alpha = (alpha * blob_opacity)[..., np.newaxis]
            color = np.array(hex_to_rgb(blob.color), dtype=np.float32) / 255.0
            frame[:] = blend(frame, color, alpha, mode)

    # ── Stage 5 ──

    def _draw_logo(self, frame: np.ndarray, design: dict):
        logo = design["logo"]
        if not logo or logo.get("image") is None:
            return
        height, width = frame.shape[:2]
        image = logo["image"]
        img_h, img_w = image.shape[:2]
        aspect = img_w / img_h

        target_w = max(1, int(round(width * logo["size"])))
        target_h = max(1, int(round(target_w / aspect)))
        scaled = self._cached(image, target_w, target_h, lambda: cv2.resize(
            image, (target_w, target_h),
            interpolation=cv2.INTER_AREA if target_w < img_w else cv2.INTER_LINEAR,
        ))
        x = int(round(logo["x"] * width - target_w / 2))
        y = int(round(logo["y"] * height - target_h / 2))
        paste_over(frame, scaled, x, y, logo["opacity"])
