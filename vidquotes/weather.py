"""
Vid Quotes - Weather Particle Simulator
Snow, rain and confetti drawn crisp on top of the blob layer.

The particle population is owned here and mutated in place every frame. Switching
weather type, density, canvas size or palette discards it and spawns a new one.

Frames are float32 RGB arrays in [0, 1]. Each particle is rasterised into a small
patch around itself with OpenCV, then blended into the frame: "screen" for snow and
rain so overlapping flakes brighten, normal alpha-over for confetti.
"""

import math
import random
import logging
from typing import List, Optional

import cv2
import numpy as np

from vidquotes.design import hex_to_rgb

logger = logging.getLogger(__name__)


# Particles per density unit
DENSITY_MULTIPLIER = {
    "snow": 2,
    "rain": 5,
    "confetti": 2,
}

# Distance past the canvas edge before a particle wraps to the opposite side
WRAP_MARGIN = 50

# Used when the palette is empty
CONFETTI_COLORS = ["#FFC700", "#FF0000", "#2E3192", "#41BBC7"]

# Per-frame phase steps
SNOW_WOBBLE_STEP = 0.05
CONFETTI_WOBBLE_STEP = 0.1

# Sub-pixel precision for cv2 drawing (4 fractional bits)
_SHIFT = 4
_ONE = 1 << _SHIFT

_WHITE = np.array([1.0, 1.0, 1.0], dtype=np.float32)


def particle_count(weather_type: str, density: float) -> int:
    """Population size for a weather type at the given density."""
    if weather_type not in DENSITY_MULTIPLIER:
        return 0
    return int(math.floor(density * DENSITY_MULTIPLIER[weather_type]))


class Particle:
    """A single weather particle. Confetti particles carry the extra tumbling state."""

    def __init__(self, x: float, y: float, speed: float, size: float,
                 opacity: float, wobble: float):
        self.x = x
        self.y = y
        self.speed = speed
        self.size = size
        self.opacity = opacity
        self.wobble = wobble
        # Confetti only
        self.color = None
        self.rotation = 0.0
        self.rotation_speed = 0.0
        self.tilt = 0.0
        self.tilt_speed = 0.0


def spawn_particle(weather_type: str, width: int, height: int,
                   colors: List[str], rng: random.Random) -> Particle:
    rain = weather_type == "rain"
    p = Particle(
        x=rng.random() * width,
        y=rng.random() * height,
        speed=rng.random() * (20 if rain else 2) + (10 if rain else 0.5),
        size=rng.random() * (3 if rain else 5) + 1,
        opacity=rng.random() * 0.5 + 0.3,
        wobble=rng.random() * math.pi * 2,
    )
    if weather_type == "confetti":
        palette = colors if colors else CONFETTI_COLORS
        p.color = palette[int(rng.random() * len(palette))]
        p.rotation = rng.random() * math.pi * 2
        p.rotation_speed = (rng.random() - 0.5) * 0.2
        p.tilt = rng.random() * math.pi
        p.tilt_speed = rng.random() * 0.1 + 0.05
        p.size = rng.random() * 8 + 6
        p.speed *= 1.5
    return p


# ═══════════════════════════════════════════════════════════════════════════════
# RASTER HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def _patch_bounds(xs, ys, frame_w, frame_h):
    x0 = max(0, int(math.floor(min(xs))) - 1)
    y0 = max(0, int(math.floor(min(ys))) - 1)
    x1 = min(frame_w, int(math.ceil(max(xs))) + 2)
    y1 = min(frame_h, int(math.ceil(max(ys))) + 2)
    if x0 >= x1 or y0 >= y1:
        return None
    return x0, y0, x1, y1


def _disc_mask(cx: float, cy: float, radius: float, frame_w: int, frame_h: int):
    bounds = _patch_bounds((cx - radius, cx + radius), (cy - radius, cy + radius),
                           frame_w, frame_h)
    if bounds is None:
        return None
    x0, y0, x1, y1 = bounds
    patch = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
    center = (int(round((cx - x0) * _ONE)), int(round((cy - y0) * _ONE)))
    cv2.circle(patch, center, max(1, int(round(radius * _ONE))), 255, -1,
               cv2.LINE_AA, _SHIFT)
    return bounds, patch.astype(np.float32) / 255.0


def _polygon_mask(points, frame_w: int, frame_h: int):
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    bounds = _patch_bounds(xs, ys, frame_w, frame_h)
    if bounds is None:
        return None
    x0, y0, x1, y1 = bounds
    patch = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
    pts = np.array(
        [[int(round((x - x0) * _ONE)), int(round((y - y0) * _ONE))] for x, y in points],
        dtype=np.int32,
    )
    cv2.fillConvexPoly(patch, pts, 255, cv2.LINE_AA, _SHIFT)
    return bounds, patch.astype(np.float32) / 255.0


def _blend_screen(frame: np.ndarray, masked, color: np.ndarray, alpha: float):
    (x0, y0, x1, y1), mask = masked
    region = frame[y0:y1, x0:x1]
    src = color * (mask * alpha)[..., np.newaxis]
    region += src - region * src


def _blend_over(frame: np.ndarray, masked, color: np.ndarray, alpha: float):
    (x0, y0, x1, y1), mask = masked
    region = frame[y0:y1, x0:x1]
    a = (mask * alpha)[..., np.newaxis]
    region *= 1.0 - a
    region += color * a


def _transform(corners, angle: float, ox: float, oy: float, scale_y: float = 1.0):
    c = math.cos(angle)
    s = math.sin(angle)
    out = []
    for u, v in corners:
        v *= scale_y
        out.append((ox + u * c - v * s, oy + u * s + v * c))
    return out


# ═══════════════════════════════════════════════════════════════════════════════
# SIMULATOR
# ═══════════════════════════════════════════════════════════════════════════════

class WeatherSystem:
    """Owns the particle population for the current weather configuration."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self.particles: List[Particle] = []
        self.weather_type = "none"
        self.width = 0
        self.height = 0
        self._color_cache = {}

    def regenerate(self, weather_type: str, density: float, width: int, height: int,
                   colors: List[str]):
        """Discard the current population and spawn a fresh one."""
        self.weather_type = weather_type
        self.width = width
        self.height = height
        count = particle_count(weather_type, density)
        self.particles = [
            spawn_particle(weather_type, width, height, colors, self._rng)
            for _ in range(count)
        ]
        self._color_cache = {}
        logger.info("Weather '%s': %d particles", weather_type, count)

    # ── Physics ──

    def _move(self, p: Particle, design: dict, cos_a: float, sin_a: float):
        current_speed = p.speed * design["weather_speed"]
        p.y += current_speed * cos_a
        p.x += current_speed * sin_a

        wobble = design["weather_wobble"]
        if self.weather_type == "snow":
            p.x += math.sin(p.wobble) * 0.5 * wobble
            p.wobble += SNOW_WOBBLE_STEP
        elif self.weather_type == "rain":
            p.x += (self._rng.random() - 0.5) * 0.5 * wobble
        elif self.weather_type == "confetti":
            p.x += math.sin(p.wobble) * 2 * wobble
            p.wobble += CONFETTI_WOBBLE_STEP
            p.rotation += p.rotation_speed
            p.tilt += p.tilt_speed

    def _wrap(self, p: Particle):
        w, h = self.width, self.height
        if p.y > h + WRAP_MARGIN:
            p.y = -WRAP_MARGIN
            p.x = self._rng.random() * w
        elif p.y < -WRAP_MARGIN:
            p.y = h + WRAP_MARGIN
            p.x = self._rng.random() * w

        if p.x > w + WRAP_MARGIN:
            p.x = -WRAP_MARGIN
            p.y = self._rng.random() * h
        elif p.x < -WRAP_MARGIN:
            p.x = w + WRAP_MARGIN
            p.y = self._rng.random() * h

    def advance(self, design: dict):
        """Move every particle one frame without drawing."""
        angle = math.radians(design["weather_angle"])
        cos_a, sin_a = math.cos(angle), math.sin(angle)
        for p in self.particles:
            self._move(p, design, cos_a, sin_a)
            self._wrap(p)

    # ── Drawing ──

    def _confetti_color(self, hex_color: str) -> np.ndarray:
        cached = self._color_cache.get(hex_color)
        if cached is None:
            cached = np.array(hex_to_rgb(hex_color), dtype=np.float32) / 255.0
            self._color_cache[hex_color] = cached
        return cached

    def _draw(self, frame: np.ndarray, p: Particle, design: dict, angle: float,
              opacity: float):
        frame_h, frame_w = frame.shape[:2]
        scale = design["weather_scale"]

        if self.weather_type == "snow":
            masked = _disc_mask(p.x, p.y, p.size * scale, frame_w, frame_h)
            if masked is not None:
                _blend_screen(frame, masked, _WHITE, opacity)

        elif self.weather_type == "rain":
            drop_w = 1 * max(0.5, scale * 0.5)
            drop_len = p.size * scale * 5
            corners = [(0, 0), (drop_w, 0), (drop_w, drop_len), (0, drop_len)]
            masked = _polygon_mask(_transform(corners, -angle, p.x, p.y), frame_w, frame_h)
            if masked is not None:
                _blend_screen(frame, masked, _WHITE, opacity)

        elif self.weather_type == "confetti":
            half = p.size * scale / 2
            corners = [(-half, -half), (half, -half), (half, half), (-half, half)]
            pts = _transform(corners, p.rotation, p.x, p.y, scale_y=math.cos(p.tilt))
            masked = _polygon_mask(pts, frame_w, frame_h)
            if masked is not None:
                color = self._confetti_color(p.color or "#ffffff")
                _blend_over(frame, masked, color, opacity)

    def step(self, frame: np.ndarray, design: dict):
        """
        Advance the population one frame and draw it onto ``frame`` in place.

        This is the only compositor stage that mutates state outside the frame.
        """
        if self.weather_type == "none" or not self.particles:
            return
        angle = math.radians(design["weather_angle"])
        cos_a, sin_a = math.cos(angle), math.sin(angle)
        for p in self.particles:
            self._move(p, design, cos_a, sin_a)
            opacity = max(0.0, min(1.0, p.opacity * design["weather_opacity"]))
            self._draw(frame, p, design, angle, opacity)
            self._wrap(p)
