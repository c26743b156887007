"""
Vid Quotes - Text Layout Engine
Word-wraps text layers, centers the wrapped block on its anchor and draws it with Pillow.

Layout is a pure function of the text, a width-measuring callable and the canvas
size, so it can be exercised without any font files. Drawing resolves the layer's
font through FontRegistry (built-in families or uploaded .ttf/.otf/.woff files).
"""

import os
import re
import logging
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from PIL import Image, ImageDraw, ImageFilter, ImageFont

from vidquotes.design import hex_to_rgb
from vidquotes.errors import DecodeError, InputError

logger = logging.getLogger(__name__)

# Layouts are authored against a 1920px-wide canvas and scaled from there
REFERENCE_WIDTH = 1920
MAX_WIDTH_RATIO = 0.9
LINE_HEIGHT_RATIO = 1.2

SHADOW_RGBA = (0, 0, 0, 128)
SHADOW_BLUR = 20
SHADOW_OFFSET = 4

FONT_EXTENSIONS = (".ttf", ".otf", ".woff")

# Pillow anchors: horizontal alignment + vertical middle (canvas textBaseline = middle)
_ANCHORS = {"left": "lm", "center": "mm", "right": "rm"}

_WEIGHT_NAMES = {
    "100": "Thin", "200": "ExtraLight", "300": "Light", "400": "Regular",
    "500": "Medium", "600": "SemiBold", "700": "Bold", "800": "ExtraBold",
    "900": "Black",
}

# Tried in order when a family isn't installed
_FALLBACK_FONTS = ["arial.ttf", "DejaVuSans.ttf", "LiberationSans-Regular.ttf"]
_FALLBACK_BOLD_FONTS = ["arialbd.ttf", "DejaVuSans-Bold.ttf", "LiberationSans-Bold.ttf"]


# ═══════════════════════════════════════════════════════════════════════════════
# LAYOUT
# ═══════════════════════════════════════════════════════════════════════════════

def scaled_font_size(font_size: float, canvas_w: int) -> float:
    return font_size * (canvas_w / REFERENCE_WIDTH)


def wrap_text(text: str, measure: Callable[[str], float], max_width: float) -> List[str]:
    """
    Greedy word wrap. Explicit newlines always break; a word wider than
    ``max_width`` sits alone on its own line and is never split.
    """
    lines = []
    for paragraph in text.split("\n"):
        words = paragraph.split(" ")
        current = words[0]
        for word in words[1:]:
            candidate = current + " " + word
            if measure(candidate) < max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
    return lines


class TextLayout:
    """Wrapped lines of one text layer plus where to put them."""

    def __init__(self, lines: List[str], font_size: float, line_height: float,
                 x: float, start_y: float, align: str, max_width: float):
        self.lines = lines
        self.font_size = font_size
        self.line_height = line_height
        self.x = x
        self.start_y = start_y
        self.align = align
        self.max_width = max_width

    @property
    def total_height(self) -> float:
        return len(self.lines) * self.line_height

    def positions(self) -> List[Tuple[str, float, float]]:
        """(line, x, y) for each line; y is the line's vertical middle."""
        return [
            (line, self.x, self.start_y + i * self.line_height)
            for i, line in enumerate(self.lines)
        ]


def layout_text(layer: dict, canvas_w: int, canvas_h: int,
                measure: Callable[[str], float]) -> TextLayout:
    """
    Lay out a text layer. ``measure`` must return the rendered width of a string
    at the layer's scaled font size.
    """
    font_size = scaled_font_size(layer["font_size"], canvas_w)
    max_width = canvas_w * MAX_WIDTH_RATIO
    lines = wrap_text(layer["text"], measure, max_width)

    line_height = font_size * LINE_HEIGHT_RATIO
    total_height = len(lines) * line_height
    center_y = layer["y"] * canvas_h
    start_y = center_y - total_height / 2 + line_height / 2

    return TextLayout(lines, font_size, line_height, layer["x"] * canvas_w,
                      start_y, layer["text_align"], max_width)


# ═══════════════════════════════════════════════════════════════════════════════
# FONTS
# ═══════════════════════════════════════════════════════════════════════════════

def sanitize_font_name(path: str) -> str:
    """Family name for an uploaded font: file name up to its first dot, alphanumerics only."""
    base = os.path.basename(path).split(".")[0]
    return re.sub(r"[^a-zA-Z0-9]", "", base)


class FontRegistry:
    """Resolves (family, weight, style, size) to a Pillow font, caching the result."""

    def __init__(self):
        self._custom: Dict[str, str] = {}
        self._cache: Dict[tuple, ImageFont.FreeTypeFont] = {}

    @property
    def custom_families(self) -> List[str]:
        return list(self._custom.keys())

    def register(self, path: str) -> str:
        """Register an uploaded font file and return its family name."""
        ext = os.path.splitext(path)[1].lower()
        if ext not in FONT_EXTENSIONS:
            raise DecodeError(
                "Could not load font. Please ensure it is a valid TTF, OTF, or WOFF file."
            )
        name = sanitize_font_name(path)
        if not name:
            raise InputError(f"Can't derive a font name from '{os.path.basename(path)}'")
        try:
            ImageFont.truetype(path, 12)
        except (OSError, ValueError) as e:
            raise DecodeError(f"Could not load font '{os.path.basename(path)}': {e}")

        self._custom[name] = path
        # Drop stale cached sizes if a family is re-registered
        self._cache = {k: v for k, v in self._cache.items() if k[0] != name}
        logger.info("Registered font '%s' from %s", name, path)
        return name

    def _candidates(self, family: str, weight: str, style: str) -> List[str]:
        if family in self._custom:
            return [self._custom[family]]
        weight_name = _WEIGHT_NAMES.get(str(weight), "Regular")
        italic = style == "italic"
        compact = family.replace(" ", "")
        names = []
        if italic:
            suffix = "Italic" if weight_name == "Regular" else f"{weight_name}Italic"
            names.append(f"{compact}-{suffix}.ttf")
        names.append(f"{compact}-{weight_name}.ttf")
        names.append(f"{compact}.ttf")
        try:
            bold = int(weight) >= 600
        except (TypeError, ValueError):
            bold = str(weight).lower() == "bold"
        names.extend(_FALLBACK_BOLD_FONTS if bold else _FALLBACK_FONTS)
        return names

    def get_font(self, family: str, weight: str, style: str, size: int):
        size = max(1, int(round(size)))
        key = (family, str(weight), style, size)
        font = self._cache.get(key)
        if font is not None:
            return font

        for candidate in self._candidates(family, weight, style):
            try:
                font = ImageFont.truetype(candidate, size)
                break
            except OSError:
                continue
        else:
            logger.debug("No font file for '%s', using Pillow default", family)
            font = ImageFont.load_default(size=size)

        self._cache[key] = font
        return font


# ═══════════════════════════════════════════════════════════════════════════════
# DRAWING
# ═══════════════════════════════════════════════════════════════════════════════

def _composite_rgba(frame: np.ndarray, overlay: Image.Image, opacity: float):
    bbox = overlay.getbbox()
    if bbox is None:
        return
    x0, y0, x1, y1 = bbox
    rgba = np.asarray(overlay.crop(bbox), dtype=np.float32) / 255.0
    a = rgba[..., 3:4] * opacity
    region = frame[y0:y1, x0:x1]
    region *= 1.0 - a
    region += rgba[..., :3] * a


def draw_text_layers(frame: np.ndarray, layers: List[dict], fonts: FontRegistry):
    """Draw every non-empty text layer onto a float RGB frame, in order."""
    canvas_h, canvas_w = frame.shape[:2]
    scale = canvas_w / REFERENCE_WIDTH

    for layer in layers:
        if not layer["text"]:
            continue

        font_size = scaled_font_size(layer["font_size"], canvas_w)
        font = fonts.get_font(layer["font_family"], layer["font_weight"],
                              layer["font_style"], font_size)

        overlay = Image.new("RGBA", (canvas_w, canvas_h), (0, 0, 0, 0))
        draw = ImageDraw.Draw(overlay)
        layout = layout_text(layer, canvas_w, canvas_h,
                             lambda s: draw.textlength(s, font=font))
        anchor = _ANCHORS.get(layout.align, "mm")
        fill = hex_to_rgb(layer["text_color"]) + (255,)

        if layer["text_shadow"]:
            shadow = Image.new("RGBA", (canvas_w, canvas_h), (0, 0, 0, 0))
            shadow_draw = ImageDraw.Draw(shadow)
            offset = SHADOW_OFFSET * scale
            for line, x, y in layout.positions():
                shadow_draw.text((x + offset, y + offset), line, font=font,
                                 fill=SHADOW_RGBA, anchor=anchor)
            # Canvas shadowBlur is twice the Gaussian standard deviation
            shadow = shadow.filter(ImageFilter.GaussianBlur(SHADOW_BLUR * scale / 2))
            _composite_rgba(frame, shadow, layer["opacity"])

        for line, x, y in layout.positions():
            draw.text((x, y), line, font=font, fill=fill, anchor=anchor)
        _composite_rgba(frame, overlay, layer["opacity"])
