"""
Vid Quotes - Design State
The Configuration that drives every frame: defaults, edits, validation and snapshots.

A design is a plain dict. Edits never mutate a design in place; every helper here
returns a new dict so the undo history and queued render jobs keep their own copies.
Decoded media (background image, logo image, audio source) are shared by reference
because nothing ever writes to them once decoded.
"""

import uuid
import logging
from typing import List, Tuple, Optional

from vidquotes.errors import InputError

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════════

ASPECT_RATIOS = {
    "16:9": {"w": 1920, "h": 1080, "label": "Landscape"},
    "9:16": {"w": 1080, "h": 1920, "label": "Story"},
    "1:1":  {"w": 1080, "h": 1080, "label": "Square"},
    "4:5":  {"w": 1080, "h": 1350, "label": "Portrait"},
}

BLEND_MODES = [
    "source-over", "screen", "overlay", "multiply",
    "difference", "exclusion", "hard-light", "soft-light",
]

WEATHER_TYPES = ["none", "snow", "rain", "confetti"]

TEXT_ALIGNS = ["left", "center", "right"]

MIN_COLORS = 2
MAX_COLORS = 8
NEW_COLOR = "#ffffff"

DEFAULT_COLORS = [
    "#FF0080",  # Pink
    "#7928CA",  # Purple
    "#0070F3",  # Blue
    "#00DFD8",  # Cyan
    "#FF4D4D",  # Red
]

INITIAL_TEXT_LAYER = {
    "id": "1",
    "text": "Vid Quotes",
    "font_family": "Poppins",
    "font_weight": "800",
    "font_style": "normal",
    "font_size": 100,
    "text_align": "center",
    "text_color": "#ffffff",
    "text_shadow": True,
    "x": 0.5,
    "y": 0.5,
    "opacity": 1.0,
}

# Fields the blob set depends on; any change here regenerates the blobs
BLOB_FIELDS = ("colors", "aspect_ratio")


# ═══════════════════════════════════════════════════════════════════════════════
# COLOR UTILITIES
# ═══════════════════════════════════════════════════════════════════════════════

def hex_to_rgb(hex_color: str) -> Tuple[int, int, int]:
    """Convert hex color (#rgb or #rrggbb) to RGB tuple."""
    hex_color = hex_color.strip().lstrip('#')
    if len(hex_color) == 3:
        hex_color = "".join(c * 2 for c in hex_color)
    if len(hex_color) != 6:
        raise ValueError(f"Invalid hex color: #{hex_color}")
    return tuple(int(hex_color[i:i+2], 16) for i in (0, 2, 4))


def rgb_to_hex(r: int, g: int, b: int) -> str:
    """Convert RGB to hex string."""
    return f"#{r:02x}{g:02x}{b:02x}"


def new_id() -> str:
    return uuid.uuid4().hex[:9]


# ═══════════════════════════════════════════════════════════════════════════════
# CONSTRUCTION
# ═══════════════════════════════════════════════════════════════════════════════

def new_text_layer(**overrides) -> dict:
    layer = dict(INITIAL_TEXT_LAYER)
    layer.update(overrides)
    return layer


def new_design(**overrides) -> dict:
    """Build the default design, optionally overriding individual fields."""
    design = {
        "duration": 10,
        "aspect_ratio": "16:9",
        "speed": 1.0,
        "blur_level": 120,
        "blend_mode": "screen",
        "blob_opacity": 1.0,
        "colors": list(DEFAULT_COLORS),
        "bg_type": "color",
        "bg_color": "#000000",
        "bg_image": None,
        "bg_opacity": 1.0,
        "weather_type": "none",
        "weather_density": 50,
        "weather_scale": 1.0,
        "weather_angle": 0,
        "weather_wobble": 1.0,
        "weather_speed": 1.0,
        "weather_opacity": 1.0,
        "text_layers": [new_text_layer()],
        "logo": None,
        "custom_fonts": [],
        "audio": None,
        "audio_name": None,
        "audio_duration": 0.0,
        "audio_start": 0.0,
        "audio_end": 0.0,
    }
    design.update(overrides)
    return design


def canvas_size(design: dict) -> Tuple[int, int]:
    dims = ASPECT_RATIOS[design["aspect_ratio"]]
    return dims["w"], dims["h"]


def with_changes(design: dict, **changes) -> dict:
    """Return a new design with the given top-level fields replaced."""
    unknown = set(changes) - set(design)
    if unknown:
        raise KeyError(f"Unknown design field(s): {', '.join(sorted(unknown))}")
    nxt = dict(design)
    nxt.update(changes)
    return nxt


# ═══════════════════════════════════════════════════════════════════════════════
# PALETTE
# ═══════════════════════════════════════════════════════════════════════════════

def add_color(design: dict, color: str = NEW_COLOR) -> dict:
    """Append a palette color. No-op once the palette holds MAX_COLORS."""
    if len(design["colors"]) >= MAX_COLORS:
        return design
    return with_changes(design, colors=design["colors"] + [color])


def remove_color(design: dict, index: int) -> dict:
    """Remove a palette color. No-op once the palette is down to MIN_COLORS."""
    colors = design["colors"]
    if len(colors) <= MIN_COLORS or not 0 <= index < len(colors):
        return design
    return with_changes(design, colors=[c for i, c in enumerate(colors) if i != index])


def set_color(design: dict, index: int, color: str) -> dict:
    hex_to_rgb(color)
    colors = list(design["colors"])
    colors[index] = color
    return with_changes(design, colors=colors)


def cycle_aspect_ratio(design: dict) -> dict:
    keys = list(ASPECT_RATIOS.keys())
    nxt = keys[(keys.index(design["aspect_ratio"]) + 1) % len(keys)]
    return with_changes(design, aspect_ratio=nxt)


# ═══════════════════════════════════════════════════════════════════════════════
# TEXT LAYERS
# ═══════════════════════════════════════════════════════════════════════════════

def get_layer(design: dict, layer_id: Optional[str]) -> dict:
    """Find a layer by id, falling back to the first layer."""
    for layer in design["text_layers"]:
        if layer["id"] == layer_id:
            return layer
    return design["text_layers"][0]


def update_layer(design: dict, layer_id: str, **changes) -> dict:
    layers = [
        dict(layer, **changes) if layer["id"] == layer_id else layer
        for layer in design["text_layers"]
    ]
    return with_changes(design, text_layers=layers)


def add_text_layer(design: dict) -> Tuple[dict, str]:
    """Append a new text layer below the existing ones. Returns (design, new_layer_id)."""
    layer = new_text_layer(
        id=new_id(),
        text="New Text",
        y=0.5 + len(design["text_layers"]) * 0.1,
    )
    return with_changes(design, text_layers=design["text_layers"] + [layer]), layer["id"]


def remove_text_layer(design: dict, layer_id: str) -> Tuple[dict, str]:
    """
    Remove a text layer. The last remaining layer can't be removed.
    Returns (design, id_of_layer_that_should_become_active).
    """
    layers = design["text_layers"]
    if len(layers) <= 1:
        return design, layers[0]["id"]
    remaining = [l for l in layers if l["id"] != layer_id]
    return with_changes(design, text_layers=remaining), remaining[-1]["id"]


def primary_text(design: dict) -> Optional[str]:
    """Text of the first non-empty text layer."""
    for layer in design["text_layers"]:
        if layer["text"]:
            return layer["text"]
    return None


def job_name(design: dict, limit: int = 20) -> str:
    text = primary_text(design)
    return text[:limit] if text else "Untitled"


# ═══════════════════════════════════════════════════════════════════════════════
# MEDIA: BACKGROUND, LOGO, AUDIO
# ═══════════════════════════════════════════════════════════════════════════════

def set_background_image(design: dict, image) -> dict:
    return with_changes(design, bg_image=image, bg_type="image")


def set_logo(design: dict, image) -> dict:
    """Attach a logo centered on the canvas at 20% of its width."""
    logo = {"image": image, "x": 0.5, "y": 0.5, "size": 0.2, "opacity": 1.0}
    return with_changes(design, logo=logo)


def update_logo(design: dict, **changes) -> dict:
    if not design["logo"]:
        return design
    return with_changes(design, logo=dict(design["logo"], **changes))


def remove_logo(design: dict) -> dict:
    return with_changes(design, logo=None)


def set_audio(design: dict, source: str, name: str, total_duration: float) -> dict:
    """Attach an audio source; the trim window defaults to the whole file."""
    if total_duration <= 0:
        raise InputError(f"Audio '{name}' has no playable duration")
    return with_changes(
        design,
        audio=source,
        audio_name=name,
        audio_duration=float(total_duration),
        audio_start=0.0,
        audio_end=float(total_duration),
    )


def remove_audio(design: dict) -> dict:
    return with_changes(
        design, audio=None, audio_name=None,
        audio_duration=0.0, audio_start=0.0, audio_end=0.0,
    )


def set_audio_trim(design: dict, start: float, end: float) -> dict:
    """Set the trim window, clamped to the file. Requires start < end."""
    total = design["audio_duration"]
    if not design["audio"] or total <= 0:
        raise InputError("No audio attached")
    start = max(0.0, min(float(start), total))
    end = max(0.0, min(float(end), total))
    if start >= end:
        raise InputError(f"Audio start ({start:.2f}s) must be before end ({end:.2f}s)")
    return with_changes(design, audio_start=start, audio_end=end)


# ═══════════════════════════════════════════════════════════════════════════════
# VALIDATION, SNAPSHOTS, CHANGE DETECTION
# ═══════════════════════════════════════════════════════════════════════════════

def validate_design(design: dict):
    """Raise InputError if the design breaks a Configuration invariant."""
    n = len(design["colors"])
    if not MIN_COLORS <= n <= MAX_COLORS:
        raise InputError(f"Palette must hold {MIN_COLORS}-{MAX_COLORS} colors, got {n}")
    for c in design["colors"]:
        try:
            hex_to_rgb(c)
        except ValueError:
            raise InputError(f"Invalid palette color: {c}")
    if design["duration"] <= 0:
        raise InputError("Duration must be positive")
    if design["aspect_ratio"] not in ASPECT_RATIOS:
        raise InputError(f"Unknown aspect ratio: {design['aspect_ratio']}")
    if design["blend_mode"] not in BLEND_MODES:
        raise InputError(f"Unknown blend mode: {design['blend_mode']}")
    if design["weather_type"] not in WEATHER_TYPES:
        raise InputError(f"Unknown weather type: {design['weather_type']}")
    if design["audio"]:
        if not 0 <= design["audio_start"] < design["audio_end"] <= design["audio_duration"]:
            raise InputError("Audio trim must satisfy start < end <= duration")


def snapshot_design(design: dict) -> dict:
    """
    Freeze a design for the render queue.

    Lists of layers, colors and fonts are copied by value so later edits to the live
    design can't leak into the job. The background image, logo image and audio source
    are shared by reference.
    """
    snap = dict(design)
    snap["text_layers"] = [dict(l) for l in design["text_layers"]]
    snap["colors"] = list(design["colors"])
    snap["custom_fonts"] = [dict(f) for f in design["custom_fonts"]]
    if design["logo"] is not None:
        snap["logo"] = dict(design["logo"])
    return snap


def blob_signature(design: dict) -> tuple:
    return tuple(design["colors"]), design["aspect_ratio"]


def weather_signature(design: dict) -> tuple:
    return (
        design["weather_type"],
        design["weather_density"],
        canvas_size(design),
        tuple(design["colors"]),
    )


def palette_rgb(colors: List[str]) -> List[Tuple[int, int, int]]:
    return [hex_to_rgb(c) for c in colors]
