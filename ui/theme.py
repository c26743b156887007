"""
Vid Quotes - Theme Constants & Utilities
Shared palette and small helpers used by the UI mixins.
"""

import re

import cv2
import numpy as np

# ─── Theme Colors ────────────────────────────────────────────────────────────────
COLORS = {
    "bg_darkest":       "#060918",
    "bg_dark":          "#0a0e27",
    "bg_card":          "#0f1538",
    "bg_card_hover":    "#151d4a",
    "bg_input":         "#0c1230",
    "border":           "#1a2555",
    "neon_blue":        "#00d4ff",
    "accent_blue":      "#0066ff",
    "accent_purple":    "#7b2fff",
    "accent_pink":      "#ff0080",
    "text_primary":     "#e8eaff",
    "text_secondary":   "#8890b5",
    "text_muted":       "#4a5280",
    "success":          "#00ff88",
    "error":            "#ff4466",
    "warning":          "#ffaa00",
    "stop_red":         "#ff2244",
}

# Sidebar / preview surfaces
PANEL = {
    "sidebar_bg":       "#080c22",
    "card_bg":          "#0d1335",
    "divider":          "#1a2555",
    "preview_bg":       "#050810",
    "swatch_border":    "#2a357a",
}

# Preview is drawn at most this large before being shown
PREVIEW_MAX = (960, 960)


def fit_frame(frame: np.ndarray, max_w: int, max_h: int) -> np.ndarray:
    """Downscale an RGB frame to fit max_w x max_h, keeping its aspect ratio."""
    h, w = frame.shape[:2]
    ratio = min(max_w / w, max_h / h, 1.0)
    if ratio >= 1.0:
        return frame
    size = (max(1, int(w * ratio)), max(1, int(h * ratio)))
    return cv2.resize(frame, size, interpolation=cv2.INTER_AREA)


def parse_dropped_files(raw: str) -> list:
    """Split a tkinterdnd2 drop payload; paths with spaces arrive wrapped in {}."""
    if '{' not in raw:
        return raw.split()
    files = re.findall(r'\{([^}]+)\}', raw)
    remaining = re.sub(r'\{[^}]+\}', '', raw).strip()
    if remaining:
        files.extend(remaining.split())
    return files


def format_seconds(value: float) -> str:
    minutes, seconds = divmod(max(0.0, value), 60)
    return f"{int(minutes)}:{seconds:05.2f}"
