"""
Vid Quotes - UI Package
Contains the UI mixin modules and theme constants.
"""

from ui.theme import COLORS, PANEL, PREVIEW_MAX, fit_frame
from ui.studio import StudioMixin
from ui.queue import QueueMixin

__all__ = [
    "COLORS", "PANEL", "PREVIEW_MAX", "fit_frame",
    "StudioMixin", "QueueMixin",
]
