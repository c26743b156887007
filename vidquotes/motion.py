"""
Vid Quotes - Motion Model
Deterministic blob motion that closes perfectly at the end of every loop window.

Each blob oscillates on both axes with an integer number of full cycles per loop,
so position(0) == position(duration) whatever speed and duration the user picked.
"""

import math
import random
import logging
from typing import List, Tuple, Optional

logger = logging.getLogger(__name__)

# Base oscillation rate before the global speed multiplier is applied
BASE_HZ = 0.5

# Blob travel as a fraction of the canvas half-size
TRAVEL = 0.35


class Blob:
    """One colored blob. Seed data is fixed at creation and never mutated."""

    def __init__(self, color: str, radius: float, phase_x: float, phase_y: float,
                 base_cycles_x: int, base_cycles_y: int, x: float = 0.0, y: float = 0.0):
        self.color = color
        self.radius = radius
        self.phase_x = phase_x
        self.phase_y = phase_y
        self.base_cycles_x = base_cycles_x
        self.base_cycles_y = base_cycles_y
        # Initial placement, only meaningful before the first frame is drawn
        self.x = x
        self.y = y

    def __repr__(self):
        return (f"Blob({self.color}, r={self.radius:.0f}, "
                f"cycles=({self.base_cycles_x}, {self.base_cycles_y}))")


def generate_blobs(colors: List[str], width: int, height: int,
                   rng: Optional[random.Random] = None) -> List[Blob]:
    """Create one blob per palette color with random radius, phase and base cycles."""
    rng = rng or random.Random()
    blobs = []
    for color in colors:
        blobs.append(Blob(
            color=color,
            radius=min(width, height) * (0.4 + rng.random() * 0.4),
            phase_x=rng.random() * math.pi * 2,
            phase_y=rng.random() * math.pi * 2,
            base_cycles_x=rng.randint(1, 2),
            base_cycles_y=rng.randint(1, 2),
            x=rng.random() * width,
            y=rng.random() * height,
        ))
    logger.info("Generated %d blobs for %dx%d canvas", len(blobs), width, height)
    return blobs


def effective_cycle_count(base_cycles: int, speed: float, duration: float) -> int:
    """
    Whole number of oscillations an axis completes within one loop window.

    The ideal count (base cycles at the target frequency over the loop) is rounded
    to the nearest integer and floored at 1, so the loop always closes.
    """
    target_freq = speed * BASE_HZ
    ideal = base_cycles * target_freq * duration
    return max(1, int(math.floor(ideal + 0.5)))


def loop_progress(elapsed_ms: float, duration: float) -> float:
    """Position within the loop window, in [0, 1)."""
    loop_ms = duration * 1000.0
    progress = (elapsed_ms % loop_ms) / loop_ms
    # Float modulo can land exactly on 1.0 for tiny negative remainders
    return progress if progress < 1.0 else 0.0


def blob_position(blob: Blob, speed: float, duration: float, elapsed_ms: float,
                  width: int, height: int) -> Tuple[float, float]:
    """Canvas position of a blob at the given elapsed time."""
    progress = loop_progress(elapsed_ms, duration)
    cycles_x = effective_cycle_count(blob.base_cycles_x, speed, duration)
    cycles_y = effective_cycle_count(blob.base_cycles_y, speed, duration)
    angle_x = progress * math.pi * 2 * cycles_x + blob.phase_x
    angle_y = progress * math.pi * 2 * cycles_y + blob.phase_y
    x = width / 2 + math.sin(angle_x) * (width / 2 * TRAVEL)
    y = height / 2 + math.cos(angle_y) * (height / 2 * TRAVEL)
    return x, y
