"""
Tick range selection. Pure functions, no ledger access.
"""

from __future__ import annotations

import math
from typing import Tuple

from lpkeeper.ledger.amm_math import MAX_TICK, MIN_TICK


def usable_tick_bounds(tick_spacing: int) -> Tuple[int, int]:
    """Lowest and highest ticks that are multiples of tick_spacing."""
    return (
        math.ceil(MIN_TICK / tick_spacing) * tick_spacing,
        math.floor(MAX_TICK / tick_spacing) * tick_spacing,
    )


def clamp_and_normalize(tick_lower: int, tick_upper: int, tick_spacing: int) -> Tuple[int, int]:
    """
    Order, clamp to the usable limits and guarantee lower < upper.

    Applying this twice gives the same result as applying it once.
    """
    if tick_spacing <= 0:
        raise ValueError(f"tick_spacing must be > 0, got {tick_spacing}")
    lo_limit, hi_limit = usable_tick_bounds(tick_spacing)

    lower, upper = min(tick_lower, tick_upper), max(tick_lower, tick_upper)
    lower = min(max(lower, lo_limit), hi_limit - tick_spacing)
    upper = min(max(upper, lo_limit + tick_spacing), hi_limit)
    if lower >= upper:
        lower = upper - tick_spacing
    return lower, upper


def compute_tick_range(current_tick: int, tick_spacing: int, half_width: int) -> Tuple[int, int]:
    """
    Symmetric window of half_width ticks around current_tick.

    Each side is floored to a spacing multiple. A window that rounds to zero
    width is widened by one spacing on the upper side.
    """
    if tick_spacing <= 0:
        raise ValueError(f"tick_spacing must be > 0, got {tick_spacing}")
    lower = (current_tick - half_width) // tick_spacing * tick_spacing
    upper = (current_tick + half_width) // tick_spacing * tick_spacing
    if lower == upper:
        upper += tick_spacing
    return clamp_and_normalize(lower, upper, tick_spacing)
