"""
Capture Policy

Frame-rate and tiling rules. Inline results travel over the wire and must stay
small; persisted animations can sample densely because the assembler collapses
repeated frames anyway.
"""

from enum import Enum

INLINE_INTERVAL = 2.0


class ScreenshotPlan(Enum):
    SINGLE = "single"
    TILED = "tiled"


def decide_screenshot_plan(full_page: bool, page_height: int, viewport_height: int) -> ScreenshotPlan:
    """Tile only when a full-page capture is taller than one viewport."""
    if full_page and page_height > viewport_height:
        return ScreenshotPlan.TILED
    return ScreenshotPlan.SINGLE


def decide_screencast_interval(duration: float, persist_as_animation: bool) -> float:
    """
    Pick the sampling interval (seconds) for a screencast.

    Args:
        duration: Requested screencast length in seconds
        persist_as_animation: True when frames will be assembled into an animated WebP

    Returns:
        Seconds between frames
    """
    if not persist_as_animation:
        return INLINE_INTERVAL
    if duration <= 5:
        return 0.1
    if duration <= 10:
        return 0.2
    return 0.5
