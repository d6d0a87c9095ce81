"""
Visual Freezer - "The Camera"

Viewport and tiled full-page screenshot capture.
Full pages are cut into fixed-size square tiles so that each image stays
within the size vision models handle well.
"""

import logging
import time
from dataclasses import dataclass
from typing import Union

import numpy as np
from playwright.async_api import Page

logger = logging.getLogger("sitecast.visual")

TILE_SIZE = 1072

_PAGE_SIZE_SCRIPT = """
    () => ({
        width: Math.max(document.documentElement.scrollWidth, document.body ? document.body.scrollWidth : 0),
        height: Math.max(document.documentElement.scrollHeight, document.body ? document.body.scrollHeight : 0),
    })
"""


@dataclass(frozen=True)
class Frame:
    """One captured PNG in a screencast."""

    data: bytes
    index: int
    captured_at: float


@dataclass(frozen=True)
class Tile:
    data: bytes
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class SingleScreenshot:
    data: bytes
    width: int
    height: int


@dataclass(frozen=True)
class TiledScreenshot:
    tiles: tuple[Tile, ...]
    full_width: int
    full_height: int
    tile_size: int


Screenshot = Union[SingleScreenshot, TiledScreenshot]


@dataclass(frozen=True)
class ScreencastResult:
    frames: tuple[Frame, ...]
    duration: float
    interval: float


def plan_tiles(full_width: int, full_height: int, tile_size: int = TILE_SIZE) -> list[tuple[int, int, int, int]]:
    """
    Split a page into row-major (x, y, width, height) rectangles.

    The rectangles cover [0, full_width) x [0, full_height) exactly once; the
    last row and column are clipped to the page edge.
    """
    if full_width <= 0 or full_height <= 0:
        return []
    if tile_size <= 0:
        raise ValueError(f"tile_size must be positive, got {tile_size}")

    xs = np.arange(0, full_width, tile_size)
    ys = np.arange(0, full_height, tile_size)
    widths = np.minimum(tile_size, full_width - xs)
    heights = np.minimum(tile_size, full_height - ys)

    return [
        (int(x), int(y), int(w), int(h))
        for y, h in zip(ys, heights)
        for x, w in zip(xs, widths)
    ]


class VisualFreezer:
    """
    Handles visual state preservation for a loaded page.
    """

    @staticmethod
    async def measure_page(page: Page) -> tuple[int, int]:
        """Return the scrollable (width, height) of the rendered document."""
        size = await page.evaluate(_PAGE_SIZE_SCRIPT)
        return int(size["width"]), int(size["height"])

    @staticmethod
    async def capture_viewport(page: Page) -> SingleScreenshot:
        """Capture the visible viewport as PNG."""
        viewport = page.viewport_size or {"width": 0, "height": 0}
        data = await page.screenshot(type="png", full_page=False)
        return SingleScreenshot(data=data, width=viewport["width"], height=viewport["height"])

    @staticmethod
    async def capture_tiles(
        page: Page, full_width: int, full_height: int, tile_size: int = TILE_SIZE
    ) -> TiledScreenshot:
        """Capture the full page one clipped tile at a time."""
        tiles = []
        for x, y, width, height in plan_tiles(full_width, full_height, tile_size):
            data = await page.screenshot(
                type="png",
                full_page=True,
                clip={"x": x, "y": y, "width": width, "height": height},
            )
            tiles.append(Tile(data=data, x=x, y=y, width=width, height=height))

        logger.debug(f"Captured {len(tiles)} tiles for {full_width}x{full_height} page")
        return TiledScreenshot(
            tiles=tuple(tiles),
            full_width=full_width,
            full_height=full_height,
            tile_size=tile_size,
        )

    @staticmethod
    async def capture_frame(page: Page, index: int) -> Frame:
        """Capture one screencast frame of the current viewport."""
        data = await page.screenshot(type="png", full_page=False)
        return Frame(data=data, index=index, captured_at=time.time())
