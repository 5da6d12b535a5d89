"""Tile partitioning.

Graphics hardware caps the edge length of a single texture, so a large
desktop is cut into tiles no larger than ``max_edge`` on either axis.
Tiles are produced in row-major order: left to right along a row, rows
from top to bottom.
"""

import logging
from dataclasses import dataclass

from PIL import Image

from .capture import CaptureSet
from .geometry import PixelRect, PlacementRect
from .layout import VirtualDesktopLayout
from .mapping import placement_rect

log = logging.getLogger(__name__)

DEFAULT_MAX_EDGE = 2048


@dataclass(frozen=True)
class Tile:
    """A sub-image and where it sits in its source."""

    x: int
    y: int
    width: int
    height: int
    image: Image.Image

    @property
    def rect(self) -> PixelRect:
        return PixelRect(self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict:
        return self.rect.to_dict()


def tile_count(width: int, height: int, max_edge: int) -> int:
    """Number of tiles ``tile`` produces for a width x height source."""
    if width <= 0 or height <= 0:
        return 0
    return -(-width // max_edge) * -(-height // max_edge)


def tile_rects(width: int, height: int, max_edge: int = DEFAULT_MAX_EDGE) -> list[PixelRect]:
    """Tile rectangles for a width x height source, without pixel data."""
    if max_edge < 1:
        raise ValueError(f"max_edge must be >= 1, got {max_edge}")

    rects = []
    y = 0
    while y < height:
        h = min(max_edge, height - y)
        x = 0
        while x < width:
            w = min(max_edge, width - x)
            rects.append(PixelRect(x, y, w, h))
            x += w
        y += h
    return rects


def tile(image: Image.Image, max_edge: int = DEFAULT_MAX_EDGE) -> list[Tile]:
    """Cut an image into tiles no larger than max_edge per side.

    The tiles exactly partition the image: no gaps, no overlaps.
    """
    tiles = [
        Tile(r.x, r.y, r.width, r.height, image.crop(r.as_box()))
        for r in tile_rects(image.width, image.height, max_edge)
    ]
    log.debug("Cut %dx%d image into %d tile(s) (max edge %d)",
              image.width, image.height, len(tiles), max_edge)
    return tiles


def tile_with_placement(
    capture_set: CaptureSet,
    layout: VirtualDesktopLayout,
    max_edge: int = DEFAULT_MAX_EDGE,
) -> list[tuple[PlacementRect, Tile]]:
    """Tile every display and place each tile in window-logical space.

    Tile offsets are relative to the canvas origin (display offset plus the
    tile's offset inside its display). Every tile is placed at the origin
    monitor's scale.
    """
    placed = []
    for capture in capture_set:
        dx, dy = layout.offset_of(capture.monitor)
        for t in tile(capture.image, max_edge):
            canvas_tile = Tile(dx + t.x, dy + t.y, t.width, t.height, t.image)
            placed.append((placement_rect(canvas_tile.rect, layout.origin_scale), canvas_tile))
    return placed
