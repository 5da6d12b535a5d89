"""Coordinate mapping between logical, physical and tile-local space.

Forward: physical canvas offsets -> logical window placement.
Inverse: a selection drawn in the window -> pixel crop of the canvas.

Nothing here raises on out-of-range numbers; values are clamped.
"""

import logging
import math
from typing import TYPE_CHECKING, Iterable, Optional

from .geometry import (
    LogicalPoint,
    LogicalRect,
    LogicalSize,
    PixelRect,
    PixelSize,
    PlacementRect,
)

if TYPE_CHECKING:
    from .tiles import Tile

log = logging.getLogger(__name__)

# Selections this small (in logical units or resulting pixels) are treated
# as accidental clicks
MIN_SELECTION_EXTENT = 1


def physical_to_logical(x: float, y: float, scale: float) -> LogicalPoint:
    return LogicalPoint(x / scale, y / scale)


def logical_to_physical(point: LogicalPoint, scale: float) -> tuple[int, int]:
    """Map a logical point to the physical pixel containing it."""
    return math.floor(point.x * scale), math.floor(point.y * scale)


def placement_rect(rect: PixelRect, scale: float) -> PlacementRect:
    """Logical rectangle at which to draw a physical region."""
    return LogicalRect(
        rect.x / scale,
        rect.y / scale,
        rect.width / scale,
        rect.height / scale,
    )


def locate_tile(x: int, y: int, tiles: Iterable["Tile"]) -> Optional[tuple["Tile", int, int]]:
    """Find the tile holding physical pixel (x, y).

    Returns:
        (tile, local_x, local_y) or None if no tile covers the pixel
    """
    for t in tiles:
        if t.x <= x < t.x + t.width and t.y <= y < t.y + t.height:
            return t, x - t.x, y - t.y
    return None


def map_selection_to_crop(
    selection: LogicalRect,
    window_logical_size: LogicalSize,
    source_image_size: PixelSize,
) -> Optional[PixelRect]:
    """Map a window selection to a crop of the captured canvas.

    The window may show the canvas at any scale, so the per-axis ratio of
    image size to observed window size is applied to the selection's
    corner and extent. The result is clamped to the image.

    Args:
        selection: Rectangle in window-logical coordinates
        window_logical_size: Current logical size of the window
        source_image_size: Size of the captured canvas in pixels

    Returns:
        PixelRect, or None for a degenerate selection
    """
    if selection.width <= MIN_SELECTION_EXTENT or selection.height <= MIN_SELECTION_EXTENT:
        log.debug("Ignoring degenerate selection %s", selection)
        return None
    if window_logical_size.width <= 0 or window_logical_size.height <= 0:
        log.debug("Ignoring selection in empty window %s", window_logical_size)
        return None

    img_w = source_image_size.width
    img_h = source_image_size.height
    win_w = window_logical_size.width
    win_h = window_logical_size.height

    # Multiply before dividing so a full-window selection maps exactly
    x = math.floor(selection.x * img_w / win_w)
    y = math.floor(selection.y * img_h / win_h)
    width = int(selection.width * img_w / win_w)
    height = int(selection.height * img_h / win_h)

    rect = PixelRect(x, y, width, height).clamped(source_image_size)
    if rect.width <= MIN_SELECTION_EXTENT or rect.height <= MIN_SELECTION_EXTENT:
        log.debug("Selection %s maps to degenerate crop %s", selection, rect)
        return None
    return rect
