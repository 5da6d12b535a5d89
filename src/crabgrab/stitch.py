"""Canvas stitching.

Pastes every captured display onto one RGBA canvas sized to the physical
bounding box of the desktop.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from PIL import Image

from .capture import CaptureSet
from .emit import emit
from .geometry import PixelRect, PixelSize
from .layout import VirtualDesktopLayout, find_overlaps

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Canvas:
    """The stitched desktop in physical pixels.

    Pixel (0, 0) corresponds to the layout's physical origin.
    """

    image: Image.Image
    layout: Optional[VirtualDesktopLayout] = None

    @property
    def size(self) -> PixelSize:
        return PixelSize(*self.image.size)

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    def copy(self) -> "Canvas":
        """Deep copy, safe to hand to another thread."""
        return Canvas(image=self.image.copy(), layout=self.layout)

    def crop(self, rect: PixelRect) -> Image.Image:
        """Return a new image of ``rect``, clamped to the canvas."""
        clamped = rect.clamped(self.size)
        return self.image.crop(clamped.as_box())


def stitch(capture_set: CaptureSet, layout: VirtualDesktopLayout) -> Canvas:
    """Composite all displays into one canvas.

    Overlapping displays are logged and pasted in enumeration order, so the
    later display wins where they overlap.
    """
    overlaps = find_overlaps(capture_set.monitors)
    for a, b in overlaps:
        log.warning("Displays %s and %s overlap; pixel precedence is undefined", a.name, b.name)
        emit("layout.malformed", {
            "displays": [a.name, b.name],
            "rects": [a.rect.to_dict(), b.rect.to_dict()],
        })

    size = layout.canvas_size
    canvas = Image.new("RGBA", (size.width, size.height), (0, 0, 0, 0))

    for capture in capture_set:
        dx, dy = layout.offset_of(capture.monitor)
        canvas.paste(capture.image, (dx, dy))

    log.debug("Stitched %d display(s) onto %dx%d canvas", len(capture_set), size.width, size.height)
    return Canvas(image=canvas, layout=layout)
