"""crabgrab: multi-monitor desktop capture.

Captures every display in parallel, stitches them into one canvas,
cuts the canvas into texture-sized tiles, and maps a selection drawn
in a scaled window back to an exact pixel crop.
"""

__version__ = "0.3.0"

from .capture import (
    CaptureError,
    CaptureFailed,
    CaptureSet,
    MonitorCapture,
    NoDisplaysFound,
    enumerate_and_capture_all,
)
from .layout import VirtualDesktopLayout, resolve_layout
from .mapping import map_selection_to_crop
from .stitch import Canvas, stitch
from .tiles import Tile, tile, tile_with_placement

__all__ = [
    "Canvas",
    "CaptureError",
    "CaptureFailed",
    "CaptureSet",
    "MonitorCapture",
    "NoDisplaysFound",
    "Tile",
    "VirtualDesktopLayout",
    "enumerate_and_capture_all",
    "map_selection_to_crop",
    "resolve_layout",
    "stitch",
    "tile",
    "tile_with_placement",
]
