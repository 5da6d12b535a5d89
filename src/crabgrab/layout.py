"""Virtual desktop layout.

Resolves where every display sits in one physical canvas and in the
logical space of the selection window.

The window system gives a window a single scale factor, so the window is
placed using the scale of the *origin* monitor (the one at the physical
top-left). Each monitor's logical extent still uses its own scale factor.
On mixed-DPI desktops non-origin monitors are drawn at the origin scale.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Union

from .capture import CaptureSet
from .geometry import LogicalRect, LogicalSize, PixelRect, PixelSize
from .monitors import MonitorInfo

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VirtualDesktopLayout:
    """Physical and logical bounds of the whole desktop."""

    physical: PixelRect
    logical: LogicalRect
    origin_monitor: MonitorInfo
    monitors: tuple[MonitorInfo, ...]

    @property
    def origin_scale(self) -> float:
        return self.origin_monitor.scale_factor

    @property
    def canvas_size(self) -> PixelSize:
        return self.physical.size

    @property
    def window_size(self) -> LogicalSize:
        """Logical size of a window showing the canvas at the origin scale."""
        return LogicalSize(
            self.physical.width / self.origin_scale,
            self.physical.height / self.origin_scale,
        )

    def offset_of(self, monitor: MonitorInfo) -> tuple[int, int]:
        """Physical offset of a monitor relative to the canvas origin."""
        return monitor.x - self.physical.x, monitor.y - self.physical.y

    def logical_rect_of(self, monitor: MonitorInfo) -> LogicalRect:
        """Logical rectangle a monitor occupies in the desktop.

        Its position is the physical position divided by the origin scale,
        so monitors stay contiguous. Its extent uses the monitor's own scale
        factor.
        """
        return _logical_rect(monitor, self.origin_scale)

    def to_dict(self) -> dict:
        return {
            "physical": self.physical.to_dict(),
            "logical": self.logical.to_dict(),
            "origin_monitor": self.origin_monitor.name,
            "origin_scale": self.origin_scale,
            "window_size": {
                "width": self.window_size.width,
                "height": self.window_size.height,
            },
            "monitors": [m.to_dict() for m in self.monitors],
        }


def _logical_rect(monitor: MonitorInfo, scale: float) -> LogicalRect:
    # Position at the window scale, extent at the monitor's own scale
    return LogicalRect(
        monitor.x / scale,
        monitor.y / scale,
        monitor.width / monitor.scale_factor,
        monitor.height / monitor.scale_factor,
    )


def _monitors_of(source: Union[CaptureSet, Iterable[MonitorInfo]]) -> list[MonitorInfo]:
    if isinstance(source, CaptureSet):
        return source.monitors
    return list(source)


def physical_bounds(monitors: list[MonitorInfo]) -> PixelRect:
    """Smallest rectangle containing every monitor."""
    left = min(m.x for m in monitors)
    top = min(m.y for m in monitors)
    right = max(m.x + m.width for m in monitors)
    bottom = max(m.y + m.height for m in monitors)
    return PixelRect(left, top, right - left, bottom - top)


def find_origin_monitor(monitors: list[MonitorInfo], bounds: PixelRect) -> MonitorInfo:
    """Monitor whose top-left corner is the bounding box's top-left.

    First match in enumeration order wins. When no monitor touches the
    corner (staggered layouts), the one nearest to it is used.
    """
    for monitor in monitors:
        if monitor.x == bounds.x and monitor.y == bounds.y:
            return monitor

    nearest = min(
        monitors,
        key=lambda m: (m.x - bounds.x) ** 2 + (m.y - bounds.y) ** 2,
    )
    log.debug("No display at the desktop corner, using nearest: %s", nearest.name)
    return nearest


def find_overlaps(monitors: list[MonitorInfo]) -> list[tuple[MonitorInfo, MonitorInfo]]:
    """Return every pair of monitors whose rectangles overlap."""
    overlaps = []
    for i, a in enumerate(monitors):
        for b in monitors[i + 1:]:
            if a.rect.intersects(b.rect):
                overlaps.append((a, b))
    return overlaps


def resolve_layout(source: Union[CaptureSet, Iterable[MonitorInfo]]) -> VirtualDesktopLayout:
    """Compute the virtual desktop layout.

    Args:
        source: A CaptureSet or monitor descriptors (at least one)

    Returns:
        VirtualDesktopLayout
    """
    monitors = _monitors_of(source)
    if not monitors:
        raise ValueError("resolve_layout needs at least one monitor")

    physical = physical_bounds(monitors)
    origin = find_origin_monitor(monitors, physical)
    scale = origin.scale_factor

    rects = [_logical_rect(m, scale) for m in monitors]
    left = min(r.x for r in rects)
    top = min(r.y for r in rects)
    right = max(r.right for r in rects)
    bottom = max(r.bottom for r in rects)

    layout = VirtualDesktopLayout(
        physical=physical,
        logical=LogicalRect(left, top, right - left, bottom - top),
        origin_monitor=origin,
        monitors=tuple(monitors),
    )
    log.debug(
        "Layout: physical %dx%d at (%d,%d), origin %s @ %.2fx",
        physical.width, physical.height, physical.x, physical.y, origin.name, scale,
    )
    return layout
