"""Monitor enumeration.

A backend reports the active displays; this module turns that into an
ordered list of MonitorInfo and fails loudly when nothing is left.
"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Optional

from .geometry import PixelRect

if TYPE_CHECKING:
    from .backends import CaptureBackend

log = logging.getLogger(__name__)

DEFAULT_SCALE_FACTOR = 1.0


class CaptureError(Exception):
    """Raised when capture fails."""
    pass


class NoDisplaysFound(CaptureError):
    """Raised when enumeration yields no usable display."""

    def __init__(self, message: str = "No displays found"):
        super().__init__(message)


class CaptureFailed(CaptureError):
    """Raised when grabbing a single display fails.

    The whole capture attempt is abandoned; ``display`` names the output
    that failed.
    """

    def __init__(self, display: str, reason: str = ""):
        self.display = display
        self.reason = reason
        message = f"Capture of display {display!r} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


@dataclass(frozen=True)
class MonitorInfo:
    """One active display: its physical rectangle and scale factor."""

    name: str
    x: int
    y: int
    width: int
    height: int
    scale_factor: float = DEFAULT_SCALE_FACTOR

    @property
    def rect(self) -> PixelRect:
        return PixelRect(self.x, self.y, self.width, self.height)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "scale_factor": self.scale_factor,
        }


def parse_scale_factor(value, display: str = "?") -> float:
    """Parse a reported scale factor, degrading to 1.0 when unusable."""
    if value is None:
        return DEFAULT_SCALE_FACTOR
    try:
        scale = float(value)
    except (TypeError, ValueError):
        log.warning("Display %s reported unusable scale %r, using %.1f",
                    display, value, DEFAULT_SCALE_FACTOR)
        return DEFAULT_SCALE_FACTOR
    if not scale > 0:
        log.warning("Display %s reported non-positive scale %r, using %.1f",
                    display, value, DEFAULT_SCALE_FACTOR)
        return DEFAULT_SCALE_FACTOR
    return scale


def enumerate_monitors(
    backend: "CaptureBackend",
    names: Optional[Iterable[str]] = None,
) -> list[MonitorInfo]:
    """Return the active displays in backend order.

    Args:
        backend: Capture backend to query
        names: Optional output names to restrict to

    Raises:
        NoDisplaysFound: If no display remains
    """
    monitors = list(backend.list_monitors())

    if names:
        wanted = set(names)
        monitors = [m for m in monitors if m.name in wanted]
        missing = wanted - {m.name for m in monitors}
        if missing:
            log.warning("Requested displays not found: %s", ", ".join(sorted(missing)))

    monitors = [m for m in monitors if m.width > 0 and m.height > 0]
    if not monitors:
        raise NoDisplaysFound()

    log.debug("Enumerated %d display(s): %s", len(monitors),
              ", ".join(m.name for m in monitors))
    return monitors
