"""Parallel capture of every active display.

Each display is grabbed on its own worker; the caller blocks until all
grabs finish or a failure is found. Results are inspected in enumeration
order, so the failure reported is the earliest failing display. A partial
desktop is never returned.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterable, Optional

from PIL import Image

from .backends import CaptureBackend, create_backend
from .config import Config, get_config
from .geometry import PixelSize
from .monitors import (
    CaptureError,
    CaptureFailed,
    MonitorInfo,
    NoDisplaysFound,
    enumerate_monitors,
)

__all__ = [
    "CaptureError",
    "CaptureFailed",
    "CaptureSet",
    "MonitorCapture",
    "NoDisplaysFound",
    "enumerate_and_capture_all",
    "enumerate_monitors",
    "grab_all",
]

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonitorCapture:
    """A display descriptor together with its captured RGBA frame."""

    monitor: MonitorInfo
    image: Image.Image

    @property
    def size(self) -> PixelSize:
        return PixelSize(*self.image.size)

    @property
    def pixels(self) -> bytes:
        """Row-major RGBA bytes, width * height * 4 long."""
        return self.image.tobytes()


@dataclass(frozen=True)
class CaptureSet:
    """All displays captured in one attempt, in enumeration order."""

    captures: tuple[MonitorCapture, ...]

    def __iter__(self):
        return iter(self.captures)

    def __len__(self) -> int:
        return len(self.captures)

    @property
    def monitors(self) -> list[MonitorInfo]:
        return [c.monitor for c in self.captures]


def _grab_one(backend: CaptureBackend, monitor: MonitorInfo) -> MonitorCapture:
    try:
        image = backend.grab(monitor)
    except CaptureFailed:
        raise
    except Exception as e:
        raise CaptureFailed(monitor.name, str(e)) from e

    if image.mode != "RGBA":
        image = image.convert("RGBA")
    if image.size != (monitor.width, monitor.height):
        # Backend frame wins; the descriptor is adjusted to the real buffer
        log.warning(
            "Display %s reported %dx%d but captured %dx%d",
            monitor.name, monitor.width, monitor.height, *image.size,
        )
        monitor = MonitorInfo(
            name=monitor.name,
            x=monitor.x,
            y=monitor.y,
            width=image.width,
            height=image.height,
            scale_factor=monitor.scale_factor,
        )
    return MonitorCapture(monitor=monitor, image=image)


def grab_all(
    backend: CaptureBackend,
    monitors: list[MonitorInfo],
    max_workers: int = 4,
) -> CaptureSet:
    """Grab every display concurrently.

    Args:
        backend: Capture backend
        monitors: Displays to grab
        max_workers: Upper bound on concurrent grabs

    Returns:
        CaptureSet in the same order as ``monitors``

    Raises:
        CaptureFailed: For the first failing display in enumeration order
    """
    if not monitors:
        raise NoDisplaysFound()

    workers = max(1, min(max_workers, len(monitors)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="crabgrab-grab") as pool:
        futures = [pool.submit(_grab_one, backend, m) for m in monitors]
        for future in futures:
            error = future.exception()
            if error is not None:
                for other in futures:
                    other.cancel()
                raise error

    captures = tuple(f.result() for f in futures)
    log.debug("Captured %d display(s)", len(captures))
    return CaptureSet(captures)


def enumerate_and_capture_all(
    backend: Optional[CaptureBackend] = None,
    config: Optional[Config] = None,
    monitors: Optional[Iterable[str]] = None,
) -> CaptureSet:
    """Enumerate active displays and capture all of them.

    Args:
        backend: Capture backend. If None, built from config.
        config: Configuration object. If None, uses global config.
        monitors: Optional output names to restrict capture to

    Raises:
        NoDisplaysFound: If no display is active
        CaptureFailed: If any display fails to capture
    """
    config = config or get_config()
    backend = backend or create_backend(config)

    found = enumerate_monitors(backend, names=monitors)
    return grab_all(backend, found, max_workers=config.capture_workers)
