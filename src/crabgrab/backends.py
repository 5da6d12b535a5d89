"""Screen capture backends.

Two backends are available:
- wayland-capture: shells out to the wayland-capture binary per output
- mss: uses the mss library (X11, Windows, macOS)

Both hand back RGBA Pillow images in physical pixels.
"""

import json
import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from PIL import Image

from .config import Config, get_config
from .monitors import CaptureFailed, MonitorInfo, parse_scale_factor

log = logging.getLogger(__name__)

BACKENDS = ("wayland-capture", "mss")


class CaptureBackend(Protocol):
    """Source of display descriptors and raw per-display frames."""

    def list_monitors(self) -> list[MonitorInfo]:
        """Return active displays in enumeration order."""

    def grab(self, monitor: MonitorInfo) -> Image.Image:
        """Capture one display as an RGBA image of its physical size."""


class WaylandCaptureBackend:
    """Capture through the wayland-capture binary."""

    def __init__(self, config: Optional[Config] = None):
        self.config = config or get_config()

    def list_monitors(self) -> list[MonitorInfo]:
        """List outputs reported by ``wayland-capture --list --json``.

        Returns an empty list when the binary is unavailable; the caller
        decides whether that is fatal.
        """
        try:
            result = subprocess.run(
                [self.config.wayland_capture, "--list", "--json"],
                capture_output=True,
                text=True,
                timeout=5,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            log.warning("Could not list outputs: %s", e)
            return []

        if result.returncode != 0:
            log.warning("Could not list outputs: %s", result.stderr.strip())
            return []

        try:
            data = json.loads(result.stdout)
        except ValueError as e:
            log.warning("Could not parse output list: %s", e)
            return []

        monitors = []
        for index, output in enumerate(data.get("outputs", [])):
            name = output.get("name") or f"output-{index}"
            try:
                monitors.append(MonitorInfo(
                    name=name,
                    x=int(output.get("x", 0)),
                    y=int(output.get("y", 0)),
                    width=int(output["width"]),
                    height=int(output["height"]),
                    scale_factor=parse_scale_factor(output.get("scale"), name),
                ))
            except (KeyError, TypeError, ValueError) as e:
                log.warning("Skipping output %s with bad geometry: %s", name, e)
        return monitors

    def grab(self, monitor: MonitorInfo) -> Image.Image:
        tmp = tempfile.NamedTemporaryFile(suffix=".png", delete=False)
        temp_path = Path(tmp.name)
        tmp.close()

        try:
            result = subprocess.run(
                [
                    self.config.wayland_capture,
                    "--output", monitor.name,
                    "--output-file", str(temp_path),
                ],
                capture_output=True,
                text=True,
                timeout=10,
            )
            if result.returncode != 0:
                raise CaptureFailed(monitor.name, result.stderr.strip())

            with Image.open(temp_path) as img:
                return img.convert("RGBA")

        except subprocess.TimeoutExpired:
            raise CaptureFailed(monitor.name, "timed out")
        except FileNotFoundError:
            raise CaptureFailed(monitor.name, f"wayland-capture not found: {self.config.wayland_capture}")
        except OSError as e:
            raise CaptureFailed(monitor.name, str(e))
        finally:
            temp_path.unlink(missing_ok=True)


class MSSBackend:
    """Capture through mss.

    mss does not expose per-monitor scale factors, so every display is
    reported at 1.0.
    """

    def list_monitors(self) -> list[MonitorInfo]:
        import mss

        with mss.mss() as session:
            # monitors[0] is the union of all displays
            return [
                MonitorInfo(
                    name=f"monitor-{index}",
                    x=int(m["left"]),
                    y=int(m["top"]),
                    width=int(m["width"]),
                    height=int(m["height"]),
                )
                for index, m in enumerate(session.monitors[1:], start=1)
            ]

    def grab(self, monitor: MonitorInfo) -> Image.Image:
        import mss
        import mss.exception

        region = {
            "left": monitor.x,
            "top": monitor.y,
            "width": monitor.width,
            "height": monitor.height,
        }
        # One session per call, mss handles are not shared across threads
        try:
            with mss.mss() as session:
                shot = session.grab(region)
        except mss.exception.ScreenShotError as e:
            raise CaptureFailed(monitor.name, str(e))
        return Image.frombytes("RGBA", shot.size, shot.bgra, "raw", "BGRA")


def create_backend(config: Optional[Config] = None) -> CaptureBackend:
    """Build the backend named in the configuration."""
    config = config or get_config()
    if config.backend == "mss":
        return MSSBackend()
    if config.backend == "wayland-capture":
        return WaylandCaptureBackend(config)
    raise ValueError(f"Unknown capture backend: {config.backend}")
