"""Export of captured regions.

Handles:
- Saving to disk (with format conversion)
- Copying to clipboard
- Desktop notifications
- Sound feedback
- JSON output for scripting

Exports may run on a background thread; the caller never waits on them.
"""

import io
import json
import logging
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image

from .config import Config, get_config
from .emit import emit
from .geometry import PixelRect
from .hooks import notify_save
from .stitch import Canvas

log = logging.getLogger(__name__)

PIL_FORMATS = {"png": "PNG", "jpg": "JPEG", "jpeg": "JPEG", "webp": "WEBP"}


@dataclass
class OutputOptions:
    """Options for output handling."""

    output_path: Optional[Path] = None  # Custom output path
    output_format: str = "png"  # png, jpg, webp
    quality: int = 90  # Quality for lossy formats

    save: bool = True
    clipboard: bool = True
    notification: bool = True
    sound: bool = True

    # Output modes (mutually exclusive)
    stdout: bool = False  # Print path to stdout
    json_output: bool = False  # Output JSON metadata

    # Silent mode - for scripting
    silent: bool = False  # Disables clipboard/notification/sound, uses tmp dir

    def __post_init__(self):
        if self.silent:
            self.save = True
            self.clipboard = False
            self.notification = False
            self.sound = False

    @classmethod
    def from_config(cls, config: Config) -> "OutputOptions":
        return cls(
            output_format=config.default_format,
            quality=config.default_quality,
            save=config.auto_save,
            clipboard=config.enable_clipboard,
            notification=config.enable_notification,
            sound=config.enable_sound,
        )


@dataclass
class OutputResult:
    """Result of exporting an image."""

    path: Optional[Path]
    width: int
    height: int
    timestamp: str
    clipboard: bool = False

    def to_dict(self) -> dict:
        return {
            "path": str(self.path) if self.path else None,
            "width": self.width,
            "height": self.height,
            "timestamp": self.timestamp,
            "clipboard": self.clipboard,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def _png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def _copy_to_clipboard(image: Image.Image) -> bool:
    """Copy image to clipboard using wl-copy."""
    try:
        subprocess.run(
            ["wl-copy", "-t", "image/png"],
            input=_png_bytes(image),
            check=True,
            timeout=5,
        )
        log.debug("Copied to clipboard")
        return True
    except (OSError, subprocess.SubprocessError) as e:
        log.warning("Failed to copy to clipboard: %s", e)
        return False


def _play_sound():
    """Play camera shutter sound."""
    try:
        subprocess.Popen(
            ["canberra-gtk-play", "-i", "screen-capture"],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError as e:
        log.debug("Could not play sound: %s", e)


def _show_notification(path: Optional[Path], width: int, height: int):
    """Show desktop notification."""
    where = f"Saved to {path.name}" if path else "Copied to clipboard"
    try:
        import gi
        gi.require_version("Notify", "0.7")
        from gi.repository import Notify
        Notify.init("crabgrab")
        notification = Notify.Notification.new(
            "Screenshot Captured",
            f"{where}\n{width}x{height} pixels",
            "camera-photo",
        )
        notification.set_urgency(Notify.Urgency.LOW)
        notification.show()
    except Exception as e:
        log.debug("Could not show notification: %s", e)


def resolve_output_path(options: OutputOptions, config: Config) -> Path:
    """Where an export with these options is written."""
    if options.output_path:
        return options.output_path

    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    directory = config.silent_output_dir if options.silent else config.output_dir
    return directory / f"screenshot_{timestamp}.{options.output_format}"


def _write_image(image: Image.Image, path: Path, output_format: str, quality: int) -> Path:
    pil_format = PIL_FORMATS.get(output_format.lower(), "PNG")
    if pil_format == "JPEG":
        image.convert("RGB").save(path, pil_format, quality=quality)
    elif pil_format == "WEBP":
        try:
            image.save(path, pil_format, quality=quality)
        except (OSError, KeyError):
            # Pillow built without WebP
            path = path.with_suffix(".png")
            image.save(path, "PNG")
    else:
        # Default to PNG for unknown formats
        image.save(path, "PNG")
    return path


def save_image(
    image: Image.Image,
    options: Optional[OutputOptions] = None,
    config: Optional[Config] = None,
) -> OutputResult:
    """Export an image with all post-processing.

    Args:
        image: Image to export
        options: Output options
        config: Configuration object

    Returns:
        OutputResult with final path (None when only copied) and metadata
    """
    options = options or OutputOptions()
    config = config or get_config()
    width, height = image.size

    output_path = None
    if options.save:
        output_path = resolve_output_path(options, config)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path = _write_image(image, output_path, options.output_format, options.quality)

    copied = False
    if options.clipboard:
        copied = _copy_to_clipboard(image)

    if options.sound:
        _play_sound()

    if options.notification:
        _show_notification(output_path, width, height)

    result = OutputResult(
        path=output_path,
        width=width,
        height=height,
        timestamp=datetime.now().isoformat(),
        clipboard=copied,
    )

    if output_path:
        emit("artifact.created", {
            "file_path": str(output_path),
            "file_type": "screenshot",
            "metadata": {
                "width": width,
                "height": height,
                "format": options.output_format,
                "timestamp": result.timestamp,
            },
        })
        notify_save(result, config)

    if options.json_output:
        print(result.to_json(), flush=True)
    elif options.stdout and output_path:
        print(str(output_path), flush=True)
    elif output_path:
        log.info("Screenshot saved: %s", output_path)
    else:
        log.info("Screenshot copied to clipboard (%dx%d)", width, height)

    return result


def export_selection(
    rect: PixelRect,
    canvas: Canvas,
    options: Optional[OutputOptions] = None,
    config: Optional[Config] = None,
) -> OutputResult:
    """Crop ``rect`` out of the canvas and export it."""
    return save_image(canvas.crop(rect), options, config)
