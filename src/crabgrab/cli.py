"""Command-line interface for crabgrab.

Entry point flow:
1. Parse arguments (introspection flags short-circuit)
2. Load configuration
3. Route to a mode: list, tiles, region, select, on-signal, or instant
"""

import argparse
import atexit
import json
import logging
import signal
import sys
import time
import uuid
from pathlib import Path
from typing import Optional

from . import __version__
from .capture import CaptureError
from .config import (
    Config,
    config_defaults,
    config_schema,
    config_to_dict,
    load_config,
    validate_config_file,
)
from .emit import EVENT_CATALOG, configure, emit
from .geometry import LogicalPoint, LogicalRect, LogicalSize, PixelRect
from .hooks import HOOK_CONTRACT
from .output import OutputOptions, OutputResult, export_selection
from .session import CaptureSession, SignalTrigger
from .stitch import Canvas
from .tiles import tile_rects

log = logging.getLogger(__name__)

OPERATION_TYPE = "crabgrab.capture"


def _start_operation(mode: str, monitors: Optional[list[str]]) -> str:
    operation_id = str(uuid.uuid4())
    emit("operation.started", {
        "operation_type": OPERATION_TYPE,
        "operation_id": operation_id,
        "mode": mode,
        "monitors": monitors,
    })
    return operation_id


def _complete_operation(
    operation_id: str,
    mode: str,
    result: Optional[OutputResult] = None,
    error_message: Optional[str] = None,
) -> None:
    payload = {
        "operation_type": OPERATION_TYPE,
        "operation_id": operation_id,
        "mode": mode,
        "success": error_message is None,
    }
    if error_message is not None:
        payload["error_message"] = error_message
    elif result is not None:
        payload["outputs"] = [{
            "file_path": str(result.path) if result.path else None,
            "file_type": "screenshot",
        }]
        payload["metadata"] = {
            "width": result.width,
            "height": result.height,
            "timestamp": result.timestamp,
        }

    emit("operation.completed", payload)


def _parse_ints(value: str, count: int) -> tuple[int, ...]:
    parts = value.split(",")
    if len(parts) != count:
        raise argparse.ArgumentTypeError(f"expected {count} comma-separated integers, got {value!r}")
    try:
        return tuple(int(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected integers, got {value!r}")


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {number}")
    return number


def _parse_floats(value: str, count: int) -> tuple[float, ...]:
    parts = value.split(",")
    if len(parts) != count:
        raise argparse.ArgumentTypeError(f"expected {count} comma-separated numbers, got {value!r}")
    try:
        return tuple(float(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected numbers, got {value!r}")


def create_argument_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI usage."""
    parser = argparse.ArgumentParser(
        prog="crabgrab",
        description="Capture the whole multi-monitor desktop and crop from it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Capture the whole desktop (default)
  %(prog)s --list                       # Show displays and resolved layout
  %(prog)s --tiles --max-edge 4096      # Show how the desktop is tiled
  %(prog)s --region 100,100,800,600     # Crop physical pixels from the desktop
  %(prog)s --select 10,10,400,300 --view 1920,1080
                                        # Map a window selection to a crop
  %(prog)s --on-signal                  # Capture on every SIGUSR1
  %(prog)s --silent --json              # Scripted capture, JSON metadata
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"crabgrab {__version__}",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Path to config file (default: platform config dir)",
    )

    # Introspection
    parser.add_argument("--print-defaults", action="store_true",
                        help="Print default configuration as JSON and exit")
    parser.add_argument("--print-config-schema", action="store_true",
                        help="Print configuration schema as JSON and exit")
    parser.add_argument("--validate-config", action="store_true",
                        help="Validate configuration file and exit")
    parser.add_argument("--print-hook-contract", action="store_true",
                        help="Print hook contract as JSON and exit")
    parser.add_argument("--print-resolved", action="store_true",
                        help="Print resolved configuration as JSON and exit")
    parser.add_argument("--print-event-catalog", action="store_true",
                        help="Print event catalog as JSON and exit")

    # Modes (mutually exclusive)
    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument("--instant", action="store_true",
                            help="Export the whole stitched desktop (default)")
    mode_group.add_argument("--list", action="store_true",
                            help="Print displays and layout as JSON")
    mode_group.add_argument("--tiles", action="store_true",
                            help="Print the tile plan for the desktop as JSON")
    mode_group.add_argument("--region", metavar="X,Y,W,H",
                            type=lambda v: _parse_ints(v, 4),
                            help="Export a region in desktop pixels")
    mode_group.add_argument("--select", metavar="X,Y,W,H",
                            type=lambda v: _parse_floats(v, 4),
                            help="Export a selection made in window-logical units")
    mode_group.add_argument("--on-signal", action="store_true",
                            help="Wait for SIGUSR1 and export the desktop on each")

    parser.add_argument("--view", metavar="W,H", type=lambda v: _parse_floats(v, 2),
                        help="Logical window size for --select (default: layout window size)")

    # Capture options
    parser.add_argument("--monitor", metavar="NAME", action="append",
                        help="Only capture this display (repeatable)")
    parser.add_argument("--backend", choices=["wayland-capture", "mss"],
                        help="Capture backend (default from config)")
    parser.add_argument("--max-edge", type=_positive_int, metavar="PX",
                        help="Maximum tile edge (default from config)")

    # Output options
    parser.add_argument("--output", "-o", metavar="PATH",
                        help="Custom output path (default: <output_dir>/screenshot_<timestamp>.<format>)")
    parser.add_argument("--format", "-f", choices=["png", "jpg", "jpeg", "webp"],
                        help="Output format (default from config)")
    parser.add_argument("--quality", "-q", type=int, metavar="1-100",
                        help="Quality for lossy formats (default from config)")
    parser.add_argument("--no-clipboard", action="store_true", help="Do not copy to clipboard")
    parser.add_argument("--no-notification", action="store_true", help="Do not show notification")
    parser.add_argument("--no-sound", action="store_true", help="Do not play shutter sound")
    parser.add_argument("--silent", action="store_true",
                        help="Silent mode: no clipboard, no notification, no sound")
    parser.add_argument("--stdout", action="store_true", help="Print output path to stdout")
    parser.add_argument("--json", action="store_true", help="Output JSON metadata to stdout")

    parser.add_argument("--delay", type=int, metavar="MS", help="Delay before capture in milliseconds")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    return parser


def build_output_options(args: argparse.Namespace, config: Config) -> OutputOptions:
    """Build OutputOptions from config defaults and parsed arguments."""
    defaults = OutputOptions.from_config(config)
    return OutputOptions(
        output_path=Path(args.output).expanduser() if args.output else None,
        output_format=args.format or defaults.output_format,
        quality=args.quality if args.quality is not None else defaults.quality,
        save=defaults.save or bool(args.output) or args.silent,
        clipboard=defaults.clipboard and not (args.no_clipboard or args.silent),
        notification=defaults.notification and not (args.no_notification or args.silent),
        sound=defaults.sound and not (args.no_sound or args.silent),
        stdout=args.stdout,
        json_output=args.json or args.silent,
        silent=args.silent,
    )


def _emit_json(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _handle_introspection(args: argparse.Namespace) -> Optional[int]:
    config_path = Path(args.config).expanduser() if args.config else None

    if args.print_defaults:
        _emit_json(config_defaults())
        return 0

    if args.print_config_schema:
        _emit_json(config_schema())
        return 0

    if args.validate_config:
        try:
            errors = validate_config_file(config_path)
        except ValueError as e:
            errors = [str(e)]
        for error in errors:
            print(error, file=sys.stderr)
        return 1 if errors else 0

    if args.print_hook_contract:
        _emit_json(HOOK_CONTRACT)
        return 0

    if args.print_resolved:
        _emit_json(config_to_dict(load_config(config_path=config_path)))
        return 0

    if args.print_event_catalog:
        _emit_json({
            "catalog": [
                {"event_type": name, "data_fields": fields}
                for name, fields in EVENT_CATALOG.items()
            ]
        })
        return 0

    return None


def _capture(session: CaptureSession) -> bool:
    try:
        session.begin_capture()
        return True
    except CaptureError:
        # Already logged and emitted by the session
        return False


def handle_list(session: CaptureSession) -> int:
    """Print displays and the resolved layout."""
    if not _capture(session):
        return 1
    _emit_json(session.layout.to_dict())
    session.cancel()
    return 0


def handle_tiles(session: CaptureSession) -> int:
    """Print the tile plan: canvas tiles and per-display placements."""
    if not _capture(session):
        return 1
    canvas = session.canvas
    _emit_json({
        "canvas": {"width": canvas.width, "height": canvas.height},
        "max_edge": session.max_edge,
        "tiles": [r.to_dict() for r in tile_rects(canvas.width, canvas.height, session.max_edge)],
        "placements": [
            {"tile": t.to_dict(), "placement": p.to_dict()}
            for p, t in session.placements
        ],
    })
    session.cancel()
    return 0


def _export_sink(options: OutputOptions, config: Config, results: list[OutputResult]):
    """Export sink that keeps each OutputResult for the operation event."""

    def _export(rect: PixelRect, canvas: Canvas) -> None:
        results.append(export_selection(rect, canvas, options, config))

    return _export


def _drag(session: CaptureSession, rect: LogicalRect, window: LogicalSize) -> Optional[PixelRect]:
    """Replay a selection drag over a window of the given logical size."""
    session.pointer_down(LogicalPoint(rect.x, rect.y))
    session.pointer_move(LogicalPoint(rect.right, rect.bottom))
    return session.pointer_release(window)


def _run_export(
    session: CaptureSession,
    mode: str,
    finish,
    results: list[OutputResult],
) -> int:
    """Capture, finish the selection through the session, wait for export."""
    operation_id = _start_operation(mode, session.monitors)
    if not _capture(session):
        _complete_operation(operation_id, mode, error_message="capture failed")
        return 1

    crop = finish(session)
    if crop is None:
        session.cancel()
        log.info("Selection is empty, nothing exported")
        _complete_operation(operation_id, mode, error_message="empty selection")
        return 0

    session.wait_for_exports()
    if not results:
        _complete_operation(operation_id, mode, error_message="export failed")
        return 1

    _complete_operation(operation_id, mode, result=results[-1])
    return 0


def handle_instant(session: CaptureSession, results: list[OutputResult]) -> int:
    """Export the whole desktop."""
    return _run_export(session, "instant", lambda s: s.select_all(), results)


def handle_region(args: argparse.Namespace, session: CaptureSession, results: list[OutputResult]) -> int:
    """Export a region given in desktop pixels."""
    x, y, w, h = args.region

    def _region(s: CaptureSession) -> Optional[PixelRect]:
        rect = PixelRect(x, y, w, h).clamped(s.canvas.size)
        if rect.width <= 0 or rect.height <= 0:
            return None
        # A window the size of the canvas maps logical units 1:1 to pixels
        window = LogicalSize(s.canvas.width, s.canvas.height)
        return _drag(s, LogicalRect(rect.x, rect.y, rect.width, rect.height), window)

    return _run_export(session, "region", _region, results)


def handle_select(args: argparse.Namespace, session: CaptureSession, results: list[OutputResult]) -> int:
    """Export a selection given in window-logical units."""
    x, y, w, h = args.select

    def _select(s: CaptureSession) -> Optional[PixelRect]:
        view = LogicalSize(*args.view) if args.view else s.layout.window_size
        rect = LogicalRect.from_points(LogicalPoint(x, y), LogicalPoint(x + w, y + h))
        return _drag(s, rect, view)

    return _run_export(session, "select", _select, results)


def handle_on_signal(session: CaptureSession) -> int:
    """Export the whole desktop every time SIGUSR1 arrives."""
    trigger = SignalTrigger(signal.SIGUSR1)
    session.attach(trigger, on_ready=lambda s: s.select_all())
    log.info("Waiting for SIGUSR1 (Ctrl+C to stop)")
    try:
        while True:
            signal.pause()
    except KeyboardInterrupt:
        return 0
    finally:
        trigger.close()


def main(args: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_argument_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.view and not parsed_args.select:
        parser.error("--view requires --select")

    result = _handle_introspection(parsed_args)
    if result is not None:
        return result

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.debug else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    # Suppress stderr events in silent mode (scripting captures stderr)
    configure("crabgrab", stderr=not parsed_args.silent)
    atexit.register(lambda: emit("shutdown", {}))

    config_path = Path(parsed_args.config).expanduser() if parsed_args.config else None
    overrides = {
        "backend": parsed_args.backend,
        "max_texture_side": parsed_args.max_edge,
    }
    config = load_config(config_path=config_path, overrides=overrides)
    emit("config.resolved", {
        "config_path": str(config_path or "default"),
        "source": "cli" if config_path else "default",
    })

    options = build_output_options(parsed_args, config)
    results: list[OutputResult] = []
    session = CaptureSession(
        config=config,
        monitors=parsed_args.monitor,
        export=_export_sink(options, config, results),
    )

    if parsed_args.on_signal:
        return handle_on_signal(session)

    if parsed_args.delay:
        time.sleep(parsed_args.delay / 1000.0)

    if parsed_args.list:
        return handle_list(session)
    if parsed_args.tiles:
        return handle_tiles(session)

    if parsed_args.region:
        return handle_region(parsed_args, session, results)
    if parsed_args.select:
        return handle_select(parsed_args, session, results)

    return handle_instant(session, results)


if __name__ == "__main__":
    sys.exit(main())
