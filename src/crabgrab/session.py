"""Capture/selection lifecycle.

    IDLE -> CAPTURING -> AWAITING_SELECTION -> CROPPING -> IDLE

A failed capture returns to IDLE (the error propagates to the caller).
Cancelling while awaiting a selection returns to IDLE and drops the
buffers. A degenerate selection is ignored and the session keeps waiting.

The session owns the canvas and tiles. On crop it hands the export sink
its own copy of the canvas, on a background thread, and returns to IDLE
without waiting for the export.
"""

import logging
import signal
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol

from .backends import CaptureBackend, create_backend
from .capture import CaptureError, enumerate_and_capture_all
from .config import Config, get_config
from .emit import emit
from .geometry import LogicalPoint, LogicalRect, LogicalSize, PixelRect, PlacementRect
from .layout import VirtualDesktopLayout, resolve_layout
from .mapping import map_selection_to_crop
from .output import OutputOptions, export_selection
from .stitch import Canvas, stitch
from .tiles import Tile, tile_with_placement

log = logging.getLogger(__name__)

ExportSink = Callable[[PixelRect, Canvas], None]


class SessionState(Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    AWAITING_SELECTION = "awaiting_selection"
    CROPPING = "cropping"


@dataclass
class SelectionState:
    """An in-progress drag in window-logical coordinates."""

    start: LogicalPoint
    current: LogicalPoint

    @property
    def rect(self) -> LogicalRect:
        return LogicalRect.from_points(self.start, self.current)


class TriggerSource(Protocol):
    """Anything that can ask for a capture (hotkey, tray item, signal)."""

    def subscribe(self, callback: Callable[[], None]) -> None:
        """Call ``callback`` each time a capture is requested."""


class SignalTrigger:
    """Trigger captures from a POSIX signal (SIGUSR1 by default)."""

    def __init__(self, signum: int = signal.SIGUSR1):
        self.signum = signum
        self._callbacks: list[Callable[[], None]] = []
        self._previous = None

    def subscribe(self, callback: Callable[[], None]) -> None:
        if not self._callbacks:
            self._previous = signal.signal(self.signum, self._handle)
        self._callbacks.append(callback)

    def _handle(self, signum, frame):
        log.debug("Trigger signal %d received", signum)
        for callback in list(self._callbacks):
            callback()

    def close(self) -> None:
        if self._callbacks:
            signal.signal(self.signum, self._previous or signal.SIG_DFL)
            self._callbacks.clear()


def default_export_sink(config: Config) -> ExportSink:
    """Export sink that saves/copies according to the configuration."""
    options = OutputOptions.from_config(config)

    def _export(rect: PixelRect, canvas: Canvas) -> None:
        export_selection(rect, canvas, options, config)

    return _export


class CaptureSession:
    """State machine around one capture and its selection."""

    def __init__(
        self,
        backend: Optional[CaptureBackend] = None,
        config: Optional[Config] = None,
        export: Optional[ExportSink] = None,
        monitors: Optional[Iterable[str]] = None,
        max_edge: Optional[int] = None,
    ):
        self.config = config or get_config()
        self.backend = backend or create_backend(self.config)
        self.export = export or default_export_sink(self.config)
        self.monitors = list(monitors) if monitors else None
        self.max_edge = max_edge or self.config.max_texture_side

        self._state = SessionState.IDLE
        self._layout: Optional[VirtualDesktopLayout] = None
        self._canvas: Optional[Canvas] = None
        self._placements: list[tuple[PlacementRect, Tile]] = []
        self._selection: Optional[SelectionState] = None
        self._exports: list[threading.Thread] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def layout(self) -> Optional[VirtualDesktopLayout]:
        return self._layout

    @property
    def canvas(self) -> Optional[Canvas]:
        return self._canvas

    @property
    def placements(self) -> list[tuple[PlacementRect, Tile]]:
        """Tiles with their logical placement, for the renderer."""
        return self._placements

    @property
    def selection(self) -> Optional[SelectionState]:
        return self._selection

    def _require(self, *states: SessionState) -> None:
        if self._state not in states:
            expected = ", ".join(s.value for s in states)
            raise RuntimeError(f"Session is {self._state.value}, expected {expected}")

    def _release(self) -> None:
        self._layout = None
        self._canvas = None
        self._placements = []
        self._selection = None

    def begin_capture(self) -> None:
        """Capture, stitch and tile the desktop.

        Raises:
            CaptureError: If enumeration or any grab fails
            ValueError: If the desktop cannot be laid out or tiled

        The session is IDLE again after any failure.
        """
        self._require(SessionState.IDLE)
        self._state = SessionState.CAPTURING

        try:
            capture_set = enumerate_and_capture_all(self.backend, self.config, self.monitors)
            layout = resolve_layout(capture_set)
            canvas = stitch(capture_set, layout)
            placements = tile_with_placement(capture_set, layout, self.max_edge)
        except Exception as e:
            self._release()
            self._state = SessionState.IDLE
            emit("error.handled", {"error_type": type(e).__name__, "message": str(e), "mode": "capture"})
            log.error("Capture failed: %s", e)
            raise

        self._canvas = canvas
        self._placements = placements
        self._layout = layout
        self._state = SessionState.AWAITING_SELECTION

        emit("capture.completed", {
            "monitors": [m.name for m in layout.monitors],
            "canvas": {"width": self._canvas.width, "height": self._canvas.height},
            "tiles": len(self._placements),
            "origin_monitor": layout.origin_monitor.name,
            "origin_scale": layout.origin_scale,
        })

    def pointer_down(self, point: LogicalPoint) -> None:
        self._require(SessionState.AWAITING_SELECTION)
        self._selection = SelectionState(start=point, current=point)

    def pointer_move(self, point: LogicalPoint) -> None:
        self._require(SessionState.AWAITING_SELECTION)
        if self._selection is not None:
            self._selection.current = point

    def pointer_release(self, window_size: LogicalSize) -> Optional[PixelRect]:
        """Finish the drag against the window's current logical size.

        Returns:
            The crop handed to export, or None if the drag was degenerate
        """
        self._require(SessionState.AWAITING_SELECTION)
        selection, self._selection = self._selection, None
        if selection is None:
            return None
        return self._finish(selection.rect, window_size)

    def select_all(self) -> Optional[PixelRect]:
        """Crop the whole desktop, as if the full window had been dragged."""
        self._require(SessionState.AWAITING_SELECTION)
        window = self._layout.window_size
        return self._finish(LogicalRect(0.0, 0.0, window.width, window.height), window)

    def cancel(self) -> None:
        """Abandon the current selection and drop captured buffers."""
        if self._state is SessionState.IDLE:
            return
        self._require(SessionState.AWAITING_SELECTION)
        log.debug("Selection cancelled")
        self._release()
        self._state = SessionState.IDLE

    def _finish(self, selection: LogicalRect, window_size: LogicalSize) -> Optional[PixelRect]:
        crop = map_selection_to_crop(selection, window_size, self._canvas.size)
        if crop is None:
            return None

        self._state = SessionState.CROPPING
        emit("selection.cropped", {
            "selection": selection.to_dict(),
            "window_size": {"width": window_size.width, "height": window_size.height},
            "crop": crop.to_dict(),
        })

        self._dispatch_export(crop, self._canvas.copy())
        self._release()
        self._state = SessionState.IDLE
        return crop

    def _dispatch_export(self, crop: PixelRect, canvas: Canvas) -> None:
        def _run():
            try:
                self.export(crop, canvas)
            except Exception as e:
                emit("error.handled", {"error_type": type(e).__name__, "message": str(e), "mode": "export"})
                log.error("Export failed: %s", e)

        thread = threading.Thread(target=_run, name="crabgrab-export", daemon=True)
        self._exports = [t for t in self._exports if t.is_alive()]
        self._exports.append(thread)
        thread.start()

    def wait_for_exports(self, timeout: Optional[float] = None) -> None:
        """Block until every export started so far has finished.

        Export threads are daemons; one-shot callers wait here before exiting.
        """
        exports, self._exports = self._exports, []
        for thread in exports:
            thread.join(timeout)

    def attach(
        self,
        trigger: TriggerSource,
        on_ready: Optional[Callable[["CaptureSession"], None]] = None,
    ) -> None:
        """Start a capture whenever ``trigger`` fires while idle.

        Args:
            trigger: Trigger source to subscribe to
            on_ready: Called once the session awaits a selection
        """

        def _on_trigger():
            if self._state is not SessionState.IDLE:
                log.debug("Ignoring trigger while %s", self._state.value)
                return
            try:
                self.begin_capture()
            except CaptureError:
                return
            if on_ready is not None:
                on_ready(self)

        trigger.subscribe(_on_trigger)
