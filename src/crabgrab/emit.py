"""
Structured event emitter.

Default: JSON lines to stderr (captured by journald, pipeable).
Extensible: call add_handler() to add custom transports.

Event format:
    {"event_type": "...", "timestamp": "...", "source": {"tool": "..."}, "data": {...}}

Events are always single-line JSON on stderr, distinguishable from log lines.
"""

import json
import sys
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict], None]

# event_type -> data fields, printed by --print-event-catalog
EVENT_CATALOG: Dict[str, List[str]] = {
    "config.resolved": ["config_path", "source"],
    "operation.started": ["operation_type", "operation_id", "mode", "monitors"],
    "operation.completed": ["operation_type", "operation_id", "success", "outputs", "metadata", "mode"],
    "capture.completed": ["monitors", "canvas", "tiles", "origin_monitor", "origin_scale"],
    "layout.malformed": ["displays", "rects"],
    "selection.cropped": ["selection", "window_size", "crop"],
    "artifact.created": ["file_path", "file_type", "metadata"],
    "error.handled": ["error_type", "message", "mode"],
    "shutdown": [],
}

_handlers: List[EventHandler] = []
_source: str = "crabgrab"
_stderr_enabled: bool = True


def configure(source: str, stderr: bool = True) -> None:
    """Set the source name for emitted events. Call once at startup.

    Args:
        source: Source identifier for events
        stderr: Whether to write events to stderr (disable for scripting)
    """
    global _source, _stderr_enabled
    _source = source
    _stderr_enabled = stderr


def add_handler(handler: EventHandler) -> None:
    """Register an additional event handler."""
    _handlers.append(handler)


def remove_handler(handler: EventHandler) -> None:
    """Remove a previously registered handler."""
    if handler in _handlers:
        _handlers.remove(handler)


def emit(
    event_type: str,
    data: Dict[str, Any],
    source: Optional[str] = None,
) -> None:
    """
    Emit a structured event.

    Args:
        event_type: Event type (e.g., "capture.completed")
        data: Event payload
        source: Override source name for this event
    """
    event = {
        "event_type": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": {
            "tool": source or _source,
        },
        "data": data,
    }

    if _stderr_enabled:
        try:
            line = json.dumps(event, default=str)
            print(line, file=sys.stderr, flush=True)
        except (TypeError, ValueError, OSError) as exc:
            logger.debug("Could not write event %s: %s", event_type, exc)

    for handler in list(_handlers):
        try:
            handler(event)
        except Exception as exc:
            logger.debug("Event handler error: %s", exc)
