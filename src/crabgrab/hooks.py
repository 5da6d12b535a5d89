"""Hook scripts run after an export.

Directory structure (hooks_dir resolved by platformdirs):
    <hooks_dir>/
    └── on_save.d/
        ├── 10-upload.sh
        └── 20-backup.sh

Scripts run in sorted order, detached. Each receives: path width height timestamp
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Config
    from .output import OutputResult

log = logging.getLogger(__name__)

HOOK_CONTRACT = {
    "events": [
        {
            "name": "on_save",
            "args": ["output_path", "width", "height", "timestamp"],
            "description": "Called after a capture is written to disk",
        }
    ]
}


def list_hook_scripts(hooks_dir: Optional[Path], event: str) -> list[Path]:
    """Executable scripts registered for an event, in run order."""
    if not hooks_dir:
        return []

    event_dir = hooks_dir / f"{event}.d"
    if not event_dir.is_dir():
        return []

    scripts = []
    for f in sorted(event_dir.iterdir()):
        if not f.is_file() or f.name.startswith("."):
            continue
        if not f.stat().st_mode & 0o111:
            log.debug("Skipping non-executable: %s", f)
            continue
        scripts.append(f)
    return scripts


def run_hooks(hooks_dir: Optional[Path], event: str, *args) -> int:
    """Start every hook script for an event without waiting on it.

    Returns:
        Number of scripts started
    """
    started = 0
    for script in list_hook_scripts(hooks_dir, event):
        try:
            subprocess.Popen(
                [str(script)] + [str(a) for a in args],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            started += 1
            log.debug("Hook executed: %s", script.name)
        except OSError as e:
            log.warning("Hook %s failed: %s", script.name, e)
    return started


def notify_save(result: "OutputResult", config: "Config") -> None:
    """Notify all on_save hooks of a saved capture."""
    if result.path is None:
        return
    run_hooks(
        config.hooks_dir,
        "on_save",
        result.path,
        result.width,
        result.height,
        result.timestamp,
    )
