import random
import threading
import time
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from crabgrab.config import Config, set_config
from crabgrab.emit import configure
from crabgrab.monitors import CaptureFailed, MonitorInfo


def seeded_image(monitor: MonitorInfo, seed: int = 1234) -> Image.Image:
    """Deterministic RGBA noise for a monitor."""
    rng = random.Random(f"{seed}:{monitor.name}")
    data = bytes(rng.getrandbits(8) for _ in range(monitor.width * monitor.height * 4))
    return Image.frombytes("RGBA", (monitor.width, monitor.height), data)


def solid_image(monitor: MonitorInfo, color) -> Image.Image:
    return Image.new("RGBA", (monitor.width, monitor.height), color)


class FakeBackend:
    """In-memory capture backend.

    Frames are seeded noise unless ``colors`` maps a monitor name to a fill.
    """

    def __init__(
        self,
        monitors: list[MonitorInfo],
        colors: Optional[dict] = None,
        fail: Optional[set] = None,
        delay: float = 0.0,
        seed: int = 1234,
    ):
        self.monitors = monitors
        self.colors = colors or {}
        self.fail = fail or set()
        self.delay = delay
        self.seed = seed
        self.grabbed: list[str] = []
        self.threads: set[str] = set()
        self._lock = threading.Lock()

    def list_monitors(self) -> list[MonitorInfo]:
        return list(self.monitors)

    def grab(self, monitor: MonitorInfo) -> Image.Image:
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            self.grabbed.append(monitor.name)
            self.threads.add(threading.current_thread().name)
        if monitor.name in self.fail:
            raise CaptureFailed(monitor.name, "synthetic failure")
        if monitor.name in self.colors:
            return solid_image(monitor, self.colors[monitor.name])
        return seeded_image(monitor, self.seed)


@pytest.fixture(autouse=True)
def quiet_events():
    configure("crabgrab-tests", stderr=False)
    yield
    configure("crabgrab", stderr=True)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    cfg = Config(
        backend="wayland-capture",
        wayland_capture="wayland-capture-test",
        capture_workers=4,
        max_texture_side=64,
        output_dir=tmp_path / "shots",
        silent_output_dir=tmp_path / "silent",
        hooks_dir=tmp_path / "hooks",
        enable_sound=False,
        enable_notification=False,
        enable_clipboard=False,
    )
    set_config(cfg)
    yield cfg
    set_config(None)


@pytest.fixture
def dual_monitors() -> list[MonitorInfo]:
    return [
        MonitorInfo("left", 0, 0, 40, 30, 1.0),
        MonitorInfo("right", 40, 0, 80, 60, 2.0),
    ]


@pytest.fixture
def quad_monitors() -> list[MonitorInfo]:
    return [
        MonitorInfo("a", 0, 0, 32, 24, 1.0),
        MonitorInfo("b", 32, 0, 32, 24, 1.25),
        MonitorInfo("c", 0, 24, 32, 24, 1.5),
        MonitorInfo("d", 32, 24, 32, 24, 2.0),
    ]
