import json
import subprocess
import time
from pathlib import Path

import pytest
from PIL import Image

from conftest import FakeBackend
from crabgrab.backends import MSSBackend, WaylandCaptureBackend, create_backend
from crabgrab.capture import (
    CaptureFailed,
    NoDisplaysFound,
    enumerate_and_capture_all,
    grab_all,
)
from crabgrab.monitors import MonitorInfo, enumerate_monitors, parse_scale_factor


def test_parallel_capture_matches_sequential(quad_monitors):
    parallel_backend = FakeBackend(quad_monitors, delay=0.01)
    sequential_backend = FakeBackend(quad_monitors)

    parallel = grab_all(parallel_backend, quad_monitors, max_workers=4)
    sequential = grab_all(sequential_backend, quad_monitors, max_workers=1)

    assert [c.monitor for c in parallel] == quad_monitors
    assert [c.monitor for c in parallel] == [c.monitor for c in sequential]
    assert [c.pixels for c in parallel] == [c.pixels for c in sequential]
    assert len(parallel_backend.threads) > 1


def test_buffers_are_rgba_row_major(dual_monitors):
    capture_set = grab_all(FakeBackend(dual_monitors), dual_monitors)

    for capture in capture_set:
        assert capture.image.mode == "RGBA"
        assert len(capture.pixels) == capture.monitor.width * capture.monitor.height * 4


def test_one_failing_display_fails_the_whole_capture(quad_monitors):
    backend = FakeBackend(quad_monitors, fail={"c"})

    with pytest.raises(CaptureFailed) as excinfo:
        grab_all(backend, quad_monitors)

    assert excinfo.value.display == "c"


def test_unexpected_backend_error_is_wrapped(dual_monitors):
    class Broken(FakeBackend):
        def grab(self, monitor):
            if monitor.name == "left":
                raise RuntimeError("driver went away")
            return super().grab(monitor)

    with pytest.raises(CaptureFailed) as excinfo:
        grab_all(Broken(dual_monitors), dual_monitors)

    assert excinfo.value.display == "left"
    assert "driver went away" in str(excinfo.value)


def test_earliest_failing_display_is_reported(quad_monitors):
    class SlowFirstFailure(FakeBackend):
        def grab(self, monitor):
            if monitor.name == "a":
                time.sleep(0.2)
            return super().grab(monitor)

    backend = SlowFirstFailure(quad_monitors, fail={"a", "d"})

    with pytest.raises(CaptureFailed) as excinfo:
        grab_all(backend, quad_monitors)

    assert excinfo.value.display == "a"


def test_no_displays(config):
    with pytest.raises(NoDisplaysFound):
        enumerate_and_capture_all(FakeBackend([]), config)


def test_monitor_filter(config, dual_monitors):
    capture_set = enumerate_and_capture_all(FakeBackend(dual_monitors), config, monitors=["right"])

    assert [m.name for m in capture_set.monitors] == ["right"]


def test_monitor_filter_with_no_match(dual_monitors):
    with pytest.raises(NoDisplaysFound):
        enumerate_monitors(FakeBackend(dual_monitors), names=["HDMI-A-9"])


def test_frame_size_mismatch_adjusts_descriptor():
    monitor = MonitorInfo("odd", 10, 20, 100, 50, 1.5)

    class Shrunk(FakeBackend):
        def grab(self, monitor):
            return Image.new("RGB", (90, 40))

    capture_set = grab_all(Shrunk([monitor]), [monitor])
    captured = capture_set.captures[0]

    assert captured.image.mode == "RGBA"
    assert (captured.monitor.width, captured.monitor.height) == (90, 40)
    assert (captured.monitor.x, captured.monitor.scale_factor) == (10, 1.5)


@pytest.mark.parametrize("value,expected", [
    (None, 1.0),
    ("1.5", 1.5),
    (2, 2.0),
    ("abc", 1.0),
    (0, 1.0),
    (-2.0, 1.0),
])
def test_scale_factor_degrades_to_default(value, expected):
    assert parse_scale_factor(value, "test") == expected


class _Completed:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


def test_wayland_backend_lists_outputs(monkeypatch, config):
    listing = {
        "outputs": [
            {"name": "eDP-1", "x": 0, "y": 0, "width": 2880, "height": 1800, "scale": 2},
            {"name": "HDMI-A-1", "x": 2880, "y": 0, "width": 1920, "height": 1080},
            {"name": "broken", "x": 0},
        ]
    }

    def fake_run(cmd, **kwargs):
        assert cmd == [config.wayland_capture, "--list", "--json"]
        return _Completed(stdout=json.dumps(listing))

    monkeypatch.setattr(subprocess, "run", fake_run)

    monitors = WaylandCaptureBackend(config).list_monitors()

    assert [m.name for m in monitors] == ["eDP-1", "HDMI-A-1"]
    assert monitors[0].scale_factor == 2.0
    assert monitors[1].scale_factor == 1.0


def test_wayland_backend_without_binary_lists_nothing(monkeypatch, config):
    def fake_run(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    monkeypatch.setattr(subprocess, "run", fake_run)

    assert WaylandCaptureBackend(config).list_monitors() == []
    with pytest.raises(NoDisplaysFound):
        enumerate_and_capture_all(WaylandCaptureBackend(config), config)


def test_wayland_backend_grab_reads_png(monkeypatch, config):
    monitor = MonitorInfo("eDP-1", 0, 0, 8, 4)

    def fake_run(cmd, **kwargs):
        path = Path(cmd[cmd.index("--output-file") + 1])
        Image.new("RGB", (8, 4), (10, 20, 30)).save(path, "PNG")
        return _Completed()

    monkeypatch.setattr(subprocess, "run", fake_run)

    image = WaylandCaptureBackend(config).grab(monitor)

    assert image.mode == "RGBA"
    assert image.size == (8, 4)
    assert image.getpixel((0, 0)) == (10, 20, 30, 255)


def test_wayland_backend_grab_failure(monkeypatch, config):
    monitor = MonitorInfo("eDP-1", 0, 0, 8, 4)
    monkeypatch.setattr(subprocess, "run", lambda cmd, **kw: _Completed(returncode=1, stderr="no such output"))

    with pytest.raises(CaptureFailed) as excinfo:
        WaylandCaptureBackend(config).grab(monitor)

    assert excinfo.value.display == "eDP-1"
    assert "no such output" in str(excinfo.value)


def test_wayland_backend_grab_timeout(monkeypatch, config):
    def fake_run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, 10)

    monkeypatch.setattr(subprocess, "run", fake_run)

    with pytest.raises(CaptureFailed, match="timed out"):
        WaylandCaptureBackend(config).grab(MonitorInfo("eDP-1", 0, 0, 8, 4))


def test_create_backend(config):
    assert isinstance(create_backend(config), WaylandCaptureBackend)
    config.backend = "mss"
    assert isinstance(create_backend(config), MSSBackend)
    config.backend = "nope"
    with pytest.raises(ValueError):
        create_backend(config)
