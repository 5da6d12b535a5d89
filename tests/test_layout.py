import pytest

from crabgrab.layout import find_origin_monitor, find_overlaps, physical_bounds, resolve_layout
from crabgrab.monitors import MonitorInfo


def test_mixed_dpi_side_by_side():
    monitors = [
        MonitorInfo("hd", 0, 0, 1920, 1080, 1.0),
        MonitorInfo("uhd", 1920, 0, 3840, 2160, 2.0),
    ]

    layout = resolve_layout(monitors)

    assert layout.physical.x == 0 and layout.physical.y == 0
    assert layout.physical.right == 5760
    assert layout.physical.bottom == 2160
    assert layout.origin_monitor.name == "hd"
    assert layout.origin_scale == 1.0
    assert layout.logical.x == 0.0 and layout.logical.y == 0.0
    assert layout.logical.right >= 3840.0
    assert layout.logical.bottom >= 1080.0


def test_single_monitor_is_identity():
    monitor = MonitorInfo("only", 0, 0, 2880, 1800, 2.0)

    layout = resolve_layout([monitor])

    assert layout.physical.to_dict() == {"x": 0, "y": 0, "width": 2880, "height": 1800}
    assert layout.origin_monitor == monitor
    assert layout.origin_scale == 2.0
    assert layout.offset_of(monitor) == (0, 0)
    assert layout.window_size.width == 1440.0
    assert layout.window_size.height == 900.0


def test_negative_coordinates_are_normalized():
    monitors = [
        MonitorInfo("main", 0, 0, 1920, 1080, 1.0),
        MonitorInfo("left", -1280, 0, 1280, 1024, 1.0),
    ]

    layout = resolve_layout(monitors)

    assert (layout.physical.x, layout.physical.y) == (-1280, 0)
    assert layout.physical.width == 3200
    assert layout.origin_monitor.name == "left"
    assert layout.offset_of(monitors[0]) == (1280, 0)
    assert layout.offset_of(monitors[1]) == (0, 0)
    for m in monitors:
        dx, dy = layout.offset_of(m)
        assert dx >= 0 and dy >= 0


def test_origin_tie_goes_to_first_enumerated():
    monitors = [
        MonitorInfo("first", 0, 0, 100, 100, 1.5),
        MonitorInfo("mirror", 0, 0, 100, 100, 1.0),
    ]
    bounds = physical_bounds(monitors)

    assert find_origin_monitor(monitors, bounds).name == "first"


def test_staggered_layout_falls_back_to_nearest_corner():
    monitors = [
        MonitorInfo("low", 0, 200, 100, 100, 1.0),
        MonitorInfo("high", 100, 0, 100, 100, 1.25),
    ]

    layout = resolve_layout(monitors)

    assert (layout.physical.x, layout.physical.y) == (0, 0)
    assert layout.origin_monitor.name == "high"


def test_logical_extent_uses_each_monitors_own_scale():
    monitors = [
        MonitorInfo("a", 0, 0, 1000, 1000, 1.0),
        MonitorInfo("b", 0, 1000, 1000, 1000, 2.0),
    ]

    layout = resolve_layout(monitors)
    b = layout.logical_rect_of(monitors[1])

    assert b.y == 1000.0
    assert b.height == 500.0
    assert layout.logical.bottom == 1500.0
    assert layout.window_size.height == 2000.0


def test_overlaps_are_reported():
    monitors = [
        MonitorInfo("a", 0, 0, 100, 100),
        MonitorInfo("b", 50, 50, 100, 100),
        MonitorInfo("c", 150, 0, 10, 10),
    ]

    pairs = find_overlaps(monitors)

    assert [(a.name, b.name) for a, b in pairs] == [("a", "b")]


def test_empty_layout_rejected():
    with pytest.raises(ValueError):
        resolve_layout([])
