"""Geometry value types shared by layout, tiling and mapping.

Two coordinate spaces are kept apart by type:
- Pixel*: device pixels on the captured canvas (integers)
- Logical*: window/UI units, one physical pixel divided by a scale factor
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class PixelSize:
    width: int
    height: int


@dataclass(frozen=True)
class PixelRect:
    """Rectangle in physical pixels."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def size(self) -> PixelSize:
        return PixelSize(self.width, self.height)

    def intersects(self, other: "PixelRect") -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )

    def clamped(self, bounds: PixelSize) -> "PixelRect":
        """Clamp into a (0, 0, width, height) image.

        Negative origins are saturated to zero (shrinking the extent by the
        overshoot), then the extent is cut so that x + width <= bounds.width
        and y + height <= bounds.height. Applying it twice is a no-op.
        """
        x, width = _clamp_span(self.x, self.width, bounds.width)
        y, height = _clamp_span(self.y, self.height, bounds.height)
        return PixelRect(x, y, width, height)

    def as_box(self) -> tuple[int, int, int, int]:
        """Return a (left, upper, right, lower) box as Pillow expects."""
        return (self.x, self.y, self.right, self.bottom)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


def _clamp_span(start: int, length: int, limit: int) -> tuple[int, int]:
    if limit <= 0:
        return 0, 0
    if start < 0:
        length += start
        start = 0
    start = min(start, limit - 1)
    length = max(0, min(length, limit - start))
    return start, length


@dataclass(frozen=True)
class LogicalPoint:
    x: float
    y: float


@dataclass(frozen=True)
class LogicalSize:
    width: float
    height: float


@dataclass(frozen=True)
class LogicalRect:
    """Rectangle in logical (window) units."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_points(cls, a: LogicalPoint, b: LogicalPoint) -> "LogicalRect":
        """Build the rectangle spanned by two drag corners, in any order."""
        x = min(a.x, b.x)
        y = min(a.y, b.y)
        return cls(x, y, abs(b.x - a.x), abs(b.y - a.y))

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def size(self) -> LogicalSize:
        return LogicalSize(self.width, self.height)

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


# Placement of a tile inside the selection window
PlacementRect = LogicalRect
