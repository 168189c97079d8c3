"""Annotation geometry as a tagged union of Rectangle and Polygon.

Stored annotation documents are heterogeneous: rectangles may carry a
``bbox`` list or separate ``x/y/width/height`` fields, polygons a flat or
nested ``coordinates`` list. ``shape_from_document`` is the single place that
reads them; everything downstream branches on the variant type.

All coordinates are image pixel space.
"""

import math
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Sequence, Tuple, Union

import numpy as np

from ..core.errors import ShapeError

Point = Tuple[float, float]


@dataclass(frozen=True)
class Rectangle:
    """Axis-aligned box; ``width``/``height`` may be negative until normalized."""

    x: float
    y: float
    width: float
    height: float

    type: ClassVar[str] = "rectangle"

    def normalized(self) -> "Rectangle":
        """Same box with a top-left origin and non-negative extents."""
        x, width = (self.x + self.width, -self.width) if self.width < 0 else (self.x, self.width)
        y, height = (self.y + self.height, -self.height) if self.height < 0 else (self.y, self.height)
        return Rectangle(x=x, y=y, width=width, height=height)

    @property
    def bbox(self) -> List[float]:
        box = self.normalized()
        return [box.x, box.y, box.width, box.height]

    @property
    def area(self) -> float:
        box = self.normalized()
        return box.width * box.height

    def ring(self) -> List[float]:
        """Four corners clockwise (image y axis points down) from the top-left."""
        box = self.normalized()
        x2 = box.x + box.width
        y2 = box.y + box.height
        return [box.x, box.y, x2, box.y, x2, y2, box.x, y2]

    def to_document(self) -> Dict[str, Any]:
        box = self.normalized()
        return {"type": self.type, "bbox": [box.x, box.y, box.width, box.height]}


@dataclass(frozen=True)
class Polygon:
    """Single-ring polygon; the ring may repeat its first point to close it."""

    points: Tuple[Point, ...]

    type: ClassVar[str] = "polygon"

    def __post_init__(self):
        if len(self.points) < 3:
            raise ShapeError(f"A polygon needs at least 3 points, got {len(self.points)}")

    def flat(self) -> List[float]:
        return [coord for point in self.points for coord in point]

    @property
    def bbox(self) -> List[float]:
        arr = np.asarray(self.points, dtype=float)
        min_x, min_y = arr.min(axis=0)
        max_x, max_y = arr.max(axis=0)
        return [float(min_x), float(min_y), float(max_x - min_x), float(max_y - min_y)]

    @property
    def area(self) -> float:
        """Shoelace area of the ring."""
        arr = np.asarray(self.points, dtype=float)
        x, y = arr[:, 0], arr[:, 1]
        return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))

    @property
    def is_closed(self) -> bool:
        return self.points[0] == self.points[-1]

    def to_document(self) -> Dict[str, Any]:
        return {"type": self.type, "coordinates": self.flat()}


Shape = Union[Rectangle, Polygon]


def shape_from_document(doc: Dict[str, Any]) -> Shape:
    """Read the geometry of an annotation document or request payload.

    Args:
        doc: Annotation dict with a ``type`` discriminator

    Returns:
        Shape: Rectangle or Polygon

    Raises:
        ShapeError: Unknown type, missing fields or non-numeric coordinates
    """
    shape_type = doc.get("type")
    if shape_type == Rectangle.type:
        return _rectangle_from_document(doc)
    if shape_type == Polygon.type:
        return polygon_from_coordinates(doc.get("coordinates"))
    raise ShapeError(f"Unknown annotation type: {shape_type!r}")


def polygon_from_coordinates(coordinates: Any) -> Polygon:
    """Build a Polygon from a flat or nested coordinate list.

    Accepted layouts:
        - flat: ``[x0, y0, x1, y1, ...]``
        - point pairs: ``[[x0, y0], [x1, y1], ...]``
        - rings: ``[[x0, y0, x1, y1, ...], ...]`` (first ring is used)
    """
    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        raise ShapeError("Polygon coordinates are missing")

    if all(isinstance(c, (list, tuple)) for c in coordinates):
        if all(len(c) == 2 for c in coordinates):
            flat = [value for pair in coordinates for value in pair]
        else:
            flat = list(coordinates[0])
    elif any(isinstance(c, (list, tuple)) for c in coordinates):
        raise ShapeError("Polygon coordinates mix numbers and lists")
    else:
        flat = list(coordinates)

    if len(flat) % 2:
        raise ShapeError(f"Polygon ring has an odd number of values ({len(flat)})")

    values = [_number(v, "polygon coordinate") for v in flat]
    points = tuple((values[i], values[i + 1]) for i in range(0, len(values), 2))
    return Polygon(points=points)


def polygon_from_points(points: Sequence[Sequence[float]]) -> Polygon:
    """Build a Polygon from ``[(x, y), ...]``."""
    return Polygon(points=tuple((_number(x, "x"), _number(y, "y")) for x, y in points))


def _rectangle_from_document(doc: Dict[str, Any]) -> Rectangle:
    bbox = doc.get("bbox")
    if isinstance(bbox, (list, tuple)) and len(bbox) == 4 and all(v is not None for v in bbox):
        x, y, width, height = (_number(v, "bbox") for v in bbox)
        return Rectangle(x=x, y=y, width=width, height=height)

    missing = [key for key in ("x", "y", "width", "height") if doc.get(key) is None]
    if missing:
        raise ShapeError(f"Rectangle is missing {', '.join(missing)}")

    return Rectangle(
        x=_number(doc["x"], "x"),
        y=_number(doc["y"], "y"),
        width=_number(doc["width"], "width"),
        height=_number(doc["height"], "height"),
    )


def _number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ShapeError(f"Invalid {name}: {value!r}")
    if not math.isfinite(value):
        raise ShapeError(f"Non-finite {name}: {value!r}")
    return value
