"""Annotation editor interaction state for one open image.

Modes::

    idle --d--> drawing-rectangle --pointer up--> idle (+ save)
    idle --f--> drawing-polygon --click near first vertex / Enter--> idle (+ save)

Pressing the key of the active tool again goes back to ``idle`` and drops
the shape in progress. ``s`` toggles selection mode, which also cancels any
drawing. Pointer positions arrive in screen pixels and are converted to
image pixels through the viewport before they are stored.
"""

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from annotation_server.core.errors import ShapeError
from annotation_server.models.shapes import Polygon, Rectangle, Shape, polygon_from_points

from .client import AnnotationClient
from .config import EditorSettings
from .sync import AnnotationSync
from .viewport import Point, Viewport

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    IDLE = "idle"
    DRAWING_RECTANGLE = "drawing-rectangle"
    DRAWING_POLYGON = "drawing-polygon"


TOOL_KEYS = {"d": Mode.DRAWING_RECTANGLE, "f": Mode.DRAWING_POLYGON}


class AnnotationEditor:
    """Drawing state machine, selection, visibility and pan/zoom for one image.

    Only editors (``can_edit``) draw, delete or relabel; everyone may pan,
    zoom, select and hide annotations. Finished shapes become annotation
    payloads labelled with the project's first label and go to ``sync``.
    """

    def __init__(
        self,
        sync: Optional[AnnotationSync] = None,
        can_edit: bool = False,
        labels: Sequence[Dict[str, Any]] = (),
        settings: EditorSettings = None,
        viewport: Optional[Viewport] = None,
        on_warning: Optional[Callable[[str], None]] = None,
    ):
        """Initialize editor.

        Args:
            sync: Persistence for the image's annotations
            can_edit: Whether the user is the project owner or an editor
            labels: Project labels in project order
            settings: Editor settings
            viewport: Pan/zoom transform; a fresh one is created when omitted
            on_warning: Called with user-facing warnings
        """
        self.settings = settings or EditorSettings()
        self.sync = sync
        self.can_edit = can_edit
        self.labels = list(labels)
        self.viewport = viewport or Viewport(self.settings)
        self.on_warning = on_warning

        self.mode = Mode.IDLE
        self.selecting = False
        self.selected_id: Optional[str] = None
        self.hidden: Set[str] = set()

        self._anchor: Optional[Point] = None
        self._corner: Optional[Point] = None
        self._vertices: List[Point] = []
        self._cursor: Optional[Point] = None

    @classmethod
    def open(
        cls,
        client: AnnotationClient,
        image_id: str,
        settings: EditorSettings = None,
        viewport_size: Optional[Sequence[float]] = None,
        clock: Callable[[], float] = time.monotonic,
        on_error: Optional[Callable[[str, Exception], None]] = None,
        on_warning: Optional[Callable[[str], None]] = None,
    ) -> "AnnotationEditor":
        """Load an image and build an editor for the signed-in user.

        The user's role comes from the project's member list; owners and
        editors may draw. When ``viewport_size`` is given the image is fitted
        into it.
        """
        settings = settings or EditorSettings()
        data = client.get_image(image_id)
        image = data["image"]

        email = client.context.email if client.context else None
        role = next((m["role"] for m in data.get("members", []) if m["email"] == email), None)
        labels = client.project_labels(data["projectId"])

        sync = AnnotationSync(
            client,
            image_id,
            annotations=image.get("annotations"),
            labels=labels,
            settings=settings,
            clock=clock,
            on_error=on_error,
        )
        editor = cls(
            sync=sync,
            can_edit=role in ("owner", "editor"),
            labels=labels,
            settings=settings,
            on_warning=on_warning,
        )
        if viewport_size is not None and image.get("width") and image.get("height"):
            editor.viewport.fit((image["width"], image["height"]), viewport_size)
        return editor

    # State queries

    @property
    def in_progress(self) -> bool:
        """Whether a shape is being drawn."""
        return self._anchor is not None or bool(self._vertices)

    @property
    def vertices(self) -> List[Point]:
        return list(self._vertices)

    @property
    def default_label_id(self) -> Optional[str]:
        return self.labels[0]["id"] if self.labels else None

    def preview_rectangle(self) -> Optional[Rectangle]:
        """Rectangle being dragged, normalized, in image pixels."""
        if self._anchor is None or self._corner is None:
            return None
        x, y = self._anchor
        return Rectangle(x, y, self._corner[0] - x, self._corner[1] - y).normalized()

    def preview_ring(self) -> List[float]:
        """Flat vertex list of the polygon in progress, plus the live cursor."""
        points = list(self._vertices)
        if points and self._cursor is not None:
            points.append(self._cursor)
        return [coord for point in points for coord in point]

    # Tools and keys

    def activate(self, mode: Mode) -> Mode:
        """Switch to a drawing tool, or back to idle if it is already active."""
        if not self.can_edit:
            return self.mode

        target = Mode.IDLE if self.mode == mode else mode
        self._reset_drawing()
        self.mode = target
        self.selecting = False
        return self.mode

    def toggle_selection(self) -> bool:
        if not self.can_edit:
            return self.selecting

        self._reset_drawing()
        self.mode = Mode.IDLE
        self.selecting = not self.selecting
        if not self.selecting:
            self.selected_id = None
        return self.selecting

    def key_down(self, key: str) -> None:
        if not self.can_edit:
            return

        if key == "Enter":
            if self.mode == Mode.DRAWING_POLYGON:
                self.finish_polygon()
            return

        key = key.lower()
        if key == "s":
            self.toggle_selection()
        elif key in TOOL_KEYS:
            self.activate(TOOL_KEYS[key])

    # Pointer

    def pointer_down(self, screen_point: Sequence[float]) -> None:
        if not self.can_edit or self.mode == Mode.IDLE:
            return

        point = self.viewport.to_content(screen_point)
        if self.mode == Mode.DRAWING_RECTANGLE:
            self._anchor = point
            self._corner = point
            return

        if len(self._vertices) >= 3 and self._near_first_vertex(point):
            self.finish_polygon()
            return
        self._vertices.append(point)

    def pointer_move(self, screen_point: Sequence[float]) -> None:
        if not self.can_edit:
            return

        point = self.viewport.to_content(screen_point)
        if self.mode == Mode.DRAWING_RECTANGLE and self._anchor is not None:
            self._corner = point
        elif self.mode == Mode.DRAWING_POLYGON:
            self._cursor = point

    def pointer_up(self, screen_point: Optional[Sequence[float]] = None) -> Optional[Dict[str, Any]]:
        """Finish the rectangle being dragged.

        Returns:
            dict: The emitted annotation payload, or None
        """
        if not self.can_edit or self.mode != Mode.DRAWING_RECTANGLE or self._anchor is None:
            return None

        if screen_point is not None:
            self._corner = self.viewport.to_content(screen_point)
        rectangle = self.preview_rectangle()
        self._reset_drawing()
        self.mode = Mode.IDLE

        if rectangle.width == 0 or rectangle.height == 0:
            self._warn("A rectangle needs a non-zero width and height.")
            return None
        return self._emit(rectangle)

    def finish_polygon(self) -> Optional[Dict[str, Any]]:
        """Close the polygon in progress.

        Fewer than three vertices is rejected with a warning and changes
        nothing.

        Returns:
            dict: The emitted annotation payload, or None
        """
        if self.mode != Mode.DRAWING_POLYGON:
            return None
        if len(self._vertices) < 3:
            self._warn("A polygon must have at least 3 points.")
            return None

        try:
            polygon = polygon_from_points(self._vertices + [self._vertices[0]])
        except ShapeError as e:
            self._warn(str(e))
            return None

        self._reset_drawing()
        self.mode = Mode.IDLE
        return self._emit(polygon)

    # Pan / zoom

    def wheel(self, screen_point: Sequence[float], delta_y: float) -> float:
        return self.viewport.zoom_at(screen_point, delta_y)

    @property
    def can_pan(self) -> bool:
        return self.mode == Mode.IDLE and not self.in_progress

    def pan_by(self, dx: float, dy: float) -> bool:
        if not self.can_pan:
            return False
        self.viewport.pan_by(dx, dy)
        return True

    def drag_to(self, x: float, y: float) -> bool:
        if not self.can_pan:
            return False
        self.viewport.drag_to(x, y)
        return True

    # Annotation list actions

    def select(self, annotation_id: Optional[str]) -> None:
        self.selected_id = annotation_id

    def toggle_visibility(self, annotation_id: str) -> bool:
        """Hide or show an annotation. Returns True when it is now visible."""
        if annotation_id in self.hidden:
            self.hidden.discard(annotation_id)
            return True
        self.hidden.add(annotation_id)
        return False

    def is_visible(self, annotation_id: str) -> bool:
        return annotation_id not in self.hidden

    def visible_annotations(self) -> List[Dict[str, Any]]:
        if self.sync is None:
            return []
        return [a for a in self.sync.annotations if a.get("id") not in self.hidden]

    def delete(self, annotation_id: str) -> bool:
        if not self.can_edit or self.sync is None:
            return False
        if self.selected_id == annotation_id:
            self.selected_id = None
        self.hidden.discard(annotation_id)
        return self.sync.delete(annotation_id)

    def relabel(self, annotation_id: str, label_id: Optional[str]) -> bool:
        if not self.can_edit or self.sync is None:
            return False
        return self.sync.relabel(annotation_id, label_id)

    def move(self, annotation_id: str, shape: Shape) -> None:
        """Queue a geometry edit of an existing annotation."""
        if not self.can_edit or self.sync is None:
            return
        self.sync.queue_update(annotation_id, shape_payload(shape))

    # Internals

    def _near_first_vertex(self, point: Point) -> bool:
        first_x, first_y = self._vertices[0]
        distance = ((point[0] - first_x) ** 2 + (point[1] - first_y) ** 2) ** 0.5
        return distance < self.viewport.content_distance(self.settings.close_radius)

    def _emit(self, shape: Shape) -> Dict[str, Any]:
        payload = shape_payload(shape)
        payload["label"] = self.default_label_id
        if self.sync is not None:
            self.sync.queue_save(payload)
        logger.debug(f"Finished {shape.type}: {payload}")
        return payload

    def _reset_drawing(self) -> None:
        self._anchor = None
        self._corner = None
        self._vertices = []
        self._cursor = None

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self.on_warning is not None:
            self.on_warning(message)


def shape_payload(shape: Shape) -> Dict[str, Any]:
    """Request payload for a shape, as the save endpoint accepts it."""
    if isinstance(shape, Rectangle):
        box = shape.normalized()
        return {"type": "rectangle", "x": box.x, "y": box.y, "width": box.width, "height": box.height}
    if isinstance(shape, Polygon):
        return {"type": "polygon", "coordinates": shape.flat()}
    raise TypeError(f"Unsupported shape: {shape!r}")
