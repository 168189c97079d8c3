"""Tests for the annotation editor state machine."""

import pytest

from annotation_editor.config import EditorSettings
from annotation_editor.session import SessionContext
from annotation_editor.state import AnnotationEditor, Mode, shape_payload
from annotation_editor.sync import AnnotationSync
from annotation_editor.viewport import Viewport
from annotation_server.models.shapes import Rectangle, polygon_from_coordinates
from conftest import FakeClient, FakeClock

LABELS = [{"id": "car", "name": "car", "color": "#f00"}, {"id": "tree", "name": "tree", "color": "#0f0"}]


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def warnings():
    return []


@pytest.fixture
def editor(client, warnings):
    sync = AnnotationSync(client, "img-1", clock=FakeClock())
    return AnnotationEditor(sync=sync, can_edit=True, labels=LABELS, on_warning=warnings.append)


def draw_polygon(editor, points):
    editor.key_down("f")
    for point in points:
        editor.pointer_down(point)


class TestTools:
    """Tests for tool keys and modes"""

    def test_keys_switch_tools(self, editor):
        editor.key_down("d")
        assert editor.mode == Mode.DRAWING_RECTANGLE

        editor.key_down("F")
        assert editor.mode == Mode.DRAWING_POLYGON

    def test_same_key_returns_to_idle(self, editor):
        draw_polygon(editor, [(0, 0), (10, 0)])

        editor.key_down("f")

        assert editor.mode == Mode.IDLE
        assert not editor.in_progress

    def test_selection_cancels_drawing(self, editor):
        draw_polygon(editor, [(0, 0)])

        editor.key_down("s")

        assert editor.selecting
        assert editor.mode == Mode.IDLE
        assert editor.vertices == []

    def test_visitor_cannot_draw(self, client):
        editor = AnnotationEditor(sync=AnnotationSync(client, "img-1"), can_edit=False)

        editor.key_down("d")
        editor.pointer_down((0, 0))

        assert editor.mode == Mode.IDLE
        assert editor.delete("a1") is False
        assert client.calls == []


class TestRectangle:
    """Tests for rectangle drawing"""

    def test_drag_emits_normalized_rectangle(self, editor):
        editor.key_down("d")
        editor.pointer_down((40, 60))
        editor.pointer_move((20, 30))
        payload = editor.pointer_up((10, 20))

        assert payload == {"type": "rectangle", "x": 10, "y": 20, "width": 30, "height": 40, "label": "car"}
        assert editor.mode == Mode.IDLE
        assert editor.sync.annotations == [payload]

    def test_preview_while_dragging(self, editor):
        editor.key_down("d")
        editor.pointer_down((5, 5))
        editor.pointer_move((15, 25))

        assert editor.preview_rectangle() == Rectangle(5, 5, 10, 20)

    def test_zero_area_warns(self, editor, warnings):
        editor.key_down("d")
        editor.pointer_down((5, 5))

        assert editor.pointer_up((5, 30)) is None
        assert warnings == ["A rectangle needs a non-zero width and height."]
        assert editor.sync.annotations == []

    def test_coordinates_are_image_pixels(self, client):
        viewport = Viewport(scale=2.0, position=(100, 100))
        editor = AnnotationEditor(sync=AnnotationSync(client, "img-1"), can_edit=True, viewport=viewport)

        editor.key_down("d")
        editor.pointer_down((100, 100))
        payload = editor.pointer_up((140, 120))

        assert (payload["x"], payload["y"], payload["width"], payload["height"]) == (0, 0, 20, 10)
        assert payload["label"] is None


class TestPolygon:
    """Tests for polygon drawing and closing"""

    def test_click_near_first_vertex_closes(self, editor):
        draw_polygon(editor, [(10, 10), (100, 10), (100, 100), (14, 13)])

        assert editor.mode == Mode.IDLE
        saved = editor.sync.annotations[0]
        assert saved["type"] == "polygon"
        assert saved["coordinates"] == [10, 10, 100, 10, 100, 100, 10, 10]
        assert saved["label"] == "car"

    def test_closed_ring_starts_and_ends_at_first_vertex(self, editor):
        draw_polygon(editor, [(5, 5), (50, 5), (50, 50), (7, 6)])

        coordinates = editor.sync.annotations[0]["coordinates"]
        assert coordinates[:2] == [5, 5]
        assert coordinates[-2:] == [5, 5]
        assert len(coordinates) == 8

    def test_click_outside_radius_adds_vertex(self, editor):
        draw_polygon(editor, [(10, 10), (100, 10), (100, 100), (25, 10)])

        assert editor.mode == Mode.DRAWING_POLYGON
        assert len(editor.vertices) == 4

    def test_close_radius_is_screen_pixels(self, client):
        editor = AnnotationEditor(
            sync=AnnotationSync(client, "img-1"), can_edit=True, viewport=Viewport(scale=4.0)
        )

        # 10 screen px is 2.5 image px at 4x zoom
        draw_polygon(editor, [(0, 0), (400, 0), (400, 400), (12, 0)])
        assert editor.mode == Mode.DRAWING_POLYGON

        editor.pointer_down((8, 0))
        assert editor.mode == Mode.IDLE

    def test_near_first_vertex_needs_three_points(self, editor):
        draw_polygon(editor, [(10, 10), (100, 10), (11, 11)])

        assert editor.mode == Mode.DRAWING_POLYGON
        assert len(editor.vertices) == 3

    def test_enter_finishes(self, editor):
        draw_polygon(editor, [(0, 0), (10, 0), (10, 10)])

        editor.key_down("Enter")

        assert editor.mode == Mode.IDLE
        assert editor.sync.annotations[0]["coordinates"] == [0, 0, 10, 0, 10, 10, 0, 0]

    def test_enter_with_two_points_warns(self, editor, warnings):
        draw_polygon(editor, [(0, 0), (10, 0)])

        editor.key_down("Enter")

        assert warnings == ["A polygon must have at least 3 points."]
        assert editor.mode == Mode.DRAWING_POLYGON
        assert editor.vertices == [(0, 0), (10, 0)]

    def test_preview_ring_follows_cursor(self, editor):
        draw_polygon(editor, [(0, 0), (10, 0)])
        editor.pointer_move((5, 5))

        assert editor.preview_ring() == [0, 0, 10, 0, 5, 5]


class TestPanAndAnnotations:
    """Tests for panning, visibility and list actions"""

    def test_pan_only_when_idle(self, editor):
        editor.key_down("d")
        assert editor.pan_by(10, 10) is False

        editor.key_down("d")
        assert editor.pan_by(10, 10) is True
        assert editor.viewport.position == (10, 10)

    def test_wheel_zooms(self, editor):
        assert editor.wheel((0, 0), -1) == pytest.approx(1.1)

    def test_visibility(self, editor):
        editor.sync.annotations = [{"id": "a1"}, {"id": "a2"}]

        assert editor.toggle_visibility("a1") is False
        assert [a["id"] for a in editor.visible_annotations()] == ["a2"]
        assert editor.toggle_visibility("a1") is True
        assert editor.is_visible("a1")

    def test_delete_clears_selection(self, editor, client):
        client.server = [{"id": "a1", "type": "rectangle", "x": 0, "y": 0, "width": 1, "height": 1}]
        editor.sync.load()
        editor.select("a1")

        assert editor.delete("a1") is True
        assert editor.selected_id is None
        assert editor.sync.annotations == []

    def test_move_queues_update(self, editor, client):
        client.server = [{"id": "a1", "type": "rectangle", "x": 0, "y": 0, "width": 1, "height": 1}]
        editor.sync.load()

        editor.move("a1", Rectangle(5, 5, 2, 2))
        editor.sync.flush()

        assert ("update_annotation", "a1", shape_payload(Rectangle(5, 5, 2, 2))) in client.calls

    def test_shape_payload_for_polygon(self):
        polygon = polygon_from_coordinates([0, 0, 4, 0, 4, 4])

        assert shape_payload(polygon) == {"type": "polygon", "coordinates": [0, 0, 4, 0, 4, 4]}


class TestOpen:
    """Tests for building an editor from the server"""

    def test_role_and_fit(self):
        client = FakeClient()
        client.context = SessionContext(token="t", email="editor@example.com", expires_at=None)
        client.get_image = lambda image_id: {
            "image": {"id": image_id, "width": 1000, "height": 500, "annotations": [{"id": "a1"}]},
            "projectId": "p1",
            "members": [{"email": "owner@example.com", "role": "owner"}, {"email": "editor@example.com", "role": "editor"}],
        }
        client.project_labels = lambda project_id: LABELS

        editor = AnnotationEditor.open(client, "img-1", EditorSettings(), viewport_size=(1300, 800))

        assert editor.can_edit
        assert editor.default_label_id == "car"
        assert editor.sync.annotations == [{"id": "a1"}]
        assert editor.viewport.scale == pytest.approx(0.8)

    def test_visitor_opens_read_only(self):
        client = FakeClient()
        client.context = SessionContext(token="t", email="visitor@example.com", expires_at=None)
        client.get_image = lambda image_id: {
            "image": {"id": image_id, "annotations": []},
            "projectId": "p1",
            "members": [{"email": "visitor@example.com", "role": "visitor"}],
        }
        client.project_labels = lambda project_id: []

        editor = AnnotationEditor.open(client, "img-1")

        assert not editor.can_edit
        assert editor.viewport.scale == 1.0
