"""Tests for debounced, optimistic annotation persistence."""

import pytest

from annotation_editor.config import EditorSettings
from annotation_editor.sync import AnnotationSync, Debouncer
from conftest import FakeClient, FakeClock

BOX = {"type": "rectangle", "x": 1, "y": 2, "width": 3, "height": 4, "label": None}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    return FakeClient([{"id": "a0", "type": "rectangle", "x": 0, "y": 0, "width": 5, "height": 5, "label": None}])


@pytest.fixture
def errors():
    return []


@pytest.fixture
def sync(client, clock, errors):
    return AnnotationSync(
        client,
        "img-1",
        annotations=client.list_annotations("img-1"),
        labels=[{"id": "car", "name": "car", "color": "#f00"}],
        settings=EditorSettings(debounce_ms=500),
        clock=clock,
        on_error=lambda message, error: errors.append(message),
    )


class TestDebouncer:
    """Tests for the batching window"""

    def test_delivers_after_quiet_window(self, clock):
        delivered = []
        debouncer = Debouncer(delivered.append, delay_ms=500, clock=clock)

        debouncer.push(1)
        clock.advance(0.3)
        debouncer.push(2)
        clock.advance(0.3)

        assert debouncer.poll() is False
        clock.advance(0.2)
        assert debouncer.poll() is True
        assert delivered == [[1, 2]]
        assert not debouncer.pending

    def test_flush_and_cancel(self, clock):
        delivered = []
        debouncer = Debouncer(delivered.append, clock=clock)

        debouncer.push("a")
        debouncer.flush()
        debouncer.push("b")

        assert debouncer.cancel() == ["b"]
        assert delivered == [["a"]]
        debouncer.flush()
        assert delivered == [["a"]]

    def test_poll_with_nothing_pending(self, clock):
        debouncer = Debouncer(lambda items: None, clock=clock)

        assert debouncer.poll() is False


class TestQueuedSaves:
    """Tests for new annotations"""

    def test_rapid_saves_become_one_request(self, sync, client, clock):
        client.calls.clear()

        for x in range(3):
            sync.queue_save(dict(BOX, x=x))
            clock.advance(0.1)

        assert len(sync.annotations) == 4
        assert client.calls == []

        clock.advance(0.5)
        sync.poll()

        saves = [call for call in client.calls if call[0] == "save_annotations"]
        assert len(saves) == 1
        assert [a["x"] for a in saves[0][2]] == [0, 1, 2]
        assert client.names() == ["save_annotations", "list_annotations"]

    def test_local_list_replaced_by_server_list(self, sync, clock):
        sync.queue_save(dict(BOX))
        clock.advance(1)
        sync.poll()

        assert [a["id"] for a in sync.annotations] == ["a0", "a1"]

    def test_failed_save_drops_its_batch(self, sync, client, clock, errors):
        before = [dict(a) for a in sync.annotations]
        client.fail = {"save_annotations", "list_annotations"}

        sync.queue_save(dict(BOX))
        sync.queue_save(dict(BOX, x=9))
        clock.advance(1)
        sync.poll()

        assert sync.annotations == before
        assert errors == ["Failed to save annotations."]

    def test_failed_save_still_refetches(self, sync, client, clock):
        client.fail = {"save_annotations"}
        client.server.append({"id": "a9", "type": "polygon", "coordinates": [0, 0, 1, 0, 1, 1], "label": None})

        sync.queue_save(dict(BOX))
        sync.flush()

        assert [a["id"] for a in sync.annotations] == ["a0", "a9"]

    def test_listeners_run_after_settle(self, sync):
        seen = []
        sync.add_listener(lambda: seen.append(len(sync.annotations)))

        sync.queue_save(dict(BOX))
        sync.flush()

        assert seen == [2]
        assert not sync.pending


class TestQueuedUpdates:
    """Tests for geometry edits"""

    def test_applied_locally_at_once(self, sync, client):
        sync.queue_update("a0", {"type": "rectangle", "x": 7, "y": 7, "width": 5, "height": 5})

        assert sync.annotations[0]["x"] == 7
        assert "update_annotation" not in client.names()

    def test_last_write_wins(self, sync, client, clock):
        sync.queue_update("a0", {"type": "rectangle", "x": 1, "y": 1, "width": 5, "height": 5})
        sync.queue_update("a0", {"type": "rectangle", "x": 2, "y": 2, "width": 5, "height": 5})
        clock.advance(1)
        sync.poll()

        updates = [call for call in client.calls if call[0] == "update_annotation"]
        assert len(updates) == 1
        assert updates[0][2]["x"] == 2
        assert client.server[0]["x"] == 2

    def test_failed_update_restores_annotation(self, sync, client, errors):
        client.fail = {"update_annotation", "list_annotations"}

        sync.queue_update("a0", {"type": "rectangle", "x": 50, "y": 50, "width": 5, "height": 5})
        sync.flush()

        assert sync.annotations[0]["x"] == 0
        assert errors == ["Failed to update annotation."]

    def test_unknown_annotation_ignored(self, sync):
        sync.queue_update("missing", {"x": 1})

        assert not sync.pending


class TestImmediateOperations:
    """Tests for delete and relabel"""

    def test_delete(self, sync, client):
        assert sync.delete("a0") is True
        assert sync.annotations == []
        assert client.names()[-2:] == ["delete_annotation", "list_annotations"]

    def test_failed_delete_rolls_back(self, sync, client, errors):
        client.fail = {"delete_annotation", "list_annotations"}

        assert sync.delete("a0") is False
        assert [a["id"] for a in sync.annotations] == ["a0"]
        assert errors == ["Failed to remove annotation."]

    def test_relabel_populates_label(self, sync, client):
        client.fail = {"list_annotations"}

        assert sync.relabel("a0", "car") is True
        assert sync.annotations[0]["label"]["name"] == "car"

    def test_failed_relabel_rolls_back(self, sync, client, errors):
        client.fail = {"set_annotation_label", "list_annotations"}

        assert sync.relabel("a0", "car") is False
        assert sync.annotations[0]["label"] is None
        assert errors == ["Failed to update annotation label."]

    def test_load(self, sync, client):
        client.server.append({"id": "a5", "type": "rectangle", "x": 0, "y": 0, "width": 1, "height": 1})

        assert [a["id"] for a in sync.load()] == ["a0", "a5"]


class TestInterleavedOperations:
    """Tests for immediate operations landing while a batch is pending"""

    def test_pending_save_survives_delete(self, sync, client):
        sync.queue_save(dict(BOX, x=77))

        assert sync.delete("a0") is True
        assert [a.get("x") for a in sync.annotations] == [77]
        assert sync.pending

        sync.flush()

        assert [a["id"] for a in sync.annotations] == ["a1"]
        assert client.server[0]["x"] == 77

    def test_failed_save_keeps_delete_made_meanwhile(self, sync, client, clock, errors):
        client.server.append({"id": "b0", "type": "rectangle", "x": 9, "y": 9, "width": 1, "height": 1, "label": None})
        sync.load()

        sync.queue_save(dict(BOX))
        assert sync.delete("b0") is True
        client.fail = {"save_annotations", "list_annotations"}
        clock.advance(1)
        sync.poll()

        assert [a["id"] for a in sync.annotations] == ["a0"]
        assert [a["id"] for a in client.server] == ["a0"]
        assert errors == ["Failed to save annotations."]

    def test_pending_update_survives_relabel(self, sync, client):
        sync.queue_update("a0", {"type": "rectangle", "x": 7, "y": 7, "width": 5, "height": 5})

        assert sync.relabel("a0", "car") is True
        assert sync.annotations[0]["x"] == 7
        assert sync.annotations[0]["label"] == {"id": "car"}

    def test_failed_update_keeps_newer_label(self, sync, client, errors):
        client.fail = {"update_annotation", "list_annotations"}

        sync.queue_update("a0", {"type": "rectangle", "x": 50, "y": 50, "width": 5, "height": 5})
        assert sync.relabel("a0", "car") is True
        sync.flush()

        assert sync.annotations[0]["x"] == 0
        assert sync.annotations[0]["label"]["name"] == "car"
        assert errors == ["Failed to update annotation."]

    def test_failed_relabel_keeps_other_changes(self, sync, client, errors):
        sync.queue_save(dict(BOX))
        client.fail = {"set_annotation_label", "list_annotations"}

        assert sync.relabel("a0", "car") is False
        assert sync.annotations[0]["label"] is None
        assert len(sync.annotations) == 2
