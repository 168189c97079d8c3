"""Debounced, optimistic persistence of one image's annotations.

Pending changes are applied to the local list immediately, batched within a
debounce window, and sent as one request when the window closes. Shapes
still waiting to be saved stay on top of whatever the server last returned;
a failed save removes only the shapes of that batch. Whatever happens, the
list is then refetched from the server and invalidation listeners run.
"""

import copy
import logging
import time
from typing import Any, Callable, Dict, Generic, List, Optional, Tuple, TypeVar

from .client import AnnotationClient
from .config import EditorSettings
from .errors import EditorError

logger = logging.getLogger(__name__)

T = TypeVar("T")
Annotation = Dict[str, Any]


class Debouncer(Generic[T]):
    """Collect items and deliver them as one batch once pushes stop.

    Every ``push`` restarts the window. Time only advances through the
    injected clock; ``poll`` delivers the batch once the window has elapsed,
    ``flush`` delivers it right away.
    """

    def __init__(
        self,
        deliver: Callable[[List[T]], None],
        delay_ms: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.deliver = deliver
        self.delay = delay_ms / 1000.0
        self.clock = clock
        self._items: List[T] = []
        self._deadline: Optional[float] = None

    @property
    def pending(self) -> bool:
        return bool(self._items)

    @property
    def items(self) -> List[T]:
        """Items waiting for the next delivery, in push order."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def push(self, item: T) -> None:
        self._items.append(item)
        self._deadline = self.clock() + self.delay

    def poll(self) -> bool:
        """Deliver the batch if its window has elapsed.

        Returns:
            bool: True if a batch was delivered
        """
        if not self._items or self.clock() < self._deadline:
            return False
        self.flush()
        return True

    def flush(self) -> None:
        """Deliver whatever is pending now, in push order."""
        items, self._items = self._items, []
        self._deadline = None
        if items:
            self.deliver(items)

    def cancel(self) -> List[T]:
        """Drop pending items without delivering them."""
        items, self._items = self._items, []
        self._deadline = None
        return items


class AnnotationSync:
    """Local annotation list of one image kept in step with the server.

    New shapes and geometry edits are debounced; deletions and label
    changes are sent immediately. Errors are reported through ``on_error``
    and never raised to the caller.
    """

    def __init__(
        self,
        client: AnnotationClient,
        image_id: str,
        annotations: Optional[List[Annotation]] = None,
        labels: Optional[List[Dict[str, Any]]] = None,
        settings: EditorSettings = None,
        clock: Callable[[], float] = time.monotonic,
        on_error: Optional[Callable[[str, Exception], None]] = None,
    ):
        """Initialize sync.

        Args:
            client: Server client
            image_id: Image whose annotations are edited
            annotations: Initial list, e.g. from ``client.get_image``
            labels: Project labels, used to populate optimistic relabels
            settings: Editor settings (debounce window)
            clock: Monotonic clock in seconds
            on_error: Called with a user-facing message and the cause
        """
        self.client = client
        self.image_id = image_id
        self.annotations: List[Annotation] = list(annotations or [])
        self.labels = {label["id"]: label for label in (labels or [])}
        self.on_error = on_error
        self._listeners: List[Callable[[], None]] = []

        settings = settings or EditorSettings()
        self._saves: Debouncer[Annotation] = Debouncer(self._send_saves, settings.debounce_ms, clock)
        self._updates: Debouncer[Tuple[str, Annotation]] = Debouncer(
            self._send_updates, settings.debounce_ms, clock
        )
        # local copies of shapes not yet accepted by the server, by identity
        self._unsaved: List[Annotation] = []
        self._update_snapshot: Dict[str, Annotation] = {}

    @property
    def pending(self) -> bool:
        return self._saves.pending or self._updates.pending

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Register a callback run after every settled request (e.g. statistics refresh)."""
        self._listeners.append(listener)

    def load(self) -> List[Annotation]:
        """Replace the local list with the server's."""
        self.annotations = self.client.list_annotations(self.image_id)
        return self.annotations

    # Debounced operations

    def queue_save(self, annotation: Annotation) -> None:
        """Show a new annotation now and save it with the current batch."""
        local = copy.deepcopy(annotation)
        self.annotations.append(local)
        self._unsaved.append(local)
        self._saves.push(copy.deepcopy(annotation))

    def queue_update(self, annotation_id: str, data: Annotation) -> None:
        """Apply a geometry change now and send it with the current batch."""
        index = self._index_of(annotation_id)
        if index is None:
            logger.warning(f"Update for unknown annotation {annotation_id} ignored")
            return

        self._update_snapshot.setdefault(annotation_id, copy.deepcopy(self.annotations[index]))
        merged = dict(self.annotations[index])
        merged.update(copy.deepcopy(data))
        self.annotations[index] = merged
        self._updates.push((annotation_id, copy.deepcopy(data)))

    def poll(self) -> None:
        """Send batches whose debounce window has elapsed."""
        self._saves.poll()
        self._updates.poll()

    def flush(self) -> None:
        """Send every pending batch now."""
        self._saves.flush()
        self._updates.flush()

    # Immediate operations

    def delete(self, annotation_id: str) -> bool:
        """Remove an annotation locally and on the server.

        Returns:
            bool: True if the server accepted the deletion
        """
        index = self._index_of(annotation_id)
        removed = self.annotations.pop(index) if index is not None else None
        try:
            self.client.delete_annotation(annotation_id)
            return True
        except EditorError as e:
            if removed is not None:
                self.annotations.insert(min(index, len(self.annotations)), removed)
            self._report("Failed to remove annotation.", e)
            return False
        finally:
            self._settle()

    def relabel(self, annotation_id: str, label_id: Optional[str]) -> bool:
        """Assign a label (or clear it with None) locally and on the server."""
        index = self._index_of(annotation_id)
        if index is None:
            logger.warning(f"Relabel of unknown annotation {annotation_id} ignored")
            return False

        previous = copy.deepcopy(self.annotations[index].get("label"))
        updated = dict(self.annotations[index])
        updated["label"] = self.labels.get(label_id, {"id": label_id}) if label_id else None
        self.annotations[index] = updated
        try:
            self.client.set_annotation_label(annotation_id, label_id)
            return True
        except EditorError as e:
            self._replace_fields(annotation_id, {"label": previous})
            self._report("Failed to update annotation label.", e)
            return False
        finally:
            self._settle()

    # Delivery

    def _send_saves(self, batch: List[Annotation]) -> None:
        sent, self._unsaved = self._unsaved, []
        try:
            self.client.save_annotations(self.image_id, batch)
            logger.info(f"Saved {len(batch)} annotations on image {self.image_id}")
        except EditorError as e:
            self.annotations = [a for a in self.annotations if not any(a is s for s in sent)]
            self._report("Failed to save annotations.", e)
        finally:
            self._settle()

    def _send_updates(self, batch: List[Tuple[str, Annotation]]) -> None:
        # last write per annotation within the window wins
        latest: Dict[str, Annotation] = {}
        for annotation_id, data in batch:
            latest.pop(annotation_id, None)
            latest[annotation_id] = data

        snapshot, self._update_snapshot = self._update_snapshot, {}
        try:
            for annotation_id, data in latest.items():
                try:
                    self.client.update_annotation(annotation_id, data)
                except EditorError as e:
                    if annotation_id in snapshot:
                        # only the geometry is rolled back
                        before = {k: v for k, v in snapshot[annotation_id].items() if k != "label"}
                        self._replace_fields(annotation_id, before)
                    self._report("Failed to update annotation.", e)
        finally:
            self._settle()

    def _settle(self) -> None:
        """Refetch the authoritative list, keep unsent local changes on top, notify listeners."""
        try:
            fetched = self.client.list_annotations(self.image_id)
        except EditorError as e:
            logger.warning(f"Refetch of image {self.image_id} annotations failed: {e}")
        else:
            self.annotations = list(fetched) + self._unsaved
            for annotation_id, data in self._updates.items:
                self._replace_fields(annotation_id, copy.deepcopy(data))

        for listener in self._listeners:
            listener()

    def _replace_fields(self, annotation_id: str, fields: Annotation) -> None:
        index = self._index_of(annotation_id)
        if index is None:
            return
        merged = dict(self.annotations[index])
        merged.update(fields)
        self.annotations[index] = merged

    def _report(self, message: str, error: Exception) -> None:
        logger.error(f"{message} ({error})")
        if self.on_error is not None:
            self.on_error(message, error)

    def _index_of(self, annotation_id: str) -> Optional[int]:
        for index, annotation in enumerate(self.annotations):
            if annotation.get("id") == annotation_id:
                return index
        return None
