"""Disk-backed JSON document store."""

import copy
import json
import logging
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

Document = Dict[str, Any]

# (collection, field) pairs that get a secondary index
DEFAULT_INDEXES: Tuple[Tuple[str, str], ...] = (
    ("images", "project_id"),
    ("annotations", "image_id"),
    ("sessions", "token_hash"),
    ("users", "email"),
)


class DocumentStore:
    """Collections of JSON documents kept in memory and mirrored to disk.

    Each document lives in ``<data_dir>/<collection>/<id>.json``. Reads are
    served from memory; every mutation rewrites the affected file. Documents
    handed out are deep copies, so callers never alias stored state.
    """

    def __init__(
        self,
        data_dir: Path,
        persist: bool = True,
        indexes: Iterable[Tuple[str, str]] = DEFAULT_INDEXES,
    ):
        """Initialize store.

        Args:
            data_dir: Directory for collection folders
            persist: Whether documents are written to disk
            indexes: (collection, field) pairs to index for equality lookups
        """
        self.data_dir = Path(data_dir)
        self.persist = persist
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Document]] = defaultdict(dict)
        self._index_fields: Dict[str, List[str]] = defaultdict(list)
        self._indexes: Dict[Tuple[str, str], Dict[Any, List[str]]] = {}

        for collection, field in indexes:
            self._index_fields[collection].append(field)
            self._indexes[(collection, field)] = defaultdict(list)

        if self.persist:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def insert(self, collection: str, document: Document) -> Document:
        """Insert a document, assigning an ``id`` when it has none.

        Args:
            collection: Collection name
            document: Document body

        Returns:
            dict: Copy of the stored document
        """
        with self._lock:
            doc = copy.deepcopy(document)
            doc.setdefault("id", new_id())
            if doc["id"] in self._collections[collection]:
                raise KeyError(f"Duplicate id in {collection}: {doc['id']}")

            self._collections[collection][doc["id"]] = doc
            self._index_add(collection, doc)
            self._write(collection, doc)
            return copy.deepcopy(doc)

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Load a document by id, or None if not found."""
        with self._lock:
            doc = self._collections[collection].get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def get_many(self, collection: str, doc_ids: Iterable[str]) -> List[Document]:
        """Load documents in the order of ``doc_ids``, skipping missing ones."""
        with self._lock:
            found = []
            for doc_id in doc_ids:
                doc = self._collections[collection].get(doc_id)
                if doc is not None:
                    found.append(copy.deepcopy(doc))
            return found

    def find(
        self,
        collection: str,
        predicate: Optional[Callable[[Document], bool]] = None,
        **filters: Any,
    ) -> List[Document]:
        """Find documents matching equality filters and an optional predicate.

        Args:
            collection: Collection name
            predicate: Extra test applied to each candidate
            **filters: field=value equality filters

        Returns:
            list: Matching documents in insertion order
        """
        with self._lock:
            candidates = self._candidates(collection, filters)
            results = []
            for doc in candidates:
                if any(doc.get(k) != v for k, v in filters.items()):
                    continue
                if predicate is not None and not predicate(doc):
                    continue
                results.append(copy.deepcopy(doc))
            return results

    def find_one(self, collection: str, **filters: Any) -> Optional[Document]:
        """First document matching ``filters``, or None."""
        matches = self.find(collection, **filters)
        return matches[0] if matches else None

    def update(self, collection: str, doc_id: str, changes: Document) -> Optional[Document]:
        """Apply field changes to a document.

        Returns:
            dict: Updated document, or None if not found
        """
        with self._lock:
            doc = self._collections[collection].get(doc_id)
            if doc is None:
                return None

            before = {field: doc.get(field) for field in self._index_fields.get(collection, [])}
            for key, value in changes.items():
                if key == "id":
                    continue
                doc[key] = copy.deepcopy(value)

            for field, old_key in before.items():
                new_key = doc.get(field)
                if new_key == old_key:
                    continue
                index = self._indexes[(collection, field)]
                if _hashable(old_key) and doc_id in index.get(old_key, []):
                    index[old_key].remove(doc_id)
                if _hashable(new_key):
                    index[new_key].append(doc_id)

            self._write(collection, doc)
            return copy.deepcopy(doc)

    def add_to_set(self, collection: str, doc_id: str, field: str, value: Any) -> Optional[Document]:
        """Append ``value`` to a list field unless already present."""
        with self._lock:
            doc = self._collections[collection].get(doc_id)
            if doc is None:
                return None
            items = list(doc.get(field) or [])
            if value not in items:
                items.append(value)
            return self.update(collection, doc_id, {field: items})

    def pull(self, collection: str, doc_id: str, field: str, value: Any) -> Optional[Document]:
        """Remove every occurrence of ``value`` from a list field."""
        with self._lock:
            doc = self._collections[collection].get(doc_id)
            if doc is None:
                return None
            items = [item for item in (doc.get(field) or []) if item != value]
            return self.update(collection, doc_id, {field: items})

    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document.

        Returns:
            bool: True if deleted, False if not found
        """
        with self._lock:
            doc = self._collections[collection].pop(doc_id, None)
            if doc is None:
                return False

            self._index_remove(collection, doc)
            if self.persist:
                doc_path = self._get_document_path(collection, doc_id)
                if doc_path.exists():
                    doc_path.unlink()
            return True

    def count(self, collection: str, **filters: Any) -> int:
        """Number of documents matching ``filters``."""
        if not filters:
            with self._lock:
                return len(self._collections[collection])
        return len(self.find(collection, **filters))

    def _candidates(self, collection: str, filters: Dict[str, Any]) -> List[Document]:
        """Narrow a scan with the first indexed filter field, if any."""
        docs = self._collections[collection]
        for field in self._index_fields.get(collection, []):
            if field in filters:
                ids = self._indexes[(collection, field)].get(filters[field], [])
                return [docs[doc_id] for doc_id in ids if doc_id in docs]
        return list(docs.values())

    def _index_add(self, collection: str, doc: Document) -> None:
        for field in self._index_fields.get(collection, []):
            key = doc.get(field)
            if _hashable(key):
                self._indexes[(collection, field)][key].append(doc["id"])

    def _index_remove(self, collection: str, doc: Document) -> None:
        for field in self._index_fields.get(collection, []):
            key = doc.get(field)
            if not _hashable(key):
                continue
            ids = self._indexes[(collection, field)].get(key)
            if ids and doc["id"] in ids:
                ids.remove(doc["id"])

    def _write(self, collection: str, doc: Document) -> None:
        if not self.persist:
            return

        doc_path = self._get_document_path(collection, doc["id"])
        doc_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = doc_path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(doc, f, indent=2)
            tmp_path.replace(doc_path)
        except (IOError, TypeError) as e:
            logger.error(f"Failed to write {collection}/{doc['id']}: {e}")
            raise

    def _load_from_disk(self) -> None:
        """Populate collections from ``<data_dir>/<collection>/*.json``."""
        loaded = 0
        for collection_dir in sorted(p for p in self.data_dir.iterdir() if p.is_dir()):
            docs = []
            for doc_path in collection_dir.glob("*.json"):
                try:
                    with open(doc_path, "r", encoding="utf-8") as f:
                        docs.append(json.load(f))
                except (json.JSONDecodeError, IOError) as e:
                    logger.warning(f"Skipping unreadable document {doc_path}: {e}")

            docs.sort(key=lambda d: (d.get("created_at") or "", d.get("id", "")))
            for doc in docs:
                if "id" not in doc:
                    continue
                self._collections[collection_dir.name][doc["id"]] = doc
                self._index_add(collection_dir.name, doc)
                loaded += 1

        logger.info(f"Loaded {loaded} documents from {self.data_dir}")

    def _get_document_path(self, collection: str, doc_id: str) -> Path:
        """Get full path to a document file."""
        return self.data_dir / collection / f"{doc_id}.json"


def new_id() -> str:
    """Generate a document id."""
    return uuid.uuid4().hex


def _hashable(value: Any) -> bool:
    return value is not None and not isinstance(value, (list, dict))


def now_iso() -> str:
    """Current UTC time as an ISO-8601 string, the format stored in documents."""
    return datetime.now(timezone.utc).isoformat()
