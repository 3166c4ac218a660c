"""
Remote document store abstraction for the users/households collections.

Supports an in-memory implementation for tests/local runs and a
Firestore-backed implementation for production. Paths are slash separated
("users/abc", "households/h1/contacts").
"""

from __future__ import annotations

import copy
import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, TypeVar

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from helpinghand.errors import DocumentNotFound
from helpinghand.live import CallbackRegistry, CallbackSubscription, Subscription

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class DocumentSnapshot:
    """Point-in-time view of one document. `data` is None when it does not exist."""

    path: str
    data: Optional[dict] = None

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, field: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(field, default)

    def to_dict(self) -> Optional[dict]:
        return copy.deepcopy(self.data)


class Transaction(Protocol):
    """Reads and buffered writes inside `DocumentStore.run_transaction`."""

    def get(self, path: str) -> DocumentSnapshot:
        ...

    def set(self, path: str, data: dict) -> None:
        ...

    def update(self, path: str, fields: dict) -> None:
        ...


class DocumentStore(Protocol):
    """Operations the household logic needs from the remote store."""

    def get(self, path: str) -> DocumentSnapshot:
        ...

    def set(self, path: str, data: dict) -> None:
        ...

    def update(self, path: str, fields: dict) -> None:
        ...

    def delete(self, path: str) -> None:
        ...

    def new_id(self, collection: str) -> str:
        ...

    def find(
        self, collection: str, field: str, value: Any, limit: int = 1
    ) -> List[DocumentSnapshot]:
        ...

    def list(self, collection: str) -> List[DocumentSnapshot]:
        ...

    def run_transaction(
        self, fn: Callable[[Transaction], T], *, read_only: bool = False
    ) -> T:
        ...

    def listen(
        self, path: str, callback: Callable[[DocumentSnapshot], None]
    ) -> Subscription:
        ...

    def listen_collection(
        self, collection: str, callback: Callable[[List[DocumentSnapshot]], None]
    ) -> Subscription:
        ...


def document_path(collection: str, doc_id: str) -> str:
    return f"{collection}/{doc_id}"


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0]


class _InMemoryTransaction:
    def __init__(self, store: "InMemoryDocumentStore", read_only: bool):
        self._store = store
        self._read_only = read_only
        self.writes: List[Tuple[str, str, dict]] = []

    def get(self, path: str) -> DocumentSnapshot:
        return self._store._snapshot(path)

    def set(self, path: str, data: dict) -> None:
        self._check_writable()
        self.writes.append(("set", path, copy.deepcopy(data)))

    def update(self, path: str, fields: dict) -> None:
        self._check_writable()
        self.writes.append(("update", path, copy.deepcopy(fields)))

    def _check_writable(self) -> None:
        if self._read_only:
            raise ValueError("Cannot write inside a read-only transaction")


class InMemoryDocumentStore:
    """
    Simple in-memory document store for development and tests.

    Transactions are serialized and their writes are applied atomically on
    commit. Listeners fire once on registration and after every change,
    on the writing thread.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self.docs: Dict[str, dict] = {}
        self._doc_listeners: Dict[str, CallbackRegistry[DocumentSnapshot]] = {}
        self._collection_listeners: Dict[str, CallbackRegistry[List[DocumentSnapshot]]] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            paths = list(self.docs)
            self.docs.clear()
        self._fire(paths)

    def get(self, path: str) -> DocumentSnapshot:
        return self._snapshot(path)

    def set(self, path: str, data: dict) -> None:
        with self._lock:
            self.docs[path] = copy.deepcopy(data)
        self._fire([path])

    def update(self, path: str, fields: dict) -> None:
        with self._lock:
            if path not in self.docs:
                raise DocumentNotFound(path)
            self.docs[path].update(copy.deepcopy(fields))
        self._fire([path])

    def delete(self, path: str) -> None:
        with self._lock:
            existed = self.docs.pop(path, None) is not None
        if existed:
            self._fire([path])

    def new_id(self, collection: str) -> str:
        return uuid.uuid4().hex[:20]

    def find(
        self, collection: str, field: str, value: Any, limit: int = 1
    ) -> List[DocumentSnapshot]:
        matches = [
            snapshot
            for snapshot in self.list(collection)
            if snapshot.get(field) == value
        ]
        return matches[:limit]

    def list(self, collection: str) -> List[DocumentSnapshot]:
        with self._lock:
            return [
                DocumentSnapshot(path, copy.deepcopy(data))
                for path, data in sorted(self.docs.items())
                if _parent(path) == collection
            ]

    def run_transaction(
        self, fn: Callable[[Transaction], T], *, read_only: bool = False
    ) -> T:
        with self._lock:
            transaction = _InMemoryTransaction(self, read_only)
            result = fn(transaction)
            staged = copy.deepcopy(self.docs)
            for op, path, payload in transaction.writes:
                if op == "set":
                    staged[path] = payload
                else:
                    if path not in staged:
                        raise DocumentNotFound(path)
                    staged[path].update(payload)
            self.docs = staged
            changed = [path for _, path, _ in transaction.writes]
        self._fire(changed)
        return result

    def listen(
        self, path: str, callback: Callable[[DocumentSnapshot], None]
    ) -> Subscription:
        with self._lock:
            registry = self._doc_listeners.setdefault(path, CallbackRegistry())
        subscription = registry.add(callback)
        callback(self._snapshot(path))
        return subscription

    def listen_collection(
        self, collection: str, callback: Callable[[List[DocumentSnapshot]], None]
    ) -> Subscription:
        with self._lock:
            registry = self._collection_listeners.setdefault(collection, CallbackRegistry())
        subscription = registry.add(callback)
        callback(self.list(collection))
        return subscription

    def listener_count(self, path: str) -> int:
        """Active listeners on a document or collection path."""
        with self._lock:
            registries = [
                self._doc_listeners.get(path),
                self._collection_listeners.get(path),
            ]
        return sum(len(registry) for registry in registries if registry)

    def _snapshot(self, path: str) -> DocumentSnapshot:
        with self._lock:
            return DocumentSnapshot(path, copy.deepcopy(self.docs.get(path)))

    def _fire(self, paths: List[str]) -> None:
        seen_collections = set()
        for path in dict.fromkeys(paths):
            registry = self._doc_listeners.get(path)
            if registry:
                registry.emit(self._snapshot(path))
            collection = _parent(path)
            if collection in seen_collections:
                continue
            seen_collections.add(collection)
            collection_registry = self._collection_listeners.get(collection)
            if collection_registry:
                collection_registry.emit(self.list(collection))


def _from_firestore(path: str, snapshot: Any) -> DocumentSnapshot:
    if snapshot is None or not snapshot.exists:
        return DocumentSnapshot(path, None)
    return DocumentSnapshot(path, snapshot.to_dict() or {})


class _FirestoreTransaction:
    def __init__(self, client: Any, transaction: Any):
        self._client = client
        self._transaction = transaction

    def get(self, path: str) -> DocumentSnapshot:
        snapshot = self._client.document(path).get(transaction=self._transaction)
        return _from_firestore(path, snapshot)

    def set(self, path: str, data: dict) -> None:
        self._transaction.set(self._client.document(path), data)

    def update(self, path: str, fields: dict) -> None:
        self._transaction.update(self._client.document(path), fields)


class FirestoreDocumentStore:
    """Firestore-backed implementation (google-cloud-firestore client)."""

    def __init__(self, client: Any):
        if client is None:
            raise ValueError("A Firestore client is required for FirestoreDocumentStore")
        self.client = client

    def get(self, path: str) -> DocumentSnapshot:
        return _from_firestore(path, self.client.document(path).get())

    def set(self, path: str, data: dict) -> None:
        self.client.document(path).set(data)

    def update(self, path: str, fields: dict) -> None:
        try:
            self.client.document(path).update(fields)
        except exceptions.NotFound as e:
            raise DocumentNotFound(path) from e

    def delete(self, path: str) -> None:
        self.client.document(path).delete()

    def new_id(self, collection: str) -> str:
        return self.client.collection(collection).document().id

    def find(
        self, collection: str, field: str, value: Any, limit: int = 1
    ) -> List[DocumentSnapshot]:
        query = (
            self.client.collection(collection)
            .where(filter=FieldFilter(field, "==", value))
            .limit(limit)
        )
        return [
            _from_firestore(document_path(collection, doc.id), doc)
            for doc in query.stream()
        ]

    def list(self, collection: str) -> List[DocumentSnapshot]:
        return [
            _from_firestore(document_path(collection, doc.id), doc)
            for doc in self.client.collection(collection).stream()
        ]

    def run_transaction(
        self, fn: Callable[[Transaction], T], *, read_only: bool = False
    ) -> T:
        transaction = self.client.transaction(read_only=read_only)

        @firestore.transactional
        def _run(transaction):
            return fn(_FirestoreTransaction(self.client, transaction))

        try:
            return _run(transaction)
        except exceptions.NotFound as e:
            raise DocumentNotFound(str(e)) from e

    def listen(
        self, path: str, callback: Callable[[DocumentSnapshot], None]
    ) -> Subscription:
        def _on_snapshot(snapshots, changes, read_time):
            snapshot = snapshots[0] if snapshots else None
            callback(_from_firestore(path, snapshot))

        watch = self.client.document(path).on_snapshot(_on_snapshot)
        return CallbackSubscription(watch.unsubscribe)

    def listen_collection(
        self, collection: str, callback: Callable[[List[DocumentSnapshot]], None]
    ) -> Subscription:
        def _on_snapshot(snapshots, changes, read_time):
            callback(
                [
                    _from_firestore(document_path(collection, doc.id), doc)
                    for doc in snapshots
                ]
            )

        watch = self.client.collection(collection).on_snapshot(_on_snapshot)
        return CallbackSubscription(watch.unsubscribe)
