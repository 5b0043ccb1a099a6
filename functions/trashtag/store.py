"""
Document store abstraction for Firestore, SQL and an in-memory test implementation.

Every backend exposes the same generic operations (get / set / update / add /
query / subscribe). Backends without native change feeds (in-memory, SQL)
notify subscribers from the writing process only.
"""

from __future__ import annotations

import copy
import json
import logging
import operator
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Protocol

from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1 import Query as FirestoreQuery
from google.cloud.firestore_v1.base_query import FieldFilter
from sqlalchemy import JSON, Column, Float, String, create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

logger = logging.getLogger(__name__)

__all__ = [
    "SERVER_TIMESTAMP",
    "Document",
    "DocumentNotFoundError",
    "DocumentStore",
    "FirestoreDocumentStore",
    "InMemoryDocumentStore",
    "Query",
    "SqlDocumentStore",
    "StoreError",
]


class StoreError(Exception):
    """Raised when the document store fails or rejects an operation."""


class DocumentNotFoundError(StoreError):
    """Raised by update() when the target document does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"No document to update: {collection}/{doc_id}")
        self.collection = collection
        self.doc_id = doc_id


@dataclass(frozen=True)
class Document:
    id: str
    data: dict

    def as_dict(self) -> dict:
        return {"id": self.id, **self.data}


@dataclass(frozen=True)
class Query:
    collection: str
    filters: tuple = ()
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None


QueryCallback = Callable[[list[Document]], None]
DocumentCallback = Callable[[Optional[dict]], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """Defines the operations the service needs from the document store."""

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def set(self, collection: str, doc_id: str, fields: dict) -> None:
        ...

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        ...

    def add(self, collection: str, fields: dict) -> str:
        ...

    def query(self, query: Query) -> list[Document]:
        ...

    def subscribe(self, query: Query, callback: QueryCallback) -> Unsubscribe:
        ...

    def subscribe_document(
        self, collection: str, doc_id: str, callback: DocumentCallback
    ) -> Unsubscribe:
        ...


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "in": lambda field_value, options: field_value in options,
    "array-contains": lambda field_value, item: (
        isinstance(field_value, list) and item in field_value
    ),
}


def _matches(data: dict, filters: Iterable[tuple]) -> bool:
    for field_path, op, value in filters:
        if field_path not in data:
            return False
        try:
            if not _OPERATORS[op](data[field_path], value):
                return False
        except TypeError:
            return False
    return True


def _order_key(value: Any) -> tuple:
    """
    Sort key following Firestore's cross-type value order: null, booleans,
    numbers, timestamps, strings, bytes, arrays, maps.
    """
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value.timestamp())
    if isinstance(value, str):
        return (4, value)
    if isinstance(value, bytes):
        return (5, value)
    if isinstance(value, (list, tuple)):
        return (8, tuple(_order_key(item) for item in value))
    if isinstance(value, dict):
        return (9, tuple((key, _order_key(value[key])) for key in sorted(value)))
    return (10, str(value))


def apply_query(documents: Iterable[Document], query: Query) -> list[Document]:
    """
    Filter, order and truncate documents the way Firestore does: documents
    missing the order_by field are left out, values of different types sort
    by type, ties fall back to the document id.
    """
    for _, op, _ in query.filters:
        if op not in _OPERATORS:
            raise StoreError(f"Unsupported filter operator: {op}")

    results = [doc for doc in documents if _matches(doc.data, query.filters)]
    if query.order_by:
        field_path = query.order_by
        results = [doc for doc in results if field_path in doc.data]
        results.sort(
            key=lambda doc: (_order_key(doc.data[field_path]), doc.id),
            reverse=query.descending,
        )
    if query.limit is not None:
        results = results[: query.limit]
    return results


def _resolve_sentinels(fields: dict) -> dict:
    now = datetime.now(timezone.utc)

    def resolve(value):
        if value is SERVER_TIMESTAMP:
            return now
        if isinstance(value, dict):
            return {k: resolve(v) for k, v in value.items()}
        if isinstance(value, list):
            return [resolve(v) for v in value]
        return value

    return resolve(fields)


def _new_document_id() -> str:
    # Firestore auto ids are 20 characters.
    return uuid.uuid4().hex[:20]


class _LocalListeners:
    """Fans out change notifications for backends without a native watch API."""

    def __init__(self):
        self._lock = threading.Lock()
        self._next_key = 0
        self._queries: Dict[int, tuple[Query, QueryCallback]] = {}
        self._documents: Dict[int, tuple[str, str, DocumentCallback]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._queries) + len(self._documents)

    def _register(self, registry: dict, entry: tuple) -> Unsubscribe:
        with self._lock:
            key = self._next_key
            self._next_key += 1
            registry[key] = entry

        def unsubscribe() -> None:
            with self._lock:
                registry.pop(key, None)

        return unsubscribe

    def add_query(self, query: Query, callback: QueryCallback) -> Unsubscribe:
        return self._register(self._queries, (query, callback))

    def add_document(
        self, collection: str, doc_id: str, callback: DocumentCallback
    ) -> Unsubscribe:
        return self._register(self._documents, (collection, doc_id, callback))

    def notify(self, store: "DocumentStore", collection: str, doc_id: str) -> None:
        with self._lock:
            queries = [
                entry for entry in self._queries.values() if entry[0].collection == collection
            ]
            documents = [
                entry
                for entry in self._documents.values()
                if entry[0] == collection and entry[1] == doc_id
            ]
        for query, callback in queries:
            try:
                callback(store.query(query))
            except Exception:
                logger.exception("Query listener on %s failed", collection)
        for _, _, callback in documents:
            try:
                callback(store.get(collection, doc_id))
            except Exception:
                logger.exception("Document listener on %s/%s failed", collection, doc_id)


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.RLock()
        self._listeners = _LocalListeners()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def reset(self) -> None:
        """Clear all stored documents (useful in tests)."""
        with self._lock:
            self.collections.clear()

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            data = self.collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def set(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._lock:
            self.collections.setdefault(collection, {})[doc_id] = _resolve_sentinels(fields)
        self._listeners.notify(self, collection, doc_id)

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._lock:
            existing = self.collections.get(collection, {}).get(doc_id)
            if existing is None:
                raise DocumentNotFoundError(collection, doc_id)
            merged = dict(existing)
            merged.update(_resolve_sentinels(fields))
            self.collections[collection][doc_id] = merged
        self._listeners.notify(self, collection, doc_id)

    def add(self, collection: str, fields: dict) -> str:
        doc_id = _new_document_id()
        self.set(collection, doc_id, fields)
        return doc_id

    def query(self, query: Query) -> list[Document]:
        with self._lock:
            documents = [
                Document(id=doc_id, data=copy.deepcopy(data))
                for doc_id, data in self.collections.get(query.collection, {}).items()
            ]
        return apply_query(documents, query)

    def subscribe(self, query: Query, callback: QueryCallback) -> Unsubscribe:
        unsubscribe = self._listeners.add_query(query, callback)
        callback(self.query(query))
        return unsubscribe

    def subscribe_document(
        self, collection: str, doc_id: str, callback: DocumentCallback
    ) -> Unsubscribe:
        unsubscribe = self._listeners.add_document(collection, doc_id, callback)
        callback(self.get(collection, doc_id))
        return unsubscribe


_DATETIME_KEY = "$datetime"


def _json_default(value):
    if isinstance(value, datetime):
        return {_DATETIME_KEY: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_object_hook(obj: dict):
    if len(obj) == 1 and _DATETIME_KEY in obj:
        return datetime.fromisoformat(obj[_DATETIME_KEY])
    return obj


def _json_dumps(value) -> str:
    return json.dumps(value, default=_json_default)


def _json_loads(raw: str):
    return json.loads(raw, object_hook=_json_object_hook)


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation storing one JSON row per document.
    Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
            json_serializer=_json_dumps,
            json_deserializer=_json_loads,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)
        self._listeners = _LocalListeners()

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    @contextmanager
    def _session(self):
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.warning("SQL document store error: %s", exc)
            raise StoreError(str(exc)) from exc

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            return copy.deepcopy(row.data) if row else None

    def set(self, collection: str, doc_id: str, fields: dict) -> None:
        data = _resolve_sentinels(fields)
        with self._session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if row:
                row.data = data
                row.updated_at = time.time()
            else:
                session.add(
                    DocumentRow(
                        collection=collection,
                        doc_id=doc_id,
                        data=data,
                        updated_at=time.time(),
                    )
                )
            session.commit()
        self._listeners.notify(self, collection, doc_id)

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._session() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            if not row:
                raise DocumentNotFoundError(collection, doc_id)
            merged = dict(row.data)
            merged.update(_resolve_sentinels(fields))
            row.data = merged
            row.updated_at = time.time()
            session.commit()
        self._listeners.notify(self, collection, doc_id)

    def add(self, collection: str, fields: dict) -> str:
        doc_id = _new_document_id()
        self.set(collection, doc_id, fields)
        return doc_id

    def query(self, query: Query) -> list[Document]:
        with self._session() as session:
            rows = session.execute(
                select(DocumentRow).where(DocumentRow.collection == query.collection)
            ).scalars()
            documents = [Document(id=row.doc_id, data=copy.deepcopy(row.data)) for row in rows]
        return apply_query(documents, query)

    def subscribe(self, query: Query, callback: QueryCallback) -> Unsubscribe:
        unsubscribe = self._listeners.add_query(query, callback)
        callback(self.query(query))
        return unsubscribe

    def subscribe_document(
        self, collection: str, doc_id: str, callback: DocumentCallback
    ) -> Unsubscribe:
        unsubscribe = self._listeners.add_document(collection, doc_id, callback)
        callback(self.get(collection, doc_id))
        return unsubscribe


Base = declarative_base()


class DocumentRow(Base):
    __tablename__ = "documents"

    collection = Column(String, primary_key=True)
    doc_id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False)
    updated_at = Column(Float, nullable=False)


class FirestoreDocumentStore:
    """
    Firestore-backed implementation. Takes an initialised client, e.g.
    firebase_admin.firestore.client(app).
    """

    def __init__(self, client):
        self.client = client

    @contextmanager
    def _translate_errors(self, collection: str, doc_id: str | None = None):
        try:
            yield
        except google_exceptions.NotFound as exc:
            if doc_id is None:
                raise StoreError(str(exc)) from exc
            raise DocumentNotFoundError(collection, doc_id) from exc
        except google_exceptions.GoogleAPICallError as exc:
            logger.warning("Firestore error on %s: %s", collection, exc)
            raise StoreError(str(exc)) from exc

    def _build_query(self, query: Query):
        ref = self.client.collection(query.collection)
        for field_path, op, value in query.filters:
            ref = ref.where(filter=FieldFilter(field_path, op, value))
        if query.order_by:
            direction = (
                FirestoreQuery.DESCENDING if query.descending else FirestoreQuery.ASCENDING
            )
            ref = ref.order_by(query.order_by, direction=direction)
        if query.limit is not None:
            ref = ref.limit(query.limit)
        return ref

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._translate_errors(collection):
            snapshot = self.client.collection(collection).document(doc_id).get()
        return snapshot.to_dict() if snapshot.exists else None

    def set(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._translate_errors(collection):
            self.client.collection(collection).document(doc_id).set(fields)

    def update(self, collection: str, doc_id: str, fields: dict) -> None:
        with self._translate_errors(collection, doc_id):
            self.client.collection(collection).document(doc_id).update(fields)

    def add(self, collection: str, fields: dict) -> str:
        with self._translate_errors(collection):
            _, doc_ref = self.client.collection(collection).add(fields)
        return doc_ref.id

    def query(self, query: Query) -> list[Document]:
        with self._translate_errors(query.collection):
            snapshots = list(self._build_query(query).stream())
        return [Document(id=snap.id, data=snap.to_dict() or {}) for snap in snapshots]

    def subscribe(self, query: Query, callback: QueryCallback) -> Unsubscribe:
        def on_snapshot(snapshots, changes, read_time):
            callback([Document(id=snap.id, data=snap.to_dict() or {}) for snap in snapshots])

        watch = self._build_query(query).on_snapshot(on_snapshot)
        return watch.unsubscribe

    def subscribe_document(
        self, collection: str, doc_id: str, callback: DocumentCallback
    ) -> Unsubscribe:
        def on_snapshot(snapshots, changes, read_time):
            snapshot = snapshots[0] if snapshots else None
            callback(snapshot.to_dict() if snapshot is not None and snapshot.exists else None)

        watch = self.client.collection(collection).document(doc_id).on_snapshot(on_snapshot)
        return watch.unsubscribe
