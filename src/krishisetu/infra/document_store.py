"""Document store contract, live-query plumbing and the in-memory store.

The marketplace was originally written against a hosted document
database: named collections of JSON-like documents, simple equality and
range filters, an IN operator capped at ten values, and live queries that
re-deliver the whole result set whenever the collection changes. The
DocumentStore base class pins down exactly that contract so the services
can run on the SQL-backed store in production and on MemoryDocumentStore
in tests and demo mode.
"""

import asyncio
import copy
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator, Optional

from krishisetu.services.exceptions import DocumentNotFoundError, QueryError

logger = logging.getLogger(__name__)

# Hosted document databases reject IN filters with more values than this
IN_QUERY_LIMIT = 10

SUPPORTED_OPS = {"==", "in", ">=", "<="}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple, set)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str
    value: Any


@dataclass(frozen=True)
class Query:
    """An immutable query over one collection, built Firestore-style.

    Usage:
        Query("offers").where("listingId", "in", ids).order("createdAt", descending=True)
    """

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        return replace(self, filters=self.filters + (FieldFilter(field_name, op, _plain(value)),))

    def order(self, field_name: str, descending: bool = False) -> "Query":
        return replace(self, order_by=field_name, descending=descending)

    def take(self, limit: int) -> "Query":
        return replace(self, limit=limit)

    def validate(self) -> None:
        """Reject queries the hosted backend would also reject."""
        for f in self.filters:
            if f.op not in SUPPORTED_OPS:
                raise QueryError(f"Unsupported operator {f.op!r} on {f.field}")
            if f.op == "in":
                if not isinstance(f.value, list) or not f.value:
                    raise QueryError(f"'in' filter on {f.field} needs a non-empty list")
                if len(f.value) > IN_QUERY_LIMIT:
                    raise QueryError(
                        f"'in' filter on {f.field} supports at most {IN_QUERY_LIMIT} values "
                        f"(got {len(f.value)})"
                    )
        if self.limit is not None and self.limit <= 0:
            raise QueryError("limit must be positive")


@dataclass(frozen=True)
class Snapshot:
    """A document id together with a copy of its data."""

    id: str
    data: dict = field(default_factory=dict)


def new_document_id() -> str:
    return uuid.uuid4().hex


class ChangeFeed:
    """Per-collection fan-out of "something changed" signals.

    Each subscriber gets a one-slot queue; several writes landing while the
    subscriber is busy collapse into a single re-query, which still yields
    the latest full result set.
    """

    def __init__(self):
        self._subscribers: dict[str, set[asyncio.Queue]] = {}

    def subscribe(self, collection: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._subscribers.setdefault(collection, set()).add(queue)
        return queue

    def unsubscribe(self, collection: str, queue: asyncio.Queue) -> None:
        subscribers = self._subscribers.get(collection)
        if subscribers is not None:
            subscribers.discard(queue)

    def publish(self, collection: str) -> None:
        for queue in list(self._subscribers.get(collection, ())):
            try:
                queue.put_nowait(collection)
            except asyncio.QueueFull:
                pass  # a re-query is already pending

    def subscriber_count(self, collection: str) -> int:
        return len(self._subscribers.get(collection, ()))


class DocumentStore(ABC):
    """Contract shared by every document store implementation."""

    def __init__(self):
        self.changes = ChangeFeed()

    @abstractmethod
    async def add(self, collection: str, data: dict) -> str:
        """Insert a document under a generated id and return the id."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        """Create or overwrite a document; with merge, keep fields not in data."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Patch fields of an existing document. Raises DocumentNotFoundError."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return a copy of the document data, or None."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document. Missing documents are ignored."""

    @abstractmethod
    async def query(self, query: Query) -> list[Snapshot]:
        """Run a one-shot query."""

    async def watch(self, query: Query) -> AsyncIterator[list[Snapshot]]:
        """Live query: yield the current result set, then again after every write.

        Closing the iterator (aclose, or leaving an ``async for``) unsubscribes.
        """
        query.validate()
        queue = self.changes.subscribe(query.collection)
        try:
            yield await self.query(query)
            while True:
                await queue.get()
                yield await self.query(query)
        finally:
            self.changes.unsubscribe(query.collection, queue)

    async def watch_document(self, collection: str, doc_id: str) -> AsyncIterator[Optional[dict]]:
        """Live single-document read: current data (or None), then again after every write."""
        queue = self.changes.subscribe(collection)
        try:
            yield await self.get(collection, doc_id)
            while True:
                await queue.get()
                yield await self.get(collection, doc_id)
        finally:
            self.changes.unsubscribe(collection, queue)


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------


def _sort_key(value: Any) -> tuple:
    """Order mixed stored values: numbers/timestamps before strings."""
    if isinstance(value, datetime):
        return (0, value.timestamp())
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, float(value))
    return (1, str(value))


def _matches(data: dict, f: FieldFilter) -> bool:
    if f.field not in data:
        return False
    actual = _plain(data[f.field])
    if f.op == "==":
        return actual == f.value
    if f.op == "in":
        return actual in f.value
    try:
        if f.op == ">=":
            return actual >= f.value
        if f.op == "<=":
            return actual <= f.value
    except TypeError:
        # Values of a different type never match a range filter
        return False
    return False


class MemoryDocumentStore(DocumentStore):
    """Process-local document store with the same semantics as the SQL store."""

    def __init__(self):
        super().__init__()
        self._collections: dict[str, dict[str, dict]] = {}

    def _collection(self, name: str) -> dict[str, dict]:
        return self._collections.setdefault(name, {})

    async def add(self, collection: str, data: dict) -> str:
        doc_id = new_document_id()
        self._collection(collection)[doc_id] = copy.deepcopy(data)
        self.changes.publish(collection)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        docs = self._collection(collection)
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)
        self.changes.publish(collection)

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        docs = self._collection(collection)
        if doc_id not in docs:
            raise DocumentNotFoundError(collection, doc_id)
        docs[doc_id].update(copy.deepcopy(fields))
        self.changes.publish(collection)

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        data = self._collection(collection).get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    async def delete(self, collection: str, doc_id: str) -> None:
        if self._collection(collection).pop(doc_id, None) is not None:
            self.changes.publish(collection)

    async def query(self, query: Query) -> list[Snapshot]:
        query.validate()
        rows = [
            Snapshot(doc_id, copy.deepcopy(data))
            for doc_id, data in self._collection(query.collection).items()
            if all(_matches(data, f) for f in query.filters)
        ]
        if query.order_by:
            rows = [r for r in rows if query.order_by in r.data]
            rows.sort(key=lambda r: _sort_key(r.data[query.order_by]), reverse=query.descending)
        if query.limit is not None:
            rows = rows[: query.limit]
        return rows
