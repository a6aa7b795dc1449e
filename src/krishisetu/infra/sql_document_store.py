"""SQLAlchemy-backed document store.

Documents are rows of the ``documents`` table with their fields in a JSON
column; filters and ordering are JSON path expressions, which SQLite and
PostgreSQL both index and compare natively. Timestamps inside documents
are written as fixed-width ISO-8601 UTC strings so that text ordering is
chronological ordering.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from krishisetu.domain.models import Document
from krishisetu.infra.document_store import DocumentStore, FieldFilter, Query, Snapshot, new_document_id
from krishisetu.services.exceptions import BackendError, DocumentNotFoundError

logger = logging.getLogger(__name__)


def encode_value(value: Any) -> Any:
    """Convert a document value into something the JSON column can hold."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def _typed(column, sample: Any):
    if isinstance(sample, bool):
        return column.as_boolean()
    if isinstance(sample, (int, float)):
        return column.as_float()
    return column.as_string()


def _clause(f: FieldFilter):
    column = Document.data[f.field]
    if f.op == "in":
        values = [encode_value(v) for v in f.value]
        return _typed(column, values[0]).in_(values)
    value = encode_value(f.value)
    typed = _typed(column, value)
    if f.op == "==":
        return typed == value
    if f.op == ">=":
        return typed >= value
    return typed <= value


class SqlDocumentStore(DocumentStore):
    """Document store persisted through an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        super().__init__()
        self.session_factory = session_factory

    async def add(self, collection: str, data: dict) -> str:
        doc_id = new_document_id()
        try:
            async with self.session_factory() as session:
                session.add(Document(collection=collection, id=doc_id, data=encode_value(data)))
                await session.commit()
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to add document to {collection}: {e}") from e
        self.changes.publish(collection)
        return doc_id

    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> None:
        encoded = encode_value(data)
        try:
            async with self.session_factory() as session:
                row = await session.get(Document, (collection, doc_id))
                if row is None:
                    session.add(Document(collection=collection, id=doc_id, data=encoded))
                elif merge:
                    row.data = {**(row.data or {}), **encoded}
                else:
                    row.data = encoded
                await session.commit()
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to write {collection}/{doc_id}: {e}") from e
        self.changes.publish(collection)

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        try:
            async with self.session_factory() as session:
                row = await session.get(Document, (collection, doc_id))
                if row is None:
                    raise DocumentNotFoundError(collection, doc_id)
                # Assign a new dict so the JSON column is flagged dirty
                row.data = {**(row.data or {}), **encode_value(fields)}
                await session.commit()
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to update {collection}/{doc_id}: {e}") from e
        self.changes.publish(collection)

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        try:
            async with self.session_factory() as session:
                row = await session.get(Document, (collection, doc_id))
                return dict(row.data or {}) if row is not None else None
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to read {collection}/{doc_id}: {e}") from e

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    delete(Document).where(
                        Document.collection == collection,
                        Document.id == doc_id,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise BackendError(f"Failed to delete {collection}/{doc_id}: {e}") from e
        if result.rowcount:
            self.changes.publish(collection)

    async def query(self, query: Query) -> list[Snapshot]:
        query.validate()
        stmt = select(Document).where(Document.collection == query.collection)
        for f in query.filters:
            stmt = stmt.where(_clause(f))
        if query.order_by:
            order_col = Document.data[query.order_by].as_string()
            stmt = stmt.where(order_col.is_not(None))
            stmt = stmt.order_by(order_col.desc() if query.descending else order_col.asc())
        if query.limit is not None:
            stmt = stmt.limit(query.limit)
        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return [Snapshot(row.id, dict(row.data or {})) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise BackendError(f"Query on {query.collection} failed: {e}") from e
