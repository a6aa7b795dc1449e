"""SQLAlchemy ORM models for the KrishiSetu document store.

Every record lives in one table keyed by (collection, id) with its fields
in a JSON column, so the store behaves like the document database the
mobile client was written against. SQLite-compatible types only.
"""

from sqlalchemy import Column, DateTime, Index, JSON, String
from sqlalchemy.sql import func

from krishisetu.infra.database import Base


class Document(Base):
    """A single document in a named collection."""

    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(64), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    __table_args__ = (Index("ix_documents_collection", "collection"),)
