"""The backend capability handed to every store and service.

There is no global client: the FastAPI app builds one Backend at startup
and routes receive it through ``get_backend``; tests build their own
around the in-memory implementations.
"""

from dataclasses import dataclass

from fastapi.requests import HTTPConnection

from krishisetu.app.config import Settings
from krishisetu.infra.database import async_session
from krishisetu.infra.document_store import DocumentStore, MemoryDocumentStore
from krishisetu.infra.object_storage import LocalObjectStorage, MemoryObjectStorage, ObjectStorage
from krishisetu.infra.sql_document_store import SqlDocumentStore


@dataclass
class Backend:
    documents: DocumentStore
    storage: ObjectStorage


def build_backend(settings: Settings) -> Backend:
    """Assemble the Backend described by settings."""
    if settings.document_backend == "memory":
        return Backend(
            documents=MemoryDocumentStore(),
            storage=MemoryObjectStorage(settings.public_base_url),
        )
    return Backend(
        documents=SqlDocumentStore(async_session),
        storage=LocalObjectStorage(settings.uploads_dir, settings.public_base_url),
    )


def memory_backend() -> Backend:
    return Backend(documents=MemoryDocumentStore(), storage=MemoryObjectStorage())


def get_backend(conn: HTTPConnection) -> Backend:
    """FastAPI dependency: the Backend built during app startup."""
    return conn.app.state.backend
