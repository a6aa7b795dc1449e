"""Shared test infrastructure for the KrishiSetu test suite.

Provides:
- backend: in-memory Backend (document store + object storage)
- sql_backend: Backend over a SQLite in-memory SqlDocumentStore
- any_backend: parametrized over both of the above
- client: httpx AsyncClient bound to the FastAPI app over the memory backend
- auth_headers: factory for Bearer headers for a given uid
- make_listing / make_offer: factories for seeded documents
"""

from contextlib import asynccontextmanager

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from krishisetu.infra.backend import Backend, memory_backend
from krishisetu.infra.database import init_db
from krishisetu.infra.object_storage import MemoryObjectStorage
from krishisetu.infra.sql_document_store import SqlDocumentStore
from krishisetu.services.auth_service import create_access_token
from krishisetu.services.listing_store import ListingStore
from krishisetu.services.offer_store import OfferStore


# ---------------------------------------------------------------------------
# Backend fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def backend() -> Backend:
    return memory_backend()


@asynccontextmanager
async def _sqlite_backend():
    """Backend over a fresh SQLite in-memory database.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        yield Backend(documents=SqlDocumentStore(session_factory), storage=MemoryObjectStorage())
    finally:
        await engine.dispose()


@pytest.fixture
async def sql_backend():
    async with _sqlite_backend() as b:
        yield b


@pytest.fixture(params=["memory", "sql"])
async def any_backend(request):
    """Run a test against both document store implementations."""
    if request.param == "memory":
        yield memory_backend()
        return
    async with _sqlite_backend() as b:
        yield b


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

@pytest.fixture
async def client(backend):
    from krishisetu.app.main import app

    app.state.backend = backend
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers():
    """Factory: Authorization header for a uid.

    Usage:
        headers = auth_headers("farmer-1")
    """
    def _factory(uid: str) -> dict:
        return {"Authorization": f"Bearer {create_access_token(uid)}"}

    return _factory


# ---------------------------------------------------------------------------
# Document factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_listing():
    """Factory that stores an open listing and returns its id.

    Usage:
        listing_id = await make_listing(backend, owner_id="farmer-1", quantity=100)
    """
    async def _factory(
        backend: Backend,
        owner_id: str = "farmer-1",
        crop: str = "Tomato",
        quantity: float = 100,
        price_per_unit: float = 20,
        **kwargs,
    ) -> str:
        return await ListingStore(backend).create(
            owner_id=owner_id,
            crop=crop,
            quantity=quantity,
            price_per_unit=price_per_unit,
            **kwargs,
        )

    return _factory


@pytest.fixture
def make_offer():
    """Factory that stores a pending offer and returns its id."""
    async def _factory(
        backend: Backend,
        listing_id: str,
        buyer_id: str = "buyer-1",
        offer_price: float = 18,
        quantity: float = 50,
        **kwargs,
    ) -> str:
        return await OfferStore(backend).create(
            listing_id=listing_id,
            buyer_id=buyer_id,
            offer_price=offer_price,
            quantity=quantity,
            **kwargs,
        )

    return _factory
