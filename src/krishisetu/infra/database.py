"""Async database engine and session management."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from krishisetu.app.config import get_settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine, auto-detecting the driver from the URL."""
    is_sqlite = "sqlite" in database_url
    connect_args = {}
    if is_sqlite:
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30  # Wait up to 30s for write lock (default 5s)

    engine_kwargs = {
        "echo": False,  # Set True only when debugging SQL queries
        "connect_args": connect_args,
    }
    if not is_sqlite:
        engine_kwargs["pool_size"] = 5
        engine_kwargs["max_overflow"] = 10

    return create_async_engine(database_url, **engine_kwargs)


settings = get_settings()

engine = build_engine(settings.database_url)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(target: AsyncEngine | None = None):
    """Create all tables (for local dev and tests)."""
    # Ensure the documents table is registered with Base.metadata
    import krishisetu.domain.models  # noqa: F401

    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # WAL lets live-query re-reads run while a write is in flight
    url = target.url
    if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
        async with target.begin() as conn:
            await conn.execute(text("PRAGMA journal_mode=WAL"))
            await conn.execute(text("PRAGMA busy_timeout=30000"))
