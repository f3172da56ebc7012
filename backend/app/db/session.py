"""
Database session management.
Handles the database connection and session lifecycle with async support.

SQLite URLs (sqlite:///...) are rewritten to the aiosqlite driver for the
async engine. Other URLs are passed through unchanged and must already name
an async driver (e.g. postgresql+asyncpg://).
"""
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import event, Engine, create_engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from backend.app.config import get_settings


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Enable foreign key constraints for SQLite.
    This is required for proper referential integrity.

    Note: This event listener applies to ALL sync engines (including the one backing async).
    """
    if "sqlite" not in type(dbapi_conn).__module__:
        return
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _ensure_sqlite_directory(db_url: str) -> None:
    """Create the parent directory of a relative SQLite database file."""
    if db_url.startswith("sqlite:///"):
        db_path = db_url.replace("sqlite:///", "")
        if db_path and not db_path.startswith("/") and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)


def to_async_url(db_url: str) -> str:
    """Convert sqlite:/// to sqlite+aiosqlite:/// for async."""
    if db_url.startswith("sqlite:///"):
        return db_url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return db_url


def get_sync_engine(db_url: Optional[str] = None) -> Engine:
    """
    Create and configure a SYNC database engine for non-async operations.

    Used by:
    - Alembic migrations
    - Startup schema check in main.py

    Returns:
        Engine: SQLAlchemy sync engine
    """
    db_url = db_url or get_settings().DATABASE_URL
    _ensure_sqlite_directory(db_url)

    return create_engine(
        db_url,
        echo=False,
        poolclass=NullPool,
        )


def get_async_engine(db_url: Optional[str] = None) -> AsyncEngine:
    """
    Create and configure the async database engine.

    Returns:
        AsyncEngine: SQLAlchemy async engine (aiosqlite for SQLite URLs)
    """
    db_url = db_url or get_settings().DATABASE_URL
    _ensure_sqlite_directory(db_url)

    return create_async_engine(
        to_async_url(db_url),
        echo=False,
        # NullPool for SQLite - each connection is independent
        poolclass=NullPool,
        )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to engine.

    expire_on_commit=False: services build their read DTOs from ORM objects
    after commit, which must not trigger lazy loads on an async session.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


# Create engine instances
async_engine = get_async_engine()  # For FastAPI app
async_session_factory = make_session_factory(async_engine)


async def get_session_generator() -> AsyncGenerator[AsyncSession, None]:
    """
    Get an async database session for dependency injection.

    Usage in FastAPI:
        @router.get("/")
        async def endpoint(session: AsyncSession = Depends(get_session_generator)):
            result = await session.execute(select(Model))
            ...

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    async with async_session_factory() as session:
        yield session
