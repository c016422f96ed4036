"""Database engine, session management and the shared Storage."""

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from backend.config import settings
from backend.storage.base import Storage
from backend.storage.sql import SqlStorage

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

storage = SqlStorage(async_session)


def ensure_sqlite_dir(database_url: str = settings.database_url) -> None:
    """Create the parent directory of a file-based SQLite database."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def get_storage() -> Storage:
    """Return the shared Storage for FastAPI dependency injection."""
    return storage
