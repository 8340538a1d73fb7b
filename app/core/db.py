from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.core.config import settings


def _async_url(database_url: str) -> str:
    """Map a plain postgresql:// URL onto asyncpg.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so they
    are stripped; SSL is enabled via connect_args instead.
    """
    parsed = urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgres"):
        return database_url
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    return urlunparse(("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment))


async_database_url = _async_url(settings.database_url)
is_sqlite = async_database_url.startswith("sqlite")

_engine_kwargs: dict[str, Any] = {"echo": settings.db_echo}
if not is_sqlite:
    _engine_kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10)
    if settings.database_ssl:
        _engine_kwargs["connect_args"] = {"ssl": True}

engine = create_async_engine(async_database_url, **_engine_kwargs)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def drop_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
