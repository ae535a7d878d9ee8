from typing import AsyncGenerator

from sqlalchemy import MetaData
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

# Named constraints so PostgreSQL and SQLite report the same names on violation
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _engine_options(database_url: str) -> dict:
    options = {"echo": settings.database_echo, "future": True}
    if make_url(database_url).get_backend_name() != "sqlite":
        # pool_pre_ping: check connection is alive before use.
        # pool_recycle: discard connections after this many seconds to avoid stale connections.
        options.update(pool_pre_ping=True, pool_recycle=300)
    return options


engine = create_async_engine(settings.database_url, **_engine_options(settings.database_url))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session. Services commit; anything left uncommitted is rolled back on close."""
    async with AsyncSessionLocal() as session:
        yield session
