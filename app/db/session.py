from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.core.config import settings

Base = declarative_base()


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    """Async engine for the directory store. SQLite URLs skip the pool tuning meant for Postgres."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False, future=True, **kwargs)
    # pool_pre_ping: check connection is alive before use.
    # pool_recycle: drop connections idle longer than the server-side timeout.
    return create_async_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
        pool_recycle=300,
        **kwargs,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)
AsyncSessionLocal = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create every mapped table that does not exist yet."""
    # Imports register all models on Base.metadata.
    import app.auth.models  # noqa: F401
    import app.core.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
