"""Async SQLAlchemy engine and session factory.

Learn: SQLAlchemy 2.0 async mode — create_async_engine for connection pooling,
AsyncSession for per-request database access, dependency injection via FastAPI.
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from vidtube.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an engine; pool sizing only applies to server databases."""
    # Bound parameters carry password hashes and refresh tokens; keep them
    # out of exception messages.
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo, hide_parameters=True)
    # Connection pool: min 5, max 20 connections.
    return create_async_engine(
        url, echo=echo, hide_parameters=True, pool_size=5, max_overflow=15
    )


engine = build_engine(settings.database_url, echo=settings.debug)

# Session factory: each request gets its own session.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncSession:
    """FastAPI dependency — yields a session per request, auto-closes."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
